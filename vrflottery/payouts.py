"""Transfer of a lottery pool to its winner."""

from __future__ import annotations

import logging

from sqlalchemy.orm import Session

from .errors import PayoutFailed
from .models.account import Account

logger = logging.getLogger(__name__)


class PayoutGateway:
    """Moves funds out of the lottery.

    ``transfer`` must either complete or raise; the engine rolls the whole
    resolution back when it raises.
    """

    def transfer(self, session: Session, recipient: str, amount: int) -> None:
        raise NotImplementedError


class AccountLedgerPayout(PayoutGateway):
    """Credits the recipient's :class:`Account` row in the same transaction."""

    def transfer(self, session: Session, recipient: str, amount: int) -> None:
        if amount < 0:
            raise ValueError("amount must be non-negative")

        account = Account.get_or_create(session, recipient)
        if not account.accepts_payments:
            logger.warning(f"Account {recipient} refused a payout of {amount}")
            raise PayoutFailed(recipient, amount, "recipient does not accept payments")

        account.balance = account.balance + amount
        session.flush()
        logger.debug(f"Credited {amount} to {recipient}")
