"""Exceptions raised by lottery operations.

Every failure is scoped to the rejected operation: the engine runs each
operation inside a savepoint, so raising one of these leaves the lottery
exactly as it was before the call.
"""

from __future__ import annotations

from typing import Optional


class LotteryError(Exception):
    """Base class for all lottery failures."""


class InsufficientPayment(LotteryError):
    """The amount sent with an entry is below the entrance fee."""

    def __init__(self, paid: int, required: int) -> None:
        self.paid = paid
        self.required = required
        super().__init__(
            f"Lottery__NotEnoughETHEntered: paid {paid}, entrance fee is {required}"
        )


class RaffleNotOpen(LotteryError):
    """The lottery is drawing a winner and does not accept the operation."""

    def __init__(self, state: str) -> None:
        self.state = state
        super().__init__(f"Lottery__NotOpen: lottery is {state}")


class UpkeepNotNeeded(LotteryError):
    """``perform_upkeep`` was called while ``check_upkeep`` is false.

    The attributes carry the diagnostic tuple so an operator can see which
    condition failed.
    """

    def __init__(self, pool_balance: int, player_count: int, state: str) -> None:
        self.pool_balance = pool_balance
        self.player_count = player_count
        self.state = state
        super().__init__(
            f"Lottery__UpkeepNotNeeded({pool_balance}, {player_count}, {state})"
        )


class UnknownRequest(LotteryError):
    """A randomness callback referenced a request that is not outstanding."""

    def __init__(self, request_id: int, outstanding: Optional[int]) -> None:
        self.request_id = request_id
        self.outstanding = outstanding
        super().__init__(
            f"Unknown randomness request {request_id} (outstanding: {outstanding})"
        )


class PayoutFailed(LotteryError):
    """Transferring the pool to the winner was refused."""

    def __init__(self, recipient: str, amount: int, reason: str) -> None:
        self.recipient = recipient
        self.amount = amount
        self.reason = reason
        super().__init__(
            f"Lottery__TransferFailed: {amount} to {recipient} ({reason})"
        )


class InvalidStateTransition(LotteryError):
    def __init__(self, old: str, new: str) -> None:
        self.old = old
        self.new = new
        super().__init__(f"Illegal lottery transition: {old} -> {new}")


class RequestNotStale(LotteryError):
    """The outstanding randomness request cannot be reissued yet."""


__all__ = [
    "LotteryError",
    "InsufficientPayment",
    "RaffleNotOpen",
    "UpkeepNotNeeded",
    "UnknownRequest",
    "PayoutFailed",
    "InvalidStateTransition",
    "RequestNotStale",
]
