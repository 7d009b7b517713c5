"""Engine driving a lottery through its rounds."""

from __future__ import annotations

import logging
import time
from typing import Callable, Optional, Sequence

from sqlalchemy import select
from sqlalchemy.orm import Session

from ..errors import (
    InsufficientPayment,
    PayoutFailed,
    RaffleNotOpen,
    RequestNotStale,
    UnknownRequest,
    UpkeepNotNeeded,
)
from ..models import Lottery, LotteryEntry, LotteryEvent, LotteryState, RandomnessRequest
from ..models.event import DRAW_STARTED, ENTERED, WINNER_PICKED
from ..payouts import AccountLedgerPayout, PayoutGateway
from ..randomness.coordinator import VRFCoordinator
from .selection import select_winner_index
from .upkeep import UpkeepStatus, evaluate_upkeep

logger = logging.getLogger(__name__)

Clock = Callable[[], int]


def _unix_now() -> int:
    return int(time.time())


class LotteryEngine:
    """Runs entries, draws and resolutions for one persisted lottery.

    Every mutating operation executes inside its own SAVEPOINT after locking
    the lottery row, so it either applies completely or leaves the lottery
    untouched.
    """

    def __init__(
        self,
        session: Session,
        lottery: Lottery,
        *,
        coordinator: Optional[VRFCoordinator] = None,
        payouts: Optional[PayoutGateway] = None,
        clock: Optional[Clock] = None,
    ) -> None:
        """Bind the engine to ``lottery``.

        Parameters
        ----------
        session : Session
            Active SQLAlchemy session used for lookups and persistence.
        lottery : Lottery
            Persisted lottery to operate on.
        coordinator : Optional[VRFCoordinator], default: None
            Randomness coordinator; required by :meth:`perform_upkeep` and
            :meth:`reissue_randomness_request` only.
        payouts : Optional[PayoutGateway], default: None
            Gateway paying the winner. Defaults to :class:`AccountLedgerPayout`.
        clock : Optional[Callable[[], int]], default: None
            Source of the current time in epoch seconds.
        """

        if lottery.id is None:
            raise ValueError("Lottery must be persisted before it can run")
        self._session = session
        self._lottery = lottery
        self._coordinator = coordinator
        self._payouts = payouts or AccountLedgerPayout()
        self._clock = clock or _unix_now

    @property
    def lottery(self) -> Lottery:
        return self._lottery

    # --- helpers ---
    def _reload(self, *, lock: bool) -> Lottery:
        stmt = select(Lottery).where(Lottery.id == self._lottery.id)
        if lock:
            stmt = stmt.with_for_update()
        stmt = stmt.execution_options(populate_existing=True)
        return self._session.scalars(stmt).one()

    def _locked(self) -> Lottery:
        return self._reload(lock=True)

    def _require_coordinator(self) -> VRFCoordinator:
        if self._coordinator is None:
            raise RuntimeError("A randomness coordinator is required to start a draw")
        return self._coordinator

    def _emit(
        self,
        lottery: Lottery,
        name: str,
        payload: dict,
        *,
        round_number: Optional[int] = None,
    ) -> LotteryEvent:
        event = LotteryEvent(
            lottery_id=lottery.id,
            round_number=round_number if round_number is not None else lottery.round_number,
            name=name,
            payload=payload,
        )
        self._session.add(event)
        return event

    def _issue_request(self, lottery: Lottery, now: int) -> int:
        coordinator = self._require_coordinator()
        request_id = int(
            coordinator.request_random_words(
                key_hash=lottery.gas_lane,
                subscription_id=lottery.subscription_id,
                request_confirmations=lottery.request_confirmations,
                callback_gas_limit=lottery.callback_gas_limit,
                num_words=lottery.num_words,
            )
        )
        if request_id <= 0:
            raise RuntimeError(f"Randomness coordinator returned invalid request id {request_id}")

        lottery.outstanding_request_id = request_id
        self._session.add(
            RandomnessRequest(
                lottery_id=lottery.id,
                request_id=request_id,
                round_number=lottery.round_number,
                status="pending",
                key_hash=lottery.gas_lane,
                subscription_id=lottery.subscription_id,
                request_confirmations=lottery.request_confirmations,
                callback_gas_limit=lottery.callback_gas_limit,
                num_words=lottery.num_words,
                requested_at_ts=now,
            )
        )
        return request_id

    # --- read-only ---
    def upkeep_status(self) -> UpkeepStatus:
        # fresh read without a lock; perform_upkeep re-checks under the lock
        lottery = self._reload(lock=False)
        return evaluate_upkeep(
            lottery, lottery.number_of_players(self._session), self._clock()
        )

    def check_upkeep(self) -> bool:
        """Return ``True`` when a draw should start now."""

        return self.upkeep_status().needed

    # --- entrance ---
    def enter(self, participant: str, amount: int) -> LotteryEntry:
        """Record one paid entry for ``participant``.

        Overpayment stays in the pool; no change is given.

        Raises
        ------
        InsufficientPayment
            If ``amount`` is below the entrance fee.
        RaffleNotOpen
            If a draw is in progress.
        """

        if not participant or not participant.strip():
            raise ValueError("participant must not be empty")
        if isinstance(amount, bool) or not isinstance(amount, int) or amount < 0:
            raise ValueError("amount must be a non-negative integer")
        participant = participant.strip()

        with self._session.begin_nested():
            lottery = self._locked()
            if amount < lottery.entrance_fee:
                raise InsufficientPayment(amount, lottery.entrance_fee)
            if not lottery.is_open:
                raise RaffleNotOpen(lottery.state)

            entry = LotteryEntry(
                lottery_id=lottery.id,
                round_number=lottery.round_number,
                position=lottery.number_of_players(self._session),
                participant=participant,
                amount=amount,
            )
            self._session.add(entry)
            lottery.pool_balance = lottery.pool_balance + amount
            self._emit(lottery, ENTERED, {"participant": participant})
            self._session.flush()

        logger.info(
            f"Lottery {lottery.id}: {participant} entered round {entry.round_number} "
            f"at position {entry.position}"
        )
        return entry

    # --- draw start ---
    def perform_upkeep(self) -> int:
        """Close entries and request randomness for the current round.

        Returns
        -------
        int
            The request id now outstanding.

        Raises
        ------
        UpkeepNotNeeded
            If :meth:`check_upkeep` is false at the time of the call.
        """

        self._require_coordinator()
        with self._session.begin_nested():
            lottery = self._locked()
            now = self._clock()
            status = evaluate_upkeep(lottery, lottery.number_of_players(self._session), now)
            if not status.needed:
                raise UpkeepNotNeeded(
                    status.pool_balance, status.player_count, status.state.value
                )

            lottery.transition_to(LotteryState.CALCULATING)
            request_id = self._issue_request(lottery, now)
            self._emit(lottery, DRAW_STARTED, {"request_id": str(request_id)})
            self._session.flush()

        logger.info(
            f"Lottery {lottery.id}: draw started for round {lottery.round_number} "
            f"with {status.player_count} entries, request {request_id}"
        )
        return request_id

    # --- resolution ---
    def fulfill_random_words(self, request_id: int, random_words: Sequence[int]) -> str:
        """Resolve the outstanding draw with the delivered ``random_words``.

        Only the first word is used. The winner is the entry at
        ``random_words[0] % number_of_players``; they receive the whole pool
        and the lottery reopens with an empty round.

        Returns
        -------
        str
            Address of the winner.

        Raises
        ------
        UnknownRequest
            If ``request_id`` is zero or not the outstanding request.
        PayoutFailed
            If the transfer to the winner fails. Nothing is changed and the
            request stays outstanding.
        """

        with self._session.begin_nested():
            lottery = self._locked()
            outstanding = lottery.outstanding_request_id
            if request_id == 0 or outstanding is None or request_id != outstanding:
                logger.warning(
                    f"Lottery {lottery.id}: rejected callback for request {request_id} "
                    f"(outstanding: {outstanding})"
                )
                raise UnknownRequest(request_id, outstanding)
            if not random_words:
                raise ValueError("At least one random word is required")

            entries = lottery.current_entries(self._session)
            winner_index = select_winner_index(int(random_words[0]), len(entries))
            winner = entries[winner_index].participant
            prize = lottery.pool_balance
            resolved_round = lottery.round_number
            now = self._clock()

            lottery.recent_winner = winner
            lottery.round_number = resolved_round + 1
            lottery.pool_balance = 0
            lottery.outstanding_request_id = None
            lottery.last_timestamp = now
            lottery.transition_to(LotteryState.OPEN)

            request = RandomnessRequest.get_for_lottery(
                self._session, lottery.id, request_id, round_number=resolved_round
            )
            if request is not None:
                request.status = "fulfilled"
                request.random_words = [str(int(word)) for word in random_words]
                request.winner = winner
                request.fulfilled_at_ts = now
            self._session.flush()

            try:
                self._payouts.transfer(self._session, winner, prize)
            except PayoutFailed:
                logger.warning(f"Lottery {lottery.id}: payout of {prize} to {winner} failed")
                raise
            except Exception as exc:
                logger.warning(f"Lottery {lottery.id}: payout of {prize} to {winner} failed: {exc}")
                raise PayoutFailed(winner, prize, str(exc)) from exc

            self._emit(
                lottery,
                WINNER_PICKED,
                {"winner": winner, "amount": str(prize)},
                round_number=resolved_round,
            )
            self._session.flush()

        logger.info(
            f"Lottery {lottery.id}: {winner} won round {resolved_round} "
            f"(index {winner_index} of {len(entries)}), paid {prize}"
        )
        return winner

    # --- stuck rounds ---
    def reissue_randomness_request(self, min_age_seconds: int) -> int:
        """Replace an outstanding request that has gone unanswered.

        The previous request is marked ``superseded`` and its id is no longer
        accepted. Entries stay frozen, so the round is drawn over the same
        participants.

        Raises
        ------
        RequestNotStale
            If no request is outstanding, it has no audit record, or it is
            younger than ``min_age_seconds``.
        """

        if min_age_seconds < 0:
            raise ValueError("min_age_seconds must be non-negative")
        self._require_coordinator()

        with self._session.begin_nested():
            lottery = self._locked()
            previous_id = lottery.outstanding_request_id
            if lottery.lottery_state is not LotteryState.CALCULATING or previous_id is None:
                raise RequestNotStale("No randomness request is outstanding")

            now = self._clock()
            previous = RandomnessRequest.get_for_lottery(
                self._session, lottery.id, previous_id, round_number=lottery.round_number
            )
            if previous is None:
                raise RequestNotStale(
                    f"Request {previous_id} has no record; its age cannot be checked"
                )
            age = now - previous.requested_at_ts
            if age < min_age_seconds:
                raise RequestNotStale(
                    f"Request {previous_id} is {age}s old; reissue allowed after {min_age_seconds}s"
                )
            previous.status = "superseded"

            request_id = self._issue_request(lottery, now)
            if request_id == previous_id:
                raise RuntimeError(
                    f"Randomness coordinator reused request id {request_id}"
                )
            self._emit(
                lottery,
                DRAW_STARTED,
                {"request_id": str(request_id), "supersedes": str(previous_id)},
            )
            self._session.flush()

        logger.warning(
            f"Lottery {lottery.id}: request {previous_id} superseded by {request_id}"
        )
        return request_id
