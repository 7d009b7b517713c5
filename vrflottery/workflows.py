from typing import TYPE_CHECKING, Any, Optional, Sequence
import time

from sqlalchemy.orm import Session

from .models import Lottery, LotteryEntry
from .draw.engine import Clock, LotteryEngine

if TYPE_CHECKING:
    from .config import LotteryConfig
    from .payouts import PayoutGateway
    from .randomness.coordinator import VRFCoordinator


def create_lottery(
    session: Session,
    config: "LotteryConfig",
    *,
    name: Optional[str] = None,
    clock: Optional[Clock] = None,
) -> Lottery:
    """Persist a new lottery built from ``config``.

    The lottery starts ``OPEN`` with an empty round, and its round timer starts
    at the current time so the first draw waits a full interval.

    Parameters
    ----------
    session : Session
        Active SQLAlchemy session.
    config : LotteryConfig
        Immutable parameters of the lottery.
    name : Optional[str]
        Optional label shown to operators.
    clock : Optional[Callable[[], int]]
        Source of the current time in epoch seconds.

    Returns
    -------
    Lottery
        The persisted ``Lottery`` with a populated ``id``.
    """

    now = clock() if clock is not None else int(time.time())
    lottery = Lottery.from_config(config, created_at_ts=now, name=name)
    session.add(lottery)
    session.flush()
    return lottery


def enter_lottery(
    session: Session,
    lottery: Lottery,
    participant: str,
    amount: int,
    *,
    clock: Optional[Clock] = None,
) -> LotteryEntry:
    """Record a paid entry of ``participant`` into ``lottery``.

    See :meth:`LotteryEngine.enter` for the rules and raised errors.
    """

    engine = LotteryEngine(session, lottery, clock=clock)
    return engine.enter(participant, amount)


def check_upkeep(
    session: Session, lottery: Lottery, *, clock: Optional[Clock] = None
) -> bool:
    """Return whether ``lottery`` should start a draw now. Never modifies state."""

    return LotteryEngine(session, lottery, clock=clock).check_upkeep()


def perform_upkeep(
    session: Session,
    lottery: Lottery,
    coordinator: "VRFCoordinator",
    *,
    clock: Optional[Clock] = None,
) -> int:
    """Start a draw for ``lottery`` and return the outstanding request id.

    The upkeep condition is re-checked here even if the caller already checked
    it; :class:`~vrflottery.errors.UpkeepNotNeeded` is raised when it fails.
    """

    engine = LotteryEngine(session, lottery, coordinator=coordinator, clock=clock)
    return engine.perform_upkeep()


def fulfill_random_words(
    session: Session,
    lottery: Lottery,
    request_id: int,
    random_words: Sequence[int],
    *,
    payouts: Optional["PayoutGateway"] = None,
    clock: Optional[Clock] = None,
) -> str:
    """Resolve ``lottery``'s outstanding draw and return the winner's address.

    This is the entry point used by randomness callbacks (for example a web
    hook receiving the coordinator's answer).

    Parameters
    ----------
    session : Session
        Active SQLAlchemy session.
    lottery : Lottery
        Lottery whose draw is being resolved.
    request_id : int
        Request id the coordinator is answering.
    random_words : Sequence[int]
        Delivered words; only the first is used.
    payouts : Optional[PayoutGateway]
        Gateway paying the winner. Defaults to crediting ledger accounts.
    clock : Optional[Callable[[], int]]
        Source of the current time in epoch seconds.

    Raises
    ------
    UnknownRequest
        If ``request_id`` is not the outstanding request.
    PayoutFailed
        If paying the winner fails; the lottery is left unchanged.
    """

    engine = LotteryEngine(session, lottery, payouts=payouts, clock=clock)
    return engine.fulfill_random_words(request_id, random_words)


def reissue_randomness_request(
    session: Session,
    lottery: Lottery,
    coordinator: "VRFCoordinator",
    *,
    min_age_seconds: int,
    clock: Optional[Clock] = None,
) -> int:
    """Replace a draw's randomness request that has gone unanswered.

    Meant for operators of a round stuck in ``CALCULATING``; returns the new
    outstanding request id.
    """

    engine = LotteryEngine(session, lottery, coordinator=coordinator, clock=clock)
    return engine.reissue_randomness_request(min_age_seconds)


def lottery_summary(session: Session, lottery: Lottery) -> dict[str, Any]:
    """Return the lottery's public state plus the current round's players."""

    summary = lottery.to_json()
    players = [entry.participant for entry in lottery.current_entries(session)]
    summary["number_of_players"] = len(players)
    summary["players"] = players
    return summary
