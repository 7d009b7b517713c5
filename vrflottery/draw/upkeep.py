"""Predicate deciding whether a lottery should start a draw."""

from __future__ import annotations

from dataclasses import dataclass

from ..models.lottery import Lottery, LotteryState


@dataclass(frozen=True)
class UpkeepStatus:
    """Inputs of the upkeep predicate, kept for diagnostics.

    Attributes
    ----------
    state : LotteryState
        State of the lottery when evaluated.
    elapsed : int
        Seconds since the last resolution (or creation).
    interval : int
        Configured minimum interval between draws.
    pool_balance : int
        Funds collected in the current round.
    player_count : int
        Entries in the current round.
    """

    state: LotteryState
    elapsed: int
    interval: int
    pool_balance: int
    player_count: int

    @property
    def is_open(self) -> bool:
        return self.state is LotteryState.OPEN

    @property
    def time_passed(self) -> bool:
        return self.elapsed >= self.interval

    @property
    def has_balance(self) -> bool:
        return self.pool_balance > 0

    @property
    def has_players(self) -> bool:
        return self.player_count > 0

    @property
    def needed(self) -> bool:
        return self.is_open and self.time_passed and self.has_balance and self.has_players


def evaluate_upkeep(lottery: Lottery, player_count: int, now: int) -> UpkeepStatus:
    """Evaluate the upkeep predicate for ``lottery`` at ``now`` (epoch seconds).

    Reads only; calling it any number of times never changes the lottery.
    """

    return UpkeepStatus(
        state=lottery.lottery_state,
        elapsed=now - lottery.last_timestamp,
        interval=lottery.interval_seconds,
        pool_balance=lottery.pool_balance,
        player_count=player_count,
    )


__all__ = ["UpkeepStatus", "evaluate_upkeep"]
