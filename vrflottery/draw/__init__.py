"""Utilities for running lottery draws."""

from .engine import LotteryEngine
from .selection import select_winner_index
from .upkeep import UpkeepStatus, evaluate_upkeep

__all__ = [
    "LotteryEngine",
    "UpkeepStatus",
    "evaluate_upkeep",
    "select_winner_index",
]
