from .base import Base

# import models so Alembic/autoloaders can discover mappers
from .lottery import Lottery, LotteryState  # noqa: F401
from .entry import LotteryEntry  # noqa: F401
from .randomness import RandomnessRequest  # noqa: F401
from .event import LotteryEvent  # noqa: F401
from .account import Account  # noqa: F401

__all__ = [
    "Base",
    "Lottery",
    "LotteryState",
    "LotteryEntry",
    "RandomnessRequest",
    "LotteryEvent",
    "Account",
]
