"""Randomness coordinators used to draw lottery winners."""

from .api import VRFCoordinatorClient
from .coordinator import RandomWordsConsumer, VRFCoordinator
from .local import FUND_AMOUNT, LocalVRFCoordinator, derive_random_word

__all__ = [
    "FUND_AMOUNT",
    "LocalVRFCoordinator",
    "RandomWordsConsumer",
    "VRFCoordinator",
    "VRFCoordinatorClient",
    "derive_random_word",
]
