"""Outbound contract of a verifiable randomness coordinator."""

from __future__ import annotations

from typing import Protocol, Sequence


class VRFCoordinator:
    """Issues randomness requests on behalf of a lottery.

    Implementations return a positive request id immediately; the random words
    arrive later through the consumer's ``fulfill_random_words`` callback.
    """

    def request_random_words(
        self,
        key_hash: str,
        subscription_id: int,
        request_confirmations: int,
        callback_gas_limit: int,
        num_words: int,
    ) -> int:
        raise NotImplementedError


class RandomWordsConsumer(Protocol):
    def fulfill_random_words(self, request_id: int, random_words: Sequence[int]) -> object:
        ...
