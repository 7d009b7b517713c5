"""In-process randomness coordinator for development chains and tests."""

from __future__ import annotations

import hashlib
import logging
from dataclasses import dataclass
from typing import Optional, Sequence

from .coordinator import RandomWordsConsumer, VRFCoordinator

logger = logging.getLogger(__name__)

BASE_FEE = 25 * 10**16  # 0.25 LINK premium per request
GAS_PRICE_LINK = 10**9  # LINK per gas
FUND_AMOUNT = 1000 * 10**18


@dataclass
class Subscription:
    owner: str
    balance: int = 0


@dataclass(frozen=True)
class PendingRequest:
    request_id: int
    subscription_id: int
    callback_gas_limit: int
    num_words: int


def derive_random_word(request_id: int, index: int) -> int:
    """Deterministic stand-in for a verified random word."""

    digest = hashlib.sha256(f"{request_id}:{index}".encode("utf-8")).digest()
    return int.from_bytes(digest, "big")


class LocalVRFCoordinator(VRFCoordinator):
    """Coordinator that keeps subscriptions and requests in memory.

    Requests are answered only when :meth:`fulfill_random_words` is called, so
    tests control exactly when (and with which words) the callback happens.
    """

    def __init__(
        self, base_fee: int = BASE_FEE, gas_price_link: int = GAS_PRICE_LINK
    ) -> None:
        self.base_fee = base_fee
        self.gas_price_link = gas_price_link
        self._subscriptions: dict[int, Subscription] = {}
        self._requests: dict[int, PendingRequest] = {}
        self._next_subscription_id = 1
        self._next_request_id = 1

    # -------- subscriptions --------
    def create_subscription(self, owner: str = "deployer") -> int:
        sub_id = self._next_subscription_id
        self._next_subscription_id += 1
        self._subscriptions[sub_id] = Subscription(owner=owner)
        logger.debug(f"Created subscription {sub_id} for {owner}")
        return sub_id

    def fund_subscription(self, subscription_id: int, amount: int) -> int:
        subscription = self._get_subscription(subscription_id)
        if amount <= 0:
            raise ValueError("amount must be positive")
        subscription.balance += amount
        return subscription.balance

    def get_subscription(self, subscription_id: int) -> Subscription:
        return self._get_subscription(subscription_id)

    def _get_subscription(self, subscription_id: int) -> Subscription:
        subscription = self._subscriptions.get(subscription_id)
        if subscription is None:
            raise ValueError("InvalidSubscription")
        return subscription

    # -------- requests --------
    def request_random_words(
        self,
        key_hash: str,
        subscription_id: int,
        request_confirmations: int,
        callback_gas_limit: int,
        num_words: int,
    ) -> int:
        self._get_subscription(subscription_id)
        if num_words < 1:
            raise ValueError("num_words must be at least 1")

        request_id = self._next_request_id
        self._next_request_id += 1
        self._requests[request_id] = PendingRequest(
            request_id=request_id,
            subscription_id=subscription_id,
            callback_gas_limit=callback_gas_limit,
            num_words=num_words,
        )
        logger.debug(f"Randomness request {request_id} queued (sub {subscription_id})")
        return request_id

    def is_pending(self, request_id: int) -> bool:
        return request_id in self._requests

    def fulfill_random_words(
        self,
        request_id: int,
        consumer: RandomWordsConsumer,
        words: Optional[Sequence[int]] = None,
    ) -> list[int]:
        """Deliver random words for ``request_id`` to ``consumer``.

        ``words`` overrides the derived values. The request stays pending when
        the consumer raises, so delivery can be retried.

        Raises
        ------
        ValueError
            ``"nonexistent request"`` for ids never issued or already fulfilled,
            ``"InsufficientBalance"`` when the subscription cannot pay.
        """
        request = self._requests.get(request_id)
        if request is None:
            raise ValueError("nonexistent request")

        if words is None:
            words = [derive_random_word(request_id, i) for i in range(request.num_words)]
        delivered = [int(word) for word in words]

        subscription = self._get_subscription(request.subscription_id)
        payment = self.base_fee + self.gas_price_link * request.callback_gas_limit
        if subscription.balance < payment:
            raise ValueError("InsufficientBalance")

        consumer.fulfill_random_words(request_id, delivered)

        del self._requests[request_id]
        subscription.balance -= payment
        logger.debug(f"Randomness request {request_id} fulfilled, charged {payment}")
        return delivered
