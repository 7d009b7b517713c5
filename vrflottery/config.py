"""Network presets and lottery configuration."""

from __future__ import annotations

import os
from dataclasses import dataclass
from typing import Optional

from dotenv import load_dotenv

ONE_ETHER = 10**18

DEVELOPMENT_CHAINS = ("hardhat", "localhost")
DEFAULT_CHAIN_ID = 31337


@dataclass(frozen=True)
class NetworkConfigItem:
    name: str
    entrance_fee: int
    gas_lane: str
    callback_gas_limit: int
    interval: int
    subscription_id: Optional[int] = None


NETWORK_CONFIG: dict[int, NetworkConfigItem] = {
    31337: NetworkConfigItem(
        name="hardhat",
        entrance_fee=ONE_ETHER // 100,
        gas_lane="0xd89b2bf150e3b9e13446986e571fb9cab24b13cea0a43ea20a6049a85cc807cc",
        callback_gas_limit=500_000,
        interval=30,
    ),
    4: NetworkConfigItem(
        name="rinkeby",
        entrance_fee=ONE_ETHER // 100,
        gas_lane="0xd89b2bf150e3b9e13446986e571fb9cab24b13cea0a43ea20a6049a85cc807cc",
        subscription_id=18638,
        callback_gas_limit=500_000,
        interval=30,
    ),
}


def is_development_chain(chain_id: int) -> bool:
    preset = NETWORK_CONFIG.get(chain_id)
    return preset is not None and preset.name in DEVELOPMENT_CHAINS


@dataclass(frozen=True)
class LotteryConfig:
    """Immutable parameters a lottery is created with.

    Attributes
    ----------
    entrance_fee : int
        Minimum payment per entry, in wei. Must be positive.
    interval : int
        Minimum number of seconds between two draws.
    gas_lane : str
        Key hash selecting the randomness provider's gas lane.
    subscription_id : int
        Subscription that pays for randomness requests.
    callback_gas_limit : int
        Processing budget forwarded with each request.
    request_confirmations : int, default: 3
        Confirmation depth the provider waits for.
    num_words : int, default: 1
        Random words requested per draw.
    """

    entrance_fee: int
    interval: int
    gas_lane: str
    subscription_id: int
    callback_gas_limit: int
    request_confirmations: int = 3
    num_words: int = 1

    def __post_init__(self) -> None:
        if self.entrance_fee <= 0:
            raise ValueError("entrance_fee must be positive")
        if self.interval < 0:
            raise ValueError("interval must be non-negative")
        if self.callback_gas_limit <= 0:
            raise ValueError("callback_gas_limit must be positive")
        if self.request_confirmations < 0:
            raise ValueError("request_confirmations must be non-negative")
        if self.num_words < 1:
            raise ValueError("num_words must be at least 1")
        if not self.gas_lane:
            raise ValueError("gas_lane must not be empty")

    @staticmethod
    def for_chain(
        chain_id: int, subscription_id: Optional[int] = None
    ) -> "LotteryConfig":
        """Build the configuration preset for ``chain_id``.

        Development chains have no preset subscription (it is created against a
        local coordinator), so ``subscription_id`` must be passed for them.
        """

        preset = NETWORK_CONFIG.get(chain_id)
        if preset is None:
            raise ValueError(f"No network config for chain id {chain_id}")

        sub_id = subscription_id if subscription_id is not None else preset.subscription_id
        if sub_id is None:
            raise ValueError(
                f"Chain {chain_id} ({preset.name}) needs an explicit subscription_id"
            )

        return LotteryConfig(
            entrance_fee=preset.entrance_fee,
            interval=preset.interval,
            gas_lane=preset.gas_lane,
            subscription_id=sub_id,
            callback_gas_limit=preset.callback_gas_limit,
        )

    @staticmethod
    def from_env() -> "LotteryConfig":
        """Read the configuration from the environment (and ``.env``).

        ``LOTTERY_CHAIN_ID`` picks the preset; ``LOTTERY_ENTRANCE_FEE``,
        ``LOTTERY_INTERVAL``, ``LOTTERY_GAS_LANE``, ``LOTTERY_SUBSCRIPTION_ID``,
        ``LOTTERY_CALLBACK_GAS_LIMIT``, ``LOTTERY_REQUEST_CONFIRMATIONS`` and
        ``LOTTERY_NUM_WORDS`` override single fields.
        """
        load_dotenv()

        chain_id = int(os.getenv("LOTTERY_CHAIN_ID", "").strip() or DEFAULT_CHAIN_ID)
        preset = NETWORK_CONFIG.get(chain_id)
        if preset is None:
            raise RuntimeError(f"Unsupported LOTTERY_CHAIN_ID: {chain_id}")

        def _env_int(key: str, fallback: Optional[int]) -> Optional[int]:
            raw = os.getenv(key, "").strip()
            return int(raw) if raw else fallback

        subscription_id = _env_int("LOTTERY_SUBSCRIPTION_ID", preset.subscription_id)
        if subscription_id is None:
            raise RuntimeError(
                "Missing LOTTERY_SUBSCRIPTION_ID. Put it in .env or export it."
            )

        return LotteryConfig(
            entrance_fee=_env_int("LOTTERY_ENTRANCE_FEE", preset.entrance_fee) or 0,
            interval=_env_int("LOTTERY_INTERVAL", preset.interval) or 0,
            gas_lane=os.getenv("LOTTERY_GAS_LANE", "").strip() or preset.gas_lane,
            subscription_id=subscription_id,
            callback_gas_limit=(
                _env_int("LOTTERY_CALLBACK_GAS_LIMIT", preset.callback_gas_limit) or 0
            ),
            request_confirmations=_env_int("LOTTERY_REQUEST_CONFIRMATIONS", 3) or 0,
            num_words=_env_int("LOTTERY_NUM_WORDS", 1) or 0,
        )
