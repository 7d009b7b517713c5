from typing import Optional

from sqlalchemy import BigInteger, Integer, String
from sqlalchemy.types import TypeDecorator

# Use BigInteger by default, with a SQLite-safe Integer variant for autoincrement PKs.
ID_TYPE = BigInteger().with_variant(Integer, "sqlite")

UINT256_MAX = 2**256 - 1


class Uint256(TypeDecorator):
    """Unsigned 256-bit integer persisted as its decimal string.

    Wei amounts and VRF random words overflow 64-bit columns, and SQLite's
    ``NUMERIC`` affinity silently falls back to floating point.
    """

    impl = String
    cache_ok = True

    def __init__(self) -> None:
        super().__init__(length=78)

    def process_bind_param(self, value: Optional[int], dialect) -> Optional[str]:
        if value is None:
            return None
        if isinstance(value, bool) or not isinstance(value, int):
            raise TypeError(f"Uint256 columns accept int values, got {type(value).__name__}")
        if value < 0 or value > UINT256_MAX:
            raise ValueError(f"{value} does not fit in an unsigned 256-bit integer")
        return str(value)

    def process_result_value(self, value: Optional[str], dialect) -> Optional[int]:
        if value is None:
            return None
        return int(value)
