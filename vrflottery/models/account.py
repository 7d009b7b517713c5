from datetime import datetime, timezone
from typing import Optional

from sqlalchemy import Boolean, DateTime, String, select, text
from sqlalchemy.orm import Mapped, Session, mapped_column, validates

from .base import Base
from .types import ID_TYPE, Uint256


class Account(Base):
    """External balance of an address, credited by ledger payouts."""

    __tablename__ = "accounts"

    id: Mapped[int] = mapped_column(ID_TYPE, primary_key=True, index=True, autoincrement=True)
    address: Mapped[str] = mapped_column(String(64), unique=True, index=True, nullable=False)
    balance: Mapped[int] = mapped_column(Uint256(), nullable=False, default=0)
    accepts_payments: Mapped[bool] = mapped_column(
        Boolean, nullable=False, default=True, server_default=text("true")
    )
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
        onupdate=lambda: datetime.now(timezone.utc),
    )

    def __init__(
        self,
        *,
        address: str,
        balance: int = 0,
        accepts_payments: bool = True,
    ) -> None:
        self.address = address
        self.balance = balance
        self.accepts_payments = accepts_payments

    def __repr__(self) -> str:  # pragma: no cover - repr is trivial
        return f"<Account(address='{self.address}', balance={self.balance})>"

    @validates("address")
    def _normalize_address(self, _key: str, value: str) -> str:
        normalized = value.strip()
        if not normalized:
            raise ValueError("address must not be empty")
        return normalized

    @classmethod
    def get_by_address(cls, session: Session, address: str) -> Optional["Account"]:
        """Get an account by its address."""
        return session.scalar(select(cls).where(cls.address == address.strip()))

    @classmethod
    def get_or_create(cls, session: Session, address: str) -> "Account":
        account = cls.get_by_address(session, address)
        if account is None:
            account = cls(address=address)
            session.add(account)
            session.flush()
        return account
