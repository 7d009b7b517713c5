from __future__ import annotations

from datetime import datetime, timezone
from typing import TYPE_CHECKING, Optional

from sqlalchemy import (
    JSON,
    BigInteger,
    CheckConstraint,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    String,
    select,
)
from sqlalchemy.orm import Mapped, Session, mapped_column, relationship

from .base import Base
from .types import ID_TYPE, Uint256

if TYPE_CHECKING:
    from .lottery import Lottery


class RandomnessRequest(Base):
    """Audit record of a randomness request issued for a lottery round.

    Only the lottery's ``outstanding_request_id`` decides whether a callback
    is accepted; these rows record what was asked for and what came back.
    """

    __tablename__ = "randomness_requests"

    id: Mapped[int] = mapped_column(ID_TYPE, primary_key=True, autoincrement=True)
    lottery_id: Mapped[int] = mapped_column(
        ID_TYPE, ForeignKey("lotteries.id", ondelete="CASCADE"), nullable=False, index=True
    )
    request_id: Mapped[int] = mapped_column(Uint256(), nullable=False)
    round_number: Mapped[int] = mapped_column(Integer, nullable=False)
    status: Mapped[str] = mapped_column(String(20), nullable=False, default="pending")
    key_hash: Mapped[str] = mapped_column(String(66), nullable=False)
    subscription_id: Mapped[int] = mapped_column(BigInteger, nullable=False)
    request_confirmations: Mapped[int] = mapped_column(Integer, nullable=False)
    callback_gas_limit: Mapped[int] = mapped_column(Integer, nullable=False)
    num_words: Mapped[int] = mapped_column(Integer, nullable=False)
    # decimal strings; JSON numbers cannot hold uint256 values portably
    random_words: Mapped[Optional[list]] = mapped_column(JSON, nullable=True)
    winner: Mapped[Optional[str]] = mapped_column(String(64), nullable=True)
    requested_at_ts: Mapped[int] = mapped_column(BigInteger, nullable=False)
    fulfilled_at_ts: Mapped[Optional[int]] = mapped_column(BigInteger, nullable=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=lambda: datetime.now(timezone.utc),
    )

    lottery: Mapped["Lottery"] = relationship(back_populates="requests")

    __table_args__ = (
        CheckConstraint(
            "status IN ('pending','fulfilled','superseded')", name="status_enum"
        ),
        # not unique: a restarted coordinator may hand out an id again
        Index("ix_randomness_requests_lottery_request", "lottery_id", "request_id"),
    )

    def __repr__(self) -> str:
        return (
            f"<RandomnessRequest(id={self.id}, lottery_id={self.lottery_id}, "
            f"request_id={self.request_id}, round={self.round_number}, status='{self.status}')>"
        )

    @property
    def words(self) -> list[int]:
        return [int(word) for word in (self.random_words or [])]

    @classmethod
    def get_for_lottery(
        cls,
        session: Session,
        lottery_id: int,
        request_id: int,
        round_number: Optional[int] = None,
    ) -> Optional["RandomnessRequest"]:
        """Return the newest request row with ``request_id`` for a lottery.

        Pass ``round_number`` to ignore rows from other rounds that were
        given the same id.
        """
        stmt = select(cls).where(
            cls.lottery_id == lottery_id, cls.request_id == request_id
        )
        if round_number is not None:
            stmt = stmt.where(cls.round_number == round_number)
        return session.scalars(stmt.order_by(cls.id.desc())).first()
