from __future__ import annotations

from datetime import datetime, timezone
from typing import TYPE_CHECKING, Optional

from sqlalchemy import (
    DateTime,
    ForeignKey,
    Index,
    Integer,
    String,
    UniqueConstraint,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from .base import Base
from .types import ID_TYPE, Uint256

if TYPE_CHECKING:
    from .lottery import Lottery


class LotteryEntry(Base):
    """One paid slot in a lottery round.

    The same address may hold several slots in a round; each slot weighs the
    same in the draw.
    """

    __tablename__ = "lottery_entries"

    id: Mapped[int] = mapped_column(ID_TYPE, primary_key=True, autoincrement=True)
    lottery_id: Mapped[int] = mapped_column(
        ID_TYPE, ForeignKey("lotteries.id", ondelete="CASCADE"), nullable=False
    )
    round_number: Mapped[int] = mapped_column(Integer, nullable=False)
    # zero-based, contiguous within a round
    position: Mapped[int] = mapped_column(Integer, nullable=False)
    participant: Mapped[str] = mapped_column(String(64), nullable=False)
    amount: Mapped[int] = mapped_column(Uint256(), nullable=False)
    entered_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=lambda: datetime.now(timezone.utc),
    )

    lottery: Mapped["Lottery"] = relationship(back_populates="entries")

    __table_args__ = (
        UniqueConstraint(
            "lottery_id",
            "round_number",
            "position",
            name="lottery_entries_round_position_key",
        ),
        Index("ix_lottery_entries_round", "lottery_id", "round_number"),
        Index("ix_lottery_entries_participant", "participant"),
    )

    def __init__(
        self,
        *,
        lottery_id: int,
        round_number: int,
        position: int,
        participant: str,
        amount: int,
        entered_at: Optional[datetime] = None,
    ) -> None:
        self.lottery_id = lottery_id
        self.round_number = round_number
        self.position = position
        self.participant = participant
        self.amount = amount
        if entered_at is not None:
            self.entered_at = entered_at

    def __repr__(self) -> str:
        return (
            f"<LotteryEntry(id={self.id}, lottery_id={self.lottery_id}, "
            f"round={self.round_number}, position={self.position}, "
            f"participant='{self.participant}', amount={self.amount})>"
        )
