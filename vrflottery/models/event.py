from __future__ import annotations

from datetime import datetime, timezone
from typing import TYPE_CHECKING, Any, Optional

from sqlalchemy import JSON, CheckConstraint, DateTime, ForeignKey, Integer, String
from sqlalchemy.orm import Mapped, mapped_column, relationship

from ..db.utils import dt_iso
from .base import Base
from .types import ID_TYPE

if TYPE_CHECKING:
    from .lottery import Lottery

ENTERED = "Entered"
DRAW_STARTED = "DrawStarted"
WINNER_PICKED = "WinnerPicked"


class LotteryEvent(Base):
    """Observable event emitted by a lottery for off-chain subscribers."""

    __tablename__ = "lottery_events"

    id: Mapped[int] = mapped_column(ID_TYPE, primary_key=True, autoincrement=True)
    lottery_id: Mapped[int] = mapped_column(
        ID_TYPE, ForeignKey("lotteries.id", ondelete="CASCADE"), nullable=False, index=True
    )
    round_number: Mapped[int] = mapped_column(Integer, nullable=False)
    name: Mapped[str] = mapped_column(String(32), nullable=False)
    payload: Mapped[Optional[dict]] = mapped_column(JSON, nullable=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=lambda: datetime.now(timezone.utc),
    )

    lottery: Mapped["Lottery"] = relationship(back_populates="events")

    __table_args__ = (
        CheckConstraint(
            "name IN ('Entered','DrawStarted','WinnerPicked')", name="name_enum"
        ),
    )

    def __repr__(self) -> str:
        return (
            f"<LotteryEvent(id={self.id}, lottery_id={self.lottery_id}, "
            f"name='{self.name}', payload={self.payload})>"
        )

    def to_json(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "lottery_id": self.lottery_id,
            "round_number": self.round_number,
            "name": self.name,
            "payload": self.payload or {},
            "created_at": dt_iso(self.created_at),
        }
