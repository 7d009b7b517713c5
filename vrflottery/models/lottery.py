"""Database model for a lottery instance and its state machine."""

from __future__ import annotations

import enum
from datetime import datetime, timezone
from typing import TYPE_CHECKING, Any, Optional

from sqlalchemy import (
    BigInteger,
    CheckConstraint,
    DateTime,
    Integer,
    String,
    func,
    select,
)
from sqlalchemy.orm import Mapped, Session, mapped_column, relationship

from ..db.utils import dt_iso
from ..errors import InvalidStateTransition
from .base import Base
from .types import ID_TYPE, Uint256

if TYPE_CHECKING:
    from ..config import LotteryConfig
    from .entry import LotteryEntry
    from .event import LotteryEvent
    from .randomness import RandomnessRequest


class LotteryState(str, enum.Enum):
    """Exclusive state of a lottery."""

    OPEN = "open"
    CALCULATING = "calculating"


ALLOWED_TRANSITIONS = {
    LotteryState.OPEN: {LotteryState.CALCULATING},
    LotteryState.CALCULATING: {LotteryState.OPEN},
}


class Lottery(Base):
    """One raffle: its immutable configuration plus the current round's ledger."""

    __tablename__ = "lotteries"

    id: Mapped[int] = mapped_column(ID_TYPE, primary_key=True, autoincrement=True)
    """Primary key."""

    name: Mapped[Optional[str]] = mapped_column(String(100), nullable=True)
    """Optional label shown to operators."""

    entrance_fee: Mapped[int] = mapped_column(Uint256(), nullable=False)
    """Minimum payment (in wei) accepted by :meth:`LotteryEngine.enter`."""

    interval_seconds: Mapped[int] = mapped_column(Integer, nullable=False)
    """Minimum time between two draws."""

    gas_lane: Mapped[str] = mapped_column(String(66), nullable=False)
    """Key hash identifying the randomness provider's gas lane."""

    subscription_id: Mapped[int] = mapped_column(BigInteger, nullable=False)
    """Subscription funding the randomness requests."""

    callback_gas_limit: Mapped[int] = mapped_column(Integer, nullable=False)
    """Processing budget passed through to the randomness provider."""

    request_confirmations: Mapped[int] = mapped_column(
        Integer, nullable=False, default=3
    )
    """Confirmation depth the provider waits for before answering."""

    num_words: Mapped[int] = mapped_column(Integer, nullable=False, default=1)
    """Number of random words requested per draw (only the first is used)."""

    state: Mapped[str] = mapped_column(
        String(20), nullable=False, default=LotteryState.OPEN.value
    )
    """Current :class:`LotteryState` value."""

    round_number: Mapped[int] = mapped_column(Integer, nullable=False, default=1)
    """Round whose entries form the current participant list."""

    pool_balance: Mapped[int] = mapped_column(Uint256(), nullable=False, default=0)
    """Sum of all payments collected in the current round."""

    last_timestamp: Mapped[int] = mapped_column(BigInteger, nullable=False)
    """Epoch seconds of the last resolution, or of creation before the first round."""

    recent_winner: Mapped[Optional[str]] = mapped_column(String(64), nullable=True)
    """Address of the most recent winner."""

    outstanding_request_id: Mapped[Optional[int]] = mapped_column(
        Uint256(), nullable=True
    )
    """Randomness request currently awaiting its callback, if any."""

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=lambda: datetime.now(timezone.utc),
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=lambda: datetime.now(timezone.utc),
        onupdate=lambda: datetime.now(timezone.utc),
    )

    entries: Mapped[list["LotteryEntry"]] = relationship(
        back_populates="lottery",
        cascade="all, delete-orphan",
        order_by="LotteryEntry.id",
    )
    requests: Mapped[list["RandomnessRequest"]] = relationship(
        back_populates="lottery",
        cascade="all, delete-orphan",
        order_by="RandomnessRequest.id",
    )
    events: Mapped[list["LotteryEvent"]] = relationship(
        back_populates="lottery",
        cascade="all, delete-orphan",
        order_by="LotteryEvent.id",
    )

    __table_args__ = (
        CheckConstraint("state IN ('open','calculating')", name="state_enum"),
        CheckConstraint("interval_seconds >= 0", name="interval_non_negative"),
        CheckConstraint("num_words > 0", name="num_words_positive"),
    )

    def __init__(
        self,
        *,
        entrance_fee: int,
        interval_seconds: int,
        gas_lane: str,
        subscription_id: int,
        callback_gas_limit: int,
        last_timestamp: int,
        request_confirmations: int = 3,
        num_words: int = 1,
        name: Optional[str] = None,
    ) -> None:
        if entrance_fee <= 0:
            raise ValueError("entrance_fee must be positive")
        if interval_seconds < 0:
            raise ValueError("interval_seconds must be non-negative")
        if num_words < 1:
            raise ValueError("num_words must be at least 1")
        self.entrance_fee = entrance_fee
        self.interval_seconds = interval_seconds
        self.gas_lane = gas_lane
        self.subscription_id = subscription_id
        self.callback_gas_limit = callback_gas_limit
        self.request_confirmations = request_confirmations
        self.num_words = num_words
        self.last_timestamp = last_timestamp
        self.name = name
        self.state = LotteryState.OPEN.value
        self.round_number = 1
        self.pool_balance = 0
        self.recent_winner = None
        self.outstanding_request_id = None

    def __repr__(self) -> str:  # pragma: no cover - repr is trivial
        return (
            f"<Lottery(id={self.id}, state='{self.state}', round={self.round_number}, "
            f"pool_balance={self.pool_balance})>"
        )

    @classmethod
    def from_config(
        cls,
        config: "LotteryConfig",
        *,
        created_at_ts: int,
        name: Optional[str] = None,
    ) -> "Lottery":
        """Build an unsaved lottery whose round timer starts at ``created_at_ts``."""

        return cls(
            entrance_fee=config.entrance_fee,
            interval_seconds=config.interval,
            gas_lane=config.gas_lane,
            subscription_id=config.subscription_id,
            callback_gas_limit=config.callback_gas_limit,
            request_confirmations=config.request_confirmations,
            num_words=config.num_words,
            last_timestamp=created_at_ts,
            name=name,
        )

    # --- state machine ---
    @property
    def lottery_state(self) -> LotteryState:
        return LotteryState(self.state)

    @property
    def is_open(self) -> bool:
        return self.lottery_state is LotteryState.OPEN

    def transition_to(self, new_state: LotteryState) -> None:
        """Move to ``new_state`` if the transition table allows it.

        Raises
        ------
        InvalidStateTransition
            For anything other than ``OPEN -> CALCULATING`` or
            ``CALCULATING -> OPEN``.
        """

        current = self.lottery_state
        if new_state not in ALLOWED_TRANSITIONS[current]:
            raise InvalidStateTransition(current.value, new_state.value)
        self.state = new_state.value

    # --- participant queries ---
    def current_entries(self, session: Session) -> list["LotteryEntry"]:
        """Return the entries of the current round in entry order."""

        from .entry import LotteryEntry

        stmt = (
            select(LotteryEntry)
            .where(
                LotteryEntry.lottery_id == self.id,
                LotteryEntry.round_number == self.round_number,
            )
            .order_by(LotteryEntry.position.asc())
        )
        return list(session.scalars(stmt).all())

    def number_of_players(self, session: Session) -> int:
        from .entry import LotteryEntry

        stmt = select(func.count(LotteryEntry.id)).where(
            LotteryEntry.lottery_id == self.id,
            LotteryEntry.round_number == self.round_number,
        )
        return session.scalar(stmt) or 0

    def get_player(self, session: Session, index: int) -> str:
        """Return the participant address at ``index`` of the current round.

        Raises
        ------
        IndexError
            If ``index`` is negative or past the last entry.
        """

        from .entry import LotteryEntry

        if index < 0:
            raise IndexError("player index out of range")
        stmt = select(LotteryEntry.participant).where(
            LotteryEntry.lottery_id == self.id,
            LotteryEntry.round_number == self.round_number,
            LotteryEntry.position == index,
        )
        participant = session.scalar(stmt)
        if participant is None:
            raise IndexError("player index out of range")
        return participant

    def events_since(
        self,
        session: Session,
        after_id: int = 0,
        name: Optional[str] = None,
    ) -> list["LotteryEvent"]:
        """Return events emitted after ``after_id`` in emission order.

        Subscribers poll with the id of the last event they consumed.
        """

        from .event import LotteryEvent

        stmt = select(LotteryEvent).where(
            LotteryEvent.lottery_id == self.id, LotteryEvent.id > after_id
        )
        if name is not None:
            stmt = stmt.where(LotteryEvent.name == name)
        return list(session.scalars(stmt.order_by(LotteryEvent.id.asc())).all())

    @classmethod
    def get_latest(cls, session: Session) -> Optional["Lottery"]:
        """Return the most recently created lottery."""

        return session.scalars(select(cls).order_by(cls.id.desc())).first()

    def to_json(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "name": self.name,
            "state": self.state,
            "entrance_fee": str(self.entrance_fee),
            "interval": self.interval_seconds,
            "gas_lane": self.gas_lane,
            "subscription_id": self.subscription_id,
            "callback_gas_limit": self.callback_gas_limit,
            "request_confirmations": self.request_confirmations,
            "num_words": self.num_words,
            "round_number": self.round_number,
            "pool_balance": str(self.pool_balance),
            "latest_timestamp": self.last_timestamp,
            "recent_winner": self.recent_winner,
            "outstanding_request_id": (
                None
                if self.outstanding_request_id is None
                else str(self.outstanding_request_id)
            ),
            "created_at": dt_iso(self.created_at),
            "updated_at": dt_iso(self.updated_at),
        }
