"""Database model for the prize pack catalog."""

from __future__ import annotations

from datetime import datetime, timezone
from decimal import Decimal
from typing import Optional

from sqlalchemy import (
    CheckConstraint,
    DateTime,
    Integer,
    String,
    Text,
    UniqueConstraint,
    select,
)
from sqlalchemy.orm import Mapped, Session, mapped_column

from .base import Base
from .decimal_type import ExactDecimal
from ..prize_draw.types import PrizePack


class PrizePackRecord(Base):
    """A configured giveaway as stored by the persistence layer."""

    __tablename__ = "prize_packs"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    """Primary key."""

    pack_key: Mapped[str] = mapped_column(String(100), nullable=False)
    """Stable identifier the engine uses as the pack id."""

    name: Mapped[str] = mapped_column(String(255), nullable=False)
    """Display name used in exports."""

    description: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    """Prize description shown in the drawing history."""

    window_start: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    window_end: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)
    """Inclusive end of the eligibility window; ``NULL`` means open-ended."""

    min_entry_amount: Mapped[Decimal] = mapped_column(ExactDecimal, nullable=False)
    entry_mode: Mapped[str] = mapped_column(String(20), nullable=False, default="cumulative")
    draw_count: Mapped[int] = mapped_column(Integer, nullable=False, default=1)

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
    """Timestamp automatically bumped when the pack is edited."""

    __table_args__ = (
        UniqueConstraint("pack_key", name="prize_packs_pack_key_key"),
        CheckConstraint(
            "entry_mode IN ('cumulative','multi_entry')", name="entry_mode_enum"
        ),
    )

    def __repr__(self) -> str:  # pragma: no cover - repr is trivial
        return "<PrizePackRecord(id={id}, pack_key={key}, entry_mode={mode})>".format(
            id=self.id,
            key=self.pack_key,
            mode=self.entry_mode,
        )

    def to_value(self) -> PrizePack:
        """Return the engine value for this row.

        Raises
        ------
        InvalidConfig
            If the stored entry mode or draw count cannot be interpreted.
        """

        return PrizePack(
            id=self.pack_key,
            name=self.name,
            description=self.description or "",
            window_start=self.window_start,
            window_end=self.window_end,
            min_entry_amount=self.min_entry_amount,
            entry_mode=self.entry_mode,
            draw_count=self.draw_count,
        )

    def apply_value(self, pack: PrizePack) -> None:
        """Overwrite the editable columns with ``pack``."""

        self.pack_key = pack.id
        self.name = pack.name
        self.description = pack.description or None
        self.window_start = pack.window_start
        self.window_end = pack.window_end
        self.min_entry_amount = pack.min_entry_amount
        self.entry_mode = pack.entry_mode.value
        self.draw_count = pack.draw_count

    @classmethod
    def get_by_pack_key(cls, session: Session, pack_key: str) -> Optional["PrizePackRecord"]:
        """Return the pack matching ``pack_key`` if it exists."""

        return session.scalar(select(cls).where(cls.pack_key == pack_key))

    @classmethod
    def all_values(cls, session: Session) -> list[PrizePack]:
        rows = session.scalars(select(cls).order_by(cls.window_start, cls.id))
        return [row.to_value() for row in rows]
