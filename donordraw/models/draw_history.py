"""Database models that persist the drawing engine's ledger and state."""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Any, Optional

from sqlalchemy import JSON, DateTime, Integer, String, Text, func, select
from sqlalchemy.orm import Mapped, Session, mapped_column

from .base import Base
from ..prize_draw.types import DrawResult


class DrawHistoryEntry(Base):
    """Append-only mirror of one committed draw result.

    The summary columns make the history queryable; ``payload`` keeps the
    full result so it can be rebuilt exactly.
    """

    __tablename__ = "draw_history"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    """Primary key; also the position of the entry in the ledger."""

    pack_key: Mapped[str] = mapped_column(String(100), nullable=False, index=True)
    pack_name: Mapped[str] = mapped_column(String(255), nullable=False)
    status: Mapped[str] = mapped_column(String(20), nullable=False)
    winner_count: Mapped[int] = mapped_column(Integer, nullable=False)
    eligible_count: Mapped[int] = mapped_column(Integer, nullable=False)
    drawn_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    """When the committed draw ran."""

    committed_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=lambda: datetime.now(timezone.utc),
    )
    """When the row was written."""

    payload: Mapped[dict[str, Any]] = mapped_column(JSON, nullable=False)
    """Serialized :class:`DrawResult`."""

    @classmethod
    def from_value(cls, result: DrawResult) -> "DrawHistoryEntry":
        return cls(
            pack_key=result.pack_id,
            pack_name=result.pack.name,
            status=result.status.value,
            winner_count=len(result.winners),
            eligible_count=result.eligible_count,
            drawn_at=result.timestamp,
            payload=result.to_dict(),
        )

    def to_value(self) -> DrawResult:
        return DrawResult.from_dict(self.payload)

    @classmethod
    def count(cls, session: Session) -> int:
        return session.scalar(select(func.count()).select_from(cls)) or 0


class EngineStateSnapshot(Base):
    """Canonical JSON snapshot of the engine (states, staged results, ledger)."""

    __tablename__ = "engine_snapshots"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    payload: Mapped[str] = mapped_column(Text, nullable=False)
    """Output of :func:`~donordraw.prize_draw.engine.dumps_snapshot`, stored verbatim."""

    saved_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=lambda: datetime.now(timezone.utc),
    )

    @classmethod
    def latest(cls, session: Session) -> Optional["EngineStateSnapshot"]:
        """Return the most recently saved snapshot."""

        stmt = select(cls).order_by(cls.id.desc())
        return session.scalars(stmt).first()
