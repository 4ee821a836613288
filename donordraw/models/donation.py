"""Database model for imported donation records."""

from __future__ import annotations

from datetime import datetime, timezone
from decimal import Decimal

from sqlalchemy import DateTime, Integer, String, select
from sqlalchemy.orm import Mapped, Session, mapped_column

from .base import Base
from .decimal_type import ExactDecimal
from ..prize_draw.types import Donation


class DonationRecord(Base):
    """A donation as stored by the persistence layer.

    Rows are never edited by the drawing engine; they are converted to
    :class:`~donordraw.prize_draw.types.Donation` values with :meth:`to_value`.
    """

    __tablename__ = "donations"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    """Primary key."""

    donor_id: Mapped[str] = mapped_column(String(100), nullable=False)
    """Identifier assigned by the donation platform."""

    donor_name: Mapped[str] = mapped_column(String(255), nullable=False)
    """Display name of the donor."""

    donor_email: Mapped[str] = mapped_column(String(255), nullable=False, index=True)
    """Email address used to aggregate donations."""

    amount: Mapped[Decimal] = mapped_column(ExactDecimal, nullable=False)
    """Donated amount in currency units."""

    donated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    """When the donation was made."""

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=lambda: datetime.now(timezone.utc),
    )
    """Timestamp when the record was imported."""

    def __repr__(self) -> str:  # pragma: no cover - repr is trivial
        return "<DonationRecord(id={id}, email={email}, amount={amount})>".format(
            id=self.id,
            email=self.donor_email,
            amount=self.amount,
        )

    def to_value(self) -> Donation:
        """Return the engine value for this row."""

        return Donation(
            donor_id=self.donor_id,
            donor_name=self.donor_name,
            donor_email=self.donor_email,
            amount=self.amount,
            timestamp=self.donated_at,
        )

    @classmethod
    def from_value(cls, donation: Donation) -> "DonationRecord":
        return cls(
            donor_id=donation.donor_id,
            donor_name=donation.donor_name,
            donor_email=donation.donor_email,
            amount=donation.amount,
            donated_at=donation.timestamp,
        )

    @classmethod
    def all_values(cls, session: Session) -> list[Donation]:
        """Return every stored donation in chronological import order."""

        rows = session.scalars(select(cls).order_by(cls.donated_at, cls.id))
        return [row.to_value() for row in rows]
