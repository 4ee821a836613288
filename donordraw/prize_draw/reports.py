"""Read-only summaries of donors and drawings."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal
from typing import Iterable, Optional

from .eligibility import aggregate_by_email, resolve_eligibility
from .engine import DrawEngine, available_packs
from .types import Donation, PrizePack


@dataclass(frozen=True)
class DonorSummary:
    """Lifetime giving of one donor email across the whole ledger."""

    donor_id: str
    donor_name: str
    donor_email: str
    total: Decimal
    donation_count: int

    @property
    def average(self) -> Decimal:
        return self.total / self.donation_count


@dataclass(frozen=True)
class DrawingStats:
    available_packs: int
    total_eligible: int
    completed_drawings: int


def summarize_donors(ledger: Iterable[Donation]) -> list[DonorSummary]:
    """Aggregate the ledger per email, largest total first.

    Donors with equal totals keep the order in which they first appear.
    """

    summaries = [
        DonorSummary(
            donor_id=donor.donor_id,
            donor_name=donor.donor_name,
            donor_email=donor.donor_email,
            total=donor.total,
            donation_count=donor.count,
        )
        for donor in aggregate_by_email(ledger)
    ]
    summaries.sort(key=lambda summary: summary.total, reverse=True)
    return summaries


def drawing_stats(
    engine: DrawEngine,
    packs: Iterable[PrizePack],
    ledger: Iterable[Donation],
    *,
    now: Optional[datetime] = None,
) -> DrawingStats:
    """Count available packs, their eligible entries and the committed drawings.

    Packs that fail validation count as available but contribute no entries.
    """

    donations = list(ledger)
    available = available_packs(packs, now)
    total_eligible = 0
    for pack in available:
        if pack.min_entry_amount > 0:
            total_eligible += len(resolve_eligibility(pack, donations))
    return DrawingStats(
        available_packs=len(available),
        total_eligible=total_eligible,
        completed_drawings=len(engine.ledger),
    )


__all__ = ["DonorSummary", "DrawingStats", "drawing_stats", "summarize_donors"]
