"""Utilities for the prize drawing subsystem."""

from .eligibility import (
    DEFAULT_ENTRY_MODES,
    EntryModeRegistry,
    aggregate_by_email,
    filter_window,
    resolve_eligibility,
)
from .engine import (
    BatchOutcome,
    BatchSummary,
    DrawEngine,
    available_packs,
    dumps_snapshot,
    loads_snapshot,
)
from .ledger import AuditLedger, ExportRow, export_filename
from .reports import DonorSummary, DrawingStats, drawing_stats, summarize_donors
from .selection import RandomSource, select_winners
from .types import (
    Donation,
    DrawResult,
    DrawState,
    DrawStatus,
    EligibilityEntry,
    EntryMode,
    PrizePack,
)

__all__ = [
    "AuditLedger",
    "BatchOutcome",
    "BatchSummary",
    "DEFAULT_ENTRY_MODES",
    "Donation",
    "DonorSummary",
    "DrawEngine",
    "DrawResult",
    "DrawState",
    "DrawStatus",
    "DrawingStats",
    "EligibilityEntry",
    "EntryMode",
    "EntryModeRegistry",
    "ExportRow",
    "PrizePack",
    "RandomSource",
    "aggregate_by_email",
    "available_packs",
    "drawing_stats",
    "dumps_snapshot",
    "export_filename",
    "filter_window",
    "loads_snapshot",
    "resolve_eligibility",
    "select_winners",
    "summarize_donors",
]
