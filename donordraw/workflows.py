"""Workflows that connect stored catalogs and ledgers to the drawing engine."""

from __future__ import annotations

import logging
from datetime import datetime
from typing import Any, Callable, Iterable, Mapping, Optional

from sqlalchemy import select
from sqlalchemy.orm import Session

from .errors import InvalidConfig
from .models import DonationRecord, DrawHistoryEntry, EngineStateSnapshot, PrizePackRecord
from .prize_draw.engine import BatchSummary, DrawEngine, dumps_snapshot, loads_snapshot
from .prize_draw.selection import RandomSource
from .prize_draw.types import Donation, DrawResult, PrizePack

logger = logging.getLogger(__name__)


def import_donations(
    session: Session, records: Iterable[Mapping[str, Any]]
) -> list[DonationRecord]:
    """Normalize imported donation records and store them.

    Every record is converted before anything is added to the session, so a
    single malformed record rejects the whole import.

    Parameters
    ----------
    session : Session
        Active SQLAlchemy session.
    records : Iterable[Mapping[str, Any]]
        Raw records, e.g. parsed from a JSON export of the donation platform.

    Returns
    -------
    list[DonationRecord]
        The flushed rows, in input order.

    Raises
    ------
    InvalidDonation
        If any record has a missing or malformed amount, timestamp or email.
    """

    donations = [Donation.from_dict(record) for record in records]
    rows = [DonationRecord.from_value(donation) for donation in donations]
    session.add_all(rows)
    session.flush()
    logger.info(f"Imported {len(rows)} donation(s)")
    return rows


def import_prize_packs(
    session: Session, records: Iterable[Mapping[str, Any]]
) -> list[PrizePackRecord]:
    """Insert or update prize packs keyed by their stable identifier.

    Raises
    ------
    InvalidConfig
        If a record is malformed or two records share an identifier.
    """

    packs = [PrizePack.from_dict(record) for record in records]
    seen: set[str] = set()
    for pack in packs:
        if not pack.id:
            raise InvalidConfig("Prize pack identifier must not be empty")
        if pack.id in seen:
            raise InvalidConfig(f"Duplicate prize pack identifier {pack.id!r}")
        seen.add(pack.id)

    rows: list[PrizePackRecord] = []
    for pack in packs:
        row = PrizePackRecord.get_by_pack_key(session, pack.id)
        if row is None:
            row = PrizePackRecord(pack_key=pack.id)
            session.add(row)
        row.apply_value(pack)
        rows.append(row)
    session.flush()
    logger.info(f"Imported {len(rows)} prize pack(s)")
    return rows


def load_catalog(session: Session) -> list[PrizePack]:
    return PrizePackRecord.all_values(session)


def load_ledger(session: Session) -> list[Donation]:
    return DonationRecord.all_values(session)


def load_engine(
    session: Session,
    *,
    rng: Optional[RandomSource] = None,
    clock: Optional[Callable[[], datetime]] = None,
) -> DrawEngine:
    """Restore the engine from the latest stored snapshot, or start empty."""

    snapshot = EngineStateSnapshot.latest(session)
    if snapshot is None:
        return DrawEngine(rng=rng, clock=clock)
    return DrawEngine.restore(loads_snapshot(snapshot.payload), rng=rng, clock=clock)


def save_engine(session: Session, engine: DrawEngine) -> EngineStateSnapshot:
    """Persist the engine state and append new ledger entries.

    The snapshot text is stored exactly as produced so that restoring it and
    saving again yields identical bytes. Ledger entries already mirrored in
    ``draw_history`` are left alone; only the newly committed tail is added.
    """

    history = engine.history()
    stored = DrawHistoryEntry.count(session)
    if stored > len(history):
        raise ValueError(
            f"Stored history has {stored} entries but the engine only knows {len(history)}"
        )
    new_entries = [DrawHistoryEntry.from_value(result) for result in history[stored:]]
    session.add_all(new_entries)

    snapshot = EngineStateSnapshot(payload=dumps_snapshot(engine.snapshot()))
    session.add(snapshot)
    session.flush()
    logger.debug(f"Saved engine snapshot {snapshot.id} with {len(new_entries)} new ledger entries")
    return snapshot


def run_prize_pack(
    session: Session, engine: DrawEngine, pack_key: str
) -> DrawResult:
    """Run a single stored pack and persist the engine.

    Raises
    ------
    ValueError
        If no pack with ``pack_key`` exists.
    IllegalTransition
        If the pack's results are already saved.
    """

    row = PrizePackRecord.get_by_pack_key(session, pack_key)
    if row is None:
        raise ValueError(f"Prize pack {pack_key!r} does not exist")
    result = engine.run(row.to_value(), load_ledger(session))
    save_engine(session, engine)
    return result


def run_drawings(
    session: Session,
    engine: DrawEngine,
    *,
    now: Optional[datetime] = None,
) -> BatchSummary:
    """Run every stored pack that is currently available and persist the engine."""

    summary = engine.run_all(load_catalog(session), load_ledger(session), now=now)
    save_engine(session, engine)
    logger.info(
        f"Ran {summary.processed} prize pack(s): {summary.with_winners} with winners, "
        f"{summary.no_eligible} without eligible entries, {len(summary.failed)} failed"
    )
    return summary


def commit_drawings(session: Session, engine: DrawEngine) -> BatchSummary:
    """Save every drawn pack to the ledger and persist the engine."""

    summary = engine.commit_all()
    save_engine(session, engine)
    logger.info(f"Saved {len(summary.succeeded)} drawing(s) to the audit ledger")
    return summary


def load_history(session: Session) -> list[DrawResult]:
    """Return the committed results mirrored in ``draw_history``."""

    rows = session.scalars(select(DrawHistoryEntry).order_by(DrawHistoryEntry.id))
    return [row.to_value() for row in rows]


__all__ = [
    "commit_drawings",
    "import_donations",
    "import_prize_packs",
    "load_catalog",
    "load_engine",
    "load_history",
    "load_ledger",
    "run_drawings",
    "run_prize_pack",
    "save_engine",
]
