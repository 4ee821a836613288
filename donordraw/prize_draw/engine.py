"""Drawing engine: per-pack lifecycle, staging results and the audit ledger."""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from typing import Any, Callable, Iterable, Mapping, Optional

from .eligibility import EntryModeRegistry, resolve_eligibility
from .ledger import AuditLedger
from .selection import RandomSource, select_winners
from .types import (
    Donation,
    DrawResult,
    DrawState,
    DrawStatus,
    PrizePack,
)
from ..errors import DrawError, IllegalTransition

logger = logging.getLogger(__name__)

LOOKAROUND_DAYS = 30
"""Packs whose window touches ``now`` +/- this many days are offered for batch runs."""

OPEN_ENDED_HORIZON_DAYS = 365
"""Stand-in end date (from ``now``) for open-ended packs when applying the batch window."""

SNAPSHOT_VERSION = 1


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def available_packs(
    packs: Iterable[PrizePack], now: Optional[datetime] = None
) -> list[PrizePack]:
    """Return the packs surfaced for batch drawing at ``now``.

    A pack qualifies when its window overlaps ``[now - 30 days, now + 30 days]``.
    An open-ended pack is treated as ending one year from ``now`` for this
    comparison only; eligibility filtering still treats it as unbounded.
    """

    now = now or _utcnow()
    earliest = now - timedelta(days=LOOKAROUND_DAYS)
    latest = now + timedelta(days=LOOKAROUND_DAYS)
    selected = []
    for pack in packs:
        end = pack.window_end or now + timedelta(days=OPEN_ENDED_HORIZON_DAYS)
        if pack.window_start <= latest and end >= earliest:
            selected.append(pack)
    return selected


@dataclass(frozen=True)
class BatchOutcome:
    """What happened to one pack during a batch operation."""

    pack_id: str
    result: Optional[DrawResult] = None
    error: Optional[str] = None

    @property
    def ok(self) -> bool:
        return self.error is None


@dataclass
class BatchSummary:
    """Per-pack outcomes of :meth:`DrawEngine.run_all` or :meth:`DrawEngine.commit_all`."""

    outcomes: list[BatchOutcome] = field(default_factory=list)

    @property
    def processed(self) -> int:
        return len(self.outcomes)

    @property
    def succeeded(self) -> list[BatchOutcome]:
        return [outcome for outcome in self.outcomes if outcome.ok]

    @property
    def failed(self) -> list[BatchOutcome]:
        return [outcome for outcome in self.outcomes if not outcome.ok]

    @property
    def with_winners(self) -> int:
        return sum(1 for o in self.succeeded if o.result is not None and o.result.winners)

    @property
    def no_eligible(self) -> int:
        return sum(
            1
            for o in self.succeeded
            if o.result is not None and o.result.status is DrawStatus.NO_ELIGIBLE
        )

    @property
    def total_winners(self) -> int:
        return sum(len(o.result.winners) for o in self.succeeded if o.result is not None)


class DrawEngine:
    """Owns the staging results, per-pack states and the audit ledger.

    A pack starts ``READY``. :meth:`run` stores a provisional result and moves
    it to ``DRAWN``; running again replaces that result. :meth:`commit` appends
    the result to the ledger and moves the pack to ``SAVED``, after which it
    can only be :meth:`reset`. Every transition either completes or raises
    without changing any state.

    The engine is not thread-safe; callers must serialize mutating calls.
    """

    def __init__(
        self,
        *,
        rng: Optional[RandomSource] = None,
        clock: Optional[Callable[[], datetime]] = None,
        registry: Optional[EntryModeRegistry] = None,
        ledger: Optional[AuditLedger] = None,
    ) -> None:
        """Create an empty engine.

        Parameters
        ----------
        rng : Optional[RandomSource], default: None
            Random source shared by every draw. Pass a seeded
            :class:`random.Random` for reproducible results.
        clock : Optional[Callable[[], datetime]], default: None
            Returns the current time; used for result timestamps and as the
            default ``now`` of batch runs.
        registry : Optional[EntryModeRegistry], default: None
            Custom entry-mode registry passed to eligibility resolution.
        ledger : Optional[AuditLedger], default: None
            Existing ledger to append to. A new empty ledger is used otherwise.
        """

        self._rng = rng
        self._clock = clock or _utcnow
        self._registry = registry
        self._results: dict[str, DrawResult] = {}
        self._states: dict[str, DrawState] = {}
        self.ledger = ledger if ledger is not None else AuditLedger()

    def state(self, pack_id: str) -> DrawState:
        return self._states.get(pack_id, DrawState.READY)

    def result(self, pack_id: str) -> Optional[DrawResult]:
        """Return the current (provisional or saved) result for ``pack_id``."""
        return self._results.get(pack_id)

    def results(self) -> dict[str, DrawResult]:
        return dict(self._results)

    def history(self) -> tuple[DrawResult, ...]:
        return self.ledger.history()

    def run(self, pack: PrizePack, ledger: Iterable[Donation]) -> DrawResult:
        """Draw winners for ``pack`` and stage the result.

        Parameters
        ----------
        pack : PrizePack
            Pack to draw, read as configured right now.
        ledger : Iterable[Donation]
            Full donation ledger; eligibility is recomputed on every run.

        Returns
        -------
        DrawResult
            The staged result. An empty pool yields status
            :attr:`DrawStatus.NO_ELIGIBLE` with no winners; the pack still
            moves to ``DRAWN``.

        Raises
        ------
        IllegalTransition
            If the pack is already ``SAVED``.
        InvalidConfig
            If the pack's threshold or draw count is not positive.
        """

        current = self.state(pack.id)
        if current is DrawState.SAVED:
            raise IllegalTransition(
                pack.id,
                "run",
                current.value,
                f"Prize pack {pack.id!r} has saved results; reset it before drawing again",
            )
        pack.validate()

        pool = resolve_eligibility(pack, ledger, registry=self._registry)
        winners = select_winners(pool, pack.draw_count, rng=self._rng) if pool else []
        result = DrawResult(
            pack=pack,
            winners=tuple(winners),
            eligible_count=len(pool),
            timestamp=self._clock(),
            status=DrawStatus.DRAWN if pool else DrawStatus.NO_ELIGIBLE,
        )

        self._results[pack.id] = result
        self._states[pack.id] = DrawState.DRAWN
        logger.info(
            f"Drew prize pack {pack.id!r}: {len(winners)} winner(s) "
            f"from {len(pool)} entries ({result.status.value})"
        )
        return result

    def reset(self, pack_id: str) -> None:
        """Discard the current result of ``pack_id`` and return it to ``READY``.

        The audit ledger is not touched; a saved result stays in the history.

        Raises
        ------
        IllegalTransition
            If the pack is already ``READY``.
        """

        current = self.state(pack_id)
        if current is DrawState.READY:
            raise IllegalTransition(
                pack_id, "reset", current.value, f"Prize pack {pack_id!r} has not been drawn"
            )
        del self._results[pack_id]
        del self._states[pack_id]
        logger.info(f"Reset prize pack {pack_id!r} from {current.value}")

    def commit(self, pack_id: str) -> DrawResult:
        """Append the staged result of ``pack_id`` to the ledger.

        Results without winners are committed too so the history shows the
        attempt.

        Raises
        ------
        IllegalTransition
            If the pack is not ``DRAWN``.
        """

        current = self.state(pack_id)
        if current is not DrawState.DRAWN:
            raise IllegalTransition(
                pack_id,
                "commit",
                current.value,
                f"Prize pack {pack_id!r} is {current.value}; only drawn results can be saved",
            )
        result = self._results[pack_id]
        self.ledger.append(result)
        self._states[pack_id] = DrawState.SAVED
        logger.info(f"Saved results of prize pack {pack_id!r} to the audit ledger")
        return result

    def run_all(
        self,
        packs: Iterable[PrizePack],
        ledger: Iterable[Donation],
        *,
        now: Optional[datetime] = None,
    ) -> BatchSummary:
        """Run every pack available at ``now``, one at a time.

        A pack that cannot be drawn is reported in the summary and does not
        stop the others.
        """

        donations = list(ledger)
        summary = BatchSummary()
        for pack in available_packs(packs, now or self._clock()):
            try:
                result = self.run(pack, donations)
            except DrawError as exc:
                logger.warning(f"Skipped prize pack {pack.id!r}: {exc}")
                summary.outcomes.append(BatchOutcome(pack_id=pack.id, error=str(exc)))
            else:
                summary.outcomes.append(BatchOutcome(pack_id=pack.id, result=result))
        return summary

    def commit_all(self) -> BatchSummary:
        """Commit every pack currently ``DRAWN``."""

        summary = BatchSummary()
        drawn = [pid for pid, state in self._states.items() if state is DrawState.DRAWN]
        for pack_id in drawn:
            try:
                result = self.commit(pack_id)
            except DrawError as exc:  # pragma: no cover - drawn packs always commit
                logger.warning(f"Could not save prize pack {pack_id!r}: {exc}")
                summary.outcomes.append(BatchOutcome(pack_id=pack_id, error=str(exc)))
            else:
                summary.outcomes.append(BatchOutcome(pack_id=pack_id, result=result))
        return summary

    def reset_all(self) -> None:
        """Return every pack to ``READY``. The ledger is kept."""

        self._results.clear()
        self._states.clear()
        logger.info("Reset all prize pack drawings")

    def snapshot(self) -> dict[str, Any]:
        """Return a JSON-serializable copy of the engine state."""

        return {
            "version": SNAPSHOT_VERSION,
            "states": {pid: state.value for pid, state in self._states.items()},
            "results": {pid: result.to_dict() for pid, result in self._results.items()},
            "history": [result.to_dict() for result in self.ledger.history()],
        }

    @classmethod
    def restore(
        cls,
        snapshot: Mapping[str, Any],
        *,
        rng: Optional[RandomSource] = None,
        clock: Optional[Callable[[], datetime]] = None,
        registry: Optional[EntryModeRegistry] = None,
    ) -> "DrawEngine":
        """Rebuild an engine from :meth:`snapshot` output.

        Raises
        ------
        ValueError
            If the snapshot version is unknown or a drawn/saved pack has no result.
        """

        version = snapshot.get("version")
        if version != SNAPSHOT_VERSION:
            raise ValueError(f"Unsupported snapshot version: {version!r}")

        history = [DrawResult.from_dict(item) for item in snapshot.get("history", [])]
        engine = cls(rng=rng, clock=clock, registry=registry, ledger=AuditLedger(history))
        results = {
            pid: DrawResult.from_dict(item) for pid, item in snapshot.get("results", {}).items()
        }
        states = {pid: DrawState(value) for pid, value in snapshot.get("states", {}).items()}
        for pack_id, state in states.items():
            if state is not DrawState.READY and pack_id not in results:
                raise ValueError(f"Snapshot has no result for {state.value} pack {pack_id!r}")
        engine._results = results
        engine._states = states
        return engine


def dumps_snapshot(snapshot: Mapping[str, Any]) -> str:
    """Serialize a snapshot into canonical JSON text."""
    return json.dumps(snapshot, sort_keys=True, separators=(",", ":"))


def loads_snapshot(text: str) -> dict[str, Any]:
    return json.loads(text)


__all__ = [
    "BatchOutcome",
    "BatchSummary",
    "DrawEngine",
    "LOOKAROUND_DAYS",
    "OPEN_ENDED_HORIZON_DAYS",
    "available_packs",
    "dumps_snapshot",
    "loads_snapshot",
]
