from __future__ import annotations

import random
import unittest
from datetime import datetime, timedelta, timezone
from decimal import Decimal
from typing import Optional

from donordraw.errors import IllegalTransition, InvalidConfig
from donordraw.prize_draw import (
    DrawEngine,
    DrawState,
    DrawStatus,
    Donation,
    EntryMode,
    PrizePack,
    available_packs,
    dumps_snapshot,
    loads_snapshot,
)

NOW = datetime(2026, 5, 20, 12, 0, tzinfo=timezone.utc)


class FixedClock:
    def __init__(self, start: datetime = NOW) -> None:
        self.current = start

    def __call__(self) -> datetime:
        return self.current

    def advance(self, **kwargs) -> None:
        self.current += timedelta(**kwargs)


def make_pack(
    pack_id: str = "PP-1",
    *,
    min_entry: str = "50",
    mode: EntryMode = EntryMode.CUMULATIVE,
    draw_count: int = 1,
    start: datetime = NOW - timedelta(days=10),
    end: Optional[datetime] = NOW,
) -> PrizePack:
    return PrizePack(
        id=pack_id,
        name=f"Pack {pack_id}",
        window_start=start,
        window_end=end,
        min_entry_amount=Decimal(min_entry),
        entry_mode=mode,
        draw_count=draw_count,
    )


def donation(email: str, amount: str, *, at: datetime = NOW - timedelta(days=2)) -> Donation:
    return Donation(
        donor_id=f"id-{email}",
        donor_name=email.split("@")[0],
        donor_email=email,
        amount=Decimal(amount),
        timestamp=at,
    )


class DrawLifecycleTests(unittest.TestCase):
    def setUp(self) -> None:
        self.clock = FixedClock()
        self.engine = DrawEngine(rng=random.Random(1234), clock=self.clock)
        self.ledger = [donation("a@x", "30"), donation("a@x", "25")]

    def test_new_packs_are_ready(self) -> None:
        self.assertIs(self.engine.state("PP-1"), DrawState.READY)
        self.assertIsNone(self.engine.result("PP-1"))

    def test_run_stages_result_and_moves_to_drawn(self) -> None:
        result = self.engine.run(make_pack(), self.ledger)
        self.assertIs(self.engine.state("PP-1"), DrawState.DRAWN)
        self.assertIs(self.engine.result("PP-1"), result)
        self.assertIs(result.status, DrawStatus.DRAWN)
        self.assertEqual(result.eligible_count, 1)
        self.assertEqual([w.donor_email for w in result.winners], ["a@x"])
        self.assertEqual(result.winners[0].amount, Decimal("55"))
        self.assertEqual(result.timestamp, NOW)
        self.assertEqual(len(self.engine.history()), 0)

    def test_sole_cumulative_donor_always_wins(self) -> None:
        for seed in range(20):
            engine = DrawEngine(rng=random.Random(seed), clock=self.clock)
            result = engine.run(make_pack(), self.ledger)
            self.assertEqual([w.donor_email for w in result.winners], ["a@x"])

    def test_multi_entry_donor_wins_once(self) -> None:
        pack = make_pack(min_entry="20", mode=EntryMode.MULTI_ENTRY, draw_count=3)
        result = self.engine.run(pack, self.ledger)
        self.assertEqual(result.eligible_count, 2)
        self.assertEqual([w.donor_email for w in result.winners], ["a@x"])

    def test_rerun_replaces_provisional_result(self) -> None:
        first = self.engine.run(make_pack(), self.ledger)
        self.clock.advance(minutes=5)
        second = self.engine.run(make_pack(), self.ledger + [donation("b@x", "80")])
        self.assertIsNot(first, second)
        self.assertIs(self.engine.result("PP-1"), second)
        self.assertEqual(second.eligible_count, 2)
        self.assertEqual(second.timestamp, NOW + timedelta(minutes=5))

    def test_commit_moves_result_to_ledger(self) -> None:
        result = self.engine.run(make_pack(), self.ledger)
        committed = self.engine.commit("PP-1")
        self.assertIs(committed, result)
        self.assertIs(self.engine.state("PP-1"), DrawState.SAVED)
        self.assertEqual(self.engine.history(), (result,))

    def test_commit_on_ready_pack_is_rejected(self) -> None:
        with self.assertRaises(IllegalTransition) as ctx:
            self.engine.commit("PP-1")
        self.assertEqual(ctx.exception.pack_id, "PP-1")
        self.assertEqual(ctx.exception.action, "commit")
        self.assertEqual(ctx.exception.state, "ready")
        self.assertIs(self.engine.state("PP-1"), DrawState.READY)
        self.assertEqual(len(self.engine.ledger), 0)

    def test_commit_twice_is_rejected(self) -> None:
        self.engine.run(make_pack(), self.ledger)
        self.engine.commit("PP-1")
        with self.assertRaises(IllegalTransition):
            self.engine.commit("PP-1")
        self.assertEqual(len(self.engine.ledger), 1)

    def test_run_on_saved_pack_is_rejected(self) -> None:
        saved = self.engine.run(make_pack(), self.ledger)
        self.engine.commit("PP-1")
        with self.assertRaises(IllegalTransition):
            self.engine.run(make_pack(), self.ledger + [donation("b@x", "80")])
        self.assertIs(self.engine.state("PP-1"), DrawState.SAVED)
        self.assertIs(self.engine.result("PP-1"), saved)

    def test_reset_from_saved_keeps_ledger_entry(self) -> None:
        result = self.engine.run(make_pack(), self.ledger)
        self.engine.commit("PP-1")
        self.engine.reset("PP-1")
        self.assertIs(self.engine.state("PP-1"), DrawState.READY)
        self.assertIsNone(self.engine.result("PP-1"))
        self.assertEqual(self.engine.history(), (result,))

    def test_reset_from_drawn_discards_result(self) -> None:
        self.engine.run(make_pack(), self.ledger)
        self.engine.reset("PP-1")
        self.assertIs(self.engine.state("PP-1"), DrawState.READY)
        self.assertEqual(len(self.engine.ledger), 0)

    def test_reset_on_ready_pack_is_rejected(self) -> None:
        with self.assertRaises(IllegalTransition):
            self.engine.reset("PP-1")

    def test_pack_can_be_redrawn_after_reset(self) -> None:
        self.engine.run(make_pack(), self.ledger)
        self.engine.commit("PP-1")
        self.engine.reset("PP-1")
        self.engine.run(make_pack(), self.ledger)
        self.engine.commit("PP-1")
        self.assertEqual(len(self.engine.ledger), 2)

    def test_empty_ledger_yields_no_eligible_result(self) -> None:
        result = self.engine.run(make_pack(), [])
        self.assertIs(result.status, DrawStatus.NO_ELIGIBLE)
        self.assertEqual(result.winners, ())
        self.assertEqual(result.eligible_count, 0)
        self.assertIs(self.engine.state("PP-1"), DrawState.DRAWN)

        self.engine.commit("PP-1")
        history = self.engine.history()
        self.assertEqual(len(history), 1)
        self.assertEqual(history[0].winners, ())
        self.assertIs(history[0].status, DrawStatus.NO_ELIGIBLE)

    def test_invalid_config_leaves_state_untouched(self) -> None:
        with self.assertRaises(InvalidConfig):
            self.engine.run(make_pack(min_entry="0"), self.ledger)
        with self.assertRaises(InvalidConfig):
            self.engine.run(make_pack(draw_count=0), self.ledger)
        self.assertIs(self.engine.state("PP-1"), DrawState.READY)
        self.assertIsNone(self.engine.result("PP-1"))

    def test_invalid_config_keeps_previous_provisional_result(self) -> None:
        staged = self.engine.run(make_pack(), self.ledger)
        with self.assertRaises(InvalidConfig):
            self.engine.run(make_pack(min_entry="-1"), self.ledger)
        self.assertIs(self.engine.result("PP-1"), staged)
        self.assertIs(self.engine.state("PP-1"), DrawState.DRAWN)

    def test_saved_result_is_unaffected_by_later_pack_edits(self) -> None:
        self.engine.run(make_pack(), self.ledger)
        self.engine.commit("PP-1")
        self.engine.reset("PP-1")
        edited = make_pack(min_entry="1000")
        self.engine.run(edited, self.ledger)
        first = self.engine.history()[0]
        self.assertEqual(first.pack.min_entry_amount, Decimal("50"))
        self.assertEqual([w.donor_email for w in first.winners], ["a@x"])


class BatchOperationTests(unittest.TestCase):
    def setUp(self) -> None:
        self.clock = FixedClock()
        self.engine = DrawEngine(rng=random.Random(7), clock=self.clock)
        self.ledger = [
            donation("a@x", "60"),
            donation("b@x", "75"),
            donation("c@x", "10"),
        ]

    def test_run_all_reports_each_pack(self) -> None:
        packs = [
            make_pack("current", draw_count=2),
            make_pack("nobody", min_entry="500"),
            make_pack("broken", draw_count=0),
            make_pack(
                "old",
                start=NOW - timedelta(days=200),
                end=NOW - timedelta(days=90),
            ),
        ]
        summary = self.engine.run_all(packs, self.ledger)

        self.assertEqual([o.pack_id for o in summary.outcomes], ["current", "nobody", "broken"])
        self.assertEqual(summary.processed, 3)
        self.assertEqual(len(summary.failed), 1)
        self.assertEqual(summary.failed[0].pack_id, "broken")
        self.assertIsNotNone(summary.failed[0].error)
        self.assertEqual(summary.with_winners, 1)
        self.assertEqual(summary.no_eligible, 1)
        self.assertEqual(summary.total_winners, 2)

        self.assertIs(self.engine.state("current"), DrawState.DRAWN)
        self.assertIs(self.engine.state("nobody"), DrawState.DRAWN)
        self.assertIs(self.engine.state("broken"), DrawState.READY)
        self.assertIs(self.engine.state("old"), DrawState.READY)

    def test_run_all_reports_saved_packs_without_stopping(self) -> None:
        first, second = make_pack("first"), make_pack("second")
        self.engine.run(first, self.ledger)
        self.engine.commit("first")

        summary = self.engine.run_all([first, second], self.ledger)
        outcomes = {o.pack_id: o for o in summary.outcomes}
        self.assertFalse(outcomes["first"].ok)
        self.assertTrue(outcomes["second"].ok)
        self.assertIs(self.engine.state("second"), DrawState.DRAWN)

    def test_commit_all_commits_only_drawn_packs(self) -> None:
        packs = [make_pack("one"), make_pack("two", min_entry="500"), make_pack("three")]
        self.engine.run_all(packs, self.ledger)
        self.engine.commit("three")
        self.engine.reset("one")
        self.engine.run(make_pack("one"), self.ledger)

        summary = self.engine.commit_all()
        self.assertEqual(sorted(o.pack_id for o in summary.outcomes), ["one", "two"])
        self.assertTrue(all(o.ok for o in summary.outcomes))
        self.assertEqual(summary.no_eligible, 1)
        self.assertEqual(len(self.engine.ledger), 3)
        for pack_id in ("one", "two", "three"):
            self.assertIs(self.engine.state(pack_id), DrawState.SAVED)

    def test_commit_all_with_nothing_drawn(self) -> None:
        summary = self.engine.commit_all()
        self.assertEqual(summary.processed, 0)
        self.assertEqual(len(self.engine.ledger), 0)

    def test_reset_all_keeps_history(self) -> None:
        self.engine.run_all([make_pack("one"), make_pack("two")], self.ledger)
        self.engine.commit("one")
        self.engine.reset_all()
        self.assertIs(self.engine.state("one"), DrawState.READY)
        self.assertIs(self.engine.state("two"), DrawState.READY)
        self.assertEqual(self.engine.results(), {})
        self.assertEqual(len(self.engine.ledger), 1)


class AvailablePacksTests(unittest.TestCase):
    def test_window_overlap_boundaries(self) -> None:
        packs = [
            make_pack("starts-at-edge", start=NOW + timedelta(days=30), end=None),
            make_pack("starts-too-late", start=NOW + timedelta(days=30, seconds=1), end=None),
            make_pack(
                "ended-at-edge",
                start=NOW - timedelta(days=60),
                end=NOW - timedelta(days=30),
            ),
            make_pack(
                "ended-too-early",
                start=NOW - timedelta(days=60),
                end=NOW - timedelta(days=30, seconds=1),
            ),
            make_pack("open-ended-old", start=NOW - timedelta(days=1000), end=None),
        ]
        selected = [pack.id for pack in available_packs(packs, NOW)]
        self.assertEqual(selected, ["starts-at-edge", "ended-at-edge", "open-ended-old"])


class SnapshotTests(unittest.TestCase):
    def _populated_engine(self) -> DrawEngine:
        engine = DrawEngine(rng=random.Random(5), clock=FixedClock())
        ledger = [donation("a@x", "60"), donation('Jo "JJ" <jo@x>', "90")]
        engine.run(make_pack("saved", draw_count=2), ledger)
        engine.commit("saved")
        engine.run(make_pack("drawn", mode=EntryMode.MULTI_ENTRY, min_entry="30"), ledger)
        engine.run(make_pack("empty", min_entry="999", end=None), ledger)
        engine.commit("empty")
        return engine

    def test_restore_reproduces_identical_snapshot(self) -> None:
        engine = self._populated_engine()
        text = dumps_snapshot(engine.snapshot())
        restored = DrawEngine.restore(loads_snapshot(text))
        self.assertEqual(dumps_snapshot(restored.snapshot()), text)
        self.assertIs(restored.state("saved"), DrawState.SAVED)
        self.assertIs(restored.state("drawn"), DrawState.DRAWN)
        self.assertEqual(restored.history(), engine.history())
        self.assertEqual(restored.result("drawn"), engine.result("drawn"))

    def test_restored_engine_enforces_state_machine(self) -> None:
        engine = DrawEngine.restore(self._populated_engine().snapshot())
        with self.assertRaises(IllegalTransition):
            engine.run(make_pack("saved"), [])
        engine.commit("drawn")
        self.assertEqual(len(engine.ledger), 3)

    def test_empty_engine_snapshot(self) -> None:
        snapshot = DrawEngine().snapshot()
        self.assertEqual(snapshot, {"version": 1, "states": {}, "results": {}, "history": []})

    def test_restore_rejects_unknown_version(self) -> None:
        with self.assertRaises(ValueError):
            DrawEngine.restore({"version": 99})

    def test_restore_rejects_state_without_result(self) -> None:
        with self.assertRaises(ValueError):
            DrawEngine.restore(
                {"version": 1, "states": {"PP-1": "drawn"}, "results": {}, "history": []}
            )


if __name__ == "__main__":
    unittest.main()
