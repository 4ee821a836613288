"""Append-only audit ledger of committed drawings and its exports."""

from __future__ import annotations

import csv
import io
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Iterable, Iterator, Optional

from .types import DrawResult, DrawStatus

CSV_HEADER = ("Prize Pack ID", "Prize Pack Name", "Winner Username", "Winner Email", "Drawing Date")


@dataclass(frozen=True)
class ExportRow:
    """One (pack, winner) pair in the tabular export."""

    pack_id: str
    pack_name: str
    winner_name: str
    winner_email: str
    draw_date: str

    def as_tuple(self) -> tuple[str, str, str, str, str]:
        return (self.pack_id, self.pack_name, self.winner_name, self.winner_email, self.draw_date)


def export_filename(now: Optional[datetime] = None) -> str:
    """Return the default file name for a CSV export made at ``now``."""

    now = now or datetime.now(timezone.utc)
    return f"drawing-results-{now:%Y-%m-%d}-{now:%H-%M-%S}.csv"


class AuditLedger:
    """Ordered, append-only history of committed draw results.

    The engine's commit is the only caller of :meth:`append`. Results are
    immutable values, so handing them out through :meth:`history` cannot
    alter what was recorded.
    """

    def __init__(self, entries: Optional[Iterable[DrawResult]] = None) -> None:
        self._entries: list[DrawResult] = list(entries or [])

    def append(self, result: DrawResult) -> None:
        self._entries.append(result)

    def history(self) -> tuple[DrawResult, ...]:
        """Return every committed result in commit order."""
        return tuple(self._entries)

    def __len__(self) -> int:
        return len(self._entries)

    def __iter__(self) -> Iterator[DrawResult]:
        return iter(tuple(self._entries))

    def export_rows(self) -> list[ExportRow]:
        """Flatten the history into one row per winner.

        Results committed without winners contribute no rows; they remain
        visible through :meth:`render_history` only.
        """

        rows: list[ExportRow] = []
        for result in self._entries:
            draw_date = result.timestamp.astimezone(timezone.utc).date().isoformat()
            for winner in result.winners:
                rows.append(
                    ExportRow(
                        pack_id=result.pack.id,
                        pack_name=result.pack.name,
                        winner_name=winner.donor_name,
                        winner_email=winner.donor_email,
                        draw_date=draw_date,
                    )
                )
        return rows

    def to_csv(self) -> str:
        """Render :meth:`export_rows` as CSV text with a header line."""

        buffer = io.StringIO()
        writer = csv.writer(buffer, lineterminator="\n")
        writer.writerow(CSV_HEADER)
        for row in self.export_rows():
            writer.writerow(row.as_tuple())
        return buffer.getvalue()

    def render_history(self) -> str:
        """Human readable history including packs that had no eligible donors."""

        if not self._entries:
            return "No drawing history available."

        blocks = [f"Drawing History ({len(self._entries)} total)"]
        for result in self._entries:
            pack = result.pack
            lines = [
                f"{pack.name} ({pack.id})",
                f"  Date: {result.timestamp.astimezone(timezone.utc):%Y-%m-%d %H:%M:%S} UTC",
            ]
            if pack.description:
                lines.append(f"  Prize: {pack.description}")
            lines.append(f"  Eligible Entries: {result.eligible_count}")
            if result.status is DrawStatus.NO_ELIGIBLE:
                lines.append(
                    f"  No eligible entries (minimum ${pack.min_entry_amount}, "
                    f"{pack.entry_mode.value})"
                )
            else:
                lines.append(f"  Winners: {len(result.winners)}")
                for winner in result.winners:
                    lines.append(
                        f"    {winner.donor_name} ({winner.donor_email}) - ${winner.amount}"
                    )
            blocks.append("\n".join(lines))
        return "\n\n".join(blocks)


__all__ = ["AuditLedger", "CSV_HEADER", "ExportRow", "export_filename"]
