"""Value objects shared by the drawing engine."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from decimal import Decimal, InvalidOperation
from enum import Enum
from typing import Any, Mapping, Optional, Type

from ..errors import DrawError, InvalidConfig, InvalidDonation


class EntryMode(str, Enum):
    """How donations translate into entries for a prize pack."""

    CUMULATIVE = "cumulative"
    MULTI_ENTRY = "multi_entry"


class DrawStatus(str, Enum):
    """Outcome recorded on a :class:`DrawResult`."""

    DRAWN = "drawn"
    NO_ELIGIBLE = "no_eligible"


class DrawState(str, Enum):
    """Lifecycle state of a prize pack inside the engine."""

    READY = "ready"
    DRAWN = "drawn"
    SAVED = "saved"


def parse_decimal(
    value: Any, field_name: str, *, error: Type[DrawError] = InvalidConfig
) -> Decimal:
    """Normalize ``value`` into a :class:`~decimal.Decimal`.

    Numeric strings such as ``"25.00"`` are accepted because imported ledgers
    store some amounts as text. Booleans, blanks and non-finite values are
    rejected with ``error``.
    """

    if isinstance(value, bool) or value is None:
        raise error(f"{field_name} must be a number, got {value!r}")
    if isinstance(value, Decimal):
        result = value
    elif isinstance(value, int):
        result = Decimal(value)
    elif isinstance(value, float):
        # Go through repr so 0.1 stays 0.1 instead of its binary expansion.
        result = Decimal(repr(value))
    elif isinstance(value, str):
        text = value.strip()
        if not text:
            raise error(f"{field_name} must not be blank")
        try:
            result = Decimal(text)
        except InvalidOperation as exc:
            raise error(f"{field_name} is not a valid number: {value!r}") from exc
    else:
        raise error(f"{field_name} must be a number, got {type(value).__name__}")
    if not result.is_finite():
        raise error(f"{field_name} must be finite, got {value!r}")
    return result


def parse_datetime(
    value: Any, field_name: str, *, error: Type[DrawError] = InvalidConfig
) -> datetime:
    """Return ``value`` as a timezone-aware UTC datetime.

    ISO 8601 strings (including a trailing ``Z``) and datetimes are accepted.
    Naive values are assumed to already be in UTC.
    """

    if isinstance(value, datetime):
        dt = value
    elif isinstance(value, str):
        text = value.strip()
        if text.endswith("Z"):
            text = text[:-1] + "+00:00"
        try:
            dt = datetime.fromisoformat(text)
        except ValueError as exc:
            raise error(f"{field_name} is not an ISO 8601 timestamp: {value!r}") from exc
    else:
        raise error(f"{field_name} must be a timestamp, got {value!r}")
    if dt.tzinfo is None:
        return dt.replace(tzinfo=timezone.utc)
    return dt.astimezone(timezone.utc)


def parse_entry_mode(value: Any) -> EntryMode:
    """Return the :class:`EntryMode` named by ``value`` (case-insensitive)."""

    try:
        return EntryMode(value.lower() if isinstance(value, str) else value)
    except ValueError as exc:
        raise InvalidConfig(f"Unknown entry mode {value!r}") from exc


def dt_iso(dt: Optional[datetime]) -> Optional[str]:
    """Serialize ``dt`` as an ISO 8601 UTC string, or return ``None``."""

    if dt is None:
        return None
    return dt.astimezone(timezone.utc).isoformat()


def _first(data: Mapping[str, Any], *keys: str, default: Any = None) -> Any:
    for key in keys:
        if key in data and data[key] is not None:
            return data[key]
    return default


@dataclass(frozen=True)
class Donation:
    """A single immutable donation record.

    Attributes
    ----------
    donor_id : str
        Identifier assigned by the donation platform. Not used for aggregation.
    donor_name : str
        Display name of the donor.
    donor_email : str
        Email address; the aggregation key (exact, case-sensitive match).
    amount : Decimal
        Positive amount in currency units.
    timestamp : datetime
        When the donation was made (UTC).
    """

    donor_id: str
    donor_name: str
    donor_email: str
    amount: Decimal
    timestamp: datetime

    def __post_init__(self) -> None:
        amount = parse_decimal(self.amount, "amount", error=InvalidDonation)
        if amount <= 0:
            raise InvalidDonation(f"amount must be positive, got {amount}")
        object.__setattr__(self, "amount", amount)
        object.__setattr__(
            self,
            "timestamp",
            parse_datetime(self.timestamp, "timestamp", error=InvalidDonation),
        )
        if not self.donor_email:
            raise InvalidDonation("donor_email must not be empty")

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "Donation":
        """Build a donation from an imported record.

        Both the engine's snake_case keys and the import format keys
        (``userId``, ``screenName``, ``email``, ``amount``, ``time``) are
        understood.
        """

        return cls(
            donor_id=str(_first(data, "donor_id", "userId", default="")),
            donor_name=str(_first(data, "donor_name", "screenName", default="")),
            donor_email=str(_first(data, "donor_email", "email", default="")),
            amount=_first(data, "amount"),
            timestamp=_first(data, "timestamp", "time"),
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "donor_id": self.donor_id,
            "donor_name": self.donor_name,
            "donor_email": self.donor_email,
            "amount": str(self.amount),
            "timestamp": dt_iso(self.timestamp),
        }


@dataclass(frozen=True)
class PrizePack:
    """A configured giveaway.

    The engine reads a pack as a value at draw time; invalid thresholds are
    only rejected when :meth:`validate` runs, so a pack loaded from storage
    can still be displayed or corrected before it is drawn.

    Attributes
    ----------
    id : str
        Unique, stable identifier.
    name : str
        Display name used in exports.
    window_start : datetime
        First instant (inclusive) a donation counts toward this pack.
    window_end : Optional[datetime]
        Last instant (inclusive); ``None`` leaves the window open-ended.
    min_entry_amount : Decimal
        Amount required for one entry.
    entry_mode : EntryMode
        :attr:`EntryMode.CUMULATIVE` or :attr:`EntryMode.MULTI_ENTRY`.
    draw_count : int
        Number of winners to select.
    description : str
        Free-form prize description shown in the narrative history.
    """

    id: str
    name: str
    window_start: datetime
    window_end: Optional[datetime]
    min_entry_amount: Decimal
    entry_mode: EntryMode
    draw_count: int
    description: str = ""

    def __post_init__(self) -> None:
        object.__setattr__(
            self, "min_entry_amount", parse_decimal(self.min_entry_amount, "min_entry_amount")
        )
        object.__setattr__(self, "entry_mode", parse_entry_mode(self.entry_mode))
        object.__setattr__(self, "window_start", parse_datetime(self.window_start, "window_start"))
        if self.window_end is not None:
            object.__setattr__(self, "window_end", parse_datetime(self.window_end, "window_end"))
        if isinstance(self.draw_count, bool) or not isinstance(self.draw_count, int):
            raise InvalidConfig(f"draw_count must be an integer, got {self.draw_count!r}")

    def validate(self) -> None:
        """Raise :class:`InvalidConfig` if the pack cannot be drawn."""

        if self.min_entry_amount <= 0:
            raise InvalidConfig(
                f"Prize pack {self.id!r}: min_entry_amount must be positive, "
                f"got {self.min_entry_amount}"
            )
        if self.draw_count <= 0:
            raise InvalidConfig(
                f"Prize pack {self.id!r}: draw_count must be positive, got {self.draw_count}"
            )
        if self.window_end is not None and self.window_end < self.window_start:
            raise InvalidConfig(f"Prize pack {self.id!r}: window ends before it starts")

    def contains(self, moment: datetime) -> bool:
        """Return ``True`` when ``moment`` lies inside the inclusive window."""

        if moment < self.window_start:
            return False
        return self.window_end is None or moment <= self.window_end

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "PrizePack":
        """Build a pack from an imported record.

        Import format keys (``pack``, ``blockName``, ``itemDescription``,
        ``startDate``, ``endDate``, ``minEntryDollars``, ``multientry``,
        ``draws``) are accepted alongside the snake_case ones.
        """

        mode = _first(data, "entry_mode")
        if mode is None:
            mode = EntryMode.MULTI_ENTRY if _first(data, "multientry") else EntryMode.CUMULATIVE
        raw_count = _first(data, "draw_count", "draws")
        try:
            draw_count = int(str(raw_count).strip()) if not isinstance(raw_count, int) else raw_count
        except ValueError as exc:
            raise InvalidConfig(f"draw_count is not an integer: {raw_count!r}") from exc

        end = _first(data, "window_end", "endDate")
        return cls(
            id=str(_first(data, "id", "pack", default="")),
            name=str(_first(data, "name", "blockName", default="")),
            window_start=_first(data, "window_start", "startDate"),
            window_end=end if end != "" else None,
            min_entry_amount=_first(data, "min_entry_amount", "minEntryDollars"),
            entry_mode=mode,
            draw_count=draw_count,
            description=str(_first(data, "description", "itemDescription", default="")),
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "name": self.name,
            "description": self.description,
            "window_start": dt_iso(self.window_start),
            "window_end": dt_iso(self.window_end),
            "min_entry_amount": str(self.min_entry_amount),
            "entry_mode": self.entry_mode.value,
            "draw_count": self.draw_count,
        }


@dataclass(frozen=True)
class EligibilityEntry:
    """One ticket in an eligible pool.

    ``amount`` is the donor's window total in cumulative mode and the pack's
    ``min_entry_amount`` (the value of one ticket) in multi-entry mode.
    """

    donor_id: str
    donor_name: str
    donor_email: str
    amount: Decimal

    def to_dict(self) -> dict[str, Any]:
        return {
            "donor_id": self.donor_id,
            "donor_name": self.donor_name,
            "donor_email": self.donor_email,
            "amount": str(self.amount),
        }

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "EligibilityEntry":
        return cls(
            donor_id=data["donor_id"],
            donor_name=data["donor_name"],
            donor_email=data["donor_email"],
            amount=Decimal(data["amount"]),
        )


@dataclass(frozen=True)
class DrawResult:
    """Outcome of one run of a prize pack.

    Attributes
    ----------
    pack : PrizePack
        The pack exactly as it was configured when the draw ran.
    winners : tuple[EligibilityEntry, ...]
        Winners in draw order.
    eligible_count : int
        Pool size at draw time (tickets for multi-entry, donors for cumulative).
    timestamp : datetime
        When the draw ran.
    status : DrawStatus
        :attr:`DrawStatus.NO_ELIGIBLE` when the pool was empty.
    """

    pack: PrizePack
    winners: tuple[EligibilityEntry, ...]
    eligible_count: int
    timestamp: datetime
    status: DrawStatus = field(default=DrawStatus.DRAWN)

    @property
    def pack_id(self) -> str:
        return self.pack.id

    def to_dict(self) -> dict[str, Any]:
        return {
            "pack": self.pack.to_dict(),
            "winners": [winner.to_dict() for winner in self.winners],
            "eligible_count": self.eligible_count,
            "timestamp": dt_iso(self.timestamp),
            "status": self.status.value,
        }

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "DrawResult":
        return cls(
            pack=PrizePack.from_dict(data["pack"]),
            winners=tuple(EligibilityEntry.from_dict(w) for w in data["winners"]),
            eligible_count=int(data["eligible_count"]),
            timestamp=parse_datetime(data["timestamp"], "timestamp"),
            status=DrawStatus(data["status"]),
        )


__all__ = [
    "Donation",
    "DrawResult",
    "DrawState",
    "DrawStatus",
    "EligibilityEntry",
    "EntryMode",
    "PrizePack",
    "dt_iso",
    "parse_datetime",
    "parse_decimal",
    "parse_entry_mode",
]
