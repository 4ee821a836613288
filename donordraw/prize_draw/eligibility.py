"""Eligibility resolution: turn a prize pack and a donation ledger into a pool."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from decimal import Decimal
from typing import Callable, Dict, Iterable, Optional

from .types import Donation, EligibilityEntry, EntryMode, PrizePack
from ..errors import InvalidConfig

logger = logging.getLogger(__name__)


@dataclass
class DonorTotal:
    """Running total for one donor email inside a window.

    ``donor_id`` and ``donor_name`` come from the first donation seen for the
    email; later donations only add to ``total``.
    """

    donor_id: str
    donor_name: str
    donor_email: str
    total: Decimal
    count: int = 1


PoolBuilder = Callable[[Iterable[DonorTotal], Decimal], list[EligibilityEntry]]


class EntryModeRegistry:
    """Mutable registry mapping entry modes to pool builders."""

    def __init__(self) -> None:
        self._builders: Dict[EntryMode, PoolBuilder] = {}

    def register(
        self, mode: EntryMode, builder: PoolBuilder, *, replace: bool = False
    ) -> None:
        """Register ``builder`` for ``mode``.

        Parameters
        ----------
        mode : EntryMode
            Entry mode the builder handles.
        builder : PoolBuilder
            Callable receiving the aggregated donor totals (in first-seen
            order) and the pack's ``min_entry_amount``, returning the pool.
        replace : bool, default: False
            When ``True`` an existing registration is overwritten. Otherwise a
            duplicate raises :class:`ValueError`.
        """
        if not replace and mode in self._builders:
            raise ValueError(f"Entry mode '{mode.value}' is already registered")
        self._builders[mode] = builder

    def get(self, mode: EntryMode) -> PoolBuilder:
        """Return the builder registered for ``mode``."""
        try:
            return self._builders[mode]
        except KeyError as exc:
            raise KeyError(f"Unknown entry mode '{mode}'") from exc

    def available_modes(self) -> Dict[EntryMode, PoolBuilder]:
        """Return a copy of the registered builders keyed by mode."""
        return dict(self._builders)


def filter_window(pack: PrizePack, ledger: Iterable[Donation]) -> list[Donation]:
    """Return the donations whose timestamp lies inside the pack's window."""

    return [donation for donation in ledger if pack.contains(donation.timestamp)]


def aggregate_by_email(donations: Iterable[Donation]) -> list[DonorTotal]:
    """Sum donations per email, keeping the order in which emails first appear."""

    totals: Dict[str, DonorTotal] = {}
    for donation in donations:
        existing = totals.get(donation.donor_email)
        if existing is None:
            totals[donation.donor_email] = DonorTotal(
                donor_id=donation.donor_id,
                donor_name=donation.donor_name,
                donor_email=donation.donor_email,
                total=donation.amount,
            )
        else:
            existing.total += donation.amount
            existing.count += 1
    return list(totals.values())


def _cumulative_pool(
    donors: Iterable[DonorTotal], min_entry_amount: Decimal
) -> list[EligibilityEntry]:
    """One entry per donor whose total reaches ``min_entry_amount``."""
    return [
        EligibilityEntry(
            donor_id=donor.donor_id,
            donor_name=donor.donor_name,
            donor_email=donor.donor_email,
            amount=donor.total,
        )
        for donor in donors
        if donor.total >= min_entry_amount
    ]


def _multi_entry_pool(
    donors: Iterable[DonorTotal], min_entry_amount: Decimal
) -> list[EligibilityEntry]:
    """``floor(total / min_entry_amount)`` identical tickets per donor."""
    pool: list[EligibilityEntry] = []
    for donor in donors:
        entries = int(donor.total // min_entry_amount)
        if entries <= 0:
            continue
        ticket = EligibilityEntry(
            donor_id=donor.donor_id,
            donor_name=donor.donor_name,
            donor_email=donor.donor_email,
            amount=min_entry_amount,
        )
        pool.extend([ticket] * entries)
    return pool


def resolve_eligibility(
    pack: PrizePack,
    ledger: Iterable[Donation],
    *,
    registry: Optional[EntryModeRegistry] = None,
) -> list[EligibilityEntry]:
    """Compute the eligible pool for ``pack`` from ``ledger``.

    Parameters
    ----------
    pack : PrizePack
        Pack whose window, threshold and entry mode drive eligibility.
    ledger : Iterable[Donation]
        Every known donation. Only donations inside the pack window count.
    registry : Optional[EntryModeRegistry], default: None
        Registry used to look up the pool builder for ``pack.entry_mode``.
        Typically omitted, in which case :data:`DEFAULT_ENTRY_MODES` is used.

    Returns
    -------
    list[EligibilityEntry]
        One element per ticket. Cumulative pools hold one ticket per
        qualifying donor; multi-entry pools repeat a donor's ticket once per
        full ``min_entry_amount`` given.

    Raises
    ------
    InvalidConfig
        If ``pack.min_entry_amount`` is not positive.
    """

    if pack.min_entry_amount <= 0:
        raise InvalidConfig(
            f"Prize pack {pack.id!r}: min_entry_amount must be positive, "
            f"got {pack.min_entry_amount}"
        )

    in_window = filter_window(pack, ledger)
    if not in_window:
        logger.debug(f"No donations inside the window of prize pack {pack.id!r}")
        return []

    donors = aggregate_by_email(in_window)
    builder = (registry or DEFAULT_ENTRY_MODES).get(pack.entry_mode)
    pool = builder(donors, pack.min_entry_amount)
    logger.debug(
        f"Prize pack {pack.id!r} ({pack.entry_mode.value}): "
        f"{len(donors)} donors in window, {len(pool)} entries"
    )
    return pool


DEFAULT_ENTRY_MODES = EntryModeRegistry()
DEFAULT_ENTRY_MODES.register(EntryMode.CUMULATIVE, _cumulative_pool)
DEFAULT_ENTRY_MODES.register(EntryMode.MULTI_ENTRY, _multi_entry_pool)

__all__ = [
    "DEFAULT_ENTRY_MODES",
    "DonorTotal",
    "EntryModeRegistry",
    "PoolBuilder",
    "aggregate_by_email",
    "filter_window",
    "resolve_eligibility",
]
