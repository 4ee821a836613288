"""Winner selection without replacement."""

from __future__ import annotations

import logging
import random
from typing import Optional, Protocol, Sequence

from .types import EligibilityEntry
from ..errors import InvalidConfig

logger = logging.getLogger(__name__)


class RandomSource(Protocol):
    """Anything that can draw a uniform index, e.g. :class:`random.Random`."""

    def randrange(self, stop: int) -> int: ...


def select_winners(
    pool: Sequence[EligibilityEntry],
    draw_count: int,
    *,
    rng: Optional[RandomSource] = None,
) -> list[EligibilityEntry]:
    """Draw up to ``draw_count`` winners from ``pool``.

    Each pick chooses one ticket uniformly among those remaining, so donors
    holding more tickets are proportionally more likely to win. Once a donor
    wins, every ticket carrying their email is removed before the next pick,
    so no email can win twice in the same draw.

    Parameters
    ----------
    pool : Sequence[EligibilityEntry]
        Eligible tickets. The sequence is not modified.
    draw_count : int
        Maximum number of winners. Fewer are returned when the pool runs out.
    rng : Optional[RandomSource], default: None
        Random generator to use; useful for deterministic tests. If not
        provided, a new non-deterministic generator is used.

    Returns
    -------
    list[EligibilityEntry]
        Winners in the order they were drawn.

    Raises
    ------
    InvalidConfig
        If ``draw_count`` is not positive.
    """

    if isinstance(draw_count, bool) or draw_count <= 0:
        raise InvalidConfig(f"draw_count must be positive, got {draw_count!r}")

    rng = rng or random.Random()
    remaining = list(pool)
    winners: list[EligibilityEntry] = []

    for pick in range(draw_count):
        if not remaining:
            logger.debug(f"Pool exhausted after {pick} of {draw_count} picks")
            break
        winner = remaining[rng.randrange(len(remaining))]
        winners.append(winner)
        logger.debug(f"Pick {pick + 1}: {winner.donor_email} from {len(remaining)} entries")
        # Drop every ticket the winner holds, not just the one drawn.
        remaining = [entry for entry in remaining if entry.donor_email != winner.donor_email]

    return winners


__all__ = ["RandomSource", "select_winners"]
