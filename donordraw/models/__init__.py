from .base import Base

# import models so schema creation and autoloaders can discover mappers
from .donation import DonationRecord  # noqa: F401
from .prize_pack import PrizePackRecord  # noqa: F401
from .draw_history import DrawHistoryEntry, EngineStateSnapshot  # noqa: F401

__all__ = [
    "Base",
    "DonationRecord",
    "PrizePackRecord",
    "DrawHistoryEntry",
    "EngineStateSnapshot",
]
