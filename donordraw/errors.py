"""Error types raised by the drawing engine."""

from __future__ import annotations

from typing import Optional


class DrawError(ValueError):
    """Base class for recoverable drawing errors."""


class InvalidConfig(DrawError):
    """Raised when a prize pack cannot be drawn as configured."""


class InvalidDonation(DrawError):
    """Raised when a donation record cannot be normalized."""


class IllegalTransition(DrawError):
    """Raised when a lifecycle action is not allowed in the pack's current state.

    Attributes
    ----------
    pack_id : str
        Identifier of the prize pack the action targeted.
    action : str
        The attempted action (``"run"``, ``"reset"`` or ``"commit"``).
    state : Optional[str]
        State the pack was in when the action was rejected.
    """

    def __init__(self, pack_id: str, action: str, state: Optional[str], reason: str) -> None:
        super().__init__(reason)
        self.pack_id = pack_id
        self.action = action
        self.state = state
        self.reason = reason


__all__ = [
    "DrawError",
    "IllegalTransition",
    "InvalidConfig",
    "InvalidDonation",
]
