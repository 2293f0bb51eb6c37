"""Session & refresh-credential lifecycle services."""

from __future__ import annotations

from .blacklist import BlacklistManager
from .dto import LockoutStatus, RefreshRecord, SessionSettings, SessionTokens, SessionView
from .lockout import LockoutTracker
from .rotation import RotationProtocol, RotationResult, RotationState
from .service import SessionService
from .session_set import SessionSetManager

__all__ = [
    "BlacklistManager",
    "LockoutTracker",
    "LockoutStatus",
    "RefreshRecord",
    "RotationProtocol",
    "RotationResult",
    "RotationState",
    "SessionService",
    "SessionSetManager",
    "SessionSettings",
    "SessionTokens",
    "SessionView",
]
