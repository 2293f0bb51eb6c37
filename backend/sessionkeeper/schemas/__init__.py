"""Convenience exports for application schemas."""

from __future__ import annotations

from .auth import (
    HealthSchema,
    LockoutStatusSchema,
    LogoutSchema,
    RefreshSchema,
    SessionSchema,
    TokenPairSchema,
)

__all__ = [
    "HealthSchema",
    "LockoutStatusSchema",
    "LogoutSchema",
    "RefreshSchema",
    "SessionSchema",
    "TokenPairSchema",
]
