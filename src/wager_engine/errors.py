"""Error types for wager validation and settlement."""

from __future__ import annotations


class WagerEngineError(Exception):
    """Base error for wager-engine operations."""


class ValidationError(WagerEngineError):
    """User-facing rejection of a proposed bet."""


class ProviderUnavailable(WagerEngineError):
    """Raised when the event provider failed or returned nothing."""


class DataMissingAfterGameEnd(WagerEngineError):
    """Raised when a finished game can never be graded from provider data."""

    def __init__(self, reason: str) -> None:
        self.reason = reason
        super().__init__(reason)


class AlreadySettledError(WagerEngineError):
    """Raised when a terminal bet is settled a second time."""
