"""Exceptions raised at the pulselog boundaries.

The analytics layer never raises on well-typed input; these are only
raised when events are built, edited, or parsed from storage.
"""

from __future__ import annotations


class PulselogError(Exception):
    """Base class for all pulselog errors."""


class EventParseError(PulselogError, ValueError):
    """A stored record could not be turned into an event."""

    def __init__(self, message: str, record_id: str | None = None) -> None:
        super().__init__(message)
        self.record_id = record_id

    def __str__(self) -> str:
        base = super().__str__()
        if self.record_id:
            return f"{base} (record {self.record_id})"
        return base


class InvalidIntervalError(PulselogError, ValueError):
    """An interval edit would end before it starts, or reopen a closed one."""


class InvalidReadingError(PulselogError, ValueError):
    """A BP/HR reading was created without any value."""


class ConfigError(PulselogError):
    """Configuration values failed validation."""
