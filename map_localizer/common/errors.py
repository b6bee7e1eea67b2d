"""Exceptions raised by the map localizer."""

from __future__ import annotations

from typing import Sequence


class ConfigurationError(ValueError):
    """Invalid localizer configuration. Fatal at startup."""


class LocalizerNotReady(RuntimeError):
    """
    Scan matching requested before both the map and a position fix arrived.

    Recoverable: the caller may retry once the missing inputs are delivered.
    """

    def __init__(self, missing: Sequence[str], message: str | None = None):
        self.missing = tuple(missing)
        if message is None:
            message = f"localizer not ready, waiting for: {', '.join(self.missing) or 'nothing'}"
        super().__init__(message)
