"""Exceptions raised by the conversion pipeline."""

from __future__ import annotations


class ConversionError(Exception):
    """Base class for fatal conversion failures.

    ``logs`` carries the run log accumulated up to the failure so callers
    never receive an error without its diagnostics.
    """

    def __init__(self, message: str, logs: list | None = None):
        super().__init__(message)
        self.logs = list(logs or [])


class GeometrySourceUnavailable(ConversionError):
    """The headless browser could not produce layout data for this run."""


class EmptyInputError(ConversionError, ValueError):
    """No renderable element is left to convert."""


class EmitterError(ConversionError):
    """The presentation file could not be serialized."""
