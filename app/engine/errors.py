"""Engine error types. Routers translate these into HTTP responses."""

from __future__ import annotations


class EngineError(Exception):
    """Base class for adaptive engine failures."""


class InvalidInput(EngineError):
    """A value reaching a calculation or decision is missing or out of range."""


class NotFound(EngineError):
    """A referenced user or adaptation record does not exist."""


class LogReadTimeout(EngineError):
    """The log-read fan-out for one analysis did not finish in time."""
