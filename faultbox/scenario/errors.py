"""Exceptions raised by the scenario registry, runners and primitives."""

from __future__ import annotations


class ScenarioError(Exception):
    """Base class for scenario errors."""


class InvalidScenarioConfig(ScenarioError, ValueError):
    """A scenario config is missing, malformed or out of range.

    ``fields`` maps each offending wire field name to a message.
    """

    def __init__(self, message: str, fields: dict[str, str] | None = None):
        super().__init__(message)
        self.fields = fields or {}


class ScenarioAlreadyActive(ScenarioError):
    """A start was requested for a kind that already has an active run."""

    def __init__(self, kind):
        super().__init__(f"Scenario {kind.value} is already running.")
        self.kind = kind


class SimulatedFailure(ScenarioError):
    """Raised by the probabilistic failure primitive when it triggers."""
