"""Scenario kinds, their configs and the slot snapshot returned by status.

Every config is a frozen dataclass of bounded integers.  Configs validate
themselves on construction, so a config instance that exists is in range.
``from_dict`` parses the camelCase JSON body accepted by the HTTP API and
``to_items`` produces the camelCase key/value view shown in status output.
"""

from __future__ import annotations

import datetime
import enum
from dataclasses import dataclass, field
from typing import Any, ClassVar

from faultbox.scenario.errors import InvalidScenarioConfig


class ScenarioKind(enum.Enum):
    PROBABILISTIC_FAILURE = "ProbabilisticFailure"
    CPU_SPIKE = "CpuSpike"
    MEMORY_LEAK = "MemoryLeak"
    PROBABILISTIC_LATENCY = "ProbabilisticLatency"

    @property
    def slug(self) -> str:
        return _SLUGS[self]

    @classmethod
    def from_slug(cls, slug: str) -> "ScenarioKind":
        for kind, kind_slug in _SLUGS.items():
            if kind_slug == slug:
                return kind
        raise KeyError(slug)


_SLUGS = {
    ScenarioKind.PROBABILISTIC_FAILURE: "probabilistic-failure",
    ScenarioKind.CPU_SPIKE: "cpu-spike",
    ScenarioKind.MEMORY_LEAK: "memory-leak",
    ScenarioKind.PROBABILISTIC_LATENCY: "probabilistic-latency",
}


# ---------------------------------------------------------------------------
# Validation helpers
# ---------------------------------------------------------------------------

def _check_bounds(config) -> None:
    errors = {}
    for attr, wire_name, low, high in config.BOUNDS:
        value = getattr(config, attr)
        if isinstance(value, bool) or not isinstance(value, int):
            errors[wire_name] = "must be an integer"
        elif not low <= value <= high:
            errors[wire_name] = f"must be between {low} and {high}"

    if errors:
        raise InvalidScenarioConfig(
            f"Invalid {config.KIND.value} config", fields=errors
        )


def _parse(cls, data: Any):
    if not isinstance(data, dict):
        raise InvalidScenarioConfig(
            f"{cls.KIND.value} config must be a JSON object"
        )

    values = {}
    errors = {}
    for attr, wire_name, _low, _high in cls.BOUNDS:
        if wire_name not in data or data[wire_name] is None:
            errors[wire_name] = "is required"
            continue
        values[attr] = data[wire_name]

    if errors:
        raise InvalidScenarioConfig(
            f"Invalid {cls.KIND.value} config", fields=errors
        )

    return cls(**values)


# ---------------------------------------------------------------------------
# Configs
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class ProbabilisticFailureConfig:
    KIND: ClassVar[ScenarioKind] = ScenarioKind.PROBABILISTIC_FAILURE
    BOUNDS: ClassVar[tuple] = (
        ("duration_minutes", "durationMinutes", 1, 180),
        ("requests_per_second", "requestsPerSecond", 1, 1000),
        ("failure_percentage", "failurePercentage", 0, 100),
    )

    duration_minutes: int
    requests_per_second: int
    failure_percentage: int

    def __post_init__(self):
        _check_bounds(self)

    @classmethod
    def from_dict(cls, data: Any) -> "ProbabilisticFailureConfig":
        return _parse(cls, data)

    def to_items(self) -> dict[str, int]:
        return {
            "durationMinutes": self.duration_minutes,
            "requestsPerSecond": self.requests_per_second,
            "failurePercentage": self.failure_percentage,
        }


@dataclass(frozen=True)
class CpuSpikeConfig:
    KIND: ClassVar[ScenarioKind] = ScenarioKind.CPU_SPIKE
    BOUNDS: ClassVar[tuple] = (
        ("duration_minutes", "durationMinutes", 1, 180),
        ("interval_seconds", "intervalSeconds", 1, 300),
        ("trigger_percentage", "triggerPercentage", 0, 100),
        ("spike_seconds", "spikeSeconds", 1, 30),
    )

    duration_minutes: int
    interval_seconds: int
    trigger_percentage: int
    spike_seconds: int

    def __post_init__(self):
        _check_bounds(self)

    @classmethod
    def from_dict(cls, data: Any) -> "CpuSpikeConfig":
        return _parse(cls, data)

    def to_items(self) -> dict[str, int]:
        return {
            "durationMinutes": self.duration_minutes,
            "intervalSeconds": self.interval_seconds,
            "triggerPercentage": self.trigger_percentage,
            "spikeSeconds": self.spike_seconds,
        }


@dataclass(frozen=True)
class MemoryLeakConfig:
    KIND: ClassVar[ScenarioKind] = ScenarioKind.MEMORY_LEAK
    BOUNDS: ClassVar[tuple] = (
        ("duration_minutes", "durationMinutes", 1, 180),
        ("interval_seconds", "intervalSeconds", 1, 300),
        ("trigger_percentage", "triggerPercentage", 0, 100),
        ("memory_megabytes", "memoryMegabytes", 1, 1024),
        ("hold_seconds", "holdSeconds", 1, 60),
    )

    duration_minutes: int
    interval_seconds: int
    trigger_percentage: int
    memory_megabytes: int
    hold_seconds: int

    def __post_init__(self):
        _check_bounds(self)

    @classmethod
    def from_dict(cls, data: Any) -> "MemoryLeakConfig":
        return _parse(cls, data)

    def to_items(self) -> dict[str, int]:
        return {
            "durationMinutes": self.duration_minutes,
            "intervalSeconds": self.interval_seconds,
            "triggerPercentage": self.trigger_percentage,
            "memoryMegabytes": self.memory_megabytes,
            "holdSeconds": self.hold_seconds,
        }


@dataclass(frozen=True)
class ProbabilisticLatencyConfig:
    KIND: ClassVar[ScenarioKind] = ScenarioKind.PROBABILISTIC_LATENCY
    BOUNDS: ClassVar[tuple] = (
        ("duration_minutes", "durationMinutes", 1, 180),
        ("requests_per_second", "requestsPerSecond", 1, 1000),
        ("trigger_percentage", "triggerPercentage", 0, 100),
        ("delay_milliseconds", "delayMilliseconds", 1, 10000),
    )

    duration_minutes: int
    requests_per_second: int
    trigger_percentage: int
    delay_milliseconds: int

    def __post_init__(self):
        _check_bounds(self)

    @classmethod
    def from_dict(cls, data: Any) -> "ProbabilisticLatencyConfig":
        return _parse(cls, data)

    def to_items(self) -> dict[str, int]:
        return {
            "durationMinutes": self.duration_minutes,
            "requestsPerSecond": self.requests_per_second,
            "triggerPercentage": self.trigger_percentage,
            "delayMilliseconds": self.delay_milliseconds,
        }


CONFIG_TYPES = {
    ScenarioKind.PROBABILISTIC_FAILURE: ProbabilisticFailureConfig,
    ScenarioKind.CPU_SPIKE: CpuSpikeConfig,
    ScenarioKind.MEMORY_LEAK: MemoryLeakConfig,
    ScenarioKind.PROBABILISTIC_LATENCY: ProbabilisticLatencyConfig,
}


def parse_config(kind: ScenarioKind, data: Any):
    """Build the config for ``kind`` from a decoded JSON body."""
    return CONFIG_TYPES[kind].from_dict(data)


# ---------------------------------------------------------------------------
# Status
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class SlotSnapshot:
    scenario: ScenarioKind
    is_active: bool = False
    ends_at: datetime.datetime | None = None
    last_message: str | None = None
    active_config: dict[str, int] | None = field(default=None)

    def to_dict(self):
        """Serialise for JSON responses."""
        return {
            "scenario": self.scenario.value,
            "isActive": self.is_active,
            "endsAtUtc": self.ends_at.isoformat() if self.ends_at else None,
            "lastMessage": self.last_message,
            "activeConfig": (
                dict(self.active_config)
                if self.active_config is not None
                else None
            ),
        }
