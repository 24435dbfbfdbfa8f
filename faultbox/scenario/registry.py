"""Scenario registry – the toggle coordinator for background scenarios.

One slot exists per ``ScenarioKind`` for the life of the registry.  A slot
is either idle or running exactly one scenario.  ``start`` claims the slot
and launches the runner on its own daemon thread, ``stop`` signals the
run's cancellation token, and the runner thread completes the slot when the
runner returns or raises.

Each slot has its own lock; different kinds never contend.

Lifecycle of a run
------------------
start ──► "Running" ──► runner returns after deadline ──► "Scenario finished"
                    ├─► runner returns after stop()   ──► "Scenario cancelled"
                    └─► runner raises                 ──► "Scenario error: …"

Whether a run finished or was cancelled is decided by timing only: the
token fires the same way in both cases, so the registry checks whether the
deadline had passed when the runner returned.
"""

from __future__ import annotations

import datetime
import logging
import threading
import uuid

import requests

from faultbox.observability.metrics import metrics_collector
from faultbox.scenario.cancellation import CancellationToken
from faultbox.scenario.errors import (
    InvalidScenarioConfig,
    ScenarioAlreadyActive,
)
from faultbox.scenario.models import CONFIG_TYPES, ScenarioKind, SlotSnapshot
from faultbox.scenario.primitives import MemoryLeaseStore
from faultbox.scenario.runners import RUNNERS, RunContext
from faultbox.scenario.target_client import TargetClient

logger = logging.getLogger(__name__)

MESSAGE_RUNNING = "Running"
MESSAGE_FINISHED = "Scenario finished"
MESSAGE_CANCELLED = "Scenario cancelled"
MESSAGE_ERROR = "Scenario error: {}"


class ScenarioSlot:
    """Mutable per-kind state; only touched while holding ``lock``."""

    def __init__(self, kind: ScenarioKind):
        self.kind = kind
        self.lock = threading.Lock()
        self.is_active = False
        self.token: CancellationToken | None = None
        self.thread: threading.Thread | None = None
        self.ends_at: datetime.datetime | None = None
        self.last_message: str | None = None
        self.active_config: dict[str, int] | None = None

    def begin(self, token, ends_at, active_config) -> None:
        self.is_active = True
        self.token = token
        self.ends_at = ends_at
        self.active_config = active_config
        self.last_message = MESSAGE_RUNNING

    def complete(self, message: str) -> None:
        if self.token is not None:
            self.token.dispose()
        self.is_active = False
        self.token = None
        self.thread = None
        self.ends_at = None
        self.active_config = None
        self.last_message = message

    def snapshot(self) -> SlotSnapshot:
        return SlotSnapshot(
            scenario=self.kind,
            is_active=self.is_active,
            ends_at=self.ends_at,
            last_message=self.last_message,
            active_config=(
                dict(self.active_config)
                if self.active_config is not None
                else None
            ),
        )


class ScenarioRegistry:
    """Owns every scenario slot and the runs bound to them.

    :param leases: memory lease store shared with the target endpoints
    :param target: client for a remote scenario target, or None to run
        primitives in-process
    :param seconds_per_minute: length of one ``duration_minutes`` unit
    """

    def __init__(
        self,
        leases: MemoryLeaseStore | None = None,
        target: TargetClient | None = None,
        seconds_per_minute: float = 60.0,
        runners=None,
    ):
        self.leases = leases if leases is not None else MemoryLeaseStore()
        self.target = target
        self.seconds_per_minute = seconds_per_minute
        self._runners = dict(runners or RUNNERS)
        self._slots = {kind: ScenarioSlot(kind) for kind in ScenarioKind}

    # -- commands ------------------------------------------------------------

    def start(self, kind: ScenarioKind, config) -> SlotSnapshot:
        """Start ``kind`` with ``config``; raises if it is already running."""
        if config is None or not isinstance(config, CONFIG_TYPES[kind]):
            raise InvalidScenarioConfig(
                f"A {kind.value} config is required"
            )

        duration = config.duration_minutes * self.seconds_per_minute
        if duration <= 0:
            raise InvalidScenarioConfig(
                "Duration must be positive",
                fields={"durationMinutes": "must be positive"},
            )

        slot = self._slots[kind]
        with slot.lock:
            if slot.is_active:
                raise ScenarioAlreadyActive(kind)

            token = CancellationToken.with_deadline(duration)
            ends_at = datetime.datetime.now(
                datetime.timezone.utc
            ) + datetime.timedelta(seconds=duration)
            slot.begin(token, ends_at, config.to_items())

            context = RunContext(
                run_id=f"{kind.slug}-{uuid.uuid4().hex[:12]}",
                leases=self.leases,
                target=self.target,
            )
            slot.thread = threading.Thread(
                target=self._execute,
                args=(slot, config, token, context),
                name=f"scenario-{kind.slug}",
                daemon=True,
            )
            try:
                slot.thread.start()
            except RuntimeError:
                slot.complete(MESSAGE_ERROR.format("runner thread did not start"))
                raise

            logger.info(
                "Scenario %s started",
                kind.value,
                extra={
                    "scenario": kind.value,
                    "run_id": context.run_id,
                    "ends_at": ends_at.isoformat(),
                    "config": slot.active_config,
                },
            )
            snapshot = slot.snapshot()

        metrics_collector.record_scenario_transition(kind.value, "started")
        return snapshot

    def stop(self, kind: ScenarioKind) -> SlotSnapshot:
        """Signal the active run of ``kind`` to stop; no-op when idle.

        The returned snapshot is taken at call time, so it usually still
        reads "Running"; the runner completes the slot once it notices.
        """
        slot = self._slots[kind]
        with slot.lock:
            if slot.is_active:
                slot.token.cancel()
                logger.info(
                    "Scenario %s stop requested",
                    kind.value,
                    extra={"scenario": kind.value},
                )
            return slot.snapshot()

    def stop_all(self) -> list[SlotSnapshot]:
        return [self.stop(kind) for kind in ScenarioKind]

    # -- queries -------------------------------------------------------------

    def status(self, kind: ScenarioKind) -> SlotSnapshot:
        slot = self._slots[kind]
        with slot.lock:
            return slot.snapshot()

    def status_all(self) -> list[SlotSnapshot]:
        return [self.status(kind) for kind in ScenarioKind]

    def join(self, kind: ScenarioKind, timeout: float | None = None) -> bool:
        """Wait for the runner of ``kind`` to exit; True once the slot is idle."""
        slot = self._slots[kind]
        with slot.lock:
            thread = slot.thread

        if thread is not None:
            thread.join(timeout)

        return not self.status(kind).is_active

    # -- runner boundary -----------------------------------------------------

    def _execute(self, slot, config, token, context) -> None:
        kind = slot.kind
        message = MESSAGE_CANCELLED
        outcome = "cancelled"
        try:
            self._runners[kind](config, token, context)
            if token.expired:
                message, outcome = MESSAGE_FINISHED, "finished"
        except Exception as e:
            logger.exception(
                "Scenario %s failed",
                kind.value,
                extra={"scenario": kind.value, "run_id": context.run_id},
            )
            message, outcome = MESSAGE_ERROR.format(e), "error"
        finally:
            try:
                if kind is ScenarioKind.MEMORY_LEAK:
                    self._release_memory(context)
            finally:
                with slot.lock:
                    slot.complete(message)

            logger.info(
                "Scenario %s completed: %s",
                kind.value,
                message,
                extra={"scenario": kind.value, "run_id": context.run_id},
            )
            metrics_collector.record_scenario_transition(kind.value, outcome)

    def _release_memory(self, context: RunContext) -> None:
        released = self.leases.release_owner(context.run_id)
        logger.info(
            "Released %s memory lease(s)",
            released,
            extra={"run_id": context.run_id},
        )

        if context.target is not None:
            try:
                context.target.release_memory()
            except requests.RequestException as e:
                logger.warning(
                    "Failed to release target memory",
                    extra={"target": context.target.base_url, "error": str(e)},
                )
            except Exception:
                logger.exception(
                    "Unexpected error releasing target memory",
                    extra={
                        "target": context.target.base_url,
                        "run_id": context.run_id,
                    },
                )
