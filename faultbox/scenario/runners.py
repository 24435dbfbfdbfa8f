"""Scenario runners: loops that drive one fault primitive until cancelled.

Every runner has the signature ``run(config, token, context)`` and returns
normally once ``token`` fires.  Cancellation is the expected way out, not an
error.  Anything a runner raises is handled by the registry.

Two loop shapes exist:

* batch runners (probabilistic failure / latency) fire
  ``requests_per_second`` concurrent invocations per one-second window and
  swallow individual failures;
* tick runners (CPU spike / memory leak) roll once per ``interval_seconds``
  and invoke the primitive when the roll hits.

With a ``TargetClient`` on the context, the invocation is an HTTP call to
the target instead of the in-process primitive.
"""

from __future__ import annotations

import dataclasses
import logging
import time
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass
from typing import Callable

import requests

from faultbox.observability.metrics import metrics_collector
from faultbox.scenario.cancellation import CancellationToken
from faultbox.scenario.models import (
    CpuSpikeConfig,
    MemoryLeakConfig,
    ProbabilisticFailureConfig,
    ProbabilisticLatencyConfig,
    ScenarioKind,
)
from faultbox.scenario.primitives import (
    MemoryLeaseStore,
    busy_wait,
    should_trigger,
    simulate_latency,
    simulate_request,
)
from faultbox.scenario.target_client import TargetClient

logger = logging.getLogger(__name__)

WINDOW_SECONDS = 1.0


@dataclass
class RunContext:
    run_id: str
    leases: MemoryLeaseStore
    target: TargetClient | None = None


# ---------------------------------------------------------------------------
# Loop shapes
# ---------------------------------------------------------------------------

def _run_batches(
    kind: ScenarioKind,
    requests_per_second: int,
    invoke: Callable[[], object],
    token: CancellationToken,
) -> None:
    with ThreadPoolExecutor(
        max_workers=requests_per_second,
        thread_name_prefix=f"scenario-{kind.slug}",
    ) as pool:
        while not token.cancelled:
            window_start = time.monotonic()
            futures = [pool.submit(invoke) for _ in range(requests_per_second)]

            errors = []
            for future in futures:
                exc = future.exception()
                if exc is not None:
                    errors.append(exc)

            if errors:
                logger.warning(
                    "%s batch encountered %s failed request(s)",
                    kind.value,
                    len(errors),
                    exc_info=errors[0],
                    extra={"scenario": kind.value, "failed": len(errors)},
                )
            metrics_collector.record_scenario_batch(
                kind.value, len(futures), len(errors)
            )

            remaining = WINDOW_SECONDS - (time.monotonic() - window_start)
            if remaining > 0 and token.wait(remaining):
                break


def _run_ticks(
    kind: ScenarioKind,
    interval_seconds: int,
    trigger_percentage: int,
    invoke: Callable[[], object],
    token: CancellationToken,
) -> None:
    while not token.cancelled:
        if should_trigger(trigger_percentage):
            try:
                invoke()
            except requests.RequestException as e:
                logger.warning(
                    "%s target call failed",
                    kind.value,
                    extra={"scenario": kind.value, "error": str(e)},
                )

        if token.wait(interval_seconds):
            break


# ---------------------------------------------------------------------------
# Runners
# ---------------------------------------------------------------------------

def run_probabilistic_failure(
    config: ProbabilisticFailureConfig,
    token: CancellationToken,
    context: RunContext,
) -> None:
    if context.target is not None:
        def invoke():
            context.target.probabilistic_failure(config)
    else:
        def invoke():
            simulate_request(config.failure_percentage, token)

    _run_batches(
        ScenarioKind.PROBABILISTIC_FAILURE,
        config.requests_per_second,
        invoke,
        token,
    )


def run_probabilistic_latency(
    config: ProbabilisticLatencyConfig,
    token: CancellationToken,
    context: RunContext,
) -> None:
    if context.target is not None:
        def invoke():
            context.target.probabilistic_latency(config)
    else:
        def invoke():
            simulate_latency(
                config.trigger_percentage, config.delay_milliseconds, token
            )

    _run_batches(
        ScenarioKind.PROBABILISTIC_LATENCY,
        config.requests_per_second,
        invoke,
        token,
    )


def run_cpu_spike(
    config: CpuSpikeConfig,
    token: CancellationToken,
    context: RunContext,
) -> None:
    if context.target is not None:
        # The roll already happened here; the target must always fire.
        forced = dataclasses.replace(config, trigger_percentage=100)

        def invoke():
            context.target.cpu_spike(forced)
    else:
        def invoke():
            logger.info(
                "CPU spike triggered for %s seconds", config.spike_seconds
            )
            busy_wait(config.spike_seconds, token)

    _run_ticks(
        ScenarioKind.CPU_SPIKE,
        config.interval_seconds,
        config.trigger_percentage,
        invoke,
        token,
    )


def run_memory_leak(
    config: MemoryLeakConfig,
    token: CancellationToken,
    context: RunContext,
) -> None:
    if context.target is not None:
        forced = dataclasses.replace(config, trigger_percentage=100)

        def invoke():
            context.target.memory_leak(forced)
    else:
        def invoke():
            lease = context.leases.hold(
                config.memory_megabytes,
                config.hold_seconds,
                owner=context.run_id,
            )
            metrics_collector.record_memory_held(context.run_id, lease.size)

    _run_ticks(
        ScenarioKind.MEMORY_LEAK,
        config.interval_seconds,
        config.trigger_percentage,
        invoke,
        token,
    )


RUNNERS = {
    ScenarioKind.PROBABILISTIC_FAILURE: run_probabilistic_failure,
    ScenarioKind.CPU_SPIKE: run_cpu_spike,
    ScenarioKind.MEMORY_LEAK: run_memory_leak,
    ScenarioKind.PROBABILISTIC_LATENCY: run_probabilistic_latency,
}
