"""Scenario target blueprint – one fault primitive per HTTP request.

A scenario runner in another process points ``SCENARIO_TARGET_URL`` at an
instance serving these endpoints and sends every invocation here.

Endpoints
---------
POST /api/scenario-target/probabilistic-failure  – 500 when the roll hits
POST /api/scenario-target/probabilistic-latency  – delayed when the roll hits
POST /api/scenario-target/cpu-spike              – busy-wait when the roll hits
POST /api/scenario-target/memory-leak            – hold memory when the roll hits
POST /api/scenario-target/memory-leak/release    – release every lease
"""

from __future__ import annotations

import logging

from flask import Blueprint, current_app, jsonify, request

from faultbox.scenario.cancellation import CancellationToken
from faultbox.scenario.errors import InvalidScenarioConfig, SimulatedFailure
from faultbox.scenario.models import (
    CpuSpikeConfig,
    MemoryLeakConfig,
    ProbabilisticFailureConfig,
    ProbabilisticLatencyConfig,
)
from faultbox.scenario.primitives import (
    busy_wait,
    should_trigger,
    simulate_latency,
    simulate_request,
)

logger = logging.getLogger(__name__)

TARGET_OWNER = "target"

target_bp = Blueprint(
    "target",
    __name__,
    url_prefix="/api/scenario-target",
)


@target_bp.errorhandler(InvalidScenarioConfig)
def invalid_config(exc):
    return jsonify({"error": str(exc), "fields": exc.fields}), 400


def _config(config_type):
    return config_type.from_dict(request.get_json(force=True, silent=True))


@target_bp.post("/probabilistic-failure")
def probabilistic_failure():
    config = _config(ProbabilisticFailureConfig)

    try:
        simulate_request(config.failure_percentage, CancellationToken())
    except SimulatedFailure:
        logger.warning(
            "Scenario target probabilistic failure triggered", exc_info=True
        )
        return "Simulated probabilistic failure.", 500

    return "", 200


@target_bp.post("/probabilistic-latency")
def probabilistic_latency():
    config = _config(ProbabilisticLatencyConfig)

    delayed = simulate_latency(
        config.trigger_percentage,
        config.delay_milliseconds,
        CancellationToken(),
    )
    if delayed:
        logger.info(
            "Injected latency of %s ms", config.delay_milliseconds
        )

    return "", 200


@target_bp.post("/cpu-spike")
def cpu_spike():
    config = _config(CpuSpikeConfig)

    if not should_trigger(config.trigger_percentage):
        return jsonify({"triggered": False})

    logger.info("CPU spike triggered for %s seconds", config.spike_seconds)
    busy_wait(config.spike_seconds)
    return jsonify({"triggered": True})


@target_bp.post("/memory-leak")
def memory_leak():
    config = _config(MemoryLeakConfig)

    if not should_trigger(config.trigger_percentage):
        return jsonify({"triggered": False})

    leases = current_app.extensions["memory_leases"]
    lease = leases.hold(
        config.memory_megabytes, config.hold_seconds, owner=TARGET_OWNER
    )
    return jsonify({"triggered": True, "leaseId": lease.lease_id})


@target_bp.post("/memory-leak/release")
def release_memory():
    released = current_app.extensions["memory_leases"].release_all()
    logger.info("Released all memory leak leases via reset endpoint")
    return jsonify({"released": released})
