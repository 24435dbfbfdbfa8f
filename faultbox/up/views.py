import logging
import time
from datetime import datetime, timezone

from flask import Blueprint, current_app, jsonify

from faultbox.observability.metrics import metrics_collector

logger = logging.getLogger(__name__)

up = Blueprint("up", __name__, url_prefix="/up")


@up.get("/")
def index():
    """Simple health check - returns 200 if app is running."""
    return ""


@up.get("/health")
def health():
    """
    Comprehensive health check endpoint.

    Returns JSON with the status of:
    - Scenario slots (which kinds are running)
    - Memory leases held in this process
    - The scenario target (only when one is configured)

    Only an unreachable target makes the service unhealthy; running
    scenarios are the point of this service, not a fault in it.

    Returns:
        JSON response with health status
    """
    health_status = {
        "status": "healthy",
        "timestamp": datetime.now(timezone.utc).isoformat(),
        "service": "faultbox",
        "components": {
            "scenarios": check_scenarios(),
            "memory_leases": check_memory_leases(),
        },
    }

    target_health = check_target()
    if target_health:
        health_status["components"]["target"] = target_health

    overall_healthy = all(
        component["healthy"]
        for component in health_status["components"].values()
    )
    health_status["status"] = "healthy" if overall_healthy else "unhealthy"

    for component, status in health_status["components"].items():
        metrics_collector.record_health_check(component, status["healthy"])

    status_code = 200 if overall_healthy else 503

    return jsonify(health_status), status_code


def check_scenarios():
    registry = current_app.extensions["scenario_registry"]
    active = [s.scenario.value for s in registry.status_all() if s.is_active]

    return {
        "healthy": True,
        "active": active,
        "message": f"{len(active)} scenario(s) running",
    }


def check_memory_leases():
    leases = current_app.extensions["memory_leases"]

    return {
        "healthy": True,
        "count": leases.count,
        "bytes": leases.total_bytes,
    }


def check_target():
    """
    Check the configured scenario target.

    Returns:
        dict: Health status of the target, or None if not configured
    """
    target = current_app.extensions.get("scenario_target")
    if target is None:
        return None

    start_time = time.time()
    healthy = target.ping()
    latency_ms = (time.time() - start_time) * 1000

    return {
        "healthy": healthy,
        "url": target.base_url,
        "latency_ms": round(latency_ms, 2),
        "message": (
            "Scenario target reachable"
            if healthy
            else "Scenario target unreachable"
        ),
    }
