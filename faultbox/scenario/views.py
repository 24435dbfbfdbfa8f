"""Scenario toggle blueprint – start, stop and inspect background scenarios.

Endpoints (JSON API)
--------------------
GET  /api/scenario-toggle/status         – status of every scenario
GET  /api/scenario-toggle/<kind>/status  – status of one scenario
POST /api/scenario-toggle/<kind>/start   – start a scenario with a config
POST /api/scenario-toggle/<kind>/stop    – stop a scenario (idempotent)

``<kind>`` is one of ``probabilistic-failure``, ``cpu-spike``,
``memory-leak`` or ``probabilistic-latency``.  Start bodies use the
camelCase config fields, e.g.::

    {
        "durationMinutes": 5,
        "requestsPerSecond": 20,
        "failurePercentage": 10
    }
"""

from __future__ import annotations

from flask import Blueprint, current_app, jsonify, request

from faultbox.scenario.errors import InvalidScenarioConfig, ScenarioAlreadyActive
from faultbox.scenario.models import ScenarioKind, parse_config

scenario_bp = Blueprint(
    "scenario",
    __name__,
    url_prefix="/api/scenario-toggle",
)


def _registry():
    return current_app.extensions["scenario_registry"]


def _kind_or_none(slug: str) -> ScenarioKind | None:
    try:
        return ScenarioKind.from_slug(slug)
    except KeyError:
        return None


def _unknown(slug: str):
    return jsonify({"error": f"Unknown scenario: {slug}"}), 404


@scenario_bp.get("/status")
def status_all():
    """Return the status of every scenario in a fixed order."""
    return jsonify([s.to_dict() for s in _registry().status_all()])


@scenario_bp.get("/<slug>/status")
def status(slug: str):
    kind = _kind_or_none(slug)
    if kind is None:
        return _unknown(slug)
    return jsonify(_registry().status(kind).to_dict())


@scenario_bp.post("/<slug>/start")
def start(slug: str):
    """Start a scenario.

    Returns 200 with the new status, 400 when the body is invalid and 409
    when the scenario is already running.
    """
    kind = _kind_or_none(slug)
    if kind is None:
        return _unknown(slug)

    data = request.get_json(force=True, silent=True)

    try:
        config = parse_config(kind, data)
        snapshot = _registry().start(kind, config)
    except InvalidScenarioConfig as exc:
        return jsonify({"error": str(exc), "fields": exc.fields}), 400
    except ScenarioAlreadyActive as exc:
        return jsonify({"error": str(exc)}), 409

    return jsonify(snapshot.to_dict())


@scenario_bp.post("/<slug>/stop")
def stop(slug: str):
    kind = _kind_or_none(slug)
    if kind is None:
        return _unknown(slug)
    return jsonify(_registry().stop(kind).to_dict())
