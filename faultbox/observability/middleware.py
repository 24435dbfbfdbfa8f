"""Request logging that ties each request to the scenarios running under it."""

import logging
import time
import uuid

from flask import current_app, g, request

from faultbox.observability.metrics import metrics_collector

logger = logging.getLogger(__name__)


def active_scenarios() -> list[str]:
    """Slugs of the scenarios running right now, empty without a registry."""
    registry = current_app.extensions.get("scenario_registry")
    if registry is None:
        return []
    return [s.scenario.slug for s in registry.status_all() if s.is_active]


class ObservabilityMiddleware:
    """Logs every request against the background scenarios in flight.

    A slow or failing request is only interesting next to what was being
    injected at the time, so the set of active scenarios is captured when
    the request starts and attached to its completion or failure record.
    Responses carry ``X-Request-ID`` (echoed or generated),
    ``X-Response-Time`` in milliseconds and ``X-Active-Scenarios``.
    """

    def __init__(self, app=None):
        self.app = app
        if app is not None:
            self.init_app(app)

    def init_app(self, app):
        app.before_request(self.before_request)
        app.after_request(self.after_request)
        app.teardown_request(self.teardown_request)

    @staticmethod
    def _fields(**extra):
        fields = {
            "request_id": getattr(g, "request_id", "unknown"),
            "method": request.method,
            "path": request.path,
            "endpoint": request.endpoint,
            "blueprint": request.blueprint,
            "active_scenarios": getattr(g, "active_scenarios", []),
        }
        fields.update(extra)
        return fields

    @staticmethod
    def _latency_ms():
        if not hasattr(g, "start_time"):
            return 0
        return (time.time() - g.start_time) * 1000

    @staticmethod
    def before_request():
        g.start_time = time.time()
        g.request_id = request.headers.get("X-Request-ID") or uuid.uuid4().hex
        g.active_scenarios = active_scenarios()

        logger.info(
            "Request started",
            extra=ObservabilityMiddleware._fields(
                remote_addr=request.remote_addr
            ),
        )

    @staticmethod
    def after_request(response):
        """Log completion and stamp the tracing headers on ``response``."""
        if not hasattr(g, "start_time"):
            return response

        latency_ms = ObservabilityMiddleware._latency_ms()

        # A toggle request changes the set, so report it as it stands now.
        running = active_scenarios()

        logger.info(
            "Request completed",
            extra=ObservabilityMiddleware._fields(
                status_code=response.status_code,
                latency_ms=round(latency_ms, 2),
                active_scenarios_after=running,
            ),
        )

        metrics_collector.record_request(
            endpoint=request.endpoint or request.path,
            method=request.method,
            status_code=response.status_code,
            latency_ms=latency_ms,
        )

        response.headers["X-Request-ID"] = g.request_id
        response.headers["X-Response-Time"] = str(round(latency_ms, 2))
        response.headers["X-Active-Scenarios"] = str(len(running))
        return response

    @staticmethod
    def teardown_request(exception=None):
        if exception is None:
            return

        latency_ms = ObservabilityMiddleware._latency_ms()

        logger.error(
            "Request failed with exception",
            extra=ObservabilityMiddleware._fields(
                exception=str(exception),
                exception_type=type(exception).__name__,
                latency_ms=round(latency_ms, 2),
            ),
            exc_info=exception,
        )

        metrics_collector.record_request(
            endpoint=request.endpoint or request.path,
            method=request.method,
            status_code=500,
            latency_ms=latency_ms,
        )
