"""Thin wrapper around the scenario target API.

When the scenario runners are split from the process that takes the fault,
they send each primitive invocation to a target instance over plain HTTP
instead of running it in-process.

Key operations
--------------
* ``probabilistic_failure`` – POST /probabilistic-failure
* ``probabilistic_latency`` – POST /probabilistic-latency
* ``cpu_spike``             – POST /cpu-spike
* ``memory_leak``           – POST /memory-leak
* ``release_memory``        – POST /memory-leak/release
* ``ping``                  – GET  /up/
"""

from __future__ import annotations

import logging
import threading
import time
from typing import Any

import requests

from faultbox.observability.metrics import metrics_collector

logger = logging.getLogger(__name__)

TARGET_PREFIX = "/api/scenario-target"


class TargetClient:
    """Blocking client for a remote scenario target.

    Every call raises ``requests.RequestException`` on transport errors and
    on non-2xx responses; callers decide whether that is fatal.
    """

    def __init__(self, base_url: str, timeout: float = 30.0) -> None:
        self._base_url = base_url.rstrip("/")
        self._timeout = timeout
        self._local = threading.local()

    @property
    def base_url(self) -> str:
        return self._base_url

    # -- helpers -------------------------------------------------------------

    def _session(self) -> requests.Session:
        # Sessions are not thread-safe; runner batches call from many threads.
        session = getattr(self._local, "session", None)
        if session is None:
            session = requests.Session()
            self._local.session = session
        return session

    def _request(self, method: str, path: str, **kwargs: Any) -> requests.Response:
        start = time.time()
        success = False
        try:
            response = self._session().request(
                method,
                f"{self._base_url}{path}",
                timeout=self._timeout,
                **kwargs,
            )
            response.raise_for_status()
            success = True
            return response
        finally:
            metrics_collector.record_dependency_call(
                dependency="scenario-target",
                latency_ms=(time.time() - start) * 1000,
                success=success,
            )

    def _post(self, path: str, payload: dict | None = None) -> dict:
        response = self._request(
            "POST", f"{TARGET_PREFIX}{path}", json=payload or {}
        )
        if not response.content:
            return {}
        try:
            return response.json()
        except ValueError:
            return {"body": response.text}

    # -- public API ----------------------------------------------------------

    def probabilistic_failure(self, config) -> dict:
        return self._post("/probabilistic-failure", config.to_items())

    def probabilistic_latency(self, config) -> dict:
        return self._post("/probabilistic-latency", config.to_items())

    def cpu_spike(self, config) -> dict:
        return self._post("/cpu-spike", config.to_items())

    def memory_leak(self, config) -> dict:
        return self._post("/memory-leak", config.to_items())

    def release_memory(self) -> dict:
        data = self._post("/memory-leak/release")
        logger.info(
            "Released target memory leases",
            extra={
                "target": self._base_url,
                "released": (
                    data.get("released") if isinstance(data, dict) else None
                ),
            },
        )
        return data

    def ping(self) -> bool:
        """Return True if the target's liveness endpoint answers 2xx."""
        try:
            self._request("GET", "/up/")
        except requests.RequestException as e:
            logger.error(
                "Scenario target unreachable",
                extra={"target": self._base_url, "error": str(e)},
            )
            return False
        return True
