"""Cooperative cancellation for scenario runs.

A token is handed to a runner and passed down to every primitive it calls.
Code checks ``token.cancelled`` at loop heads and sleeps with
``token.wait(...)`` so a stop request or an expired deadline wakes it up.
"""

from __future__ import annotations

import threading
import time


class CancellationToken:
    def __init__(self):
        self._event = threading.Event()
        self._timer: threading.Timer | None = None
        self._deadline: float | None = None
        self._deadline_reached = False

    @classmethod
    def with_deadline(cls, seconds: float) -> "CancellationToken":
        token = cls()
        token.cancel_after(seconds)
        return token

    def cancel_after(self, seconds: float) -> None:
        """Arm an automatic cancellation ``seconds`` from now."""
        self._deadline = time.monotonic() + seconds
        self._timer = threading.Timer(seconds, self._expire)
        self._timer.daemon = True
        self._timer.start()

    def _expire(self) -> None:
        self._deadline_reached = True
        self._event.set()

    def cancel(self) -> None:
        self._event.set()

    @property
    def cancelled(self) -> bool:
        return self._event.is_set()

    @property
    def expired(self) -> bool:
        """True once the armed deadline has passed."""
        if self._deadline_reached:
            return True
        return self._deadline is not None and time.monotonic() >= self._deadline

    def wait(self, timeout: float | None = None) -> bool:
        """Sleep up to ``timeout`` seconds; return True if cancelled."""
        return self._event.wait(timeout)

    def dispose(self) -> None:
        if self._timer is not None:
            self._timer.cancel()
            self._timer = None
