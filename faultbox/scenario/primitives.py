"""Fault primitives: the smallest units of simulated misbehaviour.

Each primitive produces one observable pathology for one invocation.  The
scenario runners call them in loops; the target and diagnostic blueprints
call them once per HTTP request.

Primitives that wait take a ``CancellationToken`` and sleep on it, so a
stopped scenario wakes up instead of finishing the wait.
"""

from __future__ import annotations

import asyncio
import logging
import random
import threading
import time
import uuid
from dataclasses import dataclass, field

from faultbox.scenario.cancellation import CancellationToken
from faultbox.scenario.errors import SimulatedFailure

logger = logging.getLogger(__name__)

PAGE_SIZE = 4096
MEBIBYTE = 1024 * 1024

# Simulated backend round trip before a request decides whether to misbehave.
BACKEND_DELAY_SECONDS = 0.05


# ---------------------------------------------------------------------------
# CPU / probability / latency
# ---------------------------------------------------------------------------

def should_trigger(percentage: int) -> bool:
    """Draw from [0, 100); trigger when the draw is below ``percentage``."""
    if percentage <= 0:
        return False
    return random.randrange(100) < percentage


def busy_wait(seconds: float, token: CancellationToken | None = None) -> bool:
    """Spin the calling thread for ``seconds`` without sleeping.

    The token is polled on every pass of the loop.  Returns False when the
    spin was cut short by cancellation.
    """
    end = time.perf_counter() + seconds
    while time.perf_counter() < end:
        if token is not None and token.cancelled:
            return False
    return True


def simulate_request(
    failure_percentage: int,
    token: CancellationToken,
    backend_delay: float = BACKEND_DELAY_SECONDS,
) -> None:
    """One simulated request that fails with the given probability."""
    if token.wait(backend_delay):
        return

    if should_trigger(failure_percentage):
        raise SimulatedFailure("Simulated probabilistic failure.")


def simulate_latency(
    trigger_percentage: int,
    delay_milliseconds: int,
    token: CancellationToken,
    backend_delay: float = BACKEND_DELAY_SECONDS,
) -> bool:
    """One simulated request that is delayed with the given probability.

    Returns True when the delay was injected.
    """
    if token.wait(backend_delay):
        return False

    if not should_trigger(trigger_percentage):
        return False

    token.wait(delay_milliseconds / 1000.0)
    return True


# ---------------------------------------------------------------------------
# Memory
# ---------------------------------------------------------------------------

def allocate_block(megabytes: int) -> bytearray:
    """Allocate ``megabytes`` MiB and touch every page so it is committed."""
    size = megabytes * MEBIBYTE
    block = bytearray(size)
    block[::PAGE_SIZE] = b"\x01" * len(range(0, size, PAGE_SIZE))
    return block


@dataclass
class MemoryLease:
    lease_id: str
    owner: str
    size: int
    created_at: float
    hold_seconds: float
    block: bytearray = field(repr=False, default_factory=bytearray)
    timer: threading.Timer | None = field(default=None, repr=False, compare=False)


class MemoryLeaseStore:
    """Process-wide collection of retained memory blocks.

    Leases are added by the memory leak runner and the target endpoint and
    removed by their hold timer or by a bulk release.  Entries are
    independent; removing one never touches another owner's leases.
    """

    def __init__(self):
        self._lock = threading.Lock()
        self._leases: dict[str, MemoryLease] = {}

    def hold(
        self, megabytes: int, hold_seconds: float, owner: str
    ) -> MemoryLease:
        block = allocate_block(megabytes)
        lease = MemoryLease(
            lease_id=uuid.uuid4().hex,
            owner=owner,
            size=len(block),
            created_at=time.monotonic(),
            hold_seconds=hold_seconds,
            block=block,
        )

        lease.timer = threading.Timer(
            hold_seconds, self.release, args=(lease.lease_id,)
        )
        lease.timer.daemon = True

        with self._lock:
            self._leases[lease.lease_id] = lease
        lease.timer.start()

        logger.info(
            "Allocated %s MB for %s seconds (lease %s)",
            megabytes,
            hold_seconds,
            lease.lease_id,
            extra={"owner": owner, "lease_id": lease.lease_id},
        )
        return lease

    def release(self, lease_id: str) -> bool:
        with self._lock:
            lease = self._leases.pop(lease_id, None)
        if lease is None:
            return False
        _cancel_timers([lease])
        return True

    def release_owner(self, owner: str) -> int:
        with self._lock:
            released = [v for v in self._leases.values() if v.owner == owner]
            for lease in released:
                del self._leases[lease.lease_id]
        _cancel_timers(released)
        return len(released)

    def release_all(self) -> int:
        with self._lock:
            released = list(self._leases.values())
            self._leases.clear()
        _cancel_timers(released)
        return len(released)

    def leases(self, owner: str | None = None) -> list[MemoryLease]:
        with self._lock:
            return [
                lease
                for lease in self._leases.values()
                if owner is None or lease.owner == owner
            ]

    @property
    def count(self) -> int:
        with self._lock:
            return len(self._leases)

    @property
    def total_bytes(self) -> int:
        with self._lock:
            return sum(lease.size for lease in self._leases.values())


def _cancel_timers(leases) -> None:
    for lease in leases:
        if lease.timer is not None:
            lease.timer.cancel()


class _Customer:
    def __init__(self, customer_id: str):
        self.customer_id = customer_id


class _Processor:
    def __init__(self):
        self.cache: list[_Customer] = []

    def process(self, customer: _Customer) -> None:
        self.cache.append(customer)


def churn_objects(count: int) -> int:
    """Build a throwaway graph of ``count`` small objects.

    Creates allocator and GC pressure; the graph is unreachable on return.
    """
    processor = _Processor()
    for _ in range(count):
        processor.process(_Customer(uuid.uuid4().hex))
    return len(processor.cache)


class RetainedMemory:
    """Memory that is never released for the life of the process."""

    def __init__(self):
        self._lock = threading.Lock()
        self._retained: list[_Processor] = []

    def retain(self, kilobytes: int) -> None:
        processor = _Processor()
        # Roughly 100 bytes per cached customer.
        for _ in range(max(1, kilobytes * 1000 // 100)):
            processor.process(_Customer(uuid.uuid4().hex))

        with self._lock:
            self._retained.append(processor)

    @property
    def count(self) -> int:
        with self._lock:
            return len(self._retained)


# ---------------------------------------------------------------------------
# Simulated queries
# ---------------------------------------------------------------------------

def pretend_query_customer(customer_id: str, delay: float) -> _Customer:
    """Stand-in for a database lookup that takes ``delay`` seconds."""
    time.sleep(delay)
    return _Customer(customer_id)


async def pretend_query_customer_async(
    customer_id: str, delay: float
) -> _Customer:
    await asyncio.sleep(delay)
    return _Customer(customer_id)


# ---------------------------------------------------------------------------
# Exceptions
# ---------------------------------------------------------------------------

def raise_burst(count: int, burst_logger: logging.Logger) -> int:
    """Raise and log ``count`` exceptions; returns how many were raised."""
    for i in range(count):
        try:
            raise RuntimeError("Burst exception scenario")
        except RuntimeError:
            burst_logger.error(
                "Burst exception iteration %s", i, exc_info=True
            )
    return count


# ---------------------------------------------------------------------------
# Deadlock
# ---------------------------------------------------------------------------

@dataclass
class DeadlockTrap:
    first_lock: threading.Lock
    second_lock: threading.Lock
    threads: list[threading.Thread] = field(default_factory=list)


def start_deadlock(
    aux_threads: int = 300,
    settle_seconds: float = 5.0,
    hold_seconds: float = 2.0,
) -> DeadlockTrap:
    """Produce a real deadlock for thread-dump tooling to find.

    A starter thread takes the first lock and spawns a competitor that takes
    the second lock and then waits on the first.  After ``hold_seconds`` the
    starter waits on the second lock, closing the cycle.  Once
    ``settle_seconds`` have passed the caller piles ``aux_threads`` more
    threads onto the first lock.

    Nothing here is ever cancelled or joined; the threads stay blocked until
    the process exits.
    """
    trap = DeadlockTrap(threading.Lock(), threading.Lock())

    def _competitor():
        with trap.second_lock:
            trap.first_lock.acquire()

    def _starter():
        with trap.first_lock:
            competitor = threading.Thread(
                target=_competitor, name="deadlock-competitor", daemon=True
            )
            trap.threads.append(competitor)
            competitor.start()

            time.sleep(hold_seconds)
            trap.second_lock.acquire()

    starter = threading.Thread(
        target=_starter, name="deadlock-starter", daemon=True
    )
    trap.threads.append(starter)
    starter.start()

    time.sleep(settle_seconds)

    for i in range(aux_threads):
        waiter = threading.Thread(
            target=trap.first_lock.acquire,
            name=f"deadlock-waiter-{i}",
            daemon=True,
        )
        trap.threads.append(waiter)
        waiter.start()

    logger.warning(
        "Deadlock trap started with %s waiting threads",
        aux_threads,
        extra={"thread_count": len(trap.threads)},
    )
    return trap
