"""Diagnostic blueprint – single-shot fault endpoints.

Each request reproduces one pathology and returns a ``success:<name>``
marker so load scripts can tell which endpoint answered.

Endpoints
---------
GET /api/diag/deadlock
GET /api/diag/highcpu/<milliseconds>
GET /api/diag/memleak/<kilobytes>
GET /api/diag/memspike/<seconds>
GET /api/diag/exception
GET /api/diag/exceptionburst/<duration_seconds>/<exceptions_per_second>
GET /api/diag/probabilisticload/<duration_seconds>/<requests_per_second>/<exception_percentage>
GET /api/diag/random-latency?maxLatencyInMilliSeconds=
GET /api/diag/random-exception?exceptionPercentage=
GET /api/diag/high-mem?secondsToKeepMem=&keepMemSize=
GET /api/diag/high-cpu?millisecondsToKeepHighCPU=
GET /api/diag/taskwait
GET /api/diag/tasksleepwait
GET /api/diag/taskasyncwait
"""

import gc
import logging
import random
import threading
import time
from concurrent.futures import ThreadPoolExecutor

from flask import Blueprint, current_app, request

from faultbox.scenario.cancellation import CancellationToken
from faultbox.scenario.errors import SimulatedFailure
from faultbox.scenario.primitives import (
    allocate_block,
    busy_wait,
    churn_objects,
    pretend_query_customer,
    pretend_query_customer_async,
    raise_burst,
    simulate_request,
    start_deadlock,
)

logger = logging.getLogger(__name__)

diag = Blueprint("diag", __name__, url_prefix="/api/diag")

MIN_MEMLEAK_KB = 1
MAX_MEMLEAK_KB = 10240


def _out_of_range(name, low, high):
    return f"{name} must be between {low} and {high}.", 400


def _in_range(value, low, high):
    return value is not None and low <= value <= high


@diag.get("/deadlock")
def deadlock():
    """Leave two threads deadlocked plus a pile of threads waiting on them.

    Returns once the trap has settled; the threads are never released.
    """
    start_deadlock(
        aux_threads=current_app.config["DEADLOCK_AUX_THREADS"],
        settle_seconds=current_app.config["DEADLOCK_SETTLE_SECONDS"],
        hold_seconds=current_app.config["DEADLOCK_HOLD_SECONDS"],
    )
    return "success:deadlock"


@diag.get("/highcpu/<int:milliseconds>")
def highcpu(milliseconds):
    busy_wait(milliseconds / 1000.0)
    return "success:highcpu"


@diag.get("/memleak/<int:kilobytes>")
def memleak(kilobytes):
    if not _in_range(kilobytes, MIN_MEMLEAK_KB, MAX_MEMLEAK_KB):
        return _out_of_range("kilobytes", MIN_MEMLEAK_KB, MAX_MEMLEAK_KB)

    current_app.extensions["retained_memory"].retain(kilobytes)
    return f"success:memleak ({kilobytes}KB retained)"


@diag.get("/memspike/<int:seconds>")
def memspike(seconds):
    """Churn large object graphs in rounds until ``seconds`` have passed."""
    if not _in_range(seconds, 1, 1800):
        return _out_of_range("seconds", 1, 1800)

    objects = current_app.config["MEMSPIKE_OBJECTS"]
    pause = current_app.config["MEMSPIKE_PAUSE_SECONDS"]
    deadline = time.monotonic() + seconds

    while time.monotonic() < deadline:
        churn_objects(objects)
        time.sleep(pause)
        gc.collect()
        time.sleep(pause)

    return "success:memspike"


@diag.get("/exception")
def exception():
    raise RuntimeError("bad, bad code")


@diag.get("/exceptionburst/<int:duration_seconds>/<int:exceptions_per_second>")
def exceptionburst(duration_seconds, exceptions_per_second):
    if not _in_range(duration_seconds, 1, 1800):
        return _out_of_range("durationSeconds", 1, 1800)
    if not _in_range(exceptions_per_second, 1, 1000):
        return _out_of_range("exceptionsPerSecond", 1, 1000)

    total = 0
    end = time.monotonic() + duration_seconds
    while time.monotonic() < end:
        total += raise_burst(exceptions_per_second, logger)
        time.sleep(1)

    return f"success:exceptionburst ({total} exceptions generated)"


@diag.get(
    "/probabilisticload/<int:duration_seconds>"
    "/<int:requests_per_second>/<int:exception_percentage>"
)
def probabilisticload(duration_seconds, requests_per_second, exception_percentage):
    """Run one-second batches of slow simulated requests for a while.

    Every request waits on a simulated backend and then fails with
    ``exception_percentage`` probability.  Failures are logged and counted.
    """
    if not _in_range(duration_seconds, 1, 1800):
        return _out_of_range("durationSeconds", 1, 1800)
    if not _in_range(requests_per_second, 1, 1000):
        return _out_of_range("requestsPerSecond", 1, 1000)
    if not _in_range(exception_percentage, 0, 100):
        return _out_of_range("exceptionPercentage", 0, 100)

    backend_delay = current_app.config["PROBABILISTIC_LOAD_BACKEND_SECONDS"]
    token = CancellationToken.with_deadline(duration_seconds)
    counts = {"total": 0, "failures": 0}
    counts_lock = threading.Lock()

    def _one_request():
        with counts_lock:
            counts["total"] += 1
        try:
            simulate_request(exception_percentage, token, backend_delay)
        except SimulatedFailure:
            with counts_lock:
                counts["failures"] += 1
            logger.error(
                "Probabilistic load request failed (total=%s, failures=%s)",
                counts["total"],
                counts["failures"],
                exc_info=True,
            )

    try:
        with ThreadPoolExecutor(max_workers=requests_per_second) as pool:
            while not token.cancelled:
                window_start = time.monotonic()
                list(pool.map(lambda _: _one_request(), range(requests_per_second)))

                remaining = 1.0 - (time.monotonic() - window_start)
                if remaining > 0:
                    token.wait(remaining)
    finally:
        token.dispose()

    successes = counts["total"] - counts["failures"]
    return (
        f"success:probabilisticload (durationSeconds={duration_seconds}, "
        f"totalRequests={counts['total']}, successes={successes}, "
        f"failures={counts['failures']})"
    )


@diag.get("/random-latency")
def random_latency():
    max_latency = request.args.get("maxLatencyInMilliSeconds", type=int)
    if not _in_range(max_latency, 0, 30000):
        return _out_of_range("maxLatencyInMilliSeconds", 0, 30000)

    actual = random.randint(0, max_latency)
    time.sleep(actual / 1000.0)

    logger.info(
        "RandomLatency executed with max=%sms, actual=%sms",
        max_latency,
        actual,
    )
    return f"success:randomlatency (max={max_latency}ms, actual={actual}ms)"


@diag.get("/random-exception")
def random_exception():
    percentage = request.args.get("exceptionPercentage", type=int)
    if not _in_range(percentage, 0, 100):
        return _out_of_range("exceptionPercentage", 0, 100)

    roll = random.randrange(100)
    if roll < percentage:
        logger.warning(
            "RandomException triggered (percentage=%s%%, roll=%s)",
            percentage,
            roll,
        )
        raise RuntimeError(
            f"Random exception triggered (exceptionPercentage={percentage}%)"
        )

    return (
        f"success:randomexception (exceptionPercentage={percentage}%, "
        "no exception)"
    )


@diag.get("/high-mem")
def high_mem():
    seconds = request.args.get("secondsToKeepMem", type=int)
    megabytes = request.args.get("keepMemSize", type=int)
    if not _in_range(seconds, 1, 300):
        return _out_of_range("secondsToKeepMem", 1, 300)
    if not _in_range(megabytes, 1, 2048):
        return _out_of_range("keepMemSize", 1, 2048)

    logger.info(
        "HighMem started: allocating %sMB for %s seconds", megabytes, seconds
    )
    block = allocate_block(megabytes)
    time.sleep(seconds)
    del block

    return f"success:highmem (kept {megabytes}MB for {seconds} seconds)"


@diag.get("/high-cpu")
def high_cpu():
    milliseconds = request.args.get("millisecondsToKeepHighCPU", type=int)
    if not _in_range(milliseconds, 100, 60000):
        return _out_of_range("millisecondsToKeepHighCPU", 100, 60000)

    start = time.perf_counter()
    busy_wait(milliseconds / 1000.0)
    elapsed_ms = int((time.perf_counter() - start) * 1000)

    logger.info("HighCPU completed after %sms", elapsed_ms)
    return f"success:highcpu (busy for {elapsed_ms}ms)"


@diag.get("/taskwait")
def taskwait():
    """Block this request thread on a query running in the shared pool.

    Under load every gthread worker ends up parked here, which starves the
    server of request threads.
    """
    future = current_app.extensions["query_executor"].submit(
        pretend_query_customer,
        "Dana",
        current_app.config["SIMULATED_QUERY_SECONDS"],
    )
    future.result()
    return "success:taskwait"


@diag.get("/tasksleepwait")
def tasksleepwait():
    """Poll the query in a sleep loop; the thread is held all the same."""
    future = current_app.extensions["query_executor"].submit(
        pretend_query_customer,
        "Dana",
        current_app.config["SIMULATED_QUERY_SECONDS"],
    )
    while not future.done():
        time.sleep(0.01)
    return "success:tasksleepwait"


@diag.get("/taskasyncwait")
async def taskasyncwait():
    await pretend_query_customer_async(
        "Dana", current_app.config["SIMULATED_QUERY_SECONDS"]
    )
    return "success:taskasyncwait"
