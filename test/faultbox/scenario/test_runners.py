import threading

import requests

from faultbox.scenario import runners
from faultbox.scenario.cancellation import CancellationToken
from faultbox.scenario.models import (
    CpuSpikeConfig,
    MemoryLeakConfig,
    ProbabilisticFailureConfig,
    ProbabilisticLatencyConfig,
)
from faultbox.scenario.primitives import MemoryLeaseStore
from faultbox.scenario.runners import RunContext


class FakeTarget:
    base_url = "http://target.test"

    def __init__(self, error=None):
        self.error = error
        self.calls = []
        self._lock = threading.Lock()

    def _record(self, name, config):
        with self._lock:
            self.calls.append((name, config))
        if self.error is not None:
            raise self.error
        return {}

    def probabilistic_failure(self, config):
        return self._record("probabilistic_failure", config)

    def probabilistic_latency(self, config):
        return self._record("probabilistic_latency", config)

    def cpu_spike(self, config):
        return self._record("cpu_spike", config)

    def memory_leak(self, config):
        return self._record("memory_leak", config)

    def release_memory(self):
        return self._record("release_memory", None)


def context(target=None):
    return RunContext(run_id="test-run", leases=MemoryLeaseStore(), target=target)


class TestBatchRunners:
    def test_failures_are_absorbed_and_logged(self, caplog):
        caplog.set_level("WARNING", logger="faultbox.scenario.runners")
        token = CancellationToken.with_deadline(0.3)

        runners.run_probabilistic_failure(
            ProbabilisticFailureConfig(1, 5, 100), token, context()
        )

        assert token.cancelled
        assert any(
            "failed request(s)" in rec.getMessage() for rec in caplog.records
        )

    def test_batch_sends_requests_per_second_to_target(self):
        target = FakeTarget()
        token = CancellationToken.with_deadline(0.5)

        runners.run_probabilistic_latency(
            ProbabilisticLatencyConfig(1, 4, 50, 10), token, context(target)
        )

        assert len(target.calls) == 4
        assert {name for name, _ in target.calls} == {"probabilistic_latency"}

    def test_target_errors_do_not_stop_the_run(self):
        target = FakeTarget(error=requests.ConnectionError("refused"))
        token = CancellationToken.with_deadline(0.3)

        runners.run_probabilistic_failure(
            ProbabilisticFailureConfig(1, 3, 0), token, context(target)
        )

        assert len(target.calls) == 3


class TestTickRunners:
    def test_cpu_spike_forces_trigger_on_target(self, monkeypatch):
        monkeypatch.setattr(runners, "should_trigger", lambda pct: True)
        target = FakeTarget()
        token = CancellationToken.with_deadline(0.3)

        runners.run_cpu_spike(CpuSpikeConfig(1, 1, 30, 5), token, context(target))

        assert len(target.calls) == 1
        name, sent = target.calls[0]
        assert name == "cpu_spike"
        assert sent.trigger_percentage == 100
        assert sent.spike_seconds == 5

    def test_no_trigger_no_call(self):
        target = FakeTarget()
        token = CancellationToken.with_deadline(0.2)

        runners.run_memory_leak(
            MemoryLeakConfig(1, 1, 0, 1, 1), token, context(target)
        )

        assert target.calls == []

    def test_transport_error_is_logged(self, caplog, monkeypatch):
        monkeypatch.setattr(runners, "should_trigger", lambda pct: True)
        caplog.set_level("WARNING", logger="faultbox.scenario.runners")
        target = FakeTarget(error=requests.Timeout("slow"))
        token = CancellationToken.with_deadline(0.2)

        runners.run_memory_leak(
            MemoryLeakConfig(1, 1, 100, 1, 1), token, context(target)
        )

        assert any(
            "target call failed" in rec.getMessage() for rec in caplog.records
        )

    def test_local_memory_leak_holds_for_run(self):
        ctx = context()
        token = CancellationToken.with_deadline(0.2)

        runners.run_memory_leak(MemoryLeakConfig(1, 1, 100, 1, 60), token, ctx)

        assert [lease.owner for lease in ctx.leases.leases()] == ["test-run"]

    def test_local_cpu_spike_stops_with_token(self):
        token = CancellationToken.with_deadline(0.2)

        runners.run_cpu_spike(CpuSpikeConfig(1, 1, 100, 30), token, context())

        assert token.cancelled
