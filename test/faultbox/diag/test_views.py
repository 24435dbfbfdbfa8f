import time

import pytest

from lib.test import ViewTestMixin


class TestDiag(ViewTestMixin):
    def test_highcpu(self):
        response = self.client.get("/api/diag/highcpu/10")

        assert response.status_code == 200
        assert response.data == b"success:highcpu"

    def test_memleak_retains(self):
        retained = self.app.extensions["retained_memory"]
        before = retained.count

        response = self.client.get("/api/diag/memleak/1")

        assert response.status_code == 200
        assert retained.count == before + 1

    def test_memleak_out_of_range(self):
        response = self.client.get("/api/diag/memleak/20000")

        assert response.status_code == 400
        assert response.data == b"kilobytes must be between 1 and 10240."

    def test_memspike(self):
        response = self.client.get("/api/diag/memspike/1")

        assert response.data == b"success:memspike"

    def test_exception_propagates(self):
        with pytest.raises(RuntimeError, match="bad, bad code"):
            self.client.get("/api/diag/exception")

    def test_exceptionburst(self, caplog):
        caplog.set_level("ERROR", logger="faultbox.diag.views")

        response = self.client.get("/api/diag/exceptionburst/1/3")

        assert response.status_code == 200
        assert b"success:exceptionburst" in response.data
        assert len(caplog.records) >= 3

    def test_probabilisticload_all_fail(self):
        response = self.client.get("/api/diag/probabilisticload/1/2/100")

        body = response.get_data(as_text=True)
        assert response.status_code == 200
        assert "successes=0" in body
        assert "totalRequests=0" not in body

    def test_probabilisticload_out_of_range(self):
        response = self.client.get("/api/diag/probabilisticload/1/2/101")

        assert response.status_code == 400

    def test_random_latency(self):
        response = self.client.get(
            "/api/diag/random-latency?maxLatencyInMilliSeconds=0"
        )

        assert response.data == b"success:randomlatency (max=0ms, actual=0ms)"

    def test_random_latency_requires_value(self):
        response = self.client.get("/api/diag/random-latency")

        assert response.status_code == 400

    def test_random_exception_never(self):
        response = self.client.get(
            "/api/diag/random-exception?exceptionPercentage=0"
        )

        assert response.status_code == 200
        assert b"no exception" in response.data

    def test_random_exception_always(self):
        with pytest.raises(RuntimeError, match="Random exception triggered"):
            self.client.get("/api/diag/random-exception?exceptionPercentage=100")

    def test_high_mem(self):
        response = self.client.get(
            "/api/diag/high-mem?secondsToKeepMem=1&keepMemSize=1"
        )

        assert response.data == b"success:highmem (kept 1MB for 1 seconds)"

    def test_high_cpu_bounds(self):
        response = self.client.get(
            "/api/diag/high-cpu?millisecondsToKeepHighCPU=50"
        )

        assert response.status_code == 400

    def test_high_cpu(self):
        response = self.client.get(
            "/api/diag/high-cpu?millisecondsToKeepHighCPU=100"
        )

        assert b"success:highcpu (busy for" in response.data

    def test_deadlock(self):
        response = self.client.get("/api/diag/deadlock")

        assert response.data == b"success:deadlock"

    def test_taskwait_blocks_for_query(self):
        start = time.monotonic()
        response = self.client.get("/api/diag/taskwait")

        assert response.data == b"success:taskwait"
        assert time.monotonic() - start >= 0.04

    def test_tasksleepwait_blocks_for_query(self):
        start = time.monotonic()
        response = self.client.get("/api/diag/tasksleepwait")

        assert response.data == b"success:tasksleepwait"
        assert time.monotonic() - start >= 0.04

    def test_taskasyncwait(self):
        response = self.client.get("/api/diag/taskasyncwait")

        assert response.status_code == 200
        assert response.data == b"success:taskasyncwait"
