import time

from faultbox.scenario.cancellation import CancellationToken


class TestCancellationToken:
    def test_cancel(self):
        token = CancellationToken()

        assert not token.cancelled
        token.cancel()

        assert token.cancelled
        assert not token.expired
        assert token.wait(0)

    def test_deadline_expires(self):
        token = CancellationToken.with_deadline(0.05)

        assert not token.expired
        assert token.wait(2)
        assert token.cancelled
        assert token.expired

    def test_wait_times_out(self):
        token = CancellationToken()

        start = time.monotonic()
        assert token.wait(0.05) is False
        assert time.monotonic() - start >= 0.04

    def test_dispose_disarms_deadline(self):
        token = CancellationToken.with_deadline(0.05)
        token.dispose()

        assert token.wait(0.15) is False
