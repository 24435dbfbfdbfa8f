import json
import logging
from unittest.mock import MagicMock

from faultbox.observability.logging_config import CustomJsonFormatter
from faultbox.observability.metrics import MetricsCollector


class TestMetricsCollector:
    def test_disabled_only_logs(self, caplog):
        caplog.set_level("INFO", logger="faultbox.observability.metrics")
        collector = MetricsCollector(enabled=False)

        collector.record_scenario_transition("CpuSpike", "started")

        assert collector.client is None
        assert any(
            rec.getMessage() == "Metric: ScenarioTransition"
            for rec in caplog.records
        )

    def test_enabled_sends_to_cloudwatch(self):
        collector = MetricsCollector(enabled=False)
        collector.enabled = True
        collector.client = MagicMock()

        collector.record_scenario_batch("ProbabilisticFailure", 10, 3)

        calls = collector.client.put_metric_data.call_args_list
        names = [c.kwargs["MetricData"][0]["MetricName"] for c in calls]
        assert names == ["ScenarioRequests", "ScenarioFailures"]
        assert all(c.kwargs["Namespace"] == "Faultbox" for c in calls)

    def test_cloudwatch_errors_are_logged(self, caplog):
        collector = MetricsCollector(enabled=False)
        collector.enabled = True
        collector.client = MagicMock()
        collector.client.put_metric_data.side_effect = RuntimeError("denied")

        collector.record_health_check("target", False)

        assert any(
            "Failed to send metric" in rec.getMessage()
            for rec in caplog.records
        )


class TestJsonFormatter:
    def test_adds_service_and_thread(self):
        formatter = CustomJsonFormatter("%(message)s")
        record = logging.LogRecord(
            "faultbox.test", logging.WARNING, __file__, 1, "hello", None, None
        )
        record.scenario = "CpuSpike"

        data = json.loads(formatter.format(record))

        assert data["service"] == "faultbox"
        assert data["level"] == "WARNING"
        assert data["scenario"] == "CpuSpike"
        assert data["thread"] == record.threadName
