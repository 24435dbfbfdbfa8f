"""CloudWatch metrics collection for the fault-injection service."""

import logging
import os
from datetime import datetime, timezone
from typing import Optional

logger = logging.getLogger(__name__)


class MetricsCollector:
    """Collects metrics, logs each one and optionally ships them to CloudWatch."""

    def __init__(self, namespace="Faultbox", enabled=None):
        """
        Initialize the metrics collector.

        Args:
            namespace: CloudWatch metrics namespace
            enabled: Whether metrics are enabled (defaults to env var)
        """
        self.namespace = namespace
        self.enabled = (
            enabled
            if enabled is not None
            else os.getenv("ENABLE_CLOUDWATCH_METRICS", "false").lower()
            == "true"
        )
        self.client = None

        if self.enabled:
            try:
                import boto3

                self.client = boto3.client(
                    "cloudwatch",
                    region_name=os.getenv("AWS_REGION", "us-east-1"),
                )
                logger.info(
                    "CloudWatch metrics enabled",
                    extra={"namespace": self.namespace},
                )
            except Exception as e:
                logger.error(
                    "Failed to initialize CloudWatch client",
                    extra={"error": str(e)},
                )
                self.enabled = False
        else:
            logger.debug(
                "CloudWatch metrics disabled - metrics will be logged only"
            )

    def put_metric(
        self,
        metric_name: str,
        value: float,
        unit: str = "None",
        dimensions: Optional[dict] = None,
    ):
        """
        Send a metric to CloudWatch.

        Args:
            metric_name: Name of the metric
            value: Metric value
            unit: Unit of measurement (Count, Milliseconds, etc.)
            dimensions: Optional dimensions for the metric
        """
        dimensions = dimensions or {}

        # Always log metrics locally
        logger.info(
            f"Metric: {metric_name}",
            extra={
                "metric_name": metric_name,
                "value": value,
                "unit": unit,
                "dimensions": dimensions,
            },
        )

        if self.enabled and self.client:
            try:
                metric_data = {
                    "MetricName": metric_name,
                    "Value": value,
                    "Unit": unit,
                    "Timestamp": datetime.now(timezone.utc),
                }

                if dimensions:
                    metric_data["Dimensions"] = [
                        {"Name": k, "Value": str(v)}
                        for k, v in dimensions.items()
                    ]

                self.client.put_metric_data(
                    Namespace=self.namespace, MetricData=[metric_data]
                )
            except Exception as e:
                logger.error(
                    "Failed to send metric to CloudWatch",
                    extra={
                        "metric_name": metric_name,
                        "error": str(e),
                    },
                )

    def record_request(
        self,
        endpoint: str,
        method: str,
        status_code: int,
        latency_ms: float,
    ):
        """
        Record metrics for an HTTP request.

        Args:
            endpoint: The request endpoint
            method: HTTP method
            status_code: HTTP status code
            latency_ms: Request latency in milliseconds
        """
        dimensions = {
            "Endpoint": endpoint,
            "Method": method,
            "StatusCode": str(status_code),
        }

        self.put_metric(
            "RequestLatency",
            latency_ms,
            unit="Milliseconds",
            dimensions=dimensions,
        )
        self.put_metric("RequestCount", 1, unit="Count", dimensions=dimensions)

        if 500 <= status_code < 600:
            self.put_metric(
                "ErrorCount", 1, unit="Count", dimensions=dimensions
            )

    def record_dependency_call(
        self, dependency: str, latency_ms: float, success: bool
    ):
        """
        Record metrics for a dependency call (the scenario target).

        Args:
            dependency: Name of the dependency
            latency_ms: Call latency in milliseconds
            success: Whether the call succeeded
        """
        dimensions = {"Dependency": dependency, "Success": str(success)}

        self.put_metric(
            "DependencyLatency",
            latency_ms,
            unit="Milliseconds",
            dimensions=dimensions,
        )

        if not success:
            self.put_metric(
                "DependencyError", 1, unit="Count", dimensions=dimensions
            )

    def record_scenario_transition(self, scenario: str, outcome: str):
        """
        Record a scenario starting or completing.

        Args:
            scenario: Scenario kind name
            outcome: "started", "finished", "cancelled" or "error"
        """
        self.put_metric(
            "ScenarioTransition",
            1,
            unit="Count",
            dimensions={"Scenario": scenario, "Outcome": outcome},
        )

    def record_scenario_batch(self, scenario: str, total: int, failed: int):
        """
        Record the outcome of one runner batch.

        Args:
            scenario: Scenario kind name
            total: Requests issued in the batch
            failed: Requests that failed
        """
        dimensions = {"Scenario": scenario}
        self.put_metric(
            "ScenarioRequests", total, unit="Count", dimensions=dimensions
        )
        if failed:
            self.put_metric(
                "ScenarioFailures", failed, unit="Count", dimensions=dimensions
            )

    def record_memory_held(self, owner: str, size_bytes: int):
        """
        Record bytes currently held by memory leases.

        Args:
            owner: Lease owner tag
            size_bytes: Bytes held
        """
        self.put_metric(
            "MemoryLeaseBytes",
            size_bytes,
            unit="Bytes",
            dimensions={"Owner": owner},
        )

    def record_health_check(self, component: str, healthy: bool):
        """
        Record health check status for a component.

        Args:
            component: Component name (e.g., 'scenarios', 'target')
            healthy: Whether the component is healthy
        """
        self.put_metric(
            "HealthStatus",
            1 if healthy else 0,
            unit="Count",
            dimensions={"Component": component},
        )


# Global metrics collector instance
metrics_collector = MetricsCollector()
