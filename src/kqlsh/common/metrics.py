"""
Prometheus instrumentation for kqlsh components.

Components record through a MetricsClient so that ``service`` and
``component`` labels are filled in once, and nothing outside
metrics_registry touches prometheus_client objects.

Usage:
    from kqlsh.common.metrics import create_component_metrics

    metrics = create_component_metrics("query")
    metrics.increment("messages_scanned_total", value=250, labels={"topic": "quotes"})

    with metrics.timer("command_duration_seconds", labels={"module": "kafka", "command": "kql"}):
        runner.run(line)
"""

import time
from contextlib import contextmanager
from typing import Dict, Generator, Optional

from kqlsh.common.metrics_registry import get_counter, get_histogram


class MetricsClient:
    """Records pre-registered metrics with a fixed set of default labels."""

    def __init__(self, default_labels: Optional[Dict[str, str]] = None):
        self.default_labels = dict(default_labels or {})

    def _labels(self, labels: Optional[Dict[str, str]]) -> Dict[str, str]:
        return {**self.default_labels, **(labels or {})}

    def increment(self, metric_name: str, value: int = 1, labels: Optional[Dict[str, str]] = None) -> None:
        """
        Increment a counter.

        Args:
            metric_name: Registry name, without the kqlsh_ prefix
            value: Amount to add; zero is a no-op
            labels: Extra labels on top of the defaults
        """
        if value:
            get_counter(metric_name).labels(**self._labels(labels)).inc(value)

    def histogram(self, metric_name: str, value: float, labels: Optional[Dict[str, str]] = None) -> None:
        get_histogram(metric_name).labels(**self._labels(labels)).observe(value)

    @contextmanager
    def timer(self, metric_name: str, labels: Optional[Dict[str, str]] = None) -> Generator[None, None, None]:
        """Observe the block's duration in seconds, whether or not it raises."""
        started = time.perf_counter()
        try:
            yield
        finally:
            self.histogram(metric_name, time.perf_counter() - started, labels)


def create_component_metrics(component: str, service: str = "kqlsh") -> MetricsClient:
    """Metrics client labelled for one component (e.g. "query", "shell", "sinks")."""
    return MetricsClient(default_labels={"service": service, "component": component})
