"""
In-process metrics recording for the elastic balancer.

The balancer records gauges at fixed points of a cycle. Shipping them
anywhere else (StatsD, Prometheus, logs) is done by export handlers that
receive every recorded point.
"""

import threading
from collections import deque
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Dict, List, Optional, Callable, Any
import logging

logger = logging.getLogger(__name__)


SCORE_METRIC = "balance.score"
CONTAINERS_KILLED_METRIC = "balance.containers.killed"
CONTAINERS_STARTED_METRIC = "balance.containers.started"


class MetricType(Enum):
    """Types of metrics that can be collected"""
    GAUGE = "gauge"


@dataclass
class MetricPoint:
    """A single metric data point"""
    timestamp: datetime
    value: float
    labels: Dict[str, str] = field(default_factory=dict)


@dataclass
class MetricSeries:
    """A time series of metric points"""
    name: str
    metric_type: MetricType
    description: str = ""
    points: deque = field(default_factory=lambda: deque(maxlen=1000))

    def add_point(self, value: float, labels: Optional[Dict[str, str]] = None):
        """Add a metric point to the series"""
        point = MetricPoint(
            timestamp=datetime.now(timezone.utc),
            value=value,
            labels=labels or {}
        )
        self.points.append(point)

    def get_latest_value(self) -> Optional[float]:
        """Get the most recent metric value"""
        return self.points[-1].value if self.points else None


class BalancerMetrics:
    """
    Gauge recorder used by the balancer.

    Metric names are recorded under ``<prefix>.<name>``, e.g.
    ``elastic_balancer.balance.score``.
    """

    def __init__(self, prefix: str = "elastic_balancer", enabled: bool = True):
        self.prefix = prefix
        self.enabled = enabled
        self._metrics: Dict[str, MetricSeries] = {}
        self._export_handlers: List[Callable[[str, float], None]] = []
        self._lock = threading.RLock()

    def full_name(self, name: str) -> str:
        return f"{self.prefix}.{name}" if self.prefix else name

    def gauge(self, name: str, value: float, labels: Optional[Dict[str, str]] = None):
        """Record a gauge value and forward it to export handlers"""
        if not self.enabled:
            return

        metric_name = self.full_name(name)
        with self._lock:
            series = self._metrics.get(metric_name)
            if series is None:
                series = MetricSeries(name=metric_name, metric_type=MetricType.GAUGE)
                self._metrics[metric_name] = series
            series.add_point(value, labels)
            handlers = list(self._export_handlers)

        for handler in handlers:
            try:
                handler(metric_name, value)
            except Exception as e:
                logger.error(f"Error in metrics export handler: {e}")

    def add_export_handler(self, handler: Callable[[str, float], None]):
        """Register a callable receiving ``(metric_name, value)`` for each point"""
        with self._lock:
            self._export_handlers.append(handler)

    def get_metric(self, name: str) -> Optional[MetricSeries]:
        """Get a metric series by short or fully prefixed name"""
        with self._lock:
            return self._metrics.get(name) or self._metrics.get(self.full_name(name))

    def get_latest(self, name: str) -> Optional[float]:
        series = self.get_metric(name)
        return series.get_latest_value() if series else None

    def get_all_metrics(self) -> Dict[str, MetricSeries]:
        """Get all metric series"""
        with self._lock:
            return self._metrics.copy()

    def export_metrics(self, format_type: str = "json") -> Dict[str, Any]:
        """Export latest values in the specified format"""
        with self._lock:
            latest = {
                name: series.get_latest_value()
                for name, series in self._metrics.items()
                if series.points
            }

        if format_type == "json":
            return latest
        elif format_type == "prometheus":
            return self._format_prometheus_metrics(latest)
        else:
            raise ValueError(f"Unsupported export format: {format_type}")

    def _format_prometheus_metrics(self, latest: Dict[str, float]) -> Dict[str, str]:
        """Format metrics in Prometheus exposition format"""
        prometheus_lines = []
        for metric_name, value in sorted(latest.items()):
            prom_name = metric_name.replace(".", "_")
            prometheus_lines.append(f"# TYPE {prom_name} gauge")
            prometheus_lines.append(f"{prom_name} {value}")

        return {"prometheus_format": "\n".join(prometheus_lines)}
