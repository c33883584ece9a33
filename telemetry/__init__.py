"""Rolling telemetry buffers and metric aggregation."""

from .aggregator import MetricsAggregator
from .rolling import CumulativeAverage, RollingSeries

__all__ = ["CumulativeAverage", "MetricsAggregator", "RollingSeries"]
