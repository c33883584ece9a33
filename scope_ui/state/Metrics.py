from __future__ import annotations

"""Metrics model exposed to QML chart panels."""

from typing import Dict, Iterable, List, Optional

from PySide6.QtCore import QObject, Property, Signal

from Chord_Scope.graph.types import SnapshotNode
from Chord_Scope.stream.protocol import HaikuEvent, PollData, ScalarEvent
from telemetry import MetricsAggregator
from telemetry.aggregator import METRICS, OP_KINDS


def _series_key(metric: str, kind: str) -> str:
    return f"{metric}/{kind}"


class MetricsModel(QObject):
    """Report cumulative averages, backend totals and recent outcomes."""

    seriesChanged = Signal(dict)
    averagesChanged = Signal(dict)
    totalItemsChanged = Signal(int)
    recentChanged = Signal(list)

    def __init__(self, aggregator: Optional[MetricsAggregator] = None) -> None:
        super().__init__()
        self._agg = aggregator if aggregator is not None else MetricsAggregator()

    @property
    def aggregator(self) -> MetricsAggregator:
        return self._agg

    # ------------------------------------------------------------------
    def _get_series(self) -> Dict[str, List[float]]:
        return {
            _series_key(m, k): self._agg.series(m, k) for m in METRICS for k in OP_KINDS
        }

    series = Property(dict, _get_series, notify=seriesChanged)

    def _get_averages(self) -> Dict[str, float]:
        return {
            _series_key(m, k): self._agg.average(m, k) for m in METRICS for k in OP_KINDS
        }

    averages = Property(dict, _get_averages, notify=averagesChanged)

    def _get_total_items(self) -> int:
        return self._agg.total_items

    totalItems = Property(int, _get_total_items, notify=totalItemsChanged)

    def _get_recent(self) -> List[str]:
        return self._agg.recent_outcomes()

    recentOutcomes = Property(list, _get_recent, notify=recentChanged)

    # ------------------------------------------------------------------
    def _emit_series(self) -> None:
        self.seriesChanged.emit(self._get_series())
        self.averagesChanged.emit(self._get_averages())

    def _set_total_items(self, nodes: Iterable[SnapshotNode]) -> None:
        before = self._agg.total_items
        self._agg.apply_snapshot(n.item_count for n in nodes)
        if self._agg.total_items != before:
            self.totalItemsChanged.emit(self._agg.total_items)

    def record_event(self, event: ScalarEvent) -> None:
        """Accumulate a single operation measurement."""
        if self._agg.record_event(event.metric, event.kind, event.value) is not None:
            self._emit_series()

    def record_haiku(self, event: HaikuEvent) -> None:
        """Store a haiku outcome and its latency if present."""
        self._agg.record_outcome(event.text, event.latency_ms)
        self.recentChanged.emit(self._agg.recent_outcomes())
        if event.latency_ms is not None:
            self._emit_series()

    def apply_topology(self, nodes: Iterable[SnapshotNode]) -> None:
        """Replace the displayed total item count from a bare node snapshot."""
        self._set_total_items(nodes)

    def apply_poll(self, poll: PollData) -> None:
        """Replace displayed totals with the aggregates carried by ``poll``."""
        before = self._agg.total_items
        agg = poll.aggregates
        self._agg.apply_snapshot(
            (n.item_count for n in poll.nodes),
            averages={k: agg.average(k) for k in OP_KINDS},
            totals={k: agg.totals(k) for k in OP_KINDS},
        )
        if self._agg.total_items != before:
            self.totalItemsChanged.emit(self._agg.total_items)
        self._emit_series()

    def reset(self) -> None:
        """Forget all metrics, e.g. at the start of a new session."""
        self._agg.reset()
        self._emit_series()
        self.totalItemsChanged.emit(0)
        self.recentChanged.emit([])

    def summary(self, metric: str, kind: str) -> Dict[str, float]:
        """Return mean / p50 / p95 for the raw samples of ``(metric, kind)``."""
        return self._agg.summary(metric, kind)
