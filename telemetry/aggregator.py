"""Derive rolling and cumulative ring metrics from stream messages."""

from __future__ import annotations

import logging
from collections import deque
from dataclasses import dataclass, field
from typing import Deque, Dict, Iterable, Optional, Tuple

from .rolling import CumulativeAverage, RollingSeries

logger = logging.getLogger(__name__)

METRICS = ("latency", "pathLength")
OP_KINDS = ("get", "set")
PATH_SOURCES = ("snapshot", "events")

MetricKey = Tuple[str, str]


@dataclass
class MetricsAggregator:
    """Maintain per-event running averages and backend-supplied totals.

    Scalar events feed a :class:`CumulativeAverage` per ``(metric, kind)``
    pair and append the running average to a series, one point per event.
    ``PollData`` aggregates replace the displayed path length values instead
    of accumulating, because the backend totals are already cumulative.

    Path length can arrive through both channels depending on the backend
    revision. ``path_length_source`` selects the one that is displayed; the
    other is ignored so the same operations are never counted twice.

    Parameters
    ----------
    path_length_source:
        ``"snapshot"`` or ``"events"``.
    series_limit:
        Maximum points kept per series, ``None`` for unbounded.
    history_limit:
        Number of recent event outcomes (haiku texts) to retain.
    """

    path_length_source: str = "snapshot"
    series_limit: Optional[int] = None
    history_limit: int = 5
    averages: Dict[MetricKey, CumulativeAverage] = field(init=False)
    average_series: Dict[MetricKey, RollingSeries] = field(init=False)
    raw_series: Dict[MetricKey, RollingSeries] = field(init=False)
    recent: Deque[str] = field(init=False)
    total_items: int = field(init=False, default=0)
    snapshot_totals: Dict[str, Tuple[int, int]] = field(init=False)

    def __post_init__(self) -> None:
        if self.path_length_source not in PATH_SOURCES:
            raise ValueError(f"unknown path length source {self.path_length_source!r}")
        if self.history_limit < 1:
            raise ValueError("history_limit must be >= 1")
        self.reset()

    def reset(self) -> None:
        """Forget every accumulated value."""

        keys = [(m, k) for m in METRICS for k in OP_KINDS]
        self.averages = {key: CumulativeAverage() for key in keys}
        self.average_series = {key: RollingSeries(self.series_limit) for key in keys}
        self.raw_series = {key: RollingSeries(self.series_limit) for key in keys}
        self.recent = deque(maxlen=self.history_limit)
        self.total_items = 0
        self.snapshot_totals = {}

    # ------------------------------------------------------------------
    def _accepts_events(self, metric: str) -> bool:
        return metric != "pathLength" or self.path_length_source == "events"

    def record_event(self, metric: str, kind: str, value: float) -> Optional[float]:
        """Accumulate one scalar measurement.

        Returns the new running average, or ``None`` when the event is
        ignored because snapshots are the source of truth for ``metric``.
        """

        key = (metric, kind)
        if key not in self.averages:
            raise KeyError(f"unknown metric {metric!r}/{kind!r}")
        if not self._accepts_events(metric):
            logger.debug("ignoring %s/%s event; snapshots are authoritative", metric, kind)
            return None
        avg = self.averages[key].add(value)
        self.raw_series[key].append(value)
        self.average_series[key].append(avg)
        return avg

    def record_outcome(self, text: str, latency_ms: Optional[float] = None) -> None:
        """Keep ``text`` in the recent outcome buffer and record its latency."""

        self.recent.append(text)
        if latency_ms is not None:
            self.record_event("latency", "get", latency_ms)

    def apply_snapshot(
        self,
        item_counts: Iterable[int],
        averages: Optional[Dict[str, Optional[float]]] = None,
        totals: Optional[Dict[str, Optional[Tuple[int, int]]]] = None,
    ) -> None:
        """Replace displayed totals with the values from a snapshot.

        ``averages`` maps ``"get"`` / ``"set"`` to the backend average path
        length; ``totals`` maps them to ``(total_len, count)``. Missing or
        ``None`` entries leave the current value untouched.
        """

        self.total_items = sum(item_counts)
        if self.path_length_source != "snapshot":
            if averages or totals:
                logger.debug("ignoring snapshot path lengths; events are authoritative")
            return
        averages = averages or {}
        totals = totals or {}
        for kind in OP_KINDS:
            key = ("pathLength", kind)
            pair = totals.get(kind)
            if pair is not None:
                total, count = pair
                self.snapshot_totals[kind] = (total, count)
                self.averages[key] = CumulativeAverage(total=float(total), count=count)
                if count == 0:
                    continue
                self.average_series[key].append(total / count)
                continue
            avg = averages.get(kind)
            if avg is not None:
                self.average_series[key].append(avg)

    # ------------------------------------------------------------------
    def average(self, metric: str, kind: str) -> float:
        """Return the displayed average for ``(metric, kind)``.

        Snapshot-sourced path lengths report the newest backend value; every
        other key reports its running mean. ``0.0`` before any data arrives.
        """

        key = (metric, kind)
        if metric == "pathLength" and self.path_length_source == "snapshot":
            last = self.average_series[key].last()
            return 0.0 if last is None else last
        return self.averages[key].average

    def series(self, metric: str, kind: str) -> list[float]:
        return self.average_series[(metric, kind)].as_list()

    def raw(self, metric: str, kind: str) -> list[float]:
        return self.raw_series[(metric, kind)].as_list()

    def summary(self, metric: str, kind: str) -> Dict[str, float]:
        """Return mean / p50 / p95 over the retained raw samples."""

        return self.raw_series[(metric, kind)].summary()

    def recent_outcomes(self) -> list[str]:
        return list(self.recent)
