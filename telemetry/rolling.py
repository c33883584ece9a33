"""Rolling and cumulative metric series for live plots."""

from __future__ import annotations

from collections import deque
from dataclasses import dataclass, field
from typing import Optional

import numpy as np


@dataclass
class RollingSeries:
    """Maintain a finite history of indexed numeric samples.

    Parameters
    ----------
    maxlen:
        Number of samples to keep. ``None`` keeps every sample and leaves
        truncation to the presentation layer.
    """

    maxlen: Optional[int] = None
    _data: deque[tuple[int, float]] = field(init=False, repr=False)
    _next_index: int = field(init=False, default=0, repr=False)

    def __post_init__(self) -> None:
        if self.maxlen is not None and self.maxlen < 1:
            raise ValueError("maxlen must be >= 1 or None")
        self._data = deque(maxlen=self.maxlen)

    def append(self, value: float) -> int:
        """Append ``value`` and return the index assigned to it."""

        index = self._next_index
        self._data.append((index, float(value)))
        self._next_index += 1
        return index

    def as_list(self) -> list[float]:
        """Return the stored values as a list."""

        return [value for _, value in self._data]

    def points(self) -> list[tuple[int, float]]:
        """Return ``(index, value)`` pairs in append order."""

        return list(self._data)

    def last(self) -> Optional[float]:
        """Return the newest value or ``None`` when empty."""

        return self._data[-1][1] if self._data else None

    def summary(self) -> dict[str, float]:
        """Return mean, median and 95th percentile of the stored values.

        Every statistic is ``0.0`` when the series is empty so that no NaN
        reaches a chart.
        """

        data = np.array(self.as_list(), dtype=float)
        if data.size == 0:
            return {"mean": 0.0, "p50": 0.0, "p95": 0.0, "count": 0.0}
        return {
            "mean": float(data.mean()),
            "p50": float(np.percentile(data, 50)),
            "p95": float(np.percentile(data, 95)),
            "count": float(data.size),
        }

    def clear(self) -> None:
        """Drop every sample and restart indexing at zero."""

        self._data.clear()
        self._next_index = 0

    def __len__(self) -> int:  # pragma: no cover - trivial
        """Return the number of stored samples."""

        return len(self._data)


@dataclass
class CumulativeAverage:
    """Running mean kept as a ``(total, count)`` pair.

    The average is only ever updated by accumulation; no history is stored.
    """

    total: float = 0.0
    count: int = 0

    def add(self, value: float) -> float:
        """Accumulate ``value`` and return the new average."""

        self.total += float(value)
        self.count += 1
        return self.total / self.count

    @property
    def average(self) -> float:
        """Current mean, ``0.0`` before the first sample."""

        if self.count == 0:
            return 0.0
        return self.total / self.count

    def reset(self) -> None:
        self.total = 0.0
        self.count = 0
