"""
Series storage for counters and latency histograms.

Every series owns a lock, so an increment or an observation only ever
contends with writers of the same label set. The store-level lock is
taken when a label set is seen for the first time and while a scrape
copies the series index; it is never held across a render.
"""

from __future__ import annotations

import math
import threading
from dataclasses import dataclass
from typing import Dict, Iterable, List, Optional, Tuple

from frontend.logging_utils import get_logger

logger = get_logger(__name__)

UI_BUCKETS: Tuple[float, ...] = (0.1, 0.3, 0.5, 1.0, 2.0, 5.0)


@dataclass(frozen=True)
class LabelKey:
    """Metric name plus label set; equality ignores label order."""

    name: str
    labels: Tuple[Tuple[str, str], ...] = ()

    def __post_init__(self) -> None:
        pairs = tuple(sorted((str(k), str(v)) for k, v in self.labels))
        object.__setattr__(self, "labels", pairs)

    @classmethod
    def of(cls, name: str, /, **labels: object) -> "LabelKey":
        return cls(name, tuple(labels.items()))

    def as_dict(self) -> Dict[str, str]:
        return dict(self.labels)


def clamp_duration(seconds: object) -> float:
    """Coerce a caller-supplied duration to a finite, non-negative float."""
    try:
        value = float(seconds)  # type: ignore[arg-type]
    except (TypeError, ValueError):
        logger.debug(f"non-numeric duration {seconds!r} recorded as 0")
        return 0.0
    if not value >= 0.0 or math.isinf(value):
        logger.debug(f"out-of-range duration {value!r} recorded as 0")
        return 0.0
    return value


class _CounterCell:
    __slots__ = ("_value", "_lock")

    def __init__(self) -> None:
        self._value = 0
        self._lock = threading.Lock()

    def inc(self, amount: int = 1) -> None:
        with self._lock:
            self._value += amount

    def get(self) -> int:
        with self._lock:
            return self._value


class CounterStore:
    def __init__(self) -> None:
        self._cells: Dict[LabelKey, _CounterCell] = {}
        self._lock = threading.Lock()

    def _cell(self, key: LabelKey) -> _CounterCell:
        cell = self._cells.get(key)
        if cell is None:
            with self._lock:
                cell = self._cells.setdefault(key, _CounterCell())
        return cell

    def register(self, key: LabelKey) -> None:
        """Create the series at 0 so it is exported before any traffic."""
        self._cell(key)

    def increment(self, key: LabelKey, amount: int = 1) -> None:
        if amount < 0:
            logger.debug(f"ignoring negative increment {amount} for {key.name}")
            return
        self._cell(key).inc(amount)

    def value(self, key: LabelKey) -> int:
        cell = self._cells.get(key)
        return cell.get() if cell is not None else 0

    def series(self, name: Optional[str] = None) -> List[Tuple[LabelKey, int]]:
        """Sorted (key, value) pairs, optionally restricted to one metric name."""
        with self._lock:
            cells = list(self._cells.items())
        return sorted(
            ((key, cell.get()) for key, cell in cells if name is None or key.name == name),
            key=lambda item: (item[0].name, item[0].labels),
        )


@dataclass(frozen=True)
class HistogramSnapshot:
    # (bound, cumulative count) in ascending order, +Inf last
    buckets: Tuple[Tuple[float, int], ...]
    count: int
    sum: float

    def bucket(self, bound: float) -> int:
        for b, c in self.buckets:
            if b == bound:
                return c
        raise KeyError(bound)


class _HistogramCell:
    __slots__ = ("_bounds", "_counts", "_count", "_sum", "_lock")

    def __init__(self, bounds: Tuple[float, ...]) -> None:
        self._bounds = bounds
        self._counts = [0] * len(bounds)
        self._count = 0
        self._sum = 0.0
        self._lock = threading.Lock()

    def observe(self, seconds: float) -> None:
        with self._lock:
            for i, bound in enumerate(self._bounds):
                if seconds <= bound:
                    self._counts[i] += 1
            self._count += 1
            self._sum += seconds

    def snapshot(self) -> HistogramSnapshot:
        with self._lock:
            buckets = tuple(zip(self._bounds, self._counts)) + ((math.inf, self._count),)
            return HistogramSnapshot(buckets=buckets, count=self._count, sum=self._sum)


class LatencyAccumulator:
    """
    Cumulative latency histograms keyed by LabelKey.

    Bounds are fixed at construction. With no bounds the accumulator
    only keeps count and sum, which is what a summary without quantiles
    needs.
    """

    def __init__(self, buckets: Iterable[float] = UI_BUCKETS) -> None:
        bounds = tuple(float(b) for b in buckets)
        for b in bounds:
            if not math.isfinite(b):
                raise ValueError(f"histogram bound must be finite, got {b!r}")
        if any(lo >= hi for lo, hi in zip(bounds, bounds[1:])):
            raise ValueError(f"histogram bounds must be strictly ascending, got {bounds!r}")
        self.bounds = bounds
        self._cells: Dict[LabelKey, _HistogramCell] = {}
        self._lock = threading.Lock()

    def _cell(self, key: LabelKey) -> _HistogramCell:
        cell = self._cells.get(key)
        if cell is None:
            with self._lock:
                cell = self._cells.setdefault(key, _HistogramCell(self.bounds))
        return cell

    def register(self, key: LabelKey) -> None:
        self._cell(key)

    def observe(self, key: LabelKey, seconds: object) -> None:
        self._cell(key).observe(clamp_duration(seconds))

    def snapshot(self, key: LabelKey) -> HistogramSnapshot:
        cell = self._cells.get(key)
        if cell is None:
            return _HistogramCell(self.bounds).snapshot()
        return cell.snapshot()

    def series(self, name: Optional[str] = None) -> List[Tuple[LabelKey, HistogramSnapshot]]:
        with self._lock:
            cells = list(self._cells.items())
        return sorted(
            ((key, cell.snapshot()) for key, cell in cells if name is None or key.name == name),
            key=lambda item: (item[0].name, item[0].labels),
        )
