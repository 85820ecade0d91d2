"""
Prometheus text exposition (format 0.0.4) for the metrics registry.

Output order is fixed: counters, active-user gauges, the prediction
latency summary, the UI request histogram, then the EOF marker.
"""

from __future__ import annotations

import math
from typing import TYPE_CHECKING, List, Sequence, Tuple

from frontend.series import HistogramSnapshot, LabelKey

if TYPE_CHECKING:
    from frontend.metrics import MetricsRegistry

CONTENT_TYPE = "text/plain; version=0.0.4; charset=utf-8"

INDEX_REQUESTS = "index_requests_total"
PREDICT_REQUESTS = "predict_requests_total"
UI_REQUESTS = "ui_requests_total"
ACTIVE_USERS = "active_users"
PREDICTION_LATENCY = "prediction_latency_seconds"
UI_REQUEST_DURATION = "ui_request_duration_seconds"

UI_LABELS = ("endpoint", "method", "status")


def escape_label_value(value: str) -> str:
    return value.replace("\\", "\\\\").replace('"', '\\"').replace("\n", "\\n")


def format_labels(pairs: Sequence[Tuple[str, str]]) -> str:
    if not pairs:
        return ""
    body = ",".join(f'{name}="{escape_label_value(value)}"' for name, value in pairs)
    return "{" + body + "}"


def format_bound(bound: float) -> str:
    return "+Inf" if math.isinf(bound) else repr(float(bound))


def format_value(value: float) -> str:
    if isinstance(value, int):
        return str(value)
    return repr(float(value))


def ordered_labels(key: LabelKey, names: Sequence[str]) -> List[Tuple[str, str]]:
    """Labels in declaration order, followed by any undeclared ones."""
    labels = key.as_dict()
    pairs = [(name, labels.pop(name)) for name in names if name in labels]
    pairs.extend(sorted(labels.items()))
    return pairs


class ExpositionRenderer:
    def __init__(self) -> None:
        self._lines: List[str] = []

    def type_line(self, name: str, kind: str) -> None:
        self._lines.append(f"# TYPE {name} {kind}")

    def sample(self, name: str, labels: Sequence[Tuple[str, str]], value: float) -> None:
        self._lines.append(f"{name}{format_labels(labels)} {format_value(value)}")

    def histogram(self, name: str, labels: Sequence[Tuple[str, str]], snap: HistogramSnapshot) -> None:
        for bound, count in snap.buckets:
            self.sample(f"{name}_bucket", list(labels) + [("le", format_bound(bound))], count)
        self.sample(f"{name}_count", labels, snap.count)
        self.sample(f"{name}_sum", labels, snap.sum)

    def summary(self, name: str, labels: Sequence[Tuple[str, str]], snap: HistogramSnapshot) -> None:
        self.sample(f"{name}_count", labels, snap.count)
        self.sample(f"{name}_sum", labels, snap.sum)

    def finish(self) -> str:
        self._lines.append("# EOF")
        return "\n".join(self._lines) + "\n"

    def render(self, registry: "MetricsRegistry") -> str:
        for name in (INDEX_REQUESTS, PREDICT_REQUESTS):
            self.type_line(name, "counter")
            for key, value in registry.counters.series(name):
                self.sample(name, key.labels, value)

        self.type_line(UI_REQUESTS, "counter")
        for key, value in registry.counters.series(UI_REQUESTS):
            self.sample(UI_REQUESTS, ordered_labels(key, UI_LABELS), value)

        # sweeping here is what expires silent sessions
        self.type_line(ACTIVE_USERS, "gauge")
        for page, active in registry.sessions.sweep().items():
            self.sample(ACTIVE_USERS, [("page", page)], active)

        self.type_line(PREDICTION_LATENCY, "summary")
        for key, snap in registry.prediction_latency.series(PREDICTION_LATENCY):
            self.summary(PREDICTION_LATENCY, key.labels, snap)

        self.type_line(UI_REQUEST_DURATION, "histogram")
        for key, snap in registry.ui_latency.series(UI_REQUEST_DURATION):
            self.histogram(UI_REQUEST_DURATION, ordered_labels(key, UI_LABELS), snap)

        return self.finish()
