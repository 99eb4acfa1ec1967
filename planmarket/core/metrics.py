"""
planmarket/core/metrics.py

Lightweight in-memory metrics, exported in Prometheus text format at /metrics.

Counters and summaries are process-global; tests reset them through
METRICS.reset().
"""

from __future__ import annotations

import re
import threading
from typing import Dict, Iterable, List, Optional, Tuple


def _sanitize_label_value(value: str) -> str:
    return value.replace("\\", "\\\\").replace("\"", "\\\"")


def _format_labels(label_names: List[str], values: Tuple[str, ...]) -> str:
    if not label_names:
        return ""
    parts = [f'{name}="{_sanitize_label_value(val)}"' for name, val in zip(label_names, values)]
    return "{" + ",".join(parts) + "}"


class _LabeledMetric:
    kind = "untyped"

    def __init__(self, name: str, label_names: Optional[Iterable[str]] = None):
        self.name = name
        self.label_names = list(label_names or [])
        self._lock = threading.Lock()

    def _label_tuple(self, labels: Optional[Dict[str, str]]) -> Tuple[str, ...]:
        labels = labels or {}
        return tuple(str(labels.get(name, "")) for name in self.label_names)


class Counter(_LabeledMetric):
    kind = "counter"

    def __init__(self, name: str, label_names: Optional[Iterable[str]] = None):
        super().__init__(name, label_names)
        self._values: Dict[Tuple[str, ...], float] = {}

    def inc(self, labels: Optional[Dict[str, str]] = None, amount: float = 1.0):
        key = self._label_tuple(labels)
        with self._lock:
            self._values[key] = self._values.get(key, 0.0) + float(amount)

    def value(self, labels: Optional[Dict[str, str]] = None) -> float:
        with self._lock:
            return self._values.get(self._label_tuple(labels), 0.0)

    def export(self) -> List[str]:
        lines = [f"# TYPE {self.name} counter"]
        with self._lock:
            for label_values, value in self._values.items():
                labels = _format_labels(self.label_names, label_values)
                lines.append(f"{self.name}{labels} {value}")
        return lines

    def reset(self):
        with self._lock:
            self._values.clear()


class Summary(_LabeledMetric):
    """Count and sum of observed values (e.g. bytes served)."""

    kind = "summary"

    def __init__(self, name: str, label_names: Optional[Iterable[str]] = None):
        super().__init__(name, label_names)
        self._counts: Dict[Tuple[str, ...], int] = {}
        self._sums: Dict[Tuple[str, ...], float] = {}

    def observe(self, value: float, labels: Optional[Dict[str, str]] = None):
        key = self._label_tuple(labels)
        with self._lock:
            self._counts[key] = self._counts.get(key, 0) + 1
            self._sums[key] = self._sums.get(key, 0.0) + float(value)

    def export(self) -> List[str]:
        lines = [f"# TYPE {self.name} summary"]
        with self._lock:
            for label_values, count in self._counts.items():
                labels = _format_labels(self.label_names, label_values)
                lines.append(f"{self.name}_count{labels} {count}")
                lines.append(f"{self.name}_sum{labels} {self._sums[label_values]}")
        return lines

    def reset(self):
        with self._lock:
            self._counts.clear()
            self._sums.clear()


class MetricsRegistry:
    def __init__(self):
        self.metrics: Dict[str, _LabeledMetric] = {}
        self._lock = threading.Lock()

    def _get_or_create(self, cls, name: str, label_names: Optional[Iterable[str]]):
        with self._lock:
            if name not in self.metrics:
                self.metrics[name] = cls(name, label_names)
            return self.metrics[name]

    def counter(self, name: str, label_names: Optional[Iterable[str]] = None) -> Counter:
        return self._get_or_create(Counter, name, label_names)

    def summary(self, name: str, label_names: Optional[Iterable[str]] = None) -> Summary:
        return self._get_or_create(Summary, name, label_names)

    def export_prometheus(self) -> str:
        lines: List[str] = []
        for metric in list(self.metrics.values()):
            lines.extend(metric.export())
        return "\n".join(lines) + "\n"

    def reset(self):
        for metric in self.metrics.values():
            metric.reset()


METRICS = MetricsRegistry()

http_requests_total = METRICS.counter("http_requests_total", ["method", "path", "status"])
plan_uploads_total = METRICS.counter("plan_uploads_total", ["outcome"])
plan_previews_total = METRICS.counter("plan_previews_total", ["source"])
plan_downloads_total = METRICS.counter("plan_downloads_total", ["outcome"])
plan_bytes_served = METRICS.summary("plan_bytes_served", ["kind"])


_ID_RE = re.compile(r"^[0-9a-fA-F-]{8,}$")


def normalize_path(path: str) -> str:
    """Reduce cardinality by replacing hex-id/number segments with :id."""
    parts = []
    for segment in path.split("/"):
        if not segment:
            continue
        if segment.isdigit() or _ID_RE.match(segment):
            parts.append(":id")
        else:
            parts.append(segment)
    return "/" + "/".join(parts)
