"""In-process counters, gauges and timings for scan cycles, exportable as Prometheus text."""

from __future__ import annotations

import math
import re
import threading
import time
from collections import defaultdict, deque
from contextlib import contextmanager
from statistics import mean
from typing import Deque, Dict, Iterator, List, Mapping, MutableMapping, Optional, Tuple

_METRIC_SANITIZE_RE = re.compile(r"[^a-zA-Z0-9_:]")
_QUANTILES = {"p50": 0.5, "p90": 0.9, "p99": 0.99}

LabelSet = Tuple[Tuple[str, str], ...]
SeriesKey = Tuple[str, LabelSet]


def _sanitize_metric_name(name: str) -> str:
    """Map dotted names such as ``scanner.cycle`` onto Prometheus identifiers."""

    sanitized = _METRIC_SANITIZE_RE.sub("_", name)
    if not sanitized:
        return "_"
    if sanitized[0].isdigit():
        sanitized = f"_{sanitized}"
    return sanitized


def _label_set(labels: Optional[Mapping[str, str]]) -> LabelSet:
    if not labels:
        return ()
    return tuple(sorted((key, str(value)) for key, value in labels.items()))


def _render_labels(labels: LabelSet, extra: Optional[Tuple[str, str]] = None) -> str:
    pairs = list(labels) + ([extra] if extra else [])
    if not pairs:
        return ""
    body = ",".join(f'{_sanitize_metric_name(key)}="{_escape(value)}"' for key, value in pairs)
    return "{" + body + "}"


def _escape(value: str) -> str:
    return value.replace("\\", "\\\\").replace('"', '\\"').replace("\n", "\\n")


class MetricsRegistry:
    """Thread-safe metric series keyed by dotted name and an optional label set.

    Timings keep only the most recent ``max_samples`` observations per series,
    which is plenty for minute-scale scan loops.
    """

    def __init__(self, *, max_samples: int = 512) -> None:
        self._lock = threading.RLock()
        self._counters: MutableMapping[SeriesKey, float] = defaultdict(float)
        self._gauges: MutableMapping[SeriesKey, float] = {}
        self._samples: MutableMapping[SeriesKey, Deque[float]] = defaultdict(lambda: deque(maxlen=max_samples))

    def increment(self, name: str, amount: float = 1.0, *, labels: Optional[Mapping[str, str]] = None) -> None:
        with self._lock:
            self._counters[(name, _label_set(labels))] += amount

    def get(self, name: str, *, labels: Optional[Mapping[str, str]] = None) -> float:
        with self._lock:
            return self._counters.get((name, _label_set(labels)), 0.0)

    def gauge(self, name: str, value: float, *, labels: Optional[Mapping[str, str]] = None) -> None:
        with self._lock:
            self._gauges[(name, _label_set(labels))] = float(value)

    def get_gauge(self, name: str, *, labels: Optional[Mapping[str, str]] = None) -> float:
        with self._lock:
            return self._gauges.get((name, _label_set(labels)), 0.0)

    def observe(self, name: str, value: float) -> None:
        with self._lock:
            self._samples[(name, ())].append(float(value))

    @contextmanager
    def timer(self, name: str) -> Iterator[None]:
        """Time the enclosed block into ``<name>.duration_seconds`` and count ``<name>.calls_total``."""

        start = time.perf_counter()
        try:
            yield
        finally:
            self.observe(f"{name}.duration_seconds", time.perf_counter() - start)
            self.increment(f"{name}.calls_total")

    def snapshot(self) -> Dict[str, Dict[str, object]]:
        """Plain-dict view keyed by rendered series name, e.g. ``name{reason="expired"}``."""

        with self._lock:
            counters = {self._series_name(key): value for key, value in self._counters.items()}
            gauges = {self._series_name(key): value for key, value in self._gauges.items()}
            timings = {
                self._series_name(key): _summarise(list(values))
                for key, values in self._samples.items()
                if values
            }
        return {"counters": counters, "gauges": gauges, "timings": timings}

    def export_prometheus(self) -> str:
        with self._lock:
            counters = sorted(self._counters.items())
            gauges = sorted(self._gauges.items())
            samples = sorted((key, list(values)) for key, values in self._samples.items() if values)
        lines: List[str] = []
        self._emit_family(lines, counters, "counter")
        self._emit_family(lines, gauges, "gauge")
        for (name, labels), values in samples:
            stats = _summarise(values)
            base = _sanitize_metric_name(name)
            lines.append(f"# TYPE {base} summary")
            for key, quantile in _QUANTILES.items():
                rendered = _render_labels(labels, ("quantile", str(quantile)))
                lines.append(f"{base}{rendered} {stats[key]}")
            lines.append(f"{base}_sum{_render_labels(labels)} {stats['sum']}")
            lines.append(f"{base}_count{_render_labels(labels)} {stats['count']}")
        return "\n".join(lines) + "\n"

    def reset(self) -> None:
        with self._lock:
            self._counters.clear()
            self._gauges.clear()
            self._samples.clear()

    @staticmethod
    def _series_name(key: SeriesKey) -> str:
        name, labels = key
        if not labels:
            return name
        return name + "{" + ",".join(f'{label}="{value}"' for label, value in labels) + "}"

    @staticmethod
    def _emit_family(lines: List[str], series: List[Tuple[SeriesKey, float]], kind: str) -> None:
        declared = set()
        for (name, labels), value in series:
            base = _sanitize_metric_name(name)
            if base not in declared:
                lines.append(f"# TYPE {base} {kind}")
                declared.add(base)
            lines.append(f"{base}{_render_labels(labels)} {value}")


def _summarise(data: List[float]) -> Dict[str, float]:
    data = sorted(data)
    stats = {"count": float(len(data)), "sum": math.fsum(data), "avg": mean(data)}
    for key, quantile in _QUANTILES.items():
        index = max(int(math.ceil(quantile * len(data))) - 1, 0)
        stats[key] = data[min(index, len(data) - 1)]
    return stats


METRICS = MetricsRegistry()


__all__ = ["METRICS", "MetricsRegistry"]
