"""
In-process metrics for the fleet API, exported in Prometheus text format.

Series:
- http_requests_total{method,path,status}: every HTTP request (route template, not raw URL)
- inventory_scans_total / inventory_hosts: discovery walks and the host count of the last one
- runs_total{outcome}: finished runs, outcome ok | failed | cancelled
- run_events_total{level}: events delivered to clients
- runs_active: runs currently streaming

Values live in this process only; nothing is persisted across restarts.
"""

from __future__ import annotations

import threading
from typing import Dict, List, Mapping, Optional, Sequence, Tuple

Labels = Optional[Mapping[str, str]]


def _escape(value: str) -> str:
    return value.replace("\\", "\\\\").replace("\n", "\\n").replace('"', '\\"')


class _Metric:
    kind = "untyped"

    def __init__(self, name: str, help_text: str, label_names: Sequence[str] = ()):
        self.name = name
        self.help_text = help_text
        self.label_names = tuple(label_names)
        self._series: Dict[Tuple[str, ...], float] = {}
        self._lock = threading.Lock()

    def _key(self, labels: Labels) -> Tuple[str, ...]:
        labels = labels or {}
        return tuple(str(labels.get(name, "")) for name in self.label_names)

    def _apply(self, labels: Labels, fn) -> None:
        key = self._key(labels)
        with self._lock:
            self._series[key] = fn(self._series.get(key, 0.0))

    def value(self, labels: Labels = None) -> float:
        with self._lock:
            return self._series.get(self._key(labels), 0.0)

    def reset(self) -> None:
        with self._lock:
            self._series.clear()

    def render(self) -> List[str]:
        lines = [f"# HELP {self.name} {self.help_text}", f"# TYPE {self.name} {self.kind}"]
        with self._lock:
            series = sorted(self._series.items())
        for key, value in series:
            if self.label_names:
                pairs = ",".join(f'{n}="{_escape(v)}"' for n, v in zip(self.label_names, key))
                lines.append(f"{self.name}{{{pairs}}} {value}")
            else:
                lines.append(f"{self.name} {value}")
        return lines


class Counter(_Metric):
    kind = "counter"

    def inc(self, labels: Labels = None, amount: float = 1.0) -> None:
        if amount < 0:
            raise ValueError("counters only go up")
        self._apply(labels, lambda current: current + amount)


class Gauge(_Metric):
    kind = "gauge"

    def set(self, value: float, labels: Labels = None) -> None:
        self._apply(labels, lambda _: float(value))

    def inc(self, labels: Labels = None, amount: float = 1.0) -> None:
        self._apply(labels, lambda current: current + amount)

    def dec(self, labels: Labels = None, amount: float = 1.0) -> None:
        self._apply(labels, lambda current: current - amount)


class MetricsRegistry:
    """Name-keyed set of metrics; registering a name twice returns the first."""

    def __init__(self):
        self._metrics: Dict[str, _Metric] = {}
        self._lock = threading.Lock()

    def _register(self, cls, name: str, help_text: str, label_names: Sequence[str]):
        with self._lock:
            metric = self._metrics.get(name)
            if metric is None:
                metric = self._metrics[name] = cls(name, help_text, label_names)
            elif not isinstance(metric, cls):
                raise ValueError(f"metric {name!r} already registered as {metric.kind}")
            return metric

    def counter(self, name: str, help_text: str, label_names: Sequence[str] = ()) -> Counter:
        return self._register(Counter, name, help_text, label_names)

    def gauge(self, name: str, help_text: str, label_names: Sequence[str] = ()) -> Gauge:
        return self._register(Gauge, name, help_text, label_names)

    def export_prometheus(self) -> str:
        with self._lock:
            metrics = list(self._metrics.values())
        lines: List[str] = []
        for metric in metrics:
            lines.extend(metric.render())
        return "\n".join(lines) + "\n"

    def reset(self) -> None:
        with self._lock:
            metrics = list(self._metrics.values())
        for metric in metrics:
            metric.reset()


METRICS = MetricsRegistry()

http_requests_total = METRICS.counter(
    "http_requests_total", "HTTP requests by method, route and status", ["method", "path", "status"]
)
inventory_scans_total = METRICS.counter("inventory_scans_total", "Inventory discovery walks")
inventory_hosts = METRICS.gauge("inventory_hosts", "Hosts found by the last discovery walk")
runs_total = METRICS.counter("runs_total", "Finished runs by outcome", ["outcome"])
run_events_total = METRICS.counter("run_events_total", "Run events delivered by level", ["level"])
runs_active = METRICS.gauge("runs_active", "Runs currently streaming to a client")
