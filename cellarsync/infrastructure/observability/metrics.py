"""In-process metrics, exported by ``GET /metrics`` in Prometheus text format.

Three families are tracked: requests served by the API, calls made to the
ERP (with rate-limit retries counted separately), and sync run outcomes.
Counters accumulate a value per label set; summaries keep a count and a sum.
"""

from __future__ import annotations

import threading
from dataclasses import dataclass, field
from typing import Dict, List, Mapping, Tuple

Labels = Tuple[Tuple[str, str], ...]


def _freeze(labels: Mapping[str, object] | None) -> Labels:
    if not labels:
        return ()
    return tuple(sorted((key, str(value)) for key, value in labels.items()))


def _render_labels(labels: Labels) -> str:
    if not labels:
        return ""
    return "{" + ",".join(f'{key}="{value}"' for key, value in labels) + "}"


@dataclass
class Counter:
    name: str
    help_text: str
    values: Dict[Labels, float] = field(default_factory=dict)

    def add(self, amount: float, labels: Labels) -> None:
        self.values[labels] = self.values.get(labels, 0.0) + amount

    def exposition(self) -> List[str]:
        lines = [f"# HELP {self.name} {self.help_text}", f"# TYPE {self.name} counter"]
        lines.extend(f"{self.name}{_render_labels(key)} {value}" for key, value in self.values.items())
        return lines


@dataclass
class Summary:
    name: str
    help_text: str
    counts: Dict[Labels, int] = field(default_factory=dict)
    sums: Dict[Labels, float] = field(default_factory=dict)

    def observe(self, value: float, labels: Labels) -> None:
        self.counts[labels] = self.counts.get(labels, 0) + 1
        self.sums[labels] = self.sums.get(labels, 0.0) + value

    def exposition(self) -> List[str]:
        lines = [f"# HELP {self.name} {self.help_text}", f"# TYPE {self.name} summary"]
        for key, count in self.counts.items():
            rendered = _render_labels(key)
            lines.append(f"{self.name}_count{rendered} {count}")
            lines.append(f"{self.name}_sum{rendered} {self.sums[key]}")
        return lines


class MetricRegistry:
    """Thread-safe store of named counters and summaries.

    The API handles requests on worker threads while a sync may be running on
    another, so every read and write goes through one lock.
    """

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._metrics: Dict[str, Counter | Summary] = {}

    def inc(self, name: str, help_text: str, labels: Mapping[str, object] | None = None, amount: float = 1.0) -> None:
        with self._lock:
            metric = self._metrics.setdefault(name, Counter(name, help_text))
            if not isinstance(metric, Counter):
                raise TypeError(f"{name} is registered as a summary")
            metric.add(amount, _freeze(labels))

    def observe(self, name: str, help_text: str, value: float, labels: Mapping[str, object] | None = None) -> None:
        with self._lock:
            metric = self._metrics.setdefault(name, Summary(name, help_text))
            if not isinstance(metric, Summary):
                raise TypeError(f"{name} is registered as a counter")
            metric.observe(value, _freeze(labels))

    def value(self, name: str, labels: Mapping[str, object] | None = None) -> float:
        """Current counter value, or the observation count of a summary."""
        with self._lock:
            metric = self._metrics.get(name)
            if metric is None:
                return 0.0
            key = _freeze(labels)
            if isinstance(metric, Counter):
                return metric.values.get(key, 0.0)
            return float(metric.counts.get(key, 0))

    def exposition(self) -> str:
        with self._lock:
            lines: List[str] = []
            for metric in self._metrics.values():
                lines.extend(metric.exposition())
        return "\n".join(lines) + "\n" if lines else ""

    def reset(self) -> None:
        with self._lock:
            self._metrics.clear()


_registry = MetricRegistry()


def get_registry() -> MetricRegistry:
    return _registry


def format_prometheus() -> str:
    return _registry.exposition()


def record_api_request(endpoint: str, method: str, status_code: int, duration: float) -> None:
    _registry.inc(
        "api_requests_total",
        "Requests served by the API",
        {"endpoint": endpoint, "method": method, "status": status_code},
    )
    _registry.observe(
        "api_request_duration_seconds",
        "API request latency",
        duration,
        {"endpoint": endpoint, "method": method},
    )


def record_upstream_request(method: str, status: str, duration: float) -> None:
    """Count one attempt against the ERP; ``status`` is the HTTP code or ``timeout``/``error``."""
    _registry.inc("erp_requests_total", "Attempts made against the ERP", {"method": method, "status": status})
    _registry.observe("erp_request_duration_seconds", "ERP call latency", duration, {"method": method})


def record_rate_limit_retry() -> None:
    _registry.inc("erp_rate_limit_retries_total", "Retries after a 429 from the ERP")


def record_sync_run(mode: str, status: str, duration: float, processed: int, failed: int) -> None:
    _registry.inc("sync_runs_total", "Finished sync runs", {"mode": mode, "status": status})
    _registry.observe("sync_run_duration_seconds", "Sync run wall time", duration, {"mode": mode})
    _registry.inc("sync_records_processed_total", "Records handled by sync runs", {"mode": mode}, processed)
    _registry.inc("sync_records_failed_total", "Records that failed in sync runs", {"mode": mode}, failed)
