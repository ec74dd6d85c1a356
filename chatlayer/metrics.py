"""In-process counters and gauges for room lifecycle telemetry."""

from __future__ import annotations

from collections import defaultdict
from dataclasses import dataclass
from typing import Any, Iterable


@dataclass(frozen=True)
class MetricKey:
    name: str
    tags: tuple[tuple[str, str], ...] = ()


class MetricsSink:
    """Counters and gauges keyed by metric name plus sorted tags.

    Everything runs on one event loop, so no locking is needed.
    """

    def __init__(self) -> None:
        self._counters: dict[MetricKey, int] = defaultdict(int)
        self._gauges: dict[MetricKey, float] = {}

    def incr(self, name: str, count: int = 1, tags: dict[str, Any] | None = None) -> None:
        self._counters[MetricKey(name, _normalize_tags(tags))] += count

    def set_gauge(self, name: str, value: float, tags: dict[str, Any] | None = None) -> None:
        self._gauges[MetricKey(name, _normalize_tags(tags))] = value

    def counter(self, name: str, tags: dict[str, Any] | None = None) -> int:
        """Read a single counter (0 if never incremented)."""
        return self._counters.get(MetricKey(name, _normalize_tags(tags)), 0)

    def gauge(self, name: str, tags: dict[str, Any] | None = None) -> float | None:
        return self._gauges.get(MetricKey(name, _normalize_tags(tags)))

    def reset(self) -> None:
        self._counters.clear()
        self._gauges.clear()

    def snapshot(self) -> dict[str, Any]:
        return {
            "counters": {_key_to_str(k): v for k, v in self._counters.items()},
            "gauges": {_key_to_str(k): v for k, v in self._gauges.items()},
        }


_metrics: MetricsSink | None = None


def get_metrics() -> MetricsSink:
    """Get the process-wide metrics sink."""
    global _metrics
    if _metrics is None:
        _metrics = MetricsSink()
    return _metrics


def _key_to_str(key: MetricKey) -> str:
    if not key.tags:
        return key.name
    return key.name + "|" + ",".join(f"{k}={v}" for k, v in key.tags)


def _normalize_tags(tags: dict[str, Any] | None) -> tuple[tuple[str, str], ...]:
    if not tags:
        return ()
    items: Iterable[tuple[str, str]] = ((str(k), str(v)) for k, v in tags.items())
    return tuple(sorted(items))
