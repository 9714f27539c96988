"""In-memory stats reporter and call-site guards for fire-and-forget metrics."""

from __future__ import annotations

import logging
import threading
from typing import Mapping

from chain_watcher.interfaces.stats import StatsReporter

log = logging.getLogger(__name__)

LabelKey = tuple[tuple[str, str], ...]


def _label_key(labels: Mapping[str, str] | None) -> LabelKey:
    if not labels:
        return ()
    return tuple(sorted((str(k), str(v)) for k, v in labels.items()))


def _render_labels(key: LabelKey) -> str:
    if not key:
        return ""
    inner = ",".join(f'{k}="{v}"' for k, v in key)
    return "{" + inner + "}"


class InMemoryStats:
    """StatsReporter keeping counters and last-value gauges in memory.

    ``report()`` renders the Prometheus text exposition format so the output
    can be scraped or dumped by the CLI.
    """

    def __init__(self, prefix: str = "chain_watcher") -> None:
        self._prefix = prefix
        self._lock = threading.Lock()
        self._counters: dict[str, dict[LabelKey, float]] = {}
        self._gauges: dict[str, dict[LabelKey, float]] = {}

    def count(
        self, name: str, labels: Mapping[str, str] | None = None, increase: int = 1
    ) -> None:
        key = _label_key(labels)
        with self._lock:
            series = self._counters.setdefault(name, {})
            series[key] = series.get(key, 0) + increase

    def measure(
        self, name: str, value: float, labels: Mapping[str, str] | None = None
    ) -> None:
        key = _label_key(labels)
        with self._lock:
            self._gauges.setdefault(name, {})[key] = float(value)

    def get_count(self, name: str, labels: Mapping[str, str] | None = None) -> float:
        return self._counters.get(name, {}).get(_label_key(labels), 0)

    def get_measure(self, name: str, labels: Mapping[str, str] | None = None) -> float | None:
        return self._gauges.get(name, {}).get(_label_key(labels))

    def report(self) -> str:
        lines: list[str] = []
        with self._lock:
            for kind, metrics in (("counter", self._counters), ("gauge", self._gauges)):
                for name in sorted(metrics):
                    full = f"{self._prefix}_{name}" if self._prefix else name
                    lines.append(f"# TYPE {full} {kind}")
                    for key, value in sorted(metrics[name].items()):
                        lines.append(f"{full}{_render_labels(key)} {value:g}")
        return "\n".join(lines) + ("\n" if lines else "")


def safe_count(
    stats: StatsReporter,
    name: str,
    labels: Mapping[str, str] | None = None,
    increase: int = 1,
) -> None:
    """Count without letting a metrics failure reach the caller."""
    try:
        stats.count(name, labels, increase)
    except Exception as exc:
        log.debug("Stats count %s failed: %s", name, exc)


def safe_measure(
    stats: StatsReporter,
    name: str,
    value: float,
    labels: Mapping[str, str] | None = None,
) -> None:
    """Measure without letting a metrics failure reach the caller."""
    try:
        stats.measure(name, value, labels)
    except Exception as exc:
        log.debug("Stats measure %s failed: %s", name, exc)
