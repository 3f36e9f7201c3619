from __future__ import annotations
from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, Tuple

@dataclass
class Counter:
    name: str
    help: str = ""
    labels: Tuple[Tuple[str, str], ...] = field(default_factory=tuple)
    value: int = 0
    def inc(self, n: int = 1) -> None: self.value += n

@dataclass
class Gauge:
    name: str
    help: str = ""
    labels: Tuple[Tuple[str, str], ...] = field(default_factory=tuple)
    value: float = 0.0
    def set(self, v: float) -> None: self.value = v
    def inc(self, v: float = 1.0) -> None: self.value += v
    def dec(self, v: float = 1.0) -> None: self.value -= v
    def set_max(self, v: float) -> None:
        if v > self.value: self.value = v

class MetricsRegistry:
    """In-memory counters and gauges keyed by name and sorted labels.

    Registration and updates happen on the event loop thread without
    suspending, so no lock is taken.
    """
    def __init__(self):
        self.counters: Dict[str, Counter]={}
        self.gauges: Dict[str, Gauge]={}

    @staticmethod
    def _key(name: str, labels: Iterable[Tuple[str, str]] | None) -> str:
        if not labels:
            return name
        return name + "|" + ",".join([f"{k}={v}" for k,v in sorted(labels)])

    def counter(self, name: str, help: str = "", labels: Iterable[Tuple[str,str]]|None=None) -> Counter:
        key = self._key(name, labels)
        c = self.counters.get(key)
        if c is None:
            c = Counter(name, help, tuple(sorted(labels or [])))
            self.counters[key] = c
        return c

    def gauge(self, name: str, help: str = "", labels: Iterable[Tuple[str,str]]|None=None) -> Gauge:
        key = self._key(name, labels)
        g = self.gauges.get(key)
        if g is None:
            g = Gauge(name, help, tuple(sorted(labels or [])))
            self.gauges[key] = g
        return g

    def snapshot(self) -> Dict[str, Any]:
        out: Dict[str, Any] = {k: c.value for k, c in self.counters.items()}
        out.update({k: g.value for k, g in self.gauges.items()})
        return out


class QueueMetrics:
    """The per-queue instruments, labelled with the queue name."""
    def __init__(self, registry: MetricsRegistry, queue: str):
        labels = (("queue", queue),)
        self.added = registry.counter("queue_added_total", "items enqueued", labels)
        self.removed = registry.counter("queue_removed_total", "items dequeued", labels)
        self.timeouts = registry.counter("queue_timeouts_total", "operations that timed out", labels)
        self.aborted = registry.counter("queue_aborted_total", "operations aborted by clear or close", labels)
        self.length = registry.gauge("queue_length", "buffered items", labels)
        self.high_water = registry.gauge("queue_high_water", "largest observed length", labels)

    def observe_length(self, n: int) -> None:
        self.length.set(n)
        self.high_water.set_max(n)
