"""
Process-wide load counters read by the balancer.

Reporters (HTTP handlers, queue consumers, worker heartbeats) update these
from arbitrary threads. Each counter carries its own lock, so updates never
contend with the balancer's cycle lock.
"""

import threading
from dataclasses import dataclass
from typing import Optional


class AtomicCounter:
    """Integer counter with atomic read-modify-write operations"""

    def __init__(self, initial: int = 0):
        self._value = initial
        self._lock = threading.Lock()

    def get(self) -> int:
        return self._value

    def set(self, value: int) -> None:
        with self._lock:
            self._value = value

    def increment(self, delta: int = 1) -> int:
        """Add ``delta`` and return the new value"""
        with self._lock:
            self._value += delta
            return self._value

    def decrement(self, delta: int = 1) -> int:
        """Subtract ``delta`` (never going below zero) and return the new value"""
        with self._lock:
            self._value = max(0, self._value - delta)
            return self._value

    def __repr__(self) -> str:
        return f"AtomicCounter({self._value})"


@dataclass(frozen=True)
class LoadSnapshot:
    """Point-in-time copy of the load counters"""
    running_workers: int
    queued_jobs: int


class LoadCounters:
    """Running worker and queued job counters"""

    def __init__(self):
        self.running_workers = AtomicCounter()
        self.queued_jobs = AtomicCounter()

    def update(self, running_workers: Optional[int] = None,
               queued_jobs: Optional[int] = None) -> None:
        """Overwrite one or both counters with values reported by the server"""
        if running_workers is not None:
            if running_workers < 0:
                raise ValueError("running_workers must be non-negative")
            self.running_workers.set(running_workers)

        if queued_jobs is not None:
            if queued_jobs < 0:
                raise ValueError("queued_jobs must be non-negative")
            self.queued_jobs.set(queued_jobs)

    def snapshot(self) -> LoadSnapshot:
        return LoadSnapshot(
            running_workers=self.running_workers.get(),
            queued_jobs=self.queued_jobs.get()
        )
