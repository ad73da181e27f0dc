"""Runtime state models for the worker pool and lifecycle controller."""

from dataclasses import dataclass
from enum import Enum


class LifecycleState(str, Enum):
    """States of the polling lifecycle."""

    STOPPED = "stopped"
    STARTING = "starting"
    RUNNING = "running"
    STOPPING = "stopping"


@dataclass(frozen=True)
class PoolCapacitySnapshot:
    """Point-in-time view of worker pool usage.

    Recomputed on every poll iteration and never stored.
    """

    active_count: int
    max_concurrency: int

    @property
    def available(self) -> int:
        return max(self.max_concurrency - self.active_count, 0)

    @property
    def saturated(self) -> bool:
        return self.active_count >= self.max_concurrency

    def fetch_count(self, batch_ceiling: int) -> int:
        """Messages to request so that every one can start immediately."""
        return min(self.available, batch_ceiling)
