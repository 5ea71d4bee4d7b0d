"""Resilience levels and the per-watchdog option record."""

import enum
from dataclasses import dataclass
from typing import Any


class ResilienceLevel(enum.Enum):
    """How many redundant watchdogs supervise the target."""

    RESILIENT = "resilient"
    SUPER_RESILIENT = "super-resilient"

    @classmethod
    def from_name(cls, name: str) -> "ResilienceLevel":
        key = name.strip().lower().replace("_", "-")
        for level in cls:
            if level.value == key:
                return level
        allowed = ", ".join(level.value for level in cls)
        raise ValueError(f"Unknown resilience level '{name}'. Expected one of: {allowed}")

    def watchdog_count(self, settings: Any) -> int:
        if self is ResilienceLevel.SUPER_RESILIENT:
            return max(int(settings.SUPER_RESILIENT_WATCHDOGS), 1)
        return 1


@dataclass(slots=True)
class WatchdogOptions:
    """Timing and behaviour knobs for a single watchdog loop."""

    poll_interval: float = 0.1
    poll_jitter: float = 0.0
    backoff_floor: float = 2.5
    backoff_cap: float = 300.0
    failure_ceiling: int = 5
    crash_loop_pause: float = 30.0
    stable_after: float = 60.0
    kill_timeout: float = 5.0
    stray_timeout: float = 3.0
    reconcile: bool = False
    health_probe: bool = False

    def __post_init__(self) -> None:
        if self.poll_interval <= 0:
            raise ValueError('poll_interval must be positive')
        if self.poll_jitter < 0:
            raise ValueError('poll_jitter must not be negative')
        if self.backoff_floor <= 0:
            raise ValueError('backoff_floor must be positive')
        if self.backoff_cap < self.backoff_floor:
            raise ValueError('backoff_cap must not be smaller than backoff_floor')
        if self.failure_ceiling < 1:
            raise ValueError('failure_ceiling must be at least 1')

    @property
    def shutdown_bound(self) -> float:
        """
        Longest time a watchdog can take to stop once cancellation is requested:
        one iteration already under way (stray sweep, backoff sleep, crash-loop
        pause), the poll sleep after it, then killing and reaping the child tree.
        """
        iteration = self.stray_timeout + self.backoff_cap + self.crash_loop_pause
        reap = 2 * self.kill_timeout
        return iteration + self.poll_interval + self.poll_jitter + reap

    @classmethod
    def for_level(cls, level: ResilienceLevel, settings: Any) -> "WatchdogOptions":
        """Builds the options for *level* from a settings object such as `app_globals`."""

        super_resilient = level is ResilienceLevel.SUPER_RESILIENT
        return cls(
            poll_interval=float(settings.WATCHDOG_POLL_INTERVAL),
            poll_jitter=float(settings.WATCHDOG_POLL_JITTER) if super_resilient else 0.0,
            backoff_floor=float(settings.BACKOFF_FLOOR),
            backoff_cap=float(settings.BACKOFF_CAP),
            failure_ceiling=int(settings.FAILURE_CEILING),
            crash_loop_pause=float(settings.CRASH_LOOP_PAUSE),
            stable_after=float(settings.STABLE_RUN_SECONDS),
            kill_timeout=float(settings.CHILD_KILL_TIMEOUT),
            stray_timeout=float(settings.STRAY_TERMINATE_TIMEOUT),
            reconcile=super_resilient,
            health_probe=super_resilient and bool(settings.HEALTH_PROBE_ENABLED),
        )
