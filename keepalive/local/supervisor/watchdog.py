"""Watchdog loop keeping one child process of the target alive."""
import enum
import time
import random
import logging
import subprocess
from dataclasses import dataclass
from typing import Callable, Optional

from . import process_utils
from .cancellation import CancellationFlag
from .errors import SpawnError, StatusCheckError
from .locator import TargetSpec
from .options import WatchdogOptions

log = logging.getLogger(__name__)


class WatchdogPhase(enum.Enum):
    NO_CHILD = "no-child"
    SPAWNING = "spawning"
    RUNNING = "running"
    EXITED = "exited"
    UNRESPONSIVE = "unresponsive"
    SHUTTING_DOWN = "shutting-down"


# Phases a loop iteration can end in.
SETTLED_PHASES = frozenset({WatchdogPhase.NO_CHILD, WatchdogPhase.RUNNING, WatchdogPhase.SHUTTING_DOWN})


def next_backoff(previous: float, failures: int, floor: float, cap: float) -> float:
    """
    Returns the delay before the next spawn attempt.

    :param previous: The delay used before the last attempt.
    :param failures: Consecutive failures so far, including the latest one.
    :param floor: The delay after a success.
    :param cap: Upper bound of the delay.
    """
    if failures <= 0:
        return floor
    return min(max(previous, floor) * 2, cap)


@dataclass(slots=True)
class WatchdogState:
    """Private, per-watchdog state. Only the owning watchdog's loop touches it."""

    backoff: float
    child: Optional[subprocess.Popen] = None
    failures: int = 0
    phase: WatchdogPhase = WatchdogPhase.NO_CHILD
    last_exit_failed: bool = False
    started_at: float = 0.0
    spawns: int = 0


class Watchdog:
    """
    Owns one child process slot for the target.

    Each iteration of `run` does exactly one of: shut down (cancellation seen),
    spawn (no child owned), or check the owned child. Whatever the reason the
    child is gone, the slot goes back to NO_CHILD and the next iteration
    respawns, so backoff and the crash-loop pause live in one place.
    """

    def __init__(
        self,
        target: TargetSpec,
        cancellation: CancellationFlag,
        options: Optional[WatchdogOptions] = None,
        name: str = "watchdog-1",
        sleep: Callable[[float], None] = time.sleep,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.target = target
        self.name = name
        self.options = options or WatchdogOptions()
        self.state = WatchdogState(backoff=self.options.backoff_floor)
        self._cancellation = cancellation
        self._sleep = sleep
        self._clock = clock
        self.interval = self.options.poll_interval + random.uniform(0, self.options.poll_jitter)

    def run(self) -> None:
        """Supervises the child until cancellation is observed."""
        log.info(f"[{self.name}] Watching {self.target.path} (poll every {self.interval:.3f}s).")
        while True:
            if self.safe_tick() is WatchdogPhase.SHUTTING_DOWN:
                break
            self._sleep(self.interval)
        log.info(f"[{self.name}] Stopped.")

    def safe_tick(self) -> WatchdogPhase:
        """Runs one iteration; an unexpected fault is logged and leaves the slot empty."""
        try:
            return self.tick()
        except Exception as e:
            log.error(f"[{self.name}] Unexpected error in watchdog loop: {e}", exc_info=True)
            self._discard_child()
            self.state.phase = WatchdogPhase.NO_CHILD
            return self.state.phase

    def tick(self) -> WatchdogPhase:
        """Runs one iteration of the loop body and returns the phase it ended in."""
        if self._cancellation.is_stopping():
            self._shutdown()
        elif self.state.child is None:
            self._spawn()
        else:
            self._check_child()
        return self.state.phase

    #* --- Spawning ---
    def _spawn(self) -> None:
        state = self.state
        state.phase = WatchdogPhase.SPAWNING
        if self.options.reconcile:
            process_utils.terminate_strays(self.target.path, timeout=self.options.stray_timeout)

        try:
            child = process_utils.launch_process(self.target.path, self.name)
        except SpawnError as e:
            state.failures += 1
            state.backoff = next_backoff(state.backoff, state.failures, self.options.backoff_floor, self.options.backoff_cap)
            state.phase = WatchdogPhase.NO_CHILD
            log.error(f"[{self.name}] {e}. Failure #{state.failures}, retrying in {state.backoff:.1f}s.")
            self._sleep(state.backoff)
            self._pause_if_crash_looping()
            return

        state.child = child
        state.spawns += 1
        state.started_at = self._clock()
        state.backoff = self.options.backoff_floor
        if not state.last_exit_failed:
            state.failures = 0
        state.phase = WatchdogPhase.RUNNING
        log.info(f"[{self.name}] Started {self.target.path.name} with PID {child.pid}.")

    #* --- Monitoring ---
    def _check_child(self) -> None:
        state = self.state
        child = state.child
        unresponsive = False
        try:
            code = process_utils.poll_exit_status(child)
            if code is None and self.options.health_probe and not process_utils.probe_health(child.pid):
                # A child that exited right after the first poll probes as a zombie.
                code = process_utils.poll_exit_status(child)
                unresponsive = code is None
        except StatusCheckError as e:
            log.error(f"[{self.name}] {e}. Treating the child as failed.")
            self._discard_child()
            self._record_failure()
            return

        if unresponsive:
            self._kill_unresponsive(child)
            return
        if code is None:
            self._note_stable_run()
            state.phase = WatchdogPhase.RUNNING
            return

        state.phase = WatchdogPhase.EXITED
        state.child = None
        if code == 0:
            log.info(f"[{self.name}] PID {child.pid} exited cleanly. Restarting.")
            state.failures = 0
            state.last_exit_failed = False
            state.phase = WatchdogPhase.NO_CHILD
        else:
            log.warning(f"[{self.name}] PID {child.pid} exited with status {code}.")
            self._record_failure()

    def _kill_unresponsive(self, child: subprocess.Popen) -> None:
        status = process_utils.get_proc_status_string(child.pid)
        log.warning(f"[{self.name}] PID {child.pid} is unresponsive (state '{status}'). Killing it.")
        self.state.phase = WatchdogPhase.UNRESPONSIVE
        self._discard_child()
        self._record_failure()

    def _note_stable_run(self) -> None:
        state = self.state
        if state.failures and self._clock() - state.started_at >= self.options.stable_after:
            log.info(f"[{self.name}] PID {state.child.pid} has been stable for {self.options.stable_after:.0f}s. Clearing {state.failures} failure(s).")
            state.failures = 0
            state.last_exit_failed = False

    def _record_failure(self) -> None:
        state = self.state
        state.failures += 1
        state.last_exit_failed = True
        state.phase = WatchdogPhase.NO_CHILD
        self._pause_if_crash_looping()

    def _pause_if_crash_looping(self) -> None:
        if self._cancellation.is_stopping():
            return
        failures = self.state.failures
        if failures and failures % self.options.failure_ceiling == 0:
            log.critical(
                f"[{self.name}] {failures} consecutive failures. "
                f"Pausing {self.options.crash_loop_pause:.0f}s before the next attempt."
            )
            self._sleep(self.options.crash_loop_pause)

    #* --- Shutdown ---
    def _discard_child(self) -> None:
        child, self.state.child = self.state.child, None
        if child is None:
            return
        try:
            process_utils.kill_process(child, timeout=self.options.kill_timeout)
        except Exception as e:
            log.error(f"[{self.name}] Failed to kill PID {child.pid}: {e}")

    def _shutdown(self) -> None:
        self.state.phase = WatchdogPhase.SHUTTING_DOWN
        if self.state.child is not None:
            log.info(f"[{self.name}] Terminating PID {self.state.child.pid}...")
            self._discard_child()
