import time
import logging
import threading
import setproctitle
from typing import Any, Callable, List, Optional

from keepalive.local import app_globals
from keepalive.local.supervisor import cancellation, hardening, locator
from keepalive.local.supervisor.cancellation import CancellationFlag
from keepalive.local.supervisor.locator import TargetSpec
from keepalive.local.supervisor.options import ResilienceLevel, WatchdogOptions
from keepalive.local.supervisor.watchdog import Watchdog

log = logging.getLogger(__name__)


class Supervisor:
    """
    Wires the locator, hardener, cancellation and watchdogs together and
    blocks until the operator asks for shutdown.
    """

    def __init__(
        self,
        level: ResilienceLevel = ResilienceLevel.RESILIENT,
        settings: Any = app_globals,
        options: Optional[WatchdogOptions] = None,
        cancellation_flag: Optional[CancellationFlag] = None,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        """
        :param level: How many redundant watchdogs to run.
        :param settings: The settings object, `app_globals` by default.
        :param options: Watchdog options; derived from *settings* and *level* if omitted.
        :param cancellation_flag: Use this flag instead of installing the interrupt handler.
        :param sleep: Sleep function used by the main wait loop and the watchdogs.
        """
        self.level = level
        self.settings = settings
        self.options = options or WatchdogOptions.for_level(level, settings)
        self.cancellation = cancellation_flag
        self.target: Optional[TargetSpec] = None
        self.watchdogs: List[Watchdog] = []
        self.threads: List[threading.Thread] = []
        self._sleep = sleep

    def supervise(self) -> List[str]:
        """
        Runs supervision until cancellation and every watchdog has stopped.

        :return: Names of watchdogs that could not be joined (normally empty).
        :raises TargetNotFoundError: If the target is missing. No watchdog is started.
        :raises TargetPermissionError: If the target cannot be made executable.
        """
        start_time = time.time()
        log.info("=" * 20 + f" Supervisor Starting ({self.level.value}) " + "=" * 20)

        self.target = locator.locate(locator.candidate_paths(self.settings))
        hardening.harden(self.settings)
        if self.cancellation is None:
            self.cancellation = cancellation.install()

        self._start_watchdogs()
        if self.cancellation.supported:
            log.info(f"{len(self.watchdogs)} watchdog(s) running for {self.target.path}. Press Ctrl+C to stop.")
        else:
            log.warning(f"{len(self.watchdogs)} watchdog(s) running for {self.target.path}. Graceful shutdown is unavailable.")

        self._wait_for_cancellation()
        log.info("Shutdown requested. Waiting for watchdogs to stop their processes...")
        unjoined = self._join_watchdogs()

        runtime = time.strftime('%H:%M:%S', time.gmtime(time.time() - start_time))
        log.info(f"Supervisor stopped. Total runtime: {runtime}")
        return unjoined

    def _start_watchdogs(self) -> None:
        for index in range(1, self.level.watchdog_count(self.settings) + 1):
            name = f"watchdog-{index}"
            watchdog = Watchdog(self.target, self.cancellation, self.options, name=name, sleep=self._sleep)
            # Daemon threads so an external kill is never held up by a watchdog.
            thread = threading.Thread(target=watchdog.run, name=name, daemon=True)
            self.watchdogs.append(watchdog)
            self.threads.append(thread)
            thread.start()

    def _wait_for_cancellation(self) -> None:
        interval = self.settings.SUPERVISOR_SLEEP_INTERVAL
        while not self.cancellation.is_stopping():
            self._sleep(interval)

    def join_timeout(self) -> float:
        """Seconds to wait for the watchdogs, derived from the options they actually run with."""
        return self.options.shutdown_bound + self.settings.WATCHDOG_JOIN_MARGIN

    def _join_watchdogs(self) -> List[str]:
        unjoined = []
        # One deadline for all threads: they all started stopping at the same moment.
        deadline = time.monotonic() + self.join_timeout()
        for thread in self.threads:
            thread.join(timeout=max(deadline - time.monotonic(), 0.0))
            if thread.is_alive():
                log.warning(f"{thread.name} did not finish its shutdown in time. Leaving it behind.")
                unjoined.append(thread.name)
            else:
                log.debug(f"{thread.name} joined.")
        return unjoined


def supervise(level: ResilienceLevel = ResilienceLevel.RESILIENT, **kwargs) -> List[str]:
    """Convenience wrapper: sets the process title and runs a `Supervisor`."""
    setproctitle.setproctitle(app_globals.PROCESS_TITLE)
    return Supervisor(level, **kwargs).supervise()
