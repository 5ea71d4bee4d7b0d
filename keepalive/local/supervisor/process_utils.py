import os
import sys
import psutil
import logging
import threading
import subprocess
from pathlib import Path
from typing import Any, Dict, List, Optional

from .errors import SpawnError, StatusCheckError

log = logging.getLogger(__name__)

# Process states that count as alive and making progress for the health probe.
HEALTHY_STATUSES = frozenset({
    psutil.STATUS_RUNNING,
    psutil.STATUS_SLEEPING,
    psutil.STATUS_DISK_SLEEP,
})


#* --- Process Status & Monitoring ---
def get_process_from_pid(pid: int) -> psutil.Process:
    """A wrapper for psutil.Process for easy testing/mocking if needed."""
    return psutil.Process(pid)

def get_proc_status_string(pid: int) -> str:
    """Gets the OS-reported run state of a process, or 'gone'/'unknown'."""
    try:
        return get_process_from_pid(pid).status()
    except psutil.NoSuchProcess:
        return "gone"
    except psutil.Error:
        return "unknown"

def probe_health(pid: int) -> bool:
    """
    Checks whether a live process is runnable or sleeping.

    A process that has already gone, or whose state cannot be read, is reported
    healthy: its exit is picked up by the next status poll instead.

    :param pid: The process ID to inspect.
    :return: False only when the process is in an unhealthy state (stopped, zombie, ...).
    """
    status = get_proc_status_string(pid)
    if status in ("gone", "unknown"):
        return True
    return status in HEALTHY_STATUSES

def poll_exit_status(process: subprocess.Popen) -> Optional[int]:
    """
    Polls a child without blocking.

    :return: None while the child runs, otherwise its exit status.
    :raises StatusCheckError: If the status could not be queried.
    """
    try:
        return process.poll()
    except OSError as e:
        raise StatusCheckError(f"Could not query status of PID {process.pid}: {e}") from e


#* --- Process Creation ---
def get_executable_path(base_path: Path) -> Path:
    """Returns the platform-specific full path for an executable."""
    return base_path.with_suffix(".exe") if sys.platform == "win32" else base_path

def _get_popen_creation_flags() -> Dict[str, Any]:
    """Returns platform-specific creation flags for subprocess.Popen."""
    if sys.platform == "win32":
        return {"creationflags": subprocess.CREATE_NEW_PROCESS_GROUP | subprocess.CREATE_NO_WINDOW}
    # A new session keeps the operator's Ctrl+C away from the child; the supervisor owns shutdown.
    return {"start_new_session": True}

def _read_pipe(pipe, process_name: str, level: int):
    """Target function for reader threads. Reads and logs lines from a subprocess pipe."""
    proc_logger = logging.getLogger(f"proc.{process_name}")
    try:
        for line_bytes in iter(pipe.readline, b""):
            line = line_bytes.decode("utf-8", errors="replace").strip()
            if not line:
                continue
            proc_logger.log(level, line)
    except Exception as e:
        proc_logger.debug(f"Pipe reader for {process_name} stream exited: {e}")
    finally:
        pipe.close()

def log_process_output(process: subprocess.Popen, name: str) -> List[threading.Thread]:
    """Starts background threads to consume and log a process's stdout/stderr."""
    readers = []
    if process.stdout:
        readers.append(threading.Thread(
            target=_read_pipe, args=(process.stdout, name, logging.INFO),
            daemon=True, name=f"{name}-stdout",
        ))
    if process.stderr:
        readers.append(threading.Thread(
            target=_read_pipe, args=(process.stderr, name, logging.ERROR),
            daemon=True, name=f"{name}-stderr",
        ))
    for reader in readers:
        reader.start()
    return readers

def launch_process(target: Path, name: str) -> subprocess.Popen:
    """
    Starts the target executable with no arguments and captured output streams.

    :param target: Absolute path of the executable.
    :param name: The logical name of the owner, used for the output loggers.
    :return: The running child.
    :raises SpawnError: If the OS refused to start the process.
    """
    log.debug(f"[{name}] Starting {target}...")
    try:
        p = subprocess.Popen(
            [str(target)],
            stdout=subprocess.PIPE,
            stderr=subprocess.PIPE,
            stdin=subprocess.DEVNULL,
            cwd=str(target.parent),
            **_get_popen_creation_flags(),
        )
    except (OSError, ValueError, subprocess.SubprocessError) as e:
        raise SpawnError(f"Failed to start '{target}': {e}") from e

    log_process_output(p, name)
    return p


#* --- Process Termination ---
def _descendants(pid: int) -> List[psutil.Process]:
    try:
        return get_process_from_pid(pid).children(recursive=True)
    except psutil.Error:
        return []

def _forceful_kill(processes: List[psutil.Process]) -> None:
    """Forcefully kills the given processes, ignoring those already gone."""
    for proc in processes:
        try:
            log.debug(f"Killing process {proc.pid}.")
            proc.kill()
        except psutil.NoSuchProcess:
            continue
        except psutil.AccessDenied:
            log.warning(f"Access denied while killing PID {proc.pid}.")

def kill_process(process: subprocess.Popen, timeout: float = 5.0) -> Optional[int]:
    """
    Kills a child and its descendants, then reaps it.

    :param process: The child to kill.
    :param timeout: Seconds to wait for the child to be reaped.
    :return: The child's exit status, or None if it could not be reaped in time.
    """
    descendants = _descendants(process.pid)
    if process.poll() is None:
        try:
            process.kill()
        except OSError as e:
            log.debug(f"Kill of PID {process.pid} failed, it has probably exited: {e}")
    _forceful_kill(descendants)
    if descendants:
        psutil.wait_procs(descendants, timeout=timeout)

    try:
        return process.wait(timeout=timeout)
    except subprocess.TimeoutExpired:
        log.warning(f"PID {process.pid} did not exit within {timeout}s of being killed.")
        return None


#* --- Reconciliation ---
def _runs_target(info: Dict[str, Any], target: str) -> bool:
    candidates = [info.get("exe")]
    cmdline = info.get("cmdline") or []
    if cmdline:
        candidates.append(cmdline[0])
    for candidate in candidates:
        if candidate and os.path.realpath(candidate) == target:
            return True
    return False

def find_target_processes(target: Path, include_own_children: bool = True) -> List[psutil.Process]:
    """
    Lists processes running the target executable.

    :param target: Path of the target executable.
    :param include_own_children: If False, processes started by this supervisor are skipped.
    :return: The matching processes, never including the current process.
    """
    resolved = os.path.realpath(target)
    own_pid = os.getpid()
    matches = []
    for proc in psutil.process_iter(["pid", "ppid", "exe", "cmdline"]):
        info = proc.info
        if info["pid"] == own_pid:
            continue
        if not include_own_children and info.get("ppid") == own_pid:
            continue
        if _runs_target(info, resolved):
            matches.append(proc)
    return matches

def terminate_strays(target: Path, timeout: float = 3.0) -> int:
    """
    Terminates instances of the target that this supervisor did not start.

    Processes get SIGTERM first and are force-killed if they outlive *timeout*.
    Any process running the same executable path is affected, including ones
    that belong to an unrelated supervisor.

    :return: The number of stray processes found.
    """
    strays = find_target_processes(target, include_own_children=False)
    if not strays:
        return 0

    log.warning(f"Found {len(strays)} stray instance(s) of {target}: {[p.pid for p in strays]}. Terminating.")
    for proc in strays:
        try:
            proc.terminate()
        except psutil.NoSuchProcess:
            continue
        except psutil.AccessDenied:
            log.warning(f"Access denied while terminating stray PID {proc.pid}.")

    _, alive = psutil.wait_procs(strays, timeout=timeout)
    if alive:
        log.warning(f"{len(alive)} stray instance(s) did not terminate gracefully. Forcing shutdown...")
        _forceful_kill(alive)
    return len(strays)
