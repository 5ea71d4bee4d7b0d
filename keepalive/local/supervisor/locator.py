import os
import sys
import shutil
import logging
import subprocess
from pathlib import Path
from dataclasses import dataclass
from typing import Any, Iterable, List, Optional

from keepalive.local import app_globals
from .errors import TargetNotFoundError, TargetPermissionError
from .process_utils import get_executable_path

log = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class TargetSpec:
    """The resolved executable shared read-only by every watchdog."""

    path: Path
    executable: bool


def candidate_paths(settings: Any = app_globals) -> List[Path]:
    """
    Returns the locations searched for the target, most preferred first.

    :param settings: The settings object providing TARGET_NAME and friends.
    :return: Home-relative, working-directory-relative, system-wide, then PATH.
    """
    name = settings.TARGET_NAME
    candidates = [
        get_executable_path(Path.home() / settings.TARGET_SUBDIR / name),
        get_executable_path(Path.cwd() / name),
        get_executable_path(Path(settings.SYSTEM_INSTALL_DIR) / name),
    ]
    on_path = shutil.which(name)
    if on_path:
        candidates.append(Path(on_path))
    return candidates


def _is_executable(path: Path) -> bool:
    return os.access(path, os.X_OK)


def _chmod_command(path: Path) -> bool:
    """Runs the platform's `chmod +x`. Returns True on a zero exit."""
    if sys.platform == "win32":
        return False
    try:
        result = subprocess.run(["chmod", "+x", str(path)], capture_output=True, timeout=10, check=False)
    except (OSError, subprocess.SubprocessError) as e:
        log.debug(f"chmod +x could not run for '{path}': {e}")
        return False
    if result.returncode != 0:
        log.debug(f"chmod +x failed for '{path}': {result.stderr.decode(errors='replace').strip()}")
        return False
    return True


def ensure_executable(path: Path, mode: Optional[int] = None) -> bool:
    """
    Makes *path* executable. A file that already is executable is left untouched.

    Tries `chmod +x` first and falls back to setting the permission bits directly.

    :param path: The file to fix.
    :param mode: Permission bits for the fallback; defaults to EXECUTABLE_MODE.
    :return: True once the file is executable.
    :raises TargetPermissionError: If neither mechanism worked.
    """
    if _is_executable(path):
        return True

    if _chmod_command(path) and _is_executable(path):
        log.info(f"Marked '{path}' executable.")
        return True

    mode = app_globals.EXECUTABLE_MODE if mode is None else mode
    try:
        os.chmod(path, mode)
    except OSError as e:
        raise TargetPermissionError(f"Could not make '{path}' executable: {e}") from e

    if not _is_executable(path):
        raise TargetPermissionError(f"'{path}' is still not executable after setting mode {oct(mode)}.")
    log.info(f"Set mode {oct(mode)} on '{path}'.")
    return True


def locate(candidates: Optional[Iterable[Path]] = None) -> TargetSpec:
    """
    Resolves the target executable and makes sure it can be run.

    :param candidates: Paths to try in order; defaults to `candidate_paths()`.
    :return: The resolved target.
    :raises TargetNotFoundError: If no candidate exists.
    :raises TargetPermissionError: If the executable bit could not be set.
    """
    tried = []
    for candidate in candidates if candidates is not None else candidate_paths():
        tried.append(str(candidate))
        if candidate.is_file():
            path = candidate.resolve()
            log.info(f"Found target executable at '{path}'.")
            return TargetSpec(path=path, executable=ensure_executable(path))

    raise TargetNotFoundError(f"Target executable not found. Looked in: {', '.join(tried) or '<nowhere>'}")
