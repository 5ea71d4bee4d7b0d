import sys
import psutil
import logging
from pathlib import Path
from typing import Any, List

from keepalive.local import app_globals
from .errors import HardeningWarning

log = logging.getLogger(__name__)


def raise_priority(nice_value: int) -> None:
    """
    Gives this process the most favourable scheduling priority.

    :raises HardeningWarning: If the OS refused the change.
    """
    proc = psutil.Process()
    value = psutil.HIGH_PRIORITY_CLASS if sys.platform == "win32" else nice_value
    try:
        proc.nice(value)
    except (psutil.AccessDenied, PermissionError) as e:
        raise HardeningWarning(f"Not permitted to set priority {value}: {e}") from e
    except (psutil.Error, OSError, ValueError) as e:
        raise HardeningWarning(f"Could not set priority {value}: {e}") from e
    log.info(f"Process priority set to {value}.")


def protect_from_oom_killer(score: int, score_path: Path) -> bool:
    """
    Writes the OOM-killer adjustment for this process.

    :return: False when the platform has no OOM score to adjust.
    :raises HardeningWarning: If the score could not be written.
    """
    if not sys.platform.startswith("linux") or not score_path.exists():
        log.debug("OOM score adjustment is not supported on this platform. Skipping.")
        return False
    try:
        score_path.write_text(str(score))
    except OSError as e:
        raise HardeningWarning(f"Could not write OOM score {score} to '{score_path}': {e}") from e
    log.info(f"OOM score adjustment set to {score}.")
    return True


def harden(settings: Any = app_globals) -> List[HardeningWarning]:
    """
    Makes the supervisor itself unlikely to be reclaimed by the OS.

    Both steps are best effort. Failures are logged and returned, never raised:
    lacking the privilege for them is common.

    :param settings: The settings object providing NICE_VALUE and the OOM values.
    :return: The warnings collected, empty when fully hardened.
    """
    warnings: List[HardeningWarning] = []
    try:
        raise_priority(settings.NICE_VALUE)
    except HardeningWarning as w:
        warnings.append(w)

    try:
        protect_from_oom_killer(settings.OOM_SCORE_ADJ, Path(settings.OOM_SCORE_ADJ_PATH))
    except HardeningWarning as w:
        warnings.append(w)

    for w in warnings:
        log.warning(f"Hardening incomplete: {w}")
    return warnings
