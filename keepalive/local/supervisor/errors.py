"""Errors raised and advisories reported by the supervision core."""


class SupervisorError(Exception):
    """Base class for supervisor failures."""


class TargetNotFoundError(SupervisorError, FileNotFoundError):
    """The target executable is absent from every candidate location."""


class TargetPermissionError(SupervisorError, PermissionError):
    """The target executable could not be made executable."""


class SpawnError(SupervisorError):
    """A watchdog could not start its child process."""


class StatusCheckError(SupervisorError):
    """Querying the child's exit status failed."""


class HardeningWarning(UserWarning):
    """Priority or OOM-killer adjustment failed. Supervision continues unprotected."""


class CancellationInstallWarning(UserWarning):
    """The interrupt handler could not be installed. Only a forced kill will stop supervision."""
