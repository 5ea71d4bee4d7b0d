"""
The Supervisor package.
Keeps the target executable running until the operator interrupts it.

This package contains the Supervisor orchestrator and its helper modules:
the executable locator, process hardening, the cancellation flag and the
watchdog loops that restart the child with backoff.
"""
from .errors import (
    CancellationInstallWarning,
    HardeningWarning,
    SpawnError,
    StatusCheckError,
    SupervisorError,
    TargetNotFoundError,
    TargetPermissionError,
)
from .options import ResilienceLevel, WatchdogOptions
from .supervisor import Supervisor, supervise

__all__ = [
    'CancellationInstallWarning',
    'HardeningWarning',
    'ResilienceLevel',
    'SpawnError',
    'StatusCheckError',
    'Supervisor',
    'SupervisorError',
    'TargetNotFoundError',
    'TargetPermissionError',
    'WatchdogOptions',
    'supervise',
]
