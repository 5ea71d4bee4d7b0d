import signal
import logging

from .errors import CancellationInstallWarning

log = logging.getLogger(__name__)

_STOCK_HANDLERS = (signal.default_int_handler, signal.SIG_DFL, signal.SIG_IGN, None)


class CancellationFlag:
    """
    Process-wide "running" / "stopping" flag.

    One writer flips it, any number of threads poll it. The only transition is
    running -> stopping, so a plain attribute store is enough: no lock, which
    also keeps it safe to flip from inside a signal handler.
    """

    def __init__(self) -> None:
        self._stopping = False
        self.supported = True

    def is_stopping(self) -> bool:
        return self._stopping

    def request_stop(self) -> None:
        self._stopping = True

    def __repr__(self) -> str:
        state = "stopping" if self._stopping else "running"
        return f"<CancellationFlag {state}>"


def install(signum: int = signal.SIGINT) -> CancellationFlag:
    """
    Routes the operator's interrupt signal to a new cancellation flag.

    If the handler cannot be registered, for instance because another handler
    already owns the signal or this is not the main thread, a warning is logged
    and the returned flag has `supported` set to False: it never flips, and only
    an external kill will stop supervision.
    """
    flag = CancellationFlag()

    def _handler(_signum, _frame):
        flag.request_stop()

    try:
        current = signal.getsignal(signum)
        if current not in _STOCK_HANDLERS:
            raise CancellationInstallWarning(f"A handler for signal {signum} is already installed: {current!r}")
        signal.signal(signum, _handler)
    except (CancellationInstallWarning, ValueError, OSError, RuntimeError) as e:
        flag.supported = False
        log.warning(f"Could not install the interrupt handler ({e}). Supervision will run until killed externally.")
        return flag

    log.debug(f"Interrupt handler installed for signal {signum}.")
    return flag
