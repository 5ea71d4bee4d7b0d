import sys
import logging
from typing import List, Optional

# Basic console logger for messages BEFORE full setup is complete.
# This logger will be replaced by the full setup later.
logging.basicConfig(
    level=logging.INFO,
    format='%(asctime)s - %(levelname)-8s - [console] - %(message)s',
    stream=sys.stdout
)
log = logging.getLogger("console")

from keepalive.local import app_globals
from keepalive.local.console import execute_command, print_help
from keepalive.local.console.process import EXIT_USAGE
from keepalive.log.setup import setup_logging

EXIT_INTERRUPTED = 130


def main(argv: Optional[List[str]] = None) -> int:
    """The main entry point: runs one command and returns its exit status."""
    args = list(sys.argv[1:] if argv is None else argv)

    if "--verbose" in args:
        app_globals.VERBOSE_LOGGING = True
        args.remove("--verbose")
    setup_logging(logging.DEBUG if app_globals.VERBOSE_LOGGING else logging.INFO)

    if not args:
        print_help()
        return EXIT_USAGE

    command, rest = args[0].lower(), args[1:]
    try:
        return execute_command(command, rest)
    except KeyboardInterrupt:
        log.warning("Interrupted before supervision was running.")
        return EXIT_INTERRUPTED


if __name__ == "__main__":
    sys.exit(main())
