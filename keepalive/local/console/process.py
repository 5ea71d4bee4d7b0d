import logging
from typing import List

from keepalive.local.supervisor import ResilienceLevel, SupervisorError, supervise
from keepalive.local.console.handler import check_configuration, display_status, handle_config_command, print_help, run_once

log = logging.getLogger(__name__)

EXIT_OK = 0
EXIT_FATAL = 1
EXIT_USAGE = 2


def _supervise(level: ResilienceLevel) -> int:
    unjoined = supervise(level)
    if unjoined:
        log.warning(f"Exited with {len(unjoined)} watchdog(s) still running: {', '.join(unjoined)}")
    return EXIT_OK


def execute_command(command: str, args: List[str]) -> int:
    """
    Executes a single command from the operator.

    :param command: The main command string (e.g., 'resilient', 'config').
    :param args: A list of arguments for the command.
    :return int: The process exit status.
    """
    log.debug(f"Executing command: {command}, args: {args}")
    command_map = {
        "resilient": lambda: _supervise(ResilienceLevel.RESILIENT),
        "super-resilient": lambda: _supervise(ResilienceLevel.SUPER_RESILIENT),
        "run": run_once,
        "status": lambda: display_status() or EXIT_OK,
        "check-config": lambda: EXIT_OK if check_configuration() else EXIT_FATAL,
        "config": lambda: EXIT_OK if handle_config_command(args) else EXIT_USAGE,
        "help": lambda: print_help() or EXIT_OK,
    }

    if command not in command_map:
        log.error(f"Unknown command: '{command}'. Type 'help' for a list of commands.")
        return EXIT_USAGE

    try:
        return command_map[command]()
    except SupervisorError as e:
        log.critical(f"Supervision aborted: {e}")
        return EXIT_FATAL
