import os
import logging
import psutil
from typing import List

from keepalive.local import app_globals
from keepalive.local.supervisor import locator, process_utils
from keepalive.local.supervisor.errors import SupervisorError

log = logging.getLogger(__name__)


def run_once() -> int:
    """
    Runs the target a single time in the foreground, without supervision.

    :return: 0 if the target exited with status 0, otherwise 1.
    """
    target = locator.locate(locator.candidate_paths(app_globals))
    log.info(f"Running {target.path} once...")
    process = process_utils.launch_process(target.path, "run")
    try:
        code = process.wait()
    except KeyboardInterrupt:
        log.warning("Interrupted. Killing the target.")
        process_utils.kill_process(process, timeout=app_globals.CHILD_KILL_TIMEOUT)
        raise

    if code != 0:
        log.error(f"Target exited with status {code}.")
        return 1
    log.info("Target exited successfully.")
    return 0


def check_configuration() -> bool:
    """
    Validates that the target executable can be found and run.

    :return: True if the target was resolved and is executable.
    """
    log.info("Performing configuration and path validation...")
    for candidate in locator.candidate_paths(app_globals):
        marker = "found" if candidate.is_file() else "missing"
        log.info(f"  candidate {candidate} : {marker}")
    try:
        target = locator.locate(locator.candidate_paths(app_globals))
    except SupervisorError as e:
        log.error(f"CONFIG CHECK FAILED: {e}")
        return False
    log.info(f"Config Check OK: '{app_globals.TARGET_NAME}' resolves to '{target.path}' (executable: {target.executable})")
    return True


def display_status() -> None:
    """Shows the live instances of the target with their resource usage."""
    try:
        target = locator.locate(locator.candidate_paths(app_globals))
    except SupervisorError as e:
        print(f"\nTarget not available: {e}\n")
        return

    procs = process_utils.find_target_processes(target.path)
    if not procs:
        print(f"\n{target.path} is NOT RUNNING.\n")
        return

    print(f"\n--- Instances of {target.path} ---")
    total_cpu = 0.0
    total_mem = 0
    for p in procs:
        try:
            cpu = p.cpu_percent(interval=0.1)
            mem = p.memory_info().rss
            owner = "supervised" if p.ppid() == os.getpid() else f"parent {p.ppid()}"
            print(f"  - PID {p.pid:<8} | Status: {p.status().upper():<10} | CPU: {cpu:.1f}% | MEM: {mem/1024/1024:.1f} MB | {owner}")
            total_cpu += cpu
            total_mem += mem
        except psutil.NoSuchProcess:
            print(f"  - PID {p.pid:<8} | Status: EXITED")
        except psutil.AccessDenied:
            print(f"  - PID {p.pid:<8} | Status: RUNNING (Access Denied)")

    print(f"\nTOTAL CPU: {total_cpu:.1f}%  |  TOTAL MEMORY: {total_mem/1024/1024:.1f} MB")
    print("-" * 26 + "\n")


def _config_show() -> None:
    print("\n--- Current Supervisor Configuration ---")
    print(f"(Overrides file: {app_globals.OVERRIDES_JSON_PATH})")
    for key in sorted(app_globals.MODIFIABLE_SETTINGS):
        print(f"  {key} = {app_globals.get(key, 'N/A')}")
    print("---")
    print("Use 'config set <KEY> <VALUE>' to change a setting. Restart the supervisor to apply it.\n")


def _config_help() -> None:
    print("\nConfig Command Help:")
    print("  config show                - Display all modifiable settings.")
    print("  config set KEY VALUE       - Persist a new value to the overrides file.")
    print("  config help                - Show this help message.")


def handle_config_command(args: List[str]) -> bool:
    """
    Handles all sub-commands for the 'config' command.

    :param args: A list of string arguments following the 'config' command.
    :return: False if the sub-command failed or was not understood.
    """
    sub_command = args[0].lower() if args else "show"

    if sub_command == "show":
        _config_show()
        return True
    if sub_command == "help":
        _config_help()
        return True
    if sub_command == "set":
        if len(args) < 3:
            print("Usage: config set <SETTING_NAME> <VALUE>")
            return False
        success, message = app_globals.update_setting(args[1], " ".join(args[2:]))
        print(message)
        return success

    print(f"Unknown config sub-command: '{sub_command}'. Type 'config help' for available commands.")
    return False


def print_help() -> None:
    """Prints the main help text."""
    print("\nUsage: keepalive <command> [--verbose]")
    print("\nAvailable commands:")
    print("  resilient              - Keep the target running with one watchdog until Ctrl+C.")
    print("  super-resilient        - Same with three redundant watchdogs, stray cleanup and health probes.")
    print("  run                    - Run the target once in the foreground and report its exit status.")
    print("  status                 - Show live instances of the target.")
    print("  check-config           - Show where the target is looked for and whether it was found.")
    print("  config <cmd>           - Manage configuration. Use 'config help' for more details.")
    print("  help                   - Show this message.")
    print()
