"""
This module contains the configuration settings for the keepalive supervisor.
It defines the target executable's identity, the watchdog timing knobs and the
hardening values. Everything here can be read through `app_globals`.
"""

import os
import pathlib
from dotenv import load_dotenv

# Load environment variables from .env file
load_dotenv(override=True)

#* --- Target Executable ---
# The locator looks for TARGET_NAME in, in order:
#   ~/<TARGET_SUBDIR>/<TARGET_NAME>, ./<TARGET_NAME>, <SYSTEM_INSTALL_DIR>/<TARGET_NAME>, then PATH.
TARGET_NAME = os.getenv("KEEPALIVE_TARGET", "worker")
TARGET_SUBDIR = os.getenv("KEEPALIVE_TARGET_SUBDIR", TARGET_NAME)
SYSTEM_INSTALL_DIR = pathlib.Path(os.getenv("KEEPALIVE_SYSTEM_DIR", "/usr/bin"))
# owner rwx, group/world r-x
EXECUTABLE_MODE = 0o755

#* --- State & Log Paths ---
STATE_DIR = pathlib.Path(os.getenv("KEEPALIVE_STATE_DIR", pathlib.Path.home() / ".keepalive"))
OVERRIDES_JSON_PATH = STATE_DIR / "overrides.json"
LOG_FILE_PATH = os.getenv("KEEPALIVE_LOG_FILE") or None
LOG_FILE_MAX_BYTES = 5 * 1024 * 1024
LOG_FILE_BACKUP_COUNT = 3

#* --- Supervisor Settings ---
PROCESS_TITLE = "Keepalive - Supervisor"
SUPERVISOR_SLEEP_INTERVAL = 1       # seconds between cancellation checks on the main thread
SUPER_RESILIENT_WATCHDOGS = 3

#* --- Watchdog Settings ---
WATCHDOG_POLL_INTERVAL = 0.1        # seconds
WATCHDOG_POLL_JITTER = 0.05         # added per instance in super-resilient mode
BACKOFF_FLOOR = 2.5                 # first retry after a failed spawn waits 5s
BACKOFF_CAP = 300                   # seconds
FAILURE_CEILING = 5
CRASH_LOOP_PAUSE = 30               # seconds
STABLE_RUN_SECONDS = 60             # a child alive this long clears the failure counter
CHILD_KILL_TIMEOUT = 5              # seconds to reap a killed child
STRAY_TERMINATE_TIMEOUT = 3         # seconds before stray instances are force-killed
HEALTH_PROBE_ENABLED = True         # super-resilient mode only
WATCHDOG_JOIN_MARGIN = 10           # slack on top of the longest watchdog iteration when joining

#* --- Hardening ---
NICE_VALUE = -20
OOM_SCORE_ADJ = -1000
OOM_SCORE_ADJ_PATH = pathlib.Path("/proc/self/oom_score_adj")

#* --- Application variables ---
VERBOSE_LOGGING = False

#* --- MODIFIABLE SETTINGS (Changeable via the 'config set' command) ---
MODIFIABLE_SETTINGS = {
    "WATCHDOG_POLL_INTERVAL", "WATCHDOG_POLL_JITTER",
    "BACKOFF_FLOOR", "BACKOFF_CAP",
    "FAILURE_CEILING", "CRASH_LOOP_PAUSE", "STABLE_RUN_SECONDS",
    "CHILD_KILL_TIMEOUT", "STRAY_TERMINATE_TIMEOUT",
    "HEALTH_PROBE_ENABLED", "SUPERVISOR_SLEEP_INTERVAL",
}
