import os
from pathlib import Path

"""Global constants and path definitions for synctool.

This module defines the on-disk layout (under %ProgramData% on Windows so the
SYSTEM account and administrators share one location), the scheduled task
identifiers, and the default repository coordinates of the toolkit.
"""

# --- Identity ---
APP_NAME = "synctool"
"""str: The human-readable application name."""

UPDATE_TASK_NAME = "IGP Pull IGP Tools"
"""str: The scheduler name of the startup trigger that runs the updater."""

SHUTDOWN_TASK_NAME = "IGP Scheduled Shutdown"
"""str: The scheduler name of the daily shutdown trigger."""

RUN_AS = "SYSTEM"
"""str: The identity scheduled triggers run as."""

# --- Repository defaults ---
DEFAULT_REMOTE_URL = "https://github.com/igp-it/igp-tools.git"
"""str: The toolkit repository cloned onto workstations."""

DEFAULT_BRANCH = "main"
"""str: The branch the local working copy tracks."""

# --- Paths ---
_PROGRAM_DATA = os.environ.get("PROGRAMDATA")
_BASE_DIR = (
    Path(_PROGRAM_DATA) / "IGP"
    if _PROGRAM_DATA
    else Path.home() / ".local/state/igp"
)

STATE_DIR = _BASE_DIR / APP_NAME
"""Path: The directory for runtime state data (logs)."""

LOG_FILE = STATE_DIR / "synctool.log"
"""Path: The rotating log file shared by both execution modes."""

CONFIG_FILE = STATE_DIR / "config.toml"
"""Path: The default configuration file path."""

DEFAULT_TARGET_DIR = _BASE_DIR / "igp-tools"
"""Path: Where the toolkit working copy lives by default."""

# --- Git ---
REMOTE_NAME = "origin"
"""str: The remote every fetch and reset is resolved against."""

PROMPT_SUPPRESSION_ENV = {
    "GIT_TERMINAL_PROMPT": "0",
    "GCM_INTERACTIVE": "never",
}
"""dict[str, str]: Child environment entries that stop git from asking for credentials."""

# --- Repair ---
DISM_REBOOT_REQUIRED = 3010
"""int: DISM exit code meaning the repair succeeded and a restart is pending."""

SHUTDOWN_COMMAND = "shutdown.exe /s /f /t 60"
"""str: The command the scheduled shutdown trigger runs."""
