"""synctool: Toolkit updater and workstation maintenance for IGP Windows machines.

This package provides the command-line interface, the unattended startup
updater, and the scheduled-task and system-repair operations behind the
maintenance menu.
"""

from . import (
    cli,
    config,
    constants,
    daemon,
    errors,
    git_wrapper,
    repair,
    scheduler,
    service,
    shutdown,
    sync,
    system,
)

__all__ = [
    "cli",
    "config",
    "constants",
    "daemon",
    "errors",
    "git_wrapper",
    "repair",
    "scheduler",
    "service",
    "shutdown",
    "sync",
    "system",
]
