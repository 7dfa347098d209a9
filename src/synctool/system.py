import ctypes
import logging
import os
import sys

from .constants import APP_NAME
from .errors import ErrorKind, ToolkitError

logger = logging.getLogger(APP_NAME)


class SystemStrategy:
    """Base class defining the interface for system-level interactions."""

    def is_admin(self) -> bool:
        """Determines whether the process runs with elevated privilege.

        Returns:
            bool: True for root on POSIX systems. Unknown platforms report False.
        """
        if hasattr(os, "geteuid"):
            return os.geteuid() == 0
        return False


class WindowsStrategy(SystemStrategy):
    """System strategy implementation for Windows."""

    def is_admin(self) -> bool:
        """Checks the process token through `IsUserAnAdmin`."""
        try:
            return bool(ctypes.windll.shell32.IsUserAnAdmin())
        except (AttributeError, OSError) as e:
            logger.debug(f"IsUserAnAdmin unavailable: {e}")
            return False


def get_system() -> SystemStrategy:
    """Factory function to retrieve the platform-specific system strategy.

    Returns:
        SystemStrategy: A WindowsStrategy on Windows, otherwise the POSIX base.
    """
    if sys.platform == "win32":
        return WindowsStrategy()
    return SystemStrategy()


def require_admin(strategy: SystemStrategy | None = None) -> None:
    """Raises unless the process is elevated.

    Raises:
        ToolkitError: PRIVILEGE_REQUIRED when not running as an administrator.
    """
    strategy = strategy or get_system()
    if not strategy.is_admin():
        raise ToolkitError(
            ErrorKind.PRIVILEGE_REQUIRED,
            "Administrator privileges are required. "
            "Right-click the launcher and choose 'Run as administrator'",
        )
