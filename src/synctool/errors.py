from enum import Enum
from pathlib import Path


class ErrorKind(Enum):
    """Closed set of failure categories callers branch on."""

    OFFLINE = "offline"
    TOOL_UNAVAILABLE = "tool_unavailable"
    UNSAFE_OVERWRITE = "unsafe_overwrite"
    CLONE_FAILED = "clone_failed"
    FETCH_FAILED = "fetch_failed"
    RESET_FAILED = "reset_failed"
    REMOTE_MISMATCH = "remote_mismatch"
    REGISTRATION_FAILED = "registration_failed"
    PRIVILEGE_REQUIRED = "privilege_required"
    REPAIR_FAILED = "repair_failed"


class ToolkitError(Exception):
    """A failure raised by a toolkit operation.

    Attributes:
        kind (ErrorKind): The failure category.
        exit_code (int | None): The native exit code of the failing process, if any.
        path (Path | None): The filesystem location involved, if any.
        url (str | None): The remote URL involved, if any.
    """

    def __init__(
        self,
        kind: ErrorKind,
        message: str,
        *,
        exit_code: int | None = None,
        path: Path | None = None,
        url: str | None = None,
    ):
        super().__init__(message)
        self.kind = kind
        self.exit_code = exit_code
        self.path = path
        self.url = url

    def __str__(self) -> str:
        message = super().__str__()
        if self.exit_code is not None:
            return f"{message} (exit code {self.exit_code})"
        return message
