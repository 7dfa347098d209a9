"""Repository synchronization.

Brings a local working copy to the current tip of a remote branch: clone on
first run, fetch and hard-reset afterwards. Offline machines are skipped
rather than failed, and a populated directory that is not a repository is
never cloned over.
"""

import logging
import socket
from dataclasses import dataclass
from enum import Enum
from pathlib import Path, PureWindowsPath
from urllib.parse import urlparse

from .config import Config, RepositoryLocation
from .constants import APP_NAME, REMOTE_NAME
from .errors import ErrorKind, ToolkitError
from .git_wrapper import GitCommandError, GitRepo, add_safe_directory, git_available

logger = logging.getLogger(APP_NAME)


class SyncStatus(Enum):
    SUCCESS = "success"
    SKIPPED = "skipped"


class SyncAction(Enum):
    CLONED = "cloned"
    UPDATED = "updated"
    NONE = "none"


@dataclass(frozen=True)
class SyncResult:
    """Outcome of a synchronization attempt.

    Attributes:
        status (SyncStatus): Whether the working copy was synchronized or skipped.
        action (SyncAction): What was done to the working copy.
        reason (ErrorKind | None): Why the attempt was skipped.
        head (str | None): The working copy HEAD after a successful run.
    """

    status: SyncStatus
    action: SyncAction = SyncAction.NONE
    reason: ErrorKind | None = None
    head: str | None = None

    @classmethod
    def success(cls, action: SyncAction, head: str | None) -> "SyncResult":
        return cls(SyncStatus.SUCCESS, action=action, head=head)

    @classmethod
    def skipped(cls, reason: ErrorKind) -> "SyncResult":
        return cls(SyncStatus.SKIPPED, reason=reason)

    @property
    def is_offline(self) -> bool:
        return self.status is SyncStatus.SKIPPED and self.reason is ErrorKind.OFFLINE


def get_remote_host(url: str) -> str | None:
    """Extracts the hostname from a git remote URL.

    Supports URL forms (https://, ssh://, git://) and scp-like SSH
    (git@host:path). Local paths and file:// URLs have no host.

    Args:
        url (str): The remote URL.

    Returns:
        str | None: The hostname (e.g., 'github.com') or None.
    """
    if "://" in url:
        parsed = urlparse(url)
        if parsed.scheme == "file":
            return None
        return parsed.hostname
    # scp-like syntax: [user@]host:path
    if ":" in url and not PureWindowsPath(url).drive:
        host = url.split(":", 1)[0]
        if "@" in host:
            host = host.split("@", 1)[1]
        return host or None
    return None


def is_remote_reachable(host: str, port: int = 443, timeout: float = 3) -> bool:
    """Performs a quick TCP connectivity check on the remote host.

    Args:
        host (str): The hostname to check.
        port (int): The port to connect to.
        timeout (float): Seconds before giving up.

    Returns:
        bool: True if the host accepts a connection on the port.
    """
    try:
        with socket.create_connection((host, port), timeout=timeout):
            return True
    except OSError:
        return False


def _ensure_directory(path: Path) -> None:
    path.mkdir(parents=True, exist_ok=True)


def _is_empty(path: Path) -> bool:
    return not any(path.iterdir())


def _normalize_url(url: str) -> str:
    return url.strip().rstrip("/").removesuffix(".git").lower()


def _clone(location: RepositoryLocation, suppress_prompts: bool) -> SyncResult:
    target = location.local_path
    if not _is_empty(target):
        raise ToolkitError(
            ErrorKind.UNSAFE_OVERWRITE,
            f"Refusing to clone into {target}: directory is not empty "
            "and is not a git repository",
            path=target,
        )

    logger.info(f"CLONE {location.remote_url} ({location.branch}) -> {target}")
    try:
        repo = GitRepo.clone(
            location.remote_url,
            location.branch,
            target,
            suppress_prompts=suppress_prompts,
        )
    except GitCommandError as e:
        raise ToolkitError(
            ErrorKind.CLONE_FAILED,
            f"Clone of {location.remote_url} failed: {e.stderr or e}",
            exit_code=e.returncode,
            path=target,
            url=location.remote_url,
        ) from e

    head = repo.rev_parse("HEAD")
    logger.info(f"SUCCESS {target.name}: Cloned at {head}.")
    return SyncResult.success(SyncAction.CLONED, head)


def _update(
    location: RepositoryLocation, verify_remote: bool, suppress_prompts: bool
) -> SyncResult:
    target = location.local_path
    repo = GitRepo(target, suppress_prompts=suppress_prompts)

    if verify_remote:
        current = repo.remote_url(REMOTE_NAME)
        if current is None or _normalize_url(current) != _normalize_url(
            location.remote_url
        ):
            raise ToolkitError(
                ErrorKind.REMOTE_MISMATCH,
                f"{target} tracks '{current}', expected '{location.remote_url}'. "
                "Refusing to reset it",
                path=target,
                url=location.remote_url,
            )

    logger.info(f"FETCH {target.name}: {REMOTE_NAME}")
    try:
        repo.fetch_prune(REMOTE_NAME)
    except GitCommandError as e:
        raise ToolkitError(
            ErrorKind.FETCH_FAILED,
            f"Fetch from {REMOTE_NAME} failed: {e.stderr or e}",
            exit_code=e.returncode,
            path=target,
            url=location.remote_url,
        ) from e

    ref = f"{REMOTE_NAME}/{location.branch}"
    logger.info(f"RESET {target.name}: --hard {ref}")
    try:
        repo.reset_hard(ref)
    except GitCommandError as e:
        raise ToolkitError(
            ErrorKind.RESET_FAILED,
            f"Hard reset to {ref} failed: {e.stderr or e}",
            exit_code=e.returncode,
            path=target,
        ) from e

    try:
        repo.clean()
    except GitCommandError as e:
        logger.warning(f"CLEAN {target.name}: {e}")

    head = repo.rev_parse("HEAD")
    logger.info(f"SUCCESS {target.name}: Up to date at {head}.")
    return SyncResult.success(SyncAction.UPDATED, head)


def synchronize(
    location: RepositoryLocation,
    *,
    probe_port: int = 443,
    probe_timeout: float = 3,
    verify_remote: bool = True,
    suppress_prompts: bool = True,
) -> SyncResult:
    """Makes the working copy at `location.local_path` match the remote branch tip.

    Steps:
    1. Probes the remote host; unreachable returns a skipped result.
    2. Checks that git is installed.
    3. Creates the target directory and marks it as a safe directory.
    4. Clones into an empty target, or fetches, hard-resets and cleans an
       existing working copy.

    Args:
        location (RepositoryLocation): Remote URL, branch and local path.
        probe_port (int): Port used for the reachability probe.
        probe_timeout (float): Timeout for the reachability probe.
        verify_remote (bool): Refuse to reset a clone of a different remote.
        suppress_prompts (bool): Run git with credential prompts disabled.

    Returns:
        SyncResult: Success (cloned or updated) or Skipped(OFFLINE).

    Raises:
        ToolkitError: TOOL_UNAVAILABLE, UNSAFE_OVERWRITE, CLONE_FAILED,
            REMOTE_MISMATCH, FETCH_FAILED or RESET_FAILED.
    """
    host = get_remote_host(location.remote_url)
    if host and not is_remote_reachable(host, probe_port, probe_timeout):
        logger.info(f"OFFLINE: {host}:{probe_port} unreachable. Sync skipped.")
        return SyncResult.skipped(ErrorKind.OFFLINE)

    if not git_available():
        raise ToolkitError(
            ErrorKind.TOOL_UNAVAILABLE, "git was not found on PATH. Install Git first"
        )

    target = location.local_path.resolve()
    location = RepositoryLocation(location.remote_url, location.branch, target)
    _ensure_directory(target)
    add_safe_directory(target, suppress_prompts=suppress_prompts)

    if not (target / ".git").exists():
        return _clone(location, suppress_prompts)
    return _update(location, verify_remote, suppress_prompts)


def synchronize_configured(config: Config, suppress_prompts: bool = True) -> SyncResult:
    """Runs `synchronize` with the repository and network settings of a Config."""
    return synchronize(
        config.repository.location(),
        probe_port=config.network.probe_port,
        probe_timeout=config.network.probe_timeout,
        verify_remote=config.repository.verify_remote,
        suppress_prompts=suppress_prompts,
    )
