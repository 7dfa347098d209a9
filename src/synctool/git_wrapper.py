import logging
import os
import shutil
import subprocess
from pathlib import Path

from .constants import APP_NAME, PROMPT_SUPPRESSION_ENV, REMOTE_NAME

logger = logging.getLogger(APP_NAME)


class GitCommandError(RuntimeError):
    """Raised when a git invocation exits non-zero.

    Attributes:
        args_list (list[str]): The git arguments that were run.
        returncode (int): The native exit code.
        stderr (str): Whatever git wrote to stderr.
    """

    def __init__(self, args_list: list[str], returncode: int, stderr: str = ""):
        self.args_list = args_list
        self.returncode = returncode
        self.stderr = stderr.strip()
        detail = self.stderr or f"exit code {returncode}"
        super().__init__(f"Git error ({' '.join(args_list[:1])}): {detail}")


def git_available() -> bool:
    """Returns True if a git executable can be found on PATH."""
    return shutil.which("git") is not None


def build_env(suppress_prompts: bool) -> dict[str, str]:
    """Builds the child environment for a git invocation.

    Args:
        suppress_prompts (bool): Whether git must fail instead of asking for
            credentials on a terminal.

    Returns:
        dict[str, str]: A copy of the current environment, extended as needed.
    """
    env = os.environ.copy()
    if suppress_prompts:
        env.update(PROMPT_SUPPRESSION_ENV)
    return env


def run_git(
    args: list[str],
    cwd: Path | None = None,
    suppress_prompts: bool = True,
    capture: bool = True,
) -> str:
    """Executes a git command.

    Args:
        args (list[str]): Arguments passed to git.
        cwd (Path | None): Directory to run in. None runs without a repository context.
        suppress_prompts (bool): Disable interactive credential prompts.
        capture (bool): Whether to capture and return stdout.

    Returns:
        str: The stripped stdout if capture is True, otherwise an empty string.

    Raises:
        GitCommandError: If git exits non-zero.
    """
    res = subprocess.run(
        ["git", *args],
        cwd=cwd,
        capture_output=capture,
        text=True,
        env=build_env(suppress_prompts),
    )
    if res.returncode != 0:
        raise GitCommandError(args, res.returncode, res.stderr or "")
    return res.stdout.strip() if capture and res.stdout else ""


def list_safe_directories(suppress_prompts: bool = True) -> list[str]:
    """Returns the globally registered safe.directory entries."""
    try:
        output = run_git(
            ["config", "--global", "--get-all", "safe.directory"],
            suppress_prompts=suppress_prompts,
        )
    except GitCommandError:
        # Exit code 1 means the key is unset.
        return []
    return output.splitlines() if output else []


def add_safe_directory(path: Path, suppress_prompts: bool = True) -> bool:
    """Registers a path as a trusted git directory.

    Running as SYSTEM against a directory owned by another account makes git
    refuse to operate on it unless the path is listed in safe.directory.

    Args:
        path (Path): The directory to trust.
        suppress_prompts (bool): Disable interactive credential prompts.

    Returns:
        bool: True if the path is registered afterwards.
    """
    entry = path.resolve().as_posix()
    if entry in list_safe_directories(suppress_prompts):
        return True
    try:
        run_git(
            ["config", "--global", "--add", "safe.directory", entry],
            suppress_prompts=suppress_prompts,
        )
        return True
    except GitCommandError as e:
        logger.warning(f"Could not register {entry} as a safe directory: {e}")
        return False


class GitRepo:
    """A wrapper around the Git command-line interface for a specific working copy.

    Every command runs with the repository path as its working directory and
    an environment assembled per call, so nothing depends on the process's
    current directory or mutates the process environment.

    Attributes:
        path (Path): The file system path to the repository root.
        suppress_prompts (bool): Whether git runs with credential prompts disabled.
    """

    def __init__(self, path: Path, suppress_prompts: bool = True):
        """Initializes the GitRepo instance.

        Args:
            path (Path): The path to the repository root directory.
            suppress_prompts (bool, optional): Disable credential prompts.
                                               Defaults to True.

        Raises:
            ValueError: If the specified path does not contain a .git directory.
        """
        self.path = path
        self.suppress_prompts = suppress_prompts
        if not (self.path / ".git").exists():
            raise ValueError(f"Not a git repository: {self.path}")

    @classmethod
    def clone(
        cls, url: str, branch: str, path: Path, suppress_prompts: bool = True
    ) -> "GitRepo":
        """Performs a shallow single-branch clone and wraps the result.

        Args:
            url (str): The remote URL.
            branch (str): The branch to check out.
            path (Path): The destination directory (absent or empty).
            suppress_prompts (bool, optional): Disable credential prompts.

        Returns:
            GitRepo: The freshly cloned repository.

        Raises:
            GitCommandError: If the clone fails.
        """
        run_git(
            [
                "clone",
                "--depth",
                "1",
                "--branch",
                branch,
                "--single-branch",
                url,
                str(path.resolve()),
            ],
            cwd=path.resolve().parent,
            suppress_prompts=suppress_prompts,
        )
        return cls(path, suppress_prompts=suppress_prompts)

    def _run(self, args: list[str], capture: bool = True) -> str:
        """Executes a Git command within the repository context.

        Args:
            args (list[str]): A list of arguments to pass to the git command.
            capture (bool, optional): Whether to capture and return stdout.
                                      Defaults to True.

        Returns:
            str: The stripped stdout of the command if capture is True,
                 otherwise an empty string.

        Raises:
            GitCommandError: If the git command returns a non-zero exit code.
        """
        return run_git(
            args,
            cwd=self.path,
            suppress_prompts=self.suppress_prompts,
            capture=capture,
        )

    def fetch_prune(self, remote: str = REMOTE_NAME) -> None:
        """Fetches from a remote, dropping remote-tracking refs that no longer exist."""
        self._run(["fetch", "--prune", remote])

    def reset_hard(self, target: str) -> None:
        """Forces the index and working tree to match a reference.

        Args:
            target (str): The reference to reset to (e.g., 'origin/main').
        """
        self._run(["reset", "--hard", target])

    def clean(self) -> None:
        """Removes untracked files and directories."""
        self._run(["clean", "-fd"])

    def remote_url(self, remote: str = REMOTE_NAME) -> str | None:
        """Returns the configured URL of a remote, or None if it is not set."""
        try:
            return self._run(["remote", "get-url", remote]) or None
        except GitCommandError as e:
            logger.debug(f"remote get-url failed for '{remote}': {e}")
            return None

    def current_branch(self) -> str:
        """Retrieves the name of the currently checked-out branch."""
        return self._run(["branch", "--show-current"])

    def rev_parse(self, rev: str) -> str | None:
        """Resolves a revision to a full SHA-1 hash.

        Args:
            rev (str): The revision to parse (e.g., 'HEAD', 'origin/main').

        Returns:
            Optional[str]: The full SHA-1 hash, or None if it could not be resolved.
        """
        try:
            return self._run(["rev-parse", rev])
        except GitCommandError as e:
            logger.debug(f"rev-parse failed for '{rev}': {e}")
            return None

    def get_last_commit_time(self, rev: str = "HEAD") -> str:
        """Gets the relative time since the last commit on a revision.

        Returns:
            str: A human-readable relative time string (e.g., '2 hours ago').
        """
        return self._run(["log", "-1", "--format=%cr", rev])

    def status_porcelain(self) -> list[str]:
        """Returns the porcelain status lines of the working copy."""
        output = self._run(["status", "--porcelain"])
        return output.splitlines() if output else []
