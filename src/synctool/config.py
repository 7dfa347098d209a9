import logging
import re
import tomllib
from dataclasses import dataclass, field, replace
from pathlib import Path
from typing import Any

from .constants import (
    APP_NAME,
    CONFIG_FILE,
    DEFAULT_BRANCH,
    DEFAULT_REMOTE_URL,
    DEFAULT_TARGET_DIR,
    RUN_AS,
    SHUTDOWN_TASK_NAME,
    UPDATE_TASK_NAME,
)

logger = logging.getLogger(APP_NAME)


def parse_size(value: int | str) -> int:
    """Converts human-readable size strings (e.g., '5MB') to bytes."""
    if isinstance(value, int):
        return value
    match = re.match(r"^(\d+(?:\.\d+)?)\s*([kmg]b?)$", str(value).strip().lower())
    if not match:
        raise ValueError(f"Invalid size format '{value}'")
    num, unit = float(match.group(1)), match.group(2)
    multiplier = {
        "k": 1024,
        "kb": 1024,
        "m": 1024**2,
        "mb": 1024**2,
        "g": 1024**3,
        "gb": 1024**3,
    }
    return int(num * multiplier[unit])


def parse_time(value: int | str) -> int:
    """Converts human-readable time strings (e.g., '15m', '3s') to seconds."""
    if isinstance(value, int):
        return value
    match = re.match(
        r"^(\d+(?:\.\d+)?)\s*(s|sec|m|min|h|hr)s?$", str(value).strip().lower()
    )
    if not match:
        raise ValueError(f"Invalid time format '{value}'")
    num, unit = float(match.group(1)), match.group(2)
    multiplier = {"s": 1, "sec": 1, "m": 60, "min": 60, "h": 3600, "hr": 3600}
    return int(num * multiplier[unit])


def parse_clock(value: str) -> str:
    """Validates a 24-hour 'HH:MM' wall-clock time and returns it zero-padded."""
    match = re.match(r"^(\d{1,2}):(\d{2})$", str(value).strip())
    if not match:
        raise ValueError(f"Invalid clock time '{value}'")
    hours, minutes = int(match.group(1)), int(match.group(2))
    if hours > 23 or minutes > 59:
        raise ValueError(f"Invalid clock time '{value}'")
    return f"{hours:02d}:{minutes:02d}"


@dataclass(frozen=True)
class RepositoryLocation:
    """Where the toolkit comes from and where it lives locally.

    Attributes:
        remote_url (str): The remote repository URL.
        branch (str): The branch the working copy tracks.
        local_path (Path): The working copy directory.
    """

    remote_url: str
    branch: str
    local_path: Path


@dataclass
class RepositoryConfig:
    """Repository synchronization settings.

    Attributes:
        remote_url (str): The remote to clone and fetch from.
        branch (str): The branch to hard-reset to.
        target_dir (Path): The local working copy path.
        verify_remote (bool): Refuse to reset a clone whose origin points elsewhere.
    """

    remote_url: str = DEFAULT_REMOTE_URL
    branch: str = DEFAULT_BRANCH
    target_dir: Path = DEFAULT_TARGET_DIR
    verify_remote: bool = True

    def location(self) -> RepositoryLocation:
        return RepositoryLocation(self.remote_url, self.branch, Path(self.target_dir))


@dataclass
class NetworkConfig:
    """Reachability probe settings.

    Attributes:
        probe_timeout (int): Seconds to wait for the TCP probe.
        probe_port (int): Port probed on the remote host.
    """

    probe_timeout: int = 3
    probe_port: int = 443


@dataclass
class TasksConfig:
    """Scheduled trigger settings.

    Attributes:
        update_task_name (str): Name of the startup update trigger.
        shutdown_task_name (str): Name of the daily shutdown trigger.
        shutdown_time (str): Daily shutdown time as 'HH:MM'.
        time_limit (int): Seconds the scheduler lets a triggered run last.
        run_as (str): The identity triggers run as.
    """

    update_task_name: str = UPDATE_TASK_NAME
    shutdown_task_name: str = SHUTDOWN_TASK_NAME
    shutdown_time: str = "22:00"
    time_limit: int = 15 * 60
    run_as: str = RUN_AS


@dataclass
class LimitsConfig:
    """Resource limitation settings.

    Attributes:
        max_log_size (int): Max bytes for log files before rotation.
    """

    max_log_size: int = 5 * 1024 * 1024


@dataclass
class Config:
    """Global configuration aggregator.

    Attributes:
        repository (RepositoryConfig): Repository synchronization settings.
        network (NetworkConfig): Reachability probe settings.
        tasks (TasksConfig): Scheduled trigger settings.
        limits (LimitsConfig): Resource limits.
    """

    repository: RepositoryConfig = field(default_factory=RepositoryConfig)
    network: NetworkConfig = field(default_factory=NetworkConfig)
    tasks: TasksConfig = field(default_factory=TasksConfig)
    limits: LimitsConfig = field(default_factory=LimitsConfig)

    # Cache for the default-path configuration
    _global_cache: "Config | None" = None

    @classmethod
    def load(cls, path: Path | None = None) -> "Config":
        """Loads configuration from defaults and a TOML file.

        Args:
            path (Path | None): An explicit configuration file. When omitted the
                default file is used and the result is cached.

        Returns:
            Config: The merged configuration object.
        """
        if path is not None:
            instance = cls()
            if path.exists():
                instance._merge_from_file(path)
            else:
                logger.warning(f"Config file {path} not found. Using defaults.")
            return instance

        if cls._global_cache is None:
            instance = cls()
            if CONFIG_FILE.exists():
                instance._merge_from_file(CONFIG_FILE)
            cls._global_cache = instance

        return replace(cls._global_cache)

    def _merge_from_file(self, path: Path) -> None:
        """Parses a TOML file and merges it into the current instance.

        Args:
            path (Path): Path to the TOML file.
        """
        try:
            with open(path, "rb") as f:
                data = tomllib.load(f)

            if not data:
                return

            if "repository" in data:
                self.repository = self._update_dataclass(
                    "repository", self.repository, data["repository"]
                )
            if "network" in data:
                self.network = self._update_dataclass(
                    "network", self.network, data["network"]
                )
            if "tasks" in data:
                self.tasks = self._update_dataclass("tasks", self.tasks, data["tasks"])
            if "limits" in data:
                self.limits = self._update_dataclass(
                    "limits", self.limits, data["limits"]
                )

        except tomllib.TOMLDecodeError as e:
            logger.error(f"Config syntax error in {path}: {e}")
        except OSError as e:
            logger.warning(f"Failed to load config from {path}: {e}")

    @staticmethod
    def _update_dataclass(section_name: str, instance: Any, updates: dict) -> Any:
        """Updates a dataclass, warning on invalid keys and parsing human-readable formats."""
        if not isinstance(updates, dict):
            logger.warning(
                f"Config section [{section_name}] must be a table, "
                f"got {type(updates).__name__}. Ignoring."
            )
            return instance

        valid_keys = instance.__dataclass_fields__.keys()
        filtered_updates = {}

        invalid_keys = set(updates.keys()) - set(valid_keys)
        if invalid_keys:
            logger.warning(
                f"Unknown config keys in [{section_name}]: {', '.join(sorted(invalid_keys))}. Ignoring."
            )

        for k, v in updates.items():
            if k not in valid_keys:
                continue

            try:
                if k == "max_log_size":
                    filtered_updates[k] = parse_size(v)
                elif k in ["probe_timeout", "time_limit"]:
                    filtered_updates[k] = parse_time(v)
                elif k == "shutdown_time":
                    filtered_updates[k] = parse_clock(v)
                elif k == "target_dir":
                    filtered_updates[k] = Path(v)
                else:
                    default = getattr(instance, k)
                    # bool is an int subclass, so compare exact types.
                    if type(v) is not type(default):
                        raise TypeError(
                            f"expected {type(default).__name__}, got {type(v).__name__}"
                        )
                    filtered_updates[k] = v
            except (TypeError, ValueError) as e:
                logger.warning(
                    f"Config error in [{section_name}].{k}: {e}. Falling back to default."
                )

        return replace(instance, **filtered_updates)

    def with_overrides(
        self,
        remote_url: str | None = None,
        branch: str | None = None,
        target_dir: Path | None = None,
    ) -> "Config":
        """Returns a copy with command-line repository overrides applied."""
        updates: dict[str, Any] = {}
        if remote_url:
            updates["remote_url"] = remote_url
        if branch:
            updates["branch"] = branch
        if target_dir:
            updates["target_dir"] = Path(target_dir)
        return replace(self, repository=replace(self.repository, **updates))
