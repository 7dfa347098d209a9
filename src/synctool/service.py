import logging
import shutil
import subprocess
import sys
from pathlib import Path

from .config import Config
from .constants import APP_NAME
from .scheduler import (
    DisableOutcome,
    DisablePolicy,
    FiringCondition,
    ScheduledTrigger,
    TriggerManager,
)

logger = logging.getLogger(APP_NAME)


def get_executable() -> tuple[str, list[str]]:
    """Locates the command that launches synctool.

    Returns:
        tuple[str, list[str]]: The executable and the arguments that must
        precede synctool's own flags. Falls back to `python -m synctool`
        when the console script is not on PATH.
    """
    exe = shutil.which(APP_NAME)
    if exe:
        return exe, []
    return sys.executable, ["-m", APP_NAME]


def update_trigger(config: Config, config_path: Path | None = None) -> ScheduledTrigger:
    """Builds the startup trigger that runs the updater unattended.

    Args:
        config (Config): Supplies the repository coordinates and task settings.
        config_path (Path | None): An explicit config file to pass along.

    Returns:
        ScheduledTrigger: The at-startup trigger definition.
    """
    exe, prefix = get_executable()
    repo = config.repository
    args = [
        *prefix,
        "--mode",
        "startup",
        "--repo-url",
        repo.remote_url,
        "--branch",
        repo.branch,
        "--target-dir",
        str(repo.target_dir),
    ]
    if config_path is not None:
        args.extend(["--config", str(config_path)])

    return ScheduledTrigger(
        name=config.tasks.update_task_name,
        command=exe,
        arguments=subprocess.list2cmdline(args),
        firing=FiringCondition.at_startup(),
        run_as=config.tasks.run_as,
        time_limit=config.tasks.time_limit,
    )


def is_service_enabled(manager: TriggerManager, config: Config) -> bool:
    """Checks whether the startup update trigger is registered and enabled."""
    return manager.is_enabled(config.tasks.update_task_name)


def install(
    manager: TriggerManager, config: Config, config_path: Path | None = None
) -> ScheduledTrigger:
    """Registers the startup update trigger, replacing any previous one."""
    trigger = update_trigger(config, config_path)
    manager.enable(trigger)
    return trigger


def uninstall(manager: TriggerManager, config: Config) -> DisableOutcome:
    """Deletes the startup update trigger entirely."""
    return manager.disable(config.tasks.update_task_name, DisablePolicy.DELETE)


def toggle(
    manager: TriggerManager, config: Config, config_path: Path | None = None
) -> bool:
    """Flips the startup update trigger.

    Returns:
        bool: True if the trigger is enabled afterwards.
    """
    if is_service_enabled(manager, config):
        uninstall(manager, config)
        return False
    install(manager, config, config_path)
    return True
