"""Daily scheduled shutdown.

Unlike the update trigger, turning the shutdown off only disables it; the
definition stays registered so the configured time survives.
"""

import logging

from .config import Config
from .constants import APP_NAME, SHUTDOWN_COMMAND
from .scheduler import (
    DisableOutcome,
    DisablePolicy,
    FiringCondition,
    ScheduledTrigger,
    TriggerManager,
)

logger = logging.getLogger(APP_NAME)


def shutdown_trigger(config: Config) -> ScheduledTrigger:
    """Builds the daily shutdown trigger from the task settings."""
    command, _, arguments = SHUTDOWN_COMMAND.partition(" ")
    return ScheduledTrigger(
        name=config.tasks.shutdown_task_name,
        command=command,
        arguments=arguments,
        firing=FiringCondition.daily_at(config.tasks.shutdown_time),
        run_as=config.tasks.run_as,
        time_limit=config.tasks.time_limit,
    )


def is_shutdown_enabled(manager: TriggerManager, config: Config) -> bool:
    return manager.is_enabled(config.tasks.shutdown_task_name)


def enable_shutdown(manager: TriggerManager, config: Config) -> ScheduledTrigger:
    trigger = shutdown_trigger(config)
    manager.enable(trigger)
    return trigger


def disable_shutdown(manager: TriggerManager, config: Config) -> DisableOutcome:
    return manager.disable(
        config.tasks.shutdown_task_name, DisablePolicy.DISABLE_IN_PLACE
    )


def toggle_shutdown(manager: TriggerManager, config: Config) -> bool:
    """Flips the daily shutdown trigger.

    Returns:
        bool: True if the shutdown is scheduled afterwards.
    """
    if is_shutdown_enabled(manager, config):
        disable_shutdown(manager, config)
        return False
    enable_shutdown(manager, config)
    return True
