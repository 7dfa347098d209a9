"""Shared fixtures: an in-memory scheduler and privilege seams."""

from dataclasses import replace
from pathlib import Path
from typing import Any

import pytest

from synctool.config import Config
from synctool.errors import ErrorKind, ToolkitError
from synctool.scheduler import ScheduledTrigger, SchedulerBackend
from synctool.system import SystemStrategy


class InMemoryBackend(SchedulerBackend):
    """Scheduler backend that keeps triggers in a dict, keyed by name."""

    def __init__(self) -> None:
        self.tasks: dict[str, ScheduledTrigger] = {}

    def query(self, name: str) -> ScheduledTrigger | None:
        return self.tasks.get(name)

    def register(self, trigger: ScheduledTrigger) -> None:
        if trigger.name in self.tasks:
            raise ToolkitError(
                ErrorKind.REGISTRATION_FAILED, f"'{trigger.name}' already exists"
            )
        self.tasks[trigger.name] = trigger

    def unregister(self, name: str) -> None:
        del self.tasks[name]

    def disable(self, name: str) -> None:
        self.tasks[name] = replace(self.tasks[name], enabled=False)


class FixedPrivilege(SystemStrategy):
    def __init__(self, admin: bool) -> None:
        self.admin = admin

    def is_admin(self) -> bool:
        return self.admin


@pytest.fixture(autouse=True)
def clear_config_cache() -> Any:
    """Ensures every test starts with a clean config cache."""
    Config._global_cache = None
    yield
    Config._global_cache = None


@pytest.fixture
def backend() -> InMemoryBackend:
    return InMemoryBackend()


@pytest.fixture
def admin() -> SystemStrategy:
    return FixedPrivilege(True)


@pytest.fixture
def non_admin() -> SystemStrategy:
    return FixedPrivilege(False)


@pytest.fixture
def config(tmp_path: Path) -> Config:
    """A default config whose working copy lives under tmp_path."""
    return Config().with_overrides(
        remote_url="https://example.com/igp/tools.git",
        branch="main",
        target_dir=tmp_path / "igp-tools",
    )
