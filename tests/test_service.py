"""Tests for the startup update trigger and the daily shutdown trigger."""

from pathlib import Path
from unittest.mock import MagicMock

import pytest

from synctool import service, shutdown
from synctool.config import Config
from synctool.scheduler import DisableOutcome, FiringKind, TriggerManager


@pytest.fixture
def manager(backend) -> TriggerManager:
    return TriggerManager(backend)


def test_get_executable_prefers_console_script(mocker: MagicMock) -> None:
    mocker.patch("shutil.which", return_value=r"C:\Python\Scripts\synctool.exe")

    assert service.get_executable() == (r"C:\Python\Scripts\synctool.exe", [])


def test_get_executable_falls_back_to_module(mocker: MagicMock) -> None:
    mocker.patch("shutil.which", return_value=None)
    mocker.patch("sys.executable", r"C:\Python\python.exe")

    assert service.get_executable() == (r"C:\Python\python.exe", ["-m", "synctool"])


def test_update_trigger_carries_repository_coordinates(
    tmp_path: Path, mocker: MagicMock
) -> None:
    """Verifies that the unattended run receives the coordinates the menu was using."""
    mocker.patch(
        "synctool.service.get_executable",
        return_value=(r"C:\Python\python.exe", ["-m", "synctool"]),
    )
    config = Config().with_overrides(
        remote_url="https://example.com/t.git",
        branch="stable",
        target_dir=Path("C:/Program Data/IGP/tools"),
    )

    trigger = service.update_trigger(config, config_path=tmp_path / "site.toml")

    assert trigger.name == "IGP Pull IGP Tools"
    assert trigger.command == r"C:\Python\python.exe"
    assert trigger.firing.kind is FiringKind.AT_STARTUP
    assert trigger.run_as == "SYSTEM"
    assert trigger.time_limit == 900
    assert trigger.arguments.startswith("-m synctool --mode startup ")
    assert "--repo-url https://example.com/t.git --branch stable" in trigger.arguments
    # Paths with spaces are quoted for the Windows command line.
    assert f'--target-dir "{Path("C:/Program Data/IGP/tools")}"' in trigger.arguments
    assert f"--config {tmp_path / 'site.toml'}" in trigger.arguments


def test_toggle_update(manager: TriggerManager, config: Config, mocker: MagicMock) -> None:
    mocker.patch("synctool.service.get_executable", return_value=("synctool", []))

    assert service.toggle(manager, config) is True
    assert service.is_service_enabled(manager, config)

    assert service.toggle(manager, config) is False
    assert manager.query(config.tasks.update_task_name) is None


def test_uninstall_when_absent(manager: TriggerManager, config: Config) -> None:
    assert service.uninstall(manager, config) is DisableOutcome.ALREADY_DISABLED


def test_shutdown_trigger_definition(config: Config) -> None:
    trigger = shutdown.shutdown_trigger(config)

    assert trigger.name == "IGP Scheduled Shutdown"
    assert trigger.command == "shutdown.exe"
    assert trigger.arguments == "/s /f /t 60"
    assert trigger.firing.kind is FiringKind.DAILY
    assert trigger.firing.time == "22:00"


def test_toggle_shutdown_disables_in_place(
    manager: TriggerManager, config: Config
) -> None:
    assert shutdown.toggle_shutdown(manager, config) is True
    assert shutdown.is_shutdown_enabled(manager, config)

    assert shutdown.toggle_shutdown(manager, config) is False
    kept = manager.query(config.tasks.shutdown_task_name)
    assert kept is not None
    assert kept.enabled is False

    assert shutdown.toggle_shutdown(manager, config) is True
    assert shutdown.is_shutdown_enabled(manager, config)


def test_disable_shutdown_when_absent(manager: TriggerManager, config: Config) -> None:
    assert shutdown.disable_shutdown(manager, config) is DisableOutcome.ALREADY_DISABLED
