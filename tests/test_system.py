from unittest.mock import MagicMock

import pytest

from synctool import system
from synctool.errors import ErrorKind, ToolkitError


def test_get_system_by_platform(mocker: MagicMock) -> None:
    mocker.patch("sys.platform", "win32")
    assert isinstance(system.get_system(), system.WindowsStrategy)

    mocker.patch("sys.platform", "linux")
    strategy = system.get_system()
    assert type(strategy) is system.SystemStrategy


@pytest.mark.parametrize(("euid", "expected"), [(0, True), (1000, False)])
def test_posix_admin_is_root(mocker: MagicMock, euid: int, expected: bool) -> None:
    mocker.patch("os.geteuid", return_value=euid, create=True)

    assert system.SystemStrategy().is_admin() is expected


def test_windows_admin_uses_shell32(mocker: MagicMock) -> None:
    """Verifies that the Windows check asks the process token via IsUserAnAdmin."""
    windll = MagicMock()
    windll.shell32.IsUserAnAdmin.return_value = 1
    mocker.patch("ctypes.windll", windll, create=True)

    assert system.WindowsStrategy().is_admin() is True
    windll.shell32.IsUserAnAdmin.assert_called_once()


def test_windows_admin_without_shell32(mocker: MagicMock) -> None:
    windll = MagicMock()
    windll.shell32.IsUserAnAdmin.side_effect = OSError("no shell32")
    mocker.patch("ctypes.windll", windll, create=True)

    assert system.WindowsStrategy().is_admin() is False


def test_require_admin(admin, non_admin) -> None:
    system.require_admin(admin)

    with pytest.raises(ToolkitError) as excinfo:
        system.require_admin(non_admin)
    assert excinfo.value.kind is ErrorKind.PRIVILEGE_REQUIRED
    assert "Run as administrator" in str(excinfo.value)


def test_require_admin_defaults_to_platform_strategy(mocker: MagicMock, non_admin) -> None:
    mock_get = mocker.patch("synctool.system.get_system", return_value=non_admin)

    with pytest.raises(ToolkitError):
        system.require_admin()
    mock_get.assert_called_once()
