import os
from pathlib import Path
from unittest.mock import MagicMock

import pytest

from synctool import git_wrapper
from synctool.git_wrapper import GitCommandError, GitRepo


def _completed(returncode: int = 0, stdout: str = "", stderr: str = "") -> MagicMock:
    return MagicMock(returncode=returncode, stdout=stdout, stderr=stderr)


def test_repo_requires_git_metadata(tmp_path: Path) -> None:
    with pytest.raises(ValueError, match="Not a git repository"):
        GitRepo(tmp_path)


def test_run_raises_with_native_exit_code(mocker: MagicMock, tmp_path: Path) -> None:
    """Verifies that a failing git call surfaces its exit code and stderr."""
    mocker.patch(
        "subprocess.run",
        return_value=_completed(128, stderr="fatal: couldn't find remote ref\n"),
    )
    (tmp_path / ".git").mkdir()
    repo = GitRepo(tmp_path)

    with pytest.raises(GitCommandError) as excinfo:
        repo.fetch_prune()

    assert excinfo.value.returncode == 128
    assert excinfo.value.stderr == "fatal: couldn't find remote ref"
    assert excinfo.value.args_list == ["fetch", "--prune", "origin"]


def test_prompt_suppression_is_per_call(mocker: MagicMock, tmp_path: Path) -> None:
    """Verifies that the credential prompt flag only reaches the child environment."""
    mocker.patch.dict("os.environ", {"GIT_TERMINAL_PROMPT": "1"})
    mock_run = mocker.patch("subprocess.run", return_value=_completed())
    (tmp_path / ".git").mkdir()

    GitRepo(tmp_path, suppress_prompts=True).clean()
    env = mock_run.call_args.kwargs["env"]
    assert env["GIT_TERMINAL_PROMPT"] == "0"
    assert env["GCM_INTERACTIVE"] == "never"
    assert mock_run.call_args.kwargs["cwd"] == tmp_path

    GitRepo(tmp_path, suppress_prompts=False).clean()
    assert mock_run.call_args.kwargs["env"]["GIT_TERMINAL_PROMPT"] == "1"

    assert os.environ["GIT_TERMINAL_PROMPT"] == "1"


def test_sync_primitives_build_expected_commands(
    mocker: MagicMock, tmp_path: Path
) -> None:
    (tmp_path / ".git").mkdir()
    repo = GitRepo(tmp_path)
    mock_run = mocker.patch.object(repo, "_run", return_value="")

    repo.fetch_prune()
    mock_run.assert_called_with(["fetch", "--prune", "origin"])

    repo.reset_hard("origin/main")
    mock_run.assert_called_with(["reset", "--hard", "origin/main"])

    repo.clean()
    mock_run.assert_called_with(["clean", "-fd"])


def test_clone_is_shallow_and_single_branch(mocker: MagicMock, tmp_path: Path) -> None:
    target = tmp_path / "tools"
    target.mkdir()

    def fake_run(cmd: list[str], **kwargs: object) -> MagicMock:
        (target / ".git").mkdir()
        return _completed()

    mock_run = mocker.patch("subprocess.run", side_effect=fake_run)

    repo = GitRepo.clone("https://example.com/t.git", "main", target)

    assert repo.path == target
    cmd = mock_run.call_args.args[0]
    assert cmd == [
        "git",
        "clone",
        "--depth",
        "1",
        "--branch",
        "main",
        "--single-branch",
        "https://example.com/t.git",
        str(target.resolve()),
    ]


def test_remote_url_none_when_unset(mocker: MagicMock, tmp_path: Path) -> None:
    mocker.patch("subprocess.run", return_value=_completed(2, stderr="No such remote"))
    (tmp_path / ".git").mkdir()

    assert GitRepo(tmp_path).remote_url() is None


def test_add_safe_directory_skips_registered_path(
    mocker: MagicMock, tmp_path: Path
) -> None:
    """Verifies that an already trusted path is not appended to the global config twice."""
    mocker.patch(
        "synctool.git_wrapper.list_safe_directories",
        return_value=[tmp_path.resolve().as_posix()],
    )
    mock_git = mocker.patch("synctool.git_wrapper.run_git")

    assert git_wrapper.add_safe_directory(tmp_path) is True
    mock_git.assert_not_called()


def test_add_safe_directory_failure_is_logged(
    mocker: MagicMock, tmp_path: Path, caplog: pytest.LogCaptureFixture
) -> None:
    mocker.patch("synctool.git_wrapper.list_safe_directories", return_value=[])
    mocker.patch(
        "synctool.git_wrapper.run_git",
        side_effect=GitCommandError(["config"], 255, "could not lock config file"),
    )

    assert git_wrapper.add_safe_directory(tmp_path) is False
    assert "Could not register" in caplog.text
