"""Tests for the Command Line Interface (CLI) module."""

from datetime import datetime, timezone
from pathlib import Path
from unittest.mock import MagicMock

import pytest

from mirror_watch import cli, sync
from mirror_watch.config import Config
from mirror_watch.git_wrapper import TransferError

LISTING = "aaa1111aaa1111\trefs/heads/main\nccc3333ccc3333\trefs/heads/dev"


@pytest.fixture
def config(tmp_path: Path) -> Config:
    """A default config whose state file lives in a temporary directory."""
    conf = Config()
    conf.paths.state_file = tmp_path / "last_commit.txt"
    return conf


def test_show_status_lists_snapshot(
    config: Config, capsys: pytest.CaptureFixture
) -> None:
    """Verifies that the stored branches are displayed.

    Args:
        config (Config): Config fixture with a temporary state file.
        capsys (pytest.CaptureFixture): Pytest fixture for capturing stdout.
    """
    config.paths.state_file.write_text(LISTING)

    cli.show_status(config)

    captured = capsys.readouterr()
    assert "Mirror Status" in captured.out
    assert "main" in captured.out
    assert "aaa1111" in captured.out


def test_show_status_without_snapshot(
    config: Config, capsys: pytest.CaptureFixture
) -> None:
    """Verifies the message shown before the first run."""
    cli.show_status(config)

    assert "No snapshot recorded yet" in capsys.readouterr().out


def test_check_updates_has_no_side_effects(
    config: Config, mocker: MagicMock, capsys: pytest.CaptureFixture
) -> None:
    """Verifies that `check` prints changes but never writes state.

    Args:
        config (Config): Config fixture with a temporary state file.
        mocker (MagicMock): Pytest fixture for mocking.
        capsys (pytest.CaptureFixture): Pytest fixture for capturing stdout.
    """
    config.paths.state_file.write_text("aaa1111aaa1111\trefs/heads/main")

    remote = mocker.patch("mirror_watch.cli.sync.build_remote").return_value
    remote.ls_remote.return_value = LISTING
    github = mocker.patch("mirror_watch.cli.sync.build_github").return_value
    github.commit_time.return_value = datetime(2025, 1, 1, tzinfo=timezone.utc)
    github.branch_url.side_effect = lambda b: b

    assert cli.check_updates(config) is True

    out = capsys.readouterr().out
    assert "dev" in out
    assert "new" in out
    assert config.paths.state_file.read_text() == "aaa1111aaa1111\trefs/heads/main"


def test_check_updates_up_to_date(
    config: Config, mocker: MagicMock, capsys: pytest.CaptureFixture
) -> None:
    """Verifies the message when the remote matches the stored snapshot."""
    config.paths.state_file.write_text(LISTING)
    remote = mocker.patch("mirror_watch.cli.sync.build_remote").return_value
    remote.ls_remote.return_value = LISTING
    mocker.patch("mirror_watch.cli.sync.build_github")

    assert cli.check_updates(config) is False
    assert "Up to date" in capsys.readouterr().out


def test_main_dispatches_run_by_default(mocker: MagicMock) -> None:
    """Verifies that no subcommand performs a full run."""
    mock_main = mocker.patch("mirror_watch.cli.sync.main")

    cli.main([])

    mock_main.assert_called_once_with(interactive=mocker.ANY, config_path=None)


def test_main_check_failure_exits(mocker: MagicMock) -> None:
    """Verifies that an unreachable remote makes `check` exit with 1."""
    mocker.patch("mirror_watch.cli.Config.load", return_value=Config())
    mocker.patch(
        "mirror_watch.cli.check_updates", side_effect=TransferError("unreachable")
    )

    with pytest.raises(SystemExit) as excinfo:
        cli.main(["check"])

    assert excinfo.value.code == 1


def test_main_config_lists_options(capsys: pytest.CaptureFixture) -> None:
    """Verifies that the configuration reference is printed."""
    cli.main(["config"])

    out = capsys.readouterr().out
    assert "Configuration Schema" in out
    assert "GH_TOKEN" in out


def test_check_updates_uses_shared_detection(
    config: Config, mocker: MagicMock, capsys: pytest.CaptureFixture
) -> None:
    """Verifies that `check` reuses the sync run's change detection."""
    mocker.patch("mirror_watch.cli.sync.build_remote")
    mocker.patch("mirror_watch.cli.sync.build_github")
    mock_detect = mocker.patch(
        "mirror_watch.cli.sync.detect_changes",
        return_value=sync.SyncResult(changed=True),
    )

    assert cli.check_updates(config) is True

    mock_detect.assert_called_once()
    assert "no updated branch could be determined" in capsys.readouterr().out
