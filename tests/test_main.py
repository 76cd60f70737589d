# tests/test_main.py
"""Tests for the command-line entry point."""

import curses
import signal
from pathlib import Path
from typing import Any
from unittest.mock import MagicMock, patch

import pytest

from vuit import main as vuit_main
from vuit.utils.utils import Configuration


@pytest.fixture(autouse=True)
def home(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> Path:
    """Keeps config files and logs inside the test's temporary directory."""
    monkeypatch.setenv("HOME", str(tmp_path))
    monkeypatch.setattr(vuit_main, "setup_logging", lambda config: None)
    return tmp_path


def test_parse_args_defaults_to_cwd() -> None:
    assert vuit_main.parse_args([]).directory == "."
    assert vuit_main.parse_args(["src"]).directory == "src"


def test_version_flag(capsys: pytest.CaptureFixture[str]) -> None:
    with pytest.raises(SystemExit) as excinfo:
        vuit_main.parse_args(["--version"])
    assert excinfo.value.code == 0
    assert vuit_main.VERSION in capsys.readouterr().out


def test_missing_directory_exits_1(tmp_path: Path, capsys: pytest.CaptureFixture[str]) -> None:
    assert vuit_main.main([str(tmp_path / "nowhere")]) == 1
    assert "not a directory" in capsys.readouterr().err


def test_not_a_tty_exits_1(tmp_path: Path, capsys: pytest.CaptureFixture[str]) -> None:
    with patch("sys.stdin") as stdin:
        stdin.isatty.return_value = False
        assert vuit_main.main([str(tmp_path)]) == 1
    assert "terminal" in capsys.readouterr().err


def test_curses_failure_exits_1(tmp_path: Path, capsys: pytest.CaptureFixture[str]) -> None:
    with (
        patch("sys.stdin") as stdin,
        patch("sys.stdout") as stdout,
        patch.object(vuit_main, "_install_signal_handlers"),
        patch("curses.wrapper", side_effect=curses.error("setupterm: could not find terminal")),
    ):
        stdin.isatty.return_value = True
        stdout.isatty.return_value = True
        assert vuit_main.main([str(tmp_path)]) == 1
    assert "could not find terminal" in capsys.readouterr().err


def test_clean_run_exits_0(tmp_path: Path) -> None:
    calls: list[Any] = []
    with (
        patch("sys.stdin") as stdin,
        patch("sys.stdout") as stdout,
        patch.object(vuit_main, "_install_signal_handlers"),
        patch("curses.wrapper", side_effect=lambda fn, *args: calls.append(args)),
    ):
        stdin.isatty.return_value = True
        stdout.isatty.return_value = True
        assert vuit_main.main([str(tmp_path)]) == 0
    config, root = calls[0]
    assert isinstance(config, Configuration)
    assert root == str(tmp_path)


def test_signal_becomes_system_exit() -> None:
    with pytest.raises(SystemExit) as excinfo:
        vuit_main._raise_system_exit(signal.SIGTERM, None)
    assert excinfo.value.code == 128 + signal.SIGTERM


def test_runner_always_leaves_application_mode(mock_stdscr: MagicMock) -> None:
    with (
        patch("vuit.ui.TerminalAppMode.TerminalAppMode") as mode_cls,
        patch("vuit.core.Vuit.Vuit") as vuit_cls,
    ):
        vuit_cls.return_value.run.side_effect = RuntimeError("boom")
        with pytest.raises(RuntimeError):
            vuit_main.main_app_runner(mock_stdscr, Configuration(), "/tmp")
    mode_cls.return_value.enter.assert_called_once_with(mock_stdscr)
    mode_cls.return_value.exit.assert_called_once()
    vuit_cls.return_value.exit_app.assert_called_once()
