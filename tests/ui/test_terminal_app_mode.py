# tests/ui/test_terminal_app_mode.py
"""Tests for entering and leaving terminal application mode."""

import curses
from unittest.mock import MagicMock

import pytest

from vuit.ui.TerminalAppMode import TerminalAppMode
from vuit.utils.errors import TerminalInitError


@pytest.fixture
def term_calls(monkeypatch: pytest.MonkeyPatch) -> MagicMock:
    """Replaces the terminal-mode curses calls with one recording mock."""
    recorder = MagicMock()
    recorder.tigetstr.return_value = None
    for name in ("setupterm", "tigetstr", "putp", "raw", "cbreak", "noecho", "nonl", "noraw", "echo", "nl"):
        monkeypatch.setattr(curses, name, getattr(recorder, name))
    monkeypatch.setattr(curses, "set_escdelay", recorder.set_escdelay, raising=False)
    return recorder


def test_enter_sets_raw_mode(term_calls: MagicMock, mock_stdscr: MagicMock) -> None:
    mode = TerminalAppMode()
    mode.enter(mock_stdscr)
    assert mode.entered is True
    term_calls.raw.assert_called_once()
    term_calls.noecho.assert_called_once()
    term_calls.nonl.assert_called_once()
    mock_stdscr.keypad.assert_called_with(True)
    term_calls.set_escdelay.assert_called_once_with(TerminalAppMode.ESC_DELAY_MS)


def test_alternate_screen_is_requested(term_calls: MagicMock, mock_stdscr: MagicMock) -> None:
    term_calls.tigetstr.side_effect = lambda cap: cap.encode()
    mode = TerminalAppMode()
    mode.enter(mock_stdscr)
    mode.exit()
    sent = [c[0][0] for c in term_calls.putp.call_args_list]
    assert sent == [b"smcup", b"smkx", b"rmkx", b"rmcup"]


def test_raw_falls_back_to_cbreak(term_calls: MagicMock, mock_stdscr: MagicMock) -> None:
    term_calls.raw.side_effect = curses.error("no raw")
    TerminalAppMode().enter(mock_stdscr)
    term_calls.cbreak.assert_called_once()


def test_refused_input_mode_raises(term_calls: MagicMock, mock_stdscr: MagicMock) -> None:
    term_calls.noecho.side_effect = curses.error("not a tty")
    mode = TerminalAppMode()
    with pytest.raises(TerminalInitError):
        mode.enter(mock_stdscr)
    assert mode.entered is False


def test_exit_restores_modes_once(term_calls: MagicMock, mock_stdscr: MagicMock) -> None:
    mode = TerminalAppMode()
    mode.exit()
    term_calls.noraw.assert_not_called()

    mode.enter(mock_stdscr)
    mode.exit()
    mode.exit()
    term_calls.noraw.assert_called_once()
    term_calls.echo.assert_called_once()
    term_calls.nl.assert_called_once()
    assert mode.entered is False
