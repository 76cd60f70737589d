# tests/ui/test_keybinder.py
"""Unit tests for the KeyBinder class.
=====================================

Covered areas:
- The fixed binding table and reverse lookup (`lookup`).
- Key-string decoding (`_decode_keystring`).
- Dispatch of bound keys and printable characters (`handle_input`).
- Reading keys, ESC sequences and UTF-8 characters (`get_key_input`).
- Translating keys into bytes for the embedded shell (`translate_for_terminal`).
"""

import curses
from unittest.mock import MagicMock

import pytest

from vuit.ui.KeyBinder import KeyBinder, is_printable, translate_for_terminal


@pytest.fixture
def mock_session(mock_stdscr: MagicMock) -> MagicMock:
    """A session double whose command methods are MagicMocks."""
    session = MagicMock()
    session.stdscr = mock_stdscr
    return session


@pytest.fixture
def keybinder(mock_session: MagicMock) -> KeyBinder:
    return KeyBinder(mock_session)


class TestLookup:
    @pytest.mark.parametrize(
        "spec, action",
        [
            ("ctrl+t", "toggle_terminal"),
            ("ctrl+f", "toggle_search"),
            ("ctrl+h", "toggle_help"),
            ("f1", "toggle_help"),
            ("ctrl+r", "refresh"),
            ("ctrl+n", "cycle_colorscheme"),
            ("ctrl+p", "toggle_preview"),
            ("ctrl+x", "run_in_terminal"),
            ("ctrl+d", "remove_recent"),
            ("ctrl+j", "move_down"),
            ("ctrl+k", "move_up"),
            ("tab", "switch_window"),
            ("esc", "quit"),
            (13, "open"),
            (127, "backspace"),
        ],
    )
    def test_bound_keys(self, keybinder: KeyBinder, spec: str | int, action: str) -> None:
        assert keybinder.lookup(spec) == action

    def test_enter_key_code_opens(self, keybinder: KeyBinder) -> None:
        assert keybinder.lookup(curses.KEY_ENTER) == "open"

    def test_unbound_and_invalid_specs(self, keybinder: KeyBinder) -> None:
        assert keybinder.lookup("a") is None
        assert keybinder.lookup("hyper+q") is None
        assert keybinder.lookup("") is None


class TestDecodeKeystring:
    def test_ctrl_letters(self, keybinder: KeyBinder) -> None:
        assert keybinder._decode_keystring("ctrl+a") == 1
        assert keybinder._decode_keystring("Ctrl+Z") == 26

    def test_named_keys(self, keybinder: KeyBinder) -> None:
        assert keybinder._decode_keystring("pagedown") == curses.KEY_NPAGE
        assert keybinder._decode_keystring("up") == curses.KEY_UP

    def test_alt_strings_pass_through(self, keybinder: KeyBinder) -> None:
        assert keybinder._decode_keystring("alt-x") == "alt-x"

    def test_errors(self, keybinder: KeyBinder) -> None:
        with pytest.raises(ValueError):
            keybinder._decode_keystring("ctrl+1")
        with pytest.raises(ValueError):
            keybinder._decode_keystring("shift+a")


class TestHandleInput:
    def test_bound_key_calls_session_method(self, keybinder: KeyBinder, mock_session: MagicMock) -> None:
        assert keybinder.handle_input(6) is True
        mock_session.toggle_search.assert_called_once_with()

    def test_arrows_move_selection(self, keybinder: KeyBinder, mock_session: MagicMock) -> None:
        keybinder.handle_input(curses.KEY_DOWN)
        mock_session.move_selection.assert_called_with(1)
        keybinder.handle_input(curses.KEY_PPAGE)
        mock_session.page_selection.assert_called_with(-1)

    def test_printable_goes_to_query(self, keybinder: KeyBinder, mock_session: MagicMock) -> None:
        keybinder.handle_input(ord("a"))
        mock_session.query_input.assert_called_once_with("a")

    def test_unicode_character_goes_to_query(self, keybinder: KeyBinder, mock_session: MagicMock) -> None:
        keybinder.handle_input("é")
        mock_session.query_input.assert_called_once_with("é")

    def test_unbound_control_key_is_ignored(self, keybinder: KeyBinder, mock_session: MagicMock) -> None:
        assert keybinder.handle_input(2) is False  # Ctrl-b
        mock_session.query_input.assert_not_called()

    def test_esc_quits(self, keybinder: KeyBinder, mock_session: MagicMock) -> None:
        keybinder.handle_input(27)
        mock_session.exit_app.assert_called_once_with()


class TestGetKeyInput:
    def test_plain_key(self, keybinder: KeyBinder, mock_stdscr: MagicMock) -> None:
        mock_stdscr.getch.side_effect = [ord("q")]
        assert keybinder.get_key_input() == ord("q")

    def test_timeout_returns_err(self, keybinder: KeyBinder, mock_stdscr: MagicMock) -> None:
        mock_stdscr.getch.side_effect = [curses.ERR]
        assert keybinder.get_key_input() == curses.ERR

    def test_lone_escape(self, keybinder: KeyBinder, mock_stdscr: MagicMock) -> None:
        mock_stdscr.getch.side_effect = [27, curses.ERR]
        assert keybinder.get_key_input() == 27
        mock_stdscr.timeout.assert_called_with(KeyBinder.INPUT_TIMEOUT_MS)

    def test_csi_sequence(self, keybinder: KeyBinder, mock_stdscr: MagicMock) -> None:
        mock_stdscr.getch.side_effect = [27, ord("["), ord("A"), curses.ERR]
        assert keybinder.get_key_input() == curses.KEY_UP

    def test_tilde_sequence(self, keybinder: KeyBinder, mock_stdscr: MagicMock) -> None:
        mock_stdscr.getch.side_effect = [27, ord("["), ord("6"), ord("~"), curses.ERR]
        assert keybinder.get_key_input() == curses.KEY_NPAGE

    def test_alt_chord(self, keybinder: KeyBinder, mock_stdscr: MagicMock) -> None:
        mock_stdscr.getch.side_effect = [27, ord("x"), curses.ERR]
        assert keybinder.get_key_input() == "alt-x"

    def test_unknown_sequence_is_dropped(self, keybinder: KeyBinder, mock_stdscr: MagicMock) -> None:
        mock_stdscr.getch.side_effect = [27, ord("["), ord("9"), ord("9"), ord("q"), curses.ERR]
        assert keybinder.get_key_input() == curses.ERR

    def test_utf8_character(self, keybinder: KeyBinder, mock_stdscr: MagicMock) -> None:
        mock_stdscr.getch.side_effect = list("ж".encode("utf-8"))
        assert keybinder.get_key_input() == "ж"

    def test_curses_error_returns_err(self, keybinder: KeyBinder, mock_stdscr: MagicMock) -> None:
        mock_stdscr.getch.side_effect = curses.error("boom")
        assert keybinder.get_key_input() == curses.ERR


class TestTranslateForTerminal:
    def test_printable(self) -> None:
        assert translate_for_terminal(ord("l")) == b"l"
        assert translate_for_terminal("é") == "é".encode("utf-8")

    def test_control_keys(self) -> None:
        assert translate_for_terminal(3) == b"\x03"
        assert translate_for_terminal(13) == b"\r"
        assert translate_for_terminal(27) == b"\x1b"

    def test_curses_keys(self) -> None:
        assert translate_for_terminal(curses.KEY_UP) == b"\x1b[A"
        assert translate_for_terminal(curses.KEY_BACKSPACE) == b"\x7f"
        assert translate_for_terminal(curses.KEY_F1) == b"\x1bOP"

    def test_alt_chord(self) -> None:
        assert translate_for_terminal("alt-b") == b"\x1bb"


def test_is_printable() -> None:
    assert is_printable(ord("a")) == "a"
    assert is_printable("字") == "字"
    assert is_printable(7) is None
    assert is_printable(curses.KEY_UP) is None
    assert is_printable(curses.KEY_LEFT) is None
