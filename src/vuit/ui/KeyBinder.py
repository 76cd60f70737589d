# vuit/ui/KeyBinder.py
"""KeyBinder.py
==================
Description:
-----------------------
The KeyBinder class translates key presses into session actions. The binding
table is fixed: vuit has a dozen commands and they are the same everywhere.

Key Features:
- Reads single keys and ESC-prefixed sequences from curses, normalising CSI/SS3
  sequences into curses key codes through `ESCAPE_SEQUENCE_MAP`.
- Maps key codes to action names (`keybindings`) and action names to bound
  session methods (`action_map`).
- Treats every other printable character as input for the active query buffer.
- Translates keys back into the byte sequences a shell expects, for the
  embedded terminal overlay (`translate_for_terminal`).

Main Methods:
1. get_key_input: Reads a single key or key sequence from the terminal.
2. handle_input: Dispatches one key to the bound session action.
3. lookup: Reverse lookup from a key spec to its action name.
4. _decode_keystring: Parses "ctrl+r"-style strings into key codes.
"""

import curses
import logging
import re
from typing import TYPE_CHECKING, Any, Callable, Optional

from wcwidth import wcwidth

from vuit.utils.logging_config import KEY_LOGGER

if TYPE_CHECKING:
    from vuit.core.Vuit import Vuit


# Fixed binding table. Codes are resolved through _decode_keystring at startup.
DEFAULT_KEYBINDINGS: dict[str, list[int | str]] = {
    "open": ["enter", 13],
    "move_down": ["down", "ctrl+j"],
    "move_up": ["up", "ctrl+k"],
    "page_down": ["pagedown"],
    "page_up": ["pageup"],
    "switch_window": ["tab"],
    "refresh": ["ctrl+r"],
    "cycle_colorscheme": ["ctrl+n"],
    "toggle_terminal": ["ctrl+t"],
    "toggle_search": ["ctrl+f"],
    "toggle_help": ["ctrl+h", "f1"],
    "toggle_preview": ["ctrl+p"],
    "run_in_terminal": ["ctrl+x"],
    "remove_recent": ["ctrl+d"],
    "quit": ["esc"],
    "backspace": ["backspace", 127],
}

NAMED_KEYS: dict[str, int] = {
    "left": curses.KEY_LEFT,
    "right": curses.KEY_RIGHT,
    "up": curses.KEY_UP,
    "down": curses.KEY_DOWN,
    "home": curses.KEY_HOME,
    "end": getattr(curses, "KEY_END", curses.KEY_LL),
    "pageup": curses.KEY_PPAGE,
    "pagedown": curses.KEY_NPAGE,
    "delete": curses.KEY_DC,
    "insert": curses.KEY_IC,
    "backspace": curses.KEY_BACKSPACE,
    "tab": 9,
    "shift+tab": getattr(curses, "KEY_BTAB", 353),
    "enter": curses.KEY_ENTER,
    "esc": 27,
    "escape": 27,
    "space": ord(" "),
}
NAMED_KEYS.update({f"f{i}": getattr(curses, f"KEY_F{i}", 264 + i) for i in range(1, 13)})

# What a VT100/xterm sends for each curses key code.
TERMINAL_KEY_BYTES: dict[int, bytes] = {
    curses.KEY_UP: b"\x1b[A",
    curses.KEY_DOWN: b"\x1b[B",
    curses.KEY_RIGHT: b"\x1b[C",
    curses.KEY_LEFT: b"\x1b[D",
    curses.KEY_HOME: b"\x1b[H",
    getattr(curses, "KEY_END", curses.KEY_LL): b"\x1b[F",
    curses.KEY_PPAGE: b"\x1b[5~",
    curses.KEY_NPAGE: b"\x1b[6~",
    curses.KEY_IC: b"\x1b[2~",
    curses.KEY_DC: b"\x1b[3~",
    curses.KEY_BACKSPACE: b"\x7f",
    curses.KEY_ENTER: b"\r",
    getattr(curses, "KEY_BTAB", 353): b"\x1b[Z",
}
TERMINAL_KEY_BYTES.update(
    {
        NAMED_KEYS[name]: seq
        for name, seq in (
            ("f1", b"\x1bOP"), ("f2", b"\x1bOQ"), ("f3", b"\x1bOR"), ("f4", b"\x1bOS"),
            ("f5", b"\x1b[15~"), ("f6", b"\x1b[17~"), ("f7", b"\x1b[18~"), ("f8", b"\x1b[19~"),
            ("f9", b"\x1b[20~"), ("f10", b"\x1b[21~"), ("f11", b"\x1b[23~"), ("f12", b"\x1b[24~"),
        )
    }
)


def translate_for_terminal(key: int | str) -> bytes:
    """Returns the bytes to write to a pty for a key read by `get_key_input`."""
    if isinstance(key, str):
        if key.startswith("alt-") and len(key) == 5:
            return b"\x1b" + key[4:].encode("utf-8")
        return key.encode("utf-8")
    if key in TERMINAL_KEY_BYTES:
        return TERMINAL_KEY_BYTES[key]
    if 0 <= key < 128:
        return bytes([key])
    logging.debug(f"translate_for_terminal: no byte sequence for key {key}")
    return b""


def is_printable(key: int | str) -> Optional[str]:
    """Returns the character for a printable key, or None.

    Integer keys above 127 are curses key codes; non-ASCII characters arrive
    from `get_key_input` as one-character strings.
    """
    if isinstance(key, str):
        ch = key if len(key) == 1 else ""
    elif 32 <= key < 127:
        ch = chr(key)
    else:
        return None
    if ch and wcwidth(ch) > 0:
        return ch
    return None


# ==================== KeyBinder Class ====================
class KeyBinder:
    """Class KeyBinder
    ====================
    Attributes:
        session (Vuit): The session whose commands keys are bound to.
        stdscr: The curses window keys are read from.
        keybindings (dict): Action name -> list of key codes.
        action_map (dict): Key code -> bound session method.
    """
    # Keys do NOT include the leading ESC (0x1B); get_key_input reads after it.
    ESCAPE_SEQUENCE_MAP: dict[str, str] = {
        "[A": "up", "[B": "down", "[C": "right", "[D": "left",
        "OA": "up", "OB": "down", "OC": "right", "OD": "left",
        "[H": "home", "[F": "end", "OH": "home", "OF": "end",
        "[1~": "home", "[4~": "end", "[7~": "home", "[8~": "end",
        "[2~": "insert", "[3~": "delete", "[5~": "pageup", "[6~": "pagedown",
        "[Z": "shift+tab",
        "OP": "f1", "OQ": "f2", "OR": "f3", "OS": "f4",
        "[11~": "f1", "[12~": "f2", "[13~": "f3", "[14~": "f4",
        "[15~": "f5", "[17~": "f6", "[18~": "f7", "[19~": "f8",
        "[20~": "f9", "[21~": "f10", "[23~": "f11", "[24~": "f12",
    }

    INPUT_TIMEOUT_MS = 100

    def __init__(self, session: "Vuit") -> None:
        self.session = session
        self.stdscr = session.stdscr
        self.keybindings = self._load_keybindings()
        self.action_map = self._setup_action_map()
        logging.debug("KeyBinder initialized with %d actions", len(self.keybindings))

    def _load_keybindings(self) -> dict[str, list[int | str]]:
        bindings: dict[str, list[int | str]] = {}
        for action, specs in DEFAULT_KEYBINDINGS.items():
            bindings[action] = [self._decode_keystring(spec) for spec in specs]
        return bindings

    def _setup_action_map(self) -> dict[int | str, Callable[[], Any]]:
        s = self.session
        methods: dict[str, Callable[[], Any]] = {
            "open": s.open_selected,
            "move_down": lambda: s.move_selection(1),
            "move_up": lambda: s.move_selection(-1),
            "page_down": lambda: s.page_selection(1),
            "page_up": lambda: s.page_selection(-1),
            "switch_window": s.switch_window,
            "refresh": s.refresh_files,
            "cycle_colorscheme": s.cycle_colorscheme,
            "toggle_terminal": s.toggle_terminal,
            "toggle_search": s.toggle_search,
            "toggle_help": s.toggle_help,
            "toggle_preview": s.toggle_preview,
            "run_in_terminal": s.run_in_terminal,
            "remove_recent": s.remove_recent,
            "quit": s.exit_app,
            "backspace": s.query_backspace,
        }
        action_map: dict[int | str, Callable[[], Any]] = {}
        for action, codes in self.keybindings.items():
            for code in codes:
                action_map[code] = methods[action]
        return action_map

    # ---------------------- Handle Input --------------------
    def handle_input(self, key: int | str) -> bool:
        """Dispatches one key to its action, or to the query buffer if printable.

        Returns:
            bool: True if the key changed visible state.
        """
        KEY_LOGGER.debug("key %r", key)

        action = self.action_map.get(key)
        if action is not None:
            logging.debug(f"handle_input: key {key!r} -> {getattr(action, '__name__', action)}")
            result = action()
            return True if result is None else bool(result)

        ch = is_printable(key)
        if ch is not None:
            return self.session.query_input(ch)

        logging.debug(f"handle_input: unbound key {key!r} ignored")
        return False

    def lookup(self, key_spec: str | int) -> Optional[str]:
        """Finds the action name bound to a key spec ("ctrl+r", 18, ...)."""
        try:
            decoded_key = self._decode_keystring(key_spec)
        except ValueError:
            return None
        for action_name, key_list in self.keybindings.items():
            if decoded_key in key_list:
                return action_name
        return None

    def _decode_keystring(self, key_input: str | int) -> int | str:
        """Decodes "ctrl+x", "f1", "pagedown" or a plain character into a key code.

        Raises:
            ValueError: If the key string is empty or names an unknown key/modifier.
        """
        if isinstance(key_input, int):
            return key_input

        s = key_input.strip().lower()
        if not s:
            raise ValueError("Key string cannot be empty.")
        if s.startswith("alt-"):
            return s
        if s in NAMED_KEYS:
            return NAMED_KEYS[s]

        parts = s.split("+")
        base = parts[-1]
        modifiers = set(parts[:-1])
        if modifiers - {"ctrl"}:
            raise ValueError(f"Unknown or unhandled modifiers in '{key_input}'")
        if len(base) != 1:
            raise ValueError(f"Unknown base key '{base}' in '{key_input}'")
        if "ctrl" in modifiers:
            if "a" <= base <= "z":
                return ord(base) - ord("a") + 1
            raise ValueError(f"Unsupported ctrl combination '{key_input}'")
        return ord(base)

    # ---------------------- Reading keys --------------------
    def get_key_input(self, window: Optional[curses.window] = None) -> int | str:
        """Reads a single key or key sequence from the terminal.

        Returns:
            int | str:
            - curses key code (int) for known keys,
            - a one-character str for a multi-byte UTF-8 character,
            - "alt-<char>" for Alt/Meta chords,
            - 27 for a lone ESC,
            - curses.ERR on timeout or curses errors.
        """
        target = window or self.stdscr

        try:
            ch = target.getch()
            if ch == curses.ERR:
                return ch
            if 0xC0 <= ch <= 0xF7:
                return self._read_utf8(target, ch)
            if ch != 27:
                return ch

            seq = ""
            target.nodelay(True)
            try:
                while True:
                    nx = target.getch()
                    if nx == curses.ERR:
                        break
                    seq += chr(nx) if 0 <= nx <= 255 else f"<{nx}>"
            finally:
                target.nodelay(False)
                target.timeout(self.INPUT_TIMEOUT_MS)

            if not seq:
                logging.debug("get_key_input: standalone ESC")
                return 27

            if seq[0] == "\x1b":
                seq = seq[1:]

            if len(seq) == 1 and seq.isprintable():
                return f"alt-{seq.lower()}"

            mapped = self.ESCAPE_SEQUENCE_MAP.get(seq)
            if not mapped:
                cleaned = "".join(re.findall(r"[\[O0-9;~A-Za-z]", seq))
                mapped = self.ESCAPE_SEQUENCE_MAP.get(cleaned)

            if mapped:
                code = self._decode_keystring(mapped)
                logging.debug("get_key_input: ESC %r -> %r -> code %r", seq, mapped, code)
                return code

            logging.warning("get_key_input: unknown escape sequence: ESC + %r", seq)
            return curses.ERR

        except curses.error:
            return curses.ERR

    def _read_utf8(self, target: Any, lead: int) -> int | str:
        """Collects the continuation bytes of a UTF-8 character started by `lead`."""
        length = 2 if lead < 0xE0 else 3 if lead < 0xF0 else 4
        raw = bytearray([lead])
        for _ in range(length - 1):
            nx = target.getch()
            if nx == curses.ERR or not 0x80 <= nx <= 0xBF:
                break
            raw.append(nx)
        try:
            return raw.decode("utf-8")
        except UnicodeDecodeError:
            logging.debug(f"get_key_input: invalid UTF-8 sequence {bytes(raw)!r}")
            return curses.ERR
