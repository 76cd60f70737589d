# vuit/ui/Theme.py
"""Theme.py
========================
Colour handling for vuit.

`ColorschemeCycle` is the pure part: the ordered list of colour names and the
current position in it (advanced with Ctrl-n, never persisted).

`Theme` turns colour names into curses attributes. Each name is one of the
eight basic curses colours, optionally with a ``light`` prefix. Light variants
use the bright palette entry (+8) when the terminal has at least 16 colours and
fall back to ``A_BOLD`` on 8-colour terminals. When the terminal has no colour
support at all, every attribute degrades to bold/reverse video.
"""

import curses
import logging
from typing import Any

from pygments.token import Token

from vuit.utils.utils import COLORSCHEMES


# Colour pair numbers. Pairs 15/16 are reserved for the status bar (DrawScreen).
PAIR_BORDER = 1
PAIR_SELECTION = 2
SYNTAX_PAIRS_START = 3

BASE_COLORS: dict[str, str] = {
    "black": "COLOR_BLACK",
    "red": "COLOR_RED",
    "green": "COLOR_GREEN",
    "yellow": "COLOR_YELLOW",
    "blue": "COLOR_BLUE",
    "magenta": "COLOR_MAGENTA",
    "cyan": "COLOR_CYAN",
    "white": "COLOR_WHITE",
}

# Preview syntax palette: token -> basic colour name
SYNTAX_COLORS: dict[Any, str] = {
    Token.Keyword: "magenta",
    Token.Name.Builtin: "cyan",
    Token.Name.Function: "yellow",
    Token.Name.Class: "green",
    Token.Name.Decorator: "magenta",
    Token.Name.Tag: "magenta",
    Token.Literal.String: "green",
    Token.Literal.Number: "cyan",
    Token.Comment: "blue",
    Token.Operator: "yellow",
    Token.Error: "red",
    Token.Generic.Heading: "yellow",
    Token.Generic.Deleted: "red",
    Token.Generic.Inserted: "green",
}


class ColorschemeCycle:
    """Position in the fixed colour list, plus the current highlight colour."""

    def __init__(self, initial: str = COLORSCHEMES[0], highlight: str = "blue") -> None:
        self.index = COLORSCHEMES.index(initial) if initial in COLORSCHEMES else 0
        self.highlight = highlight

    @property
    def current(self) -> str:
        return COLORSCHEMES[self.index]

    def advance(self) -> str:
        """Moves to the next colour (wrapping) and returns it.

        The highlight colour becomes the colour that follows the new scheme,
        so the selection bar always contrasts with the borders.
        """
        self.index = (self.index + 1) % len(COLORSCHEMES)
        self.highlight = COLORSCHEMES[(self.index + 1) % len(COLORSCHEMES)]
        logging.debug(f"Colorscheme advanced to {self.current} (highlight {self.highlight})")
        return self.current


class Theme:
    """Curses attributes for the current colorscheme.

    Attributes:
        colors (dict[str, int]): ``border``, ``title``, ``selection``, ``dim``,
            ``status`` and ``status_error`` attributes, ready for ``addstr``.
        syntax (dict): Pygments token type -> curses attribute for the preview.
    """

    def __init__(self) -> None:
        self.colors: dict[str, int] = {}
        self.syntax: dict[Any, int] = {}
        self.has_colors = False

    @staticmethod
    def resolve(name: str) -> tuple[int, int]:
        """Returns (curses colour number, extra attribute) for a colour name."""
        light = name.startswith("light")
        base = name[len("light"):] if light else name
        number = getattr(curses, BASE_COLORS.get(base, "COLOR_BLUE"))
        if not light:
            return number, curses.A_NORMAL
        if getattr(curses, "COLORS", 8) >= 16:
            return number + 8, curses.A_NORMAL
        return number, curses.A_BOLD

    def apply(self, scheme: str, highlight: str) -> None:
        """(Re)initialises colour pairs for `scheme` and `highlight`."""
        try:
            self.has_colors = curses.has_colors()
        except curses.error:
            self.has_colors = False

        if not self.has_colors:
            self.colors.update(
                border=curses.A_BOLD,
                title=curses.A_BOLD,
                selection=curses.A_REVERSE,
                dim=curses.A_DIM,
            )
            self.syntax = {}
            logging.info("Theme: terminal has no colours; using monochrome attributes")
            return

        try:
            curses.use_default_colors()
            background = -1
        except curses.error:
            background = curses.COLOR_BLACK

        fg, fg_extra = self.resolve(scheme)
        hl, _ = self.resolve(highlight)
        try:
            curses.init_pair(PAIR_BORDER, fg, background)
            curses.init_pair(PAIR_SELECTION, curses.COLOR_BLACK, hl)
            self.colors["border"] = curses.color_pair(PAIR_BORDER) | fg_extra
            self.colors["title"] = curses.color_pair(PAIR_BORDER) | fg_extra | curses.A_BOLD
            self.colors["selection"] = curses.color_pair(PAIR_SELECTION) | curses.A_BOLD
            self.colors["dim"] = curses.A_DIM
        except curses.error as exc:
            logging.warning("init_pair failed (%s) – roll back to A_REVERSE", exc)
            self.colors.update(
                border=curses.A_BOLD,
                title=curses.A_BOLD,
                selection=curses.A_REVERSE,
                dim=curses.A_DIM,
            )

        self._init_syntax(background)
        logging.debug(f"Theme applied: scheme={scheme} highlight={highlight}")

    def _init_syntax(self, background: int) -> None:
        pairs: dict[str, int] = {}
        self.syntax = {}
        for token_type, name in SYNTAX_COLORS.items():
            if name not in pairs:
                pair_number = SYNTAX_PAIRS_START + len(pairs)
                try:
                    curses.init_pair(pair_number, self.resolve(name)[0], background)
                except curses.error:
                    continue
                pairs[name] = pair_number
            self.syntax[token_type] = curses.color_pair(pairs[name])

    def token_attr(self, token_type: Any) -> int:
        """Attribute for a pygments token, walking up to its closest styled parent."""
        current = token_type
        while current:
            if current in self.syntax:
                return self.syntax[current]
            current = current.parent
        return curses.A_NORMAL
