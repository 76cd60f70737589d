# vuit/ui/panels.py
"""panels.py
=========

The windows of the vuit screen.

- BasePanel: lifecycle and interface shared by all windows (open/close,
  draw into a rectangle, handle a key).
- ListPanel: a filterable, scrollable list of paths. vuit has two of them,
  Files and Recent, each with its own query, selection and scroll offset.
- SearchPanel: results of a content search, streamed in batches.
- TerminalPanel: the embedded shell (see `vuit.integrations.ShellBridge`).
- HelpPanel: the static key reference.

Search, Terminal and Help are overlays managed by `PanelManager`; only one of
them is visible at a time.
"""

from __future__ import annotations

import curses
from typing import TYPE_CHECKING, Any, NamedTuple, Optional

from wcwidth import wcswidth, wcwidth

from vuit.core.FilterEngine import FilterState
from vuit.integrations.SearchTools import SearchHit
from vuit.integrations.ShellBridge import EmbeddedTerminal
from vuit.ui.KeyBinder import translate_for_terminal
from vuit.utils.errors import VuitError
from vuit.utils.logging_config import logger


if TYPE_CHECKING:
    from vuit.core.Vuit import Vuit

CursesWindow = Any

ENTER_KEYS = (10, 13, curses.KEY_ENTER)
BACKSPACE_KEYS = (8, 127, curses.KEY_BACKSPACE)


class Rect(NamedTuple):
    y: int
    x: int
    height: int
    width: int


def fit(text: str, max_width: int) -> str:
    """Clips `text` to `max_width` terminal cells, counting wide glyphs as two."""
    if max_width <= 0:
        return ""
    if wcswidth(text) <= max_width and wcswidth(text) >= 0:
        return text
    out: list[str] = []
    used = 0
    for ch in text:
        w = wcwidth(ch)
        if w < 0:
            w = 1
        if used + w > max_width:
            break
        out.append(ch)
        used += w
    return "".join(out)


def draw_box(win: CursesWindow, rect: Rect, title: str = "", attr: int = 0, right_title: str = "") -> None:
    """Draws a line border around `rect` with an optional left and right title."""
    if rect.height < 2 or rect.width < 2:
        return
    y, x, h, w = rect
    try:
        win.attron(attr)
        win.hline(y, x + 1, curses.ACS_HLINE, w - 2)
        win.hline(y + h - 1, x + 1, curses.ACS_HLINE, w - 2)
        win.vline(y + 1, x, curses.ACS_VLINE, h - 2)
        win.vline(y + 1, x + w - 1, curses.ACS_VLINE, h - 2)
        win.addch(y, x, curses.ACS_ULCORNER)
        win.addch(y, x + w - 1, curses.ACS_URCORNER)
        win.addch(y + h - 1, x, curses.ACS_LLCORNER)
        # The bottom-right cell of the screen cannot be written without an error.
        try:
            win.addch(y + h - 1, x + w - 1, curses.ACS_LRCORNER)
        except curses.error:
            pass
        if title and w > 4:
            win.addnstr(y, x + 2, fit(f" {title} ", w - 4), w - 4)
        if right_title:
            label = fit(f" {right_title} ", max(0, w - 4))
            rx = x + w - 2 - wcswidth(label)
            if rx > x + 2 + wcswidth(title) + 2:
                win.addnstr(y, rx, label, w - 4)
    except curses.error:
        pass
    finally:
        win.attroff(attr)


# ==================== BasePanel Class ====================
class BasePanel:
    """A window of the vuit screen."""

    # Whether keys go to the panel while it is shown.
    takes_focus = False

    def __init__(self, stdscr: CursesWindow, session: Vuit, **kwargs: Any) -> None:
        self.stdscr: CursesWindow = stdscr
        self.session: Vuit = session
        self.visible: bool = False
        self.term_height, self.term_width = self.stdscr.getmaxyx()
        self.last_rect: Optional[Rect] = None
        logger.debug(f"Base class initialized for panel '{self.__class__.__name__}'.")

    def resize(self) -> None:
        self.term_height, self.term_width = self.stdscr.getmaxyx()
        logger.debug(
            f"Resize event in panel '{self.__class__.__name__}'. New dims: {self.term_width}x{self.term_height}"
        )

    def open(self) -> None:
        self.visible = True
        logger.info(f"Panel '{self.__class__.__name__}' opened.")

    def close(self) -> None:
        self.visible = False
        logger.info(f"Panel '{self.__class__.__name__}' closed.")

    def draw(self, rect: Rect, focused: bool) -> None:
        raise NotImplementedError("The 'draw' method must be implemented in a child class.")

    def handle_key(self, key: Any) -> bool:
        """Returns True if the panel consumed the key. Unconsumed keys go to the KeyBinder."""
        return False

    def shutdown(self) -> None:
        """Releases resources held by the panel (processes, threads)."""

    def _border_attr(self, focused: bool) -> int:
        attr = self.session.theme.colors.get("border", curses.A_NORMAL)
        return attr | curses.A_BOLD if focused else attr

    def _draw_rows(self, rect: Rect, rows: list[str], selected: Optional[int], focused: bool, top: int) -> None:
        """Draws `rows[top:]` inside the border of `rect`, highlighting `selected`."""
        inner_w = rect.width - 2
        sel_attr = self.session.theme.colors.get("selection", curses.A_REVERSE)
        for n in range(rect.height - 2):
            idx = top + n
            if idx >= len(rows):
                break
            label = fit(rows[idx], inner_w)
            attr = curses.A_NORMAL
            if idx == selected:
                attr = sel_attr if focused else curses.A_BOLD
                label = label + " " * max(0, inner_w - wcswidth(label))
            try:
                self.stdscr.addnstr(rect.y + 1 + n, rect.x + 1, label, inner_w, attr)
            except curses.error:
                pass


# ==================== ListPanel Class ====================
class ListPanel(BasePanel):
    """A filterable list of paths (Files or Recent).

    Attributes:
        name (str): ``files`` or ``recent``; also the AsyncEngine channel.
        title (str): Border title.
        filter (FilterState): Query, backing list and filtered view.
        selected_index (int): Cursor position within the filtered view.
        scroll (int): First visible row.
    """

    takes_focus = True

    def __init__(self, stdscr: CursesWindow, session: Vuit, name: str, title: str) -> None:
        super().__init__(stdscr, session)
        self.name = name
        self.title = title
        self.filter = FilterState()
        self.selected_index = 0
        self.scroll = 0
        self.page_size = 1
        self.visible = True
        self.sticky: Optional[str] = None

    @property
    def entries(self) -> list[str]:
        return self.filter.filtered

    def set_entries(self, entries: list[str]) -> None:
        self.filter.set_backing(entries)
        self.clamp()

    def selected(self) -> Optional[str]:
        if 0 <= self.selected_index < len(self.entries):
            return self.entries[self.selected_index]
        return None

    def clamp(self) -> None:
        self.selected_index = max(0, min(self.selected_index, len(self.entries) - 1))

    def reset_selection(self) -> None:
        self.selected_index = 0
        self.scroll = 0
        self.sticky = None

    def remember_selection(self) -> None:
        """Keeps the selected entry so `restore_selection` can find it again after a rescan."""
        self.sticky = self.selected()

    def restore_selection(self) -> None:
        if self.sticky is not None and self.sticky in self.entries:
            self.selected_index = self.entries.index(self.sticky)
            self.sticky = None
        self.clamp()

    def move_selection(self, delta: int) -> bool:
        """Moves the cursor by `delta`, clamped to the list. Returns True if it moved."""
        old = self.selected_index
        self.selected_index += delta
        self.clamp()
        return self.selected_index != old

    def page(self, direction: int) -> bool:
        return self.move_selection(direction * max(1, self.page_size))

    def counts_label(self) -> str:
        return f"[ {len(self.filter.filtered)} / {len(self.filter.backing)} ]"

    def _adjust_scroll(self, rows: int) -> None:
        if self.selected_index < self.scroll:
            self.scroll = self.selected_index
        elif self.selected_index >= self.scroll + rows:
            self.scroll = self.selected_index - rows + 1
        self.scroll = max(0, min(self.scroll, max(0, len(self.entries) - rows)))

    def draw(self, rect: Rect, focused: bool) -> None:
        self.last_rect = rect
        if rect.height < 3 or rect.width < 4:
            return
        rows = rect.height - 2
        self.page_size = rows
        self._adjust_scroll(rows)
        title = self.title + (" …" if self.filter.pending else "")
        draw_box(self.stdscr, rect, title, self._border_attr(focused))
        self._draw_rows(rect, self.entries, self.selected_index, focused, self.scroll)


# ==================== SearchPanel Class ====================
class SearchPanel(BasePanel):
    """Results of a content search over the working tree."""

    takes_focus = True

    def __init__(self, stdscr: CursesWindow, session: Vuit, **kwargs: Any) -> None:
        super().__init__(stdscr, session)
        self.pattern = ""
        self.file_filter = ""
        self.hits: list[SearchHit] = []
        self.selected_index = 0
        self.scroll = 0
        self.page_size = 1
        self.generation = 0
        self.searching = False
        self.truncated = False
        self.error: Optional[str] = None
        self.interrupted = False

    def open(self) -> None:
        super().open()
        if self.interrupted and self.pattern:
            self.session.start_content_search()

    def close(self) -> None:
        # A hidden search does not keep its subprocess running.
        if self.searching:
            self.session.async_engine.cancel("search")
            self.searching = False
            self.interrupted = True
            self.generation = -1
        super().close()

    def reset(self, generation: int) -> None:
        """Clears results for a new search tagged `generation`."""
        self.generation = generation
        self.hits = []
        self.selected_index = 0
        self.scroll = 0
        self.truncated = False
        self.error = None
        self.interrupted = False
        self.searching = bool(self.pattern)

    def add_hits(self, generation: int, hits: list[SearchHit]) -> bool:
        if generation != self.generation:
            return False
        self.hits.extend(hits)
        return True

    def finish(self, generation: int, truncated: bool, error: Optional[str]) -> bool:
        if generation != self.generation:
            return False
        self.searching = False
        self.truncated = truncated
        self.error = error
        return True

    def selected(self) -> Optional[SearchHit]:
        if 0 <= self.selected_index < len(self.hits):
            return self.hits[self.selected_index]
        return None

    def move_selection(self, delta: int) -> bool:
        old = self.selected_index
        self.selected_index = max(0, min(self.selected_index + delta, len(self.hits) - 1))
        return self.selected_index != old

    def page(self, direction: int) -> bool:
        return self.move_selection(direction * max(1, self.page_size))

    def counts_label(self) -> str:
        if self.searching:
            return f"[ searching... {len(self.hits)} ]"
        suffix = " (truncated)" if self.truncated else ""
        return f"[ {len(self.hits)} matches{suffix} ]"

    def draw(self, rect: Rect, focused: bool) -> None:
        self.last_rect = rect
        if rect.height < 3 or rect.width < 4:
            return
        rows = rect.height - 2
        self.page_size = rows
        if self.selected_index < self.scroll:
            self.scroll = self.selected_index
        elif self.selected_index >= self.scroll + rows:
            self.scroll = self.selected_index - rows + 1

        draw_box(self.stdscr, rect, "Search", self._border_attr(focused), self.error or "")
        if not self.hits and not self.searching:
            message = "Type to search file contents" if not self.pattern else "No matches"
            try:
                self.stdscr.addnstr(rect.y + 1, rect.x + 2, message, rect.width - 4, curses.A_DIM)
            except curses.error:
                pass
            return
        self._draw_rows(rect, [h.label() for h in self.hits], self.selected_index, focused, self.scroll)


# ==================== TerminalPanel Class ====================
class TerminalPanel(BasePanel):
    """The embedded shell overlay.

    Every key except the overlay toggle is forwarded to the shell. The panel
    watches the line being typed so that ``restart`` respawns the shell and
    ``quit``/``exit`` hide the overlay; the shell is then respawned on the next
    show.
    """

    takes_focus = True
    DEFAULT_ROWS = 18

    def __init__(self, stdscr: CursesWindow, session: Vuit, **kwargs: Any) -> None:
        super().__init__(stdscr, session)
        self.terminal: Optional[EmbeddedTerminal] = None
        self.cursor: Optional[tuple[int, int]] = None
        self._line: str = ""

    def _size_hint(self) -> tuple[int, int]:
        if self.last_rect is not None:
            return max(1, self.last_rect.height - 2), max(1, self.last_rect.width - 2)
        return self.DEFAULT_ROWS, max(1, self.term_width - 2)

    def ensure_started(self) -> None:
        """Spawns the shell if it is not running.

        Raises:
            SubprocessSpawnError: if the shell cannot be started.
        """
        if self.terminal is not None and self.terminal.is_alive():
            return
        if self.terminal is not None:
            self.terminal.terminate()
        rows, cols = self._size_hint()
        self.terminal = EmbeddedTerminal(
            self.session.config.resolve_shell(), cwd=self.session.root, rows=rows, cols=cols
        )
        self.terminal.start()
        self._line = ""

    def open(self) -> None:
        self.ensure_started()
        super().open()

    def restart(self) -> None:
        logger.info("TerminalPanel: restarting shell")
        if self.terminal is not None:
            self.terminal.terminate()
            self.terminal = None
        self.ensure_started()

    def shutdown(self) -> None:
        if self.terminal is not None:
            self.terminal.terminate()
            self.terminal = None

    def send_line(self, text: str) -> bool:
        """Types `text` into the shell followed by Enter.

        Raises:
            SubprocessSpawnError: if a dead shell cannot be restarted.
        """
        self.ensure_started()
        self._line = ""
        return self.terminal.write(text.encode("utf-8") + b"\r")

    def _track_line(self, key: int | str) -> Optional[str]:
        """Follows the typed line; returns it when Enter is pressed."""
        if key in ENTER_KEYS:
            line, self._line = self._line.strip(), ""
            return line
        if key in BACKSPACE_KEYS:
            self._line = self._line[:-1]
        elif isinstance(key, str) and len(key) == 1:
            self._line += key
        elif isinstance(key, int) and 32 <= key < 127:
            self._line += chr(key)
        else:
            self._line = ""
        return None

    def handle_key(self, key: Any) -> bool:
        if self.terminal is None or not self.terminal.is_alive():
            # Any key brings a dead shell back.
            try:
                self.restart()
            except VuitError as e:
                self.session._set_status_message(e.user_message())
            return True

        line = self._track_line(key)
        if line == "restart":
            try:
                self.restart()
            except VuitError as e:
                self.session._set_status_message(e.user_message())
            return True
        if line in ("quit", "exit"):
            self.shutdown()
            self.session.panel_manager.close_active_panel()
            return True

        self.terminal.write(translate_for_terminal(key))
        return True

    def draw(self, rect: Rect, focused: bool) -> None:
        self.last_rect = rect
        self.cursor = None
        if rect.height < 3 or rect.width < 4:
            return
        draw_box(self.stdscr, rect, "Terminal", self._border_attr(focused))
        if self.terminal is None:
            return
        self.terminal.resize(rect.height - 2, rect.width - 2)
        self.terminal.consume_dirty()
        lines, (cy, cx) = self.terminal.snapshot()
        for n, text in enumerate(lines[: rect.height - 2]):
            try:
                self.stdscr.addnstr(rect.y + 1 + n, rect.x + 1, fit(text, rect.width - 2), rect.width - 2)
            except curses.error:
                pass
        if not self.terminal.is_alive():
            note = f"[shell exited ({self.terminal.exit_code}); press any key to restart]"
            try:
                self.stdscr.addnstr(rect.y + rect.height - 2, rect.x + 1, note, rect.width - 2, curses.A_BOLD)
            except curses.error:
                pass
            return
        self.cursor = (rect.y + 1 + min(cy, rect.height - 3), rect.x + 1 + min(cx, rect.width - 3))


# ==================== HelpPanel Class ====================
HELP_LINES: tuple[str, ...] = (
    "(General Commands)",
    "<C-t> - Toggle terminal window",
    "<C-f> - Toggle content search window",
    "<C-h> - Toggle help menu window (also F1)",
    "<C-r> - Rescan CWD for updates",
    "<C-n> - Cycle colorscheme",
    "<C-p> - Toggle file preview",
    "Esc   - Exit Vuit",
    "",
    "(File List Focus Commands)",
    "Up/Down, Ctrl-j/Ctrl-k - Navigate the file list",
    "PageUp/PageDown - Move one page",
    "Enter - Open selected file",
    "Tab   - Switch between recent and file windows",
    "<C-x> - Run selected file in the terminal window",
    "<C-d> - Remove selected entry from the recent list",
    "Typing filters the focused list; Backspace deletes",
    "",
    "(Search Focus Commands)",
    "Typing edits the pattern and restarts the search",
    "Enter - Open the selected match at its line",
    "",
    "(Terminal Focus Commands)",
    "<C-t> - Switches focus back to the file list, but terminal session is preserved",
    "quit, exit - Switches focus back to the file list and restarts the terminal instance",
    "restart - If terminal seems unresponsive, this will restart the session",
)


class HelpPanel(BasePanel):
    """Static key reference. Render-only: keys keep going to the list."""

    def draw(self, rect: Rect, focused: bool) -> None:
        self.last_rect = rect
        if rect.height < 3 or rect.width < 4:
            return
        draw_box(self.stdscr, rect, "Help", self._border_attr(False))
        title_attr = self.session.theme.colors.get("title", curses.A_BOLD)
        for n, text in enumerate(HELP_LINES[: rect.height - 2]):
            attr = title_attr if text.startswith("(") else curses.A_NORMAL
            try:
                self.stdscr.addnstr(rect.y + 1 + n, rect.x + 2, fit(text, rect.width - 4), rect.width - 4, attr)
            except curses.error:
                pass
