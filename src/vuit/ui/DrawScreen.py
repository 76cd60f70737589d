# vuit/ui/DrawScreen.py
"""DrawScreen.py
========================
DrawScreen renders the vuit screen with curses.

It is responsible for:
- computing the layout (list panes, preview, input box, overlay, status bar),
- drawing the Recent and Files panes and the preview pane,
- the input box with the active query and its counts,
- the status bar,
- the "window too small" message.

Overlays (Search, Terminal, Help) are drawn by their panels through the
PanelManager into the rectangle this class computes.

The preview shows the first lines of the highlighted file, decoded with
chardet and highlighted with pygments. Binary files (containing NUL bytes),
directories and unreadable files show "No Preview Available".
"""

import curses
import logging
import os
from collections import OrderedDict
from typing import TYPE_CHECKING, Any, NamedTuple, Optional

import chardet
from pygments import lex
from pygments.lexers import TextLexer, get_lexer_for_filename
from pygments.util import ClassNotFound
from wcwidth import wcswidth

from vuit.ui.panels import Rect, SearchPanel, draw_box, fit
from vuit.utils.utils import strip_ansi


if TYPE_CHECKING:
    from vuit.core.Vuit import Vuit


# xterm-256 palette indices for the status bar
CALM_BG_IDX = 236
WHITE_FG_IDX = 255

PREVIEW_READ_BYTES = 32 * 1024
CHARDET_SAMPLE_BYTES = 8 * 1024
PREVIEW_CACHE_SIZE = 64
NO_PREVIEW = "No Preview Available"

PreviewLines = list[list[tuple[Any, str]]]


class Layout(NamedTuple):
    recent: Rect
    files: Rect
    preview: Optional[Rect]
    input: Rect
    overlay: Optional[Rect]
    status: Rect


def load_preview(path: str, max_lines: int) -> Optional[PreviewLines]:
    """Reads and tokenizes the first `max_lines` lines of `path`.

    Returns:
        A list of lines, each a list of (pygments token type, text) pairs, or
        None if the file cannot be previewed (binary, unreadable, a directory).
    """
    try:
        with open(path, "rb") as f:
            raw = f.read(PREVIEW_READ_BYTES)
    except OSError as e:
        logging.debug(f"Preview: cannot read '{path}': {e}")
        return None

    if b"\x00" in raw:
        return None
    if not raw:
        return []

    detected = chardet.detect(raw[:CHARDET_SAMPLE_BYTES])
    encoding = detected.get("encoding") if (detected.get("confidence") or 0.0) >= 0.5 else None
    try:
        text = raw.decode(encoding or "utf-8", errors="replace")
    except LookupError:
        text = raw.decode("utf-8", errors="replace")

    lines = text.splitlines()[:max_lines]
    try:
        lexer = get_lexer_for_filename(path, stripnl=False)
    except ClassNotFound:
        lexer = TextLexer(stripnl=False)

    result: PreviewLines = [[]]
    try:
        for token_type, value in lex("\n".join(lines), lexer):
            for i, part in enumerate(value.split("\n")):
                if i:
                    result.append([])
                if part:
                    result[-1].append((token_type, strip_ansi(part)))
    except Exception as e:
        logging.error(f"Pygments tokenization error for '{path}': {e}")
        result = [[(None, strip_ansi(line))] for line in lines]
    return result[:max_lines]


## ================= class DrawScreen ==============================
class DrawScreen:
    """DrawScreen Class
    =========================
    Attributes:
        MIN_WINDOW_WIDTH (int): Narrower terminals only get the "too small" message.
        MIN_WINDOW_HEIGHT (int): Shorter terminals only get the "too small" message.
        session (Vuit): The session being drawn.
        layout (Optional[Layout]): Rectangles of the last drawn frame.
        input_cursor (Optional[tuple[int, int]]): Screen position after the query text.
    """

    MIN_WINDOW_WIDTH = 20
    MIN_WINDOW_HEIGHT = 5
    INPUT_HEIGHT = 3
    OVERLAY_HEIGHT = 20
    MINIMIZED_HEIGHT = 8
    MINIMIZED_SHORT = 3
    MIN_PREVIEW_WIDTH = 40

    def __init__(self, session: "Vuit") -> None:
        self.session = session
        self.stdscr = session.stdscr
        self.colors = session.theme.colors
        self.layout: Optional[Layout] = None
        self.input_cursor: Optional[tuple[int, int]] = None
        self._preview_cache: "OrderedDict[str, tuple[tuple[int, int], Optional[PreviewLines]]]" = OrderedDict()
        self._init_status_colors()

    def _init_status_colors(self) -> None:
        """Status bar pairs: white on xterm-236 with 256 colours, white on
        black with 16, white on the terminal background with 8."""
        pair_norm, pair_err = 15, 16
        try:
            if not curses.has_colors():
                raise curses.error("no colours")
            max_colors = curses.COLORS
            if max_colors >= 256:
                fg_idx, bg_idx = WHITE_FG_IDX, CALM_BG_IDX
            elif max_colors >= 16:
                fg_idx, bg_idx = curses.COLOR_WHITE, curses.COLOR_BLACK
            else:
                fg_idx, bg_idx = curses.COLOR_WHITE, -1
            curses.init_pair(pair_norm, fg_idx, bg_idx)
            curses.init_pair(pair_err, curses.COLOR_RED, bg_idx)
        except curses.error as exc:
            logging.warning("init_pair failed (%s) – roll back to A_REVERSE", exc)
            self.colors["status"] = curses.A_REVERSE
            self.colors["status_error"] = curses.A_REVERSE | curses.A_BOLD
            return

        self.colors["status"] = curses.color_pair(pair_norm)
        self.colors["status_error"] = curses.color_pair(pair_err) | curses.A_BOLD

    # ----------------------------- layout ---------------------------------
    def compute_layout(self, height: int, width: int, active_list: str, preview: bool, overlay: bool) -> Layout:
        """Splits the screen. The focused list takes the remaining height; the
        other one is minimized."""
        available = height - 1 - self.INPUT_HEIGHT
        overlay_h = 0
        if overlay:
            overlay_h = min(self.OVERLAY_HEIGHT, available - 6)
            if overlay_h < 3:
                overlay_h = 0

        list_h = max(0, available - overlay_h)
        minimized = self.MINIMIZED_HEIGHT if list_h >= 2 * self.MINIMIZED_HEIGHT else self.MINIMIZED_SHORT
        minimized = min(minimized, list_h // 2)
        focused_h = list_h - minimized

        list_w = width // 2 if preview and width >= self.MIN_PREVIEW_WIDTH else width
        if active_list == "recent":
            recent = Rect(0, 0, focused_h, list_w)
            files = Rect(focused_h, 0, minimized, list_w)
        else:
            recent = Rect(0, 0, minimized, list_w)
            files = Rect(minimized, 0, focused_h, list_w)

        return Layout(
            recent=recent,
            files=files,
            preview=Rect(0, list_w, list_h, width - list_w) if list_w < width else None,
            input=Rect(list_h, 0, self.INPUT_HEIGHT, width),
            overlay=Rect(list_h + self.INPUT_HEIGHT, 0, overlay_h, width) if overlay_h else None,
            status=Rect(height - 1, 0, 1, width),
        )

    # ------------------------------ drawing --------------------------------
    def draw(self) -> None:
        """Draws everything except the overlay into the virtual screen."""
        try:
            height, width = self.stdscr.getmaxyx()
            self.input_cursor = None

            if height < self.MIN_WINDOW_HEIGHT or width < self.MIN_WINDOW_WIDTH:
                self.layout = None
                self._show_small_window_error(height, width)
                return

            s = self.session
            self.stdscr.erase()
            self.layout = self.compute_layout(
                height, width, s.active_list, s.preview_enabled, s.panel_manager.is_panel_active()
            )

            lists_focused = not s.panel_manager.has_focus()
            s.recent_panel.draw(self.layout.recent, lists_focused and s.active_list == "recent")
            s.files_panel.draw(self.layout.files, lists_focused and s.active_list == "files")
            if self.layout.preview is not None:
                self._draw_preview(self.layout.preview)
            self._draw_input(self.layout.input)
            self._draw_status_bar()

            self.stdscr.noutrefresh()

        except curses.error as e:
            logging.error(f"Curses error in DrawScreen.draw(): {e}", exc_info=True)
        except Exception:
            logging.exception("Unexpected error in DrawScreen.draw()")

    def _show_small_window_error(self, height: int, width: int) -> None:
        msg = f"Window too small ({width}x{height}). Minimum is {self.MIN_WINDOW_WIDTH}x{self.MIN_WINDOW_HEIGHT}."
        try:
            self.stdscr.erase()
            msg = fit(msg, max(1, width - 1))
            self.stdscr.addstr(height // 2, max(0, (width - len(msg)) // 2), msg)
            self.stdscr.noutrefresh()
        except curses.error:
            pass

    def preview_lines(self, path: str) -> Optional[PreviewLines]:
        """Cached `load_preview`, invalidated when the file's mtime or size changes."""
        try:
            st = os.stat(path)
        except OSError:
            return None
        if not os.path.isfile(path):
            return None
        key = (st.st_mtime_ns, st.st_size)
        cached = self._preview_cache.get(path)
        if cached is not None and cached[0] == key:
            self._preview_cache.move_to_end(path)
            return cached[1]
        lines = load_preview(path, self.session.config.preview_lines)
        self._preview_cache[path] = (key, lines)
        while len(self._preview_cache) > PREVIEW_CACHE_SIZE:
            self._preview_cache.popitem(last=False)
        return lines

    def _draw_preview(self, rect: Rect) -> None:
        if rect.height < 3 or rect.width < 4:
            return
        entry = self.session.active_list_panel().selected()
        title = fit(entry, max(1, rect.width - 8)) if entry else "Preview"
        draw_box(self.stdscr, rect, title, self.colors.get("border", 0))

        lines = self.preview_lines(os.path.join(self.session.root, entry)) if entry else None
        inner_w = rect.width - 2
        if not lines:
            if entry and lines is None:
                try:
                    self.stdscr.addnstr(rect.y + 1, rect.x + 2, NO_PREVIEW, inner_w - 2, curses.A_DIM)
                except curses.error:
                    pass
            return

        theme = self.session.theme
        for n, tokens in enumerate(lines[: rect.height - 2]):
            x = rect.x + 1
            remaining = inner_w
            for token_type, text in tokens:
                if remaining <= 0:
                    break
                chunk = fit(text, remaining)
                attr = theme.token_attr(token_type) if token_type is not None else curses.A_NORMAL
                try:
                    self.stdscr.addstr(rect.y + 1 + n, x, chunk, attr)
                except curses.error:
                    pass
                used = max(0, wcswidth(chunk))
                x += used
                remaining -= used

    def _draw_input(self, rect: Rect) -> None:
        s = self.session
        panel = s.query_panel()
        if isinstance(panel, SearchPanel):
            title = f"Search [FILE FILTER: {panel.file_filter}]" if panel.file_filter else "Search"
            query, counts = panel.pattern, panel.counts_label()
        else:
            title, query, counts = panel.title, panel.filter.query, panel.counts_label()

        draw_box(self.stdscr, rect, title, self.colors.get("title", curses.A_BOLD), counts)
        inner_w = rect.width - 4
        if inner_w <= 2:
            return
        prompt = "> "
        room = inner_w - len(prompt) - 1
        shown = query
        while shown and wcswidth(shown) > room:
            shown = shown[1:]
        try:
            self.stdscr.addnstr(rect.y + 1, rect.x + 2, prompt + shown, inner_w)
        except curses.error:
            pass
        self.input_cursor = (rect.y + 1, rect.x + 2 + len(prompt) + max(0, wcswidth(shown)))

    def truncate_string(self, s: str, max_width: int) -> str:
        return fit(s, max_width)

    def _draw_status_bar(self) -> None:
        """Single-line status bar: location on the left, message in the middle,
        colorscheme and file count on the right."""
        try:
            height, width = self.stdscr.getmaxyx()
            y = height - 1
            s = self.session

            c_norm = self.colors.get("status", curses.A_REVERSE)
            c_err = self.colors.get("status_error", curses.A_REVERSE | curses.A_BOLD)

            left = f" vuit | {s.root} "
            right = f" {s.cycle.current} | {len(s.file_index)} files "
            msg = s.status_message or "Ready"

            right_w = wcswidth(right)
            left = self.truncate_string(left, max(0, width // 3))
            left_w = wcswidth(left)
            spacing = max(0, width - left_w - right_w)
            if wcswidth(msg) > spacing - 1:
                msg = self.truncate_string(msg, max(0, spacing - 1))
            msg_w = max(0, wcswidth(msg))
            pad_left = max(0, (spacing - msg_w) // 2)
            middle = " " * pad_left + msg + " " * max(0, spacing - msg_w - pad_left)

            line = self.truncate_string(left + middle + right, width - 1)
            self.stdscr.addstr(y, 0, line, c_norm)

            lowered = msg.lower()
            if msg_w and ("error" in lowered or "cannot" in lowered or "failed" in lowered):
                self.stdscr.chgat(y, left_w + pad_left, msg_w, c_err)

        except curses.error:
            pass
        except Exception:
            logging.exception("Unexpected error in _draw_status_bar")

    def _update_display(self) -> None:
        """Flushes all pending window updates to the terminal at once."""
        try:
            self.stdscr.noutrefresh()
            curses.doupdate()
        except curses.error as e:
            logging.error(f"Curses doupdate error: {e}")
