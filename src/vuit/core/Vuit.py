# vuit/core/Vuit.py
"""Vuit Module
===========
The session controller: owns the windows, the indexes and the background
engine, reads keys, dispatches commands and redraws.

The main loop reads one key at a time with a 100 ms timeout, so results from
the AsyncEngine (filter results, streamed search hits) and output from the
embedded shell are picked up about ten times a second even when the user is
idle. Every state change marks the frame dirty; the frame is redrawn once per
loop iteration at most.
"""

import curses
import logging
import os
import queue
import shlex
from typing import Any, Optional, Union

from vuit.core.AsyncEngine import AsyncEngine
from vuit.core.FileIndex import FileIndex
from vuit.core.FilterEngine import next_generation
from vuit.core.RecentList import RecentList
from vuit.integrations.EditorBridge import EditorBridge
from vuit.integrations.SearchTools import resolve_content_search, resolve_tool
from vuit.ui.DrawScreen import DrawScreen
from vuit.ui.KeyBinder import KeyBinder
from vuit.ui.PanelManager import PanelManager
from vuit.ui.TerminalAppMode import TerminalAppMode
from vuit.ui.Theme import ColorschemeCycle, Theme
from vuit.ui.panels import ListPanel, SearchPanel, TerminalPanel
from vuit.utils.errors import VuitError
from vuit.utils.logging_config import logger
from vuit.utils.utils import Configuration


class Vuit:
    """The vuit session.

    Attributes:
        stdscr: The curses main window.
        config (Configuration): Validated configuration.
        root (str): Absolute path of the browsed tree; also the cwd for every subprocess.
        running (bool): Main loop flag; cleared by `exit_app`.
        status_message (str): Text shown in the middle of the status bar.
        active_list (str): ``files`` or ``recent``.
        preview_enabled (bool): Whether the preview pane is shown.
        file_index (FileIndex), recent (RecentList): The two backing lists.
        files_panel, recent_panel (ListPanel): The two list windows.
        panel_manager (PanelManager): Search / Terminal / Help overlays.
        cycle (ColorschemeCycle), theme (Theme): Colours.
        async_engine (AsyncEngine): Background filtering and content search.
    """

    def __init__(
        self,
        stdscr: Any,
        config: Configuration,
        root: str,
        app_mode: Optional[TerminalAppMode] = None,
    ) -> None:
        self.stdscr = stdscr
        self.config = config
        self.root = os.path.abspath(root)
        self.running = False
        self.status_message = "Ready"
        self._force_full_redraw = True
        self._exit_in_progress = False
        self._search_after_filter = False
        self.active_list = "files"
        self.preview_enabled = config.preview
        self.app_mode = app_mode or TerminalAppMode()
        self.last_window_size = self.stdscr.getmaxyx()

        self.cycle = ColorschemeCycle(config.colorscheme, config.highlight_color)
        self.theme = Theme()
        self.theme.apply(self.cycle.current, self.cycle.highlight)

        self.file_index = FileIndex(self.root, config.enumerator)
        self.recent = RecentList(config.recent_limit)
        self.files_panel = ListPanel(stdscr, self, "files", "Files")
        self.recent_panel = ListPanel(stdscr, self, "recent", "Recent")
        self.panel_manager = PanelManager(self)
        self.keybinder = KeyBinder(self)
        self.drawer = DrawScreen(self)
        self.editor_bridge = EditorBridge(config, self.app_mode, stdscr, cwd=self.root)

        self.matcher: Optional[str] = resolve_tool(config.matcher)
        self.content_search_tool: Optional[str] = resolve_content_search(config.content_search)
        logger.info(
            f"Tools: enumerator={config.enumerator} matcher={self.matcher} "
            f"content_search={self.content_search_tool}"
        )

        self._async_results_q: queue.Queue[dict[str, Any]] = queue.Queue()
        self.async_engine = AsyncEngine(self._async_results_q, config.max_search_results)
        self.async_engine.start()

        self.refresh_files(initial=True)
        if config.warning:
            self._set_status_message(config.warning, logging.WARNING)

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------
    def _set_status_message(self, message: str, level: int = logging.DEBUG) -> None:
        message = str(message)
        if self.status_message != message:
            self.status_message = message
            logger.log(level, f"Status: {message}")

    def _report(self, error: VuitError) -> None:
        """Shows a recoverable error in the status bar and logs it."""
        self._set_status_message(error.user_message(), logging.WARNING)

    def active_list_panel(self) -> ListPanel:
        return self.recent_panel if self.active_list == "recent" else self.files_panel

    def list_panel(self, name: Optional[str]) -> Optional[ListPanel]:
        return {"files": self.files_panel, "recent": self.recent_panel}.get(name or "")

    @property
    def search_panel(self) -> SearchPanel:
        return self.panel_manager.get("search")  # type: ignore[return-value]

    def search_active(self) -> bool:
        return self.panel_manager.is_active("search")

    def query_panel(self) -> Union[ListPanel, SearchPanel]:
        """The window whose query the input box edits."""
        return self.search_panel if self.search_active() else self.active_list_panel()

    # ------------------------------------------------------------------
    # Filtering
    # ------------------------------------------------------------------
    def _refilter(self, panel: ListPanel, keep_selection: bool = False) -> None:
        """Starts (or synchronously completes) a filter pass for the panel's query.

        With `keep_selection` the cursor follows the entry recorded by
        `ListPanel.remember_selection` instead of going back to the top.
        """
        state = panel.filter
        generation = state.begin(state.query)
        if not keep_selection:
            panel.reset_selection()

        if not state.query:
            panel.restore_selection()
            return

        if self.matcher:
            self.async_engine.submit_task(
                {
                    "type": "filter",
                    "channel": panel.name,
                    "generation": generation,
                    "query": state.query,
                    "entries": list(state.backing),
                    "matcher": self.matcher,
                }
            )
        elif len(state.backing) <= self.config.sync_filter_limit:
            state.apply_sync(generation)
            panel.restore_selection()
        else:
            self.async_engine.submit_task(
                {
                    "type": "filter",
                    "channel": panel.name,
                    "generation": generation,
                    "query": state.query,
                    "entries": list(state.backing),
                    "matcher": None,
                }
            )

    def start_content_search(self) -> bool:
        """Restarts the content search for the current pattern.

        A non-empty Files query limits the search to the files it matches. While
        that query is still being filtered the search waits for its result.
        """
        panel = self.search_panel
        self._search_after_filter = False
        generation = next_generation()
        panel.file_filter = self.files_panel.filter.query
        panel.reset(generation)

        if not panel.pattern:
            self.async_engine.cancel("search")
            return True
        if not self.content_search_tool:
            panel.finish(generation, False, "no content search tool installed")
            self._set_status_message("Cannot search: neither rg nor grep is installed", logging.WARNING)
            return True

        paths: Optional[list[str]] = None
        if panel.file_filter:
            if self.files_panel.filter.pending:
                self.async_engine.cancel("search")
                self._search_after_filter = True
                return True
            paths = list(self.files_panel.entries)
            if not paths:
                self.async_engine.cancel("search")
                panel.finish(generation, False, None)
                return True

        self.async_engine.submit_task(
            {
                "type": "content_search",
                "channel": "search",
                "generation": generation,
                "pattern": panel.pattern,
                "root": self.root,
                "tool": self.content_search_tool,
                "paths": paths,
            }
        )
        return True

    # ------------------------------------------------------------------
    # Commands (bound in KeyBinder)
    # ------------------------------------------------------------------
    def open_selected(self) -> bool:
        if self.search_active():
            hit = self.search_panel.selected()
            if hit is None:
                self._set_status_message("No match selected")
                return True
            return self._open_path(hit.path, hit.line)

        entry = self.active_list_panel().selected()
        if entry is None:
            self._set_status_message("Nothing selected")
            return True
        return self._open_path(entry)

    def _open_path(self, path: str, line: Optional[int] = None) -> bool:
        try:
            self.editor_bridge.open(path, line)
        except VuitError as e:
            self._report(e)
            self._force_full_redraw = True
            return True

        self.recent.push(path)
        self.recent_panel.set_entries(self.recent.items())
        self._refilter(self.recent_panel)
        self.refresh_files()
        self._force_full_redraw = True
        return True

    def move_selection(self, delta: int) -> bool:
        if self.search_active():
            return self.search_panel.move_selection(delta)
        return self.active_list_panel().move_selection(delta)

    def page_selection(self, direction: int) -> bool:
        if self.search_active():
            return self.search_panel.page(direction)
        return self.active_list_panel().page(direction)

    def switch_window(self) -> bool:
        self.active_list = "recent" if self.active_list == "files" else "files"
        logger.debug(f"Active list: {self.active_list}")
        return True

    def refresh_files(self, initial: bool = False) -> bool:
        """Re-enumerates the tree and re-applies the Files query."""
        issues = self.file_index.rebuild()
        self.files_panel.remember_selection()
        self.files_panel.set_entries(self.file_index.entries)
        self._refilter(self.files_panel, keep_selection=True)

        if issues:
            more = f" (+{len(issues) - 1} more)" if len(issues) > 1 else ""
            self._set_status_message(issues[0].user_message() + more, logging.WARNING)
        elif not initial:
            self._set_status_message(f"Rescanned: {len(self.file_index)} files")
        return True

    def cycle_colorscheme(self) -> bool:
        name = self.cycle.advance()
        self.theme.apply(name, self.cycle.highlight)
        self._set_status_message(f"Colorscheme: {name}")
        self._force_full_redraw = True
        return True

    def toggle_terminal(self) -> bool:
        self.panel_manager.show_panel("terminal")
        return True

    def toggle_search(self) -> bool:
        self.panel_manager.show_panel("search")
        return True

    def toggle_help(self) -> bool:
        self.panel_manager.show_panel("help")
        return True

    def toggle_preview(self) -> bool:
        self.preview_enabled = not self.preview_enabled
        self._set_status_message(f"Preview {'on' if self.preview_enabled else 'off'}")
        return True

    def run_in_terminal(self) -> bool:
        """Shows the Terminal overlay and runs the selected file's absolute path in it."""
        if self.search_active():
            hit = self.search_panel.selected()
            entry = hit.path if hit is not None else None
        else:
            entry = self.active_list_panel().selected()
        if entry is None:
            self._set_status_message("Nothing selected")
            return True

        if not self.panel_manager.is_active("terminal") and not self.panel_manager.show_panel("terminal"):
            return True
        terminal: TerminalPanel = self.panel_manager.get("terminal")  # type: ignore[assignment]
        abs_path = os.path.join(self.root, entry)
        try:
            terminal.send_line(shlex.quote(abs_path))
        except VuitError as e:
            self._report(e)
        return True

    def remove_recent(self) -> bool:
        if self.active_list != "recent" or self.search_active():
            return False
        entry = self.recent_panel.selected()
        if entry is None or not self.recent.remove(entry):
            return False
        self.recent_panel.set_entries(self.recent.items())
        self._refilter(self.recent_panel)
        self._set_status_message(f"Removed {entry} from recent")
        return True

    def query_input(self, ch: str) -> bool:
        panel = self.query_panel()
        if isinstance(panel, SearchPanel):
            panel.pattern += ch
            return self.start_content_search()
        panel.filter.query += ch
        self._refilter(panel)
        return True

    def query_backspace(self) -> bool:
        panel = self.query_panel()
        if isinstance(panel, SearchPanel):
            if not panel.pattern:
                return False
            panel.pattern = panel.pattern[:-1]
            return self.start_content_search()
        if not panel.filter.query:
            return False
        panel.filter.query = panel.filter.query[:-1]
        self._refilter(panel)
        return True

    def exit_app(self) -> bool:
        """Stops the main loop and releases background resources."""
        if self._exit_in_progress:
            return False
        self._exit_in_progress = True
        logger.info("--- EXIT SEQUENCE INITIATED ---")
        self.running = False
        self.panel_manager.shutdown()
        if self.async_engine:
            self.async_engine.stop()
        return True

    # ------------------------------------------------------------------
    # Main loop
    # ------------------------------------------------------------------
    def _process_all_queues(self) -> bool:
        """Applies everything the AsyncEngine posted since the last iteration.

        Returns:
            bool: True if anything visible changed.
        """
        changed = False
        try:
            while True:
                msg = self._async_results_q.get_nowait()
                changed |= self._apply_async_result(msg)
        except queue.Empty:
            pass

        terminal = self.panel_manager.instances.get("terminal")
        if (
            isinstance(terminal, TerminalPanel)
            and terminal.visible
            and terminal.terminal is not None
            and terminal.terminal.consume_dirty()
        ):
            changed = True
        return changed

    def _resume_deferred_search(self, panel: ListPanel) -> None:
        """Starts the content search that was waiting for the Files filter."""
        if panel is not self.files_panel or not self._search_after_filter:
            return
        self._search_after_filter = False
        if self.search_active():
            self.start_content_search()

    def _apply_async_result(self, msg: dict[str, Any]) -> bool:
        msg_type = msg.get("type")
        generation = msg.get("generation")

        if msg_type == "filter_result":
            panel = self.list_panel(msg.get("window"))
            if panel is None or not panel.filter.apply(generation, msg.get("entries", [])):
                return False
            panel.restore_selection()
            self._resume_deferred_search(panel)
            if msg.get("matcher_missing"):
                logger.warning("Fuzzy matcher unavailable; switching to substring filter")
                self.matcher = None
            if msg.get("error"):
                self._set_status_message(msg["error"], logging.WARNING)
            return True

        if msg_type == "search_batch":
            return self.search_panel.add_hits(generation, msg.get("hits", []))

        if msg_type == "search_done":
            if not self.search_panel.finish(generation, msg.get("truncated", False), msg.get("error")):
                return False
            if msg.get("error"):
                self._set_status_message(msg["error"], logging.WARNING)
            elif msg.get("truncated"):
                self._set_status_message(f"Search stopped at {msg.get('count')} matches")
            return True

        if msg_type == "task_error":
            self._set_status_message(f"Background error: {str(msg.get('error'))[:100]}", logging.WARNING)
            panel = self.list_panel(msg.get("window"))
            if panel is not None and panel.filter.generation == generation:
                panel.filter.apply_sync(generation)
                panel.restore_selection()
                self._resume_deferred_search(panel)
            elif msg.get("window") == "search":
                self.search_panel.finish(generation, False, str(msg.get("error")))
            return True

        logger.warning(f"Unknown async result type: {msg_type}")
        return False

    def run(self) -> None:
        """The main event loop. Returns once `running` is cleared."""
        logger.info("Vuit main loop started.")
        self.running = True
        self._force_full_redraw = True

        self.stdscr.nodelay(True)
        self.stdscr.timeout(KeyBinder.INPUT_TIMEOUT_MS)

        while self.running:
            try:
                redraw_needed = self._process_events_and_input()
                self._render_screen(redraw_needed)

            except KeyboardInterrupt:
                logger.info("Main loop interrupted by KeyboardInterrupt. Initiating exit sequence.")
                self.exit_app()
                break
            except Exception as e:
                logger.critical("Unhandled exception in main loop: %s", e, exc_info=True)
                self.exit_app()
                break

        logger.info("Vuit main loop finished.")

    def _process_events_and_input(self) -> bool:
        redraw_needed = self._process_all_queues()

        key_input = self.keybinder.get_key_input()
        if key_input == curses.ERR or key_input == -1:
            return redraw_needed

        if key_input == curses.KEY_RESIZE:
            return self.handle_resize() or redraw_needed
        return self._handle_input_dispatch(key_input) or redraw_needed

    def _handle_input_dispatch(self, key_input: Union[int, str]) -> bool:
        """Terminal overlay gets every key but its own toggle; other focused
        overlays get first refusal; everything else goes to the KeyBinder."""
        if self.panel_manager.is_active("terminal"):
            if self.keybinder.lookup(key_input) == "toggle_terminal":
                return self.toggle_terminal()
            return self.panel_manager.handle_key(key_input)

        if self.panel_manager.has_focus() and self.panel_manager.handle_key(key_input):
            return True
        return self.keybinder.handle_input(key_input)

    def handle_resize(self) -> bool:
        try:
            curses.update_lines_cols()
        except (AttributeError, curses.error):
            pass
        self._force_full_redraw = True
        self.last_window_size = self.stdscr.getmaxyx()
        self.panel_manager.resize()
        logger.debug(f"Window resized to {self.last_window_size[1]}x{self.last_window_size[0]}")
        return True

    def _render_screen(self, redraw_needed: bool) -> None:
        if not redraw_needed and not self._force_full_redraw:
            return

        if self._force_full_redraw:
            self.stdscr.clearok(True)

        self.drawer.draw()
        layout = self.drawer.layout
        self.panel_manager.draw_active_panel(
            layout.overlay if layout else None, self.panel_manager.has_focus()
        )

        cursor = None
        if layout is not None:
            terminal = self.panel_manager.active_panel
            if isinstance(terminal, TerminalPanel):
                cursor = terminal.cursor
            else:
                cursor = self.drawer.input_cursor
        try:
            if cursor is not None:
                curses.curs_set(1)
                self.stdscr.move(*cursor)
            else:
                curses.curs_set(0)
        except curses.error:
            pass

        self.drawer._update_display()
        self._force_full_redraw = False
