# vuit/ui/PanelManager.py
"""PanelManager.py
========================
This module defines the PanelManager class, which owns the overlay windows
shown below the input line: content Search, the embedded Terminal and Help.

Only one overlay is visible at a time. Showing an overlay that is already
visible hides it (toggle); showing a different one replaces it. Overlay
instances are created on first use and kept, so the terminal's shell and the
search results survive being hidden.
"""

import curses
import logging
from typing import TYPE_CHECKING, Optional

from .panels import BasePanel, HelpPanel, Rect, SearchPanel, TerminalPanel


if TYPE_CHECKING:
    from vuit.core.Vuit import Vuit


## ================= PanelManager Class ===============================
class PanelManager:
    """PanelManager Class
    ==========================
    Attributes:
        session (Vuit): Reference to the session.
        active_panel (Optional[BasePanel]): The currently visible overlay, if any.
        registered_panels (dict[str, type[BasePanel]]): Overlay names to classes.
        instances (dict[str, BasePanel]): Overlays created so far.

    Methods:
        is_panel_active() -> bool
        is_active(name) -> bool
        get(name) -> BasePanel: returns (creating if needed) the named overlay.
        show_panel(name) -> bool: toggles or replaces the visible overlay.
        close_active_panel() -> None
        handle_key(key) -> bool
        draw_active_panel(rect, focused) -> None
        shutdown() -> None: releases every overlay's resources.
    """

    def __init__(self, session: "Vuit") -> None:
        self.session = session
        self.active_panel: Optional[BasePanel] = None
        self.registered_panels: dict[str, type[BasePanel]] = {
            "search": SearchPanel,
            "terminal": TerminalPanel,
            "help": HelpPanel,
        }
        self.instances: dict[str, BasePanel] = {}
        logging.info("PanelManager initialised with: %s", list(self.registered_panels.keys()))

    def is_panel_active(self) -> bool:
        return self.active_panel is not None and self.active_panel.visible

    def is_active(self, name: str) -> bool:
        return self.is_panel_active() and self.instances.get(name) is self.active_panel

    def has_focus(self) -> bool:
        """True when keys should go to the visible overlay first."""
        return self.is_panel_active() and self.active_panel.takes_focus

    def get(self, name: str) -> BasePanel:
        if name not in self.instances:
            PanelCls = self.registered_panels[name]
            self.instances[name] = PanelCls(self.session.stdscr, self.session)
        return self.instances[name]

    def show_panel(self, name: str) -> bool:
        """Shows the named overlay, or hides it if it is the visible one.

        Returns:
            bool: True if the overlay is visible afterwards.
        """
        if name not in self.registered_panels:
            msg = f"Error: Unknown panel name '{name}'"
            self.session._set_status_message(msg)
            logging.error(msg)
            return False

        panel = self.get(name)
        if self.active_panel is panel and panel.visible:
            self.close_active_panel()
            return False

        if self.is_panel_active():
            self.close_active_panel()

        try:
            panel.open()
        except Exception as exc:
            logging.exception("Failed to show panel '%s'", name)
            self.active_panel = None
            message = exc.user_message() if hasattr(exc, "user_message") else f"Panel error: {exc}"
            self.session._set_status_message(message)
            return False

        self.active_panel = panel
        self.session._force_full_redraw = True
        logging.info(f"Panel '{name}' shown.")
        return True

    def close_active_panel(self) -> None:
        if self.active_panel:
            logging.info("Closing panel: %s", self.active_panel.__class__.__name__)
            try:
                self.active_panel.close()
            except Exception:
                logging.exception("Exception while closing panel")

        self.active_panel = None
        try:
            curses.curs_set(0)
        except curses.error:
            pass
        self.session._force_full_redraw = True

    def handle_key(self, key: int | str) -> bool:
        """Passes a key to the visible overlay. Returns True if it was consumed."""
        if self.is_panel_active():
            try:
                return self.active_panel.handle_key(key)
            except Exception as exc:
                logging.exception("Panel key-handler crashed")
                self.session._set_status_message(f"Panel error: {exc}", logging.ERROR)
        return False

    def draw_active_panel(self, rect: Optional[Rect], focused: bool = True) -> None:
        if self.is_panel_active() and rect is not None:
            try:
                self.active_panel.draw(rect, focused)
            except Exception as exc:
                logging.exception("Panel draw() crashed")
                self.session._set_status_message(f"Panel error: {exc}", logging.ERROR)

    def resize(self) -> None:
        for panel in self.instances.values():
            panel.resize()

    def shutdown(self) -> None:
        for name, panel in self.instances.items():
            try:
                panel.shutdown()
            except Exception:
                logging.exception("Panel '%s' shutdown failed", name)
