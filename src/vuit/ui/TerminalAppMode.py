# vuit/ui/TerminalAppMode.py
from __future__ import annotations

import curses
import logging
from typing import Optional

from vuit.utils.errors import TerminalInitError


class TerminalAppMode:
    """
    Puts the terminal into the state the browser needs, and takes it back out.

    - Alternate screen buffer (smcup/rmcup) so the shell prompt is hidden while
      vuit runs and reappears unchanged after it exits or while an editor runs.
    - Application cursor keys (smkx/rmkx).
    - raw + noecho + nonl, so Ctrl-c, Ctrl-z, Ctrl-j and Enter all arrive as
      ordinary keys (Enter is CR 13, Ctrl-j is LF 10).
    - keypad(True) for function keys, short ESC delay so a lone ESC quits quickly.

    `enter()` and `exit()` are paired around the session and around every
    foreground editor run.
    """

    ESC_DELAY_MS = 25

    def __init__(self) -> None:
        self._entered: bool = False
        self._stdscr: Optional[curses.window] = None

    @property
    def entered(self) -> bool:
        return self._entered

    def enter(self, stdscr: curses.window) -> None:
        """Switches to application mode.

        Raises:
            TerminalInitError: if the terminal refuses raw/keypad mode.
        """
        self._stdscr = stdscr

        try:
            curses.setupterm()
        except Exception as e:
            logging.debug("setupterm() failed or not required: %r", e)

        self._tputs("smcup")
        self._tputs("smkx")

        try:
            try:
                curses.raw()
            except curses.error:
                curses.cbreak()
            curses.noecho()
            curses.nonl()
            stdscr.keypad(True)
        except curses.error as e:
            raise TerminalInitError(f"cannot set raw input mode ({e})") from e

        try:
            curses.set_escdelay(self.ESC_DELAY_MS)
        except (AttributeError, curses.error):
            pass

        try:
            curses.curs_set(0)
        except curses.error:
            pass

        stdscr.scrollok(False)
        stdscr.clearok(True)
        stdscr.erase()
        stdscr.refresh()

        self._entered = True
        logging.debug("TerminalAppMode: entered (alternate screen, raw, nonl).")

    def exit(self) -> None:
        if not self._entered:
            return

        try:
            if self._stdscr is not None:
                self._stdscr.keypad(False)
        except curses.error:
            pass

        for restore in (curses.noraw, curses.echo, curses.nl):
            try:
                restore()
            except curses.error:
                pass
        try:
            curses.curs_set(1)
        except curses.error:
            pass

        self._tputs("rmkx")
        self._tputs("rmcup")

        self._entered = False
        logging.debug("TerminalAppMode: exited (restored terminal modes).")

    def _tputs(self, capname: str) -> None:
        try:
            s = curses.tigetstr(capname)
            if s:
                curses.putp(s)
        except Exception as e:
            # Missing capability (linux console, dumb terminals) is not fatal.
            logging.debug("tputs(%s) skipped: %r", capname, e)
