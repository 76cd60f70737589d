# vuit/integrations/EditorBridge.py
"""EditorBridge Module
===================
Hands a file over to the user's editor.

The editor runs in the foreground on the real terminal: the browser leaves
application mode, waits for the editor to exit, and then takes the terminal
back. Inside tmux, with ``tmux_split`` enabled, the editor can instead be
opened in a new pane next to vuit without suspending it.
"""

import curses
import logging
import os
import shlex
import shutil
import subprocess
from typing import Any, Optional

from vuit.utils.errors import SubprocessRuntimeError, SubprocessSpawnError
from vuit.utils.utils import Configuration, safe_run


# Editors that understand a leading "+N" argument as "jump to line N".
LINE_ARG_EDITORS = frozenset({"vi", "vim", "nvim", "view", "gvim", "nano", "emacs", "kak", "micro", "hx"})


def build_editor_command(editor: str, path: str, line: Optional[int] = None) -> list[str]:
    """Builds the argv for opening `path`, optionally at `line`.

    Raises:
        SubprocessSpawnError: if `editor` is empty or not valid shell syntax.
    """
    try:
        argv = shlex.split(editor)
    except ValueError as e:
        raise SubprocessSpawnError([editor], f"invalid editor command: {e}") from e
    if not argv:
        raise SubprocessSpawnError([editor], "no editor configured")

    if line is not None and os.path.basename(argv[0]) in LINE_ARG_EDITORS:
        argv.append(f"+{line}")
    argv.append(path)
    return argv


class EditorBridge:
    """Runs the configured editor for a path, suspending the curses UI meanwhile."""

    def __init__(self, config: Configuration, app_mode: Any, stdscr: Any, cwd: Optional[str] = None) -> None:
        self.config = config
        self.app_mode = app_mode
        self.stdscr = stdscr
        self.cwd = cwd

    def _in_tmux(self) -> bool:
        return self.config.tmux_split and bool(os.environ.get("TMUX")) and shutil.which("tmux") is not None

    def open(self, path: str, line: Optional[int] = None) -> int:
        """Opens `path` in the editor and blocks until it exits.

        Returns:
            int: The editor's exit status (0 for a tmux split).

        Raises:
            SubprocessSpawnError: if the editor binary cannot be found or started.
            SubprocessRuntimeError: if a tmux split could not be created.
        """
        argv = build_editor_command(self.config.editor, path, line)
        if shutil.which(argv[0]) is None:
            raise SubprocessSpawnError(argv, "editor not found")

        if self._in_tmux():
            return self._open_in_tmux(argv)

        logging.info(f"EditorBridge: running {argv}")
        self.app_mode.exit()
        curses.endwin()
        try:
            result = subprocess.run(argv, cwd=self.cwd, check=False)
        except OSError as e:
            raise SubprocessSpawnError(argv, e.strerror or str(e)) from e
        finally:
            self.app_mode.enter(self.stdscr)
            self.stdscr.refresh()
        logging.info(f"EditorBridge: editor exited with status {result.returncode}")
        return result.returncode

    def _open_in_tmux(self, argv: list[str]) -> int:
        cmd = ["tmux", "split-window", "-h"]
        if self.cwd:
            cmd += ["-c", self.cwd]
        cmd.append(shlex.join(argv))
        result = safe_run(cmd)
        if result.returncode != 0:
            raise SubprocessRuntimeError(cmd, result.returncode, result.stderr)
        logging.info(f"EditorBridge: opened {argv[-1]} in a tmux split")
        return 0
