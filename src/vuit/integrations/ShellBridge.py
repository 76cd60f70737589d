# vuit/integrations/ShellBridge.py
"""ShellBridge Module
==================
The embedded shell behind the terminal overlay (Ctrl-t).

`EmbeddedTerminal` runs the user's shell on a pseudo-terminal and keeps a
`pyte` screen in sync with its output. A reader thread feeds pty output into
the screen; the UI thread takes snapshots of the screen for drawing. Both sides
hold the same lock, so a snapshot never shows a half-applied escape sequence.

The shell survives the overlay being hidden. It is only stopped when the user
restarts it, types ``quit``/``exit`` at its prompt, or vuit exits.
"""

import codecs
import fcntl
import logging
import os
import pty
import select
import shutil
import signal
import struct
import termios
import threading
import time
from typing import Optional

import pyte

from vuit.utils.errors import SubprocessSpawnError


READ_SIZE = 65536
SELECT_TIMEOUT = 0.1
# Interactive shells ignore SIGTERM, so hang up first.
STOP_SIGNALS = (signal.SIGHUP, signal.SIGTERM, signal.SIGKILL)
STOP_GRACE = 0.3


class EmbeddedTerminal:
    """A shell process on a pty, rendered into a `pyte.Screen`.

    Attributes:
        shell (str): Path or name of the shell binary.
        cwd (Optional[str]): Working directory for the shell.
        rows, cols (int): Current screen size.
        pid (Optional[int]): Child process id while running.
        master_fd (Optional[int]): Parent side of the pty.
    """

    def __init__(self, shell: str, cwd: Optional[str] = None, rows: int = 18, cols: int = 80) -> None:
        self.shell = shell
        self.cwd = cwd
        self.rows = max(1, rows)
        self.cols = max(1, cols)
        self.pid: Optional[int] = None
        self.master_fd: Optional[int] = None
        self.screen = pyte.Screen(self.cols, self.rows)
        self.stream = pyte.Stream(self.screen)
        self._decoder = codecs.getincrementaldecoder("utf-8")(errors="replace")
        self._lock = threading.Lock()
        self._reap_lock = threading.Lock()
        self._reader: Optional[threading.Thread] = None
        self._running = False
        self._dirty = False
        self._exit_code: Optional[int] = None

    # ------------------------------ lifecycle ------------------------------
    def start(self) -> None:
        """Forks the shell on a new pty and starts the reader thread.

        Raises:
            SubprocessSpawnError: if the shell binary does not exist or the pty
                cannot be created.
        """
        if self._running:
            return
        if not shutil.which(self.shell):
            raise SubprocessSpawnError([self.shell], "shell not found")

        try:
            pid, master_fd = pty.fork()
        except OSError as e:
            raise SubprocessSpawnError([self.shell], f"cannot open pty: {e}") from e

        if pid == 0:
            # Child process
            try:
                if self.cwd:
                    os.chdir(self.cwd)
                env = os.environ.copy()
                env["TERM"] = "xterm-256color"
                env["COLUMNS"] = str(self.cols)
                env["LINES"] = str(self.rows)
                os.execvpe(self.shell, [os.path.basename(self.shell)], env)
            except Exception:
                os._exit(1)

        self.pid = pid
        self.master_fd = master_fd
        self._exit_code = None
        self._set_pty_size()
        self._running = True
        self._reader = threading.Thread(target=self._read_loop, daemon=True, name="ShellReaderThread")
        self._reader.start()
        logging.info(f"EmbeddedTerminal: started '{self.shell}' (pid {pid}) in {self.cwd}")

    def _read_loop(self) -> None:
        fd = self.master_fd
        while self._running and fd is not None:
            try:
                readable, _, _ = select.select([fd], [], [], SELECT_TIMEOUT)
            except (OSError, ValueError):
                break
            if not readable:
                continue
            try:
                data = os.read(fd, READ_SIZE)
            except OSError:
                # EIO once the child side of the pty is closed
                break
            if not data:
                break
            text = self._decoder.decode(data)
            with self._lock:
                self.stream.feed(text)
                self._dirty = True

        with self._lock:
            self._running = False
            self._dirty = True
        self._reap(block=False)
        logging.info(f"EmbeddedTerminal: shell pid {self.pid} output closed (exit {self._exit_code})")

    def _reap(self, block: bool) -> bool:
        """Collects the child's exit status. Returns True once it is gone."""
        with self._reap_lock:
            if self.pid is None or self._exit_code is not None:
                return True
            try:
                pid, status = os.waitpid(self.pid, 0 if block else os.WNOHANG)
            except ChildProcessError:
                self._exit_code = -1
                return True
            if pid == 0:
                return False
            self._exit_code = os.waitstatus_to_exitcode(status)
            return True

    def terminate(self) -> None:
        """Stops the shell and releases the pty. Safe to call more than once."""
        self._running = False
        if self._reader is not None and self._reader is not threading.current_thread():
            self._reader.join(timeout=1.0)
        self._reader = None

        if self.pid is not None:
            for sig in STOP_SIGNALS:
                if self._reap(block=False):
                    break
                try:
                    os.kill(self.pid, sig)
                except ProcessLookupError:
                    break
                deadline = time.monotonic() + STOP_GRACE
                while time.monotonic() < deadline and not self._reap(block=False):
                    time.sleep(0.02)
            logging.info(f"EmbeddedTerminal: shell pid {self.pid} stopped (exit {self._exit_code})")

        if self.master_fd is not None:
            try:
                os.close(self.master_fd)
            except OSError:
                pass
            self.master_fd = None

    def restart(self) -> None:
        """Kills the current shell and starts a fresh one on a clean screen."""
        self.terminate()
        with self._lock:
            self.screen.reset()
            self._decoder.reset()
        self.pid = None
        self.start()

    # ------------------------------ interaction ----------------------------
    def is_alive(self) -> bool:
        return self._running

    @property
    def exit_code(self) -> Optional[int]:
        """Exit status once the shell has exited (negative for a signal), else None."""
        if self._exit_code is None and not self._running:
            self._reap(block=False)
        return self._exit_code

    def write(self, data: bytes) -> bool:
        """Writes bytes to the shell's input. Returns False if the shell is gone."""
        if not data or not self._running or self.master_fd is None:
            return False
        view = memoryview(data)
        try:
            while view:
                written = os.write(self.master_fd, view)
                view = view[written:]
        except OSError as e:
            logging.warning(f"EmbeddedTerminal: write failed: {e}")
            return False
        return True

    def resize(self, rows: int, cols: int) -> None:
        rows, cols = max(1, rows), max(1, cols)
        if (rows, cols) == (self.rows, self.cols):
            return
        with self._lock:
            self.rows, self.cols = rows, cols
            self.screen.resize(rows, cols)
            self._dirty = True
        self._set_pty_size()
        logging.debug(f"EmbeddedTerminal: resized to {cols}x{rows}")

    def _set_pty_size(self) -> None:
        if self.master_fd is None:
            return
        winsize = struct.pack("HHHH", self.rows, self.cols, 0, 0)
        try:
            fcntl.ioctl(self.master_fd, termios.TIOCSWINSZ, winsize)
        except OSError:
            pass

    def snapshot(self) -> tuple[list[str], tuple[int, int]]:
        """Returns the visible lines and the (row, col) cursor position."""
        with self._lock:
            return list(self.screen.display), (self.screen.cursor.y, self.screen.cursor.x)

    def consume_dirty(self) -> bool:
        """True if new output arrived since the last call."""
        with self._lock:
            dirty, self._dirty = self._dirty, False
            return dirty
