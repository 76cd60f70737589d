# vuit/main.py
"""
vuit Main Entry Point
=====================

1) Command line: ``vuit [DIRECTORY] [--version]``.
2) Environment: reads ``~/.config/vuit/.env`` before anything consults the environment.
3) Configuration & Logging: loads config and initializes logging as early as possible.
4) Curses Wrapper: initializes and tears down curses, with the terminal put into
   application mode for the lifetime of the session.
5) Exit status: 0 after a normal exit (Esc), 1 when the terminal cannot be set
   up or startup fails.
"""

from __future__ import annotations

import argparse
import curses
import locale
import logging
import os
import signal
import sys
from typing import Any, Optional

from dotenv import load_dotenv

from vuit.utils.errors import TerminalInitError
from vuit.utils.logging_config import setup_logging
from vuit.utils.utils import Configuration, get_config_dir, load_config


VERSION = "0.1.0"
DESCRIPTION = "Vim User Interface Terminal - A Buffer Manager for Vim"

logger = logging.getLogger("vuit")


def parse_args(argv: Optional[list[str]] = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(prog="vuit", description=DESCRIPTION)
    parser.add_argument(
        "directory",
        nargs="?",
        default=".",
        metavar="DIRECTORY",
        help="working tree to browse (default: current directory)",
    )
    parser.add_argument("--version", action="version", version=f"%(prog)s {VERSION}")
    return parser.parse_args(argv)


def _raise_system_exit(signum: int, _frame: Any) -> None:
    logger.info(f"Received signal {signum}; shutting down.")
    raise SystemExit(128 + signum)


def _install_signal_handlers() -> None:
    """SIGTERM/SIGHUP unwind through the normal cleanup path; Ctrl-z is ignored."""
    for name in ("SIGTERM", "SIGHUP"):
        if hasattr(signal, name):
            signal.signal(getattr(signal, name), _raise_system_exit)
    if hasattr(signal, "SIGTSTP"):
        try:
            signal.signal(signal.SIGTSTP, signal.SIG_IGN)
        except (OSError, ValueError):
            pass


def main_app_runner(stdscr: curses.window, config: Configuration, root: str) -> None:
    """Target for `curses.wrapper`: runs one session in application mode."""
    from vuit.core.Vuit import Vuit
    from vuit.ui.TerminalAppMode import TerminalAppMode

    app_mode = TerminalAppMode()
    session: Optional[Vuit] = None
    try:
        app_mode.enter(stdscr)
        session = Vuit(stdscr, config, root, app_mode=app_mode)
        session.run()
    finally:
        if session is not None:
            session.exit_app()
        app_mode.exit()


def main(argv: Optional[list[str]] = None) -> int:
    args = parse_args(argv)

    try:
        load_dotenv(dotenv_path=get_config_dir() / ".env")
    except OSError:
        pass

    config = load_config()
    setup_logging(config.raw)
    logger.info(f"vuit {VERSION} starting up...")

    root = os.path.abspath(os.path.expanduser(args.directory))
    if not os.path.isdir(root):
        print(f"vuit: not a directory: {args.directory}", file=sys.stderr)
        return 1

    try:
        locale.setlocale(locale.LC_ALL, "")
    except locale.Error:
        logger.warning("Could not set system locale. Character rendering may be affected.")

    try:
        if not (sys.stdin.isatty() and sys.stdout.isatty()):
            raise TerminalInitError("stdin and stdout must be a terminal")
        _install_signal_handlers()
        try:
            curses.wrapper(main_app_runner, config, root)
        except curses.error as e:
            raise TerminalInitError(str(e) or "curses initialization failed") from e
    except TerminalInitError as e:
        logger.critical(f"Terminal initialization failed: {e}")
        print(f"vuit: {e}", file=sys.stderr)
        return 1
    except Exception as e:
        logger.critical("Unhandled exception at the top level.", exc_info=True)
        print(f"vuit: fatal error: {e}", file=sys.stderr)
        return 1

    logger.info("vuit shut down gracefully.")
    return 0


def start() -> None:
    sys.exit(main())


if __name__ == "__main__":
    start()
