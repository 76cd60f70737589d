# vuit/utils/logging_config.py
"""vuit.utils.logging_config
===========================

Logging for vuit. Nothing may be printed while curses owns the screen, so by
default every record goes to rotating files under ``~/.config/vuit``:

    vuit.log      everything from ``[logging] file_level`` (default INFO) up
    error.log     ERROR and CRITICAL only, when ``separate_error_log = true``
    keytrace.log  every decoded key, when ``VUIT_KEYTRACE=1`` (see KeyBinder)

A stderr handler exists for debugging outside the UI (``log_to_console``).
`setup_logging` can be called again; it replaces the handlers it installed.

Globals:
    logger: Main application logger ("vuit").
    KEY_LOGGER: Logger for raw key-press trace events ("vuit.keyevents").
"""

import logging
import logging.handlers
import os
import sys
import tempfile
from pathlib import Path
from typing import Any, Optional


logger = logging.getLogger("vuit")
KEY_LOGGER = logging.getLogger("vuit.keyevents")

# name -> (maxBytes, backupCount)
LOG_FILES: dict[str, tuple[int, int]] = {
    "vuit.log": (2 * 1024 * 1024, 5),
    "error.log": (1024 * 1024, 3),
    "keytrace.log": (1024 * 1024, 3),
}

# asyncio logs every subprocess the AsyncEngine spawns at DEBUG; one per keystroke.
QUIET_LOGGERS = ("asyncio",)

FILE_FORMAT = "%(asctime)s - %(levelname)-8s - %(name)-15s - %(message)s (%(filename)s:%(lineno)d)"
CONSOLE_FORMAT = "%(levelname)-8s - %(name)-12s - %(message)s"


def _default_log_dir() -> str:
    return str(Path.home() / ".config" / "vuit")


def _ensure_dir(directory: str) -> str:
    """Creates `directory` if needed; returns the temp dir when that fails."""
    if directory and not os.path.isdir(directory):
        try:
            os.makedirs(directory, exist_ok=True)
        except OSError as e_mkdir:
            print(f"vuit: cannot create log directory '{directory}': {e_mkdir}", file=sys.stderr)
            return tempfile.gettempdir()
    return directory


def _level(name: Any, default: int) -> int:
    """Maps "debug"/"INFO"/... to a logging level; unknown names give `default`."""
    value = getattr(logging, str(name).upper(), None)
    return value if isinstance(value, int) else default


def _rotating_handler(
    log_dir: str, name: str, level: int, formatter: logging.Formatter
) -> Optional[logging.Handler]:
    max_bytes, backups = LOG_FILES[name]
    path = os.path.join(log_dir, name)
    try:
        handler = logging.handlers.RotatingFileHandler(
            path, maxBytes=max_bytes, backupCount=backups, encoding="utf-8"
        )
    except OSError as e:
        print(f"vuit: cannot open log file '{path}': {e}", file=sys.stderr)
        return None
    handler.setFormatter(formatter)
    handler.setLevel(level)
    return handler


def _setup_key_trace(log_dir: str) -> None:
    """Attaches keytrace.log to KEY_LOGGER when VUIT_KEYTRACE is set; disables it otherwise."""
    for old in KEY_LOGGER.handlers:
        old.close()
    KEY_LOGGER.handlers = []
    KEY_LOGGER.propagate = False
    KEY_LOGGER.setLevel(logging.DEBUG)

    if os.environ.get("VUIT_KEYTRACE", "").lower() not in {"1", "true", "yes"}:
        KEY_LOGGER.addHandler(logging.NullHandler())
        KEY_LOGGER.disabled = True
        return

    handler = _rotating_handler(log_dir, "keytrace.log", logging.DEBUG, logging.Formatter("%(asctime)s - %(message)s"))
    if handler is None:
        KEY_LOGGER.disabled = True
        return
    KEY_LOGGER.addHandler(handler)
    KEY_LOGGER.disabled = False
    logging.info("Key trace enabled: %s", handler.baseFilename)


def setup_logging(config: Optional[dict[str, Any]] = None) -> None:
    """Installs vuit's handlers on the root logger.

    Args:
        config: The merged configuration dictionary. Only its ``logging``
            table is read: ``log_dir``, ``file_level``, ``console_level``,
            ``log_to_console`` and ``separate_error_log``.
    """
    settings = (config or {}).get("logging", {})
    if not isinstance(settings, dict):
        settings = {}

    log_dir = _ensure_dir(os.path.expanduser(str(settings.get("log_dir") or _default_log_dir())))
    file_level = _level(settings.get("file_level", "INFO"), logging.INFO)
    file_formatter = logging.Formatter(FILE_FORMAT)

    handlers: list[logging.Handler] = []
    main_handler = _rotating_handler(log_dir, "vuit.log", file_level, file_formatter)
    if main_handler:
        handlers.append(main_handler)
    if settings.get("separate_error_log", False):
        error_handler = _rotating_handler(log_dir, "error.log", logging.ERROR, file_formatter)
        if error_handler:
            handlers.append(error_handler)
    if settings.get("log_to_console", False):
        console = logging.StreamHandler(sys.stderr)
        console.setFormatter(logging.Formatter(CONSOLE_FORMAT))
        console.setLevel(_level(settings.get("console_level", "WARNING"), logging.WARNING))
        handlers.append(console)

    root_logger = logging.getLogger()
    for old_handler in root_logger.handlers:
        old_handler.close()
    root_logger.handlers = handlers
    root_logger.setLevel(file_level)

    for name in QUIET_LOGGERS:
        logging.getLogger(name).setLevel(max(file_level, logging.WARNING))

    _setup_key_trace(log_dir)

    logging.info(
        "Logging to %s at %s (%d handler(s))",
        log_dir, logging.getLevelName(file_level), len(handlers),
    )
