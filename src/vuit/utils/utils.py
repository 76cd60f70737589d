"""
vuit.utils.utils.py
===================

This module provides the core utility functions for vuit.

Key functionalities include:
- Automatic User Configuration: Manages the creation and loading of the user
  configuration file (`config.toml`) and `.env` in `~/.config/vuit`, ensuring a
  seamless first-run experience.
- Robust Configuration Loading: Loads a hardcoded, built-in default
  configuration, then merges it with user-defined settings. A broken file is
  rejected as a whole (defaults are used and a single warning is recorded);
  individual missing or invalid fields fall back to their defaults one by one.
- Safe Subprocess Execution: A wrapper around `subprocess.run` for safely
  executing short-lived external commands.
- Helper Utilities: deep-merging dictionaries and ANSI escape stripping.
"""

import json
import logging
import os
import re
import subprocess
import sys
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Optional

if sys.version_info >= (3, 11):
    import tomllib
else:
    import tomli as tomllib

from vuit.utils.errors import ConfigParseError

logger = logging.getLogger("vuit")

# --- Constants ---
COLORSCHEMES: tuple[str, ...] = (
    "lightblue",
    "cyan",
    "lightgreen",
    "yellow",
    "lightred",
    "green",
    "lightcyan",
    "blue",
    "lightyellow",
    "red",
)

ANSI_ESCAPE_RE = re.compile(r"\x1b\[[0-9;?]*[A-Za-z]|\x1b\][^\x07]*\x07|\x1b[()][A-Za-z0-9]")

CONFIG_TEMPLATE = """# vuit configuration
# Unknown keys are ignored; missing keys fall back to the built-in defaults.

# One of: lightblue, cyan, lightgreen, yellow, lightred, green,
#         lightcyan, blue, lightyellow, red
colorscheme = "lightblue"
highlight_color = "blue"

# Command used to open files. Arguments are allowed, e.g. "code -w".
editor = "vim"

# Shell for the embedded terminal (<C-t>). Empty means $SHELL.
shell = ""

recent_limit = 5
preview = true
preview_lines = 50

# Open the editor in a `tmux split-window -h` pane when running inside tmux.
tmux_split = false

[tools]
enumerator = "fd"
matcher = "fzf"
content_search = "rg"

[logging]
file_level = "INFO"
log_to_console = false
"""

ENV_TEMPLATE = """# Environment overrides for vuit.
# VUIT_KEYTRACE=1 writes every key press to keytrace.log next to vuit.log.
VUIT_KEYTRACE=
"""

# This dictionary is the ultimate fallback, ensuring the application can ALWAYS start.
DEFAULT_CONFIG: Dict[str, Any] = {
    "colorscheme": "lightblue",
    "highlight_color": "blue",
    "editor": "vim",
    "shell": "",
    "recent_limit": 5,
    "preview": True,
    "preview_lines": 50,
    "sync_filter_limit": 5000,
    "max_search_results": 5000,
    "tmux_split": False,
    "tools": {
        "enumerator": "fd",
        "matcher": "fzf",
        "content_search": "rg",
    },
    "logging": {
        "file_level": "INFO",
        "console_level": "WARNING",
        "log_to_console": False,
        "separate_error_log": False,
    },
}


# --- Configuration object ---
@dataclass(frozen=True)
class Configuration:
    """Immutable, validated view of the merged configuration.

    `raw` keeps the merged dictionary for consumers that take a plain mapping
    (logging setup). `warning` is set only when the user file was rejected.
    """

    colorscheme: str = "lightblue"
    highlight_color: str = "blue"
    editor: str = "vim"
    shell: str = ""
    recent_limit: int = 5
    preview: bool = True
    preview_lines: int = 50
    sync_filter_limit: int = 5000
    max_search_results: int = 5000
    tmux_split: bool = False
    enumerator: str = "fd"
    matcher: str = "fzf"
    content_search: str = "rg"
    raw: Dict[str, Any] = field(default_factory=dict, compare=False, repr=False)
    warning: Optional[str] = None

    def resolve_shell(self) -> str:
        """Returns the configured shell, then $SHELL, then /bin/sh."""
        return self.shell or os.environ.get("SHELL") or "/bin/sh"


# --- Helper Functions ---

def get_config_dir() -> Path:
    """Returns `~/.config/vuit` (evaluated lazily so tests can move HOME)."""
    return Path.home() / ".config" / "vuit"


def get_config_path() -> Path:
    return get_config_dir() / "config.toml"


def get_legacy_config_path() -> Path:
    return Path.home() / ".vuit" / ".vuitrc"


def ensure_user_config_exists() -> None:
    """Checks for user config files in `~/.config/vuit` and creates them if missing."""
    try:
        config_dir = get_config_dir()
        user_config_path = config_dir / "config.toml"
        user_env_path = config_dir / ".env"

        config_dir.mkdir(parents=True, exist_ok=True)

        if not user_config_path.exists() and not get_legacy_config_path().exists():
            user_config_path.write_text(CONFIG_TEMPLATE, encoding="utf-8")
            logger.info(f"Created user config template at: {user_config_path}")

        if not user_env_path.exists():
            user_env_path.write_text(ENV_TEMPLATE, encoding="utf-8")
            logger.info(f"Created user .env template at: {user_env_path}")

    except OSError as e:
        logger.error(f"Could not create user configuration files: {e}")


def read_config_file(path: Path) -> Dict[str, Any]:
    """Parses a TOML (or legacy JSON `.vuitrc`) config file.

    Raises:
        ConfigParseError: if the file cannot be read or parsed, or its top level
            is not a key/value table.
    """
    try:
        text = path.read_text(encoding="utf-8")
    except (OSError, UnicodeDecodeError) as e:
        raise ConfigParseError(str(path), str(e)) from e

    try:
        if path.suffix == ".toml":
            data = tomllib.loads(text)
        else:
            data = json.loads(text)
    except (tomllib.TOMLDecodeError, json.JSONDecodeError) as e:
        raise ConfigParseError(str(path), str(e).splitlines()[0]) from e

    if not isinstance(data, dict):
        raise ConfigParseError(str(path), "top level must be a key/value table")
    return data


def _pick(merged: Dict[str, Any], key: str, expected: type, section: Optional[str] = None) -> Any:
    """Returns merged[key] if it has the expected type, else the built-in default."""
    source = merged.get(section, {}) if section else merged
    default = DEFAULT_CONFIG[section][key] if section else DEFAULT_CONFIG[key]
    value = source.get(key, default) if isinstance(source, dict) else default

    # bool is a subclass of int; do not accept True for a numeric field
    if expected is int and isinstance(value, bool):
        value = None
    if not isinstance(value, expected):
        logger.warning(
            "Config field %r has invalid value %r; using default %r",
            f"{section}.{key}" if section else key, value, default,
        )
        return default
    if expected is str and key != "shell" and not value.strip():
        logger.warning("Config field %r is empty; using default %r", key, default)
        return default
    if expected is int and value <= 0:
        logger.warning("Config field %r must be positive; using default %r", key, default)
        return default
    return value


def build_configuration(merged: Dict[str, Any], warning: Optional[str] = None) -> Configuration:
    """Validates a merged config dictionary field by field."""
    colorscheme = _pick(merged, "colorscheme", str).strip().lower()
    if colorscheme not in COLORSCHEMES:
        logger.warning("Unknown colorscheme %r; using %r", colorscheme, DEFAULT_CONFIG["colorscheme"])
        colorscheme = DEFAULT_CONFIG["colorscheme"]

    highlight = _pick(merged, "highlight_color", str).strip().lower()
    if highlight not in COLORSCHEMES:
        logger.warning("Unknown highlight_color %r; using %r", highlight, DEFAULT_CONFIG["highlight_color"])
        highlight = DEFAULT_CONFIG["highlight_color"]

    return Configuration(
        colorscheme=colorscheme,
        highlight_color=highlight,
        editor=_pick(merged, "editor", str).strip(),
        shell=_pick(merged, "shell", str).strip(),
        recent_limit=_pick(merged, "recent_limit", int),
        preview=_pick(merged, "preview", bool),
        preview_lines=_pick(merged, "preview_lines", int),
        sync_filter_limit=_pick(merged, "sync_filter_limit", int),
        max_search_results=_pick(merged, "max_search_results", int),
        tmux_split=_pick(merged, "tmux_split", bool),
        enumerator=_pick(merged, "enumerator", str, "tools").strip(),
        matcher=_pick(merged, "matcher", str, "tools").strip(),
        content_search=_pick(merged, "content_search", str, "tools").strip(),
        raw=merged,
        warning=warning,
    )


def load_config(path: Optional[Path] = None) -> Configuration:
    """
    Loads and merges configurations, ensuring the application can always run.

    With no explicit `path`, `~/.config/vuit/config.toml` is used (created from a
    template on first run), falling back to the legacy `~/.vuit/.vuitrc` JSON file.
    """
    final_config = deep_merge({}, DEFAULT_CONFIG)
    logger.debug("Loaded embedded default configuration.")

    if path is None:
        ensure_user_config_exists()
        path = get_config_path()
        if not path.is_file() and get_legacy_config_path().is_file():
            path = get_legacy_config_path()

    if not path.is_file():
        logger.info(f"No user config at {path}; using defaults.")
        return build_configuration(final_config)

    try:
        user_config = read_config_file(path)
    except ConfigParseError as e:
        logger.error(f"Could not parse user config '{path}': {e.reason}. Using defaults.")
        return build_configuration(final_config, warning=e.user_message())

    final_config = deep_merge(final_config, user_config)
    logger.info(f"Successfully loaded and merged user config from {path}")
    return build_configuration(final_config)


def safe_run(cmd: List[str], **kwargs: Any) -> subprocess.CompletedProcess:
    """
    Executes a command safely, capturing output and handling common exceptions.
    """
    try:
        return subprocess.run(
            cmd, capture_output=True, text=True, check=False,
            encoding="utf-8", errors="replace", **kwargs,
        )
    except FileNotFoundError as e:
        logger.error(f"Command not found: {cmd[0]!r}")
        return subprocess.CompletedProcess(cmd, 127, stdout="", stderr=str(e))
    except PermissionError as e:
        logger.error(f"Command not executable: {cmd[0]!r}")
        return subprocess.CompletedProcess(cmd, 126, stdout="", stderr=str(e))
    except subprocess.TimeoutExpired as e:
        logger.warning(f"Command timed out: {' '.join(cmd)}")
        stdout = e.stdout.decode("utf-8", "replace") if isinstance(e.stdout, bytes) else (e.stdout or "")
        return subprocess.CompletedProcess(cmd, -9, stdout=stdout, stderr="timed out")
    except Exception as e:
        logger.exception(f"An unexpected error occurred while running command: {' '.join(cmd)}")
        return subprocess.CompletedProcess(cmd, -1, stdout="", stderr=str(e))


def deep_merge(base: Dict, override: Dict) -> Dict:
    """
    Recursively merges the `override` dictionary into the `base` dictionary.
    """
    result = base.copy()
    for key, value in override.items():
        if isinstance(result.get(key), dict) and isinstance(value, dict):
            result[key] = deep_merge(result[key], value)
        else:
            result[key] = value
    return result


def strip_ansi(text: str) -> str:
    """Removes terminal escape sequences and stray control characters."""
    cleaned = ANSI_ESCAPE_RE.sub("", text)
    return "".join(ch if ch == "\t" or ord(ch) >= 32 else " " for ch in cleaned).replace("\t", "    ")
