# tests/conftest.py
"""Pytest configuration with shared fixtures for the vuit tests.

The curses module cannot be driven without a real terminal, so every test runs
with the colour and screen functions that need `initscr()` replaced by inert
stand-ins. Code under test still imports the real `curses` module, which keeps
key codes such as `curses.KEY_UP` and `curses.error` genuine.
"""

from __future__ import annotations

import curses
import os
from pathlib import Path
from typing import Generator
from unittest.mock import MagicMock, patch

import pytest

from vuit.core.Vuit import Vuit
from vuit.integrations.SearchTools import resolve_tool
from vuit.utils.utils import Configuration


# --- Automatic mocking of the curses functions ---
@pytest.fixture(autouse=True)
def mock_curses_functions(monkeypatch: pytest.MonkeyPatch) -> None:
    """Automatically stub `curses` calls that require an initialized screen.

    ACS_* line-drawing constants and COLORS only exist after `initscr()`, so
    they are added for the duration of the test and removed afterwards.
    """
    monkeypatch.setattr(curses, "has_colors", lambda: True)
    monkeypatch.setattr(curses, "use_default_colors", lambda: None)
    monkeypatch.setattr(curses, "init_pair", lambda *args: None)
    monkeypatch.setattr(curses, "color_pair", lambda n: n << 8)
    monkeypatch.setattr(curses, "curs_set", lambda visibility: None)
    monkeypatch.setattr(curses, "doupdate", lambda: None)
    monkeypatch.setattr(curses, "endwin", lambda: None)
    monkeypatch.setattr(curses, "update_lines_cols", lambda: None, raising=False)
    monkeypatch.setattr(curses, "COLORS", 256, raising=False)
    for name, char in (
        ("ACS_HLINE", "-"),
        ("ACS_VLINE", "|"),
        ("ACS_ULCORNER", "+"),
        ("ACS_URCORNER", "+"),
        ("ACS_LLCORNER", "+"),
        ("ACS_LRCORNER", "+"),
    ):
        monkeypatch.setattr(curses, name, ord(char), raising=False)


# --- Base fixtures for curses and configuration ---
@pytest.fixture
def mock_stdscr() -> MagicMock:
    """Create a mock of the `curses` stdscr for testing UI components.

    Returns:
        MagicMock: A mocked `stdscr` with terminal size set to (24, 80).
    """
    stdscr = MagicMock()
    stdscr.getmaxyx.return_value = (24, 80)
    stdscr.getch.return_value = curses.ERR
    return stdscr


@pytest.fixture
def vuit_config() -> Configuration:
    """Configuration that keeps the session away from external tools.

    The enumerator is disabled, so the built-in directory walk fills the
    Files list, and no fuzzy matcher is configured, so filtering is the
    synchronous substring match.
    """
    return Configuration(
        editor="vim",
        shell="/bin/sh",
        enumerator="",
        matcher="",
        content_search="grep",
    )


# --- Filesystem fixtures ---
@pytest.fixture
def temp_tree(tmp_path: Path) -> Path:
    """Create a small working tree.

    The structure includes:
    - a.txt: "hello world"
    - readme.md: markdown file
    - b/c.txt: file in a subdirectory
    - .git/config: must never be listed

    Returns:
        Path: Root of the tree.
    """
    (tmp_path / "a.txt").write_text("hello world\nsecond line\n")
    (tmp_path / "readme.md").write_text("# Title\n")
    (tmp_path / "b").mkdir()
    (tmp_path / "b" / "c.txt").write_text("say hello\n")
    (tmp_path / ".git").mkdir()
    (tmp_path / ".git" / "config").write_text("[core]\n")
    return tmp_path


@pytest.fixture
def fake_fd(tmp_path_factory: pytest.TempPathFactory, monkeypatch: pytest.MonkeyPatch) -> Generator[Path, None, None]:
    """Put an ``fd`` on PATH that prints a fixed, unsorted listing.

    The listing is ``a.txt``, ``b/c.txt``, ``readme.md``, in that order.

    Returns:
        Path: The script, so tests can rewrite what it prints.
    """
    bin_dir = tmp_path_factory.mktemp("bin")
    script = bin_dir / "fd"
    script.write_text("#!/bin/sh\nprintf 'a.txt\\nb/c.txt\\nreadme.md\\n'\n")
    script.chmod(0o755)
    monkeypatch.setenv("PATH", f"{bin_dir}{os.pathsep}{os.environ.get('PATH', '')}")
    resolve_tool.cache_clear()
    yield script
    resolve_tool.cache_clear()


# --- Session fixtures ---
@pytest.fixture
def session(mock_stdscr: MagicMock, vuit_config: Configuration, temp_tree: Path) -> Generator[Vuit, None, None]:
    """Create a real `Vuit` session with the editor and background engine mocked.

    `session.async_engine` is a MagicMock, so submitted tasks can be inspected
    and results are fed in by putting messages on `session._async_results_q`.
    `session.editor_bridge` is a MagicMock as well: opening a file never
    starts a process.

    Yields:
        Vuit: The session, rooted at `temp_tree`.
    """
    with (
        patch("vuit.core.Vuit.AsyncEngine"),
        patch("vuit.core.Vuit.EditorBridge"),
        patch("vuit.core.Vuit.resolve_content_search", return_value="grep"),
    ):
        vuit_session = Vuit(mock_stdscr, vuit_config, str(temp_tree))
    yield vuit_session
    vuit_session.exit_app()
