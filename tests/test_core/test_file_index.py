# tests/test_core/test_file_index.py
"""Tests for the file index and its built-in directory walk."""

import os
from pathlib import Path
from unittest.mock import patch

import pytest

from vuit.core.FileIndex import FileIndex, walk_tree
from vuit.utils.errors import FilesystemAccessError, SubprocessRuntimeError, SubprocessSpawnError


def test_walk_lists_relative_paths_and_skips_git(temp_tree: Path) -> None:
    entries, errors = walk_tree(str(temp_tree))
    assert entries == ["a.txt", "readme.md", os.path.join("b", "c.txt")]
    assert errors == []


def test_rebuild_without_enumerator_uses_walk(temp_tree: Path) -> None:
    index = FileIndex(str(temp_tree), enumerator="")
    issues = index.rebuild()
    assert issues == []
    assert index.used_fallback is True
    assert len(index) == 3


def test_missing_enumerator_falls_back_and_reports(temp_tree: Path) -> None:
    index = FileIndex(str(temp_tree), enumerator="no-such-enumerator-vuit")
    issues = index.rebuild()
    assert isinstance(issues[0], SubprocessSpawnError)
    assert index.used_fallback is True
    assert "a.txt" in index.entries


def test_failing_enumerator_falls_back(temp_tree: Path) -> None:
    error = SubprocessRuntimeError(["fd"], 2, "boom")
    with patch("vuit.core.FileIndex.run_enumerator", side_effect=error):
        index = FileIndex(str(temp_tree), enumerator="fd")
        issues = index.rebuild()
    assert issues == [error]
    assert index.entries == ["a.txt", "readme.md", os.path.join("b", "c.txt")]


def test_failing_enumerator_keeps_what_it_listed(temp_tree: Path) -> None:
    error = SubprocessRuntimeError(["fd"], 1, "fd: permission denied", partial_output=["a.txt", "b/c.txt"])
    with patch("vuit.core.FileIndex.run_enumerator", side_effect=error):
        index = FileIndex(str(temp_tree), enumerator="fd")
        issues = index.rebuild()
    assert issues == [error]
    assert index.entries == ["a.txt", "b/c.txt"]
    assert index.used_fallback is False


def test_enumerator_output_is_used_when_available(temp_tree: Path) -> None:
    with patch("vuit.core.FileIndex.run_enumerator", return_value=["z.txt", "a.txt"]) as run:
        index = FileIndex(str(temp_tree), enumerator="fd")
        assert index.rebuild() == []
    run.assert_called_once_with(str(temp_tree), "fd")
    assert index.entries == ["z.txt", "a.txt"]
    assert index.used_fallback is False


def test_rebuild_picks_up_new_files(temp_tree: Path) -> None:
    index = FileIndex(str(temp_tree), enumerator="")
    index.rebuild()
    (temp_tree / "new.txt").write_text("x")
    index.rebuild()
    assert "new.txt" in index.entries


@pytest.mark.skipif(os.geteuid() == 0, reason="root can read any directory")
def test_unreadable_directory_is_skipped(temp_tree: Path) -> None:
    locked = temp_tree / "locked"
    locked.mkdir()
    (locked / "secret.txt").write_text("x")
    locked.chmod(0)
    try:
        entries, errors = walk_tree(str(temp_tree))
    finally:
        locked.chmod(0o755)
    assert "a.txt" in entries
    assert not any(e.startswith("locked") for e in entries)
    assert len(errors) == 1
    assert isinstance(errors[0], FilesystemAccessError)


def test_enumerator_order_is_kept(temp_tree: Path, fake_fd: Path) -> None:
    index = FileIndex(str(temp_tree), enumerator="fd")
    assert index.rebuild() == []
    assert index.used_fallback is False
    assert index.entries == ["a.txt", "b/c.txt", "readme.md"]


def test_enumerator_duplicates_keep_first_position(temp_tree: Path, fake_fd: Path) -> None:
    fake_fd.write_text("#!/bin/sh\nprintf 'z.txt\\n./a.txt\\nz.txt\\na.txt\\n'\n")
    index = FileIndex(str(temp_tree), enumerator="fd")
    index.rebuild()
    assert index.entries == ["z.txt", "a.txt"]
