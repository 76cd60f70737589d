# vuit/integrations/SearchTools.py
"""SearchTools Module
==================
Thin adapters around the external command-line tools vuit orchestrates:

- the file enumerator (``fd``, packaged as ``fdfind`` on Debian/Ubuntu),
- the fuzzy matcher (``fzf`` or ``sk``, both used in non-interactive ``--filter`` mode),
- the content search tool (``rg``, with ``grep -rnI`` as the fallback).

Nothing here keeps state about the UI. Functions build argument vectors, locate
binaries, run the short-lived enumerator and parse the streamed
``path:line:content`` records produced by content search. Long-running and
cancellable invocations (matcher, content search) are driven by
`vuit.core.AsyncEngine`, which uses the command builders from this module.
"""

import logging
import os
import re
import shutil
from dataclasses import dataclass
from functools import lru_cache
from typing import Iterator, Optional, Sequence

from vuit.utils.errors import SubprocessRuntimeError, SubprocessSpawnError
from vuit.utils.utils import safe_run, strip_ansi


logger = logging.getLogger("vuit")

# Alternative binary names a tool is known to be installed under.
TOOL_ALIASES: dict[str, tuple[str, ...]] = {
    "fd": ("fd", "fdfind"),
    "fdfind": ("fdfind", "fd"),
    "fzf": ("fzf", "sk"),
    "sk": ("sk", "fzf"),
    "rg": ("rg",),
    "grep": ("grep",),
}

RECORD_RE = re.compile(r"^(?P<path>.+?):(?P<line>\d+):(?P<text>.*)$")
ENUMERATOR_TIMEOUT = 60
# Bytes of path arguments per content-search run
ARG_BUDGET = 128 * 1024


@lru_cache(maxsize=None)
def resolve_tool(name: str) -> Optional[str]:
    """Returns the first installed binary for `name` (or its aliases), else None."""
    if not name:
        return None
    for candidate in TOOL_ALIASES.get(name, (name,)):
        if shutil.which(candidate):
            return candidate
    return None


def normalize_entry(line: str) -> str:
    """Strips whitespace, trailing newline and a leading ``./`` from a path."""
    entry = line.strip()
    while entry.startswith("./"):
        entry = entry[2:]
    return entry


# ----------------------------- enumerator ---------------------------------
def enumerator_command(tool: str) -> list[str]:
    return [tool, "--type", "f", "--hidden", "--exclude", ".git", "--color", "never"]


def collect_entries(output: str) -> list[str]:
    """Normalized, unique entries from enumerator output, in the order it printed them."""
    entries = (normalize_entry(line) for line in output.splitlines())
    return list(dict.fromkeys(entry for entry in entries if entry))


def run_enumerator(root: str, tool: str = "fd") -> list[str]:
    """Runs the enumerator to completion in `root` and returns unique entries.

    Raises:
        SubprocessSpawnError: when the tool is not installed.
        SubprocessRuntimeError: when the tool exits with a non-zero status; the
            entries it did print are kept in `partial_output`.
    """
    binary = resolve_tool(tool)
    if binary is None:
        raise SubprocessSpawnError([tool], "not installed")

    cmd = enumerator_command(binary)
    result = safe_run(cmd, cwd=root, timeout=ENUMERATOR_TIMEOUT)
    if result.returncode in (126, 127) and not result.stdout:
        raise SubprocessSpawnError(cmd, result.stderr.strip() or "cannot execute")
    if result.returncode != 0:
        raise SubprocessRuntimeError(
            cmd,
            result.returncode,
            result.stderr,
            partial_output=collect_entries(result.stdout),
        )

    entries = collect_entries(result.stdout)
    logger.debug("Enumerator %s listed %d files in %s", binary, len(entries), root)
    return entries


# ------------------------------ matcher -----------------------------------
def matcher_command(tool: str, query: str) -> list[str]:
    """fzf and sk share the same non-interactive filter flag."""
    return [tool, "--filter", query]


# --------------------------- content search --------------------------------
def content_search_command(tool: str, pattern: str, paths: Optional[Sequence[str]] = None) -> list[str]:
    """Command line for `tool`, searching `paths` (root-relative) or the whole tree."""
    targets = list(paths) if paths else ["."]
    if tool == "grep":
        return ["grep", "-rnIH", "--exclude-dir=.git", "-e", pattern, "--", *targets]
    return [
        tool,
        "--line-number",
        "--no-heading",
        "--with-filename",
        "--color",
        "never",
        "--smart-case",
        "--",
        pattern,
        *targets,
    ]


def chunk_paths(paths: Sequence[str], budget: int = ARG_BUDGET) -> Iterator[list[str]]:
    """Splits `paths` into batches whose encoded size stays under `budget` bytes.

    Keeps each content-search command line well below the kernel's ARG_MAX.
    A single path longer than the budget still gets a batch of its own.
    """
    batch: list[str] = []
    size = 0
    for path in paths:
        cost = len(os.fsencode(path)) + 1
        if batch and size + cost > budget:
            yield batch
            batch, size = [], 0
        batch.append(path)
        size += cost
    if batch:
        yield batch


def resolve_content_search(preferred: str) -> Optional[str]:
    """Preferred content-search tool, falling back to grep."""
    return resolve_tool(preferred) or resolve_tool("grep")


@dataclass(frozen=True)
class SearchHit:
    """One ``path:line:content`` record from content search."""

    path: str
    line: int
    text: str

    def label(self) -> str:
        return f"{self.path}:{self.line}:{self.text}"


def parse_search_record(record: str) -> Optional[SearchHit]:
    """Parses one full output line; returns None for lines that are not records."""
    match = RECORD_RE.match(record.rstrip("\r\n"))
    if not match:
        return None
    path = normalize_entry(match.group("path"))
    if not path:
        return None
    return SearchHit(path=path, line=int(match.group("line")), text=strip_ansi(match.group("text")))


class RecordBuffer:
    """Accumulates streamed bytes and hands out complete lines only.

    A trailing fragment without a newline stays buffered until the next
    `feed()` completes it, or until `flush()` at end of stream.
    """

    def __init__(self) -> None:
        self._pending = b""

    def feed(self, chunk: bytes) -> list[str]:
        data = self._pending + chunk
        *complete, self._pending = data.split(b"\n")
        return [line.decode("utf-8", errors="replace") for line in complete]

    def flush(self) -> list[str]:
        """Returns the unterminated tail (if any) at end of stream."""
        tail, self._pending = self._pending, b""
        return [tail.decode("utf-8", errors="replace")] if tail else []

    def discard(self) -> None:
        self._pending = b""

    @property
    def pending(self) -> bytes:
        return self._pending
