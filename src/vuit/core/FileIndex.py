# vuit/core/FileIndex.py
"""FileIndex Module
================
The ordered list of files under the working directory.

The index is filled by the external enumerator. If it fails after listing some
files, those files are kept. When the tool is missing or fails without output,
a built-in directory walk is used instead. The walk skips ``.git`` and
any directory it cannot read, recording a `FilesystemAccessError` for each one
rather than aborting. The index is always rebuilt wholesale.
"""

import logging
import os
from typing import Optional

from vuit.integrations.SearchTools import run_enumerator
from vuit.utils.errors import FilesystemAccessError, SubprocessRuntimeError, VuitError


SKIP_DIRS = frozenset({".git"})


def walk_tree(root: str) -> tuple[list[str], list[FilesystemAccessError]]:
    """Lists files under `root` as sorted, root-relative paths.

    Returns:
        A tuple of (entries, errors). Unreadable subtrees are skipped and
        reported in `errors`.
    """
    entries: list[str] = []
    errors: list[FilesystemAccessError] = []

    def _on_error(exc: OSError) -> None:
        path = exc.filename or root
        logging.warning(f"FileIndex: skipping unreadable path '{path}': {exc.strerror}")
        errors.append(FilesystemAccessError(str(path), exc.strerror or str(exc)))

    for dirpath, dirnames, filenames in os.walk(root, onerror=_on_error):
        dirnames[:] = sorted(d for d in dirnames if d not in SKIP_DIRS)
        rel_dir = os.path.relpath(dirpath, root)
        for name in sorted(filenames):
            entries.append(name if rel_dir == "." else os.path.join(rel_dir, name))
    return entries, errors


class FileIndex:
    """Ordered, unique, root-relative file paths for one working tree."""

    def __init__(self, root: str, enumerator: Optional[str] = "fd") -> None:
        self.root = root
        self.enumerator = enumerator
        self.entries: list[str] = []
        self.used_fallback: bool = False

    def rebuild(self) -> list[VuitError]:
        """Re-enumerates the tree, replacing `entries`.

        Returns:
            list[VuitError]: the recoverable problems met on the way (empty on a
            clean run). The caller surfaces them to the user.
        """
        issues: list[VuitError] = []
        if self.enumerator:
            try:
                self.entries = run_enumerator(self.root, self.enumerator)
                self.used_fallback = False
                logging.info(f"FileIndex: {len(self.entries)} files via {self.enumerator}")
                return issues
            except SubprocessRuntimeError as e:
                issues.append(e)
                if e.partial_output:
                    # Keep what fd listed; its ignore rules still apply to it
                    self.entries = list(e.partial_output)
                    self.used_fallback = False
                    logging.warning(
                        f"FileIndex: {self.enumerator} exited {e.returncode}; "
                        f"keeping its {len(self.entries)} listed files"
                    )
                    return issues
                logging.warning(f"FileIndex: enumerator failed ({e}); using built-in walk")
            except VuitError as e:
                logging.warning(f"FileIndex: enumerator failed ({e}); using built-in walk")
                issues.append(e)

        self.entries, walk_errors = walk_tree(self.root)
        self.used_fallback = True
        issues.extend(walk_errors)
        logging.info(f"FileIndex: {len(self.entries)} files via built-in walk")
        return issues

    def __len__(self) -> int:
        return len(self.entries)
