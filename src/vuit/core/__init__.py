# src/vuit/core/__init__.py
"""Public facade for vuit.core: re-export the building blocks of a session.

The session class itself lives in `vuit.core.Vuit` and is imported from there,
since it depends on the ui modules which in turn import from this package.
"""

from .AsyncEngine import AsyncEngine  # noqa: F401
from .FileIndex import FileIndex  # noqa: F401
from .FilterEngine import FilterState  # noqa: F401
from .RecentList import RecentList  # noqa: F401


__all__ = [
    "AsyncEngine",
    "FileIndex",
    "FilterState",
    "RecentList",
]
