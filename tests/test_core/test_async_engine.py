# tests/test_core/test_async_engine.py
"""`tests/test_core/test_async_engine.py`
=========================================

Unit tests for the AsyncEngine class.

This test suite validates the following aspects of AsyncEngine:

1. **Thread and event loop management**
   - Starting the engine launches a background thread with an active event loop.
   - Stopping the engine shuts down the thread cleanly.

2. **Filtering**
   - Substring filtering when no fuzzy matcher is given.
   - Falling back to substring filtering when the matcher cannot be started.

3. **Content search**
   - Streaming ``path:line:content`` hits from grep, tagged with the generation.
   - Stopping at the result cap and reporting truncation.

4. **Cancellation**
   - A task on a channel is cancelled when the channel is cancelled.

Handlers are driven directly with `asyncio.run` where possible, so most tests
need neither the background thread nor real timing.
"""

import asyncio
import queue
import shutil
import threading
from pathlib import Path
from typing import Any, Generator

import pytest

from vuit.core.AsyncEngine import AsyncEngine
from vuit.integrations.SearchTools import SearchHit


QueueItem = dict[str, Any]


@pytest.fixture
def engine_instance() -> Generator[tuple[AsyncEngine, queue.Queue[QueueItem]], None, None]:
    """Create an AsyncEngine and the queue it reports to.

    Yields:
        tuple[AsyncEngine, queue.Queue[QueueItem]]: The engine and its UI queue.
    """
    to_ui: queue.Queue[QueueItem] = queue.Queue()
    engine = AsyncEngine(to_ui_queue=to_ui)
    yield engine, to_ui

    # Ensure proper cleanup after each test
    if engine.thread and engine.thread.is_alive():
        engine.stop()


def drain(q: queue.Queue[QueueItem]) -> list[QueueItem]:
    items = []
    while not q.empty():
        items.append(q.get_nowait())
    return items


class TestAsyncEngine:
    """Group of tests for the AsyncEngine class."""

    EngineFixture = tuple[AsyncEngine, queue.Queue[QueueItem]]

    def test_initialization(self, engine_instance: EngineFixture) -> None:
        engine, to_ui = engine_instance
        assert engine.to_ui_queue is to_ui
        assert isinstance(engine.from_ui_queue, queue.Queue)
        assert engine.is_running() is False

    def test_start_and_stop(self, engine_instance: EngineFixture) -> None:
        engine, _ = engine_instance
        engine.start()
        assert engine.thread is not None
        assert engine.thread.name == "AsyncEngineThread"
        assert engine.is_running()

        engine.stop()
        assert not engine.thread.is_alive()

    def test_stop_before_the_loop_exists(
        self, engine_instance: EngineFixture, monkeypatch: pytest.MonkeyPatch
    ) -> None:
        """Stopping right after start() must not leave the thread waiting forever."""
        engine, _ = engine_instance
        gate = threading.Event()
        real_new_event_loop = asyncio.new_event_loop

        def slow_new_event_loop() -> asyncio.AbstractEventLoop:
            gate.wait(5)
            return real_new_event_loop()

        monkeypatch.setattr(asyncio, "new_event_loop", slow_new_event_loop)
        engine.start()
        assert engine.loop is None

        threading.Timer(0.2, gate.set).start()
        engine.stop()
        assert engine.thread is not None
        assert not engine.thread.is_alive()

    def test_repeated_start_stop_leaves_no_thread(self) -> None:
        engines = [AsyncEngine(to_ui_queue=queue.Queue()) for _ in range(20)]
        for engine in engines:
            engine.start()
            engine.stop()
        assert not any(engine.is_running() for engine in engines)

    def test_filter_round_trip_through_thread(self, engine_instance: EngineFixture) -> None:
        engine, to_ui = engine_instance
        engine.start()
        engine.submit_task(
            {
                "type": "filter",
                "channel": "files",
                "generation": 7,
                "query": "c",
                "entries": ["a.txt", "readme.md", "b/c.txt"],
                "matcher": None,
            }
        )
        result = to_ui.get(timeout=5)
        assert result["type"] == "filter_result"
        assert result["window"] == "files"
        assert result["generation"] == 7
        assert result["entries"] == ["b/c.txt"]
        assert result["error"] is None

    def test_missing_matcher_falls_back_to_substring(self, engine_instance: EngineFixture) -> None:
        engine, to_ui = engine_instance
        asyncio.run(
            engine.dispatch_task(
                {
                    "type": "filter",
                    "channel": "recent",
                    "generation": 3,
                    "query": "TXT",
                    "entries": ["a.TXT", "b.txt"],
                    "matcher": "no-such-matcher-vuit",
                }
            )
        )
        (result,) = drain(to_ui)
        assert result["entries"] == ["a.TXT"]
        assert result["matcher_missing"] is True
        assert "no-such-matcher-vuit" in result["error"]

    def test_unknown_task_type_posts_nothing(self, engine_instance: EngineFixture) -> None:
        engine, to_ui = engine_instance
        asyncio.run(engine.dispatch_task({"type": "bogus"}))
        assert drain(to_ui) == []

    def test_handler_exception_becomes_task_error(self, engine_instance: EngineFixture) -> None:
        engine, to_ui = engine_instance
        # "entries" is missing
        asyncio.run(engine.dispatch_task({"type": "filter", "channel": "files", "generation": 1, "query": "x"}))
        (result,) = drain(to_ui)
        assert result["type"] == "task_error"
        assert result["window"] == "files"
        assert result["generation"] == 1

    def test_cancel_stops_running_task(self, engine_instance: EngineFixture) -> None:
        engine, _ = engine_instance
        started = threading.Event()
        cancelled = threading.Event()

        async def slow_task(task_data: QueueItem) -> None:
            started.set()
            try:
                await asyncio.sleep(30)
            except asyncio.CancelledError:
                cancelled.set()
                raise

        engine.dispatch_task = slow_task  # type: ignore[method-assign]
        engine.start()
        engine.submit_task({"type": "filter", "channel": "files", "generation": 1})
        assert started.wait(5)
        engine.cancel("files")
        assert cancelled.wait(5)

    def test_new_task_replaces_previous_on_same_channel(self, engine_instance: EngineFixture) -> None:
        engine, _ = engine_instance
        first_started = threading.Event()
        first_cancelled = threading.Event()
        second_started = threading.Event()

        async def task(task_data: QueueItem) -> None:
            if task_data["generation"] == 1:
                first_started.set()
                try:
                    await asyncio.sleep(30)
                except asyncio.CancelledError:
                    first_cancelled.set()
                    raise
            else:
                second_started.set()

        engine.dispatch_task = task  # type: ignore[method-assign]
        engine.start()
        engine.submit_task({"type": "filter", "channel": "search", "generation": 1})
        assert first_started.wait(5)
        engine.submit_task({"type": "filter", "channel": "search", "generation": 2})
        assert first_cancelled.wait(5)
        assert second_started.wait(5)


@pytest.mark.skipif(shutil.which("grep") is None, reason="grep is not installed")
class TestContentSearch:
    """Content search against a real grep process."""

    def _search(self, engine: AsyncEngine, root: Path, pattern: str, paths: list[str] | None = None) -> None:
        asyncio.run(
            engine.dispatch_task(
                {
                    "type": "content_search",
                    "channel": "search",
                    "generation": 11,
                    "pattern": pattern,
                    "root": str(root),
                    "tool": "grep",
                    "paths": paths,
                }
            )
        )

    def test_hits_are_streamed_and_done_is_posted(self, temp_tree: Path) -> None:
        to_ui: queue.Queue[QueueItem] = queue.Queue()
        engine = AsyncEngine(to_ui)
        self._search(engine, temp_tree, "hello")

        messages = drain(to_ui)
        hits: list[SearchHit] = [h for m in messages if m["type"] == "search_batch" for h in m["hits"]]
        assert {(h.path, h.line) for h in hits} == {("a.txt", 1), ("b/c.txt", 1)}
        assert all(m["generation"] == 11 for m in messages)

        done = messages[-1]
        assert done["type"] == "search_done"
        assert done["count"] == 2
        assert done["truncated"] is False
        assert done["error"] is None

    def test_search_limited_to_given_files(self, temp_tree: Path) -> None:
        to_ui: queue.Queue[QueueItem] = queue.Queue()
        engine = AsyncEngine(to_ui)
        self._search(engine, temp_tree, "hello", paths=["b/c.txt"])

        messages = drain(to_ui)
        hits = [h for m in messages if m["type"] == "search_batch" for h in m["hits"]]
        assert hits == [SearchHit("b/c.txt", 1, "say hello")]
        assert messages[-1]["count"] == 1

    def test_no_match_is_not_an_error(self, temp_tree: Path) -> None:
        to_ui: queue.Queue[QueueItem] = queue.Queue()
        engine = AsyncEngine(to_ui)
        self._search(engine, temp_tree, "zzz-not-present")

        (done,) = drain(to_ui)
        assert done["type"] == "search_done"
        assert done["count"] == 0
        assert done["error"] is None

    def test_results_stop_at_the_cap(self, temp_tree: Path) -> None:
        to_ui: queue.Queue[QueueItem] = queue.Queue()
        engine = AsyncEngine(to_ui, max_search_results=1)
        self._search(engine, temp_tree, "hello")

        messages = drain(to_ui)
        hits = [h for m in messages if m["type"] == "search_batch" for h in m["hits"]]
        assert len(hits) == 1
        assert messages[-1]["type"] == "search_done"
        assert messages[-1]["truncated"] is True
        assert messages[-1]["count"] == 1

    def test_exactly_the_cap_is_not_truncated(self, temp_tree: Path) -> None:
        to_ui: queue.Queue[QueueItem] = queue.Queue()
        engine = AsyncEngine(to_ui, max_search_results=2)
        self._search(engine, temp_tree, "hello")

        done = drain(to_ui)[-1]
        assert done["type"] == "search_done"
        assert done["count"] == 2
        assert done["truncated"] is False

    def test_path_list_longer_than_arg_max_is_searched_in_batches(self, temp_tree: Path) -> None:
        # ~4 KB per path, 600 of them: well past the 2 MiB argv limit of one exec
        long_path = "./" * 2000 + "a.txt"
        paths = ["b/c.txt"] + [long_path] * 600
        assert sum(len(p) + 1 for p in paths) > 2 * 1024 * 1024

        to_ui: queue.Queue[QueueItem] = queue.Queue()
        engine = AsyncEngine(to_ui)
        self._search(engine, temp_tree, "hello", paths=paths)

        messages = drain(to_ui)
        hits = [h for m in messages if m["type"] == "search_batch" for h in m["hits"]]
        assert hits[0] == SearchHit("b/c.txt", 1, "say hello")
        assert {h.path for h in hits} == {"a.txt", "b/c.txt"}
        assert len(hits) == 601
        done = messages[-1]
        assert done["type"] == "search_done"
        assert done["error"] is None
        assert done["truncated"] is False

    def test_missing_tool_reports_error(self, temp_tree: Path) -> None:
        to_ui: queue.Queue[QueueItem] = queue.Queue()
        engine = AsyncEngine(to_ui)
        asyncio.run(
            engine.dispatch_task(
                {
                    "type": "content_search",
                    "channel": "search",
                    "generation": 2,
                    "pattern": "x",
                    "root": str(temp_tree),
                    "tool": "no-such-search-tool-vuit",
                }
            )
        )
        (done,) = drain(to_ui)
        assert done["type"] == "search_done"
        assert "no-such-search-tool-vuit" in done["error"]
