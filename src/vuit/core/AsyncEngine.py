# vuit/core/AsyncEngine.py
"""AsyncEngine Module
==================
This module provides the `AsyncEngine` class, which runs vuit's cancellable
background work on an asyncio event loop in a dedicated thread, so that the
curses main loop never blocks on a subprocess.

Key Features:
-------------
- Runs an asyncio event loop in a separate daemon thread.
- Receives tasks from the UI thread through a thread-safe queue and sends
  results back through a second queue that only the UI thread consumes.
- Keeps at most one running task per *channel* (``files``, ``recent``,
  ``search``). Submitting a new task on a channel cancels the previous one and
  kills its subprocess.
- Tags every result with the generation number supplied by the caller, so the
  UI can discard answers to superseded queries.

Task types:
-----------
- ``filter``: rank/filter a list of entries for a query, through the external
  fuzzy matcher (``fzf --filter``) when one is given, otherwise through a
  cooperative substring scan.
- ``content_search``: stream ``path:line:content`` records from ``rg``/``grep``.
- ``cancel``: cancel whatever runs on a channel.

Result messages (dicts put on `to_ui_queue`):
---------------------------------------------
- ``{"type": "filter_result", "window", "generation", "entries", "error"}``
- ``{"type": "search_batch", "window", "generation", "hits"}``
- ``{"type": "search_done", "window", "generation", "count", "truncated", "error"}``
- ``{"type": "task_error", "task_type", "window", "generation", "error"}``
"""

import asyncio
import logging
import queue
import threading
from typing import Any, Optional

from vuit.core.FilterEngine import matches
from vuit.integrations.SearchTools import (
    RecordBuffer,
    SearchHit,
    chunk_paths,
    content_search_command,
    matcher_command,
    parse_search_record,
)
from vuit.utils.errors import SubprocessRuntimeError, SubprocessSpawnError, VuitError


# The queue can receive tasks (dictionaries) or None to stop.
QueueItem = Optional[dict[str, Any]]

READ_CHUNK = 64 * 1024
FILTER_CHUNK = 2000
DEFAULT_MAX_SEARCH_RESULTS = 5000


async def _kill_process(proc: asyncio.subprocess.Process) -> None:
    """Kills `proc` if it is still running and reaps it."""
    if proc.returncode is None:
        try:
            proc.kill()
        except ProcessLookupError:
            pass
    try:
        await proc.wait()
    except Exception:
        logging.debug("AsyncEngine: wait() after kill failed", exc_info=True)


# ==================== AsyncEngine Class ====================
class AsyncEngine:
    """Class AsyncEngine
    ===================
    Manages an asyncio event loop in a background thread for filtering and
    content-search tasks.

    Attributes:
        loop (Optional[asyncio.AbstractEventLoop]): The asyncio event loop running in the background thread.
        thread (Optional[threading.Thread]): The background thread running the event loop.
        from_ui_queue (queue.Queue): Thread-safe queue for receiving tasks from the UI thread.
        to_ui_queue (queue.Queue): Thread-safe queue for sending results back to the UI thread.
        max_search_results (int): Content search is stopped after this many hits.
        _channels (dict): The single running asyncio task of each channel.

    Methods:
        start(): Starts the asyncio event loop in a background thread.
        submit_task(task_data): Thread-safe task submission from the UI thread.
        cancel(channel): Thread-safe request to cancel a channel's running task.
        stop(): Gracefully stops the event loop and background thread.
    """

    def __init__(
        self,
        to_ui_queue: queue.Queue[dict[str, Any]],
        max_search_results: int = DEFAULT_MAX_SEARCH_RESULTS,
    ) -> None:
        self.loop: Optional[asyncio.AbstractEventLoop] = None
        self.thread: Optional[threading.Thread] = None
        self.from_ui_queue: queue.Queue[QueueItem] = queue.Queue()
        self.to_ui_queue: queue.Queue[dict[str, Any]] = to_ui_queue
        self.max_search_results = max_search_results
        self._channels: dict[str, asyncio.Task[Any]] = {}

    def _start_loop_in_thread(self) -> None:
        """Internal method to set up and run the event loop."""
        try:
            self.loop = asyncio.new_event_loop()
            asyncio.set_event_loop(self.loop)
            self.loop.run_until_complete(self.main_loop())
        finally:
            if self.loop:
                if self.loop.is_running():
                    self.loop.stop()
                self.loop.close()
            logging.info("AsyncEngine event loop has shut down.")

    def start(self) -> None:
        """Starts the asyncio event loop in a background thread."""
        if self.thread is not None:
            logging.warning("AsyncEngine already started.")
            return
        logging.info("Starting AsyncEngine background thread...")
        self.thread = threading.Thread(
            target=self._start_loop_in_thread, daemon=True, name="AsyncEngineThread"
        )
        self.thread.start()

    def is_running(self) -> bool:
        return self.thread is not None and self.thread.is_alive()

    async def main_loop(self) -> None:
        """Listens for tasks from the UI thread until a stop signal (None) arrives."""
        if not self.loop:
            logging.error("Event loop not initialized before starting main_loop.")
            return

        logging.info("AsyncEngine main_loop is running and waiting for tasks.")

        while True:
            try:
                task_data = await self.loop.run_in_executor(None, self.from_ui_queue.get)

                if task_data is None:
                    logging.info("AsyncEngine received stop signal. Breaking main_loop.")
                    break

                channel = str(task_data.get("channel") or task_data.get("type"))
                self._cancel_channel(channel)
                if task_data.get("type") == "cancel":
                    continue

                task = self.loop.create_task(self.dispatch_task(task_data))
                self._channels[channel] = task
                task.add_done_callback(lambda t, c=channel: self._forget(c, t))

            except Exception as e:
                if self.loop and self.loop.is_running():
                    logging.error(f"Critical error in AsyncEngine main_loop: {e}", exc_info=True)
                    await asyncio.sleep(0.1)
                else:
                    logging.info("Exception in main_loop during shutdown, likely normal")
                    break

        await self._shutdown_tasks()

    def _forget(self, channel: str, task: asyncio.Task[Any]) -> None:
        if self._channels.get(channel) is task:
            del self._channels[channel]

    def _cancel_channel(self, channel: str) -> None:
        previous = self._channels.pop(channel, None)
        if previous is not None and not previous.done():
            logging.debug(f"AsyncEngine: cancelling running task on channel '{channel}'")
            previous.cancel()

    async def dispatch_task(self, task_data: dict[str, Any]) -> None:
        """Dispatches a task to the correct async handler based on its type."""
        task_type = task_data.get("type")
        logging.debug(f"AsyncEngine dispatching task of type: {task_type}")

        try:
            if task_type == "filter":
                await self._run_filter(task_data)
            elif task_type == "content_search":
                await self._run_content_search(task_data)
            else:
                logging.warning(f"AsyncEngine received unknown task type: {task_type}")

        except asyncio.CancelledError:
            logging.debug(
                f"AsyncEngine: task '{task_type}' gen {task_data.get('generation')} cancelled"
            )
            raise
        except Exception as e:
            logging.error(f"Error executing async task '{task_type}': {e}", exc_info=True)
            self.to_ui_queue.put(
                {
                    "type": "task_error",
                    "task_type": task_type,
                    "window": task_data.get("channel"),
                    "generation": task_data.get("generation"),
                    "error": str(e),
                }
            )

    # ------------------------------ filtering ------------------------------
    async def _run_filter(self, task_data: dict[str, Any]) -> None:
        query: str = task_data["query"]
        entries: list[str] = task_data["entries"]
        matcher: Optional[str] = task_data.get("matcher")
        error: Optional[str] = None
        matcher_missing = False

        if matcher:
            try:
                results = await self._fuzzy_filter(matcher, query, entries)
            except VuitError as e:
                # Matcher output is never partially applied; fall back to substring.
                logging.warning(f"AsyncEngine: matcher failed ({e}); using substring filter")
                error = e.user_message()
                matcher_missing = isinstance(e, SubprocessSpawnError)
                results = await self._substring_filter(entries, query)
        else:
            results = await self._substring_filter(entries, query)

        self.to_ui_queue.put(
            {
                "type": "filter_result",
                "window": task_data.get("channel"),
                "generation": task_data["generation"],
                "entries": results,
                "error": error,
                "matcher_missing": matcher_missing,
            }
        )

    async def _fuzzy_filter(self, matcher: str, query: str, entries: list[str]) -> list[str]:
        cmd = matcher_command(matcher, query)
        try:
            proc = await asyncio.create_subprocess_exec(
                *cmd,
                stdin=asyncio.subprocess.PIPE,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE,
            )
        except OSError as e:
            raise SubprocessSpawnError(cmd, e.strerror or str(e)) from e

        payload = ("\n".join(entries) + "\n").encode("utf-8", errors="replace")
        try:
            stdout, stderr = await proc.communicate(payload)
        except asyncio.CancelledError:
            await _kill_process(proc)
            raise

        # fzf/sk exit 1 when nothing matched
        if proc.returncode == 1:
            return []
        if proc.returncode != 0:
            raise SubprocessRuntimeError(cmd, proc.returncode or -1, stderr.decode("utf-8", "replace"))
        return [line for line in stdout.decode("utf-8", "replace").splitlines() if line]

    async def _substring_filter(self, entries: list[str], query: str) -> list[str]:
        """Chunked substring scan that yields to the loop so it can be cancelled."""
        results: list[str] = []
        for start in range(0, len(entries), FILTER_CHUNK):
            results.extend(e for e in entries[start:start + FILTER_CHUNK] if matches(e, query))
            await asyncio.sleep(0)
        return results

    # --------------------------- content search ----------------------------
    async def _run_content_search(self, task_data: dict[str, Any]) -> None:
        """Streams hits for one pattern.

        An explicit path list is split into batches that fit on a command line
        and searched one batch after the other; the result cap spans all of them.
        """
        generation = task_data["generation"]
        channel = task_data.get("channel", "search")
        tool, pattern = task_data["tool"], task_data["pattern"]
        paths = task_data.get("paths")
        batches: list[Optional[list[str]]] = list(chunk_paths(paths)) if paths else [None]

        count = 0
        truncated = False
        error: Optional[str] = None

        def _done() -> None:
            self.to_ui_queue.put(
                {
                    "type": "search_done",
                    "window": channel,
                    "generation": generation,
                    "count": count,
                    "truncated": truncated,
                    "error": error,
                }
            )

        def _post(lines: list[str]) -> None:
            nonlocal count, truncated
            hits: list[SearchHit] = [h for h in map(parse_search_record, lines) if h]
            room = self.max_search_results - count
            if len(hits) > room:
                hits = hits[:room]
                truncated = True
            if hits:
                count += len(hits)
                self.to_ui_queue.put(
                    {"type": "search_batch", "window": channel, "generation": generation, "hits": hits}
                )

        for batch in batches:
            cmd = content_search_command(tool, pattern, batch)
            try:
                proc = await asyncio.create_subprocess_exec(
                    *cmd,
                    stdin=asyncio.subprocess.DEVNULL,
                    stdout=asyncio.subprocess.PIPE,
                    stderr=asyncio.subprocess.PIPE,
                    cwd=task_data.get("root"),
                )
            except OSError as e:
                error = SubprocessSpawnError(cmd, e.strerror or str(e)).user_message()
                _done()
                return

            assert proc.stdout is not None and proc.stderr is not None
            stderr_reader = asyncio.ensure_future(proc.stderr.read())
            buffer = RecordBuffer()

            try:
                while not truncated:
                    chunk = await proc.stdout.read(READ_CHUNK)
                    if not chunk:
                        _post(buffer.flush())
                        break
                    _post(buffer.feed(chunk))

                if truncated:
                    buffer.discard()
                    await _kill_process(proc)
                    stderr_reader.cancel()
                    _done()
                    return

                stderr = (await stderr_reader).decode("utf-8", "replace")
                returncode = await proc.wait()
            except asyncio.CancelledError:
                buffer.discard()
                stderr_reader.cancel()
                await _kill_process(proc)
                raise

            # rg and grep exit 1 when nothing matched; partial output is kept on errors
            if returncode not in (0, 1) and error is None:
                error = SubprocessRuntimeError(cmd, returncode, stderr).user_message()

        logging.debug(
            f"AsyncEngine: search gen {generation} done, {count} hits in {len(batches)} run(s)"
        )
        _done()

    # ------------------------------ plumbing -------------------------------
    def submit_task(self, task_data: dict[str, Any]) -> None:
        """Thread-safe method for the UI thread to submit a task."""
        self.from_ui_queue.put(task_data)

    def cancel(self, channel: str) -> None:
        """Thread-safe request to cancel the running task on `channel`."""
        self.from_ui_queue.put({"type": "cancel", "channel": channel})

    async def _shutdown_tasks(self) -> None:
        """Internal coroutine to cancel all running async tasks."""
        if not self._channels:
            return
        tasks_to_cancel = list(self._channels.values())
        logging.info(f"Cancelling {len(tasks_to_cancel)} outstanding async tasks...")
        for task in tasks_to_cancel:
            task.cancel()
        await asyncio.gather(*tasks_to_cancel, return_exceptions=True)
        self._channels.clear()
        logging.info("All async tasks cancelled.")

    def stop(self) -> None:
        """Gracefully and thread-safely stops the asyncio event loop and its tasks.

        The stop signal is queued even when the worker has not created its loop
        yet; `main_loop` picks it up as its first item.
        """
        if not self.thread or not self.thread.is_alive():
            logging.debug("AsyncEngine.stop() called, but no active thread to stop.")
            return

        logging.info("Stopping AsyncEngine...")
        self.from_ui_queue.put(None)
        self.thread.join(timeout=2.0)

        if self.thread.is_alive():
            logging.error("AsyncEngine thread did not stop gracefully within the timeout.")
            if self.loop is not None and not self.loop.is_closed():
                self.loop.call_soon_threadsafe(self.loop.stop)
        else:
            logging.info("AsyncEngine thread has been successfully stopped and joined.")
