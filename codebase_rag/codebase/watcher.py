# Copyright 2025 Vijaykumar Singh <singhvjd@gmail.com>
#
# Licensed under the Apache License, Version 2.0 (the "License");
# you may not use this file except in compliance with the License.
# You may obtain a copy of the License at
#
#     http://www.apache.org/licenses/LICENSE-2.0
#
# Unless required by applicable law or agreed to in writing, software
# distributed under the License is distributed on an "AS IS" BASIS,
# WITHOUT WARRANTIES OR CONDITIONS OF ANY KIND, either express or implied.
# See the License for the specific language governing permissions and
# limitations under the License.

"""Watchdog-driven file change notifications for a CodebaseIndexer.

Watchdog delivers events on its own thread. Events are debounced per path
and then handed to the indexer's event loop, where all index mutation
happens. The watcher threads never read indexer state; tracking and
ignore checks run on the loop.
"""

import asyncio
import logging
import threading
from concurrent.futures import Future
from pathlib import Path
from typing import TYPE_CHECKING, Callable, Dict, Optional

from watchdog.events import FileSystemEvent, FileSystemEventHandler
from watchdog.observers import Observer

from codebase_rag.codebase.ignore_patterns import is_binary_path

if TYPE_CHECKING:
    from codebase_rag.codebase.indexer import CodebaseIndexer

logger = logging.getLogger(__name__)

CREATED = "created"
CHANGED = "changed"
DELETED = "deleted"
DIR_CREATED = "dir_created"
DIR_DELETED = "dir_deleted"


def is_candidate_path(path: str) -> bool:
    """Thread-safe pre-filter applied on watchdog threads."""
    return not is_binary_path(Path(path))


class CodebaseFileHandler(FileSystemEventHandler):
    """File system event handler with per-path debounce.

    Tracks file modifications, creations, deletions and moves and reports
    the latest change kind for each path once events stop arriving.
    """

    def __init__(
        self,
        on_change: Callable[[str, str], None],
        should_process: Callable[[str], bool],
        debounce_delay: float = 0.5,
    ):
        """Initialize file handler.

        Args:
            on_change: Callback receiving (change kind, path)
            should_process: Filter deciding whether a path is relevant
            debounce_delay: Seconds of quiet before pending changes are flushed
        """
        super().__init__()
        self.on_change = on_change
        self.should_process = should_process
        self._debounce_lock = threading.Lock()
        self._pending_changes: Dict[str, str] = {}
        self._debounce_timer: Optional[threading.Timer] = None
        self._debounce_delay = debounce_delay

    def _debounced_notify(self) -> None:
        """Notify of changes after debounce period."""
        with self._debounce_lock:
            changes = list(self._pending_changes.items())
            self._pending_changes.clear()
            self._debounce_timer = None

        for path, kind in changes:
            try:
                self.on_change(kind, path)
            except Exception as e:
                logger.warning(f"Error in file change callback for {path}: {e}")

    def _schedule_notification(self, kind: str, path: str) -> None:
        with self._debounce_lock:
            self._pending_changes[path] = kind

            if self._debounce_timer:
                self._debounce_timer.cancel()

            self._debounce_timer = threading.Timer(self._debounce_delay, self._debounced_notify)
            self._debounce_timer.daemon = True
            self._debounce_timer.start()

    def flush(self) -> None:
        """Deliver pending changes immediately."""
        with self._debounce_lock:
            if self._debounce_timer:
                self._debounce_timer.cancel()
        self._debounced_notify()

    def cancel(self) -> None:
        """Drop pending changes."""
        with self._debounce_lock:
            if self._debounce_timer:
                self._debounce_timer.cancel()
                self._debounce_timer = None
            self._pending_changes.clear()

    def _handle(self, kind: str, event: FileSystemEvent, path: str) -> None:
        if event.is_directory:
            return
        path = str(path)
        if self.should_process(path):
            self._schedule_notification(kind, path)

    def on_created(self, event: FileSystemEvent) -> None:
        # Files inside a new directory report their own events
        self._handle(CREATED, event, event.src_path)

    def on_modified(self, event: FileSystemEvent) -> None:
        self._handle(CHANGED, event, event.src_path)

    def on_deleted(self, event: FileSystemEvent) -> None:
        if event.is_directory:
            self._schedule_notification(DIR_DELETED, str(event.src_path))
            return
        self._handle(DELETED, event, event.src_path)

    def on_moved(self, event: FileSystemEvent) -> None:
        # A moved directory produces no events for the files under it
        if event.is_directory:
            self._schedule_notification(DIR_DELETED, str(event.src_path))
            self._schedule_notification(DIR_CREATED, str(event.dest_path))
            return
        self._handle(DELETED, event, event.src_path)
        self._handle(CREATED, event, event.dest_path)


class FileWatcher:
    """Owns a watchdog Observer scheduling one recursive watch per root."""

    def __init__(
        self,
        indexer: "CodebaseIndexer",
        loop: asyncio.AbstractEventLoop,
        debounce: float = 0.5,
    ):
        self.indexer = indexer
        self.loop = loop
        self.handler = CodebaseFileHandler(
            on_change=self._dispatch,
            should_process=is_candidate_path,
            debounce_delay=debounce,
        )
        self._observer: Optional[Observer] = None

    @property
    def is_running(self) -> bool:
        return self._observer is not None

    def _dispatch(self, kind: str, path: str) -> Future:
        if kind == DIR_DELETED:
            coro = self.indexer.on_directory_deleted(path)
        elif kind == DIR_CREATED:
            coro = self.indexer.on_directory_created(path)
        elif kind == DELETED:
            coro = self.indexer.on_file_deleted(path)
        elif kind == CREATED:
            coro = self.indexer.on_file_created(path)
        else:
            coro = self.indexer.on_file_changed(path)

        future = asyncio.run_coroutine_threadsafe(coro, self.loop)
        future.add_done_callback(self._log_failure)
        return future

    def _log_failure(self, future: Future) -> None:
        if future.cancelled():
            return
        exc = future.exception()
        if exc is not None:
            logger.warning(f"Incremental index update failed: {exc}")

    def start(self) -> None:
        if self._observer is not None:
            return
        observer = Observer()
        for root in self.indexer.valid_roots():
            observer.schedule(self.handler, str(root), recursive=True)
            logger.debug(f"Watching {root}")
        observer.daemon = True
        observer.start()
        self._observer = observer
        logger.info("File watcher started")

    def stop(self) -> None:
        if self._observer is None:
            return
        self.handler.cancel()
        self._observer.stop()
        self._observer.join(timeout=5.0)
        self._observer = None
        logger.info("File watcher stopped")
