"""Watch a project root and rebuild its knowledge graph after source changes settle."""

import asyncio
import logging
import threading
import time
from pathlib import Path
from typing import Awaitable, Callable, Optional, Set, Tuple

from watchdog.events import FileSystemEvent, FileSystemEventHandler
from watchdog.observers import Observer

from .file_discovery import is_excluded_dir, is_excluded_file
from .grammars import LanguageRegistry, get_language_registry

logger = logging.getLogger(__name__)

# async callback(changed_files, deleted_files), root-relative POSIX paths
ChangeCallback = Callable[[Set[str], Set[str]], Awaitable[None]]

POLL_INTERVAL_SECONDS = 0.5


class SourceChangeHandler(FileSystemEventHandler):
    """Collects changes to scannable source files between debounce windows.

    Watchdog delivers events on its own thread; the pending sets are guarded
    by a lock because the debounce loop drains them from the event loop.
    """

    def __init__(
        self,
        root_dir: Path,
        registry: Optional[LanguageRegistry] = None,
        exclude_patterns: Optional[list] = None,
    ):
        super().__init__()
        self.root_dir = root_dir
        self.registry = registry or get_language_registry()
        self.exclude_patterns = list(exclude_patterns or [])

        self._lock = threading.Lock()
        self.changed_files: Set[str] = set()
        self.deleted_files: Set[str] = set()
        self.last_change_time = 0.0

    def relative_source_path(self, file_path: str) -> Optional[str]:
        """Root-relative path of a file the scanner would pick up, else None."""
        try:
            rel = Path(file_path).resolve().relative_to(self.root_dir)
        except ValueError:
            return None
        if any(is_excluded_dir(part) for part in rel.parts[:-1]):
            return None
        rel_path = rel.as_posix()
        if not self.registry.is_supported_file(rel_path) or is_excluded_file(rel_path, self.exclude_patterns):
            return None
        return rel_path

    def _record(self, file_path: str, deleted: bool) -> None:
        rel_path = self.relative_source_path(file_path)
        if rel_path is None:
            return
        with self._lock:
            if deleted:
                self.changed_files.discard(rel_path)
                self.deleted_files.add(rel_path)
            else:
                self.deleted_files.discard(rel_path)
                self.changed_files.add(rel_path)
            self.last_change_time = time.time()
        logger.debug(f"Source {'deleted' if deleted else 'changed'}: {rel_path}")

    def on_modified(self, event: FileSystemEvent) -> None:
        if not event.is_directory:
            self._record(event.src_path, deleted=False)

    def on_created(self, event: FileSystemEvent) -> None:
        if not event.is_directory:
            self._record(event.src_path, deleted=False)

    def on_deleted(self, event: FileSystemEvent) -> None:
        if not event.is_directory:
            self._record(event.src_path, deleted=True)

    def on_moved(self, event: FileSystemEvent) -> None:
        if event.is_directory:
            return
        self._record(event.src_path, deleted=True)
        dest_path = getattr(event, "dest_path", None)
        if dest_path:
            self._record(dest_path, deleted=False)

    def has_pending_changes(self) -> bool:
        with self._lock:
            return bool(self.changed_files or self.deleted_files)

    def time_since_last_change(self) -> float:
        return time.time() - self.last_change_time

    def drain(self) -> Tuple[Set[str], Set[str]]:
        """Return and clear the pending (changed, deleted) sets."""
        with self._lock:
            changed, deleted = set(self.changed_files), set(self.deleted_files)
            self.changed_files.clear()
            self.deleted_files.clear()
        return changed, deleted


class CodebaseWatcher:
    """Triggers a full rebuild once source edits have been quiet for a debounce window."""

    def __init__(
        self,
        watch_path: str,
        on_change_callback: ChangeCallback,
        debounce_seconds: float = 2.0,
        exclude_patterns: Optional[list] = None,
    ):
        """Initialize codebase watcher.

        Args:
            watch_path: Project root to watch (recursively)
            on_change_callback: Async callback receiving (changed, deleted) paths
            debounce_seconds: Quiet time required before the callback fires
            exclude_patterns: Extra glob patterns the scanner also excludes
        """
        self.watch_path = Path(watch_path).resolve()
        self.on_change_callback = on_change_callback
        self.debounce_seconds = debounce_seconds

        self.event_handler = SourceChangeHandler(self.watch_path, exclude_patterns=exclude_patterns)
        self.observer = Observer()
        self.observer.schedule(self.event_handler, str(self.watch_path), recursive=True)

        self._running = False
        logger.info(f"Watching {self.watch_path} for source changes")

    def start(self) -> None:
        if not self._running:
            self.observer.start()
            self._running = True
            logger.info(f"Started watching: {self.watch_path}")

    def stop(self) -> None:
        if self._running:
            self.observer.stop()
            self.observer.join(timeout=5.0)
            self._running = False
            logger.info("Stopped file watcher")

    def is_running(self) -> bool:
        return self._running

    async def process_pending(self) -> bool:
        """Fire the callback if changes are pending and the debounce window has passed.

        Returns:
            True if the callback ran
        """
        handler = self.event_handler
        if not handler.has_pending_changes() or handler.time_since_last_change() < self.debounce_seconds:
            return False

        changed, deleted = handler.drain()
        logger.info(f"Processing changes: {len(changed)} changed, {len(deleted)} deleted")
        try:
            await self.on_change_callback(changed, deleted)
        except Exception as e:
            logger.error(f"Error processing file changes: {e}")
        return True

    async def start_debounce_processor(self) -> None:
        """Poll for settled changes until the watcher stops."""
        logger.info("Waiting for source changes to settle")
        while self._running:
            try:
                await self.process_pending()
                await asyncio.sleep(POLL_INTERVAL_SECONDS)
            except asyncio.CancelledError:
                logger.info("Debounce processor cancelled")
                break

    def __enter__(self):
        self.start()
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.stop()


def rescan_on_change(index_tool) -> ChangeCallback:
    """Callback that rebuilds and saves the whole graph through an IndexTool.

    There is no partial update: any change triggers a full scan.
    """

    async def handle_changes(changed: Set[str], deleted: Set[str]) -> None:
        logger.info(f"Rescanning after {len(changed) + len(deleted)} source change(s)")
        result = await asyncio.to_thread(index_tool.scan_codebase)
        if result.get("success"):
            logger.info(
                f"Rescan complete: {result['nodeCount']} nodes, {result['edgeCount']} edges"
            )
        else:
            logger.warning(f"Rescan failed: {result.get('error')}")

    return handle_changes
