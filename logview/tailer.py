# logview/tailer.py
"""Incremental following of a growing log file.

A FileWatcher owns the watchdog observer for one file. Its only job is to
publish the file's latest length (or None once the file is gone) into a
LatestValue slot. The owning session awaits that slot and hands each length
to its TailContext, which reads and parses only the newly completed lines.

Design Decisions:
    - Bursts of writes coalesce: the slot keeps only the newest length, so
      a slow consumer reads a bigger chunk rather than a longer queue
    - Only newline-terminated lines are consumed; a partial last line
      waits for the next notification
    - Truncation or rewrite in place is not followed: a length at or below
      the cursor produces nothing
    - Removal is final: after the file is reported gone, a new file under
      the same name is never read from the old cursor
"""
from __future__ import annotations
import asyncio
import logging
import os
import threading
from pathlib import Path
from typing import Callable

import regex
from watchdog.events import FileSystemEvent, FileSystemEventHandler
from watchdog.observers import Observer

from logview.layout import check_columns
from logview.models import DisplayLine, LogsParams
from logview.parser import compile_filter, parse_log_line
from logview.query import decode_line, split_lines

logger = logging.getLogger(__name__)


class WatchError(Exception):
    """Raised when the filesystem watch cannot be established."""
    pass


class LatestValue:
    """Single-slot channel: publishing overwrites, awaiting consumes.

    publish() may be called from any thread; get() belongs to the event
    loop the slot was created on.
    """

    def __init__(self, loop: asyncio.AbstractEventLoop | None = None):
        self._loop = loop or asyncio.get_running_loop()
        self._event = asyncio.Event()
        self._value: int | None = None

    def publish(self, value: int | None) -> None:
        try:
            self._loop.call_soon_threadsafe(self._store, value)
        except RuntimeError:
            logger.debug("event loop closed, dropping update %r", value)

    def _store(self, value: int | None) -> None:
        self._value = value
        self._event.set()

    async def get(self) -> int | None:
        await self._event.wait()
        self._event.clear()
        return self._value


class _LengthHandler(FileSystemEventHandler):
    def __init__(self, watcher: FileWatcher):
        self.watcher = watcher

    def _concerns(self, path: str | bytes) -> bool:
        return os.path.realpath(os.fsdecode(path)) == self.watcher.real_path

    def on_created(self, event: FileSystemEvent) -> None:
        if self._concerns(event.src_path):
            self.watcher.publish_length()

    def on_modified(self, event: FileSystemEvent) -> None:
        if self._concerns(event.src_path):
            self.watcher.publish_length()

    def on_deleted(self, event: FileSystemEvent) -> None:
        if self._concerns(event.src_path):
            self.watcher.publish_gone()

    def on_moved(self, event: FileSystemEvent) -> None:
        if self._concerns(event.src_path):
            self.watcher.publish_gone()
        elif self._concerns(event.dest_path):
            self.watcher.publish_length()


class FileWatcher:
    """Publishes the length of one file whenever the OS reports a change.

    Removal is final: once the file has been reported gone, later events
    are ignored, including those for a new file created under the same
    name. A length is only published while the path still names the file
    that was there when the watcher was created.
    """

    def __init__(self, path: Path, channel: LatestValue):
        self.path = Path(path)
        self.real_path = os.path.realpath(self.path)
        self.channel = channel
        self.gone = False
        self._lock = threading.Lock()
        self._identity = self._stat_identity()
        self._observer: Observer | None = None

    def _stat_identity(self) -> tuple[int, int] | None:
        try:
            st = os.stat(self.real_path)
        except OSError:
            return None
        return (st.st_dev, st.st_ino)

    def publish_length(self) -> None:
        with self._lock:
            if self.gone:
                return
            try:
                st = os.stat(self.real_path)
            except OSError:
                st = None
            if st is None or (st.st_dev, st.st_ino) != self._identity:
                self._mark_gone()
                return
            self.channel.publish(st.st_size)

    def publish_gone(self) -> None:
        with self._lock:
            if not self.gone:
                self._mark_gone()

    def _mark_gone(self) -> None:
        self.gone = True
        self.channel.publish(None)

    def start(self) -> None:
        """Start watching for changes, then publish the current length."""
        observer = Observer()
        try:
            observer.schedule(
                _LengthHandler(self), os.path.dirname(self.real_path), recursive=False
            )
            observer.start()
        except OSError as e:
            raise WatchError(f"cannot watch {self.path}: {e}") from e
        self._observer = observer
        self.publish_length()

    def stop(self) -> None:
        if self._observer is None:
            return
        self._observer.stop()
        self._observer.join(timeout=5)
        self._observer = None


WatcherFactory = Callable[[Path, LatestValue], FileWatcher]


class TailContext:
    """Read cursor over one file, advanced by length notifications.

    Attributes:
        log_file: File being followed.
        columns: Row width for wrapping.
        pattern: Optional compiled filter.
        byte_position: Offset just past the last consumed line.
        logical_lines_read: Number of lines consumed so far, filtered or not.
        ended: Set once the file is gone; no further reads happen.
    """

    def __init__(
        self,
        log_file: Path,
        columns: int,
        pattern: regex.Pattern | None = None,
        watcher_factory: WatcherFactory = FileWatcher,
    ):
        check_columns(columns)
        self.log_file = Path(log_file)
        # Surface missing or unreadable files before any watch exists
        with open(self.log_file, "rb"):
            pass
        self.columns = columns
        self.pattern = pattern
        self.byte_position = 0
        self.logical_lines_read = 0
        self.ended = False
        self.changes: LatestValue | None = None
        self._watcher_factory = watcher_factory
        self._watcher: FileWatcher | None = None

    @classmethod
    def from_params(
        cls, params: LogsParams, watcher_factory: WatcherFactory = FileWatcher
    ) -> TailContext:
        return cls(
            params.log_file,
            params.cols,
            compile_filter(params.filter),
            watcher_factory=watcher_factory,
        )

    def attach(self) -> None:
        """Establish the watch. Must run inside the owning event loop.

        A watch that cannot be established is logged and the tail stalls.
        """
        self.changes = LatestValue()
        self._watcher = self._watcher_factory(self.log_file, self.changes)
        try:
            self._watcher.start()
        except WatchError as e:
            logger.error("tail of %s will not advance: %s", self.log_file, e)

    async def next_change(self) -> int | None:
        return await self.changes.get()

    def advance(self, new_length: int) -> list[DisplayLine]:
        """Consume the complete lines between the cursor and new_length."""
        if self.ended or new_length <= self.byte_position:
            return []
        with open(self.log_file, "rb") as f:
            f.seek(self.byte_position)
            data = f.read(new_length - self.byte_position)
        segments, _ = split_lines(data)
        display_lines: list[DisplayLine] = []
        for raw in segments:
            line = decode_line(raw, self.logical_lines_read)
            rows = parse_log_line(self.logical_lines_read, self.columns, line, self.pattern)
            if rows:
                display_lines.extend(rows)
            self.byte_position += len(raw) + 1
            self.logical_lines_read += 1
        if segments:
            logger.debug(
                "%s: consumed %d lines, cursor at %d",
                self.log_file, len(segments), self.byte_position,
            )
        return display_lines

    def end(self) -> None:
        self.ended = True
        self.close()

    def close(self) -> None:
        if self._watcher is not None:
            self._watcher.stop()
            self._watcher = None
