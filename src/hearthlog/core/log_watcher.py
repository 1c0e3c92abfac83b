"""
Log watcher: follows Hearthstone's per-channel log files.

Hearthstone writes one file per logger (Power.log, Arena.log, ...) into its
Logs directory. LogWatcher keeps a LogFileReader per registered channel,
polls them on an asyncio task, merges the new lines of all files into one
time-ordered batch and hands it to its listeners.

LogTailer is the contract the PipelineController depends on; LogWatcher is
the default implementation.
"""

import asyncio
import datetime
import logging
import os
from pathlib import Path
from typing import Callable, Iterable, List, NamedTuple, Optional, Protocol, Sequence

from .channels import DEFAULT_REGISTRY, ChannelFilter
from .domain.log_lines import RawLogLine

logger = logging.getLogger(__name__)

DEFAULT_POLL_INTERVAL = 0.1
DEFAULT_STOP_TIMEOUT = 5.0

# The Unity prefix only carries the time of day
DAY_ROLLOVER_GAP = datetime.timedelta(hours=12)

LinesListener = Callable[[List[RawLogLine]], None]
MessageListener = Callable[[str], None]


class LogTailer(Protocol):
    """What the controller needs from a tailer."""

    def add_new_lines_listener(self, listener: LinesListener) -> None: ...

    def add_log_file_found_listener(self, listener: MessageListener) -> None: ...

    def add_log_line_ignored_listener(self, listener: MessageListener) -> None: ...

    async def start(self, log_directory: Path) -> None: ...

    async def stop(self, force: bool = False) -> bool: ...


class ReadResult(NamedTuple):
    lines: List[RawLogLine]
    ignored: List[str]
    found: Optional[str] = None


class LogFileReader:
    """Follows one log file across truncation and rotation."""

    def __init__(self, path: Path, source: str):
        self.path = Path(path)
        self.source = source
        self.file = None
        self.inode = None
        self.offset = 0
        self.first_open = True
        # A file that already exists when we start is history: skip to its end.
        # A file created after we started belongs to the current session.
        self.start_at_end: Optional[bool] = None
        self._day = datetime.date.today()
        self._last_time: Optional[datetime.datetime] = None

    def read_new_lines(self) -> ReadResult:
        """Read every complete line appended since the previous call."""
        try:
            current_inode = os.stat(self.path).st_ino
        except FileNotFoundError:
            if self.start_at_end is None:
                self.start_at_end = False
                logger.debug(f"{self.path} does not exist yet, waiting for it")
            return ReadResult([], [])
        if self.start_at_end is None:
            self.start_at_end = True

        found = None
        if self.file is None or self.inode != current_inode:
            rotated = self.inode is not None and self.inode != current_inode
            if self.file:
                self.file.close()
            self.file = open(self.path, 'r', encoding='utf-8', errors='replace')
            self.inode = current_inode

            if self.first_open:
                if self.start_at_end:
                    self.file.seek(0, 2)
                    self.offset = self.file.tell()
                else:
                    self.offset = 0
                self.first_open = False
                found = f"Found {self.path.name} at '{self.path}' (starting at offset {self.offset})"
            elif rotated:
                self.offset = 0
                logger.info(f"{self.path.name} rotated - starting from beginning of new file.")

        # Truncation keeps the inode on Windows; catch it by size
        self.file.seek(0, 2)
        current_size = self.file.tell()
        if self.offset > current_size:
            logger.warning(f"{self.path.name} truncated: offset {self.offset} > size {current_size}. Resetting to beginning.")
            self.offset = 0

        self.file.seek(self.offset)
        lines: List[RawLogLine] = []
        ignored: List[str] = []
        while True:
            text = self.file.readline()
            if not text or not text.endswith("\n"):
                # Nothing left, or a line Hearthstone is still writing
                break
            self.offset = self.file.tell()
            if not text.strip():
                continue

            raw = self._parse(text)
            if not raw.has_prefix:
                ignored.append(f"Ignoring line without a valid timestamp in {self.path.name}: {raw.line[:120]}")
                continue
            lines.append(raw)

        return ReadResult(lines, ignored, found)

    def _parse(self, text: str) -> RawLogLine:
        raw = RawLogLine.parse(text, source=self.source, day=self._day, fallback_time=self._last_time)
        if raw.has_prefix and self._last_time is not None and raw.time < self._last_time - DAY_ROLLOVER_GAP:
            self._day += datetime.timedelta(days=1)
            raw = RawLogLine.parse(text, source=self.source, day=self._day)
        if raw.has_prefix:
            self._last_time = raw.time
        return raw

    def close(self):
        if self.file:
            self.file.close()
            self.file = None


class LogWatcher:
    """
    Default LogTailer: polls one file per registered channel.

    Args:
        registry: Channel filters; each contributes "<Channel>.log"
        poll_interval: Seconds between read cycles
        stop_timeout: Seconds a graceful stop waits for the current cycle
    """

    def __init__(
        self,
        registry: Iterable[ChannelFilter] = DEFAULT_REGISTRY,
        poll_interval: float = DEFAULT_POLL_INTERVAL,
        stop_timeout: float = DEFAULT_STOP_TIMEOUT,
    ):
        self.registry = tuple(registry)
        self.poll_interval = poll_interval
        self.stop_timeout = stop_timeout
        self.readers: List[LogFileReader] = []

        self._new_lines_listeners: List[LinesListener] = []
        self._log_file_found_listeners: List[MessageListener] = []
        self._log_line_ignored_listeners: List[MessageListener] = []

        self._task: Optional[asyncio.Task] = None
        self._stop_event: Optional[asyncio.Event] = None

    def add_new_lines_listener(self, listener: LinesListener):
        self._new_lines_listeners.append(listener)

    def add_log_file_found_listener(self, listener: MessageListener):
        self._log_file_found_listeners.append(listener)

    def add_log_line_ignored_listener(self, listener: MessageListener):
        self._log_line_ignored_listeners.append(listener)

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    async def start(self, log_directory: Path):
        """Open readers under `log_directory` and start polling."""
        if self.running:
            logger.warning("LogWatcher already running")
            return
        log_directory = Path(log_directory)
        self.readers = [LogFileReader(log_directory / f.log_file_name, f.name) for f in self.registry]
        self._stop_event = asyncio.Event()
        self._task = asyncio.create_task(self._run(), name="hearthlog-watcher")
        logger.info(f"LogWatcher started: watching {len(self.readers)} file(s) in '{log_directory}'")

    async def stop(self, force: bool = False) -> bool:
        """
        Stop polling.

        Args:
            force: Cancel the polling task immediately instead of letting the
                current read cycle finish

        Returns:
            True if the watcher stopped within expectations
        """
        task = self._task
        if task is None:
            return True

        self._stop_event.set()
        completed = True
        if force:
            task.cancel()
            await asyncio.wait({task})
        else:
            done, _ = await asyncio.wait({task}, timeout=self.stop_timeout)
            if not done:
                logger.warning(f"LogWatcher did not stop within {self.stop_timeout}s, cancelling")
                task.cancel()
                await asyncio.wait({task})
                completed = False

        if not task.cancelled() and task.exception() is not None:
            logger.error(f"LogWatcher task failed: {task.exception()}")
            completed = False

        self._task = None
        logger.info("LogWatcher stopped")
        return completed

    def poll_once(self) -> List[RawLogLine]:
        """
        Run one read cycle over every file.

        Diagnostics are delivered to the listeners as they are found; the
        merged batch is returned, stably sorted by time.
        """
        batch: List[RawLogLine] = []
        for reader in self.readers:
            try:
                result = reader.read_new_lines()
            except OSError as e:
                logger.error(f"Error reading {reader.path}: {e}")
                continue
            except Exception as e:
                # One bad file must not end the polling task
                logger.error(f"Unexpected error reading {reader.path}: {e}", exc_info=True)
                continue
            if result.found:
                self._notify(self._log_file_found_listeners, result.found)
            for message in result.ignored:
                self._notify(self._log_line_ignored_listeners, message)
            batch.extend(result.lines)

        batch.sort(key=lambda line: line.time)
        return batch

    async def _run(self):
        try:
            while not self._stop_event.is_set():
                batch = self.poll_once()
                if batch:
                    self._notify(self._new_lines_listeners, batch)
                try:
                    await asyncio.wait_for(self._stop_event.wait(), timeout=self.poll_interval)
                except asyncio.TimeoutError:
                    pass
        finally:
            for reader in self.readers:
                reader.close()

    @staticmethod
    def _notify(listeners: Sequence[Callable], payload):
        for listener in list(listeners):
            try:
                listener(payload)
            except Exception as e:
                logger.error(f"Error in log watcher listener: {e}", exc_info=True)
