"""
Lifecycle controller for the log pipeline.

PipelineController wires a tailer to a LogDispatcher and owns the session
lifecycle:

    IDLE -> STARTING -> RUNNING -> STOPPING_COOPERATIVE / STOPPING_FORCED -> IDLE

start() locates the game first if the configured directory is missing, and
stop() waits for the tailer to confirm shutdown, however many callers ask.
A failed permission check reported by the loading screen handler forces a
stop, waits for the host window to be on screen and then shows a blocking
remediation message; the caller has to start the pipeline again afterwards.
"""

import asyncio
import logging
from enum import Enum, auto
from typing import Optional

import psutil

from ..config.config_manager import TrackerConfig
from .discovery import DirectoryResolver, ProcessLookup, find_game_directory, find_game_process, resolve_install_directory
from .dispatch import LogDispatcher
from .domain.game_state import GameSession
from .errors import DiscoveryCancelled, GameDirectoryNotFound
from .events import EventBus, EventType, get_event_bus
from .host_window import ConsoleHostWindow, HostWindow
from .log_watcher import LogTailer, LogWatcher
from .polling import poll_until

logger = logging.getLogger(__name__)

EVENT_SOURCE = "PipelineController"

PERMISSION_MISMATCH_TITLE = "Uneven permissions"
PERMISSION_MISMATCH_MESSAGE = (
    "It appears that Hearthstone (Battle.net) and the tracker do not have the same permissions.\n\n"
    "Please run both as administrator or both as the local user.\n\n"
    "If you are unsure, run the tracker as administrator."
)


class LifecycleState(Enum):
    IDLE = auto()
    STARTING = auto()
    RUNNING = auto()
    STOPPING_COOPERATIVE = auto()
    STOPPING_FORCED = auto()

    @property
    def is_stopping(self) -> bool:
        return self in {LifecycleState.STOPPING_COOPERATIVE, LifecycleState.STOPPING_FORCED}


class PipelineController:
    """
    Starts and stops the pipeline and recovers from permission mismatches.

    Args:
        config: Tracker configuration (game directory, intervals, ...)
        watcher: Tailer delivering batches (default: LogWatcher over the dispatcher's registry)
        dispatcher: Dispatch loop (default: LogDispatcher with default handlers)
        host_window: Window used for the blocking recovery message
        event_bus: Bus for lifecycle, diagnostic and error events
        process_lookup: Finds the running game process
        directory_resolver: Maps the game process to its installation directory
    """

    def __init__(
        self,
        config: TrackerConfig,
        watcher: Optional[LogTailer] = None,
        dispatcher: Optional[LogDispatcher] = None,
        host_window: Optional[HostWindow] = None,
        event_bus: Optional[EventBus] = None,
        process_lookup: Optional[ProcessLookup] = None,
        directory_resolver: DirectoryResolver = resolve_install_directory,
    ):
        self.config = config
        self.event_bus = event_bus or get_event_bus()
        self.dispatcher = dispatcher or LogDispatcher(event_bus=self.event_bus)
        self.watcher = watcher or LogWatcher(
            self.dispatcher.classifier.registry,
            poll_interval=config.tail_poll_interval,
            stop_timeout=config.stop_timeout,
        )
        self.host_window = host_window or ConsoleHostWindow()
        self.process_lookup = process_lookup or (lambda: find_game_process(self.config.process_names))
        self.directory_resolver = directory_resolver

        self._state = LifecycleState.IDLE
        self._discovery_cancel: Optional[asyncio.Event] = None
        self._start_settled: Optional[asyncio.Event] = None
        self._stop_task: Optional[asyncio.Task] = None
        self._recovery_task: Optional[asyncio.Task] = None
        self._game_process: Optional[psutil.Process] = None

        self.watcher.add_new_lines_listener(self.dispatcher.process_batch)
        self.watcher.add_log_file_found_listener(self._on_log_file_found)
        self.watcher.add_log_line_ignored_listener(self._on_log_line_ignored)

        loading_screen = self.dispatcher.handlers.loading_screen
        if loading_screen.permission_check is None:
            loading_screen.permission_check = self.check_permissions
        loading_screen.add_permission_failed_listener(self.on_permission_check_failed)

    @property
    def state(self) -> LifecycleState:
        return self._state

    @property
    def session(self) -> Optional[GameSession]:
        return self.dispatcher.session

    @property
    def recovery_task(self) -> Optional[asyncio.Task]:
        """The running permission-mismatch recovery, if any."""
        return self._recovery_task

    async def start(self, session: Optional[GameSession] = None) -> bool:
        """
        Start a new session.

        Waits for the game process first if the configured installation
        directory does not exist. That wait is indefinite; stop() or task
        cancellation ends it.

        Args:
            session: Aggregate to reconstruct into (reset before use). A new
                GameSession is created if None.

        Returns:
            True once the tailer is attached, False if discovery failed or was
            cancelled or the pipeline was not idle
        """
        if self._state is not LifecycleState.IDLE:
            logger.warning(f"Start ignored: pipeline is {self._state.name}")
            return False

        self._set_state(LifecycleState.STARTING)
        cancel = self._discovery_cancel = asyncio.Event()
        settled = self._start_settled = asyncio.Event()
        try:
            return await self._start(session, cancel)
        except (asyncio.CancelledError, Exception):
            self._set_state(LifecycleState.IDLE)
            raise
        finally:
            self._discovery_cancel = None
            settled.set()

    async def _start(self, session: Optional[GameSession], cancel: asyncio.Event) -> bool:
        try:
            if not self.config.game_directory_exists:
                directory = await find_game_directory(
                    lookup=self.process_lookup,
                    resolve=self.directory_resolver,
                    poll_interval=self.config.discovery_poll_interval,
                    cancel=cancel,
                )
                self.config.set_game_directory(directory)
            # Scanned once per session, off the event loop
            self._game_process = await asyncio.get_running_loop().run_in_executor(None, self.process_lookup)
        except GameDirectoryNotFound as e:
            self._report_error(str(e), e.remediation)
            self._set_state(LifecycleState.IDLE)
            return False
        except DiscoveryCancelled:
            logger.info("Start cancelled while waiting for Hearthstone")
            self._set_state(LifecycleState.IDLE)
            return False

        if cancel.is_set():
            logger.info("Start cancelled before the tailer was attached")
            self._game_process = None
            self._set_state(LifecycleState.IDLE)
            return False

        session = session or GameSession()
        session.reset()
        self.dispatcher.attach(session)

        log_directory = self.config.log_directory
        logger.info(f"Using Hearthstone log directory '{log_directory}'")
        await self.watcher.start(log_directory)
        self._set_state(LifecycleState.RUNNING)
        return True

    async def stop(self, force: bool = False) -> bool:
        """
        Stop the running session.

        Sets the dispatcher's stop flag (checked between lines), waits for the
        tailer to shut down, then flushes pending choices and detaches the
        session. Every caller returns only once the pipeline is back to IDLE:

        - while STARTING, discovery is cancelled and start() is awaited
        - while a stop is in flight, that stop is awaited; a forced call
          escalates a cooperative one

        Args:
            force: Stop the tailer immediately instead of letting its current
                read finish

        Returns:
            Whether shutdown completed within expectations
        """
        if self._state is LifecycleState.IDLE:
            return True
        if self._state is LifecycleState.STARTING:
            settled = self._start_settled
            if self._discovery_cancel is not None:
                self._discovery_cancel.set()
            await settled.wait()
            # start() either gave up or got as far as RUNNING
            return await self.stop(force)
        if self._state.is_stopping:
            return await self._join_stop(force)

        self._set_state(LifecycleState.STOPPING_FORCED if force else LifecycleState.STOPPING_COOPERATIVE)
        self.dispatcher.request_stop()
        self._stop_task = asyncio.get_running_loop().create_task(self._finish_stop(force))
        return await asyncio.shield(self._stop_task)

    async def _finish_stop(self, force: bool) -> bool:
        stopped = False
        try:
            stopped = await self.watcher.stop(force)
        finally:
            self.dispatcher.end_session()
            self._game_process = None
            self._set_state(LifecycleState.IDLE)

        if not stopped:
            logger.warning("Log watcher did not shut down cleanly")
        return stopped

    async def _join_stop(self, force: bool) -> bool:
        task = self._stop_task
        if task is None or task.done():
            return True
        if force and self._state is LifecycleState.STOPPING_COOPERATIVE:
            logger.info("Escalating cooperative stop to a forced stop")
            self._set_state(LifecycleState.STOPPING_FORCED)
            forced = await self.watcher.stop(True)
            return await asyncio.shield(task) and forced
        logger.debug("Stop already in progress, waiting for it")
        return await asyncio.shield(task)

    def check_permissions(self) -> bool:
        """
        Check that the game process can be inspected with our permissions.

        Uses the process found when the session started and only scans again
        if that one has gone away. No process means nothing to compare
        against, which passes.
        """
        proc = self._game_process
        if proc is None or not proc.is_running():
            proc = self._game_process = self.process_lookup()
        if proc is None:
            return True
        try:
            proc.exe()
        except psutil.AccessDenied:
            return False
        except (psutil.NoSuchProcess, psutil.ZombieProcess):
            return True
        return True

    def on_permission_check_failed(self):
        """
        Permission-failure listener: stop now, then recover asynchronously.

        The dispatcher's stop flag is set before returning so the rest of the
        batch being processed is not applied.
        """
        self.dispatcher.request_stop()
        self.event_bus.emit_simple(EventType.PERMISSION_MISMATCH, source=EVENT_SOURCE)

        if self._recovery_task is not None and not self._recovery_task.done():
            return
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            logger.error("Permission check failed outside the event loop; dispatcher stopped only")
            return
        self._recovery_task = loop.create_task(self.recover_from_permission_mismatch())

    async def recover_from_permission_mismatch(self):
        """Forced stop, wait for the host window, then show the remediation message."""
        logger.warning("Hearthstone and the tracker run with different permissions, stopping")
        await self.stop(force=True)
        self.host_window.activate()
        await poll_until(self.host_window.is_ready, self.config.window_poll_interval)
        await self.host_window.show_message(PERMISSION_MISMATCH_TITLE, PERMISSION_MISMATCH_MESSAGE)

    def _set_state(self, state: LifecycleState):
        previous, self._state = self._state, state
        if previous is not state:
            logger.debug(f"Lifecycle {previous.name} -> {state.name}")
            self.event_bus.emit_simple(
                EventType.LIFECYCLE_CHANGED,
                {"previous": previous, "state": state},
                source=EVENT_SOURCE,
            )

    def _report_error(self, message: str, remediation: str):
        logger.error(f"{message}. {remediation}")
        self.event_bus.emit_simple(
            EventType.ERROR_OCCURRED,
            {"message": message, "remediation": remediation},
            source=EVENT_SOURCE,
        )

    def _on_log_file_found(self, message: str):
        logger.info(message)
        self.event_bus.emit_simple(EventType.LOG_FILE_FOUND, message, source=EVENT_SOURCE)

    def _on_log_line_ignored(self, message: str):
        logger.warning(message)
        self.event_bus.emit_simple(EventType.LOG_LINE_IGNORED, message, source=EVENT_SOURCE)
