"""
Dispatch loop: applies classified log lines to a GameSession in strict order.

For every line of a batch, in order:

1. stop if a stop was requested (the rest of the batch is dropped)
2. classify; unmatched lines are reported to the diagnostic sink and dropped
3. advance the game clock to the line's timestamp
4. route to the channel's handler. Power lines first pass through the
   choice buffer; GameState lines are recorded in the power log and
   DebugPrintGame lines additionally reach the game-info handler
5. after a batch that applied at least one line, run the export hooks

A failing handler never aborts a batch: ParseSkip is ignored and any other
exception is logged with its traceback.
"""

import logging
import threading
from typing import Any, Callable, List, Optional, Sequence

from .channels import ChannelClassifier
from .choice_buffer import ChoiceBuffer
from .domain.game_state import GameSession
from .domain.log_lines import Channel, LogLine, PowerLineKind, RawLogLine
from .errors import ParseSkip
from .events import EventBus, EventType, get_event_bus
from .handlers import ChannelHandlers
from .monitoring import PerformanceMonitor, get_monitor

logger = logging.getLogger(__name__)

EVENT_SOURCE = "LogDispatcher"

ExportHook = Callable[[GameSession], None]
DiagnosticSink = Callable[[str], None]


class LogDispatcher:
    """
    Routes batches of raw lines through classifier, choice buffer and handlers.

    The dispatcher owns the attached GameSession and the choice buffer while
    a batch is running. process_batch() is serialised with a lock, so batches
    delivered from several threads are still applied one after another.

    Args:
        classifier: Channel classifier (default registry if None)
        handlers: Handler set (default handlers if None)
        event_bus: Bus for per-channel line events and diagnostics
        monitor: Timing monitor for batches and handler calls
        on_line_ignored: Diagnostic sink for classification misses. Defaults
            to a debug log plus a LOG_LINE_IGNORED event.
    """

    def __init__(
        self,
        classifier: Optional[ChannelClassifier] = None,
        handlers: Optional[ChannelHandlers] = None,
        event_bus: Optional[EventBus] = None,
        monitor: Optional[PerformanceMonitor] = None,
        on_line_ignored: Optional[DiagnosticSink] = None,
    ):
        self.classifier = classifier or ChannelClassifier()
        self.handlers = handlers or ChannelHandlers()
        self.event_bus = event_bus or get_event_bus()
        self.monitor = monitor or get_monitor()
        self._on_line_ignored = on_line_ignored or self._report_ignored

        self._session: Optional[GameSession] = None
        self._stop = threading.Event()
        self._batch_lock = threading.RLock()
        self._choices = ChoiceBuffer(self._flush_choices)
        self._export_hooks: List[ExportHook] = []

    @property
    def session(self) -> Optional[GameSession]:
        return self._session

    @property
    def choice_buffer(self) -> ChoiceBuffer:
        return self._choices

    @property
    def stop_requested(self) -> bool:
        return self._stop.is_set()

    def attach(self, session: GameSession):
        """Start routing batches into `session`. Clears the stop flag."""
        with self._batch_lock:
            self._choices.clear()
            self._session = session
            self._stop.clear()
        logger.debug("Game session attached to dispatcher")

    def end_session(self) -> Optional[GameSession]:
        """
        Tear down the current session: flush pending choices and detach.

        Returns:
            The detached session, or None if none was attached
        """
        with self._batch_lock:
            session = self._session
            if session is not None:
                self._choices.flush()
            self._session = None
        return session

    def request_stop(self):
        """Ask the loop to stop at the next line boundary. Safe from any thread."""
        self._stop.set()

    def add_export_hook(self, hook: ExportHook):
        """Register a callable run with the session after each applied batch."""
        self._export_hooks.append(hook)

    def remove_export_hook(self, hook: ExportHook):
        if hook in self._export_hooks:
            self._export_hooks.remove(hook)

    def process_batch(self, lines: Sequence[RawLogLine]) -> int:
        """
        Apply a batch of lines in order.

        Args:
            lines: Raw lines in arrival order

        Returns:
            Number of lines consumed before the batch ended or a stop was observed
        """
        with self._batch_lock:
            session = self._session
            if session is None:
                if lines:
                    logger.debug(f"Dropping batch of {len(lines)} line(s): no session attached")
                return 0

            processed = 0
            with self.monitor.measure("dispatch.batch"):
                for raw in lines:
                    if self._stop.is_set():
                        logger.debug(f"Stop requested, {len(lines) - processed} line(s) left unprocessed")
                        break
                    self._dispatch(raw, session)
                    processed += 1

            if processed:
                self._run_export_hooks(session)
            return processed

    def _dispatch(self, raw: RawLogLine, session: GameSession):
        line = self.classifier.to_log_line(raw)
        if line is None:
            self._on_line_ignored(f"Ignoring line with no matching channel: {raw.line[:120]}")
            return

        session.clock.time = line.time

        if line.channel is Channel.POWER:
            self._dispatch_power(line, session)
        elif line.channel is Channel.ACHIEVEMENTS:
            self._invoke(self.handlers.achievements, line, session.achievements)
            self.event_bus.emit_simple(EventType.ACHIEVEMENTS_LOG_LINE, line.line, source=EVENT_SOURCE)
        elif line.channel is Channel.ARENA:
            self._invoke(self.handlers.arena, line, session.arena)
            self.event_bus.emit_simple(EventType.ARENA_LOG_LINE, line.line, source=EVENT_SOURCE)
        elif line.channel is Channel.LOADING_SCREEN:
            self._invoke(self.handlers.loading_screen, line, session.scene)

    def _dispatch_power(self, line: LogLine, session: GameSession):
        kind = line.kind or PowerLineKind.POWER

        if kind.is_game_state:
            session.power_log.append(line.line)

        if self._choices.observe(line, kind.continues_choice):
            return

        if kind is PowerLineKind.GAME_INFO:
            self._invoke(self.handlers.game_info, line, session.game_info)
        elif kind is PowerLineKind.POWER:
            self._invoke(self.handlers.power, line, session.power)
            self.event_bus.emit_simple(EventType.POWER_LOG_LINE, line.line, source=EVENT_SOURCE)

    def _invoke(self, handler: Any, line: LogLine, state: Any):
        name = getattr(handler, "name", type(handler).__name__)
        with self.monitor.measure(f"handler.{name}"):
            try:
                handler.handle(line, state)
            except ParseSkip as e:
                logger.debug(f"{name} skipped line: {e}")
            except Exception as e:
                logger.error(f"Handler '{name}' failed on line '{line.line[:120]}': {e}", exc_info=True)

    def _flush_choices(self, lines: Sequence[LogLine]):
        session = self._session
        if session is None:
            return
        handler = self.handlers.choices
        with self.monitor.measure("handler.choices"):
            try:
                handler.handle(lines, session.choices)
            except ParseSkip as e:
                logger.debug(f"choices skipped sub-sequence: {e}")
            except Exception as e:
                logger.error(f"Choices handler failed on {len(lines)} line(s): {e}", exc_info=True)

    def _run_export_hooks(self, session: GameSession):
        with self.monitor.measure("dispatch.export"):
            for hook in list(self._export_hooks):
                try:
                    hook(session)
                except Exception as e:
                    logger.error(f"Error in export hook: {e}", exc_info=True)

    def _report_ignored(self, message: str):
        logger.debug(message)
        self.event_bus.emit_simple(EventType.LOG_LINE_IGNORED, message, source=EVENT_SOURCE)
