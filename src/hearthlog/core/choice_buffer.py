"""
Choice sub-sequence buffer.

Hearthstone reports a single choice (mulligan, discover, ...) across several
consecutive GameState lines. They have to reach the choices handler together,
so the dispatch loop feeds Power lines through this two-state machine:

    IDLE         --choice line-->      ACCUMULATING (line appended)
    ACCUMULATING --choice line-->      ACCUMULATING (line appended)
    ACCUMULATING --non-choice line-->  IDLE         (buffer flushed as one call)
    IDLE         --non-choice line-->  IDLE         (no buffer interaction)

flush() is also called explicitly on session teardown.
"""

import logging
from enum import Enum, auto
from typing import Callable, List, Sequence, Tuple

from .domain.log_lines import LogLine

logger = logging.getLogger(__name__)

FlushCallback = Callable[[Sequence[LogLine]], None]


class ChoiceBufferState(Enum):
    IDLE = auto()
    ACCUMULATING = auto()


class ChoiceBuffer:
    """Accumulates choice lines and hands them to a callback as a unit."""

    def __init__(self, on_flush: FlushCallback):
        self._on_flush = on_flush
        self._lines: List[LogLine] = []

    @property
    def state(self) -> ChoiceBufferState:
        return ChoiceBufferState.ACCUMULATING if self._lines else ChoiceBufferState.IDLE

    @property
    def lines(self) -> Tuple[LogLine, ...]:
        return tuple(self._lines)

    def __len__(self) -> int:
        return len(self._lines)

    def observe(self, line: LogLine, is_choice: bool) -> bool:
        """
        Apply the single transition rule for one line of the buffered channel.

        Args:
            line: The incoming line
            is_choice: Whether the line opens or continues a choice sub-sequence

        Returns:
            True if the line was buffered (the caller must not process it further),
            False if the caller should continue normal processing of the line
        """
        if is_choice:
            self._lines.append(line)
            return True
        self.flush()
        return False

    def flush(self) -> bool:
        """
        Deliver the buffered lines to the callback and return to IDLE.

        The buffer is emptied before the callback runs, so a failing callback
        cannot cause the same lines to be delivered twice.

        Returns:
            True if anything was flushed
        """
        if not self._lines:
            return False
        pending, self._lines = self._lines, []
        logger.debug(f"Flushing {len(pending)} choice line(s)")
        self._on_flush(pending)
        return True

    def clear(self) -> None:
        """Drop buffered lines without delivering them (new session)."""
        if self._lines:
            logger.debug(f"Discarding {len(self._lines)} stale choice line(s)")
        self._lines = []
