"""
Base class and shared helpers for per-channel reconstruction handlers.

A handler receives one classified line and the region of the GameSession it
owns. It mutates that region and returns nothing. A line that belongs to the
handler's channel but not to its grammar is skipped by raising ParseSkip (or
simply ignored); the dispatcher never lets a single line abort a batch.
"""

import re
from abc import ABC, abstractmethod
from typing import Any, Optional

from ..domain.log_lines import LogLine
from ..errors import ParseSkip

# "[entityName=Fireball id=34 zone=HAND ...]" -> 34
BRACKETED_ENTITY_ID = re.compile(r'\[.*?\bid=(?P<id>\d+)')


def parse_entity_id(text: str) -> Optional[int]:
    """
    Extract an entity id from a bracketed entity description or a bare number.

    Returns None for named entities (GameEntity, player BattleTags).
    """
    text = text.strip()
    match = BRACKETED_ENTITY_ID.match(text)
    if match:
        return int(match.group("id"))
    if text.isdigit():
        return int(text)
    return None


class LineHandler(ABC):
    """Uniform contract for single-line handlers."""

    name: str = "handler"

    @abstractmethod
    def handle(self, line: LogLine, state: Any) -> None:
        """
        Apply one line to the handler's state region.

        Raises:
            ParseSkip: the line is not part of this handler's grammar
        """


def skip(line: LogLine, reason: str = "unrecognised line") -> ParseSkip:
    """Build a ParseSkip carrying a short excerpt of the offending line."""
    return ParseSkip(f"{reason}: {line.content[:80]}")
