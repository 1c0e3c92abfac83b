"""
Log line value objects.

Hearthstone's Unity logs prefix every line with a level and a time of day:

    D 21:45:03.1233242 GameState.DebugPrintPower() - CREATE_GAME

A RawLogLine is what the tailer reads; a LogLine is a RawLogLine after the
classifier has tagged it with a Channel (and, for Power lines, a
PowerLineKind). Both are immutable.
"""

import datetime
import re
from dataclasses import dataclass
from enum import Enum, auto
from typing import Optional

# Level letter, time of day with up to 7 fractional digits, then the content
UNITY_PREFIX_PATTERN = re.compile(
    r'^(?P<level>[DIWE]) (?P<time>\d{1,2}:\d{2}:\d{2}(?:\.\d+)?) (?P<content>.*)$'
)


class Channel(Enum):
    """Logical channels of the log stream. Values match the log file stems."""

    ACHIEVEMENTS = "Achievements"
    POWER = "Power"
    ARENA = "Arena"
    LOADING_SCREEN = "LoadingScreen"

    @classmethod
    def from_name(cls, name: str) -> Optional["Channel"]:
        """Look up a channel by its log name ("Power", "LoadingScreen", ...)."""
        for channel in cls:
            if channel.value == name:
                return channel
        return None


class PowerLineKind(Enum):
    """Sub-classification of Power channel lines, resolved once at classification."""

    CHOICE = auto()         # GameState.DebugPrintEntityChoices / EntitiesChosen
    TASK_LIST_END = auto()  # PowerProcessor.EndCurrentTaskList
    GAME_INFO = auto()      # GameState.DebugPrintGame
    GAME_STATE = auto()     # any other GameState. line
    POWER = auto()          # PowerTaskList lines, spectator markers

    @property
    def is_game_state(self) -> bool:
        """Lines written by the GameState logger (recorded in the power log)."""
        return self in {PowerLineKind.CHOICE, PowerLineKind.GAME_INFO, PowerLineKind.GAME_STATE}

    @property
    def continues_choice(self) -> bool:
        """Lines that open or continue a choice sub-sequence."""
        return self in {PowerLineKind.CHOICE, PowerLineKind.TASK_LIST_END}


def _parse_time_of_day(text: str) -> datetime.time:
    clock, _, fraction = text.partition(".")
    hours, minutes, seconds = (int(part) for part in clock.split(":"))
    # Unity writes 7 fractional digits, datetime holds 6
    microseconds = int(fraction[:6].ljust(6, "0")) if fraction else 0
    return datetime.time(hours, minutes, seconds, microseconds)


@dataclass(frozen=True)
class RawLogLine:
    """
    A line as read from a log file, before classification.

    Attributes:
        time: Timestamp parsed from the Unity prefix (or a fallback)
        content: Text after the prefix, e.g. "GameState.DebugPrintGame() - ..."
        line: The full stripped line as read
        source: Channel name of the file the line came from, None for a merged stream
        has_prefix: Whether the Unity level/time prefix was present
    """

    time: datetime.datetime
    content: str
    line: str
    source: Optional[str] = None
    has_prefix: bool = True

    @classmethod
    def parse(
        cls,
        line: str,
        source: Optional[str] = None,
        day: Optional[datetime.date] = None,
        fallback_time: Optional[datetime.datetime] = None,
    ) -> "RawLogLine":
        """
        Parse a raw Unity log line.

        Args:
            line: Text of the line (trailing newline allowed)
            source: Channel name of the originating file
            day: Calendar day to attach to the time-of-day prefix (default: today)
            fallback_time: Time used when the line has no prefix (default: now)

        Returns:
            RawLogLine with the prefix split off. A prefix whose time is out
            of range (e.g. "D 99:00:00.0") counts as no prefix.
        """
        stripped = line.strip()
        match = UNITY_PREFIX_PATTERN.match(stripped)
        time_of_day = None
        if match is not None:
            try:
                time_of_day = _parse_time_of_day(match.group("time"))
            except ValueError:
                time_of_day = None
        if time_of_day is None:
            return cls(
                time=fallback_time or datetime.datetime.now(),
                content=stripped,
                line=stripped,
                source=source,
                has_prefix=False,
            )

        time = datetime.datetime.combine(day or datetime.date.today(), time_of_day)
        return cls(time=time, content=match.group("content"), line=stripped, source=source)


@dataclass(frozen=True)
class LogLine:
    """A classified line: the unit the dispatch loop and handlers work on."""

    channel: Channel
    time: datetime.datetime
    line: str
    content: str
    kind: Optional[PowerLineKind] = None

    @classmethod
    def from_raw(cls, raw: RawLogLine, channel: Channel,
                 kind: Optional[PowerLineKind] = None) -> "LogLine":
        return cls(channel=channel, time=raw.time, line=raw.line, content=raw.content, kind=kind)
