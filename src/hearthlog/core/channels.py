"""
Channel filter registry and classifier.

Every log line is assigned to at most one Channel. A ChannelFilter matches
a line when its content starts with any of the filter's prefixes or contains
any of its substrings. Filters are evaluated in registry order and the first
match wins, so the order of DEFAULT_REGISTRY is part of the contract.

Lines read from a channel's own file (RawLogLine.source set) are only tested
against that channel's filter; a filter without patterns accepts every line
of its own file. Lines from a merged stream (no source) are tested against
every filter that has patterns.
"""

import logging
from dataclasses import dataclass
from typing import Iterable, Optional, Sequence, Tuple

from .domain.log_lines import Channel, LogLine, PowerLineKind, RawLogLine

logger = logging.getLogger(__name__)

# Power line prefixes. Choice lines arrive across several lines and are
# handed to the choices handler as one unit.
GAME_STATE_PREFIX = "GameState."
ENTITY_CHOICES_PREFIX = "GameState.DebugPrintEntityChoices"
ENTITIES_CHOSEN_PREFIX = "GameState.DebugPrintEntitiesChosen"
GAME_INFO_PREFIX = "GameState.DebugPrintGame"
END_TASK_LIST_PREFIX = "PowerProcessor.EndCurrentTaskList"
POWER_TASK_LIST_PREFIX = "PowerTaskList.DebugPrintPower"


@dataclass(frozen=True)
class ChannelFilter:
    """
    Match rules for one channel.

    Attributes:
        channel: Channel the rules classify into
        starts_with: Content prefixes that select the line
        contains: Substrings that select the line
    """

    channel: Channel
    starts_with: Tuple[str, ...] = ()
    contains: Tuple[str, ...] = ()

    @property
    def name(self) -> str:
        return self.channel.value

    @property
    def log_file_name(self) -> str:
        """File Hearthstone writes this channel to, e.g. "Power.log"."""
        return f"{self.name}.log"

    @property
    def has_patterns(self) -> bool:
        return bool(self.starts_with or self.contains)

    def matches(self, content: str) -> bool:
        """Check the content against the prefix and substring rules."""
        if content.startswith(self.starts_with):
            return True
        return any(pattern in content for pattern in self.contains)


ACHIEVEMENTS_FILTER = ChannelFilter(Channel.ACHIEVEMENTS)

POWER_FILTER = ChannelFilter(
    Channel.POWER,
    starts_with=(POWER_TASK_LIST_PREFIX, GAME_STATE_PREFIX, END_TASK_LIST_PREFIX),
    contains=("Begin Spectating", "Start Spectator", "End Spectator"),
)

ARENA_FILTER = ChannelFilter(Channel.ARENA)

LOADING_SCREEN_FILTER = ChannelFilter(
    Channel.LOADING_SCREEN,
    starts_with=(
        "LoadingScreen.OnSceneLoaded",
        "Gameplay",
        "LoadingScreen.OnScenePreUnload",
        "MulliganManager.HandleGameStart",
    ),
)

DEFAULT_REGISTRY: Tuple[ChannelFilter, ...] = (
    ACHIEVEMENTS_FILTER,
    POWER_FILTER,
    ARENA_FILTER,
    LOADING_SCREEN_FILTER,
)


def power_line_kind(content: str) -> PowerLineKind:
    """Resolve the sub-kind of a Power channel line from its content."""
    if content.startswith(GAME_STATE_PREFIX):
        if content.startswith((ENTITY_CHOICES_PREFIX, ENTITIES_CHOSEN_PREFIX)):
            return PowerLineKind.CHOICE
        if content.startswith(GAME_INFO_PREFIX):
            return PowerLineKind.GAME_INFO
        return PowerLineKind.GAME_STATE
    if content.startswith(END_TASK_LIST_PREFIX):
        return PowerLineKind.TASK_LIST_END
    return PowerLineKind.POWER


class ChannelClassifier:
    """
    Assigns raw lines to channels using an ordered registry.

    classify() is pure: the result depends only on the line and the registry
    given at construction.
    """

    def __init__(self, registry: Iterable[ChannelFilter] = DEFAULT_REGISTRY):
        self._registry: Tuple[ChannelFilter, ...] = tuple(registry)

        seen = set()
        for channel_filter in self._registry:
            if channel_filter.channel in seen:
                raise ValueError(f"Channel {channel_filter.name} is registered more than once")
            seen.add(channel_filter.channel)

        self._by_name = {f.name: f for f in self._registry}
        logger.debug(f"Channel registry: {[f.name for f in self._registry]}")

    @property
    def registry(self) -> Sequence[ChannelFilter]:
        return self._registry

    def classify(self, line: RawLogLine) -> Optional[Channel]:
        """
        Determine the channel a line belongs to.

        Args:
            line: Raw line from the tailer

        Returns:
            The matching Channel, or None if no registered filter accepts it
        """
        if line.source is not None:
            channel_filter = self._by_name.get(line.source)
            if channel_filter is None:
                return None
            if not channel_filter.has_patterns or channel_filter.matches(line.content):
                return channel_filter.channel
            return None

        for channel_filter in self._registry:
            if channel_filter.has_patterns and channel_filter.matches(line.content):
                return channel_filter.channel
        return None

    def to_log_line(self, line: RawLogLine) -> Optional[LogLine]:
        """Classify and tag a raw line; None for a classification miss."""
        channel = self.classify(line)
        if channel is None:
            return None
        kind = power_line_kind(line.content) if channel is Channel.POWER else None
        return LogLine.from_raw(line, channel, kind)
