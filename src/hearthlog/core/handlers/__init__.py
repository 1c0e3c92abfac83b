"""
Per-channel reconstruction handlers.

ChannelHandlers groups one handler per channel so a dispatcher can be built
with any of them replaced:

    >>> handlers = ChannelHandlers(power=MyPowerHandler())
    >>> dispatcher = LogDispatcher(handlers=handlers)
"""

from dataclasses import dataclass, field

from .base import LineHandler, parse_entity_id
from .power import PowerHandler
from .game_info import GameInfoHandler
from .choices import ChoicesHandler
from .arena import ArenaHandler
from .loading_screen import LoadingScreenHandler
from .achievements import AchievementsHandler


@dataclass
class ChannelHandlers:
    """The handler set used by one dispatcher."""

    power: LineHandler = field(default_factory=PowerHandler)
    game_info: LineHandler = field(default_factory=GameInfoHandler)
    choices: ChoicesHandler = field(default_factory=ChoicesHandler)
    arena: LineHandler = field(default_factory=ArenaHandler)
    loading_screen: LoadingScreenHandler = field(default_factory=LoadingScreenHandler)
    achievements: LineHandler = field(default_factory=AchievementsHandler)


__all__ = [
    "ChannelHandlers",
    "LineHandler",
    "parse_entity_id",
    "PowerHandler",
    "GameInfoHandler",
    "ChoicesHandler",
    "ArenaHandler",
    "LoadingScreenHandler",
    "AchievementsHandler",
]
