"""
Domain models for the log pipeline.

Pure data: log line value objects and the GameSession aggregate. No I/O,
no parsing of handler grammars, no presentation.
"""

from .log_lines import (
    Channel,
    PowerLineKind,
    RawLogLine,
    LogLine,
)
from .game_state import (
    GameClock,
    Entity,
    PowerState,
    GameInfoState,
    Choice,
    ChoiceState,
    ArenaState,
    SceneState,
    AchievementsState,
    GameSession,
)

__all__ = [
    "Channel",
    "PowerLineKind",
    "RawLogLine",
    "LogLine",
    "GameClock",
    "Entity",
    "PowerState",
    "GameInfoState",
    "Choice",
    "ChoiceState",
    "ArenaState",
    "SceneState",
    "AchievementsState",
    "GameSession",
]
