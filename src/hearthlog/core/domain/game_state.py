"""
Domain model for a reconstructed Hearthstone game session.

GameSession is the aggregate the dispatch loop mutates. It is split into
regions, one per channel handler, so each handler only ever receives the
part of the state it owns:

- PowerState        <- PowerHandler
- GameInfoState     <- GameInfoHandler
- ChoiceState       <- ChoicesHandler
- ArenaState        <- ArenaHandler
- SceneState        <- LoadingScreenHandler
- AchievementsState <- AchievementsHandler

The clock and the power log belong to the dispatch loop itself.

These models are plain dataclasses with no parsing or presentation logic.
Two sessions that processed the same lines compare equal.
"""

import datetime
from dataclasses import dataclass, field, asdict
from typing import Any, Dict, List, Optional

GAME_ENTITY_NAME = "GameEntity"
GAMEPLAY_MODE = "GAMEPLAY"


@dataclass
class GameClock:
    """Game time as of the last processed line."""

    time: Optional[datetime.datetime] = None


@dataclass
class Entity:
    """An entity created by FULL_ENTITY and updated by TAG_CHANGE."""

    id: int
    card_id: str = ""
    tags: Dict[str, str] = field(default_factory=dict)


@dataclass
class PowerState:
    """Region owned by the Power handler."""

    games_created: int = 0
    entities: Dict[int, Entity] = field(default_factory=dict)
    # Tag changes addressed by name (GameEntity, player BattleTags)
    named_tags: Dict[str, Dict[str, str]] = field(default_factory=dict)
    block_depth: int = 0
    spectating: bool = False

    @property
    def current_turn(self) -> int:
        """Turn number from the game entity's TURN tag (0 before the first turn)."""
        value = self.named_tags.get(GAME_ENTITY_NAME, {}).get("TURN", "0")
        try:
            return int(value)
        except ValueError:
            return 0


@dataclass
class GameInfoState:
    """Region owned by the game-info handler (GameState.DebugPrintGame)."""

    build_number: Optional[int] = None
    game_type: str = ""
    format_type: str = ""
    scenario_id: Optional[int] = None
    players: Dict[int, str] = field(default_factory=dict)  # PlayerID -> PlayerName


@dataclass
class Choice:
    """A single choice presented to a player (mulligan, discover, ...)."""

    id: int
    player: str = ""
    choice_type: str = ""
    task_list: Optional[int] = None
    count_min: int = 0
    count_max: int = 0
    source: str = ""
    entities: List[int] = field(default_factory=list)
    chosen: List[int] = field(default_factory=list)


@dataclass
class ChoiceState:
    """Region owned by the choices handler."""

    pending: Dict[int, Choice] = field(default_factory=dict)
    resolved: List[Choice] = field(default_factory=list)
    flushes: int = 0
    task_lists_ended: int = 0


@dataclass
class ArenaState:
    """Region owned by the Arena (draft) handler."""

    deck_id: Optional[int] = None
    hero: str = ""
    picks: List[str] = field(default_factory=list)  # card ids in pick order


@dataclass
class SceneState:
    """Region owned by the loading-screen handler."""

    previous_mode: str = ""
    current_mode: str = ""
    game_starts: int = 0
    permission_check_failures: int = 0

    @property
    def in_gameplay(self) -> bool:
        return self.current_mode == GAMEPLAY_MODE


@dataclass
class AchievementsState:
    """Region owned by the achievements handler."""

    lines_seen: int = 0
    last_line: str = ""


@dataclass
class GameSession:
    """
    Aggregate for one Start-to-Stop lifetime of the pipeline.

    The dispatch loop owns the session while a batch is being processed;
    external readers (export hooks) only see it between batches.
    """

    clock: GameClock = field(default_factory=GameClock)
    power_log: List[str] = field(default_factory=list)
    power: PowerState = field(default_factory=PowerState)
    game_info: GameInfoState = field(default_factory=GameInfoState)
    choices: ChoiceState = field(default_factory=ChoiceState)
    arena: ArenaState = field(default_factory=ArenaState)
    scene: SceneState = field(default_factory=SceneState)
    achievements: AchievementsState = field(default_factory=AchievementsState)

    def reset(self) -> None:
        """Return every region to its initial value."""
        self.clock = GameClock()
        self.power_log = []
        self.power = PowerState()
        self.game_info = GameInfoState()
        self.choices = ChoiceState()
        self.arena = ArenaState()
        self.scene = SceneState()
        self.achievements = AchievementsState()

    def snapshot(self) -> Dict[str, Any]:
        """
        Plain-data copy of the session for export hooks.

        Datetimes become ISO strings and integer dict keys stay as-is, so the
        result can be passed to json.dumps directly.
        """
        data = asdict(self)
        data["clock"]["time"] = self.clock.time.isoformat() if self.clock.time else None
        data["power"]["current_turn"] = self.power.current_turn
        data["scene"]["in_gameplay"] = self.scene.in_gameplay
        return data
