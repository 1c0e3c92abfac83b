"""
Power channel handler.

Handles the PowerTaskList lines of Power.log, which describe the game tree
after the client has processed each task list:

    PowerTaskList.DebugPrintPower() - CREATE_GAME
    PowerTaskList.DebugPrintPower() -     FULL_ENTITY - Creating ID=4 CardID=HERO_08
    PowerTaskList.DebugPrintPower() -     TAG_CHANGE Entity=GameEntity tag=TURN value=3
    PowerTaskList.DebugPrintPower() - BLOCK_START BlockType=PLAY Entity=[...]
    PowerTaskList.DebugPrintPower() - BLOCK_END

plus the spectator markers the Power filter selects by substring.
"""

import logging
import re

from ..domain.game_state import Entity, PowerState
from ..domain.log_lines import LogLine
from .base import LineHandler, parse_entity_id, skip

logger = logging.getLogger(__name__)

CREATE_GAME_PATTERN = re.compile(r'-\s+CREATE_GAME\b')
FULL_ENTITY_PATTERN = re.compile(r'FULL_ENTITY - (?:Creating|Updating) ID=(?P<id>\d+) CardID=(?P<card_id>\S*)')
TAG_CHANGE_PATTERN = re.compile(r'TAG_CHANGE Entity=(?P<entity>.+?) tag=(?P<tag>\S+) value=(?P<value>\S+)')
BLOCK_START_PATTERN = re.compile(r'-\s+BLOCK_START\b')
BLOCK_END_PATTERN = re.compile(r'-\s+BLOCK_END\b')

SPECTATOR_START_MARKERS = ("Begin Spectating", "Start Spectator")
SPECTATOR_END_MARKER = "End Spectator"


class PowerHandler(LineHandler):
    """Rebuilds entities and tags from PowerTaskList output."""

    name = "power"

    def handle(self, line: LogLine, state: PowerState) -> None:
        content = line.content

        if any(marker in content for marker in SPECTATOR_START_MARKERS):
            state.spectating = True
            return
        if SPECTATOR_END_MARKER in content:
            state.spectating = False
            return

        if CREATE_GAME_PATTERN.search(content):
            state.games_created += 1
            state.entities.clear()
            state.named_tags.clear()
            state.block_depth = 0
            logger.info(f"New game created (#{state.games_created})")
            return

        match = FULL_ENTITY_PATTERN.search(content)
        if match:
            entity_id = int(match.group("id"))
            entity = state.entities.setdefault(entity_id, Entity(id=entity_id))
            entity.card_id = match.group("card_id")
            return

        match = TAG_CHANGE_PATTERN.search(content)
        if match:
            self._apply_tag_change(state, match.group("entity"), match.group("tag"), match.group("value"))
            return

        if BLOCK_START_PATTERN.search(content):
            state.block_depth += 1
            return
        if BLOCK_END_PATTERN.search(content):
            state.block_depth = max(0, state.block_depth - 1)
            return

        raise skip(line)

    @staticmethod
    def _apply_tag_change(state: PowerState, entity_text: str, tag: str, value: str) -> None:
        entity_id = parse_entity_id(entity_text)
        if entity_id is None:
            state.named_tags.setdefault(entity_text.strip(), {})[tag] = value
            return
        entity = state.entities.setdefault(entity_id, Entity(id=entity_id))
        entity.tags[tag] = value
