"""
Choices handler.

Unlike the other handlers this one receives a whole choice sub-sequence at
once (see choice_buffer.py), because a choice is only meaningful once all of
its lines are known:

    GameState.DebugPrintEntityChoices() - id=1 Player=Foo#1234 TaskList=4 ChoiceType=MULLIGAN CountMin=0 CountMax=3
    GameState.DebugPrintEntityChoices() -   Source=GameEntity
    GameState.DebugPrintEntityChoices() -   Entities[0]=[entityName=Wisp id=34 zone=HAND ...]
    GameState.DebugPrintEntitiesChosen() - id=1 Player=Foo#1234 EntitiesCount=1
    GameState.DebugPrintEntitiesChosen() -   Entities[0]=[entityName=Wisp id=34 zone=HAND ...]
    PowerProcessor.EndCurrentTaskList() - m_currentTaskList=4

Choices are opened by an EntityChoices header and move from pending to
resolved once an EntitiesChosen block for the same id has been read.
"""

import logging
import re
from typing import Optional, Sequence

from ..domain.game_state import Choice, ChoiceState
from ..domain.log_lines import LogLine
from .base import parse_entity_id

logger = logging.getLogger(__name__)

CHOICES_HEADER_PATTERN = re.compile(
    r'DebugPrintEntityChoices\(\) - id=(?P<id>\d+) Player=(?P<player>.+?) '
    r'TaskList=(?P<task_list>\d*) ChoiceType=(?P<type>\w+) '
    r'CountMin=(?P<min>\d+) CountMax=(?P<max>\d+)'
)
CHOICES_SOURCE_PATTERN = re.compile(r'DebugPrintEntityChoices\(\) -\s+Source=(?P<source>.+)$')
CHOSEN_HEADER_PATTERN = re.compile(
    r'DebugPrintEntitiesChosen\(\) - id=(?P<id>\d+) Player=(?P<player>.+?) EntitiesCount=(?P<count>\d+)'
)
ENTITY_ROW_PATTERN = re.compile(r'-\s+Entities\[\d+\]=(?P<entity>.+)$')
END_TASK_LIST_PATTERN = re.compile(r'EndCurrentTaskList\(\)')


class ChoicesHandler:
    """Reconstructs choices from flushed choice sub-sequences."""

    name = "choices"

    def handle(self, lines: Sequence[LogLine], state: ChoiceState) -> None:
        state.flushes += 1
        offered: Optional[Choice] = None
        chosen: Optional[Choice] = None

        for line in lines:
            content = line.content

            match = CHOICES_HEADER_PATTERN.search(content)
            if match:
                self._resolve(chosen, state)
                chosen = None
                offered = Choice(
                    id=int(match.group("id")),
                    player=match.group("player"),
                    choice_type=match.group("type"),
                    task_list=int(match.group("task_list")) if match.group("task_list") else None,
                    count_min=int(match.group("min")),
                    count_max=int(match.group("max")),
                )
                state.pending[offered.id] = offered
                continue

            match = CHOSEN_HEADER_PATTERN.search(content)
            if match:
                self._resolve(chosen, state)
                offered = None
                choice_id = int(match.group("id"))
                chosen = state.pending.get(choice_id) or Choice(id=choice_id, player=match.group("player"))
                chosen.chosen = []
                continue

            match = CHOICES_SOURCE_PATTERN.search(content)
            if match and offered is not None:
                offered.source = match.group("source").strip()
                continue

            match = ENTITY_ROW_PATTERN.search(content)
            if match:
                entity_id = parse_entity_id(match.group("entity"))
                if entity_id is not None and chosen is not None:
                    chosen.chosen.append(entity_id)
                    continue
                if entity_id is not None and offered is not None:
                    offered.entities.append(entity_id)
                    continue

            if END_TASK_LIST_PATTERN.search(content):
                state.task_lists_ended += 1
                continue

            logger.debug(f"Skipping choice line: {content[:80]}")

        self._resolve(chosen, state)

    @staticmethod
    def _resolve(chosen: Optional[Choice], state: ChoiceState) -> None:
        if chosen is None:
            return
        state.pending.pop(chosen.id, None)
        state.resolved.append(chosen)
