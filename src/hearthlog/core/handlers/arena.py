import logging
import re

from ..domain.game_state import ArenaState
from ..domain.log_lines import LogLine
from .base import LineHandler, skip

logger = logging.getLogger(__name__)

NEW_DECK_PATTERN = re.compile(r'DraftManager\.OnBegin - Got new draft deck with ID: (?P<deck_id>\d+)')
EXISTING_DECK_PATTERN = re.compile(r'DraftManager\.OnChoicesAndContents - Draft Deck ID: (?P<deck_id>\d+)')
HERO_PATTERN = re.compile(r'DraftManager\.OnChosen\(\): hero=(?P<hero>\w+)')
PICK_PATTERN = re.compile(r'Client chooses: (?P<name>.+) \((?P<card_id>[^)]+)\)\s*$')


class ArenaHandler(LineHandler):
    """Tracks the current Arena draft: deck id, hero and picks."""

    name = "arena"

    def handle(self, line: LogLine, state: ArenaState) -> None:
        content = line.content

        match = NEW_DECK_PATTERN.search(content)
        if match:
            state.deck_id = int(match.group("deck_id"))
            state.hero = ""
            state.picks = []
            logger.info(f"New arena draft {state.deck_id}")
            return

        match = EXISTING_DECK_PATTERN.search(content)
        if match:
            deck_id = int(match.group("deck_id"))
            if deck_id != state.deck_id:
                # Resuming a draft started before we attached
                state.deck_id = deck_id
                state.picks = []
            return

        match = HERO_PATTERN.search(content)
        if match:
            state.hero = match.group("hero")
            return

        match = PICK_PATTERN.search(content)
        if match:
            state.picks.append(match.group("card_id"))
            return

        raise skip(line)
