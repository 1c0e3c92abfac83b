import re

from ..domain.game_state import GameInfoState
from ..domain.log_lines import LogLine
from .base import LineHandler, skip

PLAYER_PATTERN = re.compile(r'PlayerID=(?P<id>\d+), PlayerName=(?P<name>.+)$')
KEY_VALUE_PATTERN = re.compile(r'-\s+(?P<key>\w+)=(?P<value>\S+)\s*$')


class GameInfoHandler(LineHandler):
    """Reads the GameState.DebugPrintGame() header block written at game start."""

    name = "game_info"

    def handle(self, line: LogLine, state: GameInfoState) -> None:
        match = PLAYER_PATTERN.search(line.content)
        if match:
            state.players[int(match.group("id"))] = match.group("name").strip()
            return

        match = KEY_VALUE_PATTERN.search(line.content)
        if match is None:
            raise skip(line)

        key, value = match.group("key"), match.group("value")
        if key == "BuildNumber" and value.isdigit():
            state.build_number = int(value)
        elif key == "GameType":
            state.game_type = value
        elif key == "FormatType":
            state.format_type = value
        elif key == "ScenarioID" and value.isdigit():
            state.scenario_id = int(value)
        else:
            raise skip(line, f"unknown game info key {key}")
