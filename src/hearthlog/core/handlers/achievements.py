from ..domain.game_state import AchievementsState
from ..domain.log_lines import LogLine
from .base import LineHandler


class AchievementsHandler(LineHandler):
    """Keeps a running count of Achievements.log lines and the latest one."""

    name = "achievements"

    def handle(self, line: LogLine, state: AchievementsState) -> None:
        state.lines_seen += 1
        state.last_line = line.content
