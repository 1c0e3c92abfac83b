"""
Loading screen handler.

Tracks scene transitions from LoadingScreen.log:

    LoadingScreen.OnSceneLoaded() - prevMode=HUB currMode=GAMEPLAY
    LoadingScreen.OnScenePreUnload() - prevMode=GAMEPLAY nextMode=HUB
    MulliganManager.HandleGameStart() - IsPastBeginPhase()=False

Entering GAMEPLAY is the point where the tracker needs access to the game
process. The handler runs a pluggable permission check there and, if it
fails, notifies its permission-failure listeners. The listeners (normally
the PipelineController) decide what to do; the handler only reports.
"""

import logging
import re
from typing import Callable, List, Optional

from ..domain.game_state import GAMEPLAY_MODE, SceneState
from ..domain.log_lines import LogLine
from .base import LineHandler, skip

logger = logging.getLogger(__name__)

MODE_CHANGE_PATTERN = re.compile(r'prevMode=(?P<prev>\w+).*?(?:currMode|nextMode)=(?P<next>\w+)')
GAME_START_PATTERN = re.compile(r'MulliganManager\.HandleGameStart')

PermissionCheck = Callable[[], bool]


class LoadingScreenHandler(LineHandler):
    """
    Follows the client's scene mode and raises the permission-mismatch signal.

    Args:
        permission_check: Returns False when the game process cannot be inspected
            with the tracker's permissions. None disables the check.
    """

    name = "loading_screen"

    def __init__(self, permission_check: Optional[PermissionCheck] = None):
        self.permission_check = permission_check
        self._permission_failed_listeners: List[Callable[[], None]] = []

    def add_permission_failed_listener(self, listener: Callable[[], None]):
        """Register a zero-argument callback for failed permission checks."""
        self._permission_failed_listeners.append(listener)

    def remove_permission_failed_listener(self, listener: Callable[[], None]):
        if listener in self._permission_failed_listeners:
            self._permission_failed_listeners.remove(listener)

    def handle(self, line: LogLine, state: SceneState) -> None:
        content = line.content

        if GAME_START_PATTERN.search(content):
            state.game_starts += 1
            return

        match = MODE_CHANGE_PATTERN.search(content)
        if match is None:
            raise skip(line)

        next_mode = match.group("next")
        entering_gameplay = next_mode == GAMEPLAY_MODE and state.current_mode != GAMEPLAY_MODE
        state.previous_mode = match.group("prev")
        state.current_mode = next_mode
        logger.debug(f"Scene mode {state.previous_mode} -> {state.current_mode}")

        if entering_gameplay and self.permission_check is not None and not self.permission_check():
            state.permission_check_failures += 1
            logger.warning("Permission check failed on entering gameplay")
            self._notify_permission_failed()

    def _notify_permission_failed(self):
        for listener in list(self._permission_failed_listeners):
            try:
                listener()
            except Exception as e:
                logger.error(f"Error in permission failure listener: {e}", exc_info=True)
