"""
Host window collaborator.

The permission-mismatch recovery has to show a blocking message, and the
message is lost if the window hosting it is not on screen yet. HostWindow
is the small surface the controller needs for that: bring the window up,
tell whether it is visible and not minimised, show a message.
"""

import logging
from typing import Protocol, runtime_checkable

from termcolor import colored

logger = logging.getLogger(__name__)


@runtime_checkable
class HostWindow(Protocol):
    """Protocol for the window that displays recovery messages."""

    def activate(self) -> None:
        """Bring the window to the foreground (restore if minimised)."""
        ...

    def is_ready(self) -> bool:
        """True once the window is visible and not minimised."""
        ...

    async def show_message(self, title: str, message: str) -> None:
        """Show a blocking message; returns once the user has seen it."""
        ...


class ConsoleHostWindow:
    """HostWindow for headless runs: the terminal is always ready."""

    def activate(self) -> None:
        pass

    def is_ready(self) -> bool:
        return True

    async def show_message(self, title: str, message: str) -> None:
        logger.warning(f"{title}: {message}")
        print()
        print(colored(f"=== {title} ===", "red", attrs=["bold"]))
        print(colored(message, "yellow"))
        print()
