"""
Hearthstone process discovery.

When the configured installation directory does not exist, the controller
waits for the game to be started and derives the directory from the running
executable. Waiting is indefinite; callers stop it with the cancel event or
by cancelling the task.
"""

import asyncio
import logging
from pathlib import Path
from typing import Callable, Optional, Sequence

import psutil

from .errors import DiscoveryCancelled, GameDirectoryNotFound
from .polling import PollCancelled, poll_until

logger = logging.getLogger(__name__)

DEFAULT_POLL_INTERVAL = 0.5
DEFAULT_PROCESS_NAMES = ("Hearthstone.exe", "Hearthstone")

DIRECTORY_NOT_FOUND_MESSAGE = "Could not find Hearthstone installation"
DIRECTORY_NOT_FOUND_REMEDIATION = (
    "Please point the tracker to your Hearthstone installation, either with "
    "--game-dir or by setting game_directory in the config file."
)

ProcessLookup = Callable[[], Optional[psutil.Process]]
DirectoryResolver = Callable[[psutil.Process], Optional[Path]]


def find_game_process(names: Sequence[str] = DEFAULT_PROCESS_NAMES) -> Optional[psutil.Process]:
    """Return the first running process whose name matches one of `names`."""
    wanted = {name.lower() for name in names}
    for proc in psutil.process_iter(["name"]):
        name = (proc.info.get("name") or "").lower()
        if name in wanted:
            return proc
    return None


def resolve_install_directory(proc: psutil.Process) -> Optional[Path]:
    """
    Derive the installation directory from the process executable.

    Returns None when the path is unavailable (insufficient permissions,
    process already gone, or an empty executable path).
    """
    try:
        exe = proc.exe()
    except (psutil.AccessDenied, psutil.NoSuchProcess, psutil.ZombieProcess) as e:
        logger.debug(f"Could not read executable of pid {proc.pid}: {e}")
        return None
    if not exe:
        return None
    return Path(exe).parent


async def find_game_directory(
    lookup: Optional[ProcessLookup] = None,
    resolve: DirectoryResolver = resolve_install_directory,
    poll_interval: float = DEFAULT_POLL_INTERVAL,
    cancel: Optional[asyncio.Event] = None,
) -> Path:
    """
    Wait for the game process and return its installation directory.

    Args:
        lookup: Process lookup (default: find_game_process with default names)
        resolve: Maps the found process to its installation directory
        poll_interval: Seconds between lookups
        cancel: Optional event that aborts the wait

    Raises:
        DiscoveryCancelled: `cancel` was set while waiting
        GameDirectoryNotFound: the process was found but the directory could
            not be derived. Not retried; the caller has to start over.
    """
    lookup = lookup or find_game_process
    logger.warning("Hearthstone not found, waiting for process...")
    try:
        proc = await poll_until(lookup, poll_interval, cancel)
    except PollCancelled:
        raise DiscoveryCancelled("Process discovery cancelled") from None

    directory = resolve(proc)
    if directory is None:
        logger.error(DIRECTORY_NOT_FOUND_MESSAGE)
        raise GameDirectoryNotFound(DIRECTORY_NOT_FOUND_MESSAGE, DIRECTORY_NOT_FOUND_REMEDIATION)

    logger.info(f"Found Hearthstone at '{directory}'")
    return directory
