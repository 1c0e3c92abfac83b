"""Exception hierarchy for the log pipeline."""


class HearthlogError(Exception):
    """Base class for all pipeline errors."""


class DiscoveryError(HearthlogError):
    """Raised when the Hearthstone process or installation cannot be located."""


class GameDirectoryNotFound(DiscoveryError):
    """
    The game process was found but its installation directory could not be derived.

    Attributes:
        remediation: Human readable instructions for fixing the problem
    """

    def __init__(self, message: str, remediation: str = ""):
        super().__init__(message)
        self.remediation = remediation


class DiscoveryCancelled(DiscoveryError):
    """Raised when the caller cancels a running process discovery."""


class ParseSkip(HearthlogError):
    """
    Raised by a handler for a line that belongs to its channel but not to its grammar.

    The dispatcher swallows this; it never aborts a batch.
    """
