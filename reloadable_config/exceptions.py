from pathlib import Path
from typing import Optional


class ReloadableConfigError(Exception):
    """Base class for every error raised by reloadable_config."""


class InvalidArgumentError(ReloadableConfigError, ValueError):
    """Raised when a constructor or operation receives unusable arguments."""


class DecodeError(ReloadableConfigError):
    """
    A configuration file could not be turned into a configuration object.
    Covers unreadable files, malformed content and unsupported extensions.
    """
    def __init__(self, message: str, path: Optional[Path] = None):
        super().__init__(message)
        self.path = path

    def __str__(self):
        message = super().__str__()
        if self.path is None:
            return message
        return f"{self.path}: {message}"


class WatchServiceClosedError(ReloadableConfigError):
    """Raised by a watch service that has already been closed."""
