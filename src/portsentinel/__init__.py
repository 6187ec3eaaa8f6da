"""portsentinel - find, kill and restart processes listening on network ports."""

from portsentinel.errors import (
    ArchiveNotFoundError,
    CommandError,
    ForbiddenPidError,
    PortSentinelError,
    ProcessNotFoundError,
    UnsupportedPlatformError,
)
from portsentinel.manager import ProcessManager

__version__ = "0.1.0"

__all__ = [
    "ArchiveNotFoundError",
    "CommandError",
    "ForbiddenPidError",
    "PortSentinelError",
    "ProcessManager",
    "ProcessNotFoundError",
    "UnsupportedPlatformError",
]
