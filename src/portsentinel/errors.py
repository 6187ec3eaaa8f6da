"""Exceptions raised by the portsentinel core."""


class PortSentinelError(Exception):
    """Base class for all portsentinel errors."""


class UnsupportedPlatformError(PortSentinelError):
    """The host operating system has no command adapter."""

    def __init__(self, system: str) -> None:
        super().__init__(f"Unsupported platform: {system or 'unknown'}")
        self.system = system


class ForbiddenPidError(PortSentinelError):
    """Refused to kill a reserved PID or the controller itself."""

    def __init__(self, pid: int, reason: str = "system critical process") -> None:
        super().__init__(f"Forbidden: cannot kill {reason} (PID {pid})")
        self.pid = pid
        self.reason = reason


class ProcessNotFoundError(PortSentinelError):
    """The target PID no longer exists."""

    def __init__(self, pid: int) -> None:
        super().__init__(f"Process {pid} not found")
        self.pid = pid


class ArchiveNotFoundError(PortSentinelError):
    """No archived command for the PID, or it has expired."""

    def __init__(self, pid: int) -> None:
        super().__init__(f"Process archive not found or expired for PID {pid}")
        self.pid = pid


class CommandError(PortSentinelError):
    """An external command failed to run or exited nonzero."""

    def __init__(
        self,
        command: str,
        returncode: int | None = None,
        stderr: str = "",
        message: str | None = None,
    ) -> None:
        if message is None:
            detail = stderr.strip() or f"exit status {returncode}"
            message = f"Command failed: {command}: {detail}"
        super().__init__(message)
        self.command = command
        self.returncode = returncode
        self.stderr = stderr


class CommandTimeoutError(CommandError):
    """An external command did not finish within its timeout."""

    def __init__(self, command: str, timeout: float) -> None:
        super().__init__(command, message=f"Command timed out after {timeout:g}s: {command}")
        self.timeout = timeout
