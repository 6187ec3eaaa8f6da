"""Data models for portsentinel."""

from dataclasses import dataclass
from enum import Enum


class Protocol(str, Enum):
    """Transport protocol of a listening socket."""

    TCP = "TCP"
    UDP = "UDP"


@dataclass(slots=True, frozen=True)
class ListeningPort:
    """A bound, accepting socket as reported by one scan."""

    pid: int
    protocol: Protocol | str  # Unrecognised protocol columns pass through
    port: int  # 1 - 65535
    local_address: str  # "0.0.0.0" / "::" for all interfaces
    name: str = ""


@dataclass(slots=True, frozen=True)
class ProcessDetails:
    """Command line and working directory of one PID."""

    command_path: str = "N/A"
    cwd: str | None = None


@dataclass(slots=True, frozen=True)
class ResourceStats:
    """CPU and memory utilisation of one PID."""

    cpu_percent: float = 0.0
    memory_percent: float = 0.0


@dataclass(slots=True, frozen=True)
class ProcessRecord:
    """Immutable, fully enriched view of a process owning a listening port."""

    pid: int
    protocol: Protocol | str
    port: int
    local_address: str
    name: str
    command_path: str = "N/A"
    cwd: str | None = None
    cpu_percent: float = 0.0
    memory_percent: float = 0.0

    @classmethod
    def build(
        cls,
        listening: ListeningPort,
        details: ProcessDetails,
        stats: ResourceStats | None = None,
    ) -> "ProcessRecord":
        """Combine a scan entry with its looked-up details and stats."""
        stats = stats or ResourceStats()
        return cls(
            pid=listening.pid,
            protocol=listening.protocol,
            port=listening.port,
            local_address=listening.local_address,
            name=listening.name,
            command_path=details.command_path,
            cwd=details.cwd,
            cpu_percent=max(0.0, stats.cpu_percent),
            memory_percent=max(0.0, stats.memory_percent),
        )

    def as_dict(self) -> dict:
        """Render the JSON shape served over HTTP."""
        protocol = self.protocol.value if isinstance(self.protocol, Protocol) else self.protocol
        return {
            "pid": self.pid,
            "name": self.name,
            "protocol": protocol,
            "port": self.port,
            "localAddress": self.local_address,
            "commandPath": self.command_path,
            "cwd": self.cwd,
            "cpu": self.cpu_percent,
            "memory": self.memory_percent,
        }


@dataclass(slots=True, frozen=True)
class ArchivedKill:
    """What is needed to re-launch a recently killed process."""

    pid: int
    command: str
    cwd: str | None
    archived_at: float  # Seconds, same clock as the owning archive


@dataclass(slots=True, frozen=True)
class PidOutcome:
    """A PID paired with the reason it was skipped or failed."""

    pid: int
    reason: str


@dataclass(slots=True, frozen=True)
class KillBatchResult:
    """Outcome of one bulk kill, in request order."""

    succeeded: tuple[int, ...] = ()
    failed: tuple[PidOutcome, ...] = ()
    skipped: tuple[PidOutcome, ...] = ()

    @property
    def total(self) -> int:
        """Number of PIDs processed."""
        return len(self.succeeded) + len(self.failed) + len(self.skipped)

    def as_dict(self) -> dict:
        """Render the JSON shape served over HTTP."""
        return {
            "success": list(self.succeeded),
            "failed": [{"pid": o.pid, "error": o.reason} for o in self.failed],
            "skipped": [{"pid": o.pid, "reason": o.reason} for o in self.skipped],
        }
