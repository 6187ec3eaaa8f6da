"""Per-OS command adapters.

Each supported operating system family is one :class:`Platform` variant. The
variant is resolved once at startup and knows how to list sockets, how to read
the columns of that listing, and how to terminate a PID.
"""

import platform as _platform
import shlex
import subprocess
from abc import ABC, abstractmethod
from collections.abc import Sequence
from typing import NamedTuple

from portsentinel.errors import UnsupportedPlatformError


class ScanFields(NamedTuple):
    """Raw columns pulled from one line of listing output."""

    name: str
    pid: str
    protocol: str
    address: str


class Platform(ABC):
    """Commands and output layout for one operating system family."""

    family: str = ""
    min_columns: int = 0
    # Substring tagging a listening socket in the scan output
    listen_marker: str = "LISTEN"
    # Exit codes meaning "nothing matched" rather than a tool failure
    no_match_exit_codes: frozenset[int] = frozenset()
    supports_cwd: bool = False
    supports_stats: bool = False

    @property
    @abstractmethod
    def scan_command(self) -> list[str]:
        """Argv printing the socket table."""

    @abstractmethod
    def kill_command(self, pid: int) -> list[str]:
        """Argv that forcefully terminates ``pid``."""

    @abstractmethod
    def split_fields(self, parts: Sequence[str]) -> ScanFields:
        """Pick the interesting columns out of a whitespace-split line."""

    @abstractmethod
    def join_command(self, argv: Sequence[str]) -> str:
        """Quote ``argv`` into one line the shell re-splits into the same argv."""

    def is_listening(self, line: str) -> bool:
        """Whether a scan line describes a listening socket."""
        return self.listen_marker in line

    def stats_command(self, pids: Sequence[int]) -> list[str] | None:
        """Argv reporting CPU and memory for all ``pids`` at once, if supported."""
        return None

    def launch_options(self) -> dict:
        """Keyword arguments for ``subprocess.Popen`` to start a detached child."""
        return {}

    def __repr__(self) -> str:
        return f"{type(self).__name__}()"


class WindowsPlatform(Platform):
    """netstat / taskkill."""

    family = "win32"
    # Proto  Local Address  Foreign Address  State  PID
    min_columns = 5
    listen_marker = "LISTENING"

    @property
    def scan_command(self) -> list[str]:
        return ["netstat", "-ano"]

    def kill_command(self, pid: int) -> list[str]:
        return ["taskkill", "/F", "/PID", str(pid)]

    def split_fields(self, parts: Sequence[str]) -> ScanFields:
        # netstat does not report the image name
        return ScanFields(name="System/Unknown", pid=parts[4], protocol=parts[0], address=parts[1])

    def join_command(self, argv: Sequence[str]) -> str:
        return subprocess.list2cmdline(argv)

    def launch_options(self) -> dict:
        flags = getattr(subprocess, "DETACHED_PROCESS", 0x00000008) | getattr(
            subprocess, "CREATE_NEW_PROCESS_GROUP", 0x00000200
        )
        return {"creationflags": flags}


class PosixPlatform(Platform):
    """lsof / kill -9 / ps, for Linux and macOS."""

    family = "unix"
    # COMMAND  PID  USER  FD  TYPE  DEVICE  SIZE/OFF  NODE  NAME
    min_columns = 9
    listen_marker = "(LISTEN)"
    # lsof exits 1 when it finds no internet sockets at all
    no_match_exit_codes = frozenset({1})
    supports_cwd = True
    supports_stats = True

    @property
    def scan_command(self) -> list[str]:
        # -P numeric ports, -n numeric hosts
        return ["lsof", "-i", "-P", "-n"]

    def kill_command(self, pid: int) -> list[str]:
        return ["kill", "-9", str(pid)]

    def split_fields(self, parts: Sequence[str]) -> ScanFields:
        # NAME may be split, e.g. "*:3000 (LISTEN)"
        return ScanFields(
            name=parts[0], pid=parts[1], protocol=parts[7], address="".join(parts[8:])
        )

    def join_command(self, argv: Sequence[str]) -> str:
        return shlex.join(argv)

    def stats_command(self, pids: Sequence[int]) -> list[str] | None:
        if not pids:
            return None
        return ["ps", "-p", ",".join(str(pid) for pid in pids), "-o", "pid=,%cpu=,%mem="]

    def launch_options(self) -> dict:
        return {"start_new_session": True}


_PLATFORMS: dict[str, type[Platform]] = {
    "Windows": WindowsPlatform,
    "Linux": PosixPlatform,
    "Darwin": PosixPlatform,
}


def resolve_platform(system: str | None = None) -> Platform:
    """
    Return the adapter for ``system`` (defaults to the running OS).

    Raises:
        UnsupportedPlatformError: No adapter exists for the OS family.
    """
    if system is None:
        system = _platform.system()
    try:
        return _PLATFORMS[system]()
    except KeyError:
        raise UnsupportedPlatformError(system) from None
