"""Shared fixtures: canned command output and a fake command runner."""

from collections.abc import Sequence

import pytest

from portsentinel.platforms import PosixPlatform, WindowsPlatform
from portsentinel.shell import CommandResult, describe

LSOF_OUTPUT = """\
COMMAND     PID   USER   FD   TYPE             DEVICE SIZE/OFF NODE NAME
postgres    812  alice    7u  IPv4 0x1234567890abcdf1      0t0  TCP 127.0.0.1:5432 (LISTEN)
node       4567  alice   23u  IPv6 0x1234567890abcdef      0t0  TCP *:3000 (LISTEN)
node       4567  alice   24u  IPv4 0x1234567890abcdf0      0t0  TCP 127.0.0.1:3000 (LISTEN)
docker-pr  2222   root    4u  IPv4 0x1234567890abcdf2      0t0  TCP *:8080 (LISTEN)
Chrome      999  alice   30u  IPv4 0x1234567890abcdf3      0t0  TCP 192.168.1.5:50000->1.2.3.4:443 (ESTABLISHED)
"""

NETSTAT_OUTPUT = """\

Active Connections

  Proto  Local Address          Foreign Address        State           PID
  TCP    0.0.0.0:135            0.0.0.0:0              LISTENING       984
  TCP    [::]:135               [::]:0                 LISTENING       984
  TCP    127.0.0.1:5000         0.0.0.0:0              LISTENING       4312
  TCP    192.168.1.5:50000      1.2.3.4:443            ESTABLISHED     777
"""

INSPECT_WEB = (
    '/web|{"8080/tcp":{},"9090/tcp":{}}'
    '|{"8080/tcp":[{"HostIp":"0.0.0.0","HostPort":"8080"}],"9090/tcp":null}'
)


class FakeRunner:
    """
    Stand-in for ``run_command``.

    Responses are matched on an argv prefix; unmatched commands succeed with
    empty output. Every call is recorded.
    """

    def __init__(self) -> None:
        self.calls: list[list[str]] = []
        self._responses: list[tuple[list[str], object]] = []

    def add(
        self,
        prefix: Sequence[str],
        stdout: str = "",
        returncode: int = 0,
        stderr: str = "",
        error: Exception | None = None,
    ) -> None:
        self._responses.append((list(prefix), error or (stdout, returncode, stderr)))

    def commands(self, program: str) -> list[list[str]]:
        """Recorded calls of ``program``."""
        return [argv for argv in self.calls if argv and argv[0] == program]

    async def __call__(self, command, timeout=None) -> CommandResult:
        argv = command.split() if isinstance(command, str) else list(command)
        self.calls.append(argv)
        for prefix, response in reversed(self._responses):
            if argv[: len(prefix)] == prefix:
                if isinstance(response, Exception):
                    raise response
                stdout, returncode, stderr = response
                return CommandResult(describe(command), returncode, stdout, stderr)
        return CommandResult(describe(command), 0, "", "")


@pytest.fixture
def posix():
    return PosixPlatform()


@pytest.fixture
def windows():
    return WindowsPlatform()


@pytest.fixture
def runner(monkeypatch):
    """Patch every module that shells out to use a :class:`FakeRunner`."""
    fake = FakeRunner()
    monkeypatch.setattr("portsentinel.manager.run_command", fake)
    monkeypatch.setattr("portsentinel.docker.run_command", fake)
    monkeypatch.setattr("portsentinel.stats.run_command", fake)
    return fake


@pytest.fixture
def lsof_output():
    return LSOF_OUTPUT


@pytest.fixture
def netstat_output():
    return NETSTAT_OUTPUT


@pytest.fixture
def inspect_web():
    return INSPECT_WEB
