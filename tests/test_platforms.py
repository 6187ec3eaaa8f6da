"""Tests for the per-OS command adapters."""

import shlex

import pytest

from portsentinel.errors import UnsupportedPlatformError
from portsentinel.platforms import PosixPlatform, WindowsPlatform, resolve_platform


@pytest.mark.parametrize("system", ["Linux", "Darwin"])
def test_posix_systems_resolve_to_posix(system):
    assert isinstance(resolve_platform(system), PosixPlatform)


def test_windows_resolves_to_windows():
    assert isinstance(resolve_platform("Windows"), WindowsPlatform)


def test_unknown_system_is_an_error():
    with pytest.raises(UnsupportedPlatformError, match="SunOS"):
        resolve_platform("SunOS")


def test_current_system_resolves():
    assert resolve_platform().family in ("unix", "win32")


def test_posix_commands(posix):
    assert posix.scan_command == ["lsof", "-i", "-P", "-n"]
    assert posix.kill_command(4567) == ["kill", "-9", "4567"]
    assert posix.stats_command([1, 2]) == ["ps", "-p", "1,2", "-o", "pid=,%cpu=,%mem="]
    assert posix.stats_command([]) is None
    assert posix.supports_cwd
    assert posix.launch_options() == {"start_new_session": True}


def test_windows_commands(windows):
    assert windows.scan_command == ["netstat", "-ano"]
    assert windows.kill_command(4567) == ["taskkill", "/F", "/PID", "4567"]
    assert windows.stats_command([1, 2]) is None
    assert not windows.supports_cwd
    assert not windows.supports_stats
    assert windows.launch_options()["creationflags"]


def test_listen_markers(posix, windows):
    assert posix.is_listening("node 1 u 3u IPv4 1 0t0 TCP *:3000 (LISTEN)")
    assert not posix.is_listening("node 1 u 3u IPv4 1 0t0 TCP a:1->b:2 (ESTABLISHED)")
    assert windows.is_listening("TCP 0.0.0.0:135 0.0.0.0:0 LISTENING 984")
    assert not windows.is_listening("TCP 10.0.0.1:5 1.2.3.4:443 ESTABLISHED 7")


def test_posix_join_command_quotes_arguments(posix):
    argv = ["python", "-c", "import time; time.sleep(30)", "it's"]

    joined = posix.join_command(argv)

    assert shlex.split(joined) == argv


def test_windows_join_command_quotes_arguments(windows):
    argv = [r"C:\Program Files\app\server.exe", "--name", "my service"]

    assert windows.join_command(argv) == (
        r'"C:\Program Files\app\server.exe" --name "my service"'
    )
