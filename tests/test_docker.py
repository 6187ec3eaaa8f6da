"""Tests for Docker port resolution."""

import pytest

from portsentinel.docker import DockerPortResolver, parse_inspect_output
from portsentinel.errors import CommandError, CommandTimeoutError


def test_bound_and_exposed_ports(inspect_web):
    assert parse_inspect_output(inspect_web) == {8080: "web", 9090: "web"}


def test_binding_beats_exposure_in_later_container():
    text = "\n".join(
        [
            '/api|{"8080/tcp":{}}|{}',
            '/proxy|{}|{"80/tcp":[{"HostIp":"0.0.0.0","HostPort":"8080"}]}',
        ]
    )

    assert parse_inspect_output(text) == {8080: "proxy"}


def test_exposure_never_overwrites_binding():
    text = "\n".join(
        [
            '/proxy|{}|{"80/tcp":[{"HostIp":"0.0.0.0","HostPort":"8080"}]}',
            '/api|{"8080/tcp":{}}|{}',
        ]
    )

    assert parse_inspect_output(text) == {8080: "proxy"}


def test_ipv4_and_ipv6_bindings():
    text = (
        '/db|{"5432/tcp":{}}|{"5432/tcp":[{"HostIp":"0.0.0.0","HostPort":"15432"},'
        '{"HostIp":"::","HostPort":"15432"}]}'
    )

    assert parse_inspect_output(text) == {15432: "db", 5432: "db"}


def test_null_and_garbage_columns():
    text = "\n".join(["/quiet|null|null", "/odd|not json|{}", "", "|{}|{}"])

    assert parse_inspect_output(text) == {}


@pytest.mark.asyncio
async def test_resolve_runs_one_bulk_inspect(runner, inspect_web):
    runner.add(["docker", "ps"], stdout="abc123\ndef456\n")
    runner.add(["docker", "inspect"], stdout=inspect_web + "\n")

    result = await DockerPortResolver().resolve()

    assert result == {8080: "web", 9090: "web"}
    inspects = [argv for argv in runner.commands("docker") if argv[1] == "inspect"]
    assert len(inspects) == 1
    assert inspects[0][-2:] == ["abc123", "def456"]


@pytest.mark.asyncio
async def test_no_running_containers(runner):
    runner.add(["docker", "ps"], stdout="")

    assert await DockerPortResolver().resolve() == {}
    assert len(runner.calls) == 1


@pytest.mark.asyncio
async def test_docker_not_installed(runner):
    runner.add(["docker"], error=CommandError("docker", message="Cannot run docker"))

    assert await DockerPortResolver().resolve() == {}


@pytest.mark.asyncio
async def test_daemon_not_running(runner):
    runner.add(["docker", "ps"], returncode=1, stderr="Cannot connect to the Docker daemon")

    assert await DockerPortResolver().resolve() == {}


@pytest.mark.asyncio
async def test_inspect_failure(runner):
    runner.add(["docker", "ps"], stdout="abc123\n")
    runner.add(["docker", "inspect"], returncode=1, stderr="No such object")

    assert await DockerPortResolver().resolve() == {}


@pytest.mark.asyncio
async def test_timeout(runner):
    runner.add(["docker", "ps"], error=CommandTimeoutError("docker ps -q", 1.0))

    assert await DockerPortResolver().resolve() == {}


def test_malformed_bindings_are_ignored():
    text = '/odd|{"80/tcp":{}}|{"80/tcp":"oops","81/tcp":[null,{"HostPort":"8181"}]}\n'

    assert parse_inspect_output(text) == {8181: "odd", 80: "odd"}
