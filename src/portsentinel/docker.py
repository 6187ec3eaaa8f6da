"""Resolve host ports to the Docker containers that own them."""

import json
import logging

from portsentinel.errors import CommandError
from portsentinel.shell import DEFAULT_TIMEOUT, run_command

logger = logging.getLogger(__name__)

INSPECT_FORMAT = "{{.Name}}|{{json .Config.ExposedPorts}}|{{json .NetworkSettings.Ports}}"


def _load(raw: str) -> dict:
    """Decode one ``{{json ...}}`` column; ``null`` and garbage become {}."""
    try:
        value = json.loads(raw)
    except ValueError:
        return {}
    return value if isinstance(value, dict) else {}


def _port_number(exposed: str) -> int | None:
    """``"8080/tcp"`` -> 8080."""
    number = exposed.split("/", 1)[0]
    return int(number) if number.isdigit() else None


def parse_inspect_output(text: str) -> dict[int, str]:
    """
    Build a host port -> container name map from ``docker inspect`` output.

    Each line is ``name|exposed-ports-json|port-bindings-json``. Explicit host
    bindings always set the mapping. Exposed ports without a binding (host
    networking) only fill ports nothing else has claimed.
    """
    port_map: dict[int, str] = {}

    for line in text.splitlines():
        line = line.strip()
        if not line:
            continue
        name_raw, _, rest = line.partition("|")
        exposed_raw, _, bindings_raw = rest.partition("|")
        container = name_raw.lstrip("/")
        if not container:
            continue

        for bindings in _load(bindings_raw).values():
            if not isinstance(bindings, list):
                continue
            for binding in bindings:
                host_port = str(binding.get("HostPort", "")) if isinstance(binding, dict) else ""
                if host_port.isdigit():
                    port_map[int(host_port)] = container

        for exposed in _load(exposed_raw):
            port = _port_number(exposed)
            if port is not None and port not in port_map:
                port_map[port] = container

    return port_map


class DockerPortResolver:
    """
    Best-effort port -> container lookup through the ``docker`` CLI.

    Any failure (docker missing, daemon down, odd output) yields an empty map.
    """

    def __init__(self, executable: str = "docker", timeout: float | None = DEFAULT_TIMEOUT) -> None:
        self._executable = executable
        self._timeout = timeout

    async def resolve(self) -> dict[int, str]:
        """Return the host port -> container name map for running containers."""
        try:
            listing = await run_command([self._executable, "ps", "-q"], timeout=self._timeout)
            if not listing.ok:
                logger.debug("docker ps failed: %s", listing.stderr.strip())
                return {}

            ids = listing.stdout.split()
            if not ids:
                return {}

            inspect = await run_command(
                [self._executable, "inspect", "--format", INSPECT_FORMAT, *ids],
                timeout=self._timeout,
            )
            if not inspect.ok:
                logger.warning("docker inspect failed: %s", inspect.stderr.strip())
                return {}

            return parse_inspect_output(inspect.stdout)
        except CommandError as exc:
            logger.debug("Docker unavailable: %s", exc)
            return {}
