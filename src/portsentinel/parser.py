"""Parse listing output into :class:`ListeningPort` records."""

import re

from portsentinel.models import ListeningPort, Protocol
from portsentinel.platforms import Platform

# Trailing socket state, e.g. "(LISTEN)"
_STATE_MARKER = re.compile(r"\(.*\)$")

ALL_INTERFACES = "0.0.0.0"


def classify_protocol(raw: str) -> Protocol | str:
    """Map a protocol column (``TCP``, ``TCP6``, ``UDP`` ...) to :class:`Protocol`."""
    upper = raw.upper()
    if "TCP" in upper:
        return Protocol.TCP
    if "UDP" in upper:
        return Protocol.UDP
    return raw


def normalize_address(address: str) -> str:
    """Turn wildcard markers into the all-zero address and unbracket IPv6."""
    if address in ("", "*"):
        return ALL_INTERFACES
    if address.startswith("[") and address.endswith("]"):
        return address[1:-1]
    return address


def split_address(field: str) -> tuple[str, int] | None:
    """
    Split ``host:port`` at the last colon.

    Returns None when the port is missing, non-numeric or out of range.
    """
    local = field.split("->", 1)[0]
    address, sep, port_text = local.rpartition(":")
    if not sep or not port_text.isdigit():
        return None
    port = int(port_text)
    if not 0 < port <= 65535:
        return None
    return normalize_address(address), port


def parse_line(line: str, platform: Platform) -> ListeningPort | None:
    """Parse one listing line, or return None for headers and malformed lines."""
    parts = line.split()
    if len(parts) < platform.min_columns:
        return None

    fields = platform.split_fields(parts)
    if not fields.pid.isdigit() or int(fields.pid) == 0:
        return None

    split = split_address(_STATE_MARKER.sub("", fields.address))
    if split is None:
        return None
    address, port = split

    return ListeningPort(
        pid=int(fields.pid),
        protocol=classify_protocol(fields.protocol),
        port=port,
        local_address=address,
        name=fields.name,
    )


def parse_scan_output(text: str, platform: Platform) -> list[ListeningPort]:
    """
    Parse the full output of ``platform.scan_command``.

    Only lines carrying the platform's listen marker are considered. Entries
    are unique per (pid, port); the first occurrence wins, so the IPv6 twin of
    a dual-stack socket is dropped. The result is sorted by port.
    """
    seen: set[tuple[int, int]] = set()
    ports: list[ListeningPort] = []

    for line in text.splitlines():
        if not platform.is_listening(line):
            continue
        entry = parse_line(line, platform)
        if entry is None:
            continue
        key = (entry.pid, entry.port)
        if key in seen:
            continue
        seen.add(key)
        ports.append(entry)

    # sorted() is stable, so equal ports keep scan order
    return sorted(ports, key=lambda p: p.port)
