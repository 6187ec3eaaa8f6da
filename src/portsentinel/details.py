"""Per-PID command line and working directory lookup."""

import asyncio
import logging
from collections.abc import Iterable, Mapping
from dataclasses import replace

import psutil

from portsentinel.models import ProcessDetails, ProcessRecord
from portsentinel.platforms import Platform

logger = logging.getLogger(__name__)

NOT_AVAILABLE = "N/A"

# Host-side helpers that forward traffic into a container runtime
CONTAINER_PROXY_NAMES = (
    "docker-pr",
    "docker-proxy",
    "com.docker.backend",
    "vpnkit",
    "com.docker.vpnkit",
    "ssh",
    "limactl",
)


def _command_line(proc: psutil.Process, platform: Platform) -> str:
    cmdline = proc.cmdline()
    if cmdline:
        return platform.join_command(cmdline)
    # Kernel threads and some protected processes report no argv
    try:
        return proc.exe() or proc.name()
    except psutil.AccessDenied:
        return proc.name()


def get_process_details(pid: int, platform: Platform) -> ProcessDetails:
    """
    Look up the command line and working directory of ``pid``.

    Never raises. If the command line cannot be read the whole result degrades
    to ``("N/A", None)``; an unreadable working directory only leaves ``cwd``
    unset.
    """
    try:
        proc = psutil.Process(pid)
        with proc.oneshot():
            command = _command_line(proc, platform)
    except (psutil.Error, OSError) as exc:
        logger.debug("No command line for PID %s: %s", pid, exc)
        return ProcessDetails(command_path=NOT_AVAILABLE, cwd=None)

    cwd = None
    if platform.supports_cwd:
        try:
            cwd = proc.cwd() or None
        except (psutil.Error, OSError):
            # Usually AccessDenied for processes owned by other users
            pass

    return ProcessDetails(command_path=command or NOT_AVAILABLE, cwd=cwd)


async def augment_all(pids: Iterable[int], platform: Platform) -> dict[int, ProcessDetails]:
    """Look up every distinct PID concurrently."""
    unique = list(dict.fromkeys(pids))
    results = await asyncio.gather(
        *(asyncio.to_thread(get_process_details, pid, platform) for pid in unique)
    )
    return dict(zip(unique, results))


def is_container_proxy(name: str) -> bool:
    """Whether ``name`` looks like a container port-forwarding helper."""
    lowered = name.lower()
    return any(proxy in lowered for proxy in CONTAINER_PROXY_NAMES)


def attribute_container(record: ProcessRecord, port_map: Mapping[int, str]) -> ProcessRecord:
    """Rewrite a proxy process to name the container that owns its port."""
    if not is_container_proxy(record.name):
        return record
    container = port_map.get(record.port)
    if container is None:
        return record
    return replace(
        record,
        name=f"docker:{container}",
        command_path=f"Docker Container: {container}",
    )
