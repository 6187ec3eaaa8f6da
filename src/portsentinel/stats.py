"""Batched CPU / memory lookup for the discovered PIDs."""

import logging
from collections.abc import Iterable

from portsentinel.errors import CommandError
from portsentinel.models import ResourceStats
from portsentinel.platforms import Platform
from portsentinel.shell import DEFAULT_TIMEOUT, run_command

logger = logging.getLogger(__name__)


def parse_stats_output(text: str) -> dict[int, ResourceStats]:
    """Parse ``ps -o pid=,%cpu=,%mem=`` lines; unparsable lines are skipped."""
    stats: dict[int, ResourceStats] = {}
    for line in text.splitlines():
        parts = line.split()
        if len(parts) < 3:
            continue
        try:
            pid = int(parts[0])
            cpu = float(parts[1].replace(",", "."))
            mem = float(parts[2].replace(",", "."))
        except ValueError:
            continue
        stats[pid] = ResourceStats(cpu_percent=max(0.0, cpu), memory_percent=max(0.0, mem))
    return stats


class ResourceStatCollector:
    """
    Query CPU and memory for many PIDs with a single command.

    Returns an empty map when the platform has no batched query or the query
    fails (a PID may have exited since the scan); callers treat missing PIDs
    as zero usage.
    """

    def __init__(self, platform: Platform, timeout: float | None = DEFAULT_TIMEOUT) -> None:
        self._platform = platform
        self._timeout = timeout

    async def collect(self, pids: Iterable[int]) -> dict[int, ResourceStats]:
        """Return pid -> :class:`ResourceStats` for ``pids``."""
        unique = list(dict.fromkeys(pids))
        command = self._platform.stats_command(unique) if self._platform.supports_stats else None
        if command is None:
            return {}

        try:
            result = await run_command(command, timeout=self._timeout)
        except CommandError as exc:
            logger.debug("Stat query unavailable: %s", exc)
            return {}

        if not result.ok:
            logger.debug("Stat query failed (exit %s)", result.returncode)
            return {}
        return parse_stats_output(result.stdout)
