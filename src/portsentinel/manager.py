"""Discovery pipeline and kill / restart lifecycle."""

import asyncio
import logging
import os
import signal
import subprocess
from collections.abc import Callable, Iterable

import psutil

from portsentinel.archive import ProcessArchive
from portsentinel.details import NOT_AVAILABLE, attribute_container, augment_all, get_process_details
from portsentinel.docker import DockerPortResolver
from portsentinel.errors import (
    CommandError,
    ForbiddenPidError,
    PortSentinelError,
    ProcessNotFoundError,
)
from portsentinel.models import (
    ArchivedKill,
    KillBatchResult,
    ListeningPort,
    PidOutcome,
    ProcessRecord,
)
from portsentinel.parser import parse_scan_output
from portsentinel.platforms import Platform, resolve_platform
from portsentinel.shell import DEFAULT_TIMEOUT, run_command
from portsentinel.stats import ResourceStatCollector

logger = logging.getLogger(__name__)

# Kernel idle / init / Windows System
RESERVED_PIDS = frozenset({0, 1, 4})

SKIP_SELF = "self-protection"
SKIP_CRITICAL = "system critical"

DEFAULT_SHUTDOWN_GRACE = 0.5


def _terminate_self() -> None:
    os.kill(os.getpid(), signal.SIGTERM)


class ProcessManager:
    """
    Lists port-owning processes and kills or re-launches them.

    Kills are guarded: reserved PIDs and the manager's own process are never
    terminated. Every kill first archives the target's command line so it can
    be restarted while the archive entry lives.
    """

    def __init__(
        self,
        platform: Platform | None = None,
        archive: ProcessArchive | None = None,
        docker: DockerPortResolver | None = None,
        stats: ResourceStatCollector | None = None,
        *,
        command_timeout: float | None = DEFAULT_TIMEOUT,
        self_pid: int | None = None,
        default_cwd: str | None = None,
        shutdown_grace: float = DEFAULT_SHUTDOWN_GRACE,
        exit_callback: Callable[[], None] = _terminate_self,
        launcher: Callable[..., object] = subprocess.Popen,
    ) -> None:
        self._platform = platform or resolve_platform()
        self._archive = archive or ProcessArchive()
        self._docker = docker or DockerPortResolver(timeout=command_timeout)
        self._stats = stats or ResourceStatCollector(self._platform, timeout=command_timeout)
        self._timeout = command_timeout
        self._self_pid = os.getpid() if self_pid is None else self_pid
        self._default_cwd = default_cwd or os.getcwd()
        self._shutdown_grace = shutdown_grace
        self._exit_callback = exit_callback
        self._launcher = launcher

    @property
    def platform(self) -> Platform:
        """The command adapter in use."""
        return self._platform

    @property
    def archive_store(self) -> ProcessArchive:
        """The archive backing restarts."""
        return self._archive

    @property
    def self_pid(self) -> int:
        """PID the manager refuses to kill."""
        return self._self_pid

    def start(self) -> None:
        """Start background work (the archive sweeper)."""
        self._archive.start()

    def stop(self) -> None:
        """Stop background work."""
        self._archive.stop()

    # -- discovery ---------------------------------------------------------

    async def scan(self) -> list[ListeningPort]:
        """
        Run the listing command and parse it.

        Raises:
            CommandError: The listing tool is missing or failed.
        """
        result = await run_command(self._platform.scan_command, timeout=self._timeout)
        if not result.ok:
            if result.returncode not in self._platform.no_match_exit_codes:
                raise CommandError(result.command, result.returncode, result.stderr)
            if not result.stdout.strip():
                return []
        return parse_scan_output(result.stdout, self._platform)

    async def list_processes(self) -> list[ProcessRecord]:
        """One full scan, enriched with details, container names and stats."""
        ports = await self.scan()
        if not ports:
            return []

        pids = [entry.pid for entry in ports]
        port_map, details, stats = await asyncio.gather(
            self._docker.resolve(),
            augment_all(pids, self._platform),
            self._stats.collect(pids),
        )

        return [
            attribute_container(
                ProcessRecord.build(entry, details[entry.pid], stats.get(entry.pid)),
                port_map,
            )
            for entry in ports
        ]

    # -- archive -----------------------------------------------------------

    async def archive(
        self, pid: int, ports: Iterable[ListeningPort] | None = None
    ) -> ArchivedKill | None:
        """
        Best-effort: remember how to restart ``pid``.

        Only PIDs currently owning a listening port with a readable command
        line are archived. ``ports`` lets callers share one scan. Failures
        are logged and swallowed.
        """
        try:
            if ports is None:
                ports = await self.scan()
            if not any(entry.pid == pid for entry in ports):
                logger.debug("PID %s not listening, nothing to archive", pid)
                return None

            details = await asyncio.to_thread(get_process_details, pid, self._platform)
            if details.command_path == NOT_AVAILABLE:
                return None
            return self._archive.record(pid, details.command_path, details.cwd)
        except PortSentinelError as exc:
            logger.warning("Failed to archive PID %s: %s", pid, exc)
            return None

    async def _shared_scan(self) -> list[ListeningPort]:
        try:
            return await self.scan()
        except PortSentinelError as exc:
            logger.warning("Scan before kill failed, nothing archived: %s", exc)
            return []

    # -- kill / restart ----------------------------------------------------

    def _protection(self, pid: int) -> str | None:
        """Why ``pid`` must not be killed, or None."""
        if pid == self._self_pid:
            return SKIP_SELF
        # Non-positive PIDs address process groups or every process
        if pid <= 0 or pid in RESERVED_PIDS:
            return SKIP_CRITICAL
        return None

    def _check_allowed(self, pid: int) -> None:
        reason = self._protection(pid)
        if reason == SKIP_SELF:
            raise ForbiddenPidError(pid, SKIP_SELF)
        if reason is not None:
            raise ForbiddenPidError(pid, "system critical process")

    async def _terminate(self, pid: int) -> None:
        result = await run_command(self._platform.kill_command(pid), timeout=self._timeout)
        if result.ok:
            return
        if not psutil.pid_exists(pid):
            raise ProcessNotFoundError(pid)
        raise CommandError(result.command, result.returncode, result.stderr or result.stdout)

    async def kill_one(self, pid: int) -> str:
        """
        Archive then kill ``pid``.

        Raises:
            ForbiddenPidError: ``pid`` is reserved, non-positive or the
                manager itself.
            ProcessNotFoundError: ``pid`` is gone.
            CommandError: The kill command failed.
        """
        self._check_allowed(pid)
        await self.archive(pid)
        await self._terminate(pid)
        logger.info("Killed PID %s", pid)
        return f"Process {pid} killed successfully"

    async def kill_bulk(self, pids: Iterable[int]) -> KillBatchResult:
        """
        Kill many PIDs, one after the other, in request order.

        Every PID is archived before the first kill. The manager's own PID,
        reserved PIDs and non-positive PIDs are skipped, never failed.
        """
        ordered = list(dict.fromkeys(pids))
        logger.info("Bulk kill requested for %s", ", ".join(map(str, ordered)))

        ports = await self._shared_scan()
        await asyncio.gather(*(self.archive(pid, ports) for pid in ordered))

        succeeded: list[int] = []
        failed: list[PidOutcome] = []
        skipped: list[PidOutcome] = []

        for pid in ordered:
            reason = self._protection(pid)
            if reason is not None:
                skipped.append(PidOutcome(pid, reason))
                continue
            try:
                await self._terminate(pid)
            except PortSentinelError as exc:
                failed.append(PidOutcome(pid, str(exc)))
            else:
                succeeded.append(pid)

        return KillBatchResult(
            succeeded=tuple(succeeded), failed=tuple(failed), skipped=tuple(skipped)
        )

    async def restart(self, pid: int) -> str:
        """
        Re-launch the archived command of ``pid``, detached.

        The entry is consumed on success. The new process is not waited on.

        Raises:
            ArchiveNotFoundError: Nothing archived for ``pid`` or it expired.
            CommandError: The command could not be started.
        """
        entry = self._archive.restore(pid)
        cwd = entry.cwd or self._default_cwd
        logger.info("Restarting %s (cwd: %s)", entry.command, cwd)
        try:
            self._launcher(
                entry.command,
                shell=True,
                cwd=cwd,
                stdin=subprocess.DEVNULL,
                stdout=subprocess.DEVNULL,
                stderr=subprocess.DEVNULL,
                **self._platform.launch_options(),
            )
        except OSError as exc:
            raise CommandError(
                entry.command, message=f"Failed to restart {entry.command}: {exc}"
            ) from exc
        self._archive.discard(pid)
        return f"Restart signal sent for {entry.command}"

    async def shutdown(self) -> str:
        """Acknowledge, then exit the process after the grace delay."""
        logger.info("Received shutdown request, exiting in %ss", self._shutdown_grace)
        await asyncio.to_thread(self.stop)
        asyncio.get_running_loop().call_later(self._shutdown_grace, self._exit_callback)
        return "Goodbye"
