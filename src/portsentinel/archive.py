"""Time-bounded archive of recently killed processes."""

import logging
import threading
import time
from collections.abc import Callable

from portsentinel.errors import ArchiveNotFoundError
from portsentinel.models import ArchivedKill

logger = logging.getLogger(__name__)

DEFAULT_TTL = 60.0
DEFAULT_SWEEP_INTERVAL = 30.0


class ProcessArchive:
    """
    Remembers how to re-launch processes that were just killed.

    Entries expire ``ttl`` seconds after being recorded. A daemon thread
    sweeps expired entries every ``sweep_interval`` seconds; lookups also
    refuse entries past their TTL, so a restart never sees a stale entry that
    the sweeper has not reached yet. All access goes through one lock.
    """

    def __init__(
        self,
        ttl: float = DEFAULT_TTL,
        sweep_interval: float = DEFAULT_SWEEP_INTERVAL,
        clock: Callable[[], float] = time.time,
    ) -> None:
        """
        Initialize the ProcessArchive.

        Args:
            ttl: Seconds an entry stays restorable. Default 60s.
            sweep_interval: Seconds between background sweeps. Default 30s.
            clock: Time source, returns seconds.
        """
        self._ttl = ttl
        self._sweep_interval = sweep_interval
        self._clock = clock
        self._entries: dict[int, ArchivedKill] = {}
        self._lock = threading.Lock()
        self._stop_event = threading.Event()
        self._thread: threading.Thread | None = None

    @property
    def ttl(self) -> float:
        """Seconds an entry stays restorable."""
        return self._ttl

    @property
    def sweep_interval(self) -> float:
        """Get the current sweep interval."""
        return self._sweep_interval

    @sweep_interval.setter
    def sweep_interval(self, value: float) -> None:
        """Set the sweep interval."""
        self._sweep_interval = max(0.1, value)  # Minimum 0.1 seconds

    @property
    def is_running(self) -> bool:
        """Check if the sweeper thread is running."""
        return self._thread is not None and self._thread.is_alive()

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)

    def __contains__(self, pid: object) -> bool:
        with self._lock:
            return pid in self._entries

    def record(self, pid: int, command: str, cwd: str | None = None) -> ArchivedKill:
        """Store (or replace) the entry for ``pid``."""
        entry = ArchivedKill(pid=pid, command=command, cwd=cwd, archived_at=self._clock())
        with self._lock:
            self._entries[pid] = entry
        logger.info("Archived PID %s: %s", pid, command)
        return entry

    def restore(self, pid: int) -> ArchivedKill:
        """
        Return the entry for ``pid``.

        Raises:
            ArchiveNotFoundError: Nothing archived for ``pid``, or it expired.
        """
        now = self._clock()
        with self._lock:
            entry = self._entries.get(pid)
            if entry is not None and self._expired(entry, now):
                del self._entries[pid]
                entry = None
        if entry is None:
            raise ArchiveNotFoundError(pid)
        return entry

    def discard(self, pid: int) -> None:
        """Forget ``pid``; unknown PIDs are ignored."""
        with self._lock:
            self._entries.pop(pid, None)

    def sweep(self) -> int:
        """Drop every expired entry and return how many were removed."""
        now = self._clock()
        with self._lock:
            expired = [pid for pid, entry in self._entries.items() if self._expired(entry, now)]
            for pid in expired:
                del self._entries[pid]
        if expired:
            logger.debug("Swept %d expired archive entries", len(expired))
        return len(expired)

    def _expired(self, entry: ArchivedKill, now: float) -> bool:
        return now - entry.archived_at > self._ttl

    def start(self) -> None:
        """Start the sweeper thread."""
        if self.is_running:
            return

        self._stop_event.clear()
        self._thread = threading.Thread(
            target=self._sweep_loop,
            daemon=True,
            name="ProcessArchiveSweeper",
        )
        self._thread.start()

    def stop(self, timeout: float | None = 5.0) -> None:
        """
        Stop the sweeper thread.

        Args:
            timeout: How long to wait for thread to stop (seconds).
        """
        self._stop_event.set()
        if self._thread is not None:
            self._thread.join(timeout=timeout)
            self._thread = None

    def _sweep_loop(self) -> None:
        """Sweep loop running in the background thread."""
        while not self._stop_event.wait(timeout=self._sweep_interval):
            try:
                self.sweep()
            except Exception:
                # Keep sweeping; a failed pass only delays expiry
                logger.exception("Archive sweep failed")
