"""Tests for the ProcessArchive class."""

import time

import pytest

from portsentinel.archive import ProcessArchive
from portsentinel.errors import ArchiveNotFoundError


class FakeClock:
    """Manually advanced time source."""

    def __init__(self, now: float = 1000.0) -> None:
        self.now = now

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def archive(clock):
    return ProcessArchive(ttl=60.0, sweep_interval=30.0, clock=clock)


class TestArchiveEntries:
    """Recording and restoring entries."""

    def test_record_and_restore(self, archive, clock):
        archive.record(4567, "node server.js", "/srv/app")

        entry = archive.restore(4567)

        assert entry.pid == 4567
        assert entry.command == "node server.js"
        assert entry.cwd == "/srv/app"
        assert entry.archived_at == clock.now

    def test_unknown_pid_not_found(self, archive):
        with pytest.raises(ArchiveNotFoundError):
            archive.restore(4567)

    def test_rearchive_overwrites(self, archive, clock):
        archive.record(4567, "node old.js")
        clock.advance(10)
        archive.record(4567, "node new.js", "/srv")

        entry = archive.restore(4567)

        assert entry.command == "node new.js"
        assert entry.archived_at == clock.now
        assert len(archive) == 1

    def test_entry_within_ttl_restorable(self, archive, clock):
        archive.record(4567, "node server.js")
        clock.advance(60)

        assert archive.restore(4567).command == "node server.js"

    def test_entry_past_ttl_not_found_before_sweep(self, archive, clock):
        archive.record(4567, "node server.js")
        clock.advance(61)

        with pytest.raises(ArchiveNotFoundError):
            archive.restore(4567)
        assert 4567 not in archive

    def test_discard(self, archive):
        archive.record(4567, "node server.js")
        archive.discard(4567)
        archive.discard(4567)

        assert len(archive) == 0


class TestSweep:
    """Expiry sweeping."""

    def test_sweep_removes_only_expired(self, archive, clock):
        archive.record(1000, "old")
        clock.advance(45)
        archive.record(2000, "new")
        clock.advance(20)

        removed = archive.sweep()

        assert removed == 1
        assert 1000 not in archive
        assert 2000 in archive

    def test_sweep_empty(self, archive):
        assert archive.sweep() == 0


class TestSweeperThread:
    """Background sweeper lifecycle."""

    def test_defaults(self):
        archive = ProcessArchive()

        assert archive.ttl == 60.0
        assert archive.sweep_interval == 30.0
        assert not archive.is_running

    def test_sweep_interval_minimum(self):
        archive = ProcessArchive()

        archive.sweep_interval = 0.01
        assert archive.sweep_interval >= 0.1

    def test_start_stop(self):
        archive = ProcessArchive(sweep_interval=0.1)

        archive.start()
        assert archive.is_running

        archive.stop()
        assert not archive.is_running

    def test_start_idempotent(self):
        archive = ProcessArchive(sweep_interval=0.1)

        archive.start()
        thread1 = archive._thread
        archive.start()
        thread2 = archive._thread

        assert thread1 is thread2
        archive.stop()

    def test_sweeper_expires_entries(self):
        archive = ProcessArchive(ttl=0.05, sweep_interval=0.1)
        archive.record(4567, "node server.js")

        archive.start()
        try:
            deadline = time.time() + 3.0
            while 4567 in archive and time.time() < deadline:
                time.sleep(0.05)
        finally:
            archive.stop()

        assert 4567 not in archive
