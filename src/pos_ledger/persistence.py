"""Debounced snapshot persistence and the cloud-sync seam.

Mutations never write to disk directly. They call
:meth:`SnapshotScheduler.schedule`, which serializes the store at once and
arms a timer; a newer schedule cancels the pending timer so only the latest
snapshot reaches the workbook.
"""

from __future__ import annotations

import threading
from datetime import UTC, datetime
from pathlib import Path
from typing import Any, Callable, Dict, Mapping, Optional, Protocol

from . import data_manager, log
from .models import EntityStore


SnapshotWriter = Callable[[Mapping[str, Any], Path], None]


def _write_snapshot(snapshot: Mapping[str, Any], destination: Path) -> None:
    data_manager.save_snapshot(snapshot, destination, saved_at=datetime.now(UTC))


class SnapshotScheduler:
    """Coalesce bursts of mutations into a single delayed workbook write.

    Args:
        destination (Path): Workbook path the snapshot is written to.
        delay_seconds (float): Quiet period before a scheduled write fires.
        writer (Callable | None): Override for the write function, mainly for
            tests.
    """

    def __init__(self, destination: Path, *, delay_seconds: float = 1.5, writer: Optional[SnapshotWriter] = None) -> None:
        self.destination = Path(destination)
        self.delay_seconds = delay_seconds
        self._writer = writer or _write_snapshot
        self._lock = threading.Lock()
        self._write_lock = threading.Lock()
        self._timer: Optional[threading.Timer] = None
        self._pending: Optional[Dict[str, Any]] = None
        self.write_count = 0

    @property
    def pending(self) -> bool:
        with self._lock:
            return self._pending is not None

    def schedule(self, store: EntityStore) -> None:
        """Capture ``store`` now and write it after the quiet period."""

        snapshot = data_manager.snapshot_store(store)
        with self._lock:
            self._pending = snapshot
            if self._timer is not None:
                self._timer.cancel()
            timer = threading.Timer(self.delay_seconds, self.flush_now)
            timer.daemon = True
            self._timer = timer
        timer.start()
        log.debug("Scheduled snapshot write to '%s' in %ss", self.destination, self.delay_seconds)

    def flush_now(self) -> bool:
        """Write the pending snapshot synchronously.

        Returns:
            bool: ``True`` if a snapshot was written. ``False`` when nothing
                was pending or the write failed; a failed snapshot stays
                pending for the next attempt.
        """

        # Only the snapshot hand-off holds _lock; writes are serialized by _write_lock.
        with self._write_lock:
            with self._lock:
                if self._timer is not None:
                    self._timer.cancel()
                    self._timer = None
                snapshot = self._pending
            if snapshot is None:
                return False
            try:
                self._writer(snapshot, self.destination)
            except Exception:
                log.exception("Failed to persist snapshot to '%s'; keeping state in memory", self.destination)
                return False
            with self._lock:
                if self._pending is snapshot:
                    self._pending = None
                self.write_count += 1
        log.info("Persisted snapshot to '%s'", self.destination)
        return True

    def cancel(self) -> None:
        """Drop the pending snapshot without writing it."""

        with self._lock:
            if self._timer is not None:
                self._timer.cancel()
                self._timer = None
            self._pending = None

    def shutdown(self) -> None:
        """Flush whatever is pending and stop the timer."""

        self.flush_now()
        with self._lock:
            if self._timer is not None:
                self._timer.cancel()
                self._timer = None


class CloudSync(Protocol):
    """Remote replication target for snapshots."""

    def status(self) -> str:
        ...

    def push(self, snapshot: Mapping[str, Any]) -> bool:
        ...


class OfflineSync:
    """Sync target used when no remote is configured; every push is declined."""

    def status(self) -> str:
        return "OFFLINE"

    def push(self, snapshot: Mapping[str, Any]) -> bool:
        log.info("Cloud sync unavailable; snapshot with %d collections kept local", len(snapshot))
        return False


__all__ = [
    "SnapshotWriter",
    "SnapshotScheduler",
    "CloudSync",
    "OfflineSync",
]
