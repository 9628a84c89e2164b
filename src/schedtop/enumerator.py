"""Process enumeration for schedtop."""

from typing import Protocol

import psutil
import structlog

from schedtop.errors import EnumeratorError
from schedtop.models import ProcessSnapshotEntry, ProcessStatus

log = structlog.get_logger()


class ProcessEnumerator(Protocol):
    """Anything that can list the live processes of the host."""

    def snapshot(self) -> list[ProcessSnapshotEntry]:
        """Return one reading of every live process."""
        ...


class PsutilEnumerator:
    """
    Process enumerator backed by psutil.

    psutil caches Process objects between process_iter() calls, so
    cpu_percent is measured against the previous snapshot. The very first
    snapshot reports 0.0 CPU for every process.
    """

    ATTRS = ["pid", "name", "status", "cpu_percent", "memory_info"]

    def snapshot(self) -> list[ProcessSnapshotEntry]:
        """
        Collect a reading of all running processes.

        Handles AccessDenied and ZombieProcess errors gracefully by skipping
        the process.

        Raises:
            EnumeratorError: If the process table itself cannot be read.
        """
        entries: list[ProcessSnapshotEntry] = []

        try:
            for proc in psutil.process_iter(attrs=self.ATTRS):
                try:
                    entries.append(self._to_entry(proc.info))
                except (psutil.NoSuchProcess, psutil.AccessDenied):
                    # Process died mid-poll or is off limits
                    continue
        except psutil.Error as exc:
            raise EnumeratorError(f"failed to enumerate processes: {exc}") from exc

        return entries

    @staticmethod
    def _to_entry(info: dict) -> ProcessSnapshotEntry:
        """Build a snapshot entry from a psutil info dict with safe defaults."""
        mem_info = info.get("memory_info")
        memory_kb = mem_info.rss // 1024 if mem_info else 0

        return ProcessSnapshotEntry(
            pid=info.get("pid", 0),
            name=info.get("name") or "",
            cpu_percent=info.get("cpu_percent") or 0.0,
            memory_kb=memory_kb,
            status=ProcessStatus.from_platform(info.get("status")),
        )
