"""Sampling and estimation engine for schedtop."""

import time
from collections.abc import Callable
from dataclasses import dataclass, field

import structlog

from schedtop import logging as schedtop_logging
from schedtop.enumerator import ProcessEnumerator, PsutilEnumerator
from schedtop.errors import EnumeratorError, SchedtopError
from schedtop.estimation import estimate_total_runtime
from schedtop.models import ProcessMetricsRecord
from schedtop.store import TrackingStore

log = structlog.get_logger()


@dataclass(slots=True, frozen=True)
class PollResult:
    """Outcome of one poll: either ordered records or an error message."""

    records: list[ProcessMetricsRecord] = field(default_factory=list)
    error: str | None = None

    @property
    def ok(self) -> bool:
        """Whether the poll succeeded."""
        return self.error is None

    @classmethod
    def success(cls, records: list[ProcessMetricsRecord]) -> "PollResult":
        return cls(records=records)

    @classmethod
    def failure(cls, error: str) -> "PollResult":
        return cls(error=error)

    def to_dict(self) -> dict:
        """Return the result in the shape handed to a UI shell."""
        if self.error is not None:
            return {"ok": False, "error": self.error}
        return {"ok": True, "processes": [record.to_dict() for record in self.records]}


class SamplingEngine:
    """
    Turns process snapshots into synthetic scheduling metrics.

    Each poll reads a snapshot from the enumerator without holding any lock,
    advances the tracking state of every live process, drops state for
    processes that have exited, and returns the records sorted by
    descending CPU usage.

    Events go through structlog. Call schedtop.logging.configure() to send
    them to a file; until something configures structlog, debug events are
    filtered out.
    """

    def __init__(
        self,
        enumerator: ProcessEnumerator | None = None,
        store: TrackingStore | None = None,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        """
        Initialize the SamplingEngine.

        Args:
            enumerator: Source of process snapshots. Defaults to psutil.
            store: Tracking state store. A fresh one is created if omitted.
            clock: Monotonic time source in seconds.
        """
        self._enumerator = enumerator if enumerator is not None else PsutilEnumerator()
        self._store = store if store is not None else TrackingStore()
        self._clock = clock
        schedtop_logging.install_default_filter()

    @property
    def store(self) -> TrackingStore:
        """Get the tracking state store."""
        return self._store

    def poll(self) -> PollResult:
        """
        Take one sample of all processes and derive their metrics.

        Never raises for lock or enumerator failures; those are returned as
        a failed PollResult so the caller can simply retry on its next tick.
        """
        try:
            records = self._sample()
        except SchedtopError as exc:
            log.warning("poll_failed", error=str(exc), error_type=type(exc).__name__)
            return PollResult.failure(str(exc))
        return PollResult.success(records)

    def _sample(self) -> list[ProcessMetricsRecord]:
        """Run one poll, raising SchedtopError on failure."""
        try:
            entries = list(self._enumerator.snapshot())
        except SchedtopError:
            raise
        except Exception as exc:
            raise EnumeratorError(f"process snapshot failed: {exc}") from exc
        now = self._clock()

        records = [
            self._store.update(
                entry,
                estimate_total_runtime(entry.cpu_percent, entry.memory_kb),
                now,
            )
            for entry in entries
        ]

        self._store.reap(entry.pid for entry in entries)

        # sorted() is stable, so equal CPU keeps snapshot order
        records = sorted(records, key=lambda r: r.cpu_percent, reverse=True)
        log.debug("poll_completed", processes=len(records), tracked=len(self._store))
        return records
