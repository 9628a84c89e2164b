"""Per-process tracking state for schedtop."""

import threading
from collections.abc import Iterable, Iterator
from contextlib import contextmanager

import structlog

from schedtop.errors import StateLockError
from schedtop.estimation import classify_interactivity
from schedtop.models import ProcessMetricsRecord, ProcessSnapshotEntry, ProcessTrackingState

log = structlog.get_logger()

ACTIVITY_THRESHOLD = 1.0  # CPU% above which a process counts as active
SMOOTHING_ALPHA = 0.25  # Weight of the newest sample in the CPU moving average
DEFAULT_PRIORITY = 1  # No portable OS priority; constant placeholder
DEFAULT_LOCK_TIMEOUT = 1.0


class TrackingStore:
    """
    Owned map from PID to tracking state, guarded by a single lock.

    Every update of one PID and every reaping pass holds the lock for its
    whole duration, so concurrent polls never interleave on the same state.
    """

    def __init__(
        self,
        activity_threshold: float = ACTIVITY_THRESHOLD,
        smoothing_alpha: float = SMOOTHING_ALPHA,
        lock_timeout: float = DEFAULT_LOCK_TIMEOUT,
    ) -> None:
        """
        Initialize the TrackingStore.

        Args:
            activity_threshold: CPU% a sample must exceed to count as active.
            smoothing_alpha: EWMA weight given to the newest CPU sample.
            lock_timeout: How long to wait for the lock (seconds) before failing.
        """
        self._states: dict[int, ProcessTrackingState] = {}
        self._lock = threading.Lock()
        self._activity_threshold = activity_threshold
        self._smoothing_alpha = smoothing_alpha
        self._lock_timeout = lock_timeout

    def __len__(self) -> int:
        return len(self._states)

    def __contains__(self, pid: object) -> bool:
        return pid in self._states

    def get(self, pid: int) -> ProcessTrackingState | None:
        """Get the tracking state for a PID, if any."""
        return self._states.get(pid)

    def pids(self) -> set[int]:
        """Get the set of tracked PIDs."""
        with self._locked():
            return set(self._states)

    @contextmanager
    def _locked(self) -> Iterator[None]:
        """Hold the store lock, raising StateLockError on timeout."""
        if not self._lock.acquire(timeout=self._lock_timeout):
            raise StateLockError(
                f"could not acquire tracking state lock within {self._lock_timeout}s"
            )
        try:
            yield
        finally:
            self._lock.release()

    def update(
        self,
        entry: ProcessSnapshotEntry,
        total_runtime: float,
        now: float,
    ) -> ProcessMetricsRecord:
        """
        Advance the tracking state of one process and derive its metrics.

        Creates the state on first observation. Otherwise accumulates
        CPU-seconds over the elapsed interval, updates the CPU moving average
        and counts a wake on every below-to-above threshold transition.

        Args:
            entry: Current reading of the process.
            total_runtime: Runtime budget estimated from the current reading.
            now: Current monotonic timestamp (seconds).

        Raises:
            StateLockError: If the store lock cannot be acquired.
        """
        cpu = entry.cpu_percent
        now_active = cpu > self._activity_threshold

        with self._locked():
            state = self._states.get(entry.pid)
            if state is None:
                state = ProcessTrackingState(
                    last_seen=now,
                    wake_count=1 if now_active else 0,
                    was_active=now_active,
                    smoothed_cpu=cpu,
                )
                self._states[entry.pid] = state
                log.debug("tracking_started", pid=entry.pid, name=entry.name)
            else:
                # Clock ties (or a clock stepping back) count as no time passing
                elapsed = max(now - state.last_seen, 0.0)
                state.accumulated_cpu_seconds += (cpu / 100.0) * elapsed

                alpha = self._smoothing_alpha
                state.smoothed_cpu = alpha * cpu + (1.0 - alpha) * state.smoothed_cpu

                if now_active and not state.was_active:
                    state.wake_count += 1
                state.was_active = now_active
                state.last_seen = max(now, state.last_seen)

            accumulated = state.accumulated_cpu_seconds
            wake_count = state.wake_count
            smoothed = state.smoothed_cpu

        if total_runtime > 0:
            progress = min(max(accumulated / total_runtime * 100.0, 0.0), 100.0)
        else:
            progress = 0.0

        if accumulated >= total_runtime:
            remaining = 0.0
        else:
            remaining = max(total_runtime - accumulated, 0.0)

        return ProcessMetricsRecord(
            pid=str(entry.pid),
            name=entry.name,
            priority=DEFAULT_PRIORITY,
            cpu_percent=cpu,
            memory_kb=entry.memory_kb,
            status=entry.status.value,
            interactivity=classify_interactivity(smoothed).value,
            progress=progress,
            wake_count=wake_count,
            total_runtime=total_runtime,
            remaining=remaining,
        )

    def reap(self, live_pids: Iterable[int]) -> int:
        """
        Drop tracking state for every PID not in the live set.

        Args:
            live_pids: PIDs present in the current snapshot.

        Returns:
            Number of entries removed.

        Raises:
            StateLockError: If the store lock cannot be acquired.
        """
        live = set(live_pids)
        with self._locked():
            stale = [pid for pid in self._states if pid not in live]
            for pid in stale:
                del self._states[pid]

        if stale:
            log.debug("tracking_reaped", count=len(stale), remaining=len(self._states))
        return len(stale)
