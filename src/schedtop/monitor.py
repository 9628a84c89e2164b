"""Background polling for schedtop."""

import threading
from queue import Queue

import structlog

from schedtop.engine import PollResult, SamplingEngine

log = structlog.get_logger()

MIN_POLL_RATE = 0.1


class SchedulerMonitor:
    """
    Polls a SamplingEngine on a fixed interval.

    Runs in a separate daemon thread and pushes every PollResult, failed or
    not, to a thread-safe Queue. A failed poll does not stop the loop; the
    next tick is the retry.
    """

    def __init__(
        self,
        update_queue: Queue[PollResult],
        engine: SamplingEngine | None = None,
        poll_rate: float = 2.0,
    ) -> None:
        """
        Initialize the SchedulerMonitor.

        Args:
            update_queue: Thread-safe queue to push results to.
            engine: Engine to poll. A psutil-backed engine is created if omitted.
            poll_rate: How often to poll (in seconds). Default 2.0s.
        """
        self._queue = update_queue
        self._engine = engine if engine is not None else SamplingEngine()
        self._poll_rate = max(MIN_POLL_RATE, poll_rate)
        self._stop_event = threading.Event()
        self._thread: threading.Thread | None = None

    @property
    def queue(self) -> Queue[PollResult]:
        """Get the queue results are pushed to."""
        return self._queue

    @property
    def engine(self) -> SamplingEngine:
        """Get the engine being polled."""
        return self._engine

    @property
    def poll_rate(self) -> float:
        """Get the current poll rate."""
        return self._poll_rate

    @poll_rate.setter
    def poll_rate(self, value: float) -> None:
        """Set the poll rate."""
        self._poll_rate = max(MIN_POLL_RATE, value)

    @property
    def is_running(self) -> bool:
        """Check if the monitor thread is running."""
        return self._thread is not None and self._thread.is_alive()

    def start(self) -> None:
        """Start the monitoring thread."""
        if self.is_running:
            return

        # Each thread owns its stop event; a slow poll can outlive stop()
        self._stop_event = threading.Event()
        self._thread = threading.Thread(
            target=self._poll_loop,
            args=(self._stop_event,),
            daemon=True,
            name="SchedulerMonitor",
        )
        self._thread.start()
        log.info("monitor_started", poll_rate=self._poll_rate)

    def stop(self, timeout: float | None = 5.0) -> None:
        """
        Stop the monitoring thread.

        Args:
            timeout: How long to wait for thread to stop (seconds).
        """
        self._stop_event.set()
        if self._thread is not None:
            self._thread.join(timeout=timeout)
            self._thread = None
            log.info("monitor_stopped")

    def poll_now(self) -> PollResult:
        """Poll immediately on the calling thread and queue the result."""
        result = self._engine.poll()
        self._queue.put(result)
        return result

    def _poll_loop(self, stop_event: threading.Event) -> None:
        """Main polling loop running in the background thread."""
        while not stop_event.is_set():
            self.poll_now()
            # Wait for poll_rate seconds or until stop is requested
            stop_event.wait(timeout=self._poll_rate)
