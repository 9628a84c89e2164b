"""Tests for the TrackingStore."""

import threading

import pytest

from schedtop.errors import StateLockError
from schedtop.store import ACTIVITY_THRESHOLD, DEFAULT_PRIORITY, SMOOTHING_ALPHA, TrackingStore

from conftest import make_entry


class TestFirstObservation:
    """Tests for a PID seen for the first time."""

    def test_creates_state(self, store):
        """Test the first update creates tracking state."""
        store.update(make_entry(pid=1, cpu=50.0), 11.0, now=10.0)

        state = store.get(1)
        assert state is not None
        assert state.last_seen == 10.0
        assert state.accumulated_cpu_seconds == 0.0
        assert state.smoothed_cpu == 50.0
        assert state.was_active is True

    def test_active_process_starts_with_one_wake(self, store):
        """Test a busy newcomer counts one wake."""
        record = store.update(make_entry(cpu=50.0), 11.0, now=10.0)
        assert record.wake_count == 1

    def test_idle_process_starts_with_no_wakes(self, store):
        """Test an idle newcomer counts no wakes."""
        record = store.update(make_entry(cpu=ACTIVITY_THRESHOLD), 10.0, now=10.0)
        assert record.wake_count == 0
        assert store.get(100).was_active is False

    def test_record_fields(self, store):
        """Test the first record reports zero progress and a full budget."""
        entry = make_entry(pid=42, name="worker", cpu=50.0, memory_kb=1000)
        record = store.update(entry, 11.0, now=10.0)

        assert record.pid == "42"
        assert record.name == "worker"
        assert record.priority == DEFAULT_PRIORITY
        assert record.cpu_percent == 50.0
        assert record.memory_kb == 1000
        assert record.status == "running"
        assert record.progress == 0.0
        assert record.remaining == 11.0
        assert record.total_runtime == 11.0
        assert record.interactivity == "high"


class TestSubsequentObservation:
    """Tests for updates of an already tracked PID."""

    def test_accumulates_cpu_seconds(self, store):
        """Test CPU-seconds accumulate over the elapsed interval."""
        store.update(make_entry(cpu=50.0), 11.0, now=10.0)
        record = store.update(make_entry(cpu=50.0), 11.0, now=12.0)

        assert store.get(100).accumulated_cpu_seconds == pytest.approx(1.0)
        assert record.progress == pytest.approx(100.0 / 11.0)
        assert record.remaining == pytest.approx(10.0)

    def test_smoothing(self, store):
        """Test the CPU moving average weights the newest sample by alpha."""
        store.update(make_entry(cpu=0.0), 10.0, now=0.0)
        store.update(make_entry(cpu=100.0), 20.0, now=1.0)

        assert store.get(100).smoothed_cpu == pytest.approx(SMOOTHING_ALPHA * 100.0)

    def test_interactivity_follows_smoothed_cpu(self, store):
        """Test the label reflects smoothed rather than instantaneous CPU."""
        store.update(make_entry(cpu=0.0), 10.0, now=0.0)
        record = store.update(make_entry(cpu=100.0), 20.0, now=1.0)

        # Smoothed is 25.0, not 100.0
        assert record.interactivity == "high"

    def test_zero_elapsed_adds_nothing(self, store):
        """Test polls faster than the clock add no CPU-seconds."""
        store.update(make_entry(cpu=80.0), 16.0, now=5.0)
        store.update(make_entry(cpu=80.0), 16.0, now=5.0)

        assert store.get(100).accumulated_cpu_seconds == 0.0

    def test_clock_going_backwards_adds_nothing(self, store):
        """Test negative elapsed time never decreases the accumulator."""
        store.update(make_entry(cpu=80.0), 16.0, now=5.0)
        store.update(make_entry(cpu=80.0), 16.0, now=6.0)
        before = store.get(100).accumulated_cpu_seconds
        store.update(make_entry(cpu=80.0), 16.0, now=4.0)

        assert store.get(100).accumulated_cpu_seconds == before

    def test_last_seen_advances(self, store):
        """Test last_seen is updated every poll."""
        store.update(make_entry(cpu=1.0), 10.0, now=5.0)
        store.update(make_entry(cpu=1.0), 10.0, now=7.5)

        assert store.get(100).last_seen == 7.5


class TestWakeCounting:
    """Tests for wake transitions."""

    def test_falling_edge_does_not_count(self, store):
        """Test dropping below the threshold leaves wakes unchanged."""
        store.update(make_entry(cpu=50.0), 11.0, now=0.0)
        record = store.update(make_entry(cpu=0.0), 10.0, now=1.0)

        assert record.wake_count == 1

    def test_rising_edge_counts_once(self, store):
        """Test one below-to-above transition adds exactly one wake."""
        store.update(make_entry(cpu=50.0), 11.0, now=0.0)
        store.update(make_entry(cpu=0.0), 10.0, now=1.0)
        record = store.update(make_entry(cpu=5.0), 2.0, now=2.0)

        assert record.wake_count == 2

    def test_staying_active_does_not_count(self, store):
        """Test consecutive active samples do not add wakes."""
        store.update(make_entry(cpu=50.0), 11.0, now=0.0)
        for t in range(1, 5):
            record = store.update(make_entry(cpu=50.0), 11.0, now=float(t))

        assert record.wake_count == 1

    def test_threshold_is_exclusive(self, store):
        """Test exactly 1.0% CPU is not active."""
        store.update(make_entry(cpu=0.0), 10.0, now=0.0)
        record = store.update(make_entry(cpu=1.0), 1.0, now=1.0)

        assert record.wake_count == 0

    def test_custom_threshold(self):
        """Test the activity threshold is configurable."""
        store = TrackingStore(activity_threshold=10.0)
        record = store.update(make_entry(cpu=5.0), 2.0, now=0.0)

        assert record.wake_count == 0


class TestProgressAndRemaining:
    """Tests for derived progress and remaining time."""

    def test_progress_is_capped(self, store):
        """Test progress never exceeds 100 and remaining hits zero."""
        store.update(make_entry(cpu=100.0), 20.0, now=0.0)
        record = store.update(make_entry(cpu=100.0), 20.0, now=60.0)

        assert record.progress == 100.0
        assert record.remaining == 0.0

    def test_remaining_zero_exactly_at_budget(self, store):
        """Test remaining is zero once accumulated equals the budget."""
        store.update(make_entry(cpu=100.0), 20.0, now=0.0)
        record = store.update(make_entry(cpu=100.0), 20.0, now=20.0)

        assert record.remaining == 0.0
        assert record.progress == 100.0

    def test_remaining_positive_below_budget(self, store):
        """Test remaining is positive while under budget."""
        store.update(make_entry(cpu=100.0), 20.0, now=0.0)
        record = store.update(make_entry(cpu=100.0), 20.0, now=19.0)

        assert record.remaining == pytest.approx(1.0)
        assert 0.0 < record.progress < 100.0

    def test_zero_budget_reports_no_progress(self, store):
        """Test a non-positive budget gives zero progress."""
        record = store.update(make_entry(cpu=50.0), 0.0, now=0.0)

        assert record.progress == 0.0
        assert record.remaining == 0.0

    def test_progress_can_move_backwards(self, store):
        """Test a larger budget in a later poll lowers progress.

        The budget is re-estimated from each reading while only the
        accumulated CPU-seconds persist, so progress is not monotonic.
        """
        store.update(make_entry(cpu=10.0), 3.0, now=0.0)
        first = store.update(make_entry(cpu=10.0), 3.0, now=10.0)
        second = store.update(make_entry(cpu=100.0), 20.0, now=10.0)

        assert first.progress == pytest.approx(100.0 / 3.0)
        assert second.progress == pytest.approx(5.0)
        assert second.progress < first.progress


class TestReap:
    """Tests for stale state removal."""

    def test_removes_absent_pids(self, store):
        """Test state for vanished PIDs is dropped."""
        for pid in (1, 2, 3):
            store.update(make_entry(pid=pid), 10.0, now=0.0)

        removed = store.reap([1, 3])

        assert removed == 1
        assert 2 not in store
        assert store.pids() == {1, 3}

    def test_empty_snapshot_clears_store(self, store):
        """Test an empty snapshot drops everything."""
        store.update(make_entry(pid=1), 10.0, now=0.0)
        store.reap([])

        assert len(store) == 0

    def test_nothing_to_reap(self, store):
        """Test reaping with every PID live removes nothing."""
        store.update(make_entry(pid=1), 10.0, now=0.0)

        assert store.reap([1, 99]) == 0
        assert len(store) == 1

    def test_reappearing_pid_starts_fresh(self, store):
        """Test a reused PID gets brand-new state."""
        store.update(make_entry(pid=7, cpu=50.0), 11.0, now=0.0)
        store.update(make_entry(pid=7, cpu=0.0), 10.0, now=5.0)
        store.update(make_entry(pid=7, cpu=50.0), 11.0, now=10.0)
        store.reap([])

        record = store.update(make_entry(pid=7, cpu=50.0), 11.0, now=20.0)

        assert record.wake_count == 1
        assert record.progress == 0.0
        assert store.get(7).accumulated_cpu_seconds == 0.0


class TestLocking:
    """Tests for lock acquisition failures."""

    def test_update_fails_when_lock_is_held(self):
        """Test update raises StateLockError on lock timeout."""
        store = TrackingStore(lock_timeout=0.05)
        store._lock.acquire()
        try:
            with pytest.raises(StateLockError):
                store.update(make_entry(), 10.0, now=0.0)
        finally:
            store._lock.release()

        assert len(store) == 0

    def test_reap_fails_when_lock_is_held(self):
        """Test reap raises StateLockError on lock timeout."""
        store = TrackingStore(lock_timeout=0.05)
        store.update(make_entry(pid=1), 10.0, now=0.0)
        store._lock.acquire()
        try:
            with pytest.raises(StateLockError):
                store.reap([])
        finally:
            store._lock.release()

        assert 1 in store

    def test_lock_released_after_update(self, store):
        """Test the lock is free again after an update."""
        store.update(make_entry(), 10.0, now=0.0)

        assert store._lock.acquire(blocking=False)
        store._lock.release()

    def test_concurrent_updates_same_pid(self):
        """Test concurrent updates of one PID are serialized."""
        store = TrackingStore()
        barrier = threading.Barrier(8)

        def worker(offset: int) -> None:
            barrier.wait()
            for i in range(200):
                store.update(make_entry(pid=1, cpu=50.0), 11.0, now=float(i + offset))

        threads = [threading.Thread(target=worker, args=(n,)) for n in range(8)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()

        state = store.get(1)
        assert state.accumulated_cpu_seconds >= 0.0
        assert state.wake_count == 1
        assert len(store) == 1
