"""Shared test fixtures for schedtop."""

import pytest

from schedtop.engine import SamplingEngine
from schedtop.models import ProcessSnapshotEntry, ProcessStatus
from schedtop.store import TrackingStore


class FakeClock:
    """Manually advanced monotonic clock."""

    def __init__(self, start: float = 1000.0) -> None:
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


class FakeEnumerator:
    """Enumerator returning whatever snapshot the test sets."""

    def __init__(self, entries: list[ProcessSnapshotEntry] | None = None) -> None:
        self.entries = entries or []
        self.error: Exception | None = None
        self.calls = 0

    def snapshot(self) -> list[ProcessSnapshotEntry]:
        self.calls += 1
        if self.error is not None:
            raise self.error
        return list(self.entries)


def make_entry(
    pid: int = 100,
    name: str = "test_proc",
    cpu: float = 0.0,
    memory_kb: int = 1000,
    status: ProcessStatus = ProcessStatus.RUNNING,
) -> ProcessSnapshotEntry:
    """Create a ProcessSnapshotEntry for testing."""
    return ProcessSnapshotEntry(
        pid=pid,
        name=name,
        cpu_percent=cpu,
        memory_kb=memory_kb,
        status=status,
    )


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def enumerator() -> FakeEnumerator:
    return FakeEnumerator()


@pytest.fixture
def store() -> TrackingStore:
    return TrackingStore()


@pytest.fixture
def engine(enumerator: FakeEnumerator, store: TrackingStore, clock: FakeClock) -> SamplingEngine:
    return SamplingEngine(enumerator=enumerator, store=store, clock=clock)
