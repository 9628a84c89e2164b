"""Data models for schedtop."""

from dataclasses import asdict, dataclass
from enum import Enum


class ProcessStatus(Enum):
    """Lifecycle status of a process as reported by the enumerator."""

    RUNNING = "running"
    SLEEPING = "sleeping"
    IDLE = "idle"
    STOPPED = "stopped"
    ZOMBIE = "zombie"
    TRACING = "tracing"
    UNKNOWN = "unknown"

    @classmethod
    def from_platform(cls, raw: str | None) -> "ProcessStatus":
        """Map a psutil status string onto the closed set of statuses."""
        if raw in _PLATFORM_STATUSES:
            return _PLATFORM_STATUSES[raw]
        return cls.UNKNOWN


_PLATFORM_STATUSES = {
    "running": ProcessStatus.RUNNING,
    "sleeping": ProcessStatus.SLEEPING,
    "disk-sleep": ProcessStatus.SLEEPING,
    "idle": ProcessStatus.IDLE,
    "stopped": ProcessStatus.STOPPED,
    "zombie": ProcessStatus.ZOMBIE,
    "tracing-stop": ProcessStatus.TRACING,
}


class Interactivity(Enum):
    """Interactivity label derived from smoothed CPU usage."""

    REAL_TIME = "real-time"
    HIGH = "high"
    MEDIUM = "medium"
    LOW = "low"
    VERY_LOW = "very low"


@dataclass(slots=True, frozen=True)
class ProcessSnapshotEntry:
    """Immutable reading of one live process."""

    pid: int
    name: str
    cpu_percent: float  # 0.0 - 100.0 * core_count
    memory_kb: int
    status: ProcessStatus


@dataclass(slots=True)
class ProcessTrackingState:
    """Per-process state kept between polls."""

    last_seen: float
    accumulated_cpu_seconds: float = 0.0
    wake_count: int = 0
    was_active: bool = False
    smoothed_cpu: float = 0.0


@dataclass(slots=True, frozen=True)
class ProcessMetricsRecord:
    """Derived scheduling metrics for one process in one poll."""

    pid: str
    name: str
    priority: int
    cpu_percent: float
    memory_kb: int
    status: str
    interactivity: str
    progress: float  # 0.0 - 100.0
    wake_count: int
    total_runtime: float  # Seconds
    remaining: float  # Seconds

    def to_dict(self) -> dict:
        """Return a plain dict suitable for JSON serialization."""
        return asdict(self)
