"""Runtime and interactivity heuristics for schedtop.

These are pure functions over a single instantaneous reading. Nothing here
looks at history; the tracking store combines them with accumulated state.
"""

import math

from schedtop.models import Interactivity

MIN_CPU_RUNTIME = 1.0
MAX_CPU_RUNTIME = 20.0
MIN_MEMORY_RUNTIME = 5.0

# Lower bounds of each interactivity band, checked from the top down
_INTERACTIVITY_BANDS: tuple[tuple[float, Interactivity], ...] = (
    (70.0, Interactivity.REAL_TIME),
    (25.0, Interactivity.HIGH),
    (10.0, Interactivity.MEDIUM),
    (5.0, Interactivity.LOW),
)


def round_half_up(value: float) -> float:
    """Round a non-negative value to the nearest integer, halves rounding up.

    The builtin round() rounds halves to even, which would turn 10.5 into 10.
    """
    return float(math.floor(value + 0.5))


def estimate_total_runtime(cpu_percent: float, memory_kb: int) -> float:
    """
    Estimate a total runtime budget (seconds) from the current reading.

    Busy processes map linearly from CPU 0-100% onto 1-20 seconds. Idle
    processes fall back to their resident memory: 10 seconds plus one second
    per 50 MB, never below 5 seconds.

    Args:
        cpu_percent: Current CPU usage percentage (>= 0).
        memory_kb: Current resident memory in KB.

    Returns:
        A positive number of seconds.
    """
    if cpu_percent > 0:
        total = round_half_up(1.0 + (cpu_percent / 100.0) * 19.0)
        return min(max(total, MIN_CPU_RUNTIME), MAX_CPU_RUNTIME)

    memory_mb = memory_kb / 1024.0
    return max(round_half_up(10.0 + memory_mb / 50.0), MIN_MEMORY_RUNTIME)


def classify_interactivity(smoothed_cpu: float) -> Interactivity:
    """Return the interactivity band for a smoothed CPU percentage."""
    for lower_bound, label in _INTERACTIVITY_BANDS:
        if smoothed_cpu >= lower_bound:
            return label
    return Interactivity.VERY_LOW
