"""Small numeric and clock helpers shared by the scorers."""

from __future__ import annotations

from math import floor, sqrt
from typing import Sequence

COMPASS_POINTS = ("N", "NE", "E", "SE", "S", "SW", "W", "NW")
MINUTES_PER_DAY = 24 * 60


def round_half_up(value: float, decimals: int = 0) -> float:
    """Round halves toward positive infinity, matching browser-side rounding of the same scores."""
    factor = 10 ** decimals
    return floor(value * factor + 0.5) / factor


def mean(values: Sequence[float]) -> float:
    """Arithmetic mean; 0.0 for an empty sequence."""
    if not values:
        return 0.0
    return sum(values) / len(values)


def population_std_dev(values: Sequence[float]) -> float:
    """Population standard deviation; 0.0 for an empty sequence."""
    if not values:
        return 0.0
    avg = mean(values)
    return sqrt(sum((v - avg) ** 2 for v in values) / len(values))


def coefficient_of_variation(values: Sequence[float]) -> float:
    """Return stddev/mean, treating a zero mean as no variation."""
    avg = mean(values)
    if avg == 0:
        return 0.0
    return population_std_dev(values) / avg


def compass_point(degrees: float) -> str:
    """Map a bearing in degrees to an 8-point compass label."""
    return COMPASS_POINTS[int(round_half_up(degrees / 45)) % 8]


def hour_label(hour: int) -> str:
    """Render an integer hour as "HH:00"."""
    return f"{hour:02d}:00"


def format_clock(hour: float) -> str:
    """Render a fractional hour (e.g. 6.75) as "HH:MM", clamped to 00:00-24:00."""
    total_minutes = int(round_half_up(hour * 60))
    total_minutes = min(max(total_minutes, 0), MINUTES_PER_DAY)
    h, m = divmod(total_minutes, 60)
    return f"{h:02d}:{m:02d}"


def parse_clock(value: str | float | int | None) -> float:
    """Parse "HH:MM" (or a bare hour) into a fractional hour."""
    if value is None:
        return 0.0
    if isinstance(value, (int, float)):
        return float(value)
    parts = str(value).strip().split(":")
    hours = int(parts[0]) if parts[0] else 0
    minutes = int(parts[1]) if len(parts) > 1 and parts[1] else 0
    return hours + minutes / 60


def clock_label(value: str) -> str:
    """Canonical "HH:MM" for a clock string or ISO datetime; ValueError if it is not a time of day."""
    text = str(value).strip()
    if "T" in text:
        text = text.split("T", 1)[1][:5]
    parts = text.split(":")
    if not 1 <= len(parts) <= 3 or not all(p.isdigit() for p in parts[:2]):
        raise ValueError(f"Not a clock value: {value!r}")
    hours = int(parts[0])
    minutes = int(parts[1]) if len(parts) > 1 else 0
    if hours > 23 or minutes > 59:
        raise ValueError(f"Clock value out of range: {value!r}")
    return f"{hours:02d}:{minutes:02d}"
