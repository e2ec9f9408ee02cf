"""Run-length grouping of qualifying hours into periods.

Every scorer (and the safety window, with an inverted "safe" predicate) uses
the same grouping: hour items are scanned in input order, and a qualifying
item extends the current run only when its hour is exactly one after the
run's last hour and, when a `joins` rule is given, that rule accepts it.
Anything else starts a new run.
"""

from __future__ import annotations

from typing import Any, Callable, Iterable, Mapping, Sequence, TypeVar

from skyrisk.numeric import hour_label

T = TypeVar("T")
P = TypeVar("P")


def _get_field(item: Any, key: str, default=None):
    """Support attribute, dict, or Mapping access for hour items."""
    if item is None:
        return default
    if isinstance(item, Mapping):
        return item.get(key, default)
    return getattr(item, key, default)


def group_consecutive(
    items: Iterable[T],
    predicate: Callable[[T], bool],
    joins: Callable[[Sequence[T], T], bool] | None = None,
) -> list[list[T]]:
    """Group qualifying items into runs of consecutive hours, preserving input order.

    `joins(run, item)` can veto extending a run with an otherwise adjacent item.
    """
    runs: list[list[T]] = []
    current: list[T] = []
    current_end: int | None = None

    for item in items:
        if not predicate(item):
            continue
        hour = int(_get_field(item, "hour"))
        adjacent = current and current_end is not None and hour == current_end + 1
        if adjacent and (joins is None or joins(current, item)):
            current.append(item)
        else:
            if current:
                runs.append(current)
            current = [item]
        current_end = hour

    if current:
        runs.append(current)
    return runs


def period_bounds(run: Sequence[Any]) -> dict:
    """Common fields for a run: start/end hour, HH:00 labels, duration and members."""
    start_hour = int(_get_field(run[0], "hour"))
    end_hour = int(_get_field(run[-1], "hour"))
    return {
        "start_hour": start_hour,
        "end_hour": end_hour,
        "start": hour_label(start_hour),
        "end": hour_label(end_hour),
        "duration": end_hour - start_hour + 1,
        "hours": [int(_get_field(item, "hour")) for item in run],
    }


def build_periods(
    items: Iterable[T],
    predicate: Callable[[T], bool],
    summarize: Callable[[Sequence[T]], P],
    joins: Callable[[Sequence[T], T], bool] | None = None,
) -> list[P]:
    """Group qualifying items and turn each run into a period via `summarize`."""
    return [summarize(run) for run in group_consecutive(items, predicate, joins)]


def collection_totals(periods: Sequence[Any]) -> dict:
    """Count, total duration and longest duration across periods."""
    durations = [int(_get_field(p, "duration", 0)) for p in periods]
    return {
        "total_count": len(durations),
        "total_duration": sum(durations),
        "max_duration": max(durations) if durations else 0,
    }
