"""Quick per-hour screening, forecast alerts and the day-level safety rating.

The screening levels here are deliberately coarse: they look at one hour in
isolation (surface-to-120 m shear only, a banded icing check) and feed the
safety window and the alert list. The detailed hazard scores live in the
icing, wind and visibility modules.
"""

from __future__ import annotations

from typing import Callable, List, NamedTuple, Sequence, Tuple

from skyrisk.domain import (
    AlertLevel,
    AlertType,
    DailySummary,
    DangerousPeriod,
    ForecastAlert,
    ForecastSummary,
    HourRecord,
    HourScreening,
    OverallSafety,
    ScreeningLevel,
    ScreeningShear,
    SegmentSafety,
    SegmentWeather,
)
from skyrisk.icing import DAY_SEGMENTS
from skyrisk.numeric import hour_label, mean, parse_clock, round_half_up
from skyrisk.periods import build_periods, period_bounds
from utils.logging_utils import get_tagged_logger
logger = get_tagged_logger(__name__, tag="hour_status")


def screen_icing(record: HourRecord) -> ScreeningLevel:
    """Banded icing check on temperature, humidity and precipitation."""
    t = record.temperature_c
    h = record.humidity_pct
    p = record.precipitation_mm_per_h
    if 0 <= t <= 5 and h > 85 and p > 0.5:
        return ScreeningLevel(level=3, text="High", conditions="Temperature 0..+5°C, humidity >85%, precipitation")
    if -2 <= t <= 7 and h > 80 and p > 0.2:
        return ScreeningLevel(level=2, text="Moderate", conditions="Temperature -2..+7°C, humidity >80%, precipitation")
    if -5 <= t <= 10 and h > 75 and p > 0.1:
        return ScreeningLevel(level=1, text="Low", conditions="Temperature -5..+10°C, humidity >75%")
    return ScreeningLevel(level=0, text="None", conditions="Safe conditions")


def screen_wind_shear(record: HourRecord) -> ScreeningShear:
    """Surface-to-120 m shear only; the full three-pair profile is scored in the wind module."""
    speed_diff = abs(record.wind_speed_120m - record.wind_speed_10m)
    dir_diff = abs(record.wind_dir_120m - record.wind_dir_10m)

    if dir_diff > 40 or speed_diff > 6:
        level, text = 3, "Critical"
    elif dir_diff > 25 or speed_diff > 4:
        level, text = 2, "Moderate"
    elif dir_diff > 15 or speed_diff > 2:
        level, text = 1, "Weak"
    else:
        level, text = 0, "Low"

    return ScreeningShear(
        level=level,
        text=text,
        speed_diff=round_half_up(speed_diff, 1),
        dir_diff=round_half_up(dir_diff, 0),
        direction_change=dir_diff > 20,
    )


def screen_visibility(record: HourRecord) -> ScreeningLevel:
    """Visibility band from 0 (excellent) to 4 (very poor)."""
    vis = record.visibility_km
    if vis < 1:
        return ScreeningLevel(level=4, text="Very poor")
    if vis < 3:
        return ScreeningLevel(level=3, text="Poor")
    if vis < 5:
        return ScreeningLevel(level=2, text="Moderate")
    if vis < 10:
        return ScreeningLevel(level=1, text="Good")
    return ScreeningLevel(level=0, text="Excellent")


def hour_safety_status(record: HourRecord, icing: ScreeningLevel, shear: ScreeningShear) -> ScreeningLevel:
    """Combine the screening levels with gusts, visibility and CAPE into a 0-3 safety status."""
    if icing.level >= 3 or shear.level >= 3 or record.cape_j_per_kg > 2000:
        return ScreeningLevel(level=3, text="Prohibited")
    if (
        icing.level >= 2
        or shear.level >= 2
        or record.wind_gusts_ms > 12
        or record.visibility_km < 3
        or record.cape_j_per_kg > 1500
    ):
        return ScreeningLevel(level=2, text="Restricted")
    if record.wind_gusts_ms > 8 or record.visibility_km < 5 or record.cape_j_per_kg > 1000:
        return ScreeningLevel(level=1, text="Caution")
    return ScreeningLevel(level=0, text="Safe")


def screen_hour(record: HourRecord) -> HourScreening:
    """Pure function: screen a single hour."""
    icing = screen_icing(record)
    shear = screen_wind_shear(record)
    return HourScreening(
        hour=record.hour,
        time=hour_label(record.hour),
        icing=icing,
        wind_shear=shear,
        visibility=screen_visibility(record),
        safety=hour_safety_status(record, icing, shear),
    )


def screen_hours(records: Sequence[HourRecord]) -> List[HourScreening]:
    return [screen_hour(r) for r in records]


def _span(hours: Sequence[int]) -> str:
    return f"{hour_label(hours[0])}-{hour_label(hours[-1])}"


def build_alerts(records: Sequence[HourRecord], screenings: Sequence[HourScreening]) -> List[ForecastAlert]:
    """Raise alerts for strong gusts, sustained icing, low visibility, convection and heavy precipitation."""
    alerts: List[ForecastAlert] = []

    gusty = [r for r in records if r.wind_gusts_ms > 15]
    if gusty:
        hours = [r.hour for r in gusty]
        alerts.append(ForecastAlert(
            type=AlertType.WIND,
            level=AlertLevel.DANGER,
            title="Strong wind",
            message=f"Gusts up to {max(r.wind_gusts_ms for r in gusty)} m/s during {_span(hours)}",
            hours=hours,
        ))

    icy = [s for s in screenings if s.icing.level >= 2]
    if len(icy) > 2:
        hours = [s.hour for s in icy]
        alerts.append(ForecastAlert(
            type=AlertType.ICING,
            level=AlertLevel.WARNING,
            title="Icing risk",
            message=f"Elevated icing risk during {_span(hours)}",
            hours=hours,
        ))

    murky = [r for r in records if r.visibility_km < 2]
    if murky:
        hours = [r.hour for r in murky]
        alerts.append(ForecastAlert(
            type=AlertType.VISIBILITY,
            level=AlertLevel.WARNING,
            title="Low visibility",
            message=f"Visibility below 2 km during {_span(hours)}",
            hours=hours,
        ))

    convective = [r for r in records if r.cape_j_per_kg > 1500]
    if convective:
        alerts.append(ForecastAlert(
            type=AlertType.THUNDERSTORM,
            level=AlertLevel.WARNING,
            title="Thunderstorm activity",
            message=f"Elevated convective energy (CAPE up to {max(r.cape_j_per_kg for r in convective):g} J/kg)",
            hours=[r.hour for r in convective],
        ))

    heavy = [r for r in records if r.precipitation_mm_per_h > 5]
    if heavy:
        alerts.append(ForecastAlert(
            type=AlertType.PRECIPITATION,
            level=AlertLevel.WARNING,
            title="Heavy precipitation",
            message=f"Precipitation up to {max(r.precipitation_mm_per_h for r in heavy)} mm/h",
            hours=[r.hour for r in heavy],
        ))

    if alerts:
        logger.debug("Forecast alerts raised", extra={"alerts": [a.type.value for a in alerts]})
    return alerts


def overall_safety(screenings: Sequence[HourScreening]) -> OverallSafety:
    """Rate the day from the count of restricted and caution hours."""
    total = len(screenings)
    if total == 0:
        return OverallSafety(level=None, text="No forecast hours to assess")

    danger = sum(1 for s in screenings if s.safety.level >= 2)
    caution = sum(1 for s in screenings if s.safety.level == 1)
    rating = max(0, min(100, 100 - danger * 5 - caution * 2))

    if danger > 8:
        level, text = 3, "Dangerous conditions"
    elif danger > 4:
        level, text = 2, "Conditionally safe"
    elif caution > 6:
        level, text = 1, "Favourable with restrictions"
    else:
        level, text = 0, "Favourable conditions"

    return OverallSafety(
        level=level,
        text=text,
        rating=rating,
        danger_hours=danger,
        caution_hours=caution,
        safe_hours=total - danger - caution,
        safety_percentage=int(round_half_up((total - danger) / total * 100)),
    )


# (predicate(record, screening), reason); reasons are reported in this order.
DangerRule = Tuple[Callable[[HourRecord, HourScreening], bool], str]
DANGER_REASON_RULES: List[DangerRule] = [
    (lambda r, s: s.icing.level >= 2, "icing risk"),
    (lambda r, s: s.wind_shear.level >= 2, "wind shear"),
    (lambda r, s: r.wind_gusts_ms > 12, "strong wind gusts"),
    (lambda r, s: r.visibility_km < 3, "low visibility"),
    (lambda r, s: r.cape_j_per_kg > 1500, "thunderstorm activity"),
    (lambda r, s: r.precipitation_mm_per_h > 2, "heavy precipitation"),
]


class _DangerHour(NamedTuple):
    hour: int
    level: int
    reasons: Tuple[str, ...]


def danger_reasons(record: HourRecord, screening: HourScreening) -> List[str]:
    return [text for predicate, text in DANGER_REASON_RULES if predicate(record, screening)]


def _merged_reasons(run: Sequence[_DangerHour]) -> List[str]:
    merged: List[str] = []
    for item in run:
        merged.extend(r for r in item.reasons if r not in merged)
    return merged


def _shares_reason(run: Sequence[_DangerHour], item: _DangerHour) -> bool:
    run_reasons = set(_merged_reasons(run))
    return any(r in run_reasons for r in item.reasons)


def dangerous_periods(
    records: Sequence[HourRecord],
    screenings: Sequence[HourScreening],
) -> List[DangerousPeriod]:
    """Group restricted hours into periods.

    An adjacent restricted hour only extends a period when it shares at least
    one danger reason with it; the period keeps the union of reasons in first-seen
    order and the worst safety level as its severity.
    """
    flagged = [
        _DangerHour(r.hour, s.safety.level, tuple(danger_reasons(r, s)))
        for r, s in zip(records, screenings)
    ]
    return build_periods(
        flagged,
        lambda item: item.level >= 2,
        lambda run: DangerousPeriod(
            **period_bounds(run),
            reasons=_merged_reasons(run),
            severity=max(item.level for item in run),
        ),
        joins=_shares_reason,
    )


def _is_dangerous_hour(record: HourRecord, screening: HourScreening) -> bool:
    return screening.safety.level >= 2 or screening.icing.level >= 2 or record.wind_gusts_ms > 12


def forecast_summary(
    records: Sequence[HourRecord],
    screenings: Sequence[HourScreening],
    daily: DailySummary,
) -> ForecastSummary | None:
    """Day-level weather statistics, daylight length and the span of safe hours."""
    if not records:
        return None

    temperatures = [r.temperature_c for r in records]
    gusts = [r.wind_gusts_ms for r in records]
    visibilities = [r.visibility_km for r in records]
    precipitation = [r.precipitation_mm_per_h for r in records]
    cape = [r.cape_j_per_kg for r in records]

    safe = [s.hour for s in screenings if s.safety.level == 0]
    dangerous = [
        hour_label(r.hour) for r, s in zip(records, screenings) if _is_dangerous_hour(r, s)
    ]

    daylight = max(parse_clock(daily.sunset) - parse_clock(daily.sunrise), 0.0)
    daylight_minutes = int(round_half_up(daylight * 60))

    return ForecastSummary(
        avg_temperature_c=round_half_up(mean(temperatures), 1),
        min_temperature_c=min(temperatures),
        max_temperature_c=max(temperatures),
        avg_wind_gusts_ms=round_half_up(mean(gusts), 1),
        max_wind_gusts_ms=max(gusts),
        avg_visibility_km=round_half_up(mean(visibilities), 1),
        min_visibility_km=min(visibilities),
        total_precipitation_mm=round_half_up(sum(precipitation), 1),
        max_precipitation_mm_per_h=max(precipitation),
        max_cape_j_per_kg=max(cape),
        avg_cape_j_per_kg=round_half_up(mean(cape), 0),
        sunrise=daily.sunrise,
        sunset=daily.sunset,
        daylight_duration_hours=round_half_up(daylight, 2),
        daylight_duration_text=f"{daylight_minutes // 60}h {daylight_minutes % 60}m",
        safe_span=_span(safe) if safe else None,
        dangerous_hours_count=len(dangerous),
        dangerous_hours=dangerous,
    )


def segment_weather(
    records: Sequence[HourRecord],
    screenings: Sequence[HourScreening],
) -> List[SegmentWeather]:
    """Weather statistics for night, morning, day and evening."""
    segments: List[SegmentWeather] = []
    for name, label, first, last in DAY_SEGMENTS:
        members = [(r, s) for r, s in zip(records, screenings) if first <= r.hour <= last]
        if not members:
            segments.append(SegmentWeather(name=name, label=label, start_hour=first, end_hour=last))
            continue

        hours = [r for r, _ in members]
        danger = sum(1 for _, s in members if s.safety.level >= 2)
        if danger > len(members) / 2:
            safety = SegmentSafety.DANGER
        elif danger > 0:
            safety = SegmentSafety.WARNING
        else:
            safety = SegmentSafety.SAFE

        segments.append(SegmentWeather(
            name=name,
            label=label,
            start_hour=first,
            end_hour=last,
            hour_count=len(members),
            avg_temperature_c=round_half_up(mean([r.temperature_c for r in hours]), 1),
            max_wind_gusts_ms=max(r.wind_gusts_ms for r in hours),
            min_visibility_km=min(r.visibility_km for r in hours),
            total_precipitation_mm=round_half_up(sum(r.precipitation_mm_per_h for r in hours), 1),
            avg_cape_j_per_kg=round_half_up(mean([r.cape_j_per_kg for r in hours]), 0),
            danger_hours=danger,
            safety=safety,
        ))
    return segments
