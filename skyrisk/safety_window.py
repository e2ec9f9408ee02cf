"""Safe flight window for a route: daylight, safe hours, start time and thermals.

An hour is safe when it sits inside the daylight window and clears every
threshold in :class:`SafetyWindowConfig`. Consecutive safe hours form
periods; the longest one hosts the recommended start, which is moved out of
the post-sunrise thermal window when that window is gusty.
"""

from __future__ import annotations

from typing import Callable, List, Sequence, Tuple

from skyrisk.domain import (
    CriticalPeriod,
    DailySummary,
    HourRecord,
    HourScreening,
    SafetyWindow,
    SafetyWindowConfig,
    ThermalRisk,
    ThermalWindow,
    WindowStatus,
    WindowStatusLevel,
)
from skyrisk.hour_status import screen_hours
from skyrisk.numeric import format_clock, mean, parse_clock, round_half_up
from skyrisk.periods import build_periods, period_bounds
from skyrisk.recommendations import safety_window_recommendations
from utils.logging_utils import get_tagged_logger
logger = get_tagged_logger(__name__, tag="safety_window")

CRUISE_SPEED_KMH = 69.0
MIN_GROUND_SPEED_KMH = 30.0
DAYLIGHT_MARGIN_HOURS = 0.75
WIND_COMPONENT_FACTOR = 0.8
THERMAL_OFFSET_HOURS = 2.0
THERMAL_LENGTH_HOURS = 3.0
THERMAL_GUST_LIMIT_MS = 8.0
MIN_SAFE_DURATION_HOURS = 3

# (predicate(max_flight_hours, daylight_hours, thermal_risk, safe_hours), level, text); first match wins.
WindowRule = Tuple[Callable[[float, float, ThermalRisk, int], bool], WindowStatusLevel, str]
WINDOW_STATUS_RULES: List[WindowRule] = [
    (lambda flight, daylight, thermal, safe: flight > daylight * 0.95,
     WindowStatusLevel.CRITICAL, "ROUTE DOES NOT FIT INTO DAYLIGHT"),
    (lambda flight, daylight, thermal, safe: flight > daylight * 0.8,
     WindowStatusLevel.WARNING, "ROUTE TAKES MORE THAN 80% OF DAYLIGHT"),
    (lambda flight, daylight, thermal, safe: thermal == ThermalRisk.THERMAL_TURBULENCE,
     WindowStatusLevel.WARNING, "ELEVATED RISK OF THERMAL TURBULENCE"),
    (lambda flight, daylight, thermal, safe: safe < MIN_SAFE_DURATION_HOURS,
     WindowStatusLevel.WARNING, "NOT ENOUGH SAFE PERIODS FOR FLIGHT"),
]
OPTIMAL_STATUS = (WindowStatusLevel.OPTIMAL, "SAFETY WINDOW IS OPTIMAL")
NO_WINDOW_STATUS = (WindowStatusLevel.CRITICAL, "No safe periods for flight")


def daylight_bounds(daily: DailySummary) -> Tuple[float, float]:
    """Usable daylight: 45 minutes after sunrise to 45 minutes before sunset."""
    return (
        parse_clock(daily.sunrise) + DAYLIGHT_MARGIN_HOURS,
        parse_clock(daily.sunset) - DAYLIGHT_MARGIN_HOURS,
    )


def is_safe_hour(
    record: HourRecord,
    screening: HourScreening,
    config: SafetyWindowConfig,
    daylight_start: float,
    daylight_end: float,
) -> bool:
    if config.require_daylight:
        clock = record.hour + record.minute / 60
        if clock < daylight_start or clock > daylight_end:
            return False
    return (
        record.wind_gusts_ms <= config.max_wind_speed
        and record.visibility_km >= config.min_visibility
        and screening.icing.level <= config.max_icing_risk
        and record.cape_j_per_kg <= config.max_cape
        and screening.safety.level < 2
    )


def estimate_flight_times(
    route_length_km: float,
    safe_hours: Sequence[HourRecord],
    cruise_speed_kmh: float = CRUISE_SPEED_KMH,
) -> Tuple[float, float, float]:
    """Return (min, max, avg) flight minutes with and against the 120 m wind.

    The same averaged wind component stands in for both tailwind and
    headwind; ground speed into wind never drops below 30 km/h.
    """
    wind = mean([max(0.0, r.wind_speed_120m * WIND_COMPONENT_FACTOR) for r in safe_hours])
    min_time = route_length_km / (cruise_speed_kmh + wind) * 60
    max_time = route_length_km / max(cruise_speed_kmh - wind, MIN_GROUND_SPEED_KMH) * 60
    return min_time, max_time, (min_time + max_time) / 2


def optimal_start_time(periods: Sequence[CriticalPeriod], max_flight_minutes: float) -> float:
    """Centre the flight in the longest safe period, keeping a buffer of at least one hour."""
    longest = max(periods, key=lambda p: p.duration)
    period_start = float(longest.start_hour)
    period_end = float(longest.end_hour + 1)
    buffer_hours = max(max_flight_minutes / 60, 1.0)
    centred = period_start + (period_end - period_start - buffer_hours) / 2
    return min(max(centred, period_start), period_end - buffer_hours)


def thermal_adjustment(
    start: float,
    daily: DailySummary,
    hours: Sequence[HourRecord],
    daylight_start: float,
    daylight_end: float,
) -> Tuple[float, bool, ThermalRisk, ThermalWindow]:
    """Shift the start out of a gusty thermal window when daylight leaves room before or after it."""
    thermal_start = parse_clock(daily.sunrise) + THERMAL_OFFSET_HOURS
    thermal_end = thermal_start + THERMAL_LENGTH_HOURS
    window = ThermalWindow(
        start=thermal_start,
        end=thermal_end,
        start_time=format_clock(thermal_start),
        end_time=format_clock(thermal_end),
    )

    in_window = thermal_start <= start <= thermal_end
    gusty = any(
        thermal_start <= r.hour <= thermal_end and r.wind_gusts_ms > THERMAL_GUST_LIMIT_MS
        for r in hours
    )
    if not (in_window and gusty):
        return start, False, ThermalRisk.NONE, window

    if daylight_start + 1 < thermal_start:
        return thermal_start - 0.5, True, ThermalRisk.THERMAL_TURBULENCE, window
    if thermal_end + 1 < daylight_end:
        return thermal_end + 0.5, True, ThermalRisk.THERMAL_TURBULENCE, window
    return start, False, ThermalRisk.THERMAL_TURBULENCE, window


def window_status(
    max_flight_minutes: float,
    daylight_hours: float,
    thermal_risk: ThermalRisk,
    periods: Sequence[CriticalPeriod],
) -> WindowStatus:
    safe_hours = sum(p.duration for p in periods)
    for predicate, level, text in WINDOW_STATUS_RULES:
        if predicate(max_flight_minutes / 60, daylight_hours, thermal_risk, safe_hours):
            return WindowStatus(level=level, text=text)
    level, text = OPTIMAL_STATUS
    return WindowStatus(level=level, text=text)


def _no_safe_window(
    daylight_start: float,
    daylight_end: float,
    route_length_km: float,
    cruise_speed_kmh: float,
) -> SafetyWindow:
    level, text = NO_WINDOW_STATUS
    window = SafetyWindow(
        daylight_start=daylight_start,
        daylight_end=daylight_end,
        daylight_start_time=format_clock(daylight_start),
        daylight_end_time=format_clock(daylight_end),
        daylight_duration=round_half_up(daylight_end - daylight_start, 2),
        window_status=WindowStatus(level=level, text=text),
        route_length_km=route_length_km,
        cruise_speed_kmh=cruise_speed_kmh,
    )
    return window.model_copy(update={"recommendations": safety_window_recommendations(window)})


def calculate_safety_window(
    hours: Sequence[HourRecord],
    daily: DailySummary,
    route_length_km: float,
    config: SafetyWindowConfig | None = None,
    *,
    cruise_speed_kmh: float = CRUISE_SPEED_KMH,
    screenings: Sequence[HourScreening] | None = None,
) -> SafetyWindow:
    """Compute the safe flight window for a route of ``route_length_km`` kilometres."""
    if route_length_km < 0:
        raise ValueError(f"route_length_km must be non-negative, got {route_length_km}")
    config = config or SafetyWindowConfig()
    if screenings is None:
        screenings = screen_hours(hours)

    daylight_start, daylight_end = daylight_bounds(daily)
    daylight_hours = daylight_end - daylight_start

    safe = [
        record for record, screening in zip(hours, screenings)
        if is_safe_hour(record, screening, config, daylight_start, daylight_end)
    ]
    if not safe:
        logger.info(
            "No safe flight window",
            extra={"hours": len(hours), "route_km": route_length_km},
        )
        return _no_safe_window(daylight_start, daylight_end, route_length_km, cruise_speed_kmh)

    periods = build_periods(safe, lambda r: True, lambda run: CriticalPeriod(**period_bounds(run)))
    min_time, max_time, avg_time = estimate_flight_times(route_length_km, safe, cruise_speed_kmh)
    start = optimal_start_time(periods, max_time)
    adjusted, thermal_adjusted, thermal_risk, thermal_window = thermal_adjustment(
        start, daily, hours, daylight_start, daylight_end,
    )
    status = window_status(max_time, daylight_hours, thermal_risk, periods)

    window = SafetyWindow(
        daylight_start=daylight_start,
        daylight_end=daylight_end,
        daylight_start_time=format_clock(daylight_start),
        daylight_end_time=format_clock(daylight_end),
        daylight_duration=round_half_up(daylight_hours, 2),
        safe_periods=periods,
        optimal_start=start,
        optimal_start_time=format_clock(start),
        adjusted_start=adjusted,
        adjusted_start_time=format_clock(adjusted),
        thermal_adjusted=thermal_adjusted,
        thermal_risk=thermal_risk,
        thermal_window=thermal_window,
        fits_in_daylight=max_time <= daylight_hours * 60,
        window_status=status,
        min_flight_time=round_half_up(min_time, 1),
        max_flight_time=round_half_up(max_time, 1),
        avg_flight_time=round_half_up(avg_time, 1),
        total_safe_hours=len(safe),
        max_continuous_period=max(p.duration for p in periods),
        route_length_km=route_length_km,
        cruise_speed_kmh=cruise_speed_kmh,
    )
    logger.debug(
        "Safety window computed",
        extra={
            "safe_hours": len(safe),
            "periods": len(periods),
            "status": status.level.value,
            "start": window.optimal_start_time,
        },
    )
    return window.model_copy(update={"recommendations": safety_window_recommendations(window)})
