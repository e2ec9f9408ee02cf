"""Human-readable flight advice derived from the scorer outputs.

Every function here is pure: it reads already-computed tiers, periods and
statistics and returns an ordered list of strings. Which lines appear and in
what order is fixed; the wording itself is presentation only.
"""

from __future__ import annotations

from typing import List, Sequence

from skyrisk.domain import (
    AltitudeRecommendation,
    ConditionsCategory,
    DaySegment,
    IcingAnalysis,
    IcingOverallRisk,
    IcingPeriod,
    IcingPeriodCollection,
    OverallRisk,
    PeriodSeverity,
    RiskLevel,
    SafetyWindow,
    ShearPeriod,
    ShearPeriodCollection,
    ThermalRisk,
    VisibilityAnalysis,
    VisibilityBlock,
    VisibilityOverallAssessment,
    VisibilityPeriod,
    VisibilityPeriodCollection,
    WindAnalysis,
    WindowStatusLevel,
)
from utils.logging_utils import get_tagged_logger
logger = get_tagged_logger(__name__, tag="recommendations")

BULLET = "• "

ICING_TIER_ADVICE = {
    RiskLevel.CRITICAL: [
        "FLIGHTS STRICTLY PROHIBITED because of critical icing risk",
        "Postpone flights to another day",
    ],
    RiskLevel.HIGH: [
        "Flights allowed ONLY for aircraft fitted with an anti-icing system",
        "Maximum flight duration: 30 minutes",
        "Mandatory ground de-icing after every flight",
    ],
    RiskLevel.MODERATE: [
        "Flights allowed with restrictions",
        "Avoid flying in cloud and precipitation",
        "Maximum flight altitude: 300 m (below the freezing level)",
        "Inspect the aircraft visually at regular intervals",
    ],
    RiskLevel.LOW: [
        "Flights allowed without restrictions",
        "Inspect the aircraft visually before landing",
    ],
}

WIND_TIER_RESTRICTIONS = {
    RiskLevel.CRITICAL: [
        "FLIGHTS PROHIBITED at all altitudes because of critical wind shear",
    ],
    RiskLevel.HIGH: [
        "Flights allowed only for experienced pilots with altitude restrictions",
        "Maximum flight altitude: 80 m",
    ],
    RiskLevel.MODERATE: [
        "Flights allowed with caution",
        "Avoid 120 m during critical periods",
    ],
}

VISIBILITY_TIER_ADVICE = {
    ConditionsCategory.POOR: [
        "VFR FLIGHTS STRICTLY PROHIBITED",
        "Instrument meteorological conditions require IFR capability",
        "Postpone flights to another day",
    ],
    ConditionsCategory.MARGINAL: [
        "VFR flights allowed ONLY for experienced pilots",
        "Maximum distance from the take-off point: 1 km",
        "Maximum flight altitude: 200 m",
        "An alternate landing site within 500 m is mandatory",
    ],
    ConditionsCategory.GOOD: [
        "VFR flights allowed with caution",
        "Recommended maximum distance: 3 km from the take-off point",
        "Recommended maximum altitude: 400 m",
        "Continuous visual contact with the aircraft is mandatory",
    ],
    ConditionsCategory.EXCELLENT: [
        "VFR flights allowed without restrictions",
        "Recommended maximum distance: 5 km from the take-off point",
        "Recommended maximum altitude: 600 m",
    ],
}


def _span(period) -> str:
    return f"{period.start}-{period.end}"


def _total_duration(periods: Sequence) -> int:
    return sum(p.duration for p in periods)


# ---------------------------------------------------------------------------
# Icing
# ---------------------------------------------------------------------------


def icing_period_recommendations(periods: Sequence[IcingPeriod]) -> List[str]:
    """Advisories attached to the icing critical-period collection."""
    if not periods:
        return []

    lines: List[str] = []
    total = _total_duration(periods)
    if total > 6:
        lines.append("Icing risk persists for most of the day")
        lines.append("Flights are not recommended on this day")
    elif total > 3:
        lines.append("Significant periods of moderate and high icing risk")
        lines.append("Plan flights outside the critical periods")

    for period in periods:
        if period.max_level == 3:
            lines.append(f"HIGH ICING RISK {_span(period)}: flights prohibited")
            lines.append(f"Icing type: {period.predominant_icing_text}. {period.conditions_summary}")
        elif period.avg_index > 50:
            lines.append(f"Moderate icing risk {_span(period)} ({period.avg_index:g} points)")
            lines.append("Avoid flying in cloud and precipitation during this period")

    # first period with the highest peak
    worst = max(periods, key=lambda p: p.max_index)
    if worst.max_index > 75:
        lines.append("Peak icing risk exceeds 75 points")
        lines.append("Forced de-icing of the aircraft is required after every flight")
    return lines


def safest_day_segment(segments: Sequence[DaySegment]) -> DaySegment | None:
    """Populated segment with the lowest tier; ties go to the lowest average index."""
    populated = [s for s in segments if s.tier is not None]
    if not populated:
        return None
    return min(populated, key=lambda s: (s.tier, s.avg_index))


def icing_recommendations(
    overall: IcingOverallRisk,
    periods: IcingPeriodCollection,
    segments: Sequence[DaySegment],
    *,
    min_freezing_level_m: float,
) -> List[str]:
    """Tier advice, critical periods, altitude cap and the safest part of the day."""
    lines: List[str] = list(ICING_TIER_ADVICE.get(overall.level, []))

    if periods.total_count > 0:
        lines.append("CRITICAL PERIODS FOR FLIGHTS:")
        for period in periods.periods:
            if period.max_level == 3:
                lines.append(f"{BULLET}{_span(period)}: FLIGHTS PROHIBITED ({period.predominant_icing_text})")
            elif period.max_level == 2:
                lines.append(f"{BULLET}{_span(period)}: fly with extra caution")

    if min_freezing_level_m < 800:
        max_altitude = min(500.0, min_freezing_level_m - 200)
        lines.append("ALTITUDE RECOMMENDATIONS:")
        lines.append(
            f"{BULLET}Maximum flight altitude: {max_altitude:g} m (at least 200 m below the freezing level)"
        )

    safest = safest_day_segment(segments)
    if safest is not None and safest.tier < 2:
        lines.append("SAFEST TIME OF DAY FOR FLIGHTS:")
        lines.append(f"{BULLET}{safest.label} (average risk: {safest.avg_index:g} points)")
    return lines


# ---------------------------------------------------------------------------
# Wind
# ---------------------------------------------------------------------------


def wind_period_recommendations(periods: Sequence[ShearPeriod], *, max_gusts_ms: float) -> List[str]:
    """Advisories attached to the wind shear critical-period collection."""
    if not periods:
        return []

    lines: List[str] = []
    total = _total_duration(periods)
    if total > 6:
        lines.append("Wind shear is a serious threat for most of the day")
        lines.append("Consider moving the flight to another day")
    elif total > 3:
        lines.append("Significant periods of hazardous wind shear")
        lines.append("Plan flights outside the critical periods")

    for period in periods:
        if period.max_level == 3:
            lines.append(f"CRITICAL WIND SHEAR {_span(period)}: flights prohibited at all altitudes")
        elif period.avg_dir_diff > 30:
            lines.append(
                f"Strong direction shear ({period.avg_dir_diff:g}°) {_span(period)}: limit altitude to 80 m"
            )
        elif period.avg_speed_diff > 4:
            lines.append(
                f"Strong speed shear ({period.avg_speed_diff:g} m/s) {_span(period)}: avoid 120 m"
            )

    if max_gusts_ms > 15:
        lines.append(f"Peak gusts up to {max_gusts_ms:g} m/s add further risk")
        lines.append("Take extra care during take-off and landing")
    return lines


def wind_flight_restrictions(level: RiskLevel) -> List[str]:
    return list(WIND_TIER_RESTRICTIONS.get(level, []))


def wind_summary_recommendations(
    periods: ShearPeriodCollection,
    altitude: AltitudeRecommendation,
) -> List[str]:
    """Altitude advice, periods to avoid at 120 m and stability notes, in that order."""
    lines = [altitude.recommendation]
    if periods.total_count > 0:
        spans = ", ".join(_span(p) for p in periods.periods)
        lines.append(f"Avoid flying at 120 m during: {spans}")
    lines.extend(altitude.additional_recommendations)
    return lines


# ---------------------------------------------------------------------------
# Visibility
# ---------------------------------------------------------------------------


def visibility_period_recommendations(periods: Sequence[VisibilityPeriod]) -> List[str]:
    """Advisories attached to the restricted-visibility period collection."""
    if not periods:
        return []

    lines: List[str] = []
    total = _total_duration(periods)
    if total > 8:
        lines.append("Visibility is unfavourable for most of the day")
        lines.append("VFR flights are not recommended")
    elif total > 4:
        lines.append("Significant periods of restricted visibility")
        lines.append("Plan flights within the safe periods")

    for period in periods:
        if period.severity == PeriodSeverity.SEVERE:
            lines.append(
                f"CRITICAL CONDITIONS {_span(period)}: visibility {period.min_visibility_km:g} km, "
                f"cloud ceiling {period.min_ceiling_m} m - VFR FLIGHTS PROHIBITED"
            )
        else:
            lines.append(
                f"Restricted visibility {_span(period)}: minimum {period.min_visibility_km:g} km, "
                f"ceiling {period.min_ceiling_m} m - apply stricter VFR minimums"
            )

    # first period with the lowest visibility
    worst = min(periods, key=lambda p: p.min_visibility_km)
    if worst.min_visibility_km < 1:
        lines.append("ADDITIONAL RECOMMENDATIONS:")
        lines.append(f"{BULLET}Below 1 km visibility fly only within direct line of sight of the operator")
        lines.append(f"{BULLET}Maximum flight range: 500 m from the take-off point")
        lines.append(f"{BULLET}Navigation beacons on the aircraft are mandatory")
    return lines


def visibility_recommendations(
    overall: VisibilityOverallAssessment,
    periods: VisibilityPeriodCollection,
    *,
    low_cloud_max_pct: float,
    best_block: VisibilityBlock | None,
) -> List[str]:
    """Category advice, restricted periods, low-cloud altitude cap, best block and low-visibility measures."""
    lines: List[str] = list(VISIBILITY_TIER_ADVICE.get(overall.category, []))

    if periods.total_count > 0:
        lines.append("PERIODS OF RESTRICTED VISIBILITY:")
        for period in periods.periods:
            if period.severity == PeriodSeverity.SEVERE:
                lines.append(
                    f"{BULLET}{_span(period)}: CRITICAL CONDITIONS "
                    f"(visibility {period.min_visibility_km:g} km, ceiling {period.min_ceiling_m} m)"
                )
            else:
                lines.append(
                    f"{BULLET}{_span(period)}: restricted visibility (minimum {period.min_visibility_km:g} km)"
                )

    if low_cloud_max_pct > 70:
        lines.append("FLIGHT ALTITUDE RECOMMENDATIONS:")
        lines.append(f"{BULLET}Maximum flight altitude: {min(300.0, 500 - low_cloud_max_pct):g} m")
        lines.append(f"{BULLET}Avoid flying under solid low cloud")

    if best_block is not None:
        lines.append("MOST FAVOURABLE PERIOD FOR FLIGHTS:")
        lines.append(
            f"{BULLET}{best_block.start}-{best_block.end} (average visibility {best_block.avg_visibility_km:g} km)"
        )

    if overall.limiting_factor.factor == "visibility":
        lines.append("ADDITIONAL MEASURES IN LOW VISIBILITY:")
        lines.append(f"{BULLET}Use high-intensity navigation beacons on the aircraft")
        lines.append(f"{BULLET}Reduce cruise speed by 30% of maximum")
        lines.append(f"{BULLET}Keep continuous radio contact with the controller")
    return lines


# ---------------------------------------------------------------------------
# Safety window
# ---------------------------------------------------------------------------


def safety_window_recommendations(window: SafetyWindow) -> List[str]:
    """Start time, duration and daylight-fit advice for a computed safety window."""
    if window.window_status.level == WindowStatusLevel.CRITICAL:
        return [
            f"FLIGHT PROHIBITED: {window.window_status.text}",
            "Postpone the flight to another day",
        ]

    lines: List[str] = []
    if window.thermal_risk == ThermalRisk.THERMAL_TURBULENCE and window.thermal_window is not None:
        lines.append(
            "Avoid flying during thermal activity: "
            f"{window.thermal_window.start_time}-{window.thermal_window.end_time}"
        )
        if window.thermal_adjusted:
            lines.append(f"Recommended start time: {window.adjusted_start_time}")

    lines.append(f"Optimal start time: {window.optimal_start_time}")
    lines.append(
        f"Expected flight duration: {window.min_flight_time:.0f}-{window.max_flight_time:.0f} minutes"
    )

    if not window.fits_in_daylight:
        lines.append("WARNING: the route does not fit into daylight hours")
        lines.append("Consider shortening the route or moving it to a day with longer daylight")

    buffer_hours = window.max_continuous_period - window.max_flight_time / 60
    if buffer_hours < 1:
        lines.append("Minimal time reserve: fly strictly to schedule")
    elif buffer_hours < 2:
        lines.append("Keep a 1-2 hour reserve for unexpected situations")
    return lines


# ---------------------------------------------------------------------------
# Combined
# ---------------------------------------------------------------------------


def combined_recommendations(
    overall: OverallRisk,
    icing: IcingAnalysis,
    wind: WindAnalysis,
    visibility: VisibilityAnalysis,
    window: SafetyWindow,
) -> List[str]:
    """Single ordered advisory list: verdict, flight window, then icing, wind and visibility sections."""
    lines: List[str] = [f"{overall.text}: {overall.flight_restriction}"]

    lines.append("FLIGHT WINDOW:")
    lines.extend(window.recommendations)

    lines.append("ICING:")
    lines.extend(icing.recommendations)

    lines.append("WIND:")
    lines.extend(wind.summary.flight_restrictions)
    lines.extend(wind.summary.recommendations)
    lines.extend(wind.critical_periods.recommendations)

    lines.append("VISIBILITY:")
    lines.extend(visibility.recommendations)

    logger.debug("Combined recommendations built", extra={"lines": len(lines)})
    return lines
