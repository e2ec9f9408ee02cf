"""Wind shear and wind profile analysis across the 10, 80 and 120 m levels.

Shear risk per hour uses the largest direction and speed differences over
the three altitude pairs. Per-altitude statistics and a stability index pick
a recommended cruise altitude, and an additive score gives the day's verdict.
"""

from __future__ import annotations

from typing import Dict, List, Sequence, Tuple

from skyrisk.domain import (
    AltitudeRecommendation,
    AltitudeStats,
    AltitudeWarning,
    ContributingFactor,
    HourRecord,
    RiskLevel,
    ShearHourRisk,
    ShearPeriod,
    ShearPeriodCollection,
    ShearStatistics,
    StabilityIndex,
    WindAnalysis,
    WindOverallRisk,
    WindSummary,
)
from skyrisk.numeric import (
    coefficient_of_variation,
    compass_point,
    hour_label,
    mean,
    population_std_dev,
    round_half_up,
)
from skyrisk.periods import build_periods, collection_totals, period_bounds
from skyrisk.recommendations import (
    wind_flight_restrictions,
    wind_period_recommendations,
    wind_summary_recommendations,
)
from utils.logging_utils import get_tagged_logger
logger = get_tagged_logger(__name__, tag="wind")

ALTITUDES_M: Tuple[int, ...] = (10, 80, 120)
SHEAR_PAIRS: Tuple[Tuple[int, int], ...] = ((10, 80), (10, 120), (80, 120))
DEFAULT_ALTITUDE_M = 80

LEVEL_TEXT = {0: "Low", 1: "Moderate", 2: "High", 3: "Critical"}

ALTITUDE_SPEED_LIMIT_MS = 15.0
HIGH_ALTITUDE_GUST_LIMIT_MS = 12.0

# (minimum score, level, text, flight restriction); checked top to bottom.
OVERALL_TIERS = [
    (60, RiskLevel.CRITICAL, "CRITICAL WIND SHEAR RISK", "FLIGHTS PROHIBITED at all altitudes"),
    (40, RiskLevel.HIGH, "High wind shear risk", "Experienced pilots only, maximum altitude 80 m"),
    (25, RiskLevel.MODERATE, "Moderate wind shear risk", "Fly with caution and avoid 120 m during critical periods"),
]
LOW_TIER = (RiskLevel.LOW, "Low wind shear risk", "No wind shear restrictions")


def wind_speed_at(record: HourRecord, altitude: int) -> float:
    return getattr(record, f"wind_speed_{altitude}m")


def wind_dir_at(record: HourRecord, altitude: int) -> float:
    return getattr(record, f"wind_dir_{altitude}m")


def shear_level(dir_diff: float, speed_diff: float) -> int:
    """Map direction (degrees) and speed (m/s) differences to a 0-3 shear level."""
    if dir_diff > 40 or speed_diff > 6:
        return 3
    if dir_diff > 25 or speed_diff > 4:
        return 2
    if dir_diff > 15 or speed_diff > 2:
        return 1
    return 0


def score_shear_hour(record: HourRecord) -> ShearHourRisk:
    """Pure function: pairwise shear and the resulting level for one hour."""
    diffs: Dict[str, float] = {}
    dir_diffs: List[float] = []
    speed_diffs: List[float] = []
    for low, high in SHEAR_PAIRS:
        dir_diff = abs(wind_dir_at(record, high) - wind_dir_at(record, low))
        speed_diff = abs(wind_speed_at(record, high) - wind_speed_at(record, low))
        diffs[f"dir_diff_{low}_{high}"] = round_half_up(dir_diff, 0)
        diffs[f"speed_diff_{low}_{high}"] = round_half_up(speed_diff, 1)
        dir_diffs.append(dir_diff)
        speed_diffs.append(speed_diff)

    max_dir = max(dir_diffs)
    max_speed = max(speed_diffs)
    level = shear_level(max_dir, max_speed)

    factors: List[ContributingFactor] = []
    if max_dir > 15:
        factors.append(ContributingFactor(
            factor="direction_shear", value=max_dir,
            description=f"Direction changes by {max_dir:.0f}° between levels",
        ))
    if max_speed > 2:
        factors.append(ContributingFactor(
            factor="speed_shear", value=max_speed,
            description=f"Speed changes by {max_speed:.1f} m/s between levels",
        ))

    return ShearHourRisk(
        hour=record.hour,
        time=hour_label(record.hour),
        max_dir_diff=max_dir,
        max_speed_diff=max_speed,
        level=level,
        level_text=LEVEL_TEXT[level],
        contributing_factors=factors,
        **diffs,
    )


def calculate_altitude_stats(records: Sequence[HourRecord], altitude: int) -> AltitudeStats:
    """Mean/min/max/stddev of speed and direction at one altitude."""
    if not records:
        return AltitudeStats(altitude_m=altitude)
    speeds = [wind_speed_at(r, altitude) for r in records]
    directions = [wind_dir_at(r, altitude) for r in records]
    return AltitudeStats(
        altitude_m=altitude,
        avg_speed=round_half_up(mean(speeds), 1),
        max_speed=max(speeds),
        min_speed=min(speeds),
        avg_direction=round_half_up(mean(directions), 0),
        predominant_direction=compass_point(mean(directions)),
        speed_std_dev=round_half_up(population_std_dev(speeds), 1),
        direction_std_dev=round_half_up(population_std_dev(directions), 0),
    )


def summarize_shear(hourly: Sequence[ShearHourRisk]) -> ShearStatistics:
    distribution = {0: 0, 1: 0, 2: 0, 3: 0}
    for h in hourly:
        distribution[h.level] += 1
    dir_diffs = [h.max_dir_diff for h in hourly]
    speed_diffs = [h.max_speed_diff for h in hourly]
    return ShearStatistics(
        avg_dir_diff=round_half_up(mean(dir_diffs), 0),
        max_dir_diff=max(dir_diffs, default=0.0),
        avg_speed_diff=round_half_up(mean(speed_diffs), 1),
        max_speed_diff=max(speed_diffs, default=0.0),
        high_risk_hours=distribution[2] + distribution[3],
        critical_risk_hours=distribution[3],
        risk_distribution=distribution,
    )


def _summarize_period(run: Sequence[ShearHourRisk]) -> ShearPeriod:
    return ShearPeriod(
        **period_bounds(run),
        max_level=max(h.level for h in run),
        avg_dir_diff=round_half_up(mean([h.max_dir_diff for h in run]), 0),
        avg_speed_diff=round_half_up(mean([h.max_speed_diff for h in run]), 1),
    )


def identify_shear_periods(hourly: Sequence[ShearHourRisk], records: Sequence[HourRecord]) -> ShearPeriodCollection:
    """Group level>=2 shear hours into periods, kept in discovery order."""
    periods = build_periods(hourly, lambda h: h.level >= 2, _summarize_period)
    if not periods:
        return ShearPeriodCollection(
            recommendations=["Wind shear stays within safe limits throughout the day"],
        )
    max_gusts = max((r.wind_gusts_ms for r in records), default=0.0)
    return ShearPeriodCollection(
        periods=periods,
        recommendations=wind_period_recommendations(periods, max_gusts_ms=max_gusts),
        **collection_totals(periods),
    )


def stability_index(speeds: Sequence[float], directions: Sequence[float]) -> float:
    """0-1 steadiness of the wind at one level; speed variation weighs more than direction."""
    speed_stability = 1 / (1 + coefficient_of_variation(speeds))
    direction_stability = 1 / (1 + coefficient_of_variation(directions) * 0.1)
    return speed_stability * 0.7 + direction_stability * 0.3


def altitude_warnings(records: Sequence[HourRecord], altitude: int) -> List[AltitudeWarning]:
    """Warnings about gusts and surface-to-120 m shear for the chosen altitude."""
    warnings: List[AltitudeWarning] = []

    if altitude == 120:
        gusts = [r.wind_gusts_ms for r in records]
    else:
        gusts = [wind_speed_at(r, altitude) for r in records]
    max_gust = max(gusts, default=0.0)
    if max_gust > 12:
        warnings.append(AltitudeWarning(
            text=f"Gusts up to {max_gust:.1f} m/s at {altitude} m may make control difficult",
        ))

    shear_hours = [
        r for r in records
        if abs(r.wind_dir_120m - r.wind_dir_10m) > 30 or abs(r.wind_speed_120m - r.wind_speed_10m) > 5
    ]
    if shear_hours:
        warnings.append(AltitudeWarning(
            text=f"Critical wind shear in {len(shear_hours)} hour(s) may affect stability at {altitude} m",
        ))
    return warnings


def recommend_altitude(records: Sequence[HourRecord]) -> AltitudeRecommendation:
    """Pick the steadiest altitude, then demote it if its hours exceed the wind ceiling."""
    scores: Dict[int, float] = {
        alt: stability_index(
            [wind_speed_at(r, alt) for r in records],
            [wind_dir_at(r, alt) for r in records],
        )
        for alt in ALTITUDES_M
    }
    # max() keeps the lowest altitude on ties
    optimal = max(ALTITUDES_M, key=lambda alt: scores[alt])

    blocked = [
        r for r in records
        if wind_speed_at(r, optimal) > ALTITUDE_SPEED_LIMIT_MS
        or (optimal == 120 and r.wind_gusts_ms > HIGH_ALTITUDE_GUST_LIMIT_MS)
    ]

    recommendation = f"Recommended flight altitude: {optimal} m"
    restrictions: List[str] = []
    if blocked:
        recommendation = f"Restricted recommendation for {optimal} m"
        restrictions.append(
            f"Avoid {optimal} m during {hour_label(blocked[0].hour)}-{hour_label(blocked[-1].hour)} due to strong wind"
        )

    additional: List[str] = []
    if scores[120] < 0.5:
        additional.append("120 m is not recommended because of strong turbulence")
    if scores[10] > 0.8 and scores[80] > 0.7:
        additional.append("Flights at 10-80 m are safe")

    return AltitudeRecommendation(
        optimal_altitude_m=optimal,
        stability_index=StabilityIndex(
            surface=round_half_up(scores[10], 2),
            low_altitude=round_half_up(scores[80], 2),
            high_altitude=round_half_up(scores[120], 2),
        ),
        restricted=bool(blocked),
        recommendation=recommendation,
        restrictions=restrictions,
        additional_recommendations=additional,
        warnings=altitude_warnings(records, optimal),
    )


def wind_risk_score(stats: ShearStatistics, periods: ShearPeriodCollection) -> int:
    """Points from peak direction/speed shear, risky hour counts and the longest period."""
    score = 0
    if stats.max_dir_diff > 40:
        score += 30
    elif stats.max_dir_diff > 30:
        score += 20
    elif stats.max_dir_diff > 20:
        score += 10

    if stats.max_speed_diff > 6:
        score += 30
    elif stats.max_speed_diff > 4:
        score += 20
    elif stats.max_speed_diff > 2:
        score += 10

    if stats.critical_risk_hours > 3:
        score += 25
    elif stats.critical_risk_hours > 0:
        score += 15

    if stats.high_risk_hours > 6:
        score += 20
    elif stats.high_risk_hours > 3:
        score += 10

    if periods.max_duration > 3:
        score += 15
    elif periods.max_duration > 1:
        score += 5
    return score


def wind_contributing_factors(stats: ShearStatistics, periods: ShearPeriodCollection) -> List[ContributingFactor]:
    factors: List[ContributingFactor] = []
    if stats.max_dir_diff > 30:
        factors.append(ContributingFactor(
            factor="direction_shear",
            value=stats.max_dir_diff,
            severity=RiskLevel.CRITICAL if stats.max_dir_diff > 40 else RiskLevel.HIGH,
            description=f"Peak direction shear of {stats.max_dir_diff:.0f}° exceeds the safe threshold",
        ))
    if stats.max_speed_diff > 4:
        factors.append(ContributingFactor(
            factor="speed_shear",
            value=stats.max_speed_diff,
            severity=RiskLevel.CRITICAL if stats.max_speed_diff > 6 else RiskLevel.HIGH,
            description=f"Peak speed shear of {stats.max_speed_diff:.1f} m/s creates turbulence risk",
        ))
    if stats.critical_risk_hours > 0:
        factors.append(ContributingFactor(
            factor="critical_hours",
            value=stats.critical_risk_hours,
            severity=RiskLevel.HIGH if stats.critical_risk_hours > 3 else RiskLevel.MODERATE,
            description=f"{stats.critical_risk_hours} hour(s) of critical wind shear",
        ))
    if periods.total_duration > 4:
        factors.append(ContributingFactor(
            factor="extended_periods",
            value=periods.total_duration,
            severity=RiskLevel.HIGH if periods.total_duration > 6 else RiskLevel.MODERATE,
            description=f"Extended periods ({periods.total_duration} hours) of hazardous wind shear",
        ))
    return factors


def calculate_wind_overall(stats: ShearStatistics, periods: ShearPeriodCollection) -> WindOverallRisk:
    score = wind_risk_score(stats, periods)
    level, text, restriction = LOW_TIER
    for minimum, tier_level, tier_text, tier_restriction in OVERALL_TIERS:
        if score >= minimum:
            level, text, restriction = tier_level, tier_text, tier_restriction
            break
    return WindOverallRisk(
        score=score,
        level=level,
        text=text,
        flight_restriction=restriction,
        contributing_factors=wind_contributing_factors(stats, periods),
    )


def build_wind_summary(
    overall: WindOverallRisk,
    periods: ShearPeriodCollection,
    altitude: AltitudeRecommendation,
) -> WindSummary:
    return WindSummary(
        risk_assessment=overall.text,
        flight_restrictions=wind_flight_restrictions(overall.level),
        recommendations=wind_summary_recommendations(periods, altitude),
    )


def empty_wind_analysis() -> WindAnalysis:
    """Fully populated result for an empty hour series."""
    return WindAnalysis(
        altitude_stats=[AltitudeStats(altitude_m=alt) for alt in ALTITUDES_M],
        critical_periods=ShearPeriodCollection(recommendations=["No data for wind profile analysis"]),
        altitude_recommendation=AltitudeRecommendation(
            optimal_altitude_m=DEFAULT_ALTITUDE_M,
            recommendation="No data for altitude recommendations",
        ),
        overall=WindOverallRisk(
            text="No data to assess wind shear risk",
            flight_restriction="Restrictions cannot be determined",
        ),
        summary=WindSummary(
            risk_assessment="No data",
            flight_restrictions=["Analysis not possible: no forecast data"],
            recommendations=["Check the weather data source and try again"],
        ),
    )


def analyze_wind(records: Sequence[HourRecord]) -> WindAnalysis:
    """Full wind profile analysis: statistics, shear, periods, altitude and verdict."""
    if not records:
        logger.debug("No hours to score for wind shear")
        return empty_wind_analysis()

    hourly = [score_shear_hour(r) for r in records]
    stats = summarize_shear(hourly)
    periods = identify_shear_periods(hourly, records)
    altitude = recommend_altitude(records)
    overall = calculate_wind_overall(stats, periods)

    logger.debug(
        "Wind analysis complete",
        extra={
            "hours": len(hourly),
            "score": overall.score,
            "level": overall.level.value,
            "altitude": altitude.optimal_altitude_m,
        },
    )
    return WindAnalysis(
        analyzed_hours=len(hourly),
        altitude_stats=[calculate_altitude_stats(records, alt) for alt in ALTITUDES_M],
        hourly=hourly,
        statistics=stats,
        critical_periods=periods,
        altitude_recommendation=altitude,
        overall=overall,
        summary=build_wind_summary(overall, periods, altitude),
    )
