"""Airframe icing risk scoring.

Each hour gets an index built from independently gated, weighted terms
(temperature near 0 °C, humidity, precipitation, low cloud, a low freezing
level). The index is not clamped: values above 100 only rank severity. Hours
at level 2 or above are grouped into critical periods, the day is split into
four fixed segments, and an overall verdict is derived from the statistics.
"""

from __future__ import annotations

from typing import Callable, Dict, List, Sequence, Tuple

from skyrisk.domain import (
    ContributingFactor,
    DaySegment,
    HourRecord,
    IcingAnalysis,
    IcingHourRisk,
    IcingOverallRisk,
    IcingPeriod,
    IcingPeriodCollection,
    IcingStatistics,
    IcingSummary,
    IcingType,
    RiskLevel,
)
from skyrisk.numeric import hour_label, mean, round_half_up
from skyrisk.periods import build_periods, collection_totals, period_bounds
from skyrisk.recommendations import icing_period_recommendations, icing_recommendations
from utils.logging_utils import get_tagged_logger
logger = get_tagged_logger(__name__, tag="icing")

TEMPERATURE_RANGE_C = (-10.0, 5.0)
HUMIDITY_THRESHOLD_PCT = 80.0
PRECIPITATION_THRESHOLD_MM = 0.2
LOW_CLOUD_THRESHOLD_PCT = 50.0
FREEZING_LEVEL_THRESHOLD_M = 500.0
FREEZING_LEVEL_BONUS = 10.0

WEIGHTS: Dict[str, float] = {
    "temperature": 0.4,
    "humidity": 0.25,
    "precipitation": 0.2,
    "cloud_cover": 0.15,
}

LEVEL_TEXT = {0: "No risk", 1: "Low", 2: "Moderate", 3: "High"}

ICING_TYPE_TEXT: Dict[IcingType, str] = {
    IcingType.CLEAR_ICE: "Clear ice",
    IcingType.RIME_ICE: "Rime ice",
    IcingType.MIXED_ICE: "Mixed ice",
    IcingType.NONE: "No icing",
}

ICING_TYPE_DESCRIPTION: Dict[IcingType, str] = {
    IcingType.CLEAR_ICE: "Clear (glaze) icing hazard",
    IcingType.RIME_ICE: "Rime icing hazard",
    IcingType.MIXED_ICE: "Mixed icing hazard",
    IcingType.NONE: "Icing unlikely",
}

# (predicate(record, level, precipitation_present), icing type); first match wins.
IcingTypeRule = Tuple[Callable[[HourRecord, int, bool], bool], IcingType]
ICING_TYPE_RULES: List[IcingTypeRule] = [
    (lambda r, level, precip: level >= 2 and precip and 0 < r.temperature_c < 3, IcingType.CLEAR_ICE),
    (lambda r, level, precip: level >= 2 and r.temperature_c < 0 and r.cloud_cover_low_pct > 60, IcingType.RIME_ICE),
    (lambda r, level, precip: level >= 3 and precip and r.temperature_c < 0, IcingType.MIXED_ICE),
]

# (name, label, first hour, last hour)
DAY_SEGMENTS: Tuple[Tuple[str, str, int, int], ...] = (
    ("night", "Night (00:00-05:00)", 0, 5),
    ("morning", "Morning (06:00-11:00)", 6, 11),
    ("day", "Day (12:00-17:00)", 12, 17),
    ("evening", "Evening (18:00-23:00)", 18, 23),
)

SEGMENT_TIER_TEXT = {0: "Low", 1: "Moderate", 2: "High", 3: "Critical"}

# (minimum score, level, text, flight restriction); checked top to bottom.
OVERALL_TIERS = [
    (70, RiskLevel.CRITICAL, "CRITICAL ICING RISK", "FLIGHTS PROHIBITED"),
    (50, RiskLevel.HIGH, "High icing risk", "Flights allowed only for aircraft with anti-icing equipment"),
    (30, RiskLevel.MODERATE, "Moderate icing risk", "Fly with caution and avoid prolonged time in cloud"),
]
LOW_TIER = (RiskLevel.LOW, "Low icing risk", "No icing restrictions")


def icing_level(index: float) -> int:
    """Map an icing index to its 0-3 level."""
    if index >= 70:
        return 3
    if index >= 40:
        return 2
    if index >= 20:
        return 1
    return 0


def classify_icing_type(record: HourRecord, level: int) -> IcingType:
    """Apply the ordered icing-type rules; conditions overlap, so order matters."""
    precip = record.precipitation_mm_per_h >= PRECIPITATION_THRESHOLD_MM
    for predicate, icing_type in ICING_TYPE_RULES:
        if predicate(record, level, precip):
            return icing_type
    return IcingType.NONE


def _conditions_text(temp_in_range: bool, high_humidity: bool, precip_present: bool) -> str:
    """Describe which of the three icing ingredients are absent."""
    missing: List[str] = []
    if not temp_in_range:
        missing.append("temperature outside the icing range")
    if not high_humidity:
        missing.append("low humidity")
    if not precip_present:
        missing.append("no precipitation")
    if not missing:
        return "conditions favour icing"
    if len(missing) == 3:
        return "conditions do not favour icing"
    return f"icing limited by {', '.join(missing)}"


def score_icing_hour(record: HourRecord) -> IcingHourRisk:
    """Pure function: compute the icing index, level and type for one hour."""
    t = record.temperature_c
    h = record.humidity_pct
    p = record.precipitation_mm_per_h
    low = record.cloud_cover_low_pct
    fl = record.freezing_level_m

    temp_in_range = TEMPERATURE_RANGE_C[0] <= t <= TEMPERATURE_RANGE_C[1]
    high_humidity = h >= HUMIDITY_THRESHOLD_PCT
    precip_present = p >= PRECIPITATION_THRESHOLD_MM

    index = 0.0
    factors: List[ContributingFactor] = []

    if temp_in_range:
        contribution = (1 - abs(t) / 10) * 40 * WEIGHTS["temperature"]
        index += contribution
        factors.append(ContributingFactor(
            factor="temperature", value=t, contribution=contribution,
            description=f"Temperature {t:g}°C favours icing",
        ))

    if high_humidity:
        contribution = ((h - 80) / 20) * 25 * WEIGHTS["humidity"]
        index += contribution
        factors.append(ContributingFactor(
            factor="humidity", value=h, contribution=contribution,
            description=f"High humidity {h:g}% promotes icing",
        ))

    if precip_present:
        contribution = min(p / 2, 1) * 20 * WEIGHTS["precipitation"]  # saturates at 2 mm/h
        index += contribution
        factors.append(ContributingFactor(
            factor="precipitation", value=p, contribution=contribution,
            description=f"Precipitation {p:g} mm/h increases icing risk",
        ))

    if low > LOW_CLOUD_THRESHOLD_PCT and t < 5:
        contribution = (low / 100) * 15 * WEIGHTS["cloud_cover"]
        index += contribution
        factors.append(ContributingFactor(
            factor="cloud_cover", value=low, contribution=contribution,
            description=f"Low cloud {low:g}% creates icing conditions",
        ))

    if fl < FREEZING_LEVEL_THRESHOLD_M and t > -5:
        index += FREEZING_LEVEL_BONUS
        factors.append(ContributingFactor(
            factor="freezing_level", value=fl, contribution=FREEZING_LEVEL_BONUS,
            description=f"Low freezing level ({fl:g} m) increases risk",
        ))

    level = icing_level(index)
    icing_type = classify_icing_type(record, level)

    return IcingHourRisk(
        hour=record.hour,
        time=hour_label(record.hour),
        temperature_c=t,
        dewpoint_c=record.dewpoint_c,
        humidity_pct=h,
        precipitation_mm_per_h=p,
        cloud_cover_low_pct=low,
        freezing_level_m=fl,
        index=round_half_up(index, 1),
        level=level,
        level_text=LEVEL_TEXT[level],
        contributing_factors=factors,
        icing_type=icing_type,
        icing_description=ICING_TYPE_DESCRIPTION[icing_type],
        conditions=_conditions_text(temp_in_range, high_humidity, precip_present),
    )


def _predominant_type(hours: Sequence[IcingHourRisk]) -> IcingType:
    """Most frequent non-'none' icing type; ties go to the earlier type in rule order."""
    best, best_count = IcingType.NONE, 0
    for _, icing_type in ICING_TYPE_RULES:
        count = sum(1 for h in hours if h.icing_type == icing_type)
        if count > best_count:
            best, best_count = icing_type, count
    return best


def _conditions_summary(hours: Sequence[IcingHourRisk]) -> str:
    avg_temp = round_half_up(mean([h.temperature_c for h in hours]), 1)
    avg_humidity = round_half_up(mean([h.humidity_pct for h in hours]), 0)
    total_precip = round_half_up(sum(h.precipitation_mm_per_h for h in hours), 1)
    return (
        f"Average temperature {avg_temp:g}°C, humidity {avg_humidity:g}%, "
        f"precipitation {total_precip:g} mm"
    )


def _summarize_period(run: Sequence[IcingHourRisk]) -> IcingPeriod:
    predominant = _predominant_type(run)
    return IcingPeriod(
        **period_bounds(run),
        max_index=max(h.index for h in run),
        avg_index=round_half_up(mean([h.index for h in run]), 1),
        max_level=max(h.level for h in run),
        predominant_icing_type=predominant,
        predominant_icing_text=ICING_TYPE_TEXT[predominant],
        conditions_summary=_conditions_summary(run),
    )


def identify_icing_periods(hourly: Sequence[IcingHourRisk]) -> IcingPeriodCollection:
    """Group level>=2 hours into periods, most severe first."""
    periods = build_periods(hourly, lambda h: h.level >= 2, _summarize_period)
    if not periods:
        return IcingPeriodCollection(
            recommendations=["Icing risk stays within safe limits throughout the day"],
        )

    periods.sort(key=lambda p: p.max_index, reverse=True)
    return IcingPeriodCollection(
        periods=periods,
        max_index=max(h.index for h in hourly if h.level >= 2),
        recommendations=icing_period_recommendations(periods),
        **collection_totals(periods),
    )


def _segment_tier(hour_count: int, critical: int, high: int, avg_index: float) -> int:
    if critical > hour_count * 0.3:
        return 3
    if high > hour_count * 0.4:
        return 2
    if avg_index > 30:
        return 1
    return 0


def analyze_day_segments(hourly: Sequence[IcingHourRisk]) -> List[DaySegment]:
    """Bin hours into night/morning/day/evening and tier each populated segment."""
    segments: List[DaySegment] = []
    for name, label, first, last in DAY_SEGMENTS:
        members = [h for h in hourly if first <= h.hour <= last]
        if not members:
            segments.append(DaySegment(name=name, label=label, start_hour=first, end_hour=last))
            continue

        avg_index = round_half_up(mean([h.index for h in members]), 1)
        high = sum(1 for h in members if h.level >= 2)
        critical = sum(1 for h in members if h.level == 3)
        tier = _segment_tier(len(members), critical, high, avg_index)
        segments.append(DaySegment(
            name=name,
            label=label,
            start_hour=first,
            end_hour=last,
            hour_count=len(members),
            avg_index=avg_index,
            max_index=max(h.index for h in members),
            high_risk_hours=high,
            critical_risk_hours=critical,
            tier=tier,
            tier_text=SEGMENT_TIER_TEXT[tier],
        ))
    return segments


def identify_critical_factors(hourly: Sequence[IcingHourRisk]) -> List[ContributingFactor]:
    """Factors that dominate the level-3 hours (contribution above 5 points)."""
    critical_hours = [h for h in hourly if h.level == 3]
    if not critical_hours:
        return []

    counts: Dict[str, int] = {}
    for hour in critical_hours:
        for factor in hour.contributing_factors:
            if (factor.contribution or 0) > 5:
                counts[factor.factor] = counts.get(factor.factor, 0) + 1

    n = len(critical_hours)
    factors: List[ContributingFactor] = []
    if counts.get("temperature", 0) > n * 0.5:
        factors.append(ContributingFactor(
            factor="temperature", severity=RiskLevel.CRITICAL,
            description="Temperature in the critical 0..+3°C band is the main risk driver",
        ))
    if counts.get("precipitation", 0) > n * 0.4:
        factors.append(ContributingFactor(
            factor="precipitation", severity=RiskLevel.CRITICAL,
            description="Precipitation sharply raises the risk of clear icing",
        ))
    if counts.get("humidity", 0) > n * 0.6:
        factors.append(ContributingFactor(
            factor="humidity", severity=RiskLevel.CRITICAL,
            description="Persistently high humidity (>85%) sustains icing conditions",
        ))
    return factors


def icing_risk_score(stats: IcingStatistics, total_period_duration: int) -> int:
    """Points from the peak index, level-3 hours, level>=2 hours and period duration."""
    score = 0
    if stats.max_index > 75:
        score += 35
    elif stats.max_index > 60:
        score += 25
    elif stats.max_index > 45:
        score += 15

    if stats.critical_risk_hours > 2:
        score += 30
    elif stats.critical_risk_hours > 0:
        score += 15

    if stats.high_risk_hours > 4:
        score += 25
    elif stats.high_risk_hours > 2:
        score += 15

    if total_period_duration > 4:
        score += 10
    return score


def calculate_icing_overall(hourly: Sequence[IcingHourRisk], periods: IcingPeriodCollection) -> IcingOverallRisk:
    indexes = [h.index for h in hourly]
    high = sum(1 for h in hourly if h.level >= 2)
    stats = IcingStatistics(
        avg_index=round_half_up(mean(indexes), 1),
        max_index=max(indexes),
        high_risk_hours=high,
        critical_risk_hours=sum(1 for h in hourly if h.level == 3),
        safe_hours=len(hourly) - high,
    )
    score = icing_risk_score(stats, periods.total_duration)

    level, text, restriction = LOW_TIER
    for minimum, tier_level, tier_text, tier_restriction in OVERALL_TIERS:
        if score >= minimum:
            level, text, restriction = tier_level, tier_text, tier_restriction
            break

    return IcingOverallRisk(
        score=score,
        level=level,
        text=text,
        flight_restriction=restriction,
        statistics=stats,
        critical_factors=identify_critical_factors(hourly),
    )


def primary_concern(overall: IcingOverallRisk, periods: IcingPeriodCollection) -> str:
    if overall.level == RiskLevel.CRITICAL:
        return "Critical icing risk makes flying impossible"
    if periods.max_duration > 3:
        return f"Extended periods ({periods.max_duration}+ hours) of high icing risk"
    if overall.statistics.critical_risk_hours > 2:
        return f"{overall.statistics.critical_risk_hours} hours of critical icing risk"
    if overall.statistics.max_index > 70:
        return "Peak icing index exceeds 70 points"
    return "Icing risk within acceptable limits"


def build_icing_summary(overall: IcingOverallRisk, periods: IcingPeriodCollection) -> IcingSummary:
    return IcingSummary(
        risk_level_text=overall.text,
        flight_restriction=overall.flight_restriction,
        critical_periods_count=periods.total_count,
        max_index=overall.statistics.max_index,
        safe_flight_hours=overall.statistics.safe_hours,
        primary_concern=primary_concern(overall, periods),
    )


def empty_icing_analysis() -> IcingAnalysis:
    """Fully populated result for an empty hour series."""
    return IcingAnalysis(
        critical_periods=IcingPeriodCollection(recommendations=["No data for icing risk analysis"]),
        overall=IcingOverallRisk(
            text="No data to assess icing risk",
            flight_restriction="Restrictions cannot be determined",
        ),
        recommendations=[
            "Icing risk analysis could not be performed",
            "Check that forecast data is available and try again",
        ],
        summary=IcingSummary(
            risk_level_text="No data",
            flight_restriction="Analysis not possible",
            primary_concern="No input data to analyse",
        ),
    )


def analyze_icing(records: Sequence[HourRecord]) -> IcingAnalysis:
    """Score every hour and derive periods, day segments, the overall verdict and advice."""
    if not records:
        logger.debug("No hours to score for icing")
        return empty_icing_analysis()

    hourly = [score_icing_hour(r) for r in records]
    periods = identify_icing_periods(hourly)
    segments = analyze_day_segments(hourly)
    overall = calculate_icing_overall(hourly, periods)
    recommendations = icing_recommendations(
        overall,
        periods,
        segments,
        min_freezing_level_m=min(r.freezing_level_m for r in records),
    )

    logger.debug(
        "Icing analysis complete",
        extra={"hours": len(hourly), "score": overall.score, "level": overall.level.value, "periods": periods.total_count},
    )
    return IcingAnalysis(
        analyzed_hours=len(hourly),
        hourly=hourly,
        critical_periods=periods,
        day_segments=segments,
        overall=overall,
        recommendations=recommendations,
        summary=build_icing_summary(overall, periods),
    )
