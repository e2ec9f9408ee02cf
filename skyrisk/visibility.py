"""Visibility, cloud ceiling and VFR compliance analysis.

Ceilings are estimated from temperature, humidity and low cloud because the
forecast carries no cloud-base height. Each hour is classed VFR, Marginal
VFR or IFR; the day is scored by subtracting penalties from 100.
"""

from __future__ import annotations

from typing import Dict, List, Sequence

from skyrisk.domain import (
    RISK_LEVEL_ORDER,
    CloudCategory,
    ConditionsCategory,
    ContributingFactor,
    HourRecord,
    PeriodSeverity,
    PrimaryRestriction,
    RangeStatistics,
    RiskLevel,
    VfrCompliance,
    VfrStatus,
    VisibilityAnalysis,
    VisibilityBlock,
    VisibilityCategory,
    VisibilityHourRisk,
    VisibilityOverallAssessment,
    VisibilityOverallStatistics,
    VisibilityPeriod,
    VisibilityPeriodCollection,
    VisibilitySummary,
)
from skyrisk.numeric import hour_label, mean, population_std_dev, round_half_up
from skyrisk.periods import build_periods, collection_totals, period_bounds
from skyrisk.recommendations import visibility_period_recommendations, visibility_recommendations
from utils.logging_utils import get_tagged_logger
logger = get_tagged_logger(__name__, tag="visibility")

VFR_MIN_VISIBILITY_KM = 5.0
VFR_MIN_CEILING_M = 300
MARGINAL_MIN_VISIBILITY_KM = 3.0
MARGINAL_MIN_CEILING_M = 200
CEILING_RANGE_M = (200, 3000)
BEST_BLOCK_HOURS = 3

# (lower bound in km, category); first match wins.
VISIBILITY_BANDS = [
    (10.0, VisibilityCategory.EXCELLENT),
    (5.0, VisibilityCategory.GOOD),
    (3.0, VisibilityCategory.MODERATE),
    (1.0, VisibilityCategory.POOR),
]

VISIBILITY_TEXT = {
    VisibilityCategory.EXCELLENT: "Excellent",
    VisibilityCategory.GOOD: "Good",
    VisibilityCategory.MODERATE: "Moderate",
    VisibilityCategory.POOR: "Poor",
    VisibilityCategory.VERY_POOR: "Very poor",
}

# (upper bound in %, category); first match wins.
CLOUD_BANDS = [
    (20.0, CloudCategory.CLEAR),
    (50.0, CloudCategory.SCATTERED),
    (80.0, CloudCategory.BROKEN),
]

# (score below, category, text, flight restriction); checked top to bottom.
CONDITION_TIERS = [
    (40, ConditionsCategory.POOR, "POOR CONDITIONS FOR VFR FLIGHTS",
     "VFR flights prohibited, IFR conditions required"),
    (60, ConditionsCategory.MARGINAL, "Conditions close to VFR minimums",
     "Experienced pilots only, with range and altitude restrictions"),
    (80, ConditionsCategory.GOOD, "Satisfactory conditions for VFR flights",
     "Fly with caution and stay within 2 km of the take-off point"),
]
EXCELLENT_TIER = (ConditionsCategory.EXCELLENT, "Excellent conditions for VFR flights", "No visibility restrictions")

CATEGORY_LEVEL = {
    ConditionsCategory.EXCELLENT: RiskLevel.LOW,
    ConditionsCategory.GOOD: RiskLevel.MODERATE,
    ConditionsCategory.MARGINAL: RiskLevel.HIGH,
    ConditionsCategory.POOR: RiskLevel.CRITICAL,
    ConditionsCategory.UNKNOWN: RiskLevel.UNKNOWN,
}


def categorize_visibility(visibility_km: float) -> VisibilityCategory:
    for lower, category in VISIBILITY_BANDS:
        if visibility_km >= lower:
            return category
    return VisibilityCategory.VERY_POOR


def categorize_cloud_cover(cloud_cover_pct: float) -> CloudCategory:
    for upper, category in CLOUD_BANDS:
        if cloud_cover_pct <= upper:
            return category
    return CloudCategory.OVERCAST


def estimate_ceiling(record: HourRecord) -> int:
    """Rough cloud base in metres: warmer raises it, humid and low cloud lower it."""
    base = 1000.0
    base += (record.temperature_c - 10) * 50
    base -= (record.humidity_pct - 70) * 10
    if record.cloud_cover_low_pct > 80:
        base *= 0.5
    elif record.cloud_cover_low_pct > 50:
        base *= 0.7
    low, high = CEILING_RANGE_M
    return int(max(low, min(high, round_half_up(base))))


def classify_vfr(visibility_km: float, ceiling_m: float) -> VfrStatus:
    if visibility_km >= VFR_MIN_VISIBILITY_KM and ceiling_m >= VFR_MIN_CEILING_M:
        return VfrStatus.VFR
    if (
        MARGINAL_MIN_VISIBILITY_KM <= visibility_km < VFR_MIN_VISIBILITY_KM
        or MARGINAL_MIN_CEILING_M <= ceiling_m < VFR_MIN_CEILING_M
    ):
        return VfrStatus.MARGINAL_VFR
    return VfrStatus.IFR


def low_cloud_impact(ceiling_m: float) -> RiskLevel:
    if ceiling_m < 150:
        return RiskLevel.CRITICAL
    if ceiling_m < 250:
        return RiskLevel.HIGH
    if ceiling_m < 400:
        return RiskLevel.MODERATE
    return RiskLevel.LOW


def score_visibility_hour(record: HourRecord) -> VisibilityHourRisk:
    """Pure function: category, ceiling and VFR status for one hour."""
    category = categorize_visibility(record.visibility_km)
    ceiling = estimate_ceiling(record)
    return VisibilityHourRisk(
        hour=record.hour,
        time=hour_label(record.hour),
        visibility_km=record.visibility_km,
        category=category,
        category_text=VISIBILITY_TEXT[category],
        cloud_cover_pct=record.cloud_cover_pct,
        cloud_cover_low_pct=record.cloud_cover_low_pct,
        cloud_category=categorize_cloud_cover(record.cloud_cover_pct),
        ceiling_m=ceiling,
        low_cloud_impact=low_cloud_impact(ceiling),
        visibility_ok=record.visibility_km >= VFR_MIN_VISIBILITY_KM,
        ceiling_ok=ceiling >= VFR_MIN_CEILING_M,
        compliance_status=classify_vfr(record.visibility_km, ceiling),
        critical=(
            category in (VisibilityCategory.POOR, VisibilityCategory.VERY_POOR)
            or ceiling < MARGINAL_MIN_CEILING_M
        ),
    )


def _summarize_period(run: Sequence[VisibilityHourRisk]) -> VisibilityPeriod:
    min_visibility = min(h.visibility_km for h in run)
    min_ceiling = min(h.ceiling_m for h in run)
    return VisibilityPeriod(
        **period_bounds(run),
        min_visibility_km=round_half_up(min_visibility, 1),
        max_cloud_cover_low_pct=max(h.cloud_cover_low_pct for h in run),
        min_ceiling_m=min_ceiling,
        primary_restriction=(
            PrimaryRestriction.VISIBILITY if min_visibility < 1.5 else PrimaryRestriction.CEILING
        ),
        severity=(
            PeriodSeverity.SEVERE if min_visibility < 1 or min_ceiling < 150 else PeriodSeverity.MODERATE
        ),
    )


def identify_visibility_periods(hourly: Sequence[VisibilityHourRisk]) -> VisibilityPeriodCollection:
    """Group poor-visibility or low-ceiling hours into periods."""
    periods = build_periods(hourly, lambda h: h.critical, _summarize_period)
    if not periods:
        return VisibilityPeriodCollection(
            recommendations=["Visibility is favourable throughout the day"],
        )
    return VisibilityPeriodCollection(
        periods=periods,
        recommendations=visibility_period_recommendations(periods),
        **collection_totals(periods),
    )


def find_best_visibility_block(hourly: Sequence[VisibilityHourRisk]) -> VisibilityBlock | None:
    """Three consecutive hours with the highest mean visibility; earliest block wins ties."""
    best: VisibilityBlock | None = None
    for start in range(0, 24 - BEST_BLOCK_HOURS + 1):
        members = [h for h in hourly if start <= h.hour < start + BEST_BLOCK_HOURS]
        if len(members) != BEST_BLOCK_HOURS:
            continue
        block = VisibilityBlock(
            start_hour=start,
            start=hour_label(start),
            end=hour_label(start + BEST_BLOCK_HOURS - 1),
            avg_visibility_km=round_half_up(mean([h.visibility_km for h in members]), 1),
            min_visibility_km=min(h.visibility_km for h in members),
        )
        if best is None or block.avg_visibility_km > best.avg_visibility_km:
            best = block
    return best


def _range_stats(values: Sequence[float], *, decimals: int, with_std_dev: bool = False) -> RangeStatistics:
    return RangeStatistics(
        average=round_half_up(mean(values), decimals),
        minimum=min(values),
        maximum=max(values),
        std_dev=round_half_up(population_std_dev(values), decimals) if with_std_dev else None,
    )


def summarize_vfr(hourly: Sequence[VisibilityHourRisk]) -> VfrCompliance:
    counts = {status: 0 for status in VfrStatus}
    for h in hourly:
        counts[h.compliance_status] += 1
    vfr_hours = counts[VfrStatus.VFR]
    return VfrCompliance(
        vfr_compliant_hours=vfr_hours,
        marginal_vfr_hours=counts[VfrStatus.MARGINAL_VFR],
        ifr_hours=counts[VfrStatus.IFR],
        vfr_percentage=round_half_up(vfr_hours / len(hourly) * 100) if hourly else 0.0,
    )


def determine_limiting_factor(
    visibility_stats: RangeStatistics,
    min_ceiling_m: int,
    vfr: VfrCompliance,
) -> ContributingFactor:
    """Most severe of low visibility, low ceiling and prolonged IFR."""
    factors: List[ContributingFactor] = []
    if visibility_stats.minimum < 2:
        factors.append(ContributingFactor(
            factor="visibility",
            value=visibility_stats.minimum,
            severity=RiskLevel.CRITICAL if visibility_stats.minimum < 1 else RiskLevel.HIGH,
            description=f"Very low visibility (minimum {visibility_stats.minimum:g} km)",
        ))
    if min_ceiling_m < 200:
        factors.append(ContributingFactor(
            factor="cloud_ceiling",
            value=min_ceiling_m,
            severity=RiskLevel.CRITICAL if min_ceiling_m < 150 else RiskLevel.HIGH,
            description=f"Very low cloud ceiling (minimum {min_ceiling_m} m)",
        ))
    if vfr.ifr_hours > 6:
        factors.append(ContributingFactor(
            factor="vfr_compliance",
            value=vfr.ifr_hours,
            severity=RiskLevel.HIGH,
            description=f"{vfr.ifr_hours} hours below VFR minimums",
        ))

    if not factors:
        return ContributingFactor(factor="none", severity=RiskLevel.LOW, description="No critical restrictions")
    # sorted() is stable, so equal severities keep their check order
    return sorted(factors, key=lambda f: RISK_LEVEL_ORDER[f.severity], reverse=True)[0]


def visibility_penalty_score(
    visibility_stats: RangeStatistics,
    limited_hours: int,
    low_cloud_stats: RangeStatistics,
    vfr: VfrCompliance,
    periods: VisibilityPeriodCollection,
) -> int:
    """Start from 100 and subtract penalties for visibility, low cloud, IFR hours and long periods."""
    score = 100
    if visibility_stats.minimum < 1:
        score -= 40
    elif visibility_stats.minimum < 2:
        score -= 25
    elif visibility_stats.minimum < 3:
        score -= 15

    if limited_hours > 8:
        score -= 20
    elif limited_hours > 4:
        score -= 10

    if low_cloud_stats.maximum > 80:
        score -= 20
    elif low_cloud_stats.maximum > 60:
        score -= 10

    if vfr.ifr_hours > 6:
        score -= 25
    elif vfr.ifr_hours > 3:
        score -= 15

    if vfr.vfr_compliant_hours < 6:
        score -= 20
    elif vfr.vfr_compliant_hours < 9:
        score -= 10

    if periods.total_duration > 6:
        score -= 15
    elif periods.total_duration > 3:
        score -= 8
    return score


def calculate_visibility_overall(
    hourly: Sequence[VisibilityHourRisk],
    visibility_stats: RangeStatistics,
    limited_hours: int,
    low_cloud_stats: RangeStatistics,
    vfr: VfrCompliance,
    periods: VisibilityPeriodCollection,
) -> VisibilityOverallAssessment:
    score = visibility_penalty_score(visibility_stats, limited_hours, low_cloud_stats, vfr, periods)

    category, text, restriction = EXCELLENT_TIER
    for below, tier_category, tier_text, tier_restriction in CONDITION_TIERS:
        if score < below:
            category, text, restriction = tier_category, tier_text, tier_restriction
            break

    return VisibilityOverallAssessment(
        score=score,
        category=category,
        level=CATEGORY_LEVEL[category],
        text=text,
        flight_restriction=restriction,
        statistics=VisibilityOverallStatistics(
            avg_visibility_km=visibility_stats.average,
            min_visibility_km=visibility_stats.minimum,
            avg_cloud_cover_low_pct=low_cloud_stats.average,
            vfr_compliant_hours=vfr.vfr_compliant_hours,
            marginal_vfr_hours=vfr.marginal_vfr_hours,
            ifr_hours=vfr.ifr_hours,
        ),
        limiting_factor=determine_limiting_factor(
            visibility_stats, min(h.ceiling_m for h in hourly), vfr,
        ),
    )


def _distribution(values, keys) -> Dict[str, int]:
    counts = {key.value: 0 for key in keys}
    for value in values:
        counts[value.value] += 1
    return counts


def empty_visibility_analysis() -> VisibilityAnalysis:
    """Fully populated result for an empty hour series."""
    return VisibilityAnalysis(
        visibility_stats=RangeStatistics(std_dev=0.0),
        visibility_distribution={c.value: 0 for c in VisibilityCategory},
        cloud_distribution={c.value: 0 for c in CloudCategory},
        critical_periods=VisibilityPeriodCollection(recommendations=["No data for visibility analysis"]),
        overall=VisibilityOverallAssessment(
            text="No data to assess conditions",
            flight_restriction="Analysis not possible",
            limiting_factor=ContributingFactor(factor="none", severity=RiskLevel.UNKNOWN, description="No data"),
        ),
        recommendations=[
            "Visibility and cloud analysis could not be performed",
            "Check that forecast data is available and try again",
        ],
        summary=VisibilitySummary(
            conditions_text="No data",
            flight_restriction="Analysis not possible",
            primary_limiting_factor="No input data",
        ),
    )


def analyze_visibility(records: Sequence[HourRecord]) -> VisibilityAnalysis:
    """Full visibility analysis: statistics, VFR compliance, periods, verdict and advice."""
    if not records:
        logger.debug("No hours to score for visibility")
        return empty_visibility_analysis()

    hourly = [score_visibility_hour(r) for r in records]
    visibility_stats = _range_stats([h.visibility_km for h in hourly], decimals=1, with_std_dev=True)
    cloud_stats = _range_stats([h.cloud_cover_pct for h in hourly], decimals=0)
    low_cloud_stats = _range_stats([h.cloud_cover_low_pct for h in hourly], decimals=0)
    limited_hours = sum(1 for h in hourly if h.visibility_km < VFR_MIN_VISIBILITY_KM)
    vfr = summarize_vfr(hourly)
    periods = identify_visibility_periods(hourly)
    best_block = find_best_visibility_block(hourly)
    overall = calculate_visibility_overall(hourly, visibility_stats, limited_hours, low_cloud_stats, vfr, periods)

    logger.debug(
        "Visibility analysis complete",
        extra={"hours": len(hourly), "score": overall.score, "category": overall.category.value},
    )
    return VisibilityAnalysis(
        analyzed_hours=len(hourly),
        hourly=hourly,
        visibility_stats=visibility_stats,
        visibility_distribution=_distribution([h.category for h in hourly], VisibilityCategory),
        limited_visibility_hours=limited_hours,
        very_poor_visibility_hours=sum(1 for h in hourly if h.visibility_km < 1),
        cloud_cover_stats=cloud_stats,
        low_cloud_cover_stats=low_cloud_stats,
        cloud_distribution=_distribution([h.cloud_category for h in hourly], CloudCategory),
        vfr=vfr,
        critical_periods=periods,
        best_visibility_block=best_block,
        overall=overall,
        recommendations=visibility_recommendations(
            overall,
            periods,
            low_cloud_max_pct=low_cloud_stats.maximum,
            best_block=best_block,
        ),
        summary=VisibilitySummary(
            conditions_text=overall.text,
            flight_restriction=overall.flight_restriction,
            vfr_compliant_hours=vfr.vfr_compliant_hours,
            marginal_vfr_hours=vfr.marginal_vfr_hours,
            critical_periods_count=periods.total_count,
            best_visibility_block=best_block,
            primary_limiting_factor=overall.limiting_factor.description,
        ),
    )
