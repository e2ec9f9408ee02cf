"""Worst-of-three verdict across the icing, wind and visibility analyses.

The three scorers are not fused into one formula. Each keeps its own tier;
this module lines them up and reports the most severe one, together with
every hazard that reached that level.
"""

from __future__ import annotations

from typing import List, Sequence

from skyrisk.domain import (
    RISK_LEVEL_ORDER,
    Hazard,
    HazardVerdict,
    IcingAnalysis,
    OverallRisk,
    RiskLevel,
    RiskStatistics,
    VisibilityAnalysis,
    WindAnalysis,
)
from utils.logging_utils import get_tagged_logger
logger = get_tagged_logger(__name__, tag="aggregate")


def worst_level(levels: Sequence[RiskLevel]) -> RiskLevel:
    """Most severe level; unknown only when every input is unknown."""
    if not levels:
        return RiskLevel.UNKNOWN
    return max(levels, key=lambda level: RISK_LEVEL_ORDER[level])


def hazard_verdicts(
    icing: IcingAnalysis,
    wind: WindAnalysis,
    visibility: VisibilityAnalysis,
) -> List[HazardVerdict]:
    """Per-hazard verdicts; visibility reports its penalty points instead of its 0-100 score."""
    visibility_points = 100 - visibility.overall.score if visibility.analyzed_hours else 0
    return [
        HazardVerdict(
            hazard=Hazard.ICING,
            risk_points=icing.overall.score,
            level=icing.overall.level,
            text=icing.overall.text,
            flight_restriction=icing.overall.flight_restriction,
        ),
        HazardVerdict(
            hazard=Hazard.WIND_SHEAR,
            risk_points=wind.overall.score,
            level=wind.overall.level,
            text=wind.overall.text,
            flight_restriction=wind.overall.flight_restriction,
        ),
        HazardVerdict(
            hazard=Hazard.VISIBILITY,
            risk_points=visibility_points,
            level=visibility.overall.level,
            text=visibility.overall.text,
            flight_restriction=visibility.overall.flight_restriction,
        ),
    ]


def aggregate_risk(
    icing: IcingAnalysis,
    wind: WindAnalysis,
    visibility: VisibilityAnalysis,
) -> OverallRisk:
    """Side-by-side verdicts plus the worst-of-three level and the hazards driving it."""
    verdicts = hazard_verdicts(icing, wind, visibility)
    level = worst_level([v.level for v in verdicts])

    if level == RiskLevel.UNKNOWN:
        return OverallRisk(
            text="No data to assess flight risk",
            flight_restriction="Restrictions cannot be determined",
            verdicts=verdicts,
        )

    driving = [v for v in verdicts if v.level == level]
    # the first driving hazard, in icing/wind/visibility order, supplies the wording
    lead = driving[0]
    critical_factors = list(icing.overall.critical_factors)
    critical_factors.extend(wind.overall.contributing_factors)
    if visibility.overall.limiting_factor.factor != "none":
        critical_factors.append(visibility.overall.limiting_factor)

    overall = OverallRisk(
        score=max(v.risk_points for v in driving),
        level=level,
        text=lead.text,
        flight_restriction=lead.flight_restriction,
        driving_hazards=[v.hazard for v in driving],
        verdicts=verdicts,
        statistics=RiskStatistics(
            icing=icing.overall.statistics,
            wind_shear=wind.statistics,
            visibility=visibility.overall.statistics,
        ),
        critical_factors=critical_factors,
    )
    logger.debug(
        "Overall risk aggregated",
        extra={"level": level.value, "drivers": [h.value for h in overall.driving_hazards]},
    )
    return overall
