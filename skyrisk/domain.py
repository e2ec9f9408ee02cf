"""Domain vocabulary and strict schemas for deterministic flight-risk analysis.

This module defines the stable contract between the numeric scorers and any
caller that renders or exports their results: enums, immutable input records,
configuration structs, and Pydantic models for every payload produced by the
engine. No interpretation logic lives here.
"""

from __future__ import annotations

from datetime import datetime
from enum import Enum
from typing import Dict, List

from pydantic import BaseModel, ConfigDict, Field, field_validator

from skyrisk.numeric import clock_label


class _StrictBaseModel(BaseModel):
    """Base model with strict extra handling."""

    model_config = ConfigDict(extra="forbid")


class _FrozenModel(BaseModel):
    """Immutable model that also accepts camelCase aliases on input."""

    model_config = ConfigDict(extra="forbid", frozen=True, populate_by_name=True)


class RiskLevel(str, Enum):
    """Tier of an aggregated hazard verdict."""
    LOW = "low"
    MODERATE = "moderate"
    HIGH = "high"
    CRITICAL = "critical"
    UNKNOWN = "unknown"


RISK_LEVEL_ORDER: Dict[RiskLevel, int] = {
    RiskLevel.UNKNOWN: -1,
    RiskLevel.LOW: 0,
    RiskLevel.MODERATE: 1,
    RiskLevel.HIGH: 2,
    RiskLevel.CRITICAL: 3,
}


class Hazard(str, Enum):
    """Independent hazards scored by the engine."""
    ICING = "icing"
    WIND_SHEAR = "wind_shear"
    VISIBILITY = "visibility"


class IcingType(str, Enum):
    """Kind of airframe ice expected for an hour."""
    CLEAR_ICE = "clear_ice"
    RIME_ICE = "rime_ice"
    MIXED_ICE = "mixed_ice"
    NONE = "none"


class VisibilityCategory(str, Enum):
    """Horizontal visibility bands."""
    EXCELLENT = "excellent"
    GOOD = "good"
    MODERATE = "moderate"
    POOR = "poor"
    VERY_POOR = "very_poor"


class CloudCategory(str, Enum):
    """Total cloud cover bands."""
    CLEAR = "clear"
    SCATTERED = "scattered"
    BROKEN = "broken"
    OVERCAST = "overcast"


class VfrStatus(str, Enum):
    """Visual flight rules compliance for one hour."""
    VFR = "VFR"
    MARGINAL_VFR = "Marginal VFR"
    IFR = "IFR"


class ConditionsCategory(str, Enum):
    """Overall visual-flight conditions for the day."""
    EXCELLENT = "excellent"
    GOOD = "good"
    MARGINAL = "marginal"
    POOR = "poor"
    UNKNOWN = "unknown"


class PeriodSeverity(str, Enum):
    MODERATE = "moderate"
    SEVERE = "severe"


class PrimaryRestriction(str, Enum):
    VISIBILITY = "visibility"
    CEILING = "ceiling"


class WindowStatusLevel(str, Enum):
    """Verdict on the best available takeoff window."""
    OPTIMAL = "optimal"
    WARNING = "warning"
    CRITICAL = "critical"


class ThermalRisk(str, Enum):
    NONE = "none"
    THERMAL_TURBULENCE = "thermal_turbulence"


class AlertType(str, Enum):
    """Categories of forecast alerts raised from raw hourly values."""
    WIND = "wind"
    ICING = "icing"
    VISIBILITY = "visibility"
    THUNDERSTORM = "thunderstorm"
    PRECIPITATION = "precipitation"


class AlertLevel(str, Enum):
    WARNING = "warning"
    DANGER = "danger"


# ---------------------------------------------------------------------------
# Inputs and configuration
# ---------------------------------------------------------------------------


class HourRecord(_FrozenModel):
    """One normalized hour of forecast data for a single point."""
    hour: int = Field(ge=0, le=23)
    minute: int = Field(default=0, ge=0, le=59)
    temperature_c: float = Field(default=0.0, alias="temperatureC")
    dewpoint_c: float = Field(default=0.0, alias="dewpointC")
    humidity_pct: float = Field(default=0.0, ge=0.0, le=100.0, alias="humidityPct")
    precipitation_mm_per_h: float = Field(default=0.0, ge=0.0, alias="precipitationMmPerH")
    cloud_cover_pct: float = Field(default=0.0, ge=0.0, le=100.0, alias="cloudCoverPct")
    cloud_cover_low_pct: float = Field(default=0.0, ge=0.0, le=100.0, alias="cloudCoverLowPct")
    freezing_level_m: float = Field(default=0.0, ge=0.0, alias="freezingLevelM")
    wind_speed_10m: float = Field(default=0.0, ge=0.0, alias="windSpeed10m")
    wind_speed_80m: float = Field(default=0.0, ge=0.0, alias="windSpeed80m")
    wind_speed_120m: float = Field(default=0.0, ge=0.0, alias="windSpeed120m")
    wind_dir_10m: float = Field(default=0.0, ge=0.0, lt=360.0, alias="windDir10m")
    wind_dir_80m: float = Field(default=0.0, ge=0.0, lt=360.0, alias="windDir80m")
    wind_dir_120m: float = Field(default=0.0, ge=0.0, lt=360.0, alias="windDir120m")
    wind_gusts_ms: float = Field(default=0.0, ge=0.0, alias="windGustsMs")
    visibility_km: float = Field(default=0.0, ge=0.0, alias="visibilityKm")
    cape_j_per_kg: float = Field(default=0.0, ge=0.0, alias="capeJPerKg")


class DailySummary(_FrozenModel):
    """Sunrise and sunset for the analysed day as HH:MM strings."""
    sunrise: str = "00:00"
    sunset: str = "00:00"

    @field_validator("sunrise", "sunset", mode="after")
    @classmethod
    def canonical_clock(cls, v: str) -> str:
        """Accept "H:MM", "HH:MM" or an ISO datetime; reject anything that is not a time of day."""
        return clock_label(v)


class SafetyWindowConfig(_FrozenModel):
    """Thresholds an hour must satisfy to be part of a safe flight window."""
    max_wind_speed: float = Field(default=15.0, ge=0.0, alias="maxWindSpeed")
    min_visibility: float = Field(default=3.0, ge=0.0, alias="minVisibility")
    max_icing_risk: int = Field(default=2, ge=0, le=3, alias="maxIcingRisk")
    max_cape: float = Field(default=1500.0, ge=0.0, alias="maxCape")
    require_daylight: bool = Field(default=True, alias="requireDaylight")


# ---------------------------------------------------------------------------
# Shared result fragments
# ---------------------------------------------------------------------------


class ContributingFactor(_StrictBaseModel):
    """A single factor that moved a score, with its numeric weight."""
    factor: str
    value: float | None = None
    contribution: float | None = None
    severity: RiskLevel | None = None
    description: str = ""


class CriticalPeriod(_StrictBaseModel):
    """Maximal run of consecutive hours sharing a qualifying condition."""
    start_hour: int
    end_hour: int
    start: str
    end: str
    duration: int
    hours: List[int] = Field(default_factory=list)


class _PeriodCollection(_StrictBaseModel):
    total_count: int = 0
    total_duration: int = 0
    max_duration: int = 0
    recommendations: List[str] = Field(default_factory=list)


# ---------------------------------------------------------------------------
# Hour screening
# ---------------------------------------------------------------------------


class ScreeningLevel(_StrictBaseModel):
    """Coarse 0-3 level with a label, used by the hourly screening pass."""
    level: int = Field(ge=0, le=4)
    text: str
    conditions: str | None = None


class ScreeningShear(ScreeningLevel):
    speed_diff: float = 0.0
    dir_diff: float = 0.0
    direction_change: bool = False


class HourScreening(_StrictBaseModel):
    """Quick per-hour screening used by the safety window and alerts."""
    hour: int
    time: str
    icing: ScreeningLevel
    wind_shear: ScreeningShear
    visibility: ScreeningLevel
    safety: ScreeningLevel


class ForecastAlert(_StrictBaseModel):
    type: AlertType
    level: AlertLevel
    title: str
    message: str
    hours: List[int] = Field(default_factory=list)


class OverallSafety(_StrictBaseModel):
    """Day-level rating derived from the hourly screening statuses."""
    level: int | None = None
    text: str
    rating: int = 0
    danger_hours: int = 0
    caution_hours: int = 0
    safe_hours: int = 0
    safety_percentage: int = 0


class DangerousPeriod(CriticalPeriod):
    """Consecutive restricted hours that share at least one danger reason."""
    reasons: List[str] = Field(default_factory=list)
    severity: int = Field(ge=0, le=3)


class SegmentSafety(str, Enum):
    SAFE = "safe"
    WARNING = "warning"
    DANGER = "danger"


class SegmentWeather(_StrictBaseModel):
    """Weather statistics for one part of the day; values are None when no hour falls in it."""
    name: str
    label: str
    start_hour: int
    end_hour: int
    hour_count: int = 0
    avg_temperature_c: float | None = None
    max_wind_gusts_ms: float | None = None
    min_visibility_km: float | None = None
    total_precipitation_mm: float | None = None
    avg_cape_j_per_kg: float | None = None
    danger_hours: int = 0
    safety: SegmentSafety | None = None


class ForecastSummary(_StrictBaseModel):
    avg_temperature_c: float
    min_temperature_c: float
    max_temperature_c: float
    avg_wind_gusts_ms: float
    max_wind_gusts_ms: float
    avg_visibility_km: float
    min_visibility_km: float
    total_precipitation_mm: float
    max_precipitation_mm_per_h: float
    max_cape_j_per_kg: float
    avg_cape_j_per_kg: float
    sunrise: str
    sunset: str
    daylight_duration_hours: float
    daylight_duration_text: str
    safe_span: str | None = None
    dangerous_hours_count: int = 0
    dangerous_hours: List[str] = Field(default_factory=list)


# ---------------------------------------------------------------------------
# Icing
# ---------------------------------------------------------------------------


class IcingHourRisk(_StrictBaseModel):
    hour: int
    time: str
    temperature_c: float
    dewpoint_c: float
    humidity_pct: float
    precipitation_mm_per_h: float
    cloud_cover_low_pct: float
    freezing_level_m: float
    index: float
    level: int = Field(ge=0, le=3)
    level_text: str
    contributing_factors: List[ContributingFactor] = Field(default_factory=list)
    icing_type: IcingType = IcingType.NONE
    icing_description: str = ""
    conditions: str = ""


class IcingPeriod(CriticalPeriod):
    max_index: float
    avg_index: float
    max_level: int
    predominant_icing_type: IcingType = IcingType.NONE
    predominant_icing_text: str = ""
    conditions_summary: str = ""


class IcingPeriodCollection(_PeriodCollection):
    periods: List[IcingPeriod] = Field(default_factory=list)
    max_index: float = 0.0


class DaySegment(_StrictBaseModel):
    """Icing statistics for one fixed quarter of the day."""
    name: str
    label: str
    start_hour: int
    end_hour: int
    hour_count: int = 0
    avg_index: float | None = None
    max_index: float | None = None
    high_risk_hours: int = 0
    critical_risk_hours: int = 0
    tier: int | None = None
    tier_text: str | None = None


class IcingStatistics(_StrictBaseModel):
    avg_index: float = 0.0
    max_index: float = 0.0
    high_risk_hours: int = 0
    critical_risk_hours: int = 0
    safe_hours: int = 0


class IcingOverallRisk(_StrictBaseModel):
    score: int = 0
    level: RiskLevel = RiskLevel.UNKNOWN
    text: str
    flight_restriction: str
    statistics: IcingStatistics = Field(default_factory=IcingStatistics)
    critical_factors: List[ContributingFactor] = Field(default_factory=list)


class IcingSummary(_StrictBaseModel):
    risk_level_text: str
    flight_restriction: str
    critical_periods_count: int = 0
    max_index: float = 0.0
    safe_flight_hours: int = 0
    primary_concern: str


class IcingAnalysis(_StrictBaseModel):
    analyzed_hours: int = 0
    hourly: List[IcingHourRisk] = Field(default_factory=list)
    critical_periods: IcingPeriodCollection = Field(default_factory=IcingPeriodCollection)
    day_segments: List[DaySegment] = Field(default_factory=list)
    overall: IcingOverallRisk
    recommendations: List[str] = Field(default_factory=list)
    summary: IcingSummary


# ---------------------------------------------------------------------------
# Wind shear / wind profile
# ---------------------------------------------------------------------------


class ShearHourRisk(_StrictBaseModel):
    hour: int
    time: str
    dir_diff_10_80: float
    speed_diff_10_80: float
    dir_diff_10_120: float
    speed_diff_10_120: float
    dir_diff_80_120: float
    speed_diff_80_120: float
    max_dir_diff: float
    max_speed_diff: float
    level: int = Field(ge=0, le=3)
    level_text: str
    contributing_factors: List[ContributingFactor] = Field(default_factory=list)


class ShearPeriod(CriticalPeriod):
    max_level: int
    avg_dir_diff: float
    avg_speed_diff: float


class ShearPeriodCollection(_PeriodCollection):
    periods: List[ShearPeriod] = Field(default_factory=list)


class AltitudeStats(_StrictBaseModel):
    altitude_m: int
    avg_speed: float = 0.0
    max_speed: float = 0.0
    min_speed: float = 0.0
    avg_direction: float = 0.0
    predominant_direction: str = "n/a"
    speed_std_dev: float = 0.0
    direction_std_dev: float = 0.0


class ShearStatistics(_StrictBaseModel):
    avg_dir_diff: float = 0.0
    max_dir_diff: float = 0.0
    avg_speed_diff: float = 0.0
    max_speed_diff: float = 0.0
    high_risk_hours: int = 0
    critical_risk_hours: int = 0
    risk_distribution: Dict[int, int] = Field(default_factory=lambda: {0: 0, 1: 0, 2: 0, 3: 0})


class StabilityIndex(_StrictBaseModel):
    surface: float = 0.0
    low_altitude: float = 0.0
    high_altitude: float = 0.0


class AltitudeWarning(_StrictBaseModel):
    level: AlertLevel = AlertLevel.WARNING
    text: str


class AltitudeRecommendation(_StrictBaseModel):
    optimal_altitude_m: int = 80
    stability_index: StabilityIndex = Field(default_factory=StabilityIndex)
    restricted: bool = False
    recommendation: str
    restrictions: List[str] = Field(default_factory=list)
    additional_recommendations: List[str] = Field(default_factory=list)
    warnings: List[AltitudeWarning] = Field(default_factory=list)


class WindOverallRisk(_StrictBaseModel):
    score: int = 0
    level: RiskLevel = RiskLevel.UNKNOWN
    text: str
    flight_restriction: str
    contributing_factors: List[ContributingFactor] = Field(default_factory=list)


class WindSummary(_StrictBaseModel):
    risk_assessment: str
    flight_restrictions: List[str] = Field(default_factory=list)
    recommendations: List[str] = Field(default_factory=list)


class WindAnalysis(_StrictBaseModel):
    analyzed_hours: int = 0
    altitude_stats: List[AltitudeStats] = Field(default_factory=list)
    hourly: List[ShearHourRisk] = Field(default_factory=list)
    statistics: ShearStatistics = Field(default_factory=ShearStatistics)
    critical_periods: ShearPeriodCollection = Field(default_factory=ShearPeriodCollection)
    altitude_recommendation: AltitudeRecommendation
    overall: WindOverallRisk
    summary: WindSummary


# ---------------------------------------------------------------------------
# Visibility / VFR compliance
# ---------------------------------------------------------------------------


class VisibilityHourRisk(_StrictBaseModel):
    hour: int
    time: str
    visibility_km: float
    category: VisibilityCategory
    category_text: str
    cloud_cover_pct: float
    cloud_cover_low_pct: float
    cloud_category: CloudCategory
    ceiling_m: int
    low_cloud_impact: RiskLevel
    visibility_ok: bool
    ceiling_ok: bool
    compliance_status: VfrStatus
    critical: bool = False


class VisibilityPeriod(CriticalPeriod):
    min_visibility_km: float
    max_cloud_cover_low_pct: float
    min_ceiling_m: int
    primary_restriction: PrimaryRestriction
    severity: PeriodSeverity


class VisibilityPeriodCollection(_PeriodCollection):
    periods: List[VisibilityPeriod] = Field(default_factory=list)


class RangeStatistics(_StrictBaseModel):
    average: float = 0.0
    minimum: float = 0.0
    maximum: float = 0.0
    std_dev: float | None = None


class VfrCompliance(_StrictBaseModel):
    vfr_compliant_hours: int = 0
    marginal_vfr_hours: int = 0
    ifr_hours: int = 0
    vfr_percentage: float = 0.0


class VisibilityBlock(_StrictBaseModel):
    """Three consecutive clock hours with the best average visibility."""
    start_hour: int
    start: str
    end: str
    avg_visibility_km: float
    min_visibility_km: float


class VisibilityOverallStatistics(_StrictBaseModel):
    avg_visibility_km: float = 0.0
    min_visibility_km: float = 0.0
    avg_cloud_cover_low_pct: float = 0.0
    vfr_compliant_hours: int = 0
    marginal_vfr_hours: int = 0
    ifr_hours: int = 0


class VisibilityOverallAssessment(_StrictBaseModel):
    score: int = 0
    category: ConditionsCategory = ConditionsCategory.UNKNOWN
    level: RiskLevel = RiskLevel.UNKNOWN
    text: str
    flight_restriction: str
    statistics: VisibilityOverallStatistics = Field(default_factory=VisibilityOverallStatistics)
    limiting_factor: ContributingFactor


class VisibilitySummary(_StrictBaseModel):
    conditions_text: str
    flight_restriction: str
    vfr_compliant_hours: int = 0
    marginal_vfr_hours: int = 0
    critical_periods_count: int = 0
    best_visibility_block: VisibilityBlock | None = None
    primary_limiting_factor: str


class VisibilityAnalysis(_StrictBaseModel):
    analyzed_hours: int = 0
    hourly: List[VisibilityHourRisk] = Field(default_factory=list)
    visibility_stats: RangeStatistics = Field(default_factory=RangeStatistics)
    visibility_distribution: Dict[str, int] = Field(default_factory=dict)
    limited_visibility_hours: int = 0
    very_poor_visibility_hours: int = 0
    cloud_cover_stats: RangeStatistics = Field(default_factory=RangeStatistics)
    low_cloud_cover_stats: RangeStatistics = Field(default_factory=RangeStatistics)
    cloud_distribution: Dict[str, int] = Field(default_factory=dict)
    vfr: VfrCompliance = Field(default_factory=VfrCompliance)
    critical_periods: VisibilityPeriodCollection = Field(default_factory=VisibilityPeriodCollection)
    best_visibility_block: VisibilityBlock | None = None
    overall: VisibilityOverallAssessment
    recommendations: List[str] = Field(default_factory=list)
    summary: VisibilitySummary


# ---------------------------------------------------------------------------
# Aggregate verdict
# ---------------------------------------------------------------------------


class HazardVerdict(_StrictBaseModel):
    """One scorer's own overall verdict, placed side by side with the others."""
    hazard: Hazard
    risk_points: int = 0
    level: RiskLevel = RiskLevel.UNKNOWN
    text: str
    flight_restriction: str


class RiskStatistics(_StrictBaseModel):
    icing: IcingStatistics | None = None
    wind_shear: ShearStatistics | None = None
    visibility: VisibilityOverallStatistics | None = None


class OverallRisk(_StrictBaseModel):
    """Worst-of-three verdict across the independent hazard scorers."""
    score: int = 0
    level: RiskLevel = RiskLevel.UNKNOWN
    text: str
    flight_restriction: str
    driving_hazards: List[Hazard] = Field(default_factory=list)
    verdicts: List[HazardVerdict] = Field(default_factory=list)
    statistics: RiskStatistics = Field(default_factory=RiskStatistics)
    critical_factors: List[ContributingFactor] = Field(default_factory=list)


# ---------------------------------------------------------------------------
# Safety window
# ---------------------------------------------------------------------------


class WindowStatus(_StrictBaseModel):
    level: WindowStatusLevel
    text: str


class ThermalWindow(_StrictBaseModel):
    start: float
    end: float
    start_time: str
    end_time: str


class SafetyWindow(_StrictBaseModel):
    """Best contiguous takeoff window for the route on the analysed day."""
    daylight_start: float
    daylight_end: float
    daylight_start_time: str
    daylight_end_time: str
    daylight_duration: float
    safe_periods: List[CriticalPeriod] = Field(default_factory=list)
    optimal_start: float | None = None
    optimal_start_time: str | None = None
    adjusted_start: float | None = None
    adjusted_start_time: str | None = None
    thermal_adjusted: bool = False
    thermal_risk: ThermalRisk = ThermalRisk.NONE
    thermal_window: ThermalWindow | None = None
    fits_in_daylight: bool = False
    window_status: WindowStatus
    min_flight_time: float = 0.0
    max_flight_time: float = 0.0
    avg_flight_time: float = 0.0
    total_safe_hours: int = 0
    max_continuous_period: int = 0
    route_length_km: float = 0.0
    cruise_speed_kmh: float
    recommendations: List[str] = Field(default_factory=list)


# ---------------------------------------------------------------------------
# Pipeline payload
# ---------------------------------------------------------------------------


class AnalysisContext(_StrictBaseModel):
    """Metadata describing how/when an analysis was generated."""
    route_length_km: float
    latitude: float | None = None
    longitude: float | None = None
    date: str | None = None
    generated_at: datetime | None = None
    source: str | None = None


class FlightRiskPayload(_StrictBaseModel):
    """Full deterministic payload for one route and day."""
    context: AnalysisContext
    daily: DailySummary
    hours: List[HourRecord] = Field(default_factory=list)
    screening: List[HourScreening] = Field(default_factory=list)
    alerts: List[ForecastAlert] = Field(default_factory=list)
    overall_safety: OverallSafety
    summary: ForecastSummary | None = None
    dangerous_periods: List[DangerousPeriod] = Field(default_factory=list)
    segment_weather: List[SegmentWeather] = Field(default_factory=list)
    icing: IcingAnalysis
    wind: WindAnalysis
    visibility: VisibilityAnalysis
    overall: OverallRisk
    safety_window: SafetyWindow
    recommendations: List[str] = Field(default_factory=list)
