import pytest

from skyrisk.domain import (
    ConditionsCategory,
    HourRecord,
    PeriodSeverity,
    PrimaryRestriction,
    RiskLevel,
    VfrStatus,
    VisibilityCategory,
)
from skyrisk.visibility import (
    analyze_visibility,
    categorize_cloud_cover,
    categorize_visibility,
    classify_vfr,
    estimate_ceiling,
    find_best_visibility_block,
    identify_visibility_periods,
    score_visibility_hour,
)


def make_hour(hour=12, **overrides):
    base = {
        "hour": hour,
        "temperature_c": 15.0,
        "humidity_pct": 50.0,
        "cloud_cover_pct": 10.0,
        "cloud_cover_low_pct": 5.0,
        "freezing_level_m": 2500.0,
        "wind_speed_10m": 3.0,
        "wind_speed_80m": 4.0,
        "wind_speed_120m": 5.0,
        "wind_gusts_ms": 5.0,
        "visibility_km": 20.0,
    }
    base.update(overrides)
    return HourRecord(**base)


def test_visibility_and_cloud_bands():
    assert categorize_visibility(10) == VisibilityCategory.EXCELLENT
    assert categorize_visibility(5) == VisibilityCategory.GOOD
    assert categorize_visibility(3) == VisibilityCategory.MODERATE
    assert categorize_visibility(1) == VisibilityCategory.POOR
    assert categorize_visibility(0.9) == VisibilityCategory.VERY_POOR
    assert categorize_cloud_cover(20).value == "clear"
    assert categorize_cloud_cover(50).value == "scattered"
    assert categorize_cloud_cover(80).value == "broken"
    assert categorize_cloud_cover(81).value == "overcast"


def test_ceiling_estimate_and_clamp():
    assert estimate_ceiling(make_hour()) == 1450
    assert estimate_ceiling(make_hour(temperature_c=10.0, humidity_pct=70.0, cloud_cover_low_pct=60.0)) == 700
    assert estimate_ceiling(make_hour(temperature_c=-10.0, humidity_pct=100.0, cloud_cover_low_pct=90.0)) == 200
    assert estimate_ceiling(make_hour(temperature_c=40.0, humidity_pct=0.0)) == 3000


def test_vfr_classification_uses_either_marginal_band():
    assert classify_vfr(5, 300) == VfrStatus.VFR
    assert classify_vfr(4, 1000) == VfrStatus.MARGINAL_VFR
    assert classify_vfr(10, 250) == VfrStatus.MARGINAL_VFR
    assert classify_vfr(2, 250) == VfrStatus.MARGINAL_VFR
    assert classify_vfr(2, 1000) == VfrStatus.IFR


@pytest.mark.parametrize("visibility", [0.0, 0.5, 2.9, 3.0, 4.99, 5.0, 12.0])
@pytest.mark.parametrize("humidity", [50.0, 90.0, 95.0, 100.0])
def test_never_vfr_below_minimums(visibility, humidity):
    risk = score_visibility_hour(make_hour(temperature_c=0.0, humidity_pct=humidity, visibility_km=visibility))
    if visibility < 5 or risk.ceiling_m < 300:
        assert risk.compliance_status != VfrStatus.VFR
    else:
        assert risk.compliance_status == VfrStatus.VFR


def test_periods_severity_and_primary_restriction():
    records = [make_hour(h) for h in range(24)]
    records[10] = make_hour(10, visibility_km=0.5)
    records[11] = make_hour(11, visibility_km=0.8)
    records[13] = make_hour(13, visibility_km=2.0)
    hourly = [score_visibility_hour(r) for r in records]

    collection = identify_visibility_periods(hourly)
    assert collection.total_count == 2
    severe, moderate = collection.periods
    assert (severe.start, severe.end) == ("10:00", "11:00")
    assert severe.min_visibility_km == 0.5
    assert severe.severity == PeriodSeverity.SEVERE
    assert severe.primary_restriction == PrimaryRestriction.VISIBILITY
    assert moderate.severity == PeriodSeverity.MODERATE
    assert moderate.primary_restriction == PrimaryRestriction.CEILING
    assert "ADDITIONAL RECOMMENDATIONS:" in collection.recommendations


def test_best_block_prefers_earliest_on_ties():
    hourly = [score_visibility_hour(make_hour(h)) for h in range(24)]
    block = find_best_visibility_block(hourly)
    assert (block.start, block.end) == ("00:00", "02:00")
    assert block.avg_visibility_km == 20.0


def test_best_block_needs_three_hours():
    hourly = [score_visibility_hour(make_hour(h)) for h in (1, 2, 5)]
    assert find_best_visibility_block(hourly) is None


def test_clear_day_is_excellent():
    analysis = analyze_visibility([make_hour(h) for h in range(24)])
    assert analysis.overall.score == 100
    assert analysis.overall.category == ConditionsCategory.EXCELLENT
    assert analysis.overall.level == RiskLevel.LOW
    assert analysis.overall.limiting_factor.factor == "none"
    assert analysis.vfr.vfr_compliant_hours == 24
    assert analysis.vfr.vfr_percentage == 100
    assert analysis.visibility_distribution["excellent"] == 24
    assert analysis.recommendations[0] == "VFR flights allowed without restrictions"


def test_fog_day_is_poor_and_limited_by_visibility():
    analysis = analyze_visibility([make_hour(h, visibility_km=0.5) for h in range(24)])
    assert analysis.overall.score == 100 - 40 - 20 - 25 - 20 - 15
    assert analysis.overall.category == ConditionsCategory.POOR
    assert analysis.overall.level == RiskLevel.CRITICAL
    assert analysis.overall.limiting_factor.factor == "visibility"
    assert analysis.overall.limiting_factor.severity == RiskLevel.CRITICAL
    assert analysis.vfr.ifr_hours == 24
    assert analysis.very_poor_visibility_hours == 24
    assert analysis.recommendations[0] == "VFR FLIGHTS STRICTLY PROHIBITED"
    assert "ADDITIONAL MEASURES IN LOW VISIBILITY:" in analysis.recommendations


def test_thick_low_cloud_adds_altitude_block():
    analysis = analyze_visibility([make_hour(h, cloud_cover_low_pct=90.0) for h in range(24)])
    assert "FLIGHT ALTITUDE RECOMMENDATIONS:" in analysis.recommendations
    assert any("Maximum flight altitude: 300 m" in line for line in analysis.recommendations)


def test_scoring_is_repeatable():
    records = [make_hour(h, visibility_km=float(h)) for h in range(24)]
    assert analyze_visibility(records) == analyze_visibility(records)


def test_empty_input_gives_unknown_analysis():
    analysis = analyze_visibility([])
    assert analysis.overall.category == ConditionsCategory.UNKNOWN
    assert analysis.overall.level == RiskLevel.UNKNOWN
    assert analysis.best_visibility_block is None
