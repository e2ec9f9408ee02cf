import pytest

from skyrisk.domain import HourRecord, RiskLevel, ShearPeriodCollection, ShearStatistics
from skyrisk.wind import (
    analyze_wind,
    calculate_altitude_stats,
    recommend_altitude,
    score_shear_hour,
    shear_level,
    stability_index,
    wind_risk_score,
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
        "wind_dir_10m": 180.0,
        "wind_dir_80m": 185.0,
        "wind_dir_120m": 190.0,
        "wind_gusts_ms": 5.0,
        "visibility_km": 20.0,
    }
    base.update(overrides)
    return HourRecord(**base)


def sheared_hour(hour=12, **overrides):
    values = {
        "wind_speed_10m": 5.0,
        "wind_speed_80m": 8.0,
        "wind_speed_120m": 12.0,
        "wind_dir_10m": 200.0,
        "wind_dir_80m": 220.0,
        "wind_dir_120m": 245.0,
    }
    values.update(overrides)
    return make_hour(hour, **values)


def test_strong_surface_to_120m_shear_is_critical():
    risk = score_shear_hour(sheared_hour())
    assert risk.dir_diff_10_120 == 45
    assert risk.speed_diff_10_120 == pytest.approx(7.0)
    assert risk.max_dir_diff == pytest.approx(45.0)
    assert risk.max_speed_diff == pytest.approx(7.0)
    assert risk.level == 3
    assert risk.level_text == "Critical"
    assert {f.factor for f in risk.contributing_factors} == {"direction_shear", "speed_shear"}


def test_small_differences_on_every_pair_mean_no_shear():
    risk = score_shear_hour(make_hour())
    assert risk.level == 0
    assert risk.contributing_factors == []


@pytest.mark.parametrize(
    "overrides",
    [
        {"wind_speed_80m": 6.5},  # 10-80 speed diff 3.5
        {"wind_dir_120m": 200.0},  # 10-120 direction diff 20
        {"wind_dir_80m": 170.0},  # 80-120 direction diff 20
    ],
)
def test_any_single_pair_over_threshold_raises_level(overrides):
    assert score_shear_hour(make_hour(**overrides)).level >= 1


def test_shear_level_thresholds():
    assert shear_level(15, 2) == 0
    assert shear_level(16, 0) == 1
    assert shear_level(0, 4.5) == 2
    assert shear_level(41, 0) == 3


def test_direction_difference_is_not_wrapped():
    # 350° and 10° are 20° apart on the compass but compared as plain numbers
    risk = score_shear_hour(make_hour(wind_dir_10m=350.0, wind_dir_80m=355.0, wind_dir_120m=10.0))
    assert risk.dir_diff_10_120 == 340
    assert risk.level == 3


def test_stability_index_bounds():
    assert stability_index([5, 5, 5], [180, 180, 180]) == pytest.approx(1.0)
    gusty = stability_index([0] * 7 + [40], [90] * 8)
    assert gusty < 0.5
    assert stability_index([0, 0], [0, 0]) == pytest.approx(1.0)


def test_altitude_stats():
    records = [make_hour(h, wind_speed_80m=s, wind_dir_80m=d) for h, (s, d) in enumerate([(2, 80), (4, 100)])]
    stats = calculate_altitude_stats(records, 80)
    assert stats.avg_speed == 3.0
    assert stats.max_speed == 4.0
    assert stats.min_speed == 2.0
    assert stats.avg_direction == 90
    assert stats.predominant_direction == "E"
    assert stats.speed_std_dev == 1.0


def test_steady_profile_recommends_lowest_altitude_on_ties():
    records = [make_hour(h) for h in range(6)]
    rec = recommend_altitude(records)
    assert rec.optimal_altitude_m == 10
    assert rec.restricted is False
    assert rec.recommendation == "Recommended flight altitude: 10 m"
    assert "Flights at 10-80 m are safe" in rec.additional_recommendations


def test_strong_wind_at_chosen_altitude_restricts_recommendation():
    records = [make_hour(h, wind_speed_10m=16.0, wind_speed_80m=18.0, wind_speed_120m=19.0) for h in range(4)]
    rec = recommend_altitude(records)
    assert rec.optimal_altitude_m == 10
    assert rec.restricted is True
    assert rec.restrictions == ["Avoid 10 m during 00:00-03:00 due to strong wind"]


def test_wind_risk_score_adds_every_bucket():
    stats = ShearStatistics(max_dir_diff=45, max_speed_diff=7, critical_risk_hours=4, high_risk_hours=7)
    periods = ShearPeriodCollection(total_count=1, total_duration=4, max_duration=4)
    assert wind_risk_score(stats, periods) == 30 + 30 + 25 + 20 + 15
    assert wind_risk_score(ShearStatistics(), ShearPeriodCollection()) == 0


def test_full_day_of_critical_shear():
    analysis = analyze_wind([sheared_hour(h) for h in range(24)])

    assert analysis.analyzed_hours == 24
    assert analysis.statistics.critical_risk_hours == 24
    assert analysis.statistics.risk_distribution == {0: 0, 1: 0, 2: 0, 3: 24}
    assert analysis.critical_periods.total_count == 1
    assert analysis.critical_periods.periods[0].duration == 24
    assert analysis.overall.score == 120
    assert analysis.overall.level == RiskLevel.CRITICAL
    assert analysis.summary.flight_restrictions[0].startswith("FLIGHTS PROHIBITED")
    assert analysis.critical_periods.recommendations[0] == "Wind shear is a serious threat for most of the day"
    assert [s.altitude_m for s in analysis.altitude_stats] == [10, 80, 120]


def test_calm_day_is_low_risk():
    analysis = analyze_wind([make_hour(h) for h in range(24)])
    assert analysis.overall.level == RiskLevel.LOW
    assert analysis.summary.flight_restrictions == []
    assert analysis.critical_periods.recommendations == ["Wind shear stays within safe limits throughout the day"]


def test_empty_input_gives_unknown_analysis():
    analysis = analyze_wind([])
    assert analysis.overall.level == RiskLevel.UNKNOWN
    assert analysis.altitude_recommendation.optimal_altitude_m == 80
    assert len(analysis.altitude_stats) == 3
