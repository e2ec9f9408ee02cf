import pytest

from skyrisk.domain import HourRecord, IcingHourRisk, IcingType, RiskLevel
from skyrisk.icing import (
    analyze_day_segments,
    analyze_icing,
    classify_icing_type,
    icing_level,
    identify_icing_periods,
    score_icing_hour,
)


def make_hour(hour=12, **overrides):
    base = {
        "hour": hour,
        "temperature_c": 15.0,
        "dewpoint_c": 5.0,
        "humidity_pct": 50.0,
        "precipitation_mm_per_h": 0.0,
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
        "cape_j_per_kg": 0.0,
    }
    base.update(overrides)
    return HourRecord(**base)


def risk_hour(hour, index, level, icing_type=IcingType.NONE, temperature_c=1.0):
    return IcingHourRisk(
        hour=hour,
        time=f"{hour:02d}:00",
        temperature_c=temperature_c,
        dewpoint_c=0.0,
        humidity_pct=95.0,
        precipitation_mm_per_h=1.0,
        cloud_cover_low_pct=80.0,
        freezing_level_m=300.0,
        index=index,
        level=level,
        level_text="",
        icing_type=icing_type,
    )


def test_near_freezing_saturated_hour_scores_low_level():
    risk = score_icing_hour(make_hour(
        temperature_c=0.0,
        humidity_pct=90.0,
        precipitation_mm_per_h=1.0,
        cloud_cover_low_pct=70.0,
        freezing_level_m=300.0,
    ))
    assert risk.index == pytest.approx(32.7)
    assert risk.level == 1
    assert risk.icing_type == IcingType.NONE
    contributions = {f.factor: f.contribution for f in risk.contributing_factors}
    assert contributions["temperature"] == pytest.approx(16.0)
    assert contributions["humidity"] == pytest.approx(3.125)
    assert contributions["precipitation"] == pytest.approx(2.0)
    assert contributions["cloud_cover"] == pytest.approx(1.575)
    assert contributions["freezing_level"] == 10


def test_warm_dry_hour_has_no_icing_risk():
    risk = score_icing_hour(make_hour())
    assert risk.index == 0
    assert risk.level == 0
    assert risk.contributing_factors == []
    assert risk.conditions == "conditions do not favour icing"


@pytest.mark.parametrize("sign", [1, -1])
def test_index_does_not_rise_as_temperature_moves_away_from_zero(sign):
    indexes = [
        score_icing_hour(make_hour(
            temperature_c=sign * t,
            humidity_pct=95.0,
            precipitation_mm_per_h=1.0,
            cloud_cover_low_pct=80.0,
            freezing_level_m=300.0,
        )).index
        for t in range(0, 11)
    ]
    assert all(a >= b for a, b in zip(indexes, indexes[1:]))


def test_level_thresholds():
    assert icing_level(19.9) == 0
    assert icing_level(20) == 1
    assert icing_level(40) == 2
    assert icing_level(70) == 3


def test_icing_type_rules_apply_in_order():
    # 2°C with precipitation and thick low cloud matches clear ice before rime
    clear = make_hour(temperature_c=2.0, precipitation_mm_per_h=1.0, cloud_cover_low_pct=90.0)
    assert classify_icing_type(clear, 2) == IcingType.CLEAR_ICE

    # below zero with thick low cloud and precipitation at level 3 is rime, not mixed
    rime = make_hour(temperature_c=-2.0, precipitation_mm_per_h=1.0, cloud_cover_low_pct=90.0)
    assert classify_icing_type(rime, 3) == IcingType.RIME_ICE

    mixed = make_hour(temperature_c=-2.0, precipitation_mm_per_h=1.0, cloud_cover_low_pct=30.0)
    assert classify_icing_type(mixed, 3) == IcingType.MIXED_ICE
    assert classify_icing_type(mixed, 2) == IcingType.NONE


def test_periods_sorted_by_peak_index_with_predominant_type():
    hourly = [
        risk_hour(3, 45.0, 2, IcingType.RIME_ICE),
        risk_hour(4, 50.0, 2, IcingType.RIME_ICE),
        risk_hour(5, 10.0, 0),
        risk_hour(9, 80.0, 3, IcingType.CLEAR_ICE),
        risk_hour(10, 72.0, 3, IcingType.MIXED_ICE),
    ]
    collection = identify_icing_periods(hourly)

    assert collection.total_count == 2
    assert collection.total_duration == 4
    assert collection.max_index == 80.0
    first, second = collection.periods
    assert (first.start, first.end) == ("09:00", "10:00")
    assert first.max_level == 3
    # clear and mixed tie on count; clear comes first in rule order
    assert first.predominant_icing_type == IcingType.CLEAR_ICE
    assert second.predominant_icing_type == IcingType.RIME_ICE
    assert "Peak icing risk exceeds 75 points" in collection.recommendations


def test_no_periods_gives_safe_limits_message():
    collection = identify_icing_periods([risk_hour(1, 5.0, 0)])
    assert collection.periods == []
    assert collection.recommendations == ["Icing risk stays within safe limits throughout the day"]


def test_day_segments_leave_empty_segments_untiered():
    hourly = [risk_hour(h, 35.0, 1) for h in range(6, 12)]
    segments = {s.name: s for s in analyze_day_segments(hourly)}

    assert segments["night"].tier is None
    assert segments["night"].hour_count == 0
    assert segments["morning"].hour_count == 6
    assert segments["morning"].avg_index == 35.0
    assert segments["morning"].tier == 1


def test_full_day_analysis_low_risk():
    records = [make_hour(h) for h in range(24)]
    analysis = analyze_icing(records)

    assert analysis.analyzed_hours == 24
    assert analysis.overall.level == RiskLevel.LOW
    assert analysis.overall.score == 0
    assert analysis.summary.safe_flight_hours == 24
    assert analysis.recommendations[0] == "Flights allowed without restrictions"
    assert "SAFEST TIME OF DAY FOR FLIGHTS:" in analysis.recommendations


def test_low_freezing_level_caps_altitude():
    records = [make_hour(h, freezing_level_m=600.0) for h in range(24)]
    recs = analyze_icing(records).recommendations
    assert "ALTITUDE RECOMMENDATIONS:" in recs
    assert any("Maximum flight altitude: 400 m" in line for line in recs)


def test_empty_input_gives_unknown_analysis():
    analysis = analyze_icing([])
    assert analysis.analyzed_hours == 0
    assert analysis.overall.level == RiskLevel.UNKNOWN
    assert analysis.critical_periods.recommendations == ["No data for icing risk analysis"]
    assert analysis.recommendations
