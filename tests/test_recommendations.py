from skyrisk.domain import (
    AltitudeRecommendation,
    DaySegment,
    IcingOverallRisk,
    IcingPeriod,
    IcingPeriodCollection,
    IcingType,
    PeriodSeverity,
    PrimaryRestriction,
    RiskLevel,
    SafetyWindow,
    ShearPeriod,
    ShearPeriodCollection,
    ThermalRisk,
    ThermalWindow,
    VisibilityPeriod,
    WindowStatus,
    WindowStatusLevel,
)
from skyrisk.recommendations import (
    icing_period_recommendations,
    icing_recommendations,
    safest_day_segment,
    safety_window_recommendations,
    visibility_period_recommendations,
    wind_flight_restrictions,
    wind_period_recommendations,
    wind_summary_recommendations,
)


def _bounds(start, end):
    return {
        "start_hour": start,
        "end_hour": end,
        "start": f"{start:02d}:00",
        "end": f"{end:02d}:00",
        "duration": end - start + 1,
        "hours": list(range(start, end + 1)),
    }


def icing_period(start, end, max_level, max_index, avg_index):
    return IcingPeriod(
        **_bounds(start, end),
        max_index=max_index,
        avg_index=avg_index,
        max_level=max_level,
        predominant_icing_type=IcingType.CLEAR_ICE,
        predominant_icing_text="Clear ice",
        conditions_summary="Average temperature 1°C, humidity 95%, precipitation 3 mm",
    )


def segment(name, tier, avg_index):
    return DaySegment(
        name=name,
        label=name.title(),
        start_hour=0,
        end_hour=5,
        hour_count=6 if tier is not None else 0,
        avg_index=avg_index,
        tier=tier,
    )


def window(**overrides):
    base = {
        "daylight_start": 6.75,
        "daylight_end": 19.25,
        "daylight_start_time": "06:45",
        "daylight_end_time": "19:15",
        "daylight_duration": 12.5,
        "optimal_start": 9.0,
        "optimal_start_time": "09:00",
        "adjusted_start": 9.0,
        "adjusted_start_time": "09:00",
        "window_status": WindowStatus(level=WindowStatusLevel.OPTIMAL, text="SAFETY WINDOW IS OPTIMAL"),
        "fits_in_daylight": True,
        "min_flight_time": 24.0,
        "max_flight_time": 30.0,
        "avg_flight_time": 27.0,
        "max_continuous_period": 6,
        "cruise_speed_kmh": 69.0,
    }
    base.update(overrides)
    return SafetyWindow(**base)


def test_icing_period_advice_for_prohibited_and_moderate_periods():
    periods = [icing_period(9, 12, 3, 80.0, 72.0), icing_period(15, 16, 2, 55.0, 52.0)]
    lines = icing_period_recommendations(periods)

    assert lines[0] == "Significant periods of moderate and high icing risk"
    assert "HIGH ICING RISK 09:00-12:00: flights prohibited" in lines
    assert "Moderate icing risk 15:00-16:00 (52 points)" in lines
    assert lines[-2:] == [
        "Peak icing risk exceeds 75 points",
        "Forced de-icing of the aircraft is required after every flight",
    ]
    assert icing_period_recommendations([]) == []


def test_icing_advice_blocks_in_order():
    overall = IcingOverallRisk(level=RiskLevel.HIGH, text="High icing risk", flight_restriction="x")
    periods = IcingPeriodCollection(periods=[icing_period(9, 10, 3, 80.0, 75.0)], total_count=1)
    lines = icing_recommendations(
        overall, periods, [segment("evening", 1, 25.0)], min_freezing_level_m=450.0,
    )

    assert lines[:3] == [
        "Flights allowed ONLY for aircraft fitted with an anti-icing system",
        "Maximum flight duration: 30 minutes",
        "Mandatory ground de-icing after every flight",
    ]
    headers = [line for line in lines if line.endswith(":")]
    assert headers == [
        "CRITICAL PERIODS FOR FLIGHTS:",
        "ALTITUDE RECOMMENDATIONS:",
        "SAFEST TIME OF DAY FOR FLIGHTS:",
    ]
    assert "• 09:00-10:00: FLIGHTS PROHIBITED (Clear ice)" in lines
    assert any("Maximum flight altitude: 250 m" in line for line in lines)


def test_unknown_icing_level_has_no_tier_block():
    overall = IcingOverallRisk(text="No data", flight_restriction="x")
    assert icing_recommendations(overall, IcingPeriodCollection(), [], min_freezing_level_m=2000.0) == []


def test_safest_segment_prefers_lower_tier_then_lower_average():
    segments = [
        segment("night", None, None),
        segment("morning", 1, 31.0),
        segment("day", 0, 12.0),
        segment("evening", 0, 8.0),
    ]
    assert safest_day_segment(segments).name == "evening"
    assert safest_day_segment([segment("night", None, None)]) is None


def test_wind_period_advice_and_gusts():
    periods = [
        ShearPeriod(**_bounds(3, 4), max_level=3, avg_dir_diff=45, avg_speed_diff=7.0),
        ShearPeriod(**_bounds(8, 8), max_level=2, avg_dir_diff=32, avg_speed_diff=1.0),
        ShearPeriod(**_bounds(11, 11), max_level=2, avg_dir_diff=10, avg_speed_diff=4.5),
    ]
    lines = wind_period_recommendations(periods, max_gusts_ms=16.2)

    assert lines == [
        "Significant periods of hazardous wind shear",
        "Plan flights outside the critical periods",
        "CRITICAL WIND SHEAR 03:00-04:00: flights prohibited at all altitudes",
        "Strong direction shear (32°) 08:00-08:00: limit altitude to 80 m",
        "Strong speed shear (4.5 m/s) 11:00-11:00: avoid 120 m",
        "Peak gusts up to 16.2 m/s add further risk",
        "Take extra care during take-off and landing",
    ]


def test_wind_restrictions_by_tier():
    assert len(wind_flight_restrictions(RiskLevel.CRITICAL)) == 1
    assert wind_flight_restrictions(RiskLevel.HIGH)[1] == "Maximum flight altitude: 80 m"
    assert len(wind_flight_restrictions(RiskLevel.MODERATE)) == 2
    assert wind_flight_restrictions(RiskLevel.LOW) == []


def test_wind_summary_lists_periods_to_avoid():
    periods = ShearPeriodCollection(
        periods=[ShearPeriod(**_bounds(3, 4), max_level=2, avg_dir_diff=30, avg_speed_diff=3.0)],
        total_count=1,
    )
    altitude = AltitudeRecommendation(
        recommendation="Recommended flight altitude: 80 m",
        additional_recommendations=["Flights at 10-80 m are safe"],
    )
    assert wind_summary_recommendations(periods, altitude) == [
        "Recommended flight altitude: 80 m",
        "Avoid flying at 120 m during: 03:00-04:00",
        "Flights at 10-80 m are safe",
    ]


def test_visibility_period_advice():
    periods = [
        VisibilityPeriod(
            **_bounds(5, 7), min_visibility_km=0.4, max_cloud_cover_low_pct=95, min_ceiling_m=200,
            primary_restriction=PrimaryRestriction.VISIBILITY, severity=PeriodSeverity.SEVERE,
        ),
    ]
    lines = visibility_period_recommendations(periods)
    assert lines[0].startswith("CRITICAL CONDITIONS 05:00-07:00: visibility 0.4 km")
    assert lines[1] == "ADDITIONAL RECOMMENDATIONS:"
    assert len(lines) == 5


def test_window_advice_for_thermal_adjustment_and_tight_buffer():
    lines = safety_window_recommendations(window(
        thermal_risk=ThermalRisk.THERMAL_TURBULENCE,
        thermal_adjusted=True,
        adjusted_start_time="07:30",
        thermal_window=ThermalWindow(start=8.0, end=11.0, start_time="08:00", end_time="11:00"),
        max_continuous_period=1,
    ))
    assert lines == [
        "Avoid flying during thermal activity: 08:00-11:00",
        "Recommended start time: 07:30",
        "Optimal start time: 09:00",
        "Expected flight duration: 24-30 minutes",
        "Minimal time reserve: fly strictly to schedule",
    ]


def test_window_advice_short_circuits_when_critical():
    lines = safety_window_recommendations(window(
        window_status=WindowStatus(level=WindowStatusLevel.CRITICAL, text="No safe periods for flight"),
    ))
    assert lines == ["FLIGHT PROHIBITED: No safe periods for flight", "Postpone the flight to another day"]
