import datetime as dt
import json

import pytest

from skyrisk.domain import Hazard, RiskLevel, WindowStatusLevel
from skyrisk.pipeline import analyze_flight, analyze_open_meteo

DAY = {"sunrise": "06:00", "sunset": "20:00"}


def calm_hours():
    return [
        {
            "hour": h,
            "temperature_c": 15,
            "humidity_pct": 50,
            "cloud_cover_pct": 10,
            "cloud_cover_low_pct": 5,
            "freezing_level_m": 2500,
            "wind_speed_10m": 3,
            "wind_speed_80m": 4,
            "wind_speed_120m": 5,
            "wind_dir_10m": 180,
            "wind_dir_80m": 185,
            "wind_dir_120m": 190,
            "wind_gusts_ms": 5,
            "visibility_km": 20,
        }
        for h in range(24)
    ]


def test_calm_day_end_to_end():
    payload = analyze_flight(calm_hours(), DAY, 30.0)

    assert len(payload.hours) == 24
    assert len(payload.screening) == 24
    assert payload.overall.level == RiskLevel.LOW
    assert payload.icing.overall.level == RiskLevel.LOW
    assert payload.wind.overall.level == RiskLevel.LOW
    assert payload.visibility.overall.level == RiskLevel.LOW
    assert payload.safety_window.window_status.level == WindowStatusLevel.OPTIMAL
    assert payload.alerts == []
    assert payload.overall_safety.level == 0
    assert payload.context.route_length_km == 30.0

    headers = [line for line in payload.recommendations if line in ("FLIGHT WINDOW:", "ICING:", "WIND:", "VISIBILITY:")]
    assert headers == ["FLIGHT WINDOW:", "ICING:", "WIND:", "VISIBILITY:"]
    assert payload.recommendations[0].startswith(payload.overall.text)


def test_payload_serializes_to_json():
    payload = analyze_flight(calm_hours(), DAY, 30.0)
    document = json.loads(payload.model_dump_json())
    assert document["overall"]["level"] == "low"
    assert document["safety_window"]["optimal_start_time"] == payload.safety_window.optimal_start_time


def test_identical_input_gives_identical_payload():
    stamp = dt.datetime(2024, 3, 1, 12, 0, tzinfo=dt.timezone.utc)
    first = analyze_flight(calm_hours(), DAY, 30.0, generated_at=stamp)
    second = analyze_flight(calm_hours(), DAY, 30.0, generated_at=stamp)
    assert first == second
    assert first.context.generated_at == stamp


def test_window_config_mapping_uses_camel_case_keys():
    hours = calm_hours()
    for hour in hours:
        hour["wind_gusts_ms"] = 12
    strict = analyze_flight(hours, DAY, 30.0, window_config={"maxWindSpeed": 10})
    relaxed = analyze_flight(hours, DAY, 30.0)

    assert strict.safety_window.total_safe_hours == 0
    assert strict.safety_window.window_status.level == WindowStatusLevel.CRITICAL
    assert relaxed.safety_window.total_safe_hours > 0


def test_invalid_window_config_is_rejected():
    with pytest.raises(ValueError):
        analyze_flight(calm_hours(), DAY, 30.0, window_config={"maxAltitude": 300})


def test_foggy_morning_is_driven_by_visibility():
    hours = calm_hours()
    for hour in hours:
        if hour["hour"] < 10:
            hour["visibility_km"] = 0.5
    payload = analyze_flight(hours, DAY, 30.0)

    assert Hazard.VISIBILITY in payload.overall.driving_hazards
    assert payload.visibility.critical_periods.total_count == 1
    assert all(p.start_hour >= 10 for p in payload.safety_window.safe_periods)


def test_no_hours_gives_unknown_payload():
    payload = analyze_flight([], DAY, 30.0)
    assert payload.overall.level == RiskLevel.UNKNOWN
    assert payload.overall.text == "No data to assess flight risk"
    assert payload.safety_window.window_status.level == WindowStatusLevel.CRITICAL
    assert payload.hours == []


def test_open_meteo_document_sets_context():
    document = {
        "latitude": 59.94,
        "longitude": 30.31,
        "hourly_units": {"wind_speed_10m": "km/h", "visibility": "m"},
        "hourly": {
            "time": [f"2024-06-21T{h:02d}:00" for h in range(24)],
            "temperature_2m": [18.0] * 24,
            "relative_humidity_2m": [55] * 24,
            "wind_speed_10m": [10.8] * 24,
            "wind_gusts_10m": [18.0] * 24,
            "visibility": [30000.0] * 24,
            "freezing_level_height": [3200.0] * 24,
        },
        "daily": {"sunrise": ["2024-06-21T03:35"], "sunset": ["2024-06-21T22:26"]},
    }
    payload = analyze_open_meteo(document, 25.0)

    assert payload.context.source == "open-meteo"
    assert payload.context.date == "2024-06-21"
    assert payload.context.latitude == 59.94
    assert payload.context.longitude == 30.31
    assert payload.daily.sunrise == "03:35"
    assert payload.hours[0].wind_speed_10m == 3.0
    assert payload.hours[0].visibility_km == 30.0


def test_payload_carries_summary_and_day_segments():
    hours = calm_hours()
    for hour in hours[14:17]:
        hour["wind_gusts_ms"] = 13
    payload = analyze_flight(hours, DAY, 30.0)

    assert payload.summary.daylight_duration_text == "14h 0m"
    assert payload.summary.dangerous_hours == ["14:00", "15:00", "16:00"]
    assert [(p.start, p.end, p.reasons) for p in payload.dangerous_periods] == [
        ("14:00", "16:00", ["strong wind gusts"]),
    ]
    assert [s.name for s in payload.segment_weather] == ["night", "morning", "day", "evening"]
    assert payload.segment_weather[2].danger_hours == 3


def test_unreadable_sunrise_does_not_abort_assessment():
    payload = analyze_flight(calm_hours(), {"sunrise": "dawn", "sunset": "20:00"}, 30.0)
    assert payload.daily.sunrise == "00:00"
    assert payload.summary.daylight_duration_text == "20h 0m"


def test_no_hours_gives_no_summary():
    payload = analyze_flight([], DAY, 30.0)
    assert payload.summary is None
    assert payload.dangerous_periods == []
    assert all(s.hour_count == 0 for s in payload.segment_weather)
