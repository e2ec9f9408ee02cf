"""End-to-end flight risk assessment for one day of hourly forecasts."""

from __future__ import annotations

from datetime import datetime
from typing import Any, Iterable, Mapping

from skyrisk.aggregate import aggregate_risk
from skyrisk.config import default_window_config, settings
from skyrisk.domain import (
    AnalysisContext,
    DailySummary,
    FlightRiskPayload,
    SafetyWindowConfig,
)
from skyrisk.hour_status import (
    build_alerts,
    dangerous_periods,
    forecast_summary,
    overall_safety,
    screen_hours,
    segment_weather,
)
from skyrisk.icing import analyze_icing
from skyrisk.normalizer import normalize_daily, normalize_hours, normalize_open_meteo
from skyrisk.recommendations import combined_recommendations
from skyrisk.safety_window import calculate_safety_window
from skyrisk.visibility import analyze_visibility
from skyrisk.wind import analyze_wind
from utils.logging_utils import get_tagged_logger
logger = get_tagged_logger(__name__, tag="pipeline")


def analyze_flight(
    hours: Iterable[Any] | None,
    daily: DailySummary | Mapping[str, Any] | None,
    route_length_km: float,
    *,
    window_config: SafetyWindowConfig | Mapping[str, Any] | None = None,
    generated_at: datetime | None = None,
    source: str | None = None,
    latitude: float | None = None,
    longitude: float | None = None,
    date: str | None = None,
) -> FlightRiskPayload:
    """Normalize the input, run every scorer and assemble the payload.

    ``generated_at`` is passed through untouched so that identical input
    always yields an identical payload.
    """
    records = normalize_hours(hours)
    day = daily if isinstance(daily, DailySummary) else normalize_daily(daily)
    if window_config is None:
        config = default_window_config()
    elif isinstance(window_config, SafetyWindowConfig):
        config = window_config
    else:
        config = SafetyWindowConfig.model_validate(window_config)

    screenings = screen_hours(records)
    icing = analyze_icing(records)
    wind = analyze_wind(records)
    visibility = analyze_visibility(records)
    overall = aggregate_risk(icing, wind, visibility)
    window = calculate_safety_window(
        records,
        day,
        route_length_km,
        config,
        cruise_speed_kmh=settings.cruise_speed_kmh,
        screenings=screenings,
    )

    payload = FlightRiskPayload(
        context=AnalysisContext(
            route_length_km=route_length_km,
            latitude=latitude,
            longitude=longitude,
            date=date,
            generated_at=generated_at,
            source=source,
        ),
        daily=day,
        hours=records,
        screening=screenings,
        alerts=build_alerts(records, screenings),
        overall_safety=overall_safety(screenings),
        summary=forecast_summary(records, screenings, day),
        dangerous_periods=dangerous_periods(records, screenings),
        segment_weather=segment_weather(records, screenings),
        icing=icing,
        wind=wind,
        visibility=visibility,
        overall=overall,
        safety_window=window,
        recommendations=combined_recommendations(overall, icing, wind, visibility, window),
    )
    logger.info(
        "Flight risk assessed",
        extra={
            "hours": len(records),
            "route_km": route_length_km,
            "level": overall.level.value,
            "window": window.window_status.level.value,
        },
    )
    return payload


def analyze_open_meteo(payload: Mapping[str, Any], route_length_km: float, **kwargs) -> FlightRiskPayload:
    """Assess an already-fetched Open-Meteo forecast document."""
    records, daily = normalize_open_meteo(payload)
    kwargs.setdefault("source", "open-meteo")
    kwargs.setdefault("latitude", payload.get("latitude"))
    kwargs.setdefault("longitude", payload.get("longitude"))
    times = (payload.get("hourly") or {}).get("time") or []
    if times and isinstance(times[0], str):
        kwargs.setdefault("date", times[0].split("T")[0])
    return analyze_flight(records, daily, route_length_km, **kwargs)
