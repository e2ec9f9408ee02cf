"""Normalize raw forecast hours into immutable HourRecord instances.

Two entry shapes are supported: HourRecord-shaped mappings/objects (snake_case
or camelCase keys), and an already-fetched Open-Meteo forecast document with
parallel `hourly` arrays. Missing or unparseable numbers become 0 so the
scorers never see None; only a structurally broken document raises.
"""

from __future__ import annotations

import datetime as dt
import math
from typing import Any, Dict, Iterable, List, Mapping, Optional, Tuple

from skyrisk.domain import DailySummary, HourRecord
from skyrisk.numeric import clock_label, format_clock, round_half_up
from utils.logging_utils import get_tagged_logger
logger = get_tagged_logger(__name__, tag="normalizer")


class ForecastValidationError(ValueError):
    """Raised when a forecast document is missing the structure needed to read it."""


# Accepted input keys per HourRecord field: snake_case, camelCase, then the
# short names used by older hourly tables.
HOUR_FIELD_KEYS: Dict[str, Tuple[str, ...]] = {
    "temperature_c": ("temperature_c", "temperatureC", "temperature"),
    "dewpoint_c": ("dewpoint_c", "dewpointC", "dewpoint"),
    "humidity_pct": ("humidity_pct", "humidityPct", "humidity"),
    "precipitation_mm_per_h": ("precipitation_mm_per_h", "precipitationMmPerH", "precipitation"),
    "cloud_cover_pct": ("cloud_cover_pct", "cloudCoverPct", "cloudcover"),
    "cloud_cover_low_pct": ("cloud_cover_low_pct", "cloudCoverLowPct", "cloudcoverLow"),
    "freezing_level_m": ("freezing_level_m", "freezingLevelM", "freezingLevel"),
    "wind_speed_10m": ("wind_speed_10m", "windSpeed10m"),
    "wind_speed_80m": ("wind_speed_80m", "windSpeed80m"),
    "wind_speed_120m": ("wind_speed_120m", "windSpeed120m"),
    "wind_dir_10m": ("wind_dir_10m", "windDir10m"),
    "wind_dir_80m": ("wind_dir_80m", "windDir80m"),
    "wind_dir_120m": ("wind_dir_120m", "windDir120m"),
    "wind_gusts_ms": ("wind_gusts_ms", "windGustsMs", "windGusts"),
    "visibility_km": ("visibility_km", "visibilityKm", "visibility"),
    "cape_j_per_kg": ("cape_j_per_kg", "capeJPerKg", "cape"),
}

PERCENT_FIELDS = {"humidity_pct", "cloud_cover_pct", "cloud_cover_low_pct"}
DIRECTION_FIELDS = {"wind_dir_10m", "wind_dir_80m", "wind_dir_120m"}
SIGNED_FIELDS = {"temperature_c", "dewpoint_c"}

# Open-Meteo hourly variable names (current spelling first, legacy second).
OPEN_METEO_HOURLY_KEYS: Dict[str, Tuple[str, ...]] = {
    "temperature_c": ("temperature_2m",),
    "dewpoint_c": ("dew_point_2m", "dewpoint_2m"),
    "humidity_pct": ("relative_humidity_2m", "relativehumidity_2m"),
    "precipitation_mm_per_h": ("precipitation",),
    "cloud_cover_pct": ("cloud_cover", "cloudcover"),
    "cloud_cover_low_pct": ("cloud_cover_low", "cloudcover_low"),
    "freezing_level_m": ("freezing_level_height", "freezinglevel_height"),
    "wind_speed_10m": ("wind_speed_10m", "windspeed_10m"),
    "wind_speed_80m": ("wind_speed_80m", "windspeed_80m"),
    "wind_speed_120m": ("wind_speed_120m", "windspeed_120m"),
    "wind_dir_10m": ("wind_direction_10m", "winddirection_10m"),
    "wind_dir_80m": ("wind_direction_80m", "winddirection_80m"),
    "wind_dir_120m": ("wind_direction_120m", "winddirection_120m"),
    "wind_gusts_ms": ("wind_gusts_10m", "windgusts_10m"),
    "visibility_km": ("visibility",),
    "cape_j_per_kg": ("cape",),
}

# Decimal places kept per field after unit conversion.
FIELD_PRECISION: Dict[str, int] = {
    "temperature_c": 1,
    "dewpoint_c": 1,
    "humidity_pct": 0,
    "precipitation_mm_per_h": 1,
    "cloud_cover_pct": 0,
    "cloud_cover_low_pct": 0,
    "freezing_level_m": 0,
    "wind_speed_10m": 1,
    "wind_speed_80m": 1,
    "wind_speed_120m": 1,
    "wind_dir_10m": 0,
    "wind_dir_80m": 0,
    "wind_dir_120m": 0,
    "wind_gusts_ms": 1,
    "visibility_km": 1,
    "cape_j_per_kg": 0,
}

# First entry of each table is the Open-Meteo default, used when no unit is reported.
_TEMPERATURE_UNITS = {"°C": lambda v: v, "°F": lambda v: (v - 32) * 5 / 9}
_SPEED_UNITS = {
    "km/h": lambda v: v / 3.6,
    "m/s": lambda v: v,
    "mph": lambda v: v * 0.44704,
    "kn": lambda v: v * 0.514444,
}
_DISTANCE_TO_KM = {"m": lambda v: v / 1000, "km": lambda v: v, "ft": lambda v: v * 0.0003048}
_HEIGHT_TO_M = {"m": lambda v: v, "ft": lambda v: v * 0.3048}
_PRECIP_UNITS = {"mm": lambda v: v, "inch": lambda v: v * 25.4}
_PERCENT_UNITS = {"%": lambda v: v}
_DEGREE_UNITS = {"°": lambda v: v}
_CAPE_UNITS = {"J/kg": lambda v: v}

UNIT_CONVERTERS: Dict[str, Dict[str, Any]] = {
    "temperature_c": _TEMPERATURE_UNITS,
    "dewpoint_c": _TEMPERATURE_UNITS,
    "humidity_pct": _PERCENT_UNITS,
    "precipitation_mm_per_h": _PRECIP_UNITS,
    "cloud_cover_pct": _PERCENT_UNITS,
    "cloud_cover_low_pct": _PERCENT_UNITS,
    "freezing_level_m": _HEIGHT_TO_M,
    "wind_speed_10m": _SPEED_UNITS,
    "wind_speed_80m": _SPEED_UNITS,
    "wind_speed_120m": _SPEED_UNITS,
    "wind_dir_10m": _DEGREE_UNITS,
    "wind_dir_80m": _DEGREE_UNITS,
    "wind_dir_120m": _DEGREE_UNITS,
    "wind_gusts_ms": _SPEED_UNITS,
    "visibility_km": _DISTANCE_TO_KM,
    "cape_j_per_kg": _CAPE_UNITS,
}

# Alternative spellings that map onto a known unit without a warning.
UNIT_SYNONYMS: Dict[str, str] = {
    "ms": "m/s",
    "m s-1": "m/s",
    "kmh": "km/h",
    "knots": "kn",
    "kt": "kn",
    "percent": "%",
    "deg": "°",
    "degrees": "°",
    "in": "inch",
    "j/kg": "J/kg",
    "J kg-1": "J/kg",
}


def _get_field(raw: Any, key: str, default=None):
    """Support attribute, dict, or Mapping access for raw hour snapshots."""
    if raw is None:
        return default
    if isinstance(raw, Mapping):
        return raw.get(key, default)
    return getattr(raw, key, default)


def _first_present(raw: Any, keys: Iterable[str]):
    """Return the first non-None value found under any of `keys`."""
    for key in keys:
        value = _get_field(raw, key)
        if value is not None:
            return value
    return None


def _coerce_number(value: Any, *, field: str, default: float = 0.0) -> float:
    """Convert a raw value to float, falling back to `default` for missing or bad input."""
    if value is None:
        return default
    try:
        number = float(value)
    except (TypeError, ValueError):
        logger.debug("Unparseable forecast value; using default", extra={"field": field, "value": value})
        return default
    if math.isnan(number) or math.isinf(number):
        logger.debug("Non-finite forecast value; using default", extra={"field": field, "value": value})
        return default
    return number


def _fit_range(field: str, value: float) -> float:
    """Bring a value into the physical range HourRecord accepts, logging any change."""
    if field in DIRECTION_FIELDS:
        # tiny negatives wrap to exactly 360.0
        direction = value % 360.0
        return 0.0 if direction >= 360.0 else direction
    if field in SIGNED_FIELDS:
        return value
    fitted = max(0.0, value)
    if field in PERCENT_FIELDS:
        fitted = min(100.0, fitted)
    if fitted != value:
        logger.warning("Forecast value out of range; clamped", extra={"field": field, "value": value, "clamped": fitted})
    return fitted


def _coerce_hour(value: Any, *, index: Optional[int]) -> int:
    """Read an hour-of-day, deriving it from the position when absent."""
    if value is None:
        return (index or 0) % 24
    hour = int(_coerce_number(value, field="hour"))
    if not 0 <= hour <= 23:
        logger.warning("Hour outside 0-23; wrapped", extra={"hour": hour})
        hour %= 24
    return hour


def normalize_hour(raw: Any, *, index: Optional[int] = None) -> HourRecord:
    """Build an HourRecord from an HourRecord-shaped mapping or object."""
    if isinstance(raw, HourRecord):
        return raw

    values: Dict[str, Any] = {}
    for field, keys in HOUR_FIELD_KEYS.items():
        number = _coerce_number(_first_present(raw, keys), field=field)
        values[field] = _fit_range(field, number)

    minute = int(_coerce_number(_get_field(raw, "minute"), field="minute"))
    values["hour"] = _coerce_hour(_get_field(raw, "hour"), index=index)
    values["minute"] = min(max(minute, 0), 59)
    return HourRecord(**values)


def normalize_hours(raw_hours: Optional[Iterable[Any]]) -> List[HourRecord]:
    """Normalize a sequence of raw hours, preserving order and skipping None entries."""
    if raw_hours is None:
        return []
    return [normalize_hour(raw, index=i) for i, raw in enumerate(raw_hours) if raw is not None]


def _clock_from(value: Any) -> str:
    """Extract "HH:MM" from a clock string, an ISO datetime, or the first item of a list."""
    if isinstance(value, (list, tuple)):
        value = value[0] if value else None
    if value is None or value == "":
        return "00:00"
    if isinstance(value, dt.datetime):
        return value.strftime("%H:%M")
    if isinstance(value, (int, float)):
        value = format_clock(float(value) % 24)
    try:
        return clock_label(str(value))
    except ValueError:
        logger.warning("Unrecognized clock value; using midnight", extra={"clock": value})
        return "00:00"


def normalize_daily(raw: Any) -> DailySummary:
    """Read sunrise/sunset from a daily summary mapping, object or Open-Meteo `daily` block."""
    if isinstance(raw, DailySummary):
        return raw
    return DailySummary(
        sunrise=_clock_from(_get_field(raw, "sunrise")),
        sunset=_clock_from(_get_field(raw, "sunset")),
    )


def _canonical_unit(unit: str) -> str:
    return UNIT_SYNONYMS.get(unit, UNIT_SYNONYMS.get(unit.lower(), unit))


def _resolve_converters(units: Mapping[str, str], keys_used: Mapping[str, Optional[str]]) -> Dict[str, Any]:
    """Pick a converter per field from the reported units, warning on units we cannot convert."""
    converters: Dict[str, Any] = {}
    for field, key in keys_used.items():
        table = UNIT_CONVERTERS[field]
        reported = units.get(key) if key else None
        if reported is None:
            converters[field] = next(iter(table.values()))
            continue
        unit = _canonical_unit(str(reported))
        if unit in table:
            converters[field] = table[unit]
            continue
        logger.warning(
            "Unexpected Open-Meteo unit",
            extra={"field": key, "unit": reported, "expected": sorted(table)},
        )
        converters[field] = next(iter(table.values()))
    return converters


def _time_parts(value: Any) -> Tuple[int, int]:
    """Hour and minute of an Open-Meteo timestamp; aware timestamps are read in UTC."""
    try:
        parsed = dt.datetime.fromisoformat(str(value))
    except ValueError as exc:
        raise ForecastValidationError(f"Unparseable hourly time: {value!r}") from exc
    if parsed.tzinfo is not None:
        parsed = parsed.astimezone(dt.timezone.utc)
    return parsed.hour, parsed.minute


def _series_value(series: Any, index: int):
    """Safe positional lookup in a parallel hourly array."""
    if not isinstance(series, (list, tuple)) or index >= len(series):
        return None
    return series[index]


def normalize_open_meteo(payload: Mapping[str, Any]) -> Tuple[List[HourRecord], DailySummary]:
    """Convert an Open-Meteo forecast document into HourRecords plus the day's sunrise/sunset."""
    if not isinstance(payload, Mapping):
        raise ForecastValidationError("Forecast payload must be a mapping")
    hourly = payload.get("hourly")
    if not isinstance(hourly, Mapping):
        raise ForecastValidationError("Forecast payload has no 'hourly' block")
    times = hourly.get("time")
    if not isinstance(times, (list, tuple)):
        raise ForecastValidationError("Forecast 'hourly' block has no 'time' array")

    keys_used: Dict[str, Optional[str]] = {}
    for field, candidates in OPEN_METEO_HOURLY_KEYS.items():
        keys_used[field] = next((k for k in candidates if k in hourly), None)
    missing = sorted(field for field, key in keys_used.items() if key is None)
    if missing:
        logger.debug("Open-Meteo hourly variables missing; defaulting to 0", extra={"fields": missing})

    converters = _resolve_converters(payload.get("hourly_units") or {}, keys_used)

    records: List[HourRecord] = []
    for i, stamp in enumerate(times):
        hour, minute = _time_parts(stamp)
        values: Dict[str, Any] = {"hour": hour, "minute": minute}
        for field, key in keys_used.items():
            raw_value = _series_value(hourly.get(key), i) if key else None
            number = converters[field](_coerce_number(raw_value, field=field))
            number = round_half_up(number, FIELD_PRECISION[field])
            values[field] = _fit_range(field, number)
        records.append(HourRecord(**values))

    daily = normalize_daily(payload.get("daily") or {})
    logger.info(
        "Normalized Open-Meteo forecast",
        extra={"hours": len(records), "sunrise": daily.sunrise, "sunset": daily.sunset},
    )
    return records, daily
