import logging
from dataclasses import dataclass, field
from datetime import date, datetime
from typing import Optional
from zoneinfo import ZoneInfo

import requests
from requests import RequestException

from errors import MalformedPayloadError, UpstreamFetchError

logger = logging.getLogger(__name__)

FORECAST_URL = "https://api.open-meteo.com/v1/forecast"

CURRENT_FIELDS = ["temperature_2m", "relative_humidity_2m", "weather_code"]
DAILY_FIELDS = ["weather_code", "temperature_2m_max", "temperature_2m_min", "precipitation_sum"]

# WMO weather interpretation codes, as documented by Open-Meteo.
WEATHER_CODE_DESCRIPTIONS = {
    0: "Clear sky",
    1: "Mainly clear, partly cloudy, overcast",
    2: "Mainly clear, partly cloudy, overcast",
    3: "Mainly clear, partly cloudy, overcast",
    45: "Fog and depositing rime fog",
    48: "Fog and depositing rime fog",
    51: "Drizzle",
    53: "Drizzle",
    55: "Drizzle",
    56: "Freezing drizzle",
    57: "Freezing drizzle",
    61: "Rain",
    63: "Rain",
    65: "Rain",
    66: "Freezing rain",
    67: "Freezing rain",
    71: "Snow fall",
    73: "Snow fall",
    75: "Snow fall",
    77: "Snow grains",
    80: "Rain showers",
    81: "Rain showers",
    82: "Rain showers",
    85: "Snow showers",
    86: "Snow showers",
    95: "Thunderstorm",
    96: "Thunderstorm with hail",
    99: "Thunderstorm with hail",
}
UNKNOWN_DESCRIPTION = "Unknown"


@dataclass(frozen=True)
class CurrentConditions:
    temperature: float
    weather_code: int
    humidity: Optional[float] = None  # None when the provider did not send it


@dataclass(frozen=True)
class DailyEntry:
    date: date
    max_temperature: float
    min_temperature: float
    weather_code: int
    precipitation: Optional[float] = None


@dataclass(frozen=True)
class WeatherPayload:
    current: Optional[CurrentConditions] = None
    daily: list = field(default_factory=list)


# Maps a WMO weather code to a readable description; never fails.
def describe_weather_code(code) -> str:
    if isinstance(code, bool):
        return UNKNOWN_DESCRIPTION
    if isinstance(code, float) and code.is_integer():
        code = int(code)
    if not isinstance(code, int):
        return UNKNOWN_DESCRIPTION
    return WEATHER_CODE_DESCRIPTIONS.get(code, UNKNOWN_DESCRIPTION)


def _zone(tz):
    return tz if isinstance(tz, ZoneInfo) else ZoneInfo(tz)


# Normalizes a date, datetime or ISO string to a calendar date in tz.
def to_local_date(value, tz="UTC") -> date:
    if isinstance(value, str):
        text = value.strip()
        if len(text) == 10:
            return date.fromisoformat(text)
        value = datetime.fromisoformat(text.replace("Z", "+00:00"))
    if isinstance(value, datetime):
        if value.tzinfo is not None:
            value = value.astimezone(_zone(tz))
        return value.date()
    if isinstance(value, date):
        return value
    raise TypeError(f"Cannot interpret {value!r} as a date")


def _number(value, what):
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise MalformedPayloadError(f"Expected a number for {what}, got {value!r}")
    return float(value)


def _code(value, what):
    if isinstance(value, float) and value.is_integer():
        value = int(value)
    if isinstance(value, bool) or not isinstance(value, int):
        raise MalformedPayloadError(f"Expected an integer weather code for {what}, got {value!r}")
    return value


def _parse_current(data):
    if data.get("current") is not None:
        current = data["current"]
        temperature_key, code_key, humidity_key = "temperature_2m", "weather_code", "relative_humidity_2m"
    elif data.get("current_weather") is not None:
        # Legacy "current_weather=true" shape carries no humidity.
        current = data["current_weather"]
        temperature_key, code_key, humidity_key = "temperature", "weathercode", None
    else:
        return None

    if not isinstance(current, dict):
        raise MalformedPayloadError("'current' must be an object")
    for key in (temperature_key, code_key):
        if current.get(key) is None:
            raise MalformedPayloadError(f"current.{key} is missing")

    humidity = current.get(humidity_key) if humidity_key else None
    return CurrentConditions(
        temperature=_number(current[temperature_key], f"current.{temperature_key}"),
        weather_code=_code(current[code_key], f"current.{code_key}"),
        humidity=None if humidity is None else _number(humidity, f"current.{humidity_key}"),
    )


def _parse_daily(data, tz):
    daily = data.get("daily")
    if daily is None:
        return []
    if not isinstance(daily, dict):
        raise MalformedPayloadError("'daily' must be an object")

    columns = {
        "time": daily.get("time"),
        "temperature_2m_max": daily.get("temperature_2m_max"),
        "temperature_2m_min": daily.get("temperature_2m_min"),
        "weather_code": daily.get("weather_code", daily.get("weathercode")),
    }
    for name, values in columns.items():
        if not isinstance(values, list):
            raise MalformedPayloadError(f"daily.{name} is missing")

    times = columns["time"]
    for name, values in columns.items():
        if len(values) != len(times):
            raise MalformedPayloadError(
                f"daily.{name} has {len(values)} values, expected {len(times)}"
            )

    precipitation = daily.get("precipitation_sum")
    if precipitation is not None and not isinstance(precipitation, list):
        raise MalformedPayloadError("daily.precipitation_sum must be a list")
    precipitation = precipitation or []

    entries = []
    for index, raw_day in enumerate(times):
        try:
            day = to_local_date(raw_day, tz)
        except (TypeError, ValueError):
            raise MalformedPayloadError(f"daily.time[{index}] is not a date: {raw_day!r}")

        for name in ("temperature_2m_max", "temperature_2m_min", "weather_code"):
            if columns[name][index] is None:
                raise MalformedPayloadError(f"daily.{name}[{index}] is missing")

        precip = precipitation[index] if index < len(precipitation) else None
        if precip is not None:
            precip = _number(precip, f"daily.precipitation_sum[{index}]")
            if precip < 0:
                raise MalformedPayloadError(f"daily.precipitation_sum[{index}] is negative: {precip!r}")
        entries.append(DailyEntry(
            date=day,
            max_temperature=_number(columns["temperature_2m_max"][index], f"daily.temperature_2m_max[{index}]"),
            min_temperature=_number(columns["temperature_2m_min"][index], f"daily.temperature_2m_min[{index}]"),
            weather_code=_code(columns["weather_code"][index], f"daily.weather_code[{index}]"),
            precipitation=precip,
        ))
    return entries


def parse_payload(data, tz="UTC") -> WeatherPayload:
    """
    Validate and normalize a decoded Open-Meteo response.

    The whole body is checked before anything is returned, so a caller never
    sees a half-parsed payload. Absent 'current' or 'daily' sections are not
    errors; they simply come back empty.
    """
    if not isinstance(data, dict):
        raise MalformedPayloadError("Weather API response is not a JSON object")
    return WeatherPayload(current=_parse_current(data), daily=_parse_daily(data, tz))


# Issues the single forecast request and returns the parsed payload.
def fetch_weather(latitude: float, longitude: float, timezone: str = "UTC", past_days: int = 7,
                  forecast_days: int = 7, api_url: str = FORECAST_URL, timeout: float = 30) -> WeatherPayload:
    params = {
        "latitude": latitude,
        "longitude": longitude,
        "current": ",".join(CURRENT_FIELDS),
        "daily": ",".join(DAILY_FIELDS),
        "past_days": past_days,
        "forecast_days": forecast_days,
        "timezone": timezone,
    }
    logger.info("Fetching weather for %s,%s from %s", latitude, longitude, api_url)
    try:
        response = requests.get(api_url, params=params, timeout=timeout)
    except RequestException as e:
        logger.error("Weather API request failed: %s", e)
        raise UpstreamFetchError(f"Weather API request failed: {e}")

    if not 200 <= response.status_code < 300:
        details = _error_body(response)
        logger.error("Weather API error %s: %s", response.status_code, details)
        raise UpstreamFetchError(
            f"Weather API responded with HTTP {response.status_code}",
            upstream_status=response.status_code,
            details=details,
        )

    try:
        data = response.json()
    except ValueError:
        logger.error("Weather API returned a body that is not JSON")
        raise MalformedPayloadError("Weather API returned a body that is not JSON")

    try:
        payload = parse_payload(data, timezone)
    except MalformedPayloadError as e:
        logger.error("Malformed weather payload: %s", e.message)
        raise
    logger.info("Fetched weather: current=%s, %d daily entries",
                payload.current is not None, len(payload.daily))
    return payload


# Returns the upstream error body as JSON when possible, else as text.
def _error_body(response):
    try:
        return response.json()
    except ValueError:
        return getattr(response, "text", None)
