"""
Reconciliation of a fetched weather payload onto the stored record sets.

Every daily entry is classified against the reference date, both sides being
plain calendar dates in the configured timezone:

    past   -> historical
    today  -> historical and forecast
    future -> forecast

Today lands in both sets: its values are the latest historical point and the
first forecast point at the same time.
"""
import logging
from dataclasses import dataclass, field
from datetime import date, datetime
from typing import Optional
from zoneinfo import ZoneInfo

import weather_api
from weather_api import to_local_date
from models import utcnow

logger = logging.getLogger(__name__)

CURRENT = "current"
HISTORICAL = "historical"
FORECAST = "forecast"


@dataclass(frozen=True)
class DayClass:
    is_past: bool
    is_today: bool
    is_future: bool


@dataclass(frozen=True)
class ReconcileOptions:
    include_precipitation: bool = True
    default_humidity: int = 0
    current_id: str = "bangkok-current-weather"


@dataclass(frozen=True)
class UpsertInstruction:
    kind: str
    key: object  # singleton id for current, calendar date otherwise
    values: dict


@dataclass
class RefreshResult:
    reference_date: date
    latitude: float
    longitude: float
    current: Optional[str] = None
    historical: list = field(default_factory=list)
    forecast: list = field(default_factory=list)

    def to_dict(self):
        return {
            "reference_date": self.reference_date.isoformat(),
            "location": {"latitude": self.latitude, "longitude": self.longitude},
            "current": self.current,
            "historical": [d.isoformat() for d in self.historical],
            "forecast": [d.isoformat() for d in self.forecast],
        }


def classify_day(day: date, reference_date: date) -> DayClass:
    return DayClass(
        is_past=day < reference_date,
        is_today=day == reference_date,
        is_future=day > reference_date,
    )


def _humidity_percent(humidity, options):
    if humidity is None:
        logger.info("Current conditions carry no humidity, storing %s%%", options.default_humidity)
        return int(options.default_humidity)
    return max(0, min(100, int(round(humidity))))


def reconcile(payload, reference_date, tz="UTC", options=None):
    """
    Turn a validated payload into the ordered list of upserts for one refresh.

    The current snapshot (if any) comes first, then each day in provider order
    with its historical upsert before its forecast upsert.
    """
    options = options or ReconcileOptions()
    reference_date = to_local_date(reference_date, tz)
    instructions = []

    if payload.current is not None:
        current = payload.current
        instructions.append(UpsertInstruction(CURRENT, options.current_id, {
            "temperature": current.temperature,
            "humidity": _humidity_percent(current.humidity, options),
            "weather_code": current.weather_code,
            "description": weather_api.describe_weather_code(current.weather_code),
        }))

    for entry in payload.daily:
        day = to_local_date(entry.date, tz)
        kind = classify_day(day, reference_date)
        values = {
            "max_temperature": entry.max_temperature,
            "min_temperature": entry.min_temperature,
            "weather_code": entry.weather_code,
            "description": weather_api.describe_weather_code(entry.weather_code),
        }

        if kind.is_past or kind.is_today:
            precipitation = entry.precipitation if options.include_precipitation else None
            instructions.append(UpsertInstruction(HISTORICAL, day, dict(
                values, precipitation=precipitation if precipitation is not None else 0.0,
            )))
        if kind.is_today or kind.is_future:
            instructions.append(UpsertInstruction(FORECAST, day, dict(values)))

    return instructions


# Applies the upserts in order inside a single transaction.
def apply_instructions(store, instructions, recorded_at=None):
    recorded_at = recorded_at or utcnow()
    writers = {
        CURRENT: store.upsert_current,
        HISTORICAL: store.upsert_historical_day,
        FORECAST: store.upsert_forecast_day,
    }
    try:
        for instruction in instructions:
            writers[instruction.kind](instruction.key, instruction.values, recorded_at, commit=False)
        store.commit()
    except Exception:
        store.rollback()
        raise


def options_from_config(config):
    return ReconcileOptions(
        include_precipitation=config["WEATHER_INCLUDE_PRECIPITATION"],
        default_humidity=config["WEATHER_DEFAULT_HUMIDITY"],
        current_id=config["WEATHER_CURRENT_ID"],
    )


def refresh_weather(store, config, latitude=None, longitude=None, now=None):
    """
    Fetch, reconcile and store one refresh for the given (or configured) location.

    Provider and payload errors propagate before anything is written;
    storage errors roll the whole refresh back.
    """
    tz = ZoneInfo(config["WEATHER_TIMEZONE"])
    latitude = config["WEATHER_LATITUDE"] if latitude is None else latitude
    longitude = config["WEATHER_LONGITUDE"] if longitude is None else longitude
    now = now or datetime.now(tz)
    reference_date = to_local_date(now if now.tzinfo else now.replace(tzinfo=tz), tz)

    payload = weather_api.fetch_weather(
        latitude,
        longitude,
        timezone=config["WEATHER_TIMEZONE"],
        past_days=config["WEATHER_PAST_DAYS"],
        forecast_days=config["WEATHER_FORECAST_DAYS"],
        api_url=config["WEATHER_API_URL"],
        timeout=config["WEATHER_API_TIMEOUT"],
    )
    instructions = reconcile(payload, reference_date, tz, options_from_config(config))
    apply_instructions(store, instructions)

    result = RefreshResult(reference_date=reference_date, latitude=latitude, longitude=longitude)
    for instruction in instructions:
        if instruction.kind == CURRENT:
            result.current = instruction.key
        elif instruction.kind == HISTORICAL:
            result.historical.append(instruction.key)
        else:
            result.forecast.append(instruction.key)

    logger.info("Weather refreshed for %s: current=%s, %d historical, %d forecast",
                reference_date, result.current is not None,
                len(result.historical), len(result.forecast))
    return result
