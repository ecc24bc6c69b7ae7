import logging
import os
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from dotenv import load_dotenv

from errors import ConfigError

LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s %(message)s"

_TRUTHY = {"1", "true", "yes", "on"}
_FALSY = {"0", "false", "no", "off", ""}


def _env_bool(name, default):
    raw = os.environ.get(name)
    if raw is None:
        return default
    value = raw.strip().lower()
    if value in _TRUTHY:
        return True
    if value in _FALSY:
        return False
    raise ConfigError(f"{name} must be a boolean, got {raw!r}")


def _env_number(name, default, cast):
    raw = os.environ.get(name)
    if raw is None or not raw.strip():
        return default
    try:
        return cast(raw.strip())
    except ValueError:
        raise ConfigError(f"{name} must be a number, got {raw!r}")


# Builds the Flask config mapping from the environment (and .env, if present).
def load_config(overrides=None):
    load_dotenv()

    config = {
        "SECRET_KEY": os.environ.get("SECRET_KEY", "dev-secret"),
        "SQLALCHEMY_DATABASE_URI": os.environ.get("DATABASE_URL", "sqlite:///weather.db"),
        "SQLALCHEMY_TRACK_MODIFICATIONS": False,
        "WEATHER_API_URL": os.environ.get("WEATHER_API_URL", "https://api.open-meteo.com/v1/forecast"),
        "WEATHER_LATITUDE": _env_number("WEATHER_LATITUDE", 13.75, float),
        "WEATHER_LONGITUDE": _env_number("WEATHER_LONGITUDE", 100.51, float),
        "WEATHER_LOCATION_NAME": os.environ.get("WEATHER_LOCATION_NAME", "Bangkok"),
        "WEATHER_TIMEZONE": os.environ.get("WEATHER_TIMEZONE", "Asia/Bangkok"),
        "WEATHER_PAST_DAYS": _env_number("WEATHER_PAST_DAYS", 7, int),
        "WEATHER_FORECAST_DAYS": _env_number("WEATHER_FORECAST_DAYS", 7, int),
        "WEATHER_API_TIMEOUT": _env_number("WEATHER_API_TIMEOUT", 30.0, float),
        "WEATHER_CURRENT_ID": os.environ.get("WEATHER_CURRENT_ID", "bangkok-current-weather"),
        "WEATHER_INCLUDE_PRECIPITATION": _env_bool("WEATHER_INCLUDE_PRECIPITATION", True),
        "WEATHER_DEFAULT_HUMIDITY": _env_number("WEATHER_DEFAULT_HUMIDITY", 0, int),
        "WEATHER_REFRESH_ON_VIEW": _env_bool("WEATHER_REFRESH_ON_VIEW", True),
        "LOG_LEVEL": os.environ.get("LOG_LEVEL", "INFO").upper(),
    }
    if overrides:
        config.update(overrides)

    validate_config(config)
    return config


def validate_config(config):
    """Reject settings the refresh pipeline cannot work with."""
    try:
        ZoneInfo(config["WEATHER_TIMEZONE"])
    except (ZoneInfoNotFoundError, ValueError):
        raise ConfigError(f"Unknown timezone {config['WEATHER_TIMEZONE']!r}")

    if not -90 <= config["WEATHER_LATITUDE"] <= 90:
        raise ConfigError("WEATHER_LATITUDE must be between -90 and 90")
    if not -180 <= config["WEATHER_LONGITUDE"] <= 180:
        raise ConfigError("WEATHER_LONGITUDE must be between -180 and 180")
    for key in ("WEATHER_PAST_DAYS", "WEATHER_FORECAST_DAYS"):
        if config[key] < 0:
            raise ConfigError(f"{key} must not be negative")
    if config["WEATHER_API_TIMEOUT"] <= 0:
        raise ConfigError("WEATHER_API_TIMEOUT must be positive")
    if not 0 <= config["WEATHER_DEFAULT_HUMIDITY"] <= 100:
        raise ConfigError("WEATHER_DEFAULT_HUMIDITY must be between 0 and 100")


def configure_logging(level="INFO"):
    # basicConfig is a no-op once the root logger has handlers, so repeated
    # app creation in tests only adjusts the level.
    logging.basicConfig(level=level, format=LOG_FORMAT)
    logging.getLogger().setLevel(level)
