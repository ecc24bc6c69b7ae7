import atexit
import weakref

from flask import Flask, current_app, flash, jsonify, render_template, request
from werkzeug.exceptions import HTTPException, InternalServerError

from config import configure_logging, load_config
from errors import ValidationError, WeatherAppError
from models import db
from reconciler import refresh_weather
from store import WeatherStore

MAX_LIST_LIMIT = 31

# Apps whose stores are closed at interpreter exit; weak so test apps can be collected.
_live_apps = weakref.WeakSet()

# Icons for the WMO code groups shown on the page.
WEATHER_ICONS = [
    ({0}, "\u2600\ufe0f"),                                 # clear
    ({1, 2, 3}, "\u26c5"),                                # cloudy
    ({45, 48}, "\U0001f32b\ufe0f"),                       # fog
    ({51, 53, 55, 56, 57}, "\U0001f326\ufe0f"),           # drizzle
    ({61, 63, 65, 66, 67, 80, 81, 82}, "\U0001f327\ufe0f"), # rain
    ({71, 73, 75, 77, 85, 86}, "\U0001f328\ufe0f"),       # snow
    ({95, 96, 99}, "\u26c8\ufe0f"),                       # thunderstorm
]
DEFAULT_ICON = "\U0001f321\ufe0f"


def weather_icon(code):
    for codes, icon in WEATHER_ICONS:
        if code in codes:
            return icon
    return DEFAULT_ICON


def format_day(value):
    return value.strftime("%a, %b %d").replace(" 0", " ") if value else ""


def get_store():
    return current_app.extensions["weather_store"]


# Reads optional lat/lon query parameters; both or neither must be given.
def _parse_coordinates(args):
    lat_str = (args.get("lat") or "").strip()
    lon_str = (args.get("lon") or "").strip()
    if not lat_str and not lon_str:
        return None, None
    if not lat_str or not lon_str:
        raise ValidationError("Missing lat/lon: both coordinates are required together.")
    try:
        latitude = float(lat_str)
        longitude = float(lon_str)
    except ValueError:
        raise ValidationError("Latitude/Longitude must be numeric.")
    if not -90 <= latitude <= 90 or not -180 <= longitude <= 180:
        raise ValidationError("Latitude must be within [-90, 90] and longitude within [-180, 180].")
    return latitude, longitude


def _parse_limit(args, default=7):
    raw = (args.get("limit") or "").strip()
    if not raw:
        return default
    try:
        limit = int(raw)
    except ValueError:
        raise ValidationError("limit must be an integer.")
    if not 1 <= limit <= MAX_LIST_LIMIT:
        raise ValidationError(f"limit must be between 1 and {MAX_LIST_LIMIT}.")
    return limit


@atexit.register
def _close_stores():
    for app in list(_live_apps):
        with app.app_context():
            app.extensions["weather_store"].close()


# App factory: loads configuration, initializes the database and the store, and registers routes.
def create_app(test_config=None):
    app = Flask(__name__)
    app.config.update(load_config(test_config))
    configure_logging(app.config["LOG_LEVEL"])

    db.init_app(app)

    with app.app_context():
        db.create_all()

    store = WeatherStore(db)
    app.extensions["weather_store"] = store

    _live_apps.add(app)

    app.add_template_filter(weather_icon, "weather_icon")
    app.add_template_filter(format_day, "format_day")

    @app.errorhandler(WeatherAppError)
    def handle_weather_error(error):
        return jsonify(error.to_dict()), error.status_code

    @app.errorhandler(Exception)
    def handle_unexpected_error(error):
        if isinstance(error, HTTPException):
            return error
        app.logger.exception("Unhandled error in %s", request.path)
        if request.path.startswith("/api/"):
            return jsonify({"error": "internal_error", "message": str(error)}), 500
        return InternalServerError(original_exception=error)

    @app.route("/", methods=["GET"])
    def index():
        if app.config["WEATHER_REFRESH_ON_VIEW"]:
            try:
                refresh_weather(get_store(), app.config)
            except WeatherAppError as e:
                app.logger.warning("Weather refresh failed, showing stored data: %s", e.message)
                flash(f"Could not refresh weather data: {e.message}", "error")
            except Exception:
                app.logger.exception("Unexpected error while refreshing weather for the page")
                flash("Could not refresh weather data.", "error")

        current = get_store().latest_current()
        forecast = get_store().list_forecast(limit=7, ascending=True)
        historical = get_store().list_historical(limit=7, descending=True)
        return render_template(
            "index.html",
            location=app.config["WEATHER_LOCATION_NAME"],
            current=current,
            forecast=forecast,
            historical=historical,
        )

    # Refresh endpoint: fetches from the provider, reconciles and reports what was written.
    @app.route("/api/weather", methods=["GET"])
    def refresh():
        latitude, longitude = _parse_coordinates(request.args)
        result = refresh_weather(get_store(), app.config, latitude=latitude, longitude=longitude)
        body = result.to_dict()
        body["message"] = "Weather data fetched and stored successfully!"
        return jsonify(body), 200

    @app.route("/api/current", methods=["GET"])
    def current_weather():
        current = get_store().latest_current()
        if current is None:
            return jsonify({"error": "not_found", "message": "No current weather data available."}), 404
        return jsonify(current.to_dict())

    @app.route("/api/forecast", methods=["GET"])
    def forecast_days():
        limit = _parse_limit(request.args)
        rows = get_store().list_forecast(limit=limit, ascending=True)
        return jsonify({"daily": [row.to_dict() for row in rows]})

    @app.route("/api/historical", methods=["GET"])
    def historical_days():
        limit = _parse_limit(request.args)
        rows = get_store().list_historical(limit=limit, descending=True)
        return jsonify({"daily": [row.to_dict() for row in rows]})

    return app

if __name__ == "__main__":
    app = create_app()
    app.run(debug=True)
