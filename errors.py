"""Exceptions raised while refreshing or reading weather data.

Each error knows the HTTP status it maps to so the routes in app.py can turn
it into a JSON response without a per-route try/except ladder.
"""


class WeatherAppError(Exception):
    status_code = 500
    kind = "internal_error"

    def __init__(self, message, details=None):
        super().__init__(message)
        self.message = message
        self.details = details

    def to_dict(self):
        body = {"error": self.kind, "message": self.message}
        if self.details is not None:
            body["details"] = self.details
        return body


class ValidationError(WeatherAppError):
    """Missing or invalid request parameters."""
    status_code = 400
    kind = "validation_error"


class UpstreamFetchError(WeatherAppError):
    """The weather provider could not be reached or answered with a non-2xx status."""
    status_code = 502
    kind = "upstream_fetch_error"

    def __init__(self, message, upstream_status=None, details=None):
        super().__init__(message, details=details)
        self.upstream_status = upstream_status

    def to_dict(self):
        body = super().to_dict()
        body["upstream_status"] = self.upstream_status
        return body


class MalformedPayloadError(WeatherAppError):
    """The provider answered 2xx but the body is missing expected fields."""
    status_code = 502
    kind = "malformed_payload"


class PersistenceError(WeatherAppError):
    status_code = 500
    kind = "persistence_error"


class ConfigError(WeatherAppError):
    kind = "config_error"
