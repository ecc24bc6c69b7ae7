import types
from datetime import datetime, timedelta, timezone

import pytest
from requests import RequestException

import weather_api
from app import create_app
from models import db


def utc_today():
    return datetime.now(timezone.utc).date()


class FakeResponse:
    def __init__(self, json_data, status_code=200, text=None):
        self._json = json_data
        self.status_code = status_code
        self.text = text if text is not None else str(json_data)

    def json(self):
        if isinstance(self._json, Exception):
            raise self._json
        return self._json


# Open-Meteo style body with one daily entry per offset from `reference`.
def open_meteo_body(reference, offsets=range(-7, 7), current=True, precipitation=2.0):
    times = [(reference + timedelta(days=offset)).isoformat() for offset in offsets]
    body = {
        "daily": {
            "time": times,
            "weather_code": [61 for _ in times],
            "temperature_2m_max": [31.0 for _ in times],
            "temperature_2m_min": [24.5 for _ in times],
            "precipitation_sum": [precipitation for _ in times],
        }
    }
    if current:
        body["current"] = {"temperature_2m": 29.4, "relative_humidity_2m": 78, "weather_code": 3}
    return body


class ProviderStub:
    """Stands in for requests.get in weather_api; records every call."""

    def __init__(self):
        self.calls = []
        self.status_code = 200
        self.body = open_meteo_body(utc_today())
        self.error = None

    def get(self, url, params=None, timeout=None, **kwargs):
        self.calls.append({"url": url, "params": dict(params or {}), "timeout": timeout})
        if self.error is not None:
            raise self.error
        return FakeResponse(self.body, status_code=self.status_code)


# Keeps tests off the network unless they install a provider stub.
@pytest.fixture(autouse=True)
def no_network(monkeypatch):
    def _get(*args, **kwargs):
        raise RequestException("network access disabled in tests")
    monkeypatch.setattr(weather_api, "requests", types.SimpleNamespace(get=_get))


@pytest.fixture()
def provider(monkeypatch):
    stub = ProviderStub()
    monkeypatch.setattr(weather_api, "requests", types.SimpleNamespace(get=stub.get))
    return stub


# Creates a Flask app with a temporary SQLite database for tests.
@pytest.fixture()
def app(tmp_path, monkeypatch):
    db_path = tmp_path / "test.db"
    monkeypatch.setenv("DATABASE_URL", f"sqlite:///{db_path}")
    monkeypatch.setenv("SECRET_KEY", "test-secret")
    monkeypatch.setenv("WEATHER_TIMEZONE", "UTC")
    app = create_app()
    app.config.update(TESTING=True)
    with app.app_context():
        db.create_all()
        yield app
        db.session.remove()


@pytest.fixture()
def client(app):
    return app.test_client()


@pytest.fixture()
def store(app):
    return app.extensions["weather_store"]


@pytest.fixture()
def today():
    return utc_today()


@pytest.fixture()
def make_body():
    return open_meteo_body
