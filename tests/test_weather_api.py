from datetime import date

import pytest
from requests import ConnectionError as RequestsConnectionError

import weather_api as wa
from errors import MalformedPayloadError, UpstreamFetchError


@pytest.mark.parametrize("code, expected", [
    (0, "Clear sky"),
    (2, "Mainly clear, partly cloudy, overcast"),
    (48, "Fog and depositing rime fog"),
    (53, "Drizzle"),
    (57, "Freezing drizzle"),
    (65, "Rain"),
    (66, "Freezing rain"),
    (73, "Snow fall"),
    (77, "Snow grains"),
    (81, "Rain showers"),
    (86, "Snow showers"),
    (95, "Thunderstorm"),
    (99, "Thunderstorm with hail"),
])
def test_describe_weather_code_table(code, expected):
    assert wa.describe_weather_code(code) == expected

@pytest.mark.parametrize("code", [-1, 4, 50, 98, 100, 800, None, "0", True, 2.5])
def test_describe_weather_code_unknown(code):
    assert wa.describe_weather_code(code) == "Unknown"

def test_describe_weather_code_is_total():
    for code in range(-10, 1000):
        assert wa.describe_weather_code(code)

def test_fetch_sends_expected_query(provider):
    wa.fetch_weather(13.75, 100.51, timezone="Asia/Bangkok", past_days=7, forecast_days=7,
                     api_url="https://example.test/v1/forecast", timeout=5)
    assert len(provider.calls) == 1
    call = provider.calls[0]
    assert call["url"] == "https://example.test/v1/forecast"
    assert call["timeout"] == 5
    params = call["params"]
    assert params["latitude"] == 13.75
    assert params["longitude"] == 100.51
    assert params["current"] == "temperature_2m,relative_humidity_2m,weather_code"
    assert params["daily"] == "weather_code,temperature_2m_max,temperature_2m_min,precipitation_sum"
    assert params["past_days"] == 7
    assert params["forecast_days"] == 7
    assert params["timezone"] == "Asia/Bangkok"

def test_fetch_parses_current_and_daily(provider, make_body):
    provider.body = make_body(date(2024, 6, 10), offsets=[-1, 0, 1])
    payload = wa.fetch_weather(1.0, 2.0)
    assert payload.current == wa.CurrentConditions(temperature=29.4, weather_code=3, humidity=78.0)
    assert [entry.date for entry in payload.daily] == [date(2024, 6, 9), date(2024, 6, 10), date(2024, 6, 11)]
    assert payload.daily[0].max_temperature == 31.0
    assert payload.daily[0].precipitation == 2.0

def test_fetch_non_2xx_raises_upstream_error(provider):
    provider.status_code = 503
    provider.body = {"error": True, "reason": "Service unavailable"}
    with pytest.raises(UpstreamFetchError) as excinfo:
        wa.fetch_weather(1.0, 2.0)
    assert excinfo.value.upstream_status == 503
    assert excinfo.value.details == {"error": True, "reason": "Service unavailable"}

def test_fetch_network_failure_raises_upstream_error(provider):
    provider.error = RequestsConnectionError("connection refused")
    with pytest.raises(UpstreamFetchError) as excinfo:
        wa.fetch_weather(1.0, 2.0)
    assert excinfo.value.upstream_status is None

def test_fetch_non_json_body_is_malformed(provider):
    provider.body = ValueError("Expecting value")
    with pytest.raises(MalformedPayloadError):
        wa.fetch_weather(1.0, 2.0)

def test_parse_absent_sections_is_empty():
    payload = wa.parse_payload({"latitude": 13.75})
    assert payload.current is None
    assert payload.daily == []

def test_parse_legacy_current_weather_has_no_humidity():
    payload = wa.parse_payload({"current_weather": {"temperature": 30.1, "weathercode": 95}})
    assert payload.current.temperature == 30.1
    assert payload.current.weather_code == 95
    assert payload.current.humidity is None

def test_parse_missing_precipitation_is_none():
    payload = wa.parse_payload({"daily": {
        "time": ["2024-06-10", "2024-06-11"],
        "weather_code": [1, 2],
        "temperature_2m_max": [30.0, 31.0],
        "temperature_2m_min": [20.0, 21.0],
        "precipitation_sum": [None, 1.5],
    }})
    assert payload.daily[0].precipitation is None
    assert payload.daily[1].precipitation == 1.5

@pytest.mark.parametrize("missing", ["time", "weather_code", "temperature_2m_max", "temperature_2m_min"])
def test_parse_missing_daily_column_is_malformed(missing):
    daily = {
        "time": ["2024-06-10"],
        "weather_code": [1],
        "temperature_2m_max": [30.0],
        "temperature_2m_min": [20.0],
    }
    del daily[missing]
    with pytest.raises(MalformedPayloadError):
        wa.parse_payload({"daily": daily})

def test_parse_null_daily_value_is_malformed():
    with pytest.raises(MalformedPayloadError):
        wa.parse_payload({"daily": {
            "time": ["2024-06-10", "2024-06-11"],
            "weather_code": [1, 2],
            "temperature_2m_max": [30.0, None],
            "temperature_2m_min": [20.0, 21.0],
        }})

def test_parse_length_mismatch_is_malformed():
    with pytest.raises(MalformedPayloadError):
        wa.parse_payload({"daily": {
            "time": ["2024-06-10", "2024-06-11"],
            "weather_code": [1],
            "temperature_2m_max": [30.0, 31.0],
            "temperature_2m_min": [20.0, 21.0],
        }})

def test_parse_bad_date_is_malformed():
    with pytest.raises(MalformedPayloadError):
        wa.parse_payload({"daily": {
            "time": ["not-a-date"],
            "weather_code": [1],
            "temperature_2m_max": [30.0],
            "temperature_2m_min": [20.0],
        }})

def test_parse_current_missing_temperature_is_malformed():
    with pytest.raises(MalformedPayloadError):
        wa.parse_payload({"current": {"relative_humidity_2m": 70, "weather_code": 1}})

def test_parse_negative_precipitation_is_malformed():
    with pytest.raises(MalformedPayloadError):
        wa.parse_payload({"daily": {
            "time": ["2024-06-10"],
            "weather_code": [61],
            "temperature_2m_max": [30.0],
            "temperature_2m_min": [20.0],
            "precipitation_sum": [-0.4],
        }})

def test_parse_converts_offset_times_into_the_configured_zone():
    payload = wa.parse_payload({"daily": {
        "time": ["2024-06-10T22:00:00-05:00", "2024-06-10"],
        "weather_code": [1, 1],
        "temperature_2m_max": [30.0, 30.0],
        "temperature_2m_min": [20.0, 20.0],
    }}, "Asia/Bangkok")
    # 22:00 at -05:00 is 10:00 the next morning in Bangkok; plain dates stay as sent.
    assert [entry.date for entry in payload.daily] == [date(2024, 6, 11), date(2024, 6, 10)]
