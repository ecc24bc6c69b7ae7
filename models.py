from datetime import datetime, timezone
from flask_sqlalchemy import SQLAlchemy

db = SQLAlchemy()


# Naive UTC timestamp, the form the DateTime columns store.
def utcnow():
    return datetime.now(timezone.utc).replace(tzinfo=None)


class CurrentWeather(db.Model):
    __tablename__ = "current_weather"

    # Fixed singleton key per location, e.g. "bangkok-current-weather".
    id = db.Column(db.String(64), primary_key=True)
    temperature = db.Column(db.Float, nullable=False)
    humidity = db.Column(db.Integer, nullable=False, default=0)
    weather_code = db.Column(db.Integer, nullable=False)
    description = db.Column(db.String(120), nullable=False)

    recorded_at = db.Column(db.DateTime, nullable=False, default=utcnow, index=True)

    def to_dict(self):
        return {
            "id": self.id,
            "temperature": self.temperature,
            "humidity": self.humidity,
            "weather_code": self.weather_code,
            "description": self.description,
            "recorded_at": self.recorded_at.isoformat() if self.recorded_at else None,
        }

    def __repr__(self):
        return f"<CurrentWeather {self.id} {self.temperature}C {self.description}>"


class ForecastDay(db.Model):
    __tablename__ = "forecast_days"

    id = db.Column(db.Integer, primary_key=True)
    date = db.Column(db.Date, nullable=False, unique=True, index=True)
    max_temperature = db.Column(db.Float, nullable=False)
    min_temperature = db.Column(db.Float, nullable=False)
    weather_code = db.Column(db.Integer, nullable=False)
    description = db.Column(db.String(120), nullable=False)

    recorded_at = db.Column(db.DateTime, nullable=False, default=utcnow, index=True)

    def to_dict(self):
        return {
            "id": self.id,
            "date": self.date.isoformat(),
            "max_temperature": self.max_temperature,
            "min_temperature": self.min_temperature,
            "weather_code": self.weather_code,
            "description": self.description,
            "recorded_at": self.recorded_at.isoformat() if self.recorded_at else None,
        }

    def __repr__(self):
        return f"<ForecastDay {self.date} {self.max_temperature}/{self.min_temperature}>"


class HistoricalDay(db.Model):
    __tablename__ = "historical_days"

    id = db.Column(db.Integer, primary_key=True)
    date = db.Column(db.Date, nullable=False, unique=True, index=True)
    max_temperature = db.Column(db.Float, nullable=False)
    min_temperature = db.Column(db.Float, nullable=False)
    precipitation = db.Column(db.Float, nullable=False, default=0.0)  # mm
    weather_code = db.Column(db.Integer, nullable=False)
    description = db.Column(db.String(120), nullable=False)

    recorded_at = db.Column(db.DateTime, nullable=False, default=utcnow, index=True)

    def to_dict(self):
        return {
            "id": self.id,
            "date": self.date.isoformat(),
            "max_temperature": self.max_temperature,
            "min_temperature": self.min_temperature,
            "precipitation": self.precipitation,
            "weather_code": self.weather_code,
            "description": self.description,
            "recorded_at": self.recorded_at.isoformat() if self.recorded_at else None,
        }

    def __repr__(self):
        return f"<HistoricalDay {self.date} {self.max_temperature}/{self.min_temperature} {self.precipitation}mm>"
