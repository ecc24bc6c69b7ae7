import logging
from functools import wraps

from sqlalchemy.exc import SQLAlchemyError

from errors import PersistenceError
from models import CurrentWeather, ForecastDay, HistoricalDay

logger = logging.getLogger(__name__)


def _persistence_errors(method):
    """Roll back and re-raise SQLAlchemy failures as PersistenceError."""
    @wraps(method)
    def wrapper(self, *args, **kwargs):
        try:
            return method(self, *args, **kwargs)
        except SQLAlchemyError as e:
            self.db.session.rollback()
            logger.error("Database error in %s: %s", method.__name__, e)
            raise PersistenceError(f"Database error in {method.__name__}") from e
    return wrapper


class WeatherStore:
    """
    Keyed upserts and reads for the three weather record kinds.

    One instance is built by create_app() and shared for the process lifetime;
    the Flask-SQLAlchemy session it uses is scoped to the app context.
    Upserts are idempotent: writing the same values again only moves
    recorded_at forward.
    """

    def __init__(self, db):
        self.db = db

    def _write(self, row, values, recorded_at, commit):
        for name, value in values.items():
            setattr(row, name, value)
        row.recorded_at = recorded_at
        self.db.session.add(row)
        if commit:
            self.db.session.commit()
        else:
            self.db.session.flush()
        return row

    @_persistence_errors
    def upsert_current(self, key, values, recorded_at, commit=True):
        row = self.db.session.get(CurrentWeather, key) or CurrentWeather(id=key)
        return self._write(row, values, recorded_at, commit)

    @_persistence_errors
    def upsert_forecast_day(self, day, values, recorded_at, commit=True):
        row = ForecastDay.query.filter_by(date=day).one_or_none() or ForecastDay(date=day)
        return self._write(row, values, recorded_at, commit)

    @_persistence_errors
    def upsert_historical_day(self, day, values, recorded_at, commit=True):
        row = HistoricalDay.query.filter_by(date=day).one_or_none() or HistoricalDay(date=day)
        return self._write(row, values, recorded_at, commit)

    @_persistence_errors
    def commit(self):
        self.db.session.commit()

    def rollback(self):
        self.db.session.rollback()

    @_persistence_errors
    def latest_current(self):
        return CurrentWeather.query.order_by(CurrentWeather.recorded_at.desc()).first()

    @_persistence_errors
    def list_forecast(self, limit=7, ascending=True):
        order = ForecastDay.date.asc() if ascending else ForecastDay.date.desc()
        return ForecastDay.query.order_by(order).limit(limit).all()

    @_persistence_errors
    def list_historical(self, limit=7, descending=True):
        order = HistoricalDay.date.desc() if descending else HistoricalDay.date.asc()
        return HistoricalDay.query.order_by(order).limit(limit).all()

    def close(self):
        self.db.session.remove()
        self.db.engine.dispose()
