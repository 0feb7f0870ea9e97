from __future__ import annotations

from sqlalchemy import create_engine, event
from sqlalchemy.engine import Engine

from polytax.config.paths import ensure_data_dirs
from polytax.config.settings import get_settings
from polytax.db.models import Base


def _enable_sqlite_pragmas(engine: Engine) -> None:
    @event.listens_for(engine, "connect")
    def _set_pragmas(dbapi_connection, _connection_record) -> None:
        cursor = dbapi_connection.cursor()
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.close()


def get_engine(database_url: str | None = None) -> Engine:
    url = database_url or get_settings().database_url
    if url.startswith("sqlite:///") and ":memory:" not in url:
        ensure_data_dirs()
    engine = create_engine(url, future=True)
    if engine.dialect.name == "sqlite":
        _enable_sqlite_pragmas(engine)
    return engine


def migrate(database_url: str | None = None) -> Engine:
    engine = get_engine(database_url)
    Base.metadata.create_all(engine)
    return engine
