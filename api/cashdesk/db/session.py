import sqlite3
from collections.abc import Iterator
from datetime import datetime, timezone
from decimal import Decimal

from sqlalchemy import create_engine
from sqlalchemy.engine import Engine
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

from cashdesk.core.config import settings
from cashdesk.db.tables import metadata


def _register_sqlite_adapters() -> None:
    # raw text() binds bypass SQLAlchemy type processing
    sqlite3.register_adapter(Decimal, str)
    sqlite3.register_adapter(datetime, lambda value: value.isoformat(sep=" "))


def build_engine(url: str) -> Engine:
    if url.startswith("sqlite"):
        _register_sqlite_adapters()
        kwargs = {"connect_args": {"check_same_thread": False}}
        if ":memory:" in url or url in ("sqlite://", "sqlite+pysqlite://"):
            kwargs["poolclass"] = StaticPool
        return create_engine(url, **kwargs)
    return create_engine(url, pool_pre_ping=True)


engine = build_engine(settings.database_url)
SessionLocal = sessionmaker(bind=engine, autocommit=False, autoflush=False)


def get_db() -> Iterator[Session]:
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


def init_db(bind: Engine | None = None) -> None:
    metadata.create_all(bind=bind or engine)


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def as_datetime(value) -> datetime | None:
    """Normalize a timestamp column: SQLite returns ISO text, PostgreSQL a datetime."""
    if value is None or isinstance(value, datetime):
        return value
    parsed = datetime.fromisoformat(str(value))
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed
