# crowdwatch/database.py
"""
Database connection, session management, and table creation.
Uses SQLAlchemy with PostgreSQL (SQLite for tests and local runs).
All models are auto-imported here so create_tables() creates every table in one call.
"""

from typing import Optional

from sqlalchemy import create_engine, event
from sqlalchemy.orm import declarative_base, sessionmaker
from sqlalchemy.pool import StaticPool
from crowdwatch.config import settings


def _engine_options(url: str, timeout: float) -> dict:
    """Per-dialect pool and timeout options. Every statement is bounded by `timeout` seconds."""
    if url.startswith("sqlite"):
        options = {
            "connect_args": {"check_same_thread": False, "timeout": timeout},
        }
        if url in ("sqlite://", "sqlite:///:memory:"):
            options["poolclass"] = StaticPool   # One shared in-memory database
        return options

    timeout_ms = int(timeout * 1000)
    return {
        "pool_pre_ping": True,          # Auto-reconnect if DB connection drops
        "pool_size": 10,
        "max_overflow": 20,
        "pool_timeout": timeout,
        "connect_args": {"options": f"-c statement_timeout={timeout_ms} -c lock_timeout={timeout_ms}"},
    }


def build_engine(url: str, timeout: Optional[float] = None):
    """Create an engine for `url`. timeout defaults to STORE_TIMEOUT_SECONDS."""
    if timeout is None:
        timeout = settings.STORE_TIMEOUT_SECONDS
    new_engine = create_engine(
        url,
        echo=False,                  # Set True to log all SQL queries (debug only)
        **_engine_options(url, timeout),
    )

    if new_engine.dialect.name == "sqlite":
        # pysqlite defers BEGIN on its own, which breaks SAVEPOINT; take over transaction control.
        @event.listens_for(new_engine, "connect")
        def _sqlite_connect(dbapi_connection, connection_record):
            dbapi_connection.isolation_level = None
            cursor = dbapi_connection.cursor()
            cursor.execute("PRAGMA foreign_keys=ON")
            cursor.close()

        # IMMEDIATE takes the write lock up front: concurrent writers queue on the busy
        # timeout instead of failing on a read-to-write lock upgrade.
        @event.listens_for(new_engine, "begin")
        def _sqlite_begin(conn):
            conn.exec_driver_sql("BEGIN IMMEDIATE")

    return new_engine


engine = build_engine(settings.DATABASE_URL)

SessionLocal = sessionmaker(autocommit=False, autoflush=False, expire_on_commit=False, bind=engine)

Base = declarative_base()


def get_db():
    """FastAPI dependency — yields a DB session and closes it after request."""
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


def create_tables():
    """
    Creates all DB tables on startup. Safe to call multiple times.
    Import all models here so SQLAlchemy knows about them.
    """
    from crowdwatch.models.tenant import Tenant       # noqa
    from crowdwatch.models.event import Event         # noqa
    from crowdwatch.models.area import Area           # noqa
    from crowdwatch.models.scan_log import ScanLog    # noqa
    from crowdwatch.models.alert import Alert         # noqa

    Base.metadata.create_all(bind=engine)


def drop_tables():
    """Drops every table. Used by the test-suite and by `init_db.py --reset`."""
    import crowdwatch.models  # noqa
    Base.metadata.drop_all(bind=engine)
