"""Engine and session factory for the admissions store.

SQLite ignores ``SELECT ... FOR UPDATE``, so for SQLite URLs every transaction is
opened with ``BEGIN IMMEDIATE``: the write lock is taken before the first read,
which serialises read-validate-write units of work across connections.
"""

from sqlalchemy import create_engine, event
from sqlalchemy.orm import sessionmaker

from admissions.app.core.settings import get_settings


def _build_engine(database_url: str, busy_timeout: int):
    if not database_url.startswith("sqlite"):
        return create_engine(database_url, pool_pre_ping=True)

    sqlite_engine = create_engine(
        database_url,
        connect_args={"check_same_thread": False, "timeout": busy_timeout},
    )

    @event.listens_for(sqlite_engine, "connect")
    def _disable_pysqlite_begin(dbapi_connection, connection_record):
        # pysqlite would otherwise emit its own deferred BEGIN
        dbapi_connection.isolation_level = None

    @event.listens_for(sqlite_engine, "begin")
    def _begin_immediate(conn):
        conn.exec_driver_sql("BEGIN IMMEDIATE")

    return sqlite_engine


settings = get_settings()
engine = _build_engine(settings.database_url, settings.sqlite_busy_timeout_seconds)
SessionLocal = sessionmaker(bind=engine, autoflush=False, expire_on_commit=False)


def get_db():
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()
