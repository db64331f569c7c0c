"""Database engine and session management"""

from sqlalchemy import create_engine, event
from sqlalchemy.engine import Engine
from sqlalchemy.orm import sessionmaker, Session
from obligations_gateway.config import settings


def build_engine(database_url: str) -> Engine:
    """
    Create an engine whose sessions support per-item SAVEPOINTs.

    Postgres gets a recycled connection pool. SQLite (local runs and tests)
    needs pysqlite's implicit transaction handling turned off so that
    begin_nested() emits real SAVEPOINTs.
    """
    if not database_url.startswith("sqlite"):
        return create_engine(
            database_url,
            pool_pre_ping=True,
            pool_size=settings.db_pool_size,
            max_overflow=settings.db_max_overflow,
            pool_recycle=settings.db_pool_recycle_seconds,
        )

    engine = create_engine(database_url, connect_args={"check_same_thread": False})

    @event.listens_for(engine, "connect")
    def _disable_pysqlite_transactions(dbapi_connection, connection_record):
        dbapi_connection.isolation_level = None

    @event.listens_for(engine, "begin")
    def _emit_begin(conn):
        conn.exec_driver_sql("BEGIN")

    return engine


engine = build_engine(settings.database_url)

SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)


def get_db() -> Session:
    """One session per request; the route decides when to commit"""
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()
