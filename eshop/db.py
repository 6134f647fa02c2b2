from sqlalchemy import create_engine, event
from sqlalchemy.engine import Engine
from sqlalchemy.orm import sessionmaker, declarative_base

from .config import get_settings


def _enable_sqlite_foreign_keys(dbapi_connection, connection_record):
    # order_items.order_id is the only real FK; the other references are unconstrained
    cursor = dbapi_connection.cursor()
    cursor.execute("PRAGMA foreign_keys=ON")
    cursor.close()


def build_engine(url: str) -> Engine:
    """Engine for the shop database. SQLite sessions are shared across FastAPI worker threads."""
    if url.startswith("sqlite"):
        shop_engine = create_engine(url, connect_args={"check_same_thread": False}, future=True)
        event.listen(shop_engine, "connect", _enable_sqlite_foreign_keys)
        return shop_engine
    return create_engine(url, pool_pre_ping=True, future=True)


engine = build_engine(get_settings().database_url)
SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine, future=True)
Base = declarative_base()


def get_db():
    """FastAPI dependency: one session per request."""
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()
