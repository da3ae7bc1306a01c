"""
Database setup for the FastAPI backend.
Provides SQLAlchemy engine/session utilities (SQLite by default).
"""
from sqlalchemy import create_engine
from sqlalchemy.orm import declarative_base, sessionmaker

from settings import settings


DATABASE_URL = settings.DATABASE_URL


def _connect_args(url: str) -> dict:
    # check_same_thread=False allows usage across FastAPI threads
    if url.startswith("sqlite"):
        return {"check_same_thread": False}
    return {}


engine = create_engine(DATABASE_URL, connect_args=_connect_args(DATABASE_URL))
SessionLocal = sessionmaker(bind=engine, autoflush=False, autocommit=False)
Base = declarative_base()


def init_db(bind=None) -> None:
    """Create tables if they don't exist."""
    from repositories import models  # noqa: F401  Ensures models are registered

    Base.metadata.create_all(bind=bind or engine)

