"""
Database Engine & Session Management
SQLAlchemy setup with dependency injection for FastAPI.
"""
import os
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker, declarative_base
from sqlalchemy.pool import StaticPool

from ussd_engine.config import get_settings

settings = get_settings()


def _engine_options(url: str) -> dict:
    if not url.startswith("sqlite"):
        return {}
    options = {"connect_args": {"check_same_thread": False}}  # Required for SQLite
    path = url.replace("sqlite:///", "", 1) if url.startswith("sqlite:///") else ""
    if not path or path == ":memory:":
        # One shared connection, otherwise every checkout sees an empty database
        options["poolclass"] = StaticPool
    else:
        os.makedirs(os.path.dirname(path) or ".", exist_ok=True)
    return options


engine = create_engine(
    settings.DATABASE_URL,
    echo=settings.DEBUG,
    **_engine_options(settings.DATABASE_URL),
)

SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)

Base = declarative_base()


def get_db():
    """FastAPI dependency: yields a database session, auto-closes on finish."""
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


def init_db():
    """Create all tables. Called once at application startup."""
    from ussd_engine.models import ussd_session as _ussd_session_model  # noqa: F401

    Base.metadata.create_all(bind=engine)
