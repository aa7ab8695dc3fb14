"""Database configuration and session management."""
from sqlalchemy import create_engine
from sqlalchemy.orm import declarative_base, sessionmaker
from sqlalchemy.pool import StaticPool

from .config import get_settings


def build_engine(database_url: str):
    """Create an engine, sharing one connection for SQLite databases."""
    engine_kwargs = {"echo": False}
    if database_url.startswith("sqlite"):
        engine_kwargs.update(
            {
                "poolclass": StaticPool,
                "connect_args": {"check_same_thread": False},
            }
        )
    else:
        engine_kwargs["pool_pre_ping"] = True
    return create_engine(database_url, **engine_kwargs)


DATABASE_URL = get_settings().database_url

engine = build_engine(DATABASE_URL)

# Create session factory
SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)

# Create base class for models
Base = declarative_base()


def create_tables(bind=None):
    """Create all database tables."""
    Base.metadata.create_all(bind=bind or engine)


def drop_tables(bind=None):
    """Drop all database tables."""
    Base.metadata.drop_all(bind=bind or engine)
