# app/database.py
"""
Database connection, session management, and table creation.
Uses SQLAlchemy; SQLite by default. The engine and session factory used by a
request come from the running app (see app.main.create_app), so tests can
hand in their own in-memory engine.
"""

import os
from fastapi import Request
from sqlalchemy import create_engine
from sqlalchemy.engine import Engine, make_url
from sqlalchemy.orm import declarative_base, sessionmaker
from app.config import settings

Base = declarative_base()


def build_engine(database_url: str) -> Engine:
    """Create an engine; for file-based SQLite make sure the folder exists first."""
    url = make_url(database_url)
    is_sqlite = url.get_backend_name() == "sqlite"
    if is_sqlite and url.database and url.database != ":memory:":
        folder = os.path.dirname(os.path.abspath(url.database))
        os.makedirs(folder, exist_ok=True)

    return create_engine(
        database_url,
        pool_pre_ping=True,          # Auto-reconnect if DB connection drops
        connect_args={"check_same_thread": False} if is_sqlite else {},
        echo=False,                  # Set True to log all SQL queries (debug only)
    )


engine = build_engine(settings.DATABASE_URL)

SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)


def get_db(request: Request):
    """FastAPI dependency — yields a DB session and closes it after request."""
    db = request.app.state.session_factory()
    try:
        yield db
    finally:
        db.close()


def create_tables(bind: Engine = engine):
    """
    Creates all DB tables. Safe to call multiple times.
    Import all models here so SQLAlchemy knows about them.
    """
    from app.models.visitor import Visitor   # noqa

    Base.metadata.create_all(bind=bind)
