# tests/conftest.py
"""Shared fixtures: in-memory SQLite, inline executor, mocked SMTP + QR collaborators."""

import sys
import os
sys.path.insert(0, os.path.join(os.path.dirname(__file__), ".."))

import pytest
from concurrent.futures import Executor, Future
from unittest.mock import MagicMock
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from app.config import settings
from app.database import create_tables
from app.services.broadcaster import UpdateBroadcaster
from app.services.side_effect_dispatcher import SideEffectDispatcher
from app.services.visitor_service import VisitorLifecycle


class InlineExecutor(Executor):
    """Runs submitted work immediately so background jobs are observable in tests."""

    def submit(self, fn, *args, **kwargs):
        future = Future()
        try:
            future.set_result(fn(*args, **kwargs))
        except Exception as e:
            future.set_exception(e)
        return future

    def shutdown(self, wait=True, **kwargs):
        pass


@pytest.fixture
def engine():
    eng = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    create_tables(bind=eng)
    yield eng
    eng.dispose()


@pytest.fixture
def session_factory(engine):
    return sessionmaker(autocommit=False, autoflush=False, bind=engine)


@pytest.fixture
def db(session_factory):
    session = session_factory()
    yield session
    session.close()


@pytest.fixture
def notifier():
    n = MagicMock()
    n.send_approval_request.return_value = {"hr": True, "host": True}
    return n


@pytest.fixture
def badge_generator(tmp_path):
    g = MagicMock()
    g.generate.side_effect = lambda visitor_id: str(tmp_path / f"qr-{visitor_id}.png")
    return g


@pytest.fixture
def broadcaster():
    return MagicMock(spec=UpdateBroadcaster)


@pytest.fixture
def dispatcher(session_factory, notifier, badge_generator):
    return SideEffectDispatcher(InlineExecutor(), session_factory, notifier, badge_generator, settings)


@pytest.fixture
def lifecycle(db, broadcaster, dispatcher):
    return VisitorLifecycle(db, broadcaster, dispatcher)


@pytest.fixture
def client(engine, notifier, badge_generator, tmp_path, monkeypatch):
    monkeypatch.setattr(settings, "UPLOAD_DIR", str(tmp_path / "uploads"))
    from app.main import create_app
    app = create_app(engine=engine, executor=InlineExecutor(),
                     notifier=notifier, badge_generator=badge_generator)
    with TestClient(app) as c:
        yield c
