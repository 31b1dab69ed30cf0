from datetime import datetime, timedelta

import pytest

from rollcall.app import create_app
from rollcall.config import TestingConfig
from rollcall.models import db

T0 = datetime(2026, 3, 2, 9, 0, 0)

ROSTERS = {
    "CS101": ["alice", "bob", "carol", "dave"],
    "MA201": ["erin"],
}


@pytest.fixture
def make_app(tmp_path):
    apps = []

    def factory(**overrides):
        settings = {
            # A file database so worker threads get their own connections
            "SQLALCHEMY_DATABASE_URI": f"sqlite:///{tmp_path / 'attendance.db'}",
            "SQLALCHEMY_ENGINE_OPTIONS": {"connect_args": {"timeout": 30}},
            "COURSE_ROSTERS": ROSTERS,
            "LOG_LEVEL": "DEBUG",
        }
        settings.update(overrides)
        app = create_app(TestingConfig, **settings)
        apps.append(app)
        return app

    yield factory

    for app in apps:
        with app.app_context():
            db.session.remove()
            db.engine.dispose()


@pytest.fixture
def app(make_app):
    return make_app()


@pytest.fixture
def app_ctx(app):
    with app.app_context():
        yield app


@pytest.fixture
def engine(app_ctx):
    return app_ctx.extensions["rollcall"]


@pytest.fixture
def t():
    """Seconds after T0 as a datetime."""

    def at(seconds):
        return T0 + timedelta(seconds=seconds)

    return at


@pytest.fixture
def open_session(engine, t):
    def opener(course_id="CS101", slot_id="mon-0900", venue="Room 4", duration=3600, instructor="prof", start=0):
        return engine.sessions.open(course_id, slot_id, venue, duration, instructor, at=t(start))

    return opener
