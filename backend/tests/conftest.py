import itertools
import os
import sys
from datetime import datetime, timedelta

import pytest

# Ensure the backend root (containing the `bingo` package) is on sys.path
CURRENT_DIR = os.path.dirname(__file__)
BACKEND_ROOT = os.path.abspath(os.path.join(CURRENT_DIR, '..'))
if BACKEND_ROOT not in sys.path:
    sys.path.insert(0, BACKEND_ROOT)

from bingo import create_app, db, socketio
from bingo.sync import DatabaseRoomSync


class TestConfig:
    TESTING = True
    SECRET_KEY = os.environ.get('SECRET_KEY', 'test-secret')
    SQLALCHEMY_DATABASE_URI = 'sqlite://'
    SQLALCHEMY_TRACK_MODIFICATIONS = False
    READY_COUNTDOWN_SEC = 30
    MIN_PLAYERS = 2
    CORS_ORIGINS = ['http://localhost:5173']


@pytest.fixture()
def flask_app():
    application = create_app(TestConfig)
    with application.app_context():
        # Ensure models are imported so tables are created
        import bingo.models  # noqa: F401
        db.create_all()
        yield application
        db.session.remove()
        db.drop_all()


@pytest.fixture()
def client(flask_app):
    return flask_app.test_client()


@pytest.fixture()
def sio_client(flask_app):
    test_client = socketio.test_client(
        flask_app,
        flask_test_client=flask_app.test_client(),
        namespace='/ws'
    )
    yield test_client
    if test_client.is_connected(namespace='/ws'):
        test_client.disconnect(namespace='/ws')


@pytest.fixture()
def clock():
    """Strictly increasing timestamps so join order is deterministic."""
    base = datetime(2026, 1, 1, 12, 0, 0)
    ticks = itertools.count()
    return lambda: base + timedelta(seconds=next(ticks))


@pytest.fixture()
def sync(flask_app, clock):
    return DatabaseRoomSync(clock=clock, emit_events=False)
