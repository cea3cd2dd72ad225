import os
import sys
import pytest

# Ensure the backend root (containing the `scorecard` package) is on sys.path
CURRENT_DIR = os.path.dirname(__file__)
BACKEND_ROOT = os.path.abspath(os.path.join(CURRENT_DIR, '..'))
if BACKEND_ROOT not in sys.path:
    sys.path.insert(0, BACKEND_ROOT)

from scorecard import create_app, db, socketio
from scorecard.services.player import Player


class TestConfig:
    TESTING = True
    SECRET_KEY = os.environ.get('SECRET_KEY', 'test-secret')
    SQLALCHEMY_DATABASE_URI = 'sqlite://'
    SQLALCHEMY_TRACK_MODIFICATIONS = False
    SESSION_STORE = 'sql'
    SESSION_ID_LENGTH = 7
    LOG_LEVEL = 'DEBUG'
    CORS_ORIGINS = ['http://localhost:5173']


class MemoryStoreConfig(TestConfig):
    SESSION_STORE = 'memory'


@pytest.fixture(params=[TestConfig, MemoryStoreConfig], ids=['sql', 'memory'])
def flask_app(request):
    application = create_app(request.param)
    with application.app_context():
        db.create_all()
        yield application
        from scorecard.socketio_events import reset_subscriptions
        reset_subscriptions()
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
    try:
        test_client.disconnect(namespace='/ws')
    except Exception:
        pass


@pytest.fixture()
def make_player():
    """Build a Player with consistent totals from a list of banked rounds."""
    def _make(player_id='p1', name='Alice', rounds=(), current_round_score=0, used=()):
        rounds = tuple(rounds)
        return Player(
            id=player_id,
            name=name,
            total_score=sum(rounds),
            current_round_score=current_round_score,
            rounds=rounds,
            current_round_number=len(rounds) + 1,
            used_cards_this_round=frozenset(used),
        )
    return _make
