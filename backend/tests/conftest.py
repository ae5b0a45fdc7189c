import os
import sys
import time
import pytest

# Ensure the backend root (containing the `trivia` package) is on sys.path
CURRENT_DIR = os.path.dirname(__file__)
BACKEND_ROOT = os.path.abspath(os.path.join(CURRENT_DIR, '..'))
if BACKEND_ROOT not in sys.path:
    sys.path.insert(0, BACKEND_ROOT)

from trivia import create_app, db, socketio
from trivia.services.games.channel import ChangeChannel, FanOutChannel


class TestConfig:
    TESTING = True
    SECRET_KEY = os.environ.get('SECRET_KEY', 'test-secret')
    SQLALCHEMY_DATABASE_URI = 'sqlite://'
    SQLALCHEMY_TRACK_MODIFICATIONS = False
    BCRYPT_LOG_ROUNDS = 4
    CORS_ORIGINS = []
    QUESTION_TIME_SEC = 20
    TOTAL_QUESTIONS = 10
    READ_ALOUD_ENABLED = False
    READ_ALOUD_SEC = 7
    DEFAULT_SCORE_POLICY = 'speed_table'
    DEFAULT_QUESTION_SOURCE = 'bank'
    REVEAL_ANSWER_SEC = 5
    REVEAL_WINNERS_SEC = 5
    QUESTION_API_URL = 'http://questions.invalid/v1/chat/completions'
    QUESTION_FALLBACK_ENABLED = True
    ALLOW_LATE_JOIN = True
    CONTROLLER_DEBOUNCE_MS = 0


class RecordingChannel(ChangeChannel):
    """Keeps every published event so tests can assert on ordering and content."""

    def __init__(self):
        self.events = []

    def emit(self, game_code, event, payload):
        self.events.append((game_code, event, payload))

    def names(self, game_code=None):
        return [e for code, e, _ in self.events if game_code is None or code == game_code]

    def of(self, event):
        return [p for _, e, p in self.events if e == event]

    def clear(self):
        self.events.clear()


@pytest.fixture()
def flask_app():
    application = create_app(TestConfig)
    with application.app_context():
        # Ensure models are imported so tables are created
        import trivia.models  # noqa: F401
        db.create_all()
        yield application
        db.session.remove()
        db.drop_all()


@pytest.fixture()
def channel(flask_app):
    recorder = RecordingChannel()
    flask_app.extensions['trivia_channel'] = FanOutChannel(flask_app.extensions['trivia_channel'], recorder)
    return recorder


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
def make_game(flask_app):
    from trivia.models import Game

    def _make(**overrides):
        values = dict(
            status='waiting',
            current_question=0,
            question_time_seconds=20,
            total_questions=10,
            read_aloud_enabled=False,
            read_aloud_seconds=7,
            answering_enabled=False,
            loading=False,
            question_source='bank',
            score_policy='speed_table',
            version=0,
            created_at=time.time(),
        )
        values.update(overrides)
        game = Game(**values)
        game.set_host_token('host-secret')
        db.session.add(game)
        db.session.commit()
        return game

    return _make


@pytest.fixture()
def add_teams(flask_app):
    from trivia.services.games.roster import join_team

    def _add(game, *names):
        return [join_team(game, name) for name in names]

    return _add
