import copy
import os
import sys
import pytest

# Ensure the project root (containing the `oldheck` package) is on sys.path
CURRENT_DIR = os.path.dirname(__file__)
PROJECT_ROOT = os.path.abspath(os.path.join(CURRENT_DIR, '..'))
if PROJECT_ROOT not in sys.path:
    sys.path.insert(0, PROJECT_ROOT)

from oldheck import create_app, db, socketio
from oldheck.services.heck.session import GameNotFoundError
from oldheck.services.heck.state import DELETE, Game, GameSetup


class TestConfig:
    TESTING = True
    SECRET_KEY = os.environ.get('SECRET_KEY', 'test-secret')
    SQLALCHEMY_DATABASE_URI = 'sqlite://'
    SQLALCHEMY_TRACK_MODIFICATIONS = False
    BID_ADVANCE_DELAY_SEC = 2.0
    RESULTS_AUTO_COMPLETE_SEC = 1.5
    NEXT_ROUND_DELAY_SEC = 0.5
    MIN_PLAYERS = 2
    MAX_DECKS = 4
    DEFAULT_DECKS = 1
    TIMER_HEARTBEAT_SEC = 0


class MemoryStore:
    """Dict-backed stand-in for the document store, for tests that need no database."""

    def __init__(self):
        self.docs = {}
        self.versions = {}
        self.subscribers = {}
        self.patches = []
        self.fail_patches = False

    def create(self, game):
        game_id = f"g{len(self.docs) + 1}"
        self.docs[game_id] = game.to_dict()
        self.versions[game_id] = 0
        return game_id

    def read(self, game_id):
        doc = self.docs.get(game_id)
        return Game.from_dict(copy.deepcopy(doc)) if doc is not None else None

    def patch(self, game_id, fields):
        if self.fail_patches:
            raise RuntimeError('store unavailable')
        if game_id not in self.docs:
            raise GameNotFoundError(game_id)
        self.patches.append(fields)
        doc = self.docs[game_id]
        for key, value in fields.items():
            if value is DELETE:
                doc.pop(key, None)
            else:
                doc[key] = copy.deepcopy(value)
        self.versions[game_id] += 1
        for on_snapshot, _ in list(self.subscribers.get(game_id, [])):
            on_snapshot(self.read(game_id), self.versions[game_id])

    def subscribe(self, game_id, on_snapshot, on_error):
        entry = (on_snapshot, on_error)
        self.subscribers.setdefault(game_id, []).append(entry)

        def unsubscribe():
            self.subscribers.get(game_id, []).remove(entry)

        if game_id not in self.docs:
            on_error(GameNotFoundError(game_id))
        else:
            on_snapshot(self.read(game_id), self.versions[game_id])
        return unsubscribe


@pytest.fixture()
def memory_store():
    return MemoryStore()


@pytest.fixture()
def two_player_game(memory_store):
    game = Game.start(GameSetup.build(['Alice', 'Bob'], decks=1))
    return memory_store.create(game)


@pytest.fixture()
def flask_app(tmp_path):
    TestConfig.SHARE_SESSION_DIR = str(tmp_path / 'share_sessions')
    application = create_app(TestConfig)
    with application.app_context():
        # Ensure models are imported so tables are created
        import oldheck.models  # noqa: F401
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
    try:
        test_client.disconnect(namespace='/ws')
    except Exception:
        pass
