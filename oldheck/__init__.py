from flask import Flask
from flask_sqlalchemy import SQLAlchemy
from flask_cors import CORS
from flask_migrate import Migrate
from flask_socketio import SocketIO
import click
from config import Config

db = SQLAlchemy()
migrate = Migrate()
allowed_origins = [
    "http://localhost:5173",
    "http://127.0.0.1:5173",
    "http://localhost:5174",
    "http://127.0.0.1:5174",
]
socketio = SocketIO(cors_allowed_origins=allowed_origins, async_mode=None)

from oldheck.store import DocumentStore  # noqa: E402  (needs db and socketio above)

store = DocumentStore()


def create_app(config_class=Config):
    flask_app = Flask(__name__)
    flask_app.config.from_object(config_class)

    db.init_app(flask_app)
    migrate.init_app(flask_app, db)
    store.init_app(flask_app)
    CORS(flask_app, supports_credentials=True, origins=allowed_origins)

    # Initialize Socket.IO after app is created
    socketio.init_app(flask_app, cors_allowed_origins=allowed_origins)

    from oldheck.main import main
    flask_app.register_blueprint(main)

    from oldheck.api.games import games
    # Mount game routes under /api to match frontend API client
    flask_app.register_blueprint(games, url_prefix='/api/games')

    # Register Socket.IO event handlers
    from oldheck.socketio_events import register_socketio_handlers
    register_socketio_handlers(testing=flask_app.config.get('TESTING', False))

    @click.command('db-reset')
    def db_reset_command():
        """Drops and recreates the game tables."""
        import oldheck.models  # noqa: F401
        with flask_app.app_context():
            db.drop_all()
            db.create_all()
            print('Database has been reset!')

    @click.command('new-game')
    @click.argument('players', nargs=-1, required=True)
    @click.option('--decks', default=None, type=int, help='Number of decks in play.')
    @click.option('--first', 'first_player_index', default=0, type=int, help='Seat that bids first in round 1.')
    def new_game_command(players, decks, first_player_index):
        """Creates a game for PLAYERS (in seat order) and prints its id."""
        from oldheck.services.heck.state import Game, GameSetup
        decks = decks or flask_app.config.get('DEFAULT_DECKS', 1)
        setup = GameSetup.build(list(players), decks, first_player_index)
        game_id = store.create(Game.start(setup))
        print(game_id)

    @click.command('claim-share')
    @click.argument('game_id')
    @click.argument('token')
    def claim_share_command(game_id, token):
        """Claims a share link for this machine and remembers it locally."""
        from oldheck.share import ShareSessionCache, ShareTokenError, claim_share_token
        cache = ShareSessionCache(flask_app.config['SHARE_SESSION_DIR'])
        session = cache.get(game_id)
        if session is None or session.token != token:
            session = cache.create(game_id, token)
        try:
            claim_share_token(store, game_id, token, session.session_id)
        except (LookupError, ShareTokenError) as exc:
            raise click.ClickException(f'Could not claim share link: {exc}')
        print(f'Claimed {game_id} as session {session.session_id}')
        print('Access ok' if cache.has_access(store.read(game_id)) else 'Access not confirmed')

    flask_app.cli.add_command(db_reset_command)
    flask_app.cli.add_command(new_game_command)
    flask_app.cli.add_command(claim_share_command)

    return flask_app
