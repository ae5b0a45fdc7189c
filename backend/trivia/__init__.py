from flask import Flask, jsonify
from flask_sqlalchemy import SQLAlchemy
from flask_bcrypt import Bcrypt
from flask_login import LoginManager
from flask_cors import CORS
from flask_migrate import Migrate
from flask_socketio import SocketIO
import click
from config import Config

db = SQLAlchemy()
bcrypt = Bcrypt()
login_manager = LoginManager()
migrate = Migrate()
socketio = SocketIO(async_mode=None)


def create_app(config_class=Config):
    flask_app = Flask(__name__)
    flask_app.config.from_object(config_class)
    allowed_origins = flask_app.config.get('CORS_ORIGINS') or []

    db.init_app(flask_app)
    bcrypt.init_app(flask_app)
    login_manager.init_app(flask_app)
    migrate.init_app(flask_app, db)
    CORS(flask_app, supports_credentials=True, origins=allowed_origins)

    # Initialize Socket.IO after app is created
    socketio.init_app(flask_app, cors_allowed_origins=allowed_origins)

    # Change distribution: every state write is fanned out through this channel
    from trivia.services.games.channel import SocketIOChannel
    flask_app.extensions['trivia_channel'] = SocketIOChannel(socketio)

    from trivia.main import main
    flask_app.register_blueprint(main)

    from trivia.api.games import games
    flask_app.register_blueprint(games, url_prefix='/api/games')

    from trivia.socketio_events import register_socketio_handlers
    register_socketio_handlers(testing=flask_app.config.get('TESTING', False))

    # Host actions authenticate with the per-game token issued on create
    from trivia.models import Game, HostSession

    @login_manager.request_loader
    def load_host(req):
        token = req.headers.get('X-Host-Token')
        game_code = (req.view_args or {}).get('game_code')
        if not token or not game_code:
            return None
        game = Game.query.filter_by(game_code=game_code.upper()).first()
        if game and game.check_host_token(token):
            return HostSession(game.id)
        return None

    @login_manager.unauthorized_handler
    def unauthorized():
        return jsonify({'error': 'Host token required'}), 401

    @click.command('db-reset')
    def db_reset_command():
        """Drops and recreates all tables."""
        with flask_app.app_context():
            db.drop_all()
            db.create_all()
            print('Database has been reset!')

    @click.command('purge-finished')
    @click.option('--days', default=7, show_default=True, help='Age in days of finished games to delete.')
    def purge_finished_command(days):
        """Deletes finished games (and their teams and answers) older than --days."""
        from trivia.services.games.housekeeping import purge_finished_games
        with flask_app.app_context():
            removed = purge_finished_games(days)
            print(f'Purged {removed} finished game(s).')

    flask_app.cli.add_command(db_reset_command)
    flask_app.cli.add_command(purge_finished_command)

    return flask_app
