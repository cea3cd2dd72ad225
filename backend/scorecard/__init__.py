from flask import Flask
from flask_sqlalchemy import SQLAlchemy
from flask_cors import CORS
from flask_migrate import Migrate
from flask_socketio import SocketIO
import click
from config import Config

db = SQLAlchemy()
migrate = Migrate()
socketio = SocketIO(async_mode=None)


def create_app(config_class=Config):
    flask_app = Flask(__name__)
    flask_app.config.from_object(config_class)
    flask_app.logger.setLevel(flask_app.config.get('LOG_LEVEL', 'INFO'))

    allowed_origins = flask_app.config.get('CORS_ORIGINS') or []

    db.init_app(flask_app)
    migrate.init_app(flask_app, db)
    CORS(flask_app, supports_credentials=True, origins=allowed_origins)

    # Initialize Socket.IO after app is created
    socketio.init_app(flask_app, cors_allowed_origins=allowed_origins)

    # Session store backing every score change
    from scorecard.services.store import create_store
    flask_app.extensions['session_store'] = create_store(
        flask_app.config.get('SESSION_STORE', 'sql'),
        id_length=int(flask_app.config.get('SESSION_ID_LENGTH', 7)),
    )
    flask_app.logger.info(f"[init] session store={flask_app.config.get('SESSION_STORE', 'sql')}")

    # Ensure models are registered on the metadata for migrations and create_all
    import scorecard.models  # noqa: F401

    from scorecard.api.sessions import sessions
    flask_app.register_blueprint(sessions, url_prefix='/api/sessions')

    from scorecard.socketio_events import register_socketio_handlers
    register_socketio_handlers(flask_app, testing=flask_app.config.get('TESTING', False))

    @click.command('db-reset')
    @click.option('--seed/--no-seed', default=True, help='Create a demo session with two players.')
    def db_reset_command(seed):
        """Drops, recreates, and optionally seeds the database."""
        from scorecard.services.store import get_store, generate_player_id
        with flask_app.app_context():
            db.drop_all()
            db.create_all()

            if seed:
                store = get_store()
                session_id = store.create_session()
                for name in ('Alice', 'Bob'):
                    store.join_session(session_id, generate_player_id(), name)
                click.echo(f'Seeded demo session {session_id}')

            click.echo('Database has been reset!')

    flask_app.cli.add_command(db_reset_command)

    return flask_app
