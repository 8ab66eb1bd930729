from flask import Flask, jsonify
from flask_sqlalchemy import SQLAlchemy
from flask_bcrypt import Bcrypt
from flask_login import LoginManager
from flask_cors import CORS
from flask_migrate import Migrate
from flask_socketio import SocketIO
import logging
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
    flask_app.logger.setLevel(logging.DEBUG if flask_app.debug else logging.INFO)
    allowed_origins = flask_app.config.get('CORS_ORIGINS') or []

    db.init_app(flask_app)
    bcrypt.init_app(flask_app)
    login_manager.init_app(flask_app)
    migrate.init_app(flask_app, db)
    CORS(flask_app, supports_credentials=True, origins=allowed_origins)
    socketio.init_app(flask_app, cors_allowed_origins=allowed_origins)

    from poker.rooms import RoomRegistry
    from poker.audit import AuditLogger
    from poker.version import VersionInfo

    # Rooms live for the lifetime of this app object only
    registry = RoomRegistry(id_length=flask_app.config.get('ROOM_ID_LENGTH', 8))
    flask_app.extensions['room_registry'] = registry
    audit = AuditLogger(flask_app, socketio)
    flask_app.extensions['version_info'] = VersionInfo(flask_app.config.get('APP_ENV', 'development'))

    from poker.main import main
    flask_app.register_blueprint(main)

    from poker.admin import admin
    flask_app.register_blueprint(admin, url_prefix='/admin')

    from poker.socketio_events import register_socketio_handlers
    register_socketio_handlers(
        socketio, registry, audit,
        namespace=flask_app.config.get('SOCKETIO_NAMESPACE', '/'),
    )

    if flask_app.config.get('AUTO_CREATE_TABLES'):
        with flask_app.app_context():
            db.create_all()

    from poker.models import AdminUser

    @login_manager.user_loader
    def load_user(user_id):
        if user_id == flask_app.config.get('ADMIN_USERNAME'):
            return AdminUser(user_id)
        return None

    @login_manager.unauthorized_handler
    def unauthorized():
        return jsonify({'error': 'Admin authentication required'}), 401

    @click.command('init-db')
    def init_db_command():
        """Creates the audit log tables."""
        with flask_app.app_context():
            db.create_all()
            print('Database tables created.')

    @click.command('hash-password')
    @click.argument('password')
    def hash_password_command(password):
        """Prints a bcrypt hash for ADMIN_PASSWORD_HASH."""
        print(bcrypt.generate_password_hash(password).decode('utf-8'))

    flask_app.cli.add_command(init_db_command)
    flask_app.cli.add_command(hash_password_command)

    return flask_app


def run_options(flask_app):
    """Keyword arguments for ``socketio.run`` derived from the app config."""
    debug = flask_app.config.get('APP_ENV') == 'development'
    options = {
        'host': '0.0.0.0',
        'port': flask_app.config.get('PORT', 3000),
        'debug': debug,
    }
    if debug:
        # Werkzeug is only acceptable as the dev server
        options['allow_unsafe_werkzeug'] = True
    return options
