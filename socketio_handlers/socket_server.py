# imports from flask
import logging
import os

from dotenv import load_dotenv
from flask import Flask, jsonify, request
from flask_cors import CORS
from flask_socketio import SocketIO

from model.arena_config import ArenaSettings, settings_from_env

from .arena_events import init_arena_socket

logger = logging.getLogger(__name__)

DEFAULT_CORS_ORIGINS = [
    'http://localhost:4500',
    'http://127.0.0.1:4500',
    'http://localhost:3000',
]


def _cors_origins():
    raw = os.environ.get('CORS_ORIGINS')
    if not raw:
        return DEFAULT_CORS_ORIGINS
    if raw.strip() == '*':
        return '*'
    return [origin.strip() for origin in raw.split(',') if origin.strip()]


def create_app(settings: ArenaSettings = None, scheduler=None):
    """Build the Flask app and its Socket.IO server. Returns ``(app, socketio)``."""
    load_dotenv()

    app = Flask(__name__)
    app.config['SECRET_KEY'] = os.environ.get('SECRET_KEY') or 'arena-secret-key-change-this'
    app.config['FLASK_PORT'] = int(os.environ.get('FLASK_PORT') or 8500)
    app.config['CORS_ORIGINS'] = _cors_origins()
    app.config['LOG_LEVEL'] = (os.environ.get('LOG_LEVEL') or 'INFO').upper()

    logging.basicConfig(
        level=getattr(logging, app.config['LOG_LEVEL'], logging.INFO),
        format='%(asctime)s %(levelname)s %(name)s: %(message)s',
    )

    # Add CORS support for the Flask app
    CORS(app, origins=app.config['CORS_ORIGINS'], supports_credentials=True)

    # Socket.IO server for the real-time arena
    async_mode = os.environ.get('SOCKETIO_ASYNC_MODE') or 'threading'
    debug_sockets = app.config['LOG_LEVEL'] == 'DEBUG'
    socketio = SocketIO(
        app,
        cors_allowed_origins='*',
        async_mode=async_mode,
        logger=debug_sockets,
        engineio_logger=debug_sockets,
        ping_timeout=60,
        ping_interval=25,
    )

    settings = settings or settings_from_env()
    app.config['ARENA_SETTINGS'] = settings
    app.extensions['arena_registry'] = init_arena_socket(socketio, settings, scheduler=scheduler)

    from api.arena_lobby import arena_api
    app.register_blueprint(arena_api)

    # Health check endpoint
    @app.route('/health')
    def health_check():
        registry = app.extensions['arena_registry']
        return jsonify({
            'status': 'ok',
            'service': 'arena-server',
            'rooms': len(registry),
        }), 200

    @app.route('/')
    def index():
        return jsonify({
            'status': 'ok',
            'service': 'arena-server',
            'endpoints': {
                'health': '/health',
                'rooms': '/api/arena/rooms',
                'config': '/api/arena/config',
                'socket': 'ws://host:port/socket.io/',
            },
        }), 200

    @socketio.on('connect')
    def handle_connect():
        logger.info('Client connected: %s', request.sid)

    return app, socketio
