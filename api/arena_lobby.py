from flask import Blueprint, current_app, jsonify
from flask_cors import CORS
import logging

from model.arena_config import get_game_config

arena_api = Blueprint('arena_api', __name__, url_prefix='/api/arena')
CORS(arena_api, supports_credentials=True, origins=[
    'http://localhost:4500',
    'http://127.0.0.1:4500',
    'http://localhost:3000',
])
logger = logging.getLogger(__name__)


def _registry():
    return current_app.extensions['arena_registry']


@arena_api.route('/rooms', methods=['GET'])
def list_rooms():
    """Open lobbies waiting for a second player"""
    try:
        lobbies = _registry().list_open_rooms()
        return jsonify({'lobbies': lobbies, 'count': len(lobbies)}), 200

    except Exception as e:
        logger.error(f"Error listing rooms: {str(e)}")
        return jsonify({'error': 'Failed to list rooms'}), 500


@arena_api.route('/rooms/<code>', methods=['GET'])
def get_room(code):
    try:
        room = _registry().find(code)
        if room is None:
            return jsonify({'error': f'Room {code.upper()} not found'}), 404
        return jsonify(room.summary()), 200

    except Exception as e:
        logger.error(f"Error getting room {code}: {str(e)}")
        return jsonify({'error': 'Failed to get room'}), 500


@arena_api.route('/config', methods=['GET'])
def get_config():
    """Client-facing tuning: arena size, weapons, powerups and cover layout"""
    try:
        return jsonify(get_game_config(current_app.config['ARENA_SETTINGS'])), 200

    except Exception as e:
        logger.error(f"Error building game config: {str(e)}")
        return jsonify({'error': 'Failed to get config'}), 500
