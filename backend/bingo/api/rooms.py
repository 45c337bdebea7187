from flask import Blueprint, jsonify, request, current_app
from bingo import socketio
from bingo.client import RoomClient, reconcile_room
from bingo.errors import BingoError, PlayerNotFound, ValidationError
from bingo.services.game.board import BOARD_SIZE
from bingo.sync import DatabaseRoomSync, room_channel


rooms = Blueprint('rooms', __name__)


@rooms.errorhandler(BingoError)
def handle_bingo_error(exc):
    if exc.status_code >= 500:
        current_app.logger.error(f"[api-error] {request.path}: {exc}")
    return jsonify({'error': str(exc), 'retryable': exc.status_code >= 500}), exc.status_code


def _sync():
    return DatabaseRoomSync()


def _min_players():
    return int(current_app.config.get('MIN_PLAYERS', 2))


def _countdown_sec():
    # Thin clients run the ready countdown locally
    return int(current_app.config.get('READY_COUNTDOWN_SEC', 30))


def _acting_client(sync, room_id, data, board=None):
    """Client for the player named in the request, loaded with the latest snapshot."""
    player_id = data.get('player_id')
    if not player_id:
        raise ValidationError('player_id is required')
    client = RoomClient.for_player(sync, room_id, str(player_id), board=board, min_players=_min_players())
    client.load()
    if client.machine.me is None:
        raise PlayerNotFound(player_id, room_id.upper())
    return client


def _parse_board(raw):
    if raw is None:
        return None
    if not isinstance(raw, list) or len(raw) != BOARD_SIZE:
        raise ValidationError(f'board must be a list of {BOARD_SIZE} cells')
    try:
        return [int(v) if v is not None else None for v in raw]
    except (TypeError, ValueError):
        raise ValidationError('board cells must be integers or null')


@rooms.route('/create', methods=['POST'])
def create_room():
    data = request.get_json(silent=True) or {}
    sync = _sync()
    client = RoomClient(sync, player_id=data.get('player_id'), countdown_sec=None, min_players=_min_players())
    room_id = client.create_room(data.get('name'))
    client.attach()
    current_app.logger.info(f"[create] room={room_id} player={client.player_id}")
    return jsonify({
        'message': 'New room created!',
        'room_id': room_id,
        'player_id': client.player_id,
        'name': client.name,
        'countdown_sec': _countdown_sec(),
    }), 201


@rooms.route('/join', methods=['POST'])
def join_room():
    data = request.get_json(silent=True) or {}
    sync = _sync()
    client = RoomClient(sync, player_id=data.get('player_id'), countdown_sec=None, min_players=_min_players())
    room_id = client.join_room(data.get('room_id'), data.get('name'))
    client.attach()
    # Let the other participants react to the new roster (setup relabel)
    reconcile_room(sync, room_id, _min_players())
    current_app.logger.info(f"[join] room={room_id} player={client.player_id}")
    return jsonify({
        'room_id': room_id,
        'player_id': client.player_id,
        'name': client.name,
        'status': sync.get_room(room_id).status.value,
        'countdown_sec': _countdown_sec(),
    }), 201


@rooms.route('/<string:room_id>/state', methods=['GET'])
def get_room_state(room_id):
    sync = _sync()
    viewer_id = request.args.get('viewer_id') or ''
    client = RoomClient.for_player(sync, room_id, viewer_id, min_players=_min_players())
    client.load()
    return jsonify(client.view())


@rooms.route('/<string:room_id>/ready', methods=['POST'])
def ready(room_id):
    data = request.get_json(silent=True) or {}
    sync = _sync()
    client = _acting_client(sync, room_id, data, board=_parse_board(data.get('board')))
    accepted = client.ready()
    reconcile_room(sync, room_id, _min_players())
    client.load()
    payload = client.view()
    payload['accepted'] = accepted
    return jsonify(payload), 200 if accepted else 409


@rooms.route('/<string:room_id>/pick', methods=['POST'])
def pick(room_id):
    data = request.get_json(silent=True) or {}
    if data.get('value') is None:
        raise ValidationError('value is required')
    sync = _sync()
    client = _acting_client(sync, room_id, data)
    accepted = client.pick(data.get('value'))
    if accepted:
        # Every participant checks its own board against the new pick
        reconcile_room(sync, room_id, _min_players())
    client.load()
    payload = client.view()
    payload['accepted'] = accepted
    return jsonify(payload), 200 if accepted else 409


@rooms.route('/<string:room_id>/rematch', methods=['POST'])
def rematch(room_id):
    data = request.get_json(silent=True) or {}
    sync = _sync()
    client = _acting_client(sync, room_id, data)
    previous = client.room_id
    new_room_id = client.rematch()
    if new_room_id is None:
        raise ValidationError('Rematch is only available after the game finished')
    # Tell everyone still looking at the old room where to go
    socketio.emit('rematch_started', {'from': previous, 'to': new_room_id}, to=room_channel(previous), namespace='/ws')
    current_app.logger.info(f"[rematch] room={previous} -> {new_room_id} by player={client.player_id}")
    return jsonify({'room_id': new_room_id, 'player_id': client.player_id}), 201
