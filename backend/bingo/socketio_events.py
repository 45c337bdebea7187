from flask import request
from flask_socketio import join_room, leave_room, emit
from bingo import socketio
from bingo.models import normalize_room_code
from bingo.sync import room_channel
from typing import Dict, Set


# sid -> room codes the socket follows
_sid_rooms: Dict[str, Set[str]] = {}


def _get_sid() -> str:
    # type: ignore: request.sid exists in Socket.IO context
    return request.sid  # type: ignore


def _room_code(data):
    return normalize_room_code((data or {}).get('room_id'))


def _followed():
    return sorted(_sid_rooms.get(_get_sid(), ()))


def handle_connect(auth=None):
    emit('connected', {'message': 'Connected to /ws'})


def handle_disconnect(reason=None):
    _sid_rooms.pop(_get_sid(), None)


def handle_subscribe_room(data):
    room_id = _room_code(data)
    if not room_id:
        emit('error', {'message': 'room_id is required'})
        return
    channel = room_channel(room_id)
    join_room(channel)
    _sid_rooms.setdefault(_get_sid(), set()).add(room_id)
    emit('subscribed', {'room': channel, 'room_id': room_id, 'rooms': _followed()})


def handle_unsubscribe_room(data):
    room_id = _room_code(data)
    if not room_id:
        emit('error', {'message': 'room_id is required'})
        return
    channel = room_channel(room_id)
    leave_room(channel)
    _sid_rooms.get(_get_sid(), set()).discard(room_id)
    emit('unsubscribed', {'room': channel, 'room_id': room_id, 'rooms': _followed()})


def handle_ping(data=None):
    emit('pong', data or {})


def register_socketio_handlers(testing: bool = False) -> None:
    """Register Socket.IO event handlers.

    Always register on namespace '/ws'. When testing is True, also mirror
    handlers on the default namespace '/' to accommodate the test harness.
    """
    namespaces = ['/ws', '/'] if testing else ['/ws']
    for namespace in namespaces:
        socketio.on_event('connect', handle_connect, namespace=namespace)
        socketio.on_event('disconnect', handle_disconnect, namespace=namespace)
        socketio.on_event('subscribe_room', handle_subscribe_room, namespace=namespace)
        socketio.on_event('unsubscribe_room', handle_unsubscribe_room, namespace=namespace)
        socketio.on_event('ping', handle_ping, namespace=namespace)
