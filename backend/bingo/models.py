from bingo import db
from bingo.services.game.snapshots import PlayerSnapshot, RoomSnapshot, RoomStatus, utcnow
import json
import re
import string
import random

ROOM_CODE_LENGTH = 5
ROOM_CODE_ALPHABET = string.ascii_uppercase + string.digits
MAX_NAME_LENGTH = 32


def generate_room_code(length=ROOM_CODE_LENGTH):
    """Generate a short room code. Uniqueness is checked at insert time."""
    return ''.join(random.choices(ROOM_CODE_ALPHABET, k=length))


def normalize_room_code(code, length=ROOM_CODE_LENGTH):
    """Upper-cased room code, or None when it is malformed."""
    if not isinstance(code, str):
        return None
    code = code.strip().upper()
    if not re.fullmatch(f'[A-Z0-9]{{{length}}}', code):
        return None
    return code


def _load_json(raw, default=None):
    if not raw:
        return default
    try:
        return json.loads(raw)
    except (TypeError, ValueError):
        return default


class Room(db.Model):
    __tablename__ = 'room'
    id = db.Column(db.String(16), primary_key=True)
    status = db.Column(db.String(16), nullable=False, default=RoomStatus.LOBBY.value)  # LOBBY, SETUP, PLAYING, FINISHED
    numbers_picked = db.Column(db.Text, nullable=False, default='[]')  # JSON-encoded list of ints
    current_player_turn_id = db.Column(db.String(64), nullable=True)
    winner_id = db.Column(db.String(64), nullable=True)
    created_at = db.Column(db.DateTime, nullable=False, default=utcnow)

    @property
    def picked(self):
        return _load_json(self.numbers_picked, [])

    def to_snapshot(self):
        return RoomSnapshot(
            id=self.id,
            status=RoomStatus(self.status),
            numbers_picked=tuple(self.picked),
            current_player_turn_id=self.current_player_turn_id,
            winner_id=self.winner_id,
            created_at=self.created_at,
        )


class Player(db.Model):
    __tablename__ = 'player'
    __table_args__ = (db.UniqueConstraint('room_id', 'player_id', name='uq_player_room_player'),)
    pk = db.Column(db.Integer, primary_key=True)
    player_id = db.Column(db.String(64), nullable=False, index=True)
    room_id = db.Column(db.String(16), db.ForeignKey('room.id'), nullable=False, index=True)
    name = db.Column(db.String(MAX_NAME_LENGTH), nullable=False)
    is_ready = db.Column(db.Boolean, default=False, nullable=False)
    board = db.Column(db.Text, nullable=True)  # JSON-encoded list of 25 ints once ready
    joined_at = db.Column(db.DateTime, nullable=False, default=utcnow)
    room = db.relationship('Room', backref=db.backref('players', lazy='dynamic'))

    def to_snapshot(self):
        board = _load_json(self.board)
        return PlayerSnapshot(
            id=self.player_id,
            room_id=self.room_id,
            name=self.name,
            is_ready=bool(self.is_ready),
            board=tuple(board) if board is not None else None,
            joined_at=self.joined_at,
        )
