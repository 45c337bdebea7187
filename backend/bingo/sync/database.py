"""Room store on Flask-SQLAlchemy with a Socket.IO change feed.

Every write is one commit. After it commits, in-process subscribers are
notified and the change is broadcast to ``room:<ID>`` on the ``/ws``
namespace for remote clients.
"""
import json
import logging
from typing import Callable, List, Mapping, Optional

from sqlalchemy.exc import IntegrityError, SQLAlchemyError

from bingo import db, socketio
from bingo.errors import DuplicateRoomId, PlayerNotFound, RoomNotFound, ValidationError, WriteFailed
from bingo.models import MAX_NAME_LENGTH, Player, Room
from bingo.services.game.board import BOARD_SIZE, is_complete
from bingo.services.game.snapshots import PlayerSnapshot, RoomSnapshot, RoomStatus, utcnow
from bingo.services.game.state_machine import can_transition
from .adapter import PLAYERS_CHANNEL, ROOM_CHANNEL, RoomSyncAdapter

logger = logging.getLogger(__name__)

ROOM_FIELDS = frozenset({'status', 'numbers_picked', 'current_player_turn_id', 'winner_id'})
PLAYER_FIELDS = frozenset({'name', 'is_ready', 'board'})
# Fields a writer may require to still hold the values it last saw
EXPECTABLE_FIELDS = frozenset({'current_player_turn_id', 'numbers_picked'})


def room_channel(room_id: str) -> str:
    return f"room:{room_id.upper()}"


class DatabaseRoomSync(RoomSyncAdapter):

    def __init__(self, clock: Optional[Callable] = None, emit_events: bool = True):
        super().__init__()
        self._clock = clock or utcnow
        self.emit_events = emit_events

    # ---- rooms ----

    def create_room(self, room_id: str) -> RoomSnapshot:
        room_id = room_id.upper()
        if db.session.get(Room, room_id) is not None:
            raise DuplicateRoomId(room_id)
        room = Room(id=room_id, status=RoomStatus.LOBBY.value, numbers_picked='[]', created_at=self._clock())
        db.session.add(room)
        try:
            db.session.commit()
        except IntegrityError as exc:
            db.session.rollback()
            raise DuplicateRoomId(room_id) from exc
        except SQLAlchemyError as exc:
            db.session.rollback()
            logger.error(f"[create-room-failed] room={room_id}: {exc}")
            raise WriteFailed(f"Could not create room {room_id}") from exc
        logger.info(f"[room-created] room={room_id}")
        return room.to_snapshot()

    def get_room(self, room_id: str) -> RoomSnapshot:
        room = db.session.get(Room, room_id.upper())
        if room is None:
            raise RoomNotFound(room_id)
        return room.to_snapshot()

    def update_room(self, room_id: str, fields: Mapping, expected: Optional[Mapping] = None) -> bool:
        room_id = room_id.upper()
        unknown = set(fields) - ROOM_FIELDS
        if unknown:
            raise ValidationError(f"Unknown room fields: {sorted(unknown)}")
        expected = dict(expected or {})
        unknown = set(expected) - EXPECTABLE_FIELDS
        if unknown:
            raise ValidationError(f"Unknown expected room fields: {sorted(unknown)}")
        room = db.session.get(Room, room_id)
        if room is None:
            raise RoomNotFound(room_id)

        current = RoomStatus(room.status)
        if current == RoomStatus.FINISHED:
            logger.info(f"[update-ignored] room={room_id} is finished")
            return False
        values = {}
        for key, value in fields.items():
            if key == 'status':
                target = RoomStatus(value)
                # Status writes are compare-and-set and must move the room
                if target == current or not can_transition(current, target):
                    logger.info(f"[update-ignored] room={room_id} {current.value} -> {target.value} not allowed")
                    return False
                value = target.value
            elif key == 'numbers_picked':
                value = json.dumps([int(n) for n in value])
            values[getattr(Room, key)] = value

        # Picks only ever append to what is stored
        is_pick = 'numbers_picked' in fields and 'status' not in fields
        if is_pick:
            stored = room.picked
            new = [int(n) for n in fields['numbers_picked']]
            if len(new) <= len(stored) or new[:len(stored)] != stored:
                logger.info(f"[update-ignored] room={room_id} stale pick {new} over {stored}")
                return False

        # Compare-and-set on status; the winner is written only once
        query = Room.query.filter(Room.id == room_id, Room.status == current.value)
        if 'winner_id' in fields:
            query = query.filter(Room.winner_id.is_(None))
        if is_pick:
            query = query.filter(Room.numbers_picked == room.numbers_picked)
        if 'current_player_turn_id' in expected:
            turn = expected['current_player_turn_id']
            query = query.filter(Room.current_player_turn_id.is_(None) if turn is None
                                 else Room.current_player_turn_id == turn)
        if 'numbers_picked' in expected:
            query = query.filter(Room.numbers_picked == json.dumps([int(n) for n in expected['numbers_picked']]))
        try:
            applied = query.update(values, synchronize_session=False)
            db.session.commit()
        except SQLAlchemyError as exc:
            db.session.rollback()
            logger.error(f"[update-room-failed] room={room_id} fields={sorted(fields)}: {exc}")
            raise WriteFailed(f"Could not update room {room_id}") from exc
        if not applied:
            logger.info(f"[update-ignored] room={room_id} changed concurrently")
            return False

        db.session.expire_all()
        snapshot = db.session.get(Room, room_id).to_snapshot()
        logger.info(
            f"[room-updated] room={room_id} status={snapshot.status.value} "
            f"turn={snapshot.current_player_turn_id} picked={len(snapshot.numbers_picked)}"
        )
        self._notify(ROOM_CHANNEL, room_id, snapshot)
        self._emit('room_changed', room_id, snapshot.to_dict())
        return True

    # ---- players ----

    def upsert_player(self, player_id: str, room_id: str, name: str) -> PlayerSnapshot:
        room_id = room_id.upper()
        if db.session.get(Room, room_id) is None:
            raise RoomNotFound(room_id)
        name = (name or '').strip()[:MAX_NAME_LENGTH]
        if not name:
            raise ValidationError('Player name is required')

        player = self._player_row(room_id, player_id)
        if player is None:
            player = Player(player_id=player_id, room_id=room_id, name=name, joined_at=self._clock())
            db.session.add(player)
        else:
            # Reconnect: keep joined_at, refresh the display name
            player.name = name
        try:
            db.session.commit()
        except IntegrityError:
            # Lost an insert race with our own other connection; update instead
            db.session.rollback()
            player = self._player_row(room_id, player_id)
            if player is None:
                raise WriteFailed(f"Could not add player {player_id} to room {room_id}")
            player.name = name
            self._commit_player(room_id, player_id)
        except SQLAlchemyError as exc:
            db.session.rollback()
            logger.error(f"[upsert-player-failed] room={room_id} player={player_id}: {exc}")
            raise WriteFailed(f"Could not add player {player_id} to room {room_id}") from exc

        snapshot = player.to_snapshot()
        logger.info(f"[player-upserted] room={room_id} player={player_id} name={name}")
        self._players_changed(room_id)
        return snapshot

    def list_players(self, room_id: str) -> List[PlayerSnapshot]:
        rows = Player.query.filter_by(room_id=room_id.upper()).order_by(Player.joined_at, Player.player_id).all()
        return [p.to_snapshot() for p in rows]

    def update_player(self, room_id: str, player_id: str, fields: Mapping) -> bool:
        room_id = room_id.upper()
        unknown = set(fields) - PLAYER_FIELDS
        if unknown:
            raise ValidationError(f"Unknown player fields: {sorted(unknown)}")
        player = self._player_row(room_id, player_id)
        if player is None:
            raise PlayerNotFound(player_id, room_id)

        # Validate everything before touching the session-attached row
        changes = {}
        if 'name' in fields:
            name = (fields['name'] or '').strip()[:MAX_NAME_LENGTH]
            if not name:
                raise ValidationError('Player name is required')
            if name != player.name:
                changes['name'] = name
        # Readiness never reverts and the board is frozen once ready
        if not player.is_ready:
            board = fields.get('board')
            if board is not None:
                try:
                    board = [int(v) if v is not None else None for v in board]
                except (TypeError, ValueError):
                    raise ValidationError('Board cells must be integers or null')
                if len(board) != BOARD_SIZE:
                    raise ValidationError(f"Board must have {BOARD_SIZE} cells")
                changes['board'] = json.dumps(board)
            if fields.get('is_ready'):
                if not is_complete(board if board is not None else player.to_snapshot().board):
                    raise ValidationError('A ready board must be a permutation of 1..25')
                changes['is_ready'] = True
        if not changes:
            return False

        for key, value in changes.items():
            setattr(player, key, value)

        self._commit_player(room_id, player_id)
        logger.info(f"[player-updated] room={room_id} player={player_id} fields={sorted(fields)}")
        self._players_changed(room_id)
        return True

    # ---- helpers ----

    def _player_row(self, room_id, player_id) -> Optional[Player]:
        return Player.query.filter_by(room_id=room_id, player_id=player_id).first()

    def _commit_player(self, room_id, player_id) -> None:
        try:
            db.session.commit()
        except SQLAlchemyError as exc:
            db.session.rollback()
            logger.error(f"[update-player-failed] room={room_id} player={player_id}: {exc}")
            raise WriteFailed(f"Could not update player {player_id}") from exc

    def _players_changed(self, room_id) -> None:
        self._notify(PLAYERS_CHANNEL, room_id)
        self._emit('players_changed', room_id, {'room_id': room_id})

    def _emit(self, event, room_id, payload) -> None:
        if not self.emit_events:
            return
        socketio.emit(event, payload, to=room_channel(room_id), namespace='/ws')
