"""Participant client: one local player's view of a shared room.

A ``RoomClient`` owns the local identity, the local board and a
``RoomStateMachine``. User actions become proposed writes through the sync
adapter; the client never assumes a write applied and waits for the next
snapshot instead. Every delivered snapshot is followed by ``reconcile``,
which performs the writes this participant owes the room (self-heal, setup
relabel, start election, win declaration).
"""
import logging
import uuid
from typing import Optional

from flask import current_app, has_app_context

from bingo.errors import DuplicateRoomId, ValidationError, WriteFailed
from bingo.models import MAX_NAME_LENGTH, ROOM_CODE_LENGTH, generate_room_code, normalize_room_code
from bingo.services.game.countdown import DEFAULT_COUNTDOWN, ReadyCountdown
from bingo.services.game.state_machine import MIN_PLAYERS, RoomStateMachine

logger = logging.getLogger(__name__)

MAX_CODE_ATTEMPTS = 10


def new_player_id() -> str:
    return uuid.uuid4().hex[:12]


def validate_name(name) -> str:
    name = name.strip() if isinstance(name, str) else ''
    if not name:
        raise ValidationError('Player name is required')
    if len(name) > MAX_NAME_LENGTH:
        raise ValidationError(f'Player name must be at most {MAX_NAME_LENGTH} characters')
    return name


def validate_room_code(code) -> str:
    normalized = normalize_room_code(code)
    if normalized is None:
        raise ValidationError(f'Room code must be {ROOM_CODE_LENGTH} letters or digits')
    return normalized


class RoomClient:

    def __init__(self, sync, player_id: Optional[str] = None, countdown_sec: Optional[int] = DEFAULT_COUNTDOWN,
                 min_players: int = MIN_PLAYERS, spawn=None, sleep=None, board=None):
        self.sync = sync
        self.player_id = player_id or new_player_id()
        self.name: Optional[str] = None
        self.room_id: Optional[str] = None
        self.machine = RoomStateMachine(self.player_id, board=board, min_players=min_players)
        self.countdown_sec = countdown_sec
        self.countdown: Optional[ReadyCountdown] = None
        self.last_error: Optional[str] = None
        self._spawn = spawn
        self._sleep = sleep
        self._subscriptions = []
        self._inflight = 0
        self._app = None

    @classmethod
    def for_player(cls, sync, room_id: str, player_id: str, name: Optional[str] = None, **kwargs):
        """Client acting for an existing participant without subscribing (no countdown)."""
        kwargs.setdefault('countdown_sec', None)
        client = cls(sync, player_id=player_id, **kwargs)
        client.room_id = room_id.upper()
        client.name = name
        return client

    @property
    def busy(self) -> bool:
        return self._inflight > 0

    # ---- entry actions ----

    def create_room(self, name) -> str:
        name = validate_name(name)
        for _ in range(MAX_CODE_ATTEMPTS):
            code = generate_room_code()
            try:
                snapshot = self.sync.create_room(code)
            except DuplicateRoomId:
                logger.warning(f"[room-code-collision] code={code}, regenerating")
                continue
            self._bind(snapshot, name)
            return snapshot.id
        raise WriteFailed('Could not allocate a free room code')

    def join_room(self, code, name) -> str:
        name = validate_name(name)
        code = validate_room_code(code)
        snapshot = self.sync.get_room(code)
        self._bind(snapshot, name)
        return snapshot.id

    def enter(self) -> 'RoomClient':
        """Register in the room, follow its change feed and start the countdown."""
        if not self.room_id or not self.name:
            raise ValidationError('Create or join a room first')
        if has_app_context():
            self._app = current_app._get_current_object()
        self.sync.upsert_player(self.player_id, self.room_id, self.name)
        self._subscriptions = [
            self.sync.subscribe_room_changes(self.room_id, self._on_room_change),
            self.sync.subscribe_player_changes(self.room_id, self._on_players_change),
        ]
        self.refresh()
        self._start_countdown()
        logger.info(f"[enter] room={self.room_id} player={self.player_id} name={self.name}")
        return self

    def attach(self) -> 'RoomClient':
        """Register in the room and load it without following the change feed."""
        if not self.room_id or not self.name:
            raise ValidationError('Create or join a room first')
        self.sync.upsert_player(self.player_id, self.room_id, self.name)
        self.refresh()
        return self

    def leave(self) -> None:
        for handle in self._subscriptions:
            self.sync.unsubscribe(handle)
        self._subscriptions = []
        if self.countdown is not None:
            self.countdown.cancel()

    def rematch(self) -> Optional[str]:
        """Open a fresh room once this one is finished and move into it."""
        if not self.machine.is_finished:
            return None
        previous = self.room_id
        following = bool(self._subscriptions)
        self.leave()
        room_id = self.create_room(self.name)
        if following:
            self.enter()
        else:
            self.attach()
        logger.info(f"[rematch] from={previous} to={room_id} player={self.player_id}")
        return room_id

    # ---- player actions ----

    def fill_cell(self, index: int) -> bool:
        return self.machine.fill_cell(index)

    def randomize(self) -> bool:
        return self.machine.randomize()

    def ready(self) -> bool:
        fields = self.machine.ready_update()
        if fields is None:
            return False
        applied = self._write('ready', self.sync.update_player, self.room_id, self.player_id, fields)
        if applied and self.countdown is not None:
            self.countdown.cancel()
        return applied

    def pick(self, value) -> bool:
        fields = self.machine.pick_update(value)
        if fields is None:
            return False
        # Applies only if the turn and the picks are still what this pick was based on
        expected = {
            'current_player_turn_id': self.player_id,
            'numbers_picked': list(self.machine.numbers_picked),
        }
        return self._write('pick', self.sync.update_room, self.room_id, fields, expected)

    def pick_cell(self, index: int) -> bool:
        board = self.machine.board
        if not 0 <= index < len(board) or board[index] is None:
            return False
        return self.pick(board[index])

    def view_board(self, player_id: str):
        return self.machine.view_board(player_id)

    def view(self) -> dict:
        """Everything a UI needs to render this participant's screen."""
        m = self.machine
        return {
            'room': m.room.to_dict() if m.room else None,
            'player_id': self.player_id,
            'players': [p.to_dict(board=m.view_board(p.id)) for p in m.roster],
            'board': m.board,
            'is_ready': m.is_ready,
            'is_my_turn': m.is_my_turn,
            'lines': m.lines_completed,
            'letters': m.letters,
            'countdown': self.countdown.remaining if self.countdown and self.countdown.running else None,
            'last_error': self.last_error,
        }

    # ---- snapshots ----

    def load(self) -> None:
        """Read the latest room and roster snapshots without writing anything."""
        self.machine.apply_room(self.sync.get_room(self.room_id))
        self.machine.apply_roster(self.sync.list_players(self.room_id))
        if self.name is None and self.machine.me is not None:
            self.name = self.machine.me.name

    def refresh(self) -> None:
        self.load()
        self.reconcile()

    def reconcile(self) -> None:
        m = self.machine
        heal = m.heal_update()
        if heal:
            self._write('self-heal', self.sync.update_player, self.room_id, self.player_id, heal)
        start = m.start_update()
        if start:
            self._write('start', self.sync.update_room, self.room_id, start)
        else:
            setup = m.setup_update()
            if setup:
                self._write('setup', self.sync.update_room, self.room_id, setup)
        win = m.win_update()
        if win:
            self._write('win', self.sync.update_room, self.room_id, win)

    def _on_room_change(self, snapshot) -> None:
        self.machine.apply_room(snapshot)
        if not snapshot.status.is_pre_game and self.countdown is not None:
            self.countdown.cancel()
        self.reconcile()

    def _on_players_change(self) -> None:
        self.machine.apply_roster(self.sync.list_players(self.room_id))
        self.reconcile()

    # ---- internals ----

    def _bind(self, snapshot, name) -> None:
        if self._subscriptions:
            self.leave()
        self.room_id = snapshot.id
        self.name = name
        self.machine.reset(snapshot)

    def _write(self, action, fn, *args) -> bool:
        self._inflight += 1
        try:
            applied = fn(*args)
        except WriteFailed as exc:
            self.last_error = str(exc)
            logger.warning(f"[{action}-failed] room={self.room_id} player={self.player_id}: {exc}")
            return False
        finally:
            self._inflight -= 1
        self.last_error = None
        logger.info(f"[{action}] room={self.room_id} player={self.player_id} applied={applied}")
        return bool(applied)

    def _start_countdown(self) -> None:
        if self.countdown is not None:
            self.countdown.cancel()
            self.countdown = None
        if self.countdown_sec is None or not self.machine.status.is_pre_game or self.machine.is_ready:
            return
        self.countdown = ReadyCountdown(
            self.countdown_sec,
            on_expire=self._on_countdown_expired,
            spawn=self._spawn,
            sleep=self._sleep,
        )
        self.countdown.start()

    def _on_countdown_expired(self) -> None:
        if self._app is not None and not has_app_context():
            with self._app.app_context():
                self._auto_ready()
        else:
            self._auto_ready()

    def _auto_ready(self) -> None:
        if self.machine.status.is_pre_game and not self.machine.is_ready:
            logger.info(f"[auto-ready] room={self.room_id} player={self.player_id} countdown expired")
            self.ready()


def reconcile_room(sync, room_id: str, min_players: int = MIN_PLAYERS) -> None:
    """Run every participant's reconcile step against the latest snapshot.

    Used where the server acts for thin clients. Each participant only writes
    what its own elections allow, in join order.
    """
    for player in sync.list_players(room_id):
        RoomClient.for_player(sync, room_id, player.id, name=player.name, min_players=min_players).refresh()
