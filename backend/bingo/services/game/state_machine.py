"""Room state machine for one local participant.

The machine owns everything a client derives from the shared room: the
status, whose turn it is, the local board and its win count. It never
performs I/O. Snapshots come in through ``apply_room`` / ``apply_roster``;
actions come out as the partial fields a caller should write through the
sync adapter, or ``None`` when a guard refuses the action.

Guards fail closed. A refused action changes nothing and raises nothing,
since the next authoritative snapshot is always the source of truth.

Writers per transition:
- LOBBY -> SETUP: the leader (earliest-joined player)
- LOBBY/SETUP -> PLAYING: the elected starter (earliest-joined ready player)
- PLAYING -> PLAYING: the player holding the turn
- PLAYING -> FINISHED: the player whose own board reached five lines

Every client runs the same elections against the same ordered roster, so
duplicate writes carry identical values and are harmless.
"""
import logging
from typing import Dict, Iterable, List, Optional, Tuple

from .board import BOARD_SIZE, empty_board, fill_next_cell, finalize, is_complete, mask_board, shuffle_board
from .lines import bingo_letters, count_lines, has_bingo, marked_indices
from .snapshots import PlayerSnapshot, RoomSnapshot, RoomStatus
from .turns import first_player_id, leader_id, next_player_id, order_roster

logger = logging.getLogger(__name__)

MIN_PLAYERS = 2

ALLOWED_TRANSITIONS = {
    RoomStatus.LOBBY: frozenset({RoomStatus.SETUP, RoomStatus.PLAYING}),
    RoomStatus.SETUP: frozenset({RoomStatus.PLAYING}),
    RoomStatus.PLAYING: frozenset({RoomStatus.PLAYING, RoomStatus.FINISHED}),
    RoomStatus.FINISHED: frozenset(),
}


def can_transition(current: RoomStatus, target: RoomStatus) -> bool:
    return RoomStatus(target) in ALLOWED_TRANSITIONS[RoomStatus(current)]


class RoomStateMachine:

    def __init__(self, player_id: str, room: Optional[RoomSnapshot] = None,
                 players: Iterable[PlayerSnapshot] = (), board=None, min_players: int = MIN_PLAYERS):
        self.player_id = player_id
        self.min_players = max(2, int(min_players))
        self._room = room
        self._roster: List[PlayerSnapshot] = []
        self._board = list(board) if board is not None else empty_board()
        self.apply_roster(players)

    # ---- snapshot inputs ----

    def apply_room(self, snapshot: RoomSnapshot) -> None:
        self._room = snapshot

    def apply_roster(self, players: Iterable[PlayerSnapshot]) -> None:
        self._roster = order_roster(players)
        me = self.me
        # The published board is authoritative once ready (e.g. after reconnecting)
        if me and me.is_ready and is_complete(me.board):
            self._board = list(me.board)

    def reset(self, room: Optional[RoomSnapshot] = None) -> None:
        """Forget the previous room and start over with an empty board."""
        self._room = room
        self._roster = []
        self._board = empty_board()

    # ---- read side ----

    @property
    def room(self) -> Optional[RoomSnapshot]:
        return self._room

    @property
    def roster(self) -> Tuple[PlayerSnapshot, ...]:
        return tuple(self._roster)

    @property
    def board(self) -> list:
        return list(self._board)

    @property
    def status(self) -> RoomStatus:
        return self._room.status if self._room else RoomStatus.LOBBY

    @property
    def me(self) -> Optional[PlayerSnapshot]:
        return self._player(self.player_id)

    @property
    def is_ready(self) -> bool:
        me = self.me
        return bool(me and me.is_ready)

    @property
    def numbers_picked(self) -> Tuple[int, ...]:
        return self._room.numbers_picked if self._room else ()

    @property
    def turn_player_id(self) -> Optional[str]:
        return self._room.current_player_turn_id if self._room else None

    @property
    def is_my_turn(self) -> bool:
        return self.status == RoomStatus.PLAYING and self.turn_player_id == self.player_id

    @property
    def winner_id(self) -> Optional[str]:
        return self._room.winner_id if self._room else None

    @property
    def is_finished(self) -> bool:
        return self.status == RoomStatus.FINISHED or self.winner_id is not None

    @property
    def marked(self):
        return marked_indices(self._board, self.numbers_picked)

    @property
    def lines_completed(self) -> int:
        return count_lines(self.marked)

    @property
    def letters(self) -> str:
        return bingo_letters(self.lines_completed)

    @property
    def all_ready(self) -> bool:
        return len(self._roster) >= self.min_players and all(p.is_ready for p in self._roster)

    @property
    def elected_starter_id(self) -> Optional[str]:
        return first_player_id(self._roster)

    def view_board(self, player_id: str) -> Optional[list]:
        """Board of ``player_id`` as this participant may see it.

        Another player's board stays masked until that player is ready.
        """
        if player_id == self.player_id:
            return self.board
        player = self._player(player_id)
        if player is None:
            return None
        if not player.is_ready or player.board is None:
            return mask_board()
        return list(player.board)

    # ---- local board building ----

    def _can_edit_board(self) -> bool:
        return self.status.is_pre_game and not self.is_ready

    def fill_cell(self, index: int) -> bool:
        if not self._can_edit_board():
            return False
        new_board = fill_next_cell(self._board, index)
        changed = new_board != self._board
        self._board = new_board
        return changed

    def randomize(self) -> bool:
        if not self._can_edit_board():
            return False
        self._board = shuffle_board()
        return True

    # ---- transitions ----

    def ready_update(self) -> Optional[Dict]:
        """Player fields that mark the local player ready with a full board."""
        if self.is_finished or self.is_ready:
            return None
        self._board = finalize(self._board)
        return {'is_ready': True, 'board': list(self._board)}

    def heal_update(self) -> Optional[Dict]:
        """Publish a full board for a participant that reached PLAYING without one."""
        if self.status != RoomStatus.PLAYING or self.is_finished:
            return None
        me = self.me
        if me is None or (me.is_ready and is_complete(me.board)):
            return None
        self._board = finalize(self._board)
        logger.info(f"[self-heal] room={self._room.id} player={self.player_id} publishing shuffled board")
        return {'is_ready': True, 'board': list(self._board)}

    def setup_update(self) -> Optional[Dict]:
        if self.status != RoomStatus.LOBBY or len(self._roster) < self.min_players:
            return None
        if self.all_ready or leader_id(self._roster) != self.player_id:
            return None
        return {'status': RoomStatus.SETUP}

    def start_update(self) -> Optional[Dict]:
        if not self.status.is_pre_game or not self.all_ready:
            return None
        starter = self.elected_starter_id
        if starter != self.player_id:
            return None
        return {
            'status': RoomStatus.PLAYING,
            'current_player_turn_id': starter,
            'numbers_picked': [],
        }

    def pick_update(self, value) -> Optional[Dict]:
        if self.status != RoomStatus.PLAYING or self.is_finished:
            return None
        if not self.is_my_turn:
            logger.info(f"[pick-refused] player={self.player_id} not holding the turn ({self.turn_player_id})")
            return None
        try:
            value = int(value)
        except (TypeError, ValueError):
            return None
        if not 1 <= value <= BOARD_SIZE or value in self.numbers_picked:
            logger.info(f"[pick-refused] player={self.player_id} value={value} unavailable")
            return None
        return {
            'numbers_picked': list(self.numbers_picked) + [value],
            'current_player_turn_id': next_player_id(self._roster, self.player_id),
        }

    def win_update(self) -> Optional[Dict]:
        if self.status != RoomStatus.PLAYING or self.winner_id is not None:
            return None
        if not self.is_ready or not has_bingo(self.lines_completed):
            return None
        return {
            'status': RoomStatus.FINISHED,
            'winner_id': self.player_id,
            'current_player_turn_id': None,
        }

    def _player(self, player_id: str) -> Optional[PlayerSnapshot]:
        for p in self._roster:
            if p.id == player_id:
                return p
        return None
