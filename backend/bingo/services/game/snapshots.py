"""Immutable room and player snapshots as delivered by the sync adapter."""
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Optional, Tuple


def utcnow() -> datetime:
    """Naive UTC timestamp, the form join times are stored in."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


class RoomStatus(str, Enum):
    LOBBY = 'LOBBY'
    SETUP = 'SETUP'
    PLAYING = 'PLAYING'
    FINISHED = 'FINISHED'

    @property
    def is_pre_game(self) -> bool:
        return self in (RoomStatus.LOBBY, RoomStatus.SETUP)


@dataclass(frozen=True)
class RoomSnapshot:
    id: str
    status: RoomStatus = RoomStatus.LOBBY
    numbers_picked: Tuple[int, ...] = ()
    current_player_turn_id: Optional[str] = None
    winner_id: Optional[str] = None
    created_at: Optional[datetime] = None

    def to_dict(self):
        return {
            'id': self.id,
            'status': self.status.value,
            'numbers_picked': list(self.numbers_picked),
            'current_player_turn_id': self.current_player_turn_id,
            'winner_id': self.winner_id,
            'created_at': self.created_at.isoformat() if self.created_at else None,
        }


@dataclass(frozen=True)
class PlayerSnapshot:
    id: str
    room_id: str
    name: str
    is_ready: bool = False
    board: Optional[Tuple[int, ...]] = None
    joined_at: datetime = field(default_factory=utcnow)

    def to_dict(self, board=None):
        """Serialise; ``board`` overrides the stored board (used for masking)."""
        if board is None and self.board is not None:
            board = list(self.board)
        return {
            'id': self.id,
            'room_id': self.room_id,
            'name': self.name,
            'is_ready': self.is_ready,
            'board': board,
            'joined_at': self.joined_at.isoformat() if self.joined_at else None,
        }
