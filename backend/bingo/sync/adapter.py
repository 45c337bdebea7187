"""Contract between the participant client and the shared room store.

The store gives per-record last-write-wins visibility to every subscriber and
no cross-client mutual exclusion. Implementations raise ``RoomNotFound``,
``DuplicateRoomId`` and ``WriteFailed`` from ``bingo.errors``.
"""
import itertools
import logging
import threading
from collections import defaultdict, deque
from dataclasses import dataclass
from typing import Callable, Dict, List, Mapping, Optional

from bingo.services.game.snapshots import PlayerSnapshot, RoomSnapshot

logger = logging.getLogger(__name__)

ROOM_CHANNEL = 'room'
PLAYERS_CHANNEL = 'players'


@dataclass(frozen=True)
class Subscription:
    channel: str
    room_id: str
    token: int


class RoomSyncAdapter:
    """Persistence and change-notification surface used by ``RoomClient``.

    Subclasses implement the record operations; subscription bookkeeping and
    in-process fan-out live here.
    """

    def __init__(self):
        self._listeners: Dict[tuple, Dict[int, Callable]] = defaultdict(dict)
        self._tokens = itertools.count(1)
        self._pending = deque()
        self._dispatching = False
        self._dispatch_lock = threading.Lock()

    def create_room(self, room_id: str) -> RoomSnapshot:
        raise NotImplementedError

    def get_room(self, room_id: str) -> RoomSnapshot:
        raise NotImplementedError

    def update_room(self, room_id: str, fields: Mapping, expected: Optional[Mapping] = None) -> bool:
        """Apply partial room fields; returns False when the store ignored them.

        ``expected`` holds field values the row must still have for the write
        to apply (compare-and-set).
        """
        raise NotImplementedError

    def upsert_player(self, player_id: str, room_id: str, name: str) -> PlayerSnapshot:
        raise NotImplementedError

    def list_players(self, room_id: str) -> List[PlayerSnapshot]:
        """Players of a room ordered by join time."""
        raise NotImplementedError

    def update_player(self, room_id: str, player_id: str, fields: Mapping) -> bool:
        raise NotImplementedError

    def subscribe_room_changes(self, room_id: str, on_update: Callable[[RoomSnapshot], None]) -> Subscription:
        return self._subscribe(ROOM_CHANNEL, room_id, on_update)

    def subscribe_player_changes(self, room_id: str, on_update: Callable[[], None]) -> Subscription:
        return self._subscribe(PLAYERS_CHANNEL, room_id, on_update)

    def unsubscribe(self, handle: Subscription) -> None:
        if handle is None:
            return
        self._listeners.get((handle.channel, handle.room_id), {}).pop(handle.token, None)

    def _subscribe(self, channel, room_id, on_update) -> Subscription:
        handle = Subscription(channel=channel, room_id=room_id, token=next(self._tokens))
        self._listeners[(channel, room_id)][handle.token] = on_update
        return handle

    def _notify(self, channel, room_id, *args) -> None:
        """Deliver one change to every in-process subscriber.

        Changes written from inside a callback are queued and delivered after
        the current one, so every subscriber sees changes in commit order.
        """
        with self._dispatch_lock:
            self._pending.append((channel, room_id, args))
            if self._dispatching:
                return
            self._dispatching = True
        try:
            while True:
                with self._dispatch_lock:
                    if not self._pending:
                        self._dispatching = False
                        return
                    channel, room_id, args = self._pending.popleft()
                for callback in list(self._listeners.get((channel, room_id), {}).values()):
                    try:
                        callback(*args)
                    except Exception:
                        logger.exception(f"[notify-failed] channel={channel} room={room_id}")
        except BaseException:
            with self._dispatch_lock:
                self._dispatching = False
            raise
