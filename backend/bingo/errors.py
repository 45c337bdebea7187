"""Error taxonomy shared by the client, the sync layer and the HTTP surface.

Guards inside the game state machine never raise: an illegal action is simply
refused. Only input validation and adapter I/O surface as exceptions.
"""


class BingoError(Exception):
    """Base class for every error raised by this package."""
    status_code = 400


class ValidationError(BingoError):
    """Rejected locally before any network interaction (empty name, bad code)."""
    status_code = 400


class RoomNotFound(BingoError):
    status_code = 404

    def __init__(self, room_id):
        self.room_id = room_id
        super().__init__(f"Room {room_id} not found")


class PlayerNotFound(BingoError):
    status_code = 404

    def __init__(self, player_id, room_id=None):
        self.player_id = player_id
        self.room_id = room_id
        super().__init__(f"Player {player_id} not found in room {room_id}")


class DuplicateRoomId(BingoError):
    status_code = 409

    def __init__(self, room_id):
        self.room_id = room_id
        super().__init__(f"Room {room_id} already exists")


class WriteFailed(BingoError):
    """A room or player mutation failed at the adapter; safe to retry."""
    status_code = 503
