"""Shared room store: the adapter contract and its database implementation."""
from .adapter import RoomSyncAdapter, Subscription
from .database import DatabaseRoomSync, room_channel

__all__ = ['RoomSyncAdapter', 'Subscription', 'DatabaseRoomSync', 'room_channel']
