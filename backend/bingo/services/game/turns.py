"""Turn order: sequential by join time, re-derived from every roster snapshot."""
from typing import Iterable, List, Optional

from .snapshots import PlayerSnapshot


def order_roster(players: Iterable[PlayerSnapshot]) -> List[PlayerSnapshot]:
    # Player id breaks joined_at ties so every client derives the same order
    return sorted(players, key=lambda p: (p.joined_at, p.id))


def next_player_id(players: Iterable[PlayerSnapshot], current_id: Optional[str]) -> Optional[str]:
    """Cyclic successor of ``current_id`` in join order.

    An unknown current player (left the room, or no turn yet) hands the turn
    to the earliest-joined player.
    """
    roster = order_roster(players)
    if not roster:
        return None
    ids = [p.id for p in roster]
    if current_id not in ids:
        return ids[0]
    return ids[(ids.index(current_id) + 1) % len(ids)]


def first_player_id(players: Iterable[PlayerSnapshot]) -> Optional[str]:
    """Earliest-joined ready player; opens the round and writes the start."""
    ready = [p for p in order_roster(players) if p.is_ready]
    return ready[0].id if ready else None


def leader_id(players: Iterable[PlayerSnapshot]) -> Optional[str]:
    roster = order_roster(players)
    return roster[0].id if roster else None
