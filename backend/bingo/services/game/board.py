import random
from typing import List, Optional, Sequence

BOARD_SIZE = 25
MASKED = '?'


def empty_board() -> List[Optional[int]]:
    return [None] * BOARD_SIZE


def filled_count(board: Sequence[Optional[int]]) -> int:
    return sum(1 for value in board if value is not None)


def fill_next_cell(board: Sequence[Optional[int]], index: int) -> List[Optional[int]]:
    """Place the next sequential value (filled cells + 1) into ``index``.

    Occupied cells, out-of-range indices and full boards leave the board
    unchanged. Always returns a new list.
    """
    new_board = list(board)
    if not 0 <= index < len(new_board) or new_board[index] is not None:
        return new_board
    next_value = filled_count(new_board) + 1
    if next_value > BOARD_SIZE:
        return new_board
    new_board[index] = next_value
    return new_board


def shuffle_board(rng: Optional[random.Random] = None) -> List[int]:
    values = list(range(1, BOARD_SIZE + 1))
    (rng or random).shuffle(values)
    return values


def is_complete(board: Optional[Sequence[Optional[int]]]) -> bool:
    if not board or len(board) != BOARD_SIZE:
        return False
    return sorted(v for v in board if v is not None) == list(range(1, BOARD_SIZE + 1))


def finalize(board: Optional[Sequence[Optional[int]]], rng: Optional[random.Random] = None) -> List[int]:
    """Return the board if it is a full permutation, else a fresh shuffle."""
    if is_complete(board):
        return list(board)
    return shuffle_board(rng)


def mask_board() -> List[str]:
    return [MASKED] * BOARD_SIZE
