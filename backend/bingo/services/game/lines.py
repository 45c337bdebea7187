from typing import Iterable, FrozenSet, Optional, Sequence, Tuple

GRID_SIZE = 5
LINES_TO_WIN = 5


def _build_lines() -> Tuple[Tuple[int, ...], ...]:
    rows = [tuple(r * GRID_SIZE + c for c in range(GRID_SIZE)) for r in range(GRID_SIZE)]
    cols = [tuple(r * GRID_SIZE + c for r in range(GRID_SIZE)) for c in range(GRID_SIZE)]
    diagonals = [
        tuple(i * (GRID_SIZE + 1) for i in range(GRID_SIZE)),
        tuple((i + 1) * (GRID_SIZE - 1) for i in range(GRID_SIZE)),
    ]
    return tuple(rows + cols + diagonals)


# 5 rows, 5 columns, 2 diagonals over row-major indices (row*5+col)
WINNING_LINES = _build_lines()


def count_lines(marked: Iterable[int]) -> int:
    """Count the winning lines whose five cells are all marked.

    Order and duplicates in ``marked`` do not matter.
    """
    marked_set = set(marked)
    return sum(1 for line in WINNING_LINES if marked_set.issuperset(line))


def marked_indices(board: Sequence[Optional[int]], numbers_picked: Iterable[int]) -> FrozenSet[int]:
    """Indices of ``board`` whose value has been picked by anyone in the room."""
    picked = set(numbers_picked)
    return frozenset(i for i, value in enumerate(board) if value is not None and value in picked)


def has_bingo(line_count: int) -> bool:
    return line_count >= LINES_TO_WIN


def bingo_letters(line_count: int) -> str:
    """Progress label shown to the player: one letter of BINGO per line."""
    return 'BINGO'[:max(0, min(line_count, LINES_TO_WIN))]
