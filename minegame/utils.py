# minegame/utils.py

import random
from typing import Iterable, List, Set, Tuple


def get_neighbors(x: int, y: int, width: int, height: int) -> List[Tuple[int, int]]:
    """
    Return a list of valid neighboring coordinates (8-way) for (x, y).
    """
    neighbors = []
    for dy in [-1, 0, 1]:
        for dx in [-1, 0, 1]:
            nx, ny = x + dx, y + dy
            if (dx != 0 or dy != 0) and 0 <= nx < width and 0 <= ny < height:
                neighbors.append((nx, ny))
    return neighbors


def sample_positions(
    rng: random.Random,
    width: int,
    height: int,
    count: int,
    exclude: Iterable[Tuple[int, int]] = (),
) -> Set[Tuple[int, int]]:
    """
    Pick `count` distinct (x, y) positions by rejection sampling: draw a random
    coordinate, skip it if it is already taken or excluded, repeat.
    """
    excluded = set(exclude)
    if count > width * height - len(excluded):
        raise ValueError(
            f"Cannot place {count} positions on a {width}x{height} grid "
            f"with {len(excluded)} excluded cells."
        )

    chosen = set()
    while len(chosen) < count:
        pos = (rng.randrange(width), rng.randrange(height))
        if pos in chosen or pos in excluded:
            continue
        chosen.add(pos)
    return chosen


def format_board(rows: List[List[object]]) -> str:
    """
    Render the rows of Board.visible_state() as fixed-width text.
    Hidden cells print as '.', everything else as its marker or number.
    """
    lines = []
    for row in rows:
        line = ""
        for value in row:
            line += " . " if value is None else f" {value} "
        lines.append(line)
    return "\n".join(lines)
