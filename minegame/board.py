# minegame/board.py

import logging
import random
from collections import deque
from dataclasses import dataclass
from enum import Enum
from typing import Iterable, List, Optional, Tuple

import numpy as np

from .utils import format_board, get_neighbors, sample_positions

logger = logging.getLogger(__name__)

Position = Tuple[int, int]


class MinesweeperError(Exception):
    """Base class for board engine errors."""


class InvalidConfiguration(MinesweeperError, ValueError):
    """Raised when a board is built with bad dimensions or mine count."""


class OutOfBounds(MinesweeperError, IndexError):
    """Raised when a coordinate falls outside the grid."""


class GameStatus(Enum):
    PENDING = "pending"
    IN_PROGRESS = "in_progress"
    WON = "won"
    LOST = "lost"

    @property
    def is_terminal(self) -> bool:
        return self in (GameStatus.WON, GameStatus.LOST)


class CellState(Enum):
    HIDDEN = "hidden"
    FLAGGED = "flagged"
    REVEALED = "revealed"


class RevealResult(Enum):
    OPENED = "opened"
    EXPLODED = "exploded"
    IGNORED = "ignored"
    GAME_OVER = "game_over"


@dataclass
class Cell:
    """
    One grid position.

    `state` is the only visibility field, so a cell cannot be flagged and
    revealed at the same time. `exploded`, `wrong_flag` and `was_flagged` are
    overlay markers set once the game is lost.
    """

    is_mine: bool = False
    adjacent_mines: int = 0
    state: CellState = CellState.HIDDEN
    exploded: bool = False
    wrong_flag: bool = False
    was_flagged: bool = False

    @property
    def is_hidden(self) -> bool:
        return self.state == CellState.HIDDEN

    @property
    def is_flagged(self) -> bool:
        return self.state == CellState.FLAGGED

    @property
    def is_revealed(self) -> bool:
        return self.state == CellState.REVEALED


@dataclass(frozen=True)
class RevealOutcome:
    result: RevealResult
    status: GameStatus
    revealed: Tuple[Position, ...] = ()

    @property
    def count(self) -> int:
        return len(self.revealed)


@dataclass(frozen=True)
class FlagOutcome:
    changed: bool
    flagged: bool
    # Only reported for an accepted toggle, so callers can score the flag.
    is_mine: Optional[bool] = None


class Board:
    """
    Minesweeper grid with mine placement, flood-fill reveal and flagging.

    Coordinates are (x, y) with x the column and y the row. Mines are laid out
    when the board is built; if the very first reveal lands on a mine, that
    mine is moved elsewhere so the opening click never loses.
    """

    # Cap on random draws when relocating the first-click mine before
    # falling back to an explicit scan of the free cells.
    RELOCATION_ATTEMPTS = 1000

    def __init__(self, width: int, height: int, mine_count: int, seed=None):
        self._validate(width, height, mine_count)

        self.width = width
        self.height = height
        self.mine_count = mine_count
        self._rng = seed if isinstance(seed, random.Random) else random.Random(seed)

        self._grid = [[Cell() for _ in range(width)] for _ in range(height)]
        self._status = GameStatus.PENDING
        self.first_move_consumed = False
        self.flag_count = 0
        self._revealed_safe = 0

        self._place_mines()
        self._compute_adjacent_counts()
        logger.debug("Created %dx%d board with %d mines", width, height, mine_count)

    @staticmethod
    def _validate(width, height, mine_count):
        for name, value in (("width", width), ("height", height), ("mine_count", mine_count)):
            if isinstance(value, bool) or not isinstance(value, int):
                raise InvalidConfiguration(f"{name} must be an integer, got {value!r}")
        if width <= 0 or height <= 0:
            raise InvalidConfiguration("Board dimensions must be positive")
        if not 0 < mine_count < width * height:
            raise InvalidConfiguration(
                f"mine_count must be between 1 and {width * height - 1}, got {mine_count}"
            )

    # ------------------------------------------------------------------
    # Mine layout
    # ------------------------------------------------------------------

    def _place_mines(self):
        for x, y in sample_positions(self._rng, self.width, self.height, self.mine_count):
            self._grid[y][x].is_mine = True

    def _compute_adjacent_counts(self):
        for y in range(self.height):
            for x in range(self.width):
                cell = self._grid[y][x]
                if cell.is_mine:
                    cell.adjacent_mines = 0
                    continue
                cell.adjacent_mines = sum(
                    1 for nx, ny in get_neighbors(x, y, self.width, self.height)
                    if self._grid[ny][nx].is_mine
                )

    def _relocate_mine(self, x, y):
        """Move the mine at (x, y) to a random free cell and recount."""
        target = None
        for _ in range(self.RELOCATION_ATTEMPTS):
            nx, ny = self._rng.randrange(self.width), self._rng.randrange(self.height)
            if (nx, ny) != (x, y) and not self._grid[ny][nx].is_mine:
                target = (nx, ny)
                break
        if target is None:
            free = [
                (cx, cy)
                for cy in range(self.height)
                for cx in range(self.width)
                if not self._grid[cy][cx].is_mine
            ]
            target = self._rng.choice(free)

        self._grid[y][x].is_mine = False
        self._grid[target[1]][target[0]].is_mine = True
        self._compute_adjacent_counts()
        logger.debug("Moved first-click mine from %s to %s", (x, y), target)

    def _set_mines(self, positions: Iterable[Position]):
        """
        Test hook: replace the random layout with the given mine positions.
        Only allowed before the first reveal; the count must match mine_count.
        """
        if self.first_move_consumed:
            raise MinesweeperError("Mines can only be set before the first move")
        positions = set(positions)
        if len(positions) != self.mine_count:
            raise InvalidConfiguration(
                f"Expected {self.mine_count} mine positions, got {len(positions)}"
            )
        for x, y in positions:
            self._check_bounds(x, y)

        for row in self._grid:
            for cell in row:
                cell.is_mine = False
        for x, y in positions:
            self._grid[y][x].is_mine = True
        self._compute_adjacent_counts()

    # ------------------------------------------------------------------
    # Game actions
    # ------------------------------------------------------------------

    def reveal(self, x: int, y: int) -> RevealOutcome:
        """
        Reveal the cell at (x, y).

        - Finished board: nothing changes, result is GAME_OVER.
        - Revealed or flagged cell: nothing changes, result is IGNORED.
          A flag has to be removed before the cell can be opened.
        - Mine: the game is lost, every mine is uncovered (a flagged one
          drops its flag and keeps a was_flagged marker) and
          flags on safe cells are marked wrong. Result is EXPLODED.
        - Safe cell: it is opened, and a zero cell floods outward through
          its zero neighbours, opening the numbered border as well. Flags
          stop the flood. Result is OPENED with the newly opened positions.
        """
        self._check_bounds(x, y)
        if self._status.is_terminal:
            return RevealOutcome(RevealResult.GAME_OVER, self._status)

        cell = self._grid[y][x]
        if not cell.is_hidden:
            return RevealOutcome(RevealResult.IGNORED, self._status)

        if not self.first_move_consumed:
            self.first_move_consumed = True
            if cell.is_mine:
                self._relocate_mine(x, y)

        if cell.is_mine:
            self._explode(x, y)
            return RevealOutcome(RevealResult.EXPLODED, self._status, ((x, y),))

        opened = self._flood_fill(x, y)
        if self._revealed_safe == self.safe_cell_count:
            self._status = GameStatus.WON
            logger.info("Board cleared")
        else:
            self._status = GameStatus.IN_PROGRESS
        return RevealOutcome(RevealResult.OPENED, self._status, tuple(opened))

    def _flood_fill(self, x, y) -> List[Position]:
        opened = [(x, y)]
        self._open(x, y)
        queue = deque([(x, y)])
        while queue:
            cx, cy = queue.popleft()
            if self._grid[cy][cx].adjacent_mines != 0:
                continue
            for nx, ny in get_neighbors(cx, cy, self.width, self.height):
                # Skips revealed cells and flags alike.
                if not self._grid[ny][nx].is_hidden:
                    continue
                self._open(nx, ny)
                opened.append((nx, ny))
                queue.append((nx, ny))
        return opened

    def _open(self, x, y):
        self._grid[y][x].state = CellState.REVEALED
        self._revealed_safe += 1

    def _explode(self, x, y):
        self._grid[y][x].exploded = True
        for row in self._grid:
            for cell in row:
                if cell.is_mine and not cell.is_revealed:
                    if cell.is_flagged:
                        cell.was_flagged = True
                        self.flag_count -= 1
                    cell.state = CellState.REVEALED
                elif cell.is_flagged and not cell.is_mine:
                    cell.wrong_flag = True
        self._status = GameStatus.LOST
        logger.info("Mine hit at %s", (x, y))
        logger.debug("Final board:\n%s", self)

    def toggle_flag(self, x: int, y: int) -> FlagOutcome:
        """
        Flip the flag on a hidden cell. Revealed cells and finished boards
        are left alone. The returned outcome tells whether the cell holds
        a mine, nothing else about the board.
        """
        self._check_bounds(x, y)
        cell = self._grid[y][x]
        if self._status.is_terminal or cell.is_revealed:
            return FlagOutcome(changed=False, flagged=cell.is_flagged)

        if cell.is_flagged:
            cell.state = CellState.HIDDEN
            self.flag_count -= 1
        else:
            cell.state = CellState.FLAGGED
            self.flag_count += 1
        return FlagOutcome(changed=True, flagged=cell.is_flagged, is_mine=cell.is_mine)

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    def status(self) -> GameStatus:
        return self._status

    @property
    def is_over(self) -> bool:
        return self._status.is_terminal

    @property
    def safe_cell_count(self) -> int:
        return self.width * self.height - self.mine_count

    @property
    def revealed_count(self) -> int:
        """Number of safe cells opened so far."""
        return self._revealed_safe

    @property
    def safe_cells_remaining(self) -> int:
        return self.safe_cell_count - self._revealed_safe

    def is_valid_coord(self, x, y) -> bool:
        return 0 <= x < self.width and 0 <= y < self.height

    def _check_bounds(self, x, y):
        if isinstance(x, bool) or isinstance(y, bool) or not (
            isinstance(x, int) and isinstance(y, int)
        ):
            raise OutOfBounds(f"Coordinates must be integers, got ({x!r}, {y!r})")
        if not self.is_valid_coord(x, y):
            raise OutOfBounds(f"({x}, {y}) is outside a {self.width}x{self.height} board")

    def cell(self, x: int, y: int) -> Cell:
        self._check_bounds(x, y)
        return self._grid[y][x]

    def is_mine(self, x: int, y: int) -> bool:
        return self.cell(x, y).is_mine

    def mine_positions(self) -> List[Position]:
        return [
            (x, y)
            for y in range(self.height)
            for x in range(self.width)
            if self._grid[y][x].is_mine
        ]

    def flag_tally(self) -> Tuple[int, int]:
        """
        Return (correct, wrong) counts of the flags placed. Flags lifted off
        mines by a loss still count as correct.
        """
        correct = wrong = 0
        for row in self._grid:
            for cell in row:
                if cell.is_flagged or cell.was_flagged:
                    if cell.is_mine:
                        correct += 1
                    else:
                        wrong += 1
        return correct, wrong

    def to_array(self) -> np.ndarray:
        """
        Snapshot of what the player sees:
            -1 = hidden, -2 = flagged, 0-8 = revealed count, 9 = revealed mine
        """
        obs = np.full((self.height, self.width), -1, dtype=np.int8)
        for y in range(self.height):
            for x in range(self.width):
                cell = self._grid[y][x]
                if cell.is_flagged:
                    obs[y, x] = -2
                elif cell.is_revealed:
                    obs[y, x] = 9 if cell.is_mine else cell.adjacent_mines
        return obs

    def __str__(self):
        return format_board(self.visible_state())

    def visible_state(self, reveal_all: bool = False) -> List[List[object]]:
        """
        JSON-friendly rows of the board as it should be drawn.

        None = hidden, int = revealed number, "F" = flag, "X" = wrong flag
        (after a loss), "*" = the exploded mine, "M" = any other shown mine.
        On a win the remaining hidden mines are drawn as flags. With
        reveal_all every hidden cell is shown (debugging only).
        """
        won = self._status == GameStatus.WON
        state = []
        for y in range(self.height):
            row_cells = []
            for x in range(self.width):
                cell = self._grid[y][x]
                if cell.is_flagged:
                    row_cells.append("X" if cell.wrong_flag else "F")
                elif cell.is_revealed:
                    if cell.is_mine:
                        row_cells.append("*" if cell.exploded else "M")
                    else:
                        row_cells.append(cell.adjacent_mines)
                elif cell.is_mine and won:
                    row_cells.append("F")
                elif reveal_all:
                    row_cells.append("M" if cell.is_mine else cell.adjacent_mines)
                else:
                    row_cells.append(None)
            state.append(row_cells)
        return state
