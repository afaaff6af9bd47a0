# minegame/game.py

import logging
import time
import uuid
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Callable, Optional

from .board import Board, FlagOutcome, GameStatus, InvalidConfiguration, RevealOutcome, RevealResult
from .config import RANKED_DIFFICULTIES, GameConfig, default_config
from .scoring import ScoreBreakdown, compute_score

logger = logging.getLogger(__name__)

CUSTOM = "custom"


@dataclass(frozen=True)
class GameOutcome:
    """Final result of one attempt, ready to be stored as a score."""

    score: int
    difficulty: str
    won: bool
    time: int
    cells_opened: int
    correct_flags: int
    wrong_flags: int
    breakdown: ScoreBreakdown

    def to_dict(self) -> dict:
        return {
            "score": self.score,
            "difficulty": self.difficulty,
            "won": self.won,
            "time": self.time,
            "cells_opened": self.cells_opened,
            "correct_flags": self.correct_flags,
            "wrong_flags": self.wrong_flags,
            "breakdown": self.breakdown.to_dict(),
        }


class GameSession:
    """
    A wrapper around Board that times the attempt, keeps the player's
    statistics and produces the GameOutcome once the board is finished.
    """

    def __init__(
        self,
        difficulty: str = "beginner",
        width: Optional[int] = None,
        height: Optional[int] = None,
        mines: Optional[int] = None,
        seed=None,
        config: Optional[GameConfig] = None,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.config = config or default_config()
        if difficulty == CUSTOM:
            if width is None or height is None or mines is None:
                raise InvalidConfiguration("Custom games need width, height and mines")
            self._check_custom_size(width, height)
        else:
            preset = self.config.get_difficulty(difficulty)
            width, height, mines = preset.width, preset.height, preset.mines

        self.difficulty = difficulty
        self.board = Board(width, height, mines, seed=seed)
        self.game_id = uuid.uuid4().hex
        self.created_at = datetime.now(timezone.utc)
        self._clock = clock
        self._started_at = None
        self._finished_at = None

        self.moves_made = 0
        self.cells_opened = 0
        self.outcome: Optional[GameOutcome] = None
        self.saved = False

    @classmethod
    def custom(cls, width: int, height: int, mines: int, **kwargs) -> "GameSession":
        """Unranked game on an arbitrary board, scored with beginner weights."""
        return cls(CUSTOM, width=width, height=height, mines=mines, **kwargs)

    def _check_custom_size(self, width, height):
        # Non-integers are left for Board to reject.
        for name, value in (("width", width), ("height", height)):
            limit = self.config.server_setting(f"max_{name}", 50)
            if isinstance(value, int) and value > limit:
                raise InvalidConfiguration(f"Custom {name} must be at most {limit}, got {value}")

    @property
    def ranked(self) -> bool:
        return self.difficulty in RANKED_DIFFICULTIES

    # ------------------------------------------------------------------
    # Player actions
    # ------------------------------------------------------------------

    def reveal(self, x: int, y: int) -> RevealOutcome:
        result = self.board.reveal(x, y)
        if result.result in (RevealResult.OPENED, RevealResult.EXPLODED):
            self._start_timer()
            self.moves_made += 1
            if result.result == RevealResult.OPENED:
                self.cells_opened += result.count
        self._finish_if_over()
        return result

    def toggle_flag(self, x: int, y: int) -> FlagOutcome:
        result = self.board.toggle_flag(x, y)
        if result.changed:
            self._start_timer()
            self.moves_made += 1
        return result

    def step(self, action: str, x: int, y: int) -> dict:
        """
        Apply an action ("reveal" or "flag") at (x, y).
        Returns a dict describing the game state after the action.
        """
        if action == "reveal":
            result = self.reveal(x, y)
            last = {"action": action, "result": result.result.value, "opened": result.count}
        elif action == "flag":
            result = self.toggle_flag(x, y)
            last = {"action": action, "changed": result.changed, "flagged": result.flagged}
            if result.changed:
                last["is_mine"] = result.is_mine
        else:
            raise ValueError(f"Unknown action '{action}'")

        state = self.get_state()
        state["last_action"] = last
        return state

    # ------------------------------------------------------------------
    # Timing and outcome
    # ------------------------------------------------------------------

    def _start_timer(self):
        if self._started_at is None:
            self._started_at = self._clock()

    def elapsed(self) -> float:
        if self._started_at is None:
            return 0.0
        end = self._finished_at if self._finished_at is not None else self._clock()
        return max(0.0, end - self._started_at)

    def _finish_if_over(self):
        if self.outcome is not None or not self.board.is_over:
            return
        self._finished_at = self._clock()
        won = self.board.status() == GameStatus.WON
        time_taken = int(self.elapsed())
        correct, wrong = self.board.flag_tally()

        breakdown = compute_score(
            difficulty=self.difficulty if self.ranked else "beginner",
            won=won,
            time_taken=time_taken,
            cells_opened=self.cells_opened,
            correct_flags=correct,
            wrong_flags=wrong,
            mine_count=self.board.mine_count,
            safe_cells=self.board.safe_cell_count,
            config=self.config,
        )
        self.outcome = GameOutcome(
            score=breakdown.final_score,
            difficulty=self.difficulty,
            won=won,
            time=time_taken,
            cells_opened=self.cells_opened,
            correct_flags=correct,
            wrong_flags=wrong,
            breakdown=breakdown,
        )
        logger.info(
            "Game %s %s on %s in %ss, score %s",
            self.game_id, "won" if won else "lost", self.difficulty, time_taken, breakdown.final_score,
        )

    # ------------------------------------------------------------------
    # State
    # ------------------------------------------------------------------

    def is_game_over(self) -> bool:
        return self.board.is_over

    def is_win(self) -> bool:
        return self.board.status() == GameStatus.WON

    def progress(self) -> float:
        """Share of the safe cells opened so far."""
        return self.board.revealed_count / self.board.safe_cell_count

    def get_state(self) -> dict:
        """
        Return the current visible board and game status.
        """
        return {
            "game_id": self.game_id,
            "difficulty": self.difficulty,
            "ranked": self.ranked,
            "board": self.board.visible_state(),
            "status": self.board.status().value,
            "game_over": self.is_game_over(),
            "won": self.is_win(),
            "moves_made": self.moves_made,
            "width": self.board.width,
            "height": self.board.height,
            "num_mines": self.board.mine_count,
            "flags": self.board.flag_count,
            "mines_left": self.board.mine_count - self.board.flag_count,
            "progress": round(self.progress(), 4),
            "elapsed": int(self.elapsed()),
            "outcome": self.outcome.to_dict() if self.outcome else None,
            "saved": self.saved,
        }
