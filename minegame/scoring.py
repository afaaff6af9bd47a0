# minegame/scoring.py

import math
from dataclasses import asdict, dataclass
from typing import Dict, Optional

from .config import GameConfig, default_config


@dataclass(frozen=True)
class ScoreBreakdown:
    base_score: float
    cell_opening_points: float
    correct_flag_points: float
    wrong_flag_penalty: float
    time_decay: float
    win_bonus: float
    final_score: int

    def to_dict(self) -> Dict[str, float]:
        return asdict(self)


def round_half_up(value: float) -> int:
    """Round .5 upward, the way browsers round scores."""
    return int(math.floor(value + 0.5))


def compute_score(
    difficulty: str,
    won: bool,
    time_taken: float,
    cells_opened: int,
    correct_flags: int,
    wrong_flags: int,
    mine_count: Optional[int] = None,
    safe_cells: Optional[int] = None,
    config: Optional[GameConfig] = None,
) -> ScoreBreakdown:
    """
    Score a finished attempt.

    A win pays for every safe cell on the board (`safe_cells`) and for at most
    `mine_count` correct flags, plus the win bonus. A loss pays for the cells
    actually opened before the mine went off. Both lose `time_decay` points
    per second up to `decay_cap * base_score`, and both are floored at
    `min_score`.
    """
    config = config or default_config()
    params = config.scoring_params(difficulty, won)

    if difficulty in config.difficulties:
        preset = config.get_difficulty(difficulty)
        mine_count = preset.mines if mine_count is None else mine_count
        safe_cells = preset.safe_cells if safe_cells is None else safe_cells

    base = params["base_score"]
    if won:
        opened = safe_cells if safe_cells is not None else cells_opened
        correct = min(correct_flags, mine_count) if mine_count is not None else correct_flags
        win_bonus = params["win_bonus"]
    else:
        opened = cells_opened
        correct = correct_flags
        win_bonus = 0

    cell_points = opened * params["points_per_cell"]
    flag_points = correct * params["points_per_correct_flag"]
    wrong_penalty = wrong_flags * params["penalty_per_wrong_flag"]
    decay = min(time_taken * params["time_decay"], base * params["decay_cap"])

    score = round_half_up(base + cell_points + flag_points + wrong_penalty - decay + win_bonus)
    score = max(score, int(params["min_score"]))

    return ScoreBreakdown(
        base_score=base,
        cell_opening_points=cell_points,
        correct_flag_points=flag_points,
        wrong_flag_penalty=wrong_penalty,
        time_decay=decay,
        win_bonus=win_bonus,
        final_score=score,
    )
