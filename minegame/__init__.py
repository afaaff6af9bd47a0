from .board import (
    Board,
    Cell,
    CellState,
    FlagOutcome,
    GameStatus,
    InvalidConfiguration,
    MinesweeperError,
    OutOfBounds,
    RevealOutcome,
    RevealResult,
)
from .config import ConfigError, Difficulty, GameConfig, load_config
from .game import GameOutcome, GameSession
from .scoring import ScoreBreakdown, compute_score

__all__ = [
    "Board",
    "Cell",
    "CellState",
    "FlagOutcome",
    "GameStatus",
    "InvalidConfiguration",
    "MinesweeperError",
    "OutOfBounds",
    "RevealOutcome",
    "RevealResult",
    "ConfigError",
    "Difficulty",
    "GameConfig",
    "load_config",
    "GameOutcome",
    "GameSession",
    "ScoreBreakdown",
    "compute_score",
]
