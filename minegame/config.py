# minegame/config.py

import copy
import os
from dataclasses import dataclass
from typing import Any, Dict, Optional

import yaml

DEFAULT_CONFIG_PATH = os.path.join(os.path.dirname(__file__), "game_config.yaml")
CONFIG_ENV_VAR = "MINESWEEPER_CONFIG"

RANKED_DIFFICULTIES = ("beginner", "intermediate", "expert")

_SCORING_KEYS = (
    "base_score",
    "points_per_cell",
    "points_per_correct_flag",
    "penalty_per_wrong_flag",
    "time_decay",
)


class ConfigError(ValueError):
    """Raised for a missing, unreadable or inconsistent configuration."""


@dataclass(frozen=True)
class Difficulty:
    name: str
    width: int
    height: int
    mines: int

    @property
    def safe_cells(self) -> int:
        return self.width * self.height - self.mines


class GameConfig:
    """
    Parsed game_config.yaml: board presets, scoring tables and server settings.
    """

    def __init__(self, raw: Dict[str, Any]):
        self.raw = raw
        self.difficulties = self._parse_difficulties(raw.get("difficulties"))
        self.scoring = raw.get("scoring") or {}
        self.server = raw.get("server") or {}
        self._check_scoring()

    @staticmethod
    def _parse_difficulties(section) -> Dict[str, Difficulty]:
        if not isinstance(section, dict) or not section:
            raise ConfigError("'difficulties' must be a non-empty mapping")
        presets = {}
        for name, values in section.items():
            try:
                presets[name] = Difficulty(
                    name=name,
                    width=int(values["width"]),
                    height=int(values["height"]),
                    mines=int(values["mines"]),
                )
            except (KeyError, TypeError, ValueError) as e:
                raise ConfigError(f"Invalid difficulty '{name}': {e}") from e
        return presets

    def _check_scoring(self):
        for outcome in ("won", "lost"):
            table = self.scoring.get(outcome)
            if not isinstance(table, dict):
                raise ConfigError(f"Missing scoring table 'scoring.{outcome}'")
            for name in RANKED_DIFFICULTIES:
                params = table.get(name)
                if not isinstance(params, dict):
                    raise ConfigError(f"Missing scoring.{outcome}.{name}")
                missing = [key for key in _SCORING_KEYS if key not in params]
                if outcome == "won" and "win_bonus" not in params:
                    missing.append("win_bonus")
                if missing:
                    raise ConfigError(
                        f"scoring.{outcome}.{name} is missing: {', '.join(missing)}"
                    )

    def get_difficulty(self, name: str) -> Difficulty:
        try:
            return self.difficulties[name]
        except KeyError:
            raise ConfigError(
                f"Unknown difficulty '{name}'. Available: {sorted(self.difficulties)}"
            ) from None

    def scoring_params(self, difficulty: str, won: bool) -> Dict[str, float]:
        """Weights for one difficulty, with the table-wide cap and floor merged in."""
        table = self.scoring["won" if won else "lost"]
        if difficulty not in table:
            raise ConfigError(f"No scoring weights for difficulty '{difficulty}'")
        params = dict(table[difficulty])
        params.setdefault("decay_cap", table.get("decay_cap", 0.4 if won else 0.25))
        params.setdefault("min_score", table.get("min_score", 10 if won else 5))
        params.setdefault("win_bonus", 0)
        return params

    def server_setting(self, key: str, default=None):
        return self.server.get(key, default)


def _deep_merge(base: Dict, override: Dict) -> Dict:
    merged = copy.deepcopy(base)
    for key, value in override.items():
        if isinstance(value, dict) and isinstance(merged.get(key), dict):
            merged[key] = _deep_merge(merged[key], value)
        else:
            merged[key] = value
    return merged


def _read_yaml(path: str) -> Dict[str, Any]:
    try:
        with open(path, "r") as f:
            data = yaml.safe_load(f) or {}
    except OSError as e:
        raise ConfigError(f"Cannot read config file {path}: {e}") from e
    except yaml.YAMLError as e:
        raise ConfigError(f"Malformed YAML in {path}: {e}") from e
    if not isinstance(data, dict):
        raise ConfigError(f"Config file {path} must contain a mapping")
    return data


def load_config(path: Optional[str] = None) -> GameConfig:
    """
    Load the packaged defaults and overlay a user config on top.

    The user file is taken from `path`, else from $MINESWEEPER_CONFIG.
    Only the keys present in the user file are replaced.
    """
    raw = _read_yaml(DEFAULT_CONFIG_PATH)
    path = path or os.environ.get(CONFIG_ENV_VAR)
    if path:
        if not os.path.exists(path):
            raise ConfigError(f"Config file not found: {path}")
        raw = _deep_merge(raw, _read_yaml(path))
    return GameConfig(raw)


_default_config = None


def default_config() -> GameConfig:
    """Packaged configuration, loaded once."""
    global _default_config
    if _default_config is None:
        _default_config = GameConfig(_read_yaml(DEFAULT_CONFIG_PATH))
    return _default_config
