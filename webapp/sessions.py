# webapp/sessions.py

import logging
import threading
import time
from collections import OrderedDict
from contextlib import contextmanager
from dataclasses import dataclass, field
from typing import Callable, Iterator

from minegame.game import GameSession

from .store import NotFound

logger = logging.getLogger(__name__)


@dataclass
class _Entry:
    game: GameSession
    touched: float
    lock: threading.Lock = field(default_factory=threading.Lock)


class GameRegistry:
    """
    Live games by id. Each game carries its own lock so that requests racing
    on the same board are applied one at a time.

    Finished games that can no longer be saved (already saved, or unranked)
    are dropped when the next game is added, as are games idle for longer
    than `ttl` seconds. Past `max_games` the least recently used game goes.
    """

    def __init__(self, max_games: int = 1000, ttl: float = 3600, clock: Callable[[], float] = time.monotonic):
        self.max_games = max_games
        self.ttl = ttl
        self._clock = clock
        self._games: "OrderedDict[str, _Entry]" = OrderedDict()
        self._lock = threading.Lock()

    @classmethod
    def from_config(cls, config) -> "GameRegistry":
        return cls(
            max_games=config.server_setting("max_live_games", 1000),
            ttl=config.server_setting("game_ttl", 3600),
        )

    def add(self, game: GameSession) -> GameSession:
        with self._lock:
            self._prune()
            while len(self._games) >= self.max_games:
                game_id, _ = self._games.popitem(last=False)
                logger.info("Evicted game %s, registry full", game_id)
            self._games[game.game_id] = _Entry(game, self._clock())
        return game

    def _prune(self):
        now = self._clock()
        for game_id, entry in list(self._games.items()):
            game = entry.game
            done = game.outcome is not None and (game.saved or not game.ranked)
            if done or now - entry.touched > self.ttl:
                del self._games[game_id]
                logger.debug("Dropped game %s", game_id)

    def _entry(self, game_id: str) -> _Entry:
        with self._lock:
            try:
                entry = self._games[game_id]
            except KeyError:
                raise NotFound("Game not found") from None
            entry.touched = self._clock()
            self._games.move_to_end(game_id)
            return entry

    @contextmanager
    def locked(self, game_id: str) -> Iterator[GameSession]:
        entry = self._entry(game_id)
        with entry.lock:
            yield entry.game

    def discard(self, game_id: str):
        with self._lock:
            if self._games.pop(game_id, None) is None:
                raise NotFound("Game not found")

    def __contains__(self, game_id: str) -> bool:
        with self._lock:
            return game_id in self._games

    def __len__(self):
        with self._lock:
            return len(self._games)
