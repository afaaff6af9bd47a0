# webapp/store.py

import json
import logging
import os
import threading
import uuid
from datetime import datetime, timezone
from typing import Dict, List, Optional

from minegame.config import RANKED_DIFFICULTIES
from reports.leaderboard import rank_scores, sort_personal_bests, summarize_scores

logger = logging.getLogger(__name__)

ROLES = ("user", "admin")


class StoreError(ValueError):
    """Rejected write: duplicate user, bad role, bad score fields."""


class NotFound(KeyError):
    """No record with the requested id."""

    def __str__(self):
        return self.args[0] if self.args else "Not found"


def _now() -> str:
    return datetime.now(timezone.utc).isoformat()


class ScoreStore:
    """
    Users and scores kept in memory, optionally mirrored to a JSON file.

    All public methods take the same lock and return copies, so callers can
    share one store between request threads.
    """

    def __init__(
        self,
        path: Optional[str] = None,
        leaderboard_limit: int = 10,
        personal_best_limit: int = 15,
        daily_activity_days: int = 7,
    ):
        self.path = path
        self.leaderboard_limit = leaderboard_limit
        self.personal_best_limit = personal_best_limit
        self.daily_activity_days = daily_activity_days
        self._lock = threading.RLock()
        self._users: Dict[str, Dict] = {}
        self._scores: Dict[str, Dict] = {}
        if path and os.path.exists(path):
            self._load()

    @classmethod
    def from_config(cls, config) -> "ScoreStore":
        return cls(
            path=config.server_setting("data_path"),
            leaderboard_limit=config.server_setting("leaderboard_limit", 10),
            personal_best_limit=config.server_setting("personal_best_limit", 15),
            daily_activity_days=config.server_setting("daily_activity_days", 7),
        )

    # ------------------------------------------------------------------
    # Persistence
    # ------------------------------------------------------------------

    def _load(self):
        with open(self.path, "r") as f:
            data = json.load(f)
        self._users = {u["id"]: u for u in data.get("users", [])}
        self._scores = {s["id"]: s for s in data.get("scores", [])}
        logger.info("Loaded %d users and %d scores from %s", len(self._users), len(self._scores), self.path)

    def _save(self):
        if not self.path:
            return
        tmp_path = self.path + ".tmp"
        with open(tmp_path, "w") as f:
            json.dump(
                {"users": list(self._users.values()), "scores": list(self._scores.values())},
                f,
                indent=2,
            )
        os.replace(tmp_path, self.path)

    # ------------------------------------------------------------------
    # Users
    # ------------------------------------------------------------------

    def create_user(self, username: str, email: Optional[str] = None, role: str = "user") -> Dict:
        if not username or not isinstance(username, str):
            raise StoreError("Username is required")
        if role not in ROLES:
            raise StoreError("Invalid role")
        with self._lock:
            for user in self._users.values():
                if user["username"] == username:
                    raise StoreError("Username already taken")
                if email and user.get("email") == email:
                    raise StoreError("Email already in use")
            user = {
                "id": uuid.uuid4().hex,
                "username": username,
                "email": email,
                "role": role,
                "created_at": _now(),
            }
            self._users[user["id"]] = user
            self._save()
            return dict(user)

    def get_user(self, user_id: str) -> Dict:
        with self._lock:
            if user_id not in self._users:
                raise NotFound("User not found")
            return dict(self._users[user_id])

    def find_user(self, username: str) -> Optional[Dict]:
        with self._lock:
            for user in self._users.values():
                if user["username"] == username:
                    return dict(user)
        return None

    def find_user_by_email(self, email: str) -> Optional[Dict]:
        with self._lock:
            for user in self._users.values():
                if user.get("email") == email:
                    return dict(user)
        return None

    def list_users(self) -> List[Dict]:
        with self._lock:
            return [dict(u) for u in self._users.values()]

    def update_user(self, user_id: str, username: Optional[str] = None, email: Optional[str] = None) -> Dict:
        """Change username and/or email, refusing values another user holds."""
        with self._lock:
            if user_id not in self._users:
                raise NotFound("User not found")
            for other in self._users.values():
                if other["id"] == user_id:
                    continue
                if email and other.get("email") == email:
                    raise StoreError("Email already in use")
                if username and other["username"] == username:
                    raise StoreError("Username already taken")
            user = self._users[user_id]
            if username:
                user["username"] = username
            if email:
                user["email"] = email
            self._save()
            return dict(user)

    def update_user_role(self, user_id: str, role: str) -> Dict:
        if role not in ROLES:
            raise StoreError("Invalid role")
        with self._lock:
            if user_id not in self._users:
                raise NotFound("User not found")
            self._users[user_id]["role"] = role
            self._save()
            return dict(self._users[user_id])

    def delete_user(self, user_id: str):
        """Remove a user together with all of their scores."""
        with self._lock:
            if user_id not in self._users:
                raise NotFound("User not found")
            del self._users[user_id]
            self._scores = {
                score_id: score
                for score_id, score in self._scores.items()
                if score["user"] != user_id
            }
            self._save()

    # ------------------------------------------------------------------
    # Scores
    # ------------------------------------------------------------------

    def create_score(self, user: str, difficulty: str, time: int, score: int, won: bool) -> Dict:
        if difficulty not in RANKED_DIFFICULTIES:
            raise StoreError(f"Invalid difficulty '{difficulty}'")
        if time < 0:
            raise StoreError("Time cannot be negative")
        with self._lock:
            if user not in self._users:
                raise NotFound("User not found")
            record = {
                "id": uuid.uuid4().hex,
                "user": user,
                "difficulty": difficulty,
                "time": time,
                "score": score,
                "won": bool(won),
                "date": _now(),
            }
            self._scores[record["id"]] = record
            self._save()
            return dict(record)

    def _with_username(self, score: Dict) -> Dict:
        user = self._users.get(score["user"], {})
        return dict(score, user={"id": score["user"], "username": user.get("username")})

    def list_personal_bests(self, user: str) -> List[Dict]:
        with self._lock:
            own = [s for s in self._scores.values() if s["user"] == user]
            return [dict(s) for s in sort_personal_bests(own, self.personal_best_limit)]

    def list_leaderboard(self, difficulty: str) -> List[Dict]:
        with self._lock:
            scores = [s for s in self._scores.values() if s["difficulty"] == difficulty]
            return [self._with_username(s) for s in rank_scores(scores, self.leaderboard_limit)]

    def list_scores(self) -> List[Dict]:
        """Every score, newest first."""
        with self._lock:
            ordered = sorted(self._scores.values(), key=lambda s: s["date"], reverse=True)
            return [self._with_username(s) for s in ordered]

    def get_stats(self) -> Dict:
        with self._lock:
            return summarize_scores(
                list(self._scores.values()),
                total_users=len(self._users),
                days=self.daily_activity_days,
            )
