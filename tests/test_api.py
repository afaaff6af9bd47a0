# tests/test_api.py

import threading
import unittest

from minegame.config import default_config
from minegame.game import GameSession
from webapp.app import create_app
from webapp.sessions import GameRegistry
from webapp.store import NotFound, ScoreStore

# Beginner layout where revealing (0, 0) clears the board in one click.
ONE_CLICK_WIN = [(x, 8) for x in range(9)] + [(8, 7)]
# Beginner layout where (0, 0) is a numbered cell and (1, 0) is a mine.
MINE_NEXT_TO_CORNER = [(1, 0)] + [(x, 8) for x in range(9)]


class ApiTestCase(unittest.TestCase):

    def setUp(self):
        self.store = ScoreStore()
        self.app = create_app(config=default_config(), store=self.store)
        self.app.testing = True
        self.client = self.app.test_client()
        self.games = self.app.extensions["minesweeper"]["games"]

    def as_user(self, username):
        return {"X-Username": username}

    def register(self, username, email=None):
        resp = self.client.post("/api/users", json={"username": username, "email": email})
        self.assertEqual(resp.status_code, 201)
        return resp.get_json()["data"]

    def new_game(self, mines=None, **body):
        resp = self.client.post("/api/games", json=body)
        self.assertEqual(resp.status_code, 201)
        game_id = resp.get_json()["data"]["game_id"]
        if mines is not None:
            with self.games.locked(game_id) as game:
                game.board._set_mines(mines)
        return game_id


class TestGames(ApiTestCase):

    def test_difficulties(self):
        data = self.client.get("/api/difficulties").get_json()["data"]
        self.assertIn({"name": "expert", "width": 24, "height": 16, "mines": 60}, data)

    def test_new_game(self):
        resp = self.client.post("/api/games", json={"difficulty": "intermediate"})
        state = resp.get_json()["data"]
        self.assertEqual(resp.status_code, 201)
        self.assertEqual((state["width"], state["height"], state["num_mines"]), (16, 16, 40))
        self.assertEqual(state["status"], "pending")
        self.assertTrue(state["ranked"])
        self.assertEqual(len(state["board"]), 16)

    def test_new_game_defaults_to_beginner(self):
        state = self.client.post("/api/games").get_json()["data"]
        self.assertEqual(state["difficulty"], "beginner")

    def test_custom_game(self):
        state = self.client.post("/api/games", json={"difficulty": "custom", "width": 5, "height": 4, "mines": 3}).get_json()["data"]
        self.assertEqual(state["difficulty"], "custom")
        self.assertFalse(state["ranked"])

    def test_bad_game_requests(self):
        self.assertEqual(self.client.post("/api/games", json={"difficulty": "nightmare"}).status_code, 400)
        self.assertEqual(self.client.post("/api/games", json={"difficulty": "custom", "width": 3, "height": 3, "mines": 9}).status_code, 400)
        self.assertEqual(self.client.post("/api/games", json={"difficulty": "custom"}).status_code, 400)

    def test_oversized_custom_board(self):
        resp = self.client.post("/api/games", json={"difficulty": "custom", "width": 100000, "height": 100000, "mines": 1})
        self.assertEqual(resp.status_code, 400)
        self.assertIn("at most 50", resp.get_json()["message"])
        self.assertEqual(len(self.games), 0)

    def test_size_fields_need_custom_difficulty(self):
        resp = self.client.post("/api/games", json={"difficulty": "expert", "width": 5, "height": 4, "mines": 3})
        self.assertEqual(resp.status_code, 400)
        self.assertIn("only apply to custom games", resp.get_json()["message"])

    def test_body_must_be_object(self):
        for path in ("/api/games", "/api/users"):
            resp = self.client.post(path, json=[1, 2])
            self.assertEqual(resp.status_code, 400)
            self.assertEqual(resp.get_json()["message"], "Invalid input: expected a JSON object")

    def test_reveal_and_flag(self):
        game_id = self.new_game(MINE_NEXT_TO_CORNER)

        resp = self.client.post(f"/api/games/{game_id}/flag", json={"x": 1, "y": 0})
        state = resp.get_json()["data"]
        self.assertEqual(state["last_action"]["is_mine"], True)
        self.assertEqual(state["board"][0][1], "F")

        resp = self.client.post(f"/api/games/{game_id}/reveal", json={"x": 0, "y": 0})
        state = resp.get_json()["data"]
        self.assertEqual(state["last_action"], {"action": "reveal", "result": "opened", "opened": 1})
        self.assertEqual(state["board"][0][0], 1)
        self.assertEqual(state["status"], "in_progress")

        resp = self.client.post(f"/api/games/{game_id}/reveal", json={"x": 1, "y": 0})
        self.assertEqual(resp.get_json()["data"]["last_action"]["result"], "ignored")

    def test_reveal_errors(self):
        game_id = self.new_game()
        self.assertEqual(self.client.post(f"/api/games/{game_id}/reveal", json={"x": 0}).status_code, 400)
        resp = self.client.post(f"/api/games/{game_id}/reveal", json={"x": 9, "y": 0})
        self.assertEqual(resp.status_code, 400)
        self.assertIn("outside", resp.get_json()["message"])
        self.assertEqual(self.client.post("/api/games/nope/reveal", json={"x": 0, "y": 0}).status_code, 404)

    def test_get_and_discard(self):
        game_id = self.new_game()
        self.assertEqual(self.client.get(f"/api/games/{game_id}").status_code, 200)
        self.assertEqual(self.client.delete(f"/api/games/{game_id}").status_code, 200)
        self.assertEqual(self.client.get(f"/api/games/{game_id}").status_code, 404)
        self.assertEqual(self.client.delete(f"/api/games/{game_id}").status_code, 404)


class TestScores(ApiTestCase):

    def setUp(self):
        super().setUp()
        self.register("ada", "ada@example.com")

    def test_win_is_saved_once(self):
        game_id = self.new_game(ONE_CLICK_WIN)
        state = self.client.post(f"/api/games/{game_id}/reveal", json={"x": 0, "y": 0}).get_json()["data"]
        self.assertEqual(state["status"], "won")
        self.assertTrue(state["outcome"]["won"])

        resp = self.client.post("/api/scores", json={"game_id": game_id}, headers=self.as_user("ada"))
        self.assertEqual(resp.status_code, 201)
        record = resp.get_json()["data"]
        self.assertEqual(record["score"], state["outcome"]["score"])
        self.assertTrue(record["won"])
        self.assertEqual(record["difficulty"], "beginner")

        again = self.client.post("/api/scores", json={"game_id": game_id}, headers=self.as_user("ada"))
        self.assertEqual(again.status_code, 409)

        bests = self.client.get("/api/scores/personal-best", headers=self.as_user("ada")).get_json()["data"]
        self.assertEqual(len(bests), 1)

        board = self.client.get("/api/scores/leaderboard/beginner").get_json()["data"]
        self.assertEqual(board[0]["user"]["username"], "ada")

    def test_loss_is_saved_with_won_false(self):
        game_id = self.new_game(MINE_NEXT_TO_CORNER)
        self.client.post(f"/api/games/{game_id}/reveal", json={"x": 0, "y": 0})
        state = self.client.post(f"/api/games/{game_id}/reveal", json={"x": 1, "y": 0}).get_json()["data"]
        self.assertEqual(state["status"], "lost")
        self.assertEqual(state["board"][0][1], "*")

        resp = self.client.post("/api/scores", json={"game_id": game_id}, headers=self.as_user("ada"))
        self.assertEqual(resp.status_code, 201)
        self.assertFalse(resp.get_json()["data"]["won"])

    def test_rejected_scores(self):
        game_id = self.new_game()
        self.assertEqual(self.client.post("/api/scores", json={"game_id": game_id}).status_code, 401)
        self.assertEqual(
            self.client.post("/api/scores", json={"game_id": game_id}, headers=self.as_user("ghost")).status_code,
            401,
        )
        unfinished = self.client.post("/api/scores", json={"game_id": game_id}, headers=self.as_user("ada"))
        self.assertEqual(unfinished.status_code, 400)
        self.assertEqual(self.client.post("/api/scores", json={}, headers=self.as_user("ada")).status_code, 400)

        custom_id = self.new_game(difficulty="custom", width=3, height=3, mines=1)
        with self.games.locked(custom_id) as game:
            game.board._set_mines([(2, 2)])
        self.client.post(f"/api/games/{custom_id}/reveal", json={"x": 0, "y": 0})
        resp = self.client.post("/api/scores", json={"game_id": custom_id}, headers=self.as_user("ada"))
        self.assertEqual(resp.status_code, 400)
        self.assertIn("not ranked", resp.get_json()["message"])

    def test_unknown_leaderboard(self):
        self.assertEqual(self.client.get("/api/scores/leaderboard/nightmare").status_code, 400)
        self.assertEqual(self.client.get("/api/scores/leaderboard/expert").get_json()["data"], [])


class TestUsers(ApiTestCase):

    def test_register_duplicate(self):
        self.register("ada")
        resp = self.client.post("/api/users", json={"username": "ada"})
        self.assertEqual(resp.status_code, 400)
        self.assertEqual(resp.get_json()["message"], "Username already taken")

    def test_profile(self):
        self.register("ada", "ada@example.com")
        profile = self.client.get("/api/users/profile", headers=self.as_user("ada")).get_json()["data"]
        self.assertEqual(profile["email"], "ada@example.com")

        resp = self.client.put("/api/users/profile", json={"username": "ada2"}, headers=self.as_user("ada"))
        self.assertEqual(resp.get_json()["data"]["username"], "ada2")
        self.assertEqual(self.client.get("/api/users/profile", headers=self.as_user("ada")).status_code, 401)


class TestAdmin(ApiTestCase):

    def setUp(self):
        super().setUp()
        self.admin = self.register("root")
        self.store.update_user_role(self.admin["id"], "admin")
        self.user = self.register("ada")
        self.store.create_score(self.user["id"], "beginner", 30, 250, True)

    def test_requires_admin(self):
        self.assertEqual(self.client.get("/api/admin/users").status_code, 401)
        self.assertEqual(self.client.get("/api/admin/users", headers=self.as_user("ada")).status_code, 403)

    def test_list_users(self):
        body = self.client.get("/api/admin/users", headers=self.as_user("root")).get_json()
        self.assertEqual(body["count"], 2)
        user = self.client.get(f"/api/admin/users/{self.user['id']}", headers=self.as_user("root")).get_json()
        self.assertEqual(user["data"]["username"], "ada")
        self.assertEqual(self.client.get("/api/admin/users/missing", headers=self.as_user("root")).status_code, 404)

    def test_update_role(self):
        url = f"/api/admin/users/{self.user['id']}/role"
        resp = self.client.put(url, json={"role": "admin"}, headers=self.as_user("root"))
        self.assertEqual(resp.get_json()["data"]["role"], "admin")
        self.assertEqual(self.client.put(url, json={"role": "owner"}, headers=self.as_user("root")).status_code, 400)

    def test_delete_user(self):
        resp = self.client.delete(f"/api/admin/users/{self.user['id']}", headers=self.as_user("root"))
        self.assertEqual(resp.status_code, 200)
        scores = self.client.get("/api/admin/scores", headers=self.as_user("root")).get_json()
        self.assertEqual(scores["count"], 0)

    def test_stats(self):
        stats = self.client.get("/api/admin/stats", headers=self.as_user("root")).get_json()["data"]
        self.assertEqual(stats["total_users"], 2)
        self.assertEqual(stats["total_games"], 1)
        self.assertEqual(stats["difficulty_stats"][0]["difficulty"], "beginner")
        self.assertEqual(len(stats["daily_activity"]), 1)


class TestGameRegistry(unittest.TestCase):

    def test_concurrent_flags_are_serialized(self):
        registry = GameRegistry()
        game = registry.add(GameSession.custom(4, 4, 2))
        game.board._set_mines([(3, 3), (3, 2)])

        def toggle_many():
            for _ in range(200):
                with registry.locked(game.game_id) as g:
                    g.toggle_flag(0, 0)

        threads = [threading.Thread(target=toggle_many) for _ in range(4)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()

        self.assertFalse(game.board.cell(0, 0).is_flagged)
        self.assertEqual(game.board.flag_count, 0)
        self.assertEqual(game.moves_made, 800)

    def test_unknown_game(self):
        registry = GameRegistry()
        with self.assertRaises(NotFound):
            with registry.locked("missing"):
                pass
        self.assertEqual(len(registry), 0)

    def test_finished_custom_games_are_dropped(self):
        registry = GameRegistry()
        for _ in range(50):
            game = registry.add(GameSession.custom(3, 3, 8))
            with registry.locked(game.game_id) as g:
                g.reveal(1, 1)
                self.assertTrue(g.is_win())
        # Only the last one is left; the rest went as each new game arrived.
        self.assertEqual(len(registry), 1)
        self.assertIn(game.game_id, registry)

    def test_saved_games_are_dropped(self):
        registry = GameRegistry()
        saved = registry.add(GameSession("beginner"))
        unsaved = registry.add(GameSession("beginner"))
        for game in (saved, unsaved):
            game.board._set_mines([(x, 8) for x in range(9)] + [(8, 7)])
            game.reveal(0, 0)
        saved.saved = True

        registry.add(GameSession("beginner"))
        self.assertNotIn(saved.game_id, registry)
        self.assertIn(unsaved.game_id, registry)

    def test_cap_evicts_least_recently_used(self):
        registry = GameRegistry(max_games=2)
        first = registry.add(GameSession("beginner"))
        second = registry.add(GameSession("beginner"))
        with registry.locked(first.game_id):
            pass
        third = registry.add(GameSession("beginner"))

        self.assertEqual(len(registry), 2)
        self.assertIn(first.game_id, registry)
        self.assertNotIn(second.game_id, registry)
        self.assertIn(third.game_id, registry)

    def test_idle_games_expire(self):
        now = [0.0]
        registry = GameRegistry(ttl=60, clock=lambda: now[0])
        idle = registry.add(GameSession("beginner"))
        active = registry.add(GameSession("beginner"))
        now[0] = 50.0
        with registry.locked(active.game_id):
            pass
        now[0] = 100.0
        registry.add(GameSession("beginner"))

        self.assertNotIn(idle.game_id, registry)
        self.assertIn(active.game_id, registry)
        with self.assertRaises(NotFound):
            with registry.locked(idle.game_id):
                pass

    def test_limits_come_from_config(self):
        app = create_app(config=default_config(), store=ScoreStore())
        registry = app.extensions["minesweeper"]["games"]
        self.assertEqual((registry.max_games, registry.ttl), (1000, 3600))


if __name__ == "__main__":
    unittest.main()
