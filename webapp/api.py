# webapp/api.py

from flask import Blueprint, current_app, jsonify, request

from minegame.board import MinesweeperError
from minegame.config import ConfigError
from minegame.game import CUSTOM, GameSession

from .store import NotFound, StoreError

api_blueprint = Blueprint("api", __name__)


class ApiError(Exception):
    def __init__(self, message: str, status: int = 400):
        super().__init__(message)
        self.message = message
        self.status = status


def _ext() -> dict:
    return current_app.extensions["minesweeper"]


def get_store():
    return _ext()["store"]


def _games():
    return _ext()["games"]


def json_payload() -> dict:
    data = request.get_json(silent=True)
    if data is None:
        return {}
    if not isinstance(data, dict):
        raise ApiError("Invalid input: expected a JSON object")
    return data


def _ok(data, status: int = 200):
    return jsonify({"success": True, "data": data}), status


def current_user() -> dict:
    """The user named by the X-Username header. No credential is checked."""
    username = request.headers.get("X-Username")
    if not username:
        raise ApiError("Not authorized, no user", 401)
    user = get_store().find_user(username)
    if user is None:
        raise ApiError("Not authorized, unknown user", 401)
    return user


# ----------------------------------------------------------------------
# Error handlers (registered app-wide)
# ----------------------------------------------------------------------

@api_blueprint.app_errorhandler(ApiError)
def _handle_api_error(e):
    return jsonify({"message": e.message}), e.status


@api_blueprint.app_errorhandler(MinesweeperError)
@api_blueprint.app_errorhandler(ConfigError)
@api_blueprint.app_errorhandler(StoreError)
def _handle_bad_request(e):
    return jsonify({"message": str(e)}), 400


@api_blueprint.app_errorhandler(NotFound)
def _handle_not_found(e):
    return jsonify({"message": str(e)}), 404


# ----------------------------------------------------------------------
# Games
# ----------------------------------------------------------------------

@api_blueprint.route("/difficulties", methods=["GET"])
def list_difficulties():
    presets = _ext()["config"].difficulties.values()
    return _ok([
        {"name": d.name, "width": d.width, "height": d.height, "mines": d.mines}
        for d in presets
    ])


@api_blueprint.route("/games", methods=["POST"])
def new_game():
    data = json_payload()
    config = _ext()["config"]
    difficulty = data.get("difficulty", "beginner")

    if difficulty == CUSTOM:
        game = GameSession.custom(
            width=data.get("width"),
            height=data.get("height"),
            mines=data.get("mines"),
            config=config,
        )
    else:
        sized = [key for key in ("width", "height", "mines") if key in data]
        if sized:
            raise ApiError(f"Invalid input: {', '.join(sized)} only apply to custom games")
        game = GameSession(difficulty, config=config)

    _games().add(game)
    current_app.logger.info("New %s game %s", game.difficulty, game.game_id)
    return _ok(game.get_state(), 201)


@api_blueprint.route("/games/<game_id>", methods=["GET"])
def get_game(game_id):
    with _games().locked(game_id) as game:
        return _ok(game.get_state())


@api_blueprint.route("/games/<game_id>", methods=["DELETE"])
def discard_game(game_id):
    _games().discard(game_id)
    return _ok({})


def _step(game_id, action):
    data = json_payload()
    x, y = data.get("x"), data.get("y")
    if x is None or y is None:
        raise ApiError("Invalid input: x and y are required")

    with _games().locked(game_id) as game:
        state = game.step(action, x, y)
    return _ok(state)


@api_blueprint.route("/games/<game_id>/reveal", methods=["POST"])
def reveal(game_id):
    return _step(game_id, "reveal")


@api_blueprint.route("/games/<game_id>/flag", methods=["POST"])
def flag(game_id):
    return _step(game_id, "flag")


# ----------------------------------------------------------------------
# Scores
# ----------------------------------------------------------------------

@api_blueprint.route("/scores", methods=["POST"])
def save_score():
    """Store the outcome of a finished ranked game for the current user."""
    user = current_user()
    game_id = json_payload().get("game_id")
    if not game_id:
        raise ApiError("Invalid input: game_id is required")

    with _games().locked(game_id) as game:
        if game.outcome is None:
            raise ApiError("Game is not finished")
        if not game.ranked:
            raise ApiError("Custom games are not ranked")
        if game.saved:
            raise ApiError("Score already saved", 409)
        outcome = game.outcome
        record = get_store().create_score(
            user=user["id"],
            difficulty=outcome.difficulty,
            time=outcome.time,
            score=outcome.score,
            won=outcome.won,
        )
        game.saved = True

    current_app.logger.info("Saved score %s for %s", outcome.score, user["username"])
    return _ok(record, 201)


@api_blueprint.route("/scores/personal-best", methods=["GET"])
def personal_best():
    user = current_user()
    return _ok(get_store().list_personal_bests(user["id"]))


@api_blueprint.route("/scores/leaderboard/<difficulty>", methods=["GET"])
def leaderboard(difficulty):
    # Raises ConfigError (400) for names that are not presets.
    _ext()["config"].get_difficulty(difficulty)
    return _ok(get_store().list_leaderboard(difficulty))


# ----------------------------------------------------------------------
# Users
# ----------------------------------------------------------------------

@api_blueprint.route("/users", methods=["POST"])
def register():
    data = json_payload()
    user = get_store().create_user(data.get("username"), email=data.get("email"))
    return _ok(user, 201)


@api_blueprint.route("/users/profile", methods=["GET"])
def get_profile():
    return _ok(current_user())


@api_blueprint.route("/users/profile", methods=["PUT"])
def update_profile():
    user = current_user()
    data = json_payload()
    updated = get_store().update_user(user["id"], username=data.get("username"), email=data.get("email"))
    return _ok(updated)
