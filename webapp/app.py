# webapp/app.py

import logging

from flask import Flask, jsonify

from minegame.config import load_config
from webapp.admin import admin_blueprint
from webapp.api import api_blueprint
from webapp.sessions import GameRegistry
from webapp.store import ScoreStore


def create_app(config=None, store=None):
    """
    Build the Flask app. `config` is a GameConfig (defaults to load_config()),
    `store` a ScoreStore (defaults to one built from the config's server section).
    """
    config = config or load_config()
    app = Flask(__name__)
    app.extensions["minesweeper"] = {
        "config": config,
        "store": store if store is not None else ScoreStore.from_config(config),
        "games": GameRegistry.from_config(config),
    }
    app.register_blueprint(api_blueprint, url_prefix="/api")
    app.register_blueprint(admin_blueprint, url_prefix="/api/admin")

    @app.route("/")
    def index():
        return jsonify({"name": "minesweeper-arena", "api": "/api"})

    return app


def main():
    import argparse

    parser = argparse.ArgumentParser()
    parser.add_argument("--port", type=int, default=5000, help="Port to run the server on")
    parser.add_argument("--host", type=str, default="0.0.0.0", help="Host IP")
    parser.add_argument("--debug", action="store_true", help="Enable debug mode")
    parser.add_argument("--config", type=str, default=None, help="YAML file overriding the packaged game config")
    parser.add_argument("--data", type=str, default=None, help="JSON file for users and scores")
    args = parser.parse_args()

    logging.basicConfig(level=logging.DEBUG if args.debug else logging.INFO)
    config = load_config(args.config)
    store = ScoreStore.from_config(config)
    if args.data:
        store = ScoreStore(
            path=args.data,
            leaderboard_limit=store.leaderboard_limit,
            personal_best_limit=store.personal_best_limit,
            daily_activity_days=store.daily_activity_days,
        )

    app = create_app(config, store)
    print(f"Running on http://{args.host}:{args.port}/")
    app.run(debug=args.debug, host=args.host, port=args.port)


if __name__ == "__main__":
    main()
