#!/usr/bin/env python
"""Promote a user to admin in the server's JSON store.

Usage:
  python scripts/set_admin.py your@email.com --data data/minesweeper.json

The data file defaults to `server.data_path` from the game config.
"""
import sys, os
sys.path.append(os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

import argparse
import re

from minegame.config import load_config
from webapp.store import ScoreStore

EMAIL_RE = re.compile(r"^[^\s@]+@[^\s@]+\.[^\s@]+$")


def set_admin(store: ScoreStore, email: str) -> str:
    user = store.find_user_by_email(email)
    if user is None:
        return f"User with email {email} not found. Make sure the email is correct and the user exists."
    if user["role"] == "admin":
        return f"User {email} found but role was already set to admin."
    store.update_user_role(user["id"], "admin")
    return f"User {email} role updated to admin successfully!"


def main(argv=None):
    p = argparse.ArgumentParser()
    p.add_argument("email", help="email address of the user to promote")
    p.add_argument("--data", default=None, help="JSON store file (overrides server.data_path)")
    p.add_argument("--config", default=None, help="YAML file overriding the packaged game config")
    args = p.parse_args(argv)

    if not EMAIL_RE.match(args.email):
        print("Please provide a valid email address.")
        return 1

    path = args.data or load_config(args.config).server_setting("data_path")
    if not path or not os.path.exists(path):
        print(f"No data file found at {path!r}. Pass --data or set server.data_path.")
        return 1

    print(set_admin(ScoreStore(path=path), args.email))
    return 0


if __name__ == "__main__":
    sys.exit(main())
