# reports/leaderboard.py

import argparse
import csv
import json
from collections import defaultdict
from typing import Dict, Iterable, List

import numpy as np

DIFFICULTY_ORDER = {"beginner": 0, "intermediate": 1, "expert": 2}


def _username(entry: Dict) -> str:
    user = entry.get("user")
    if isinstance(user, dict):
        return user.get("username") or user.get("id", "?")
    return str(user)


def rank_scores(scores: Iterable[Dict], limit: int = None) -> List[Dict]:
    """
    Best first: higher score, then faster time, then the earlier game.
    """
    ranked = sorted(scores, key=lambda s: (-s["score"], s["time"], s["date"]))
    return ranked[:limit] if limit is not None else ranked


def sort_personal_bests(scores: Iterable[Dict], limit: int = None) -> List[Dict]:
    ordered = sorted(
        scores,
        key=lambda s: (DIFFICULTY_ORDER.get(s["difficulty"], len(DIFFICULTY_ORDER)), -s["score"]),
    )
    return ordered[:limit] if limit is not None else ordered


def difficulty_stats(scores: Iterable[Dict]) -> List[Dict]:
    grouped = defaultdict(list)
    for row in scores:
        grouped[row["difficulty"]].append(row)

    stats = []
    for difficulty, rows in grouped.items():
        stats.append({
            "difficulty": difficulty,
            "count": len(rows),
            "avg_time": float(np.mean([r["time"] for r in rows])),
            "avg_score": float(np.mean([r["score"] for r in rows])),
            "win_rate": float(np.mean([bool(r.get("won")) for r in rows])),
        })
    stats.sort(key=lambda s: DIFFICULTY_ORDER.get(s["difficulty"], len(DIFFICULTY_ORDER)))
    return stats


def daily_activity(scores: Iterable[Dict], days: int = 7) -> List[Dict]:
    """Games per calendar day (UTC), newest day first, at most `days` days."""
    counts = defaultdict(int)
    for row in scores:
        counts[row["date"][:10]] += 1
    newest = sorted(counts.items(), reverse=True)[:days]
    return [{"date": day, "count": count} for day, count in newest]


def summarize_scores(scores: List[Dict], total_users: int, days: int = 7) -> Dict:
    return {
        "total_users": total_users,
        "total_games": len(scores),
        "difficulty_stats": difficulty_stats(scores),
        "daily_activity": daily_activity(scores, days),
    }


def display_leaderboard(entries: List[Dict], difficulty: str):
    print(f"\n🏆 Minesweeper Leaderboard ({difficulty})\n")
    header = f"{'#':<4} {'Player':<20} {'Score':<8} {'Time':<8} {'Won':<5} {'Date'}"
    print(header)
    print("-" * len(header))

    for rank, entry in enumerate(entries, start=1):
        won = "yes" if entry.get("won") else "no"
        print(f"{rank:<4} {_username(entry):<20} {entry['score']:<8} {entry['time']:<8} {won:<5} {entry['date'][:10]}")


def export_leaderboard_csv(entries: List[Dict], path="leaderboard.csv"):
    with open(path, "w", newline="") as f:
        writer = csv.writer(f)
        writer.writerow(["Rank", "Player", "Difficulty", "Score", "Time", "Won", "Date"])
        for rank, entry in enumerate(entries, start=1):
            writer.writerow([
                rank, _username(entry), entry["difficulty"], entry["score"],
                entry["time"], bool(entry.get("won")), entry["date"],
            ])


def export_leaderboard_markdown(entries: List[Dict], difficulty: str, path="leaderboard.md"):
    with open(path, "w") as f:
        f.write(f"## 🏆 Minesweeper Leaderboard ({difficulty})\n\n")
        f.write("| Rank | Player | Score | Time (s) | Won | Date |\n")
        f.write("|------|--------|-------|----------|-----|------|\n")
        for rank, entry in enumerate(entries, start=1):
            won = "yes" if entry.get("won") else "no"
            f.write(f"| {rank} | {_username(entry)} | {entry['score']} | {entry['time']} | {won} | {entry['date'][:10]} |\n")


def load_store_file(path: str) -> Dict:
    with open(path, "r") as f:
        return json.load(f)


def main(argv=None):
    parser = argparse.ArgumentParser(description="Print and export the leaderboard from a score store file")
    parser.add_argument("data", help="JSON file written by the server (server.data_path)")
    parser.add_argument("--difficulty", default="beginner", choices=sorted(DIFFICULTY_ORDER))
    parser.add_argument("--limit", type=int, default=10)
    parser.add_argument("--csv", default=None, help="Write the table to this CSV file")
    parser.add_argument("--markdown", default=None, help="Write the table to this Markdown file")
    args = parser.parse_args(argv)

    data = load_store_file(args.data)
    users = {u["id"]: u for u in data.get("users", [])}
    scores = []
    for row in data.get("scores", []):
        if row["difficulty"] != args.difficulty:
            continue
        user = users.get(row["user"], {"id": row["user"], "username": None})
        scores.append(dict(row, user={"id": user["id"], "username": user["username"]}))

    entries = rank_scores(scores, args.limit)
    display_leaderboard(entries, args.difficulty)
    if args.csv:
        export_leaderboard_csv(entries, args.csv)
    if args.markdown:
        export_leaderboard_markdown(entries, args.difficulty, args.markdown)
    if args.csv or args.markdown:
        print("\nLeaderboard saved.")


if __name__ == "__main__":
    main()
