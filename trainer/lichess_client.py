#!/usr/bin/env python3
"""
Lichess Game Import

Downloads a player's recent games from the Lichess export API and stores
them for repertoire review.

Usage:
  python lichess_client.py some_user --max 50
  LICHESS_TOKEN=xxx python lichess_client.py some_user  # for higher rate limit
"""

import argparse
import asyncio
import json
import logging
import os
import sys
from pathlib import Path

import httpx

sys.path.insert(0, str(Path(__file__).resolve().parent))
from db import get_connection, insert_user_game
from pgn_import import read_games

LICHESS_API = "https://lichess.org/api"
MAX_GAMES = 50

logger = logging.getLogger(__name__)


async def fetch_user_games(
    username: str,
    client: httpx.AsyncClient,
    max_games: int = MAX_GAMES,
    token: str | None = None,
) -> list[str]:
    """Fetch a user's games as PGN strings, newest first."""
    headers = {"Accept": "application/x-ndjson"}
    if token:
        headers["Authorization"] = f"Bearer {token}"
    url = f"{LICHESS_API}/games/user/{username}"
    params = {"max": max_games, "pgnInJson": "true", "opening": "true"}

    resp = await client.get(url, params=params, headers=headers)
    if resp.status_code == 404:
        raise LookupError(f'User "{username}" not found on Lichess')
    resp.raise_for_status()

    pgns = []
    for line in resp.text.splitlines():
        if not line.strip():
            continue
        try:
            game = json.loads(line)
        except json.JSONDecodeError as e:
            logger.warning("Skipping unparsable export line: %s", e)
            continue
        pgn = game.get("pgn", "")
        if pgn and pgn.strip():
            pgns.append(pgn)

    if not pgns:
        logger.warning("No games found for user %s", username)
    return pgns


async def main_async():
    parser = argparse.ArgumentParser(description="Import Lichess games for review")
    parser.add_argument("username")
    parser.add_argument("--max", type=int, default=MAX_GAMES, help="Maximum games to fetch")
    args = parser.parse_args()

    token = os.environ.get("LICHESS_TOKEN")
    async with httpx.AsyncClient(timeout=30.0) as client:
        try:
            pgns = await fetch_user_games(args.username, client, args.max, token)
        except LookupError as e:
            print(f"Error: {e}", file=sys.stderr)
            sys.exit(1)

    games = read_games("\n\n".join(pgns))
    with get_connection() as conn:
        added = sum(1 for game in games if insert_user_game(conn, game))
    print(f"Imported {added} new games ({len(games)} fetched).")


def main():
    asyncio.run(main_async())


if __name__ == "__main__":
    main()
