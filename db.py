"""
MongoDB (Motor) setup for the chess league bot.

Player registrations and championship points must persist across restarts
and redeploys, so everything durable lives here.

Env vars:
  - MONGO_URI (or MONGODB_URI)
  - MONGO_DB_NAME (optional)
  - IS_DEV=1 (optional)
"""

from __future__ import annotations

import os

import motor.motor_asyncio
from pymongo import ASCENDING, DESCENDING, IndexModel


MONGO_URI = (os.getenv("MONGO_URI") or os.getenv("MONGODB_URI") or "").strip()
IS_DEV = os.getenv("IS_DEV", "0") == "1"

_default_name = "chessleague_dev" if IS_DEV else "chessleague"
DB_NAME = os.getenv("MONGO_DB_NAME", _default_name)

if not MONGO_URI:
    raise RuntimeError("Missing MONGO_URI/MONGODB_URI env var. Registrations and scores require MongoDB.")

_client = motor.motor_asyncio.AsyncIOMotorClient(MONGO_URI, tz_aware=True)

try:
    db = _client.get_default_database() or _client[DB_NAME]
except Exception:
    db = _client[DB_NAME]


# ---------------------------- Collections ---------------------------------

# One doc per Telegram user: {telegram_username, chess_username?, lichess_username?}
user_mappings = db.user_mappings

# One doc per Telegram user: running championship points
user_scores = db.user_scores

# One doc per local date; _id is the 'YYYY-MM-DD' key so a second insert fails
daily_champions = db.daily_champions

# Registration dialogue state, expires via TTL index
registration_sessions = db.registration_sessions


async def ping() -> bool:
    await _client.admin.command("ping")
    return True


async def ensure_indexes() -> None:
    await user_mappings.create_indexes(
        [
            IndexModel([("telegram_username", ASCENDING)], unique=True, name="uniq_telegram_username"),
            IndexModel([("chess_username", ASCENDING)], name="by_chess_username", sparse=True),
            IndexModel([("lichess_username", ASCENDING)], name="by_lichess_username", sparse=True),
        ]
    )

    await user_scores.create_indexes(
        [
            IndexModel([("telegram_username", ASCENDING)], unique=True, name="uniq_score_username"),
            IndexModel([("total_score", DESCENDING)], name="by_total_score_desc"),
        ]
    )

    # NOTE:
    # daily_champions uses _id as the date key, which is already unique.
    # Do NOT try to create a "unique" index on _id; Atlas will error.
    await daily_champions.create_indexes(
        [
            IndexModel([("date", DESCENDING)], name="by_date_desc"),
        ]
    )

    await registration_sessions.create_indexes(
        [
            IndexModel([("user_id", ASCENDING)], unique=True, name="uniq_session_user"),
            IndexModel([("expires_at", ASCENDING)], expireAfterSeconds=0, name="ttl_expires_at"),
        ]
    )
