# player_store.py
from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from leaderboard.models import PlayerIdentity

logger = logging.getLogger(__name__)


def _doc_to_identity(doc: dict) -> PlayerIdentity:
    # Older rows only carried chess_username
    return PlayerIdentity(
        telegram_username=str(doc.get("telegram_username") or ""),
        chess_username=(str(doc.get("chess_username") or "").strip() or None),
        lichess_username=(str(doc.get("lichess_username") or "").strip() or None),
    )


def normalize_username(username: str) -> str:
    u = (username or "").strip()
    return u[1:] if u.startswith("@") else u


class PlayerStore:
    """Telegram username -> platform handles. Rows are never deleted."""

    def __init__(self, collection: Any) -> None:
        self.col = collection

    async def get_player(self, telegram_username: str) -> Optional[PlayerIdentity]:
        uname = normalize_username(telegram_username)
        if not uname:
            return None
        doc = await self.col.find_one({"telegram_username": uname}, projection={"_id": 0})
        if not doc:
            return None
        return _doc_to_identity(doc)

    async def all_players(self) -> List[PlayerIdentity]:
        """Every registered identity that has at least one platform handle."""
        cur = self.col.find({}, projection={"_id": 0})
        docs = await cur.to_list(length=None)

        out: List[PlayerIdentity] = []
        for d in docs:
            ident = _doc_to_identity(d)
            if not ident.telegram_username:
                continue
            if not ident.has_any_handle():
                logger.warning("Registered user %r has no platform handle; skipped", ident.telegram_username)
                continue
            out.append(ident)
        return out

    async def save_mapping(
        self,
        telegram_username: str,
        *,
        chess_username: Optional[str] = None,
        lichess_username: Optional[str] = None,
    ) -> PlayerIdentity:
        """
        Upsert the identity. Only the handles passed in are written, so linking
        a second platform keeps the first one.

        Raises PyMongoError on failure (callers report it to the user).
        """
        uname = normalize_username(telegram_username)
        if not uname:
            raise ValueError("telegram_username is required")
        if not (chess_username or lichess_username):
            raise ValueError("at least one platform handle is required")

        now = datetime.now(timezone.utc)
        update: Dict[str, Any] = {"telegram_username": uname, "updated_at": now}
        if chess_username:
            update["chess_username"] = chess_username.strip()
        if lichess_username:
            update["lichess_username"] = lichess_username.strip()

        await self.col.update_one(
            {"telegram_username": uname},
            {"$set": update, "$setOnInsert": {"created_at": now}},
            upsert=True,
        )

        saved = await self.get_player(uname)
        return saved or PlayerIdentity(uname, chess_username, lichess_username)


def default_player_store() -> PlayerStore:
    from db import user_mappings
    return PlayerStore(user_mappings)
