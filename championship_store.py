# championship_store.py
from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from pymongo import DESCENDING
from pymongo.errors import DuplicateKeyError

from leaderboard.models import DailyChampionRecord

logger = logging.getLogger(__name__)


class ChampionshipStore:
    """
    Cumulative points (user_scores) + one daily champion row per local date
    (daily_champions, keyed by _id = 'YYYY-MM-DD').
    """

    def __init__(self, scores: Any, champions: Any) -> None:
        self.scores = scores
        self.champions = champions

    # ---- daily champions ----

    async def get_champion(self, date_key: str) -> Optional[DailyChampionRecord]:
        doc = await self.champions.find_one({"_id": str(date_key)})
        if not doc:
            return None
        return DailyChampionRecord.from_doc(doc)

    async def insert_champion_if_absent(self, record: DailyChampionRecord) -> bool:
        """
        Insert the record. Returns False if a record for that date already
        exists (the _id collision makes concurrent inserts safe).
        """
        try:
            await self.champions.insert_one(record.to_doc())
        except DuplicateKeyError:
            return False
        return True

    async def mark_points_applied(self, date_key: str) -> None:
        await self.champions.update_one(
            {"_id": str(date_key)},
            {"$set": {"points_applied": True, "points_applied_at": datetime.now(timezone.utc)}},
        )

    async def recent_champions(self, limit: int = 7) -> List[DailyChampionRecord]:
        cur = self.champions.find({}).sort("date", DESCENDING).limit(int(limit))
        docs = await cur.to_list(length=int(limit))
        return [DailyChampionRecord.from_doc(d) for d in docs]

    # ---- cumulative scores ----

    async def add_points(self, telegram_username: str, points: int) -> None:
        """Atomic additive increment; creates the row on first award."""
        now = datetime.now(timezone.utc)
        await self.scores.update_one(
            {"telegram_username": str(telegram_username)},
            {
                "$inc": {"total_score": int(points)},
                "$set": {"updated_at": now},
                "$setOnInsert": {"created_at": now},
            },
            upsert=True,
        )

    async def get_score(self, telegram_username: str) -> int:
        doc = await self.scores.find_one({"telegram_username": str(telegram_username)})
        if not doc:
            return 0
        return int(doc.get("total_score") or 0)

    async def all_scores(self) -> List[Dict[str, Any]]:
        """[{telegram_username, total_score}, ...] highest first."""
        cur = self.scores.find({}, projection={"_id": 0}).sort("total_score", DESCENDING)
        docs = await cur.to_list(length=None)

        out: List[Dict[str, Any]] = []
        for d in docs:
            name = str(d.get("telegram_username") or "").strip()
            if not name:
                continue
            out.append({"telegram_username": name, "total_score": int(d.get("total_score") or 0)})
        return out


def default_championship_store() -> ChampionshipStore:
    from db import daily_champions, user_scores
    return ChampionshipStore(user_scores, daily_champions)
