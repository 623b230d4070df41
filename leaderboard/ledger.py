"""Daily championship: compute a local day's standings and award the podium.

Per local date the ledger is either NOT_AWARDED (no record) or AWARDED
(record exists). award_daily only moves NOT_AWARDED -> AWARDED:

  1. a record for the date already exists -> return it, change nothing
  2. no qualifiers -> no record, no points, return None
  3. insert the record first (_id = date, so a concurrent second insert
     fails and is treated as "already awarded"), then increment each
     podium player's cumulative score, then flag the record points_applied
"""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Any, List, Optional, Sequence

from pymongo.errors import PyMongoError

from utils.dates import local_date_key

from .aggregate import Window, compute_leaderboard
from .models import DailyChampionRecord, LeaderboardResult, PlayerIdentity, StandingsEntry

logger = logging.getLogger(__name__)

# rank-1, rank-2, rank-3 (by position in the standings list)
PODIUM_POINTS = (300, 200, 100)


async def compute_daily_standings(
    when: datetime,
    *,
    players: Optional[Sequence[PlayerIdentity]] = None,
    player_store: Any = None,
    **kwargs: Any,
) -> LeaderboardResult:
    """Run the full pipeline for the single local day containing `when`."""
    if players is None:
        if player_store is None:
            from player_store import default_player_store
            player_store = default_player_store()
        players = await player_store.all_players()

    return await compute_leaderboard(players, Window.day(when), **kwargs)


def build_record(date_key: str, standings: Sequence[StandingsEntry]) -> DailyChampionRecord:
    podium = list(standings[: len(PODIUM_POINTS)])
    first = podium[0]
    second = podium[1] if len(podium) > 1 else None
    third = podium[2] if len(podium) > 2 else None

    return DailyChampionRecord(
        date=date_key,
        first_place=first.username,
        first_score=PODIUM_POINTS[0],
        win_rate_first=float(first.win_rate),
        second_place=second.username if second else None,
        second_score=PODIUM_POINTS[1] if second else None,
        win_rate_second=float(second.win_rate) if second else None,
        third_place=third.username if third else None,
        third_score=PODIUM_POINTS[2] if third else None,
        win_rate_third=float(third.win_rate) if third else None,
        created_at=datetime.now(timezone.utc),
    )


async def award_daily(
    when: datetime,
    standings: Sequence[StandingsEntry],
    *,
    store: Any = None,
) -> Optional[DailyChampionRecord]:
    if store is None:
        from championship_store import default_championship_store
        store = default_championship_store()

    date_key = local_date_key(when)

    try:
        existing = await store.get_champion(date_key)
    except PyMongoError as e:
        logger.error("Daily champion lookup failed for %s: %s", date_key, e)
        return None

    if existing is not None:
        logger.info("Daily champions for %s already recorded", date_key)
        return existing

    if not standings:
        logger.info("No qualifying players for daily championship %s", date_key)
        return None

    record = build_record(date_key, standings)

    try:
        inserted = await store.insert_champion_if_absent(record)
        if not inserted:
            logger.info("Daily champions for %s were recorded concurrently; not awarding again", date_key)
            return await store.get_champion(date_key)
    except PyMongoError as e:
        logger.error("Saving daily champions for %s failed: %s", date_key, e)
        return None

    awarded: List[str] = []
    try:
        for username, points, _ in record.winners():
            await store.add_points(username, int(points))
            awarded.append(username)
        await store.mark_points_applied(date_key)
    except PyMongoError as e:
        # Record exists with points_applied=False: visible for manual repair.
        logger.error(
            "Daily champions %s saved but awarding points failed after %s: %s",
            date_key, awarded or "nobody", e,
        )
        return None

    record.points_applied = True
    logger.info(
        "Daily champions %s: %s",
        date_key,
        ", ".join(f"{u} +{p}" for u, p, _ in record.winners()),
    )
    return record
