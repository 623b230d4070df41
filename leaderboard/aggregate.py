"""Fetch -> classify -> fold pipeline behind every leaderboard.

All platform fetches for a request are issued concurrently (bounded by a
semaphore) against one shared HTTP session. Folding happens afterwards, in
a single pass, so nothing here needs a lock.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Dict, Iterable, List, Optional, Tuple

from chess_fetch import ADAPTERS, SPEED_CATEGORIES, FetchOutcome, GameRecord, fetch_settled, http_session
from utils.dates import day_bounds, local_date_key, month_bounds, month_key
from utils.settings import SETTINGS

from .models import LeaderboardResult, PlayerDayStats, PlayerIdentity
from .ranking import rank_players

logger = logging.getLogger(__name__)

WINDOW_DAY = "day"
WINDOW_MONTH = "month"


@dataclass(frozen=True)
class Window:
    """A local day or local month, anchored at the instant it was asked for."""

    kind: str
    start: datetime
    end: datetime
    anchor: datetime

    @classmethod
    def day(cls, when: datetime) -> "Window":
        start, end = day_bounds(when)
        return cls(WINDOW_DAY, start, end, when)

    @classmethod
    def month(cls, when: datetime) -> "Window":
        start, end = month_bounds(month_key(when))
        return cls(WINDOW_MONTH, start, end, when)

    @property
    def key(self) -> str:
        return local_date_key(self.anchor) if self.kind == WINDOW_DAY else month_key(self.anchor)

    def contains(self, ts: datetime) -> bool:
        if self.kind == WINDOW_DAY:
            return local_date_key(ts) == local_date_key(self.anchor)
        return self.start <= ts < self.end


class StatsAggregator:
    """Per-player running totals, seeded with zeros for every registered user."""

    def __init__(self, usernames: Iterable[str], *, adapters: Optional[Dict[str, Any]] = None) -> None:
        self.adapters = adapters if adapters is not None else ADAPTERS
        self._stats: Dict[str, PlayerDayStats] = {}
        for u in usernames:
            self._stats.setdefault(u, PlayerDayStats(username=u))

    def add_game(
        self,
        username: str,
        platform: str,
        handle: str,
        game: GameRecord,
        window: Window,
        *,
        speed: Optional[str] = None,
    ) -> bool:
        """Fold one game if it belongs to the window/speed. Returns True if counted."""
        stats = self._stats.get(username)
        if stats is None:
            logger.warning("Game %s for unknown player %r ignored", game.game_id, username)
            return False
        if not window.contains(game.ended_at):
            return False
        if speed and game.speed != speed:
            return False

        outcome = self.adapters[platform].classify(game, handle)
        stats.record(outcome, platform)
        return True

    def get(self, username: str) -> Optional[PlayerDayStats]:
        return self._stats.get(username)

    def all_stats(self) -> List[PlayerDayStats]:
        return list(self._stats.values())


def normalize_speed(speed: Optional[str]) -> Optional[str]:
    s = (speed or "").strip().lower()
    return s if s in SPEED_CATEGORIES else None


async def compute_leaderboard(
    players: Iterable[PlayerIdentity],
    window: Window,
    *,
    speed: Optional[str] = None,
    session: Any = None,
    adapters: Optional[Dict[str, Any]] = None,
    concurrency: Optional[int] = None,
) -> LeaderboardResult:
    players = list(players)
    adapters = adapters if adapters is not None else ADAPTERS
    speed = normalize_speed(speed)

    agg = StatsAggregator((p.telegram_username for p in players), adapters=adapters)

    jobs: List[Tuple[str, str, str]] = []
    for p in players:
        handles = p.handles()
        if not handles:
            logger.warning("Player %r has no linked platform handle; skipped", p.telegram_username)
            continue
        for platform, handle in handles.items():
            if platform not in adapters:
                logger.warning("No adapter for platform %r (player %r)", platform, p.telegram_username)
                continue
            jobs.append((p.telegram_username, platform, handle))

    sem = asyncio.Semaphore(max(1, int(concurrency or SETTINGS.fetch_concurrency)))

    async def _fetch_one(sess: Any, platform: str, handle: str) -> FetchOutcome:
        async with sem:
            return await fetch_settled(adapters[platform], sess, handle, window.start, window.end)

    async def _fetch_all(sess: Any) -> List[Any]:
        return await asyncio.gather(
            *[_fetch_one(sess, platform, handle) for _, platform, handle in jobs],
            return_exceptions=True,
        )

    if session is not None:
        settled = await _fetch_all(session)
    else:
        async with http_session() as s:
            settled = await _fetch_all(s)

    failures: List[str] = []
    counted = 0
    for (username, platform, handle), res in zip(jobs, settled):
        if isinstance(res, BaseException):
            logger.error("%s fetch crashed for %s (%s)", platform, handle, username, exc_info=res)
            failures.append(f"{platform}:{handle}")
            continue
        if not res.ok:
            failures.append(f"{platform}:{handle}")
            continue
        for game in res.games:
            if agg.add_game(username, platform, handle, game, window, speed=speed):
                counted += 1

    if failures:
        logger.warning(
            "Leaderboard %s %s: %d/%d fetch(es) failed: %s",
            window.kind, window.key, len(failures), len(jobs), ", ".join(failures[:20]),
        )

    stats = agg.all_stats()
    return LeaderboardResult(
        standings=rank_players(stats),
        stats=stats,
        games_counted=counted,
        failures=failures,
    )
