"""Leaderboard + daily championship core."""

from .aggregate import Window, StatsAggregator, compute_leaderboard
from .ledger import PODIUM_POINTS, award_daily, compute_daily_standings
from .models import (
    MIN_GAMES,
    DailyChampionRecord,
    LeaderboardResult,
    PlayerDayStats,
    PlayerIdentity,
    StandingsEntry,
)
from .ranking import TIE_EPSILON, rank_players

__all__ = [
    "Window",
    "StatsAggregator",
    "compute_leaderboard",
    "PODIUM_POINTS",
    "award_daily",
    "compute_daily_standings",
    "MIN_GAMES",
    "DailyChampionRecord",
    "LeaderboardResult",
    "PlayerDayStats",
    "PlayerIdentity",
    "StandingsEntry",
    "TIE_EPSILON",
    "rank_players",
]
