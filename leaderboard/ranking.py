"""Ordering + dense rank assignment for leaderboards.

Ranks are consecutive: players whose weighted scores are equal (within
TIE_EPSILON) share a rank, and the next distinct score gets rank + 1.
Three players scoring (173.2, 173.2, 115.5) are ranked 1, 1, 2.
"""

from __future__ import annotations

from typing import Iterable, List

from .models import MIN_GAMES, PlayerDayStats, StandingsEntry

TIE_EPSILON = 0.01


def qualifies(stats: PlayerDayStats) -> bool:
    return int(stats.total_games) >= MIN_GAMES


def sort_key(stats: PlayerDayStats):
    # weighted score desc, then win rate desc, then raw wins desc
    return (-float(stats.weighted_score), -float(stats.win_rate), -int(stats.wins))


def is_tied(a: PlayerDayStats, b: PlayerDayStats) -> bool:
    return abs(float(a.weighted_score) - float(b.weighted_score)) < TIE_EPSILON


def rank_players(players: Iterable[PlayerDayStats]) -> List[StandingsEntry]:
    ordered = sorted((p for p in players if qualifies(p)), key=sort_key)

    out: List[StandingsEntry] = []
    rank = 0
    for i, p in enumerate(ordered):
        if i == 0 or not is_tied(p, ordered[i - 1]):
            rank += 1
        out.append(StandingsEntry(rank=rank, stats=p))
    return out
