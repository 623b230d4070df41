from __future__ import annotations

import math
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from chess_fetch import PLATFORM_CHESS_COM, PLATFORM_LICHESS, Outcome

# Minimum decided games (wins + losses) to appear in any standings
MIN_GAMES = 3

# Weighted score = win fraction * sqrt(games) * WEIGHT_FACTOR
WEIGHT_FACTOR = 100.0


@dataclass
class PlayerIdentity:
    """A Telegram user and the platform handles they linked."""

    telegram_username: str
    chess_username: Optional[str] = None
    lichess_username: Optional[str] = None

    def handles(self) -> Dict[str, str]:
        """platform tag -> handle, only for linked platforms."""
        out: Dict[str, str] = {}
        if self.chess_username:
            out[PLATFORM_CHESS_COM] = self.chess_username
        if self.lichess_username:
            out[PLATFORM_LICHESS] = self.lichess_username
        return out

    def has_any_handle(self) -> bool:
        return bool(self.chess_username or self.lichess_username)


@dataclass
class PlayerDayStats:
    """Win/loss totals for one player over one window (day or month)."""

    username: str
    wins: int = 0
    losses: int = 0
    total_games: int = 0
    win_rate: float = 0.0
    weighted_score: float = 0.0
    chesscom_games: int = 0
    lichess_games: int = 0

    def record(self, outcome: Outcome, platform: str = "") -> None:
        """Fold one classified game in and recompute the derived fields."""
        self.wins += int(outcome.win)
        self.losses += int(outcome.loss)
        if platform == PLATFORM_CHESS_COM:
            self.chesscom_games += 1
        elif platform == PLATFORM_LICHESS:
            self.lichess_games += 1
        self._recompute()

    def _recompute(self) -> None:
        self.total_games = self.wins + self.losses
        self.win_rate = (self.wins / self.total_games) * 100.0 if self.total_games > 0 else 0.0
        if self.total_games >= MIN_GAMES:
            self.weighted_score = (self.win_rate / 100.0) * math.sqrt(self.total_games) * WEIGHT_FACTOR
        else:
            self.weighted_score = 0.0


@dataclass
class StandingsEntry:
    rank: int
    stats: PlayerDayStats

    @property
    def username(self) -> str:
        return self.stats.username

    @property
    def win_rate(self) -> float:
        return self.stats.win_rate

    @property
    def weighted_score(self) -> float:
        return self.stats.weighted_score


@dataclass
class LeaderboardResult:
    """Standings plus the bookkeeping of how they were produced."""

    standings: List[StandingsEntry]
    stats: List[PlayerDayStats]
    games_counted: int = 0
    failures: List[str] = field(default_factory=list)

    @property
    def failed_fetches(self) -> int:
        return len(self.failures)


@dataclass
class DailyChampionRecord:
    """
    One persisted row per local date.

    Places 2 and 3 are None when fewer players qualified.
    """
    date: str
    first_place: str
    first_score: int
    win_rate_first: float
    second_place: Optional[str] = None
    second_score: Optional[int] = None
    win_rate_second: Optional[float] = None
    third_place: Optional[str] = None
    third_score: Optional[int] = None
    win_rate_third: Optional[float] = None
    points_applied: bool = False
    created_at: Optional[datetime] = None

    def winners(self) -> List[tuple]:
        """[(username, points, win_rate), ...] in podium order."""
        out = [(self.first_place, self.first_score, self.win_rate_first)]
        if self.second_place:
            out.append((self.second_place, self.second_score, self.win_rate_second))
        if self.third_place:
            out.append((self.third_place, self.third_score, self.win_rate_third))
        return out

    def to_doc(self) -> Dict[str, Any]:
        return {
            "_id": self.date,
            "date": self.date,
            "first_place": self.first_place,
            "first_score": self.first_score,
            "win_rate_first": self.win_rate_first,
            "second_place": self.second_place,
            "second_score": self.second_score,
            "win_rate_second": self.win_rate_second,
            "third_place": self.third_place,
            "third_score": self.third_score,
            "win_rate_third": self.win_rate_third,
            "points_applied": self.points_applied,
            "created_at": self.created_at or datetime.now(timezone.utc),
        }

    @classmethod
    def from_doc(cls, doc: Dict[str, Any]) -> "DailyChampionRecord":
        def _opt_float(v: Any) -> Optional[float]:
            return float(v) if isinstance(v, (int, float)) else None

        def _opt_int(v: Any) -> Optional[int]:
            return int(v) if isinstance(v, (int, float)) else None

        return cls(
            date=str(doc.get("date") or doc.get("_id") or ""),
            first_place=str(doc.get("first_place") or ""),
            first_score=int(doc.get("first_score") or 0),
            win_rate_first=float(doc.get("win_rate_first") or 0.0),
            second_place=doc.get("second_place") or None,
            second_score=_opt_int(doc.get("second_score")),
            win_rate_second=_opt_float(doc.get("win_rate_second")),
            third_place=doc.get("third_place") or None,
            third_score=_opt_int(doc.get("third_score")),
            win_rate_third=_opt_float(doc.get("win_rate_third")),
            points_applied=bool(doc.get("points_applied", False)),
            created_at=doc.get("created_at"),
        )
