"""Head-to-head record between two registered players for one window.

Each shared game is classified once, from player A's perspective.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

from chess_fetch import ADAPTERS, GameRecord, fetch_settled, http_session

from .aggregate import Window
from .models import PlayerIdentity

logger = logging.getLogger(__name__)


@dataclass
class HeadToHead:
    a_wins: int = 0
    b_wins: int = 0
    draws: int = 0
    games: List[GameRecord] = field(default_factory=list)
    platforms: List[str] = field(default_factory=list)
    failures: List[str] = field(default_factory=list)

    @property
    def total(self) -> int:
        return self.a_wins + self.b_wins + self.draws

    @property
    def last_game(self) -> Optional[GameRecord]:
        if not self.games:
            return None
        return max(self.games, key=lambda g: g.ended_at)


def _between(game: GameRecord, a: str, b: str) -> bool:
    sides = {game.white.lower(), game.black.lower()}
    return sides == {a.lower(), b.lower()}


async def compare(
    player_a: PlayerIdentity,
    player_b: PlayerIdentity,
    window: Window,
    *,
    session: Any = None,
    adapters: Optional[Dict[str, Any]] = None,
) -> HeadToHead:
    """Only platforms both players linked are compared; A's game list is the source."""
    adapters = adapters if adapters is not None else ADAPTERS
    a_handles = player_a.handles()
    b_handles = player_b.handles()

    out = HeadToHead()
    shared = [p for p in a_handles if p in b_handles and p in adapters]
    if not shared:
        return out

    async def _run(sess: Any) -> None:
        for platform in shared:
            adapter = adapters[platform]
            a, b = a_handles[platform], b_handles[platform]
            res = await fetch_settled(adapter, sess, a, window.start, window.end)
            if not res.ok:
                out.failures.append(f"{platform}:{a}")
                continue
            out.platforms.append(platform)

            for g in res.games:
                if not window.contains(g.ended_at) or not _between(g, a, b):
                    continue
                outcome = adapter.classify(g, a)
                if outcome.win:
                    out.a_wins += 1
                elif outcome.loss:
                    out.b_wins += 1
                else:
                    out.draws += 1
                out.games.append(g)

    if session is not None:
        await _run(session)
    else:
        async with http_session() as s:
            await _run(s)

    return out
