# chess_fetch.py
"""
Chess.com + Lichess game fetching and result classification.

Each platform is a small adapter object with the same surface:

  - fetch_games(session, handle, start, end) -> list[GameRecord]
  - classify(game, handle) -> Outcome
  - fetch_profile(session, handle) -> dict | None
  - user_exists(session, handle) -> bool (raises FetchError when unsure)

Adapters raise FetchError from fetch_games; the module-level helpers turn
that into "no games" (fetch_games) or a settled FetchOutcome (fetch_settled)
so one player's failure never aborts anyone else's aggregation.
"""

from __future__ import annotations

import asyncio
import contextlib
import json
import logging
import re
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, AsyncIterator, Dict, List, Optional, Tuple

import aiohttp

from utils.dates import utc_months_between
from utils.settings import SETTINGS

logger = logging.getLogger(__name__)

PLATFORM_CHESS_COM = "chess.com"
PLATFORM_LICHESS = "lichess"

# Speed categories the leaderboard filters understand; anything else
# (daily, correspondence, classical, ...) is only counted when unfiltered.
SPEED_CATEGORIES: Tuple[str, ...] = ("bullet", "blitz", "rapid")

CHESS_COM_API = "https://api.chess.com/pub/player"
LICHESS_API = "https://lichess.org/api"

USER_AGENT = "chess-league-bot/1.0 (+https://t.me)"

# Chess.com per-side results that hand the game to the opponent
FORFEIT_RESULTS = frozenset({"resigned", "timeout", "abandoned"})

# Profile lookups answering these mean the account does not exist (410 = closed)
MISSING_STATUSES = frozenset({404, 410})


class FetchError(RuntimeError):
    """Raised when a platform API call fails (status, network, or body)."""


@dataclass(frozen=True)
class Outcome:
    """Result of one game for one subject. Draws are (0, 0)."""

    win: int = 0
    loss: int = 0


WIN = Outcome(win=1)
LOSS = Outcome(loss=1)
DRAW = Outcome()


@dataclass
class GameRecord:
    """
    One finished game on one platform.

    - ended_at: end time (Chess.com end_time / Lichess lastMoveAt), UTC.
    - speed: time class ("bullet", "blitz", "rapid", ...).
    - white_result / black_result: Chess.com per-side result strings.
    - winner: Lichess winner color, None = draw.
    """
    platform: str
    game_id: str
    ended_at: datetime
    speed: str
    white: str
    black: str
    white_result: str = ""
    black_result: str = ""
    winner: Optional[str] = None
    url: str = ""
    raw: Dict[str, Any] = field(default_factory=dict, repr=False)


@dataclass
class FetchOutcome:
    """Settled result of one (handle, platform) fetch."""

    platform: str
    handle: str
    games: List[GameRecord]
    error: Optional[str] = None

    @property
    def ok(self) -> bool:
        return self.error is None


# --------- HTTP helpers ---------


def _epoch_ms(dt: datetime) -> int:
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    return int(dt.timestamp() * 1000)


async def _get_json(
    session: aiohttp.ClientSession,
    url: str,
    *,
    headers: Optional[Dict[str, str]] = None,
    params: Optional[Dict[str, str]] = None,
) -> Any:
    try:
        async with session.get(url, headers=headers, params=params) as res:
            if res.status != 200:
                text = await res.text()
                raise FetchError(f"{res.status} {res.reason} for {url}: {text[:300]!r}")
            return await res.json(content_type=None)
    except FetchError:
        raise
    except (aiohttp.ClientError, asyncio.TimeoutError) as e:
        raise FetchError(f"{type(e).__name__} for {url}: {e}") from e
    except ValueError as e:
        raise FetchError(f"invalid JSON from {url}: {e}") from e


async def _status(session: aiohttp.ClientSession, url: str, *, headers: Optional[Dict[str, str]] = None) -> int:
    try:
        async with session.get(url, headers=headers) as res:
            return res.status
    except (aiohttp.ClientError, asyncio.TimeoutError) as e:
        raise FetchError(f"{type(e).__name__} for {url}: {e}") from e


async def _exists(session: aiohttp.ClientSession, url: str, *, headers: Optional[Dict[str, str]] = None) -> bool:
    """True on 200, False when the account is missing; anything else raises FetchError."""
    status = await _status(session, url, headers=headers)
    if status == 200:
        return True
    if status in MISSING_STATUSES:
        return False
    raise FetchError(f"{status} checking {url}")


@contextlib.asynccontextmanager
async def http_session(timeout_s: Optional[float] = None) -> AsyncIterator[aiohttp.ClientSession]:
    """One shared aiohttp session for a batch of platform calls."""
    total = float(timeout_s if timeout_s is not None else SETTINGS.http_timeout_seconds)
    timeout = aiohttp.ClientTimeout(total=total)
    async with aiohttp.ClientSession(timeout=timeout, headers={"User-Agent": USER_AGENT}) as session:
        yield session


# --------- Chess.com ---------


_ARCHIVE_RE = re.compile(r"/(\d{4})/(\d{2})/?$")


def select_archives(
    archives: List[str],
    start: Optional[datetime] = None,
    end: Optional[datetime] = None,
) -> List[str]:
    """
    Pick the monthly archive URLs to download.

    Without a window: the most recent archive only. With a window: every
    archive whose UTC month overlaps [start, end), so a local day that
    straddles a UTC month boundary still sees both halves.
    """
    if not archives:
        return []
    if start is None or end is None:
        return [archives[-1]]

    wanted = set(utc_months_between(start, end))
    out: List[str] = []
    for url in archives:
        m = _ARCHIVE_RE.search(str(url))
        if m and (int(m.group(1)), int(m.group(2))) in wanted:
            out.append(str(url))
    return out


def parse_chesscom_game(d: Dict[str, Any]) -> Optional[GameRecord]:
    try:
        white = d.get("white") or {}
        black = d.get("black") or {}
        end_time = d.get("end_time")
        if not isinstance(end_time, (int, float)):
            return None
        url = str(d.get("url") or "")
        return GameRecord(
            platform=PLATFORM_CHESS_COM,
            game_id=str(d.get("uuid") or url or end_time),
            ended_at=datetime.fromtimestamp(float(end_time), tz=timezone.utc),
            speed=str(d.get("time_class") or "").lower(),
            white=str(white.get("username") or ""),
            black=str(black.get("username") or ""),
            white_result=str(white.get("result") or ""),
            black_result=str(black.get("result") or ""),
            url=url,
            raw=d,
        )
    except (AttributeError, TypeError, ValueError, OverflowError):
        return None


class ChessComAdapter:
    platform = PLATFORM_CHESS_COM

    async def fetch_games(
        self,
        session: aiohttp.ClientSession,
        handle: str,
        start: Optional[datetime] = None,
        end: Optional[datetime] = None,
    ) -> List[GameRecord]:
        """
        List the handle's monthly archives, then download the ones that cover
        the window. No date filtering happens here; callers filter by window.
        """
        h = handle.strip().lower()
        data = await _get_json(session, f"{CHESS_COM_API}/{h}/games/archives")
        archives = [str(u) for u in (data.get("archives") or [])] if isinstance(data, dict) else []
        urls = select_archives(archives, start, end)

        games: List[GameRecord] = []
        for url in urls:
            payload = await _get_json(session, url)
            raw_games = payload.get("games") if isinstance(payload, dict) else None
            for raw in raw_games or []:
                g = parse_chesscom_game(raw) if isinstance(raw, dict) else None
                if g is not None:
                    games.append(g)

        logger.debug("Fetched %d Chess.com games for %s from %d archive(s)", len(games), handle, len(urls))
        return games

    def classify(self, game: GameRecord, handle: str) -> Outcome:
        h = (handle or "").strip().lower()
        if game.white.lower() == h:
            mine, theirs = game.white_result, game.black_result
        elif game.black.lower() == h:
            mine, theirs = game.black_result, game.white_result
        else:
            logger.warning(
                "Chess.com game %s has no side for %r (white=%r black=%r); counted as draw",
                game.game_id, handle, game.white, game.black,
            )
            return DRAW

        if mine == "win" or theirs in FORFEIT_RESULTS:
            return WIN
        if theirs == "win" or mine in FORFEIT_RESULTS:
            return LOSS
        return DRAW

    async def fetch_profile(self, session: aiohttp.ClientSession, handle: str) -> Optional[Dict[str, Any]]:
        try:
            data = await _get_json(session, f"{CHESS_COM_API}/{handle.strip().lower()}/stats")
        except FetchError as e:
            logger.warning("Chess.com stats fetch failed for %s: %s", handle, e)
            return None
        return data if isinstance(data, dict) else None

    async def user_exists(self, session: aiohttp.ClientSession, handle: str) -> bool:
        return await _exists(session, f"{CHESS_COM_API}/{handle.strip().lower()}")


# --------- Lichess ---------


def parse_lichess_game(d: Dict[str, Any]) -> Optional[GameRecord]:
    try:
        players = d.get("players") or {}
        white_user = (players.get("white") or {}).get("user") or {}
        black_user = (players.get("black") or {}).get("user") or {}
        ts = d.get("lastMoveAt") or d.get("createdAt")
        if not isinstance(ts, (int, float)):
            return None
        gid = str(d.get("id") or "")
        winner = d.get("winner")
        return GameRecord(
            platform=PLATFORM_LICHESS,
            game_id=gid,
            ended_at=datetime.fromtimestamp(float(ts) / 1000.0, tz=timezone.utc),
            speed=str(d.get("speed") or "").lower(),
            white=str(white_user.get("name") or ""),
            black=str(black_user.get("name") or ""),
            winner=winner if winner in ("white", "black") else None,
            url=f"https://lichess.org/{gid}" if gid else "",
            raw=d,
        )
    except (AttributeError, TypeError, ValueError, OverflowError):
        return None


def parse_ndjson(text: str, *, handle: str = "") -> List[GameRecord]:
    """Parse a Lichess NDJSON export; bad lines are skipped, not fatal."""
    games: List[GameRecord] = []
    skipped = 0
    for line in (text or "").splitlines():
        line = line.strip()
        if not line:
            continue
        try:
            obj = json.loads(line)
        except ValueError:
            skipped += 1
            continue
        g = parse_lichess_game(obj) if isinstance(obj, dict) else None
        if g is None:
            skipped += 1
            continue
        games.append(g)

    if skipped:
        logger.warning("Skipped %d unparseable Lichess line(s) for %s", skipped, handle or "?")
    return games


class LichessAdapter:
    platform = PLATFORM_LICHESS

    def __init__(self, token: str = "", max_games: int = 200) -> None:
        self.token = (token or "").strip()
        self.max_games = int(max_games)

    def _headers(self, accept: str = "application/json") -> Dict[str, str]:
        headers = {"Accept": accept}
        if self.token:
            headers["Authorization"] = f"Bearer {self.token}"
        return headers

    async def fetch_games(
        self,
        session: aiohttp.ClientSession,
        handle: str,
        start: Optional[datetime] = None,
        end: Optional[datetime] = None,
    ) -> List[GameRecord]:
        params = {"max": str(self.max_games), "rated": "true"}
        if start is not None:
            params["since"] = str(_epoch_ms(start))
        if end is not None:
            params["until"] = str(_epoch_ms(end))

        url = f"{LICHESS_API}/games/user/{handle.strip()}"
        try:
            async with session.get(url, params=params, headers=self._headers("application/x-ndjson")) as res:
                if res.status != 200:
                    text = await res.text()
                    raise FetchError(f"{res.status} {res.reason} for {url}: {text[:300]!r}")
                body = await res.text()
        except FetchError:
            raise
        except (aiohttp.ClientError, asyncio.TimeoutError) as e:
            raise FetchError(f"{type(e).__name__} for {url}: {e}") from e

        games = parse_ndjson(body, handle=handle)
        logger.debug("Fetched %d Lichess games for %s", len(games), handle)
        return games

    def classify(self, game: GameRecord, handle: str) -> Outcome:
        h = (handle or "").strip().lower()
        if game.white.lower() == h:
            color = "white"
        elif game.black.lower() == h:
            color = "black"
        else:
            logger.warning(
                "Lichess game %s has no side for %r (white=%r black=%r); counted as draw",
                game.game_id, handle, game.white, game.black,
            )
            return DRAW

        if game.winner is None:
            return DRAW
        return WIN if game.winner == color else LOSS

    async def fetch_profile(self, session: aiohttp.ClientSession, handle: str) -> Optional[Dict[str, Any]]:
        try:
            data = await _get_json(session, f"{LICHESS_API}/user/{handle.strip()}", headers=self._headers())
        except FetchError as e:
            logger.warning("Lichess profile fetch failed for %s: %s", handle, e)
            return None
        return data if isinstance(data, dict) else None

    async def user_exists(self, session: aiohttp.ClientSession, handle: str) -> bool:
        url = f"{LICHESS_API}/user/{handle.strip()}"
        return await _exists(session, url, headers=self._headers())


# --------- Registry + public helpers ---------


def build_adapters(cfg: Any = SETTINGS) -> Dict[str, Any]:
    """platform tag -> adapter"""
    return {
        PLATFORM_CHESS_COM: ChessComAdapter(),
        PLATFORM_LICHESS: LichessAdapter(
            token=getattr(cfg, "lichess_token", ""),
            max_games=int(getattr(cfg, "lichess_max_games", 200) or 200),
        ),
    }


ADAPTERS: Dict[str, Any] = build_adapters()

if not ADAPTERS[PLATFORM_LICHESS].token:
    logger.info("LICHESS_TOKEN not set; Lichess requests use the anonymous rate limit")


def get_adapter(platform: str) -> Any:
    try:
        return ADAPTERS[platform]
    except KeyError:
        raise ValueError(f"Unknown platform {platform!r}") from None


async def fetch_settled(
    adapter: Any,
    session: aiohttp.ClientSession,
    handle: str,
    start: Optional[datetime] = None,
    end: Optional[datetime] = None,
) -> FetchOutcome:
    try:
        games = await adapter.fetch_games(session, handle, start, end)
    except FetchError as e:
        logger.warning("%s fetch failed for %s: %s", adapter.platform, handle, e)
        return FetchOutcome(platform=adapter.platform, handle=handle, games=[], error=str(e))
    return FetchOutcome(platform=adapter.platform, handle=handle, games=games)


async def fetch_games(
    platform: str,
    handle: str,
    start: Optional[datetime] = None,
    end: Optional[datetime] = None,
    *,
    session: Optional[aiohttp.ClientSession] = None,
) -> List[GameRecord]:
    """Games for one handle; an empty list on any upstream failure."""
    adapter = get_adapter(platform)
    if session is not None:
        return (await fetch_settled(adapter, session, handle, start, end)).games

    async with http_session() as s:
        return (await fetch_settled(adapter, s, handle, start, end)).games
