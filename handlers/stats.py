# handlers/stats.py
"""/stats [handle]: rating snapshot from Chess.com and Lichess.

No argument: the sender's registered handles.
@telegram_user: that user's registered handles.
bare handle: looked up on Chess.com.
"""

from __future__ import annotations

from typing import Any, Dict, Optional

from pymongo.errors import PyMongoError
from telegram import Update
from telegram.ext import Application, CommandHandler, ContextTypes

from chess_fetch import PLATFORM_CHESS_COM, PLATFORM_LICHESS, get_adapter, http_session
from utils.interactions import command_args, safe_reply, sender_username

from . import GENERIC_ERROR, BotServices


def _dig(d: Optional[Dict[str, Any]], *path: str) -> Any:
    cur: Any = d
    for key in path:
        if not isinstance(cur, dict):
            return None
        cur = cur.get(key)
    return cur


def _or_na(v: Any) -> str:
    return "N/A" if v is None else str(v)


def format_combined_stats(
    title: str,
    chesscom: Optional[Dict[str, Any]],
    lichess: Optional[Dict[str, Any]],
) -> str:
    lines = [f"📊 Stats for {title}:", ""]

    if chesscom:
        lines += [
            "🏁 Chess.com",
            f"♟ Rapid: {_or_na(_dig(chesscom, 'chess_rapid', 'last', 'rating'))}",
            f"⚡ Blitz: {_or_na(_dig(chesscom, 'chess_blitz', 'last', 'rating'))}",
            f"💨 Bullet: {_or_na(_dig(chesscom, 'chess_bullet', 'last', 'rating'))}",
            f"🧠 Tactics: {_or_na(_dig(chesscom, 'tactics', 'highest', 'rating'))}",
            f"📅 Puzzle Rush: {_or_na(_dig(chesscom, 'puzzle_rush', 'best', 'score'))}",
            "",
        ]

    if lichess:
        lines += [
            "♟️ Lichess",
            f"♟ Rapid: {_or_na(_dig(lichess, 'perfs', 'rapid', 'rating'))}",
            f"⚡ Blitz: {_or_na(_dig(lichess, 'perfs', 'blitz', 'rating'))}",
            f"💨 Bullet: {_or_na(_dig(lichess, 'perfs', 'bullet', 'rating'))}",
            f"🧠 Puzzles: {_or_na(_dig(lichess, 'perfs', 'puzzle', 'rating'))}",
        ]

    if not chesscom and not lichess:
        lines.append("⚠️ No stats found for this user.")

    return "\n".join(lines).rstrip()


class StatsHandlers:
    def __init__(self, services: BotServices):
        self.players = services.players
        self.log = services.log

    async def stats(self, update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
        args = command_args(update, context)
        target = args[0] if args else ""

        try:
            chess_handle: Optional[str] = None
            lichess_handle: Optional[str] = None

            if not target or target.startswith("@"):
                tg_name = target[1:] if target else sender_username(update)
                ident = await self.players.get_player(tg_name)
                if ident is None or not ident.has_any_handle():
                    await safe_reply(
                        update,
                        "⚠️ Please provide a Chess.com username or register using /start first.",
                        label="stats",
                    )
                    return
                chess_handle, lichess_handle = ident.chess_username, ident.lichess_username
                title = f"@{ident.telegram_username}"
            else:
                chess_handle = target
                title = target

            async with http_session() as http:
                chesscom = await get_adapter(PLATFORM_CHESS_COM).fetch_profile(http, chess_handle) if chess_handle else None
                lichess = await get_adapter(PLATFORM_LICHESS).fetch_profile(http, lichess_handle) if lichess_handle else None

            await safe_reply(update, format_combined_stats(title, chesscom, lichess), label="stats")
        except PyMongoError as e:
            await self.log.error(f"[stats] lookup failed: {type(e).__name__}: {e}")
            await safe_reply(update, GENERIC_ERROR, label="stats")


def setup(application: Application, services: BotServices) -> None:
    h = StatsHandlers(services)
    application.add_handler(CommandHandler("stats", h.stats))
