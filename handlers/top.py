# handlers/top.py
"""/top [bugun|month|blitz|bullet|rapid|help]: live leaderboards.

Ranking is by weighted score (win rate x sqrt(decided games)); players
need at least 3 decided games to appear. Ties share a rank.
"""

from __future__ import annotations

from datetime import datetime, timezone
from typing import List, Optional, Tuple

from pymongo.errors import PyMongoError
from telegram import Update
from telegram.ext import Application, CommandHandler, ContextTypes

from leaderboard import MIN_GAMES, StandingsEntry, Window, compute_leaderboard
from utils.interactions import command_args, safe_reply

from . import BotServices, position_emoji

COMMAND_DESCRIPTIONS = {
    "bugun": "Shows today's top players across all game types",
    "month": "Shows overall monthly leaderboard for all game types",
    "blitz": "Shows monthly leaderboard for blitz games (3-5 minutes)",
    "bullet": "Shows monthly leaderboard for bullet games (1-2 minutes)",
    "rapid": "Shows monthly leaderboard for rapid games (10+ minutes)",
}

OPTION_ALIASES = {
    "": "bugun",
    "today": "bugun",
    "bugun": "bugun",
    "month": "month",
    "monthly": "month",
    "oy": "month",
    "blitz": "blitz",
    "bullet": "bullet",
    "rapid": "rapid",
    "help": "help",
}

FOOTER = "Type /top help to see all available commands."


def command_help() -> str:
    return "\n".join(
        [
            "📋 Available /top commands:",
            "",
            "🌅 /top - " + COMMAND_DESCRIPTIONS["bugun"],
            "🎮 /top month - " + COMMAND_DESCRIPTIONS["month"],
            "⚡ /top blitz - " + COMMAND_DESCRIPTIONS["blitz"],
            "🔫 /top bullet - " + COMMAND_DESCRIPTIONS["bullet"],
            "🏃 /top rapid - " + COMMAND_DESCRIPTIONS["rapid"],
            "",
            "Use any command to see the corresponding leaderboard!",
        ]
    )


def resolve_option(raw: str) -> Optional[str]:
    return OPTION_ALIASES.get((raw or "").strip().lower())


def window_for(option: str, now: datetime) -> Tuple[Window, Optional[str], str]:
    """-> (window, speed filter, title)"""
    if option == "bugun":
        return Window.day(now), None, "🏆 Today's Leaderboard"
    speed = option if option in ("blitz", "bullet", "rapid") else None
    return Window.month(now), speed, "🏆 Monthly Leaderboard"


def format_standings(title: str, description: str, standings: List[StandingsEntry]) -> str:
    lines = [title, description, ""]
    for e in standings:
        s = e.stats
        lines.append(
            f"{position_emoji(e.rank)} {s.username}: {s.win_rate:.1f}% "
            f"(W: {s.wins} L: {s.losses}) • {s.weighted_score:.1f} pts"
        )
    lines += ["", FOOTER]
    return "\n".join(lines)


def format_empty(option: str) -> str:
    time_frame = "today" if option == "bugun" else "this month"
    game_type = f" for {option} games" if option in ("blitz", "bullet", "rapid") else ""
    return (
        f"📊 No qualifying players found{game_type} {time_frame}.\n"
        f"Players need at least {MIN_GAMES} games to appear on the leaderboard.\n\n{FOOTER}"
    )


class TopHandlers:
    def __init__(self, services: BotServices):
        self.players = services.players
        self.log = services.log

    async def top(self, update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
        args = command_args(update, context)
        option = resolve_option(args[0] if args else "")

        if option is None or option == "help":
            await safe_reply(update, command_help(), label="top")
            return

        try:
            players = await self.players.all_players()
        except PyMongoError as e:
            await self.log.error(f"[top] loading players failed: {type(e).__name__}: {e}")
            await safe_reply(update, "🚨 Error generating leaderboard. " + FOOTER, label="top")
            return

        if not players:
            await safe_reply(update, "⚠️ No registered users found. Users can register with /start", label="top")
            return

        window, speed, title = window_for(option, datetime.now(timezone.utc))
        result = await compute_leaderboard(players, window, speed=speed)

        if result.failures:
            await self.log.warn(
                f"[top] {option}: {result.failed_fetches} fetch failure(s): {', '.join(result.failures[:10])}",
                send=False,
            )

        if not result.standings:
            await safe_reply(update, format_empty(option), label="top")
            return

        await safe_reply(
            update,
            format_standings(title, COMMAND_DESCRIPTIONS[option], result.standings),
            label="top",
        )


def setup(application: Application, services: BotServices) -> None:
    h = TopHandlers(services)
    application.add_handler(CommandHandler("top", h.top))
