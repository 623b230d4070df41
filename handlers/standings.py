# handlers/standings.py
"""/standings [recent]: cumulative championship points or recent champions."""

from __future__ import annotations

from typing import Any, Dict, List

from pymongo.errors import PyMongoError
from telegram import Update
from telegram.ext import Application, CommandHandler, ContextTypes

from leaderboard import PODIUM_POINTS, DailyChampionRecord
from utils.dates import date_label
from utils.interactions import command_args, safe_reply

from . import BotServices, position_emoji

RECENT_LIMIT = 7

POINTS_LINE = f"📊 Daily points: 🥇{PODIUM_POINTS[0]}, 🥈{PODIUM_POINTS[1]}, 🥉{PODIUM_POINTS[2]}"


def format_scores(rows: List[Dict[str, Any]]) -> str:
    if not rows:
        return (
            "🏆 CHAMPIONSHIP STANDINGS\n\n"
            "No scores recorded yet! Start playing to earn championship points.\n\n"
            "📊 How it works:\n"
            "• Daily leaderboard resets every day\n"
            f"• Top 3 players earn points: 🥇{PODIUM_POINTS[0]}, 🥈{PODIUM_POINTS[1]}, 🥉{PODIUM_POINTS[2]}\n"
            "• Need minimum 3 games to qualify\n"
            "• Rankings based on win rate and games played\n\n"
            "Use /standings recent to see recent daily champions."
        )

    lines = ["🏆 CHAMPIONSHIP STANDINGS", ""]
    for i, row in enumerate(rows, start=1):
        lines.append(f"{position_emoji(i)} {row['telegram_username']}: {row['total_score']} points")
    lines += ["", POINTS_LINE, "Use /standings recent for daily champions"]
    return "\n".join(lines)


def format_recent(records: List[DailyChampionRecord]) -> str:
    if not records:
        return (
            "🏆 RECENT DAILY CHAMPIONS\n\n"
            "No daily champions recorded yet!\n\n"
            "Championship awards happen daily at 23:55 Tajikistan time.\n"
            "Be the top player of the day to become champion! 👑"
        )

    lines = ["🏆 RECENT DAILY CHAMPIONS", ""]
    for r in records:
        lines.append(f"📅 {date_label(r.date, short=True)}:")
        for medal, (name, _, rate) in zip(("🥇", "🥈", "🥉"), r.winners()):
            lines.append(f"{medal} {name} ({float(rate or 0.0):.1f}%)")
        lines.append("")
    lines.append("Use /standings to see overall standings")
    return "\n".join(lines)


class StandingsHandlers:
    def __init__(self, services: BotServices):
        self.championship = services.championship
        self.log = services.log

    async def standings(self, update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
        args = command_args(update, context)
        option = args[0].lower() if args else ""

        try:
            if option in ("recent", "champions"):
                text = format_recent(await self.championship.recent_champions(RECENT_LIMIT))
            else:
                text = format_scores(await self.championship.all_scores())
        except PyMongoError as e:
            await self.log.error(f"[standings] failed: {type(e).__name__}: {e}")
            text = "🚨 Error retrieving championship standings. Please try again later."

        await safe_reply(update, text, label="standings")


def setup(application: Application, services: BotServices) -> None:
    h = StandingsHandlers(services)
    application.add_handler(CommandHandler("standings", h.standings))
