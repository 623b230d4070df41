# handlers/score.py
"""/score @a @b: this month's head-to-head between two registered players."""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Any, List

from pymongo.errors import PyMongoError
from telegram import MessageEntity, Update
from telegram.ext import Application, CommandHandler, ContextTypes

from leaderboard import Window
from leaderboard.head_to_head import compare
from utils.interactions import command_args, safe_reply

from . import GENERIC_ERROR, BotServices

USAGE = (
    "⚠️ Please mention exactly two users to compare their head-to-head scores.\n"
    "Example: /score @user1 @user2"
)


def mentioned_usernames(update: Update, context: Any = None) -> List[str]:
    """@mentions in the message, else the @-prefixed command arguments."""
    msg = update.effective_message
    if msg is None:
        return []
    found = [text.lstrip("@") for text in msg.parse_entities([MessageEntity.MENTION]).values()]
    if found:
        return found
    return [a.lstrip("@") for a in command_args(update, context) if a.startswith("@") and len(a) > 1]


class ScoreHandlers:
    def __init__(self, services: BotServices):
        self.players = services.players
        self.log = services.log

    async def score(self, update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
        names = mentioned_usernames(update, context)
        if len(names) != 2:
            await safe_reply(update, USAGE, label="score")
            return

        try:
            a = await self.players.get_player(names[0])
            b = await self.players.get_player(names[1])
        except PyMongoError as e:
            await self.log.error(f"[score] lookup failed: {type(e).__name__}: {e}")
            await safe_reply(update, GENERIC_ERROR, label="score")
            return

        if a is None or b is None:
            await safe_reply(
                update,
                "⚠️ One or both users haven't registered their chess username. They should use /start first.",
                label="score",
            )
            return

        window = Window.month(datetime.now(timezone.utc))
        h2h = await compare(a, b, window)

        if not h2h.platforms and h2h.failures:
            await safe_reply(update, "⚠️ Error fetching games. Please try again later.", label="score")
            return
        if not h2h.platforms:
            await safe_reply(update, "⚠️ These players don't share a chess platform.", label="score")
            return
        if h2h.total == 0:
            await safe_reply(update, f"📊 No games found between @{names[0]} and @{names[1]} this month.", label="score")
            return

        lines = [
            "📊 Head-to-head stats for this month:",
            f"@{names[0]} vs @{names[1]}",
            "",
            f"Total games: {h2h.total}",
            f"@{names[0]} wins: {h2h.a_wins}",
            f"@{names[1]} wins: {h2h.b_wins}",
            f"Draws: {h2h.draws}",
        ]
        last = h2h.last_game
        if last is not None and last.url:
            lines += ["", f"Last game: {last.url}"]

        await safe_reply(update, "\n".join(lines), label="score")


def setup(application: Application, services: BotServices) -> None:
    h = ScoreHandlers(services)
    application.add_handler(CommandHandler("score", h.score))
