"""Telegram command handlers.

Each module exposes `setup(application, services)`, mirroring how the
handlers are registered in main.py.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any

from utils.logger import Logger


@dataclass
class BotServices:
    """Everything handlers need, built once in main.py."""

    cfg: Any
    players: Any      # PlayerStore
    championship: Any  # ChampionshipStore
    sessions: Any     # SessionStore
    log: Logger


POSITION_EMOJIS = ["🥇", "🥈", "🥉", "4️⃣", "5️⃣", "6️⃣", "7️⃣", "8️⃣", "9️⃣", "🔟"]


def position_emoji(position: int) -> str:
    p = int(position)
    return POSITION_EMOJIS[p - 1] if 1 <= p <= len(POSITION_EMOJIS) else f"{p}."


GENERIC_ERROR = "🚨 Something went wrong. Please try again later."
