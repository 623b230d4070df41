# utils/logger.py
"""
Bot-facing logger.

Console lines look like `12:04:05 [cron] rejected trigger` with the
`[prefix]` colored per subsystem and the rest colored per level. Anything
not sent with `send=False` is also mirrored, without colors, to the
LOG_CHAT_ID Telegram chat.

Library modules (chess_fetch, leaderboard, stores) use the standard
`logging` module instead; this one is for handlers and main.py.
"""

from __future__ import annotations

from typing import Any, Optional, Tuple

from colorama import Fore, Style, just_fix_windows_console
from telegram.error import TelegramError

from utils.dates import now_local

# Safe to call multiple times; fixes Windows terminal ANSI handling.
just_fix_windows_console()

COLORS = {
    "grey": Fore.LIGHTBLACK_EX,
    "red": Fore.LIGHTRED_EX,
    "green": Fore.LIGHTGREEN_EX,
    "yellow": Fore.LIGHTYELLOW_EX,
    "blue": Fore.LIGHTBLUE_EX,
    "magenta": Fore.LIGHTMAGENTA_EX,
    "cyan": Fore.LIGHTCYAN_EX,
    "white": Fore.WHITE,
}

# subsystem prefix -> color
PREFIX_COLORS = {
    "boot": "magenta",
    "db": "white",
    "register": "cyan",
    "stats": "blue",
    "top": "green",
    "score": "green",
    "standings": "green",
    "championship": "yellow",
    "cron": "yellow",
    "webhook": "grey",
}

# level -> (color, chat badge)
LEVELS = {
    "debug": ("grey", "🔹"),
    "info": ("white", "ℹ️"),
    "ok": ("green", "✅"),
    "warn": ("yellow", "⚠️"),
    "error": ("red", "❌"),
}

# Telegram rejects messages over 4096 chars
TELEGRAM_MAX_LEN = 4000


def paint(text: str, color: Optional[str], *, bold: bool = False) -> str:
    code = COLORS.get((color or "").lower())
    if not code:
        return text
    return f"{Style.BRIGHT if bold else ''}{code}{text}{Style.RESET_ALL}"


def split_prefix(text: str) -> Tuple[Optional[str], str]:
    """'[cron] rejected' -> ('cron', 'rejected'); no prefix -> (None, text)."""
    t = (text or "").strip()
    end = t.find("]") if t.startswith("[") else -1
    if end <= 1:
        return None, t
    return t[1:end].strip(), t[end + 1 :].lstrip()


def _level(level: str) -> Tuple[str, str]:
    return LEVELS.get((level or "info").lower(), LEVELS["info"])


def format_console(text: str, *, level: str = "info") -> str:
    color, _ = _level(level)
    stamp = paint(now_local().strftime("%H:%M:%S"), "grey")

    prefix, rest = split_prefix(text)
    if not prefix:
        return f"{stamp} {paint(rest, color)}"

    tag = paint(f"[{prefix}]", PREFIX_COLORS.get(prefix.lower(), color), bold=True)
    return f"{stamp} {tag} {paint(rest, color)}".rstrip()


def format_chat(text: str, *, level: str = "info") -> str:
    _, badge = _level(level)
    msg = f"{badge} {text or ''}"
    if len(msg) > TELEGRAM_MAX_LEN:
        return msg[:TELEGRAM_MAX_LEN] + "…"
    return msg


class Logger:
    """
    `bot` is a telegram.Bot, or None when there is nothing to mirror to
    (tests, or before the Application is built).
    """

    def __init__(self, bot: Any, cfg: Any):
        self.bot = bot
        self.chat_id = int(getattr(cfg, "log_chat_id", 0) or 0)

    async def log(self, text: str, *, level: str = "info", send: bool = True, console: bool = True) -> None:
        raw = str(text or "")
        if console:
            print(format_console(raw, level=level))

        if not (send and self.bot is not None and self.chat_id):
            return
        try:
            await self.bot.send_message(chat_id=self.chat_id, text=format_chat(raw, level=level))
        except TelegramError as e:
            # console only; mirroring this failure would recurse
            print(format_console(f"[boot] log chat unavailable: {type(e).__name__}: {e}", level="warn"))

    async def debug(self, text: str, **kw): return await self.log(text, level="debug", send=False, **kw)
    async def info(self, text: str, **kw):  return await self.log(text, level="info", **kw)
    async def ok(self, text: str, **kw):    return await self.log(text, level="ok", **kw)
    async def warn(self, text: str, **kw):  return await self.log(text, level="warn", **kw)
    async def error(self, text: str, **kw): return await self.log(text, level="error", **kw)


def get_logger(bot: Any, cfg: Any) -> Logger:
    return Logger(bot, cfg)
