"""Shared helpers for safely replying to Telegram updates.

These helpers are intentionally conservative:
- Reply to the triggering message first.
- If that fails (message deleted, bot blocked, flood control), log and
  carry on instead of crashing the handler.

Long texts are split at line boundaries to stay under Telegram's limit.
"""

from __future__ import annotations

from typing import Any, List, Optional

from telegram import Update
from telegram.error import TelegramError

MAX_MESSAGE_LEN = 4000


def split_message(text: str, limit: int = MAX_MESSAGE_LEN) -> List[str]:
    """Split on newlines into chunks of at most `limit` characters."""
    text = str(text or "")
    if len(text) <= limit:
        return [text]

    chunks: List[str] = []
    cur = ""
    for line in text.split("\n"):
        while len(line) > limit:
            if cur:
                chunks.append(cur)
                cur = ""
            chunks.append(line[:limit])
            line = line[limit:]
        candidate = f"{cur}\n{line}" if cur else line
        if len(candidate) > limit:
            chunks.append(cur)
            cur = line
        else:
            cur = candidate
    if cur:
        chunks.append(cur)
    return chunks


async def safe_reply(update: Update, text: str, *, label: str = "") -> bool:
    """Reply in the update's chat. Returns False if Telegram refused."""
    msg = update.effective_message
    if msg is None:
        print(f"[{label or 'reply'}] ⚠️ update has no message to reply to")
        return False

    try:
        for chunk in split_message(text):
            await msg.reply_text(chunk)
        return True
    except TelegramError as e:
        print(f"[{label or 'reply'}] ❌ reply failed: {type(e).__name__}: {e}")
        return False


async def safe_send(bot: Any, chat_id: Optional[int], text: str, *, label: str = "") -> bool:
    """bot.send_message to an arbitrary chat (announcements, log mirror)."""
    if not chat_id:
        return False
    try:
        for chunk in split_message(text):
            await bot.send_message(chat_id=int(chat_id), text=chunk)
        return True
    except TelegramError as e:
        print(f"[{label or 'send'}] ❌ send to {chat_id} failed: {type(e).__name__}: {e}")
        return False


def command_args(update: Update, context: Any = None) -> List[str]:
    """Arguments after the /command (case preserved)."""
    args = getattr(context, "args", None)
    if args is None:
        text = (getattr(update.effective_message, "text", None) or "").strip()
        args = text.split()[1:]
    return [str(a).strip() for a in args if str(a).strip()]


def sender_username(update: Update) -> str:
    """The sender's stable handle: @username, else the numeric id as text."""
    user = update.effective_user
    if user is None:
        return ""
    return user.username or str(user.id)
