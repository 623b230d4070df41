# handlers/registration.py
"""/start: link a Telegram account to Chess.com and/or Lichess.

Dialogue (state persisted per Telegram user id, see utils/persistence.py):

  waiting_for_platform            "1" / "chess.com"  or  "2" / "lichess"
  waiting_for_chess_username      validate length, check the handle exists, save
  waiting_for_lichess_username    same for Lichess
  waiting_for_additional_platform yes -> ask for the missing platform, no -> done

Prompts are bilingual (Tajik / English).
"""

from __future__ import annotations

from typing import Optional

from pymongo.errors import PyMongoError
from telegram import Update
from telegram.ext import Application, CommandHandler, ContextTypes, MessageHandler, filters

from chess_fetch import PLATFORM_CHESS_COM, PLATFORM_LICHESS, FetchError, get_adapter, http_session
from utils.interactions import safe_reply
from utils.persistence import (
    STEP_ADDITIONAL_PLATFORM,
    STEP_CHESS_USERNAME,
    STEP_LICHESS_USERNAME,
    STEP_PLATFORM,
    RegistrationSession,
)

from . import GENERIC_ERROR, BotServices

HANDLE_LIMITS = {
    PLATFORM_CHESS_COM: (3, 25),
    PLATFORM_LICHESS: (3, 20),
}

YES_WORDS = {"ҳа", "бале", "yes", "y", "ha", "bale"}
NO_WORDS = {"не", "нест", "no", "n", "ne", "nest"}

PLATFORM_MENU = (
    "1️⃣ Chess.com\n"
    "2️⃣ Lichess"
)

WELCOME = (
    "👋 Хуш омадед! / Welcome!\n\n"
    "Платформаи шахматии худро интихоб кунед:\n"
    "Choose your chess platform:\n\n" + PLATFORM_MENU
)

NEXT_STEPS = (
    "Ҳозир шумо метавонед:\n"
    "Now you can use:\n"
    "📊 /stats - Омори шахмат / View your chess statistics\n"
    "🏆 /top - Рейтинг / See leaderboards\n"
    "⚔️ /score @user1 @user2 - Муқоисаи бозигарон / Compare players"
)


def parse_platform_choice(text: str) -> Optional[str]:
    choice = (text or "").strip().lower()
    if choice in ("1", "chess.com", "chesscom"):
        return PLATFORM_CHESS_COM
    if choice in ("2", "lichess", "lichess.org"):
        return PLATFORM_LICHESS
    return None


def parse_yes_no(text: str) -> Optional[bool]:
    answer = (text or "").strip().lower()
    if answer in YES_WORDS:
        return True
    if answer in NO_WORDS:
        return False
    return None


def validate_handle(platform: str, handle: str) -> Optional[str]:
    """Return an error message, or None if the handle looks fine."""
    lo, hi = HANDLE_LIMITS[platform]
    label = "Chess.com" if platform == PLATFORM_CHESS_COM else "Lichess"
    if not (lo <= len(handle) <= hi) or any(ch.isspace() for ch in handle):
        return f"❌ Invalid username. {label} usernames must be {lo}-{hi} characters long. Please try again:"
    return None


def prompt_for(platform: str) -> str:
    if platform == PLATFORM_CHESS_COM:
        return (
            "♟️ Лутфан номи корбарии Chess.com-и худро ворид кунед:\n"
            "♟️ Please enter your Chess.com username:"
        )
    return (
        "♟️ Лутфан номи корбарии Lichess-и худро ворид кунед:\n"
        "♟️ Please enter your Lichess username:"
    )


class RegistrationHandlers:
    def __init__(self, services: BotServices):
        self.services = services
        self.sessions = services.sessions
        self.players = services.players
        self.log = services.log

    async def start(self, update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
        user = update.effective_user
        if user is None:
            return

        if not user.username:
            await safe_reply(
                update,
                "❌ Please set a Telegram @username in your settings first, then send /start again.",
                label="register",
            )
            return

        try:
            existing = await self.players.get_player(user.username)
            await self.sessions.save(RegistrationSession(user_id=user.id, step=STEP_PLATFORM))
        except PyMongoError as e:
            await self.log.error(f"[register] /start failed for @{user.username}: {type(e).__name__}: {e}")
            await safe_reply(update, GENERIC_ERROR, label="register")
            return

        text = WELCOME
        if existing is not None and existing.has_any_handle():
            linked = []
            if existing.chess_username:
                linked.append(f"♟️ Chess.com: {existing.chess_username}")
            if existing.lichess_username:
                linked.append(f"♟️ Lichess: {existing.lichess_username}")
            text = "ℹ️ You are already registered:\n" + "\n".join(linked) + "\n\n" + WELCOME

        await safe_reply(update, text, label="register")

    async def on_text(self, update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
        user = update.effective_user
        msg = update.effective_message
        if user is None or msg is None or not msg.text:
            return

        try:
            session = await self.sessions.get(user.id)
        except PyMongoError as e:
            await self.log.error(f"[register] session lookup failed for {user.id}: {e}")
            return

        # Not registering: free text is not for us
        if session is None:
            return

        text = msg.text.strip()
        try:
            if session.step == STEP_PLATFORM:
                await self._on_platform(update, session, text)
            elif session.step == STEP_CHESS_USERNAME:
                await self._on_handle(update, session, PLATFORM_CHESS_COM, text)
            elif session.step == STEP_LICHESS_USERNAME:
                await self._on_handle(update, session, PLATFORM_LICHESS, text)
            elif session.step == STEP_ADDITIONAL_PLATFORM:
                await self._on_additional(update, session, text)
        except PyMongoError as e:
            await self.log.error(f"[register] step {session.step} failed for {user.id}: {type(e).__name__}: {e}")
            await safe_reply(update, GENERIC_ERROR, label="register")

    async def _on_platform(self, update: Update, session: RegistrationSession, text: str) -> None:
        platform = parse_platform_choice(text)
        if platform is None:
            await safe_reply(
                update,
                "❌ Интихоби нодуруст. Лутфан 1 ё 2-ро интихоб кунед:\n"
                "❌ Invalid choice. Please select 1 or 2:\n\n" + PLATFORM_MENU,
                label="register",
            )
            return

        session.step = STEP_CHESS_USERNAME if platform == PLATFORM_CHESS_COM else STEP_LICHESS_USERNAME
        await self.sessions.save(session)
        await safe_reply(update, prompt_for(platform), label="register")

    async def _on_handle(self, update: Update, session: RegistrationSession, platform: str, handle: str) -> None:
        user = update.effective_user
        if user is None or not user.username:
            await safe_reply(update, "❌ Unable to get your Telegram information. Please try again.", label="register")
            return

        error = validate_handle(platform, handle)
        if error:
            await safe_reply(update, error, label="register")
            return

        label = "Chess.com" if platform == PLATFORM_CHESS_COM else "Lichess"
        try:
            async with http_session() as http:
                exists = await get_adapter(platform).user_exists(http, handle)
        except FetchError as e:
            await self.log.warn(f"[register] {label} lookup for {handle} failed: {e}", send=False)
            await safe_reply(
                update,
                f"⚠️ {label} is not responding right now. Please send the username again in a few minutes:",
                label="register",
            )
            return
        if not exists:
            await safe_reply(
                update,
                f'❌ {label} user "{handle}" not found. Please check the spelling and try again:',
                label="register",
            )
            return

        if platform == PLATFORM_CHESS_COM:
            session.chess_username = handle
        else:
            session.lichess_username = handle

        try:
            saved = await self.players.save_mapping(
                user.username,
                chess_username=session.chess_username,
                lichess_username=session.lichess_username,
            )
        except PyMongoError as e:
            await self.log.error(f"[register] saving @{user.username} -> {label} {handle} failed: {e}")
            await safe_reply(
                update,
                "❌ Хатогӣ ҳангоми сабт. / Error during registration. Please try again later.",
                label="register",
            )
            return

        await self.log.ok(f"[register] @{saved.telegram_username} linked {label} {handle}", send=False)

        lines = [
            "✅ Муваффақият! Шумо сабт шудед! / Success! You are registered!",
            "",
            f"🎯 Telegram: @{saved.telegram_username}",
        ]
        if saved.chess_username:
            lines.append(f"♟️ Chess.com: {saved.chess_username}")
        if saved.lichess_username:
            lines.append(f"♟️ Lichess: {saved.lichess_username}")
        await safe_reply(update, "\n".join(lines) + "\n\n" + NEXT_STEPS, label="register")

        if saved.chess_username and saved.lichess_username:
            await self.sessions.clear(user.id)
            return

        missing = "Lichess" if saved.chess_username else "Chess.com"
        await self.sessions.save(
            RegistrationSession(
                user_id=user.id,
                step=STEP_ADDITIONAL_PLATFORM,
                chess_username=saved.chess_username,
                lichess_username=saved.lichess_username,
            )
        )
        await safe_reply(
            update,
            f"➕ Оё шумо мехоҳед {missing}-ро низ илова кунед?\n"
            f"➕ Would you like to also add {missing}?\n\n"
            "Ҷавоб диҳед: ҳа/бале/yes ё не/нест/no",
            label="register",
        )

    async def _on_additional(self, update: Update, session: RegistrationSession, text: str) -> None:
        answer = parse_yes_no(text)
        if answer is None:
            await safe_reply(
                update,
                "❌ Лутфан ҳа/бале/yes ё не/нест/no ҷавоб диҳед:\n❌ Please answer yes or no:",
                label="register",
            )
            return

        if not answer:
            await self.sessions.clear(session.user_id)
            await safe_reply(
                update,
                "✅ Хуб! Шумо ҳар вақт метавонед платформаи дигарро бо /start илова кунед.\n"
                "✅ Great! You can always add the other platform later with /start.",
                label="register",
            )
            return

        platform = PLATFORM_LICHESS if session.chess_username else PLATFORM_CHESS_COM
        session.step = STEP_LICHESS_USERNAME if platform == PLATFORM_LICHESS else STEP_CHESS_USERNAME
        await self.sessions.save(session)
        await safe_reply(update, prompt_for(platform), label="register")


def setup(application: Application, services: BotServices) -> None:
    h = RegistrationHandlers(services)
    application.add_handler(CommandHandler("start", h.start))
    application.add_handler(MessageHandler(filters.TEXT & ~filters.COMMAND, h.on_text))
