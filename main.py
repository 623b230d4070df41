import asyncio
import importlib
import logging
import signal
from contextlib import suppress

from telegram import Update
from telegram.ext import Application, ContextTypes

from handlers import GENERIC_ERROR, BotServices
from handlers.web import WEBHOOK_ROUTE, build_web_app, start_web_app
from utils.interactions import safe_reply
from utils.logger import get_logger
from utils.settings import SETTINGS

# Mongo is required: importing db fails fast without MONGO_URI
from championship_store import default_championship_store
from db import ensure_indexes as mongo_ensure_indexes, ping as mongo_ping
from player_store import default_player_store
from utils.persistence import default_session_store


logging.basicConfig(
    level=logging.DEBUG if SETTINGS.is_dev else logging.INFO,
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)
# python-telegram-bot logs every getUpdates call at INFO via httpx
logging.getLogger("httpx").setLevel(logging.WARNING)

INITIAL_HANDLERS = [
    "handlers.registration",
    "handlers.stats",
    "handlers.top",
    "handlers.score",
    "handlers.standings",
]


async def bootstrap_mongo() -> bool:
    try:
        await mongo_ping()
        await mongo_ensure_indexes()
        print("[boot] MongoDB OK + indexes ensured")
        return True
    except Exception as e:
        print(f"[boot] MongoDB ERROR: {e}")
        return False


def build_application(webhook: bool) -> Application:
    builder = Application.builder().token(SETTINGS.bot_token)
    if webhook:
        # updates arrive through our own aiohttp route
        builder = builder.updater(None)
    return builder.build()


def build_services(application: Application) -> BotServices:
    return BotServices(
        cfg=SETTINGS,
        players=default_player_store(),
        championship=default_championship_store(),
        sessions=default_session_store(SETTINGS.registration_ttl_minutes),
        log=get_logger(application.bot, SETTINGS),
    )


def make_error_handler(services: BotServices):
    async def on_error(update: object, context: ContextTypes.DEFAULT_TYPE) -> None:
        err = context.error
        await services.log.error(f"[boot] unhandled {type(err).__name__}: {err}")
        if isinstance(update, Update):
            await safe_reply(update, GENERIC_ERROR, label="error")

    return on_error


def load_handlers(application: Application, services: BotServices) -> None:
    for name in INITIAL_HANDLERS:
        try:
            importlib.import_module(name).setup(application, services)
        except Exception as e:
            print(f"[boot] ⚠️ Failed to load handlers '{name}': {e}")
    application.add_error_handler(make_error_handler(services))


async def wait_for_stop() -> None:
    stop = asyncio.Event()
    loop = asyncio.get_running_loop()
    for sig in (signal.SIGINT, signal.SIGTERM):
        with suppress(NotImplementedError):
            loop.add_signal_handler(sig, stop.set)
    await stop.wait()


async def run() -> None:
    webhook = bool(SETTINGS.webhook_url)

    await bootstrap_mongo()

    application = build_application(webhook)
    services = build_services(application)
    load_handlers(application, services)

    web_app = build_web_app(application, services, webhook=webhook)

    async with application:
        await application.start()
        runner = await start_web_app(web_app, SETTINGS.http_host, SETTINGS.http_port)
        print(f"[boot] HTTP listening on {SETTINGS.http_host}:{SETTINGS.http_port}")

        if webhook:
            await application.bot.set_webhook(
                url=SETTINGS.webhook_url + WEBHOOK_ROUTE,
                secret_token=SETTINGS.webhook_secret or None,
                allowed_updates=Update.ALL_TYPES,
            )
            print(f"[boot] webhook set to {SETTINGS.webhook_url}{WEBHOOK_ROUTE}")
        else:
            await application.bot.delete_webhook()
            await application.updater.start_polling(allowed_updates=Update.ALL_TYPES)
            print("[boot] polling for updates")

        me = await application.bot.get_me()
        await services.log.info(f"[boot] Logged in as @{me.username} ({me.id})", send=False)

        try:
            await wait_for_stop()
        finally:
            print("[boot] shutting down")
            if application.updater is not None and application.updater.running:
                await application.updater.stop()
            await runner.cleanup()
            await application.stop()


if __name__ == "__main__":
    if not SETTINGS.bot_token:
        raise RuntimeError("Missing TELEGRAM_BOT_TOKEN env var.")

    asyncio.run(run())
