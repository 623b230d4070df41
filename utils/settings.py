# utils/settings.py
import os
from dataclasses import dataclass

from dotenv import load_dotenv

load_dotenv()


def env_int(name: str, default: int = 0) -> int:
    try:
        return int((os.getenv(name) or "").strip())
    except Exception:
        return default

def env_float(name: str, default: float = 0.0) -> float:
    try:
        return float((os.getenv(name) or "").strip())
    except Exception:
        return default

def env_bool(name: str, default: bool = False) -> bool:
    raw = (os.getenv(name) or "").strip().lower()
    if raw in ("1", "true", "yes", "y", "on"):
        return True
    if raw in ("0", "false", "no", "n", "off"):
        return False
    return default

def env_str(name: str, default: str = "") -> str:
    return (os.getenv(name) or default).strip()


@dataclass(frozen=True)
class BotConfig:
    bot_token: str
    is_dev: bool

    # chat ids (0 = disabled)
    announcement_chat_id: int
    log_chat_id: int

    # upstream APIs
    lichess_token: str
    lichess_max_games: int
    fetch_concurrency: int
    http_timeout_seconds: float

    # web server (webhook + cron trigger)
    http_host: str
    http_port: int
    webhook_url: str
    webhook_secret: str
    cron_secret: str

    registration_ttl_minutes: int


def load_bot_config() -> BotConfig:
    return BotConfig(
        bot_token=env_str("TELEGRAM_BOT_TOKEN") or env_str("BOT_TOKEN"),
        is_dev=env_bool("IS_DEV", False),

        announcement_chat_id=env_int("ANNOUNCEMENT_CHAT_ID", 0),
        log_chat_id=env_int("LOG_CHAT_ID", 0),

        lichess_token=env_str("LICHESS_TOKEN"),
        lichess_max_games=max(1, min(env_int("LICHESS_MAX_GAMES", 200), 300)),
        fetch_concurrency=max(1, env_int("FETCH_CONCURRENCY", 8)),
        http_timeout_seconds=max(1.0, env_float("HTTP_TIMEOUT_SECONDS", 15.0)),

        http_host=env_str("HTTP_HOST", "0.0.0.0"),
        http_port=env_int("HTTP_PORT", 0) or env_int("PORT", 8080),
        webhook_url=env_str("WEBHOOK_URL").rstrip("/"),
        webhook_secret=env_str("WEBHOOK_SECRET"),
        cron_secret=env_str("CRON_SECRET"),

        registration_ttl_minutes=max(1, env_int("REGISTRATION_TTL_MINUTES", 30)),
    )


SETTINGS = load_bot_config()
