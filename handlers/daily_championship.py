# handlers/daily_championship.py
"""
Daily championship trigger.

An external scheduler calls GET|POST /api/daily-championship shortly before
local midnight (23:55 UTC+5) with `Authorization: Bearer <CRON_SECRET>`.
The run computes the local day's standings, awards the podium once per local
date and, when ANNOUNCEMENT_CHAT_ID is set, posts the results there.
"""

from __future__ import annotations

import hmac
from datetime import datetime, timezone
from typing import Any, Dict, Optional

from aiohttp import web

from leaderboard import (
    DailyChampionRecord,
    LeaderboardResult,
    award_daily,
    compute_daily_standings,
)
from utils.dates import date_label, local_date_key
from utils.interactions import safe_send

from . import BotServices

ROUTE = "/api/daily-championship"


def is_authorized(request: web.Request, secret: str) -> bool:
    # no secret configured: nothing is allowed to trigger awards
    if not secret:
        return False
    header = request.headers.get("Authorization", "")
    return hmac.compare_digest(header.encode(), f"Bearer {secret}".encode())


def format_championship_message(record: DailyChampionRecord, result: LeaderboardResult) -> str:
    by_name = {e.username: e.stats for e in result.standings}
    lines = [f"🏆 DAILY CHAMPIONSHIP RESULTS - {date_label(record.date)}", ""]

    for medal, (name, points, rate) in zip(("🥇", "🥈", "🥉"), record.winners()):
        s = by_name.get(name)
        record_txt = f" ({s.wins}W-{s.losses}L)" if s else ""
        lines.append(f"{medal} {name}: {float(rate or 0.0):.1f}%{record_txt} +{points} points")

    lines += [
        "",
        f"👥 Qualifying players: {len(result.standings)}",
        "Use /standings to see the overall championship table.",
    ]
    return "\n".join(lines)


def summarize(record: Optional[DailyChampionRecord], result: LeaderboardResult, date_key: str) -> Dict[str, Any]:
    out: Dict[str, Any] = {
        "date": date_key,
        "awarded": record is not None,
        "qualifying_players": len(result.standings),
        "failed_fetches": result.failed_fetches,
    }
    if record is not None:
        out["winners"] = [
            {"username": u, "points": p, "win_rate": round(float(r or 0.0), 2)}
            for u, p, r in record.winners()
        ]
    return out


async def run_daily_championship(now: datetime, services: BotServices, bot: Any = None) -> Dict[str, Any]:
    """Award the local day containing `now`. Safe to call repeatedly."""
    date_key = local_date_key(now)

    existing = await services.championship.get_champion(date_key)
    if existing is not None:
        await services.log.info(f"[championship] {date_key} already awarded; skipping", send=False)
        out = summarize(existing, LeaderboardResult(standings=[], stats=[]), date_key)
        out["already_awarded"] = True
        return out

    result = await compute_daily_standings(now, player_store=services.players)
    if result.failures:
        await services.log.warn(
            f"[championship] {date_key}: {result.failed_fetches} fetch failure(s): {', '.join(result.failures[:10])}"
        )

    record = await award_daily(now, result.standings, store=services.championship)
    out = summarize(record, result, date_key)

    if record is None:
        await services.log.info(f"[championship] {date_key}: no champions recorded")
        return out

    out["already_awarded"] = False
    await services.log.ok(
        f"[championship] {date_key}: " + ", ".join(f"{u} +{p}" for u, p, _ in record.winners())
    )

    if bot is not None and services.cfg.announcement_chat_id:
        out["announced"] = await safe_send(
            bot,
            services.cfg.announcement_chat_id,
            format_championship_message(record, result),
            label="championship",
        )
    return out


class DailyChampionshipRoute:
    def __init__(self, services: BotServices, bot: Any = None):
        self.services = services
        self.bot = bot

    async def handle(self, request: web.Request) -> web.Response:
        if request.method not in ("GET", "POST"):
            return web.json_response({"error": "Method not allowed"}, status=405)

        if not is_authorized(request, self.services.cfg.cron_secret):
            await self.services.log.warn(f"[cron] rejected trigger from {request.remote}", send=False)
            return web.json_response({"error": "Unauthorized"}, status=401)

        try:
            summary = await run_daily_championship(datetime.now(timezone.utc), self.services, self.bot)
        except Exception as e:
            await self.services.log.error(f"[cron] daily championship failed: {type(e).__name__}: {e}")
            return web.json_response({"error": "Internal server error"}, status=500)

        return web.json_response({"ok": True, **summary})


def setup(app: web.Application, services: BotServices, bot: Any = None) -> None:
    route = DailyChampionshipRoute(services, bot)
    app.router.add_route("*", ROUTE, route.handle)
