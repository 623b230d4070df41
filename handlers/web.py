# handlers/web.py
"""aiohttp web app: Telegram webhook, cron trigger and a health check."""

from __future__ import annotations

import hmac
from typing import Any

from aiohttp import web
from telegram import Update
from telegram.ext import Application

from . import BotServices, daily_championship

WEBHOOK_ROUTE = "/api/webhook"
SECRET_HEADER = "X-Telegram-Bot-Api-Secret-Token"


class WebhookRoute:
    def __init__(self, application: Application, services: BotServices):
        self.application = application
        self.services = services

    async def handle(self, request: web.Request) -> web.Response:
        secret = self.services.cfg.webhook_secret
        if secret and not hmac.compare_digest(request.headers.get(SECRET_HEADER, ""), secret):
            return web.json_response({"error": "Unauthorized"}, status=401)

        try:
            data = await request.json()
        except ValueError:
            return web.json_response({"error": "Bad request"}, status=400)

        update = Update.de_json(data, self.application.bot)
        await self.application.update_queue.put(update)
        return web.json_response({"ok": True})


async def healthz(request: web.Request) -> web.Response:
    return web.json_response({"ok": True})


def build_web_app(application: Application, services: BotServices, *, webhook: bool = False) -> web.Application:
    app = web.Application()
    app.router.add_get("/healthz", healthz)
    daily_championship.setup(app, services, application.bot)
    if webhook:
        app.router.add_post(WEBHOOK_ROUTE, WebhookRoute(application, services).handle)
    return app


async def start_web_app(app: web.Application, host: str, port: int) -> Any:
    """Start serving; returns the runner so the caller can clean it up."""
    runner = web.AppRunner(app)
    await runner.setup()
    site = web.TCPSite(runner, host=host, port=int(port))
    await site.start()
    return runner
