# utils/persistence.py
"""
MongoDB persistence for registration dialogue state.

The /start dialogue is a small state machine; its state lives in
`registration_sessions` (one doc per Telegram user id) so a restart or a
redeploy in the middle of a registration does not lose it. Stale sessions
are removed by the TTL index on `expires_at`.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Any, Optional, TypedDict

# Registration steps
STEP_PLATFORM = "waiting_for_platform"
STEP_CHESS_USERNAME = "waiting_for_chess_username"
STEP_LICHESS_USERNAME = "waiting_for_lichess_username"
STEP_ADDITIONAL_PLATFORM = "waiting_for_additional_platform"

STEPS = (STEP_PLATFORM, STEP_CHESS_USERNAME, STEP_LICHESS_USERNAME, STEP_ADDITIONAL_PLATFORM)


class SessionDoc(TypedDict, total=False):
    """Schema for registration_sessions documents."""
    user_id: int
    step: str
    chess_username: Optional[str]
    lichess_username: Optional[str]

    # TTL cleanup
    expires_at: datetime

    # Tracking
    created_at: datetime
    updated_at: datetime


@dataclass
class RegistrationSession:
    user_id: int
    step: str
    chess_username: Optional[str] = None
    lichess_username: Optional[str] = None


def _now_utc() -> datetime:
    return datetime.now(timezone.utc)


class SessionStore:
    """Per-user registration state with a sliding expiry."""

    def __init__(self, collection: Any, *, ttl_minutes: int = 30) -> None:
        self.col = collection
        self.ttl = timedelta(minutes=max(1, int(ttl_minutes)))

    async def get(self, user_id: int) -> Optional[RegistrationSession]:
        doc = await self.col.find_one({"user_id": int(user_id)})
        if not doc:
            return None

        # TTL monitor runs about once a minute; don't trust stale docs in between
        expires = doc.get("expires_at")
        if isinstance(expires, datetime):
            if expires.tzinfo is None:
                expires = expires.replace(tzinfo=timezone.utc)
            if expires <= _now_utc():
                return None

        step = str(doc.get("step") or "")
        if step not in STEPS:
            return None

        return RegistrationSession(
            user_id=int(user_id),
            step=step,
            chess_username=doc.get("chess_username") or None,
            lichess_username=doc.get("lichess_username") or None,
        )

    async def save(self, session: RegistrationSession) -> None:
        """Upsert a session and push its expiry forward."""
        now = _now_utc()
        doc: SessionDoc = {
            "user_id": int(session.user_id),
            "step": str(session.step),
            "chess_username": session.chess_username,
            "lichess_username": session.lichess_username,
            "expires_at": now + self.ttl,
            "updated_at": now,
        }
        await self.col.update_one(
            {"user_id": int(session.user_id)},
            {"$set": doc, "$setOnInsert": {"created_at": now}},
            upsert=True,
        )

    async def clear(self, user_id: int) -> None:
        await self.col.delete_one({"user_id": int(user_id)})

    async def is_active(self, user_id: int) -> bool:
        return (await self.get(user_id)) is not None


def default_session_store(ttl_minutes: int = 30) -> SessionStore:
    from db import registration_sessions
    return SessionStore(registration_sessions, ttl_minutes=ttl_minutes)
