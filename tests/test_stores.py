"""Player mapping, championship score and registration session stores."""

from datetime import datetime, timedelta, timezone

import pytest
from pymongo.errors import PyMongoError

from championship_store import ChampionshipStore
from player_store import PlayerStore, normalize_username
from utils.persistence import (
    STEP_CHESS_USERNAME,
    STEP_PLATFORM,
    RegistrationSession,
    SessionStore,
)


@pytest.mark.asyncio
async def test_linking_a_second_platform_keeps_the_first(players_col):
    store = PlayerStore(players_col)
    await store.save_mapping("@alice", chess_username="AliceC")
    ident = await store.save_mapping("alice", lichess_username="alice_l")

    assert ident.chess_username == "AliceC"
    assert ident.lichess_username == "alice_l"
    assert len(players_col.docs) == 1
    assert "created_at" in players_col.docs[0]


@pytest.mark.asyncio
async def test_save_mapping_requires_a_handle(players_col):
    with pytest.raises(ValueError):
        await PlayerStore(players_col).save_mapping("alice")


@pytest.mark.asyncio
async def test_save_mapping_propagates_db_errors(players_col):
    players_col.fail_on.add("update_one")
    with pytest.raises(PyMongoError):
        await PlayerStore(players_col).save_mapping("alice", chess_username="a")


@pytest.mark.asyncio
async def test_all_players_skips_rows_without_handles(players_col):
    players_col.docs = [
        {"_id": 1, "telegram_username": "alice", "chess_username": "AliceC"},
        {"_id": 2, "telegram_username": "ghost", "chess_username": "  "},
        {"_id": 3, "telegram_username": "carol", "lichess_username": "carol_l"},
    ]
    players = await PlayerStore(players_col).all_players()
    assert [p.telegram_username for p in players] == ["alice", "carol"]


@pytest.mark.asyncio
async def test_get_player_accepts_mentions(players_col):
    players_col.docs = [{"_id": 1, "telegram_username": "alice", "chess_username": "AliceC"}]
    store = PlayerStore(players_col)
    assert (await store.get_player("@alice")).chess_username == "AliceC"
    assert await store.get_player("bob") is None
    assert await store.get_player("") is None


def test_normalize_username():
    assert normalize_username(" @alice ") == "alice"
    assert normalize_username("alice") == "alice"


@pytest.mark.asyncio
async def test_add_points_is_additive(scores_col, champions_col):
    store = ChampionshipStore(scores_col, champions_col)
    await store.add_points("alice", 300)
    await store.add_points("alice", 100)
    await store.add_points("bob", 200)

    assert await store.get_score("alice") == 400
    assert await store.get_score("nobody") == 0
    assert await store.all_scores() == [
        {"telegram_username": "alice", "total_score": 400},
        {"telegram_username": "bob", "total_score": 200},
    ]


@pytest.mark.asyncio
async def test_session_roundtrip_and_clear(sessions_col):
    store = SessionStore(sessions_col, ttl_minutes=10)
    await store.save(RegistrationSession(user_id=42, step=STEP_PLATFORM))
    await store.save(RegistrationSession(user_id=42, step=STEP_CHESS_USERNAME, chess_username="AliceC"))

    session = await store.get(42)
    assert session.step == STEP_CHESS_USERNAME
    assert session.chess_username == "AliceC"
    assert len(sessions_col.docs) == 1
    assert sessions_col.docs[0]["expires_at"] > datetime.now(timezone.utc)

    await store.clear(42)
    assert await store.is_active(42) is False


@pytest.mark.asyncio
async def test_expired_or_unknown_sessions_are_ignored(sessions_col):
    past = datetime.now(timezone.utc) - timedelta(minutes=1)
    sessions_col.docs = [
        {"_id": 1, "user_id": 1, "step": STEP_PLATFORM, "expires_at": past},
        {"_id": 2, "user_id": 2, "step": "waiting_for_something_else"},
    ]
    store = SessionStore(sessions_col)
    assert await store.get(1) is None
    assert await store.get(2) is None
