"""compute_leaderboard end to end against canned platform adapters."""

import pytest

from chess_fetch import PLATFORM_CHESS_COM, PLATFORM_LICHESS
from conftest import FakeChessCom, FakeLichess, chesscom_game, lichess_game
from leaderboard import PlayerIdentity, StatsAggregator, Window, compute_leaderboard

SESSION = object()


@pytest.fixture
def now(utc):
    return utc(2024, 1, 15, 12)


@pytest.fixture
def players():
    return [
        PlayerIdentity("alice", chess_username="AliceC", lichess_username="alice_l"),
        PlayerIdentity("bob", chess_username="bobc"),
        PlayerIdentity("carol", lichess_username="carol_l"),
        PlayerIdentity("dave"),
    ]


@pytest.fixture
def adapters(utc, fetch_error):
    chesscom = FakeChessCom(
        {
            "AliceC": [
                chesscom_game("alicec", "x", "win", "resigned", utc(2024, 1, 15, 8)),
                # last second of the local day
                chesscom_game("x", "AliceC", "timeout", "win", utc(2024, 1, 15, 18, 59, 59)),
                # first second of the next local day
                chesscom_game("AliceC", "x", "checkmated", "win", utc(2024, 1, 15, 19, 0, 0)),
                # previous local day
                chesscom_game("AliceC", "x", "resigned", "win", utc(2024, 1, 14, 18, 59)),
            ],
            "bobc": fetch_error,
        }
    )
    lichess = FakeLichess(
        {
            "alice_l": [lichess_game("alice_l", "y", "white", utc(2024, 1, 15, 9), speed="bullet")],
            "carol_l": [
                lichess_game("carol_l", "y", "white", utc(2024, 1, 15, 1)),
                lichess_game("y", "carol_l", "white", utc(2024, 1, 15, 2)),
                lichess_game("y", "carol_l", "black", utc(2024, 1, 15, 3)),
                lichess_game("carol_l", "y", None, utc(2024, 1, 15, 4)),
            ],
        }
    )
    return {PLATFORM_CHESS_COM: chesscom, PLATFORM_LICHESS: lichess}


@pytest.mark.asyncio
async def test_daily_leaderboard(now, players, adapters):
    result = await compute_leaderboard(players, Window.day(now), session=SESSION, adapters=adapters, concurrency=2)

    assert [(e.rank, e.username) for e in result.standings] == [(1, "alice"), (2, "carol")]
    alice = result.standings[0].stats
    assert (alice.wins, alice.losses) == (3, 0)
    assert (alice.chesscom_games, alice.lichess_games) == (2, 1)
    assert round(alice.weighted_score, 1) == 173.2
    assert round(result.standings[1].weighted_score, 1) == 115.5


@pytest.mark.asyncio
async def test_one_failed_fetch_does_not_abort_the_rest(now, players, adapters):
    result = await compute_leaderboard(players, Window.day(now), session=SESSION, adapters=adapters)

    assert result.failures == ["chess.com:bobc"]
    assert result.failed_fetches == 1
    # every registered user is seeded, even with nothing counted
    assert {s.username for s in result.stats} == {"alice", "bob", "carol", "dave"}
    assert result.games_counted == 7


@pytest.mark.asyncio
async def test_fetchers_receive_the_window(now, players, adapters):
    window = Window.day(now)
    await compute_leaderboard(players, window, session=SESSION, adapters=adapters)

    assert ("carol_l", window.start, window.end) in adapters[PLATFORM_LICHESS].requested
    assert {h for h, _, _ in adapters[PLATFORM_CHESS_COM].requested} == {"AliceC", "bobc"}


@pytest.mark.asyncio
async def test_monthly_window_counts_every_local_day(now, players, adapters):
    result = await compute_leaderboard(players, Window.month(now), session=SESSION, adapters=adapters)

    by_name = {s.username: s for s in result.stats}
    assert (by_name["alice"].wins, by_name["alice"].losses) == (3, 2)
    assert [e.username for e in result.standings] == ["alice", "carol"]


@pytest.mark.asyncio
async def test_speed_filter(now, players, adapters):
    result = await compute_leaderboard(
        players, Window.month(now), speed="bullet", session=SESSION, adapters=adapters
    )

    by_name = {s.username: s for s in result.stats}
    assert (by_name["alice"].wins, by_name["alice"].total_games) == (1, 1)
    assert by_name["carol"].total_games == 0
    assert result.standings == []


def test_window_contains_uses_local_day(utc, now):
    w = Window.day(now)
    assert w.key == "2024-01-15"
    assert w.contains(utc(2024, 1, 14, 19, 0))
    assert w.contains(utc(2024, 1, 15, 18, 59, 59))
    assert not w.contains(utc(2024, 1, 15, 19, 0))


def test_aggregator_ignores_unknown_players(utc, now, adapters):
    agg = StatsAggregator(["alice"], adapters=adapters)
    g = chesscom_game("mallory", "x", "win", "resigned", utc(2024, 1, 15, 8))
    assert agg.add_game("mallory", PLATFORM_CHESS_COM, "mallory", g, Window.day(now)) is False
    assert agg.get("alice").total_games == 0
