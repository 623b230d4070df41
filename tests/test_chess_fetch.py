"""Result classification, parsing and archive selection for both platforms."""

import json
import logging

import pytest

from chess_fetch import (
    DRAW,
    LOSS,
    PLATFORM_CHESS_COM,
    PLATFORM_LICHESS,
    WIN,
    ChessComAdapter,
    FetchOutcome,
    LichessAdapter,
    fetch_settled,
    parse_chesscom_game,
    parse_lichess_game,
    parse_ndjson,
    select_archives,
)
from conftest import FakeChessCom, chesscom_game, lichess_game


# --------- Chess.com ---------


@pytest.mark.parametrize(
    "white_result, black_result, white_outcome, black_outcome",
    [
        ("win", "resigned", WIN, LOSS),
        ("win", "checkmated", WIN, LOSS),
        ("timeout", "win", LOSS, WIN),
        ("abandoned", "checkmated", LOSS, WIN),
        ("agreed", "agreed", DRAW, DRAW),
        ("stalemate", "stalemate", DRAW, DRAW),
        ("repetition", "repetition", DRAW, DRAW),
    ],
)
def test_chesscom_classify(utc, white_result, black_result, white_outcome, black_outcome):
    g = chesscom_game("Alice", "bob", white_result, black_result, utc(2024, 1, 15, 12))
    adapter = ChessComAdapter()
    assert adapter.classify(g, "alice") == white_outcome
    assert adapter.classify(g, "BOB") == black_outcome


def test_chesscom_sides_never_both_win(utc):
    adapter = ChessComAdapter()
    for wr, br in [("win", "resigned"), ("resigned", "win"), ("timeout", "win"), ("agreed", "agreed")]:
        g = chesscom_game("a", "b", wr, br, utc(2024, 1, 15, 12))
        a, b = adapter.classify(g, "a"), adapter.classify(g, "b")
        assert not (a.win and a.loss)
        assert a.win == b.loss and a.loss == b.win


def test_chesscom_unknown_subject_is_a_logged_draw(utc, caplog):
    g = chesscom_game("alice", "bob", "win", "resigned", utc(2024, 1, 15, 12))
    with caplog.at_level(logging.WARNING, logger="chess_fetch"):
        assert ChessComAdapter().classify(g, "carol") == DRAW
    assert "carol" in caplog.text


def test_parse_chesscom_game():
    g = parse_chesscom_game(
        {
            "url": "https://www.chess.com/game/live/1",
            "end_time": 1705341599,
            "time_class": "Blitz",
            "white": {"username": "Alice", "result": "win"},
            "black": {"username": "bob", "result": "resigned"},
        }
    )
    assert g is not None
    assert g.platform == PLATFORM_CHESS_COM
    assert g.speed == "blitz"
    assert g.ended_at.timestamp() == 1705341599
    assert g.ended_at.utcoffset().total_seconds() == 0


def test_parse_chesscom_game_without_end_time():
    assert parse_chesscom_game({"white": {}, "black": {}}) is None


ARCHIVES = [
    "https://api.chess.com/pub/player/alice/games/2024/01",
    "https://api.chess.com/pub/player/alice/games/2024/02",
    "https://api.chess.com/pub/player/alice/games/2024/03",
]


def test_select_archives_without_window_takes_latest():
    assert select_archives(ARCHIVES) == [ARCHIVES[-1]]


def test_select_archives_overlapping_months(utc):
    # local Mar 1 = Feb 29 19:00 UTC .. Mar 1 19:00 UTC
    assert select_archives(ARCHIVES, utc(2024, 2, 29, 19), utc(2024, 3, 1, 19)) == ARCHIVES[1:]


def test_select_archives_no_match(utc):
    assert select_archives(ARCHIVES, utc(2023, 5, 1), utc(2023, 5, 2)) == []
    assert select_archives([], utc(2024, 1, 1), utc(2024, 1, 2)) == []


# --------- Lichess ---------


@pytest.mark.parametrize(
    "winner, white_outcome, black_outcome",
    [("white", WIN, LOSS), ("black", LOSS, WIN), (None, DRAW, DRAW)],
)
def test_lichess_classify(utc, winner, white_outcome, black_outcome):
    g = lichess_game("Alice", "bob", winner, utc(2024, 1, 15, 12))
    adapter = LichessAdapter()
    assert adapter.classify(g, "ALICE") == white_outcome
    assert adapter.classify(g, "Bob") == black_outcome


def test_lichess_unknown_subject_is_a_draw(utc):
    g = lichess_game("alice", "bob", "white", utc(2024, 1, 15, 12))
    assert LichessAdapter().classify(g, "carol") == DRAW


def test_parse_lichess_game_prefers_last_move():
    g = parse_lichess_game(
        {
            "id": "abcd1234",
            "speed": "bullet",
            "createdAt": 1705300000000,
            "lastMoveAt": 1705341599000,
            "winner": "black",
            "players": {"white": {"user": {"name": "Alice"}}, "black": {"user": {"name": "bob"}}},
        }
    )
    assert g.platform == PLATFORM_LICHESS
    assert g.ended_at.timestamp() == 1705341599
    assert g.winner == "black"
    assert g.url == "https://lichess.org/abcd1234"


def test_parse_ndjson_skips_bad_lines(caplog):
    good = {
        "id": "g1",
        "speed": "blitz",
        "lastMoveAt": 1705341599000,
        "players": {"white": {"user": {"name": "a"}}, "black": {"user": {"name": "b"}}},
    }
    body = "\n".join([json.dumps(good), "{not json", "", json.dumps({"id": "no-time"}), json.dumps(good)])
    with caplog.at_level(logging.WARNING, logger="chess_fetch"):
        games = parse_ndjson(body, handle="a")
    assert [g.game_id for g in games] == ["g1", "g1"]
    assert games[0].winner is None
    assert "Skipped 2" in caplog.text


def test_lichess_headers_carry_token_only_when_set():
    assert "Authorization" not in LichessAdapter()._headers()
    assert LichessAdapter(token="t0k")._headers()["Authorization"] == "Bearer t0k"


# --------- settled fetch ---------


@pytest.mark.asyncio
async def test_fetch_settled_turns_errors_into_outcomes(fetch_error):
    adapter = FakeChessCom({"alice": fetch_error})
    res = await fetch_settled(adapter, None, "alice")
    assert isinstance(res, FetchOutcome)
    assert not res.ok
    assert res.games == []
    assert "503" in res.error


@pytest.mark.asyncio
async def test_fetch_settled_success(utc):
    g = chesscom_game("alice", "bob", "win", "resigned", utc(2024, 1, 15, 12))
    res = await fetch_settled(FakeChessCom({"alice": [g]}), None, "alice")
    assert res.ok
    assert res.games == [g]
