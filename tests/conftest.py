# Ensure the repo root is importable when pytest runs from anywhere
import os
import sys
from copy import deepcopy
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, List, Optional

_root = str(Path(__file__).resolve().parent.parent)
if sys.path[0:1] != [_root]:
    sys.path.insert(0, _root)

# db.py refuses to import without a URI; nothing in the tests connects to it
os.environ.setdefault("MONGO_URI", "mongodb://localhost:27017")

import pytest
from pymongo import DESCENDING
from pymongo.errors import DuplicateKeyError, PyMongoError

from chess_fetch import (
    PLATFORM_CHESS_COM,
    PLATFORM_LICHESS,
    ChessComAdapter,
    FetchError,
    GameRecord,
    LichessAdapter,
)


# --------- in-memory Motor collection ---------


def _matches(doc: Dict[str, Any], flt: Optional[Dict[str, Any]]) -> bool:
    return all(doc.get(k) == v for k, v in (flt or {}).items())


def _project(doc: Dict[str, Any], projection: Optional[Dict[str, Any]]) -> Dict[str, Any]:
    out = deepcopy(doc)
    if projection and projection.get("_id") == 0:
        out.pop("_id", None)
    return out


class FakeCursor:
    def __init__(self, docs: List[Dict[str, Any]]):
        self.docs = docs

    def sort(self, key: str, direction: int = 1) -> "FakeCursor":
        self.docs.sort(key=lambda d: d.get(key), reverse=(direction == DESCENDING))
        return self

    def limit(self, n: int) -> "FakeCursor":
        self.docs = self.docs[: int(n)]
        return self

    async def to_list(self, length: Optional[int] = None) -> List[Dict[str, Any]]:
        return list(self.docs if length is None else self.docs[:length])


class FakeCollection:
    """Just enough of AsyncIOMotorCollection for the stores."""

    def __init__(self) -> None:
        self.docs: List[Dict[str, Any]] = []
        self.fail_on: set = set()
        self.calls: List[str] = []
        self._next_id = 0

    def _check(self, op: str) -> None:
        self.calls.append(op)
        if op in self.fail_on:
            raise PyMongoError(f"{op} failed")

    async def find_one(self, flt=None, projection=None):
        self._check("find_one")
        for d in self.docs:
            if _matches(d, flt):
                return _project(d, projection)
        return None

    def find(self, flt=None, projection=None):
        self._check("find")
        return FakeCursor([_project(d, projection) for d in self.docs if _matches(d, flt)])

    async def insert_one(self, doc):
        self._check("insert_one")
        doc = deepcopy(doc)
        if "_id" not in doc:
            self._next_id += 1
            doc["_id"] = self._next_id
        if any(d.get("_id") == doc["_id"] for d in self.docs):
            raise DuplicateKeyError(f"E11000 duplicate key: {doc['_id']!r}")
        self.docs.append(doc)

    async def update_one(self, flt, update, upsert=False):
        self._check("update_one")
        target = next((d for d in self.docs if _matches(d, flt)), None)
        if target is None:
            if not upsert:
                return
            self._next_id += 1
            target = {"_id": self._next_id, **deepcopy(flt)}
            target.update(deepcopy(update.get("$setOnInsert", {})))
            self.docs.append(target)
        target.update(deepcopy(update.get("$set", {})))
        for k, v in update.get("$inc", {}).items():
            target[k] = target.get(k, 0) + v

    async def delete_one(self, flt):
        self._check("delete_one")
        for i, d in enumerate(self.docs):
            if _matches(d, flt):
                del self.docs[i]
                return


# --------- platform fakes ---------


def chesscom_game(white, black, white_result, black_result, ended_at, *, speed="blitz", gid=None):
    return GameRecord(
        platform=PLATFORM_CHESS_COM,
        game_id=gid or f"{white}-{black}-{ended_at.timestamp()}",
        ended_at=ended_at,
        speed=speed,
        white=white,
        black=black,
        white_result=white_result,
        black_result=black_result,
        url=f"https://www.chess.com/game/live/{int(ended_at.timestamp())}",
    )


def lichess_game(white, black, winner, ended_at, *, speed="blitz", gid=None):
    gid = gid or f"li{int(ended_at.timestamp())}"
    return GameRecord(
        platform=PLATFORM_LICHESS,
        game_id=gid,
        ended_at=ended_at,
        speed=speed,
        white=white,
        black=black,
        winner=winner,
        url=f"https://lichess.org/{gid}",
    )


class _Canned:
    """fetch_games returns canned games per handle; a FetchError entry fails that handle."""

    def __init__(self, games_by_handle=None):
        self.games_by_handle = {k.lower(): v for k, v in (games_by_handle or {}).items()}
        self.requested: List[tuple] = []

    async def fetch_games(self, session, handle, start=None, end=None):
        self.requested.append((handle, start, end))
        games = self.games_by_handle.get(handle.lower(), [])
        if isinstance(games, Exception):
            raise games
        return list(games)


class FakeChessCom(_Canned, ChessComAdapter):
    pass


class FakeLichess(_Canned, LichessAdapter):
    def __init__(self, games_by_handle=None):
        LichessAdapter.__init__(self)
        _Canned.__init__(self, games_by_handle)


@pytest.fixture
def utc():
    def _make(*args):
        return datetime(*args, tzinfo=timezone.utc)
    return _make


@pytest.fixture
def fetch_error():
    return FetchError("503 Service Unavailable")


@pytest.fixture
def players_col():
    return FakeCollection()


@pytest.fixture
def scores_col():
    return FakeCollection()


@pytest.fixture
def champions_col():
    return FakeCollection()


@pytest.fixture
def sessions_col():
    return FakeCollection()
