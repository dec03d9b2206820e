"""Shared fixtures: an in-memory stand-in for the asyncpg DatabaseManager."""

from __future__ import annotations

import itertools
from datetime import datetime, timezone
from types import SimpleNamespace
from typing import Optional

import pytest

from tradejournal.db import DatabaseManager, db
from tradejournal.exceptions import DuplicateError
from tradejournal.services.auth.utils import create_access_token, hash_password

TEST_ENCRYPTION_KEY = "0123456789abcdef" * 4


class InMemoryDatabase:
    """Implements the DatabaseManager methods the routes and services use."""

    def __init__(self):
        self.users: dict[int, dict] = {}
        self.trades: dict[int, dict] = {}
        self.tags: dict[int, dict] = {}
        self._user_ids = itertools.count(1)
        self._trade_ids = itertools.count(1)
        self._tag_ids = itertools.count(1)

    async def ping(self) -> bool:
        return True

    # --- users ---

    async def get_user_by_username(self, username: str) -> Optional[dict]:
        for user in self.users.values():
            if user["username"] == username:
                return dict(user)
        return None

    async def create_user(self, username: str, hashed_password: str) -> dict:
        return self.add_user(username, hashed_password)

    def add_user(self, username: str, hashed_password: str) -> dict:
        if any(u["username"] == username for u in self.users.values()):
            raise DuplicateError("Username already in use.")
        user_id = next(self._user_ids)
        self.users[user_id] = {
            "id": user_id,
            "username": username,
            "hashed_password": hashed_password,
            "is_active": True,
            "is_premium": False,
            "subscription_plan": "trial",
            "subscription_status": None,
            "theme": "dark",
            "tradovate_username": None,
            "tradovate_password": None,
            "tradovate_cid": None,
            "tradovate_secret": None,
            "tradovate_environment": None,
            "tradovate_last_sync": None,
            "created_at": datetime.now(timezone.utc),
        }
        return dict(self.users[user_id])

    async def update_user_password(self, user_id: int, hashed_password: str) -> None:
        self.users[user_id]["hashed_password"] = hashed_password

    async def update_user_theme(self, user_id: int, theme: str) -> Optional[dict]:
        if user_id not in self.users:
            return None
        self.users[user_id]["theme"] = theme
        return dict(self.users[user_id])

    async def save_tradovate_credentials(self, user_id: int, encrypted: dict, environment: str) -> None:
        user = self.users[user_id]
        for field, value in encrypted.items():
            user[f"tradovate_{field}"] = value
        user["tradovate_environment"] = environment

    async def clear_tradovate_credentials(self, user_id: int) -> None:
        user = self.users[user_id]
        for field in ("username", "password", "cid", "secret", "last_sync"):
            user[f"tradovate_{field}"] = None
        user["tradovate_environment"] = "demo"

    async def touch_tradovate_sync(self, user_id: int) -> None:
        self.users[user_id]["tradovate_last_sync"] = datetime.now(timezone.utc)

    async def list_tradovate_accounts(self) -> list[dict]:
        return [
            dict(u) for u in self.users.values()
            if u["is_active"] and u["tradovate_username"]
        ]

    # --- trades ---

    def _owned_tag_ids(self, owner_id: int, tag_ids: list[int]) -> list[int]:
        return sorted({t for t in tag_ids if t in self.tags and self.tags[t]["owner_id"] == owner_id})

    def _public_trade(self, trade: dict) -> dict:
        return {k: v for k, v in trade.items() if k != "owner_id"} | {"tags": list(trade["tags"])}

    async def list_trades(self, owner_id: int, ticker: Optional[str] = None, tag_id: Optional[int] = None) -> list[dict]:
        rows = [t for t in self.trades.values() if t["owner_id"] == owner_id]
        if ticker:
            rows = [t for t in rows if t["ticker"].upper() == ticker.upper()]
        if tag_id is not None:
            rows = [t for t in rows if tag_id in t["tags"]]
        rows.sort(key=lambda t: (t["exit_time"], t["id"]), reverse=True)
        return [self._public_trade(t) for t in rows]

    async def get_trade(self, owner_id: int, trade_id: int) -> Optional[dict]:
        trade = self.trades.get(trade_id)
        if not trade or trade["owner_id"] != owner_id:
            return None
        return self._public_trade(trade)

    async def create_trade(self, owner_id: int, trade_data) -> dict:
        trade_id = next(self._trade_ids)
        data = trade_data.model_dump()
        data["tags"] = self._owned_tag_ids(owner_id, data.get("tags") or [])
        self.trades[trade_id] = {
            **data,
            "id": trade_id,
            "owner_id": owner_id,
            "tradovate_order_id": None,
            "tradovate_source": None,
            "created_at": datetime.now(timezone.utc),
        }
        return self._public_trade(self.trades[trade_id])

    async def insert_trades(self, owner_id: int, trades: list) -> int:
        for trade in trades:
            await self.create_trade(owner_id, trade)
        return len(trades)

    async def update_trade(self, owner_id: int, trade_id: int, trade_data) -> Optional[dict]:
        if await self.get_trade(owner_id, trade_id) is None:
            return None
        data = trade_data.model_dump()
        data["tags"] = self._owned_tag_ids(owner_id, data.get("tags") or [])
        self.trades[trade_id].update(data)
        return self._public_trade(self.trades[trade_id])

    async def delete_trade(self, owner_id: int, trade_id: int) -> bool:
        if await self.get_trade(owner_id, trade_id) is None:
            return False
        del self.trades[trade_id]
        return True

    async def get_tradovate_order_ids(self, owner_id: int, order_ids: list[str]) -> set[str]:
        return {
            t["tradovate_order_id"] for t in self.trades.values()
            if t["owner_id"] == owner_id and t["tradovate_order_id"] in order_ids
        }

    async def insert_broker_trades(self, owner_id: int, trades: list[dict]) -> int:
        inserted = 0
        for t in trades:
            if await self.get_tradovate_order_ids(owner_id, [t["tradovate_order_id"]]):
                continue
            trade_id = next(self._trade_ids)
            self.trades[trade_id] = {
                **t,
                "id": trade_id,
                "owner_id": owner_id,
                "manual_pl": None,
                "comments": "",
                "tags": [],
                "screenshot": None,
                "created_at": datetime.now(timezone.utc),
            }
            inserted += 1
        return inserted

    # --- tags ---

    async def list_tags(self, owner_id: int) -> list[dict]:
        rows = [t for t in self.tags.values() if t["owner_id"] == owner_id]
        return [{k: t[k] for k in ("id", "name", "color")} for t in sorted(rows, key=lambda t: t["name"])]

    def _check_tag_name(self, owner_id: int, name: str, tag_id: Optional[int] = None) -> None:
        for t in self.tags.values():
            if t["owner_id"] == owner_id and t["name"] == name and t["id"] != tag_id:
                raise DuplicateError("A tag with that name already exists!")

    async def create_tag(self, owner_id: int, name: str, color: str) -> dict:
        self._check_tag_name(owner_id, name)
        tag_id = next(self._tag_ids)
        self.tags[tag_id] = {"id": tag_id, "owner_id": owner_id, "name": name, "color": color}
        return {"id": tag_id, "name": name, "color": color}

    async def update_tag(self, owner_id: int, tag_id: int, name: Optional[str], color: Optional[str]) -> Optional[dict]:
        tag = self.tags.get(tag_id)
        if not tag or tag["owner_id"] != owner_id:
            return None
        if name is not None:
            self._check_tag_name(owner_id, name, tag_id)
            tag["name"] = name
        if color is not None:
            tag["color"] = color
        return {k: tag[k] for k in ("id", "name", "color")}

    async def delete_tag(self, owner_id: int, tag_id: int) -> bool:
        tag = self.tags.get(tag_id)
        if not tag or tag["owner_id"] != owner_id:
            return False
        del self.tags[tag_id]
        for trade in self.trades.values():
            if tag_id in trade["tags"]:
                trade["tags"].remove(tag_id)
        return True


DB_METHODS = [
    name for name in vars(InMemoryDatabase)
    if not name.startswith("_") and hasattr(DatabaseManager, name)
]


@pytest.fixture
def fake_db(monkeypatch) -> InMemoryDatabase:
    """Route every call on the shared ``db`` singleton to an in-memory store."""
    fake = InMemoryDatabase()
    for name in DB_METHODS:
        monkeypatch.setattr(db, name, getattr(fake, name))
    return fake


@pytest.fixture
def encryption_key(monkeypatch) -> str:
    monkeypatch.setattr("tradejournal.utils.crypto_utils.ENCRYPTION_KEY", TEST_ENCRYPTION_KEY)
    return TEST_ENCRYPTION_KEY


@pytest.fixture
def client(fake_db):
    from fastapi.testclient import TestClient
    from tradejournal.main import app

    # lifespan is not entered, so no pool or scheduler is started
    return TestClient(app)


@pytest.fixture
def user(fake_db) -> dict:
    return fake_db.add_user("trader_1", hash_password("secret-pass"))


@pytest.fixture
def auth_headers(user) -> dict:
    token = create_access_token({"sub": user["username"]})
    return {"Authorization": f"Bearer {token}"}


def _make_trade(
    pl: Optional[float] = None,
    exit_time: Optional[datetime] = None,
    enter_time: Optional[datetime] = None,
    trade_id: int = 1,
    enter_price: float = 100.0,
    exit_price: float = 100.0,
    quantity: float = 1.0,
):
    """Lightweight trade object for analytics tests."""
    exit_time = exit_time or datetime(2024, 1, 2, 15, 0, tzinfo=timezone.utc)
    return SimpleNamespace(
        id=trade_id,
        ticker="ES",
        enter_time=enter_time or exit_time,
        exit_time=exit_time,
        enter_price=enter_price,
        exit_price=exit_price,
        quantity=quantity,
        manual_pl=pl,
    )


@pytest.fixture
def make_trade():
    return _make_trade

