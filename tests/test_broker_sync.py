"""Tests for Tradovate fill pairing and the sync adapter, with the broker API mocked."""

import json
from datetime import datetime, timezone

import httpx
import pytest

from tradejournal.exceptions import BrokerAuthError, BrokerError, BrokerNotConfiguredError
from tradejournal.schemas.broker import Fill
from tradejournal.services.broker.sync import (
    build_trades_from_fills,
    group_fills,
    sync_account,
    synthesize_trade,
)
from tradejournal.services.broker.tradovate import TradovateClient
from tradejournal.utils.crypto_utils import encrypt

T0 = "2024-05-01T14:30:00Z"
T1 = "2024-05-01T14:31:00Z"

FILLS = [
    {"id": 1, "orderId": 500, "contractId": 77, "qty": 1, "price": 100.0, "timestamp": T0},
    {"id": 2, "orderId": 500, "contractId": 77, "qty": 1, "price": 102.0, "timestamp": T1},
    {"id": 3, "orderId": 501, "contractId": 88, "qty": -3, "price": 50.0, "timestamp": T1},
]
CONTRACTS = {"77": "ESM4", "88": "NQM4"}


class FakeTradovate:
    """Request handler standing in for the Tradovate REST API."""

    def __init__(self, fills=None, token="tok-123", auth_status=200, contract_status=200):
        self.fills = FILLS if fills is None else fills
        self.token = token
        self.auth_status = auth_status
        self.contract_status = contract_status
        self.contract_lookups: list[str] = []
        self.auth_payloads: list[dict] = []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        path = request.url.path
        if path.endswith("/auth/accesstokenrequest"):
            self.auth_payloads.append(json.loads(request.content))
            if self.auth_status != 200:
                return httpx.Response(self.auth_status, text="denied")
            if not self.token:
                return httpx.Response(200, json={"errorText": "Incorrect username or password"})
            return httpx.Response(200, json={"accessToken": self.token})

        assert request.headers["Authorization"] == f"Bearer {self.token}"
        if path.endswith("/fill/list"):
            return httpx.Response(200, json=self.fills)
        if path.endswith("/contract/item"):
            contract_id = request.url.params["id"]
            self.contract_lookups.append(contract_id)
            if self.contract_status != 200:
                return httpx.Response(self.contract_status)
            return httpx.Response(200, json={"id": int(contract_id), "name": CONTRACTS[contract_id]})
        return httpx.Response(404)


@pytest.fixture
def account(fake_db, encryption_key):
    user = fake_db.add_user("broker_user", "x")
    fake_db.users[user["id"]].update({
        "tradovate_username": encrypt("tv-user"),
        "tradovate_password": encrypt("tv-pass"),
        "tradovate_cid": encrypt("123"),
        "tradovate_secret": encrypt("s3cr3t"),
        "tradovate_environment": "demo",
    })
    return fake_db.users[user["id"]]


class TestFillPairing:
    def test_group_by_order_id_with_id_fallback(self):
        fills = [Fill.model_validate(f) for f in FILLS + [
            {"id": 9, "contractId": 77, "qty": 1, "price": 1.0, "timestamp": T0},
        ]]
        groups = group_fills(fills)
        assert list(groups) == ["500", "501", "9"]
        assert len(groups["500"]) == 2

    def test_weighted_average_price(self):
        fills = [Fill.model_validate(f) for f in FILLS[:2]]
        trade = synthesize_trade("500", fills, "ESM4", "tradovate_demo")

        assert trade["quantity"] == 2
        assert trade["enter_price"] == pytest.approx(101.0)
        assert trade["exit_price"] == pytest.approx(101.0)
        assert trade["enter_time"] == trade["exit_time"] == datetime(2024, 5, 1, 14, 30, tzinfo=timezone.utc)
        assert trade["tradovate_order_id"] == "500"

    def test_quantity_is_absolute(self):
        trade = synthesize_trade("501", [Fill.model_validate(FILLS[2])], "NQM4", "tradovate_live")
        assert trade["quantity"] == 3
        assert trade["enter_price"] == pytest.approx(50.0)

    def test_existing_orders_skipped_and_unknown_contracts_named(self):
        groups = group_fills([Fill.model_validate(f) for f in FILLS])
        trades = build_trades_from_fills(groups, {"500"}, {}, "tradovate_demo")
        assert [t["tradovate_order_id"] for t in trades] == ["501"]
        assert trades[0]["ticker"] == "Contract-88"


class TestTradovateClient:
    @pytest.mark.asyncio
    async def test_authenticate_sends_credentials(self):
        api = FakeTradovate()
        async with TradovateClient("demo", transport=httpx.MockTransport(api)) as client:
            token = await client.authenticate({"username": "u", "password": "p", "cid": "7", "secret": "s"})

        assert token == "tok-123"
        assert api.auth_payloads[0]["name"] == "u"
        assert api.auth_payloads[0]["sec"] == "s"

    @pytest.mark.asyncio
    async def test_authenticate_without_token_raises(self):
        api = FakeTradovate(token=None)
        async with TradovateClient("demo", transport=httpx.MockTransport(api)) as client:
            with pytest.raises(BrokerAuthError, match="Incorrect username"):
                await client.authenticate({"username": "u", "password": "p", "cid": "7", "secret": "s"})

    @pytest.mark.asyncio
    async def test_live_environment_url(self):
        client = TradovateClient("live", transport=httpx.MockTransport(FakeTradovate()))
        assert client.base_url.startswith("https://live.")
        await client.aclose()


class TestSyncAccount:
    @pytest.mark.asyncio
    async def test_sync_creates_one_trade_per_order(self, fake_db, account):
        api = FakeTradovate()
        result = await sync_account(fake_db, account, transport=httpx.MockTransport(api))

        assert result.synced == 2
        assert result.message == "Synced 2 new trades"
        trades = await fake_db.list_trades(account["id"])
        by_order = {t["tradovate_order_id"]: t for t in trades}
        assert by_order["500"]["ticker"] == "ESM4"
        assert by_order["500"]["quantity"] == 2
        assert by_order["500"]["enter_price"] == pytest.approx(101.0)
        assert by_order["501"]["tradovate_source"] == "tradovate_demo"
        assert fake_db.users[account["id"]]["tradovate_last_sync"] is not None

    @pytest.mark.asyncio
    async def test_second_sync_is_idempotent(self, fake_db, account):
        api = FakeTradovate()
        transport = httpx.MockTransport(api)
        await sync_account(fake_db, account, transport=transport)
        api.contract_lookups.clear()

        result = await sync_account(fake_db, account, transport=transport)

        assert result.synced == 0
        assert len(await fake_db.list_trades(account["id"])) == 2
        # contracts are only resolved for new orders
        assert api.contract_lookups == []

    @pytest.mark.asyncio
    async def test_contract_looked_up_once_per_pass(self, fake_db, account):
        fills = FILLS + [{"id": 4, "orderId": 502, "contractId": 77, "qty": 1, "price": 99.0, "timestamp": T1}]
        api = FakeTradovate(fills=fills)
        await sync_account(fake_db, account, transport=httpx.MockTransport(api))
        assert sorted(api.contract_lookups) == ["77", "88"]

    @pytest.mark.asyncio
    async def test_failed_contract_lookup_falls_back(self, fake_db, account):
        api = FakeTradovate(contract_status=500)
        result = await sync_account(fake_db, account, transport=httpx.MockTransport(api))
        assert result.synced == 2
        tickers = {t["ticker"] for t in await fake_db.list_trades(account["id"])}
        assert tickers == {"Contract-77", "Contract-88"}

    @pytest.mark.asyncio
    async def test_no_fills(self, fake_db, account):
        result = await sync_account(fake_db, account, transport=httpx.MockTransport(FakeTradovate(fills=[])))
        assert result.synced == 0
        assert result.message == "No fills found"
        assert fake_db.users[account["id"]]["tradovate_last_sync"] is not None

    @pytest.mark.asyncio
    async def test_auth_failure_writes_nothing(self, fake_db, account):
        api = FakeTradovate(auth_status=401)
        with pytest.raises(BrokerAuthError):
            await sync_account(fake_db, account, transport=httpx.MockTransport(api))
        assert await fake_db.list_trades(account["id"]) == []
        assert fake_db.users[account["id"]]["tradovate_last_sync"] is None

    @pytest.mark.asyncio
    async def test_fill_list_failure(self, fake_db, account):
        def handler(request):
            if request.url.path.endswith("/auth/accesstokenrequest"):
                return httpx.Response(200, json={"accessToken": "t"})
            return httpx.Response(503)

        with pytest.raises(BrokerError, match="fills"):
            await sync_account(fake_db, account, transport=httpx.MockTransport(handler))

    @pytest.mark.asyncio
    async def test_not_configured(self, fake_db):
        user = fake_db.add_user("nobody", "x")
        with pytest.raises(BrokerNotConfiguredError):
            await sync_account(fake_db, user, transport=httpx.MockTransport(FakeTradovate()))
