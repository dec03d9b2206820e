"""Route tests for broker credential management and manual sync."""

import functools

import httpx
import pytest

from tradejournal.routes import broker as broker_routes
from tradejournal.services.broker.sync import sync_account
from tradejournal.services.broker.tradovate import TradovateClient

from test_broker_sync import FakeTradovate

CREDS = {"username": "tv", "password": "pw", "cid": "1", "secret": "s", "environment": "demo"}


@pytest.fixture
def tradovate(monkeypatch, encryption_key):
    api = FakeTradovate()
    transport = httpx.MockTransport(api)
    monkeypatch.setattr(broker_routes, "TradovateClient",
                        lambda environment: TradovateClient(environment, transport=transport))
    monkeypatch.setattr(broker_routes, "sync_account", functools.partial(sync_account, transport=transport))
    return api


class TestBrokerRoutes:
    def test_status_unconfigured(self, client, auth_headers):
        res = client.get("/broker/status", headers=auth_headers)
        assert res.json() == {"configured": False, "environment": "demo", "last_sync_time": None}

    def test_save_credentials_encrypts(self, client, fake_db, user, auth_headers, tradovate):
        res = client.post("/broker/credentials", headers=auth_headers, json=CREDS)
        assert res.status_code == 200
        assert res.json()["configured"] is True

        stored = fake_db.users[user["id"]]
        assert stored["tradovate_password"] != "pw"
        assert stored["tradovate_password"].count(":") == 2
        assert client.get("/broker/status", headers=auth_headers).json()["configured"] is True

    def test_save_rejected_credentials(self, client, auth_headers, tradovate):
        tradovate.auth_status = 401
        res = client.post("/broker/credentials", headers=auth_headers, json=CREDS)
        assert res.status_code == 400
        assert res.json()["detail"].startswith("Failed to validate credentials")

    def test_sync_then_resync(self, client, auth_headers, tradovate):
        client.post("/broker/credentials", headers=auth_headers, json=CREDS)

        first = client.post("/broker/sync", headers=auth_headers).json()
        assert first == {"synced": 2, "message": "Synced 2 new trades"}
        second = client.post("/broker/sync", headers=auth_headers).json()
        assert second["synced"] == 0

        tickers = sorted(t["ticker"] for t in client.get("/trades/", headers=auth_headers).json())
        assert tickers == ["ESM4", "NQM4"]
        assert client.get("/broker/status", headers=auth_headers).json()["last_sync_time"] is not None

    def test_sync_not_configured(self, client, auth_headers, tradovate):
        assert client.post("/broker/sync", headers=auth_headers).status_code == 400

    def test_sync_auth_failure(self, client, auth_headers, tradovate):
        client.post("/broker/credentials", headers=auth_headers, json=CREDS)
        tradovate.auth_status = 401
        res = client.post("/broker/sync", headers=auth_headers)
        assert res.status_code == 502
        assert res.json()["detail"].startswith("Sync failed")

    def test_delete_credentials(self, client, auth_headers, tradovate):
        client.post("/broker/credentials", headers=auth_headers, json=CREDS)
        res = client.delete("/broker/credentials", headers=auth_headers)
        assert res.json()["configured"] is False
        assert client.get("/broker/status", headers=auth_headers).json()["configured"] is False
