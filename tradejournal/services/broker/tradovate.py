import httpx
from loguru import logger
from typing import Optional

from tradejournal.config import TradovateSettings, tradovate_settings
from tradejournal.exceptions import BrokerAuthError, BrokerError


class TradovateClient:
    """Thin async client for the Tradovate REST API.

    One instance per sync pass; use it as an async context manager so the
    underlying httpx client is closed.
    """

    def __init__(
        self,
        environment: str = "demo",
        settings: Optional[TradovateSettings] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.settings = settings or tradovate_settings
        self.environment = environment
        self.base_url = self.settings.base_url(environment)
        self._client = httpx.AsyncClient(
            base_url=self.base_url,
            timeout=self.settings.timeout_seconds,
            transport=transport,
        )

    async def __aenter__(self):
        return self

    async def __aexit__(self, *exc):
        await self.aclose()

    async def aclose(self):
        await self._client.aclose()

    async def authenticate(self, credentials: dict) -> str:
        payload = {
            "name": credentials["username"],
            "password": credentials["password"],
            "appId": credentials["cid"],
            "appVersion": self.settings.app_version,
            "cid": credentials["cid"],
            "sec": credentials["secret"],
        }
        try:
            res = await self._client.post("/auth/accesstokenrequest", json=payload)
        except httpx.HTTPError as e:
            raise BrokerAuthError(f"Tradovate auth failed: {e}") from e

        if res.is_error:
            raise BrokerAuthError(f"Tradovate auth failed: {res.status_code} {res.text}")

        data = res.json()
        token = data.get("accessToken")
        if not token:
            raise BrokerAuthError(data.get("errorText") or "Authentication failed - no access token returned")
        logger.debug(f"Authenticated against Tradovate ({self.environment})")
        return token

    async def _get(self, path: str, token: str, params: Optional[dict] = None, what: str = "resource"):
        try:
            res = await self._client.get(path, params=params, headers={"Authorization": f"Bearer {token}"})
            res.raise_for_status()
        except httpx.HTTPStatusError as e:
            raise BrokerError(f"Failed to fetch {what}: {e.response.status_code}") from e
        except httpx.HTTPError as e:
            raise BrokerError(f"Failed to fetch {what}: {e}") from e
        return res.json()

    async def list_fills(self, token: str) -> list[dict]:
        return await self._get("/fill/list", token, what="fills") or []

    async def get_contract(self, token: str, contract_id) -> dict:
        return await self._get("/contract/item", token, params={"id": contract_id}, what=f"contract {contract_id}")
