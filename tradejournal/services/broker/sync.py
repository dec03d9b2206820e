"""
Tradovate fill sync.

The broker's full fill list is pulled on every run; fills are grouped by
order id and each order not yet stored for the owner becomes one trade.
Entry and exit collapse onto the first fill's time and the
quantity-weighted average price, so synthesized trades carry zero
computed P/L until the user sets a manual P/L.
"""
from collections import OrderedDict
from typing import Optional

import httpx
from loguru import logger

from tradejournal.exceptions import BrokerError, BrokerNotConfiguredError, CredentialError
from tradejournal.schemas.broker import Fill, SyncResult
from tradejournal.services.broker.tradovate import TradovateClient
from tradejournal.utils.crypto_utils import decrypt

CREDENTIAL_FIELDS = ("username", "password", "cid", "secret")


def group_fills(fills: list[Fill]) -> "OrderedDict[str, list[Fill]]":
    groups: OrderedDict[str, list[Fill]] = OrderedDict()
    for fill in fills:
        groups.setdefault(fill.group_key, []).append(fill)
    return groups


def synthesize_trade(order_id: str, fills: list[Fill], ticker: str, source: str) -> dict:
    first = fills[0]
    qty = sum(f.qty or 0 for f in fills)
    avg_price = sum((f.price or 0) * (f.qty or 1) for f in fills) / (qty or 1)
    return {
        "ticker": ticker,
        "enter_time": first.timestamp,
        "exit_time": first.timestamp,
        "enter_price": avg_price,
        "exit_price": avg_price,
        "quantity": abs(qty),
        "tradovate_order_id": order_id,
        "tradovate_source": source,
    }


def build_trades_from_fills(
    groups: "OrderedDict[str, list[Fill]]",
    existing_ids: set[str],
    contract_names: dict[str, str],
    source: str,
) -> list[dict]:
    trades = []
    for order_id, order_fills in groups.items():
        if order_id in existing_ids:
            continue
        contract_id = str(order_fills[0].contract_id)
        ticker = contract_names.get(contract_id, f"Contract-{contract_id}")
        trades.append(synthesize_trade(order_id, order_fills, ticker, source))
    return trades


class ContractCache:
    """Resolves contract ids to names, at most one lookup per id per sync pass."""

    def __init__(self, client: TradovateClient, token: str):
        self.client = client
        self.token = token
        self.names: dict[str, str] = {}

    async def resolve(self, contract_id) -> str:
        key = str(contract_id)
        if key not in self.names:
            try:
                contract = await self.client.get_contract(self.token, contract_id)
                self.names[key] = contract.get("name") or f"Contract-{key}"
            except BrokerError as e:
                logger.warning(f"Contract lookup failed for {key}: {e}")
                self.names[key] = f"Contract-{key}"
        return self.names[key]


def decrypt_credentials(account: dict) -> dict:
    if not account.get("tradovate_username"):
        raise BrokerNotConfiguredError("Tradovate credentials not configured")
    try:
        return {f: decrypt(account[f"tradovate_{f}"]) for f in CREDENTIAL_FIELDS}
    except (CredentialError, KeyError, TypeError) as e:
        raise BrokerError(f"Stored Tradovate credentials are unreadable: {e}") from e


async def sync_account(db, account: dict, transport: Optional[httpx.AsyncBaseTransport] = None) -> SyncResult:
    """Import new broker fills for one account.

    Raises BrokerAuthError when the broker rejects the credentials and
    BrokerError for any other upstream failure; nothing is written in
    either case.
    """
    credentials = decrypt_credentials(account)
    environment = account.get("tradovate_environment") or "demo"
    owner_id = account["id"]

    async with TradovateClient(environment, transport=transport) as client:
        token = await client.authenticate(credentials)
        raw_fills = await client.list_fills(token)
        fills = [Fill.model_validate(f) for f in raw_fills]
        logger.info(f"Fetched {len(fills)} fills for account {owner_id}")

        if not fills:
            await db.touch_tradovate_sync(owner_id)
            return SyncResult(synced=0, message="No fills found")

        groups = group_fills(fills)
        existing_ids = await db.get_tradovate_order_ids(owner_id, list(groups.keys()))

        cache = ContractCache(client, token)
        for order_id, order_fills in groups.items():
            if order_id not in existing_ids:
                await cache.resolve(order_fills[0].contract_id)

        new_trades = build_trades_from_fills(groups, existing_ids, cache.names, f"tradovate_{environment}")

    synced = 0
    if new_trades:
        synced = await db.insert_broker_trades(owner_id, new_trades)
        if synced < len(new_trades):
            logger.warning(f"{len(new_trades) - synced} broker trades were already present for account {owner_id}")

    await db.touch_tradovate_sync(owner_id)
    logger.info(f"Synced {synced} new trades for account {owner_id}")
    return SyncResult(synced=synced, message=f"Synced {synced} new trades")
