from loguru import logger
from tradejournal.db import db
from tradejournal.exceptions import BrokerError
from tradejournal.services.broker.sync import sync_account


async def sync_all_broker_accounts():
    """Scheduled job to pull new broker fills for every configured account"""
    accounts = await db.list_tradovate_accounts()
    logger.info(f"🔄 Starting broker sync for {len(accounts)} accounts")

    total = 0
    for account in accounts:
        try:
            result = await sync_account(db, account)
            total += result.synced
        except BrokerError as e:
            logger.error(f"❌ Broker sync failed for account {account['id']}: {e}")
        except Exception as e:
            logger.exception(f"❌ Unexpected error syncing account {account['id']}: {e}")

    logger.info(f"✅ Broker sync complete: {total} new trades")
    return total
