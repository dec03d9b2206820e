from fastapi import APIRouter, Depends, HTTPException
from loguru import logger

from tradejournal.db import db
from tradejournal.exceptions import BrokerAuthError, BrokerError, BrokerNotConfiguredError, CredentialError
from tradejournal.schemas.broker import BrokerCredentials, BrokerStatus, SyncResult
from tradejournal.services.auth.dependencies import get_current_account, get_current_user
from tradejournal.services.broker.sync import CREDENTIAL_FIELDS, sync_account
from tradejournal.services.broker.tradovate import TradovateClient
from tradejournal.utils.crypto_utils import encrypt

router = APIRouter(prefix="/broker", tags=["Broker"])


@router.get("/status", response_model=BrokerStatus)
async def broker_status(current_user=Depends(get_current_user)):
    return BrokerStatus(
        configured=current_user["tradovate_configured"],
        environment=current_user["tradovate_environment"],
        last_sync_time=current_user.get("tradovate_last_sync"),
    )

@router.post("/credentials", response_model=BrokerStatus)
async def save_credentials(creds: BrokerCredentials, current_user=Depends(get_current_user)):
    """Validate credentials against the broker, then store them encrypted."""
    credentials = creds.model_dump(include=set(CREDENTIAL_FIELDS))
    try:
        async with TradovateClient(creds.environment) as client:
            await client.authenticate(credentials)
    except BrokerError as e:
        logger.warning(f"Tradovate credential validation failed for user {current_user['id']}: {e}")
        raise HTTPException(status_code=400, detail=f"Failed to validate credentials: {e}")

    try:
        encrypted = {k: encrypt(v) for k, v in credentials.items()}
    except CredentialError as e:
        logger.error(f"❌ Cannot encrypt broker credentials: {e}")
        raise HTTPException(status_code=500, detail="Credential storage is not configured")

    await db.save_tradovate_credentials(current_user["id"], encrypted, creds.environment)
    return BrokerStatus(
        configured=True,
        environment=creds.environment,
        last_sync_time=current_user.get("tradovate_last_sync"),
    )

@router.delete("/credentials", response_model=BrokerStatus)
async def delete_credentials(current_user=Depends(get_current_user)):
    await db.clear_tradovate_credentials(current_user["id"])
    return BrokerStatus(configured=False)

@router.post("/sync", response_model=SyncResult)
async def sync_trades(account=Depends(get_current_account)):
    try:
        return await sync_account(db, account)
    except BrokerNotConfiguredError as e:
        raise HTTPException(status_code=400, detail=str(e))
    except BrokerAuthError as e:
        logger.warning(f"Tradovate sync auth failed for user {account['id']}: {e}")
        raise HTTPException(status_code=502, detail=f"Sync failed: {e}")
    except BrokerError as e:
        logger.error(f"❌ Tradovate sync failed for user {account['id']}: {e}")
        raise HTTPException(status_code=502, detail=f"Sync failed: {e}")
