from fastapi import Depends, HTTPException, status
from fastapi.security import OAuth2PasswordBearer
from tradejournal.services.auth.utils import decode_access_token, to_public_user
from tradejournal.db import db

oauth2_scheme = OAuth2PasswordBearer(tokenUrl="/auth/login")

async def get_current_account(token: str = Depends(oauth2_scheme)) -> dict:
    """Resolve the bearer token to the full account row, secrets included.

    Only handlers that check the password hash or read the stored broker
    credentials should depend on this directly.
    """
    payload = decode_access_token(token)
    if not payload or "sub" not in payload:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid or expired token")

    account = await db.get_user_by_username(payload["sub"])
    if not account or not account["is_active"]:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="User not found or inactive")
    return account

async def get_current_user(account: dict = Depends(get_current_account)) -> dict:
    return to_public_user(account)
