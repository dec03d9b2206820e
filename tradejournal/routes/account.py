from fastapi import APIRouter, Depends, HTTPException

from tradejournal.db import db
from tradejournal.schemas.user import SubscriptionStatus, ThemeUpdate, User
from tradejournal.services.auth.dependencies import get_current_user
from tradejournal.services.auth.utils import to_public_user
from tradejournal.services.subscription import get_subscription_status

router = APIRouter(prefix="/account", tags=["Account"])

THEMES = {"dark", "light"}


@router.put("/theme", response_model=User)
async def update_theme(payload: ThemeUpdate, current_user=Depends(get_current_user)):
    if payload.theme not in THEMES:
        raise HTTPException(status_code=400, detail='Invalid theme. Must be "dark" or "light".')

    user = await db.update_user_theme(current_user["id"], payload.theme)
    if not user:
        raise HTTPException(status_code=404, detail="Account not found.")
    return to_public_user(user)

@router.get("/subscription", response_model=SubscriptionStatus)
async def subscription_status(current_user=Depends(get_current_user)):
    return get_subscription_status(current_user)
