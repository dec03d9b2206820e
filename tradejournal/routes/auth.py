from fastapi import APIRouter, Depends, HTTPException, status
from fastapi.security import OAuth2PasswordRequestForm
from datetime import timedelta
from loguru import logger

from tradejournal.config import ACCESS_TOKEN_EXPIRE_MINUTES
from tradejournal.db import db
from tradejournal.exceptions import DuplicateError
from tradejournal.schemas.user import UserCreate, PasswordChange, User
from tradejournal.services.auth.utils import (
    hash_password, verify_password, create_access_token, is_valid_username, to_public_user
)
from tradejournal.services.auth.dependencies import get_current_account, get_current_user

router = APIRouter(prefix="/auth", tags=["auth"])


def _token_response(username: str) -> dict:
    access_token_expires = timedelta(minutes=ACCESS_TOKEN_EXPIRE_MINUTES)
    access_token = create_access_token({"sub": username}, expires_delta=access_token_expires)
    return {"access_token": access_token, "token_type": "bearer"}


@router.post("/register", response_model=User, status_code=201)
async def register(user: UserCreate):
    logger.info(f"Registering user: {user.username}")
    if not is_valid_username(user.username):
        raise HTTPException(
            status_code=400,
            detail="Username must be 1-16 characters of letters, digits, '_', '-' or '.'"
        )
    if user.password != user.password_confirm:
        raise HTTPException(status_code=400, detail="Passwords do not match!")

    try:
        new_user = await db.create_user(username=user.username, hashed_password=hash_password(user.password))
    except DuplicateError as e:
        raise HTTPException(status_code=400, detail=str(e))
    return to_public_user(new_user)

@router.post("/login")
async def login(form_data: OAuth2PasswordRequestForm = Depends()):
    logger.info(f"Logging in user: {form_data.username}")
    user = await db.get_user_by_username(form_data.username)

    if not user or not user["is_active"] or not verify_password(form_data.password, user["hashed_password"]):
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Wrong username or password!")

    return _token_response(user["username"])

@router.get("/me", response_model=User)
async def read_current_user(current_user=Depends(get_current_user)):
    return current_user

@router.post("/refresh")
async def refresh_token(current_user=Depends(get_current_user)):
    return _token_response(current_user["username"])

@router.post("/change-password")
async def change_password(payload: PasswordChange, user=Depends(get_current_account)):
    if payload.password != payload.password_confirm:
        raise HTTPException(status_code=400, detail="New passwords do not match!")

    if not verify_password(payload.current_password, user["hashed_password"]):
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Wrong password!")

    await db.update_user_password(user["id"], hash_password(payload.password))
    logger.info(f"Password changed for user {user['username']}")
    return {"message": "Password updated"}
