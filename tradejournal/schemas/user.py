from pydantic import BaseModel, Field
from datetime import datetime
from typing import Literal, Optional

USERNAME_PATTERN = r"^[A-Za-z0-9_\-.]{1,16}$"


class User(BaseModel):
    id: int
    username: str
    is_active: bool
    is_premium: bool = False
    subscription_plan: Literal["trial", "pro", "elite"] = "trial"
    subscription_status: Optional[str] = None
    theme: Literal["dark", "light"] = "dark"
    tradovate_configured: bool = False
    tradovate_environment: Literal["demo", "live"] = "demo"
    tradovate_last_sync: Optional[datetime] = None
    created_at: datetime


class UserCreate(BaseModel):
    username: str
    password: str = Field(min_length=1)
    password_confirm: str


class PasswordChange(BaseModel):
    current_password: str = Field(min_length=1)
    password: str = Field(min_length=1)
    password_confirm: str


class ThemeUpdate(BaseModel):
    theme: str


class SubscriptionStatus(BaseModel):
    is_premium: bool
    is_trial_active: bool
    trial_days_remaining: int
