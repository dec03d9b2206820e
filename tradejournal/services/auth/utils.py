import re
from datetime import datetime, timedelta, timezone
from typing import Optional, Dict, Any
import jwt
from jwt import PyJWTError
from passlib.context import CryptContext

from tradejournal.config import JWT_SECRET_KEY, JWT_ALGORITHM, ACCESS_TOKEN_EXPIRE_MINUTES
from tradejournal.schemas.user import USERNAME_PATTERN

# Use Argon2 for password hashing
pwd_context = CryptContext(
    schemes=["argon2"],
    deprecated="auto"
)

SENSITIVE_USER_FIELDS = (
    "hashed_password",
    "tradovate_username",
    "tradovate_password",
    "tradovate_cid",
    "tradovate_secret",
)

# --- Password hashing ---
def hash_password(password: str) -> str:
    return pwd_context.hash(password)

def verify_password(password: str, hashed: Optional[str]) -> bool:
    if not hashed:
        return False
    return pwd_context.verify(password, hashed)

def is_valid_username(username: str) -> bool:
    return re.fullmatch(USERNAME_PATTERN, username or "") is not None

# --- JWT handling ---
def create_access_token(data: Dict[str, Any], expires_delta: Optional[timedelta] = None) -> str:
    to_encode = data.copy()
    expire = datetime.now(timezone.utc) + (expires_delta or timedelta(minutes=ACCESS_TOKEN_EXPIRE_MINUTES))
    to_encode.update({"exp": expire})
    return jwt.encode(to_encode, JWT_SECRET_KEY, algorithm=JWT_ALGORITHM)

def decode_access_token(token: str) -> Optional[Dict[str, Any]]:
    try:
        return jwt.decode(token, JWT_SECRET_KEY, algorithms=[JWT_ALGORITHM])
    except PyJWTError:
        return None

# --- API representation ---
def to_public_user(user: dict) -> dict:
    """Strip secrets from a user row and expose broker status flags."""
    public = {k: v for k, v in user.items() if k not in SENSITIVE_USER_FIELDS}
    public["tradovate_configured"] = bool(user.get("tradovate_username"))
    public["tradovate_environment"] = user.get("tradovate_environment") or "demo"
    return public
