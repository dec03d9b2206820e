import os
import logging
from dotenv import load_dotenv
from pydantic_settings import BaseSettings, SettingsConfigDict

load_dotenv()

DATABASE_URL = os.getenv("DATABASE_URL")

JWT_SECRET_KEY = os.getenv("JWT_SECRET_KEY", "change-me")
JWT_ALGORITHM = "HS256"
ACCESS_TOKEN_EXPIRE_MINUTES = int(os.getenv("ACCESS_TOKEN_EXPIRE_MINUTES", "60"))

# 64 hex chars (32 bytes), used for broker credentials at rest
ENCRYPTION_KEY = os.getenv("ENCRYPTION_KEY")

DEFAULT_TIMEZONE = os.getenv("DEFAULT_TIMEZONE", "UTC")
TRIAL_DAYS = 7
MAX_BULK_IMPORT = 500
MAX_SCREENSHOT_BYTES = int(os.getenv("MAX_SCREENSHOT_BYTES", str(5 * 1024 * 1024)))

DATE_FORMAT = '%Y-%m-%d'
TIME_FORMAT = '%H:%M:%S'
DATE_TIME_FORMAT = f'{DATE_FORMAT} {TIME_FORMAT}'

LOGGING_LEVEL = logging.INFO
LOGGING_FORMAT = '%(asctime)s | %(levelname)s | %(module)s:%(funcName)s:%(lineno)d - %(message)s'
LOGGING_DATE_FORMAT = DATE_TIME_FORMAT


class TradovateSettings(BaseSettings):
    model_config = SettingsConfigDict(env_prefix="TRADOVATE_", env_file=".env", extra="ignore")

    demo_url: str = "https://demo.tradovateapi.com/v1"
    live_url: str = "https://live.tradovateapi.com/v1"
    app_version: str = "1.0"
    timeout_seconds: float = 30.0
    # 0 disables the scheduled sync job
    auto_sync_minutes: int = 0

    def base_url(self, environment: str) -> str:
        return self.live_url if environment == "live" else self.demo_url


tradovate_settings = TradovateSettings()
