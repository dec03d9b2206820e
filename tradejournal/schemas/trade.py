from pydantic import BaseModel, Field, computed_field, field_validator
from datetime import datetime
from typing import Optional

from tradejournal.config import MAX_SCREENSHOT_BYTES
from tradejournal.services.analytics.core import realized_pl, trade_duration_ms


class TradeCreate(BaseModel):
    ticker: str = Field(min_length=1)
    enter_time: datetime
    exit_time: datetime
    enter_price: float = Field(ge=0)
    exit_price: float = Field(ge=0)
    quantity: float
    manual_pl: Optional[float] = None
    comments: str = ""
    tags: list[int] = []
    screenshot: Optional[str] = None

    @field_validator("ticker")
    @classmethod
    def strip_ticker(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError("ticker must not be blank")
        return v

    @field_validator("comments", mode="before")
    @classmethod
    def default_comments(cls, v):
        return (v or "").strip()

    @field_validator("screenshot")
    @classmethod
    def check_screenshot(cls, v: Optional[str]) -> Optional[str]:
        if not v:
            return None
        if not v.startswith("data:image/"):
            raise ValueError("screenshot must be an image data URI")
        if len(v) > MAX_SCREENSHOT_BYTES:
            raise ValueError("screenshot is too large")
        return v


class TradeUpdate(TradeCreate):
    pass


class Trade(BaseModel):
    id: int
    ticker: str
    enter_time: datetime
    exit_time: datetime
    enter_price: float
    exit_price: float
    quantity: float
    manual_pl: Optional[float] = None
    comments: Optional[str] = None
    tags: list[int] = []
    screenshot: Optional[str] = None
    tradovate_order_id: Optional[str] = None
    tradovate_source: Optional[str] = None
    created_at: Optional[datetime] = None

    @computed_field
    @property
    def pl(self) -> float:
        return realized_pl(self)

    @computed_field
    @property
    def duration_ms(self) -> float:
        return trade_duration_ms(self)


class ImportPreview(BaseModel):
    columns: list[str]
    mapping: dict[str, Optional[str]]
    missing: list[str]
    row_count: int
    sample: list[dict]


class ImportResult(BaseModel):
    imported: int
