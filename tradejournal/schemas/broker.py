from pydantic import BaseModel, ConfigDict, Field
from datetime import datetime
from typing import Literal, Optional, Union


class BrokerCredentials(BaseModel):
    username: str = Field(min_length=1)
    password: str = Field(min_length=1)
    cid: str = Field(min_length=1)
    secret: str = Field(min_length=1)
    environment: Literal["demo", "live"] = "demo"


class BrokerStatus(BaseModel):
    configured: bool
    environment: Literal["demo", "live"] = "demo"
    last_sync_time: Optional[datetime] = None


class Fill(BaseModel):
    """One execution as returned by the broker's fill list."""
    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    id: Optional[Union[int, str]] = None
    order_id: Optional[Union[int, str]] = Field(default=None, alias="orderId")
    contract_id: Optional[Union[int, str]] = Field(default=None, alias="contractId")
    qty: Optional[float] = None
    price: Optional[float] = None
    timestamp: datetime

    @property
    def group_key(self) -> str:
        return str(self.order_id if self.order_id is not None else self.id)


class SyncResult(BaseModel):
    synced: int
    message: str
