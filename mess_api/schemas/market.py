from datetime import datetime
from typing import Optional

from mess_api.models.base import PyObjectId
from mess_api.schemas.common import CamelModel
from mess_api.utils.dates import DateInput


class MarketCreate(CamelModel):
    date: DateInput
    amount: float
    items: str
    description: Optional[str] = None
    image: Optional[str] = None


class MarketUpdate(CamelModel):
    date: Optional[DateInput] = None
    amount: Optional[float] = None
    items: Optional[str] = None
    description: Optional[str] = None
    image: Optional[str] = None


class MarketResponse(CamelModel):
    id: PyObjectId
    user: PyObjectId
    date: datetime
    amount: float
    items: str
    description: Optional[str] = None
    image: Optional[str] = None
    created_at: datetime
    updated_at: datetime
