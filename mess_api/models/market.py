from datetime import datetime
from typing import Optional

from mess_api.models.base import MongoModel, PyObjectId


class Market(MongoModel):
    """Grocery purchase made by one user on one calendar day."""

    user: PyObjectId
    date: datetime
    amount: float
    items: str
    description: Optional[str] = None
    image: Optional[str] = None
