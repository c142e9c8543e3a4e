from typing import Any, Optional

from mess_api.schemas.common import CamelModel


class ChargeUpdate(CamelModel):
    """Admin charge setting. ``amount`` is validated by the service."""
    amount: Any


class ChargeUpdateResult(CamelModel):
    field: str
    matched_users: int
    modified_count: int
    per_user_amount: Optional[float] = None
    message: Optional[str] = None
