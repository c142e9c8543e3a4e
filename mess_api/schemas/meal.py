from datetime import datetime
from typing import Optional

from mess_api.models.base import PyObjectId
from mess_api.models.meal import MealType
from mess_api.schemas.common import CamelModel
from mess_api.utils.dates import DateInput


class MealCreate(CamelModel):
    date: DateInput
    type: MealType = MealType.BOTH
    is_guest_meal: bool = False
    guest_count: Optional[int] = None
    remarks: Optional[str] = None


class MealUpdate(CamelModel):
    """Partial update; only fields the caller sends are applied."""
    date: Optional[DateInput] = None
    type: Optional[MealType] = None
    is_guest_meal: Optional[bool] = None
    guest_count: Optional[int] = None
    remarks: Optional[str] = None


class MealResponse(CamelModel):
    id: PyObjectId
    user: PyObjectId
    date: datetime
    type: MealType
    meal_count: int
    is_guest_meal: bool
    guest_count: int
    remarks: Optional[str] = None
    created_at: datetime
    updated_at: datetime
