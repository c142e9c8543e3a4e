from datetime import datetime
from enum import Enum
from typing import Optional

from mess_api.models.base import MongoModel, PyObjectId


class MealType(str, Enum):
    DAY = "day"
    NIGHT = "night"
    BOTH = "both"


def meal_count_for(meal_type: MealType) -> int:
    """Meal units for a type: ``both`` is two meals, anything else one."""
    return 2 if MealType(meal_type) == MealType.BOTH else 1


class Meal(MongoModel):
    """One user's meals for one calendar day (date is midnight UTC)."""

    user: PyObjectId
    date: datetime
    type: MealType = MealType.BOTH
    meal_count: int = 2
    is_guest_meal: bool = False
    guest_count: int = 0
    remarks: Optional[str] = None
