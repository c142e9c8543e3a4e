from datetime import datetime
from typing import Dict, Optional

from pydantic import Field

from mess_api.models.base import PyObjectId
from mess_api.models.user import PaymentStatus, UserRole, UserStatus
from mess_api.schemas.common import CamelModel


class UserCreate(CamelModel):
    """Admin-created member. Approved and active from the start."""
    name: str = Field(..., min_length=1, max_length=100)
    email: str = Field(..., min_length=3)
    phone: Optional[str] = None
    image: Optional[str] = None
    role: UserRole = UserRole.USER


class UserUpdate(CamelModel):
    """Profile update. role, is_active and user_status are admin only."""
    name: Optional[str] = Field(None, min_length=1, max_length=100)
    email: Optional[str] = None
    phone: Optional[str] = None
    image: Optional[str] = None
    role: Optional[UserRole] = None
    is_active: Optional[bool] = None
    user_status: Optional[UserStatus] = None


class UserDeny(CamelModel):
    reason: Optional[str] = None


class PaymentStatusUpdate(CamelModel):
    status: PaymentStatus


class UserResponse(CamelModel):
    id: PyObjectId
    name: str
    email: str
    phone: Optional[str] = None
    image: Optional[str] = None
    role: UserRole
    user_status: UserStatus
    is_active: bool
    payment: PaymentStatus
    gas_bill: PaymentStatus
    total_meal: int
    guest_meal: int
    total_market_amount: float
    charge_per_guest_meal: float
    cooking_charge: float
    water_bill: float
    gas_bill_charge: float
    created_at: datetime
    updated_at: datetime


class UserStats(CamelModel):
    total_users: int
    active_users: int
    user_status: Dict[str, int]
    roles: Dict[str, int]
    payment_status: Dict[str, int]
