from enum import Enum
from typing import List, Optional

from pydantic import Field

from mess_api.models.base import MongoModel, PyObjectId


class UserRole(str, Enum):
    ADMIN = "admin"
    USER = "user"


class UserStatus(str, Enum):
    APPROVED = "approved"
    DENIED = "denied"
    PENDING = "pending"


class PaymentStatus(str, Enum):
    PENDING = "pending"
    SUCCESS = "success"
    FAILED = "failed"


# Admin-set charges split equally over active users.
DISTRIBUTABLE_CHARGE_FIELDS = ("waterBill", "gasBillCharge")

# Fields only an admin may change on a profile.
PRIVILEGED_FIELDS = ("role", "isActive", "userStatus")


class User(MongoModel):
    """
    Mess member with the running totals the settlement engine reads.

    Invariants (kept by the ledger services, never recomputed here):
    - total_meal == sum of mealCount over the user's meal entries
    - guest_meal == sum of guestCount over the user's meal entries
    - total_market_amount == sum of amount over the user's market entries
    """

    name: str = Field(..., min_length=1, max_length=100)
    email: str
    phone: Optional[str] = None
    image: Optional[str] = None

    role: UserRole = UserRole.USER
    user_status: UserStatus = UserStatus.PENDING
    is_active: bool = True

    # Payment state, written by the payment flow
    payment: PaymentStatus = PaymentStatus.PENDING
    gas_bill: PaymentStatus = PaymentStatus.PENDING

    # Aggregates
    total_meal: int = 0
    guest_meal: int = 0
    total_market_amount: float = 0.0

    # Charges
    charge_per_guest_meal: float = 0.0
    cooking_charge: float = 0.0
    water_bill: float = 0.0
    gas_bill_charge: float = 0.0

    meals: List[PyObjectId] = []
    markets: List[PyObjectId] = []

    @property
    def is_admin(self) -> bool:
        return self.role == UserRole.ADMIN
