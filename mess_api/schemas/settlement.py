from mess_api.schemas.common import CamelModel

class GlobalAggregates(CamelModel):
    grand_total_market_amount: float = 0.0
    grand_total_meal: int = 0
    total_guest_revenue: float = 0.0

class PayableAmountResponse(CamelModel):
    """Settlement for one user. Negative payable_amount means the user is owed."""
    user_id: str

    # Mess-wide totals
    grand_total_market_amount: float
    grand_total_meal: int
    total_guest_revenue: float
    effective_meal_rate: float

    # The user's own figures
    total_meal: int
    guest_meal: int
    total_market_amount: float
    charge_per_guest_meal: float
    water_bill: float
    cooking_charge: float
    cost_of_meals: float
    guest_meal_amount: float

    payable_amount: float
