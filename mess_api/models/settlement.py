from mess_api.models.base import MongoModel, PyObjectId

class SettlementSnapshot(MongoModel):
    """Cached payable amount. Never read back as the source of truth."""
    user: PyObjectId
    effective_meal_rate: float
    payable_amount: float
