from fastapi import APIRouter, Depends

from mess_api.core.auth import CurrentUser, get_current_user
from mess_api.core.errors import ForbiddenError
from mess_api.schemas.settlement import GlobalAggregates, PayableAmountResponse
from mess_api.services.settlement_service import SettlementService

router = APIRouter()

@router.get("/totals", response_model=GlobalAggregates)
async def get_mess_totals(current_user: CurrentUser = Depends(get_current_user)):
    """Grand total market amount, grand total meals and guest revenue for the mess"""
    return await SettlementService.get_totals()

@router.get("/payable", response_model=PayableAmountResponse)
async def get_my_payable(current_user: CurrentUser = Depends(get_current_user)):
    """Current user's payable amount (negative when the mess owes them)"""
    return await SettlementService.get_payable_amount(str(current_user.id))

@router.get("/payable/{user_id}", response_model=PayableAmountResponse)
async def get_payable(
    user_id: str,
    current_user: CurrentUser = Depends(get_current_user)
):
    """Payable amount for a specific user. Members may only read their own."""
    if not current_user.is_admin and str(current_user.id) != user_id:
        raise ForbiddenError("You can only view your own settlement")
    return await SettlementService.get_payable_amount(user_id)
