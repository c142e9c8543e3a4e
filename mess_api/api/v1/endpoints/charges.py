from fastapi import APIRouter, Depends

from mess_api.core.auth import CurrentUser, require_admin
from mess_api.schemas.charge import ChargeUpdate, ChargeUpdateResult
from mess_api.services.charge_service import ChargeService

router = APIRouter()

@router.put("/guest-meal-charge", response_model=ChargeUpdateResult)
async def update_guest_meal_charge(
    charge_in: ChargeUpdate,
    admin: CurrentUser = Depends(require_admin)
):
    """Set the per guest meal rate for every user"""
    return await ChargeService.update_guest_meal_charge(charge_in.amount)

@router.put("/cooking-charge", response_model=ChargeUpdateResult)
async def update_cooking_charge(
    charge_in: ChargeUpdate,
    admin: CurrentUser = Depends(require_admin)
):
    """Set the cooking charge for every user"""
    return await ChargeService.update_cooking_charge(charge_in.amount)

@router.put("/water-bill", response_model=ChargeUpdateResult)
async def update_water_bill(
    charge_in: ChargeUpdate,
    admin: CurrentUser = Depends(require_admin)
):
    """Split a total water bill equally across active users"""
    return await ChargeService.update_water_bill(charge_in.amount)

@router.put("/gas-bill", response_model=ChargeUpdateResult)
async def update_gas_bill(
    charge_in: ChargeUpdate,
    admin: CurrentUser = Depends(require_admin)
):
    """Split a total gas bill equally across active users"""
    return await ChargeService.update_gas_bill_charge(charge_in.amount)
