from typing import Optional

from fastapi import APIRouter, Depends, Query, Response, status

from mess_api.core.auth import CurrentUser, get_current_user
from mess_api.schemas.common import Page
from mess_api.schemas.meal import MealCreate, MealResponse, MealUpdate
from mess_api.services.meal_service import MealService

router = APIRouter()

@router.get("/", response_model=Page[MealResponse])
async def list_meals(
    user: Optional[str] = None,
    date: Optional[str] = None,
    sort_by: Optional[str] = Query(None, alias="sortBy"),
    page: int = 1,
    limit: Optional[int] = None,
    current_user: CurrentUser = Depends(get_current_user)
):
    """List meals, newest first by default. ``sort_by`` is ``field:asc|desc``."""
    result = await MealService.query(user_id=user, date=date, sort_by=sort_by, page=page, limit=limit)
    return Page[MealResponse].model_validate(result, from_attributes=True)

@router.post("/", response_model=MealResponse, status_code=status.HTTP_201_CREATED)
async def create_meal(
    meal_in: MealCreate,
    user: Optional[str] = None,
    current_user: CurrentUser = Depends(get_current_user)
):
    """Record meals for a day. Admins may pass ``user`` to record for someone else."""
    meal = await MealService.create(meal_in, current_user, user_id=user)
    return MealResponse.model_validate(meal)

@router.get("/{meal_id}", response_model=MealResponse)
async def get_meal(
    meal_id: str,
    current_user: CurrentUser = Depends(get_current_user)
):
    meal = await MealService.get(meal_id)
    return MealResponse.model_validate(meal)

@router.patch("/{meal_id}", response_model=MealResponse)
async def update_meal(
    meal_id: str,
    meal_in: MealUpdate,
    current_user: CurrentUser = Depends(get_current_user)
):
    meal = await MealService.update(meal_id, meal_in, current_user)
    return MealResponse.model_validate(meal)

@router.delete("/{meal_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_meal(
    meal_id: str,
    current_user: CurrentUser = Depends(get_current_user)
):
    await MealService.delete(meal_id, current_user)
    return Response(status_code=status.HTTP_204_NO_CONTENT)
