from typing import Optional

from fastapi import APIRouter, Depends, Query, status

from mess_api.core.auth import CurrentUser, get_current_user, require_admin
from mess_api.core.errors import ForbiddenError
from mess_api.schemas.common import Page
from mess_api.schemas.user import PaymentStatusUpdate, UserCreate, UserDeny, UserResponse, UserStats, UserUpdate
from mess_api.services.user_service import UserService

router = APIRouter()

@router.get("/me", response_model=UserResponse)
async def get_my_profile(current_user: CurrentUser = Depends(get_current_user)):
    """Get current user profile"""
    user = await UserService.get(str(current_user.id))
    return UserResponse.model_validate(user)

@router.patch("/me", response_model=UserResponse)
async def update_my_profile(
    user_update: UserUpdate,
    current_user: CurrentUser = Depends(get_current_user)
):
    """Update current user profile"""
    user = await UserService.update_profile(str(current_user.id), user_update, current_user)
    return UserResponse.model_validate(user)

@router.get("/", response_model=Page[UserResponse])
async def list_users(
    user_status: Optional[str] = Query(None, alias="userStatus"),
    role: Optional[str] = None,
    is_active: Optional[bool] = Query(None, alias="isActive"),
    payment: Optional[str] = None,
    page: int = 1,
    limit: Optional[int] = None,
    admin: CurrentUser = Depends(require_admin)
):
    result = await UserService.list_users(
        user_status=user_status, role=role, is_active=is_active, payment=payment, page=page, limit=limit
    )
    return Page[UserResponse].model_validate(result, from_attributes=True)

@router.post("/", response_model=UserResponse, status_code=status.HTTP_201_CREATED)
async def create_user(user_in: UserCreate, admin: CurrentUser = Depends(require_admin)):
    """Create an approved, active member"""
    user = await UserService.create_user(user_in)
    return UserResponse.model_validate(user)

@router.get("/search", response_model=Page[UserResponse])
async def search_users(
    q: str = Query(..., min_length=1),
    page: int = 1,
    limit: Optional[int] = None,
    admin: CurrentUser = Depends(require_admin)
):
    """Search users by name or email"""
    result = await UserService.search_users(q, page=page, limit=limit)
    return Page[UserResponse].model_validate(result, from_attributes=True)

@router.get("/stats", response_model=UserStats)
async def get_user_stats(admin: CurrentUser = Depends(require_admin)):
    return await UserService.get_user_stats()

@router.get("/{user_id}", response_model=UserResponse)
async def get_user(
    user_id: str,
    current_user: CurrentUser = Depends(get_current_user)
):
    """Get user by ID. Members may only read their own record."""
    if not current_user.is_admin and str(current_user.id) != user_id:
        raise ForbiddenError("You can only view your own profile")
    user = await UserService.get(user_id)
    return UserResponse.model_validate(user)

@router.patch("/{user_id}", response_model=UserResponse)
async def update_user(
    user_id: str,
    user_update: UserUpdate,
    admin: CurrentUser = Depends(require_admin)
):
    user = await UserService.update_profile(user_id, user_update, admin)
    return UserResponse.model_validate(user)

@router.post("/{user_id}/approve", response_model=UserResponse)
async def approve_user(user_id: str, admin: CurrentUser = Depends(require_admin)):
    user = await UserService.approve_account(user_id)
    return UserResponse.model_validate(user)

@router.post("/{user_id}/deny", response_model=UserResponse)
async def deny_user(
    user_id: str,
    request: UserDeny,
    admin: CurrentUser = Depends(require_admin)
):
    user = await UserService.deny_account(user_id, request.reason)
    return UserResponse.model_validate(user)

@router.delete("/{user_id}", response_model=UserResponse)
async def deactivate_user(user_id: str, admin: CurrentUser = Depends(require_admin)):
    """Deactivate (soft delete) a user"""
    user = await UserService.deactivate_account(user_id)
    return UserResponse.model_validate(user)

@router.patch("/{user_id}/payment", response_model=UserResponse)
async def update_payment_status(
    user_id: str,
    request: PaymentStatusUpdate,
    admin: CurrentUser = Depends(require_admin)
):
    user = await UserService.update_payment_status(user_id, request.status, "payment")
    return UserResponse.model_validate(user)

@router.patch("/{user_id}/gas-bill", response_model=UserResponse)
async def update_gas_bill_status(
    user_id: str,
    request: PaymentStatusUpdate,
    admin: CurrentUser = Depends(require_admin)
):
    user = await UserService.update_payment_status(user_id, request.status, "gasBill")
    return UserResponse.model_validate(user)
