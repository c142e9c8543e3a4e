from typing import Optional

from fastapi import APIRouter, Depends, Query, Response, status

from mess_api.core.auth import CurrentUser, get_current_user
from mess_api.schemas.common import Page
from mess_api.schemas.market import MarketCreate, MarketResponse, MarketUpdate
from mess_api.services.market_service import MarketService

router = APIRouter()

@router.get("/", response_model=Page[MarketResponse])
async def list_markets(
    user: Optional[str] = None,
    date: Optional[str] = None,
    sort_by: Optional[str] = Query(None, alias="sortBy"),
    page: int = 1,
    limit: Optional[int] = None,
    current_user: CurrentUser = Depends(get_current_user)
):
    """List market entries, newest first by default"""
    result = await MarketService.query(user_id=user, date=date, sort_by=sort_by, page=page, limit=limit)
    return Page[MarketResponse].model_validate(result, from_attributes=True)

@router.post("/", response_model=MarketResponse, status_code=status.HTTP_201_CREATED)
async def create_market(
    market_in: MarketCreate,
    user: Optional[str] = None,
    current_user: CurrentUser = Depends(get_current_user)
):
    """Record a grocery purchase"""
    market = await MarketService.create(market_in, current_user, user_id=user)
    return MarketResponse.model_validate(market)

@router.get("/{market_id}", response_model=MarketResponse)
async def get_market(
    market_id: str,
    current_user: CurrentUser = Depends(get_current_user)
):
    market = await MarketService.get(market_id)
    return MarketResponse.model_validate(market)

@router.patch("/{market_id}", response_model=MarketResponse)
async def update_market(
    market_id: str,
    market_in: MarketUpdate,
    current_user: CurrentUser = Depends(get_current_user)
):
    market = await MarketService.update(market_id, market_in, current_user)
    return MarketResponse.model_validate(market)

@router.delete("/{market_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_market(
    market_id: str,
    current_user: CurrentUser = Depends(get_current_user)
):
    await MarketService.delete(market_id, current_user)
    return Response(status_code=status.HTTP_204_NO_CONTENT)
