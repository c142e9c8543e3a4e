from fastapi import APIRouter
from mess_api.api.v1.endpoints import charges, markets, meals, settlements, users

api_router = APIRouter()

api_router.include_router(users.router, prefix="/users", tags=["users"])
api_router.include_router(meals.router, prefix="/meals", tags=["meals"])
api_router.include_router(markets.router, prefix="/markets", tags=["markets"])
api_router.include_router(settlements.router, prefix="/settlements", tags=["settlements"])
api_router.include_router(charges.router, prefix="/settings", tags=["settings"])
