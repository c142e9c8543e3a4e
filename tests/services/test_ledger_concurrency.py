import asyncio
import pytest
from unittest.mock import patch

from mess_api.core.auth import CurrentUser
from mess_api.core.errors import ConflictError
from mess_api.models.meal import Meal
from mess_api.models.user import User, UserRole
from mess_api.schemas.market import MarketCreate, MarketUpdate
from mess_api.schemas.meal import MealCreate, MealUpdate
from mess_api.services.market_service import MarketService
from mess_api.services.meal_service import MealService


@pytest.fixture
def owner(memory_db) -> CurrentUser:
    user = User(name="Rahim", email="rahim@example.com")
    memory_db.users.docs.append(user.to_document())
    return CurrentUser(id=user.id, role=UserRole.USER)


def stored_owner(memory_db) -> dict:
    return memory_db.users.docs[0]


@pytest.mark.asyncio
async def test_concurrent_meals_on_different_days_both_count(memory_db, owner):
    with patch("mess_api.services.meal_service.get_database", return_value=memory_db):
        first, second = await asyncio.gather(
            MealService.create(MealCreate(date="2024-05-01", type="both"), owner),
            MealService.create(MealCreate(date="2024-05-02", type="both", is_guest_meal=True, guest_count=1), owner)
        )

    user = stored_owner(memory_db)
    assert user["totalMeal"] == 4
    assert user["guestMeal"] == 1
    assert sorted(user["meals"]) == sorted([first.id, second.id])
    assert len(memory_db.meals.docs) == 2


@pytest.mark.asyncio
async def test_concurrent_meals_on_same_day_count_once(memory_db, owner):
    with patch("mess_api.services.meal_service.get_database", return_value=memory_db):
        results = await asyncio.gather(
            MealService.create(MealCreate(date="2024-05-01", type="both"), owner),
            MealService.create(MealCreate(date="2024-05-01T20:00:00Z", type="day"), owner),
            return_exceptions=True
        )

    created = [r for r in results if isinstance(r, Meal)]
    conflicts = [r for r in results if isinstance(r, ConflictError)]
    assert len(created) == 1
    assert len(conflicts) == 1

    user = stored_owner(memory_db)
    assert user["totalMeal"] == created[0].meal_count
    assert user["meals"] == [created[0].id]
    assert len(memory_db.meals.docs) == 1


@pytest.mark.asyncio
async def test_interleaved_meal_updates_and_deletes_keep_totals_in_step(memory_db, owner):
    with patch("mess_api.services.meal_service.get_database", return_value=memory_db):
        meals = await asyncio.gather(*(
            MealService.create(MealCreate(date=f"2024-05-0{day}", type="both"), owner)
            for day in range(1, 5)
        ))

        await asyncio.gather(
            MealService.update(str(meals[0].id), MealUpdate(type="day"), owner),
            MealService.update(str(meals[1].id), MealUpdate(is_guest_meal=True, guest_count=3), owner),
            MealService.delete(str(meals[2].id), owner),
            MealService.create(MealCreate(date="2024-05-09", type="night"), owner)
        )

    user = stored_owner(memory_db)
    assert user["totalMeal"] == sum(doc["mealCount"] for doc in memory_db.meals.docs)
    assert user["guestMeal"] == sum(doc["guestCount"] for doc in memory_db.meals.docs)
    assert user["totalMeal"] == 1 + 2 + 2 + 1
    assert user["guestMeal"] == 3
    assert len(user["meals"]) == len(memory_db.meals.docs) == 4


@pytest.mark.asyncio
async def test_concurrent_updates_of_one_meal_never_drift_counters(memory_db, owner):
    with patch("mess_api.services.meal_service.get_database", return_value=memory_db):
        meal = await MealService.create(MealCreate(date="2024-05-01", type="both"), owner)

        results = await asyncio.gather(
            MealService.update(str(meal.id), MealUpdate(type="day"), owner),
            MealService.update(str(meal.id), MealUpdate(is_guest_meal=True, guest_count=2), owner),
            return_exceptions=True
        )

    assert all(isinstance(r, (Meal, ConflictError)) for r in results)
    doc = memory_db.meals.docs[0]
    user = stored_owner(memory_db)
    assert user["totalMeal"] == doc["mealCount"]
    assert user["guestMeal"] == doc["guestCount"]


@pytest.mark.asyncio
async def test_concurrent_market_entries_sum_amounts(memory_db, owner):
    with patch("mess_api.services.market_service.get_database", return_value=memory_db):
        first, _ = await asyncio.gather(
            MarketService.create(MarketCreate(date="2024-05-01", amount=250.5, items="rice"), owner),
            MarketService.create(MarketCreate(date="2024-05-02", amount=100, items="oil"), owner)
        )
        await MarketService.update(str(first.id), MarketUpdate(amount=200.5), owner)

    user = stored_owner(memory_db)
    assert user["totalMarketAmount"] == pytest.approx(300.5)
    assert len(user["markets"]) == 2
