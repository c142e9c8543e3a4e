"""
Meal ledger.

Each mutation writes the meal entry and adjusts the owner's ``totalMeal`` and
``guestMeal`` counters inside one unit of work. Counters only ever move by
$inc deltas, so concurrent mutations on different days never lose updates.
"""

import logging
from typing import Optional, Tuple

from mess_api.core.auth import CurrentUser
from mess_api.core.errors import ConflictError, NotFoundError
from mess_api.db.session import UnitOfWork, get_database, run_in_unit_of_work
from mess_api.models.meal import Meal, MealType, meal_count_for
from mess_api.repositories.meal_repo import MealRepository
from mess_api.repositories.user_repo import UserRepository
from mess_api.schemas.common import Page
from mess_api.schemas.meal import MealCreate, MealUpdate
from mess_api.utils.dates import DateInput, normalize_date
from mess_api.utils.validators import (
    parse_object_id,
    parse_pagination,
    parse_sort,
    validate_guest_count,
)

logger = logging.getLogger(__name__)

SORTABLE_FIELDS = ("date", "type", "mealCount", "guestCount", "createdAt", "updatedAt")
DEFAULT_SORT = ("date", -1)


def resolve_guest(is_guest_meal: bool, guest_count: Optional[int], fallback: int = 1) -> Tuple[bool, int]:
    """(isGuestMeal, guestCount) pair; a non-guest meal always has 0 guests."""
    if not is_guest_meal:
        return False, 0
    if guest_count is None:
        return True, max(fallback, 1)
    return True, validate_guest_count(guest_count)


class MealService:
    @staticmethod
    async def create(meal_in: MealCreate, actor: CurrentUser, user_id: Optional[str] = None) -> Meal:
        """Record a day's meals for ``user_id`` (the caller by default)."""
        owner_id = parse_object_id(user_id, "user id") if user_id else actor.id
        actor.ensure_can_act_for(owner_id)

        day = normalize_date(meal_in.date)
        meal_type = MealType(meal_in.type)
        is_guest, guest_count = resolve_guest(meal_in.is_guest_meal, meal_in.guest_count)

        meal = Meal(
            user=owner_id,
            date=day,
            type=meal_type,
            meal_count=meal_count_for(meal_type),
            is_guest_meal=is_guest,
            guest_count=guest_count,
            remarks=meal_in.remarks
        )

        db = await get_database()
        meals = MealRepository(db)
        users = UserRepository(db)

        # Fast fail only; the unique (user, date) index is the real guard.
        if await meals.exists_for_date(owner_id, day):
            raise ConflictError(meals.duplicate_message)

        deltas = {"totalMeal": meal.meal_count, "guestMeal": meal.guest_count}

        async def work(uow: UnitOfWork) -> Meal:
            await meals.insert(meal, session=uow.session)
            uow.on_rollback(lambda: meals.delete(meal.id))

            if not await users.increment_aggregates(owner_id, deltas, session=uow.session):
                raise NotFoundError("User not found")
            uow.on_rollback(lambda: users.increment_aggregates(owner_id, _negate(deltas)))

            await users.add_entry_ref(owner_id, "meals", meal.id, session=uow.session)
            return meal

        await run_in_unit_of_work(db, work)

        logger.info("Meal %s created for user %s on %s", meal.id, owner_id, day.date())
        return meal

    @staticmethod
    async def get(meal_id: str) -> Meal:
        db = await get_database()
        meal = await MealRepository(db).get_by_id(parse_object_id(meal_id, "meal id"))
        if meal is None:
            raise NotFoundError("Meal not found")
        return meal

    @staticmethod
    async def query(
        user_id: Optional[str] = None,
        date: Optional[DateInput] = None,
        sort_by: Optional[str] = None,
        page: Optional[int] = None,
        limit: Optional[int] = None
    ) -> Page[Meal]:
        """Meals newest first unless ``sort_by`` says otherwise."""
        filters = {}
        if user_id:
            filters["user"] = parse_object_id(user_id, "user id")
        if date is not None:
            filters["date"] = normalize_date(date)

        sort = parse_sort(sort_by, SORTABLE_FIELDS, DEFAULT_SORT)
        page_num, page_size = parse_pagination(page, limit)

        db = await get_database()
        return await MealRepository(db).paginate(filters, sort, page_num, page_size)

    @staticmethod
    async def update(meal_id: str, meal_in: MealUpdate, actor: CurrentUser) -> Meal:
        """
        Apply a partial update and move the owner's counters by the difference.

        - a date change is re-checked for collisions; an unchanged date is not written
        - a type change recomputes mealCount
        - a guest flag/count change recomputes guestCount (0 when not a guest meal)
        """
        meal_oid = parse_object_id(meal_id, "meal id")
        patch = meal_in.model_dump(exclude_unset=True)

        db = await get_database()
        meals = MealRepository(db)
        users = UserRepository(db)

        async def work(uow: UnitOfWork) -> Tuple[Meal, dict]:
            meal = await meals.get_by_id(meal_oid, session=uow.session)
            if meal is None:
                raise NotFoundError("Meal not found")
            actor.ensure_can_act_for(meal.user)

            changes = {}

            if patch.get("date") is not None:
                new_day = normalize_date(patch["date"])
                if new_day != meal.date:
                    if await meals.exists_for_date(meal.user, new_day, exclude_id=meal.id, session=uow.session):
                        raise ConflictError(meals.duplicate_message)
                    changes["date"] = new_day

            if patch.get("type") is not None:
                new_type = MealType(patch["type"])
                if new_type != MealType(meal.type):
                    changes["type"] = new_type.value
                    changes["mealCount"] = meal_count_for(new_type)

            if "is_guest_meal" in patch or "guest_count" in patch:
                flag = patch.get("is_guest_meal")
                is_guest, guest_count = resolve_guest(
                    meal.is_guest_meal if flag is None else flag,
                    patch.get("guest_count"),
                    fallback=meal.guest_count
                )
                changes["isGuestMeal"] = is_guest
                changes["guestCount"] = guest_count

            if "remarks" in patch:
                changes["remarks"] = patch["remarks"]

            if not changes:
                return meal, changes

            stored = meal.to_document()
            previous = {key: stored.get(key) for key in changes}
            counters = {"mealCount": meal.meal_count, "guestCount": meal.guest_count}

            updated = await meals.update_fields(meal.id, changes, expected=counters, session=uow.session)
            if updated is None:
                raise ConflictError("Meal was changed by another request, please retry")
            uow.on_rollback(lambda: meals.update_fields(meal.id, previous))

            deltas = {
                "totalMeal": updated.meal_count - meal.meal_count,
                "guestMeal": updated.guest_count - meal.guest_count
            }
            if any(deltas.values()):
                if not await users.increment_aggregates(meal.user, deltas, session=uow.session):
                    raise NotFoundError("Meal owner not found")
            return updated, changes

        updated, changes = await run_in_unit_of_work(db, work)

        if changes:
            logger.info("Meal %s updated (%s)", updated.id, ", ".join(sorted(changes)))
        return updated

    @staticmethod
    async def delete(meal_id: str, actor: CurrentUser) -> Meal:
        """Remove a meal and take its full contribution off the owner's counters."""
        meal_oid = parse_object_id(meal_id, "meal id")

        db = await get_database()
        meals = MealRepository(db)
        users = UserRepository(db)

        async def work(uow: UnitOfWork) -> Meal:
            meal = await meals.get_by_id(meal_oid, session=uow.session)
            if meal is None:
                raise NotFoundError("Meal not found")
            actor.ensure_can_act_for(meal.user)

            deltas = {"totalMeal": -meal.meal_count, "guestMeal": -meal.guest_count}
            if await users.increment_aggregates(meal.user, deltas, session=uow.session):
                uow.on_rollback(lambda: users.increment_aggregates(meal.user, _negate(deltas)))
            else:
                logger.warning("Meal %s has no owner record; removing entry only", meal.id)

            await users.remove_entry_ref(meal.user, "meals", meal.id, session=uow.session)
            uow.on_rollback(lambda: users.add_entry_ref(meal.user, "meals", meal.id))

            counters = {"mealCount": meal.meal_count, "guestCount": meal.guest_count}
            if not await meals.delete(meal.id, expected=counters, session=uow.session):
                raise ConflictError("Meal was changed by another request, please retry")
            return meal

        meal = await run_in_unit_of_work(db, work)

        logger.info("Meal %s deleted for user %s", meal.id, meal.user)
        return meal


def _negate(deltas: dict) -> dict:
    return {field: -delta for field, delta in deltas.items()}
