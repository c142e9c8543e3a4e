"""
Settlement engine.

Market spend is pooled across the mess and billed back per regular meal at
an effective rate; guest meals are billed separately at each user's flat
guest rate, so that revenue is taken out of the pool first:

    rate    = (grandMarket - guestRevenue) / grandMeal      (0 when no meals)
    payable = waterBill + cookingCharge
              + (totalMeal * rate - totalMarketAmount)
              + guestMeal * chargePerGuestMeal

A positive payable is owed by the user, a negative one is owed to them.
"""

import asyncio
import logging
from decimal import Decimal, ROUND_FLOOR, ROUND_HALF_UP

from mess_api.core.config import settings
from mess_api.core.errors import NotFoundError
from mess_api.db.session import get_database
from mess_api.models.settlement import SettlementSnapshot
from mess_api.models.user import User
from mess_api.repositories.user_repo import UserRepository
from mess_api.schemas.settlement import GlobalAggregates, PayableAmountResponse
from mess_api.utils.background import fire_and_forget
from mess_api.utils.validators import parse_object_id

logger = logging.getLogger(__name__)

CENT = Decimal("0.01")
HALF_UNIT = Decimal("0.5")


def round_currency(value: float) -> float:
    """Half-up to cents."""
    return float(Decimal(str(value)).quantize(CENT, rounding=ROUND_HALF_UP))


def round_payable(value: float, whole_unit_rounding: bool = True) -> float:
    """
    Round a payable amount to cents, then optionally lift it to the next
    whole unit when the fractional part is at least half a unit.

    The remainder takes the sign of the amount, so credits (negative
    payables) are never pushed up by this step.
    """
    amount = Decimal(str(value)).quantize(CENT, rounding=ROUND_HALF_UP)
    if whole_unit_rounding and amount % 1 >= HALF_UNIT:
        amount = amount.to_integral_value(rounding=ROUND_FLOOR) + 1
    return float(amount)


def effective_meal_rate(aggregates: GlobalAggregates) -> float:
    """Per-meal cost of the pool once guest revenue is removed."""
    if aggregates.grand_total_meal <= 0:
        return 0.0
    pool = aggregates.grand_total_market_amount - aggregates.total_guest_revenue
    return pool / aggregates.grand_total_meal


def compute_payable(
    aggregates: GlobalAggregates,
    user: User,
    whole_unit_rounding: bool = True
) -> PayableAmountResponse:
    """Pure settlement for one user against mess-wide totals."""
    rate = effective_meal_rate(aggregates)

    cost_of_meals = user.total_meal * rate
    guest_meal_amount = user.guest_meal * user.charge_per_guest_meal
    payable = (
        user.water_bill
        + user.cooking_charge
        + (cost_of_meals - user.total_market_amount)
        + guest_meal_amount
    )

    return PayableAmountResponse(
        user_id=str(user.id),
        grand_total_market_amount=aggregates.grand_total_market_amount,
        grand_total_meal=aggregates.grand_total_meal,
        total_guest_revenue=aggregates.total_guest_revenue,
        effective_meal_rate=rate,
        total_meal=user.total_meal,
        guest_meal=user.guest_meal,
        total_market_amount=user.total_market_amount,
        charge_per_guest_meal=user.charge_per_guest_meal,
        water_bill=user.water_bill,
        cooking_charge=user.cooking_charge,
        cost_of_meals=round_currency(cost_of_meals),
        guest_meal_amount=round_currency(guest_meal_amount),
        payable_amount=round_payable(payable, whole_unit_rounding)
    )


class SettlementService:
    @staticmethod
    async def get_global_aggregates(users: UserRepository) -> GlobalAggregates:
        market_total, meal_total, guest_revenue = await asyncio.gather(
            users.sum_market_amounts(),
            users.sum_meal_counts(),
            users.sum_guest_revenue()
        )
        return GlobalAggregates(
            grand_total_market_amount=market_total or 0,
            grand_total_meal=meal_total or 0,
            total_guest_revenue=guest_revenue or 0
        )

    @staticmethod
    async def get_totals() -> GlobalAggregates:
        db = await get_database()
        return await SettlementService.get_global_aggregates(UserRepository(db))

    @staticmethod
    async def get_payable_amount(user_id: str) -> PayableAmountResponse:
        """Compute what ``user_id`` owes (or is owed). Read only."""
        user_oid = parse_object_id(user_id, "user id")

        db = await get_database()
        users = UserRepository(db)

        user = await users.get_user_by_id(user_oid)
        if user is None:
            raise NotFoundError("User not found")

        aggregates = await SettlementService.get_global_aggregates(users)
        result = compute_payable(aggregates, user, settings.SETTLEMENT_WHOLE_UNIT_ROUNDING)

        if settings.SETTLEMENT_SNAPSHOTS:
            fire_and_forget(
                SettlementService.store_snapshot(db, result),
                f"settlement snapshot for user {user_oid}"
            )

        return result

    @staticmethod
    async def store_snapshot(db, result: PayableAmountResponse) -> None:
        """Cache the latest computed payable. Never read as source of truth."""
        snapshot = SettlementSnapshot(
            user=parse_object_id(result.user_id),
            effective_meal_rate=result.effective_meal_rate,
            payable_amount=result.payable_amount
        )
        doc = snapshot.to_document()
        doc.pop("_id")
        created_at = doc.pop("createdAt")
        await db.settlement_snapshots.update_one(
            {"user": snapshot.user},
            {"$set": doc, "$setOnInsert": {"createdAt": created_at}},
            upsert=True
        )
