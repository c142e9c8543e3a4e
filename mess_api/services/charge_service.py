"""
Admin-set fixed charges.

Guest meal rate and cooking charge are flat values written to every user.
Water and gas bills are totals split equally across active users; this is a
flat share, unlike meal costs which follow consumption.
"""

import logging
from decimal import Decimal, ROUND_HALF_UP
from typing import Any

from mess_api.core.errors import InvalidInputError
from mess_api.db.session import get_database
from mess_api.models.user import DISTRIBUTABLE_CHARGE_FIELDS
from mess_api.repositories.user_repo import UserRepository
from mess_api.schemas.charge import ChargeUpdateResult
from mess_api.utils.validators import validate_non_negative_amount

logger = logging.getLogger(__name__)


def equal_share(total: float, members: int) -> int:
    """Whole-unit share of ``total``, halves rounded up."""
    return int((Decimal(str(total)) / members).quantize(Decimal("1"), rounding=ROUND_HALF_UP))


class ChargeService:
    @staticmethod
    async def distribute_equal_charge(total_amount: Any, charge_field: str) -> ChargeUpdateResult:
        """Split ``total_amount`` equally and write the share to every active user."""
        if charge_field not in DISTRIBUTABLE_CHARGE_FIELDS:
            raise InvalidInputError(f"{charge_field} cannot be distributed")
        total = validate_non_negative_amount(total_amount, charge_field)

        db = await get_database()
        users = UserRepository(db)

        active_users = await users.count_active_users()
        if active_users == 0:
            return ChargeUpdateResult(
                field=charge_field,
                matched_users=0,
                modified_count=0,
                message="No active users found"
            )

        per_user = equal_share(total, active_users)
        modified = await users.set_field_for_users({"isActive": True}, charge_field, per_user)

        logger.info("%s of %.2f split across %d active users: %d each", charge_field, total, active_users, per_user)
        return ChargeUpdateResult(
            field=charge_field,
            matched_users=active_users,
            modified_count=modified,
            per_user_amount=per_user
        )

    @staticmethod
    async def update_water_bill(total_amount: Any) -> ChargeUpdateResult:
        return await ChargeService.distribute_equal_charge(total_amount, "waterBill")

    @staticmethod
    async def update_gas_bill_charge(total_amount: Any) -> ChargeUpdateResult:
        return await ChargeService.distribute_equal_charge(total_amount, "gasBillCharge")

    @staticmethod
    async def update_guest_meal_charge(charge: Any) -> ChargeUpdateResult:
        return await ChargeService._set_for_all_users(charge, "chargePerGuestMeal")

    @staticmethod
    async def update_cooking_charge(charge: Any) -> ChargeUpdateResult:
        return await ChargeService._set_for_all_users(charge, "cookingCharge")

    @staticmethod
    async def _set_for_all_users(value: Any, field: str) -> ChargeUpdateResult:
        amount = validate_non_negative_amount(value, field)

        db = await get_database()
        users = UserRepository(db)
        modified = await users.set_field_for_users({}, field, amount)

        logger.info("%s set to %.2f for all users", field, amount)
        return ChargeUpdateResult(
            field=field,
            matched_users=modified,
            modified_count=modified,
            per_user_amount=amount
        )
