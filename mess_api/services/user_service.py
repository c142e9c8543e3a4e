import asyncio
import logging
import math
import re
from enum import Enum
from typing import Optional, Tuple

from pydantic.alias_generators import to_camel

from mess_api.core.auth import CurrentUser
from mess_api.core.errors import (
    ConflictError,
    ForbiddenError,
    InvalidInputError,
    NotFoundError,
    UnprocessableError,
)
from mess_api.db.session import UnitOfWork, get_database, run_in_unit_of_work
from mess_api.models.user import PRIVILEGED_FIELDS, PaymentStatus, User, UserRole, UserStatus
from mess_api.repositories.user_repo import UserRepository
from mess_api.schemas.common import Page
from mess_api.schemas.user import UserCreate, UserStats, UserUpdate
from mess_api.services.notification_service import get_notifier
from mess_api.utils.background import fire_and_forget
from mess_api.utils.validators import parse_object_id, parse_pagination

logger = logging.getLogger(__name__)

PAYMENT_STATUS_FIELDS = ("payment", "gasBill")


class UserService:
    @staticmethod
    async def get(user_id: str) -> User:
        db = await get_database()
        user = await UserRepository(db).get_user_by_id(parse_object_id(user_id, "user id"))
        if user is None:
            raise NotFoundError("User not found")
        return user

    @staticmethod
    async def list_users(
        user_status: Optional[str] = None,
        role: Optional[str] = None,
        is_active: Optional[bool] = None,
        payment: Optional[str] = None,
        page: Optional[int] = None,
        limit: Optional[int] = None
    ) -> Page[User]:
        """Admin listing, newest first."""
        query = {}
        if user_status:
            query["userStatus"] = user_status
        if role:
            query["role"] = role
        if is_active is not None:
            query["isActive"] = is_active
        if payment:
            query["payment"] = payment

        page_num, page_size = parse_pagination(page, limit)

        db = await get_database()
        return await _paginate(UserRepository(db), query, page_num, page_size)

    @staticmethod
    async def search_users(term: str, page: Optional[int] = None, limit: Optional[int] = None) -> Page[User]:
        """Case-insensitive match on name or email, newest first."""
        term = (term or "").strip()
        if not term:
            raise InvalidInputError("Search term is required")

        pattern = {"$regex": re.escape(term), "$options": "i"}
        query = {"$or": [{"name": pattern}, {"email": pattern}]}
        page_num, page_size = parse_pagination(page, limit)

        db = await get_database()
        return await _paginate(UserRepository(db), query, page_num, page_size)

    @staticmethod
    async def get_user_stats() -> UserStats:
        db = await get_database()
        users = UserRepository(db)

        total, active, *counts = await asyncio.gather(
            users.count_users({}),
            users.count_users({"isActive": True}),
            *(users.count_users({"userStatus": status.value}) for status in UserStatus),
            *(users.count_users({"role": role.value}) for role in UserRole),
            *(users.count_users({"payment": status.value}) for status in PaymentStatus)
        )

        statuses = len(UserStatus)
        roles = len(UserRole)
        return UserStats(
            total_users=total,
            active_users=active,
            user_status=dict(zip((s.value for s in UserStatus), counts[:statuses])),
            roles=dict(zip((r.value for r in UserRole), counts[statuses:statuses + roles])),
            payment_status=dict(zip((p.value for p in PaymentStatus), counts[statuses + roles:]))
        )

    @staticmethod
    async def create_user(user_in: UserCreate) -> User:
        """Admin-created accounts skip the approval queue."""
        email = user_in.email.strip().lower()
        if not email:
            raise InvalidInputError("email cannot be empty")

        db = await get_database()
        users = UserRepository(db)
        if await users.email_taken(email):
            raise ConflictError("Email already registered")

        user = User(
            name=user_in.name,
            email=email,
            phone=user_in.phone,
            image=user_in.image,
            role=user_in.role,
            user_status=UserStatus.APPROVED,
            is_active=True
        )
        user = await users.create_user(user)
        logger.info("User %s created by admin", user.id)
        return user

    @staticmethod
    async def update_profile(user_id: str, user_in: UserUpdate, actor: CurrentUser) -> User:
        """
        Update a profile.

        Users may edit their own name, email, phone and image. Role, active
        flag and approval status are admin only; all fields of one request are
        written inside a single unit of work.
        """
        target_id = parse_object_id(user_id, "user id")
        if not actor.is_admin and actor.id != target_id:
            raise ForbiddenError("You can only update your own profile")

        patch = user_in.model_dump(exclude_unset=True)
        fields = {
            to_camel(key): value.value if isinstance(value, Enum) else value
            for key, value in patch.items()
        }

        if any(field in fields for field in PRIVILEGED_FIELDS) and not actor.is_admin:
            raise ForbiddenError("Only admins can change role, status or activation")
        for field in PRIVILEGED_FIELDS:
            if field in fields and fields[field] is None:
                raise InvalidInputError(f"{field} cannot be null")
        if "email" in fields:
            email = (fields["email"] or "").strip().lower()
            if not email:
                raise InvalidInputError("email cannot be empty")
            fields["email"] = email
        if "name" in fields and fields["name"] is None:
            raise InvalidInputError("name cannot be empty")

        db = await get_database()
        users = UserRepository(db)

        async def work(uow: UnitOfWork) -> Tuple[User, dict]:
            user = await users.get_user_by_id(target_id, session=uow.session)
            if user is None:
                raise NotFoundError("User not found")

            changes = dict(fields)
            if changes.get("email") == user.email:
                changes.pop("email")
            elif "email" in changes and await users.email_taken(changes["email"], exclude_id=target_id):
                raise ConflictError("Email already in use")

            if not changes:
                return user, changes

            stored = user.to_document()
            previous = {key: stored.get(key) for key in changes}

            updated = await users.update_fields(target_id, changes, session=uow.session)
            if updated is None:
                raise NotFoundError("User not found")
            uow.on_rollback(lambda: users.update_fields(target_id, previous))
            return updated, changes

        updated, changes = await run_in_unit_of_work(db, work)

        if changes:
            logger.info("User %s profile updated (%s)", target_id, ", ".join(sorted(changes)))
        return updated

    @staticmethod
    async def approve_account(user_id: str) -> User:
        user = await UserService.get(user_id)
        if user.user_status == UserStatus.APPROVED:
            raise ConflictError("User is already approved")

        db = await get_database()
        updated = await UserRepository(db).update_fields(
            user.id, {"userStatus": UserStatus.APPROVED.value, "isActive": True}
        )
        if updated is None:
            raise NotFoundError("User not found")

        fire_and_forget(
            get_notifier().account_approved(updated.email, updated.name),
            f"approval notification for {updated.id}"
        )
        logger.info("User %s approved", updated.id)
        return updated

    @staticmethod
    async def deny_account(user_id: str, reason: Optional[str] = None) -> User:
        user = await UserService.get(user_id)

        db = await get_database()
        updated = await UserRepository(db).update_fields(
            user.id, {"userStatus": UserStatus.DENIED.value, "isActive": False}
        )
        if updated is None:
            raise NotFoundError("User not found")

        fire_and_forget(
            get_notifier().account_denied(updated.email, updated.name, reason),
            f"denial notification for {updated.id}"
        )
        logger.info("User %s denied", updated.id)
        return updated

    @staticmethod
    async def deactivate_account(user_id: str) -> User:
        user = await UserService.get(user_id)

        db = await get_database()
        updated = await UserRepository(db).update_fields(user.id, {"isActive": False})
        if updated is None:
            raise NotFoundError("User not found")
        logger.info("User %s deactivated", updated.id)
        return updated

    @staticmethod
    async def update_payment_status(user_id: str, status: str, field: str = "payment") -> User:
        """
        Record the outcome of the payment flow on ``payment`` or ``gasBill``.

        A successful payment cannot be reverted to pending.
        """
        if field not in PAYMENT_STATUS_FIELDS:
            raise InvalidInputError(f"Unknown payment field {field!r}")
        try:
            new_status = PaymentStatus(status)
        except ValueError:
            raise InvalidInputError(f"Invalid payment status {status!r}")

        user = await UserService.get(user_id)
        current = user.payment if field == "payment" else user.gas_bill
        if current == PaymentStatus.SUCCESS and new_status == PaymentStatus.PENDING:
            raise UnprocessableError("Cannot revert a completed payment to pending")

        db = await get_database()
        updated = await UserRepository(db).update_fields(user.id, {field: new_status.value})
        if updated is None:
            raise NotFoundError("User not found")
        return updated


async def _paginate(users: UserRepository, query: dict, page_num: int, page_size: int) -> Page[User]:
    total = await users.count_users(query)
    results = await users.list_users(query, skip=(page_num - 1) * page_size, limit=page_size)
    return Page[User](
        results=results,
        page=page_num,
        limit=page_size,
        total_pages=math.ceil(total / page_size),
        total_results=total
    )
