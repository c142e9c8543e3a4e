"""
Market ledger: grocery purchases and the owner's ``totalMarketAmount``.

Same shape as the meal ledger with a monetary counter: create adds the
amount, update applies ``new - old``, delete subtracts it.
"""

import logging
from typing import Optional, Tuple

from mess_api.core.auth import CurrentUser
from mess_api.core.errors import ConflictError, NotFoundError
from mess_api.db.session import UnitOfWork, get_database, run_in_unit_of_work
from mess_api.models.market import Market
from mess_api.repositories.market_repo import MarketRepository
from mess_api.repositories.user_repo import UserRepository
from mess_api.schemas.common import Page
from mess_api.schemas.market import MarketCreate, MarketUpdate
from mess_api.utils.dates import DateInput, normalize_date
from mess_api.utils.validators import (
    parse_object_id,
    parse_pagination,
    parse_sort,
    validate_items,
    validate_non_negative_amount,
)

logger = logging.getLogger(__name__)

SORTABLE_FIELDS = ("date", "amount", "createdAt", "updatedAt")
DEFAULT_SORT = ("date", -1)


class MarketService:
    @staticmethod
    async def create(market_in: MarketCreate, actor: CurrentUser, user_id: Optional[str] = None) -> Market:
        owner_id = parse_object_id(user_id, "user id") if user_id else actor.id
        actor.ensure_can_act_for(owner_id)

        market = Market(
            user=owner_id,
            date=normalize_date(market_in.date),
            amount=validate_non_negative_amount(market_in.amount),
            items=validate_items(market_in.items),
            description=market_in.description,
            image=market_in.image
        )

        db = await get_database()
        markets = MarketRepository(db)
        users = UserRepository(db)

        if await markets.exists_for_date(owner_id, market.date):
            raise ConflictError(markets.duplicate_message)

        async def work(uow: UnitOfWork) -> Market:
            await markets.insert(market, session=uow.session)
            uow.on_rollback(lambda: markets.delete(market.id))

            if not await users.increment_aggregates(owner_id, {"totalMarketAmount": market.amount}, session=uow.session):
                raise NotFoundError("User not found")
            uow.on_rollback(lambda: users.increment_aggregates(owner_id, {"totalMarketAmount": -market.amount}))

            await users.add_entry_ref(owner_id, "markets", market.id, session=uow.session)
            return market

        await run_in_unit_of_work(db, work)

        logger.info("Market entry %s created for user %s: %.2f", market.id, owner_id, market.amount)
        return market

    @staticmethod
    async def get(market_id: str) -> Market:
        db = await get_database()
        market = await MarketRepository(db).get_by_id(parse_object_id(market_id, "market id"))
        if market is None:
            raise NotFoundError("Market entry not found")
        return market

    @staticmethod
    async def query(
        user_id: Optional[str] = None,
        date: Optional[DateInput] = None,
        sort_by: Optional[str] = None,
        page: Optional[int] = None,
        limit: Optional[int] = None
    ) -> Page[Market]:
        filters = {}
        if user_id:
            filters["user"] = parse_object_id(user_id, "user id")
        if date is not None:
            filters["date"] = normalize_date(date)

        sort = parse_sort(sort_by, SORTABLE_FIELDS, DEFAULT_SORT)
        page_num, page_size = parse_pagination(page, limit)

        db = await get_database()
        return await MarketRepository(db).paginate(filters, sort, page_num, page_size)

    @staticmethod
    async def update(market_id: str, market_in: MarketUpdate, actor: CurrentUser) -> Market:
        """Partial update; the owner's total moves by ``new - old`` amount."""
        market_oid = parse_object_id(market_id, "market id")
        patch = market_in.model_dump(exclude_unset=True)

        field_changes = {}
        if "amount" in patch:
            field_changes["amount"] = validate_non_negative_amount(patch["amount"])
        if "items" in patch:
            field_changes["items"] = validate_items(patch["items"])
        for field in ("description", "image"):
            if field in patch:
                field_changes[field] = patch[field]

        db = await get_database()
        markets = MarketRepository(db)
        users = UserRepository(db)

        async def work(uow: UnitOfWork) -> Tuple[Market, dict]:
            market = await markets.get_by_id(market_oid, session=uow.session)
            if market is None:
                raise NotFoundError("Market entry not found")
            actor.ensure_can_act_for(market.user)

            changes = dict(field_changes)
            if patch.get("date") is not None:
                new_day = normalize_date(patch["date"])
                if new_day != market.date:
                    if await markets.exists_for_date(market.user, new_day, exclude_id=market.id, session=uow.session):
                        raise ConflictError(markets.duplicate_message)
                    changes["date"] = new_day

            if not changes:
                return market, changes

            stored = market.to_document()
            previous = {key: stored.get(key) for key in changes}

            updated = await markets.update_fields(
                market.id, changes, expected={"amount": market.amount}, session=uow.session
            )
            if updated is None:
                raise ConflictError("Market entry was changed by another request, please retry")
            uow.on_rollback(lambda: markets.update_fields(market.id, previous))

            delta = updated.amount - market.amount
            if delta:
                if not await users.increment_aggregates(market.user, {"totalMarketAmount": delta}, session=uow.session):
                    raise NotFoundError("Market entry owner not found")
            return updated, changes

        updated, changes = await run_in_unit_of_work(db, work)

        if changes:
            logger.info("Market entry %s updated (%s)", updated.id, ", ".join(sorted(changes)))
        return updated

    @staticmethod
    async def delete(market_id: str, actor: CurrentUser) -> Market:
        market_oid = parse_object_id(market_id, "market id")

        db = await get_database()
        markets = MarketRepository(db)
        users = UserRepository(db)

        async def work(uow: UnitOfWork) -> Market:
            market = await markets.get_by_id(market_oid, session=uow.session)
            if market is None:
                raise NotFoundError("Market entry not found")
            actor.ensure_can_act_for(market.user)

            deltas = {"totalMarketAmount": -market.amount}
            if await users.increment_aggregates(market.user, deltas, session=uow.session):
                uow.on_rollback(lambda: users.increment_aggregates(market.user, {"totalMarketAmount": market.amount}))
            else:
                logger.warning("Market entry %s has no owner record; removing entry only", market.id)

            await users.remove_entry_ref(market.user, "markets", market.id, session=uow.session)
            uow.on_rollback(lambda: users.add_entry_ref(market.user, "markets", market.id))

            if not await markets.delete(market.id, expected={"amount": market.amount}, session=uow.session):
                raise ConflictError("Market entry was changed by another request, please retry")
            return market

        market = await run_in_unit_of_work(db, work)

        logger.info("Market entry %s deleted for user %s", market.id, market.user)
        return market
