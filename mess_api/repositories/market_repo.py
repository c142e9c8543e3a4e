from mess_api.models.market import Market
from mess_api.repositories.base import EntryRepository


class MarketRepository(EntryRepository[Market]):
    """Market (grocery) entries, one per user per day."""

    collection_name = "markets"
    model = Market
    duplicate_message = "Market entry already recorded for this date"
