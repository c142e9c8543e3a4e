from mess_api.models.meal import Meal
from mess_api.repositories.base import EntryRepository


class MealRepository(EntryRepository[Meal]):
    """Meal entries, one per user per day."""

    collection_name = "meals"
    model = Meal
    duplicate_message = "Meal already recorded for this date"
