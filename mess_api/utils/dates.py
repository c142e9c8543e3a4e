"""Calendar-day normalization for ledger entries."""

import re
from datetime import date, datetime, timezone
from typing import Union

from mess_api.core.errors import InvalidInputError

DATE_REGEX = re.compile(r"^(\d{2})/(\d{2})/(\d{4})$")

DateInput = Union[date, datetime, str]


def normalize_date(value: DateInput) -> datetime:
    """
    Return midnight UTC of the calendar day ``value`` falls on.

    Accepts ``date``, ``datetime`` (naive values are taken as UTC), ISO 8601
    strings and ``DD/MM/YYYY`` strings. Time of day is discarded.
    """
    if isinstance(value, datetime):
        moment = value if value.tzinfo else value.replace(tzinfo=timezone.utc)
        day = moment.astimezone(timezone.utc).date()
    elif isinstance(value, date):
        day = value
    elif isinstance(value, str):
        day = _parse_date_string(value.strip())
    else:
        raise InvalidInputError("Date must be a string, date or datetime")

    return datetime(day.year, day.month, day.day, tzinfo=timezone.utc)


def _parse_date_string(raw: str) -> date:
    match = DATE_REGEX.match(raw)
    if match:
        day, month, year = (int(part) for part in match.groups())
        try:
            return date(year, month, day)
        except ValueError:
            raise InvalidInputError(f"Invalid date: {raw}")

    try:
        parsed = datetime.fromisoformat(raw.replace("Z", "+00:00"))
    except ValueError:
        raise InvalidInputError("Invalid date format. Use YYYY-MM-DD or DD/MM/YYYY")

    if parsed.tzinfo:
        return parsed.astimezone(timezone.utc).date()
    return parsed.date()
