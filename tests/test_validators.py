import pytest
from datetime import date, datetime, timedelta, timezone
from bson import ObjectId

from mess_api.core.config import settings
from mess_api.core.errors import InvalidInputError
from mess_api.utils.dates import normalize_date
from mess_api.utils.validators import (
    parse_object_id,
    parse_pagination,
    parse_sort,
    validate_items,
    validate_non_negative_amount,
)

MAY_FIRST = datetime(2024, 5, 1, tzinfo=timezone.utc)


@pytest.mark.parametrize("value", [
    "2024-05-01",
    "01/05/2024",
    "2024-05-01T23:59:59Z",
    "2024-05-01T10:00:00+00:00",
    date(2024, 5, 1),
    datetime(2024, 5, 1, 15, 30),
    datetime(2024, 5, 1, 15, 30, tzinfo=timezone.utc),
])
def test_normalize_date_to_midnight_utc(value):
    assert normalize_date(value) == MAY_FIRST


def test_normalize_date_converts_offsets_to_utc():
    # 02:00 at +05:00 is still the previous day in UTC
    value = datetime(2024, 5, 2, 2, 0, tzinfo=timezone(timedelta(hours=5)))
    assert normalize_date(value) == MAY_FIRST


@pytest.mark.parametrize("value", ["", "yesterday", "2024-13-01", "32/01/2024", 20240501, None])
def test_normalize_date_rejects_garbage(value):
    with pytest.raises(InvalidInputError):
        normalize_date(value)


def test_parse_object_id():
    oid = ObjectId()
    assert parse_object_id(str(oid)) == oid
    assert parse_object_id(oid) is oid
    with pytest.raises(InvalidInputError):
        parse_object_id("abc", "meal id")
    with pytest.raises(InvalidInputError):
        parse_object_id(None)


@pytest.mark.parametrize("value", [0, 12, 99.5])
def test_validate_non_negative_amount_accepts(value):
    assert validate_non_negative_amount(value) == float(value)


@pytest.mark.parametrize("value", [-0.01, float("nan"), float("inf"), "10", None, False])
def test_validate_non_negative_amount_rejects(value):
    with pytest.raises(InvalidInputError):
        validate_non_negative_amount(value)


def test_validate_items():
    assert validate_items(" Rice ") == "Rice"
    for bad in ("", "   ", None, ["Rice"]):
        with pytest.raises(InvalidInputError):
            validate_items(bad)


def test_parse_sort():
    default = ("date", -1)
    assert parse_sort(None, ("date", "amount"), default) == default
    assert parse_sort("amount:asc", ("date", "amount"), default) == ("amount", 1)
    assert parse_sort("amount:DESC", ("date", "amount"), default) == ("amount", -1)
    assert parse_sort("amount", ("date", "amount"), default) == ("amount", -1)
    with pytest.raises(InvalidInputError):
        parse_sort("email:asc", ("date", "amount"), default)
    with pytest.raises(InvalidInputError):
        parse_sort("date:sideways", ("date", "amount"), default)


def test_parse_pagination():
    assert parse_pagination() == (1, settings.DEFAULT_PAGE_SIZE)
    assert parse_pagination("2", "5") == (2, 5)
    assert parse_pagination(1, 10_000) == (1, settings.MAX_PAGE_SIZE)
    for page, limit in ((0, 10), (1, 0), ("x", 10)):
        with pytest.raises(InvalidInputError):
            parse_pagination(page, limit)
