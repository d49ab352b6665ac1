from datetime import date, timedelta

import pytest

from bizpulse.logic.results import ErrorKind, Invalid, Valid
from bizpulse.logic.validation import (
    validate_business_ownership,
    validate_chart_request,
    validate_comparison_type,
    validate_date_range,
    validate_days,
    validate_platform,
    validate_user_id,
)
from bizpulse.models import Business, User

TODAY = date(2024, 6, 30)


class FakeRepo:
    def __init__(self, businesses=(), users=()):
        self.businesses = {b.id: b for b in businesses}
        self.users = {u.id: u for u in users}

    async def get_business(self, business_id):
        return self.businesses.get(business_id)

    async def get_user(self, user_id):
        return self.users.get(user_id)


def test_validate_days_bounds():
    assert isinstance(validate_days(1), Valid)
    assert isinstance(validate_days(365), Valid)
    assert validate_days(0).code == "DAYS_TOO_SMALL"
    assert validate_days(366).code == "DAYS_TOO_LARGE"


def test_validate_date_range_rules():
    assert isinstance(validate_date_range(TODAY - timedelta(days=10), TODAY, today=TODAY), Valid)
    assert validate_date_range(None, TODAY, today=TODAY).code == "RANGE_REQUIRED"
    assert validate_date_range(TODAY, TODAY, today=TODAY).code == "RANGE_ORDER"
    assert validate_date_range(TODAY - timedelta(days=400), TODAY, today=TODAY).code == "RANGE_TOO_LONG"
    assert validate_date_range(date(2023, 6, 1), date(2023, 6, 20), today=TODAY).code == "START_TOO_OLD"
    assert validate_date_range(TODAY, TODAY + timedelta(days=5), today=TODAY).code == "END_IN_FUTURE"


def test_end_date_may_be_tomorrow():
    assert isinstance(validate_date_range(TODAY - timedelta(days=3), TODAY + timedelta(days=1), today=TODAY), Valid)


def test_validate_platform():
    assert isinstance(validate_platform(None), Valid)
    assert isinstance(validate_platform("  "), Valid)
    assert isinstance(validate_platform("mobile"), Valid)
    assert isinstance(validate_platform("All"), Valid)
    result = validate_platform("Fax")
    assert result.code == "INVALID_PLATFORM"
    assert result.kind is ErrorKind.VALIDATION


def test_validate_comparison_type():
    assert isinstance(validate_comparison_type("MonthOverMonth"), Valid)
    assert validate_comparison_type("").code == "COMPARISON_TYPE_REQUIRED"
    assert validate_comparison_type("DayOverDay").code == "INVALID_COMPARISON_TYPE"


def test_custom_range_requires_valid_ranges():
    current = (TODAY - timedelta(days=6), TODAY)
    previous = (TODAY - timedelta(days=13), TODAY - timedelta(days=7))
    assert isinstance(validate_comparison_type("CustomRange", current, previous, today=TODAY), Valid)

    missing = validate_comparison_type("CustomRange", current, None, today=TODAY)
    assert missing.field == "previous_period"
    assert missing.code == "RANGE_REQUIRED"


def test_validate_chart_request():
    assert validate_chart_request("", 30).code == "USER_REQUIRED"
    assert validate_chart_request("u1", 0).code == "DAYS_TOO_SMALL"
    assert validate_chart_request("u1", 30, "Telex").code == "INVALID_PLATFORM"
    assert isinstance(validate_chart_request("u1", 30, "Web"), Valid)


@pytest.mark.asyncio
async def test_validate_user_id():
    repo = FakeRepo(users=[User(id="u1", email="u1@example.com", tier="basic")])
    assert isinstance(await validate_user_id(repo, "u1"), Valid)
    missing = await validate_user_id(repo, "nobody")
    assert missing.code == "USER_NOT_FOUND"
    assert missing.kind is ErrorKind.NOT_FOUND


@pytest.mark.asyncio
async def test_validate_business_ownership_kinds():
    repo = FakeRepo(
        businesses=[
            Business(id=1, user_id="owner", name="A", category="Cafe", town="Knysna"),
            Business(id=2, user_id="owner", name="B", category="Cafe", town="Knysna", status="Deleted"),
        ]
    )
    assert isinstance(await validate_business_ownership(repo, 1, "owner"), Valid)

    invalid_id = await validate_business_ownership(repo, 0, "owner")
    assert invalid_id.code == "INVALID_BUSINESS_ID"

    missing = await validate_business_ownership(repo, 99, "owner")
    assert (missing.code, missing.kind) == ("NOT_FOUND", ErrorKind.NOT_FOUND)

    foreign = await validate_business_ownership(repo, 1, "intruder")
    assert (foreign.code, foreign.kind) == ("ACCESS_DENIED", ErrorKind.ACCESS_DENIED)

    deleted = await validate_business_ownership(repo, 2, "owner")
    assert deleted.code == "BUSINESS_DELETED"
    assert isinstance(deleted, Invalid)
