"""Input validation for analytics requests.

Validators never raise for bad input; they return ``Valid`` or an ``Invalid``
carrying the offending field, a machine-readable rule code and a message.
"""

from __future__ import annotations

import logging
from datetime import date, timedelta
from typing import TYPE_CHECKING

from bizpulse.logic import constants
from bizpulse.logic.results import VALID, ErrorKind, Invalid, ValidationResult, first_invalid
from bizpulse.models import Platform
from bizpulse.utils.dates import one_year_before, today_utc

if TYPE_CHECKING:
    from bizpulse.db.repository import AnalyticsRepository

logger = logging.getLogger(__name__)


def validate_days(days: int) -> ValidationResult:
    if days < constants.MIN_ANALYTICS_DAYS:
        return Invalid(
            "days",
            "DAYS_TOO_SMALL",
            f"Analytics days must be at least {constants.MIN_ANALYTICS_DAYS}",
        )
    if days > constants.MAX_ANALYTICS_DAYS:
        return Invalid(
            "days",
            "DAYS_TOO_LARGE",
            f"Analytics days cannot exceed {constants.MAX_ANALYTICS_DAYS}",
        )
    return VALID


def validate_date_range(
    start: date | None,
    end: date | None,
    *,
    today: date | None = None,
    field: str = "date_range",
) -> ValidationResult:
    if start is None or end is None:
        return Invalid(field, "RANGE_REQUIRED", "Start and end dates are required")
    if start >= end:
        return Invalid(field, "RANGE_ORDER", "Start date must be before end date")
    if (end - start).days > constants.MAX_ANALYTICS_DAYS:
        return Invalid(
            field,
            "RANGE_TOO_LONG",
            f"Date range cannot exceed {constants.MAX_ANALYTICS_DAYS} days",
        )
    today = today or today_utc()
    if start < one_year_before(today):
        return Invalid(field, "START_TOO_OLD", "Start date cannot be more than 1 year ago")
    if end > today + timedelta(days=1):
        return Invalid(field, "END_IN_FUTURE", "End date cannot be in the future")
    return VALID


def validate_platform(platform: str | None) -> ValidationResult:
    try:
        Platform.parse(platform)
    except ValueError:
        allowed = ", ".join(p.value for p in Platform)
        return Invalid("platform", "INVALID_PLATFORM", f"Invalid platform. Must be one of: {allowed}")
    return VALID


def validate_comparison_type(
    comparison_type: str | None,
    current: tuple[date | None, date | None] | None = None,
    previous: tuple[date | None, date | None] | None = None,
    *,
    today: date | None = None,
) -> ValidationResult:
    if not comparison_type or not comparison_type.strip():
        return Invalid("comparison_type", "COMPARISON_TYPE_REQUIRED", "Comparison type is required")
    if comparison_type not in constants.COMPARISON_TYPES:
        allowed = ", ".join(constants.COMPARISON_TYPES)
        return Invalid(
            "comparison_type",
            "INVALID_COMPARISON_TYPE",
            f"Invalid comparison type. Must be one of: {allowed}",
        )
    if comparison_type != constants.CUSTOM_RANGE:
        return VALID
    current_start, current_end = current or (None, None)
    previous_start, previous_end = previous or (None, None)
    return first_invalid(
        validate_date_range(current_start, current_end, today=today, field="current_period"),
        validate_date_range(previous_start, previous_end, today=today, field="previous_period"),
    )


def validate_chart_request(user_id: str | None, days: int, platform: str | None = None) -> ValidationResult:
    if not user_id or not user_id.strip():
        return Invalid("user_id", "USER_REQUIRED", "User ID is required")
    return first_invalid(validate_days(days), validate_platform(platform))


async def validate_user_id(repo: AnalyticsRepository, user_id: str | None) -> ValidationResult:
    if not user_id or not user_id.strip():
        return Invalid("user_id", "USER_REQUIRED", "User ID is required")
    user = await repo.get_user(user_id)
    if user is None:
        logger.warning("Analytics validation failed: user %s not found", user_id)
        return Invalid("user_id", "USER_NOT_FOUND", "User not found", ErrorKind.NOT_FOUND)
    return VALID


async def validate_business_ownership(
    repo: AnalyticsRepository, business_id: int, user_id: str | None
) -> ValidationResult:
    if business_id <= 0:
        return Invalid("business_id", "INVALID_BUSINESS_ID", "Invalid business ID")
    if not user_id or not user_id.strip():
        return Invalid("user_id", "USER_REQUIRED", "User ID is required")
    business = await repo.get_business(business_id)
    if business is None:
        return Invalid("business_id", "NOT_FOUND", "Business not found", ErrorKind.NOT_FOUND)
    if business.user_id != user_id:
        logger.warning("Ownership check failed for business %s, user %s", business_id, user_id)
        return Invalid("business_id", "ACCESS_DENIED", "Business not found or access denied", ErrorKind.ACCESS_DENIED)
    if business.is_deleted:
        return Invalid(
            "business_id",
            "BUSINESS_DELETED",
            "Cannot access analytics for deleted business",
            ErrorKind.NOT_FOUND,
        )
    return VALID
