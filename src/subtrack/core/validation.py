"""Field-level and cross-field validation for subscription payloads.

``validate`` is pure: it inspects a raw mapping (as decoded from JSON or a
form) and returns a ``{field: message}`` dict, empty when the payload is
acceptable. Each field reports only its first failure, but every failing
field is reported in the same call.
"""

from __future__ import annotations

import re
from collections.abc import Collection, Mapping
from datetime import date
from decimal import Decimal, InvalidOperation
from typing import Any

from subtrack.core.billing import MAX_COST, parse_billing_cycle, round2, to_decimal
from subtrack.core.errors import SubscriptionValidationError
from subtrack.core.models import SubscriptionInput
from subtrack.core.status import SubscriptionStatus, clear_inapplicable_dates, parse_status

_ISO_DATE_PATTERN = re.compile(r"^\d{4}-\d{2}-\d{2}$")

# Display labels used in date error messages.
_DATE_LABELS = {
    "start_date": "Start date",
    "trial_end_date": "Trial end date",
    "cancellation_date": "Cancellation date",
    "last_active_date": "Last active date",
}


class _InvalidDate(Exception):
    pass


def _is_blank(value: Any) -> bool:
    return value is None or (isinstance(value, str) and value.strip() == "")


def _parse_date(value: Any) -> date:
    if isinstance(value, date):
        return value
    if not isinstance(value, str) or _ISO_DATE_PATTERN.fullmatch(value.strip()) is None:
        raise _InvalidDate
    try:
        return date.fromisoformat(value.strip())
    except ValueError as exc:
        raise _InvalidDate from exc


def _parse_cost(value: Any) -> Decimal | None:
    if isinstance(value, bool):
        return None
    try:
        amount = to_decimal(value.strip() if isinstance(value, str) else value)
    except (InvalidOperation, TypeError, ValueError):
        return None
    if not amount.is_finite():
        return None
    return amount


def _check_optional_date(
    payload: Mapping[str, Any],
    key: str,
    errors: dict[str, str],
    start: date | None,
    *,
    required_message: str | None = None,
) -> date | None:
    """Validate one optional date field and record the first failure."""
    label = _DATE_LABELS[key]
    raw = payload.get(key)
    if _is_blank(raw):
        if required_message is not None:
            errors[key] = required_message
        return None
    try:
        parsed = _parse_date(raw)
    except _InvalidDate:
        errors[key] = f"{label} must be a valid date in YYYY-MM-DD format"
        return None
    if start is not None and parsed < start:
        errors[key] = f"{label} must be on or after the start date"
        return None
    return parsed


def validate(
    payload: Mapping[str, Any],
    allowed_categories: Collection[str] | None = None,
) -> dict[str, str]:
    """Validate a raw subscription payload.

    Parameters
    ----------
    payload:
        Mapping with snake_case keys: ``name``, ``category``, ``cost``,
        ``billing_cycle``, ``status``, ``start_date`` and the optional
        ``trial_end_date``, ``cancellation_date``, ``last_active_date``.
    allowed_categories:
        Closed set of category names (matched case-insensitively). ``None``
        accepts any non-empty category.

    Returns
    -------
    dict[str, str]
        Field name to message. Empty when the payload is valid.
    """
    errors: dict[str, str] = {}

    name = payload.get("name")
    if not isinstance(name, str) or not name.strip():
        errors["name"] = "Name is required"

    category = payload.get("category")
    if not isinstance(category, str) or not category.strip():
        errors["category"] = "Category is required"
    elif allowed_categories is not None:
        allowed = {c.strip().lower() for c in allowed_categories}
        if category.strip().lower() not in allowed:
            names = ", ".join(sorted(c.strip() for c in allowed_categories))
            errors["category"] = f"Category must be one of: {names}"

    cost_raw = payload.get("cost")
    if _is_blank(cost_raw):
        errors["cost"] = "Cost is required"
    else:
        cost = _parse_cost(cost_raw)
        if cost is None or cost <= 0:
            errors["cost"] = "Cost must be a number greater than 0"
        elif cost >= MAX_COST:
            errors["cost"] = "Cost is too large"
        elif round2(cost) <= 0:
            errors["cost"] = "Cost must be a number greater than 0"

    cycle = payload.get("billing_cycle")
    if _is_blank(cycle):
        errors["billing_cycle"] = "Billing cycle is required"
    else:
        try:
            parse_billing_cycle(cycle)
        except ValueError:
            errors["billing_cycle"] = "Billing cycle must be monthly or yearly"

    status: SubscriptionStatus | None = None
    status_raw = payload.get("status")
    if _is_blank(status_raw):
        errors["status"] = "Status is required"
    else:
        try:
            status = parse_status(status_raw)
        except ValueError:
            errors["status"] = "Status must be active, free_trial, or cancelled"

    start: date | None = None
    start_raw = payload.get("start_date")
    if _is_blank(start_raw):
        errors["start_date"] = "Start date is required"
    else:
        try:
            start = _parse_date(start_raw)
        except _InvalidDate:
            errors["start_date"] = "Start date must be a valid date in YYYY-MM-DD format"

    _check_optional_date(
        payload,
        "trial_end_date",
        errors,
        start,
        required_message=(
            "Trial end date is required for Free Trial status"
            if status is SubscriptionStatus.FREE_TRIAL
            else None
        ),
    )
    is_cancelled = status is SubscriptionStatus.CANCELLED
    cancelled_on = _check_optional_date(
        payload,
        "cancellation_date",
        errors,
        start,
        required_message=(
            "Cancellation date is required for Cancelled status" if is_cancelled else None
        ),
    )
    last_active = _check_optional_date(
        payload,
        "last_active_date",
        errors,
        start,
        required_message=(
            "Last active date is required for Cancelled status" if is_cancelled else None
        ),
    )
    if last_active is not None and cancelled_on is not None and last_active > cancelled_on:
        errors["last_active_date"] = "Last active date must not be after the cancellation date"

    return errors


def parse_subscription_input(
    payload: Mapping[str, Any],
    allowed_categories: Collection[str] | None = None,
) -> SubscriptionInput:
    """Validate *payload* and return the typed value the core operates on.

    Dates that do not apply to the resulting status are dropped.

    Raises
    ------
    SubscriptionValidationError
        With the full field map when any rule is violated.
    """
    errors = validate(payload, allowed_categories)
    if errors:
        raise SubscriptionValidationError(errors)

    status = parse_status(payload["status"])
    dates = {
        key: _parse_date(payload[key]) if not _is_blank(payload.get(key)) else None
        for key in ("trial_end_date", "cancellation_date", "last_active_date")
    }
    trial_end, cancelled_on, last_active = clear_inapplicable_dates(
        status,
        dates["trial_end_date"],
        dates["cancellation_date"],
        dates["last_active_date"],
    )
    return SubscriptionInput(
        name=payload["name"].strip(),
        category=_canonical_category(payload["category"], allowed_categories),
        cost=round2(_parse_cost(payload["cost"])),
        billing_cycle=parse_billing_cycle(payload["billing_cycle"]),
        status=status,
        start_date=_parse_date(payload["start_date"]),
        trial_end_date=trial_end,
        cancellation_date=cancelled_on,
        last_active_date=last_active,
    )


def _canonical_category(raw: str, allowed_categories: Collection[str] | None) -> str:
    """Return the configured spelling of *raw* when a closed set is in use."""
    category = raw.strip()
    if allowed_categories is None:
        return category
    for allowed in allowed_categories:
        if allowed.strip().lower() == category.lower():
            return allowed.strip()
    return category
