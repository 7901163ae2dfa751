"""Subscription status machine.

Three states, one forbidden edge: a cancelled subscription must pass through
``active`` before it can re-enter a free trial. Self-transitions are always
allowed and are no-ops. The machine does not pick an initial state; callers
supply it at creation.
"""

from __future__ import annotations

import enum
from datetime import date

from subtrack.core.errors import IllegalTransitionError


class SubscriptionStatus(enum.StrEnum):
    """Lifecycle stage of a subscription."""

    ACTIVE = "active"
    FREE_TRIAL = "free_trial"
    CANCELLED = "cancelled"


ALLOWED_TRANSITIONS: dict[SubscriptionStatus, frozenset[SubscriptionStatus]] = {
    SubscriptionStatus.ACTIVE: frozenset(
        {SubscriptionStatus.FREE_TRIAL, SubscriptionStatus.CANCELLED}
    ),
    SubscriptionStatus.FREE_TRIAL: frozenset(
        {SubscriptionStatus.ACTIVE, SubscriptionStatus.CANCELLED}
    ),
    SubscriptionStatus.CANCELLED: frozenset({SubscriptionStatus.ACTIVE}),
}

STATUS_LABELS: dict[SubscriptionStatus, str] = {
    SubscriptionStatus.ACTIVE: "Active",
    SubscriptionStatus.FREE_TRIAL: "Free Trial",
    SubscriptionStatus.CANCELLED: "Cancelled",
}

# Older data stores spell the trial state "trial".
_LEGACY_LABELS: dict[str, SubscriptionStatus] = {
    "trial": SubscriptionStatus.FREE_TRIAL,
}


def parse_status(value: SubscriptionStatus | str) -> SubscriptionStatus:
    """Map a raw status label to its canonical enum member.

    Raises
    ------
    ValueError
        If *value* is neither a canonical nor a legacy label.
    """
    if isinstance(value, SubscriptionStatus):
        return value
    normalized = str(value).strip().lower()
    if normalized in _LEGACY_LABELS:
        return _LEGACY_LABELS[normalized]
    return SubscriptionStatus(normalized)


def is_transition_allowed(
    from_status: SubscriptionStatus | str,
    to_status: SubscriptionStatus | str,
) -> bool:
    """Return True when moving from *from_status* to *to_status* is legal."""
    source = parse_status(from_status)
    target = parse_status(to_status)
    if source is target:
        return True
    return target in ALLOWED_TRANSITIONS[source]


def check_transition(
    from_status: SubscriptionStatus | str,
    to_status: SubscriptionStatus | str,
) -> None:
    """Raise ``IllegalTransitionError`` unless the transition is allowed."""
    if not is_transition_allowed(from_status, to_status):
        raise IllegalTransitionError(str(from_status), str(to_status))


def clear_inapplicable_dates(
    status: SubscriptionStatus | str,
    trial_end_date: date | None,
    cancellation_date: date | None,
    last_active_date: date | None,
) -> tuple[date | None, date | None, date | None]:
    """Null out the date fields that have no meaning for *status*.

    Returns ``(trial_end_date, cancellation_date, last_active_date)``.
    """
    current = parse_status(status)
    if current is not SubscriptionStatus.FREE_TRIAL:
        trial_end_date = None
    if current is not SubscriptionStatus.CANCELLED:
        cancellation_date = None
        last_active_date = None
    return trial_end_date, cancellation_date, last_active_date
