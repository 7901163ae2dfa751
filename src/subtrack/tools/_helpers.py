"""Shared helpers for subscription storage tools."""

from __future__ import annotations

import uuid
from collections.abc import Mapping
from typing import Any

from subtrack.core.billing import BillingCycle
from subtrack.core.errors import SubscriptionNotFoundError
from subtrack.core.models import StatusHistoryEntry, Subscription
from subtrack.core.status import parse_status

SUBSCRIPTION_COLUMNS = (
    "id, name, category, cost, billing_cycle, normalized_monthly_cost, status,"
    " start_date, trial_end_date, cancellation_date, last_active_date,"
    " created_at, updated_at"
)


def _coerce_id(subscription_id: str | uuid.UUID) -> uuid.UUID:
    """Parse *subscription_id*; anything that is not a UUID cannot exist."""
    if isinstance(subscription_id, uuid.UUID):
        return subscription_id
    try:
        return uuid.UUID(str(subscription_id))
    except ValueError:
        raise SubscriptionNotFoundError(subscription_id) from None


def _row_to_subscription(row: Mapping[str, Any]) -> Subscription:
    """Convert an asyncpg Record (or dict) into a ``Subscription``.

    The legacy ``trial`` status label is mapped to ``free_trial`` here.
    """
    raw_id = row["id"]
    return Subscription(
        id=raw_id if isinstance(raw_id, uuid.UUID) else uuid.UUID(str(raw_id)),
        name=row["name"],
        category=row["category"],
        cost=row["cost"],
        billing_cycle=BillingCycle(row["billing_cycle"]),
        status=parse_status(row["status"]),
        start_date=row["start_date"],
        trial_end_date=row["trial_end_date"],
        cancellation_date=row["cancellation_date"],
        last_active_date=row["last_active_date"],
        created_at=row["created_at"],
        updated_at=row["updated_at"],
        normalized_monthly_cost=row["normalized_monthly_cost"],
    )


def _row_to_history(row: Mapping[str, Any]) -> StatusHistoryEntry:
    raw_id = row["subscription_id"]
    return StatusHistoryEntry(
        subscription_id=raw_id if isinstance(raw_id, uuid.UUID) else uuid.UUID(str(raw_id)),
        from_status=parse_status(row["from_status"]),
        to_status=parse_status(row["to_status"]),
        changed_at=row["changed_at"],
    )
