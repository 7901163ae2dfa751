"""Create and update semantics for subscriptions.

These functions sit between the request boundary and storage. They never
touch storage themselves: callers load the existing entity, pass it in, and
persist whatever comes back.
"""

from __future__ import annotations

import logging
import uuid
from collections.abc import Collection, Mapping
from dataclasses import replace
from datetime import UTC, datetime
from typing import Any

from subtrack.core.models import StatusHistoryEntry, Subscription, SubscriptionInput
from subtrack.core.status import check_transition, parse_status
from subtrack.core.validation import parse_subscription_input

logger = logging.getLogger(__name__)

UPDATABLE_FIELDS = (
    "name",
    "category",
    "cost",
    "billing_cycle",
    "status",
    "start_date",
    "trial_end_date",
    "cancellation_date",
    "last_active_date",
)

_STATUS_DATE_FIELDS = ("trial_end_date", "cancellation_date", "last_active_date")


def new_subscription(
    data: SubscriptionInput,
    subscription_id: uuid.UUID | None = None,
) -> Subscription:
    """Build a fresh ``Subscription`` from a validated input."""
    return Subscription(
        id=subscription_id or uuid.uuid4(),
        name=data.name,
        category=data.category,
        cost=data.cost,
        billing_cycle=data.billing_cycle,
        status=data.status,
        start_date=data.start_date,
        trial_end_date=data.trial_end_date,
        cancellation_date=data.cancellation_date,
        last_active_date=data.last_active_date,
    )


def _status_changes(existing: Subscription, patch: Mapping[str, Any]) -> bool:
    if "status" not in patch:
        return False
    try:
        return parse_status(patch["status"]) is not existing.status
    except ValueError:
        return True


def merge_update(existing: Subscription, patch: Mapping[str, Any]) -> dict[str, Any]:
    """Overlay a partial payload on *existing* and return the merged payload.

    Unknown keys in *patch* are ignored. When the status changes, dates that
    belonged to the old status are not carried over; dates supplied in the
    patch are always kept so they still get validated.
    """
    merged: dict[str, Any] = {
        "name": existing.name,
        "category": existing.category,
        "cost": existing.cost,
        "billing_cycle": str(existing.billing_cycle),
        "status": str(existing.status),
        "start_date": existing.start_date,
        "trial_end_date": existing.trial_end_date,
        "cancellation_date": existing.cancellation_date,
        "last_active_date": existing.last_active_date,
    }
    if _status_changes(existing, patch):
        for key in _STATUS_DATE_FIELDS:
            merged[key] = None
    for key in UPDATABLE_FIELDS:
        if key in patch:
            merged[key] = patch[key]
    return merged


def apply_update(
    existing: Subscription,
    patch: Mapping[str, Any],
    allowed_categories: Collection[str] | None = None,
    now: datetime | None = None,
) -> tuple[Subscription, StatusHistoryEntry | None]:
    """Compute the updated entity for *patch* applied to *existing*.

    The status machine is consulted before anything else, so a forbidden
    transition is reported on its own and the entity is left untouched.

    Returns
    -------
    tuple
        ``(updated, history_entry)`` where ``history_entry`` is ``None``
        unless the status actually changed.

    Raises
    ------
    IllegalTransitionError
        If the requested status change is forbidden.
    SubscriptionValidationError
        If the merged payload breaks any field rule.
    """
    if patch.get("status") is not None:
        try:
            target = parse_status(patch["status"])
        except ValueError:
            target = None
        if target is not None:
            check_transition(existing.status, target)

    data = parse_subscription_input(merge_update(existing, patch), allowed_categories)
    updated = replace(
        existing,
        name=data.name,
        category=data.category,
        cost=data.cost,
        billing_cycle=data.billing_cycle,
        status=data.status,
        start_date=data.start_date,
        trial_end_date=data.trial_end_date,
        cancellation_date=data.cancellation_date,
        last_active_date=data.last_active_date,
        normalized_monthly_cost=None,
    )

    history: StatusHistoryEntry | None = None
    if updated.status is not existing.status:
        history = StatusHistoryEntry(
            subscription_id=existing.id,
            from_status=existing.status,
            to_status=updated.status,
            changed_at=now or datetime.now(UTC),
        )
        logger.info(
            "Subscription %s status %s -> %s",
            existing.id,
            existing.status,
            updated.status,
        )
    return updated, history
