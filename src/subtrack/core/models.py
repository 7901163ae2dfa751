"""Typed values that flow through the subscription core."""

from __future__ import annotations

import uuid
from dataclasses import dataclass
from datetime import date, datetime
from decimal import Decimal
from typing import Any

from subtrack.core.billing import BillingCycle, to_monthly, to_yearly
from subtrack.core.status import SubscriptionStatus


@dataclass(frozen=True)
class SubscriptionInput:
    """A fully validated create/update payload.

    Only ``subtrack.core.validation.parse_subscription_input`` should build
    these; downstream code trusts every field.
    """

    name: str
    category: str
    cost: Decimal
    billing_cycle: BillingCycle
    status: SubscriptionStatus
    start_date: date
    trial_end_date: date | None = None
    cancellation_date: date | None = None
    last_active_date: date | None = None


@dataclass(frozen=True)
class Subscription:
    """A recurring payment commitment.

    ``normalized_monthly_cost`` is filled in from ``cost`` and
    ``billing_cycle`` when constructed with ``None``; after ``__post_init__``
    it is always set. Storage passes the value it persisted at write time so
    reads never recompute it, and ``apply_update`` passes ``None`` to force a
    fresh computation.
    """

    id: uuid.UUID
    name: str
    category: str
    cost: Decimal
    billing_cycle: BillingCycle
    status: SubscriptionStatus
    start_date: date
    trial_end_date: date | None = None
    cancellation_date: date | None = None
    last_active_date: date | None = None
    created_at: datetime | None = None
    updated_at: datetime | None = None
    normalized_monthly_cost: Decimal | None = None

    def __post_init__(self) -> None:
        if self.normalized_monthly_cost is None:
            object.__setattr__(
                self, "normalized_monthly_cost", to_monthly(self.cost, self.billing_cycle)
            )

    @property
    def yearly_cost(self) -> Decimal:
        """What the subscription costs over a year at its current price."""
        return to_yearly(self.cost, self.billing_cycle)

    def to_dict(self) -> dict[str, Any]:
        """Serialize to a JSON-friendly dict (amounts as strings, dates ISO)."""
        return {
            "id": str(self.id),
            "name": self.name,
            "category": self.category,
            "cost": str(self.cost),
            "billing_cycle": str(self.billing_cycle),
            "normalized_monthly_cost": str(self.normalized_monthly_cost),
            "yearly_cost": str(self.yearly_cost),
            "status": str(self.status),
            "start_date": self.start_date.isoformat(),
            "trial_end_date": _iso(self.trial_end_date),
            "cancellation_date": _iso(self.cancellation_date),
            "last_active_date": _iso(self.last_active_date),
            "created_at": _iso(self.created_at),
            "updated_at": _iso(self.updated_at),
        }


@dataclass(frozen=True)
class StatusHistoryEntry:
    """Immutable audit record of one realized status change."""

    subscription_id: uuid.UUID
    from_status: SubscriptionStatus
    to_status: SubscriptionStatus
    changed_at: datetime

    def to_dict(self) -> dict[str, Any]:
        return {
            "subscription_id": str(self.subscription_id),
            "from_status": str(self.from_status),
            "to_status": str(self.to_status),
            "changed_at": self.changed_at.isoformat(),
        }


@dataclass(frozen=True)
class CategoryGroup:
    """Subscriptions sharing a category, with the included-status total."""

    category: str
    subscriptions: list[Subscription]
    total_monthly_cost: Decimal


@dataclass(frozen=True)
class GrandTotals:
    total_monthly: Decimal
    total_yearly: Decimal


def _iso(value: date | datetime | None) -> str | None:
    return value.isoformat() if value is not None else None
