"""Pydantic models for the subscription endpoints.

Request bodies are intentionally loose: every field accepts whatever JSON
scalar the client sent so that ``subtrack.core.validation`` can report one
message per field instead of pydantic rejecting the body wholesale.
"""

from __future__ import annotations

from typing import Any

from pydantic import BaseModel

from subtrack.core.models import CategoryGroup, GrandTotals, StatusHistoryEntry, Subscription

JsonScalar = str | int | float | bool | None


class SubscriptionModel(BaseModel):
    """A stored subscription. Amounts are strings to preserve precision."""

    id: str
    name: str
    category: str
    cost: str
    billing_cycle: str
    normalized_monthly_cost: str
    yearly_cost: str
    status: str
    start_date: str
    trial_end_date: str | None = None
    cancellation_date: str | None = None
    last_active_date: str | None = None
    created_at: str | None = None
    updated_at: str | None = None

    @classmethod
    def from_domain(cls, sub: Subscription) -> SubscriptionModel:
        return cls(**sub.to_dict())


class StatusHistoryEntryModel(BaseModel):
    """One realized status change."""

    subscription_id: str
    from_status: str
    to_status: str
    changed_at: str

    @classmethod
    def from_domain(cls, entry: StatusHistoryEntry) -> StatusHistoryEntryModel:
        return cls(**entry.to_dict())


class CategoryGroupModel(BaseModel):
    """Subscriptions sharing a category, with the monthly total of included ones."""

    category: str
    subscriptions: list[SubscriptionModel]
    total_monthly_cost: str

    @classmethod
    def from_domain(cls, group: CategoryGroup) -> CategoryGroupModel:
        return cls(
            category=group.category,
            subscriptions=[SubscriptionModel.from_domain(s) for s in group.subscriptions],
            total_monthly_cost=str(group.total_monthly_cost),
        )


class GrandTotalsModel(BaseModel):
    total_monthly: str
    total_yearly: str

    @classmethod
    def from_domain(cls, totals: GrandTotals) -> GrandTotalsModel:
        return cls(
            total_monthly=str(totals.total_monthly),
            total_yearly=str(totals.total_yearly),
        )


class SummaryModel(BaseModel):
    """Dashboard view: category groups plus grand totals."""

    categories: list[CategoryGroupModel]
    totals: GrandTotalsModel
    currency_symbol: str


class SubscriptionCreateRequest(BaseModel):
    """Body for ``POST /api/subscriptions``."""

    name: JsonScalar = None
    category: JsonScalar = None
    cost: JsonScalar = None
    billing_cycle: JsonScalar = None
    status: JsonScalar = None
    start_date: JsonScalar = None
    trial_end_date: JsonScalar = None
    cancellation_date: JsonScalar = None
    last_active_date: JsonScalar = None

    def to_payload(self) -> dict[str, Any]:
        return self.model_dump()


class SubscriptionUpdateRequest(SubscriptionCreateRequest):
    """Body for ``PATCH /api/subscriptions/{id}``.

    Only the fields the client actually sent are applied.
    """

    def to_payload(self) -> dict[str, Any]:
        return self.model_dump(exclude_unset=True)
