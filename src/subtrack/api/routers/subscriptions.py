"""Subscription endpoints.

CRUD over ``subtrack.tools.subscriptions`` plus the grouped summary view and
per-subscription status history. Domain errors propagate to the handlers in
``subtrack.api.middleware``.
"""

from __future__ import annotations

import logging

import asyncpg
from fastapi import APIRouter, Depends, Query, Response

from subtrack.api.deps import get_config, get_pool
from subtrack.api.models import ApiResponse, PaginatedResponse, PaginationMeta
from subtrack.api.models.subscriptions import (
    CategoryGroupModel,
    GrandTotalsModel,
    StatusHistoryEntryModel,
    SubscriptionCreateRequest,
    SubscriptionModel,
    SubscriptionUpdateRequest,
    SummaryModel,
)
from subtrack.config import AppConfig
from subtrack.tools import subscriptions as store

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/subscriptions", tags=["subscriptions"])


# ---------------------------------------------------------------------------
# GET / (list subscriptions)
# ---------------------------------------------------------------------------


@router.get("", response_model=PaginatedResponse[SubscriptionModel])
async def list_subscriptions(
    status: list[str] | None = Query(None, description="Filter by status (repeatable)"),
    category: list[str] | None = Query(None, description="Filter by category (repeatable)"),
    sort_by: str = Query("name", description="name, monthly_cost, or start_date"),
    sort_order: str = Query("asc", description="asc or desc"),
    offset: int = Query(0, ge=0),
    limit: int = Query(50, ge=1, le=200),
    pool: asyncpg.Pool = Depends(get_pool),
) -> PaginatedResponse[SubscriptionModel]:
    """List subscriptions with optional status/category filters and ordering."""
    result = await store.list_subscriptions(
        pool,
        statuses=status,
        categories=category,
        sort_by=sort_by,
        sort_order=sort_order,
        offset=offset,
        limit=limit,
    )
    return PaginatedResponse[SubscriptionModel](
        data=[SubscriptionModel.from_domain(s) for s in result["data"]],
        meta=PaginationMeta(total=result["total"], offset=offset, limit=limit),
    )


# ---------------------------------------------------------------------------
# POST / (create a subscription)
# ---------------------------------------------------------------------------


@router.post("", response_model=ApiResponse[SubscriptionModel], status_code=201)
async def create_subscription(
    body: SubscriptionCreateRequest,
    pool: asyncpg.Pool = Depends(get_pool),
    config: AppConfig = Depends(get_config),
) -> ApiResponse[SubscriptionModel]:
    sub = await store.create_subscription(
        pool, body.to_payload(), allowed_categories=config.billing.categories
    )
    return ApiResponse[SubscriptionModel](data=SubscriptionModel.from_domain(sub))


# ---------------------------------------------------------------------------
# GET /summary (grouped view and grand totals)
# ---------------------------------------------------------------------------


@router.get("/summary", response_model=ApiResponse[SummaryModel])
async def subscription_summary(
    pool: asyncpg.Pool = Depends(get_pool),
    config: AppConfig = Depends(get_config),
) -> ApiResponse[SummaryModel]:
    """Subscriptions grouped by category with monthly and yearly totals.

    Cancelled subscriptions appear in their group but only statuses in the
    configured inclusion policy count towards the totals.
    """
    groups, totals = await store.subscription_summary(pool, config.billing.included_statuses)
    return ApiResponse[SummaryModel](
        data=SummaryModel(
            categories=[CategoryGroupModel.from_domain(g) for g in groups],
            totals=GrandTotalsModel.from_domain(totals),
            currency_symbol=config.billing.currency_symbol,
        )
    )


# ---------------------------------------------------------------------------
# /{subscription_id}
# ---------------------------------------------------------------------------


@router.get("/{subscription_id}", response_model=ApiResponse[SubscriptionModel])
async def get_subscription(
    subscription_id: str,
    pool: asyncpg.Pool = Depends(get_pool),
) -> ApiResponse[SubscriptionModel]:
    sub = await store.get_subscription(pool, subscription_id)
    return ApiResponse[SubscriptionModel](data=SubscriptionModel.from_domain(sub))


@router.patch("/{subscription_id}", response_model=ApiResponse[SubscriptionModel])
async def update_subscription(
    subscription_id: str,
    body: SubscriptionUpdateRequest,
    pool: asyncpg.Pool = Depends(get_pool),
    config: AppConfig = Depends(get_config),
) -> ApiResponse[SubscriptionModel]:
    """Apply a partial update.

    A forbidden status change is reported as a 422 on the ``status`` field
    and leaves the subscription untouched.
    """
    sub = await store.update_subscription(
        pool,
        subscription_id,
        body.to_payload(),
        allowed_categories=config.billing.categories,
    )
    return ApiResponse[SubscriptionModel](data=SubscriptionModel.from_domain(sub))


@router.delete("/{subscription_id}", status_code=204)
async def delete_subscription(
    subscription_id: str,
    pool: asyncpg.Pool = Depends(get_pool),
) -> Response:
    await store.delete_subscription(pool, subscription_id)
    return Response(status_code=204)


@router.get(
    "/{subscription_id}/history",
    response_model=ApiResponse[list[StatusHistoryEntryModel]],
)
async def subscription_history(
    subscription_id: str,
    pool: asyncpg.Pool = Depends(get_pool),
) -> ApiResponse[list[StatusHistoryEntryModel]]:
    """Status changes for one subscription, oldest first."""
    entries = await store.list_status_history(pool, subscription_id)
    return ApiResponse[list[StatusHistoryEntryModel]](
        data=[StatusHistoryEntryModel.from_domain(e) for e in entries]
    )
