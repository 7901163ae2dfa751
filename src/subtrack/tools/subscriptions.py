"""Subscription storage tools backed by asyncpg.

Every function takes an ``asyncpg.Pool`` explicitly. Validation, the status
machine, and aggregation live in ``subtrack.core``; these functions only
load and persist.
"""

from __future__ import annotations

import logging
import uuid
from collections.abc import Collection, Mapping
from typing import Any

import asyncpg

from subtrack.core.aggregate import (
    INCLUDED_STATUSES,
    VALID_SORT_KEYS,
    VALID_SORT_ORDERS,
    filter_subscriptions,
    grand_totals,
    group_by_category,
    sort_subscriptions,
)
from subtrack.core.errors import IllegalTransitionError, SubscriptionNotFoundError
from subtrack.core.lifecycle import apply_update, new_subscription
from subtrack.core.logging import subscription_context
from subtrack.core.metrics import SubscriptionMetrics
from subtrack.core.models import CategoryGroup, GrandTotals, StatusHistoryEntry, Subscription
from subtrack.core.status import SubscriptionStatus
from subtrack.core.validation import parse_subscription_input
from subtrack.tools._helpers import (
    SUBSCRIPTION_COLUMNS,
    _coerce_id,
    _row_to_history,
    _row_to_subscription,
)

logger = logging.getLogger(__name__)

_metrics = SubscriptionMetrics()


async def create_subscription(
    pool: asyncpg.Pool,
    payload: Mapping[str, Any],
    allowed_categories: Collection[str] | None = None,
) -> Subscription:
    """Validate *payload* and insert a new subscription.

    Parameters
    ----------
    pool:
        asyncpg connection pool.
    payload:
        Raw field values (``name``, ``category``, ``cost``, ``billing_cycle``,
        ``status``, ``start_date`` and the status-specific dates).
    allowed_categories:
        Optional closed set of category names. ``None`` accepts free text.

    Returns
    -------
    Subscription
        The stored entity, including server-assigned timestamps.

    Raises
    ------
    SubscriptionValidationError
        If any field rule fails. Nothing is written.
    """
    data = parse_subscription_input(payload, allowed_categories)
    sub = new_subscription(data)

    row = await pool.fetchrow(
        f"""
        INSERT INTO subscriptions (
            id, name, category, cost, billing_cycle, normalized_monthly_cost,
            status, start_date, trial_end_date, cancellation_date, last_active_date
        )
        VALUES ($1, $2, $3, $4, $5, $6, $7, $8, $9, $10, $11)
        RETURNING {SUBSCRIPTION_COLUMNS}
        """,
        sub.id,
        sub.name,
        sub.category,
        sub.cost,
        str(sub.billing_cycle),
        sub.normalized_monthly_cost,
        str(sub.status),
        sub.start_date,
        sub.trial_end_date,
        sub.cancellation_date,
        sub.last_active_date,
    )

    _metrics.subscription_created(str(sub.status), str(sub.billing_cycle))
    with subscription_context(sub.id, status=str(sub.status)):
        logger.info("Created subscription %s (%s, %s)", sub.id, sub.name, sub.status)
    return _row_to_subscription(row)


async def get_subscription(
    pool: asyncpg.Pool,
    subscription_id: str | uuid.UUID,
) -> Subscription:
    """Fetch one subscription by id.

    Raises
    ------
    SubscriptionNotFoundError
        If no subscription has that id (malformed ids included).
    """
    sub_uuid = _coerce_id(subscription_id)
    row = await pool.fetchrow(
        f"SELECT {SUBSCRIPTION_COLUMNS} FROM subscriptions WHERE id = $1",
        sub_uuid,
    )
    if row is None:
        raise SubscriptionNotFoundError(subscription_id)
    return _row_to_subscription(row)


async def _fetch_all(pool: asyncpg.Pool) -> list[Subscription]:
    rows = await pool.fetch(f"SELECT {SUBSCRIPTION_COLUMNS} FROM subscriptions")
    return [_row_to_subscription(r) for r in rows]


async def list_subscriptions(
    pool: asyncpg.Pool,
    statuses: Collection[SubscriptionStatus | str] | None = None,
    categories: Collection[str] | None = None,
    sort_by: str = "name",
    sort_order: str = "asc",
    offset: int = 0,
    limit: int | None = None,
) -> dict[str, Any]:
    """List subscriptions with optional filtering, ordering, and paging.

    Parameters
    ----------
    pool:
        asyncpg connection pool.
    statuses:
        Keep only these statuses. Empty or ``None`` keeps all.
    categories:
        Keep only these exact categories. Empty or ``None`` keeps all.
    sort_by:
        One of ``name``, ``monthly_cost``, ``start_date``.
    sort_order:
        ``asc`` or ``desc``.
    offset:
        Number of matching rows to skip.
    limit:
        Maximum rows to return. ``None`` returns every remaining row.

    Returns
    -------
    dict
        ``{"data": [Subscription, ...], "total": int}`` where ``total`` counts
        all matches before paging.

    Raises
    ------
    ValueError
        If a sort option or status filter is not recognised.
    """
    if sort_by not in VALID_SORT_KEYS or sort_order not in VALID_SORT_ORDERS:
        # Fail before touching the database.
        sort_subscriptions([], sort_by, sort_order)
    if offset < 0:
        raise ValueError(f"offset must be >= 0, got {offset}")
    if limit is not None and limit < 0:
        raise ValueError(f"limit must be >= 0, got {limit}")

    subs = filter_subscriptions(await _fetch_all(pool), statuses, categories)
    ordered = sort_subscriptions(subs, sort_by, sort_order)
    end = None if limit is None else offset + limit
    return {"data": ordered[offset:end], "total": len(ordered)}


async def update_subscription(
    pool: asyncpg.Pool,
    subscription_id: str | uuid.UUID,
    patch: Mapping[str, Any],
    allowed_categories: Collection[str] | None = None,
) -> Subscription:
    """Apply a partial update, recording a history entry on status change.

    The row is locked for the duration of the transaction so concurrent
    updates to the same subscription serialize; each one validates its
    transition against the status the previous one committed.

    Parameters
    ----------
    pool:
        asyncpg connection pool.
    subscription_id:
        Id of the subscription to update.
    patch:
        Only the fields being changed. Unknown keys are ignored.
    allowed_categories:
        Optional closed set of category names.

    Raises
    ------
    SubscriptionNotFoundError
        If the subscription does not exist.
    IllegalTransitionError
        If the status change is forbidden. Nothing is written.
    SubscriptionValidationError
        If the merged record breaks a field rule. Nothing is written.
    """
    sub_uuid = _coerce_id(subscription_id)

    with subscription_context(sub_uuid):
        async with pool.acquire() as conn:
            async with conn.transaction():
                row = await conn.fetchrow(
                    f"SELECT {SUBSCRIPTION_COLUMNS} FROM subscriptions WHERE id = $1 FOR UPDATE",
                    sub_uuid,
                )
                if row is None:
                    raise SubscriptionNotFoundError(subscription_id)
                existing = _row_to_subscription(row)

                try:
                    updated, history = apply_update(existing, patch, allowed_categories)
                except IllegalTransitionError as exc:
                    _metrics.transition_rejected(exc.from_status, exc.to_status)
                    logger.info(
                        "Rejected status change for %s: %s -> %s",
                        sub_uuid,
                        exc.from_status,
                        exc.to_status,
                    )
                    raise

                row = await conn.fetchrow(
                    f"""
                    UPDATE subscriptions
                    SET name = $2,
                        category = $3,
                        cost = $4,
                        billing_cycle = $5,
                        normalized_monthly_cost = $6,
                        status = $7,
                        start_date = $8,
                        trial_end_date = $9,
                        cancellation_date = $10,
                        last_active_date = $11,
                        updated_at = now()
                    WHERE id = $1
                    RETURNING {SUBSCRIPTION_COLUMNS}
                    """,
                    sub_uuid,
                    updated.name,
                    updated.category,
                    updated.cost,
                    str(updated.billing_cycle),
                    updated.normalized_monthly_cost,
                    str(updated.status),
                    updated.start_date,
                    updated.trial_end_date,
                    updated.cancellation_date,
                    updated.last_active_date,
                )

                if history is not None:
                    await conn.execute(
                        """
                        INSERT INTO subscription_status_history
                            (subscription_id, from_status, to_status, changed_at)
                        VALUES ($1, $2, $3, $4)
                        """,
                        history.subscription_id,
                        str(history.from_status),
                        str(history.to_status),
                        history.changed_at,
                    )

    if history is not None:
        _metrics.status_transition(str(history.from_status), str(history.to_status))
    return _row_to_subscription(row)


async def delete_subscription(
    pool: asyncpg.Pool,
    subscription_id: str | uuid.UUID,
) -> None:
    """Delete a subscription and, by cascade, its status history.

    Raises
    ------
    SubscriptionNotFoundError
        If the subscription does not exist.
    """
    sub_uuid = _coerce_id(subscription_id)
    result = await pool.execute("DELETE FROM subscriptions WHERE id = $1", sub_uuid)
    if result == "DELETE 0":
        raise SubscriptionNotFoundError(subscription_id)
    with subscription_context(sub_uuid):
        logger.info("Deleted subscription %s", sub_uuid)


async def list_status_history(
    pool: asyncpg.Pool,
    subscription_id: str | uuid.UUID,
) -> list[StatusHistoryEntry]:
    """Return the status changes of one subscription, oldest first.

    Raises
    ------
    SubscriptionNotFoundError
        If the subscription does not exist.
    """
    sub_uuid = _coerce_id(subscription_id)
    exists = await pool.fetchval("SELECT 1 FROM subscriptions WHERE id = $1", sub_uuid)
    if exists is None:
        raise SubscriptionNotFoundError(subscription_id)

    rows = await pool.fetch(
        """
        SELECT subscription_id, from_status, to_status, changed_at
        FROM subscription_status_history
        WHERE subscription_id = $1
        ORDER BY changed_at ASC, id ASC
        """,
        sub_uuid,
    )
    return [_row_to_history(r) for r in rows]


async def subscriptions_by_category(
    pool: asyncpg.Pool,
    included_statuses: Collection[SubscriptionStatus] = INCLUDED_STATUSES,
) -> list[CategoryGroup]:
    """Group every stored subscription by category with per-group totals."""
    return group_by_category(await _fetch_all(pool), included_statuses)


async def subscription_totals(
    pool: asyncpg.Pool,
    included_statuses: Collection[SubscriptionStatus] = INCLUDED_STATUSES,
) -> GrandTotals:
    """Monthly and yearly spend across all included subscriptions."""
    return grand_totals(await _fetch_all(pool), included_statuses)


async def subscription_summary(
    pool: asyncpg.Pool,
    included_statuses: Collection[SubscriptionStatus] = INCLUDED_STATUSES,
) -> tuple[list[CategoryGroup], GrandTotals]:
    """Category groups and grand totals computed from a single read."""
    subs = await _fetch_all(pool)
    return (
        group_by_category(subs, included_statuses),
        grand_totals(subs, included_statuses),
    )
