"""Shared fixtures for unit tests that talk to a mocked asyncpg pool.

The mock pool answers the handful of statements ``subtrack.tools`` issues:
INSERT/UPDATE ... RETURNING echo back the written values as a row, while
SELECTs return whatever the test supplied.
"""

from __future__ import annotations

import uuid
from collections.abc import Callable
from datetime import UTC, date, datetime
from decimal import ROUND_HALF_UP, Decimal
from typing import Any
from unittest.mock import AsyncMock, MagicMock

import pytest

NOW = datetime(2024, 9, 1, 12, 0, tzinfo=UTC)


def subscription_row(
    *,
    id: Any = None,
    name: str = "Netflix",
    category: str = "Streaming",
    cost: str = "15.99",
    billing_cycle: str = "monthly",
    normalized_monthly_cost: str | None = None,
    status: str = "active",
    start_date: date = date(2024, 1, 1),
    trial_end_date: date | None = None,
    cancellation_date: date | None = None,
    last_active_date: date | None = None,
) -> dict[str, Any]:
    """Build a dict shaped like a ``subscriptions`` row."""
    if normalized_monthly_cost is None:
        divisor = 1 if billing_cycle == "monthly" else 12
        monthly = (Decimal(cost) / divisor).quantize(Decimal("0.01"), rounding=ROUND_HALF_UP)
    else:
        monthly = Decimal(normalized_monthly_cost)
    return {
        "id": uuid.UUID(str(id)) if id else uuid.uuid4(),
        "name": name,
        "category": category,
        "cost": Decimal(cost),
        "billing_cycle": billing_cycle,
        "normalized_monthly_cost": monthly,
        "status": status,
        "start_date": start_date,
        "trial_end_date": trial_end_date,
        "cancellation_date": cancellation_date,
        "last_active_date": last_active_date,
        "created_at": NOW,
        "updated_at": NOW,
    }


def _row_from_write_args(args: tuple[Any, ...]) -> dict[str, Any]:
    """Rebuild a row from the positional args of the INSERT/UPDATE statements."""
    (
        sub_id,
        name,
        category,
        cost,
        billing_cycle,
        monthly,
        status,
        start,
        trial_end,
        cancelled_on,
        last_active,
    ) = args
    return {
        "id": sub_id,
        "name": name,
        "category": category,
        "cost": cost,
        "billing_cycle": billing_cycle,
        "normalized_monthly_cost": monthly,
        "status": status,
        "start_date": start,
        "trial_end_date": trial_end,
        "cancellation_date": cancelled_on,
        "last_active_date": last_active,
        "created_at": NOW,
        "updated_at": NOW,
    }


def _make_pool(
    *,
    rows: list[dict] | None = None,
    existing: dict | None = None,
    history: list[dict] | None = None,
) -> MagicMock:
    """Build a mocked asyncpg pool.

    ``pool.conn`` is the connection handed out by ``pool.acquire()``.
    """

    async def _fetchrow(query: str, *args: Any):
        if "INSERT" in query or "UPDATE subscriptions" in query:
            return _row_from_write_args(args)
        return existing

    async def _fetch(query: str, *args: Any):
        if "subscription_status_history" in query:
            return history or []
        return rows or []

    conn = AsyncMock()
    conn.fetchrow = AsyncMock(side_effect=_fetchrow)
    conn.execute = AsyncMock(return_value="INSERT 0 1")

    tx = MagicMock()
    tx.__aenter__ = AsyncMock(return_value=None)
    tx.__aexit__ = AsyncMock(return_value=False)
    conn.transaction = MagicMock(return_value=tx)

    acquire_cm = MagicMock()
    acquire_cm.__aenter__ = AsyncMock(return_value=conn)
    acquire_cm.__aexit__ = AsyncMock(return_value=False)

    pool = MagicMock()
    pool.acquire = MagicMock(return_value=acquire_cm)
    pool.fetchrow = AsyncMock(side_effect=_fetchrow)
    pool.fetch = AsyncMock(side_effect=_fetch)
    pool.fetchval = AsyncMock(return_value=1 if existing is not None else None)
    pool.execute = AsyncMock(return_value="DELETE 1" if existing is not None else "DELETE 0")
    pool.conn = conn
    return pool


@pytest.fixture
def make_pool() -> Callable[..., MagicMock]:
    """Factory fixture for mocked asyncpg pools."""
    return _make_pool
