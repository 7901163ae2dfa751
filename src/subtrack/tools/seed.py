"""Demo data for a fresh subtrack database."""

from __future__ import annotations

import logging
from typing import Any

import asyncpg

from subtrack.core.models import Subscription
from subtrack.tools.subscriptions import create_subscription

logger = logging.getLogger(__name__)

DEMO_SUBSCRIPTIONS: list[dict[str, Any]] = [
    {
        "name": "Netflix",
        "category": "streaming",
        "cost": "15.99",
        "billing_cycle": "monthly",
        "status": "active",
        "start_date": "2024-01-01",
    },
    {
        "name": "Spotify",
        "category": "music",
        "cost": "9.99",
        "billing_cycle": "monthly",
        "status": "active",
        "start_date": "2024-01-15",
    },
    {
        "name": "Adobe Creative Cloud",
        "category": "software",
        "cost": "599.99",
        "billing_cycle": "yearly",
        "status": "active",
        "start_date": "2024-03-01",
    },
    {
        "name": "Apple TV+",
        "category": "streaming",
        "cost": "8.99",
        "billing_cycle": "monthly",
        "status": "free_trial",
        "start_date": "2024-06-01",
        "trial_end_date": "2024-07-01",
    },
]


async def seed_subscriptions(pool: asyncpg.Pool, replace: bool = True) -> list[Subscription]:
    """Insert the demo subscriptions, clearing existing rows first when *replace*.

    Rows go through ``create_subscription`` so they are validated and
    normalized exactly like user-created ones.
    """
    if replace:
        await pool.execute("DELETE FROM subscriptions")

    created = [await create_subscription(pool, payload) for payload in DEMO_SUBSCRIPTIONS]
    logger.info("Seeded %d demo subscriptions", len(created))
    return created
