"""Subscription storage tools.

Re-exports the public storage functions so that
``from subtrack.tools import X`` works as a stable API.
"""

from __future__ import annotations

from subtrack.tools.seed import DEMO_SUBSCRIPTIONS, seed_subscriptions
from subtrack.tools.subscriptions import (
    create_subscription,
    delete_subscription,
    get_subscription,
    list_status_history,
    list_subscriptions,
    subscription_summary,
    subscription_totals,
    subscriptions_by_category,
    update_subscription,
)

__all__ = [
    "DEMO_SUBSCRIPTIONS",
    "create_subscription",
    "delete_subscription",
    "get_subscription",
    "list_status_history",
    "list_subscriptions",
    "seed_subscriptions",
    "subscription_summary",
    "subscription_totals",
    "subscriptions_by_category",
    "update_subscription",
]
