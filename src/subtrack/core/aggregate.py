"""Category grouping, grand totals, and list filtering for subscriptions.

Totals only count subscriptions whose status is in the inclusion policy.
The default policy, ``INCLUDED_STATUSES``, excludes ``cancelled``: cancelled
items stay visible in their category for the historical record but do not
contribute to spend.
"""

from __future__ import annotations

from collections.abc import Collection, Iterable
from decimal import Decimal

from subtrack.core.billing import round2
from subtrack.core.models import CategoryGroup, GrandTotals, Subscription
from subtrack.core.status import SubscriptionStatus, parse_status

INCLUDED_STATUSES: frozenset[SubscriptionStatus] = frozenset(
    {SubscriptionStatus.ACTIVE, SubscriptionStatus.FREE_TRIAL}
)

VALID_SORT_KEYS = {"name", "monthly_cost", "start_date"}
VALID_SORT_ORDERS = {"asc", "desc"}

_ZERO = Decimal("0.00")


def _included(
    sub: Subscription,
    included_statuses: Collection[SubscriptionStatus],
) -> bool:
    return sub.status in included_statuses


def sum_monthly(
    subs: Iterable[Subscription],
    included_statuses: Collection[SubscriptionStatus] = INCLUDED_STATUSES,
) -> Decimal:
    """Sum the already-rounded normalized monthly costs of included subscriptions."""
    total = sum(
        (s.normalized_monthly_cost for s in subs if _included(s, included_statuses)),
        _ZERO,
    )
    return round2(total)


def group_by_category(
    subs: Iterable[Subscription],
    included_statuses: Collection[SubscriptionStatus] = INCLUDED_STATUSES,
) -> list[CategoryGroup]:
    """Group subscriptions by exact category, sorted by category name.

    Each group lists every member regardless of status; only
    ``total_monthly_cost`` honours the inclusion policy.
    """
    buckets: dict[str, list[Subscription]] = {}
    for sub in subs:
        buckets.setdefault(sub.category, []).append(sub)

    return [
        CategoryGroup(
            category=category,
            subscriptions=members,
            total_monthly_cost=sum_monthly(members, included_statuses),
        )
        for category, members in sorted(buckets.items())
    ]


def grand_totals(
    subs: Iterable[Subscription],
    included_statuses: Collection[SubscriptionStatus] = INCLUDED_STATUSES,
) -> GrandTotals:
    """Compute monthly and yearly spend across all included subscriptions."""
    total_monthly = sum_monthly(subs, included_statuses)
    return GrandTotals(
        total_monthly=total_monthly,
        total_yearly=round2(total_monthly * 12),
    )


def filter_subscriptions(
    subs: Iterable[Subscription],
    statuses: Collection[SubscriptionStatus | str] | None = None,
    categories: Collection[str] | None = None,
) -> list[Subscription]:
    """Keep subscriptions matching any of *statuses* and any of *categories*.

    An empty or ``None`` filter matches everything.
    """
    wanted_statuses = {parse_status(s) for s in statuses} if statuses else None
    wanted_categories = set(categories) if categories else None
    return [
        s
        for s in subs
        if (wanted_statuses is None or s.status in wanted_statuses)
        and (wanted_categories is None or s.category in wanted_categories)
    ]


def sort_subscriptions(
    subs: Iterable[Subscription],
    sort_by: str = "name",
    sort_order: str = "asc",
) -> list[Subscription]:
    """Return *subs* ordered by name, monthly cost, or start date.

    Raises
    ------
    ValueError
        If *sort_by* or *sort_order* is not supported.
    """
    if sort_by not in VALID_SORT_KEYS:
        raise ValueError(
            f"Unsupported sort_by value: {sort_by!r}. "
            f"Must be one of: {', '.join(sorted(VALID_SORT_KEYS))}"
        )
    if sort_order not in VALID_SORT_ORDERS:
        raise ValueError(f"Unsupported sort_order value: {sort_order!r}. Must be 'asc' or 'desc'")

    if sort_by == "name":
        key = lambda s: (s.name.lower(), str(s.id))  # noqa: E731
    elif sort_by == "monthly_cost":
        key = lambda s: (s.normalized_monthly_cost, str(s.id))  # noqa: E731
    else:
        key = lambda s: (s.start_date, str(s.id))  # noqa: E731
    return sorted(subs, key=key, reverse=sort_order == "desc")
