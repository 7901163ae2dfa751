"""Tests for the subscription API endpoints.

Verifies the API contract (status codes, envelopes, field-level errors,
filters) against the real app factory with a mocked asyncpg pool.
"""

from __future__ import annotations

import uuid
from datetime import date

import httpx
import pytest

from subtrack.api.app import create_app
from subtrack.api.deps import get_pool
from subtrack.config import AppConfig, BillingConfig
from subtrack.core.errors import ILLEGAL_TRANSITION_MESSAGE
from tests.conftest import NOW, subscription_row

pytestmark = pytest.mark.unit


def _make_app(pool, config: AppConfig | None = None):
    app = create_app(config)
    app.dependency_overrides[get_pool] = lambda: pool
    return app


def _client(app) -> httpx.AsyncClient:
    return httpx.AsyncClient(transport=httpx.ASGITransport(app=app), base_url="http://test")


_CREATE_BODY = {
    "name": "Netflix",
    "category": "Streaming",
    "cost": 15.99,
    "billing_cycle": "monthly",
    "status": "active",
    "start_date": "2024-01-01",
}


# ---------------------------------------------------------------------------
# Health
# ---------------------------------------------------------------------------


async def test_health(make_pool):
    async with _client(_make_app(make_pool())) as client:
        response = await client.get("/api/health")
    assert response.status_code == 200
    assert response.json() == {"status": "ok"}


# ---------------------------------------------------------------------------
# POST /api/subscriptions
# ---------------------------------------------------------------------------


async def test_create_returns_201_with_normalized_cost(make_pool):
    async with _client(_make_app(make_pool())) as client:
        response = await client.post(
            "/api/subscriptions",
            json={**_CREATE_BODY, "cost": "120", "billing_cycle": "yearly"},
        )

    assert response.status_code == 201
    data = response.json()["data"]
    assert data["cost"] == "120.00"
    assert data["normalized_monthly_cost"] == "10.00"
    assert data["status"] == "active"
    assert data["trial_end_date"] is None


async def test_create_invalid_returns_field_map(make_pool):
    pool = make_pool()
    async with _client(_make_app(pool)) as client:
        response = await client.post(
            "/api/subscriptions",
            json={**_CREATE_BODY, "name": "", "cost": -3, "status": "free_trial"},
        )

    assert response.status_code == 422
    error = response.json()["error"]
    assert error["code"] == "VALIDATION_ERROR"
    assert error["details"] == {
        "name": "Name is required",
        "cost": "Cost must be a number greater than 0",
        "trial_end_date": "Trial end date is required for Free Trial status",
    }
    pool.fetchrow.assert_not_awaited()


@pytest.mark.parametrize("cost", ["1e30", "1000000000000"])
async def test_create_oversized_cost_is_field_error(make_pool, cost):
    pool = make_pool()
    async with _client(_make_app(pool)) as client:
        response = await client.post("/api/subscriptions", json={**_CREATE_BODY, "cost": cost})

    assert response.status_code == 422
    assert response.json()["error"]["details"] == {"cost": "Cost is too large"}
    pool.fetchrow.assert_not_awaited()


async def test_create_missing_fields(make_pool):
    async with _client(_make_app(make_pool())) as client:
        response = await client.post("/api/subscriptions", json={})

    assert response.status_code == 422
    assert set(response.json()["error"]["details"]) == {
        "name",
        "category",
        "cost",
        "billing_cycle",
        "status",
        "start_date",
    }


async def test_create_respects_configured_categories(make_pool):
    config = AppConfig(billing=BillingConfig(categories=("Streaming", "Music")))
    async with _client(_make_app(make_pool(), config)) as client:
        response = await client.post(
            "/api/subscriptions", json={**_CREATE_BODY, "category": "Gaming"}
        )

    assert response.status_code == 422
    assert response.json()["error"]["details"] == {
        "category": "Category must be one of: Music, Streaming"
    }


# ---------------------------------------------------------------------------
# GET /api/subscriptions
# ---------------------------------------------------------------------------


async def test_list_paginated_and_filtered(make_pool):
    rows = [
        subscription_row(name="Spotify", category="Music", cost="9.99"),
        subscription_row(name="Netflix", category="Streaming", cost="15.99"),
        subscription_row(name="Disney+", category="Streaming", cost="7.99"),
    ]
    async with _client(_make_app(make_pool(rows=rows))) as client:
        response = await client.get(
            "/api/subscriptions",
            params=[("category", "Streaming"), ("sort_by", "monthly_cost"), ("limit", "1")],
        )

    assert response.status_code == 200
    body = response.json()
    assert [s["name"] for s in body["data"]] == ["Disney+"]
    assert body["meta"] == {"total": 2, "offset": 0, "limit": 1}


async def test_list_repeated_status_filter(make_pool):
    rows = [
        subscription_row(name="A"),
        subscription_row(name="B", status="free_trial", trial_end_date=date(2024, 2, 1)),
        subscription_row(
            name="C",
            status="cancelled",
            cancellation_date=date(2024, 3, 1),
            last_active_date=date(2024, 3, 1),
        ),
    ]
    async with _client(_make_app(make_pool(rows=rows))) as client:
        response = await client.get(
            "/api/subscriptions", params=[("status", "active"), ("status", "free_trial")]
        )

    assert [s["name"] for s in response.json()["data"]] == ["A", "B"]


async def test_list_bad_sort_is_400(make_pool):
    async with _client(_make_app(make_pool())) as client:
        response = await client.get("/api/subscriptions", params={"sort_by": "price"})

    assert response.status_code == 400
    assert response.json()["error"]["code"] == "BAD_REQUEST"


# ---------------------------------------------------------------------------
# GET /api/subscriptions/summary
# ---------------------------------------------------------------------------


async def test_summary_excludes_cancelled_from_totals(make_pool):
    rows = [
        subscription_row(name="A", category="Streaming", cost="10.00"),
        subscription_row(
            name="B",
            category="Streaming",
            cost="5.00",
            status="cancelled",
            cancellation_date=date(2024, 5, 1),
            last_active_date=date(2024, 5, 1),
        ),
        subscription_row(name="C", category="Music", cost="96.00", billing_cycle="yearly"),
    ]
    async with _client(_make_app(make_pool(rows=rows))) as client:
        response = await client.get("/api/subscriptions/summary")

    assert response.status_code == 200
    data = response.json()["data"]
    assert [(c["category"], c["total_monthly_cost"]) for c in data["categories"]] == [
        ("Music", "8.00"),
        ("Streaming", "10.00"),
    ]
    assert len(data["categories"][1]["subscriptions"]) == 2
    assert data["totals"] == {"total_monthly": "18.00", "total_yearly": "216.00"}
    assert data["currency_symbol"] == "£"


async def test_summary_empty(make_pool):
    async with _client(_make_app(make_pool())) as client:
        response = await client.get("/api/subscriptions/summary")

    data = response.json()["data"]
    assert data["categories"] == []
    assert data["totals"] == {"total_monthly": "0.00", "total_yearly": "0.00"}


# ---------------------------------------------------------------------------
# /api/subscriptions/{id}
# ---------------------------------------------------------------------------


async def test_get_detail(make_pool):
    row = subscription_row()
    async with _client(_make_app(make_pool(existing=row))) as client:
        response = await client.get(f"/api/subscriptions/{row['id']}")

    assert response.status_code == 200
    assert response.json()["data"]["id"] == str(row["id"])
    assert response.json()["data"]["yearly_cost"] == "191.88"


async def test_get_detail_cost_breakdown(make_pool):
    row = subscription_row(cost="599.99", billing_cycle="yearly")
    async with _client(_make_app(make_pool(existing=row))) as client:
        response = await client.get(f"/api/subscriptions/{row['id']}")

    data = response.json()["data"]
    assert data["normalized_monthly_cost"] == "50.00"
    assert data["yearly_cost"] == "599.99"


@pytest.mark.parametrize("sub_id", [str(uuid.uuid4()), "not-a-uuid"])
async def test_get_missing_is_404(make_pool, sub_id):
    async with _client(_make_app(make_pool())) as client:
        response = await client.get(f"/api/subscriptions/{sub_id}")

    assert response.status_code == 404
    assert response.json()["error"]["code"] == "SUBSCRIPTION_NOT_FOUND"


async def test_patch_cancelled_to_free_trial_is_rejected(make_pool):
    row = subscription_row(
        status="cancelled",
        cancellation_date=date(2024, 5, 1),
        last_active_date=date(2024, 5, 1),
    )
    pool = make_pool(existing=row)
    async with _client(_make_app(pool)) as client:
        response = await client.patch(
            f"/api/subscriptions/{row['id']}",
            json={"status": "free_trial", "trial_end_date": "2024-07-01"},
        )

    assert response.status_code == 422
    error = response.json()["error"]
    assert error["code"] == "ILLEGAL_STATUS_TRANSITION"
    assert error["details"] == {"status": ILLEGAL_TRANSITION_MESSAGE}
    pool.conn.execute.assert_not_awaited()


async def test_patch_partial_update(make_pool):
    row = subscription_row()
    async with _client(_make_app(make_pool(existing=row))) as client:
        response = await client.patch(
            f"/api/subscriptions/{row['id']}", json={"cost": "240", "billing_cycle": "yearly"}
        )

    assert response.status_code == 200
    data = response.json()["data"]
    assert data["name"] == "Netflix"
    assert data["normalized_monthly_cost"] == "20.00"


async def test_patch_missing_is_404(make_pool):
    async with _client(_make_app(make_pool())) as client:
        response = await client.patch(f"/api/subscriptions/{uuid.uuid4()}", json={"name": "x"})

    assert response.status_code == 404


async def test_delete(make_pool):
    row = subscription_row()
    async with _client(_make_app(make_pool(existing=row))) as client:
        response = await client.delete(f"/api/subscriptions/{row['id']}")

    assert response.status_code == 204
    assert response.content == b""


async def test_delete_missing_is_404(make_pool):
    async with _client(_make_app(make_pool())) as client:
        response = await client.delete(f"/api/subscriptions/{uuid.uuid4()}")

    assert response.status_code == 404


async def test_history(make_pool):
    row = subscription_row()
    history = [
        {
            "subscription_id": row["id"],
            "from_status": "free_trial",
            "to_status": "active",
            "changed_at": NOW,
        }
    ]
    async with _client(_make_app(make_pool(existing=row, history=history))) as client:
        response = await client.get(f"/api/subscriptions/{row['id']}/history")

    assert response.status_code == 200
    assert response.json()["data"] == [
        {
            "subscription_id": str(row["id"]),
            "from_status": "free_trial",
            "to_status": "active",
            "changed_at": NOW.isoformat(),
        }
    ]


async def test_unexpected_error_is_500_envelope(make_pool):
    pool = make_pool()
    pool.fetch.side_effect = RuntimeError("boom")
    async with _client(_make_app(pool)) as client:
        response = await client.get("/api/subscriptions")

    assert response.status_code == 500
    assert response.json()["error"]["code"] == "INTERNAL_ERROR"
