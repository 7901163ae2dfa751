"""subscription_tables

Revision ID: subscriptions_001
Revises:
Create Date: 2026-10-18 00:00:00.000000

"""

from __future__ import annotations

from alembic import op

# revision identifiers, used by Alembic.
revision = "subscriptions_001"
down_revision = None
branch_labels = ("subscriptions",)
depends_on = None


def upgrade() -> None:
    op.execute("CREATE EXTENSION IF NOT EXISTS pgcrypto")

    op.execute("""
        CREATE TABLE IF NOT EXISTS subscriptions (
            id                      UUID PRIMARY KEY DEFAULT gen_random_uuid(),
            name                    TEXT NOT NULL CHECK (btrim(name) <> ''),
            category                TEXT NOT NULL CHECK (btrim(category) <> ''),
            cost                    NUMERIC(14, 2) NOT NULL CHECK (cost >= 0),
            billing_cycle           TEXT NOT NULL
                                        CHECK (billing_cycle IN ('monthly', 'yearly')),
            normalized_monthly_cost NUMERIC(14, 2) NOT NULL,
            status                  TEXT NOT NULL
                                        CHECK (status IN ('active', 'free_trial', 'cancelled')),
            start_date              DATE NOT NULL,
            trial_end_date          DATE,
            cancellation_date       DATE,
            last_active_date        DATE,
            created_at              TIMESTAMPTZ NOT NULL DEFAULT now(),
            updated_at              TIMESTAMPTZ NOT NULL DEFAULT now(),
            CONSTRAINT ck_subscriptions_trial_dates
                CHECK (trial_end_date IS NULL OR status = 'free_trial'),
            CONSTRAINT ck_subscriptions_cancel_dates
                CHECK (
                    (cancellation_date IS NULL AND last_active_date IS NULL)
                    OR status = 'cancelled'
                ),
            CONSTRAINT ck_subscriptions_dates_after_start
                CHECK (
                    (trial_end_date IS NULL OR trial_end_date >= start_date)
                    AND (cancellation_date IS NULL OR cancellation_date >= start_date)
                    AND (last_active_date IS NULL OR last_active_date >= start_date)
                )
        )
    """)
    op.execute("""
        CREATE INDEX IF NOT EXISTS idx_subscriptions_category
            ON subscriptions (category)
    """)
    op.execute("""
        CREATE INDEX IF NOT EXISTS idx_subscriptions_status
            ON subscriptions (status)
    """)

    op.execute("""
        CREATE TABLE IF NOT EXISTS subscription_status_history (
            id              UUID PRIMARY KEY DEFAULT gen_random_uuid(),
            subscription_id UUID NOT NULL REFERENCES subscriptions(id) ON DELETE CASCADE,
            from_status     TEXT NOT NULL
                                CHECK (from_status IN ('active', 'free_trial', 'cancelled')),
            to_status       TEXT NOT NULL
                                CHECK (to_status IN ('active', 'free_trial', 'cancelled')),
            changed_at      TIMESTAMPTZ NOT NULL DEFAULT now(),
            CONSTRAINT ck_status_history_realized CHECK (from_status <> to_status)
        )
    """)
    op.execute("""
        CREATE INDEX IF NOT EXISTS idx_status_history_subscription
            ON subscription_status_history (subscription_id, changed_at)
    """)


def downgrade() -> None:
    op.execute("DROP TABLE IF EXISTS subscription_status_history")
    op.execute("DROP TABLE IF EXISTS subscriptions")
