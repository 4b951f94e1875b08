"""create_horamed_tables

Revision ID: horamed_001
Revises:
Create Date: 2026-10-18 00:00:00.000000

"""

from __future__ import annotations

from alembic import op

# revision identifiers, used by Alembic.
revision = "horamed_001"
down_revision = None
branch_labels = ("horamed",)
depends_on = None


def upgrade() -> None:
    op.execute("""
        CREATE TABLE IF NOT EXISTS items (
            id UUID PRIMARY KEY DEFAULT gen_random_uuid(),
            user_id TEXT NOT NULL,
            name TEXT NOT NULL,
            is_active BOOLEAN NOT NULL DEFAULT true,
            treatment_end_date DATE,
            created_at TIMESTAMPTZ NOT NULL DEFAULT now()
        )
    """)
    op.execute("""
        CREATE TABLE IF NOT EXISTS schedules (
            id UUID PRIMARY KEY DEFAULT gen_random_uuid(),
            item_id UUID NOT NULL REFERENCES items(id) ON DELETE CASCADE,
            times JSONB NOT NULL DEFAULT '[]',
            is_active BOOLEAN NOT NULL DEFAULT true,
            created_at TIMESTAMPTZ NOT NULL DEFAULT now()
        )
    """)
    op.execute("""
        CREATE TABLE IF NOT EXISTS dose_instances (
            id UUID PRIMARY KEY DEFAULT gen_random_uuid(),
            item_id UUID NOT NULL REFERENCES items(id) ON DELETE CASCADE,
            due_at TIMESTAMPTZ NOT NULL,
            status TEXT NOT NULL DEFAULT 'scheduled'
                CHECK (status IN ('scheduled', 'taken', 'missed', 'skipped')),
            taken_at TIMESTAMPTZ,
            delay_minutes INTEGER,
            created_at TIMESTAMPTZ NOT NULL DEFAULT now(),
            CONSTRAINT dose_instances_taken_at_matches_status
                CHECK ((status = 'taken') = (taken_at IS NOT NULL))
        )
    """)
    op.execute("""
        CREATE TABLE IF NOT EXISTS stock (
            id UUID PRIMARY KEY DEFAULT gen_random_uuid(),
            item_id UUID NOT NULL UNIQUE REFERENCES items(id) ON DELETE CASCADE,
            units_left INTEGER NOT NULL DEFAULT 0 CHECK (units_left >= 0),
            units_total INTEGER,
            projected_end_at TIMESTAMPTZ,
            last_refill_at TIMESTAMPTZ,
            updated_at TIMESTAMPTZ NOT NULL DEFAULT now()
        )
    """)

    op.execute("""
        CREATE INDEX IF NOT EXISTS idx_items_user_active
            ON items (user_id, is_active)
    """)
    op.execute("""
        CREATE INDEX IF NOT EXISTS idx_schedules_item_active
            ON schedules (item_id, is_active)
    """)
    op.execute("""
        CREATE INDEX IF NOT EXISTS idx_dose_instances_item_status_taken
            ON dose_instances (item_id, status, taken_at)
    """)
    op.execute("""
        CREATE INDEX IF NOT EXISTS idx_dose_instances_item_due
            ON dose_instances (item_id, due_at)
    """)


def downgrade() -> None:
    op.execute("DROP TABLE IF EXISTS stock")
    op.execute("DROP TABLE IF EXISTS dose_instances")
    op.execute("DROP TABLE IF EXISTS schedules")
    op.execute("DROP TABLE IF EXISTS items")
