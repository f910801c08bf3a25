"""Initial schema: ledger state, driver registry, trips and notification log.

Revision ID: 001
Create Date: 2026-10-17
"""

from alembic import op
import sqlalchemy as sa


revision = "001"
down_revision = None
branch_labels = None
depends_on = None

# Unsigned 256-bit amounts are stored as decimal strings (max 78 digits)
AMOUNT = sa.String(78)


def upgrade() -> None:
    # ── ledger_state ──────────────────────────────────────────────────
    op.create_table(
        "ledger_state",
        sa.Column("id", sa.Integer, primary_key=True),
        sa.Column("administrator", sa.String(42), nullable=False),
        sa.Column("base_fare", AMOUNT, nullable=False),
        sa.Column("per_km_fare", AMOUNT, nullable=False),
        sa.Column("per_minute_fare", AMOUNT, nullable=False),
        sa.Column("trip_count", sa.BigInteger, default=0, nullable=False),
        sa.Column(
            "created_at",
            sa.DateTime(timezone=True),
            server_default=sa.func.now(),
        ),
        sa.Column(
            "updated_at",
            sa.DateTime(timezone=True),
            server_default=sa.func.now(),
        ),
    )

    # ── drivers ───────────────────────────────────────────────────────
    op.create_table(
        "drivers",
        sa.Column("principal", sa.String(42), primary_key=True),
        sa.Column("is_registered", sa.Boolean, default=False, nullable=False),
        sa.Column(
            "updated_at",
            sa.DateTime(timezone=True),
            server_default=sa.func.now(),
        ),
    )
    op.create_index("idx_drivers_registered", "drivers", ["is_registered"])

    # ── trips ─────────────────────────────────────────────────────────
    op.create_table(
        "trips",
        sa.Column("id", sa.BigInteger, primary_key=True, autoincrement=False),
        sa.Column("driver", sa.String(42), nullable=False),
        sa.Column("distance_meters", AMOUNT, nullable=False),
        sa.Column("duration_seconds", AMOUNT, nullable=False),
        sa.Column("fare", AMOUNT, nullable=False),
        sa.Column("timestamp", sa.BigInteger, nullable=False),
        sa.Column("data_hash", sa.LargeBinary(32), nullable=False),
    )
    op.create_index("idx_trips_driver", "trips", ["driver"])

    # ── ledger_events ─────────────────────────────────────────────────
    op.create_table(
        "ledger_events",
        sa.Column("sequence", sa.BigInteger, primary_key=True, autoincrement=False),
        sa.Column("event_type", sa.String(40), nullable=False),
        sa.Column("payload", sa.JSON, nullable=False),
        sa.Column("timestamp", sa.BigInteger, nullable=False),
    )


def downgrade() -> None:
    op.drop_table("ledger_events")
    op.drop_table("trips")
    op.drop_table("drivers")
    op.drop_table("ledger_state")
