"""
Initial schema: systems, credentials, polling status and telemetry tables.

Creates systems, vendor_credentials and polling_status, the point-in-time
readings table with composite primary key (system_id, inverter_time), and
interval_readings keyed on (system_id, interval_end).

Revision ID: 001
Revises: None
Create Date: 2026-10-12

CHANGELOG:
- 2026-10-12: Initial creation

TODO:
- None
"""

from collections.abc import Sequence

import sqlalchemy as sa
from alembic import op

# Revision identifiers used by Alembic.
revision: str = "001"
down_revision: str | None = None
branch_labels: str | Sequence[str] | None = None
depends_on: str | Sequence[str] | None = None


def _system_fk() -> sa.Column:
    return sa.Column(
        "system_id",
        sa.Integer(),
        sa.ForeignKey("systems.id", ondelete="CASCADE"),
        nullable=False,
    )


def upgrade() -> None:
    """Create all LiveOne tables."""
    op.create_table(
        "systems",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("owner_id", sa.Text(), nullable=True),
        sa.Column("vendor_type", sa.Text(), nullable=False),
        sa.Column("vendor_site_id", sa.Text(), nullable=False),
        sa.Column(
            "status", sa.Text(), nullable=False, server_default=sa.text("'active'")
        ),
        sa.Column("display_name", sa.Text(), nullable=False),
        sa.Column("location", sa.JSON(), nullable=True),
        sa.Column(
            "timezone_offset_min",
            sa.Integer(),
            nullable=False,
            server_default=sa.text("600"),
        ),
        sa.Column(
            "created_at",
            sa.DateTime(timezone=True),
            nullable=False,
            server_default=sa.func.now(),
        ),
    )
    op.create_index("ix_systems_owner_id", "systems", ["owner_id"])
    op.create_index("ix_systems_status", "systems", ["status"])

    op.create_table(
        "vendor_credentials",
        _system_fk(),
        sa.Column("vendor_type", sa.Text(), nullable=False),
        sa.Column("data", sa.JSON(), nullable=False),
        sa.Column(
            "updated_at",
            sa.DateTime(timezone=True),
            nullable=False,
            server_default=sa.func.now(),
        ),
        sa.PrimaryKeyConstraint("system_id"),
    )

    op.create_table(
        "polling_status",
        _system_fk(),
        sa.Column("last_poll_time", sa.DateTime(timezone=True), nullable=True),
        sa.Column("last_success_time", sa.DateTime(timezone=True), nullable=True),
        sa.Column("last_error_time", sa.DateTime(timezone=True), nullable=True),
        sa.Column("last_error", sa.Text(), nullable=True),
        sa.Column(
            "consecutive_errors", sa.Integer(), nullable=False, server_default="0"
        ),
        sa.Column("total_polls", sa.Integer(), nullable=False, server_default="0"),
        sa.Column(
            "successful_polls", sa.Integer(), nullable=False, server_default="0"
        ),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=True),
        sa.PrimaryKeyConstraint("system_id"),
    )

    op.create_table(
        "readings",
        _system_fk(),
        sa.Column("inverter_time", sa.DateTime(timezone=True), nullable=False),
        sa.Column("received_time", sa.DateTime(timezone=True), nullable=False),
        sa.Column("delay_seconds", sa.Integer(), nullable=True),
        sa.Column("solar_w", sa.Double(), nullable=True),
        sa.Column("solar_local_w", sa.Double(), nullable=True),
        sa.Column("solar_remote_w", sa.Double(), nullable=True),
        sa.Column("load_w", sa.Double(), nullable=True),
        sa.Column("battery_w", sa.Double(), nullable=True),
        sa.Column("grid_w", sa.Double(), nullable=True),
        sa.Column("battery_soc", sa.Double(), nullable=True),
        sa.Column("fault_code", sa.Text(), nullable=True),
        sa.Column("fault_timestamp", sa.BigInteger(), nullable=True),
        sa.Column("generator_status", sa.Integer(), nullable=True),
        sa.Column("solar_kwh_total", sa.Double(), nullable=True),
        sa.Column("load_kwh_total", sa.Double(), nullable=True),
        sa.Column("battery_in_kwh_total", sa.Double(), nullable=True),
        sa.Column("battery_out_kwh_total", sa.Double(), nullable=True),
        sa.Column("grid_in_kwh_total", sa.Double(), nullable=True),
        sa.Column("grid_out_kwh_total", sa.Double(), nullable=True),
        sa.PrimaryKeyConstraint("system_id", "inverter_time"),
    )

    op.create_table(
        "interval_readings",
        _system_fk(),
        sa.Column("interval_end", sa.BigInteger(), nullable=False),
        sa.Column("solar_w_avg", sa.Double(), nullable=True),
        sa.Column("solar_w_min", sa.Double(), nullable=True),
        sa.Column("solar_w_max", sa.Double(), nullable=True),
        sa.Column("solar_interval_wh", sa.Double(), nullable=True),
        sa.Column(
            "sample_count", sa.Integer(), nullable=False, server_default=sa.text("1")
        ),
        sa.Column(
            "created_at",
            sa.DateTime(timezone=True),
            nullable=False,
            server_default=sa.func.now(),
        ),
        sa.PrimaryKeyConstraint("system_id", "interval_end"),
    )


def downgrade() -> None:
    """Drop all LiveOne tables in dependency order."""
    op.drop_table("interval_readings")
    op.drop_table("readings")
    op.drop_table("polling_status")
    op.drop_table("vendor_credentials")
    op.drop_index("ix_systems_status", table_name="systems")
    op.drop_index("ix_systems_owner_id", table_name="systems")
    op.drop_table("systems")
