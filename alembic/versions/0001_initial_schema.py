"""initial lottery schema

Revision ID: 0001_initial_schema
Revises:
Create Date: 2026-10-19 09:00:00.000000
"""

from __future__ import annotations

from alembic import op
import sqlalchemy as sa

revision = "0001_initial_schema"
down_revision = None
branch_labels = None
depends_on = None

ID_TYPE = sa.BigInteger().with_variant(sa.Integer(), "sqlite")


def upgrade() -> None:
    op.create_table(
        "lotteries",
        sa.Column("id", ID_TYPE, autoincrement=True, nullable=False),
        sa.Column("name", sa.String(length=100), nullable=True),
        sa.Column("entrance_fee", sa.String(length=78), nullable=False),
        sa.Column("interval_seconds", sa.Integer(), nullable=False),
        sa.Column("gas_lane", sa.String(length=66), nullable=False),
        sa.Column("subscription_id", sa.BigInteger(), nullable=False),
        sa.Column("callback_gas_limit", sa.Integer(), nullable=False),
        sa.Column("request_confirmations", sa.Integer(), nullable=False),
        sa.Column("num_words", sa.Integer(), nullable=False),
        sa.Column("state", sa.String(length=20), nullable=False),
        sa.Column("round_number", sa.Integer(), nullable=False),
        sa.Column("pool_balance", sa.String(length=78), nullable=False),
        sa.Column("last_timestamp", sa.BigInteger(), nullable=False),
        sa.Column("recent_winner", sa.String(length=64), nullable=True),
        sa.Column("outstanding_request_id", sa.String(length=78), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False),
        sa.CheckConstraint(
            "state IN ('open','calculating')", name=op.f("lotteries_state_enum_check")
        ),
        sa.CheckConstraint(
            "interval_seconds >= 0", name=op.f("lotteries_interval_non_negative_check")
        ),
        sa.CheckConstraint("num_words > 0", name=op.f("lotteries_num_words_positive_check")),
        sa.PrimaryKeyConstraint("id", name=op.f("lotteries_pkey")),
    )

    op.create_table(
        "accounts",
        sa.Column("id", ID_TYPE, autoincrement=True, nullable=False),
        sa.Column("address", sa.String(length=64), nullable=False),
        sa.Column("balance", sa.String(length=78), nullable=False),
        sa.Column(
            "accepts_payments", sa.Boolean(), server_default=sa.text("true"), nullable=False
        ),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=True),
        sa.PrimaryKeyConstraint("id", name=op.f("accounts_pkey")),
    )
    op.create_index(op.f("ix_accounts_address"), "accounts", ["address"], unique=True)
    op.create_index(op.f("ix_accounts_id"), "accounts", ["id"], unique=False)

    op.create_table(
        "lottery_entries",
        sa.Column("id", ID_TYPE, autoincrement=True, nullable=False),
        sa.Column("lottery_id", ID_TYPE, nullable=False),
        sa.Column("round_number", sa.Integer(), nullable=False),
        sa.Column("position", sa.Integer(), nullable=False),
        sa.Column("participant", sa.String(length=64), nullable=False),
        sa.Column("amount", sa.String(length=78), nullable=False),
        sa.Column("entered_at", sa.DateTime(timezone=True), nullable=False),
        sa.ForeignKeyConstraint(
            ["lottery_id"],
            ["lotteries.id"],
            name=op.f("lottery_entries_lottery_id_fkey"),
            ondelete="CASCADE",
        ),
        sa.PrimaryKeyConstraint("id", name=op.f("lottery_entries_pkey")),
        sa.UniqueConstraint(
            "lottery_id",
            "round_number",
            "position",
            name="lottery_entries_round_position_key",
        ),
    )
    op.create_index(
        "ix_lottery_entries_round", "lottery_entries", ["lottery_id", "round_number"]
    )
    op.create_index(
        "ix_lottery_entries_participant", "lottery_entries", ["participant"]
    )

    op.create_table(
        "randomness_requests",
        sa.Column("id", ID_TYPE, autoincrement=True, nullable=False),
        sa.Column("lottery_id", ID_TYPE, nullable=False),
        sa.Column("request_id", sa.String(length=78), nullable=False),
        sa.Column("round_number", sa.Integer(), nullable=False),
        sa.Column("status", sa.String(length=20), nullable=False),
        sa.Column("key_hash", sa.String(length=66), nullable=False),
        sa.Column("subscription_id", sa.BigInteger(), nullable=False),
        sa.Column("request_confirmations", sa.Integer(), nullable=False),
        sa.Column("callback_gas_limit", sa.Integer(), nullable=False),
        sa.Column("num_words", sa.Integer(), nullable=False),
        sa.Column("random_words", sa.JSON(), nullable=True),
        sa.Column("winner", sa.String(length=64), nullable=True),
        sa.Column("requested_at_ts", sa.BigInteger(), nullable=False),
        sa.Column("fulfilled_at_ts", sa.BigInteger(), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.CheckConstraint(
            "status IN ('pending','fulfilled','superseded')",
            name=op.f("randomness_requests_status_enum_check"),
        ),
        sa.ForeignKeyConstraint(
            ["lottery_id"],
            ["lotteries.id"],
            name=op.f("randomness_requests_lottery_id_fkey"),
            ondelete="CASCADE",
        ),
        sa.PrimaryKeyConstraint("id", name=op.f("randomness_requests_pkey")),
    )
    op.create_index(
        op.f("ix_randomness_requests_lottery_id"), "randomness_requests", ["lottery_id"]
    )
    op.create_index(
        "ix_randomness_requests_lottery_request",
        "randomness_requests",
        ["lottery_id", "request_id"],
    )

    op.create_table(
        "lottery_events",
        sa.Column("id", ID_TYPE, autoincrement=True, nullable=False),
        sa.Column("lottery_id", ID_TYPE, nullable=False),
        sa.Column("round_number", sa.Integer(), nullable=False),
        sa.Column("name", sa.String(length=32), nullable=False),
        sa.Column("payload", sa.JSON(), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.CheckConstraint(
            "name IN ('Entered','DrawStarted','WinnerPicked')",
            name=op.f("lottery_events_name_enum_check"),
        ),
        sa.ForeignKeyConstraint(
            ["lottery_id"],
            ["lotteries.id"],
            name=op.f("lottery_events_lottery_id_fkey"),
            ondelete="CASCADE",
        ),
        sa.PrimaryKeyConstraint("id", name=op.f("lottery_events_pkey")),
    )
    op.create_index(
        op.f("ix_lottery_events_lottery_id"), "lottery_events", ["lottery_id"]
    )


def downgrade() -> None:
    op.drop_index(op.f("ix_lottery_events_lottery_id"), table_name="lottery_events")
    op.drop_table("lottery_events")
    op.drop_index("ix_randomness_requests_lottery_request", table_name="randomness_requests")
    op.drop_index(op.f("ix_randomness_requests_lottery_id"), table_name="randomness_requests")
    op.drop_table("randomness_requests")
    op.drop_index("ix_lottery_entries_participant", table_name="lottery_entries")
    op.drop_index("ix_lottery_entries_round", table_name="lottery_entries")
    op.drop_table("lottery_entries")
    op.drop_index(op.f("ix_accounts_id"), table_name="accounts")
    op.drop_index(op.f("ix_accounts_address"), table_name="accounts")
    op.drop_table("accounts")
    op.drop_table("lotteries")
