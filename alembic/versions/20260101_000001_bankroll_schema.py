"""Create users, bankrolls and bets.

Revision ID: 20260101_000001
Revises:
Create Date: 2026-01-01 00:00:01.000000
"""

from collections.abc import Sequence

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql

# revision identifiers, used by Alembic.
revision: str = "20260101_000001"
down_revision: str | None = None
branch_labels: Sequence[str] | None = None
depends_on: Sequence[str] | None = None


def _timestamps() -> list[sa.Column]:
    return [
        sa.Column(
            "created_at",
            sa.DateTime(timezone=True),
            server_default=sa.text("timezone('utc', now())"),
            nullable=False,
        ),
        sa.Column(
            "updated_at",
            sa.DateTime(timezone=True),
            server_default=sa.text("timezone('utc', now())"),
            nullable=False,
        ),
    ]


def upgrade() -> None:
    op.create_table(
        "users",
        sa.Column("id", postgresql.UUID(as_uuid=True), primary_key=True, nullable=False),
        *_timestamps(),
        sa.Column("full_name", sa.String(length=255), nullable=False),
        sa.Column("email", sa.String(length=255), nullable=False),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.text("true")),
        sa.Column("telegram_id", sa.BigInteger(), nullable=True),
        sa.Column("telegram_username", sa.String(length=255), nullable=True),
        sa.UniqueConstraint("email", name="uq_users_email"),
    )
    op.create_index(op.f("ix_users_telegram_id"), "users", ["telegram_id"], unique=True)

    op.create_table(
        "bankrolls",
        sa.Column("id", postgresql.UUID(as_uuid=True), primary_key=True, nullable=False),
        *_timestamps(),
        sa.Column(
            "user_id",
            postgresql.UUID(as_uuid=True),
            sa.ForeignKey("users.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("name", sa.String(length=120), nullable=False),
        sa.Column("status", sa.String(length=16), nullable=False, server_default="Ativa"),
        sa.Column("is_default", sa.Boolean(), nullable=False, server_default=sa.text("false")),
    )
    op.create_index(op.f("ix_bankrolls_user_id"), "bankrolls", ["user_id"])

    op.create_table(
        "bets",
        sa.Column("id", postgresql.UUID(as_uuid=True), primary_key=True, nullable=False),
        *_timestamps(),
        sa.Column(
            "bankroll_id",
            postgresql.UUID(as_uuid=True),
            sa.ForeignKey("bankrolls.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("sport", sa.String(length=120), nullable=False),
        sa.Column("event", sa.String(length=512), nullable=False),
        sa.Column("tournament", sa.Text(), nullable=True),
        sa.Column("country", sa.Text(), nullable=True),
        sa.Column("market", sa.Text(), nullable=False),
        sa.Column("bet_type", sa.Text(), nullable=False, server_default="Simples"),
        sa.Column("stake", sa.Float(), nullable=False),
        sa.Column("odds", sa.Float(), nullable=False),
        sa.Column("bonus", sa.Float(), nullable=False, server_default="0"),
        sa.Column("event_date", sa.DateTime(timezone=True), nullable=False),
        sa.Column("tipster", sa.String(length=120), nullable=True),
        sa.Column("status", sa.String(length=32), nullable=False, server_default="Pendente"),
        sa.Column("bookmaker", sa.String(length=120), nullable=False),
        sa.Column("obtained_return", sa.Float(), nullable=True),
        sa.Column("raw_selections", sa.Text(), nullable=True),
    )
    op.create_index(op.f("ix_bets_bankroll_id"), "bets", ["bankroll_id"])


def downgrade() -> None:
    op.drop_index(op.f("ix_bets_bankroll_id"), table_name="bets")
    op.drop_table("bets")
    op.drop_index(op.f("ix_bankrolls_user_id"), table_name="bankrolls")
    op.drop_table("bankrolls")
    op.drop_index(op.f("ix_users_telegram_id"), table_name="users")
    op.drop_table("users")
