"""initial schema

Revision ID: 202601150900
Revises:
Create Date: 2026-01-15 09:00:00.000000

"""

from alembic import op
import sqlalchemy as sa


revision = "202601150900"
down_revision = None
branch_labels = None
depends_on = None


def upgrade():
    op.create_table(
        "accounts",
        sa.Column("id", sa.String(length=36), primary_key=True),
        sa.Column("owner_id", sa.String(length=128), nullable=False),
        sa.Column("name", sa.String(length=100), nullable=False),
        sa.Column(
            "kind",
            sa.Enum(
                "checking", "savings", "investment", "individual", name="accountkind"
            ),
            nullable=False,
        ),
        sa.Column("active", sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column("created_at", sa.DateTime(), nullable=False),
        sa.Column("updated_at", sa.DateTime(), nullable=False),
    )
    op.create_index("ix_accounts_owner", "accounts", ["owner_id"])

    op.create_table(
        "categories",
        sa.Column("id", sa.String(length=36), primary_key=True),
        sa.Column("owner_id", sa.String(length=128), nullable=False),
        sa.Column("name", sa.String(length=100), nullable=False),
        sa.Column(
            "direction",
            sa.Enum("credit", "debit", "both", name="categorydirection"),
            nullable=False,
        ),
        sa.Column("created_at", sa.DateTime(), nullable=False),
        sa.Column("updated_at", sa.DateTime(), nullable=False),
        sa.UniqueConstraint(
            "owner_id", "direction", "name", name="uq_category_owner_direction_name"
        ),
    )

    op.create_table(
        "occurrences",
        sa.Column("id", sa.String(length=36), primary_key=True),
        sa.Column("owner_id", sa.String(length=128), nullable=False),
        sa.Column(
            "direction", sa.Enum("credit", "debit", name="direction"), nullable=False
        ),
        sa.Column("description", sa.Text(), nullable=False),
        sa.Column("account_id", sa.String(length=36)),
        sa.Column("category_id", sa.String(length=36)),
        sa.Column("planned_amount", sa.Float(), nullable=False, server_default="0"),
        sa.Column("actual_amount", sa.Float(), nullable=False, server_default="0"),
        sa.Column("competence_month", sa.String(length=7), nullable=False),
        sa.Column(
            "status",
            sa.Enum("planned", "done", "late", name="occurrencestatus"),
            nullable=False,
        ),
        sa.Column(
            "is_recurring", sa.Boolean(), nullable=False, server_default=sa.false()
        ),
        sa.Column("series_id", sa.String(length=36)),
        sa.Column("series_start_month", sa.String(length=7)),
        sa.Column("series_end_month", sa.String(length=7)),
        sa.Column("created_at", sa.DateTime(), nullable=False),
        sa.Column("updated_at", sa.DateTime(), nullable=False),
        sa.CheckConstraint(
            "planned_amount >= 0", name="ck_occurrence_planned_positive"
        ),
        sa.CheckConstraint("actual_amount >= 0", name="ck_occurrence_actual_positive"),
    )
    op.create_index(
        "ix_occurrences_owner_month", "occurrences", ["owner_id", "competence_month"]
    )
    op.create_index("ix_occurrences_series", "occurrences", ["series_id"])


def downgrade():
    op.drop_index("ix_occurrences_series", table_name="occurrences")
    op.drop_index("ix_occurrences_owner_month", table_name="occurrences")
    op.drop_table("occurrences")
    op.drop_table("categories")
    op.drop_index("ix_accounts_owner", table_name="accounts")
    op.drop_table("accounts")
