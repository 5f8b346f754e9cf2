"""create accounts, credit ledger and crm records

Revision ID: 202610170001
Revises:
Create Date: 2026-10-17 00:00:00
"""

from collections.abc import Sequence

from alembic import op
import sqlalchemy as sa


revision: str = "202610170001"
down_revision: str | None = None
branch_labels: Sequence[str] | None = None
depends_on: Sequence[str] | None = None


def upgrade() -> None:
    op.create_table(
        "account",
        sa.Column("id", sa.Uuid(), nullable=False),
        sa.Column("full_name", sa.Text(), nullable=False),
        sa.Column("email", sa.String(length=320), nullable=False),
        sa.Column("password_hash", sa.String(length=255), nullable=False),
        sa.Column("company_name", sa.Text(), nullable=True),
        sa.Column("industry", sa.Text(), nullable=True),
        sa.Column("role", sa.Text(), nullable=True),
        sa.Column("credits", sa.Integer(), server_default="0", nullable=False),
        sa.Column("status", sa.String(length=32), server_default="active", nullable=False),
        sa.Column("verified", sa.Boolean(), server_default="false", nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False),
        sa.CheckConstraint("credits >= 0", name="ck_account_credits_nonnegative"),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("email"),
    )

    op.create_table(
        "credit_ledger_entry",
        sa.Column("id", sa.Uuid(), nullable=False),
        sa.Column("account_id", sa.Uuid(), nullable=False),
        sa.Column("sequence", sa.Integer(), nullable=False),
        sa.Column("amount", sa.Integer(), nullable=False),
        sa.Column("balance_after", sa.Integer(), nullable=False),
        sa.Column("entry_type", sa.String(length=16), nullable=False),
        sa.Column("description", sa.Text(), nullable=False),
        sa.Column("operation", sa.String(length=64), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.CheckConstraint("amount <> 0", name="ck_credit_ledger_entry_nonzero"),
        sa.CheckConstraint(
            "(entry_type = 'credit' AND amount > 0) OR (entry_type = 'debit' AND amount < 0)",
            name="ck_credit_ledger_entry_signed",
        ),
        sa.CheckConstraint("balance_after >= 0", name="ck_credit_ledger_entry_balance_nonnegative"),
        sa.ForeignKeyConstraint(["account_id"], ["account.id"], ondelete="RESTRICT"),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("account_id", "sequence", name="uq_credit_ledger_entry_sequence"),
    )
    op.create_index(
        "ix_credit_ledger_entry_account_created",
        "credit_ledger_entry",
        ["account_id", "created_at"],
        unique=False,
    )

    op.create_table(
        "crm_company",
        sa.Column("id", sa.Uuid(), nullable=False),
        sa.Column("account_id", sa.Uuid(), nullable=False),
        sa.Column("name", sa.Text(), nullable=False),
        sa.Column("industry", sa.Text(), nullable=True),
        sa.Column("website", sa.Text(), nullable=True),
        sa.Column("size", sa.String(length=64), nullable=True),
        sa.Column("location", sa.Text(), nullable=True),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("phone", sa.String(length=64), nullable=True),
        sa.Column("linkedin_url", sa.Text(), nullable=True),
        sa.Column("employee_count", sa.Integer(), nullable=True),
        sa.Column("is_enriched", sa.Boolean(), server_default="false", nullable=False),
        sa.Column("salesforce_id", sa.String(length=64), nullable=True),
        sa.Column("hubspot_id", sa.String(length=64), nullable=True),
        sa.Column("crm_source", sa.String(length=32), nullable=True),
        sa.Column("crm_last_synced", sa.DateTime(timezone=True), nullable=True),
        sa.Column("imported_from_crm", sa.Boolean(), server_default="false", nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False),
        sa.ForeignKeyConstraint(["account_id"], ["account.id"], ondelete="CASCADE"),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_crm_company_account", "crm_company", ["account_id"], unique=False)

    op.create_table(
        "crm_contact",
        sa.Column("id", sa.Uuid(), nullable=False),
        sa.Column("account_id", sa.Uuid(), nullable=False),
        sa.Column("full_name", sa.Text(), nullable=False),
        sa.Column("email", sa.Text(), nullable=True),
        sa.Column("phone", sa.String(length=64), nullable=True),
        sa.Column("job_title", sa.Text(), nullable=True),
        sa.Column("company_id", sa.Uuid(), nullable=True),
        sa.Column("company_name", sa.Text(), nullable=True),
        sa.Column("industry", sa.Text(), nullable=True),
        sa.Column("location", sa.Text(), nullable=True),
        sa.Column("linkedin_url", sa.Text(), nullable=True),
        sa.Column("notes", sa.Text(), nullable=True),
        sa.Column("tags", sa.JSON(), nullable=False),
        sa.Column("is_enriched", sa.Boolean(), server_default="false", nullable=False),
        sa.Column("email_verified", sa.Boolean(), server_default="false", nullable=False),
        sa.Column("enrichment_source", sa.String(length=64), nullable=True),
        sa.Column("enrichment_date", sa.DateTime(timezone=True), nullable=True),
        sa.Column("salesforce_id", sa.String(length=64), nullable=True),
        sa.Column("hubspot_id", sa.String(length=64), nullable=True),
        sa.Column("crm_source", sa.String(length=32), nullable=True),
        sa.Column("crm_last_synced", sa.DateTime(timezone=True), nullable=True),
        sa.Column("imported_from_crm", sa.Boolean(), server_default="false", nullable=False),
        sa.Column("connection_sent", sa.Boolean(), server_default="false", nullable=False),
        sa.Column("connection_sent_date", sa.DateTime(timezone=True), nullable=True),
        sa.Column("message_sent", sa.Boolean(), server_default="false", nullable=False),
        sa.Column("message_sent_date", sa.DateTime(timezone=True), nullable=True),
        sa.Column("email_sent", sa.Boolean(), server_default="false", nullable=False),
        sa.Column("last_contacted", sa.DateTime(timezone=True), nullable=True),
        sa.Column("last_interaction_date", sa.DateTime(timezone=True), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False),
        sa.ForeignKeyConstraint(["account_id"], ["account.id"], ondelete="CASCADE"),
        sa.ForeignKeyConstraint(["company_id"], ["crm_company.id"], ondelete="SET NULL"),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_crm_contact_account", "crm_contact", ["account_id"], unique=False)


def downgrade() -> None:
    op.drop_index("ix_crm_contact_account", table_name="crm_contact")
    op.drop_table("crm_contact")
    op.drop_index("ix_crm_company_account", table_name="crm_company")
    op.drop_table("crm_company")
    op.drop_index("ix_credit_ledger_entry_account_created", table_name="credit_ledger_entry")
    op.drop_table("credit_ledger_entry")
    op.drop_table("account")
