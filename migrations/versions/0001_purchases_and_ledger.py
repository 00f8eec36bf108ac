"""Purchases, balance ledger, ledger credits and audit log.

Revision ID: 0001
Revises:
Create Date: 2026-10-17
"""

import sqlalchemy as sa
from alembic import op

revision = "0001"
down_revision = None
branch_labels = None
depends_on = None

purchase_status = sa.Enum(
    "PENDING", "APPROVED", "FAILED", "CANCELED",
    name="purchase_status_enum",
    create_constraint=True,
)
audit_event = sa.Enum(
    "LINK_CREATED", "STATUS_UPDATED", "BALANCE_CREDITED",
    "DUPLICATE_CREDIT_SKIPPED", "STATUS_CHANGE_IGNORED", "CREDIT_FAILED",
    "UNKNOWN_OUTCOME",
    name="audit_event_enum",
)


def upgrade() -> None:
    op.create_table(
        "purchases",
        sa.Column("reference", sa.String(100), primary_key=True),
        sa.Column("client_transaction_id", sa.String(100), nullable=True),
        sa.Column("beneficiary_id", sa.String(100), nullable=True),
        sa.Column("product_id", sa.String(100), nullable=True),
        sa.Column("amount", sa.Numeric(19, 4), nullable=True),
        sa.Column("status", purchase_status, nullable=False),
        sa.Column("gateway_payload", sa.JSON(), nullable=True),
        sa.Column("created_at", sa.DateTime(), nullable=False),
        sa.Column("updated_at", sa.DateTime(), nullable=False),
    )
    op.create_index(
        "ix_purchases_client_transaction_id", "purchases",
        ["client_transaction_id"], unique=True,
    )
    op.create_index("ix_purchases_beneficiary_id", "purchases", ["beneficiary_id"])

    op.create_table(
        "balance_ledger",
        sa.Column("person_id", sa.String(100), primary_key=True),
        sa.Column("deposited_balance", sa.Numeric(19, 4), nullable=False),
        sa.Column("created_at", sa.DateTime(), nullable=False),
        sa.Column("updated_at", sa.DateTime(), nullable=False),
    )

    op.create_table(
        "ledger_credits",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column(
            "purchase_reference", sa.String(100),
            sa.ForeignKey("purchases.reference"), nullable=False, unique=True,
        ),
        sa.Column(
            "person_id", sa.String(100),
            sa.ForeignKey("balance_ledger.person_id"), nullable=False,
        ),
        sa.Column("amount", sa.Numeric(19, 4), nullable=False),
        sa.Column("balance_after", sa.Numeric(19, 4), nullable=False),
        sa.Column("created_at", sa.DateTime(), nullable=False),
    )
    op.create_index("ix_ledger_credits_person_id", "ledger_credits", ["person_id"])

    op.create_table(
        "audit_log",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("event_type", audit_event, nullable=False),
        sa.Column("purchase_reference", sa.String(100), nullable=True),
        sa.Column("person_id", sa.String(100), nullable=True),
        sa.Column("details", sa.Text(), nullable=False),
        sa.Column("created_at", sa.DateTime(), nullable=False),
    )
    op.create_index(
        "ix_audit_log_purchase_reference", "audit_log", ["purchase_reference"]
    )


def downgrade() -> None:
    op.drop_table("audit_log")
    op.drop_table("ledger_credits")
    op.drop_table("balance_ledger")
    op.drop_table("purchases")
    audit_event.drop(op.get_bind(), checkfirst=True)
    purchase_status.drop(op.get_bind(), checkfirst=True)
