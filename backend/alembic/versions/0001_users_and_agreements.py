"""Users and agreements.

Revision ID: 0001
Revises:
Create Date: 2026-10-18
"""

from __future__ import annotations

import sqlalchemy as sa
from alembic import op
from sqlalchemy.dialects import postgresql

revision = "0001"
down_revision = None
branch_labels = None
depends_on = None

# Enum columns store member names, matching the ORM's ``sa.Enum(PyEnum)``.
_ENUMS = {
    "reminderfrequency": ("DAILY", "WEEKLY", "MONTHLY"),
    "agreementstatus": ("PENDING", "CONFIRMED", "PAID", "OVERDUE", "CANCELLED"),
    "paymenttype": ("UPI", "CASH", "CHEQUE", "BANK_TRANSFER", "OFFLINE"),
    "paymentstatus": ("PENDING", "PAID", "FAILED"),
    "currency": ("INR", "USD", "EUR", "GBP"),
}


def _enum(name: str) -> sa.Enum:
    values = _ENUMS[name]
    return sa.Enum(*values, name=name).with_variant(
        postgresql.ENUM(*values, name=name, create_type=False), "postgresql"
    )


def _timestamps() -> list[sa.Column]:
    return [
        sa.Column(
            "created_at",
            sa.DateTime(timezone=True),
            server_default=sa.func.now(),
            nullable=False,
        ),
        sa.Column(
            "updated_at",
            sa.DateTime(timezone=True),
            server_default=sa.func.now(),
            nullable=False,
        ),
    ]


def upgrade() -> None:
    bind = op.get_bind()
    if bind.dialect.name == "postgresql":
        for name, values in _ENUMS.items():
            postgresql.ENUM(*values, name=name).create(bind, checkfirst=True)

    op.create_table(
        "users",
        sa.Column("id", sa.Uuid(as_uuid=True), primary_key=True),
        sa.Column("name", sa.String(length=100), nullable=False),
        sa.Column("email", sa.String(length=320), nullable=False, unique=True),
        sa.Column("hashed_password", sa.String(length=255), nullable=False),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column("is_admin", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column(
            "email_verified", sa.Boolean(), nullable=False, server_default=sa.false()
        ),
        sa.Column("last_login_at", sa.DateTime(timezone=True)),
        sa.Column("agreement_count", sa.Integer(), nullable=False, server_default="0"),
        sa.Column(
            "email_notifications",
            sa.Boolean(),
            nullable=False,
            server_default=sa.true(),
        ),
        sa.Column(
            "reminder_frequency",
            _enum("reminderfrequency"),
            nullable=False,
            server_default="WEEKLY",
        ),
        *_timestamps(),
    )

    op.create_table(
        "agreements",
        sa.Column("id", sa.Uuid(as_uuid=True), primary_key=True),
        sa.Column("agreement_id", sa.String(length=32), nullable=False),
        sa.Column("share_token", sa.String(length=64), nullable=False),
        sa.Column(
            "owner_id",
            sa.Uuid(as_uuid=True),
            sa.ForeignKey("users.id", ondelete="SET NULL"),
        ),
        sa.Column("title", sa.String(length=200), nullable=False),
        sa.Column("content", sa.Text(), nullable=False),
        sa.Column("party_a_name", sa.String(length=100), nullable=False),
        sa.Column("party_a_contact", sa.String(length=254), nullable=False),
        sa.Column("party_b_name", sa.String(length=100), nullable=False),
        sa.Column("party_b_contact", sa.String(length=254), nullable=False),
        sa.Column("amount", sa.Numeric(12, 2)),
        sa.Column("currency", _enum("currency"), nullable=False),
        sa.Column("proof_hash", sa.String(length=64), nullable=False),
        sa.Column("hash_nonce", sa.String(length=64), nullable=False),
        sa.Column("status", _enum("agreementstatus"), nullable=False),
        sa.Column(
            "is_immutable", sa.Boolean(), nullable=False, server_default=sa.false()
        ),
        sa.Column("confirmed_at", sa.DateTime(timezone=True)),
        sa.Column("cancelled_at", sa.DateTime(timezone=True)),
        sa.Column("due_date", sa.DateTime(timezone=True)),
        sa.Column("payment_type", _enum("paymenttype"), nullable=False),
        sa.Column("payment_status", _enum("paymentstatus"), nullable=False),
        sa.Column("payment_date", sa.DateTime(timezone=True)),
        sa.Column("payment_proof_reference", sa.String(length=500)),
        sa.Column("payment_notes", sa.String(length=500)),
        sa.Column(
            "reminder_enabled", sa.Boolean(), nullable=False, server_default=sa.true()
        ),
        sa.Column(
            "reminder_frequency",
            _enum("reminderfrequency"),
            nullable=False,
            server_default="DAILY",
        ),
        sa.Column(
            "reminder_days_before", sa.Integer(), nullable=False, server_default="3"
        ),
        sa.Column("last_reminder_sent_at", sa.DateTime(timezone=True)),
        *_timestamps(),
    )
    op.create_index(
        "ix_agreements_agreement_id", "agreements", ["agreement_id"], unique=True
    )
    op.create_index(
        "ix_agreements_share_token", "agreements", ["share_token"], unique=True
    )
    op.create_index(
        "ix_agreements_proof_hash", "agreements", ["proof_hash"], unique=True
    )
    op.create_index("ix_agreements_owner_id", "agreements", ["owner_id"])
    op.create_index("ix_agreements_status", "agreements", ["status"])
    op.create_index("ix_agreements_due_date", "agreements", ["due_date"])


def downgrade() -> None:
    op.drop_index("ix_agreements_due_date", table_name="agreements")
    op.drop_index("ix_agreements_status", table_name="agreements")
    op.drop_index("ix_agreements_owner_id", table_name="agreements")
    op.drop_index("ix_agreements_proof_hash", table_name="agreements")
    op.drop_index("ix_agreements_share_token", table_name="agreements")
    op.drop_index("ix_agreements_agreement_id", table_name="agreements")
    op.drop_table("agreements")
    op.drop_table("users")

    bind = op.get_bind()
    if bind.dialect.name == "postgresql":
        for name in reversed(list(_ENUMS)):
            postgresql.ENUM(name=name).drop(bind, checkfirst=True)
