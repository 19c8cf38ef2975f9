"""Initial schema - permission_grants ledger and append-only audit_log.

Revision ID: 001
Revises:
Create Date: 2026-10-19

"""

from collections.abc import Sequence

from alembic import op
import sqlalchemy as sa

# revision identifiers, used by Alembic.
revision: str = "001"
down_revision: str | None = None
branch_labels: str | Sequence[str] | None = None
depends_on: str | Sequence[str] | None = None


def upgrade() -> None:
    # Timestamps are UNIX epoch seconds.
    op.create_table(
        "permission_grants",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("username", sa.Text(), nullable=False),
        sa.Column("command", sa.Text(), nullable=False),
        sa.Column("granted_at", sa.Float(), nullable=False),
        sa.Column("expires_at", sa.Float(), nullable=False),
        sa.Column("granted_by", sa.Text(), nullable=False),
        sa.Column("last_used", sa.Float(), nullable=True),
        sa.Column("revoked", sa.Boolean(), nullable=False, server_default=sa.text("0")),
        sa.Column("revoked_at", sa.Float(), nullable=True),
        sa.Column("revoked_by", sa.Text(), nullable=True),
    )
    op.create_index("ix_permission_grants_username", "permission_grants", ["username"])
    op.create_index("ix_permission_grants_expires_at", "permission_grants", ["expires_at"])
    op.create_index(
        "ux_permission_grants_unrevoked_pair",
        "permission_grants",
        ["username", "command"],
        unique=True,
        sqlite_where=sa.text("revoked = 0"),
    )

    op.create_table(
        "audit_log",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("timestamp", sa.Float(), nullable=False),
        sa.Column("username", sa.Text(), nullable=False),
        sa.Column("command", sa.Text(), nullable=False),
        sa.Column("action", sa.String(16), nullable=False),
        sa.Column("details", sa.Text(), nullable=True),
    )
    op.create_index("ix_audit_log_username", "audit_log", ["username"])

    op.execute("""
        CREATE TRIGGER audit_log_no_update
        BEFORE UPDATE ON audit_log
        BEGIN
            SELECT RAISE(ABORT, 'audit_log is append-only: UPDATE not allowed');
        END
    """)
    op.execute("""
        CREATE TRIGGER audit_log_no_delete
        BEFORE DELETE ON audit_log
        BEGIN
            SELECT RAISE(ABORT, 'audit_log is append-only: DELETE not allowed');
        END
    """)
    op.execute("""
        CREATE TRIGGER permission_grants_no_delete
        BEFORE DELETE ON permission_grants
        BEGIN
            SELECT RAISE(ABORT, 'permission_grants rows are audit records: DELETE not allowed');
        END
    """)


def downgrade() -> None:
    op.execute("DROP TRIGGER IF EXISTS permission_grants_no_delete")
    op.execute("DROP TRIGGER IF EXISTS audit_log_no_delete")
    op.execute("DROP TRIGGER IF EXISTS audit_log_no_update")
    op.drop_index("ix_audit_log_username", table_name="audit_log")
    op.drop_table("audit_log")
    op.drop_index("ux_permission_grants_unrevoked_pair", table_name="permission_grants")
    op.drop_index("ix_permission_grants_expires_at", table_name="permission_grants")
    op.drop_index("ix_permission_grants_username", table_name="permission_grants")
    op.drop_table("permission_grants")
