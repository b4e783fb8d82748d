"""enable row level security on client accounts

Revision ID: 20261019_01
Revises: 20261019_00
Create Date: 2026-10-19 09:40:00

"""
from __future__ import annotations

from alembic import op


# revision identifiers, used by Alembic.
revision = "20261019_01"
down_revision = "20261019_00"
branch_labels = None
depends_on = None


def upgrade() -> None:
    op.execute("ALTER TABLE client_accounts ENABLE ROW LEVEL SECURITY")
    op.execute(
        """
        CREATE POLICY client_accounts_organization_isolation ON client_accounts
        USING (organization_id = current_setting('app.current_organization_id', true)::uuid)
        WITH CHECK (organization_id = current_setting('app.current_organization_id', true)::uuid)
        """
    )


def downgrade() -> None:
    op.execute("DROP POLICY IF EXISTS client_accounts_organization_isolation ON client_accounts")
    op.execute("ALTER TABLE client_accounts DISABLE ROW LEVEL SECURITY")
