"""deny direct non-owner access to secrets

Revision ID: 20261019_000002
Revises: 20261019_000001
Create Date: 2026-10-19 00:00:02.000000

Roles other than the table owner only see rows whose owner_id matches the
``app.principal_id`` setting of their transaction. The application role owns
the table and is the only role the disclosure gate reads through.
"""

from typing import Sequence, Union

from alembic import op


# revision identifiers, used by Alembic.
revision: str = "20261019_000002"
down_revision: Union[str, None] = "20261019_000001"
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    if op.get_bind().dialect.name != "postgresql":
        return
    op.execute("REVOKE ALL ON TABLE secrets FROM PUBLIC")
    op.execute("ALTER TABLE secrets ENABLE ROW LEVEL SECURITY")
    op.execute(
        "CREATE POLICY secrets_owner_only ON secrets "
        "USING (owner_id = current_setting('app.principal_id', true)) "
        "WITH CHECK (owner_id = current_setting('app.principal_id', true))"
    )


def downgrade() -> None:
    if op.get_bind().dialect.name != "postgresql":
        return
    op.execute("DROP POLICY IF EXISTS secrets_owner_only ON secrets")
    op.execute("ALTER TABLE secrets DISABLE ROW LEVEL SECURITY")
