"""add participant mute

Revision ID: 8d2e61b4c7a9
Revises: 3f1c9a7e2b40
Create Date: 2026-10-19 10:41:27.553810

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa

# revision identifiers, used by Alembic.
revision: str = '8d2e61b4c7a9'
down_revision: Union[str, Sequence[str], None] = '3f1c9a7e2b40'
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    """Upgrade schema."""
    op.add_column(
        'participants',
        sa.Column('is_muted', sa.Boolean(), nullable=False, server_default=sa.false()),
    )
    op.add_column(
        'participants',
        sa.Column('muted_until', sa.DateTime(timezone=True), nullable=True),
    )


def downgrade() -> None:
    """Downgrade schema."""
    op.drop_column('participants', 'muted_until')
    op.drop_column('participants', 'is_muted')
