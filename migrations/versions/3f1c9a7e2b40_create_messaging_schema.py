"""create messaging schema

Revision ID: 3f1c9a7e2b40
Revises:
Create Date: 2026-10-18 09:12:04.118302

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa

# revision identifiers, used by Alembic.
revision: str = '3f1c9a7e2b40'
down_revision: Union[str, Sequence[str], None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    """Upgrade schema."""
    # Step 1: Create the function (required before triggers)
    op.execute('''
        CREATE OR REPLACE FUNCTION update_updated_at_column()
        RETURNS TRIGGER AS $$
        BEGIN
            NEW.updated_at = NOW();
            RETURN NEW;
        END;
        $$ language 'plpgsql'
    ''')

    # Step 2: Create tables
    op.create_table(
        'conversations',
        sa.Column('id', sa.Uuid(), primary_key=True),
        sa.Column('type', sa.String(20), nullable=False, server_default='direct'),
        sa.Column('name', sa.String(255)),
        sa.Column('creator_id', sa.String(64)),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.Column('updated_at', sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.CheckConstraint(
            "type IN ('direct', 'group', 'mentorship', 'support')",
            name='ck_conversations_type',
        ),
    )

    op.create_table(
        'participants',
        sa.Column('id', sa.Uuid(), primary_key=True),
        sa.Column('conversation_id', sa.Uuid(), sa.ForeignKey('conversations.id'), nullable=False),
        sa.Column('user_id', sa.String(64), nullable=False),
        sa.Column('role', sa.String(20), nullable=False, server_default='member'),
        sa.Column('unread_count', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('last_read_at', sa.DateTime(timezone=True)),
        sa.Column('has_left', sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column('left_at', sa.DateTime(timezone=True)),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.UniqueConstraint('conversation_id', 'user_id', name='uq_participant_conversation_user'),
        sa.CheckConstraint("role IN ('admin', 'member')", name='ck_participants_role'),
    )

    op.create_table(
        'messages',
        sa.Column('id', sa.Uuid(), primary_key=True),
        sa.Column('conversation_id', sa.Uuid(), sa.ForeignKey('conversations.id'), nullable=False),
        sa.Column('sender_id', sa.String(64), nullable=False),
        sa.Column('content', sa.Text(), nullable=False),
        sa.Column('message_type', sa.String(20), nullable=False, server_default='text'),
        sa.Column('is_read', sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column('read_at', sa.DateTime(timezone=True)),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
    )

    # Step 3: Create indexes
    op.create_index('ix_participants_user_id', 'participants', ['user_id'])
    op.create_index('idx_messages_conversation_created', 'messages', ['conversation_id', 'created_at'])

    # Step 4: Create triggers (only after tables exist)
    op.execute('''
        CREATE TRIGGER update_conversations_updated_at
            BEFORE UPDATE ON conversations
            FOR EACH ROW EXECUTE FUNCTION update_updated_at_column()
    ''')


def downgrade() -> None:
    """Downgrade schema."""
    op.execute('DROP TRIGGER IF EXISTS update_conversations_updated_at ON conversations')
    op.drop_index('idx_messages_conversation_created', table_name='messages')
    op.drop_index('ix_participants_user_id', table_name='participants')
    op.drop_table('messages')
    op.drop_table('participants')
    op.drop_table('conversations')
    op.execute('DROP FUNCTION IF EXISTS update_updated_at_column()')
