"""Create chat schema

Revision ID: 8c1f2e7a4b90
Revises:
Create Date: 2026-10-19 10:02:11.418233

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql

# revision identifiers, used by Alembic.
revision: str = '8c1f2e7a4b90'
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def _timestamps() -> list[sa.Column]:
    return [
        sa.Column('created_at', sa.DateTime(), nullable=True),
        sa.Column('updated_at', sa.DateTime(), nullable=True),
    ]


def upgrade() -> None:
    op.create_table(
        'users',
        sa.Column('id', postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column('clerk_user_id', sa.String(length=255), nullable=False),
        sa.Column('email', sa.String(length=255), nullable=False),
        sa.Column('username', sa.String(length=100), nullable=True),
        sa.Column('is_active', sa.Boolean(), nullable=True),
        sa.Column('is_online', sa.Boolean(), server_default='false', nullable=False),
        sa.Column('last_active_at', sa.DateTime(), nullable=True),
        *_timestamps(),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('clerk_user_id'),
        sa.UniqueConstraint('email'),
    )

    op.create_table(
        'profiles',
        sa.Column('id', postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column('user_id', postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column('avatar', sa.String(length=1024), nullable=True),
        sa.Column('bio', sa.Text(), nullable=True),
        *_timestamps(),
        sa.ForeignKeyConstraint(['user_id'], ['users.id'], ondelete='CASCADE'),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('user_id'),
    )

    op.create_table(
        'activities',
        sa.Column('id', postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column('title', sa.String(length=255), nullable=False),
        sa.Column('description', sa.Text(), nullable=True),
        sa.Column('max_participants', sa.Integer(), nullable=True),
        sa.Column('created_by_id', postgresql.UUID(as_uuid=True), nullable=True),
        sa.Column('chat_id', postgresql.UUID(as_uuid=True), nullable=True),
        *_timestamps(),
        sa.ForeignKeyConstraint(['created_by_id'], ['users.id'], ondelete='SET NULL'),
        sa.PrimaryKeyConstraint('id'),
    )

    op.create_table(
        'activity_participants',
        sa.Column('id', postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column('activity_id', postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column('user_id', postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column('joined_at', sa.DateTime(), nullable=True),
        *_timestamps(),
        sa.ForeignKeyConstraint(['activity_id'], ['activities.id'], ondelete='CASCADE'),
        sa.ForeignKeyConstraint(['user_id'], ['users.id'], ondelete='CASCADE'),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('activity_id', 'user_id', name='uq_activity_participant_user'),
    )
    op.create_index('ix_activity_participants_activity_id', 'activity_participants', ['activity_id'])

    # Enum columns store member names
    op.create_table(
        'chats',
        sa.Column('id', postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column('type', sa.Enum('DIRECT', 'GROUP', name='chattype'), nullable=False),
        sa.Column('direct_key', sa.String(length=80), nullable=True),
        sa.Column('group_name', sa.String(length=255), nullable=True),
        sa.Column('group_description', sa.Text(), nullable=True),
        sa.Column('group_max_members', sa.Integer(), nullable=True),
        sa.Column('related_activity_id', postgresql.UUID(as_uuid=True), nullable=True),
        sa.Column('created_by_id', postgresql.UUID(as_uuid=True), nullable=True),
        sa.Column('last_message_id', postgresql.UUID(as_uuid=True), nullable=True),
        sa.Column('last_message_at', sa.DateTime(), nullable=True),
        sa.Column('message_seq', sa.Integer(), server_default='0', nullable=False),
        sa.Column('is_active', sa.Boolean(), server_default='true', nullable=False),
        *_timestamps(),
        sa.ForeignKeyConstraint(['related_activity_id'], ['activities.id'], ondelete='SET NULL'),
        sa.ForeignKeyConstraint(['created_by_id'], ['users.id'], ondelete='SET NULL'),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('direct_key'),
    )
    op.create_index('ix_chats_last_message_at', 'chats', ['last_message_at'])

    op.create_table(
        'chat_participants',
        sa.Column('id', postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column('chat_id', postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column('user_id', postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column('role', sa.Enum('OWNER', 'ADMIN', 'MEMBER', name='participantrole'), nullable=True),
        sa.Column('is_muted', sa.Boolean(), server_default='false', nullable=False),
        sa.Column('joined_at', sa.DateTime(), nullable=True),
        sa.Column('position', sa.Integer(), server_default='0', nullable=False),
        sa.Column('last_read_seq', sa.Integer(), server_default='0', nullable=False),
        sa.Column('unread_count', sa.Integer(), server_default='0', nullable=False),
        *_timestamps(),
        sa.ForeignKeyConstraint(['chat_id'], ['chats.id'], ondelete='CASCADE'),
        sa.ForeignKeyConstraint(['user_id'], ['users.id'], ondelete='CASCADE'),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('chat_id', 'user_id', name='uq_chat_participant_user'),
    )
    op.create_index('ix_chat_participants_chat_id', 'chat_participants', ['chat_id'])
    op.create_index('ix_chat_participants_user_id', 'chat_participants', ['user_id'])

    op.create_table(
        'chat_messages',
        sa.Column('id', postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column('chat_id', postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column('seq', sa.Integer(), nullable=False),
        sa.Column('sender_id', postgresql.UUID(as_uuid=True), nullable=True),
        sa.Column('content', sa.Text(), nullable=False),
        sa.Column('type', sa.Enum('TEXT', 'IMAGE', 'FILE', 'SYSTEM', name='messagetype'), nullable=False),
        sa.Column('file_url', sa.String(length=1024), nullable=True),
        sa.Column('is_edited', sa.Boolean(), server_default='false', nullable=False),
        sa.Column('edited_at', sa.DateTime(), nullable=True),
        sa.Column('is_deleted', sa.Boolean(), server_default='false', nullable=False),
        sa.Column('deleted_at', sa.DateTime(), nullable=True),
        *_timestamps(),
        sa.ForeignKeyConstraint(['chat_id'], ['chats.id'], ondelete='CASCADE'),
        sa.ForeignKeyConstraint(['sender_id'], ['users.id'], ondelete='SET NULL'),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index('ix_chat_messages_chat_id', 'chat_messages', ['chat_id'])

    op.create_table(
        'direct_messages',
        sa.Column('id', postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column('from_user_id', postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column('to_user_id', postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column('text', sa.Text(), nullable=False),
        sa.Column('is_read', sa.Boolean(), server_default='false', nullable=False),
        *_timestamps(),
        sa.ForeignKeyConstraint(['from_user_id'], ['users.id'], ondelete='CASCADE'),
        sa.ForeignKeyConstraint(['to_user_id'], ['users.id'], ondelete='CASCADE'),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index('ix_direct_messages_from_user_id', 'direct_messages', ['from_user_id'])
    op.create_index('ix_direct_messages_to_user_id', 'direct_messages', ['to_user_id'])


def downgrade() -> None:
    op.drop_index('ix_direct_messages_to_user_id', table_name='direct_messages')
    op.drop_index('ix_direct_messages_from_user_id', table_name='direct_messages')
    op.drop_table('direct_messages')
    op.drop_index('ix_chat_messages_chat_id', table_name='chat_messages')
    op.drop_table('chat_messages')
    op.drop_index('ix_chat_participants_user_id', table_name='chat_participants')
    op.drop_index('ix_chat_participants_chat_id', table_name='chat_participants')
    op.drop_table('chat_participants')
    op.drop_index('ix_chats_last_message_at', table_name='chats')
    op.drop_table('chats')
    op.drop_index('ix_activity_participants_activity_id', table_name='activity_participants')
    op.drop_table('activity_participants')
    op.drop_table('activities')
    op.drop_table('profiles')
    op.drop_table('users')
    op.execute('DROP TYPE messagetype')
    op.execute('DROP TYPE participantrole')
    op.execute('DROP TYPE chattype')
