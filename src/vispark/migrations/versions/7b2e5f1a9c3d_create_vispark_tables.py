"""create vispark tables

Revision ID: 7b2e5f1a9c3d
Revises:
Create Date: 2026-10-18 09:12:40.118532

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql


# revision identifiers, used by Alembic.
revision: str = '7b2e5f1a9c3d'
down_revision: Union[str, Sequence[str], None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    """Upgrade schema."""
    op.create_table('visparks',
    sa.Column('id', sa.UUID(), nullable=False),
    sa.Column('user_id', sa.UUID(), nullable=False),
    sa.Column('video_id', sa.Text(), nullable=False),
    sa.Column('video_channel_id', sa.Text(), nullable=True),
    sa.Column('summaries', postgresql.JSONB(astext_type=sa.Text()), nullable=False),
    sa.Column('video_title', sa.Text(), nullable=True),
    sa.Column('video_description', sa.Text(), nullable=True),
    sa.Column('video_channel_title', sa.Text(), nullable=True),
    sa.Column('video_thumbnails', postgresql.JSONB(astext_type=sa.Text()), nullable=True),
    sa.Column('video_published_at', sa.Text(), nullable=True),
    sa.Column('video_duration', sa.Text(), nullable=True),
    sa.Column('video_default_language', sa.Text(), nullable=True),
    sa.Column('created_at', sa.DateTime(), server_default=sa.text('now()'), nullable=False),
    sa.PrimaryKeyConstraint('id')
    )
    op.create_index('ix_visparks_user_video', 'visparks', ['user_id', 'video_id'], unique=False)
    op.create_table('video_notifications',
    sa.Column('id', sa.UUID(), nullable=False),
    sa.Column('user_id', sa.UUID(), nullable=False),
    sa.Column('video_id', sa.Text(), nullable=False),
    sa.Column('channel_id', sa.Text(), nullable=False),
    sa.Column('video_title', sa.Text(), nullable=False),
    sa.Column('video_url', sa.Text(), nullable=False),
    sa.Column('published_at', sa.DateTime(), nullable=True),
    sa.Column('summary_generated', sa.Boolean(), nullable=False),
    sa.Column('notification_sent', sa.Boolean(), nullable=False),
    sa.Column('created_at', sa.DateTime(), server_default=sa.text('now()'), nullable=False),
    sa.Column('updated_at', sa.DateTime(), server_default=sa.text('now()'), nullable=False),
    sa.PrimaryKeyConstraint('id'),
    sa.UniqueConstraint('user_id', 'video_id', name='uq_video_notification_user_video')
    )
    op.create_table('channels',
    sa.Column('id', sa.UUID(), nullable=False),
    sa.Column('user_id', sa.UUID(), nullable=False),
    sa.Column('channel_id', sa.Text(), nullable=False),
    sa.Column('created_at', sa.DateTime(), server_default=sa.text('now()'), nullable=False),
    sa.PrimaryKeyConstraint('id'),
    sa.UniqueConstraint('user_id', 'channel_id', name='uq_channel_user_channel')
    )
    op.create_table('youtube_push_subscriptions',
    sa.Column('id', sa.UUID(), nullable=False),
    sa.Column('user_id', sa.UUID(), nullable=False),
    sa.Column('channel_id', sa.Text(), nullable=False),
    sa.Column('subscription_id', sa.Text(), nullable=False),
    sa.Column('hub_secret', sa.Text(), nullable=False),
    sa.Column('lease_seconds', sa.Integer(), nullable=False),
    sa.Column('expires_at', sa.DateTime(), nullable=False),
    sa.Column('status', sa.Enum('active', 'renewing', 'expiring', 'failed', name='pushstatus'), nullable=False),
    sa.Column('retry_count', sa.Integer(), nullable=False),
    sa.Column('last_retry_at', sa.DateTime(), nullable=True),
    sa.Column('renewal_error', sa.Text(), nullable=True),
    sa.Column('auto_renewal_enabled', sa.Boolean(), nullable=False),
    sa.Column('expires_at_buffer_days', sa.Integer(), nullable=False),
    sa.Column('created_at', sa.DateTime(), server_default=sa.text('now()'), nullable=False),
    sa.Column('updated_at', sa.DateTime(), server_default=sa.text('now()'), nullable=False),
    sa.PrimaryKeyConstraint('id'),
    sa.UniqueConstraint('user_id', 'channel_id', name='uq_push_subscription_user_channel')
    )
    op.create_index(op.f('ix_youtube_push_subscriptions_channel_id'), 'youtube_push_subscriptions', ['channel_id'], unique=False)
    op.create_table('youtube_push_callback_logs',
    sa.Column('id', sa.UUID(), nullable=False),
    sa.Column('user_id', sa.UUID(), nullable=False),
    sa.Column('channel_id', sa.Text(), nullable=False),
    sa.Column('video_id', sa.Text(), nullable=False),
    sa.Column('video_title', sa.Text(), nullable=False),
    sa.Column('processing_status', sa.Enum('received', 'completed', 'failed', name='processingstatus'), nullable=False),
    sa.Column('error_message', sa.Text(), nullable=True),
    sa.Column('processed_at', sa.DateTime(), nullable=True),
    sa.Column('created_at', sa.DateTime(), server_default=sa.text('now()'), nullable=False),
    sa.PrimaryKeyConstraint('id')
    )


def downgrade() -> None:
    """Downgrade schema."""
    op.drop_table('youtube_push_callback_logs')
    op.drop_index(op.f('ix_youtube_push_subscriptions_channel_id'), table_name='youtube_push_subscriptions')
    op.drop_table('youtube_push_subscriptions')
    op.drop_table('channels')
    op.drop_table('video_notifications')
    op.drop_index('ix_visparks_user_video', table_name='visparks')
    op.drop_table('visparks')
    sa.Enum(name='processingstatus').drop(op.get_bind(), checkfirst=True)
    sa.Enum(name='pushstatus').drop(op.get_bind(), checkfirst=True)
