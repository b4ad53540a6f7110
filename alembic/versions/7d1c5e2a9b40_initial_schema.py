"""initial_schema

Revision ID: 7d1c5e2a9b40
Revises:
Create Date: 2026-10-19 00:00:00.000000

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision: str = '7d1c5e2a9b40'
down_revision: Union[str, Sequence[str], None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


video_status = sa.Enum('PENDING', 'PROCESSING', 'READY', name='video_status')
video_visibility = sa.Enum('PUBLIC', 'PRIVATE', 'UNLISTED', name='video_visibility')


def upgrade() -> None:
    """Upgrade schema."""

    op.create_table(
        'users',
        sa.Column('id', sa.String(length=64), nullable=False),
        sa.Column('name', sa.String(length=255), nullable=True),
        sa.Column('handle', sa.String(length=64), nullable=True),
        sa.Column('image', sa.Text(), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.text('now()'), nullable=False),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('handle'),
    )

    op.create_table(
        'videos',
        sa.Column('id', sa.String(length=32), nullable=False),
        sa.Column('owner_id', sa.String(length=64), nullable=False),
        sa.Column('title', sa.String(length=100), nullable=False),
        sa.Column('description', sa.Text(), nullable=False),
        sa.Column('category', sa.String(length=50), nullable=False),
        sa.Column('tags', sa.JSON(), nullable=False),
        sa.Column('visibility', video_visibility, nullable=False),
        sa.Column('status', video_status, nullable=False),
        sa.Column('provider', sa.String(length=20), nullable=False),
        sa.Column('provider_upload_ref', sa.String(length=255), nullable=True),
        sa.Column('provider_asset_ref', sa.String(length=255), nullable=True),
        sa.Column('playback_candidate', sa.String(length=255), nullable=True),
        sa.Column('playback_ref', sa.Text(), nullable=True),
        sa.Column('duration_seconds', sa.Integer(), nullable=True),
        sa.Column('thumbnail_key', sa.String(length=255), nullable=False),
        sa.Column('view_count', sa.BigInteger(), nullable=False),
        sa.Column('like_count', sa.Integer(), nullable=False),
        sa.Column('comment_count', sa.Integer(), nullable=False),
        sa.Column('idempotency_key', sa.String(length=128), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.text('now()'), nullable=False),
        sa.Column('updated_at', sa.DateTime(timezone=True), server_default=sa.text('now()'), nullable=False),
        sa.ForeignKeyConstraint(['owner_id'], ['users.id'], ondelete='CASCADE'),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('provider_upload_ref'),
        sa.UniqueConstraint('provider_asset_ref'),
        sa.UniqueConstraint('owner_id', 'idempotency_key', name='uq_videos_owner_idempotency_key'),
    )
    op.create_index(op.f('ix_videos_owner_id'), 'videos', ['owner_id'], unique=False)
    op.create_index('idx_videos_feed', 'videos', ['visibility', 'status', 'created_at'], unique=False)

    op.create_table(
        'video_likes',
        sa.Column('id', sa.Integer(), autoincrement=True, nullable=False),
        sa.Column('video_id', sa.String(length=32), nullable=False),
        sa.Column('user_id', sa.String(length=64), nullable=False),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.text('now()'), nullable=False),
        sa.ForeignKeyConstraint(['video_id'], ['videos.id'], ondelete='CASCADE'),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('video_id', 'user_id', name='uq_video_likes_video_user'),
    )
    op.create_index(op.f('ix_video_likes_video_id'), 'video_likes', ['video_id'], unique=False)
    op.create_index(op.f('ix_video_likes_user_id'), 'video_likes', ['user_id'], unique=False)

    op.create_table(
        'comments',
        sa.Column('id', sa.String(length=32), nullable=False),
        sa.Column('video_id', sa.String(length=32), nullable=False),
        sa.Column('user_id', sa.String(length=64), nullable=False),
        sa.Column('content', sa.Text(), nullable=False),
        sa.Column('like_count', sa.Integer(), nullable=False),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.text('now()'), nullable=False),
        sa.ForeignKeyConstraint(['video_id'], ['videos.id'], ondelete='CASCADE'),
        sa.ForeignKeyConstraint(['user_id'], ['users.id'], ondelete='CASCADE'),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index(op.f('ix_comments_video_id'), 'comments', ['video_id'], unique=False)
    op.create_index(op.f('ix_comments_user_id'), 'comments', ['user_id'], unique=False)
    op.create_index(op.f('ix_comments_created_at'), 'comments', ['created_at'], unique=False)

    op.create_table(
        'webhook_deliveries',
        sa.Column('id', sa.Integer(), autoincrement=True, nullable=False),
        sa.Column('provider', sa.String(length=20), nullable=False),
        sa.Column('delivery_id', sa.String(length=255), nullable=False),
        sa.Column('event_kind', sa.String(length=40), nullable=False),
        sa.Column('received_at', sa.DateTime(timezone=True), server_default=sa.text('now()'), nullable=False),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('provider', 'delivery_id', name='uq_webhook_deliveries_provider_delivery'),
    )


def downgrade() -> None:
    """Downgrade schema."""
    op.drop_table('webhook_deliveries')

    op.drop_index(op.f('ix_comments_created_at'), table_name='comments')
    op.drop_index(op.f('ix_comments_user_id'), table_name='comments')
    op.drop_index(op.f('ix_comments_video_id'), table_name='comments')
    op.drop_table('comments')

    op.drop_index(op.f('ix_video_likes_user_id'), table_name='video_likes')
    op.drop_index(op.f('ix_video_likes_video_id'), table_name='video_likes')
    op.drop_table('video_likes')

    op.drop_index('idx_videos_feed', table_name='videos')
    op.drop_index(op.f('ix_videos_owner_id'), table_name='videos')
    op.drop_table('videos')

    op.drop_table('users')

    video_status.drop(op.get_bind(), checkfirst=True)
    video_visibility.drop(op.get_bind(), checkfirst=True)
