#
# Alembic migration script
#
"""
Revision ID: 3c1e7a9d2b64
Revises:
Create Date: 2026-10-19 10:12:40.118305

"""

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision = '3c1e7a9d2b64'
down_revision = None
branch_labels = None
depends_on = None


def upgrade() -> None:
    # ### Create tables ###
    op.create_table(
        'users',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('username', sa.String(), nullable=False),
        sa.Column('display_name', sa.String()),
        sa.Column('interests', sa.JSON(), nullable=True),
        sa.Column('created_at', sa.DateTime(), nullable=True),
    )
    op.create_index('ix_users_id', 'users', ['id'], unique=False)
    op.create_index('ix_users_username', 'users', ['username'], unique=True)

    op.create_table(
        'videos',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('title', sa.String(), nullable=False),
        sa.Column('description', sa.Text()),
        sa.Column('video_url', sa.String()),
        sa.Column('thumbnail_url', sa.String()),
        sa.Column('duration', sa.Float(), server_default=sa.text('0')),
        sa.Column('category', sa.String(), nullable=False),
        sa.Column('tags', sa.JSON(), nullable=True),
        sa.Column('creator_id', sa.Integer(), sa.ForeignKey('users.id'), nullable=True),
        sa.Column('views', sa.Integer(), server_default=sa.text('0')),
        sa.Column('like_count', sa.Integer(), server_default=sa.text('0')),
        sa.Column('comment_count', sa.Integer(), server_default=sa.text('0')),
        sa.Column('shares', sa.Integer(), server_default=sa.text('0')),
        sa.Column('engagement_rate', sa.Float(), server_default=sa.text('0')),
        sa.Column('average_watch_time', sa.Float(), server_default=sa.text('0')),
        sa.Column('completion_rate', sa.Float(), server_default=sa.text('0')),
        sa.Column('status', sa.Enum('pending', 'approved', 'rejected', 'flagged', name='video_status'), nullable=False),
        sa.Column('is_private', sa.Boolean(), server_default=sa.false()),
        sa.Column('uploaded_at', sa.DateTime(), nullable=True),
        sa.Column('published_at', sa.DateTime(), nullable=True),
        sa.Column('created_at', sa.DateTime(), nullable=True),
    )
    op.create_index('ix_videos_id', 'videos', ['id'], unique=False)
    op.create_index('ix_videos_category', 'videos', ['category'], unique=False)
    op.create_index('ix_videos_category_status', 'videos', ['category', 'status'], unique=False)
    op.create_index('ix_videos_status_private_published', 'videos', ['status', 'is_private', 'published_at'], unique=False)

    op.create_table(
        'external_videos',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('video_id', sa.String(), nullable=False),
        sa.Column('title', sa.String(), nullable=False),
        sa.Column('description', sa.Text()),
        sa.Column('thumbnail_url', sa.String()),
        sa.Column('channel_title', sa.String()),
        sa.Column('subject', sa.String()),
        sa.Column('duration', sa.Float(), server_default=sa.text('0')),
        sa.Column('view_count', sa.Integer(), server_default=sa.text('0')),
        sa.Column('published_at', sa.DateTime(), nullable=True),
        sa.Column('cached_at', sa.DateTime(), nullable=True),
        sa.Column('video_url', sa.String()),
        sa.Column('is_active', sa.Boolean(), server_default=sa.true()),
    )
    op.create_index('ix_external_videos_id', 'external_videos', ['id'], unique=False)
    op.create_index('ix_external_videos_video_id', 'external_videos', ['video_id'], unique=True)
    op.create_index('ix_external_videos_subject', 'external_videos', ['subject'], unique=False)
    op.create_index('ix_external_videos_cached_at', 'external_videos', ['cached_at'], unique=False)
    op.create_index('ix_external_videos_is_active', 'external_videos', ['is_active'], unique=False)

    op.create_table(
        'engagements',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('user_id', sa.Integer(), sa.ForeignKey('users.id'), nullable=False),
        sa.Column('video_id', sa.String(), nullable=False),
        sa.Column('video_source', sa.Enum('uploaded', 'external', name='video_source'), nullable=False),
        sa.Column('session_id', sa.String(), nullable=False),
        sa.Column('watch_time', sa.Float(), server_default=sa.text('0')),
        sa.Column('total_duration', sa.Float(), server_default=sa.text('0')),
        sa.Column('completion_rate', sa.Float(), server_default=sa.text('0')),
        sa.Column('liked', sa.Boolean(), server_default=sa.false()),
        sa.Column('commented', sa.Boolean(), server_default=sa.false()),
        sa.Column('shared', sa.Boolean(), server_default=sa.false()),
        sa.Column('replays', sa.Integer(), server_default=sa.text('0')),
        sa.Column('pause_count', sa.Integer(), server_default=sa.text('0')),
        sa.Column('seek_count', sa.Integer(), server_default=sa.text('0')),
        sa.Column('skipped_at', sa.Float(), nullable=True),
        sa.Column('skip_reason', sa.Enum('bored', 'too-hard', 'not-interested', 'seen-before', name='skip_reason'), nullable=True),
        sa.Column('engagement_score', sa.Float(), server_default=sa.text('0')),
        sa.Column('category', sa.String()),
        sa.Column('started_at', sa.DateTime(), nullable=True),
        sa.Column('completed_at', sa.DateTime(), nullable=True),
        sa.Column('created_at', sa.DateTime(), nullable=True),
        sa.Column('updated_at', sa.DateTime(), nullable=True),
        sa.UniqueConstraint('user_id', 'video_id', 'session_id', name='uq_engagements_user_video_session'),
    )
    op.create_index('ix_engagements_id', 'engagements', ['id'], unique=False)
    op.create_index('ix_engagements_user_id', 'engagements', ['user_id'], unique=False)
    op.create_index('ix_engagements_video_id', 'engagements', ['video_id'], unique=False)
    op.create_index('ix_engagements_category', 'engagements', ['category'], unique=False)
    op.create_index('ix_engagements_user_created', 'engagements', ['user_id', 'created_at'], unique=False)
    op.create_index('ix_engagements_session_created', 'engagements', ['session_id', 'created_at'], unique=False)

    op.create_table(
        'viewing_history',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('user_id', sa.Integer(), sa.ForeignKey('users.id'), nullable=False),
        sa.Column('video_id', sa.String(), nullable=False),
        sa.Column('watch_time', sa.Float(), server_default=sa.text('0')),
        sa.Column('completed', sa.Boolean(), server_default=sa.false()),
        sa.Column('timestamp', sa.DateTime(), nullable=True),
    )
    op.create_index('ix_viewing_history_id', 'viewing_history', ['id'], unique=False)
    op.create_index('ix_viewing_history_user_id', 'viewing_history', ['user_id'], unique=False)


def downgrade() -> None:
    # ### Drop tables in reverse order due to FKs ###
    op.drop_index('ix_viewing_history_user_id', table_name='viewing_history')
    op.drop_index('ix_viewing_history_id', table_name='viewing_history')
    op.drop_table('viewing_history')
    op.drop_index('ix_engagements_session_created', table_name='engagements')
    op.drop_index('ix_engagements_user_created', table_name='engagements')
    op.drop_index('ix_engagements_category', table_name='engagements')
    op.drop_index('ix_engagements_video_id', table_name='engagements')
    op.drop_index('ix_engagements_user_id', table_name='engagements')
    op.drop_index('ix_engagements_id', table_name='engagements')
    op.drop_table('engagements')
    op.drop_index('ix_external_videos_is_active', table_name='external_videos')
    op.drop_index('ix_external_videos_cached_at', table_name='external_videos')
    op.drop_index('ix_external_videos_subject', table_name='external_videos')
    op.drop_index('ix_external_videos_video_id', table_name='external_videos')
    op.drop_index('ix_external_videos_id', table_name='external_videos')
    op.drop_table('external_videos')
    op.drop_index('ix_videos_status_private_published', table_name='videos')
    op.drop_index('ix_videos_category_status', table_name='videos')
    op.drop_index('ix_videos_category', table_name='videos')
    op.drop_index('ix_videos_id', table_name='videos')
    op.drop_table('videos')
    op.drop_index('ix_users_username', table_name='users')
    op.drop_index('ix_users_id', table_name='users')
    op.drop_table('users')
