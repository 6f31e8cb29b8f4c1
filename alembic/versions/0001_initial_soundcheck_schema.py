"""Initial SoundCheck schema

Revision ID: 0001_initial
Revises:
Create Date: 2026-10-19 09:12:31.402218

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision: str = '0001_initial'
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    # Create profiles table
    op.create_table(
        'profiles',
        sa.Column('id', sa.String(64), primary_key=True),
        sa.Column('handle', sa.String(64), nullable=False, unique=True),
        sa.Column('credits', sa.Integer, nullable=False, server_default='0'),
        sa.Column('tracks_uploaded', sa.Integer, nullable=False, server_default='0'),
        sa.Column('tracks_rated', sa.Integer, nullable=False, server_default='0'),
        sa.Column('rating_progress', sa.Integer, nullable=False, server_default='0'),
        sa.Column('created_at', sa.TIMESTAMP, nullable=False, server_default=sa.text('now()')),
        sa.CheckConstraint('credits >= 0', name='ck_profiles_credits_non_negative'),
        sa.CheckConstraint('rating_progress >= 0', name='ck_profiles_rating_progress_non_negative')
    )

    # Create uploads table
    op.create_table(
        'uploads',
        sa.Column('id', sa.Uuid, primary_key=True, server_default=sa.text('gen_random_uuid()')),
        sa.Column('user_id', sa.String(64), sa.ForeignKey('profiles.id'), nullable=False),
        sa.Column('filename', sa.Text, nullable=False, unique=True),
        sa.Column('original_name', sa.String(255), nullable=True),
        sa.Column('size', sa.Integer, nullable=True),
        sa.Column('consumed', sa.Boolean, nullable=False, server_default=sa.false()),
        sa.Column('created_at', sa.TIMESTAMP, nullable=False, server_default=sa.text('now()'))
    )

    # Create tracks table
    op.create_table(
        'tracks',
        sa.Column('id', sa.Uuid, primary_key=True, server_default=sa.text('gen_random_uuid()')),
        sa.Column('user_id', sa.String(64), sa.ForeignKey('profiles.id'), nullable=False),
        sa.Column('title', sa.String(255), nullable=False),
        sa.Column('audio_filename', sa.Text, nullable=False),
        sa.Column('duration', sa.Float, nullable=True),
        sa.Column('genre_tags', sa.JSON, nullable=False, server_default='[]'),
        sa.Column('production_stage', sa.String(32), nullable=True),
        sa.Column('context_id', sa.String(32), nullable=True),
        sa.Column('status', sa.String(16), nullable=False, server_default='draft'),
        sa.Column('snippet_start', sa.Float, nullable=True),
        sa.Column('snippet_end', sa.Float, nullable=True),
        sa.Column('votes_requested', sa.Integer, nullable=False, server_default='0'),
        sa.Column('votes_received', sa.Integer, nullable=False, server_default='0'),
        sa.Column('overall_score', sa.Float, nullable=True),
        sa.Column('percentile', sa.Float, nullable=True),
        sa.Column('is_deleted', sa.Boolean, nullable=False, server_default=sa.false()),
        sa.Column('share_token', sa.String(32), nullable=False, unique=True),
        sa.Column('created_at', sa.TIMESTAMP, nullable=False, server_default=sa.text('now()')),
        sa.CheckConstraint("status IN ('draft', 'collecting', 'complete')", name='ck_tracks_status'),
        sa.CheckConstraint('votes_received <= votes_requested', name='ck_tracks_votes_within_target')
    )

    # Create ratings table; no cascade so ratings outlive soft-deleted tracks
    op.create_table(
        'ratings',
        sa.Column('id', sa.Uuid, primary_key=True, server_default=sa.text('gen_random_uuid()')),
        sa.Column('track_id', sa.Uuid, sa.ForeignKey('tracks.id'), nullable=False),
        sa.Column('rater_id', sa.String(64), sa.ForeignKey('profiles.id'), nullable=False),
        sa.Column('dimension_1', sa.Integer, nullable=False),
        sa.Column('dimension_2', sa.Integer, nullable=False),
        sa.Column('dimension_3', sa.Integer, nullable=False),
        sa.Column('dimension_4', sa.Integer, nullable=False),
        sa.Column('feedback', sa.Text, nullable=True),
        sa.Column('created_at', sa.TIMESTAMP, nullable=False, server_default=sa.text('now()')),
        sa.UniqueConstraint('track_id', 'rater_id', name='ratings_track_rater_unique')
    )

    # Create credit_transactions table
    op.create_table(
        'credit_transactions',
        sa.Column('id', sa.Uuid, primary_key=True, server_default=sa.text('gen_random_uuid()')),
        sa.Column('user_id', sa.String(64), sa.ForeignKey('profiles.id'), nullable=False),
        sa.Column('amount', sa.Integer, nullable=False),
        sa.Column('type', sa.String(32), nullable=False),
        sa.Column('reference_id', sa.String(64), nullable=True),
        sa.Column('created_at', sa.TIMESTAMP, nullable=False, server_default=sa.text('now()'))
    )

    # Create ai_insights table
    op.create_table(
        'ai_insights',
        sa.Column('id', sa.Uuid, primary_key=True, server_default=sa.text('gen_random_uuid()')),
        sa.Column('track_id', sa.Uuid, sa.ForeignKey('tracks.id'), nullable=False),
        sa.Column('milestone', sa.Integer, nullable=False),
        sa.Column('insights', sa.JSON, nullable=False),
        sa.Column('created_at', sa.TIMESTAMP, nullable=False, server_default=sa.text('now()')),
        sa.UniqueConstraint('track_id', 'milestone', name='ai_insights_track_milestone_unique')
    )

    # Create indexes
    op.create_index('ix_uploads_user_created', 'uploads', ['user_id', 'created_at'])
    op.create_index('ix_uploads_consumed_created', 'uploads', ['consumed', 'created_at'])
    op.create_index('ix_tracks_user_id', 'tracks', ['user_id'])
    op.create_index('ix_tracks_status_context', 'tracks', ['status', 'context_id'])
    op.create_index('ix_tracks_rating_queue', 'tracks', ['status', 'is_deleted', 'votes_received'])
    op.create_index('ix_ratings_track_id', 'ratings', ['track_id'])
    op.create_index('ix_ratings_rater_id', 'ratings', ['rater_id'])
    op.create_index('ix_credit_transactions_user_id', 'credit_transactions', ['user_id'])


def downgrade() -> None:
    op.drop_index('ix_credit_transactions_user_id', 'credit_transactions')
    op.drop_index('ix_ratings_rater_id', 'ratings')
    op.drop_index('ix_ratings_track_id', 'ratings')
    op.drop_index('ix_tracks_rating_queue', 'tracks')
    op.drop_index('ix_tracks_status_context', 'tracks')
    op.drop_index('ix_tracks_user_id', 'tracks')
    op.drop_index('ix_uploads_consumed_created', 'uploads')
    op.drop_index('ix_uploads_user_created', 'uploads')

    op.drop_table('ai_insights')
    op.drop_table('credit_transactions')
    op.drop_table('ratings')
    op.drop_table('tracks')
    op.drop_table('uploads')
    op.drop_table('profiles')
