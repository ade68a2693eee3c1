"""Initial schema: game submissions and times tables

Revision ID: 001
Revises:
Create Date: 2026-10-19 09:00:00.000000

"""
from alembic import op
import sqlalchemy as sa

# revision identifiers, used by Alembic.
revision = '001'
down_revision = None
branch_labels = None
depends_on = None


def upgrade():
    """Create the submission moderation table and the times tables schema.

    - game_submissions: user-submitted HTML games and their review state
    - tables_users / facts / user_facts: learners, the 12x12 facts and per-learner mastery
    - tables_sessions / tables_attempts: practice sessions and graded answers
    """
    op.create_table(
        'game_submissions',
        sa.Column('id', sa.String(36), primary_key=True),
        sa.Column('game_slug', sa.String(100), nullable=False, index=True),
        sa.Column('game_title', sa.String(200), nullable=False),
        sa.Column('game_description', sa.Text(), nullable=True),
        sa.Column('game_type', sa.String(50), nullable=True),
        sa.Column('creator_name', sa.String(100), nullable=True),
        sa.Column('creator_email', sa.String(255), nullable=True),
        sa.Column('status', sa.String(20), nullable=False, server_default='pending', index=True),
        sa.Column('generated_code', sa.Text(), nullable=True),
        sa.Column('approved_by', sa.String(255), nullable=True),
        sa.Column('approved_at', sa.DateTime(), nullable=True),
        sa.Column('review_notes', sa.Text(), nullable=True),
        sa.Column('live_url', sa.String(255), nullable=True),
        sa.Column('created_at', sa.DateTime(), server_default=sa.text('CURRENT_TIMESTAMP'), nullable=False),
        sa.Column('updated_at', sa.DateTime(), server_default=sa.text('CURRENT_TIMESTAMP'), nullable=False),
        sa.CheckConstraint(
            "status IN ('pending', 'building', 'review', 'approved', 'rejected', 'live')",
            name='valid_submission_status'
        ),
    )

    op.create_table(
        'tables_users',
        sa.Column('id', sa.String(100), primary_key=True),
        sa.Column('role', sa.String(20), nullable=False, server_default='STUDENT'),
        sa.Column('display_name', sa.String(100), nullable=True),
        sa.Column('org_id', sa.String(100), nullable=True),
        sa.Column('ai_allowed', sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column('created_at', sa.DateTime(), server_default=sa.text('CURRENT_TIMESTAMP'), nullable=False),
    )

    op.create_table(
        'facts',
        sa.Column('id', sa.String(36), primary_key=True),
        sa.Column('a', sa.Integer(), nullable=False),
        sa.Column('b', sa.Integer(), nullable=False),
        sa.Column('op', sa.String(2), nullable=False, server_default='*'),
        sa.UniqueConstraint('a', 'b', 'op', name='uq_facts_a_b_op'),
    )

    op.create_table(
        'user_facts',
        sa.Column('id', sa.String(36), primary_key=True),
        sa.Column('user_id', sa.String(100), sa.ForeignKey('tables_users.id', ondelete='CASCADE'),
                  nullable=False, index=True),
        sa.Column('fact_id', sa.String(36), sa.ForeignKey('facts.id', ondelete='CASCADE'),
                  nullable=False, index=True),
        sa.Column('mastery_level', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('streak', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('easiness', sa.Float(), nullable=False, server_default='2.5'),
        sa.Column('interval_days', sa.Float(), nullable=False, server_default='0'),
        sa.Column('due_at', sa.DateTime(), nullable=False, index=True),
        sa.Column('last_latency_ms', sa.Integer(), nullable=True),
        sa.Column('last_accuracy', sa.Float(), nullable=True),
        sa.UniqueConstraint('user_id', 'fact_id', name='uq_user_facts_user_fact'),
    )

    op.create_table(
        'tables_sessions',
        sa.Column('id', sa.String(36), primary_key=True),
        sa.Column('user_id', sa.String(100), sa.ForeignKey('tables_users.id', ondelete='CASCADE'),
                  nullable=False, index=True),
        sa.Column('mode', sa.String(20), nullable=False, server_default='PRACTICE'),
        sa.Column('started_at', sa.DateTime(), server_default=sa.text('CURRENT_TIMESTAMP'), nullable=False),
        sa.Column('ended_at', sa.DateTime(), nullable=True),
        sa.CheckConstraint("mode IN ('PRACTICE', 'CHALLENGE', 'BOSS')", name='valid_session_mode'),
    )

    op.create_table(
        'tables_attempts',
        sa.Column('id', sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column('session_id', sa.String(36), sa.ForeignKey('tables_sessions.id', ondelete='CASCADE'),
                  nullable=False, index=True),
        sa.Column('fact_id', sa.String(36), sa.ForeignKey('facts.id', ondelete='CASCADE'),
                  nullable=False, index=True),
        sa.Column('correct', sa.Boolean(), nullable=False),
        sa.Column('latency_ms', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('hint_used', sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column('created_at', sa.DateTime(), server_default=sa.text('CURRENT_TIMESTAMP'), nullable=False),
    )

    # Demo lookups: latest approved submission per slug
    op.create_index('idx_game_submissions_slug_status', 'game_submissions', ['game_slug', 'status'])


def downgrade():
    """Drop every table created by this revision."""
    op.drop_index('idx_game_submissions_slug_status', table_name='game_submissions')
    op.drop_table('tables_attempts')
    op.drop_table('tables_sessions')
    op.drop_table('user_facts')
    op.drop_table('facts')
    op.drop_table('tables_users')
    op.drop_table('game_submissions')
