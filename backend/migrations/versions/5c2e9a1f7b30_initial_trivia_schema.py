"""initial trivia schema: game, team, answer, recent_question

Revision ID: 5c2e9a1f7b30
Revises:
Create Date: 2025-12-01 00:00:00
"""

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision = '5c2e9a1f7b30'
down_revision = None
branch_labels = None
depends_on = None


def upgrade():
    op.create_table(
        'game',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('game_code', sa.String(length=6), nullable=False),
        sa.Column('status', sa.String(length=16), nullable=False),
        sa.Column('current_question', sa.Integer(), nullable=False),
        sa.Column('question_data', sa.Text(), nullable=True),
        sa.Column('question_time_seconds', sa.Integer(), nullable=False),
        sa.Column('total_questions', sa.Integer(), nullable=False),
        sa.Column('read_aloud_enabled', sa.Boolean(), nullable=False),
        sa.Column('read_aloud_seconds', sa.Integer(), nullable=False),
        sa.Column('answering_enabled', sa.Boolean(), nullable=False),
        sa.Column('question_start_time', sa.Float(), nullable=True),
        sa.Column('revealed_question', sa.Integer(), nullable=True),
        sa.Column('reveal_stage', sa.String(length=16), nullable=True),
        sa.Column('paused_from', sa.String(length=16), nullable=True),
        sa.Column('paused_time_left', sa.Integer(), nullable=True),
        sa.Column('loading', sa.Boolean(), nullable=False),
        sa.Column('question_source', sa.String(length=16), nullable=False),
        sa.Column('score_policy', sa.String(length=16), nullable=False),
        sa.Column('version', sa.Integer(), nullable=False),
        sa.Column('host_token_hash', sa.String(length=128), nullable=True),
        sa.Column('created_at', sa.Float(), nullable=False),
        sa.Column('finished_at', sa.Float(), nullable=True),
        sa.PrimaryKeyConstraint('id'),
    )
    with op.batch_alter_table('game') as batch_op:
        batch_op.create_index(batch_op.f('ix_game_game_code'), ['game_code'], unique=True)

    op.create_table(
        'team',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('game_id', sa.Integer(), nullable=False),
        sa.Column('name', sa.String(length=24), nullable=False),
        sa.Column('name_key', sa.String(length=96), nullable=False),
        sa.Column('color', sa.String(length=16), nullable=True),
        sa.Column('score', sa.Integer(), nullable=False),
        sa.Column('has_answered', sa.Boolean(), nullable=False),
        sa.Column('created_at', sa.Float(), nullable=False),
        sa.ForeignKeyConstraint(['game_id'], ['game.id']),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('game_id', 'name_key', name='uq_team_game_name'),
    )
    with op.batch_alter_table('team') as batch_op:
        batch_op.create_index(batch_op.f('ix_team_game_id'), ['game_id'], unique=False)

    op.create_table(
        'answer',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('game_id', sa.Integer(), nullable=False),
        sa.Column('team_id', sa.Integer(), nullable=False),
        sa.Column('question_index', sa.Integer(), nullable=False),
        sa.Column('answer_index', sa.Integer(), nullable=False),
        sa.Column('is_correct', sa.Boolean(), nullable=False),
        sa.Column('answered_at', sa.Float(), nullable=False),
        sa.Column('time_taken_ms', sa.Integer(), nullable=True),
        sa.Column('points_earned', sa.Integer(), nullable=False),
        sa.ForeignKeyConstraint(['game_id'], ['game.id']),
        sa.ForeignKeyConstraint(['team_id'], ['team.id']),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('game_id', 'team_id', 'question_index', name='uq_answer_team_question'),
    )
    with op.batch_alter_table('answer') as batch_op:
        batch_op.create_index(batch_op.f('ix_answer_game_id'), ['game_id'], unique=False)

    op.create_table(
        'recent_question',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('question_text', sa.Text(), nullable=False),
        sa.Column('answers', sa.Text(), nullable=False),
        sa.Column('correct_index', sa.Integer(), nullable=False),
        sa.Column('difficulty', sa.String(length=16), nullable=True),
        sa.Column('asked_at', sa.Float(), nullable=False),
        sa.PrimaryKeyConstraint('id'),
    )
    with op.batch_alter_table('recent_question') as batch_op:
        batch_op.create_index(batch_op.f('ix_recent_question_asked_at'), ['asked_at'], unique=False)


def downgrade():
    with op.batch_alter_table('recent_question') as batch_op:
        batch_op.drop_index(batch_op.f('ix_recent_question_asked_at'))
    op.drop_table('recent_question')
    with op.batch_alter_table('answer') as batch_op:
        batch_op.drop_index(batch_op.f('ix_answer_game_id'))
    op.drop_table('answer')
    with op.batch_alter_table('team') as batch_op:
        batch_op.drop_index(batch_op.f('ix_team_game_id'))
    op.drop_table('team')
    with op.batch_alter_table('game') as batch_op:
        batch_op.drop_index(batch_op.f('ix_game_game_code'))
    op.drop_table('game')
