"""Initial schema: directions, skill points, memory cards and workouts

Revision ID: 001_initial_schema
Revises:
Create Date: 2026-10-17 00:00:00.000000

"""
from alembic import op
import sqlalchemy as sa

# revision identifiers, used by Alembic.
revision = '001_initial_schema'
down_revision = None
branch_labels = None
depends_on = None


def upgrade() -> None:
    op.create_table(
        'direction',
        sa.Column('id', sa.Uuid(), nullable=False),
        sa.Column('name', sa.String(), nullable=False),
        sa.Column('stage', sa.String(), nullable=False, server_default='explore'),
        sa.Column('quarterly_goal', sa.String(), nullable=True),
        sa.Column('created_at', sa.DateTime(), nullable=False),
        sa.Column('updated_at', sa.DateTime(), nullable=False),
        sa.PrimaryKeyConstraint('id')
    )

    op.create_table(
        'skill_point',
        sa.Column('id', sa.Uuid(), nullable=False),
        sa.Column('direction_id', sa.Uuid(), nullable=False),
        sa.Column('name', sa.String(), nullable=False),
        sa.Column('summary', sa.String(), nullable=True),
        sa.Column('level', sa.String(), nullable=False, server_default='unknown'),
        sa.Column('created_at', sa.DateTime(), nullable=False),
        sa.Column('updated_at', sa.DateTime(), nullable=False),
        sa.ForeignKeyConstraint(['direction_id'], ['direction.id'], ),
        sa.PrimaryKeyConstraint('id')
    )
    op.create_index('ix_skill_point_direction_id', 'skill_point', ['direction_id'])

    op.create_table(
        'memory_card',
        sa.Column('id', sa.Uuid(), nullable=False),
        sa.Column('direction_id', sa.Uuid(), nullable=False),
        sa.Column('skill_point_id', sa.Uuid(), nullable=True),
        sa.Column('title', sa.String(), nullable=False),
        sa.Column('body', sa.String(), nullable=False, server_default=''),
        sa.Column('card_type', sa.String(), nullable=False, server_default='concept'),
        sa.Column('stability', sa.Float(), nullable=False, server_default='0.1'),
        sa.Column('relevance', sa.Float(), nullable=False, server_default='0.7'),
        sa.Column('novelty', sa.Float(), nullable=False, server_default='0.5'),
        sa.Column('priority', sa.Float(), nullable=False),
        sa.Column('next_due', sa.DateTime(), nullable=True),
        sa.Column('created_at', sa.DateTime(), nullable=False),
        sa.Column('updated_at', sa.DateTime(), nullable=False),
        sa.ForeignKeyConstraint(['direction_id'], ['direction.id'], ),
        sa.ForeignKeyConstraint(['skill_point_id'], ['skill_point.id'], ),
        sa.PrimaryKeyConstraint('id')
    )
    op.create_index('ix_memory_card_direction_id', 'memory_card', ['direction_id'])
    op.create_index('ix_memory_card_skill_point_id', 'memory_card', ['skill_point_id'])
    op.create_index('ix_memory_card_next_due', 'memory_card', ['next_due'])

    op.create_table(
        'workout',
        sa.Column('id', sa.Uuid(), nullable=False),
        sa.Column('scheduled_for', sa.DateTime(), nullable=False),
        sa.Column('completed_at', sa.DateTime(), nullable=True),
        sa.Column('status', sa.String(), nullable=False, server_default='pending'),
        sa.Column('payload', sa.JSON(), nullable=False),
        sa.Column('created_at', sa.DateTime(), nullable=False),
        sa.Column('updated_at', sa.DateTime(), nullable=False),
        sa.PrimaryKeyConstraint('id')
    )
    op.create_index('ix_workout_scheduled_for', 'workout', ['scheduled_for'])
    op.create_index('ix_workout_status', 'workout', ['status'])

    op.create_table(
        'workout_item',
        sa.Column('id', sa.Uuid(), nullable=False),
        sa.Column('workout_id', sa.Uuid(), nullable=False),
        sa.Column('card_id', sa.Uuid(), nullable=False),
        sa.Column('sequence', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('phase', sa.String(), nullable=False),
        sa.Column('result', sa.String(), nullable=True),
        sa.Column('due_at', sa.DateTime(), nullable=True),
        sa.Column('created_at', sa.DateTime(), nullable=False),
        sa.ForeignKeyConstraint(['workout_id'], ['workout.id'], ),
        sa.ForeignKeyConstraint(['card_id'], ['memory_card.id'], ),
        sa.PrimaryKeyConstraint('id')
    )
    op.create_index('ix_workout_item_workout_id', 'workout_item', ['workout_id'])
    op.create_index('ix_workout_item_card_id', 'workout_item', ['card_id'])

    op.create_table(
        'workout_summary',
        sa.Column('workout_id', sa.Uuid(), nullable=False),
        sa.Column('completed_at', sa.DateTime(), nullable=False),
        sa.Column('total_items', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('pass_count', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('fail_count', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('pass_rate', sa.Float(), nullable=False, server_default='0'),
        sa.Column('kv_delta', sa.Float(), nullable=False, server_default='0'),
        sa.Column('udr', sa.Float(), nullable=False, server_default='0'),
        sa.Column('recommended_focus', sa.String(), nullable=True),
        sa.Column('metrics', sa.JSON(), nullable=False),
        sa.Column('insights', sa.JSON(), nullable=False),
        sa.Column('created_at', sa.DateTime(), nullable=False),
        sa.Column('updated_at', sa.DateTime(), nullable=False),
        sa.ForeignKeyConstraint(['workout_id'], ['workout.id'], ),
        sa.PrimaryKeyConstraint('workout_id')
    )


def downgrade() -> None:
    op.drop_table('workout_summary')
    op.drop_index('ix_workout_item_card_id', table_name='workout_item')
    op.drop_index('ix_workout_item_workout_id', table_name='workout_item')
    op.drop_table('workout_item')
    op.drop_index('ix_workout_status', table_name='workout')
    op.drop_index('ix_workout_scheduled_for', table_name='workout')
    op.drop_table('workout')
    op.drop_index('ix_memory_card_next_due', table_name='memory_card')
    op.drop_index('ix_memory_card_skill_point_id', table_name='memory_card')
    op.drop_index('ix_memory_card_direction_id', table_name='memory_card')
    op.drop_table('memory_card')
    op.drop_index('ix_skill_point_direction_id', table_name='skill_point')
    op.drop_table('skill_point')
    op.drop_table('direction')
