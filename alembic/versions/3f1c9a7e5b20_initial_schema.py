"""initial schema

Revision ID: 3f1c9a7e5b20
Revises:
Create Date: 2026-10-19 09:12:41.503118

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision: str = '3f1c9a7e5b20'
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    op.create_table(
        'teams',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('name', sa.String(), nullable=False),
    )
    op.create_table(
        'users',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('name', sa.String(), nullable=True),
        sa.Column('email', sa.String(), nullable=False, unique=True),
        sa.Column('team_id', sa.Integer(), sa.ForeignKey('teams.id'), nullable=True),
        sa.Column('role', sa.String(), nullable=False, server_default='employee'),
        sa.Column('is_active', sa.Boolean(), nullable=False, server_default=sa.true()),
    )
    op.create_index('ix_users_team_id', 'users', ['team_id'])

    op.create_table(
        'work_items',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('title', sa.String(), nullable=False, server_default=''),
        sa.Column('kind', sa.String(), nullable=False, server_default='task'),
        sa.Column('owner_id', sa.Integer(), sa.ForeignKey('users.id'), nullable=True),
        sa.Column('team_id', sa.Integer(), sa.ForeignKey('teams.id'), nullable=True),
        sa.Column('status', sa.String(), nullable=False, server_default='not_started'),
        sa.Column('priority', sa.String(), nullable=False, server_default='medium'),
        sa.Column('assigned_at', sa.DateTime(), nullable=False),
        sa.Column('due_date', sa.DateTime(), nullable=True),
        sa.Column('completed_at', sa.DateTime(), nullable=True),
        sa.Column('revision_count', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('reopen_count', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('parent_goal_id', sa.Integer(), sa.ForeignKey('work_items.id'), nullable=True),
        sa.Column('marked_overdue_at', sa.DateTime(), nullable=True),
        sa.Column('updated_at', sa.DateTime(), nullable=False),
    )
    op.create_index('ix_work_items_team_id', 'work_items', ['team_id'])
    op.create_index('ix_work_items_status', 'work_items', ['status'])
    op.create_index('ix_work_items_due_date', 'work_items', ['due_date'])

    op.create_table(
        'work_item_assignees',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('work_item_id', sa.Integer(), sa.ForeignKey('work_items.id', ondelete='CASCADE'), nullable=False),
        sa.Column('user_id', sa.Integer(), sa.ForeignKey('users.id'), nullable=False),
        sa.UniqueConstraint('work_item_id', 'user_id', name='uq_work_item_assignee'),
    )
    op.create_index('ix_work_item_assignees_work_item_id', 'work_item_assignees', ['work_item_id'])
    op.create_index('ix_work_item_assignees_user_id', 'work_item_assignees', ['user_id'])

    op.create_table(
        'scoring_config',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('completion_weight', sa.Integer(), nullable=False),
        sa.Column('timeliness_weight', sa.Integer(), nullable=False),
        sa.Column('quality_weight', sa.Integer(), nullable=False),
        sa.Column('kra_alignment_weight', sa.Integer(), nullable=False),
        sa.Column('updated_at', sa.DateTime(), nullable=False),
        sa.Column('updated_by', sa.String(), nullable=False, server_default='system'),
    )
    # Seed the default weight set so a fresh database scores immediately
    op.execute(
        "INSERT INTO scoring_config (id, completion_weight, timeliness_weight, quality_weight, "
        "kra_alignment_weight, updated_at, updated_by) VALUES (1, 40, 30, 20, 10, CURRENT_TIMESTAMP, 'system')"
    )

    op.create_table(
        'weekly_reports',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('user_id', sa.Integer(), sa.ForeignKey('users.id'), nullable=False),
        sa.Column('week_start', sa.Date(), nullable=False),
        sa.Column('week_end', sa.Date(), nullable=False),
        sa.Column('tasks_assigned', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('tasks_completed', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('on_time_completion', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('delay_count', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('completion_score', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('timeliness_score', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('quality_score', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('kra_alignment_score', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('total_score', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('generated_at', sa.DateTime(), nullable=False),
        sa.UniqueConstraint('user_id', 'week_start', name='uq_weekly_report_user_week'),
    )
    op.create_index('ix_weekly_reports_user_id', 'weekly_reports', ['user_id'])

    op.create_table(
        'recalculation_queue',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('user_id', sa.Integer(), sa.ForeignKey('users.id'), nullable=False),
        sa.Column('week_start', sa.Date(), nullable=False),
        sa.Column('status', sa.String(), nullable=False, server_default='queued'),
        sa.Column('enqueued_at', sa.DateTime(), nullable=False),
        sa.Column('claimed_at', sa.DateTime(), nullable=True),
        sa.Column('attempts', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('last_error', sa.Text(), nullable=True),
        sa.UniqueConstraint('user_id', 'week_start', name='uq_recalc_user_week'),
    )
    op.create_index('ix_recalculation_queue_status', 'recalculation_queue', ['status'])
    op.create_index('ix_recalculation_queue_enqueued_at', 'recalculation_queue', ['enqueued_at'])

    op.create_table(
        'chronic_overdue_patterns',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('user_id', sa.Integer(), sa.ForeignKey('users.id'), nullable=False),
        sa.Column('window_start', sa.DateTime(), nullable=False),
        sa.Column('window_end', sa.DateTime(), nullable=False),
        sa.Column('total_tasks', sa.Integer(), nullable=False),
        sa.Column('overdue_tasks', sa.Integer(), nullable=False),
        sa.Column('overdue_percentage', sa.Float(), nullable=False),
        sa.Column('avg_days_overdue', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('max_consecutive_overdue', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('severity', sa.String(), nullable=False),
        sa.Column('recommendations', sa.JSON(), nullable=False),
        sa.Column('detected_at', sa.DateTime(), nullable=False),
    )
    op.create_index('ix_chronic_overdue_patterns_user_id', 'chronic_overdue_patterns', ['user_id'])
    op.create_index('ix_chronic_overdue_patterns_detected_at', 'chronic_overdue_patterns', ['detected_at'])

    op.create_table(
        'department_trends',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('team_id', sa.Integer(), sa.ForeignKey('teams.id'), nullable=False),
        sa.Column('window_start', sa.DateTime(), nullable=False),
        sa.Column('window_end', sa.DateTime(), nullable=False),
        sa.Column('current_total', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('current_completed', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('current_overdue', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('previous_total', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('previous_completed', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('previous_overdue', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('current_completion_rate', sa.Float(), nullable=False, server_default='0'),
        sa.Column('previous_completion_rate', sa.Float(), nullable=False, server_default='0'),
        sa.Column('change_points', sa.Float(), nullable=False, server_default='0'),
        sa.Column('direction', sa.String(), nullable=False),
        sa.Column('risk_level', sa.String(), nullable=False),
        sa.Column('detected_at', sa.DateTime(), nullable=False),
    )
    op.create_index('ix_department_trends_team_id', 'department_trends', ['team_id'])
    op.create_index('ix_department_trends_detected_at', 'department_trends', ['detected_at'])

    op.create_table(
        'task_risk_assessments',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('work_item_id', sa.Integer(), sa.ForeignKey('work_items.id'), nullable=False),
        sa.Column('assignees', sa.JSON(), nullable=False),
        sa.Column('risk_score', sa.Integer(), nullable=False),
        sa.Column('risk_tier', sa.String(), nullable=False),
        sa.Column('factors', sa.JSON(), nullable=False),
        sa.Column('predicted_outcome', sa.String(), nullable=False),
        sa.Column('days_until_due', sa.Integer(), nullable=False),
        sa.Column('recommendations', sa.JSON(), nullable=False),
        sa.Column('assessed_at', sa.DateTime(), nullable=False),
    )
    op.create_index('ix_task_risk_assessments_work_item_id', 'task_risk_assessments', ['work_item_id'])
    op.create_index('ix_task_risk_assessments_assessed_at', 'task_risk_assessments', ['assessed_at'])

    op.create_table(
        'performance_snapshots',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('user_id', sa.Integer(), sa.ForeignKey('users.id'), nullable=False),
        sa.Column('week_start', sa.Date(), nullable=False),
        sa.Column('week_end', sa.Date(), nullable=False),
        sa.Column('iso_year', sa.Integer(), nullable=False),
        sa.Column('iso_week', sa.Integer(), nullable=False),
        sa.Column('overall_score', sa.Integer(), nullable=False),
        sa.Column('previous_score', sa.Integer(), nullable=True),
        sa.Column('trend', sa.String(), nullable=False),
        sa.Column('tasks_assigned', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('tasks_completed', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('alerts', sa.JSON(), nullable=False),
        sa.Column('snapshot_at', sa.DateTime(), nullable=False),
        sa.UniqueConstraint('user_id', 'iso_year', 'iso_week', name='uq_snapshot_user_iso_week'),
    )
    op.create_index('ix_performance_snapshots_user_id', 'performance_snapshots', ['user_id'])
    op.create_index('ix_performance_snapshots_snapshot_at', 'performance_snapshots', ['snapshot_at'])


def downgrade() -> None:
    op.drop_table('performance_snapshots')
    op.drop_table('task_risk_assessments')
    op.drop_table('department_trends')
    op.drop_table('chronic_overdue_patterns')
    op.drop_table('recalculation_queue')
    op.drop_table('weekly_reports')
    op.drop_table('scoring_config')
    op.drop_table('work_item_assignees')
    op.drop_table('work_items')
    op.drop_table('users')
    op.drop_table('teams')
