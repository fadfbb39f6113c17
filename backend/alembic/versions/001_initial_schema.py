"""Initial readiness assessment tables

Revision ID: 001_initial_schema
Revises:
Create Date: 2026-10-19

Creates all tables for:
- projects and their observability tools
- the eight project workflows with interview steps and step scores
- dependency gaps
"""

from alembic import op
import sqlalchemy as sa

# revision identifiers, used by Alembic.
revision = '001_initial_schema'
down_revision = None
branch_labels = None
depends_on = None


def upgrade() -> None:
    # ==========================================================================
    # Projects
    # ==========================================================================

    op.create_table(
        'projects',
        sa.Column('id', sa.Uuid(), nullable=False),
        sa.Column('name', sa.String(length=255), nullable=False),
        sa.Column('client_name', sa.String(length=255), nullable=False),
        sa.Column('engagement_type', sa.String(length=255), nullable=False),
        sa.Column('team_members', sa.JSON(), nullable=False),
        sa.Column('passphrase_hash', sa.String(length=255), nullable=False),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False),
        sa.Column('updated_at', sa.DateTime(timezone=True), nullable=False),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index('ix_projects_name', 'projects', ['name'], unique=False)

    op.create_table(
        'observability_tools',
        sa.Column('id', sa.Uuid(), nullable=False),
        sa.Column('project_id', sa.Uuid(), nullable=False),
        sa.Column('tool_name', sa.String(length=255), nullable=False),
        sa.ForeignKeyConstraint(['project_id'], ['projects.id'], ondelete='CASCADE'),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index('ix_observability_tools_project_id', 'observability_tools', ['project_id'], unique=False)

    # ==========================================================================
    # Workflows, steps and scores
    # ==========================================================================

    op.create_table(
        'project_workflows',
        sa.Column('id', sa.Uuid(), nullable=False),
        sa.Column('project_id', sa.Uuid(), nullable=False),
        sa.Column('workflow_index', sa.Integer(), nullable=False),
        sa.Column('workflow_name', sa.String(length=255), nullable=False),
        sa.Column('status', sa.String(length=20), nullable=False, server_default='not_started'),
        sa.Column('updated_at', sa.DateTime(timezone=True), nullable=False),
        sa.ForeignKeyConstraint(['project_id'], ['projects.id'], ondelete='CASCADE'),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('project_id', 'workflow_index', name='uq_project_workflow_index'),
        sa.CheckConstraint('workflow_index BETWEEN 1 AND 8', name='ck_workflow_index_range'),
    )
    op.create_index('ix_project_workflows_project_id', 'project_workflows', ['project_id'], unique=False)

    op.create_table(
        'workflow_steps',
        sa.Column('id', sa.Uuid(), nullable=False),
        sa.Column('project_workflow_id', sa.Uuid(), nullable=False),
        sa.Column('step_number', sa.Integer(), nullable=False),
        sa.Column('step_name', sa.Text(), nullable=False, server_default=''),
        sa.Column('description', sa.Text(), nullable=False, server_default=''),
        sa.Column('role_team', sa.Text(), nullable=False, server_default=''),
        sa.Column('trigger_input', sa.Text(), nullable=False, server_default=''),
        sa.Column('systems_tools', sa.Text(), nullable=False, server_default=''),
        sa.Column('decision_points', sa.Text(), nullable=False, server_default=''),
        sa.Column('output_handoff', sa.Text(), nullable=False, server_default=''),
        sa.Column('pain_points', sa.Text(), nullable=False, server_default=''),
        sa.Column('time_effort', sa.Text(), nullable=False, server_default=''),
        sa.Column('raw_transcript', sa.Text(), nullable=False, server_default=''),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False),
        sa.Column('updated_at', sa.DateTime(timezone=True), nullable=False),
        sa.ForeignKeyConstraint(['project_workflow_id'], ['project_workflows.id'], ondelete='CASCADE'),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index('ix_workflow_steps_project_workflow_id', 'workflow_steps', ['project_workflow_id'], unique=False)

    op.create_table(
        'step_scores',
        sa.Column('id', sa.Uuid(), nullable=False),
        sa.Column('workflow_step_id', sa.Uuid(), nullable=False),
        sa.Column('rule_based_score', sa.Integer(), nullable=False),
        sa.Column('data_availability_score', sa.Integer(), nullable=False),
        sa.Column('exception_frequency_score', sa.Integer(), nullable=False),
        sa.Column('auditability_score', sa.Integer(), nullable=False),
        sa.Column('speed_sensitivity_score', sa.Integer(), nullable=False),
        sa.Column('composite_score', sa.Integer(), nullable=False),
        sa.Column('candidate_tier', sa.String(length=20), nullable=False),
        sa.Column('score_rationale', sa.Text(), nullable=False, server_default=''),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False),
        sa.Column('updated_at', sa.DateTime(timezone=True), nullable=False),
        sa.ForeignKeyConstraint(['workflow_step_id'], ['workflow_steps.id'], ondelete='CASCADE'),
        sa.PrimaryKeyConstraint('id'),
        sa.CheckConstraint('rule_based_score BETWEEN 1 AND 5', name='ck_rule_based_range'),
        sa.CheckConstraint('data_availability_score BETWEEN 1 AND 5', name='ck_data_availability_range'),
        sa.CheckConstraint('exception_frequency_score BETWEEN 1 AND 5', name='ck_exception_frequency_range'),
        sa.CheckConstraint('auditability_score BETWEEN 1 AND 5', name='ck_auditability_range'),
        sa.CheckConstraint('speed_sensitivity_score BETWEEN 1 AND 5', name='ck_speed_sensitivity_range'),
        sa.CheckConstraint('composite_score BETWEEN 0 AND 25', name='ck_composite_range'),
    )
    op.create_index('ix_step_scores_workflow_step_id', 'step_scores', ['workflow_step_id'], unique=True)

    # ==========================================================================
    # Dependency gaps
    # ==========================================================================

    op.create_table(
        'dependency_gaps',
        sa.Column('id', sa.Uuid(), nullable=False),
        sa.Column('project_id', sa.Uuid(), nullable=False),
        sa.Column('workflow_index', sa.Integer(), nullable=False),
        sa.Column('gap_type', sa.String(length=20), nullable=False),
        sa.Column('severity', sa.String(length=20), nullable=False),
        sa.Column('description', sa.Text(), nullable=False),
        sa.Column('identified_at', sa.DateTime(timezone=True), nullable=False),
        sa.ForeignKeyConstraint(['project_id'], ['projects.id'], ondelete='CASCADE'),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index('ix_dependency_gaps_project_id', 'dependency_gaps', ['project_id'], unique=False)


def downgrade() -> None:
    # Drop tables in reverse order
    op.drop_table('dependency_gaps')
    op.drop_table('step_scores')
    op.drop_table('workflow_steps')
    op.drop_table('project_workflows')
    op.drop_table('observability_tools')
    op.drop_table('projects')
