"""core lims schema"""

from alembic import op
import sqlalchemy as sa
from typing import Sequence, Union

revision: str = '20261018_01'
down_revision: Union[str, Sequence[str], None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def _id():
    return sa.Column('id', sa.UUID(as_uuid=True), primary_key=True)


def _timestamps(updated: bool = True):
    cols = [sa.Column('created_at', sa.DateTime(), nullable=True)]
    if updated:
        cols.append(sa.Column('updated_at', sa.DateTime(), nullable=True))
    return cols


def upgrade() -> None:
    op.create_table(
        'workspaces',
        _id(),
        sa.Column('name', sa.String(255), nullable=False),
        sa.Column('slug', sa.String(64), nullable=False, unique=True),
        sa.Column('type', sa.String(), nullable=False, server_default='research'),
        sa.Column('email_domain', sa.String(255)),
        sa.Column('is_active', sa.Boolean(), nullable=False, server_default=sa.true()),
        *_timestamps(),
        sa.Column('deleted_at', sa.DateTime(), nullable=True),
    )
    op.create_table(
        'organizations',
        _id(),
        sa.Column('workspace_id', sa.UUID(as_uuid=True), sa.ForeignKey('workspaces.id')),
        sa.Column('name', sa.String(), nullable=False),
        sa.Column('slug', sa.String(64), nullable=False, unique=True),
        sa.Column('type', sa.String(), nullable=False),
        sa.Column('is_platform_workspace', sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column('contact_info', sa.JSON()),
        sa.Column('is_active', sa.Boolean(), nullable=False, server_default=sa.true()),
        *_timestamps(),
        sa.Column('deleted_at', sa.DateTime(), nullable=True),
    )
    op.create_index('ix_organizations_workspace_id', 'organizations', ['workspace_id'])
    op.create_table(
        'users',
        _id(),
        sa.Column('workspace_id', sa.UUID(as_uuid=True), sa.ForeignKey('workspaces.id'), nullable=False),
        sa.Column('email', sa.String(), nullable=False, unique=True),
        sa.Column('hashed_password', sa.String(), nullable=False),
        sa.Column('full_name', sa.String()),
        sa.Column('role', sa.String(), nullable=False, server_default='scientist'),
        sa.Column('is_active', sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column('last_digest', sa.DateTime()),
        *_timestamps(),
        sa.Column('deleted_at', sa.DateTime(), nullable=True),
    )
    op.create_index('ix_users_workspace_id', 'users', ['workspace_id'])
    op.create_table(
        'password_reset_tokens',
        _id(),
        sa.Column('user_id', sa.UUID(as_uuid=True), sa.ForeignKey('users.id')),
        sa.Column('token', sa.String(), nullable=False, unique=True),
        sa.Column('expires_at', sa.DateTime(), nullable=False),
        sa.Column('used', sa.Boolean(), server_default=sa.false()),
        *_timestamps(updated=False),
    )
    op.create_index('ix_password_reset_tokens_token', 'password_reset_tokens', ['token'])
    op.create_table(
        'projects',
        _id(),
        sa.Column('workspace_id', sa.UUID(as_uuid=True), sa.ForeignKey('workspaces.id'), nullable=False),
        sa.Column('client_org_id', sa.UUID(as_uuid=True), sa.ForeignKey('organizations.id'), nullable=False),
        sa.Column('executing_org_id', sa.UUID(as_uuid=True), sa.ForeignKey('organizations.id'), nullable=False),
        sa.Column('name', sa.String(255), nullable=False),
        sa.Column('description', sa.Text()),
        sa.Column('status', sa.String(), nullable=False, server_default='active'),
        sa.Column('workflow_mode', sa.String(), nullable=False, server_default='trial_first'),
        sa.Column('created_by', sa.UUID(as_uuid=True), sa.ForeignKey('users.id')),
        *_timestamps(),
        sa.Column('deleted_at', sa.DateTime(), nullable=True),
    )
    op.create_index('ix_projects_workspace_id', 'projects', ['workspace_id'])
    op.create_table(
        'project_stages',
        _id(),
        sa.Column('project_id', sa.UUID(as_uuid=True), sa.ForeignKey('projects.id', ondelete='CASCADE'), nullable=False),
        sa.Column('owner_workspace_id', sa.UUID(as_uuid=True), sa.ForeignKey('workspaces.id'), nullable=False),
        sa.Column('name', sa.String(255), nullable=False),
        sa.Column('order_index', sa.Integer(), nullable=False),
        sa.Column('status', sa.String(), nullable=False, server_default='planned'),
        *_timestamps(),
        sa.UniqueConstraint('project_id', 'order_index'),
    )
    op.create_index('ix_project_stages_project_id', 'project_stages', ['project_id'])
    op.create_table(
        'trials',
        _id(),
        sa.Column('project_id', sa.UUID(as_uuid=True), sa.ForeignKey('projects.id', ondelete='CASCADE'), nullable=False),
        sa.Column('workspace_id', sa.UUID(as_uuid=True), sa.ForeignKey('workspaces.id'), nullable=False),
        sa.Column('name', sa.String(255), nullable=False),
        sa.Column('objective', sa.Text()),
        sa.Column('parameters', sa.Text()),
        sa.Column('parameters_json', sa.JSON()),
        sa.Column('equipment', sa.Text()),
        sa.Column('notes', sa.Text()),
        sa.Column('status', sa.String(), nullable=False, server_default='planned'),
        sa.Column('performed_at', sa.DateTime()),
        sa.Column('created_by', sa.UUID(as_uuid=True), sa.ForeignKey('users.id')),
        *_timestamps(),
        sa.Column('deleted_at', sa.DateTime(), nullable=True),
    )
    op.create_index('ix_trials_project_id', 'trials', ['project_id'])
    op.create_table(
        'trial_parameter_templates',
        _id(),
        sa.Column('project_id', sa.UUID(as_uuid=True), sa.ForeignKey('projects.id', ondelete='CASCADE'), nullable=False),
        sa.Column('workspace_id', sa.UUID(as_uuid=True), sa.ForeignKey('workspaces.id'), nullable=False),
        sa.Column('columns', sa.JSON()),
        sa.Column('created_by', sa.UUID(as_uuid=True), sa.ForeignKey('users.id')),
        *_timestamps(),
        sa.UniqueConstraint('project_id', 'workspace_id'),
    )
    op.create_table(
        'samples',
        _id(),
        sa.Column('workspace_id', sa.UUID(as_uuid=True), sa.ForeignKey('workspaces.id'), nullable=False),
        sa.Column('project_id', sa.UUID(as_uuid=True), sa.ForeignKey('projects.id', ondelete='CASCADE'), nullable=False),
        sa.Column('trial_id', sa.UUID(as_uuid=True), sa.ForeignKey('trials.id')),
        sa.Column('stage_id', sa.UUID(as_uuid=True), sa.ForeignKey('project_stages.id')),
        sa.Column('sample_id', sa.String(100), nullable=False),
        sa.Column('type', sa.String(50)),
        sa.Column('description', sa.Text()),
        sa.Column('metadata', sa.JSON()),
        sa.Column('status', sa.String(), nullable=False, server_default='created'),
        sa.Column('created_by', sa.UUID(as_uuid=True), sa.ForeignKey('users.id')),
        *_timestamps(),
        sa.Column('deleted_at', sa.DateTime(), nullable=True),
    )
    op.create_index('ix_samples_workspace_id', 'samples', ['workspace_id'])
    op.create_index('ix_samples_project_id', 'samples', ['project_id'])
    op.create_table(
        'derived_samples',
        _id(),
        sa.Column('owner_workspace_id', sa.UUID(as_uuid=True), sa.ForeignKey('workspaces.id'), nullable=False),
        sa.Column('root_sample_id', sa.UUID(as_uuid=True), sa.ForeignKey('samples.id', ondelete='CASCADE'), nullable=False),
        sa.Column('parent_id', sa.UUID(as_uuid=True), sa.ForeignKey('derived_samples.id', ondelete='CASCADE')),
        sa.Column('stage_id', sa.UUID(as_uuid=True), sa.ForeignKey('project_stages.id')),
        sa.Column('derived_id', sa.String(100), nullable=False),
        sa.Column('process_notes', sa.Text()),
        sa.Column('metadata', sa.JSON()),
        sa.Column('depth', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('status', sa.String(), nullable=False, server_default='created'),
        sa.Column('execution_mode', sa.String(), nullable=False, server_default='platform'),
        sa.Column('executed_by_org_id', sa.UUID(as_uuid=True), sa.ForeignKey('organizations.id'), nullable=False),
        sa.Column('external_reference', sa.Text()),
        sa.Column('performed_at', sa.DateTime()),
        sa.Column('created_by', sa.UUID(as_uuid=True), sa.ForeignKey('users.id')),
        *_timestamps(),
        sa.Column('deleted_at', sa.DateTime(), nullable=True),
        sa.CheckConstraint('depth >= 0 AND depth <= 2', name='ck_derived_samples_depth'),
    )
    op.create_index('ix_derived_samples_owner_workspace_id', 'derived_samples', ['owner_workspace_id'])
    op.create_index('ix_derived_samples_root_sample_id', 'derived_samples', ['root_sample_id'])
    op.create_index('ix_derived_samples_parent_id', 'derived_samples', ['parent_id'])
    op.create_table(
        'batches',
        _id(),
        sa.Column('workspace_id', sa.UUID(as_uuid=True), sa.ForeignKey('workspaces.id'), nullable=False),
        sa.Column('original_workspace_id', sa.UUID(as_uuid=True), sa.ForeignKey('workspaces.id')),
        sa.Column('batch_id', sa.String(100), nullable=False),
        sa.Column('description', sa.Text()),
        sa.Column('parameters', sa.JSON()),
        sa.Column('status', sa.String(), nullable=False, server_default='created'),
        sa.Column('execution_mode', sa.String(), nullable=False, server_default='platform'),
        sa.Column('executed_by_org_id', sa.UUID(as_uuid=True), sa.ForeignKey('organizations.id'), nullable=False),
        sa.Column('external_reference', sa.Text()),
        sa.Column('performed_at', sa.DateTime()),
        sa.Column('created_by', sa.UUID(as_uuid=True), sa.ForeignKey('users.id')),
        sa.Column('sent_at', sa.DateTime()),
        sa.Column('completed_at', sa.DateTime()),
        *_timestamps(),
        sa.Column('deleted_at', sa.DateTime(), nullable=True),
    )
    op.create_index('ix_batches_workspace_id', 'batches', ['workspace_id'])
    op.create_table(
        'batch_items',
        _id(),
        sa.Column('batch_id', sa.UUID(as_uuid=True), sa.ForeignKey('batches.id', ondelete='CASCADE'), nullable=False),
        sa.Column('derived_id', sa.UUID(as_uuid=True), sa.ForeignKey('derived_samples.id', ondelete='CASCADE'), nullable=False),
        sa.Column('sequence', sa.Integer(), nullable=False),
        *_timestamps(updated=False),
        sa.UniqueConstraint('batch_id', 'derived_id'),
    )
    op.create_index('ix_batch_items_batch_id', 'batch_items', ['batch_id'])
    op.create_table(
        'analysis_types',
        _id(),
        sa.Column('name', sa.String(100), nullable=False, unique=True),
        sa.Column('description', sa.Text()),
        sa.Column('category', sa.String(50)),
        sa.Column('methods', sa.JSON()),
        sa.Column('typical_duration', sa.String()),
        sa.Column('equipment_required', sa.JSON()),
        sa.Column('is_active', sa.Boolean(), nullable=False, server_default=sa.true()),
        *_timestamps(),
    )
    op.create_table(
        'analyses',
        _id(),
        sa.Column('workspace_id', sa.UUID(as_uuid=True), sa.ForeignKey('workspaces.id'), nullable=False),
        sa.Column('batch_id', sa.UUID(as_uuid=True), sa.ForeignKey('batches.id', ondelete='CASCADE'), nullable=False),
        sa.Column('analysis_type_id', sa.UUID(as_uuid=True), sa.ForeignKey('analysis_types.id'), nullable=False),
        sa.Column('status', sa.String(), nullable=False, server_default='pending'),
        sa.Column('results', sa.JSON()),
        sa.Column('file_path', sa.String(500)),
        sa.Column('file_checksum', sa.String(64)),
        sa.Column('file_size_bytes', sa.BigInteger()),
        sa.Column('execution_mode', sa.String(), nullable=False, server_default='platform'),
        sa.Column('executed_by_org_id', sa.UUID(as_uuid=True), sa.ForeignKey('organizations.id'), nullable=False),
        sa.Column('source_org_id', sa.UUID(as_uuid=True), sa.ForeignKey('organizations.id'), nullable=False),
        sa.Column('external_reference', sa.Text()),
        sa.Column('performed_at', sa.DateTime()),
        sa.Column('uploaded_by', sa.UUID(as_uuid=True), sa.ForeignKey('users.id'), nullable=False),
        sa.Column('uploaded_at', sa.DateTime()),
        sa.Column('is_authoritative', sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column('supersedes_id', sa.UUID(as_uuid=True), sa.ForeignKey('analyses.id')),
        sa.Column('revision_reason', sa.Text()),
        *_timestamps(),
        sa.Column('deleted_at', sa.DateTime(), nullable=True),
    )
    op.create_index('ix_analyses_workspace_id', 'analyses', ['workspace_id'])
    op.create_index('ix_analyses_batch_id', 'analyses', ['batch_id'])
    op.create_index('ix_analyses_supersedes_id', 'analyses', ['supersedes_id'])
    # one live authoritative analysis per batch
    op.create_index(
        'uq_analyses_batch_authoritative',
        'analyses',
        ['batch_id'],
        unique=True,
        postgresql_where=sa.text('is_authoritative AND deleted_at IS NULL'),
        sqlite_where=sa.text('is_authoritative = 1 AND deleted_at IS NULL'),
    )
    op.create_table(
        'notifications',
        _id(),
        sa.Column('workspace_id', sa.UUID(as_uuid=True), sa.ForeignKey('workspaces.id'), nullable=False),
        sa.Column('user_id', sa.UUID(as_uuid=True), sa.ForeignKey('users.id')),
        sa.Column('type', sa.String(), nullable=False, server_default='info'),
        sa.Column('title', sa.String(), nullable=False),
        sa.Column('message', sa.Text(), nullable=False),
        sa.Column('priority', sa.String(), nullable=False, server_default='medium'),
        sa.Column('action_url', sa.String()),
        sa.Column('action_label', sa.String()),
        sa.Column('is_read', sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column('read_at', sa.DateTime()),
        sa.Column('expires_at', sa.DateTime(), nullable=True),
        sa.Column('metadata', sa.JSON()),
        sa.Column('created_by', sa.UUID(as_uuid=True), sa.ForeignKey('users.id')),
        *_timestamps(updated=False),
    )
    op.create_index('ix_notifications_workspace_id', 'notifications', ['workspace_id'])
    op.create_index('ix_notifications_user_id', 'notifications', ['user_id'])
    op.create_table(
        'notification_preferences',
        _id(),
        sa.Column('user_id', sa.UUID(as_uuid=True), sa.ForeignKey('users.id'), nullable=False, unique=True),
        sa.Column('email_payment_reminders', sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column('email_project_updates', sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column('email_sample_notifications', sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column('email_system_announcements', sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column('in_app_notifications', sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column('quiet_hours_start', sa.Time()),
        sa.Column('quiet_hours_end', sa.Time()),
        sa.Column('quiet_hours_timezone', sa.String()),
        *_timestamps(),
    )
    op.create_table(
        'audit_logs',
        _id(),
        sa.Column('workspace_id', sa.UUID(as_uuid=True), sa.ForeignKey('workspaces.id')),
        sa.Column('user_id', sa.UUID(as_uuid=True), sa.ForeignKey('users.id')),
        sa.Column('action', sa.String(), nullable=False),
        sa.Column('target_type', sa.String()),
        sa.Column('target_id', sa.UUID(as_uuid=True)),
        sa.Column('details', sa.JSON()),
        sa.Column('ip_address', sa.String(45)),
        sa.Column('user_agent', sa.String(500)),
        *_timestamps(updated=False),
    )
    op.create_index('ix_audit_logs_workspace_id', 'audit_logs', ['workspace_id'])
    op.create_index('ix_audit_logs_user_id', 'audit_logs', ['user_id'])


def downgrade() -> None:
    for table in (
        'audit_logs',
        'notification_preferences',
        'notifications',
        'analyses',
        'analysis_types',
        'batch_items',
        'batches',
        'derived_samples',
        'samples',
        'trial_parameter_templates',
        'trials',
        'project_stages',
        'projects',
        'password_reset_tokens',
        'users',
        'organizations',
        'workspaces',
    ):
        op.drop_table(table)
