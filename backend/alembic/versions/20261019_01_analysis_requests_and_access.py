"""analysis requests between labs and object access grants"""

from alembic import op
import sqlalchemy as sa
from typing import Sequence, Union

revision: str = '20261019_01'
down_revision: Union[str, Sequence[str], None] = '20261018_01'
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    op.create_table(
        'analysis_requests',
        sa.Column('id', sa.UUID(as_uuid=True), primary_key=True),
        sa.Column('from_workspace_id', sa.UUID(as_uuid=True), sa.ForeignKey('workspaces.id'), nullable=False),
        sa.Column('to_workspace_id', sa.UUID(as_uuid=True), sa.ForeignKey('workspaces.id'), nullable=False),
        sa.Column('sample_id', sa.UUID(as_uuid=True), sa.ForeignKey('samples.id'), nullable=False),
        sa.Column('analysis_type_id', sa.UUID(as_uuid=True), sa.ForeignKey('analysis_types.id'), nullable=False),
        sa.Column('description', sa.Text(), nullable=False),
        sa.Column('methodology_requirements', sa.Text()),
        sa.Column('parameters', sa.JSON()),
        sa.Column('priority', sa.String(), nullable=False, server_default='medium'),
        sa.Column('due_date', sa.Date()),
        sa.Column('estimated_duration', sa.String()),
        sa.Column('notes', sa.Text()),
        sa.Column('status', sa.String(), nullable=False, server_default='pending'),
        sa.Column('assigned_to', sa.UUID(as_uuid=True), sa.ForeignKey('users.id')),
        sa.Column('accepted_at', sa.DateTime()),
        sa.Column('completed_at', sa.DateTime()),
        sa.Column('created_by', sa.UUID(as_uuid=True), sa.ForeignKey('users.id'), nullable=False),
        sa.Column('created_at', sa.DateTime(), nullable=True),
        sa.Column('updated_at', sa.DateTime(), nullable=True),
    )
    op.create_index('ix_analysis_requests_from_workspace_id', 'analysis_requests', ['from_workspace_id'])
    op.create_index('ix_analysis_requests_to_workspace_id', 'analysis_requests', ['to_workspace_id'])
    op.create_table(
        'object_access',
        sa.Column('id', sa.UUID(as_uuid=True), primary_key=True),
        sa.Column('workspace_id', sa.UUID(as_uuid=True), sa.ForeignKey('workspaces.id'), nullable=False),
        sa.Column('user_id', sa.UUID(as_uuid=True), sa.ForeignKey('users.id'), nullable=False),
        sa.Column('object_type', sa.String(50), nullable=False),
        sa.Column('object_id', sa.UUID(as_uuid=True), nullable=False),
        sa.Column('access_level', sa.String(20), nullable=False, server_default='read'),
        sa.Column('granted_by', sa.UUID(as_uuid=True), sa.ForeignKey('users.id')),
        sa.Column('created_at', sa.DateTime(), nullable=True),
        sa.Column('updated_at', sa.DateTime(), nullable=True),
        sa.UniqueConstraint('user_id', 'object_type', 'object_id'),
    )
    op.create_index('ix_object_access_workspace_id', 'object_access', ['workspace_id'])
    op.create_index('ix_object_access_user_id', 'object_access', ['user_id'])


def downgrade() -> None:
    op.drop_table('object_access')
    op.drop_table('analysis_requests')
