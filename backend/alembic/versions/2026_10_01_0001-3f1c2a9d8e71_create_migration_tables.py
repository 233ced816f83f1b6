"""create_migration_tables

Create tables for location-to-location migrations.

Tables:
- account_connections
- migration_jobs

Revision ID: 3f1c2a9d8e71
Revises:
Create Date: 2026-10-01 00:01:00.000000

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql

# revision identifiers, used by Alembic.
revision: str = '3f1c2a9d8e71'
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None

JSONType = sa.JSON().with_variant(postgresql.JSONB(), 'postgresql')


def upgrade() -> None:
    # Create account_connections table
    op.create_table(
        'account_connections',
        sa.Column('id', sa.String(36), primary_key=True),
        sa.Column('tenant_id', sa.String(255), nullable=False),
        sa.Column('location_name', sa.String(255)),
        sa.Column('api_key_encrypted', sa.Text, nullable=False),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.func.now()),
    )
    op.create_index('idx_account_connections_tenant', 'account_connections', ['tenant_id'])

    # Create migration_jobs table
    op.create_table(
        'migration_jobs',
        sa.Column('id', sa.String(36), primary_key=True),
        sa.Column('source_connection_id', sa.String(36), nullable=False),
        sa.Column('destination_connection_id', sa.String(36), nullable=False),
        sa.Column('source_tenant_id', sa.String(255), nullable=False),
        sa.Column('destination_tenant_id', sa.String(255), nullable=False),
        sa.Column('source_location_name', sa.String(255)),
        sa.Column('destination_location_name', sa.String(255)),
        sa.Column('options', JSONType),
        sa.Column('status', sa.String(50), nullable=False, server_default='pending'),
        sa.Column('progress_overall', sa.Integer, server_default='0'),
        sa.Column('current_operation', sa.String(255), server_default=''),
        sa.Column('current_category', sa.String(50)),
        sa.Column('categories', JSONType),
        sa.Column('error', sa.Text),
        sa.Column('error_log', JSONType),
        sa.Column('artifacts', JSONType),
        sa.Column('cancel_requested', sa.Boolean, nullable=False, server_default=sa.false()),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.Column('started_at', sa.DateTime(timezone=True)),
        sa.Column('completed_at', sa.DateTime(timezone=True)),
        sa.Column('updated_at', sa.DateTime(timezone=True), server_default=sa.func.now()),
    )
    op.create_index('idx_migration_jobs_status', 'migration_jobs', ['status'])
    op.create_index('idx_migration_jobs_created', 'migration_jobs', ['created_at'])
    op.create_index('idx_migration_jobs_destination', 'migration_jobs', ['destination_tenant_id'])


def downgrade() -> None:
    op.drop_index('idx_migration_jobs_destination', table_name='migration_jobs')
    op.drop_index('idx_migration_jobs_created', table_name='migration_jobs')
    op.drop_index('idx_migration_jobs_status', table_name='migration_jobs')
    op.drop_table('migration_jobs')
    op.drop_index('idx_account_connections_tenant', table_name='account_connections')
    op.drop_table('account_connections')
