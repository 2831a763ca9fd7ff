"""
20261019_0002_create_sync_and_import_tables.py
Alembic migration: creates synchronizations, data_imports and user_tables
"""
from alembic import op
import sqlalchemy as sa
import sqlalchemy.dialects.postgresql as pg

# revision identifiers, used by Alembic.
revision = '20261019_0002_create_sync_and_import_tables'
down_revision = '20261019_0001_create_users_table'
branch_labels = None
depends_on = None

def upgrade():
    op.create_table(
        'synchronizations',
        sa.Column('id', pg.UUID(as_uuid=True), primary_key=True, nullable=False),
        sa.Column('user_id', pg.UUID(as_uuid=True), sa.ForeignKey('users.user_id', ondelete='CASCADE'), nullable=False),
        sa.Column('name', sa.String(length=255), nullable=True),
        sa.Column('interval', sa.Integer(), nullable=False),
        sa.Column('state', sa.String(length=32), nullable=False, server_default='created'),
        sa.Column('service_name', sa.String(length=64), nullable=True),
        sa.Column('service_item_id', sa.Text(), nullable=True),
        sa.Column('error_code', sa.Integer(), nullable=True),
        sa.Column('retried_times', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('run_at', sa.DateTime(), nullable=True),
        sa.Column('ran_at', sa.DateTime(), nullable=True),
        sa.Column('created_at', sa.DateTime(), nullable=False, server_default=sa.func.now()),
        sa.Column('updated_at', sa.DateTime(), nullable=False, server_default=sa.func.now()),
    )
    op.create_index('ix_synchronizations_user_id', 'synchronizations', ['user_id'])

    op.create_table(
        'data_imports',
        sa.Column('id', pg.UUID(as_uuid=True), primary_key=True, nullable=False),
        sa.Column('user_id', pg.UUID(as_uuid=True), sa.ForeignKey('users.user_id', ondelete='CASCADE'), nullable=False),
        sa.Column('state', sa.String(length=32), nullable=False, server_default='pending'),
        sa.Column('service_name', sa.String(length=64), nullable=True),
        sa.Column('service_item_id', sa.Text(), nullable=True),
        sa.Column('table_id', pg.UUID(as_uuid=True), nullable=True),
        sa.Column('table_name', sa.String(length=255), nullable=True),
        sa.Column('synchronization_id', pg.UUID(as_uuid=True), nullable=True),
        sa.Column('error_code', sa.Integer(), nullable=True),
        sa.Column('created_at', sa.DateTime(), nullable=False, server_default=sa.func.now()),
        sa.Column('updated_at', sa.DateTime(), nullable=False, server_default=sa.func.now()),
    )
    op.create_index('ix_data_imports_user_id', 'data_imports', ['user_id'])

    op.create_table(
        'user_tables',
        sa.Column('id', pg.UUID(as_uuid=True), primary_key=True, nullable=False),
        sa.Column('user_id', pg.UUID(as_uuid=True), sa.ForeignKey('users.user_id', ondelete='CASCADE'), nullable=False),
        sa.Column('name', sa.String(length=255), nullable=False),
        sa.Column('data_import_id', pg.UUID(as_uuid=True), sa.ForeignKey('data_imports.id', ondelete='SET NULL'), nullable=True),
        sa.Column('created_at', sa.DateTime(), nullable=False, server_default=sa.func.now()),
        sa.UniqueConstraint('user_id', 'name', name='uq_user_table_name'),
    )

def downgrade():
    op.drop_table('user_tables')
    op.drop_index('ix_data_imports_user_id', table_name='data_imports')
    op.drop_table('data_imports')
    op.drop_index('ix_synchronizations_user_id', table_name='synchronizations')
    op.drop_table('synchronizations')
