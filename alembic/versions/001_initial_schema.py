"""Initial schema: searchable business tables and the search log.

Revision ID: 001
Revises:
Create Date: 2026-10-17
"""
from typing import Sequence, Union

import sqlalchemy as sa
from alembic import op

# revision identifiers, used by Alembic.
revision: str = '001'
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    op.create_table(
        'users',
        sa.Column('id', sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column('email', sa.String(255), nullable=False),
        sa.Column('name', sa.String(200), nullable=False),
        sa.Column('phone', sa.String(50), nullable=True),
        sa.Column('role', sa.Enum('ADMIN', 'MANAGER', 'USER', name='user_role_enum'), nullable=False, server_default='USER'),
        sa.Column('active', sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column('timezone', sa.String(64), nullable=False, server_default='UTC'),
        sa.Column('created_at', sa.DateTime(), nullable=False),
        sa.Column('updated_at', sa.DateTime(), nullable=False),
        sa.UniqueConstraint('email', name='uq_users_email'),
    )
    op.create_index('idx_users_name', 'users', ['name'])
    op.create_index('idx_users_created', 'users', ['created_at'])

    op.create_table(
        'companies',
        sa.Column('id', sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column('name', sa.String(200), nullable=False),
        sa.Column('code', sa.String(50), nullable=False),
        sa.Column('description', sa.Text(), nullable=True),
        sa.Column('company_type', sa.String(32), nullable=False, server_default='corporation'),
        sa.Column('website', sa.String(255), nullable=True),
        sa.Column('email', sa.String(255), nullable=True),
        sa.Column('active', sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column('created_at', sa.DateTime(), nullable=False),
        sa.Column('updated_at', sa.DateTime(), nullable=False),
        sa.UniqueConstraint('code', name='uq_companies_code'),
    )
    op.create_index('idx_companies_name', 'companies', ['name'])
    op.create_index('idx_companies_created', 'companies', ['created_at'])

    op.create_table(
        'partners',
        sa.Column('id', sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column('name', sa.String(200), nullable=False),
        sa.Column('code', sa.String(50), nullable=False),
        sa.Column('email', sa.String(255), nullable=True),
        sa.Column('phone', sa.String(50), nullable=True),
        sa.Column('address', sa.String(255), nullable=True),
        sa.Column('city', sa.String(100), nullable=True),
        sa.Column('state', sa.String(100), nullable=True),
        sa.Column('country', sa.String(100), nullable=True),
        sa.Column(
            'partner_type',
            sa.Enum('customer', 'supplier', 'employee', 'vendor', 'contractor', 'partner', 'other', name='partner_type_enum'),
            nullable=False,
            server_default='customer',
        ),
        sa.Column('active', sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column('created_at', sa.DateTime(), nullable=False),
        sa.Column('updated_at', sa.DateTime(), nullable=False),
        sa.UniqueConstraint('code', name='uq_partners_code'),
    )
    op.create_index('idx_partners_name', 'partners', ['name'])
    op.create_index('idx_partners_created', 'partners', ['created_at'])

    op.create_table(
        'search_logs',
        sa.Column('id', sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column('query', sa.String(512), nullable=False),
        sa.Column('result_count', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('execution_time', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('timestamp', sa.DateTime(), nullable=False),
    )
    op.create_index('idx_search_logs_ts', 'search_logs', ['timestamp'])
    op.create_index('idx_search_logs_query', 'search_logs', ['query'])


def downgrade() -> None:
    op.drop_index('idx_search_logs_query', table_name='search_logs')
    op.drop_index('idx_search_logs_ts', table_name='search_logs')
    op.drop_table('search_logs')

    op.drop_index('idx_partners_created', table_name='partners')
    op.drop_index('idx_partners_name', table_name='partners')
    op.drop_table('partners')

    op.drop_index('idx_companies_created', table_name='companies')
    op.drop_index('idx_companies_name', table_name='companies')
    op.drop_table('companies')

    op.drop_index('idx_users_created', table_name='users')
    op.drop_index('idx_users_name', table_name='users')
    op.drop_table('users')
