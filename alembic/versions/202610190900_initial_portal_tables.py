"""Organisation hierarchy, users, roles and wallets

Revision ID: 202610190900
Revises:
Create Date: 2026-10-19 09:00:00.000000

"""
from alembic import op
import sqlalchemy as sa

# revision identifiers, used by Alembic.
revision = '202610190900'
down_revision = None
branch_labels = None
depends_on = None


def upgrade() -> None:
    # ------------------------------
    # Organisations (self-referencing hierarchy)
    # ------------------------------
    op.create_table(
        'organizations',
        sa.Column('id', sa.String(64), primary_key=True, nullable=False),
        sa.Column('name', sa.String(255), nullable=False, unique=True),
        sa.Column('type', sa.String(20), nullable=False, server_default='customer'),
        sa.Column('is_reseller', sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column('parent_id', sa.String(64), sa.ForeignKey('organizations.id'), nullable=True),
        sa.Column('status', sa.String(20), nullable=False, server_default='active'),
        sa.Column('total_revenue', sa.Numeric(14, 2), nullable=False, server_default='0'),
        sa.Column('monthly_commission', sa.Numeric(14, 2), nullable=False, server_default='0'),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.Column('updated_at', sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
    )
    op.create_index('ix_organizations_name', 'organizations', ['name'])
    op.create_index('ix_organizations_parent_id', 'organizations', ['parent_id'])

    # ------------------------------
    # Users
    # ------------------------------
    op.create_table(
        'users',
        sa.Column('id', sa.String(64), primary_key=True, nullable=False),
        sa.Column('organization_id', sa.String(64), sa.ForeignKey('organizations.id', ondelete='CASCADE'), nullable=False),
        sa.Column('email', sa.String(255), nullable=False, unique=True),
        sa.Column('first_name', sa.String(100), nullable=False, server_default=''),
        sa.Column('last_name', sa.String(100), nullable=False, server_default=''),
        sa.Column('user_type', sa.String(20), nullable=False, server_default='external'),
        sa.Column('hashed_password', sa.String(255), nullable=False),
        sa.Column('is_active', sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column('failed_attempts', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('is_locked', sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column('token_version', sa.Integer(), nullable=False, server_default='1'),
        sa.Column('is_first_login', sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.Column('updated_at', sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
    )
    op.create_index('ix_users_organization_id', 'users', ['organization_id'])
    op.create_index('ix_users_email', 'users', ['email'])

    # ------------------------------
    # Roles and permissions
    # ------------------------------
    op.create_table(
        'permissions',
        sa.Column('id', sa.String(64), primary_key=True, nullable=False),
        sa.Column('name', sa.String(100), nullable=False),
        sa.Column('resource', sa.String(50), nullable=False),
        sa.Column('action', sa.String(50), nullable=False),
    )
    op.create_table(
        'roles',
        sa.Column('id', sa.String(64), primary_key=True, nullable=False),
        sa.Column('name', sa.String(100), nullable=False, unique=True),
    )
    op.create_table(
        'role_permissions',
        sa.Column('role_id', sa.String(64), sa.ForeignKey('roles.id', ondelete='CASCADE'), primary_key=True),
        sa.Column('permission_id', sa.String(64), sa.ForeignKey('permissions.id', ondelete='CASCADE'), primary_key=True),
    )
    op.create_table(
        'user_roles',
        sa.Column('user_id', sa.String(64), sa.ForeignKey('users.id', ondelete='CASCADE'), primary_key=True),
        sa.Column('role_id', sa.String(64), sa.ForeignKey('roles.id', ondelete='CASCADE'), primary_key=True),
        sa.Column('org_id', sa.String(64), sa.ForeignKey('organizations.id', ondelete='CASCADE'), primary_key=True),
        sa.Column('scope_type', sa.String(20), nullable=False, server_default='organisation'),
        sa.UniqueConstraint('user_id', 'role_id', 'org_id', name='uq_user_role_org'),
    )

    # ------------------------------
    # Wallets
    # ------------------------------
    op.create_table(
        'wallets',
        sa.Column('id', sa.String(64), primary_key=True, nullable=False),
        sa.Column('organization_id', sa.String(64), sa.ForeignKey('organizations.id', ondelete='CASCADE'), nullable=False, unique=True),
        sa.Column('balance', sa.BigInteger(), nullable=False, server_default='0'),
        sa.Column('currency', sa.String(3), nullable=False, server_default='ZAR'),
        sa.Column('auto_topup_enabled', sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column('threshold', sa.BigInteger(), nullable=True),
        sa.Column('topup_amount', sa.BigInteger(), nullable=True),
        sa.Column('updated_at', sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
    )
    op.create_table(
        'wallet_transactions',
        sa.Column('id', sa.String(64), primary_key=True, nullable=False),
        sa.Column('wallet_id', sa.String(64), sa.ForeignKey('wallets.id', ondelete='CASCADE'), nullable=False),
        sa.Column('amount', sa.BigInteger(), nullable=False),
        sa.Column('type', sa.String(20), nullable=False),
        sa.Column('reference', sa.String(100), nullable=False),
        sa.Column('description', sa.String(500), nullable=False, server_default=''),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
    )
    op.create_index('ix_wallet_transactions_wallet_id', 'wallet_transactions', ['wallet_id'])
    op.create_index('ix_wallet_transactions_created_at', 'wallet_transactions', ['created_at'])


def downgrade() -> None:
    op.drop_table('wallet_transactions')
    op.drop_table('wallets')
    op.drop_table('user_roles')
    op.drop_table('role_permissions')
    op.drop_table('roles')
    op.drop_table('permissions')
    op.drop_table('users')
    op.drop_table('organizations')
