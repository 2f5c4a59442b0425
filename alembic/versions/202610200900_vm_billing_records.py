"""Hourly VM billing records

Revision ID: 202610200900
Revises: 202610190900
Create Date: 2026-10-20 09:00:00.000000

"""
from alembic import op
import sqlalchemy as sa

# revision identifiers, used by Alembic.
revision = '202610200900'
down_revision = '202610190900'
branch_labels = None
depends_on = None


def upgrade() -> None:
    op.create_table(
        'vm_billing_records',
        sa.Column('id', sa.String(64), primary_key=True, nullable=False),
        sa.Column('organization_id', sa.String(64), sa.ForeignKey('organizations.id', ondelete='CASCADE'), nullable=False),
        sa.Column('name', sa.String(255), nullable=True),
        sa.Column('vcenter_instance_uuid', sa.String(100), nullable=True),
        sa.Column('specification', sa.JSON(), nullable=False),
        sa.Column('hourly_rate', sa.Numeric(12, 4), nullable=False),
        sa.Column('reserved_monthly_amount', sa.Numeric(12, 2), nullable=False),
        sa.Column('billing_month', sa.String(7), nullable=False),
        sa.Column('actual_usage_this_month', sa.Numeric(12, 4), nullable=False, server_default='0'),
        sa.Column('hours_used_this_month', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('status', sa.String(20), nullable=False, server_default='active'),
        sa.Column('powered_on', sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.Column('last_billed_at', sa.DateTime(timezone=True), nullable=True),
    )
    op.create_index('ix_vm_billing_records_organization_id', 'vm_billing_records', ['organization_id'])
    op.create_index('ix_vm_billing_records_vcenter_instance_uuid', 'vm_billing_records', ['vcenter_instance_uuid'])


def downgrade() -> None:
    op.drop_table('vm_billing_records')
