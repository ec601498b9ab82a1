"""Create tenant, credential, deal, sale and webhook log tables

Revision ID: 0a1b2c3d4e5f
Revises:
Create Date: 2026-10-19 09:00:00.000000

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql


# revision identifiers, used by Alembic.
revision: str = '0a1b2c3d4e5f'
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


# Enum columns store member names, except sales.status which stores the Portuguese labels
userrole = sa.Enum('ADMIN', 'VENDEDOR', name='userrole')
platform = sa.Enum('HOTMART', 'KIWIFY', name='platform')
dealstage = sa.Enum(
    'LEAD', 'QUALIFICATION', 'PROPOSAL', 'NEGOTIATION', 'CLOSED_WON', 'CLOSED_LOST', name='dealstage'
)
dealsource = sa.Enum('MANUAL', 'HOTMART', 'KIWIFY', name='dealsource')
salestatus = sa.Enum('Aprovado', 'Pendente', 'Reembolsado', name='salestatus')
webhooklogstatus = sa.Enum('RECEIVED', 'PROCESSING', 'SUCCESS', 'ERROR', name='webhooklogstatus')
webhookoutcome = sa.Enum(
    'CREATED', 'REVERSED', 'DUPLICATE', 'ALREADY_REVERSED', 'IGNORED_STATUS', 'UNSUPPORTED_EVENT',
    'ORPHAN_REVERSAL', 'PARTIAL_WRITE_FAILURE', 'UNAUTHENTICATED', 'UNKNOWN_PLATFORM',
    'MALFORMED_PAYLOAD', 'INTERNAL_ERROR',
    name='webhookoutcome',
)


def upgrade() -> None:
    op.create_table(
        'tenants',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('name', sa.String(length=255), nullable=False),
        sa.Column('plan', sa.String(length=50), nullable=False),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.text('now()'), nullable=False),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index(op.f('ix_tenants_id'), 'tenants', ['id'], unique=False)

    op.create_table(
        'users',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('tenant_id', sa.Integer(), nullable=False),
        sa.Column('email', sa.String(length=255), nullable=False),
        sa.Column('name', sa.String(length=255), nullable=True),
        sa.Column('role', userrole, nullable=False),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.text('now()'), nullable=False),
        sa.ForeignKeyConstraint(['tenant_id'], ['tenants.id']),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index(op.f('ix_users_id'), 'users', ['id'], unique=False)
    op.create_index(op.f('ix_users_email'), 'users', ['email'], unique=True)
    op.create_index(op.f('ix_users_tenant_id'), 'users', ['tenant_id'], unique=False)

    op.create_table(
        'platform_credentials',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('tenant_id', sa.Integer(), nullable=False),
        sa.Column('platform', platform, nullable=False),
        sa.Column('secret_hash', sa.String(length=64), nullable=True),
        sa.Column('secret_encrypted', sa.Text(), nullable=True),
        sa.Column('owner_user_id', sa.Integer(), nullable=True),
        sa.Column('is_active', sa.Boolean(), nullable=False),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.text('now()'), nullable=False),
        sa.Column('updated_at', sa.DateTime(timezone=True), server_default=sa.text('now()'), nullable=False),
        sa.ForeignKeyConstraint(['tenant_id'], ['tenants.id'], ondelete='CASCADE'),
        sa.ForeignKeyConstraint(['owner_user_id'], ['users.id'], ondelete='SET NULL'),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('tenant_id', 'platform', name='uq_platform_credentials_tenant_platform'),
    )
    op.create_index(op.f('ix_platform_credentials_id'), 'platform_credentials', ['id'], unique=False)
    op.create_index(op.f('ix_platform_credentials_tenant_id'), 'platform_credentials', ['tenant_id'], unique=False)
    op.create_index(op.f('ix_platform_credentials_secret_hash'), 'platform_credentials', ['secret_hash'], unique=True)

    op.create_table(
        'deals',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('tenant_id', sa.Integer(), nullable=False),
        sa.Column('user_id', sa.Integer(), nullable=True),
        sa.Column('title', sa.String(length=500), nullable=False),
        sa.Column('customer_name', sa.String(length=255), nullable=True),
        sa.Column('customer_email', sa.String(length=255), nullable=True),
        sa.Column('customer_phone', sa.String(length=50), nullable=True),
        sa.Column('value', sa.Numeric(12, 2), nullable=False),
        sa.Column('stage', dealstage, nullable=False),
        sa.Column('probability', sa.Integer(), nullable=False),
        sa.Column('source', dealsource, nullable=False),
        sa.Column('external_id', sa.String(length=255), nullable=True),
        sa.Column('loss_reason', sa.String(length=255), nullable=True),
        sa.Column('notes', sa.Text(), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.text('now()'), nullable=False),
        sa.Column('updated_at', sa.DateTime(timezone=True), server_default=sa.text('now()'), nullable=False),
        sa.ForeignKeyConstraint(['tenant_id'], ['tenants.id']),
        sa.ForeignKeyConstraint(['user_id'], ['users.id'], ondelete='SET NULL'),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('tenant_id', 'source', 'external_id', name='uq_deals_tenant_source_external'),
    )
    op.create_index(op.f('ix_deals_id'), 'deals', ['id'], unique=False)
    op.create_index(op.f('ix_deals_tenant_id'), 'deals', ['tenant_id'], unique=False)
    op.create_index(op.f('ix_deals_user_id'), 'deals', ['user_id'], unique=False)
    op.create_index(op.f('ix_deals_external_id'), 'deals', ['external_id'], unique=False)

    op.create_table(
        'sales',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('tenant_id', sa.Integer(), nullable=False),
        sa.Column('user_id', sa.Integer(), nullable=True),
        sa.Column('deal_id', sa.Integer(), nullable=True),
        sa.Column('customer_name', sa.String(length=255), nullable=False),
        sa.Column('product_name', sa.String(length=255), nullable=False),
        sa.Column('value', sa.Numeric(12, 2), nullable=False),
        sa.Column('platform', sa.String(length=50), nullable=True),
        sa.Column('payment_method', sa.String(length=50), nullable=False),
        sa.Column('status', salestatus, nullable=False),
        sa.Column('observation', sa.Text(), nullable=True),
        sa.Column('sale_date', sa.Date(), server_default=sa.text('CURRENT_DATE'), nullable=False),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.text('now()'), nullable=False),
        sa.ForeignKeyConstraint(['tenant_id'], ['tenants.id']),
        sa.ForeignKeyConstraint(['user_id'], ['users.id'], ondelete='SET NULL'),
        sa.ForeignKeyConstraint(['deal_id'], ['deals.id'], ondelete='SET NULL'),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('deal_id'),
    )
    op.create_index(op.f('ix_sales_id'), 'sales', ['id'], unique=False)
    op.create_index(op.f('ix_sales_tenant_id'), 'sales', ['tenant_id'], unique=False)
    op.create_index(op.f('ix_sales_user_id'), 'sales', ['user_id'], unique=False)

    op.create_table(
        'webhook_logs',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('tenant_id', sa.Integer(), nullable=True),
        sa.Column('platform', sa.String(length=50), nullable=False),
        sa.Column('event_type', sa.String(length=100), nullable=False),
        sa.Column('external_id', sa.String(length=255), nullable=True),
        sa.Column('event_status', sa.String(length=20), nullable=True),
        sa.Column('payload', postgresql.JSONB(astext_type=sa.Text()), nullable=False),
        sa.Column('status', webhooklogstatus, nullable=False),
        sa.Column('outcome', webhookoutcome, nullable=True),
        sa.Column('error_message', sa.Text(), nullable=True),
        sa.Column('deal_id', sa.Integer(), nullable=True),
        sa.Column('needs_review', sa.Boolean(), nullable=False),
        sa.Column('replay_of_id', sa.Integer(), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.text('now()'), nullable=False),
        sa.Column('updated_at', sa.DateTime(timezone=True), server_default=sa.text('now()'), nullable=False),
        sa.ForeignKeyConstraint(['tenant_id'], ['tenants.id']),
        sa.ForeignKeyConstraint(['deal_id'], ['deals.id'], ondelete='SET NULL'),
        sa.ForeignKeyConstraint(['replay_of_id'], ['webhook_logs.id']),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index(op.f('ix_webhook_logs_id'), 'webhook_logs', ['id'], unique=False)
    op.create_index(op.f('ix_webhook_logs_tenant_id'), 'webhook_logs', ['tenant_id'], unique=False)
    op.create_index(op.f('ix_webhook_logs_platform'), 'webhook_logs', ['platform'], unique=False)
    op.create_index(op.f('ix_webhook_logs_external_id'), 'webhook_logs', ['external_id'], unique=False)
    op.create_index(op.f('ix_webhook_logs_status'), 'webhook_logs', ['status'], unique=False)
    op.create_index(op.f('ix_webhook_logs_outcome'), 'webhook_logs', ['outcome'], unique=False)
    op.create_index(op.f('ix_webhook_logs_deal_id'), 'webhook_logs', ['deal_id'], unique=False)
    op.create_index(op.f('ix_webhook_logs_needs_review'), 'webhook_logs', ['needs_review'], unique=False)
    op.create_index(op.f('ix_webhook_logs_created_at'), 'webhook_logs', ['created_at'], unique=False)
    # Dedup lookup for "reversal already delivered"
    op.create_index(
        'ix_webhook_logs_tenant_platform_external',
        'webhook_logs',
        ['tenant_id', 'platform', 'external_id'],
        unique=False,
    )


def downgrade() -> None:
    op.drop_index('ix_webhook_logs_tenant_platform_external', table_name='webhook_logs')
    op.drop_table('webhook_logs')
    op.drop_table('sales')
    op.drop_table('deals')
    op.drop_table('platform_credentials')
    op.drop_table('users')
    op.drop_table('tenants')
    for enum_type in (webhookoutcome, webhooklogstatus, salestatus, dealsource, dealstage, platform, userrole):
        enum_type.drop(op.get_bind(), checkfirst=True)
