"""Tenancy schema: tenants, tenant_features, profiles

Revision ID: 001_tenancy_schema
Revises: 
Create Date: 2026-10-17

"""
from alembic import op
import sqlalchemy as sa

# revision identifiers
revision = '001_tenancy_schema'
down_revision = None

tenant_status = sa.Enum('ACTIVE', 'SUSPENDED', 'TRIAL', name='tenantstatus')
tenant_plan = sa.Enum('BASIC', 'PREMIUM', 'ENTERPRISE', name='tenantplan')
site_theme = sa.Enum('MODERN', 'MINIMAL', 'CLASSIC', name='sitetheme')


def upgrade():
    # Create tenants table
    op.create_table(
        'tenants',
        sa.Column('id', sa.Uuid(), primary_key=True),
        sa.Column('slug', sa.String(100), nullable=False),
        sa.Column('name', sa.String(200), nullable=False),
        sa.Column('custom_domain', sa.String(255), nullable=True),
        sa.Column('status', tenant_status, nullable=False),
        sa.Column('plan', tenant_plan, nullable=False),
        sa.Column('logo_url', sa.String(), nullable=True),
        sa.Column('primary_color', sa.String(7), nullable=False),
        sa.Column('secondary_color', sa.String(7), nullable=False),
        sa.Column('accent_color', sa.String(7), nullable=False),
        sa.Column('font_family', sa.String(100), nullable=False),
        sa.Column('theme', site_theme, nullable=False),
        sa.Column('contact_email', sa.String(255), nullable=True),
        sa.Column('contact_phone', sa.String(50), nullable=True),
        sa.Column('address', sa.String(), nullable=True),
        sa.Column('timezone', sa.String(64), nullable=False),
        sa.Column('language', sa.String(16), nullable=False),
        sa.Column('currency', sa.String(8), nullable=False),
        sa.Column('country', sa.String(2), nullable=True),
        sa.Column('meta_title', sa.String(200), nullable=True),
        sa.Column('meta_description', sa.String(), nullable=True),
        sa.Column('keywords', sa.JSON(), nullable=False),
        sa.Column('is_published', sa.Boolean(), nullable=False),
        sa.Column('subscription_start', sa.DateTime(timezone=True), nullable=True),
        sa.Column('subscription_end', sa.DateTime(timezone=True), nullable=True),
        sa.Column('last_payment_date', sa.DateTime(timezone=True), nullable=True),
        sa.Column('onboarding_completed', sa.Boolean(), nullable=False),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False),
        sa.Column('updated_at', sa.DateTime(timezone=True), nullable=False),
    )
    op.create_index('ix_tenants_slug', 'tenants', ['slug'], unique=True)
    op.create_index('ix_tenants_name', 'tenants', ['name'])
    op.create_index('ix_tenants_status', 'tenants', ['status'])

    # Create tenant_features table
    op.create_table(
        'tenant_features',
        sa.Column('id', sa.Uuid(), primary_key=True),
        sa.Column('tenant_id', sa.Uuid(), sa.ForeignKey('tenants.id'), nullable=False),
        sa.Column('feature_key', sa.String(64), nullable=False),
        sa.Column('is_enabled', sa.Boolean(), nullable=False),
        sa.Column('config', sa.JSON(), nullable=False),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False),
        sa.UniqueConstraint('tenant_id', 'feature_key', name='uq_tenant_features_tenant_key'),
    )
    op.create_index('ix_tenant_features_tenant_id', 'tenant_features', ['tenant_id'])
    op.create_index('ix_tenant_features_feature_key', 'tenant_features', ['feature_key'])

    # Create profiles table
    op.create_table(
        'profiles',
        sa.Column('id', sa.Uuid(), primary_key=True),
        sa.Column('user_id', sa.Uuid(), nullable=False),
        sa.Column('tenant_id', sa.Uuid(), sa.ForeignKey('tenants.id'), nullable=True),
        sa.Column('full_name', sa.String(200), nullable=True),
        sa.Column('email', sa.String(255), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False),
    )
    op.create_index('ix_profiles_user_id', 'profiles', ['user_id'], unique=True)
    op.create_index('ix_profiles_tenant_id', 'profiles', ['tenant_id'])


def downgrade():
    op.drop_index('ix_profiles_tenant_id', 'profiles')
    op.drop_index('ix_profiles_user_id', 'profiles')
    op.drop_table('profiles')

    op.drop_index('ix_tenant_features_feature_key', 'tenant_features')
    op.drop_index('ix_tenant_features_tenant_id', 'tenant_features')
    op.drop_table('tenant_features')

    op.drop_index('ix_tenants_status', 'tenants')
    op.drop_index('ix_tenants_name', 'tenants')
    op.drop_index('ix_tenants_slug', 'tenants')
    op.drop_table('tenants')

    site_theme.drop(op.get_bind(), checkfirst=True)
    tenant_plan.drop(op.get_bind(), checkfirst=True)
    tenant_status.drop(op.get_bind(), checkfirst=True)
