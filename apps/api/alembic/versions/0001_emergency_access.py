"""Emergency access: owners, nominees, vault resources, grants, inactivity, OTP, devices.

Revision ID: 0001_emergency_access
Revises:
Create Date: 2026-10-18

Creates:
- users, nominees
- categories, subcategories, documents
- access_grants (unique per owner/nominee/resource)
- inactivity_triggers (grant flag and timestamp set together)
- inactivity_alerts (append-only audit)
- otp_challenges
- device_tokens
"""
from alembic import op
import sqlalchemy as sa

# revision identifiers, used by Alembic.
revision = '0001_emergency_access'
down_revision = None
branch_labels = None
depends_on = None


def upgrade() -> None:
    # ==========================================================================
    # users / nominees
    # ==========================================================================
    op.create_table(
        'users',
        sa.Column('id', sa.Uuid(), nullable=False),
        sa.Column('email', sa.String(255), nullable=False),
        sa.Column('full_name', sa.String(255), nullable=True),
        sa.Column('push_notifications_enabled', sa.Boolean(), server_default=sa.text('false'), nullable=False),
        sa.Column('is_active', sa.Boolean(), server_default=sa.text('true'), nullable=False),
        sa.Column('token_version', sa.Integer(), server_default=sa.text('1'), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.text('now()'), nullable=False),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('email'),
    )

    op.create_table(
        'nominees',
        sa.Column('id', sa.Uuid(), nullable=False),
        sa.Column('owner_id', sa.Uuid(), nullable=False),
        sa.Column('email', sa.String(255), nullable=False),
        sa.Column('full_name', sa.String(255), nullable=False),
        sa.Column('status', sa.String(20), server_default=sa.text("'pending'"), nullable=False),
        sa.Column('verified_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('deleted_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.text('now()'), nullable=False),
        sa.ForeignKeyConstraint(['owner_id'], ['users.id'], ondelete='CASCADE'),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index('idx_nominees_email_status', 'nominees', ['email', 'status'])
    op.create_index('idx_nominees_owner', 'nominees', ['owner_id'])

    # ==========================================================================
    # vault resources
    # ==========================================================================
    op.create_table(
        'categories',
        sa.Column('id', sa.Uuid(), nullable=False),
        sa.Column('owner_id', sa.Uuid(), nullable=False),
        sa.Column('name', sa.String(255), nullable=False),
        sa.Column('deleted_at', sa.DateTime(timezone=True), nullable=True),
        sa.ForeignKeyConstraint(['owner_id'], ['users.id'], ondelete='CASCADE'),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index('ix_categories_owner_id', 'categories', ['owner_id'])

    op.create_table(
        'subcategories',
        sa.Column('id', sa.Uuid(), nullable=False),
        sa.Column('owner_id', sa.Uuid(), nullable=False),
        sa.Column('category_id', sa.Uuid(), nullable=False),
        sa.Column('name', sa.String(255), nullable=False),
        sa.Column('deleted_at', sa.DateTime(timezone=True), nullable=True),
        sa.ForeignKeyConstraint(['owner_id'], ['users.id'], ondelete='CASCADE'),
        sa.ForeignKeyConstraint(['category_id'], ['categories.id'], ondelete='CASCADE'),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index('ix_subcategories_owner_id', 'subcategories', ['owner_id'])

    op.create_table(
        'documents',
        sa.Column('id', sa.Uuid(), nullable=False),
        sa.Column('owner_id', sa.Uuid(), nullable=False),
        sa.Column('category_id', sa.Uuid(), nullable=True),
        sa.Column('subcategory_id', sa.Uuid(), nullable=True),
        sa.Column('file_name', sa.String(255), nullable=False),
        sa.Column('file_type', sa.String(100), nullable=True),
        sa.Column('file_size', sa.Integer(), nullable=True),
        sa.Column('file_path', sa.Text(), nullable=False),
        sa.Column('uploaded_at', sa.DateTime(timezone=True), server_default=sa.text('now()'), nullable=False),
        sa.Column('deleted_at', sa.DateTime(timezone=True), nullable=True),
        sa.ForeignKeyConstraint(['owner_id'], ['users.id'], ondelete='CASCADE'),
        sa.ForeignKeyConstraint(['category_id'], ['categories.id'], ondelete='SET NULL'),
        sa.ForeignKeyConstraint(['subcategory_id'], ['subcategories.id'], ondelete='SET NULL'),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index('ix_documents_owner_id', 'documents', ['owner_id'])

    # ==========================================================================
    # access_grants
    # ==========================================================================
    op.create_table(
        'access_grants',
        sa.Column('id', sa.Uuid(), nullable=False),
        sa.Column('owner_id', sa.Uuid(), nullable=False),
        sa.Column('nominee_id', sa.Uuid(), nullable=False),
        sa.Column('resource_type', sa.String(20), nullable=False),
        sa.Column('resource_id', sa.Uuid(), nullable=False),
        sa.Column('access_level', sa.String(20), server_default=sa.text("'view'"), nullable=False),
        sa.Column('granted_at', sa.DateTime(timezone=True), server_default=sa.text('now()'), nullable=False),
        sa.ForeignKeyConstraint(['owner_id'], ['users.id'], ondelete='CASCADE'),
        sa.ForeignKeyConstraint(['nominee_id'], ['nominees.id'], ondelete='CASCADE'),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint(
            'owner_id', 'nominee_id', 'resource_type', 'resource_id',
            name='uq_access_grant_tuple',
        ),
    )
    op.create_index('idx_access_grants_resource', 'access_grants', ['resource_type', 'resource_id'])
    op.create_index('idx_access_grants_nominee', 'access_grants', ['nominee_id'])

    # ==========================================================================
    # inactivity_triggers / inactivity_alerts
    # ==========================================================================
    op.create_table(
        'inactivity_triggers',
        sa.Column('id', sa.Uuid(), nullable=False),
        sa.Column('owner_id', sa.Uuid(), nullable=False),
        sa.Column('is_active', sa.Boolean(), server_default=sa.text('true'), nullable=False),
        sa.Column('threshold_days', sa.Integer(), server_default=sa.text('7'), nullable=False),
        sa.Column('last_activity_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('custom_message', sa.Text(), nullable=True),
        sa.Column('email_enabled', sa.Boolean(), server_default=sa.text('true'), nullable=False),
        sa.Column('sms_enabled', sa.Boolean(), server_default=sa.text('false'), nullable=False),
        sa.Column('emergency_access_granted', sa.Boolean(), server_default=sa.text('false'), nullable=False),
        sa.Column('emergency_granted_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.text('now()'), nullable=False),
        sa.Column('updated_at', sa.DateTime(timezone=True), server_default=sa.text('now()'), nullable=False),
        sa.ForeignKeyConstraint(['owner_id'], ['users.id'], ondelete='CASCADE'),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('owner_id'),
        sa.CheckConstraint('threshold_days >= 1', name='ck_inactivity_threshold_positive'),
        sa.CheckConstraint(
            '(emergency_access_granted AND emergency_granted_at IS NOT NULL)'
            ' OR (NOT emergency_access_granted AND emergency_granted_at IS NULL)',
            name='ck_inactivity_grant_timestamp',
        ),
    )
    op.create_index('idx_inactivity_triggers_active', 'inactivity_triggers', ['is_active'])

    op.create_table(
        'inactivity_alerts',
        sa.Column('id', sa.Uuid(), nullable=False),
        sa.Column('owner_id', sa.Uuid(), nullable=False),
        sa.Column('stage', sa.String(30), nullable=False),
        sa.Column('inactive_days', sa.Integer(), nullable=False),
        sa.Column('recipient_type', sa.String(20), nullable=False),
        sa.Column('recipient_email', sa.String(255), nullable=False),
        sa.Column('custom_message', sa.Text(), nullable=True),
        sa.Column('delivered', sa.Boolean(), nullable=False),
        sa.Column('error', sa.Text(), nullable=True),
        sa.Column('sent_at', sa.DateTime(timezone=True), nullable=False),
        sa.ForeignKeyConstraint(['owner_id'], ['users.id'], ondelete='CASCADE'),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index(
        'idx_inactivity_alerts_owner_stage', 'inactivity_alerts', ['owner_id', 'stage', 'sent_at']
    )

    # ==========================================================================
    # otp_challenges / device_tokens
    # ==========================================================================
    op.create_table(
        'otp_challenges',
        sa.Column('id', sa.Uuid(), nullable=False),
        sa.Column('nominee_email', sa.String(255), nullable=False),
        sa.Column('code_hash', sa.String(64), nullable=False),
        sa.Column('expires_at', sa.DateTime(timezone=True), nullable=False),
        sa.Column('verified_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.text('now()'), nullable=False),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index('idx_otp_challenges_lookup', 'otp_challenges', ['nominee_email', 'code_hash'])

    op.create_table(
        'device_tokens',
        sa.Column('id', sa.Uuid(), nullable=False),
        sa.Column('user_id', sa.Uuid(), nullable=False),
        sa.Column('token', sa.Text(), nullable=False),
        sa.Column('platform', sa.String(20), server_default=sa.text("'android'"), nullable=False),
        sa.Column('device_name', sa.String(255), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.text('now()'), nullable=False),
        sa.ForeignKeyConstraint(['user_id'], ['users.id'], ondelete='CASCADE'),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('user_id', 'token', name='uq_device_token_user'),
    )
    op.create_index('ix_device_tokens_user_id', 'device_tokens', ['user_id'])


def downgrade() -> None:
    op.drop_table('device_tokens')
    op.drop_table('otp_challenges')
    op.drop_table('inactivity_alerts')
    op.drop_table('inactivity_triggers')
    op.drop_table('access_grants')
    op.drop_table('documents')
    op.drop_table('subcategories')
    op.drop_table('categories')
    op.drop_table('nominees')
    op.drop_table('users')
