"""create auth tables

Revision ID: 4c1d2e3f4a5b
Revises:
Create Date: 2026-10-19 09:00:00.000000

"""
from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision = '4c1d2e3f4a5b'
down_revision = None
branch_labels = None
depends_on = None


def upgrade():
    op.create_table('partner_firms',
        sa.Column('id', sa.String(length=36), nullable=False),
        sa.Column('name', sa.String(length=255), nullable=False),
        sa.Column('is_active', sa.Boolean(), nullable=False, server_default='true'),
        sa.Column('created_at', sa.DateTime(), nullable=False),
        sa.PrimaryKeyConstraint('id')
    )

    op.create_table('organizations',
        sa.Column('id', sa.String(length=64), nullable=False),
        sa.Column('name', sa.String(length=255), nullable=False),
        sa.Column('slug', sa.String(length=100), nullable=False),
        sa.Column('plan', sa.String(length=50), nullable=False, server_default='starter'),
        sa.Column('is_active', sa.Boolean(), nullable=False, server_default='true'),
        sa.Column('enable_local_auth', sa.Boolean(), nullable=False, server_default='true'),
        sa.Column('enable_slack_auth', sa.Boolean(), nullable=False, server_default='false'),
        sa.Column('enable_microsoft_auth', sa.Boolean(), nullable=False, server_default='false'),
        sa.Column('slack_workspace_id', sa.String(length=64), nullable=True),
        sa.Column('microsoft_tenant_id', sa.String(length=64), nullable=True),
        sa.Column('partner_firm_id', sa.String(length=36), nullable=True),
        sa.Column('onboarding_status', sa.String(length=32), nullable=False, server_default='pending'),
        sa.Column('created_at', sa.DateTime(), nullable=False),
        sa.ForeignKeyConstraint(['partner_firm_id'], ['partner_firms.id']),
        sa.PrimaryKeyConstraint('id')
    )
    op.create_index('ix_organizations_slug', 'organizations', ['slug'], unique=False)

    op.create_table('users',
        sa.Column('id', sa.String(length=36), nullable=False),
        sa.Column('organization_id', sa.String(length=64), nullable=False),
        sa.Column('email', sa.String(length=255), nullable=False),
        sa.Column('username', sa.String(length=255), nullable=False),
        sa.Column('name', sa.String(length=255), nullable=False),
        sa.Column('password_hash', sa.String(length=255), nullable=True),
        sa.Column('role', sa.String(length=32), nullable=False, server_default='member'),
        sa.Column('is_super_admin', sa.Boolean(), nullable=False, server_default='false'),
        sa.Column('is_active', sa.Boolean(), nullable=False, server_default='true'),
        sa.Column('team_id', sa.String(length=36), nullable=True),
        sa.Column('slack_user_id', sa.String(length=64), nullable=True),
        sa.Column('microsoft_user_id', sa.String(length=64), nullable=True),
        sa.Column('auth_provider', sa.String(length=32), nullable=False, server_default='local'),
        sa.Column('created_at', sa.DateTime(), nullable=False),
        sa.ForeignKeyConstraint(['organization_id'], ['organizations.id'], ondelete='CASCADE'),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('organization_id', 'email', name='uq_users_org_email'),
        sa.UniqueConstraint('organization_id', 'username', name='uq_users_org_username')
    )
    # email -> memberships lookup at login
    op.create_index('ix_users_email', 'users', ['email'], unique=False)
    op.create_index('ix_users_slack_user_id', 'users', ['slack_user_id'], unique=False)
    op.create_index('ix_users_microsoft_user_id', 'users', ['microsoft_user_id'], unique=False)

    op.create_table('teams',
        sa.Column('id', sa.String(length=36), nullable=False),
        sa.Column('organization_id', sa.String(length=64), nullable=False),
        sa.Column('name', sa.String(length=255), nullable=False),
        sa.Column('leader_id', sa.String(length=36), nullable=True),
        sa.Column('is_active', sa.Boolean(), nullable=False, server_default='true'),
        sa.Column('created_at', sa.DateTime(), nullable=False),
        sa.ForeignKeyConstraint(['organization_id'], ['organizations.id'], ondelete='CASCADE'),
        sa.ForeignKeyConstraint(['leader_id'], ['users.id']),
        sa.PrimaryKeyConstraint('id')
    )


def downgrade():
    op.drop_table('teams')
    op.drop_index('ix_users_microsoft_user_id', table_name='users')
    op.drop_index('ix_users_slack_user_id', table_name='users')
    op.drop_index('ix_users_email', table_name='users')
    op.drop_table('users')
    op.drop_index('ix_organizations_slug', table_name='organizations')
    op.drop_table('organizations')
    op.drop_table('partner_firms')
