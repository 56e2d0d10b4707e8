"""Create device_authorizations table for OAuth 2.0 Device Flow

Revision ID: 001
Revises:
Create Date: 2026-10-18 12:00:00.000000

"""

import sqlalchemy as sa
from alembic import op

# revision identifiers, used by Alembic.
revision = '001'
down_revision = None
branch_labels = None
depends_on = None


def upgrade():
    """Create device_authorizations table for OAuth 2.0 Device Flow."""
    op.create_table(
        'device_authorizations',
        sa.Column('id', sa.Integer(), autoincrement=True, nullable=False),
        sa.Column('device_code', sa.String(length=128), nullable=False),
        sa.Column('user_code', sa.String(length=32), nullable=False),
        sa.Column('client_id', sa.String(length=255), nullable=False),
        sa.Column('scopes', sa.JSON(), nullable=False),
        sa.Column('status', sa.String(length=32), nullable=False),
        sa.Column('user_identifier', sa.String(length=255), nullable=True),
        # Timestamps in seconds since the epoch
        sa.Column('created_at', sa.BigInteger(), nullable=False),
        sa.Column('expires_at', sa.BigInteger(), nullable=False),
        sa.Column('authorized_at', sa.BigInteger(), nullable=True),
        # Rate limiting fields for RFC 8628 section 3.5 compliance
        sa.Column('last_polled_at', sa.BigInteger(), nullable=True),
        sa.Column('polling_interval', sa.Integer(), nullable=False, default=5),
        # Optimistic concurrency for conditional updates
        sa.Column('version', sa.Integer(), nullable=False, default=0),
        sa.PrimaryKeyConstraint('id'),
    )

    # Unique indexes are the authoritative code uniqueness guarantee
    op.create_index(
        'ix_device_authorizations_device_code',
        'device_authorizations',
        ['device_code'],
        unique=True,
    )
    op.create_index(
        'ix_device_authorizations_user_code',
        'device_authorizations',
        ['user_code'],
        unique=True,
    )
    # Cleanup scans
    op.create_index(
        'ix_device_authorizations_expires_at',
        'device_authorizations',
        ['expires_at'],
    )
    op.create_index(
        'ix_device_authorizations_authorized_at',
        'device_authorizations',
        ['authorized_at'],
    )


def downgrade():
    """Drop device_authorizations table."""
    op.drop_index(
        'ix_device_authorizations_authorized_at', table_name='device_authorizations'
    )
    op.drop_index(
        'ix_device_authorizations_expires_at', table_name='device_authorizations'
    )
    op.drop_index(
        'ix_device_authorizations_user_code', table_name='device_authorizations'
    )
    op.drop_index(
        'ix_device_authorizations_device_code', table_name='device_authorizations'
    )
    op.drop_table('device_authorizations')
