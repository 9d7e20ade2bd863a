"""Baseline migration - profiles and connections

Revision ID: 0001_baseline
Revises:
Create Date: 2026-02-10

Creates the profile directory table read by the engine and the connections
table with its status/type checks, the active-pair uniqueness index and the
optimistic-lock version column.
"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision: str = '0001_baseline'
down_revision: Union[str, Sequence[str], None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


ACTIVE_STATUS_WHERE = "status IN ('pending', 'accepted')"


def upgrade() -> None:
    """Create profiles and connections."""

    # ==========================================================================
    # Profiles
    # ==========================================================================
    op.create_table(
        'profiles',
        sa.Column('id', sa.Uuid(), primary_key=True),
        sa.Column('account_id', sa.Uuid(), nullable=True),
        sa.Column('type', sa.String(20), nullable=False),
        sa.Column('display_name', sa.String(255), nullable=False),
        sa.Column('city', sa.String(100), nullable=True),
        sa.Column('state', sa.String(50), nullable=True),
        sa.Column('care_types', sa.JSON(), nullable=False),
        sa.Column('metadata', sa.JSON(), nullable=False),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.Column('updated_at', sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
    )
    op.create_index('ix_profiles_account_id', 'profiles', ['account_id'])
    op.create_index('ix_profiles_type_city', 'profiles', ['type', 'city'])

    # ==========================================================================
    # Connections
    # ==========================================================================
    op.create_table(
        'connections',
        sa.Column('id', sa.Uuid(), primary_key=True),
        sa.Column('type', sa.String(20), nullable=False),
        sa.Column('status', sa.String(20), nullable=False, server_default='pending'),
        sa.Column(
            'from_profile_id',
            sa.Uuid(),
            sa.ForeignKey('profiles.id', ondelete='CASCADE'),
            nullable=False,
        ),
        sa.Column(
            'to_profile_id',
            sa.Uuid(),
            sa.ForeignKey('profiles.id', ondelete='CASCADE'),
            nullable=False,
        ),
        sa.Column('message', sa.JSON(), nullable=True),
        sa.Column('metadata', sa.JSON(), nullable=False),
        sa.Column('version', sa.Integer(), nullable=False, server_default='1'),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.Column('updated_at', sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.CheckConstraint(
            "status IN ('pending', 'accepted', 'declined', 'expired')",
            name='ck_connections_status',
        ),
        sa.CheckConstraint("type IN ('inquiry', 'request')", name='ck_connections_type'),
        sa.CheckConstraint('from_profile_id <> to_profile_id', name='ck_connections_not_self'),
    )
    op.create_index('ix_connections_from_profile', 'connections', ['from_profile_id', 'created_at'])
    op.create_index('ix_connections_to_profile', 'connections', ['to_profile_id', 'created_at'])
    op.create_index(
        'ix_connections_pair_type_status',
        'connections',
        ['from_profile_id', 'to_profile_id', 'type', 'status'],
    )
    op.create_index(
        'uq_connections_active_pair',
        'connections',
        ['from_profile_id', 'to_profile_id', 'type'],
        unique=True,
        postgresql_where=sa.text(ACTIVE_STATUS_WHERE),
        sqlite_where=sa.text(ACTIVE_STATUS_WHERE),
    )


def downgrade() -> None:
    """Drop connections and profiles."""
    op.drop_index('uq_connections_active_pair', table_name='connections')
    op.drop_index('ix_connections_pair_type_status', table_name='connections')
    op.drop_index('ix_connections_to_profile', table_name='connections')
    op.drop_index('ix_connections_from_profile', table_name='connections')
    op.drop_table('connections')
    op.drop_index('ix_profiles_type_city', table_name='profiles')
    op.drop_index('ix_profiles_account_id', table_name='profiles')
    op.drop_table('profiles')
