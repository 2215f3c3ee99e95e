"""Initial RE-CRM schema.

Revision ID: 0001_initial
Revises:
Create Date: 2026-10-19

Creates the seven CRM tables. Enumerations are stored as strings.
"""
from __future__ import annotations

from alembic import op
import sqlalchemy as sa

# revision identifiers
revision = '0001_initial'
down_revision = None
branch_labels = None
depends_on = None


def _timestamps(updated: bool = True) -> list:
    columns = [sa.Column('created_at', sa.DateTime(timezone=True), nullable=True)]
    if updated:
        columns.append(sa.Column('updated_at', sa.DateTime(timezone=True), nullable=True))
    return columns


def upgrade() -> None:
    """Create all tables."""

    # =========================================================================
    # Table: user
    # =========================================================================
    op.create_table(
        'user',
        sa.Column('id', sa.String(36), nullable=False),
        sa.Column('name', sa.String(255), nullable=False),
        sa.Column('email', sa.String(255), nullable=False),
        sa.Column('password_hash', sa.String(255), nullable=False),
        sa.Column('role', sa.String(10), nullable=False, server_default='AGENT'),
        *_timestamps(),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index('ix_user_email', 'user', ['email'], unique=True)

    # =========================================================================
    # Table: client
    # =========================================================================
    op.create_table(
        'client',
        sa.Column('id', sa.String(36), nullable=False),
        sa.Column('full_name', sa.String(255), nullable=False),
        sa.Column('phone', sa.String(50), nullable=False),
        sa.Column('email', sa.String(255), nullable=True),
        sa.Column('lead_source', sa.String(20), nullable=True),
        sa.Column('status', sa.String(20), nullable=False, server_default='NEW'),
        sa.Column('assigned_to', sa.String(36), nullable=False),
        sa.Column('tags', sa.JSON(), nullable=True),
        sa.Column('notes', sa.Text(), nullable=True),
        *_timestamps(),
        sa.ForeignKeyConstraint(['assigned_to'], ['user.id']),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index('ix_client_assigned_to', 'client', ['assigned_to'])
    op.create_index('ix_client_created_at', 'client', ['created_at'])
    op.create_index('ix_client_assigned_status', 'client', ['assigned_to', 'status'])

    # =========================================================================
    # Table: property
    # =========================================================================
    op.create_table(
        'property',
        sa.Column('id', sa.String(36), nullable=False),
        sa.Column('title', sa.String(255), nullable=False),
        sa.Column('address', sa.String(500), nullable=False),
        sa.Column('price', sa.Numeric(14, 2), nullable=False),
        sa.Column('currency', sa.String(3), nullable=False, server_default='ILS'),
        sa.Column('description', sa.Text(), nullable=True),
        sa.Column('status', sa.String(20), nullable=False, server_default='ACTIVE'),
        sa.Column('rooms', sa.Integer(), nullable=True),
        sa.Column('size_sqm', sa.Integer(), nullable=True),
        sa.Column('floor', sa.Integer(), nullable=True),
        sa.Column('owner_client_id', sa.String(36), nullable=True),
        *_timestamps(),
        sa.ForeignKeyConstraint(['owner_client_id'], ['client.id'], ondelete='SET NULL'),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index('ix_property_created_at', 'property', ['created_at'])
    op.create_index('ix_property_status_price', 'property', ['status', 'price'])

    # =========================================================================
    # Table: property_photo
    # =========================================================================
    op.create_table(
        'property_photo',
        sa.Column('id', sa.String(36), nullable=False),
        sa.Column('property_id', sa.String(36), nullable=False),
        sa.Column('url', sa.String(500), nullable=False),
        *_timestamps(updated=False),
        sa.ForeignKeyConstraint(['property_id'], ['property.id'], ondelete='CASCADE'),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index('ix_property_photo_property_id', 'property_photo', ['property_id'])

    # =========================================================================
    # Table: deal
    # =========================================================================
    op.create_table(
        'deal',
        sa.Column('id', sa.String(36), nullable=False),
        sa.Column('client_id', sa.String(36), nullable=False),
        sa.Column('property_id', sa.String(36), nullable=True),
        sa.Column('stage', sa.String(20), nullable=False, server_default='NEW_LEAD'),
        sa.Column('value', sa.Numeric(14, 2), nullable=True),
        sa.Column('probability', sa.Integer(), nullable=True),
        sa.Column('assigned_to', sa.String(36), nullable=False),
        sa.Column('next_action_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('lost_reason', sa.Text(), nullable=True),
        *_timestamps(),
        sa.ForeignKeyConstraint(['client_id'], ['client.id'], ondelete='CASCADE'),
        sa.ForeignKeyConstraint(['property_id'], ['property.id'], ondelete='SET NULL'),
        sa.ForeignKeyConstraint(['assigned_to'], ['user.id']),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index('ix_deal_client_id', 'deal', ['client_id'])
    op.create_index('ix_deal_stage', 'deal', ['stage'])
    op.create_index('ix_deal_assigned_to', 'deal', ['assigned_to'])

    # =========================================================================
    # Table: task
    # =========================================================================
    op.create_table(
        'task',
        sa.Column('id', sa.String(36), nullable=False),
        sa.Column('title', sa.String(255), nullable=False),
        sa.Column('description', sa.Text(), nullable=True),
        sa.Column('due_at', sa.DateTime(timezone=True), nullable=False),
        sa.Column('priority', sa.String(10), nullable=False, server_default='MEDIUM'),
        sa.Column('status', sa.String(20), nullable=False, server_default='TODO'),
        sa.Column('assigned_to', sa.String(36), nullable=False),
        sa.Column('related_client_id', sa.String(36), nullable=True),
        sa.Column('related_deal_id', sa.String(36), nullable=True),
        sa.Column('related_property_id', sa.String(36), nullable=True),
        sa.Column('reminder_at', sa.DateTime(timezone=True), nullable=True),
        *_timestamps(),
        sa.ForeignKeyConstraint(['assigned_to'], ['user.id']),
        sa.ForeignKeyConstraint(['related_client_id'], ['client.id'], ondelete='SET NULL'),
        sa.ForeignKeyConstraint(['related_deal_id'], ['deal.id'], ondelete='SET NULL'),
        sa.ForeignKeyConstraint(['related_property_id'], ['property.id'], ondelete='SET NULL'),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index('ix_task_due_at', 'task', ['due_at'])
    op.create_index('ix_task_assigned_to', 'task', ['assigned_to'])
    op.create_index('ix_task_assigned_status_due', 'task', ['assigned_to', 'status', 'due_at'])

    # =========================================================================
    # Table: activity
    # =========================================================================
    op.create_table(
        'activity',
        sa.Column('id', sa.String(36), nullable=False),
        sa.Column('type', sa.String(20), nullable=False),
        sa.Column('content', sa.Text(), nullable=False),
        sa.Column('user_id', sa.String(36), nullable=True),
        sa.Column('client_id', sa.String(36), nullable=True),
        sa.Column('deal_id', sa.String(36), nullable=True),
        *_timestamps(updated=False),
        sa.ForeignKeyConstraint(['user_id'], ['user.id']),
        sa.ForeignKeyConstraint(['client_id'], ['client.id'], ondelete='SET NULL'),
        sa.ForeignKeyConstraint(['deal_id'], ['deal.id'], ondelete='SET NULL'),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index('ix_activity_user_id', 'activity', ['user_id'])
    op.create_index('ix_activity_client_id', 'activity', ['client_id'])
    op.create_index('ix_activity_deal_id', 'activity', ['deal_id'])
    op.create_index('ix_activity_created_at', 'activity', ['created_at'])


def downgrade() -> None:
    """Drop all tables in reverse dependency order."""
    op.drop_table('activity')
    op.drop_table('task')
    op.drop_table('deal')
    op.drop_table('property_photo')
    op.drop_table('property')
    op.drop_table('client')
    op.drop_table('user')
