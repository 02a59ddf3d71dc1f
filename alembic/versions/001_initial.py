"""init

Revision ID: 001_initial
Revises:
Create Date: 2026-10-19 09:00:00.000000

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql

# revision identifiers, used by Alembic.
revision: str = '001_initial'
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    # Create users table
    op.create_table(
        'users',
        sa.Column('id', postgresql.UUID(as_uuid=True), primary_key=True),
        sa.Column('email', sa.String(255), nullable=False, unique=True),
        sa.Column('name', sa.String(255), nullable=False),
        sa.Column('phone', sa.String(32)),
        sa.Column('role', sa.String(20), nullable=False),  # USER, MERCHANT, AGENT, ADMIN
        sa.Column('status', sa.String(20), default='active'),
        sa.Column('created_at', sa.DateTime, default=sa.func.now()),
        sa.Column('updated_at', sa.DateTime, default=sa.func.now(), onupdate=sa.func.now()),
    )

    # Create wallets table
    op.create_table(
        'wallets',
        sa.Column('id', postgresql.UUID(as_uuid=True), primary_key=True),
        sa.Column('user_id', postgresql.UUID(as_uuid=True), sa.ForeignKey('users.id'), nullable=False, unique=True),
        sa.Column('balance', sa.Float, nullable=False, default=0),
        sa.Column('status', sa.String(20), default='active'),
        sa.Column('created_at', sa.DateTime, default=sa.func.now()),
        sa.Column('updated_at', sa.DateTime, default=sa.func.now(), onupdate=sa.func.now()),
    )

    # Create promos table
    op.create_table(
        'promos',
        sa.Column('id', postgresql.UUID(as_uuid=True), primary_key=True),
        sa.Column('merchant_id', postgresql.UUID(as_uuid=True), sa.ForeignKey('users.id'), nullable=False),
        sa.Column('title', sa.String(255), nullable=False),
        sa.Column('description', sa.Text),
        sa.Column('original_price', sa.Float, nullable=False),
        sa.Column('discounted_price', sa.Float, nullable=False),
        sa.Column('cashback_percent', sa.Float, default=0),
        sa.Column('total_slots', sa.Integer, nullable=False),
        sa.Column('available_slots', sa.Integer, nullable=False),
        sa.Column('status', sa.String(20)),  # DRAFT, ACTIVE, DISABLED, EXPIRED
        sa.Column('activated_at', sa.DateTime),
        sa.Column('expires_at', sa.DateTime, nullable=False),
        sa.Column('created_at', sa.DateTime, default=sa.func.now()),
        sa.Column('updated_at', sa.DateTime, default=sa.func.now(), onupdate=sa.func.now()),
        sa.CheckConstraint('available_slots >= 0', name='ck_promos_available_slots_non_negative'),
    )

    # Create reservations table
    op.create_table(
        'reservations',
        sa.Column('id', postgresql.UUID(as_uuid=True), primary_key=True),
        sa.Column('user_id', postgresql.UUID(as_uuid=True), sa.ForeignKey('users.id'), nullable=False),
        sa.Column('promo_id', postgresql.UUID(as_uuid=True), sa.ForeignKey('promos.id'), nullable=False),
        sa.Column('status', sa.String(20)),  # ACTIVE, EXPIRED, REDEEMED, CANCELLED
        sa.Column('expires_at', sa.DateTime, nullable=False),
        sa.Column('redeemed_at', sa.DateTime),
        sa.Column('created_at', sa.DateTime, default=sa.func.now()),
        sa.Column('updated_at', sa.DateTime, default=sa.func.now(), onupdate=sa.func.now()),
    )

    # Create redemptions table; reservation_id and qr_token are the replay guards
    op.create_table(
        'redemptions',
        sa.Column('id', postgresql.UUID(as_uuid=True), primary_key=True),
        sa.Column('reservation_id', postgresql.UUID(as_uuid=True), sa.ForeignKey('reservations.id'), nullable=False, unique=True),
        sa.Column('user_id', postgresql.UUID(as_uuid=True), sa.ForeignKey('users.id'), nullable=False),
        sa.Column('promo_id', postgresql.UUID(as_uuid=True), sa.ForeignKey('promos.id'), nullable=False),
        sa.Column('merchant_id', postgresql.UUID(as_uuid=True), sa.ForeignKey('users.id'), nullable=False),
        sa.Column('payment_type', sa.String(20), nullable=False),  # FULL_WALLET, PARTIAL_WALLET, IN_STORE
        sa.Column('promo_amount', sa.Float, nullable=False),
        sa.Column('wallet_used', sa.Float, default=0),
        sa.Column('cash_paid', sa.Float, nullable=False),
        sa.Column('cashback_amount', sa.Float, default=0),
        sa.Column('cashback_percent', sa.Float, default=0),
        sa.Column('status', sa.String(20)),  # PENDING, CONFIRMED, FAILED, REFUNDED
        sa.Column('qr_token', sa.String(64), unique=True),
        sa.Column('qr_generated_at', sa.DateTime),
        sa.Column('qr_expires_at', sa.DateTime),
        sa.Column('idempotency_key', sa.String(255)),
        sa.Column('confirmed_at', sa.DateTime),
        sa.Column('created_at', sa.DateTime, default=sa.func.now()),
        sa.Column('updated_at', sa.DateTime, default=sa.func.now(), onupdate=sa.func.now()),
    )

    # Create audit_logs table
    op.create_table(
        'audit_logs',
        sa.Column('id', postgresql.UUID(as_uuid=True), primary_key=True),
        sa.Column('action', sa.String(64), nullable=False),
        sa.Column('entity_type', sa.String(32), nullable=False),
        sa.Column('entity_id', sa.String(64), nullable=False),
        sa.Column('user_id', postgresql.UUID(as_uuid=True)),
        sa.Column('metadata', sa.JSON),
        sa.Column('created_at', sa.DateTime, default=sa.func.now()),
    )

    # Create indexes
    op.create_index('ix_promos_merchant_id', 'promos', ['merchant_id'])
    op.create_index('ix_reservations_user_id', 'reservations', ['user_id'])
    op.create_index('ix_reservations_promo_id', 'reservations', ['promo_id'])
    op.create_index('ix_reservations_status_expires_at', 'reservations', ['status', 'expires_at'])
    op.create_index('ix_redemptions_merchant_id', 'redemptions', ['merchant_id'])
    op.create_index('ix_redemptions_idempotency_key', 'redemptions', ['idempotency_key'])
    op.create_index('ix_redemptions_created_at', 'redemptions', ['created_at'])
    op.create_index('ix_audit_logs_action', 'audit_logs', ['action'])
    op.create_index('ix_audit_logs_entity', 'audit_logs', ['entity_type', 'entity_id'])


def downgrade() -> None:
    op.drop_index('ix_audit_logs_entity')
    op.drop_index('ix_audit_logs_action')
    op.drop_index('ix_redemptions_created_at')
    op.drop_index('ix_redemptions_idempotency_key')
    op.drop_index('ix_redemptions_merchant_id')
    op.drop_index('ix_reservations_status_expires_at')
    op.drop_index('ix_reservations_promo_id')
    op.drop_index('ix_reservations_user_id')
    op.drop_index('ix_promos_merchant_id')
    op.drop_table('audit_logs')
    op.drop_table('redemptions')
    op.drop_table('reservations')
    op.drop_table('promos')
    op.drop_table('wallets')
    op.drop_table('users')
