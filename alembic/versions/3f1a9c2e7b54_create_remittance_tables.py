"""create_remittance_tables

Revision ID: 3f1a9c2e7b54
Revises: 
Create Date: 2026-10-12 09:41:27.118204

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa

# revision identifiers, used by Alembic.
revision: str = '3f1a9c2e7b54'
down_revision: Union[str, Sequence[str], None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    """Upgrade schema - Create remittance types, orders and the audit trail."""
    op.create_table(
        'remittance_types',
        sa.Column('id', sa.Integer(), autoincrement=True, nullable=False),
        sa.Column('name', sa.String(length=200), nullable=False),
        sa.Column('currency_code', sa.String(length=10), nullable=False),
        sa.Column('delivery_currency', sa.String(length=10), nullable=False),
        sa.Column('exchange_rate', sa.Numeric(precision=12, scale=4), nullable=False),
        sa.Column('commission_percentage', sa.Numeric(precision=5, scale=2), nullable=False),
        sa.Column('commission_fixed', sa.Numeric(precision=10, scale=2), nullable=False),
        sa.Column('min_amount', sa.Numeric(precision=10, scale=2), nullable=False),
        sa.Column('max_amount', sa.Numeric(precision=10, scale=2), nullable=True),
        sa.Column('delivery_method', sa.String(length=20), nullable=False),
        sa.Column('max_delivery_days', sa.Integer(), nullable=False),
        sa.Column('warning_days', sa.Integer(), nullable=False),
        sa.Column('is_active', sa.Boolean(), nullable=False),
        sa.Column('display_order', sa.Integer(), nullable=False),
        sa.Column('description', sa.Text(), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False),
        sa.Column('updated_at', sa.DateTime(timezone=True), nullable=False),
        sa.PrimaryKeyConstraint('id', name=op.f('pk_remittance_types')),
    )
    op.create_index(op.f('ix_remittance_types_currency_code'), 'remittance_types', ['currency_code'], unique=False)
    op.create_index(op.f('ix_remittance_types_is_active'), 'remittance_types', ['is_active'], unique=False)

    op.create_table(
        'orders',
        sa.Column('id', sa.Integer(), autoincrement=True, nullable=False),
        sa.Column('order_number', sa.String(length=50), nullable=False),
        sa.Column('owner_id', sa.String(length=64), nullable=False),
        sa.Column('remittance_type_id', sa.Integer(), nullable=False),
        # Economics captured at creation
        sa.Column('amount_sent', sa.Numeric(precision=12, scale=2), nullable=False),
        sa.Column('exchange_rate', sa.Numeric(precision=12, scale=4), nullable=False),
        sa.Column('commission_percentage', sa.Numeric(precision=5, scale=2), nullable=False),
        sa.Column('commission_fixed', sa.Numeric(precision=10, scale=2), nullable=False),
        sa.Column('commission_total', sa.Numeric(precision=10, scale=2), nullable=False),
        sa.Column('amount_to_deliver', sa.Numeric(precision=14, scale=2), nullable=False),
        sa.Column('currency_sent', sa.String(length=10), nullable=False),
        sa.Column('currency_delivered', sa.String(length=10), nullable=False),
        # Recipient
        sa.Column('recipient_name', sa.String(length=200), nullable=False),
        sa.Column('recipient_phone', sa.String(length=30), nullable=False),
        sa.Column('recipient_id_number', sa.String(length=50), nullable=True),
        sa.Column('recipient_address', sa.Text(), nullable=True),
        sa.Column('recipient_province', sa.String(length=100), nullable=True),
        sa.Column('recipient_municipality', sa.String(length=100), nullable=True),
        sa.Column('delivery_notes', sa.Text(), nullable=True),
        # Status, guarded by a conditional update
        sa.Column('status', sa.String(length=20), nullable=False),
        sa.Column('version', sa.Integer(), nullable=False),
        sa.Column('last_transition_at', sa.DateTime(timezone=True), nullable=False),
        # Transition stamps
        sa.Column('payment_proof_ref', sa.Text(), nullable=True),
        sa.Column('payment_reference', sa.String(length=200), nullable=True),
        sa.Column('payment_proof_notes', sa.Text(), nullable=True),
        sa.Column('payment_proof_uploaded_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('validated_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('validated_by', sa.String(length=64), nullable=True),
        sa.Column('rejected_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('rejected_by', sa.String(length=64), nullable=True),
        sa.Column('rejection_reason', sa.Text(), nullable=True),
        sa.Column('processing_started_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('processing_started_by', sa.String(length=64), nullable=True),
        sa.Column('delivery_proof_ref', sa.Text(), nullable=True),
        sa.Column('delivered_to_name', sa.String(length=200), nullable=True),
        sa.Column('delivered_to_id', sa.String(length=50), nullable=True),
        sa.Column('delivery_notes_admin', sa.Text(), nullable=True),
        sa.Column('delivered_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('delivered_by', sa.String(length=64), nullable=True),
        sa.Column('completed_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('completed_by', sa.String(length=64), nullable=True),
        sa.Column('cancelled_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('cancelled_by', sa.String(length=64), nullable=True),
        sa.Column('cancellation_reason', sa.Text(), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False),
        sa.Column('updated_at', sa.DateTime(timezone=True), nullable=False),
        sa.ForeignKeyConstraint(
            ['remittance_type_id'],
            ['remittance_types.id'],
            name=op.f('fk_orders_remittance_type_id_remittance_types'),
        ),
        sa.PrimaryKeyConstraint('id', name=op.f('pk_orders')),
        sa.UniqueConstraint('order_number', name=op.f('uq_orders_order_number')),
    )
    op.create_index(op.f('ix_orders_owner_id'), 'orders', ['owner_id'], unique=False)
    op.create_index(op.f('ix_orders_remittance_type_id'), 'orders', ['remittance_type_id'], unique=False)
    # Alert scheduler scan: "WHERE status IN (...)", dashboards sort by created_at
    op.create_index('ix_orders_status_created_at', 'orders', ['status', 'created_at'], unique=False)
    # Sender view: "WHERE owner_id = ? ORDER BY created_at DESC"
    op.create_index('ix_orders_owner_created_at', 'orders', ['owner_id', 'created_at'], unique=False)

    op.create_table(
        'order_audit_entries',
        sa.Column('id', sa.Integer(), autoincrement=True, nullable=False),
        sa.Column('order_id', sa.Integer(), nullable=False),
        sa.Column('sequence', sa.Integer(), nullable=False),
        sa.Column('previous_status', sa.String(length=20), nullable=True),
        sa.Column('new_status', sa.String(length=20), nullable=False),
        sa.Column('actor_id', sa.String(length=64), nullable=False),
        sa.Column('actor_role', sa.String(length=20), nullable=False),
        sa.Column('reason', sa.Text(), nullable=True),
        sa.Column('notes', sa.Text(), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False),
        sa.ForeignKeyConstraint(
            ['order_id'],
            ['orders.id'],
            name=op.f('fk_order_audit_entries_order_id_orders'),
        ),
        sa.PrimaryKeyConstraint('id', name=op.f('pk_order_audit_entries')),
        sa.UniqueConstraint('order_id', 'sequence', name='uq_order_audit_entries_order_sequence'),
    )
    op.create_index('ix_order_audit_entries_order_created', 'order_audit_entries', ['order_id', 'created_at'], unique=False)


def downgrade() -> None:
    """Downgrade schema - Drop the audit trail, orders and remittance types."""
    op.drop_index('ix_order_audit_entries_order_created', table_name='order_audit_entries')
    op.drop_table('order_audit_entries')
    op.drop_index('ix_orders_owner_created_at', table_name='orders')
    op.drop_index('ix_orders_status_created_at', table_name='orders')
    op.drop_index(op.f('ix_orders_remittance_type_id'), table_name='orders')
    op.drop_index(op.f('ix_orders_owner_id'), table_name='orders')
    op.drop_table('orders')
    op.drop_index(op.f('ix_remittance_types_is_active'), table_name='remittance_types')
    op.drop_index(op.f('ix_remittance_types_currency_code'), table_name='remittance_types')
    op.drop_table('remittance_types')
