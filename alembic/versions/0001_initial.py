"""initial

Revision ID: 0001_initial
Revises: 
Create Date: 2026-10-18 00:00:00.000000
"""
from alembic import op
import sqlalchemy as sa

# revision identifiers, used by Alembic.
revision = '0001_initial'
down_revision = None
branch_labels = None
depends_on = None


def upgrade():
    op.create_table('bookings',
        sa.Column('id', sa.String(length=64), primary_key=True),
        sa.Column('amount', sa.Numeric(10, 2), nullable=False),
        sa.Column('payer_name', sa.String(length=255), nullable=True),
        sa.Column('payer_phone', sa.String(length=32), nullable=False),
        sa.Column('event_title', sa.String(length=255), nullable=True),
        sa.Column('event_date', sa.String(length=128), nullable=True),
        sa.Column('status', sa.String(length=32), nullable=False, server_default='PENDING'),
        sa.Column('payment_status', sa.String(length=32), nullable=False, server_default='NONE'),
        sa.Column('gateway_order_id', sa.String(length=128), nullable=True),
        sa.Column('gateway_transaction_id', sa.String(length=128), nullable=True),
        sa.Column('amount_paid', sa.Numeric(10, 2), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.text('now()'), nullable=False),
        sa.Column('updated_at', sa.DateTime(timezone=True), nullable=True),
    )
    op.create_index('ix_bookings_status', 'bookings', ['status'], unique=False)
    op.create_index('ix_bookings_payment_status', 'bookings', ['payment_status'], unique=False)
    op.create_index('ix_bookings_gateway_order_id', 'bookings', ['gateway_order_id'], unique=False)


def downgrade():
    op.drop_index('ix_bookings_gateway_order_id', table_name='bookings')
    op.drop_index('ix_bookings_payment_status', table_name='bookings')
    op.drop_index('ix_bookings_status', table_name='bookings')
    op.drop_table('bookings')
