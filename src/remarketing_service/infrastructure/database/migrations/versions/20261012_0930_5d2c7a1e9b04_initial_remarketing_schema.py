"""Initial remarketing schema

Revision ID: 5d2c7a1e9b04
Revises:
Create Date: 2026-10-12 09:30:41.118207+00:00

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa

# revision identifiers, used by Alembic.
revision: str = '5d2c7a1e9b04'
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    # Create customers table
    op.create_table('customers',
    sa.Column('id', sa.Integer(), autoincrement=True, nullable=False),
    sa.Column('fingerprint', sa.String(length=64), nullable=False),
    sa.Column('email', sa.String(length=320), nullable=False),
    sa.Column('phone', sa.String(length=64), nullable=True),
    sa.Column('street_address', sa.String(length=500), nullable=True),
    sa.Column('first_name', sa.String(length=255), nullable=True),
    sa.Column('last_name', sa.String(length=255), nullable=True),
    sa.Column('city', sa.String(length=255), nullable=True),
    sa.Column('province', sa.String(length=255), nullable=True),
    sa.Column('country', sa.String(length=255), nullable=True),
    sa.Column('zip', sa.String(length=32), nullable=True),
    sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.text('now()'), nullable=False),
    sa.Column('updated_at', sa.DateTime(timezone=True), server_default=sa.text('now()'), nullable=False),
    sa.PrimaryKeyConstraint('id'),
    sa.UniqueConstraint('fingerprint'),
    schema='remarketing'
    )

    # Create carts table
    op.create_table('carts',
    sa.Column('id', sa.Integer(), autoincrement=True, nullable=False),
    sa.Column('checkout_id', sa.String(length=255), nullable=False),
    sa.Column('customer_id', sa.Integer(), nullable=False),
    sa.Column('total', sa.Numeric(precision=12, scale=2), nullable=False),
    sa.Column('currency', sa.String(length=3), nullable=False),
    sa.Column('abandoned_at', sa.DateTime(timezone=True), nullable=False),
    sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.text('now()'), nullable=False),
    sa.Column('recovered_at', sa.DateTime(timezone=True), nullable=True),
    sa.ForeignKeyConstraint(['customer_id'], ['remarketing.customers.id'], ),
    sa.PrimaryKeyConstraint('id'),
    sa.UniqueConstraint('checkout_id'),
    schema='remarketing'
    )
    op.create_index('ix_carts_abandoned_at', 'carts', ['abandoned_at'], unique=False, schema='remarketing')
    op.create_index(op.f('ix_remarketing_carts_customer_id'), 'carts', ['customer_id'], unique=False, schema='remarketing')

    # Create outreach_records table
    op.create_table('outreach_records',
    sa.Column('id', sa.Integer(), autoincrement=True, nullable=False),
    sa.Column('cart_id', sa.Integer(), nullable=False),
    sa.Column('recipient_email', sa.String(length=320), nullable=False),
    sa.Column('subject', sa.String(length=500), nullable=False),
    sa.Column('body', sa.Text(), nullable=False),
    sa.Column('status', sa.Enum('sent', 'failed', name='delivery_status', schema='remarketing'), nullable=False),
    sa.Column('provider_message_id', sa.String(length=255), nullable=True),
    sa.Column('discount_code', sa.String(length=64), nullable=True),
    sa.Column('sent_at', sa.DateTime(timezone=True), nullable=False),
    sa.ForeignKeyConstraint(['cart_id'], ['remarketing.carts.id'], ),
    sa.PrimaryKeyConstraint('id'),
    schema='remarketing'
    )
    op.create_index('ix_outreach_records_cart_sent', 'outreach_records', ['cart_id', 'sent_at'], unique=False, schema='remarketing')


def downgrade() -> None:
    op.drop_index('ix_outreach_records_cart_sent', table_name='outreach_records', schema='remarketing')
    op.drop_table('outreach_records', schema='remarketing')

    op.drop_index(op.f('ix_remarketing_carts_customer_id'), table_name='carts', schema='remarketing')
    op.drop_index('ix_carts_abandoned_at', table_name='carts', schema='remarketing')
    op.drop_table('carts', schema='remarketing')

    op.drop_table('customers', schema='remarketing')

    op.execute('DROP TYPE IF EXISTS remarketing.delivery_status')
