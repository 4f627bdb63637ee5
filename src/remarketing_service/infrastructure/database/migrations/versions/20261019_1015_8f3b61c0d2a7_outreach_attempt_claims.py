"""Outreach attempt claims

Revision ID: 8f3b61c0d2a7
Revises: 5d2c7a1e9b04
Create Date: 2026-10-19 10:15:07.402913+00:00

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa

# revision identifiers, used by Alembic.
revision: str = '8f3b61c0d2a7'
down_revision: Union[str, None] = '5d2c7a1e9b04'
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    # PostgreSQL 12+ allows ADD VALUE inside the migration transaction
    op.execute("ALTER TYPE remarketing.delivery_status ADD VALUE IF NOT EXISTS 'pending' BEFORE 'sent'")

    op.add_column('outreach_records', sa.Column('attempt', sa.Integer(), nullable=True), schema='remarketing')

    # Number existing records per cart in send order
    op.execute("""
        UPDATE remarketing.outreach_records AS r
        SET attempt = numbered.attempt
        FROM (
            SELECT id, ROW_NUMBER() OVER (PARTITION BY cart_id ORDER BY sent_at, id) AS attempt
            FROM remarketing.outreach_records
        ) AS numbered
        WHERE r.id = numbered.id
    """)

    op.alter_column('outreach_records', 'attempt', nullable=False, schema='remarketing')
    op.create_unique_constraint(
        'uq_outreach_records_cart_attempt',
        'outreach_records',
        ['cart_id', 'attempt'],
        schema='remarketing',
    )


def downgrade() -> None:
    op.drop_constraint('uq_outreach_records_cart_attempt', 'outreach_records', type_='unique', schema='remarketing')
    op.drop_column('outreach_records', 'attempt', schema='remarketing')
    # Enum values cannot be dropped; 'pending' stays on the type
