"""Basket lines keep the unit price they were added at

Revision ID: 8b2d4e6f1a3c
Revises: 3f1c0a9d2b7e
Create Date: 2026-10-20 10:04:18.552071

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa

# Revision identifiers used by Alembic
revision: str = '8b2d4e6f1a3c'
down_revision: Union[str, Sequence[str], None] = '3f1c0a9d2b7e'
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    """Upgrade schema."""
    op.add_column('basket_products', sa.Column('unit_price', sa.Numeric(12, 2), nullable=True))
    # Existing lines take the product's current price
    op.execute(
        "UPDATE basket_products SET unit_price = "
        "(SELECT products.price FROM products WHERE products.id = basket_products.product_id)"
    )
    with op.batch_alter_table('basket_products') as batch_op:
        batch_op.alter_column('unit_price', existing_type=sa.Numeric(12, 2), nullable=False)


def downgrade() -> None:
    """Downgrade schema."""
    with op.batch_alter_table('basket_products') as batch_op:
        batch_op.drop_column('unit_price')
