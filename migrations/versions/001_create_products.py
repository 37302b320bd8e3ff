"""Create products table with matching columns.

This migration adds:
- products table with identifier, dimension and matching columns
- indexes on retailer_slug, manufacturer_sku, upc_ean and match_group_id

Revision ID: 001_create_products
Revises:
Create Date: 2026-10-19 09:00:00.000000

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa

# revision identifiers, used by Alembic.
revision: str = '001_create_products'
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    op.create_table(
        'products',
        sa.Column('id', sa.Integer(), autoincrement=True, nullable=False),
        sa.Column('article_number', sa.String(length=100), nullable=False),
        sa.Column('retailer_slug', sa.String(length=50), nullable=False),
        sa.Column('retailer_id', sa.String(length=100), nullable=True),
        sa.Column('name', sa.String(length=500), nullable=True),
        sa.Column('manufacturer_sku', sa.String(length=100), nullable=True),
        sa.Column('upc_ean', sa.String(length=50), nullable=True),
        sa.Column('width', sa.String(length=100), nullable=True),
        sa.Column('height', sa.String(length=100), nullable=True),
        sa.Column('depth', sa.String(length=100), nullable=True),
        sa.Column('length', sa.String(length=100), nullable=True),
        sa.Column('weight', sa.String(length=100), nullable=True),
        sa.Column('match_group_id', sa.String(length=36), nullable=True),
        sa.Column('match_confidence', sa.Float(), nullable=True),
        sa.Column('created_at', sa.DateTime(), server_default=sa.text('now()'), nullable=False),
        sa.Column('updated_at', sa.DateTime(), server_default=sa.text('now()'), nullable=False),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('retailer_slug', 'article_number', name='unique_retailer_article'),
        sa.CheckConstraint(
            'match_confidence IS NULL OR (match_confidence >= 0 AND match_confidence <= 1)',
            name='check_match_confidence'
        ),
    )
    op.create_index('ix_products_retailer_slug', 'products', ['retailer_slug'])
    op.create_index('ix_products_manufacturer_sku', 'products', ['manufacturer_sku'])
    op.create_index('ix_products_upc_ean', 'products', ['upc_ean'])
    op.create_index('ix_products_match_group_id', 'products', ['match_group_id'])
    # Matchers only ever scan the unmatched pool
    op.execute(
        "CREATE INDEX ix_products_unmatched_retailer ON products (retailer_slug, id) "
        "WHERE match_group_id IS NULL"
    )


def downgrade() -> None:
    op.execute("DROP INDEX IF EXISTS ix_products_unmatched_retailer")
    op.drop_index('ix_products_match_group_id', table_name='products')
    op.drop_index('ix_products_upc_ean', table_name='products')
    op.drop_index('ix_products_manufacturer_sku', table_name='products')
    op.drop_index('ix_products_retailer_slug', table_name='products')
    op.drop_table('products')
