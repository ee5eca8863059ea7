"""Initial migration

Revision ID: 001_initial
Revises: 
Create Date: 2026-10-18 00:00:00.000000

"""
from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql

# revision identifiers, used by Alembic.
revision = '001_initial'
down_revision = None
branch_labels = None
depends_on = None


def upgrade() -> None:
    # Scans table
    op.create_table(
        'scans',
        sa.Column('id', sa.String(length=36), nullable=False),
        sa.Column('status', sa.String(length=20), nullable=False),
        sa.Column('image_key', sa.String(length=128), nullable=False),
        sa.Column('image_mime_type', sa.String(length=32), nullable=False),
        sa.Column('image_size', sa.Integer(), nullable=False),
        sa.Column('session_id', sa.String(length=64), nullable=True),
        sa.Column('ai_candidates', postgresql.JSONB(astext_type=sa.Text()), nullable=True),
        sa.Column('ai_evidence', postgresql.JSONB(astext_type=sa.Text()), nullable=True),
        sa.Column('confirmed_title', sa.Text(), nullable=True),
        sa.Column('confirmed_edition', sa.String(length=100), nullable=True),
        sa.Column('confirmed_language', sa.String(length=8), nullable=True),
        sa.Column('confirmed_condition', sa.String(length=16), nullable=True),
        sa.Column('is_complete', sa.Boolean(), nullable=True),
        sa.Column('normalized_title', sa.Text(), nullable=True),
        sa.Column('keywords', postgresql.JSONB(astext_type=sa.Text()), nullable=True),
        sa.Column('error_message', sa.Text(), nullable=True),
        sa.Column('created_at', sa.DateTime(), nullable=False),
        sa.Column('updated_at', sa.DateTime(), nullable=False),
        sa.PrimaryKeyConstraint('id')
    )
    op.create_index('ix_scans_status', 'scans', ['status'])

    # Price samples table
    op.create_table(
        'price_samples',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('scan_id', sa.String(length=36), nullable=False),
        sa.Column('source', sa.String(length=20), nullable=False),
        sa.Column('price', sa.Numeric(precision=10, scale=2), nullable=False),
        sa.Column('currency', sa.String(length=3), nullable=False),
        sa.Column('condition_hint', sa.Text(), nullable=True),
        sa.Column('url', sa.Text(), nullable=True),
        sa.Column('created_at', sa.DateTime(), nullable=False),
        sa.PrimaryKeyConstraint('id'),
        sa.ForeignKeyConstraint(['scan_id'], ['scans.id']),
        sa.CheckConstraint('price > 0', name='ck_price_samples_positive')
    )
    op.create_index('ix_price_samples_scan_id', 'price_samples', ['scan_id'])

    # Listing drafts table
    op.create_table(
        'listing_drafts',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('scan_id', sa.String(length=36), nullable=False),
        sa.Column('suggested_price', sa.Numeric(precision=10, scale=2), nullable=False),
        sa.Column('quick_sale_price', sa.Numeric(precision=10, scale=2), nullable=False),
        sa.Column('negotiation_anchor', sa.Numeric(precision=10, scale=2), nullable=False),
        sa.Column('range_low', sa.Numeric(precision=10, scale=2), nullable=False),
        sa.Column('range_high', sa.Numeric(precision=10, scale=2), nullable=False),
        sa.Column('reasoning_bullets', postgresql.JSONB(astext_type=sa.Text()), nullable=False),
        sa.Column('price_confidence', sa.Integer(), nullable=False),
        sa.Column('title_variants', postgresql.JSONB(astext_type=sa.Text()), nullable=False),
        sa.Column('description', sa.Text(), nullable=False),
        sa.Column('bullet_points', postgresql.JSONB(astext_type=sa.Text()), nullable=False),
        sa.Column('search_tags', postgresql.JSONB(astext_type=sa.Text()), nullable=False),
        sa.Column('pickup_location', sa.String(length=100), nullable=True),
        sa.Column('shipping_available', sa.Boolean(), nullable=False),
        sa.Column('paypal_available', sa.Boolean(), nullable=False),
        sa.Column('created_at', sa.DateTime(), nullable=False),
        sa.Column('updated_at', sa.DateTime(), nullable=False),
        sa.PrimaryKeyConstraint('id'),
        sa.ForeignKeyConstraint(['scan_id'], ['scans.id']),
        sa.UniqueConstraint('scan_id', name='uq_listing_drafts_scan_id')
    )


def downgrade() -> None:
    op.drop_table('listing_drafts')
    op.drop_index('ix_price_samples_scan_id', table_name='price_samples')
    op.drop_table('price_samples')
    op.drop_index('ix_scans_status', table_name='scans')
    op.drop_table('scans')
