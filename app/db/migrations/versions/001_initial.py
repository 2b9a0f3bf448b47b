"""initial sourcing schema with enums

Revision ID: 001_initial
Revises:
Create Date: 2026-10-19

Creates the supplier registry, RFQ, invitation, quote, activity and
sequence tables.
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
    rfqstatus_enum = postgresql.ENUM(
        'draft', 'sent', 'receiving_quotes', 'evaluating', 'awarded', 'cancelled',
        name='rfqstatus', create_type=False,
    )
    rfqstatus_enum.create(op.get_bind(), checkfirst=True)

    invitationstatus_enum = postgresql.ENUM(
        'pending', 'viewed', 'responded', 'declined', 'quoted',
        name='invitationstatus', create_type=False,
    )
    invitationstatus_enum.create(op.get_bind(), checkfirst=True)

    quotestatus_enum = postgresql.ENUM(
        'submitted', 'accepted', 'rejected', name='quotestatus', create_type=False,
    )
    quotestatus_enum.create(op.get_bind(), checkfirst=True)

    # Supplier registry
    op.create_table('suppliers',
        sa.Column('id', sa.Integer(), primary_key=True, index=True),
        sa.Column('name', sa.String(255), nullable=False),
        sa.Column('cvr_number', sa.String(20)),
        sa.Column('email', sa.String(255)),
        sa.Column('phone', sa.String(50)),
        sa.Column('categories', sa.JSON()),
        sa.Column('quality_rating', sa.Numeric(2, 1)),
        sa.Column('price_rating', sa.Numeric(2, 1)),
        sa.Column('is_active', sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.func.now()),
    )

    # RFQs
    op.create_table('rfqs',
        sa.Column('id', sa.Integer(), primary_key=True, index=True),
        sa.Column('rfq_number', sa.String(50), unique=True, nullable=False),
        sa.Column('title', sa.String(255), nullable=False),
        sa.Column('description', sa.Text()),
        sa.Column('customer_ref', sa.String(64), index=True),
        sa.Column('location_ref', sa.String(64)),
        sa.Column('category_ref', sa.String(64), index=True),
        sa.Column('sales_case_ref', sa.String(64)),
        sa.Column('status', rfqstatus_enum, nullable=False, server_default='draft', index=True),
        sa.Column('deadline', sa.DateTime(timezone=True)),
        sa.Column('sent_at', sa.DateTime(timezone=True)),
        sa.Column('closed_at', sa.DateTime(timezone=True)),
        sa.Column('awarded_supplier_id', sa.Integer(), sa.ForeignKey('suppliers.id'), nullable=True),
        sa.Column('award_reason', sa.Text()),
        sa.Column('price_weight', sa.Integer(), nullable=False, server_default='40'),
        sa.Column('quality_weight', sa.Integer(), nullable=False, server_default='30'),
        sa.Column('delivery_weight', sa.Integer(), nullable=False, server_default='15'),
        sa.Column('compliance_weight', sa.Integer(), nullable=False, server_default='15'),
        sa.Column('created_by', sa.String(64)),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.Column('updated_at', sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.Column('version', sa.Integer(), nullable=False, server_default='1'),
        sa.CheckConstraint(
            'price_weight >= 0 AND quality_weight >= 0 AND delivery_weight >= 0 AND compliance_weight >= 0',
            name='ck_rfqs_weights_non_negative',
        ),
    )

    # RFQ scope
    op.create_table('rfq_scope_items',
        sa.Column('id', sa.Integer(), primary_key=True, index=True),
        sa.Column('rfq_id', sa.Integer(), sa.ForeignKey('rfqs.id', ondelete='CASCADE'), nullable=False, index=True),
        sa.Column('service_module_ref', sa.String(64)),
        sa.Column('template_ref', sa.String(64)),
        sa.Column('description', sa.Text()),
        sa.Column('quantity', sa.Integer(), nullable=False, server_default='1'),
        sa.Column('technical_requirements', sa.Text()),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.func.now()),
    )

    # Invitations
    op.create_table('rfq_invitations',
        sa.Column('id', sa.Integer(), primary_key=True, index=True),
        sa.Column('rfq_id', sa.Integer(), sa.ForeignKey('rfqs.id', ondelete='CASCADE'), nullable=False, index=True),
        sa.Column('supplier_id', sa.Integer(), sa.ForeignKey('suppliers.id'), nullable=False),
        sa.Column('invited_at', sa.DateTime(timezone=True)),
        sa.Column('viewed_at', sa.DateTime(timezone=True)),
        sa.Column('responded_at', sa.DateTime(timezone=True)),
        sa.Column('status', invitationstatus_enum, nullable=False, server_default='pending'),
        sa.Column('decline_reason', sa.Text()),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.UniqueConstraint('rfq_id', 'supplier_id', name='uq_rfq_invitation_supplier'),
    )

    # Quotes
    op.create_table('rfq_quotes',
        sa.Column('id', sa.Integer(), primary_key=True, index=True),
        sa.Column('quote_number', sa.String(50), unique=True, nullable=False),
        sa.Column('rfq_id', sa.Integer(), sa.ForeignKey('rfqs.id', ondelete='CASCADE'), nullable=False, index=True),
        sa.Column('supplier_id', sa.Integer(), sa.ForeignKey('suppliers.id'), nullable=False),
        sa.Column('total_price', sa.Numeric(12, 2), nullable=False),
        sa.Column('currency', sa.String(10), nullable=False, server_default='DKK'),
        sa.Column('price_breakdown', sa.JSON()),
        sa.Column('delivery_days', sa.Integer()),
        sa.Column('sla_terms', sa.Text()),
        sa.Column('validity_days', sa.Integer(), server_default='30'),
        sa.Column('quality_score', sa.Numeric(5, 2)),
        sa.Column('compliance_score', sa.Numeric(5, 2)),
        sa.Column('esg_score', sa.Numeric(5, 2)),
        sa.Column('notes', sa.Text()),
        sa.Column('supplier_notes', sa.Text()),
        sa.Column('status', quotestatus_enum, nullable=False, server_default='submitted'),
        sa.Column('benchmark_score', sa.Numeric(5, 2)),
        sa.Column('price_rank', sa.Integer()),
        sa.Column('overall_rank', sa.Integer()),
        sa.Column('submitted_at', sa.DateTime(timezone=True)),
        sa.Column('evaluated_at', sa.DateTime(timezone=True)),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.Column('updated_at', sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.CheckConstraint('total_price > 0', name='ck_rfq_quotes_price_positive'),
        sa.UniqueConstraint('rfq_id', 'supplier_id', name='uq_rfq_quote_supplier'),
    )
    op.create_index('ix_rfq_quotes_rfq_rank', 'rfq_quotes', ['rfq_id', 'overall_rank'])

    # Activity log
    op.create_table('activity_log',
        sa.Column('id', sa.Integer(), primary_key=True, index=True),
        sa.Column('entity_type', sa.String(50), nullable=False, index=True),
        sa.Column('entity_id', sa.Integer(), nullable=False),
        sa.Column('action', sa.String(100), nullable=False, index=True),
        sa.Column('details', sa.JSON()),
        sa.Column('user_ref', sa.String(64)),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.func.now(), index=True),
    )
    op.create_index('ix_activity_log_entity', 'activity_log', ['entity_type', 'entity_id'])

    # Sequences
    op.create_table('sequence_counters',
        sa.Column('name', sa.String(50), primary_key=True),
        sa.Column('value', sa.Integer(), nullable=False, server_default='0'),
    )


def downgrade() -> None:
    op.drop_table('sequence_counters')
    op.drop_index('ix_activity_log_entity', table_name='activity_log')
    op.drop_table('activity_log')
    op.drop_index('ix_rfq_quotes_rfq_rank', table_name='rfq_quotes')
    op.drop_table('rfq_quotes')
    op.drop_table('rfq_invitations')
    op.drop_table('rfq_scope_items')
    op.drop_table('rfqs')
    op.drop_table('suppliers')

    op.execute("DROP TYPE IF EXISTS quotestatus")
    op.execute("DROP TYPE IF EXISTS invitationstatus")
    op.execute("DROP TYPE IF EXISTS rfqstatus")
