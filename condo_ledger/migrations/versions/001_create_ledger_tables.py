"""Create ledger tables.

Revision ID: 001_create_ledger_tables
Revises: None
Create Date: 2026-10-17 00:00:00.000000

"""
from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision = '001_create_ledger_tables'
down_revision = None
branch_labels = None
depends_on = None


def _timestamps() -> list:
    return [
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False),
        sa.Column('updated_at', sa.DateTime(timezone=True), nullable=False),
    ]


def upgrade() -> None:
    """Create ledger tables."""
    op.create_table(
        'houses',
        *_timestamps(),
        sa.Column('number_house', sa.Integer(), nullable=False),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index('ix_houses_number_house', 'houses', ['number_house'], unique=True)

    op.create_table(
        'period_configs',
        *_timestamps(),
        sa.Column('default_maintenance_amount', sa.Numeric(precision=12, scale=2), nullable=False),
        sa.Column('default_water_amount', sa.Numeric(precision=12, scale=2), nullable=True),
        sa.Column('default_extraordinary_fee_amount', sa.Numeric(precision=12, scale=2), nullable=True),
        sa.Column('payment_due_day', sa.Integer(), nullable=False),
        sa.Column('late_payment_penalty_amount', sa.Numeric(precision=12, scale=2), nullable=False),
        sa.Column('effective_from', sa.Date(), nullable=False),
        sa.Column('effective_until', sa.Date(), nullable=True),
        sa.Column('is_active', sa.Boolean(), nullable=False),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index('idx_period_config_effective', 'period_configs', ['is_active', 'effective_from'])

    op.create_table(
        'periods',
        *_timestamps(),
        sa.Column('year', sa.Integer(), nullable=False),
        sa.Column('month', sa.Integer(), nullable=False),
        sa.Column('start_date', sa.Date(), nullable=False),
        sa.Column('end_date', sa.Date(), nullable=False),
        sa.Column('period_config_id', sa.Integer(), nullable=True),
        sa.Column('water_active', sa.Boolean(), nullable=False),
        sa.Column('extraordinary_fee_active', sa.Boolean(), nullable=False),
        sa.ForeignKeyConstraint(['period_config_id'], ['period_configs.id'], ),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('year', 'month', name='uq_period_year_month'),
    )

    op.create_table(
        'house_period_charges',
        *_timestamps(),
        sa.Column('house_id', sa.Integer(), nullable=False),
        sa.Column('period_id', sa.Integer(), nullable=False),
        sa.Column('concept_type', sa.String(32), nullable=False),
        sa.Column('expected_amount', sa.Numeric(precision=12, scale=2), nullable=False),
        sa.Column('source', sa.String(32), nullable=False),
        sa.ForeignKeyConstraint(['house_id'], ['houses.id'], ),
        sa.ForeignKeyConstraint(['period_id'], ['periods.id'], ),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('house_id', 'period_id', 'concept_type', name='uq_charge_house_period_concept'),
    )
    op.create_index('idx_charge_period', 'house_period_charges', ['period_id'])

    op.create_table(
        'house_period_overrides',
        *_timestamps(),
        sa.Column('house_id', sa.Integer(), nullable=False),
        sa.Column('period_id', sa.Integer(), nullable=False),
        sa.Column('concept_type', sa.String(32), nullable=False),
        sa.Column('custom_amount', sa.Numeric(precision=12, scale=2), nullable=False),
        sa.Column('reason', sa.Text(), nullable=True),
        sa.ForeignKeyConstraint(['house_id'], ['houses.id'], ),
        sa.ForeignKeyConstraint(['period_id'], ['periods.id'], ),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('house_id', 'period_id', 'concept_type', name='uq_override_house_period_concept'),
    )
    op.create_index('ix_house_period_overrides_house_id', 'house_period_overrides', ['house_id'])
    op.create_index('ix_house_period_overrides_period_id', 'house_period_overrides', ['period_id'])

    op.create_table(
        'payment_records',
        *_timestamps(),
        sa.Column('house_id', sa.Integer(), nullable=False),
        sa.Column('amount', sa.Numeric(precision=12, scale=2), nullable=False),
        sa.Column('transaction_date', sa.Date(), nullable=False),
        sa.Column('validation_status', sa.String(32), nullable=False),
        sa.Column('is_deposit', sa.Boolean(), nullable=False),
        sa.Column('allocated_at', sa.DateTime(timezone=True), nullable=True),
        sa.ForeignKeyConstraint(['house_id'], ['houses.id'], ),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index('ix_payment_records_house_id', 'payment_records', ['house_id'])
    op.create_index(
        'idx_payment_record_status_date', 'payment_records', ['validation_status', 'transaction_date']
    )

    op.create_table(
        'record_allocations',
        *_timestamps(),
        sa.Column('origin', sa.String(32), nullable=False),
        sa.Column('record_id', sa.Integer(), nullable=True),
        sa.Column('house_id', sa.Integer(), nullable=False),
        sa.Column('period_id', sa.Integer(), nullable=False),
        sa.Column('concept_type', sa.String(32), nullable=False),
        sa.Column('concept_id', sa.Integer(), nullable=True),
        sa.Column('allocated_amount', sa.Numeric(precision=12, scale=2), nullable=False),
        sa.Column('expected_amount', sa.Numeric(precision=12, scale=2), nullable=False),
        sa.Column('payment_status', sa.String(16), nullable=False),
        sa.CheckConstraint('allocated_amount > 0', name='ck_allocation_amount_positive'),
        sa.CheckConstraint(
            "(origin = 'payment' AND record_id IS NOT NULL) OR "
            "(origin = 'credit_sweep' AND record_id IS NULL)",
            name='ck_allocation_origin_record',
        ),
        sa.ForeignKeyConstraint(['record_id'], ['payment_records.id'], ),
        sa.ForeignKeyConstraint(['house_id'], ['houses.id'], ),
        sa.ForeignKeyConstraint(['period_id'], ['periods.id'], ),
        sa.ForeignKeyConstraint(['concept_id'], ['house_period_charges.id'], ondelete='SET NULL'),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index('ix_record_allocations_record_id', 'record_allocations', ['record_id'])
    op.create_index('idx_allocation_house_period', 'record_allocations', ['house_id', 'period_id'])

    op.create_table(
        'house_balances',
        *_timestamps(),
        sa.Column('house_id', sa.Integer(), nullable=False),
        sa.Column('accumulated_cents', sa.Numeric(precision=12, scale=2), nullable=False),
        sa.Column('credit_balance', sa.Numeric(precision=12, scale=2), nullable=False),
        sa.Column('debit_balance', sa.Numeric(precision=12, scale=2), nullable=False),
        sa.Column('opening_debit', sa.Numeric(precision=12, scale=2), nullable=False, server_default='0'),
        sa.CheckConstraint('accumulated_cents >= 0 AND accumulated_cents < 1', name='ck_balance_cents_range'),
        sa.CheckConstraint('credit_balance >= 0', name='ck_balance_credit_non_negative'),
        sa.CheckConstraint('debit_balance >= 0', name='ck_balance_debit_non_negative'),
        sa.CheckConstraint('opening_debit >= 0', name='ck_balance_opening_debit_non_negative'),
        sa.ForeignKeyConstraint(['house_id'], ['houses.id'], ),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('house_id'),
    )

    op.create_table(
        'cta_penalties',
        *_timestamps(),
        sa.Column('house_id', sa.Integer(), nullable=False),
        sa.Column('period_id', sa.Integer(), nullable=False),
        sa.Column('amount', sa.Numeric(precision=12, scale=2), nullable=False),
        sa.Column('description', sa.Text(), nullable=True),
        sa.Column('condoned_at', sa.DateTime(timezone=True), nullable=True),
        sa.ForeignKeyConstraint(['house_id'], ['houses.id'], ),
        sa.ForeignKeyConstraint(['period_id'], ['periods.id'], ),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('house_id', 'period_id', name='uq_penalty_house_period'),
    )

    op.create_table(
        'house_status_snapshots',
        *_timestamps(),
        sa.Column('house_id', sa.Integer(), nullable=False),
        sa.Column('status', sa.String(32), nullable=False),
        sa.Column('total_debt', sa.Numeric(precision=12, scale=2), nullable=False),
        sa.Column('credit_balance', sa.Numeric(precision=12, scale=2), nullable=False),
        sa.Column('total_unpaid_periods', sa.Integer(), nullable=False),
        sa.Column('enriched_data', sa.JSON(), nullable=False),
        sa.Column('is_stale', sa.Boolean(), nullable=False),
        sa.Column('calculated_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('invalidated_at', sa.DateTime(timezone=True), nullable=True),
        sa.ForeignKeyConstraint(['house_id'], ['houses.id'], ),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('house_id'),
    )
    op.create_index('idx_house_status_snapshots_is_stale', 'house_status_snapshots', ['is_stale'])


def downgrade() -> None:
    """Drop ledger tables."""
    op.drop_index('idx_house_status_snapshots_is_stale', table_name='house_status_snapshots')
    op.drop_table('house_status_snapshots')
    op.drop_table('cta_penalties')
    op.drop_table('house_balances')
    op.drop_index('idx_allocation_house_period', table_name='record_allocations')
    op.drop_index('ix_record_allocations_record_id', table_name='record_allocations')
    op.drop_table('record_allocations')
    op.drop_index('idx_payment_record_status_date', table_name='payment_records')
    op.drop_index('ix_payment_records_house_id', table_name='payment_records')
    op.drop_table('payment_records')
    op.drop_index('ix_house_period_overrides_period_id', table_name='house_period_overrides')
    op.drop_index('ix_house_period_overrides_house_id', table_name='house_period_overrides')
    op.drop_table('house_period_overrides')
    op.drop_index('idx_charge_period', table_name='house_period_charges')
    op.drop_table('house_period_charges')
    op.drop_table('periods')
    op.drop_index('idx_period_config_effective', table_name='period_configs')
    op.drop_table('period_configs')
    op.drop_index('ix_houses_number_house', table_name='houses')
    op.drop_table('houses')
