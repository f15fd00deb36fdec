"""Initial fund ledger schema

Revision ID: 20261016_0900
Revises:
Create Date: 2026-10-16 09:00:00.000000

This migration adds:
- users: accounts behind JWT authentication
- fund_accounts: one running balance per fund type
- fund_transactions: append-only journal of balance mutations
- transactions: projects / sales with payment status
- inventory_items: equipment and subscriptions
- expenses: one-off expenses and recurring templates
"""

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql

# revision identifiers, used by Alembic
revision = '20261016_0900'
down_revision = None
branch_labels = None
depends_on = None


user_role_enum = postgresql.ENUM('ADMIN', 'STAFF', name='userrole', create_type=False)

fund_transaction_type_enum = postgresql.ENUM(
    'INCOME', 'EXPENSE', 'TRANSFER_IN', 'TRANSFER_OUT', 'ADJUSTMENT',
    name='fundtransactiontype',
    create_type=False
)

payment_status_enum = postgresql.ENUM(
    'BELUM_BAYAR', 'DP', 'LUNAS',
    name='paymentstatus',
    create_type=False
)

inventory_type_enum = postgresql.ENUM(
    'SUBSCRIPTION', 'EQUIPMENT', 'OTHER',
    name='inventorytype',
    create_type=False
)

inventory_payment_status_enum = postgresql.ENUM(
    'BELUM_BAYAR', 'DP', 'LUNAS',
    name='inventorypaymentstatus',
    create_type=False
)

ALL_ENUMS = (
    user_role_enum,
    fund_transaction_type_enum,
    payment_status_enum,
    inventory_type_enum,
    inventory_payment_status_enum,
)


def _timestamps():
    return [
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.text('CURRENT_TIMESTAMP'), nullable=False),
        sa.Column('updated_at', sa.DateTime(timezone=True), server_default=sa.text('CURRENT_TIMESTAMP'), nullable=False),
    ]


def _audit_and_soft_delete():
    return [
        sa.Column('created_by_id', postgresql.UUID(as_uuid=True), nullable=True),
        sa.Column('updated_by_id', postgresql.UUID(as_uuid=True), nullable=True),
        sa.Column('is_deleted', sa.Boolean(), server_default=sa.text('false'), nullable=False),
        sa.Column('deleted_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('deleted_by_id', postgresql.UUID(as_uuid=True), nullable=True),
    ]


def upgrade() -> None:
    # Create ENUM types first
    for enum_type in ALL_ENUMS:
        enum_type.create(op.get_bind(), checkfirst=True)

    op.create_table(
        'users',
        sa.Column('id', postgresql.UUID(as_uuid=True), nullable=False),
        *_timestamps(),
        sa.Column('email', sa.String(255), nullable=False),
        sa.Column('name', sa.String(255), nullable=True),
        sa.Column('hashed_password', sa.String(255), nullable=False),
        sa.Column('role', user_role_enum, nullable=False),
        sa.Column('is_active', sa.Boolean(), server_default=sa.text('true'), nullable=False),
        sa.PrimaryKeyConstraint('id', name='pk_users'),
    )
    op.create_index('ix_users_email', 'users', ['email'], unique=True)

    op.create_table(
        'fund_accounts',
        sa.Column('id', postgresql.UUID(as_uuid=True), nullable=False),
        *_timestamps(),
        sa.Column('fund_type', sa.String(50), nullable=False),
        sa.Column('current_balance', sa.Numeric(15, 2), server_default='0', nullable=False),
        sa.Column('last_reconciled_balance', sa.Numeric(15, 2), nullable=True),
        sa.Column('last_reconciled_at', sa.DateTime(timezone=True), nullable=True),
        sa.PrimaryKeyConstraint('id', name='pk_fund_accounts'),
    )
    op.create_index('ix_fund_accounts_fund_type', 'fund_accounts', ['fund_type'], unique=True)

    op.create_table(
        'fund_transactions',
        sa.Column('id', postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.text('CURRENT_TIMESTAMP'), nullable=False),
        sa.Column('updated_at', sa.DateTime(timezone=True), server_default=sa.text('CURRENT_TIMESTAMP'), nullable=False),
        sa.Column('fund_type', sa.String(50), nullable=False),
        sa.Column('transaction_type', fund_transaction_type_enum, nullable=False),
        sa.Column('amount', sa.Numeric(15, 2), nullable=False),
        sa.Column('balance_after', sa.Numeric(15, 2), nullable=False),
        sa.Column('description', sa.Text(), nullable=True),
        sa.Column('source_type', sa.String(50), nullable=True),
        sa.Column('source_id', sa.String(64), nullable=True),
        sa.Column('reference_id', postgresql.UUID(as_uuid=True), nullable=True),
        sa.Column('created_by_id', postgresql.UUID(as_uuid=True), nullable=True),
        sa.PrimaryKeyConstraint('id', name='pk_fund_transactions'),
    )
    op.create_index('ix_fund_transactions_fund_type', 'fund_transactions', ['fund_type'])
    op.create_index('ix_fund_transactions_transaction_type', 'fund_transactions', ['transaction_type'])
    op.create_index('ix_fund_transactions_source_type', 'fund_transactions', ['source_type'])
    op.create_index('ix_fund_transactions_source_id', 'fund_transactions', ['source_id'])
    op.create_index('ix_fund_transactions_created_at', 'fund_transactions', ['created_at'])

    op.create_table(
        'transactions',
        sa.Column('id', postgresql.UUID(as_uuid=True), nullable=False),
        *_timestamps(),
        *_audit_and_soft_delete(),
        sa.Column('name', sa.String(255), nullable=False),
        sa.Column('description', sa.Text(), nullable=True),
        sa.Column('date', sa.Date(), nullable=False),
        sa.Column('project_value', sa.Numeric(15, 2), server_default='0', nullable=False),
        sa.Column('total_profit', sa.Numeric(15, 2), server_default='0', nullable=False),
        sa.Column('down_payment_amount', sa.Numeric(15, 2), server_default='0', nullable=False),
        sa.Column('remaining_amount', sa.Numeric(15, 2), server_default='0', nullable=False),
        sa.Column('capital_cost', sa.Numeric(15, 2), server_default='0', nullable=False),
        sa.Column('payment_status', payment_status_enum, nullable=False),
        sa.Column('fund_type', sa.String(50), server_default='petty_cash', nullable=False),
        sa.PrimaryKeyConstraint('id', name='pk_transactions'),
    )
    op.create_index('ix_transactions_is_deleted', 'transactions', ['is_deleted'])
    op.create_index('ix_transactions_date', 'transactions', ['date'])
    op.create_index('ix_transactions_payment_status', 'transactions', ['payment_status'])

    op.create_table(
        'inventory_items',
        sa.Column('id', postgresql.UUID(as_uuid=True), nullable=False),
        *_timestamps(),
        *_audit_and_soft_delete(),
        sa.Column('name', sa.String(255), nullable=False),
        sa.Column('type', inventory_type_enum, nullable=False),
        sa.Column('cost', sa.Numeric(15, 2), server_default='0', nullable=False),
        sa.Column('payment_status', inventory_payment_status_enum, nullable=False),
        sa.Column('down_payment_amount', sa.Numeric(15, 2), nullable=True),
        sa.Column('remaining_amount', sa.Numeric(15, 2), nullable=True),
        sa.Column('is_recurring', sa.Boolean(), server_default=sa.text('false'), nullable=False),
        sa.Column('recurring_type', sa.String(20), nullable=True),
        sa.Column('next_billing_date', sa.Date(), nullable=True),
        sa.Column('last_billing_date', sa.Date(), nullable=True),
        sa.Column('auto_renew', sa.Boolean(), server_default=sa.text('true'), nullable=False),
        sa.PrimaryKeyConstraint('id', name='pk_inventory_items'),
    )
    op.create_index('ix_inventory_items_is_deleted', 'inventory_items', ['is_deleted'])

    op.create_table(
        'expenses',
        sa.Column('id', postgresql.UUID(as_uuid=True), nullable=False),
        *_timestamps(),
        *_audit_and_soft_delete(),
        sa.Column('category', sa.String(100), nullable=False),
        sa.Column('amount', sa.Numeric(15, 2), nullable=False),
        sa.Column('description', sa.Text(), nullable=True),
        sa.Column('date', sa.Date(), nullable=False),
        sa.Column('payment_proof_link', sa.String(500), nullable=True),
        sa.Column('fund_type', sa.String(50), server_default='petty_cash', nullable=False),
        sa.Column('transaction_id', postgresql.UUID(as_uuid=True), nullable=True),
        sa.Column('inventory_id', postgresql.UUID(as_uuid=True), nullable=True),
        sa.Column('is_recurring_expense', sa.Boolean(), server_default=sa.text('false'), nullable=False),
        sa.Column('recurring_frequency', sa.String(20), nullable=True),
        sa.Column('next_billing_date', sa.Date(), nullable=True),
        sa.Column('last_processed_date', sa.Date(), nullable=True),
        sa.Column('is_active', sa.Boolean(), server_default=sa.text('true'), nullable=False),
        sa.PrimaryKeyConstraint('id', name='pk_expenses'),
        sa.ForeignKeyConstraint(
            ['transaction_id'], ['transactions.id'],
            name='fk_expenses_transaction_id_transactions', ondelete='SET NULL',
        ),
        sa.ForeignKeyConstraint(
            ['inventory_id'], ['inventory_items.id'],
            name='fk_expenses_inventory_id_inventory_items', ondelete='SET NULL',
        ),
    )
    op.create_index('ix_expenses_is_deleted', 'expenses', ['is_deleted'])
    op.create_index('ix_expenses_category', 'expenses', ['category'])
    op.create_index('ix_expenses_date', 'expenses', ['date'])
    op.create_index('ix_expenses_transaction_id', 'expenses', ['transaction_id'])
    op.create_index('ix_expenses_inventory_id', 'expenses', ['inventory_id'])
    op.create_index('ix_expenses_next_billing_date', 'expenses', ['next_billing_date'])


def downgrade() -> None:
    op.drop_table('expenses')
    op.drop_table('inventory_items')
    op.drop_table('transactions')
    op.drop_table('fund_transactions')
    op.drop_table('fund_accounts')
    op.drop_table('users')

    for enum_type in reversed(ALL_ENUMS):
        enum_type.drop(op.get_bind(), checkfirst=True)
