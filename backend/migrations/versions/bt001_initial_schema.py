"""Initial Bill Tracker schema

Creates:
1. companies, users, company_access (tenancy and membership)
2. session_tokens, security_events (authentication and security trail)
3. expenses, incomes (transaction aggregate with workflow + approval status)
4. reimbursement_requests, petty_cash_funds, expense_payments
5. document_events, audit_logs, notifications

Revision ID: bt001_initial_schema
Revises:
Create Date: 2026-10-19
"""
from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision = 'bt001_initial_schema'
down_revision = None
branch_labels = None
depends_on = None


def _money(name, nullable=False, default=None):
    return sa.Column(name, sa.Numeric(14, 2), nullable=nullable, server_default=default)


def _transaction_columns():
    """Columns shared by expenses and incomes."""
    return [
        sa.Column('id', sa.Integer(), autoincrement=True, nullable=False),
        sa.Column('company_id', sa.Integer(), sa.ForeignKey('companies.id'), nullable=False),
        sa.Column('contact_name', sa.String(length=255), nullable=True),
        sa.Column('description', sa.String(length=500), nullable=True),
        sa.Column('category', sa.String(length=64), nullable=True),
        sa.Column('payment_method', sa.String(length=32), nullable=True),
        sa.Column('invoice_number', sa.String(length=64), nullable=True),
        sa.Column('reference_no', sa.String(length=64), nullable=True),
        sa.Column('notes', sa.Text(), nullable=True),
        _money('amount'),
        sa.Column('vat_rate', sa.Numeric(5, 2), nullable=False, server_default='0'),
        _money('vat_amount', default='0'),
        sa.Column('is_wht', sa.Boolean(), nullable=False, server_default='0'),
        sa.Column('wht_rate', sa.Numeric(5, 2), nullable=False, server_default='0'),
        sa.Column('wht_type', sa.String(length=32), nullable=True),
        _money('wht_amount', default='0'),
        _money('net_amount'),
        sa.Column('document_type', sa.String(length=32), nullable=False, server_default='TAX_INVOICE'),
        sa.Column('has_required_document', sa.Boolean(), nullable=False, server_default='0'),
        sa.Column('has_wht_cert', sa.Boolean(), nullable=False, server_default='0'),
        sa.Column('workflow_status', sa.String(length=32), nullable=False, server_default='DRAFT'),
        sa.Column('approval_status', sa.String(length=16), nullable=False, server_default='NOT_REQUIRED'),
        sa.Column('submitted_by', sa.Integer(), nullable=True),
        sa.Column('submitted_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('approved_by', sa.Integer(), nullable=True),
        sa.Column('approved_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('rejected_by', sa.Integer(), nullable=True),
        sa.Column('rejected_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('rejected_reason', sa.String(length=500), nullable=True),
        sa.Column('slip_urls', sa.JSON(), nullable=False),
        sa.Column('document_urls', sa.JSON(), nullable=False),
        sa.Column('wht_cert_urls', sa.JSON(), nullable=False),
        sa.Column('sent_to_accountant_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('created_by', sa.Integer(), sa.ForeignKey('users.id'), nullable=False),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.Column('updated_at', sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.Column('deleted_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('deleted_by', sa.Integer(), nullable=True),
        sa.Column('version_id', sa.Integer(), nullable=False, server_default='1'),
    ]


def _transaction_indexes(table_name):
    op.create_index(f'ix_{table_name}_company_id', table_name, ['company_id'])
    op.create_index(f'ix_{table_name}_workflow_status', table_name, ['workflow_status'])
    op.create_index(f'ix_{table_name}_approval_status', table_name, ['approval_status'])
    op.create_index(f'ix_{table_name}_deleted_at', table_name, ['deleted_at'])
    op.create_index(f'ix_{table_name}_company_workflow', table_name, ['company_id', 'workflow_status'])
    op.create_index(f'ix_{table_name}_company_approval', table_name, ['company_id', 'approval_status'])


def upgrade():
    # ==========================================================================
    # Tenancy and users
    # ==========================================================================
    op.create_table('companies',
        sa.Column('id', sa.Integer(), autoincrement=True, nullable=False),
        sa.Column('name', sa.String(length=255), nullable=False),
        sa.Column('code', sa.String(length=32), nullable=False),
        sa.Column('tax_id', sa.String(length=13), nullable=True),
        _money('approval_threshold', nullable=True),
        sa.Column('line_group_id', sa.String(length=64), nullable=True),
        sa.Column('is_active', sa.Boolean(), nullable=False, server_default='1'),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.Column('updated_at', sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.PrimaryKeyConstraint('id'),
        sqlite_autoincrement=True,
    )
    op.create_index('ix_companies_code', 'companies', ['code'], unique=True)
    op.create_index('ix_companies_is_active', 'companies', ['is_active'])

    op.create_table('users',
        sa.Column('id', sa.Integer(), autoincrement=True, nullable=False),
        sa.Column('username', sa.String(length=64), nullable=False),
        sa.Column('email', sa.String(length=255), nullable=False),
        sa.Column('display_name', sa.String(length=128), nullable=True),
        sa.Column('password_hash', sa.String(length=255), nullable=False),
        sa.Column('is_active', sa.Boolean(), nullable=False, server_default='1'),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.Column('last_login_at', sa.DateTime(timezone=True), nullable=True),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('username', name='uq_users_username'),
        sa.UniqueConstraint('email', name='uq_users_email'),
        sqlite_autoincrement=True,
    )
    op.create_index('ix_users_username', 'users', ['username'])

    op.create_table('company_access',
        sa.Column('id', sa.Integer(), autoincrement=True, nullable=False),
        sa.Column('user_id', sa.Integer(), sa.ForeignKey('users.id'), nullable=False),
        sa.Column('company_id', sa.Integer(), sa.ForeignKey('companies.id'), nullable=False),
        sa.Column('is_owner', sa.Boolean(), nullable=False, server_default='0'),
        sa.Column('permissions', sa.JSON(), nullable=False),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('user_id', 'company_id', name='uq_company_access_user_company'),
        sqlite_autoincrement=True,
    )
    op.create_index('ix_company_access_user_id', 'company_access', ['user_id'])
    op.create_index('ix_company_access_company', 'company_access', ['company_id'])

    # ==========================================================================
    # Sessions and security trail
    # ==========================================================================
    op.create_table('session_tokens',
        sa.Column('id', sa.Integer(), autoincrement=True, nullable=False),
        sa.Column('user_id', sa.Integer(), sa.ForeignKey('users.id'), nullable=False),
        sa.Column('token_hash', sa.String(length=255), nullable=False),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.Column('last_used_at', sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.Column('expires_at', sa.DateTime(timezone=True), nullable=False),
        sa.Column('is_revoked', sa.Boolean(), nullable=False, server_default='0'),
        sa.Column('revoked_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('revoked_reason', sa.String(length=255), nullable=True),
        sa.Column('user_agent', sa.String(length=512), nullable=True),
        sa.Column('ip_address', sa.String(length=45), nullable=True),
        sa.PrimaryKeyConstraint('id'),
        sqlite_autoincrement=True,
    )
    op.create_index('ix_session_tokens_token_hash', 'session_tokens', ['token_hash'], unique=True)
    op.create_index('ix_session_tokens_user_id', 'session_tokens', ['user_id'])
    op.create_index('ix_session_tokens_expires_at', 'session_tokens', ['expires_at'])
    op.create_index('ix_session_tokens_is_revoked', 'session_tokens', ['is_revoked'])
    op.create_index('ix_session_tokens_user_active', 'session_tokens', ['user_id', 'is_revoked'])

    op.create_table('security_events',
        sa.Column('id', sa.Integer(), autoincrement=True, nullable=False),
        sa.Column('company_id', sa.Integer(), sa.ForeignKey('companies.id'), nullable=True),
        sa.Column('user_id', sa.Integer(), sa.ForeignKey('users.id'), nullable=True),
        sa.Column('event_type', sa.String(length=64), nullable=False),
        sa.Column('resource', sa.String(length=255), nullable=True),
        sa.Column('action', sa.String(length=64), nullable=True),
        sa.Column('success', sa.Boolean(), nullable=False),
        sa.Column('reason', sa.Text(), nullable=True),
        sa.Column('ip_address', sa.String(length=45), nullable=True),
        sa.Column('user_agent', sa.String(length=512), nullable=True),
        sa.Column('occurred_at', sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.PrimaryKeyConstraint('id'),
        sqlite_autoincrement=True,
    )
    op.create_index('ix_security_events_company_id', 'security_events', ['company_id'])
    op.create_index('ix_security_events_user_id', 'security_events', ['user_id'])
    op.create_index('ix_security_events_event_type', 'security_events', ['event_type'])
    op.create_index('ix_security_events_success', 'security_events', ['success'])
    op.create_index('ix_security_events_occurred_at', 'security_events', ['occurred_at'])
    op.create_index('ix_security_events_user_type', 'security_events', ['user_id', 'event_type'])
    op.create_index('ix_security_events_company_occurred', 'security_events', ['company_id', 'occurred_at'])

    # ==========================================================================
    # Expenses and incomes
    # ==========================================================================
    op.create_table('expenses',
        *_transaction_columns(),
        sa.Column('bill_date', sa.Date(), nullable=True),
        sa.Column('paid_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('document_received_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('wht_cert_issued_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('wht_cert_sent_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('completed_at', sa.DateTime(timezone=True), nullable=True),
        sa.PrimaryKeyConstraint('id'),
        sqlite_autoincrement=True,
    )
    _transaction_indexes('expenses')

    op.create_table('incomes',
        *_transaction_columns(),
        sa.Column('receive_date', sa.Date(), nullable=True),
        sa.Column('received_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('invoice_issued_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('wht_cert_received_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('wht_cert_reminded_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('wht_cert_remind_count', sa.Integer(), nullable=False, server_default='0'),
        sa.PrimaryKeyConstraint('id'),
        sqlite_autoincrement=True,
    )
    _transaction_indexes('incomes')

    # ==========================================================================
    # Reimbursements, petty cash and payments
    # ==========================================================================
    op.create_table('reimbursement_requests',
        sa.Column('id', sa.Integer(), autoincrement=True, nullable=False),
        sa.Column('company_id', sa.Integer(), sa.ForeignKey('companies.id'), nullable=False),
        sa.Column('requester_id', sa.Integer(), sa.ForeignKey('users.id'), nullable=True),
        sa.Column('requester_name', sa.String(length=128), nullable=False),
        sa.Column('bank_account', sa.String(length=64), nullable=True),
        sa.Column('description', sa.String(length=500), nullable=True),
        sa.Column('contact_name', sa.String(length=255), nullable=True),
        sa.Column('category', sa.String(length=64), nullable=True),
        sa.Column('bill_date', sa.Date(), nullable=True),
        _money('amount'),
        sa.Column('vat_rate', sa.Numeric(5, 2), nullable=False, server_default='0'),
        _money('vat_amount', default='0'),
        sa.Column('is_wht', sa.Boolean(), nullable=False, server_default='0'),
        sa.Column('wht_rate', sa.Numeric(5, 2), nullable=False, server_default='0'),
        sa.Column('wht_type', sa.String(length=32), nullable=True),
        _money('wht_amount', default='0'),
        _money('net_amount'),
        sa.Column('receipt_urls', sa.JSON(), nullable=False),
        sa.Column('status', sa.String(length=16), nullable=False, server_default='PENDING'),
        sa.Column('flag_reason', sa.String(length=500), nullable=True),
        sa.Column('approved_by', sa.Integer(), nullable=True),
        sa.Column('approved_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('rejected_by', sa.Integer(), nullable=True),
        sa.Column('rejected_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('rejected_reason', sa.String(length=500), nullable=True),
        sa.Column('paid_by', sa.Integer(), nullable=True),
        sa.Column('paid_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('payment_ref', sa.String(length=128), nullable=True),
        sa.Column('linked_expense_id', sa.Integer(), sa.ForeignKey('expenses.id'), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.Column('updated_at', sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.Column('deleted_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('version_id', sa.Integer(), nullable=False, server_default='1'),
        sa.PrimaryKeyConstraint('id'),
        sqlite_autoincrement=True,
    )
    op.create_index('ix_reimbursement_requests_company_id', 'reimbursement_requests', ['company_id'])
    op.create_index('ix_reimbursement_requests_status', 'reimbursement_requests', ['status'])
    op.create_index('ix_reimbursements_company_status', 'reimbursement_requests', ['company_id', 'status'])
    op.create_index('ix_reimbursements_requester', 'reimbursement_requests', ['requester_id'])

    op.create_table('petty_cash_funds',
        sa.Column('id', sa.Integer(), autoincrement=True, nullable=False),
        sa.Column('company_id', sa.Integer(), sa.ForeignKey('companies.id'), nullable=False),
        sa.Column('name', sa.String(length=128), nullable=False),
        sa.Column('custodian_id', sa.Integer(), sa.ForeignKey('users.id'), nullable=True),
        _money('balance', default='0'),
        sa.Column('is_active', sa.Boolean(), nullable=False, server_default='1'),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.Column('updated_at', sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.Column('version_id', sa.Integer(), nullable=False, server_default='1'),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('company_id', 'name', name='uq_petty_cash_funds_company_name'),
        sqlite_autoincrement=True,
    )
    op.create_index('ix_petty_cash_funds_company_id', 'petty_cash_funds', ['company_id'])

    op.create_table('expense_payments',
        sa.Column('id', sa.Integer(), autoincrement=True, nullable=False),
        sa.Column('company_id', sa.Integer(), sa.ForeignKey('companies.id'), nullable=False),
        sa.Column('expense_id', sa.Integer(), sa.ForeignKey('expenses.id'), nullable=False),
        sa.Column('paid_by_type', sa.String(length=16), nullable=False),
        sa.Column('paid_by_user_id', sa.Integer(), sa.ForeignKey('users.id'), nullable=True),
        sa.Column('petty_cash_fund_id', sa.Integer(), sa.ForeignKey('petty_cash_funds.id'), nullable=True),
        sa.Column('payer_key', sa.String(length=64), nullable=False),
        _money('amount'),
        sa.Column('settlement_status', sa.String(length=16), nullable=False, server_default='NOT_REQUIRED'),
        sa.Column('settled_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('settled_by', sa.Integer(), nullable=True),
        sa.Column('settlement_ref', sa.String(length=128), nullable=True),
        sa.Column('settlement_expense_id', sa.Integer(), sa.ForeignKey('expenses.id'), nullable=True),
        sa.Column('created_by', sa.Integer(), nullable=False),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('expense_id', 'payer_key', name='uq_expense_payments_expense_payer'),
        sqlite_autoincrement=True,
    )
    op.create_index('ix_expense_payments_company_id', 'expense_payments', ['company_id'])
    op.create_index('ix_expense_payments_expense_id', 'expense_payments', ['expense_id'])
    op.create_index('ix_expense_payments_company_settlement', 'expense_payments', ['company_id', 'settlement_status'])
    op.create_index('ix_expense_payments_user', 'expense_payments', ['paid_by_user_id'])

    # ==========================================================================
    # Events, audit trail and notifications
    # ==========================================================================
    op.create_table('document_events',
        sa.Column('id', sa.Integer(), autoincrement=True, nullable=False),
        sa.Column('company_id', sa.Integer(), sa.ForeignKey('companies.id'), nullable=False),
        sa.Column('expense_id', sa.Integer(), sa.ForeignKey('expenses.id'), nullable=True),
        sa.Column('income_id', sa.Integer(), sa.ForeignKey('incomes.id'), nullable=True),
        sa.Column('event_type', sa.String(length=32), nullable=False),
        sa.Column('from_status', sa.String(length=32), nullable=True),
        sa.Column('to_status', sa.String(length=32), nullable=True),
        sa.Column('notes', sa.Text(), nullable=True),
        sa.Column('event_metadata', sa.JSON(), nullable=True),
        sa.Column('created_by', sa.Integer(), sa.ForeignKey('users.id'), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.PrimaryKeyConstraint('id'),
        sa.CheckConstraint(
            '(expense_id IS NULL) <> (income_id IS NULL)',
            name='ck_document_events_single_parent',
        ),
        sqlite_autoincrement=True,
    )
    op.create_index('ix_document_events_company_id', 'document_events', ['company_id'])
    op.create_index('ix_document_events_event_type', 'document_events', ['event_type'])
    op.create_index('ix_document_events_expense', 'document_events', ['expense_id', 'created_at'])
    op.create_index('ix_document_events_income', 'document_events', ['income_id', 'created_at'])

    op.create_table('audit_logs',
        sa.Column('id', sa.Integer(), autoincrement=True, nullable=False),
        sa.Column('company_id', sa.Integer(), sa.ForeignKey('companies.id'), nullable=False),
        sa.Column('user_id', sa.Integer(), sa.ForeignKey('users.id'), nullable=True),
        sa.Column('action', sa.String(length=32), nullable=False),
        sa.Column('entity_type', sa.String(length=64), nullable=False),
        sa.Column('entity_id', sa.Integer(), nullable=True),
        sa.Column('changes', sa.JSON(), nullable=True),
        sa.Column('description', sa.String(length=500), nullable=True),
        sa.Column('ip_address', sa.String(length=45), nullable=True),
        sa.Column('user_agent', sa.String(length=512), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.PrimaryKeyConstraint('id'),
        sqlite_autoincrement=True,
    )
    op.create_index('ix_audit_logs_company_created', 'audit_logs', ['company_id', 'created_at'])
    op.create_index('ix_audit_logs_entity', 'audit_logs', ['entity_type', 'entity_id'])

    op.create_table('notifications',
        sa.Column('id', sa.Integer(), autoincrement=True, nullable=False),
        sa.Column('company_id', sa.Integer(), sa.ForeignKey('companies.id'), nullable=False),
        sa.Column('target_user_id', sa.Integer(), sa.ForeignKey('users.id'), nullable=True),
        sa.Column('kind', sa.String(length=64), nullable=False),
        sa.Column('title', sa.String(length=255), nullable=False),
        sa.Column('payload', sa.JSON(), nullable=True),
        sa.Column('is_read', sa.Boolean(), nullable=False, server_default='0'),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.PrimaryKeyConstraint('id'),
        sqlite_autoincrement=True,
    )
    op.create_index('ix_notifications_target_user_id', 'notifications', ['target_user_id'])
    op.create_index('ix_notifications_company_read', 'notifications', ['company_id', 'is_read'])


def downgrade():
    for table_name in (
        'notifications',
        'audit_logs',
        'document_events',
        'expense_payments',
        'petty_cash_funds',
        'reimbursement_requests',
        'incomes',
        'expenses',
        'security_events',
        'session_tokens',
        'company_access',
        'users',
        'companies',
    ):
        op.drop_table(table_name)
