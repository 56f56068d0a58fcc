from .tenancy import Company, CompanyAccess
from .auth import User, SessionToken
from .security import SecurityEvent
from .transactions import Expense, Income
from .reimbursements import ReimbursementRequest
from .payments import ExpensePayment, PettyCashFund
from .events import DocumentEvent, AuditLog, Notification

__all__ = [
    'Company', 'CompanyAccess',
    'User', 'SessionToken', 'SecurityEvent',
    'Expense', 'Income',
    'ReimbursementRequest',
    'ExpensePayment', 'PettyCashFund',
    'DocumentEvent', 'AuditLog', 'Notification',
]
