# Overview: All permission definitions organized by category.
# Each permission is defined as: (code, name, description, category)
# Codes are "module:action"; a grant of "module:*" covers every action of the module.

from .categories import PermissionCategory


# -- EXPENSES --

EXPENSE_PERMISSIONS = [
    ("expenses:read", "View Expenses", "View expenses and their workflow history", PermissionCategory.EXPENSES),
    ("expenses:create", "Create Expenses", "Record new expenses (may require approval)", PermissionCategory.EXPENSES),
    (
        "expenses:create-direct",
        "Create Expenses Without Approval",
        "Record expenses that skip the approval threshold",
        PermissionCategory.EXPENSES,
    ),
    ("expenses:update", "Edit Expenses", "Edit expense details and attachments", PermissionCategory.EXPENSES),
    ("expenses:delete", "Delete Expenses", "Soft-delete expenses", PermissionCategory.EXPENSES),
    ("expenses:approve", "Approve Expenses", "Approve or reject submitted expenses", PermissionCategory.EXPENSES),
    ("expenses:mark-paid", "Mark Expenses Paid", "Mark an expense as paid", PermissionCategory.EXPENSES),
    (
        "expenses:change-status",
        "Change Expense Status",
        "Advance the document workflow (tax invoice, 50 Tawi, accountant)",
        PermissionCategory.EXPENSES,
    ),
]


# -- INCOMES --

INCOME_PERMISSIONS = [
    ("incomes:read", "View Incomes", "View incomes and their workflow history", PermissionCategory.INCOMES),
    ("incomes:create", "Create Incomes", "Record new incomes (may require approval)", PermissionCategory.INCOMES),
    (
        "incomes:create-direct",
        "Create Incomes Without Approval",
        "Record incomes that skip the approval threshold",
        PermissionCategory.INCOMES,
    ),
    ("incomes:update", "Edit Incomes", "Edit income details and attachments", PermissionCategory.INCOMES),
    ("incomes:delete", "Delete Incomes", "Soft-delete incomes", PermissionCategory.INCOMES),
    ("incomes:approve", "Approve Incomes", "Approve or reject submitted incomes", PermissionCategory.INCOMES),
    ("incomes:mark-received", "Mark Incomes Received", "Mark an income as received", PermissionCategory.INCOMES),
    (
        "incomes:change-status",
        "Change Income Status",
        "Advance the document workflow (invoice, 50 Tawi, accountant)",
        PermissionCategory.INCOMES,
    ),
]


# -- REIMBURSEMENTS --

REIMBURSEMENT_PERMISSIONS = [
    ("reimbursements:read", "View Reimbursements", "View employee reimbursement requests", PermissionCategory.REIMBURSEMENTS),
    ("reimbursements:create", "Request Reimbursement", "Submit a reimbursement request", PermissionCategory.REIMBURSEMENTS),
    (
        "reimbursements:approve",
        "Approve Reimbursements",
        "Approve, reject or flag reimbursement requests",
        PermissionCategory.REIMBURSEMENTS,
    ),
    (
        "reimbursements:pay",
        "Pay Reimbursements",
        "Record payment to the employee and book it as an expense",
        PermissionCategory.REIMBURSEMENTS,
    ),
]


# -- SETTLEMENTS / PETTY CASH --

SETTLEMENT_PERMISSIONS = [
    ("settlements:read", "View Settlements", "View outstanding employee advances and petty cash", PermissionCategory.SETTLEMENTS),
    (
        "settlements:manage",
        "Manage Settlements",
        "Record payers, settle advances and replenish petty cash",
        PermissionCategory.SETTLEMENTS,
    ),
]


# -- AUDIT --

AUDIT_PERMISSIONS = [
    ("audit:read", "View Audit Log", "View the company audit trail", PermissionCategory.AUDIT),
]


# -- SETTINGS --

SETTINGS_PERMISSIONS = [
    ("settings:read", "View Settings", "View company settings", PermissionCategory.SETTINGS),
    ("settings:manage", "Manage Settings", "Change company settings and member access", PermissionCategory.SETTINGS),
]


PERMISSION_DEFINITIONS = (
    EXPENSE_PERMISSIONS
    + INCOME_PERMISSIONS
    + REIMBURSEMENT_PERMISSIONS
    + SETTLEMENT_PERMISSIONS
    + AUDIT_PERMISSIONS
    + SETTINGS_PERMISSIONS
)
