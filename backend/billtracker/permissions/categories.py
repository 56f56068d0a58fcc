# Overview: Permission category constants for grouping related permissions.


class PermissionCategory:
    """Permission categories for organization and UI display."""
    EXPENSES = "EXPENSES"
    INCOMES = "INCOMES"
    REIMBURSEMENTS = "REIMBURSEMENTS"
    SETTLEMENTS = "SETTLEMENTS"
    AUDIT = "AUDIT"
    SETTINGS = "SETTINGS"
