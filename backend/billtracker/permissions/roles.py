# Overview: Named permission presets offered when granting company access.
# Owners are not listed: CompanyAccess.is_owner bypasses all checks.

DEFAULT_ROLE_PERMISSIONS = {
    "viewer": [
        "expenses:read",
        "incomes:read",
        "reimbursements:read",
        "settlements:read",
    ],
    "staff": [
        "expenses:read",
        "expenses:create",
        "expenses:update",
        "incomes:read",
        "incomes:create",
        "incomes:update",
        "reimbursements:read",
        "reimbursements:create",
    ],
    "accountant": [
        "expenses:*",
        "incomes:*",
        "reimbursements:read",
        "settlements:read",
        "audit:read",
    ],
    "manager": [
        "expenses:*",
        "incomes:*",
        "reimbursements:*",
        "settlements:*",
        "audit:read",
        "settings:read",
    ],
}
