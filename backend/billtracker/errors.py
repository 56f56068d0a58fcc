# Overview: Domain error taxonomy shared by services and routes.

"""
Bill Tracker Error Taxonomy

Services raise these typed errors with a localized message; routes
translate them into the JSON envelope with the matching HTTP status.

Hierarchy:
    BillTrackerError
    ├── ValidationError (400)
    │   └── InvalidTaxInputError (400, carries field)
    ├── ForbiddenError (403)
    │   └── SelfApprovalError (403)
    ├── NotFoundError (404)
    ├── IllegalTransitionError (409, carries current_status)
    │   ├── ApprovalPendingError
    │   ├── ApprovalRejectedError
    │   └── ConcurrentModificationError
    └── DuplicatePaymentError (409)

SECURITY: NotFoundError is also raised for records owned by another
company so that cross-tenant probing cannot tell the two cases apart.
"""

from __future__ import annotations


class BillTrackerError(Exception):
    """Base class for all domain errors surfaced to API callers."""

    status_code = 500
    default_code = "ERROR"

    def __init__(self, message: str, code: str | None = None, details: dict | None = None):
        self.message = message
        self.code = code or self.default_code
        self.details = details or {}
        super().__init__(message)

    def to_dict(self) -> dict:
        payload = {"success": False, "error": self.message, "code": self.code}
        if self.details:
            payload["details"] = self.details
        return payload


class ValidationError(BillTrackerError):
    status_code = 400
    default_code = "VALIDATION_ERROR"


class InvalidTaxInputError(ValidationError):
    """Malformed amount or rate. Always names the offending field."""

    default_code = "INVALID_TAX_INPUT"

    def __init__(self, message: str, field: str):
        super().__init__(message, details={"field": field})
        self.field = field


class ForbiddenError(BillTrackerError):
    status_code = 403
    default_code = "FORBIDDEN"


class SelfApprovalError(ForbiddenError):
    default_code = "SELF_APPROVAL"

    def __init__(self, message: str = "ไม่สามารถอนุมัติคำขอของตัวเองได้"):
        super().__init__(message)


class NotFoundError(BillTrackerError):
    status_code = 404
    default_code = "NOT_FOUND"


class IllegalTransitionError(BillTrackerError):
    """Trigger is not valid from the record's current state."""

    status_code = 409
    default_code = "ILLEGAL_TRANSITION"

    def __init__(self, message: str, current_status: str | None = None, code: str | None = None):
        details = {"current_status": current_status} if current_status else None
        super().__init__(message, code=code, details=details)
        self.current_status = current_status


class ApprovalPendingError(IllegalTransitionError):
    default_code = "APPROVAL_PENDING"

    def __init__(self, message: str = "รายการนี้ยังรออนุมัติอยู่"):
        super().__init__(message, current_status="PENDING")


class ApprovalRejectedError(IllegalTransitionError):
    default_code = "APPROVAL_REJECTED"

    def __init__(self, message: str = "รายการนี้ถูกปฏิเสธ กรุณาแก้ไขและส่งใหม่"):
        super().__init__(message, current_status="REJECTED")


class ConcurrentModificationError(IllegalTransitionError):
    """The record changed between read and conditional write."""

    default_code = "CONCURRENT_MODIFICATION"

    def __init__(self, message: str = "รายการนี้ถูกแก้ไขโดยผู้อื่นแล้ว กรุณาโหลดข้อมูลใหม่"):
        super().__init__(message)


class DuplicatePaymentError(BillTrackerError):
    status_code = 409
    default_code = "DUPLICATE_PAYMENT"

    def __init__(self, message: str = "มีการบันทึกการจ่ายเงินของผู้จ่ายรายนี้แล้ว"):
        super().__init__(message)
