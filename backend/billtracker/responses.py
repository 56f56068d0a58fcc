# Overview: JSON envelope helpers shared by every blueprint.

"""
Every response uses one envelope:

    success: {"success": true, "data": ..., "message": "..."}
    failure: {"success": false, "error": "...", "code": "...", "details": {...}}

Error messages are Thai and shown to users as-is.
"""

from flask import jsonify

from .errors import BillTrackerError


INTERNAL_ERROR_MESSAGE = "เกิดข้อผิดพลาดภายในระบบ กรุณาลองใหม่อีกครั้ง"


def ok(data=None, message: str | None = None, status: int = 200):
    body = {"success": True, "data": data}
    if message:
        body["message"] = message
    return jsonify(body), status


def created(data=None, message: str | None = None):
    return ok(data, message, status=201)


def fail(message: str, code: str, status: int, details: dict | None = None):
    body = {"success": False, "error": message, "code": code}
    if details:
        body["details"] = details
    return jsonify(body), status


def error_response(exc: BillTrackerError):
    return jsonify(exc.to_dict()), exc.status_code


def internal_error():
    return fail(INTERNAL_ERROR_MESSAGE, "INTERNAL_ERROR", 500)
