"""
Login and session routes

- POST /api/auth/login   -> session token
- POST /api/auth/logout  -> revoke the presented token
- GET  /api/auth/me      -> current user and the companies they can access

Accounts are created by an operator via the CLI (flask users create).
"""

from flask import Blueprint, g, request

from ..decorators import bearer_token, handle_errors, require_auth
from ..extensions import db
from ..models import Company, CompanyAccess
from ..responses import fail, ok
from ..services import auth_service, permission_service, session_service


auth_bp = Blueprint("auth", __name__, url_prefix="/api/auth")


@auth_bp.post("/login")
@handle_errors("Failed to login user")
def login_route():
    """
    Body: username (or email), password. Returns a bearer token for the
    Authorization header. A failed attempt is logged as LOGIN_FAILED.
    """
    data = request.get_json(silent=True) or {}
    username = data.get("username") or data.get("email")
    password = data.get("password")

    if not username or not password:
        return fail("กรุณาระบุชื่อผู้ใช้และรหัสผ่าน", "VALIDATION_ERROR", 400)

    user_agent = request.headers.get("User-Agent")
    ip_address = request.remote_addr

    user = auth_service.authenticate(username, password)
    if not user:
        permission_service.log_security_event(
            user_id=None,
            event_type="LOGIN_FAILED",
            success=False,
            resource=request.path,
            action=username,
            reason="Invalid credentials",
            ip_address=ip_address,
            user_agent=user_agent,
        )
        return fail("ชื่อผู้ใช้หรือรหัสผ่านไม่ถูกต้อง", "INVALID_CREDENTIALS", 401)

    session, token = session_service.create_session(
        user_id=user.id,
        user_agent=user_agent,
        ip_address=ip_address,
    )

    return ok({
        "user": user.to_dict(),
        "token": token,
        "session": session.to_dict(),
    }, message="เข้าสู่ระบบสำเร็จ")


@auth_bp.post("/logout")
@handle_errors("Failed to logout user")
def logout_route():
    """Revoke the bearer token this request was sent with."""
    token = bearer_token()
    if not token:
        return fail("กรุณาเข้าสู่ระบบ", "UNAUTHENTICATED", 401)

    if not session_service.revoke_session(token, reason="User logout"):
        return fail("เซสชันหมดอายุ กรุณาเข้าสู่ระบบใหม่", "UNAUTHENTICATED", 401)

    return ok(None, message="ออกจากระบบแล้ว")


@auth_bp.get("/me")
@require_auth
def me_route():
    """Current user plus each accessible company and the permissions held there."""
    user = g.current_user
    rows = db.session.query(CompanyAccess, Company).join(
        Company, Company.id == CompanyAccess.company_id,
    ).filter(
        CompanyAccess.user_id == user.id,
        Company.is_active.is_(True),
    ).order_by(Company.name).all()

    companies = []
    for access, company in rows:
        entry = company.to_dict()
        entry["is_owner"] = access.is_owner
        entry["permissions"] = permission_service.get_user_permissions(user.id, company.id)
        companies.append(entry)

    return ok({"user": user.to_dict(), "companies": companies})
