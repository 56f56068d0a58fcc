# Overview: Request and permission decorators for API routes.

from functools import wraps

from flask import current_app, g, request

from .errors import BillTrackerError
from .extensions import db
from .models import Company
from .responses import fail, internal_error
from .services import permission_service, session_service


def _is_authenticated() -> bool:
    return hasattr(g, "current_user")


def bearer_token() -> str | None:
    scheme, _, token = request.headers.get("Authorization", "").partition(" ")
    if scheme != "Bearer" or not token.strip():
        return None
    return token.strip()


def require_auth(f):
    """
    401 UNAUTHENTICATED unless the request carries a live bearer token.
    On success g.current_user and g.session_context are set.
    """
    @wraps(f)
    def wrapper(*args, **kwargs):
        token = bearer_token()
        if not token:
            return fail("กรุณาเข้าสู่ระบบ", "UNAUTHENTICATED", 401)

        context = session_service.validate_session(token)
        if not context:
            return fail("เซสชันหมดอายุ กรุณาเข้าสู่ระบบใหม่", "UNAUTHENTICATED", 401)

        g.current_user = context.user
        g.session_context = context

        return f(*args, **kwargs)

    return wrapper


def require_company(permission_code: str | None = None):
    """
    Resolve the <company> URL segment and enforce access to it.

    The route receives the Company object in place of the code and it is
    also stored on g.company.

    SECURITY:
    - Unknown company, inactive company and "no CompanyAccess row" all
      return the same 404 so company codes cannot be probed
    - Missing permission returns 403 and is logged as a security event
    """
    def decorator(f):
        @wraps(f)
        def decorated_function(*args, **kwargs):
            if not _is_authenticated():
                return fail("กรุณาเข้าสู่ระบบ", "UNAUTHENTICATED", 401)

            user = g.current_user
            code = kwargs.pop("company")
            company = db.session.query(Company).filter_by(code=code, is_active=True).first()
            access = permission_service.get_company_access(user.id, company.id) if company else None

            if company is None or access is None:
                permission_service.log_security_event(
                    user_id=user.id,
                    event_type="COMPANY_ACCESS_DENIED",
                    success=False,
                    resource=request.path,
                    action=request.method,
                    reason=f"No access to company {code}",
                    ip_address=request.remote_addr,
                    user_agent=request.headers.get("User-Agent"),
                    company_id=company.id if company else None,
                )
                return fail("ไม่พบบริษัท", "NOT_FOUND", 404)

            if permission_code:
                try:
                    permission_service.require_permission(
                        user_id=user.id,
                        company_id=company.id,
                        permission_code=permission_code,
                        resource=request.path,
                        ip_address=request.remote_addr,
                        user_agent=request.headers.get("User-Agent"),
                    )
                except BillTrackerError as e:
                    return fail(e.message, e.code, e.status_code, e.details)

            g.company = company
            return f(*args, company=company, **kwargs)

        return decorated_function
    return decorator


def handle_errors(log_message: str):
    """
    Roll back on failure. Domain errors are re-raised for the app-level
    BillTrackerError handler; anything else is logged and returned as 500.
    """
    def decorator(f):
        @wraps(f)
        def decorated_function(*args, **kwargs):
            try:
                return f(*args, **kwargs)
            except BillTrackerError:
                db.session.rollback()
                raise
            except Exception:
                db.session.rollback()
                current_app.logger.exception(log_message)
                return internal_error()

        return decorated_function
    return decorator
