# Overview: User accounts, bcrypt passwords, and login checks.

"""
Users are global; which companies a user can open is decided by
CompanyAccess rows (permission_service.grant_access). Everyone logs in as
themselves because the approval rules compare user ids.
"""

import re

import bcrypt

from ..errors import ValidationError
from ..extensions import db
from ..models import User
from billtracker.time_utils import utcnow


BCRYPT_ROUNDS = 12
MIN_PASSWORD_LENGTH = 8

# (pattern, message) pairs checked in order; the first miss is reported
PASSWORD_RULES = (
    (r"[A-Z]", "รหัสผ่านต้องมีตัวพิมพ์ใหญ่อย่างน้อย 1 ตัว"),
    (r"[a-z]", "รหัสผ่านต้องมีตัวพิมพ์เล็กอย่างน้อย 1 ตัว"),
    (r"\d", "รหัสผ่านต้องมีตัวเลขอย่างน้อย 1 ตัว"),
    (r"[!@#$%^&*(),.'\":{}|<>]", "รหัสผ่านต้องมีอักขระพิเศษอย่างน้อย 1 ตัว"),
)


class PasswordValidationError(ValidationError):
    default_code = "WEAK_PASSWORD"


def validate_password_strength(password: str) -> None:
    if len(password or "") < MIN_PASSWORD_LENGTH:
        raise PasswordValidationError(f"รหัสผ่านต้องมีอย่างน้อย {MIN_PASSWORD_LENGTH} ตัวอักษร")
    for pattern, message in PASSWORD_RULES:
        if not re.search(pattern, password):
            raise PasswordValidationError(message)


def hash_password(password: str) -> str:
    """Check strength, then bcrypt. The hash is stored as text."""
    validate_password_strength(password)
    return bcrypt.hashpw(password.encode("utf-8"), bcrypt.gensalt(rounds=BCRYPT_ROUNDS)).decode("utf-8")


def verify_password(password: str, password_hash: str) -> bool:
    try:
        return bcrypt.checkpw(password.encode("utf-8"), password_hash.encode("utf-8"))
    except ValueError:
        # stored hash is not a bcrypt string
        return False


def create_user(username: str, email: str, password: str, display_name: str | None = None) -> User:
    """
    Raises ValidationError for a missing or taken username/email and
    PasswordValidationError (WEAK_PASSWORD) for a weak password.
    """
    username = (username or "").strip()
    email = (email or "").strip().lower()
    if not username or not email:
        raise ValidationError("กรุณาระบุชื่อผู้ใช้และอีเมล")

    taken = db.session.query(User.id).filter(
        db.or_(User.username == username, User.email == email)
    ).first()
    if taken:
        raise ValidationError("ชื่อผู้ใช้หรืออีเมลนี้ถูกใช้แล้ว")

    user = User(
        username=username,
        email=email,
        display_name=(display_name or "").strip() or None,
        password_hash=hash_password(password),
    )
    db.session.add(user)
    db.session.commit()
    return user


def authenticate(username: str, password: str) -> User | None:
    """Login by username or email. Inactive users never authenticate."""
    login = (username or "").strip()
    user = db.session.query(User).filter(
        db.or_(User.username == login, User.email == login.lower()),
        User.is_active.is_(True),
    ).first()
    if user is None or not verify_password(password or "", user.password_hash):
        return None

    user.last_login_at = utcnow()
    db.session.commit()
    return user
