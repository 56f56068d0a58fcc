# Overview: Login session tokens: issue, check, and revoke.

"""
Bearer tokens for the Bill Tracker API.

The client holds a random 64-character hex token; the database keeps only its
SHA-256 digest. A session ends at whichever comes first: its hard lifetime
(SESSION_LIFETIME_HOURS), SESSION_IDLE_MINUTES without a request, an explicit
logout, or the owning user being deactivated.
"""

import hashlib
import logging
import secrets
from dataclasses import dataclass
from datetime import timedelta

from flask import current_app

from ..extensions import db
from ..models import SessionToken, User
from billtracker.time_utils import utcnow


logger = logging.getLogger(__name__)

USER_AGENT_MAX = 512


@dataclass
class SessionContext:
    user: User
    session: SessionToken


def _lifetime() -> timedelta:
    return timedelta(hours=current_app.config.get("SESSION_LIFETIME_HOURS", 24))


def _idle_limit() -> timedelta:
    return timedelta(minutes=current_app.config.get("SESSION_IDLE_MINUTES", 120))


def digest(token: str) -> str:
    """Tokens carry 256 bits of entropy, so a plain SHA-256 is enough at rest."""
    return hashlib.sha256(token.encode("utf-8")).hexdigest()


def _live_session(token: str) -> SessionToken | None:
    return (
        db.session.query(SessionToken)
        .filter(SessionToken.token_hash == digest(token), SessionToken.is_revoked.is_(False))
        .first()
    )


def _close(session: SessionToken, reason: str, when=None) -> None:
    session.is_revoked = True
    session.revoked_at = when or utcnow()
    session.revoked_reason = reason


def create_session(user_id: int, user_agent: str | None = None,
                   ip_address: str | None = None) -> tuple[SessionToken, str]:
    """Open a session for an active user. Returns (row, plaintext token)."""
    user = db.session.get(User, user_id)
    if user is None or not user.is_active:
        raise ValueError("User not found")

    token = secrets.token_hex(32)
    issued = utcnow()
    session = SessionToken(
        user_id=user.id,
        token_hash=digest(token),
        created_at=issued,
        last_used_at=issued,
        expires_at=issued + _lifetime(),
        user_agent=user_agent[:USER_AGENT_MAX] if user_agent else None,
        ip_address=ip_address,
        is_revoked=False,
    )
    db.session.add(session)
    db.session.commit()
    return session, token


def validate_session(token: str) -> SessionContext | None:
    """
    Resolve a bearer token to its user, or None.

    A token past its idle limit, or one whose user has been deactivated, is
    revoked on the spot so it cannot come back. A good token has its
    last_used_at bumped.
    """
    session = _live_session(token)
    if session is None:
        return None

    now = utcnow()
    if session.expires_at < now:
        return None

    reason = None
    if now - session.last_used_at > _idle_limit():
        reason = "Idle timeout"
    elif session.user is None or not session.user.is_active:
        reason = "User account deactivated"

    if reason:
        _close(session, reason, now)
        db.session.commit()
        logger.info("Session %s closed: %s", session.id, reason)
        return None

    session.last_used_at = now
    db.session.commit()
    return SessionContext(user=session.user, session=session)


def revoke_session(token: str, reason: str = "User logout") -> bool:
    session = _live_session(token)
    if session is None:
        return False
    _close(session, reason)
    db.session.commit()
    return True


def revoke_all_user_sessions(user_id: int, reason: str = "Revoke all sessions") -> int:
    """Close every open session of a user (deactivation). Returns how many."""
    now = utcnow()
    open_sessions = (
        db.session.query(SessionToken)
        .filter(SessionToken.user_id == user_id, SessionToken.is_revoked.is_(False))
        .all()
    )
    for session in open_sessions:
        _close(session, reason, now)
    db.session.commit()
    if open_sessions:
        logger.info("Revoked %d session(s) for user %s", len(open_sessions), user_id)
    return len(open_sessions)
