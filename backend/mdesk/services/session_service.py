# Overview: Bearer session tokens and the per-request Identity they resolve to.

"""
Session Token Management Service

Tokens are cryptographically random, stored only as SHA-256 hashes, and
expire after an absolute lifetime or an idle period (both configurable).

validate_session() resolves a token into one canonical Identity; routes
read the caller from g.identity and never re-derive it from other
request fields.
"""

import secrets
import hashlib
from dataclasses import dataclass
from datetime import timedelta

from flask import current_app

from ..extensions import db
from ..models import SessionToken, User
from ..models.auth import ADMIN_ROLES
from mdesk.time_utils import utcnow


@dataclass(frozen=True)
class Identity:
    """The authenticated caller of a request."""
    user_id: int
    email: str
    name: str
    role: str
    contact_id: int | None

    @property
    def is_admin(self) -> bool:
        return self.role in ADMIN_ROLES


def identity_for_user(user: User) -> Identity:
    return Identity(
        user_id=user.id,
        email=user.email,
        name=user.name,
        role=user.role,
        contact_id=user.contact.id if user.contact else None,
    )


def _absolute_timeout() -> timedelta:
    return timedelta(hours=current_app.config.get("SESSION_TTL_HOURS", 24))


def _idle_timeout() -> timedelta:
    return timedelta(hours=current_app.config.get("SESSION_IDLE_HOURS", 2))


def generate_token() -> str:
    """Return a 64-character hex token (32 bytes of entropy)."""
    return secrets.token_hex(32)


def hash_token(token: str) -> str:
    return hashlib.sha256(token.encode('utf-8')).hexdigest()


def create_session(
    user_id: int,
    user_agent: str | None = None,
    ip_address: str | None = None
) -> tuple[SessionToken, str]:
    """
    Create new session token for user.

    Returns (session_record, plaintext_token). The database stores only the
    hash of the plaintext token.
    """
    user = db.session.get(User, user_id)
    if not user:
        raise ValueError("User not found")

    plaintext_token = generate_token()
    now = utcnow()

    session = SessionToken(
        user_id=user_id,
        token_hash=hash_token(plaintext_token),
        created_at=now,
        last_used_at=now,
        expires_at=now + _absolute_timeout(),
        user_agent=user_agent,
        ip_address=ip_address,
        is_revoked=False
    )

    db.session.add(session)
    db.session.commit()

    return session, plaintext_token


def _revoke(session: SessionToken, reason: str) -> None:
    session.is_revoked = True
    session.revoked_at = utcnow()
    session.revoked_reason = reason
    db.session.commit()


def validate_session(token: str) -> Identity | None:
    """
    Validate session token and return the caller's Identity.

    Returns None if the token is unknown, revoked, expired, idle for too
    long, or belongs to a deactivated user. Updates last_used_at on success.
    """
    now = utcnow()

    session = db.session.query(SessionToken).filter_by(
        token_hash=hash_token(token),
        is_revoked=False
    ).first()

    if not session:
        return None

    if session.expires_at < now:
        return None

    if now - session.last_used_at > _idle_timeout():
        _revoke(session, "Idle timeout")
        return None

    user = session.user
    if not user or not user.is_active:
        _revoke(session, "User account deactivated")
        return None

    session.last_used_at = now
    db.session.commit()

    return identity_for_user(user)


def revoke_session(token: str, reason: str = "User logout") -> bool:
    """Revoke a session token. Returns True if a live session was revoked."""
    session = db.session.query(SessionToken).filter_by(
        token_hash=hash_token(token),
        is_revoked=False
    ).first()

    if not session:
        return False

    _revoke(session, reason)
    return True


def revoke_all_user_sessions(user_id: int, reason: str = "Password changed") -> int:
    """Revoke every live session of a user; returns the number revoked."""
    now = utcnow()
    sessions = db.session.query(SessionToken).filter_by(
        user_id=user_id,
        is_revoked=False
    ).all()

    for session in sessions:
        session.is_revoked = True
        session.revoked_at = now
        session.revoked_reason = reason

    db.session.commit()
    return len(sessions)
