# Overview: Registration, password hashing and credential checks.

"""
Authentication Service

Passwords are hashed with bcrypt (cost factor from BCRYPT_ROUNDS, 12 by
default) after a strength check. Registering a user also creates the
Contact that invoices and contact-locked coupons refer to.
"""

import bcrypt
import re

from flask import current_app

from ..extensions import db
from ..models import User, Contact
from ..models.auth import USER_ROLES
from mdesk.time_utils import utcnow


EMAIL_RE = re.compile(r"^[^@\s]+@[^@\s]+\.[^@\s]+$")


class PasswordValidationError(Exception):
    """Raised when password doesn't meet strength requirements."""
    pass


class RegistrationError(Exception):
    """Raised when a user cannot be registered (bad input or duplicate email)."""
    pass


def validate_password_strength(password: str) -> None:
    """
    Validate password meets strength requirements.

    Requirements:
    - Minimum 8 characters
    - At least one uppercase letter
    - At least one lowercase letter
    - At least one digit
    - At least one special character (!@#$%^&*(),.'":{}|<>)

    Raises PasswordValidationError if requirements not met.
    """
    if len(password) < 8:
        raise PasswordValidationError("Password must be at least 8 characters long")

    if not re.search(r'[A-Z]', password):
        raise PasswordValidationError("Password must contain at least one uppercase letter")

    if not re.search(r'[a-z]', password):
        raise PasswordValidationError("Password must contain at least one lowercase letter")

    if not re.search(r'\d', password):
        raise PasswordValidationError("Password must contain at least one digit")

    if not re.search(r"[!@#$%^&*(),.'\":{}|<>]", password):
        raise PasswordValidationError("Password must contain at least one special character")


def hash_password(password: str) -> str:
    """Validate strength, then hash with bcrypt."""
    validate_password_strength(password)
    salt = bcrypt.gensalt(rounds=current_app.config.get("BCRYPT_ROUNDS", 12))
    hashed = bcrypt.hashpw(password.encode('utf-8'), salt)
    return hashed.decode('utf-8')


def verify_password(password: str, password_hash: str) -> bool:
    """Timing-safe bcrypt comparison. Malformed hashes never verify."""
    try:
        return bcrypt.checkpw(password.encode('utf-8'), password_hash.encode('utf-8'))
    except ValueError:
        return False


def normalize_email(email: str | None) -> str:
    return (email or "").strip().lower()


def register_user(
    *,
    name: str,
    email: str,
    password: str,
    role: str = "customer",
    mobile: str | None = None,
    city: str | None = None,
    state: str | None = None,
    pincode: str | None = None,
) -> User:
    """
    Create a user and its linked contact in one transaction.

    Raises:
        RegistrationError: missing name, malformed or duplicate email, unknown role
        PasswordValidationError: weak password
    """
    name = (name or "").strip()
    email = normalize_email(email)

    if not name:
        raise RegistrationError("Name is required")
    if not EMAIL_RE.match(email):
        raise RegistrationError("A valid email is required")
    if role not in USER_ROLES:
        raise RegistrationError(f"role must be one of: {', '.join(USER_ROLES)}")

    if db.session.query(User).filter_by(email=email).first():
        raise RegistrationError("User already exists")

    user = User(
        name=name,
        email=email,
        password_hash=hash_password(password),
        role=role,
        mobile=mobile,
        city=city,
        state=state,
        pincode=pincode,
    )
    db.session.add(user)
    db.session.flush()

    contact = Contact(
        name=name,
        contact_type="admin" if role == "admin" else "customer",
        email=email,
        mobile=mobile,
        city=city,
        state=state,
        pincode=pincode,
        linked_user_id=user.id,
    )
    db.session.add(contact)
    db.session.commit()
    return user


def authenticate(email: str, password: str) -> User | None:
    """
    Authenticate by email and password.

    Returns the User and stamps last_login_at on success, None otherwise.
    """
    user = db.session.query(User).filter(
        User.email == normalize_email(email),
        User.is_active.is_(True),
    ).first()

    if not user:
        return None

    if verify_password(password, user.password_hash):
        user.last_login_at = utcnow()
        db.session.commit()
        return user

    return None
