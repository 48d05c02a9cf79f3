# Overview: Service-layer operations for local user accounts.

"""
Authentication Service

Single-tenant local accounts with two roles: admin and employee.

SECURITY NOTES:
- Passwords hashed with bcrypt (cost factor from BCRYPT_ROUNDS, default 12)
- An admin that is logged in and was active within ADMIN_LOCK_MINUTES cannot
  be logged in again (one admin session at a time)
- Duplicate usernames are a recoverable condition: register_user returns False
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import timedelta

import bcrypt
from flask import current_app

from ..extensions import db
from ..models import User
from ..models.auth import USER_ROLES
from ..validation import ConflictError, NotFoundError, ValidationError, require_choice
from .concurrency import transactional
from wms.time_utils import utcnow


LOGIN_INVALID = "invalid_credentials"
LOGIN_ADMIN_LOCKED = "admin_locked"


@dataclass
class LoginResult:
    user: User | None
    error: str | None = None

    @property
    def ok(self) -> bool:
        return self.user is not None


def hash_password(password: str) -> str:
    if not password:
        raise ValidationError("Password is required")
    rounds = int(current_app.config.get("BCRYPT_ROUNDS", 12))
    salt = bcrypt.gensalt(rounds=rounds)
    hashed = bcrypt.hashpw(password.encode('utf-8'), salt)
    return hashed.decode('utf-8')


def verify_password(password: str, password_hash: str) -> bool:
    """Timing-safe bcrypt check. Malformed hashes never verify."""
    if not password or not password_hash:
        return False
    try:
        return bcrypt.checkpw(password.encode('utf-8'), password_hash.encode('utf-8'))
    except ValueError:
        return False


def get_user(user_id: int) -> User:
    user = db.session.get(User, user_id)
    if not user:
        raise NotFoundError(f"User {user_id} not found")
    return user


def get_user_by_username(username: str) -> User | None:
    return db.session.query(User).filter_by(username=username).first()


def list_users() -> list[User]:
    return db.session.query(User).order_by(User.username.asc()).all()


@transactional
def create_user(username: str, password: str, name: str | None = None, role: str = "employee") -> User:
    """
    Create a user.

    Raises:
        ValidationError: missing username/password or unknown role
        ConflictError: username already exists
    """
    username = (username or "").strip()
    if not username:
        raise ValidationError("Username is required")
    require_choice(role, "role", USER_ROLES)

    if get_user_by_username(username):
        raise ConflictError(f"User {username} already exists")

    user = User(
        username=username,
        password_hash=hash_password(password),
        role=role,
        name=(name or "").strip() or username,
        is_logged_in=False,
    )
    db.session.add(user)
    db.session.flush()
    return user


def register_user(username: str, password: str, name: str | None = None, role: str = "employee") -> bool:
    """Self-service registration. Returns False instead of raising on a taken username."""
    try:
        create_user(username, password, name=name, role=role)
    except ConflictError:
        return False
    return True


@transactional
def login(username: str, password: str) -> LoginResult:
    user = get_user_by_username((username or "").strip())
    if not user or not verify_password(password, user.password_hash):
        return LoginResult(user=None, error=LOGIN_INVALID)

    now = utcnow()
    if user.role == "admin" and user.is_logged_in and user.last_active:
        lock_window = timedelta(minutes=int(current_app.config.get("ADMIN_LOCK_MINUTES", 30)))
        if now - user.last_active < lock_window:
            return LoginResult(user=None, error=LOGIN_ADMIN_LOCKED)

    user.is_logged_in = True
    user.last_active = now
    return LoginResult(user=user)


@transactional
def logout(user_id: int) -> User:
    user = get_user(user_id)
    user.is_logged_in = False
    return user


@transactional
def touch(user_id: int) -> User:
    """Heartbeat: keeps an admin session inside the lock window."""
    user = get_user(user_id)
    user.last_active = utcnow()
    return user


@transactional
def update_user(user_id: int, *, name: str | None = None, role: str | None = None, password: str | None = None) -> User:
    user = get_user(user_id)
    if name is not None:
        user.name = name.strip()
    if role is not None:
        user.role = require_choice(role, "role", USER_ROLES)
    if password:
        user.password_hash = hash_password(password)
    return user


@transactional
def delete_user(user_id: int) -> None:
    user = get_user(user_id)
    db.session.delete(user)
