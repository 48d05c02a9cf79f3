from __future__ import annotations

from ..extensions import db
from wms.time_utils import to_utc_z

USER_ROLES = {"admin", "employee"}


class User(db.Model):
    """
    Local user accounts.

    Single-tenant: username is globally unique. is_logged_in/last_active back
    the admin lock (an admin session cannot be opened twice while active).
    """
    __tablename__ = "users"
    __table_args__ = {"sqlite_autoincrement": True}

    id = db.Column(db.Integer, primary_key=True)
    username = db.Column(db.String(64), nullable=False, unique=True, index=True)

    # Bcrypt hashed password
    password_hash = db.Column(db.String(255), nullable=False)

    role = db.Column(db.String(16), nullable=False, default="employee")
    name = db.Column(db.String(255), nullable=True)

    is_logged_in = db.Column(db.Boolean, nullable=False, default=False)
    last_active = db.Column(db.DateTime, nullable=True)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "username": self.username,
            "role": self.role,
            "name": self.name,
            "is_logged_in": self.is_logged_in,
            "last_active": to_utc_z(self.last_active) if self.last_active else None,
        }
