"""User model."""

from datetime import datetime

from sqlalchemy import Column, DateTime, Integer, String, Text

from memberhub.database import Base

ACCOUNT_STATUSES = ("pending", "inactive", "active", "locked", "deleted")
LOGIN_ALLOWED_STATUSES = ("inactive", "active")
USER_ROLES = ("member", "admin")
MEMBER_TYPES = ("Junior", "Ordinary", "Corporate")


class User(Base):
    """Organization member account."""

    __tablename__ = "user"

    id = Column(Integer, primary_key=True, autoincrement=True)
    name = Column(String(128), nullable=False)
    email = Column(String(256), unique=True, nullable=False, index=True)
    password_hash = Column(String(256), nullable=False)
    user_role = Column(String(16), nullable=False, default="member")  # member, admin
    account_status = Column(String(16), nullable=False, default="pending")  # see ACCOUNT_STATUSES
    contact = Column(String(64), nullable=True)
    address = Column(Text, nullable=True)
    member_type = Column(String(32), nullable=True)
    organization = Column(String(256), nullable=True)
    committee_role = Column(String(64), nullable=True, index=True)
    profile_image_path = Column(String(512), nullable=True)
    created_at = Column(DateTime, nullable=False, default=datetime.utcnow)
    updated_at = Column(DateTime, nullable=False, default=datetime.utcnow, onupdate=datetime.utcnow)

    def public_profile(self) -> dict:
        """Fields safe to hand back to the account owner."""
        return {
            "id": self.id,
            "name": self.name,
            "email": self.email,
            "user_role": self.user_role,
            "account_status": self.account_status,
        }
