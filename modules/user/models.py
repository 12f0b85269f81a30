"""
User Module - Models
=====================
Read-only view of shop users. Accounts are created by the external auth service;
this system only resolves the bearer token to a user and checks the role.
"""

from sqlalchemy import Column, Integer, String, Boolean, DateTime
from sqlalchemy.sql import func
from config.database import Base


class UserRole:
    USER = "user"
    ADMIN = "admin"


class User(Base):
    __tablename__ = "users"

    id = Column(Integer, primary_key=True, index=True)
    username = Column(String(50), unique=True, nullable=False, index=True)
    email = Column(String, unique=True, nullable=False, index=True)
    role = Column(String, default=UserRole.USER, server_default=UserRole.USER, nullable=False)
    is_active = Column(Boolean, default=True, server_default="true", nullable=False)
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)

    @property
    def is_admin(self) -> bool:
        return self.role == UserRole.ADMIN

    def to_public(self) -> dict:
        return {"id": self.id, "username": self.username, "email": self.email}

    def __repr__(self):
        return f"<User #{self.id} {self.username} ({self.role})>"
