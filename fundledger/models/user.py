"""
Fund Ledger - User Model

Minimal user record backing JWT authentication and audit columns.
"""

from enum import Enum
from typing import Optional

from sqlalchemy import Boolean, String, Enum as SQLEnum
from sqlalchemy.orm import Mapped, mapped_column

from fundledger.models.base import BaseModel


class UserRole(str, Enum):
    """User roles."""
    ADMIN = "admin"
    STAFF = "staff"


class User(BaseModel):
    """User model for authentication and audit trails."""

    __tablename__ = "users"

    email: Mapped[str] = mapped_column(
        String(255),
        unique=True,
        nullable=False,
        index=True,
    )
    name: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    hashed_password: Mapped[str] = mapped_column(String(255), nullable=False)
    role: Mapped[UserRole] = mapped_column(
        SQLEnum(UserRole),
        default=UserRole.STAFF,
        nullable=False,
    )
    is_active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)
