"""
OrderDesk Backend — User SQLAlchemy Model
===========================================

What:  ORM model for the `users` table.
How:   The email is the primary key; there is no separate surrogate id.
       Passwords are stored as bcrypt hashes, never as plaintext.
"""

from datetime import datetime, timezone

from sqlalchemy import DateTime, String
from sqlalchemy.orm import Mapped, mapped_column

from orderdesk.database import Base


class User(Base):
    """
    A registered account.

    Lifecycle:
        1. Created by POST /register
        2. password_hash replaced by PATCH /update-password (one configured account)
        3. Never deleted
    """

    __tablename__ = "users"

    email: Mapped[str] = mapped_column(
        String(320),
        primary_key=True,
        comment="Login identifier, unique per account",
    )

    password_hash: Mapped[str] = mapped_column(
        String(128),
        nullable=False,
        comment="bcrypt hash including its salt",
    )

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=lambda: datetime.now(timezone.utc),
    )

    def __repr__(self) -> str:
        return f"<User(email='{self.email}')>"
