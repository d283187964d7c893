"""
OrderDesk Backend — Auth Service
==================================

What:  Account registration, login and password reset.
How:   Reads and writes the `users` table through the request's session and
       delegates hashing and token signing to orderdesk.security.
Who:   Called by the handlers in routes/auth.py.
"""

import logging
from typing import Optional

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from orderdesk.config import settings
from orderdesk.exceptions import (
    ConflictError,
    DatabaseError,
    InvalidCredentialsError,
    NotFoundError,
)
from orderdesk.models.user import User
from orderdesk.security import create_access_token, hash_password, verify_password

logger = logging.getLogger(__name__)


class AuthService:
    """
    Business logic for user accounts.

    Responsibilities:
        - register_user(): create an account, refusing duplicate emails
        - issue_token(): check credentials and sign a bearer token
        - update_password(): reset the password of the configured account
    """

    async def _get_user(self, db: AsyncSession, email: str) -> Optional[User]:
        try:
            result = await db.execute(select(User).where(User.email == email))
            return result.scalar_one_or_none()
        except SQLAlchemyError as e:
            logger.error("Database error loading user: %s", str(e))
            raise DatabaseError(context={"error_type": type(e).__name__})

    async def register_user(self, db: AsyncSession, email: str, password: str) -> User:
        """
        Create a new account.

        Raises:
            ConflictError: an account with this email already exists; the
                           existing account is left untouched
        """
        if await self._get_user(db, email) is not None:
            raise ConflictError(message="User already exists", context={"email": email})

        user = User(email=email, password_hash=hash_password(password))
        db.add(user)
        try:
            await db.flush()
        except IntegrityError:
            # Concurrent registration won the primary-key race
            raise ConflictError(message="User already exists", context={"email": email})
        except SQLAlchemyError as e:
            logger.error("Database error registering user: %s", str(e))
            raise DatabaseError(context={"error_type": type(e).__name__})

        logger.info("Registered user %s", email)
        return user

    async def issue_token(self, db: AsyncSession, email: str, password: str) -> str:
        """
        Exchange credentials for a bearer token.

        Raises:
            InvalidCredentialsError: unknown email or wrong password
        """
        user = await self._get_user(db, email)
        if user is None or not verify_password(password, user.password_hash):
            logger.info("Rejected login for %s", email)
            raise InvalidCredentialsError()
        return create_access_token(user.email)

    async def update_password(self, db: AsyncSession, password: str) -> User:
        """
        Replace the password of the account named by settings.password_reset_email.

        Raises:
            NotFoundError: no reset account is configured, or it does not exist
        """
        email = settings.password_reset_email
        if not email:
            raise NotFoundError(resource="user", message="User not found")

        user = await self._get_user(db, email)
        if user is None:
            raise NotFoundError(resource="user", message="User not found")

        user.password_hash = hash_password(password)
        try:
            await db.flush()
        except SQLAlchemyError as e:
            logger.error("Database error updating password: %s", str(e))
            raise DatabaseError(context={"error_type": type(e).__name__})

        logger.info("Password updated for %s", email)
        return user


auth_service = AuthService()
