"""
OrderDesk Backend — Auth Route Handlers
=========================================

What:  POST /register, POST /login, PATCH /update-password, GET /dashboard.
How:   Thin handlers: validate the body, call AuthService, shape the response.
       /dashboard is guarded by the require_identity dependency, which rejects
       the request before the handler body runs.
"""

import logging
from typing import Any, Dict

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from orderdesk.database import get_db_session
from orderdesk.schemas.auth import (
    Credentials,
    DashboardResponse,
    MessageResponse,
    PasswordUpdate,
    RegisterResponse,
    TokenResponse,
)
from orderdesk.schemas.common import ErrorResponse
from orderdesk.security import require_identity
from orderdesk.services.auth_service import auth_service

logger = logging.getLogger(__name__)

router = APIRouter(tags=["Auth"])


@router.post(
    "/register",
    response_model=RegisterResponse,
    responses={400: {"description": "User already exists", "model": ErrorResponse}},
    summary="Register a new user",
)
async def register(
    body: Credentials,
    db: AsyncSession = Depends(get_db_session),
) -> RegisterResponse:
    user = await auth_service.register_user(db, body.email, body.password)
    return RegisterResponse(email=user.email)


@router.post(
    "/login",
    response_model=TokenResponse,
    responses={401: {"description": "Invalid email or password", "model": ErrorResponse}},
    summary="Exchange credentials for a bearer token",
)
async def login(
    body: Credentials,
    db: AsyncSession = Depends(get_db_session),
) -> TokenResponse:
    token = await auth_service.issue_token(db, body.email, body.password)
    return TokenResponse(token=token)


@router.patch(
    "/update-password",
    response_model=MessageResponse,
    responses={
        400: {"description": "Password missing", "model": ErrorResponse},
        404: {"description": "Reset account not found", "model": ErrorResponse},
    },
    summary="Reset the password of the configured reset account",
)
async def update_password(
    body: PasswordUpdate,
    db: AsyncSession = Depends(get_db_session),
) -> MessageResponse:
    await auth_service.update_password(db, body.password)
    return MessageResponse(message="Password updated successfully")


@router.get(
    "/dashboard",
    response_model=DashboardResponse,
    responses={
        401: {"description": "Invalid or expired token", "model": ErrorResponse},
        403: {"description": "No token provided", "model": ErrorResponse},
    },
    summary="Protected route returning the caller's identity",
)
async def dashboard(identity: Dict[str, Any] = Depends(require_identity)) -> DashboardResponse:
    return DashboardResponse(user=identity)
