"""
Authentication and authorisation dependencies for FastAPI routes.

Sessions are issued by the external authentication provider. A request is
authenticated by a JWT in the ``Authorization: Bearer`` header or in the
session cookie; the token's ``sub`` claim is matched to ``users.auth_id``.

Provides:
- get_auth_subject: verifies the session, returns the provider identifier
- get_current_user: resolves the session to the local User row
- require_admin: like get_current_user, but only admins get through
"""

import logging
from typing import Optional

from fastapi import Depends, HTTPException, Request, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy.orm import Session

from .config import settings
from .database import get_db
from .security import decode_session_token
from ..models.user import User


logger = logging.getLogger(__name__)

bearer_scheme = HTTPBearer(auto_error=False)


async def get_auth_subject(
    request: Request,
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(bearer_scheme),
) -> str:
    """
    Verify the session token and return its subject.

    Raises 401 if the token is missing, invalid or expired.
    """
    token = credentials.credentials if credentials else request.cookies.get(settings.auth_session_cookie)
    if not token:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Unauthorized",
            headers={"WWW-Authenticate": "Bearer"},
        )

    payload = decode_session_token(token)
    subject = payload.get("sub") if payload else None
    if not subject:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Unauthorized",
            headers={"WWW-Authenticate": "Bearer"},
        )
    return subject


async def get_current_user(
    auth_id: str = Depends(get_auth_subject),
    db: Session = Depends(get_db),
) -> User:
    """
    Return the local User for the authenticated session.

    Raises 404 when the provider account has no local row yet (the user-sync
    webhook has not delivered it) and 403 when the row is deactivated.
    """
    user = db.query(User).filter(User.auth_id == auth_id).first()
    if not user:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="User not found",
        )
    if not user.active:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Account has been deactivated",
        )
    return user


async def require_admin(
    auth_id: str = Depends(get_auth_subject),
    db: Session = Depends(get_db),
) -> User:
    """
    Return the authenticated admin.

    A session without a local row is Forbidden here rather than Not Found,
    so admin endpoints never reveal whether an account exists.
    """
    user = db.query(User).filter(User.auth_id == auth_id).first()
    if not user or not user.active or not user.is_admin:
        logger.warning(f"Admin access denied for auth subject {auth_id}")
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Forbidden",
        )
    return user
