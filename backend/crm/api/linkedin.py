"""
LinkedIn connection endpoints.
"""

import logging
from typing import Optional
from urllib.parse import urlencode

from fastapi import APIRouter, Depends, HTTPException, status
from fastapi.responses import RedirectResponse
from sqlalchemy.orm import Session

from ..core.auth import get_current_user
from ..core.config import settings
from ..core.database import get_db
from ..core.security import create_oauth_state, verify_oauth_state
from ..models.user import User
from ..schemas.common import SuccessResponse
from ..schemas.integrations import AuthUrlResponse
from ..services import linkedin
from ..services.oauth_client import OAuthProviderError
from .calendar import _as_uuid


logger = logging.getLogger(__name__)
router = APIRouter(prefix="/api/linkedin", tags=["LinkedIn"])

SOCIAL_PAGE = "/dashboard/social"


def _social_redirect(**params: str) -> RedirectResponse:
    return RedirectResponse(f"{settings.public_base_url}{SOCIAL_PAGE}?{urlencode(params)}")


@router.get("/connect", response_model=AuthUrlResponse, summary="Start LinkedIn OAuth")
async def connect_linkedin(user: User = Depends(get_current_user)) -> AuthUrlResponse:
    if not settings.linkedin_configured:
        raise HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail="LinkedIn is not configured")

    state = create_oauth_state(str(user.id), linkedin.PROVIDER)
    return AuthUrlResponse(auth_url=linkedin.build_auth_url(state))


@router.get("/callback", summary="LinkedIn OAuth Callback", response_class=RedirectResponse)
async def linkedin_callback(
    code: Optional[str] = None,
    state: Optional[str] = None,
    error: Optional[str] = None,
    db: Session = Depends(get_db),
) -> RedirectResponse:
    if error:
        logger.info(f"LinkedIn consent declined: {error}")
        return _social_redirect(error=error)
    if not code or not state:
        return _social_redirect(error="missing_params")

    user_id = verify_oauth_state(state, linkedin.PROVIDER)
    if not user_id:
        return _social_redirect(error="invalid_state")

    user = db.query(User).filter(User.id == _as_uuid(user_id)).first()
    if not user:
        return _social_redirect(error="user_not_found")

    try:
        await linkedin.complete_authorization(db, user, code)
    except OAuthProviderError as e:
        logger.error(f"LinkedIn connection failed for user {user.id}: {e}")
        db.rollback()
        return _social_redirect(error="connection_failed")

    return _social_redirect(success="true")


@router.post("/disconnect", response_model=SuccessResponse, summary="Disconnect LinkedIn")
async def disconnect_linkedin(
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
) -> SuccessResponse:
    if linkedin.disconnect(db, user.id):
        logger.info(f"LinkedIn disconnected for user {user.id}")
    return SuccessResponse()
