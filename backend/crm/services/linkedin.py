"""
LinkedIn OAuth (OpenID Connect) integration.
"""

import logging
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, Optional
from urllib.parse import urlencode

from sqlalchemy.orm import Session

from ..core.config import settings
from ..core.security import encrypt_secret
from ..models.integration import IntegrationProvider, UserIntegration
from ..models.user import User
from .oauth_client import OAuthProviderError, request_json


logger = logging.getLogger(__name__)

PROVIDER = "linkedin"

AUTH_URL = "https://www.linkedin.com/oauth/v2/authorization"
TOKEN_URL = "https://www.linkedin.com/oauth/v2/accessToken"
USERINFO_URL = "https://api.linkedin.com/v2/userinfo"


def build_auth_url(state: str) -> str:
    params = {
        "response_type": "code",
        "client_id": settings.linkedin_client_id,
        "redirect_uri": settings.linkedin_redirect_uri,
        "state": state,
        "scope": settings.linkedin_scope,
    }
    return f"{AUTH_URL}?{urlencode(params)}"


async def exchange_code(code: str) -> Dict[str, Any]:
    return await request_json(PROVIDER, "POST", TOKEN_URL, data={
        "grant_type": "authorization_code",
        "code": code,
        "client_id": settings.linkedin_client_id,
        "client_secret": settings.linkedin_client_secret,
        "redirect_uri": settings.linkedin_redirect_uri,
    })


async def fetch_userinfo(access_token: str) -> Dict[str, Any]:
    return await request_json(
        PROVIDER, "GET", USERINFO_URL,
        headers={"Authorization": f"Bearer {access_token}"},
    )


def get_integration(db: Session, user_id) -> Optional[UserIntegration]:
    return (
        db.query(UserIntegration)
        .filter(UserIntegration.user_id == user_id, UserIntegration.provider == IntegrationProvider.LINKEDIN)
        .first()
    )


async def complete_authorization(db: Session, user: User, code: str) -> UserIntegration:
    """Exchange ``code``, read the member profile and store the connection."""
    tokens = await exchange_code(code)
    access_token = tokens.get("access_token")
    if not access_token:
        raise OAuthProviderError(PROVIDER, "missing access token")

    profile = await fetch_userinfo(access_token)
    if not profile.get("sub"):
        raise OAuthProviderError(PROVIDER, "profile has no subject")

    integration = get_integration(db, user.id)
    if integration is None:
        integration = UserIntegration(user_id=user.id, provider=IntegrationProvider.LINKEDIN)
        db.add(integration)

    integration.provider_user_id = profile["sub"]
    integration.email = profile.get("email")
    integration.display_name = profile.get("name")
    integration.picture_url = profile.get("picture")
    integration.access_token = encrypt_secret(access_token)
    integration.refresh_token = encrypt_secret(tokens.get("refresh_token"))
    integration.token_expiry = datetime.now(timezone.utc) + timedelta(seconds=int(tokens.get("expires_in") or 0))
    integration.scopes = tokens.get("scope") or settings.linkedin_scope
    db.commit()
    db.refresh(integration)

    logger.info(f"LinkedIn connected for user {user.id}")
    return integration


def disconnect(db: Session, user_id) -> bool:
    integration = get_integration(db, user_id)
    if integration is None:
        return False
    db.delete(integration)
    db.commit()
    return True
