"""
User-sync webhook from the authentication provider.

Endpoints:
- POST /api/webhook/auth: signed ``user.created`` / ``user.updated`` / ``user.deleted`` events
- GET  /api/webhook/auth/test: configuration check
"""

import logging
from typing import Any, Dict, Optional

from fastapi import APIRouter, Depends, HTTPException, Request, status
from sqlalchemy.orm import Session
from svix.webhooks import WebhookVerificationError

from ..core.config import settings
from ..core.database import check_db_connection, get_db
from ..core.security import verify_webhook
from ..models.user import User


logger = logging.getLogger(__name__)
router = APIRouter(prefix="/api/webhook/auth", tags=["Auth Webhook"])


def _primary_email(data: Dict[str, Any]) -> Optional[str]:
    addresses = data.get("email_addresses") or []
    primary_id = data.get("primary_email_address_id")
    for address in addresses:
        if primary_id and address.get("id") == primary_id:
            return address.get("email_address")
    return addresses[0].get("email_address") if addresses else None


def upsert_user(db: Session, data: Dict[str, Any]) -> User:
    """Create or refresh the local row for a provider user."""
    user = db.query(User).filter(User.auth_id == data["id"]).first()
    if user is None:
        user = User(auth_id=data["id"])
        db.add(user)
        logger.info(f"Provisioning user for auth id {data['id']}")

    user.email = _primary_email(data) or user.email
    user.first_name = data.get("first_name")
    user.last_name = data.get("last_name")
    user.avatar_url = data.get("image_url")
    user.active = True
    db.commit()
    db.refresh(user)
    return user


def deactivate_user(db: Session, auth_id: str) -> bool:
    user = db.query(User).filter(User.auth_id == auth_id).first()
    if user is None:
        return False
    user.active = False
    db.commit()
    logger.info(f"Deactivated user {user.id} (auth id {auth_id})")
    return True


@router.post("", summary="Auth Provider Webhook")
async def auth_webhook(request: Request, db: Session = Depends(get_db)) -> Dict[str, Any]:
    if not settings.auth_webhook_secret:
        logger.error("Auth webhook received but no webhook secret is configured")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Webhook secret not configured",
        )

    body = await request.body()
    try:
        event = verify_webhook(body, request.headers, settings.auth_webhook_secret)
    except WebhookVerificationError as e:
        logger.warning(f"Rejected auth webhook: {e}")
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Invalid webhook signature")
    except ValueError:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Invalid webhook payload")

    try:
        event_type = event["type"]
        data = event.get("data") or {}
    except (KeyError, TypeError, AttributeError):
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Invalid webhook payload")

    if event_type in ("user.created", "user.updated"):
        if not data.get("id"):
            raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Invalid webhook payload")
        upsert_user(db, data)
    elif event_type == "user.deleted":
        if data.get("id"):
            deactivate_user(db, data["id"])
    else:
        logger.debug(f"Ignoring auth webhook event {event_type}")

    return {"received": True, "event": event_type}


@router.get("/test", summary="Test Webhook Configuration")
async def test_auth_webhook() -> Dict[str, Any]:
    """Report which integrations are configured. Never echoes secret values."""
    return {
        "status": "ok",
        "hasWebhookSecret": bool(settings.auth_webhook_secret),
        "database": check_db_connection(),
        "twilio": settings.twilio_configured,
        "google": settings.google_configured,
        "linkedin": settings.linkedin_configured,
        "instructions": (
            f"Point the auth provider's user webhook at {settings.public_base_url}/api/webhook/auth "
            "and subscribe to user.created, user.updated and user.deleted."
        ),
    }
