"""
Google Calendar integration.

Handles the OAuth consent flow, storage of the resulting tokens, refresh of
expired access tokens, and creation of meeting events (with a Google Meet
link) from the dialer.
"""

import logging
import uuid
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, List, Optional
from urllib.parse import urlencode

from sqlalchemy.orm import Session

from ..core.config import settings
from ..core.security import decrypt_secret, encrypt_secret
from ..models.call import CallRecording
from ..models.integration import IntegrationProvider, UserIntegration
from ..models.user import User
from .oauth_client import OAuthProviderError, request_json


logger = logging.getLogger(__name__)

PROVIDER = "google"

AUTH_URL = "https://accounts.google.com/o/oauth2/v2/auth"
TOKEN_URL = "https://oauth2.googleapis.com/token"
USERINFO_URL = "https://www.googleapis.com/oauth2/v2/userinfo"
EVENTS_URL = "https://www.googleapis.com/calendar/v3/calendars/{calendar_id}/events"

SCOPES = [
    "https://www.googleapis.com/auth/calendar.events",
    "https://www.googleapis.com/auth/userinfo.email",
]

# Refresh a little before Google's stated expiry
EXPIRY_SKEW = timedelta(seconds=60)


class CalendarNotConnected(Exception):
    """The user has no Google integration row."""


def _as_utc(value: Optional[datetime]) -> Optional[datetime]:
    if value is not None and value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


def _expiry_from(tokens: Dict[str, Any], now: datetime) -> datetime:
    return now + timedelta(seconds=int(tokens.get("expires_in") or 3600))


# =============================================================================
# OAuth
# =============================================================================

def build_auth_url(state: str) -> str:
    """Consent URL requesting offline access, forcing the consent screen so a refresh token is issued."""
    params = {
        "client_id": settings.google_client_id,
        "redirect_uri": settings.google_redirect_uri,
        "response_type": "code",
        "scope": " ".join(SCOPES),
        "access_type": "offline",
        "prompt": "consent",
        "include_granted_scopes": "true",
        "state": state,
    }
    return f"{AUTH_URL}?{urlencode(params)}"


async def exchange_code(code: str) -> Dict[str, Any]:
    return await request_json(PROVIDER, "POST", TOKEN_URL, data={
        "code": code,
        "client_id": settings.google_client_id,
        "client_secret": settings.google_client_secret,
        "redirect_uri": settings.google_redirect_uri,
        "grant_type": "authorization_code",
    })


async def refresh_access_token(refresh_token: str) -> Dict[str, Any]:
    return await request_json(PROVIDER, "POST", TOKEN_URL, data={
        "refresh_token": refresh_token,
        "client_id": settings.google_client_id,
        "client_secret": settings.google_client_secret,
        "grant_type": "refresh_token",
    })


async def fetch_userinfo(access_token: str) -> Dict[str, Any]:
    return await request_json(
        PROVIDER, "GET", USERINFO_URL,
        headers={"Authorization": f"Bearer {access_token}"},
    )


async def insert_event(access_token: str, calendar_id: str, event: Dict[str, Any]) -> Dict[str, Any]:
    return await request_json(
        PROVIDER, "POST", EVENTS_URL.format(calendar_id=calendar_id),
        headers={"Authorization": f"Bearer {access_token}"},
        params={"conferenceDataVersion": 1, "sendUpdates": "all"},
        json=event,
    )


# =============================================================================
# Integration storage
# =============================================================================

def get_integration(db: Session, user_id) -> Optional[UserIntegration]:
    return (
        db.query(UserIntegration)
        .filter(UserIntegration.user_id == user_id, UserIntegration.provider == IntegrationProvider.GOOGLE)
        .first()
    )


async def complete_authorization(db: Session, user: User, code: str) -> UserIntegration:
    """
    Exchange ``code`` and store the Google account against ``user``.

    Raises:
        OAuthProviderError: if Google rejects the code, withholds the
        refresh token, or returns no account email
    """
    now = datetime.now(timezone.utc)
    tokens = await exchange_code(code)
    if not tokens.get("access_token") or not tokens.get("refresh_token"):
        raise OAuthProviderError(PROVIDER, "missing access or refresh token")

    profile = await fetch_userinfo(tokens["access_token"])
    if not profile.get("email"):
        raise OAuthProviderError(PROVIDER, "no account email returned")

    integration = get_integration(db, user.id)
    if integration is None:
        integration = UserIntegration(user_id=user.id, provider=IntegrationProvider.GOOGLE)
        db.add(integration)

    integration.provider_user_id = profile.get("id")
    integration.email = profile["email"]
    integration.picture_url = profile.get("picture")
    integration.access_token = encrypt_secret(tokens["access_token"])
    integration.refresh_token = encrypt_secret(tokens["refresh_token"])
    integration.token_expiry = _expiry_from(tokens, now)
    integration.scopes = tokens.get("scope")
    db.commit()
    db.refresh(integration)

    logger.info(f"Google Calendar connected for user {user.id} ({integration.email})")
    return integration


async def get_valid_access_token(db: Session, integration: UserIntegration) -> str:
    """Return a usable access token, refreshing and persisting it if expired."""
    now = datetime.now(timezone.utc)
    expiry = _as_utc(integration.token_expiry)
    if expiry is not None and now + EXPIRY_SKEW < expiry:
        return decrypt_secret(integration.access_token)

    refresh_token = decrypt_secret(integration.refresh_token)
    if not refresh_token:
        raise OAuthProviderError(PROVIDER, "no refresh token stored")

    tokens = await refresh_access_token(refresh_token)
    if not tokens.get("access_token"):
        raise OAuthProviderError(PROVIDER, "refresh returned no access token")

    integration.access_token = encrypt_secret(tokens["access_token"])
    integration.token_expiry = _expiry_from(tokens, now)
    db.commit()
    logger.info(f"Refreshed Google access token for user {integration.user_id}")
    return tokens["access_token"]


def build_event_body(
    user_id,
    summary: str,
    start_time: datetime,
    end_time: datetime,
    attendees: List[str],
    description: Optional[str] = None,
    location: Optional[str] = None,
    time_zone: Optional[str] = None,
) -> Dict[str, Any]:
    tz_name = time_zone or settings.google_calendar_timezone
    return {
        "summary": summary,
        "description": description,
        "location": location,
        "start": {"dateTime": start_time.isoformat(), "timeZone": tz_name},
        "end": {"dateTime": end_time.isoformat(), "timeZone": tz_name},
        "attendees": [{"email": email} for email in attendees],
        "reminders": {
            "useDefault": False,
            "overrides": [
                {"method": "email", "minutes": 24 * 60},
                {"method": "popup", "minutes": 30},
            ],
        },
        "conferenceData": {
            "createRequest": {
                "requestId": f"{user_id}-{uuid.uuid4().hex[:12]}",
                "conferenceSolutionKey": {"type": "hangoutsMeet"},
            },
        },
    }


async def create_event(
    db: Session,
    user: User,
    summary: str,
    start_time: datetime,
    end_time: datetime,
    attendees: List[str],
    description: Optional[str] = None,
    location: Optional[str] = None,
    time_zone: Optional[str] = None,
    call_record: Optional[CallRecording] = None,
) -> Dict[str, Any]:
    """
    Create an event on the user's calendar and link it to ``call_record``.

    Raises:
        CalendarNotConnected: the user has not connected Google
        OAuthProviderError: Google refused the refresh or the insert
    """
    integration = get_integration(db, user.id)
    if integration is None:
        raise CalendarNotConnected()

    access_token = await get_valid_access_token(db, integration)
    calendar_id = integration.email or "primary"
    body = build_event_body(user.id, summary, start_time, end_time, attendees, description, location, time_zone)

    event = await insert_event(access_token, calendar_id, body)
    if not event.get("id"):
        raise OAuthProviderError(PROVIDER, "event created without id")

    if call_record is not None:
        call_record.calendar_event_id = event["id"]
        call_record.calendar_event_link = event.get("htmlLink")
        call_record.meeting_scheduled_at = start_time
        call_record.meeting_duration_minutes = round((end_time - start_time).total_seconds() / 60)
        db.commit()

    logger.info(f"Calendar event {event['id']} created for user {user.id}")
    return event


def disconnect(db: Session, user_id) -> bool:
    integration = get_integration(db, user_id)
    if integration is None:
        return False
    db.delete(integration)
    db.commit()
    return True
