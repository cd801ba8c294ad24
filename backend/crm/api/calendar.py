"""
Google Calendar integration endpoints.

Endpoints:
- GET  /api/calendar/connect: consent URL for the signed-in user
- GET  /api/calendar/callback: OAuth redirect target (authenticated by ``state``)
- GET  /api/calendar/status: whether a calendar is connected
- POST /api/calendar/disconnect: forget the connection
- POST /api/calendar/events: create a meeting, optionally linked to a call
"""

import logging
from typing import Any, Dict, Optional
from urllib.parse import urlencode
from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException, status
from fastapi.responses import RedirectResponse
from sqlalchemy.orm import Session

from ..core.auth import get_current_user
from ..core.config import settings
from ..core.database import get_db
from ..core.security import create_oauth_state, verify_oauth_state
from ..models.call import CallRecording
from ..models.user import User
from ..schemas.common import SuccessResponse
from ..schemas.integrations import (
    AuthUrlResponse,
    CalendarEventRequest,
    CalendarEventResponse,
    CalendarStatusResponse,
)
from ..services import google_calendar
from ..services.oauth_client import OAuthProviderError


logger = logging.getLogger(__name__)
router = APIRouter(prefix="/api/calendar", tags=["Calendar"])

SETTINGS_PAGE = "/dashboard/settings"


def _settings_redirect(**params: str) -> RedirectResponse:
    return RedirectResponse(f"{settings.public_base_url}{SETTINGS_PAGE}?{urlencode(params)}")


def _meet_link(event: Dict[str, Any]) -> Optional[str]:
    for entry in (event.get("conferenceData") or {}).get("entryPoints") or []:
        if entry.get("entryPointType") == "video":
            return entry.get("uri")
    return event.get("hangoutLink")


def _as_uuid(value: str) -> Optional[UUID]:
    try:
        return UUID(value)
    except ValueError:
        return None


@router.get("/connect", response_model=AuthUrlResponse, summary="Start Google Calendar OAuth")
async def connect_calendar(user: User = Depends(get_current_user)) -> AuthUrlResponse:
    if not settings.google_configured:
        raise HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail="Google Calendar is not configured")

    state = create_oauth_state(str(user.id), google_calendar.PROVIDER)
    return AuthUrlResponse(auth_url=google_calendar.build_auth_url(state))


@router.get("/callback", summary="Google OAuth Callback", response_class=RedirectResponse)
async def calendar_callback(
    code: Optional[str] = None,
    state: Optional[str] = None,
    error: Optional[str] = None,
    db: Session = Depends(get_db),
) -> RedirectResponse:
    if error:
        logger.info(f"Google consent declined: {error}")
        return _settings_redirect(calendar_error=error)
    if not code or not state:
        return _settings_redirect(calendar_error="missing_params")

    user_id = verify_oauth_state(state, google_calendar.PROVIDER)
    if not user_id:
        logger.warning("Google callback with invalid or expired state")
        return _settings_redirect(calendar_error="invalid_state")

    user = db.query(User).filter(User.id == _as_uuid(user_id)).first()
    if not user:
        return _settings_redirect(calendar_error="user_not_found")

    try:
        await google_calendar.complete_authorization(db, user, code)
    except OAuthProviderError as e:
        logger.error(f"Google Calendar connection failed for user {user.id}: {e}")
        db.rollback()
        return _settings_redirect(calendar_error="connection_failed")

    return _settings_redirect(calendar_connected="true")


@router.get("/status", response_model=CalendarStatusResponse, summary="Calendar Connection Status")
async def calendar_status(
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
) -> CalendarStatusResponse:
    integration = google_calendar.get_integration(db, user.id)
    if integration is None:
        return CalendarStatusResponse(connected=False)
    return CalendarStatusResponse(
        connected=True,
        email=integration.email,
        calendar_id=integration.email or "primary",
        connected_at=integration.created_at,
    )


@router.post("/disconnect", response_model=SuccessResponse, summary="Disconnect Calendar")
async def disconnect_calendar(
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
) -> SuccessResponse:
    if google_calendar.disconnect(db, user.id):
        logger.info(f"Google Calendar disconnected for user {user.id}")
    return SuccessResponse()


@router.post("/events", response_model=CalendarEventResponse, summary="Create Calendar Event")
async def create_calendar_event(
    body: CalendarEventRequest,
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
) -> CalendarEventResponse:
    call_record = None
    if body.call_record_id is not None:
        call_record = db.query(CallRecording).filter(CallRecording.id == body.call_record_id).first()
        if call_record is None or call_record.user_id != user.id:
            raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Call record not found")

    try:
        event = await google_calendar.create_event(
            db,
            user,
            summary=body.summary,
            start_time=body.start_time,
            end_time=body.end_time,
            attendees=[str(a) for a in body.attendees],
            description=body.description,
            location=body.location,
            time_zone=body.time_zone,
            call_record=call_record,
        )
    except google_calendar.CalendarNotConnected:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Google Calendar not connected")
    except OAuthProviderError as e:
        logger.error(f"Calendar event creation failed for user {user.id}: {e}")
        raise HTTPException(status_code=status.HTTP_502_BAD_GATEWAY, detail="Failed to create calendar event")

    return CalendarEventResponse(
        event_id=event["id"],
        html_link=event.get("htmlLink"),
        meet_link=_meet_link(event),
    )
