"""
Twilio Voice webhooks.

Twilio requests TwiML from the voice URLs when a call starts and reports
progress to the status and recording callbacks.

Endpoints:
- POST /api/webhooks/twilio/voice: general call, dials ``To`` with caller id ``From``
- POST /api/webhooks/twilio/voice-client: browser call, dials ``To`` with ``CallerId``
- POST /api/webhooks/twilio/status: call progress events
- POST /api/webhooks/twilio/recording: finished recordings
- GET  /api/webhooks/twilio/test: configuration check

The voice URLs always answer 200 with TwiML. A failure becomes a spoken
apology and a hangup, never an error status; the failure itself is logged
at ERROR on the crm.telephony logger.
"""

import logging
from typing import Any, Dict

from fastapi import APIRouter, Depends, HTTPException, Request, Response, status
from pydantic import ValidationError
from sqlalchemy.orm import Session
from twilio.request_validator import RequestValidator

from ..core.config import settings
from ..core.database import get_db
from ..schemas.telephony import (
    BrowserVoiceWebhookForm,
    CallStatusForm,
    RecordingStatusForm,
    VoiceWebhookForm,
)
from ..services import call_log, twiml


logger = logging.getLogger("crm.telephony")
router = APIRouter(prefix="/api/webhooks/twilio", tags=["Twilio Webhooks"])

TWIML_MEDIA_TYPE = "text/xml"


class TwilioSignatureError(Exception):
    """The request did not carry a valid X-Twilio-Signature."""


# =============================================================================
# Helpers
# =============================================================================

def twiml_response(content: str) -> Response:
    return Response(content=content, media_type=TWIML_MEDIA_TYPE, status_code=status.HTTP_200_OK)


def public_request_url(request: Request) -> str:
    """The URL Twilio called, as seen from outside any proxy."""
    url = f"{settings.public_base_url}{request.url.path}"
    if request.url.query:
        url = f"{url}?{request.url.query}"
    return url


async def read_twilio_params(request: Request) -> Dict[str, Any]:
    """
    Parse the form body and enforce the signature check when enabled.

    Raises:
        TwilioSignatureError: signature checking is on and the header is
        missing or does not match
    """
    form = await request.form()
    params = {key: value for key, value in form.items() if isinstance(value, str)}

    if settings.twilio_validate_signature:
        signature = request.headers.get("X-Twilio-Signature", "")
        validator = RequestValidator(settings.twilio_auth_token)
        if not signature or not validator.validate(public_request_url(request), params, signature):
            raise TwilioSignatureError(f"Invalid Twilio signature for {request.url.path}")

    return params


async def read_signed_params(request: Request) -> Dict[str, Any]:
    """Like :func:`read_twilio_params` but answers a bad signature with 403."""
    try:
        return await read_twilio_params(request)
    except TwilioSignatureError:
        logger.warning(f"Rejected unsigned Twilio callback to {request.url.path}")
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Invalid signature")


# =============================================================================
# Voice URLs
# =============================================================================

@router.post(
    "/voice",
    summary="Voice Webhook",
    description="Returns TwiML that dials the requested number with recording enabled.",
    response_class=Response,
)
async def voice_webhook(request: Request) -> Response:
    call_sid = None
    try:
        params = await read_twilio_params(request)
        call_sid = params.get("CallSid")
        form = VoiceWebhookForm.model_validate(params)
        logger.info(f"Voice webhook {form.call_sid}: dialing {form.to} from {form.caller_id}")
        return twiml_response(twiml.inbound_dial_response(form.to, form.caller_id))
    except Exception:
        logger.exception(f"Voice webhook failed for call {call_sid}", extra={"call_sid": call_sid})
        return twiml_response(twiml.error_response())


@router.post(
    "/voice-client",
    summary="Browser Voice Webhook",
    description="Returns TwiML for a call started from the browser dialer.",
    response_class=Response,
)
async def voice_client_webhook(request: Request) -> Response:
    call_sid = None
    try:
        params = await read_twilio_params(request)
        call_sid = params.get("CallSid")
        form = BrowserVoiceWebhookForm.model_validate(params)
        logger.info(f"Browser voice webhook {form.call_sid}: dialing {form.to} from {form.caller_id}")
        return twiml_response(twiml.browser_dial_response(form.to, form.caller_id))
    except Exception:
        logger.exception(f"Browser voice webhook failed for call {call_sid}", extra={"call_sid": call_sid})
        return twiml_response(twiml.error_response())


# =============================================================================
# Callbacks
# =============================================================================

@router.post("/status", summary="Call Status Callback")
async def call_status_webhook(
    params: Dict[str, Any] = Depends(read_signed_params),
    db: Session = Depends(get_db),
) -> Dict[str, Any]:
    try:
        form = CallStatusForm.model_validate(params)
    except ValidationError:
        logger.warning(f"Malformed status callback: {sorted(params)}")
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Invalid callback payload")

    logger.info(f"Call {form.call_sid} status {form.call_status}")
    call_log.apply_call_status(db, form)
    return {"success": True}


@router.post("/recording", summary="Recording Status Callback")
async def recording_webhook(
    params: Dict[str, Any] = Depends(read_signed_params),
    db: Session = Depends(get_db),
) -> Dict[str, Any]:
    try:
        form = RecordingStatusForm.model_validate(params)
    except ValidationError:
        logger.warning(f"Malformed recording callback: {sorted(params)}")
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Invalid callback payload")

    logger.info(f"Recording {form.recording_sid} for call {form.call_sid}: {form.recording_status}")
    call_log.apply_recording(db, form)
    return {"success": True}


@router.get("/test", summary="Test Twilio Webhooks")
async def test_twilio_webhooks() -> Dict[str, Any]:
    """Check the webhook is reachable and report which Twilio settings are present."""
    return {
        "status": "ok",
        "message": "Twilio webhooks are active",
        "configured": {
            "accountSid": bool(settings.twilio_account_sid),
            "authToken": bool(settings.twilio_auth_token),
            "apiKey": bool(settings.twilio_api_key),
            "twimlAppSid": bool(settings.twilio_twiml_app_sid),
            "phoneNumber": bool(settings.twilio_phone_number),
            "signatureValidation": settings.twilio_validate_signature,
        },
        "callbacks": {
            "voice": f"{settings.public_base_url}/api/webhooks/twilio/voice",
            "voiceClient": f"{settings.public_base_url}/api/webhooks/twilio/voice-client",
            "status": twiml.status_callback_url(),
            "recording": twiml.recording_callback_url(),
            "dialAction": twiml.dial_action_url(),
        },
    }
