"""
Dialer API for the dashboard.

Endpoints:
- GET  /api/calling/token: browser Voice SDK access token
- POST /api/calling/make-call: place a REST call from the user's number
- POST /api/calling/end-call: hang up a live call
- POST /api/calling/dtmf: accept keypad tones for a connected call; the browser plays them
- POST /api/calling/webhook: dial action URL for browser calls (Twilio)
"""

import logging
import re
from typing import Any, Dict, List

from fastapi import APIRouter, Depends, HTTPException, Request, Response, status
from sqlalchemy.orm import Session

from ..core.auth import get_current_user
from ..core.config import settings
from ..core.database import get_db
from ..models.user import User
from ..schemas.telephony import (
    CallingTokenResponse,
    DialActionForm,
    DtmfRequest,
    EndCallRequest,
    MakeCallRequest,
    MakeCallResponse,
)
from ..services import call_log, twiml
from ..services.call_context import CallContext, CallStatus, DTMF_SYMBOLS
from ..services.phone import InvalidPhoneNumber, normalize_phone_number
from ..services.telephony import TelephonyError, TwilioVoiceService, get_voice_service
from .voice_webhooks import read_twilio_params, twiml_response


logger = logging.getLogger("crm.telephony")
router = APIRouter(prefix="/api/calling", tags=["Calling"])


def client_identity(user: User) -> str:
    """Voice SDK identity: ``first_last_id`` with whitespace collapsed to ``_``."""
    raw = f"{user.first_name or ''}_{user.last_name or ''}_{user.id}"
    return re.sub(r"\s+", "_", raw.strip())


# =============================================================================
# Token
# =============================================================================

@router.get("/token", response_model=CallingTokenResponse, summary="Voice Access Token")
async def get_calling_token(
    user: User = Depends(get_current_user),
    voice: TwilioVoiceService = Depends(get_voice_service),
) -> CallingTokenResponse:
    identity = client_identity(user)
    try:
        token = voice.create_access_token(identity)
    except TelephonyError:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Calling is not configured",
        )

    voip = user.voip_settings
    phone_number = None
    if voip is not None:
        phone_number = voip.caller_id_number or voip.assigned_phone_number
    phone_number = phone_number or settings.twilio_phone_number or None

    return CallingTokenResponse(token=token, identity=identity, phone_number=phone_number, user_id=user.id)


# =============================================================================
# Outbound calls
# =============================================================================

@router.post("/make-call", response_model=MakeCallResponse, summary="Place Outbound Call")
async def make_call(
    payload: MakeCallRequest,
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
    voice: TwilioVoiceService = Depends(get_voice_service),
) -> MakeCallResponse:
    if not payload.to_number:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Phone number is required")

    try:
        to_number = normalize_phone_number(payload.to_number)
    except InvalidPhoneNumber:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Invalid phone number")

    voip = user.voip_settings
    if voip is None or not voip.assigned_phone_number:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="No phone number assigned to your account. Please contact an administrator.",
        )

    from_number = voip.caller_id_number or voip.assigned_phone_number
    try:
        call_sid = voice.make_outbound_call(from_number, to_number, record=voip.auto_record)
    except TelephonyError:
        raise HTTPException(status_code=status.HTTP_502_BAD_GATEWAY, detail="Failed to place call")

    record = call_log.record_outbound_call(
        db, user, voip, call_sid, from_number, to_number,
        customer_id=payload.customer_id,
        deal_id=payload.deal_id,
        lead_id=payload.lead_id,
    )
    return MakeCallResponse(call_sid=call_sid, call_record_id=record.id)


@router.post("/end-call", summary="End Call")
async def end_call(
    payload: EndCallRequest,
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
    voice: TwilioVoiceService = Depends(get_voice_service),
) -> Dict[str, Any]:
    if not payload.call_sid:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Call SID is required")

    record = call_log.get_call(db, payload.call_sid)
    if record is not None and record.user_id != user.id:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Call not found")

    try:
        call_status = voice.end_call(payload.call_sid)
    except TelephonyError:
        raise HTTPException(status_code=status.HTTP_502_BAD_GATEWAY, detail="Failed to end call")

    if record is not None:
        record.status = "completed"
        db.commit()

    return {"success": True, "message": "Call ended successfully", "status": call_status}


@router.post("/dtmf", summary="Accept Keypad Tones")
async def send_dtmf(
    payload: DtmfRequest,
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
) -> Dict[str, Any]:
    """
    Check keypad tones against the caller's connected call.

    The browser plays the tones on its Voice SDK connection; the live call
    itself is never updated from here.
    """
    if any(symbol not in DTMF_SYMBOLS for symbol in payload.digits):
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Digits must be 0-9, * or #")

    record = call_log.get_call(db, payload.call_sid)
    if record is None or record.user_id != user.id:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Call not found")

    accepted: List[str] = []
    context = CallContext.from_call_record(record, sender=lambda _sid, digit: accepted.append(digit))
    if context.status != CallStatus.CONNECTED:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail="Call is not connected")

    for digit in payload.digits:
        context.send_dtmf(digit)

    logger.debug(f"Accepted DTMF {''.join(accepted)!r} for call {record.call_sid}")
    return {"success": True, "digits": "".join(accepted)}


# =============================================================================
# Dial action (Twilio)
# =============================================================================

@router.post("/webhook", summary="Dial Action Callback", response_class=Response)
async def dial_action_webhook(request: Request, db: Session = Depends(get_db)) -> Response:
    """Twilio posts here when the browser call's <Dial> finishes; always answers empty TwiML."""
    try:
        params = await read_twilio_params(request)
        form = DialActionForm.model_validate(params)
        logger.info(f"Dial finished for {form.call_sid}: {form.dial_call_status}")
        call_log.apply_dial_outcome(db, form)
    except Exception:
        logger.exception("Dial action callback failed")
        db.rollback()
    return twiml_response(twiml.empty_response())
