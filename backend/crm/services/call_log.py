"""
Call history bookkeeping.

Rows in ``call_recordings`` and ``call_queue`` are created when the dialer
places a call and settled by Twilio's callbacks. Callbacks for calls this
service did not place (no row for the CallSid) are acknowledged and ignored.
"""

import logging
from datetime import datetime, timezone
from typing import Optional

from sqlalchemy.orm import Session

from ..models.call import CallQueueEntry, CallRecording, TERMINAL_CALL_STATUSES
from ..models.user import User, UserVoipSettings
from ..schemas.telephony import CallStatusForm, DialActionForm, RecordingStatusForm


logger = logging.getLogger("crm.telephony")


def get_call(db: Session, call_sid: Optional[str]) -> Optional[CallRecording]:
    if not call_sid:
        return None
    return db.query(CallRecording).filter(CallRecording.call_sid == call_sid).first()


def record_outbound_call(
    db: Session,
    user: User,
    voip: UserVoipSettings,
    call_sid: str,
    from_number: str,
    to_number: str,
    customer_id: Optional[str] = None,
    deal_id: Optional[str] = None,
    lead_id: Optional[str] = None,
) -> CallRecording:
    """Insert the call row and its queue entry for a freshly placed call."""
    record = CallRecording(
        call_sid=call_sid,
        user_id=user.id,
        customer_id=customer_id,
        deal_id=deal_id,
        lead_id=lead_id,
        direction="outbound",
        from_number=from_number,
        to_number=to_number,
        status="initiated",
        transcription_status="pending" if voip.auto_transcribe else None,
    )
    db.add(record)
    db.add(CallQueueEntry(
        user_id=user.id,
        customer_id=customer_id,
        deal_id=deal_id,
        lead_id=lead_id,
        phone_number=to_number,
        status="calling",
        attempted_at=datetime.now(timezone.utc),
    ))
    db.commit()
    db.refresh(record)
    return record


def _settle_queue(db: Session, to_number: Optional[str], call_status: str, user_id=None) -> int:
    if not to_number:
        return 0
    query = db.query(CallQueueEntry).filter(
        CallQueueEntry.phone_number == to_number,
        CallQueueEntry.status == "calling",
    )
    if user_id is not None:
        query = query.filter(CallQueueEntry.user_id == user_id)
    now = datetime.now(timezone.utc)
    entries = query.all()
    for entry in entries:
        entry.status = "completed" if call_status == "completed" else "failed"
        entry.completed_at = now
    return len(entries)


def apply_call_status(db: Session, form: CallStatusForm) -> Optional[CallRecording]:
    """Record a call progress event and settle the dialing queue once the call is over."""
    call_status = form.call_status.lower()
    record = get_call(db, form.call_sid)

    if record is not None:
        record.status = call_status
        if form.call_duration is not None:
            record.duration_seconds = form.call_duration
        if call_status in TERMINAL_CALL_STATUSES:
            record.ended_at = datetime.now(timezone.utc)
    else:
        logger.debug(f"Status {call_status} for untracked call {form.call_sid}")

    if call_status in TERMINAL_CALL_STATUSES:
        to_number = form.to_number or (record.to_number if record else None)
        _settle_queue(db, to_number, call_status, record.user_id if record else None)

    db.commit()
    return record


def apply_recording(db: Session, form: RecordingStatusForm) -> Optional[CallRecording]:
    record = get_call(db, form.call_sid)
    if record is None:
        logger.debug(f"Recording for untracked call {form.call_sid}")
        return None
    if form.recording_status and form.recording_status.lower() != "completed":
        logger.warning(f"Recording {form.recording_sid} for {form.call_sid} ended as {form.recording_status}")
        return record

    record.recording_sid = form.recording_sid
    record.recording_url = form.recording_url
    if form.recording_duration is not None:
        record.recording_duration_seconds = form.recording_duration
    db.commit()
    return record


def apply_dial_outcome(db: Session, form: DialActionForm) -> Optional[CallRecording]:
    """Record what happened to the dialed leg of a browser call."""
    record = get_call(db, form.call_sid)
    if record is None:
        return None

    dial_status = (form.dial_call_status or "completed").lower()
    record.status = dial_status
    if form.dial_call_duration is not None:
        record.duration_seconds = form.dial_call_duration
    if record.is_finished:
        record.ended_at = datetime.now(timezone.utc)
    if form.recording_sid and form.recording_url:
        record.recording_sid = form.recording_sid
        record.recording_url = form.recording_url
        if form.recording_duration is not None:
            record.recording_duration_seconds = form.recording_duration
    db.commit()
    return record
