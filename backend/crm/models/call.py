"""
Call history and dialing queue models.

A ``CallRecording`` row is written when a call is placed through the REST
API and is then filled in by Twilio's status, recording and dial-action
callbacks, keyed by ``call_sid``.
"""

import uuid

from sqlalchemy import Column, String, Integer, DateTime, ForeignKey, Uuid
from sqlalchemy.sql import func

from ..core.database import Base


# Twilio call statuses after which a call is over
TERMINAL_CALL_STATUSES = frozenset({"completed", "failed", "busy", "no-answer", "canceled"})


class CallRecording(Base):
    __tablename__ = "call_recordings"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    call_sid = Column(String(64), unique=True, nullable=False, index=True)
    user_id = Column(Uuid, ForeignKey("users.id", ondelete="SET NULL"), nullable=True, index=True)
    customer_id = Column(String(64), nullable=True)
    deal_id = Column(String(64), nullable=True)
    lead_id = Column(String(64), nullable=True)

    direction = Column(String(20), nullable=False, default="outbound")
    from_number = Column(String(32), nullable=True)
    to_number = Column(String(32), nullable=True)
    status = Column(String(20), nullable=False, default="initiated")
    duration_seconds = Column(Integer, nullable=True)

    recording_sid = Column(String(64), nullable=True)
    recording_url = Column(String(1000), nullable=True)
    recording_duration_seconds = Column(Integer, nullable=True)
    transcription_status = Column(String(20), nullable=True)

    calendar_event_id = Column(String(255), nullable=True)
    calendar_event_link = Column(String(1000), nullable=True)
    meeting_scheduled_at = Column(DateTime(timezone=True), nullable=True)
    meeting_duration_minutes = Column(Integer, nullable=True)

    ended_at = Column(DateTime(timezone=True), nullable=True)
    created_at = Column(DateTime(timezone=True), nullable=False, server_default=func.current_timestamp())
    updated_at = Column(DateTime(timezone=True), nullable=False, server_default=func.current_timestamp(), onupdate=func.current_timestamp())

    @property
    def is_finished(self) -> bool:
        return self.status in TERMINAL_CALL_STATUSES

    def __repr__(self) -> str:
        return f"<CallRecording(call_sid={self.call_sid}, status={self.status})>"


class CallQueueEntry(Base):
    __tablename__ = "call_queue"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    user_id = Column(Uuid, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    customer_id = Column(String(64), nullable=True)
    deal_id = Column(String(64), nullable=True)
    lead_id = Column(String(64), nullable=True)
    phone_number = Column(String(32), nullable=False, index=True)
    status = Column(String(20), nullable=False, default="calling")
    attempted_at = Column(DateTime(timezone=True), nullable=False, server_default=func.current_timestamp())
    completed_at = Column(DateTime(timezone=True), nullable=True)
