"""
Outbound SMS and email rows.

Messages are inserted as ``queued`` by the dashboard and moved to ``sent``
or ``failed`` by whoever delivers them. Rows left in ``queued`` or
``sending`` are picked up by the stuck message processor.
"""

import enum
import uuid

from sqlalchemy import Column, String, Text, DateTime, Enum as SQLEnum, Uuid
from sqlalchemy.sql import func

from ..core.database import Base


class MessageStatus(str, enum.Enum):
    QUEUED = "queued"
    SENDING = "sending"
    SENT = "sent"
    FAILED = "failed"


PENDING_MESSAGE_STATUSES = (MessageStatus.QUEUED, MessageStatus.SENDING)


def _status_column():
    return Column(
        SQLEnum(MessageStatus, name="message_status", native_enum=False, length=20,
                values_callable=lambda e: [x.value for x in e]),
        nullable=False,
        default=MessageStatus.QUEUED,
        index=True,
    )


class SmsMessage(Base):
    __tablename__ = "sms_messages"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    from_number = Column(String(32), nullable=True)
    to_number = Column(String(32), nullable=False)
    body = Column(Text, nullable=False)
    status = _status_column()
    message_sid = Column(String(64), nullable=True)
    error_message = Column(Text, nullable=True)
    sent_at = Column(DateTime(timezone=True), nullable=True)
    created_at = Column(DateTime(timezone=True), nullable=False, server_default=func.current_timestamp())
    updated_at = Column(DateTime(timezone=True), nullable=False, server_default=func.current_timestamp(), onupdate=func.current_timestamp())


class EmailMessage(Base):
    __tablename__ = "email_messages"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    to_email = Column(String(255), nullable=False)
    subject = Column(String(500), nullable=False)
    body_html = Column(Text, nullable=True)
    body_text = Column(Text, nullable=True)
    status = _status_column()
    error_message = Column(Text, nullable=True)
    sent_at = Column(DateTime(timezone=True), nullable=True)
    created_at = Column(DateTime(timezone=True), nullable=False, server_default=func.current_timestamp())
    updated_at = Column(DateTime(timezone=True), nullable=False, server_default=func.current_timestamp(), onupdate=func.current_timestamp())
