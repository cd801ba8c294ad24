"""
Retry of SMS and email rows that never left ``queued``/``sending``.

A message is stuck once it is older than ``stuck_message_age_minutes``.
Each run claims at most ``stuck_message_batch_size`` of each kind by moving
them to ``sending``, resends them, and settles every row as ``sent`` or
``failed``. A claim older than the same age counts as abandoned and is
taken over by the next run.
"""

import logging
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, List, Optional

from sqlalchemy import or_
from sqlalchemy.orm import Session

from ..core.config import settings
from ..models.message import EmailMessage, MessageStatus, PENDING_MESSAGE_STATUSES, SmsMessage
from .email_service import EmailService
from .sms_service import SMSService


logger = logging.getLogger(__name__)


def _claim_stuck(db: Session, model, now: datetime, cutoff: datetime, limit: int) -> List[Any]:
    """Lock a batch of stuck rows, mark them ``sending`` and commit before any of them is sent."""
    rows = (
        db.query(model)
        .filter(model.status.in_(PENDING_MESSAGE_STATUSES))
        .filter(model.created_at < cutoff)
        .filter(or_(model.status == MessageStatus.QUEUED, model.updated_at < cutoff))
        .order_by(model.created_at)
        .limit(limit)
        .with_for_update(skip_locked=True)
        .all()
    )
    for row in rows:
        row.status = MessageStatus.SENDING
        row.updated_at = now
    # Claims are visible to other workers from here on
    db.commit()
    return rows


def process_stuck_messages(
    db: Session,
    sms_service: Optional[SMSService] = None,
    email_service: Optional[EmailService] = None,
    now: Optional[datetime] = None,
) -> Dict[str, Any]:
    """
    Resend stuck messages and record the outcome of each.

    Returns:
        ``{success, processed, succeeded, failed, timestamp}``
    """
    now = now or datetime.now(timezone.utc)
    cutoff = now - timedelta(minutes=settings.stuck_message_age_minutes)
    limit = settings.stuck_message_batch_size

    processed = succeeded = failed = 0

    stuck_sms = _claim_stuck(db, SmsMessage, now, cutoff, limit)
    if stuck_sms:
        logger.info(f"Found {len(stuck_sms)} stuck SMS messages, retrying")
        sms_service = sms_service or SMSService()

    for msg in stuck_sms:
        processed += 1
        result = sms_service.send_sms(msg.to_number, msg.body, from_number=msg.from_number)
        msg.updated_at = now
        if result.get("success"):
            msg.status = MessageStatus.SENT
            msg.message_sid = result.get("message_sid")
            msg.error_message = None
            msg.sent_at = now
            succeeded += 1
            logger.info(f"Retried SMS {msg.id} successfully")
        else:
            msg.status = MessageStatus.FAILED
            msg.error_message = result.get("error") or "Unknown error"
            failed += 1
            logger.warning(f"Failed to retry SMS {msg.id}: {msg.error_message}")
        db.commit()

    stuck_emails = _claim_stuck(db, EmailMessage, now, cutoff, limit)
    if stuck_emails:
        logger.info(f"Found {len(stuck_emails)} stuck emails, retrying")
        email_service = email_service or EmailService()

    for email in stuck_emails:
        processed += 1
        result = email_service.send_email(email.to_email, email.subject, email.body_html, email.body_text)
        email.updated_at = now
        if result.get("success"):
            email.status = MessageStatus.SENT
            email.error_message = None
            email.sent_at = now
            succeeded += 1
            logger.info(f"Retried email {email.id} successfully")
        else:
            email.status = MessageStatus.FAILED
            email.error_message = result.get("error") or "Unknown error"
            failed += 1
            logger.warning(f"Failed to retry email {email.id}: {email.error_message}")
        db.commit()

    return {
        "success": True,
        "processed": processed,
        "succeeded": succeeded,
        "failed": failed,
        "timestamp": now.isoformat(),
    }
