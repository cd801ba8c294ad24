"""
Per-user telephony settings.
"""

import logging
from typing import Optional

from sqlalchemy import func
from sqlalchemy.orm import Session

from ..models.user import User, UserVoipSettings
from .phone import normalize_phone_number


logger = logging.getLogger(__name__)


class UserNotFound(LookupError):
    pass


def assign_phone_number(
    db: Session,
    email: str,
    phone_number: str,
    caller_id: Optional[str] = None,
) -> UserVoipSettings:
    """
    Give the user with ``email`` a Twilio number, creating their settings row if needed.

    Both numbers are stored in E.164; the caller id defaults to the assigned number.

    Raises:
        UserNotFound: no user has that email
        InvalidPhoneNumber: either number cannot be parsed
    """
    user = db.query(User).filter(func.lower(User.email) == email.strip().lower()).first()
    if user is None:
        raise UserNotFound(email)

    assigned = normalize_phone_number(phone_number)
    caller = normalize_phone_number(caller_id) if caller_id else assigned

    voip = db.query(UserVoipSettings).filter(UserVoipSettings.user_id == user.id).first()
    if voip is None:
        voip = UserVoipSettings(user_id=user.id)
        db.add(voip)

    voip.assigned_phone_number = assigned
    voip.caller_id_number = caller
    db.commit()
    db.refresh(voip)

    logger.info(f"Assigned {assigned} (caller id {caller}) to user {user.id}")
    return voip
