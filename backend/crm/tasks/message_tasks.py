"""
Celery tasks for outbound message delivery.

Provides:
- Periodic and on-demand retry of stuck SMS and email rows
"""

import logging
from typing import Any, Dict

from celery import shared_task
from celery.exceptions import SoftTimeLimitExceeded
from sqlalchemy.exc import OperationalError

from ..core.database import session_scope
from ..services.message_retry import process_stuck_messages as run_stuck_message_sweep
from .celery_app import PROCESS_STUCK_MESSAGES


logger = logging.getLogger(__name__)


@shared_task(
    bind=True,
    name=PROCESS_STUCK_MESSAGES,
    autoretry_for=(OperationalError,),
    retry_backoff=True,
    retry_backoff_max=60,
    max_retries=3,
    acks_late=True,
)
def process_stuck_messages(self) -> Dict[str, Any]:
    """
    Retry SMS and email rows stuck in queued/sending.

    Returns the sweep summary so callers can read it from the result backend.
    """
    try:
        with session_scope() as db:
            result = run_stuck_message_sweep(db)
    except SoftTimeLimitExceeded:
        logger.warning(f"Stuck message sweep {self.request.id} hit its time limit")
        raise

    logger.info(
        f"Stuck message sweep {self.request.id}: processed={result['processed']} "
        f"succeeded={result['succeeded']} failed={result['failed']}"
    )
    return result
