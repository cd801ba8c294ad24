"""
Celery tasks package for background message processing.
"""

from .celery_app import celery_app
from .message_tasks import process_stuck_messages

__all__ = [
    "celery_app",
    "process_stuck_messages",
]
