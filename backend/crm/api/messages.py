"""
Background message processor endpoints.

The dashboard pings ``process-background`` on navigation; each ping queues
one sweep of stuck SMS and email rows on the Celery ``messages`` queue.
"""

import logging

from fastapi import APIRouter, Depends, HTTPException, status
from kombu.exceptions import OperationalError as BrokerError

from ..core.auth import get_auth_subject
from ..schemas.messages import ProcessorQueuedResponse, ProcessorTaskStatus
from ..tasks.celery_app import celery_app
from ..tasks.message_tasks import process_stuck_messages


logger = logging.getLogger(__name__)
router = APIRouter(prefix="/api/messages", tags=["Messages"])


@router.post(
    "/process-background",
    response_model=ProcessorQueuedResponse,
    status_code=status.HTTP_202_ACCEPTED,
    summary="Queue Stuck Message Sweep",
)
async def queue_message_processor(auth_id: str = Depends(get_auth_subject)) -> ProcessorQueuedResponse:
    try:
        task = process_stuck_messages.delay()
    except BrokerError as e:
        logger.error(f"Failed to queue stuck message sweep: {e}")
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Message processor unavailable",
        )

    logger.debug(f"Stuck message sweep {task.id} queued by {auth_id}")
    return ProcessorQueuedResponse(task_id=task.id)


@router.get(
    "/process-background/{task_id}",
    response_model=ProcessorTaskStatus,
    response_model_exclude_none=True,
    summary="Stuck Message Sweep Status",
)
async def get_message_processor_status(
    task_id: str,
    auth_id: str = Depends(get_auth_subject),
) -> ProcessorTaskStatus:
    result = celery_app.AsyncResult(task_id)
    state = result.state

    if state == "SUCCESS":
        return ProcessorTaskStatus(task_id=task_id, state=state, result=result.result)
    if state == "FAILURE":
        logger.warning(f"Stuck message sweep {task_id} failed: {result.result!r}")
        return ProcessorTaskStatus(task_id=task_id, state=state, error="Message processing failed")
    return ProcessorTaskStatus(task_id=task_id, state=state)
