"""
Pydantic schemas for the stuck message processor endpoints.
"""

from typing import Any, Dict, Optional

from pydantic import BaseModel, Field


class ProcessorQueuedResponse(BaseModel):
    success: bool = True
    task_id: str = Field(..., serialization_alias="taskId")
    status: str = "queued"


class ProcessorTaskStatus(BaseModel):
    task_id: str = Field(..., serialization_alias="taskId")
    state: str
    result: Optional[Dict[str, Any]] = None
    error: Optional[str] = None
