"""
Pydantic schemas for FastAPI endpoints.
"""

from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field

from thread_memory.summary.schemas import (
    ResultStatus,
    SummarizationResult,
    SummaryDiff,
    SummaryEvent,
)


class SummarizeRequest(BaseModel):
    """Trigger payload: a committed assistant message and the user message it answers."""

    thread_id: str = Field(..., min_length=1, description="Conversation thread")
    user_msg_id: str = Field(..., min_length=1, description="User message of the pair")
    assistant_msg_id: str = Field(..., min_length=1, description="Assistant reply closing the pair")

    class Config:
        json_schema_extra = {
            "example": {
                "thread_id": "thread_abc",
                "user_msg_id": "msg_u1",
                "assistant_msg_id": "msg_a1",
            }
        }


class SummaryStats(BaseModel):
    """Counters describing the summary after the call."""

    version: int
    core_text_length: int
    facts_count: int
    decisions_count: int


class SummarizeResponse(BaseModel):
    """Response model for /summarize."""

    success: bool = Field(..., description="Whether the call succeeded (including no-ops)")
    status: ResultStatus = Field(..., description="created, updated, duplicate, disabled or failed")
    message: Optional[str] = Field(None, description="Human-readable outcome for no-op results")
    summary: Optional[SummaryStats] = Field(None, description="Summary counters")
    changes: Optional[SummaryDiff] = Field(None, description="Keys added/updated by this merge")
    error: Optional[str] = Field(None, description="Failure description")
    error_code: Optional[str] = Field(None, description="Stable failure code")

    @classmethod
    def from_result(cls, result: SummarizationResult) -> "SummarizeResponse":
        message = None
        if result.status == "disabled":
            message = "Summarization disabled"
        elif result.status == "duplicate":
            message = "Message pair already processed"

        return cls(
            success=result.success,
            status=result.status,
            message=message,
            summary=SummaryStats(**result.summary.stats()) if result.summary else None,
            changes=result.changes,
            error=result.error,
            error_code=result.error_code,
        )


class EnqueueResponse(BaseModel):
    """Response model for /summarize/async."""

    job_id: str = Field(..., description="Job identifier")
    state: str = Field(..., description="Initial job state")


class JobStatusResponse(BaseModel):
    """Response model for job status."""

    id: str
    state: str
    trigger: Dict[str, str]
    submitted_at: str
    started_at: Optional[str] = None
    finished_at: Optional[str] = None
    result: Optional[Dict[str, Any]] = None
    error: Optional[str] = None


class ContextResponse(BaseModel):
    """Summary text for chat context injection."""

    thread_id: str
    version: Optional[int] = None
    context: Optional[str] = None


class EventListResponse(BaseModel):
    """Audit trail for a thread."""

    thread_id: str
    events: List[SummaryEvent]
    count: int


class DeleteThreadResponse(BaseModel):
    """Counts of rows removed by whole-thread deletion."""

    thread_id: str
    messages: int
    summary: bool
    events: int


class HealthResponse(BaseModel):
    """Response model for /health endpoint."""

    status: str = Field(..., description="Service status")
    version: str = Field(..., description="Package version")
    components: Dict[str, bool] = Field(default_factory=dict, description="Component availability")
