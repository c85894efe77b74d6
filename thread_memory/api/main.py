"""Main FastAPI application: summarization trigger and summary inspection."""

import logging
from typing import Optional

from fastapi import Depends, FastAPI, HTTPException, Query, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

from thread_memory import __version__
from thread_memory.ops.worker import PairTrigger
from thread_memory.services import MemoryServices, build_services
from thread_memory.summary.context import summary_context
from thread_memory.summary.schemas import EventType, Summary
from thread_memory.telemetry import configure_logging
from .schemas import (
    ContextResponse,
    DeleteThreadResponse,
    EnqueueResponse,
    EventListResponse,
    HealthResponse,
    JobStatusResponse,
    SummarizeRequest,
    SummarizeResponse,
)


logger = logging.getLogger(__name__)

app = FastAPI(
    title="Thread Memory API",
    description="Incremental, versioned conversation summaries",
    version=__version__,
)

# Global state for dependencies (initialized on startup)
_services: Optional[MemoryServices] = None

# error_code -> HTTP status for failed summarizations
ERROR_STATUS = {
    "thread_not_found": 404,
    "message_pair_not_found": 400,
    "credential_missing": 400,
    "concurrent_update": 409,
    "extraction_failed": 502,
    "store_unavailable": 503,
}


def get_services() -> MemoryServices:
    """Dependency to get the summarization services."""
    if _services is None:
        raise HTTPException(status_code=503, detail="Services not initialized")
    return _services


@app.on_event("startup")
async def startup_event():
    """Initialize components on startup."""
    global _services
    configure_logging()
    _services = build_services()
    logger.info(f"Thread memory API ready (db={_services.settings.store.db_path})")


@app.on_event("shutdown")
async def shutdown_event():
    """Cleanup on shutdown."""
    global _services
    if _services is not None:
        _services.close()
        _services = None


@app.exception_handler(RequestValidationError)
async def validation_exception_handler(request: Request, exc: RequestValidationError):
    """Reject malformed triggers with 400 and name the offending fields."""
    fields = sorted({str(err["loc"][-1]) for err in exc.errors() if err.get("loc")})
    return JSONResponse(
        status_code=400,
        content={"success": False, "error": f"Missing or invalid fields: {', '.join(fields)}"},
    )


@app.get("/health", response_model=HealthResponse)
async def health():
    """Health check."""
    return HealthResponse(
        status="ok",
        version=__version__,
        components={"services": _services is not None},
    )


@app.post("/api/retrieval/summarize", response_model=SummarizeResponse)
def summarize(request: SummarizeRequest, services: MemoryServices = Depends(get_services)):
    """
    Process one message pair synchronously.

    Runs in the threadpool: if the caller disconnects, the merge still
    completes and commits.

    Example:
        POST /api/retrieval/summarize
        {"thread_id": "t1", "user_msg_id": "u1", "assistant_msg_id": "a1"}

        Response:
        {
            "success": true,
            "status": "created",
            "summary": {"version": 1, "core_text_length": 18, "facts_count": 1, "decisions_count": 0},
            "changes": {"added": {"facts": ["topic"]}, "updated": {}, "removed": []}
        }
    """
    result = services.orchestrator.process_pair(
        request.thread_id,
        request.user_msg_id,
        request.assistant_msg_id,
    )
    response = SummarizeResponse.from_result(result)

    if not result.success:
        status_code = ERROR_STATUS.get(result.error_code, 500)
        return JSONResponse(status_code=status_code, content=response.model_dump())

    return response


@app.post("/api/retrieval/summarize/async", response_model=EnqueueResponse, status_code=202)
def summarize_async(request: SummarizeRequest, services: MemoryServices = Depends(get_services)):
    """Queue a message pair for background summarization."""
    job_id = services.worker.submit(PairTrigger(
        thread_id=request.thread_id,
        user_msg_id=request.user_msg_id,
        assistant_msg_id=request.assistant_msg_id,
    ))
    return EnqueueResponse(job_id=job_id, state=services.worker.get(job_id).state)


@app.get("/api/retrieval/jobs/{job_id}", response_model=JobStatusResponse)
def job_status(job_id: str, services: MemoryServices = Depends(get_services)):
    """Get background summarization job status."""
    job = services.worker.get(job_id)
    if job is None:
        raise HTTPException(status_code=404, detail=f"Job {job_id} not found")
    return JobStatusResponse(**job.to_dict())


@app.get("/api/retrieval/summaries/{thread_id}", response_model=Summary)
def get_summary(thread_id: str, services: MemoryServices = Depends(get_services)):
    """Full structured summary for a thread."""
    summary = services.summaries.get(thread_id)
    if summary is None:
        raise HTTPException(status_code=404, detail=f"No summary for thread {thread_id}")
    return summary


@app.get("/api/retrieval/summaries/{thread_id}/context", response_model=ContextResponse)
def get_context(thread_id: str, services: MemoryServices = Depends(get_services)):
    """Summary text to inject into the chat's context window."""
    summary = services.summaries.get(thread_id)
    return ContextResponse(
        thread_id=thread_id,
        version=summary.version if summary else None,
        context=summary_context(summary, services.settings.engine.core_text_limit),
    )


@app.get("/api/retrieval/summaries/{thread_id}/events", response_model=EventListResponse)
def list_events(
    thread_id: str,
    event_type: Optional[EventType] = None,
    limit: int = Query(100, ge=1, le=1000),
    services: MemoryServices = Depends(get_services),
):
    """Audit trail for a thread, oldest first."""
    events = services.events.list_for_thread(thread_id, limit=limit, event_type=event_type)
    return EventListResponse(thread_id=thread_id, events=events, count=len(events))


@app.delete("/api/retrieval/threads/{thread_id}", response_model=DeleteThreadResponse)
def delete_thread(thread_id: str, services: MemoryServices = Depends(get_services)):
    """Delete a thread's messages, summary and events."""
    removed = services.delete_thread(thread_id)
    return DeleteThreadResponse(thread_id=thread_id, **removed)
