"""
Structured step logging for the summarization pipeline.

Each process_pair run gets a run id; every pipeline stage (load, extract,
merge, commit, audit) is logged as one JSON record with its duration.
"""

import logging
import uuid
from typing import Any, Dict, Optional

import structlog


structlog.configure(
    processors=[
        structlog.stdlib.add_log_level,
        structlog.stdlib.add_logger_name,
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
        structlog.processors.JSONRenderer(),
    ],
    context_class=dict,
    logger_factory=structlog.stdlib.LoggerFactory(),
    cache_logger_on_first_use=True,
)

logger = structlog.get_logger("thread_memory.telemetry")


def configure_logging(level: int = logging.INFO) -> None:
    """Attach a plain stream handler so stdlib and structlog records are emitted."""
    logging.basicConfig(level=level, format="%(message)s")


def new_run_id() -> str:
    """Generate a new unique run ID."""
    return str(uuid.uuid4())


def log_step(
    run_id: str,
    step_name: str,
    ms: float,
    extra: Optional[Dict[str, Any]] = None,
) -> None:
    """
    Log a pipeline step execution with timing.

    Args:
        run_id: Unique run identifier
        step_name: Name of the step (e.g., "extract", "commit")
        ms: Duration in milliseconds
        extra: Optional extra fields to log
    """
    logger.info("step_executed", run_id=run_id, step=step_name, duration_ms=round(ms, 2), **(extra or {}))
