"""
Incremental thread summarization engine.

Provides:
- Summary / event / settings data models
- Pure merge engine with diff reporting
- Extraction clients (OpenAI, Ollama)
- Orchestrator enforcing idempotency and optimistic per-thread commits
- Context rendering for chat injection
"""

from .errors import (
    ConcurrentUpdateFailure,
    CredentialMissing,
    ExtractionFailure,
    MessagePairNotFound,
    StoreUnavailable,
    SummarizationError,
    ThreadNotFound,
    VersionConflict,
)
from .schemas import (
    Delta,
    FactEntry,
    LogEntry,
    MemorySettings,
    Message,
    SummarizationCandidate,
    SummarizationResult,
    Summary,
    SummaryDiff,
    SummaryEvent,
    SummaryPrompt,
)
from .merge import MergeOutcome, merge_summary
from .extraction import (
    ExtractionClient,
    OllamaExtractionClient,
    OpenAIExtractionClient,
    build_extraction_client,
)
from .context import render_core_text, summary_context
from .orchestrator import SummarizationOrchestrator

__all__ = [
    "ConcurrentUpdateFailure",
    "CredentialMissing",
    "ExtractionFailure",
    "MessagePairNotFound",
    "StoreUnavailable",
    "SummarizationError",
    "ThreadNotFound",
    "VersionConflict",
    "Delta",
    "FactEntry",
    "LogEntry",
    "MemorySettings",
    "Message",
    "SummarizationCandidate",
    "SummarizationResult",
    "Summary",
    "SummaryDiff",
    "SummaryEvent",
    "SummaryPrompt",
    "MergeOutcome",
    "merge_summary",
    "ExtractionClient",
    "OllamaExtractionClient",
    "OpenAIExtractionClient",
    "build_extraction_client",
    "render_core_text",
    "summary_context",
    "SummarizationOrchestrator",
]
