"""
Error taxonomy for the summarization engine.

Every error carries a stable ``code`` that is written into audit events and
returned in results. VersionConflict is handled inside the orchestrator and
never reaches a caller.
"""

from typing import Optional


class SummarizationError(Exception):
    """Base class for engine errors."""

    code = "summarization_error"


class ThreadNotFound(SummarizationError):
    code = "thread_not_found"

    def __init__(self, thread_id: str):
        self.thread_id = thread_id
        super().__init__(f"Thread not found: {thread_id}")


class MessagePairNotFound(SummarizationError):
    code = "message_pair_not_found"


class ExtractionFailure(SummarizationError):
    code = "extraction_failed"

    def __init__(self, reason: str):
        self.reason = reason
        super().__init__(f"Extraction failed: {reason}")


class VersionConflict(SummarizationError):
    code = "version_conflict"

    def __init__(self, thread_id: str, expected: Optional[int], actual: Optional[int]):
        self.thread_id = thread_id
        self.expected = expected
        self.actual = actual
        super().__init__(
            f"Version conflict on thread {thread_id}: expected {expected}, found {actual}"
        )


class ConcurrentUpdateFailure(SummarizationError):
    code = "concurrent_update"

    def __init__(self, thread_id: str, attempts: int):
        self.thread_id = thread_id
        self.attempts = attempts
        super().__init__(
            f"Summary for thread {thread_id} kept changing; gave up after {attempts} attempts"
        )


class CredentialMissing(SummarizationError):
    code = "credential_missing"

    def __init__(self, user_id: str):
        self.user_id = user_id
        super().__init__(f"No API key configured for user {user_id}")


class StoreUnavailable(SummarizationError):
    code = "store_unavailable"

    def __init__(self, reason: str):
        self.reason = reason
        super().__init__(f"Store unavailable: {reason}")
