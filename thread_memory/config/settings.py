"""Application settings and configuration schema."""

import os
from typing import Literal, Optional

from pydantic import BaseModel


class StoreCfg(BaseModel):
    """SQLite persistence configuration."""
    db_path: str = "data/memory/memory.db"
    busy_timeout: float = 10.0


class ExtractionCfg(BaseModel):
    """Configuration for the extraction model backend."""
    provider: Literal["openai", "ollama"] = "openai"
    base_url: Optional[str] = None
    ollama_url: str = "http://localhost:11434"
    timeout: float = 30.0
    max_retries: int = 2  # transport-level, inside the SDK


class EngineCfg(BaseModel):
    """Summarization engine limits."""
    # Up to this many concurrent writers on one thread always commit
    max_commit_attempts: int = 3
    delta_cap: int = 20
    core_text_limit: int = 1500
    worker_threads: int = 3  # keep <= max_commit_attempts


class Settings(BaseModel):
    """Main application settings."""
    store: StoreCfg = StoreCfg()
    extraction: ExtractionCfg = ExtractionCfg()
    engine: EngineCfg = EngineCfg()

    @classmethod
    def from_env(cls) -> "Settings":
        """Load settings, overriding defaults from environment variables."""
        data = cls().model_dump()

        if os.getenv("THREAD_MEMORY_DB_PATH"):
            data["store"]["db_path"] = os.environ["THREAD_MEMORY_DB_PATH"]
        if os.getenv("THREAD_MEMORY_PROVIDER"):
            data["extraction"]["provider"] = os.environ["THREAD_MEMORY_PROVIDER"]
        if os.getenv("OPENAI_BASE_URL"):
            data["extraction"]["base_url"] = os.environ["OPENAI_BASE_URL"]
        if os.getenv("OLLAMA_URL"):
            data["extraction"]["ollama_url"] = os.environ["OLLAMA_URL"]
        if os.getenv("THREAD_MEMORY_MAX_COMMIT_ATTEMPTS"):
            data["engine"]["max_commit_attempts"] = os.environ["THREAD_MEMORY_MAX_COMMIT_ATTEMPTS"]
        if os.getenv("THREAD_MEMORY_DELTA_CAP"):
            data["engine"]["delta_cap"] = os.environ["THREAD_MEMORY_DELTA_CAP"]

        # Validation coerces numeric strings and rejects unknown providers
        return cls.model_validate(data)
