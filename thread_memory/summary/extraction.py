"""
Extraction clients: turn one message pair into a SummarizationCandidate.

The engine treats extraction as a fallible, non-deterministic call. Clients
never touch persisted state; every failure mode surfaces as ExtractionFailure.
"""

import json
import logging
from abc import ABC, abstractmethod
from typing import Any, Optional

import openai
import requests
from pydantic import ValidationError

from thread_memory.config.settings import ExtractionCfg
from .errors import ExtractionFailure
from .prompts import build_pair_message
from .schemas import SummarizationCandidate, Summary, SummaryPrompt


logger = logging.getLogger(__name__)


def parse_candidate(content: Optional[str]) -> SummarizationCandidate:
    """
    Parse a model's JSON reply into a candidate.

    Raises:
        ExtractionFailure: On empty, non-JSON or wrongly-shaped output
    """
    if not content or not content.strip():
        raise ExtractionFailure("model returned an empty response")

    try:
        data: Any = json.loads(content)
    except json.JSONDecodeError as e:
        raise ExtractionFailure(f"model returned invalid JSON: {e}") from e

    if not isinstance(data, dict):
        raise ExtractionFailure(f"expected a JSON object, got {type(data).__name__}")

    try:
        return SummarizationCandidate.model_validate(data)
    except ValidationError as e:
        raise ExtractionFailure(f"candidate does not match schema: {e.error_count()} errors") from e


class ExtractionClient(ABC):
    """Abstract base class for extraction backends."""

    #: Whether extract() needs a per-user api_key
    requires_credential: bool = True

    @abstractmethod
    def extract(
        self,
        current: Optional[Summary],
        user_message: str,
        assistant_message: str,
        prompt: SummaryPrompt,
        *,
        api_key: Optional[str] = None,
    ) -> SummarizationCandidate:
        """
        Produce a candidate for one user/assistant pair.

        Args:
            current: The thread's current summary, if any
            user_message: User message text
            assistant_message: Assistant reply text
            prompt: System prompt, model and sampling parameters
            api_key: Per-user credential, for backends that need one

        Raises:
            ExtractionFailure: If the backend fails or returns unusable output
        """


class OpenAIExtractionClient(ExtractionClient):
    """Extraction via the OpenAI chat completions API in JSON mode."""

    requires_credential = True

    def __init__(self, config: Optional[ExtractionCfg] = None):
        self.config = config or ExtractionCfg()

    def _client(self, api_key: str) -> openai.OpenAI:
        return openai.OpenAI(
            api_key=api_key,
            base_url=self.config.base_url,
            timeout=self.config.timeout,
            max_retries=self.config.max_retries,
        )

    def extract(
        self,
        current: Optional[Summary],
        user_message: str,
        assistant_message: str,
        prompt: SummaryPrompt,
        *,
        api_key: Optional[str] = None,
    ) -> SummarizationCandidate:
        if not api_key:
            raise ExtractionFailure("no API key supplied to OpenAI extraction client")

        messages = [
            {"role": "system", "content": prompt.prompt},
            {"role": "user", "content": build_pair_message(current, user_message, assistant_message)},
        ]

        try:
            response = self._client(api_key).chat.completions.create(
                model=prompt.model,
                messages=messages,
                temperature=prompt.temperature,
                max_tokens=prompt.max_tokens,
                response_format={"type": "json_object"},
            )
        except openai.OpenAIError as e:
            logger.warning(f"OpenAI extraction failed for model {prompt.model}: {e}")
            raise ExtractionFailure(f"{type(e).__name__}: {e}") from e

        if not response.choices:
            raise ExtractionFailure("model returned no choices")

        return parse_candidate(response.choices[0].message.content)


class OllamaExtractionClient(ExtractionClient):
    """
    Extraction via a local Ollama server (``/api/chat`` with JSON format).

    Ollama must be running locally (default: http://localhost:11434).
    No credential is needed.
    """

    requires_credential = False

    def __init__(self, config: Optional[ExtractionCfg] = None):
        self.config = config or ExtractionCfg()
        self.base_url = self.config.ollama_url.rstrip("/")

    def extract(
        self,
        current: Optional[Summary],
        user_message: str,
        assistant_message: str,
        prompt: SummaryPrompt,
        *,
        api_key: Optional[str] = None,
    ) -> SummarizationCandidate:
        payload = {
            "model": prompt.model,
            "stream": False,
            "format": "json",
            "messages": [
                {"role": "system", "content": prompt.prompt},
                {"role": "user", "content": build_pair_message(current, user_message, assistant_message)},
            ],
            "options": {
                "temperature": prompt.temperature,
                "num_predict": prompt.max_tokens,
            },
        }

        try:
            response = requests.post(
                f"{self.base_url}/api/chat",
                json=payload,
                timeout=self.config.timeout,
            )
        except requests.exceptions.Timeout as e:
            raise ExtractionFailure(f"Ollama request timed out after {self.config.timeout}s") from e
        except requests.exceptions.RequestException as e:
            raise ExtractionFailure(f"Ollama request failed: {e}") from e

        if response.status_code != 200:
            raise ExtractionFailure(f"Ollama API returned status {response.status_code}: {response.text[:200]}")

        try:
            body = response.json()
        except ValueError as e:
            raise ExtractionFailure(f"Ollama returned a non-JSON body: {e}") from e

        if not isinstance(body, dict):
            raise ExtractionFailure(f"Ollama returned {type(body).__name__}, expected an object")

        message = body.get("message")
        if not isinstance(message, dict):
            raise ExtractionFailure("Ollama response has no message object")

        return parse_candidate(message.get("content"))

    def __repr__(self) -> str:
        return f"OllamaExtractionClient(base_url='{self.base_url}')"


def build_extraction_client(config: ExtractionCfg) -> ExtractionClient:
    """Create the extraction client for the configured provider."""
    if config.provider == "openai":
        return OpenAIExtractionClient(config)
    elif config.provider == "ollama":
        return OllamaExtractionClient(config)
    else:
        raise ValueError(f"Unsupported provider: {config.provider}")
