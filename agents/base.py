"""Base agent class for Gemini-backed agents."""

import asyncio
import logging
import time
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any, Awaitable, Callable, Dict, Generic, Optional, TypeVar

from google import genai
from google.genai import types

from core.config import settings
from database.models.applications import AnalysisOutcome

logger = logging.getLogger(__name__)

T = TypeVar("T")


class AgentUnavailableError(RuntimeError):
    """Raised when the model cannot be called at all (e.g. no API key)."""


@dataclass
class ModelResponse:
    """Raw model output plus token accounting."""

    text: str
    input_tokens: int = 0
    output_tokens: int = 0

    @property
    def total_tokens(self) -> int:
        return self.input_tokens + self.output_tokens


@dataclass
class UsageEvent:
    """One model call, as recorded in the API usage log."""

    endpoint: str
    model: str
    success: bool
    input_tokens: int = 0
    output_tokens: int = 0
    response_time_ms: int = 0
    error_message: Optional[str] = None
    job_id: Optional[int] = None
    candidate_id: Optional[int] = None


UsageRecorder = Callable[[UsageEvent], Awaitable[None]]


@dataclass
class AgentResult(Generic[T]):
    """
    Agent output that never hides a failure.

    ``outcome`` is ``SUCCESS`` when the model answered and the answer parsed,
    ``DEGRADED`` when placeholder data was substituted; ``error`` then holds
    the reason.
    """

    data: T
    outcome: AnalysisOutcome = AnalysisOutcome.SUCCESS
    error: Optional[str] = None
    usage: Optional[ModelResponse] = field(default=None, repr=False)

    @property
    def degraded(self) -> bool:
        return self.outcome != AnalysisOutcome.SUCCESS


class BaseAgent(ABC):
    """Base class for all AI agents using Gemini through google-genai."""

    def __init__(
        self,
        name: str,
        instructions: str,
        model: Optional[str] = None,
        temperature: Optional[float] = None,
        timeout: Optional[float] = None,
        client: Optional[genai.Client] = None,
    ):
        """Initialize the agent.

        Args:
            name: Agent name, also used as the usage-log endpoint
            instructions: System instructions for the agent
            model: Gemini model to use (defaults to settings)
            temperature: Sampling temperature (defaults to settings)
            timeout: Seconds before a model call is abandoned
            client: Pre-built client, mainly for tests
        """
        self.name = name
        self.instructions = instructions
        self.model = model or settings.gemini_model
        self.temperature = settings.ai_temperature if temperature is None else temperature
        self.timeout = settings.ai_timeout_seconds if timeout is None else timeout
        self._client = client

    def _get_client(self) -> genai.Client:
        """Get or create the google-genai client."""
        if self._client is None:
            if not settings.google_api_key:
                raise AgentUnavailableError("GOOGLE_API_KEY is not configured")
            self._client = genai.Client(api_key=settings.google_api_key)
        return self._client

    async def generate(self, prompt: str) -> ModelResponse:
        """Send one prompt and return the JSON text the model produced.

        Raises:
            AgentUnavailableError: No API key configured
            asyncio.TimeoutError: The call exceeded ``self.timeout``
        """
        client = self._get_client()

        response = await asyncio.wait_for(
            client.aio.models.generate_content(
                model=self.model,
                contents=prompt,
                config=types.GenerateContentConfig(
                    system_instruction=self.instructions,
                    temperature=self.temperature,
                    response_mime_type="application/json",
                ),
            ),
            timeout=self.timeout,
        )

        usage = response.usage_metadata
        return ModelResponse(
            text=response.text or "",
            input_tokens=(usage.prompt_token_count or 0) if usage else 0,
            output_tokens=(usage.candidates_token_count or 0) if usage else 0,
        )

    async def _record_usage(
        self,
        recorder: Optional[UsageRecorder],
        started: float,
        response: Optional[ModelResponse],
        error: Optional[str] = None,
        job_id: Optional[int] = None,
        candidate_id: Optional[int] = None,
    ) -> None:
        if recorder is None:
            return
        event = UsageEvent(
            endpoint=self.name,
            model=self.model,
            success=error is None,
            input_tokens=response.input_tokens if response else 0,
            output_tokens=response.output_tokens if response else 0,
            response_time_ms=int((time.perf_counter() - started) * 1000),
            error_message=error,
            job_id=job_id,
            candidate_id=candidate_id,
        )
        try:
            await recorder(event)
        except Exception as e:
            logger.error(f"Failed to record usage for {self.name}: {e}")

    @abstractmethod
    async def process(self, input_data: Dict[str, Any], **kwargs: Any) -> AgentResult:
        """Process input data and return a result that is never an exception.

        Args:
            input_data: Input data for the agent

        Returns:
            AgentResult carrying parsed data or placeholder data
        """
        pass
