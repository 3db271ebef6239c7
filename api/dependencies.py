"""FastAPI dependencies for dependency injection."""

from typing import Optional

from fastapi import Depends, Request
from sqlalchemy.ext.asyncio import AsyncSession

from agents import registry
from agents.evaluation.agent import EvaluationAgent
from agents.resume.agent import ResumeAgent
from api.services.shortlisting import ShortlistingService, get_ai_limiter
from core.middleware.logging import get_client_ip
from core.throttle import AsyncTokenBucket
from database.engine import AsyncSessionLocal, get_db


def get_resume_agent() -> ResumeAgent:
    """Shared field-extraction agent."""
    return registry.get("extract_candidate_info")


def get_evaluation_agent() -> EvaluationAgent:
    """Shared match-analysis agent."""
    return registry.get("analyze_resume_match")


def get_usage_session_factory():
    """Session factory for usage rows written outside the request session."""
    return AsyncSessionLocal


async def get_shortlisting_service(
    db: AsyncSession = Depends(get_db),
    resume_agent: ResumeAgent = Depends(get_resume_agent),
    evaluation_agent: EvaluationAgent = Depends(get_evaluation_agent),
    limiter: AsyncTokenBucket = Depends(get_ai_limiter),
    usage_session_factory=Depends(get_usage_session_factory),
) -> ShortlistingService:
    """Shortlisting orchestrator bound to the request session."""
    return ShortlistingService(
        db,
        resume_agent=resume_agent,
        evaluation_agent=evaluation_agent,
        limiter=limiter,
        usage_session_factory=usage_session_factory,
    )


def get_request_context(request: Request) -> dict[str, Optional[str]]:
    """Client address and user agent recorded with audit entries."""
    return {
        "ip_address": get_client_ip(request),
        "user_agent": request.headers.get("user-agent"),
    }
