"""
API usage accounting.

Every AI model call is written to ``api_usage_logs`` with its token counts
and cost, whether the call succeeded or not.
"""

from datetime import datetime, timedelta, timezone
import logging
from typing import Any, Callable, Dict, List, Optional

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from agents.base import UsageEvent, UsageRecorder
from database.engine import AsyncSessionLocal
from database.models.api_usage import ApiUsageLog
from lib.export import export_usage_logs_to_csv

logger = logging.getLogger(__name__)

# USD per 1M tokens
PRICING: Dict[str, Dict[str, float]] = {
    "gpt-4.1-nano": {"input": 0.10, "output": 0.40},
    "gpt-4": {"input": 30.00, "output": 60.00},
    "gemini-2.0-flash": {"input": 0.10, "output": 0.40},
    "gemini-2.0-flash-lite": {"input": 0.075, "output": 0.30},
    "gemini-2.5-flash": {"input": 0.30, "output": 2.50},
    "gemini-1.5-flash": {"input": 0.075, "output": 0.30},
    "gemini-1.5-pro": {"input": 1.25, "output": 5.00},
}
DEFAULT_PRICING_MODEL = "gpt-4.1-nano"

DEFAULT_SUMMARY_DAYS = 30

__all__ = [
    "PRICING",
    "calculate_cost",
    "log_api_usage",
    "make_usage_recorder",
    "get_usage_summary",
    "list_usage_logs",
    "export_usage_logs_to_csv",
    "format_cost",
    "format_tokens",
]


def calculate_cost(model: str, input_tokens: int, output_tokens: int) -> Dict[str, float]:
    """
    Price one model call.

    Unknown models are priced as ``DEFAULT_PRICING_MODEL``.

    Returns:
        Dictionary with input_cost, output_cost and total_cost in USD,
        each rounded to 6 decimal places
    """
    pricing = PRICING.get(model, PRICING[DEFAULT_PRICING_MODEL])
    input_cost = (input_tokens / 1_000_000) * pricing["input"]
    output_cost = (output_tokens / 1_000_000) * pricing["output"]
    return {
        "input_cost": round(input_cost, 6),
        "output_cost": round(output_cost, 6),
        "total_cost": round(input_cost + output_cost, 6),
    }


async def log_api_usage(
    session: AsyncSession,
    user_id: str,
    organization_id: int,
    event: UsageEvent,
    request_type: Optional[str] = None,
) -> Optional[ApiUsageLog]:
    """
    Store one usage row. Failures are logged and never raised.

    Args:
        session: Database session, committed on success
        user_id: User who triggered the call
        organization_id: Organization billed for the call
        event: Token counts and outcome reported by the agent
        request_type: Free-form grouping, e.g. ``upload`` or ``batch``

    Returns:
        The stored row, or None if it could not be written
    """
    cost = calculate_cost(event.model, event.input_tokens, event.output_tokens)
    entry = ApiUsageLog(
        user_id=user_id,
        organization_id=organization_id,
        endpoint=event.endpoint,
        model=event.model,
        request_type=request_type,
        candidate_id=event.candidate_id,
        job_id=event.job_id,
        input_tokens=event.input_tokens,
        output_tokens=event.output_tokens,
        total_tokens=event.input_tokens + event.output_tokens,
        input_cost=cost["input_cost"],
        output_cost=cost["output_cost"],
        total_cost=cost["total_cost"],
        success=event.success,
        error_message=event.error_message,
        response_time_ms=event.response_time_ms,
    )
    try:
        session.add(entry)
        await session.commit()
    except Exception as e:
        logger.error(f"Failed to log API usage for {event.endpoint}: {e}")
        await session.rollback()
        return None
    return entry


def make_usage_recorder(
    user_id: Optional[str],
    organization_id: Optional[int],
    request_type: Optional[str] = None,
    session_factory: Callable[[], AsyncSession] = AsyncSessionLocal,
) -> Optional[UsageRecorder]:
    """
    Build the recorder agents call after each model request.

    Each event is written in its own session so concurrent agent calls never
    share one. Returns None when the user or organization is unknown.
    """
    if not user_id or organization_id is None:
        return None

    async def record(event: UsageEvent) -> None:
        async with session_factory() as session:
            await log_api_usage(session, user_id, organization_id, event, request_type)

    return record


def _default_range(
    start: Optional[datetime], end: Optional[datetime]
) -> tuple[datetime, datetime]:
    end = end or datetime.now(timezone.utc)
    start = start or end - timedelta(days=DEFAULT_SUMMARY_DAYS)
    return start, end


async def list_usage_logs(
    session: AsyncSession,
    organization_id: int,
    start: Optional[datetime] = None,
    end: Optional[datetime] = None,
    limit: Optional[int] = None,
) -> List[ApiUsageLog]:
    """Usage rows for an organization, newest first. Defaults to the last 30 days."""
    start, end = _default_range(start, end)
    query = (
        select(ApiUsageLog)
        .where(ApiUsageLog.organization_id == organization_id)
        .where(ApiUsageLog.created_at >= start)
        .where(ApiUsageLog.created_at <= end)
        .order_by(ApiUsageLog.created_at.desc(), ApiUsageLog.id.desc())
    )
    if limit is not None:
        query = query.limit(limit)
    result = await session.execute(query)
    return list(result.scalars().all())


async def get_usage_summary(
    session: AsyncSession,
    organization_id: int,
    start: Optional[datetime] = None,
    end: Optional[datetime] = None,
) -> Dict[str, Any]:
    """
    Aggregate usage for an organization.

    Args:
        session: Database session
        organization_id: Organization to summarize
        start: Range start, defaults to 30 days before ``end``
        end: Range end, defaults to now

    Returns:
        Dictionary with totals and a per-endpoint breakdown
    """
    logs = await list_usage_logs(session, organization_id, start, end)

    summary: Dict[str, Any] = {
        "totalRequests": 0,
        "successfulRequests": 0,
        "failedRequests": 0,
        "totalInputTokens": 0,
        "totalOutputTokens": 0,
        "totalTokens": 0,
        "totalCost": 0.0,
        "byEndpoint": {},
    }
    for log in logs:
        summary["totalRequests"] += 1
        if log.success:
            summary["successfulRequests"] += 1
        else:
            summary["failedRequests"] += 1
        summary["totalInputTokens"] += log.input_tokens
        summary["totalOutputTokens"] += log.output_tokens
        summary["totalTokens"] += log.total_tokens
        summary["totalCost"] += log.total_cost

        endpoint = summary["byEndpoint"].setdefault(
            log.endpoint, {"requests": 0, "tokens": 0, "cost": 0.0}
        )
        endpoint["requests"] += 1
        endpoint["tokens"] += log.total_tokens
        endpoint["cost"] = round(endpoint["cost"] + log.total_cost, 6)

    summary["totalCost"] = round(summary["totalCost"], 6)
    return summary


def format_cost(cost: float) -> str:
    """Format USD with 4 to 6 decimals, e.g. ``$0.0012`` or ``$0.000123``."""
    text = f"{cost:,.6f}".rstrip("0")
    whole, _, fraction = text.partition(".")
    return f"${whole}.{fraction.ljust(4, '0')}"


def format_tokens(tokens: int) -> str:
    if tokens >= 1_000_000:
        return f"{tokens / 1_000_000:.2f}M"
    if tokens >= 1_000:
        return f"{tokens / 1_000:.2f}K"
    return str(tokens)
