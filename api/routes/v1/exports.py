"""
CSV export and usage reporting endpoints.

Each export is scoped to one organization and recorded in the audit log.
"""

from datetime import datetime
from typing import Optional

from fastapi import APIRouter, Depends, Query, Response
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from api.dependencies import get_request_context
from api.services.audit import get_audit_logs, log_audit
from api.services.usage import get_usage_summary, list_usage_logs
from core.middleware.authentication import get_current_user_id
from core.middleware.authorization import Permission, require_permission
from database.engine import get_db
from database.models.audit import AuditAction, AuditResourceType
from database.models.candidates import Candidate
from database.models.jobs import JobListing
from lib.export import (
    export_audit_logs_to_csv,
    export_candidates_to_csv,
    export_jobs_to_csv,
    export_usage_logs_to_csv,
)

router = APIRouter(tags=["exports"])

MAX_AUDIT_EXPORT_ROWS = 10_000


def csv_response(content: str, filename: str) -> Response:
    return Response(
        content=content,
        media_type="text/csv",
        headers={"Content-Disposition": f'attachment; filename="{filename}"'},
    )


def _stamp() -> str:
    return datetime.now().strftime("%Y-%m-%d")


async def _audit_export(
    db: AsyncSession,
    user_id: str,
    organization_id: int,
    resource_type: AuditResourceType,
    rows: int,
    context: dict,
) -> None:
    await log_audit(
        db,
        user_id=user_id,
        organization_id=organization_id,
        action=AuditAction.EXPORT,
        resource_type=resource_type,
        details={"rows": rows},
        **context,
    )


@router.get(
    "/usage/summary",
    summary="Usage Summary",
    description="AI usage totals for an organization. Requires usage.read permission.",
)
async def usage_summary(
    organization_id: int = Depends(require_permission(Permission.USAGE_READ)),
    start: Optional[datetime] = Query(None, description="Range start, defaults to 30 days ago"),
    end: Optional[datetime] = Query(None, description="Range end, defaults to now"),
    db: AsyncSession = Depends(get_db),
):
    return await get_usage_summary(db, organization_id, start, end)


@router.get(
    "/usage/export",
    summary="Export Usage",
    description="AI usage log as CSV. Requires usage.export permission.",
)
async def export_usage(
    organization_id: int = Depends(require_permission(Permission.USAGE_EXPORT)),
    start: Optional[datetime] = Query(None, description="Range start, defaults to 30 days ago"),
    end: Optional[datetime] = Query(None, description="Range end, defaults to now"),
    user_id: str = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_db),
    context: dict = Depends(get_request_context),
):
    logs = await list_usage_logs(db, organization_id, start, end)
    content = export_usage_logs_to_csv(logs)
    await _audit_export(db, user_id, organization_id, AuditResourceType.ORGANIZATION, len(logs), context)
    return csv_response(content, f"api-usage-{_stamp()}.csv")


@router.get(
    "/candidates/export",
    summary="Export Candidates",
    description="All candidates of an organization as CSV. Requires candidates.export permission.",
)
async def export_candidates(
    organization_id: int = Depends(require_permission(Permission.CANDIDATES_EXPORT)),
    user_id: str = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_db),
    context: dict = Depends(get_request_context),
):
    result = await db.execute(
        select(Candidate)
        .where(Candidate.organization_id == organization_id)
        .order_by(Candidate.created_at.desc(), Candidate.id.desc())
    )
    candidates = list(result.scalars().all())
    content = export_candidates_to_csv(candidates)
    await _audit_export(
        db, user_id, organization_id, AuditResourceType.CANDIDATE, len(candidates), context
    )
    return csv_response(content, f"candidates-{_stamp()}.csv")


@router.get(
    "/jobs/export",
    summary="Export Jobs",
    description="All job listings of an organization as CSV. Requires jobs.export permission.",
)
async def export_jobs(
    organization_id: int = Depends(require_permission(Permission.JOBS_EXPORT)),
    user_id: str = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_db),
    context: dict = Depends(get_request_context),
):
    result = await db.execute(
        select(JobListing)
        .where(JobListing.organization_id == organization_id)
        .order_by(JobListing.created_at.desc(), JobListing.id.desc())
    )
    jobs = list(result.scalars().all())
    content = export_jobs_to_csv(jobs)
    await _audit_export(db, user_id, organization_id, AuditResourceType.JOB, len(jobs), context)
    return csv_response(content, f"job-listings-{_stamp()}.csv")


@router.get(
    "/audit/export",
    summary="Export Audit Log",
    description="Audit log of an organization as CSV. Requires audit.read permission.",
)
async def export_audit(
    organization_id: int = Depends(require_permission(Permission.AUDIT_READ)),
    start: Optional[datetime] = Query(None, description="Only entries at or after this time"),
    end: Optional[datetime] = Query(None, description="Only entries at or before this time"),
    db: AsyncSession = Depends(get_db),
):
    entries = await get_audit_logs(
        db, organization_id, start=start, end=end, limit=MAX_AUDIT_EXPORT_ROWS
    )
    return csv_response(export_audit_logs_to_csv(entries), f"audit-log-{_stamp()}.csv")
