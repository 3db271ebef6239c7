"""
AI shortlisting endpoint.

Analyzes uploaded resumes, or every existing candidate, against a job and
stores the results as job applications.
"""

import logging

from fastapi import APIRouter, Depends, HTTPException, status

from api.dependencies import get_shortlisting_service
from api.schemas.shortlist import ShortlistRequest, ShortlistResponse
from api.services.errors import ServiceError
from api.services.shortlisting import ShortlistingService
from core.middleware.authentication import get_current_user_id
from core.middleware.authorization import (
    Permission,
    PermissionResolver,
    get_permission_resolver,
)

logger = logging.getLogger(__name__)

router = APIRouter(tags=["shortlisting"])


@router.post(
    "/ai-shortlist",
    response_model=ShortlistResponse,
    summary="AI Shortlist",
    description="Score resumes or existing candidates against a job. Requires ai.shortlist permission.",
)
async def ai_shortlist(
    body: ShortlistRequest,
    user_id: str = Depends(get_current_user_id),
    resolver: PermissionResolver = Depends(get_permission_resolver),
    service: ShortlistingService = Depends(get_shortlisting_service),
):
    """Run AI shortlisting in upload or batch mode."""
    if not body.job_id:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Job ID is required")
    if not body.organization_id:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST, detail="Organization ID is required"
        )

    if not await resolver.can(user_id, Permission.AI_SHORTLIST, body.organization_id):
        logger.warning(
            f"User {user_id} denied AI shortlisting in organization {body.organization_id}"
        )
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="You do not have permission to use AI shortlisting",
        )

    try:
        return await service.shortlist(
            user_id=user_id,
            job_id=body.job_id,
            organization_id=body.organization_id,
            mode=body.mode,
            resumes=body.resumes,
            custom_extract_prompt=body.custom_extract_prompt,
            custom_analysis_prompt=body.custom_analysis_prompt,
        )
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)
