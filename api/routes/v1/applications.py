"""
Job application endpoints.

Lets reviewers overrule the AI shortlisting decision for an application.
"""

from fastapi import APIRouter, Depends, HTTPException, Path
from sqlalchemy.ext.asyncio import AsyncSession

from api.dependencies import get_request_context
from api.schemas.shortlist import OverrideResponse
from api.services.errors import ServiceError
from api.services.shortlisting import override_application
from core.middleware.authentication import get_current_user_id
from core.middleware.authorization import Permission, require_permission
from database.engine import get_db

router = APIRouter(prefix="/applications", tags=["applications"])


@router.post(
    "/{application_id}/override",
    response_model=OverrideResponse,
    summary="Override Application",
    description="Mark an application and its candidate as overridden. Requires applications.override permission.",
)
async def override(
    application_id: int = Path(..., description="Application ID"),
    organization_id: int = Depends(require_permission(Permission.APPLICATIONS_OVERRIDE)),
    user_id: str = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_db),
    context: dict = Depends(get_request_context),
):
    """Overrule the AI decision for one application."""
    try:
        return await override_application(
            db,
            user_id=user_id,
            organization_id=organization_id,
            application_id=application_id,
            **context,
        )
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)
