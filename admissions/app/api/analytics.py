"""Admissions pipeline analytics endpoint."""

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from admissions.app.core.permissions import Permission
from admissions.app.db.session import get_db
from admissions.app.dependencies.auth import require_permission
from admissions.app.models.user import User
from admissions.app.schemas.analytics import PipelineAnalytics
from admissions.app.services.pipeline_analytics import get_pipeline_analytics

router = APIRouter(prefix="/admin/analytics", tags=["admin-analytics"])


@router.get("/pipeline", response_model=PipelineAnalytics)
async def pipeline_analytics(
    db: Session = Depends(get_db),
    current_user: User = Depends(require_permission(Permission.VIEW_ADMISSIONS_ANALYTICS)),
):
    return get_pipeline_analytics(db, current_user.tenant_id)
