from fastapi import APIRouter, Depends

from app.api.v2.dependencies import get_analytics_service, http_error, require_admin
from app.core.exceptions import BackendError
from app.schemas.progress.progress_schema import DashboardAnalytics
from app.schemas.user.auth_schema import AuthUser
from app.services.analytics_service import AnalyticsService

router = APIRouter()


@router.get("/dashboard", response_model=DashboardAnalytics)
async def read_dashboard(
    service: AnalyticsService = Depends(get_analytics_service),
    _admin: AuthUser = Depends(require_admin),
):
    try:
        return await service.dashboard()
    except BackendError as exc:
        raise http_error(exc) from exc
