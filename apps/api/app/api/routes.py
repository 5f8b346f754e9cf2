from fastapi import APIRouter, Depends, HTTPException, status
from fastapi.responses import Response

from app.accounts.api import auth_router, user_router
from app.actions.api import router as actions_router
from app.core.auth import AuthUser, get_current_user
from app.core.config import get_settings
from app.crm.api import companies_router, contacts_router
from app.metrics import generate_metrics_payload, metrics_content_type
from app.platform.ledger.api import admin_router as credits_admin_router
from app.platform.ledger.api import router as credits_router

router = APIRouter()
for sub_router in (
    auth_router,
    user_router,
    credits_router,
    credits_admin_router,
    contacts_router,
    companies_router,
    actions_router,
):
    router.include_router(sub_router)


@router.get("/health", tags=["system"])
def health() -> dict[str, str]:
    settings = get_settings()
    return {"status": "ok", "service": settings.app_name, "environment": settings.app_env}


@router.get("/metrics", tags=["system"])
def metrics(user: AuthUser = Depends(get_current_user)) -> Response:
    if not get_settings().metrics_enabled:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="not found")
    if "system.metrics.read" not in user.roles:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Missing permission: system.metrics.read")
    return Response(content=generate_metrics_payload(), media_type=metrics_content_type())
