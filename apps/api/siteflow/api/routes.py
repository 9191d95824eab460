from fastapi import APIRouter, Depends, HTTPException, status
from fastapi.responses import Response

from siteflow.business.invoices.api import router as invoices_router
from siteflow.business.quotations.api import router as quotations_router
from siteflow.core.auth import AuthUser, get_current_user
from siteflow.core.config import get_settings
from siteflow.messaging.api import router as messages_router
from siteflow.metrics import generate_metrics_payload, metrics_content_type
from siteflow.notifications.api import router as workflow_messages_router

router = APIRouter()
router.include_router(quotations_router)
router.include_router(invoices_router)
router.include_router(workflow_messages_router)
router.include_router(messages_router)


@router.get("/health", tags=["system"])
def health() -> dict[str, str]:
    settings = get_settings()
    return {
        "status": "ok",
        "service": settings.app_name,
        "environment": settings.app_env,
        "document_store": settings.document_store_backend,
    }


@router.get("/metrics", tags=["system"])
def metrics(user: AuthUser = Depends(get_current_user)) -> Response:
    settings = get_settings()
    if not settings.metrics_enabled:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="not found")
    if "system.metrics.read" not in user.roles:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Missing permission: system.metrics.read")
    return Response(content=generate_metrics_payload(), media_type=metrics_content_type())
