from fastapi import APIRouter, Depends, HTTPException, status
from fastapi.responses import Response

from entitlement_api.business.catalog import router as catalog_router
from entitlement_api.business.entitlement import router as entitlement_router
from entitlement_api.business.subscription import router as subscription_router
from entitlement_api.core.auth import AuthUser, require_role
from entitlement_api.core.config import get_settings
from entitlement_api.metrics import generate_metrics_payload, metrics_content_type

router = APIRouter()
router.include_router(catalog_router)
router.include_router(subscription_router)
router.include_router(entitlement_router)


@router.get("/health", tags=["system"])
def health() -> dict[str, str]:
    settings = get_settings()
    return {
        "status": "ok",
        "service": settings.app_name,
        "version": settings.app_version,
        "environment": settings.app_env,
    }


@router.get("/metrics", tags=["system"])
def metrics(_: AuthUser = Depends(require_role("system.metrics.read"))) -> Response:
    if not get_settings().metrics_enabled:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="not found")
    return Response(content=generate_metrics_payload(), media_type=metrics_content_type())
