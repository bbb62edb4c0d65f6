from datetime import datetime, timezone
from typing import Dict

from fastapi import APIRouter, Depends, Request, status

from src.api.controller.auth.dto.output_dto import HealthCheckResponseDto
from src.core.dependencies import get_record_store
from src.infra.store.base import RecordStore
from src.infra.config.settings import settings

router = APIRouter(tags=["Health"])


async def check_store_health(store: RecordStore) -> Dict[str, str]:
    """Check record store connection health."""
    if await store.ping():
        return {"status": "healthy", "backend": settings.STORE_BACKEND}
    return {"status": "unhealthy", "backend": settings.STORE_BACKEND}


@router.get("/health", status_code=status.HTTP_200_OK, response_model=HealthCheckResponseDto)
async def health_check(request: Request, store: RecordStore = Depends(get_record_store)):
    """
    Health check endpoint.
    Reports the record store status; the API itself is healthy if it answers.
    """
    store_health = await check_store_health(store)

    services = {
        "record_store": store_health["status"],
        "api_gateway": "healthy"
    }

    overall_status = "healthy"
    if any(service_status == "unhealthy" for service_status in services.values()):
        overall_status = "degraded"

    return HealthCheckResponseDto(
        status=overall_status,
        services=services,
        timestamp=datetime.now(timezone.utc).isoformat()
    )
