from fastapi import APIRouter, Depends

from upload_broker.api.deps import get_upload_broker
from upload_broker.services.uploads import UploadBroker

router = APIRouter(tags=["health"])


@router.get("/health")
async def health_check(broker: UploadBroker = Depends(get_upload_broker)) -> dict:
    return {
        "status": "ok",
        "service": broker.settings.service_name,
        "storage": getattr(broker.storage, "scheme", "custom"),
    }
