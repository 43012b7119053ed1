from fastapi import APIRouter, Depends, HTTPException, Query, Request, status
from fastapi.responses import PlainTextResponse

from upload_broker.api.deps import get_upload_broker
from upload_broker.schemas import InitiateUploadResponse, PresignedPartResponse
from upload_broker.services.storage import StorageError
from upload_broker.services.uploads import (
    ConfigurationError,
    InvalidUploadRequest,
    UploadBroker,
)

router = APIRouter(tags=["uploads"])


def _config_error(exc: ConfigurationError) -> HTTPException:
    return HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail=str(exc))


@router.get(
    "/initiate",
    response_model=InitiateUploadResponse,
    status_code=status.HTTP_202_ACCEPTED,
)
async def initiate_upload(
    key: str | None = None,
    broker: UploadBroker = Depends(get_upload_broker),
) -> InitiateUploadResponse:
    try:
        upload_id = await broker.initiate(key)
    except InvalidUploadRequest as exc:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc)) from exc
    except ConfigurationError as exc:
        raise _config_error(exc) from exc
    except StorageError as exc:
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail=f"Failed to create multipart upload: {exc}",
        ) from exc
    return InitiateUploadResponse(upload_id=upload_id)


@router.get(
    "/presigned",
    response_model=PresignedPartResponse,
    status_code=status.HTTP_201_CREATED,
)
async def get_presigned_url(
    key: str | None = None,
    upload_id: str | None = Query(default=None, alias="uploadId"),
    part_number: str | None = Query(default=None, alias="partNumber"),
    broker: UploadBroker = Depends(get_upload_broker),
) -> PresignedPartResponse:
    try:
        return broker.presign_part(key, upload_id, part_number)
    except InvalidUploadRequest as exc:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc)) from exc
    except ConfigurationError as exc:
        raise _config_error(exc) from exc
    except StorageError as exc:
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail=f"Failed to generate presigned URL: {exc}",
        ) from exc


@router.post("/complete", response_class=PlainTextResponse)
async def complete_upload(
    request: Request,
    key: str | None = None,
    upload_id: str | None = Query(default=None, alias="uploadId"),
    broker: UploadBroker = Depends(get_upload_broker),
) -> PlainTextResponse:
    body = await request.body()
    try:
        await broker.complete(key, upload_id, body)
    except InvalidUploadRequest as exc:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc)) from exc
    except ConfigurationError as exc:
        raise _config_error(exc) from exc
    except StorageError as exc:
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail=f"Failed to complete multipart upload: {exc}",
        ) from exc
    return PlainTextResponse("Multipart upload completed successfully")
