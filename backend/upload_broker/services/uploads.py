import logging
import re
from datetime import datetime, timedelta, timezone

from pydantic import ValidationError

from upload_broker.core.config import Settings, get_settings
from upload_broker.schemas import CompletedPart, CompleteUploadRequest, PresignedPartResponse
from upload_broker.services.storage import StorageError, StorageGateway

logger = logging.getLogger(__name__)

PART_URL_TTL = timedelta(hours=1)
MAX_PART_NUMBER_VALUE = 2**31 - 1

_PART_NUMBER_RE = re.compile(r"[+-]?[0-9]+")


class ConfigurationError(Exception):
    """Raised when a required process-wide setting is missing."""


class InvalidUploadRequest(ValueError):
    """Raised when request parameters are missing or malformed."""


def parse_part_number(value: str | None) -> int:
    if value is None or not _PART_NUMBER_RE.fullmatch(value):
        raise InvalidUploadRequest("Invalid 'partNumber' parameter")
    part_number = int(value)
    # S3 carries PartNumber as a 32-bit integer
    if not 0 < part_number <= MAX_PART_NUMBER_VALUE:
        raise InvalidUploadRequest("Invalid 'partNumber' parameter")
    return part_number


def parse_completed_parts(body: bytes) -> list[CompletedPart]:
    try:
        payload = CompleteUploadRequest.model_validate_json(body)
    except ValidationError as exc:
        raise InvalidUploadRequest(f"Failed to parse request body: {exc}") from exc
    return payload.parts


class UploadBroker:
    """Maps the initiate / presign / complete handshake onto a storage gateway.

    Holds no per-upload state: the upload id, key and part list travel with
    every request and storage is the only judge of whether they are valid.
    """

    def __init__(self, storage: StorageGateway, settings: Settings | None = None) -> None:
        self.settings = settings or get_settings()
        self.storage = storage

    def _bucket(self) -> str:
        bucket = self.settings.aws_bucket
        if not bucket:
            raise ConfigurationError("AWS_BUCKET environment variable is not set")
        return bucket

    async def initiate(self, key: str | None) -> str:
        bucket = self._bucket()
        if not key:
            raise InvalidUploadRequest("Missing 'key' parameter")

        try:
            upload_id = await self.storage.create_multipart_upload(bucket, key)
        except StorageError:
            logger.warning("Failed to create multipart upload for %s/%s", bucket, key)
            raise

        logger.info("Initiated multipart upload %s for %s/%s", upload_id, bucket, key)
        return upload_id

    def presign_part(
        self,
        key: str | None,
        upload_id: str | None,
        part_number: str | None,
    ) -> PresignedPartResponse:
        if not upload_id:
            raise InvalidUploadRequest("Missing 'uploadId' parameter")
        if not key:
            raise InvalidUploadRequest("Missing 'key' parameter")
        number = parse_part_number(part_number)
        bucket = self._bucket()

        try:
            url = self.storage.presign_upload_part(
                bucket,
                key,
                upload_id,
                number,
                expires_in=int(PART_URL_TTL.total_seconds()),
            )
        except StorageError:
            logger.warning("Failed to presign part %d of upload %s", number, upload_id)
            raise

        expires_at = datetime.now(timezone.utc).replace(microsecond=0) + PART_URL_TTL
        return PresignedPartResponse(
            upload_url=url,
            upload_id=upload_id,
            part_number=number,
            expires_at=expires_at,
        )

    async def complete(
        self,
        key: str | None,
        upload_id: str | None,
        body: bytes,
    ) -> None:
        if not key or not upload_id:
            raise InvalidUploadRequest("Missing 'key' or 'uploadId' parameter")
        parts = parse_completed_parts(body)
        bucket = self._bucket()

        try:
            await self.storage.complete_multipart_upload(bucket, key, upload_id, parts)
        except StorageError:
            logger.warning(
                "Failed to complete multipart upload %s for %s/%s (%d parts)",
                upload_id,
                bucket,
                key,
                len(parts),
            )
            raise

        logger.info("Completed multipart upload %s for %s/%s", upload_id, bucket, key)
