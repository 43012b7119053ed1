import asyncio
import logging
from collections.abc import Sequence
from typing import Final, Protocol
from urllib.parse import quote, urlencode
from uuid import uuid4

import boto3
from botocore.client import Config
from botocore.exceptions import BotoCoreError, ClientError

from upload_broker.core.config import Settings, get_settings
from upload_broker.schemas import CompletedPart

logger = logging.getLogger(__name__)


class StorageError(Exception):
    """Raised when the storage provider rejects or fails an operation."""


class StorageGateway(Protocol):
    async def create_multipart_upload(self, bucket: str, key: str) -> str: ...

    def presign_upload_part(
        self,
        bucket: str,
        key: str,
        upload_id: str,
        part_number: int,
        expires_in: int,
    ) -> str: ...

    async def complete_multipart_upload(
        self,
        bucket: str,
        key: str,
        upload_id: str,
        parts: Sequence[CompletedPart],
    ) -> None: ...


class StorageService:
    """S3 multipart upload operations backed by boto3."""

    scheme: Final[str] = "s3"

    def __init__(self, settings: Settings | None = None) -> None:
        self.settings = settings or get_settings()
        session = boto3.session.Session()
        self.client = session.client(
            "s3",
            endpoint_url=str(self.settings.s3_endpoint) if self.settings.s3_endpoint else None,
            aws_access_key_id=self.settings.aws_access_key_id,
            aws_secret_access_key=self.settings.aws_secret_access_key,
            aws_session_token=self.settings.aws_session_token,
            region_name=self.settings.aws_region,
            config=Config(signature_version="s3v4"),
        )

    async def create_multipart_upload(self, bucket: str, key: str) -> str:
        def _create() -> str:
            response = self.client.create_multipart_upload(Bucket=bucket, Key=key)
            return response["UploadId"]

        try:
            return await asyncio.to_thread(_create)
        except (BotoCoreError, ClientError) as exc:
            raise StorageError(str(exc)) from exc

    def presign_upload_part(
        self,
        bucket: str,
        key: str,
        upload_id: str,
        part_number: int,
        expires_in: int,
    ) -> str:
        try:
            return self.client.generate_presigned_url(
                "upload_part",
                Params={
                    "Bucket": bucket,
                    "Key": key,
                    "UploadId": upload_id,
                    "PartNumber": part_number,
                },
                ExpiresIn=expires_in,
            )
        except (BotoCoreError, ClientError) as exc:
            raise StorageError(str(exc)) from exc

    async def complete_multipart_upload(
        self,
        bucket: str,
        key: str,
        upload_id: str,
        parts: Sequence[CompletedPart],
    ) -> None:
        completed = [{"PartNumber": part.part_number, "ETag": part.etag} for part in parts]

        def _complete() -> None:
            self.client.complete_multipart_upload(
                Bucket=bucket,
                Key=key,
                UploadId=upload_id,
                MultipartUpload={"Parts": completed},
            )

        try:
            await asyncio.to_thread(_complete)
        except (BotoCoreError, ClientError) as exc:
            raise StorageError(str(exc)) from exc


class MemoryStorageService:
    """In-process multipart store intended for development use.

    Sessions live only as long as the process. Presigned URLs use the
    ``memory://`` scheme and cannot receive bytes.
    """

    scheme: Final[str] = "memory"

    def __init__(self) -> None:
        self._sessions: dict[str, tuple[str, str]] = {}

    async def create_multipart_upload(self, bucket: str, key: str) -> str:
        upload_id = uuid4().hex
        self._sessions[upload_id] = (bucket, key)
        return upload_id

    def presign_upload_part(
        self,
        bucket: str,
        key: str,
        upload_id: str,
        part_number: int,
        expires_in: int,
    ) -> str:
        query = urlencode(
            {"partNumber": part_number, "uploadId": upload_id, "X-Expires": expires_in}
        )
        return f"memory://{bucket}/{quote(key)}?{query}"

    async def complete_multipart_upload(
        self,
        bucket: str,
        key: str,
        upload_id: str,
        parts: Sequence[CompletedPart],
    ) -> None:
        if self._sessions.get(upload_id) != (bucket, key):
            raise StorageError(
                "NoSuchUpload: The specified upload does not exist. "
                "The upload ID may be invalid, or the upload may have been aborted or completed."
            )
        if not parts:
            raise StorageError(
                "MalformedXML: The XML you provided was not well-formed "
                "or did not validate against our published schema"
            )
        numbers = [part.part_number for part in parts]
        if numbers != sorted(set(numbers)) or numbers[0] < 1:
            raise StorageError("InvalidPartOrder: The list of parts was not in ascending order.")

        del self._sessions[upload_id]
        logger.debug("Completed in-memory upload %s for %s/%s", upload_id, bucket, key)


_storage_service: StorageService | MemoryStorageService | None = None


def get_storage_service() -> StorageService | MemoryStorageService:
    global _storage_service
    if _storage_service is None:
        settings = get_settings()
        if settings.storage_backend == "memory":
            _storage_service = MemoryStorageService()
        else:
            _storage_service = StorageService(settings)
    return _storage_service


def reset_storage_service() -> None:
    global _storage_service
    _storage_service = None
