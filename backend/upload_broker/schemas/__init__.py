from upload_broker.schemas.uploads import (
    CompletedPart,
    CompleteUploadRequest,
    InitiateUploadResponse,
    PresignedPartResponse,
)

__all__ = [
    "CompletedPart",
    "CompleteUploadRequest",
    "InitiateUploadResponse",
    "PresignedPartResponse",
]
