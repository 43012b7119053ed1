from datetime import datetime
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, StrictInt, StrictStr, model_validator


def _match_field_names(data: Any, names: dict[str, str]) -> Any:
    """Map request keys onto aliases without regard to case."""
    if not isinstance(data, dict):
        return data
    return {
        names.get(key.lower(), key) if isinstance(key, str) else key: value
        for key, value in data.items()
    }


class InitiateUploadResponse(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    upload_id: str = Field(..., alias="uploadId")


class PresignedPartResponse(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    upload_url: str = Field(..., alias="uploadUrl")
    upload_id: str = Field(..., alias="uploadId")
    part_number: int = Field(..., alias="partNumber")
    expires_at: datetime = Field(..., alias="expiresAt")


class CompletedPart(BaseModel):
    # Zero values are forwarded as-is; storage rejects them.
    part_number: StrictInt = Field(default=0, alias="PartNumber")
    etag: StrictStr = Field(default="", alias="ETag")

    @model_validator(mode="before")
    @classmethod
    def _wire_names(cls, data: Any) -> Any:
        return _match_field_names(data, {"partnumber": "PartNumber", "etag": "ETag"})


class CompleteUploadRequest(BaseModel):
    parts: list[CompletedPart] = Field(default_factory=list)

    @model_validator(mode="before")
    @classmethod
    def _wire_names(cls, data: Any) -> Any:
        return _match_field_names(data, {"parts": "parts"})
