from pydantic import AliasChoices, BaseModel, Field, field_validator

from controlplane.services.presign import MAX_BUCKET_NAME_LENGTH, UploadRoute, is_query_safe


class PresignRequest(BaseModel):
    bucket: str = Field(..., min_length=1, max_length=MAX_BUCKET_NAME_LENGTH)
    object_key: str = Field(
        ...,
        min_length=1,
        validation_alias=AliasChoices("object_key", "objectKey"),
    )
    file_size: int | None = Field(
        default=None,
        ge=0,
        validation_alias=AliasChoices("file_size", "fileSize"),
    )

    @field_validator("bucket", "object_key")
    @classmethod
    def validate_query_safe(cls, v: str) -> str:
        if not is_query_safe(v):
            raise ValueError("must not contain '&', '#', '=' or control characters")
        return v


class PresignResponse(BaseModel):
    presigned_url: str
    method: str
    expires_at: int
    upload_route: UploadRoute | None = None
