from datetime import datetime, timezone
from typing import Any, Callable, Optional

from pydantic import BaseModel, ConfigDict, field_validator
from pydantic_settings import BaseSettings
from starlette.requests import Request

# S3 rejects multipart chunks smaller than this (except the last one)
MIN_PART_SIZE = 5 * 1024 * 1024


class Settings(BaseSettings):
    aws_access_key_id: Optional[str] = None
    aws_secret_access_key: Optional[str] = None
    aws_session_token: Optional[str] = None
    aws_region: str = "us-east-1"
    s3_endpoint_url: Optional[str] = None
    s3_bucket_name: str = ""
    s3_bucket_acl: str = "private"
    s3_create_bucket: bool = True
    s3_file_acl: str = "private"
    s3_part_size: int = MIN_PART_SIZE
    log_level: str = "INFO"
    log_json: bool = True

    class Config:
        env_file = ".env"


settings = Settings()


def date_prefix(request: Request) -> str:
    """Default key prefix: the current UTC date as ``/YYYY/MM/DD/``."""
    return datetime.now(timezone.utc).strftime("/%Y/%m/%d/")


class UploadConfig(BaseModel):
    """
    Everything the upload interceptor needs at construction time.

    Either pass a ready boto3 S3 ``client`` or let one be built from the
    endpoint and credential fields (boto3's default credential chain applies
    to whatever is left unset).
    """

    bucket: str
    client: Any = None
    endpoint_url: Optional[str] = None
    region: Optional[str] = None
    access_key_id: Optional[str] = None
    secret_access_key: Optional[str] = None
    session_token: Optional[str] = None
    bucket_acl: str = "private"
    create_bucket: bool = True
    file_acl: str = "private"
    part_size: int = MIN_PART_SIZE
    prefix_func: Callable[[Request], str] = date_prefix
    logger: Any = None

    model_config = ConfigDict(arbitrary_types_allowed=True)

    @field_validator("bucket")
    @classmethod
    def bucket_required(cls, value: str) -> str:
        value = value.strip()
        if not value:
            raise ValueError("bucket name is required")
        return value

    @field_validator("bucket_acl", "file_acl")
    @classmethod
    def acl_default(cls, value: str) -> str:
        return value or "private"

    @field_validator("part_size")
    @classmethod
    def part_size_minimum(cls, value: int) -> int:
        # smaller values are raised to the minimum rather than rejected
        return max(value, MIN_PART_SIZE)

    @classmethod
    def from_settings(cls, source: Settings = settings, **overrides: Any) -> "UploadConfig":
        values = {
            "bucket": source.s3_bucket_name,
            "endpoint_url": source.s3_endpoint_url,
            "region": source.aws_region,
            "access_key_id": source.aws_access_key_id,
            "secret_access_key": source.aws_secret_access_key,
            "session_token": source.aws_session_token,
            "bucket_acl": source.s3_bucket_acl,
            "create_bucket": source.s3_create_bucket,
            "file_acl": source.s3_file_acl,
            "part_size": source.s3_part_size,
        }
        values.update(overrides)
        return cls(**values)
