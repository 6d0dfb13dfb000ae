import boto3
import structlog
from boto3.s3.transfer import TransferConfig
from botocore.client import Config
from botocore.exceptions import BotoCoreError, ClientError
from typing import Any, BinaryIO, Optional

from s3uploads.config import UploadConfig
from s3uploads.errors import Stage, UploadPipelineError

logger = structlog.get_logger()

# S3 answers a re-create by the owner with this code; it is not a failure
BUCKET_OWNED_CODE = "BucketAlreadyOwnedByYou"


def build_client(config: UploadConfig) -> Any:
    """
    Return the configured S3 client, building one if none was given.

    Args:
        config: Upload configuration with a client or endpoint/credentials

    Returns:
        A boto3 S3 client

    Raises:
        UploadPipelineError: If the client cannot be constructed
    """
    if config.client is not None:
        return config.client

    try:
        return boto3.client(
            's3',
            endpoint_url=config.endpoint_url,
            aws_access_key_id=config.access_key_id,
            aws_secret_access_key=config.secret_access_key,
            aws_session_token=config.session_token,
            region_name=config.region,
            config=Config(
                signature_version="s3v4",
                # custom endpoints (MinIO and friends) rarely resolve virtual hosts
                s3={"addressing_style": "path" if config.endpoint_url else "auto"}
            )
        )
    except (BotoCoreError, ValueError) as e:
        raise UploadPipelineError(Stage.BUCKET_SETUP, "failed to create S3 client", e) from e


class S3Service:
    def __init__(self, client: Any, bucket: str, file_acl: str = "private",
                 part_size: int = 5 * 1024 * 1024, log: Optional[Any] = None):
        self.s3_client = client
        self.bucket_name = bucket
        self.file_acl = file_acl
        self.logger = log or logger
        self.transfer_config = TransferConfig(
            multipart_threshold=part_size,
            multipart_chunksize=part_size
        )

    @classmethod
    def from_config(cls, config: UploadConfig, log: Optional[Any] = None) -> "S3Service":
        return cls(
            build_client(config),
            config.bucket,
            file_acl=config.file_acl,
            part_size=config.part_size,
            log=log
        )

    def ensure_bucket(self, acl: str = "private") -> bool:
        """
        Create the bucket, treating an existing bucket we own as success.

        Args:
            acl: Canned ACL applied when the bucket is created

        Returns:
            True if the bucket was created, False if it was already ours

        Raises:
            UploadPipelineError: For any other failure
        """
        params = {"Bucket": self.bucket_name, "ACL": acl}
        region = getattr(getattr(self.s3_client, "meta", None), "region_name", None)
        if isinstance(region, str) and region != "us-east-1":
            params["CreateBucketConfiguration"] = {"LocationConstraint": region}

        try:
            self.s3_client.create_bucket(**params)
        except ClientError as e:
            if e.response.get("Error", {}).get("Code", "") == BUCKET_OWNED_CODE:
                self.logger.info("Bucket already exists", bucket=self.bucket_name)
                return False
            self.logger.error("Failed to create bucket", bucket=self.bucket_name, error=str(e))
            raise UploadPipelineError(
                Stage.BUCKET_SETUP, f"failed to create bucket {self.bucket_name!r}", e
            ) from e
        except BotoCoreError as e:
            self.logger.error("Failed to create bucket", bucket=self.bucket_name, error=str(e))
            raise UploadPipelineError(
                Stage.BUCKET_SETUP, f"failed to create bucket {self.bucket_name!r}", e
            ) from e

        self.logger.info("Created bucket", bucket=self.bucket_name, acl=acl)
        return True

    def upload_stream(self, key: str, body: BinaryIO) -> None:
        """
        Stream a file-like object to S3 in chunks.

        Below the part size the data goes out in a single PutObject; above it
        a multipart upload is used, reading one part at a time from ``body``.

        Args:
            key: Object key to write
            body: Readable, not necessarily seekable, byte stream

        Raises:
            UploadPipelineError: If the upload fails for any reason
        """
        try:
            self.s3_client.upload_fileobj(
                Fileobj=body,
                Bucket=self.bucket_name,
                Key=key,
                ExtraArgs={"ACL": self.file_acl},
                Config=self.transfer_config
            )
        except Exception as e:
            self.logger.error(
                "Failed to upload file to S3",
                bucket=self.bucket_name,
                key=key,
                error=str(e)
            )
            raise UploadPipelineError(Stage.UPLOAD, "failed to upload file to S3", e) from e

    def object_exists(self, key: str) -> bool:
        """
        Check whether an object exists with a HeadObject call.

        Args:
            key: Object key to look up

        Returns:
            True if the object exists, False on a 404
        """
        try:
            self.s3_client.head_object(Bucket=self.bucket_name, Key=key)
            return True
        except ClientError as e:
            code = e.response.get("Error", {}).get("Code", "")
            if code in ("404", "NoSuchKey", "NotFound"):
                return False
            raise
