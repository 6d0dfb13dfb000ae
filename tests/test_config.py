import pytest
from pydantic import ValidationError
from starlette.requests import Request

from s3uploads.config import MIN_PART_SIZE, Settings, UploadConfig, date_prefix


def test_bucket_is_required():
    """Test that an empty bucket name is a configuration error."""
    with pytest.raises(ValidationError):
        UploadConfig(bucket="  ")


def test_defaults():
    """Test the documented defaults."""
    config = UploadConfig(bucket="uploads")

    assert config.bucket_acl == "private"
    assert config.file_acl == "private"
    assert config.create_bucket is True
    assert config.part_size == MIN_PART_SIZE
    assert config.prefix_func is date_prefix
    assert config.logger is None


def test_small_part_size_is_raised_to_minimum():
    """Test that undersized chunks are silently adjusted."""
    assert UploadConfig(bucket="uploads", part_size=1024).part_size == MIN_PART_SIZE
    assert UploadConfig(bucket="uploads", part_size=MIN_PART_SIZE * 3).part_size == MIN_PART_SIZE * 3


def test_empty_acl_falls_back_to_private():
    """Test that blank ACLs use the private default."""
    config = UploadConfig(bucket="uploads", bucket_acl="", file_acl="")

    assert config.bucket_acl == "private"
    assert config.file_acl == "private"


def test_date_prefix_format():
    """Test the default prefix looks like /YYYY/MM/DD/."""
    request = Request({"type": "http", "path": "/", "headers": []})

    prefix = date_prefix(request)

    parts = prefix.split("/")
    assert prefix.startswith("/") and prefix.endswith("/")
    assert [len(p) for p in parts[1:-1]] == [4, 2, 2]


def test_from_settings(monkeypatch):
    """Test building the upload config from environment settings."""
    monkeypatch.setenv("S3_BUCKET_NAME", "from-env")
    monkeypatch.setenv("S3_ENDPOINT_URL", "http://localhost:9000")
    monkeypatch.setenv("S3_FILE_ACL", "public-read")
    monkeypatch.setenv("S3_CREATE_BUCKET", "false")

    config = UploadConfig.from_settings(Settings(), part_size=MIN_PART_SIZE * 2)

    assert config.bucket == "from-env"
    assert config.endpoint_url == "http://localhost:9000"
    assert config.file_acl == "public-read"
    assert config.create_bucket is False
    assert config.part_size == MIN_PART_SIZE * 2


def test_arbitrary_client_objects_are_accepted():
    """Test any client object passes through validation untouched."""
    client = object()

    config = UploadConfig(bucket="uploads", client=client)

    assert UploadConfig.model_config["arbitrary_types_allowed"] is True
    assert config.client is client
