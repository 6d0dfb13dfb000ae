import boto3
import pytest
from fastapi.testclient import TestClient
from moto import mock_aws

from s3uploads.config import UploadConfig
from s3uploads.main import create_app
from s3uploads.services.interceptor import FormInterceptor

BUCKET = "test"
BOUNDARY = "----s3uploads-test-boundary"

# 15716 bytes starting with a PNG signature
PNG_DATA = b"\x89PNG\r\n\x1a\n\x00\x00\x00\rIHDR" + b"\x00" * (15716 - 16)
TEXT_DATA = b"hello world\n"


@pytest.fixture
def anyio_backend():
    return "asyncio"


@pytest.fixture
def aws_credentials(monkeypatch):
    monkeypatch.setenv("AWS_ACCESS_KEY_ID", "testing")
    monkeypatch.setenv("AWS_SECRET_ACCESS_KEY", "testing")
    monkeypatch.setenv("AWS_SECURITY_TOKEN", "testing")
    monkeypatch.setenv("AWS_SESSION_TOKEN", "testing")
    monkeypatch.setenv("AWS_DEFAULT_REGION", "us-east-1")


@pytest.fixture
def s3_client(aws_credentials):
    with mock_aws():
        yield boto3.client("s3", region_name="us-east-1")


@pytest.fixture
def upload_config(s3_client):
    return UploadConfig(bucket=BUCKET, client=s3_client)


@pytest.fixture
def interceptor(upload_config):
    return FormInterceptor(upload_config)


@pytest.fixture
def client(upload_config):
    app = create_app(upload_config)
    with TestClient(app) as test_client:
        yield test_client


def build_multipart(parts, boundary=BOUNDARY):
    """
    Encode a multipart/form-data body.

    ``parts`` is a list of ``(name, value)`` for plain fields or
    ``(name, filename, data)`` for files.
    """
    body = b""
    for part in parts:
        body += b"--" + boundary.encode() + b"\r\n"
        if len(part) == 2:
            name, value = part
            body += f'Content-Disposition: form-data; name="{name}"\r\n\r\n'.encode()
            body += value.encode() if isinstance(value, str) else value
        else:
            name, filename, data = part
            body += f'Content-Disposition: form-data; name="{name}"; filename="{filename}"\r\n'.encode()
            body += b"Content-Type: application/octet-stream\r\n\r\n"
            body += data
        body += b"\r\n"
    body += b"--" + boundary.encode() + b"--\r\n"
    return body


def multipart_content_type(boundary=BOUNDARY):
    return f"multipart/form-data; boundary={boundary}"


def chunked(data, size):
    return [data[i:i + size] for i in range(0, len(data), size)]


def with_extended_filename(body, filename, encoded):
    """Swap a plain filename parameter for an RFC 2231 ``filename*`` one."""
    return body.replace(f'filename="{filename}"'.encode(), b"filename*=UTF-8''" + encoded.encode())
