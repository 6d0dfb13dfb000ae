import pytest
from unittest.mock import patch, MagicMock
from botocore.exceptions import ClientError

from conftest import BUCKET, PNG_DATA, TEXT_DATA
from s3uploads.config import UploadConfig
from s3uploads.errors import Stage, UploadPipelineError
from s3uploads.main import create_app
from s3uploads.services.s3_service import S3Service


def test_upload_files_success(client, s3_client):
    """Test the full scenario: one field and two files under "file"."""
    response = client.post(
        "/uploads",
        data={"name": "Gabriel"},
        files=[
            ("file", ("a.png", PNG_DATA, "image/png")),
            ("file", ("b.txt", TEXT_DATA, "text/plain")),
        ]
    )

    assert response.status_code == 200
    data = response.json()
    assert [f["name"] for f in data["files"]] == ["a.png", "b.txt"]
    assert [f["size"] for f in data["files"]] == [15716, 12]
    assert [f["contentType"] for f in data["files"]] == ["image/png", "text/plain"]
    assert data["fields"] == {"name": ["Gabriel"]}

    storage = S3Service(s3_client, BUCKET)
    for uploaded in data["files"]:
        assert storage.object_exists(uploaded["key"])


def test_upload_custom_field(client):
    """Test describing files sent under another field name."""
    response = client.post(
        "/uploads?field=attachment",
        files={"attachment": ("b.txt", TEXT_DATA, "text/plain")}
    )

    assert response.status_code == 200
    data = response.json()
    assert len(data["files"]) == 1
    assert data["files"][0]["name"] == "b.txt"


def test_upload_field_without_files(client):
    """Test a plain value under the file field name is rejected."""
    response = client.post("/uploads", data={"file": "not-a-file"})

    assert response.status_code == 400
    assert "not an uploaded file" in response.json()["detail"]


def test_upload_s3_error(client, s3_client):
    """Test the request fails with a bare 500 when S3 rejects the upload."""
    with patch.object(s3_client, "upload_fileobj", side_effect=Exception("S3 error")):
        response = client.post(
            "/uploads",
            files={"file": ("a.png", PNG_DATA, "image/png")}
        )

    assert response.status_code == 500
    assert "S3 error" not in response.text


def test_health(client):
    """Test health check endpoints."""
    assert client.get("/").status_code == 200

    response = client.get("/health")
    assert response.status_code == 200
    assert response.json()["bucket"] == BUCKET


def test_create_app_bucket_failure():
    """Test that bucket setup errors stop the app from being built."""
    s3 = MagicMock()
    s3.create_bucket.side_effect = ClientError(
        {"Error": {"Code": "AccessDenied", "Message": "denied"}}, "CreateBucket"
    )

    with pytest.raises(UploadPipelineError) as exc_info:
        create_app(UploadConfig(bucket=BUCKET, client=s3))

    assert exc_info.value.stage is Stage.BUCKET_SETUP
