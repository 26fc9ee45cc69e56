"""Filesystem and S3 blob store lookups."""

import io

import boto3
import pytest
from botocore.exceptions import ClientError
from botocore.response import StreamingBody
from botocore.stub import Stubber

from conftest import DEMO_BYTES
from dropgate.common.blob_store import S3BlobStore


def test_filesystem_get(blobs):
    blob = blobs.get("products/demo.zip")
    assert blob.content_length == len(DEMO_BYTES)
    assert b"".join(blob.iter_chunks(chunk_size=4)) == DEMO_BYTES


def test_filesystem_missing_and_escaping_keys(blobs, blob_root):
    (blob_root.parent / "secret.txt").write_text("nope")
    assert blobs.get("products/missing.zip") is None
    assert blobs.get("products") is None
    assert blobs.get("../secret.txt") is None


@pytest.fixture
def s3_client():
    return boto3.client(
        "s3",
        region_name="us-east-1",
        aws_access_key_id="testing",
        aws_secret_access_key="testing",
    )


def test_s3_get(s3_client):
    params = {"Bucket": "products-bucket", "Key": "products/demo.zip"}
    with Stubber(s3_client) as stubber:
        stubber.add_response(
            "get_object",
            {
                "Body": StreamingBody(io.BytesIO(DEMO_BYTES), len(DEMO_BYTES)),
                "ContentType": "application/zip",
                "ContentLength": len(DEMO_BYTES),
            },
            params,
        )
        blob = S3BlobStore("products-bucket", s3_client).get("products/demo.zip")

    assert blob.content_type == "application/zip"
    assert b"".join(blob.iter_chunks()) == DEMO_BYTES


def test_s3_missing_key_is_none(s3_client):
    with Stubber(s3_client) as stubber:
        stubber.add_client_error("get_object", service_error_code="NoSuchKey", http_status_code=404)
        assert S3BlobStore("products-bucket", s3_client).get("products/gone.zip") is None


def test_s3_other_errors_propagate(s3_client):
    with Stubber(s3_client) as stubber:
        stubber.add_client_error("get_object", service_error_code="AccessDenied", http_status_code=403)
        with pytest.raises(ClientError):
            S3BlobStore("products-bucket", s3_client).get("products/demo.zip")
