"""Read-only access to deliverable files in blob storage.

`get(key)` returns a `BlobObject` or None when the key does not exist. Objects
are streamed in chunks and must be closed by the consumer.
"""

from collections.abc import Iterator
from pathlib import Path
from typing import Any, BinaryIO

import boto3
from botocore.exceptions import ClientError


CHUNK_SIZE = 64 * 1024


class BlobObject:
    """One open object plus whatever metadata the backend knows about it."""

    def __init__(
        self,
        key: str,
        body: Any,
        content_type: str | None = None,
        content_length: int | None = None,
    ) -> None:
        self.key = key
        self.body = body
        self.content_type = content_type
        self.content_length = content_length
        self.closed = False

    def iter_chunks(self, chunk_size: int = CHUNK_SIZE) -> Iterator[bytes]:
        try:
            while True:
                chunk = self.body.read(chunk_size)
                if not chunk:
                    break
                yield chunk
        finally:
            self.close()

    def close(self) -> None:
        if self.closed:
            return
        self.closed = True
        self.body.close()


class BlobStore:
    def get(self, key: str) -> BlobObject | None:
        raise NotImplementedError


class FilesystemBlobStore(BlobStore):
    """Objects are files below `root`; the key is the relative path."""

    def __init__(self, root: str | Path) -> None:
        self.root = Path(root).resolve()

    def _path_for(self, key: str) -> Path | None:
        path = (self.root / key).resolve()
        if path != self.root and self.root not in path.parents:
            return None
        return path

    def get(self, key: str) -> BlobObject | None:
        path = self._path_for(key)
        if path is None or not path.is_file():
            return None
        handle: BinaryIO = path.open("rb")
        return BlobObject(key=key, body=handle, content_length=path.stat().st_size)


class S3BlobStore(BlobStore):
    """S3-compatible bucket (AWS S3, Cloudflare R2 via `endpoint_url`)."""

    def __init__(self, bucket: str, client: Any) -> None:
        self.bucket = bucket
        self.client = client

    @classmethod
    def from_settings(cls, bucket: str, region: str, endpoint_url: str | None = None) -> "S3BlobStore":
        return cls(bucket, boto3.client("s3", region_name=region, endpoint_url=endpoint_url))

    def get(self, key: str) -> BlobObject | None:
        try:
            response = self.client.get_object(Bucket=self.bucket, Key=key)
        except ClientError as exc:
            code = exc.response.get("Error", {}).get("Code")
            if code in ("NoSuchKey", "404", "NotFound"):
                return None
            raise
        return BlobObject(
            key=key,
            body=response["Body"],
            content_type=response.get("ContentType"),
            content_length=response.get("ContentLength"),
        )
