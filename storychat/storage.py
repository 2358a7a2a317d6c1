"""
Storage abstraction for S3-compatible object storage and in-memory testing.
"""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass
from typing import Optional, Protocol

import boto3
from botocore.config import Config
from botocore.exceptions import ClientError

logger = logging.getLogger(__name__)


class StorageClient(Protocol):
    """Defines the operations the API needs from object storage."""

    def ensure_bucket(self, bucket: str, public: bool = False) -> bool:
        ...

    def upload_bytes(
        self, bucket: str, path: str, data: bytes, content_type: str
    ) -> None:
        ...

    def public_url(self, bucket: str, path: str) -> str:
        ...

    def presign_get(self, bucket: str, path: str, expires_in: int = 3600) -> str:
        ...


@dataclass
class UploadedFile:
    """A file received from a client, already read into memory."""

    filename: str
    content_type: str
    data: bytes


@dataclass
class StoredObject:
    data: bytes
    content_type: str


@dataclass
class InMemoryStorageClient:
    """Test double for storage interactions."""

    base_url: str = "https://example.test/storage"
    buckets: dict = None
    stored_objects: dict = None

    def __post_init__(self):
        if self.buckets is None:
            self.buckets = {}
        if self.stored_objects is None:
            self.stored_objects = {}

    def ensure_bucket(self, bucket: str, public: bool = False) -> bool:
        if bucket in self.buckets:
            return False
        self.buckets[bucket] = public
        return True

    def upload_bytes(
        self, bucket: str, path: str, data: bytes, content_type: str
    ) -> None:
        self.stored_objects[(bucket, path)] = StoredObject(
            data=bytes(data), content_type=content_type
        )

    def public_url(self, bucket: str, path: str) -> str:
        return f"{self.base_url}/public/{bucket}/{path}"

    def presign_get(self, bucket: str, path: str, expires_in: int = 3600) -> str:
        return f"{self.base_url}/sign/{bucket}/{path}?op=get&expires={expires_in}"


@dataclass
class S3StorageClient:
    """
    S3-compatible storage client. Public buckets get an anonymous read policy.
    """

    endpoint: str
    region: str
    access_key_id: str
    secret_access_key: str
    public_base_url: Optional[str] = None

    def __post_init__(self):
        config = Config(
            s3={"addressing_style": "path"},
            signature_version="s3v4",
        )
        self._client = boto3.client(
            "s3",
            endpoint_url=self.endpoint or None,
            region_name=self.region or None,
            aws_access_key_id=self.access_key_id or None,
            aws_secret_access_key=self.secret_access_key or None,
            config=config,
        )

    def ensure_bucket(self, bucket: str, public: bool = False) -> bool:
        try:
            self._client.head_bucket(Bucket=bucket)
            return False
        except ClientError as exc:
            code = exc.response.get("Error", {}).get("Code")
            if code not in ("404", "NoSuchBucket", "NotFound"):
                raise
        params = {"Bucket": bucket}
        if self.region and self.region != "us-east-1":
            params["CreateBucketConfiguration"] = {
                "LocationConstraint": self.region
            }
        self._client.create_bucket(**params)
        if public:
            policy = {
                "Version": "2012-10-17",
                "Statement": [
                    {
                        "Effect": "Allow",
                        "Principal": "*",
                        "Action": "s3:GetObject",
                        "Resource": f"arn:aws:s3:::{bucket}/*",
                    }
                ],
            }
            self._client.put_bucket_policy(Bucket=bucket, Policy=json.dumps(policy))
        return True

    def upload_bytes(
        self, bucket: str, path: str, data: bytes, content_type: str
    ) -> None:
        self._client.put_object(
            Bucket=bucket,
            Key=path,
            Body=data,
            ContentType=content_type or "application/octet-stream",
        )

    def public_url(self, bucket: str, path: str) -> str:
        base = (self.public_base_url or self.endpoint or "").rstrip("/")
        if not base:
            base = f"https://s3.{self.region or 'us-east-1'}.amazonaws.com"
        return f"{base}/{bucket}/{path}"

    def presign_get(self, bucket: str, path: str, expires_in: int = 3600) -> str:
        return self._client.generate_presigned_url(
            ClientMethod="get_object",
            Params={"Bucket": bucket, "Key": path},
            ExpiresIn=expires_in,
        )
