"""Signed-URL minting port and its S3 adapter."""
from abc import ABC, abstractmethod
from typing import Optional

import boto3


class UrlSigner(ABC):
    """Interface for minting signed URLs against object storage."""

    @abstractmethod
    def generate_upload_url(self, object_key: str, content_type: str, expires_in: int = 3600) -> str:
        """Generate a signed URL allowing one PUT of ``content_type`` to ``object_key``."""
        pass

    @abstractmethod
    def generate_view_url(self, object_key: str, expires_in: int = 3600) -> str:
        """Generate a signed URL allowing GET of ``object_key``."""
        pass


class S3UrlSigner(UrlSigner):
    """UrlSigner backed by boto3 presigned URLs."""

    def __init__(self, bucket: str, region: Optional[str] = None, client=None):
        self._bucket = bucket
        self._client = client or boto3.client("s3", region_name=region)

    def generate_upload_url(self, object_key: str, content_type: str, expires_in: int = 3600) -> str:
        return self._client.generate_presigned_url(
            "put_object",
            Params={"Bucket": self._bucket, "Key": object_key, "ContentType": content_type},
            ExpiresIn=expires_in,
        )

    def generate_view_url(self, object_key: str, expires_in: int = 3600) -> str:
        return self._client.generate_presigned_url(
            "get_object",
            Params={"Bucket": self._bucket, "Key": object_key},
            ExpiresIn=expires_in,
        )
