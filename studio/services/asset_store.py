"""
Durable storage for finished renders.

Final outputs are uploaded with S3 put_object under
``{settings.asset_key_prefix}{key}``. The returned URL is a CloudFront URL
when ``STUDIO_AWS_CLOUDFRONT_DOMAIN`` is set, otherwise a presigned GET URL.

boto3 is blocking; async callers go through ``asyncio.to_thread``.
"""
from __future__ import annotations

import logging
from typing import Optional, Protocol, cast

import boto3
from botocore.config import Config
from botocore.exceptions import BotoCoreError, ClientError, NoCredentialsError

from studio.config import settings

logger = logging.getLogger(__name__)

# Use Signature Version 4 for presigned URLs. SigV2 (legacy) can cause 403 from S3.
S3_CONFIG = Config(signature_version="s3v4")


class _S3Client(Protocol):
    """Structural interface for the boto3 S3 client methods used in this module."""

    def put_object(self, *, Bucket: str, Key: str, Body: bytes, ContentType: str) -> dict[str, object]: ...
    def generate_presigned_url(self, operation: str, /, **kwargs: object) -> str: ...
    def head_bucket(self, *, Bucket: str) -> dict[str, object]: ...


class AssetStoreError(Exception):
    """Storage unreachable, unconfigured, or rejected the write."""
    pass


def _s3_client() -> _S3Client:
    """S3 client with SigV4 and the regional endpoint."""
    region = settings.aws_region
    # boto3 has no type stubs: cast to our Protocol at the untyped library boundary.
    return cast(
        _S3Client,
        boto3.client(
            "s3",
            region_name=region,
            endpoint_url=f"https://s3.{region}.amazonaws.com",
            config=S3_CONFIG,
        ),
    )


class AssetStore:
    """Upload bytes, get back a URL the client can play."""

    def __init__(
        self,
        bucket: Optional[str] = None,
        cloudfront_domain: Optional[str] = None,
        key_prefix: Optional[str] = None,
        client: Optional[_S3Client] = None,
    ):
        self.bucket = bucket if bucket is not None else settings.aws_s3_asset_bucket
        self.cloudfront_domain = (
            cloudfront_domain if cloudfront_domain is not None else settings.aws_cloudfront_domain
        )
        self.key_prefix = key_prefix if key_prefix is not None else settings.asset_key_prefix
        self._client = client

    @property
    def configured(self) -> bool:
        return bool(self.bucket)

    @property
    def client(self) -> _S3Client:
        if self._client is None:
            self._client = _s3_client()
        return self._client

    def _require_bucket(self) -> str:
        if not self.bucket:
            raise AssetStoreError("STUDIO_AWS_S3_ASSET_BUCKET is not set")
        return self.bucket

    def object_key(self, key: str) -> str:
        return f"{self.key_prefix}{key.lstrip('/')}"

    def public_url(self, object_key: str) -> str:
        """URL for ``object_key``: CloudFront when configured, else presigned."""
        if self.cloudfront_domain:
            domain = self.cloudfront_domain.rstrip("/")
            if not domain.startswith(("http://", "https://")):
                domain = f"https://{domain}"
            return f"{domain}/{object_key}"

        try:
            return self.client.generate_presigned_url(
                "get_object",
                Params={"Bucket": self._require_bucket(), "Key": object_key},
                ExpiresIn=settings.presign_expiry_seconds,
            )
        except (BotoCoreError, ClientError) as e:
            logger.error(f"❌ Presign failed for {object_key}: {e}")
            raise AssetStoreError("Unable to generate download URL") from e

    def upload(self, data: bytes, *, key: str, content_type: str = "video/mp4") -> str:
        """Store ``data`` and return its URL.

        Raises:
            AssetStoreError: bucket unset, credentials missing, or S3 refused the write.
        """
        bucket = self._require_bucket()
        object_key = self.object_key(key)
        try:
            self.client.put_object(Bucket=bucket, Key=object_key, Body=data, ContentType=content_type)
        except NoCredentialsError as e:
            logger.warning(f"AWS credentials not configured: {e}")
            raise AssetStoreError("AWS credentials not configured") from e
        except BotoCoreError as e:
            logger.warning(f"S3 unreachable for {object_key}: {e}")
            raise AssetStoreError("Unable to reach asset storage") from e
        except ClientError as e:
            logger.error(f"❌ S3 put_object failed for {object_key}: {e}")
            raise AssetStoreError("Asset storage rejected the upload") from e

        logger.info(f"☁️ Uploaded {len(data)} bytes → s3://{bucket}/{object_key}")
        return self.public_url(object_key)

    def check_reachable(self) -> bool:
        """True if the bucket answers a head request."""
        if not self.bucket:
            return False
        try:
            self.client.head_bucket(Bucket=self.bucket)
            return True
        except (BotoCoreError, ClientError) as e:
            logger.debug(f"S3 health check failed: {e}")
            return False


_shared_store: Optional[AssetStore] = None


def get_asset_store() -> AssetStore:
    global _shared_store
    if _shared_store is None:
        _shared_store = AssetStore()
    return _shared_store


def reset_asset_store() -> None:
    """Drop the cached store (tests, settings reload)."""
    global _shared_store
    _shared_store = None
