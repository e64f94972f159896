"""Tests for the S3 asset store."""
from __future__ import annotations

from unittest.mock import MagicMock

import pytest
from botocore.exceptions import ClientError, NoCredentialsError

from studio.services.asset_store import AssetStore, AssetStoreError, get_asset_store, reset_asset_store


def _store(**kwargs: object) -> tuple[AssetStore, MagicMock]:
    s3 = MagicMock()
    s3.generate_presigned_url.return_value = "https://bucket.s3.test/renders/x?sig=1"
    defaults: dict[str, object] = {"bucket": "renders-bucket", "cloudfront_domain": "", "key_prefix": "renders/"}
    defaults.update(kwargs)
    return AssetStore(client=s3, **defaults), s3  # type: ignore[arg-type]


class TestUpload:

    def test_cloudfront_url_when_configured(self) -> None:
        store, s3 = _store(cloudfront_domain="d123.cloudfront.net")
        url = store.upload(b"video", key="job/final.mp4")
        assert url == "https://d123.cloudfront.net/renders/job/final.mp4"
        s3.put_object.assert_called_once_with(
            Bucket="renders-bucket", Key="renders/job/final.mp4", Body=b"video", ContentType="video/mp4",
        )
        s3.generate_presigned_url.assert_not_called()

    def test_presigned_url_without_cloudfront(self) -> None:
        store, s3 = _store()
        url = store.upload(b"video", key="/job/final.mp4")
        assert url == "https://bucket.s3.test/renders/x?sig=1"
        args, kwargs = s3.generate_presigned_url.call_args
        assert args == ("get_object",)
        assert kwargs["Params"] == {"Bucket": "renders-bucket", "Key": "renders/job/final.mp4"}

    def test_unconfigured_bucket(self) -> None:
        store, s3 = _store(bucket="")
        assert not store.configured
        with pytest.raises(AssetStoreError, match="STUDIO_AWS_S3_ASSET_BUCKET"):
            store.upload(b"x", key="k")
        s3.put_object.assert_not_called()

    def test_missing_credentials(self) -> None:
        store, s3 = _store()
        s3.put_object.side_effect = NoCredentialsError()
        with pytest.raises(AssetStoreError, match="credentials"):
            store.upload(b"x", key="k")

    def test_rejected_write(self) -> None:
        store, s3 = _store()
        s3.put_object.side_effect = ClientError({"Error": {"Code": "AccessDenied", "Message": "no"}}, "PutObject")
        with pytest.raises(AssetStoreError, match="rejected"):
            store.upload(b"x", key="k")


class TestReachability:

    def test_head_bucket_ok(self) -> None:
        store, s3 = _store()
        assert store.check_reachable() is True
        s3.head_bucket.assert_called_once_with(Bucket="renders-bucket")

    def test_head_bucket_error(self) -> None:
        store, s3 = _store()
        s3.head_bucket.side_effect = ClientError({"Error": {"Code": "404", "Message": "missing"}}, "HeadBucket")
        assert store.check_reachable() is False

    def test_singleton_reset(self) -> None:
        first = get_asset_store()
        assert get_asset_store() is first
        reset_asset_store()
        assert get_asset_store() is not first
