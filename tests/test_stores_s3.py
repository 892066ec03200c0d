"""
Tests for S3Store against a mocked boto3 client.
"""

import io
from unittest.mock import MagicMock

import pytest
from botocore.exceptions import ClientError, EndpointConnectionError

from blobmirror.exceptions import (
    ConnectivityError,
    ContainerListingError,
    ContainerProvisionError,
    ObjectCopyError,
    ObjectMetadataError,
)
from blobmirror.stores.base import MIRROR_FINGERPRINT_KEY
from blobmirror.stores.s3 import S3Store


def client_error(code: str, status: int = 400, operation: str = "HeadObject") -> ClientError:
    return ClientError({"Error": {"Code": code, "Message": code}, "ResponseMetadata": {"HTTPStatusCode": status}}, operation)


@pytest.fixture
def client():
    return MagicMock()


@pytest.fixture
def store(client):
    return S3Store("s3", endpoint_url="https://minio.internal:9000", client=client)


class TestS3Containers:
    """Tests for bucket operations."""

    def test_list_buckets(self, store, client):
        client.list_buckets.return_value = {"Buckets": [{"Name": "a"}, {"Name": "b"}]}

        assert [c.name for c in store.list_containers()] == ["a", "b"]

    def test_unreachable_endpoint(self, store, client):
        client.list_buckets.side_effect = EndpointConnectionError(endpoint_url="https://minio.internal:9000")

        with pytest.raises(ConnectivityError) as exc_info:
            list(store.list_containers())
        assert exc_info.value.store == "https://minio.internal:9000"

    def test_create_bucket(self, store, client):
        assert store.ensure_container("a") is True
        client.create_bucket.assert_called_once_with(Bucket="a")

    def test_create_bucket_with_region(self, client):
        store = S3Store(region="eu-west-1", client=client)

        store.ensure_container("a")

        client.create_bucket.assert_called_once_with(
            Bucket="a", CreateBucketConfiguration={"LocationConstraint": "eu-west-1"}
        )

    def test_existing_bucket_is_not_an_error(self, store, client):
        client.create_bucket.side_effect = client_error("BucketAlreadyOwnedByYou", 409, "CreateBucket")

        assert store.ensure_container("a") is False

    def test_create_bucket_denied(self, store, client):
        client.create_bucket.side_effect = client_error("AccessDenied", 403, "CreateBucket")

        with pytest.raises(ContainerProvisionError):
            store.ensure_container("a")


class TestS3Objects:
    """Tests for key listing, metadata and copies."""

    def test_list_objects_across_pages(self, store, client):
        paginator = MagicMock()
        paginator.paginate.return_value = [
            {"Contents": [{"Key": "x", "ETag": '"e1"'}]},
            {"Contents": [{"Key": "y", "ETag": '"e2"'}]},
            {},
        ]
        client.get_paginator.return_value = paginator

        objects = list(store.list_objects("a"))

        assert [(o.name, o.fingerprint) for o in objects] == [("x", '"e1"'), ("y", '"e2"')]
        paginator.paginate.assert_called_once_with(Bucket="a")

    def test_list_objects_failure(self, store, client):
        paginator = MagicMock()
        paginator.paginate.side_effect = client_error("NoSuchBucket", 404, "ListObjectsV2")
        client.get_paginator.return_value = paginator

        with pytest.raises(ContainerListingError):
            list(store.list_objects("a"))

    @pytest.mark.parametrize("code,status", [("404", 404), ("NoSuchKey", 404), ("NotFound", 404), ("Weird", 404)])
    def test_missing_object_is_none(self, store, client, code, status):
        client.head_object.side_effect = client_error(code, status)

        assert store.get_object_metadata("a", "x") is None

    def test_metadata_failure(self, store, client):
        client.head_object.side_effect = client_error("AccessDenied", 403)

        with pytest.raises(ObjectMetadataError):
            store.get_object_metadata("a", "x")

    def test_metadata_prefers_recorded_fingerprint(self, store, client):
        client.head_object.return_value = {"ETag": '"local"', "Metadata": {MIRROR_FINGERPRINT_KEY: '"source"'}}

        assert store.get_object_metadata("a", "x").fingerprint == '"source"'

    def test_metadata_falls_back_to_etag(self, store, client):
        client.head_object.return_value = {"ETag": '"local"', "Metadata": {}}

        assert store.get_object_metadata("a", "x").fingerprint == '"local"'

    def test_open_read_closes_body(self, store, client):
        body = MagicMock()
        client.get_object.return_value = {"Body": body}

        with store.open_read("a", "x") as stream:
            assert stream is body

        body.close.assert_called_once()

    def test_open_read_closes_body_on_error(self, store, client):
        body = MagicMock()
        client.get_object.return_value = {"Body": body}

        with pytest.raises(RuntimeError):
            with store.open_read("a", "x"):
                raise RuntimeError("write side failed")

        body.close.assert_called_once()

    def test_open_read_failure(self, store, client):
        client.get_object.side_effect = client_error("NoSuchKey", 404, "GetObject")

        with pytest.raises(ObjectCopyError):
            with store.open_read("a", "x"):
                pass

    def test_write_records_fingerprint(self, store, client):
        stream = io.BytesIO(b"data")

        store.write_from_stream("a", "x", stream, fingerprint='"e1"')

        client.upload_fileobj.assert_called_once_with(
            stream, "a", "x", ExtraArgs={"Metadata": {MIRROR_FINGERPRINT_KEY: '"e1"'}}
        )

    def test_write_without_fingerprint(self, store, client):
        stream = io.BytesIO(b"data")

        store.write_from_stream("a", "x", stream)

        client.upload_fileobj.assert_called_once_with(stream, "a", "x", ExtraArgs=None)

    def test_write_failure(self, store, client):
        client.upload_fileobj.side_effect = client_error("SlowDown", 503, "PutObject")

        with pytest.raises(ObjectCopyError):
            store.write_from_stream("a", "x", io.BytesIO(b"data"))

    def test_write_without_overwrite_refuses_existing(self, store, client):
        client.head_object.return_value = {"ETag": '"e"'}

        with pytest.raises(ObjectCopyError, match="already exists"):
            store.write_from_stream("a", "x", io.BytesIO(b"data"), overwrite=False)
        client.upload_fileobj.assert_not_called()


class TestS3Client:
    """Tests for client construction."""

    def test_client_kwargs(self):
        store = S3Store(
            endpoint_url="https://minio.internal:9000",
            region="eu-west-1",
            access_key_id="AKIA",
            secret_access_key="secret",
            session_token="token",
        )

        assert store._get_client_kwargs() == {
            "region_name": "eu-west-1",
            "endpoint_url": "https://minio.internal:9000",
            "aws_access_key_id": "AKIA",
            "aws_secret_access_key": "secret",
            "aws_session_token": "token",
        }

    def test_partial_credentials_use_default_chain(self):
        store = S3Store(access_key_id="AKIA")
        assert store._get_client_kwargs() == {}

    def test_close_resets_client(self, store):
        store.close()
        assert store._client is None
