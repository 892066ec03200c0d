"""
S3 object store.

One store is one S3 endpoint (AWS account or S3-compatible service such as
MinIO); containers are buckets and objects are keys.
"""

from __future__ import annotations

from collections.abc import Iterator
from contextlib import contextmanager
from typing import Any, BinaryIO, Optional

from botocore.exceptions import BotoCoreError, ClientError

from blobmirror.exceptions import (
    ConnectivityError,
    ContainerListingError,
    ContainerProvisionError,
    ObjectCopyError,
    ObjectMetadataError,
)
from blobmirror.stores.base import MIRROR_FINGERPRINT_KEY, ContainerDescriptor, ObjectDescriptor, ObjectStore

# Error codes meaning "the bucket is already there"
_BUCKET_EXISTS_CODES = ("BucketAlreadyOwnedByYou",)

# Error codes / HTTP statuses meaning "no such object"
_NOT_FOUND_CODES = ("404", "NoSuchKey", "NotFound", "NoSuchBucket")


class S3Store(ObjectStore):
    """
    S3 object store with lazily initialised boto3 client.

    Credentials come from explicit config values or fall back to the standard
    boto3 chain (environment, shared config, IAM role).

    Config example:
        destination:
          type: s3
          endpoint_url: https://minio.internal:9000   # Optional
          region: eu-west-1                           # Optional
          access_key_id: AKIA...                      # Optional
          secret_access_key: ...                      # Optional
    """

    def __init__(
        self,
        name: str = "s3",
        *,
        endpoint_url: Optional[str] = None,
        region: Optional[str] = None,
        access_key_id: Optional[str] = None,
        secret_access_key: Optional[str] = None,
        session_token: Optional[str] = None,
        client: Any = None,
    ):
        super().__init__(endpoint_url or name)
        self.endpoint_url = endpoint_url
        self.region = region
        self._access_key_id = access_key_id
        self._secret_access_key = secret_access_key
        self._session_token = session_token
        self._client = client

    def _get_client_kwargs(self) -> dict[str, Any]:
        """Build kwargs for boto3 client initialization."""
        kwargs: dict[str, Any] = {}
        if self.region:
            kwargs["region_name"] = self.region
        if self.endpoint_url:
            kwargs["endpoint_url"] = self.endpoint_url
        if self._access_key_id and self._secret_access_key:
            kwargs["aws_access_key_id"] = self._access_key_id
            kwargs["aws_secret_access_key"] = self._secret_access_key
            if self._session_token:
                kwargs["aws_session_token"] = self._session_token
        return kwargs

    @property
    def client(self):
        """
        Get boto3 S3 client (lazy initialization).

        Returns:
            boto3.client('s3') instance
        """
        if self._client is None:
            import boto3

            self._client = boto3.client("s3", **self._get_client_kwargs())
        return self._client

    def list_containers(self) -> Iterator[ContainerDescriptor]:
        try:
            response = self.client.list_buckets()
        except (ClientError, BotoCoreError) as e:
            raise ConnectivityError(f"Cannot list buckets at {self.name}: {e}", store=self.name, cause=e) from e
        for bucket in response.get("Buckets", []):
            yield ContainerDescriptor(name=bucket["Name"])

    def ensure_container(self, container: str) -> bool:
        kwargs: dict[str, Any] = {"Bucket": container}
        if self.region and self.region != "us-east-1":
            kwargs["CreateBucketConfiguration"] = {"LocationConstraint": self.region}
        try:
            self.client.create_bucket(**kwargs)
            return True
        except ClientError as e:
            if _error_code(e) in _BUCKET_EXISTS_CODES:
                return False
            raise ContainerProvisionError(
                f"Could not create bucket {container}: {e}", container=container, cause=e
            ) from e
        except BotoCoreError as e:
            raise ContainerProvisionError(
                f"Could not create bucket {container}: {e}", container=container, cause=e
            ) from e

    def list_objects(self, container: str) -> Iterator[ObjectDescriptor]:
        paginator = self.client.get_paginator("list_objects_v2")
        try:
            for page in paginator.paginate(Bucket=container):
                for obj in page.get("Contents", []):
                    yield ObjectDescriptor(name=obj["Key"], fingerprint=str(obj.get("ETag", "")))
        except (ClientError, BotoCoreError) as e:
            raise ContainerListingError(f"Cannot list objects in {container}: {e}", container=container, cause=e) from e

    def get_object_metadata(self, container: str, object_name: str) -> ObjectDescriptor | None:
        try:
            head = self.client.head_object(Bucket=container, Key=object_name)
        except ClientError as e:
            if _is_not_found(e):
                return None
            raise ObjectMetadataError(
                f"Cannot read metadata of {container}/{object_name}: {e}",
                container=container,
                object_name=object_name,
                cause=e,
            ) from e
        except BotoCoreError as e:
            raise ObjectMetadataError(
                f"Cannot read metadata of {container}/{object_name}: {e}",
                container=container,
                object_name=object_name,
                cause=e,
            ) from e
        return ObjectDescriptor(name=object_name, fingerprint=_fingerprint(head))

    @contextmanager
    def open_read(self, container: str, object_name: str) -> Iterator[BinaryIO]:
        try:
            response = self.client.get_object(Bucket=container, Key=object_name)
        except (ClientError, BotoCoreError) as e:
            raise ObjectCopyError(
                f"Cannot open {container}/{object_name} for reading: {e}",
                container=container,
                object_name=object_name,
                cause=e,
            ) from e
        body = response["Body"]
        try:
            yield body
        finally:
            body.close()

    def write_from_stream(
        self,
        container: str,
        object_name: str,
        stream: BinaryIO,
        *,
        overwrite: bool = True,
        fingerprint: str | None = None,
    ) -> None:
        if not overwrite and self.get_object_metadata(container, object_name) is not None:
            raise ObjectCopyError(
                f"Object already exists: {container}/{object_name}", container=container, object_name=object_name
            )
        extra_args: dict[str, Any] = {}
        if fingerprint:
            extra_args["Metadata"] = {MIRROR_FINGERPRINT_KEY: fingerprint}
        try:
            self.client.upload_fileobj(stream, container, object_name, ExtraArgs=extra_args or None)
        except Exception as e:
            raise ObjectCopyError(
                f"Cannot write {container}/{object_name}: {e}",
                container=container,
                object_name=object_name,
                cause=e,
            ) from e

    def close(self) -> None:
        """Reset the client; boto3 clients need no explicit close."""
        self._client = None


def _error_code(error: ClientError) -> str:
    return str(error.response.get("Error", {}).get("Code", ""))


def _is_not_found(error: ClientError) -> bool:
    if _error_code(error) in _NOT_FOUND_CODES:
        return True
    return error.response.get("ResponseMetadata", {}).get("HTTPStatusCode") == 404


def _fingerprint(head: dict[str, Any]) -> str:
    metadata = head.get("Metadata") or {}
    recorded = metadata.get(MIRROR_FINGERPRINT_KEY)
    if recorded:
        return recorded
    return str(head.get("ETag", ""))
