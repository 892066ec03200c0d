"""
Azure Blob Storage object store.

One store is one storage account (``https://<account>.blob.core.windows.net``);
containers and blobs map one-to-one onto the store contract.
"""

from __future__ import annotations

from collections.abc import Iterator
from contextlib import contextmanager
from typing import Any, BinaryIO

from azure.core.exceptions import AzureError, ResourceExistsError, ResourceNotFoundError
from azure.storage.blob import BlobServiceClient

from blobmirror.exceptions import (
    ConnectivityError,
    ContainerListingError,
    ContainerProvisionError,
    ObjectCopyError,
    ObjectMetadataError,
)
from blobmirror.stores.base import MIRROR_FINGERPRINT_KEY, ContainerDescriptor, ObjectDescriptor, ObjectStore
from blobmirror.utils.logging import get_logger

logger = get_logger("blobmirror.stores.azure")


class AzureBlobStore(ObjectStore):
    """
    Azure Blob Storage account.

    Authentication, in order of precedence:
    - ``connection_string``
    - ``account_key`` (shared key for the account in ``account_url``)
    - ``DefaultAzureCredential``, optionally pinned to a user-assigned managed
      identity via ``managed_identity_client_id``
    """

    def __init__(
        self,
        account_url: str | None = None,
        *,
        connection_string: str | None = None,
        account_key: str | None = None,
        managed_identity_client_id: str | None = None,
        service_client: Any = None,
    ):
        if service_client is not None:
            self._service_client = service_client
        elif connection_string:
            self._service_client = BlobServiceClient.from_connection_string(connection_string)
        elif account_url:
            credential: Any
            if account_key:
                credential = account_key
            else:
                from azure.identity import DefaultAzureCredential

                credential = DefaultAzureCredential(managed_identity_client_id=managed_identity_client_id)
            self._service_client = BlobServiceClient(account_url=account_url, credential=credential)
        else:
            raise ValueError("Azure Blob Storage requires either account_url or connection_string")

        super().__init__(account_url or getattr(self._service_client, "url", "azure"))

    def list_containers(self) -> Iterator[ContainerDescriptor]:
        try:
            for container in self._service_client.list_containers():
                yield ContainerDescriptor(name=container.name)
        except AzureError as e:
            raise ConnectivityError(f"Cannot list containers at {self.name}: {e}", store=self.name, cause=e) from e

    def ensure_container(self, container: str) -> bool:
        try:
            self._service_client.get_container_client(container).create_container()
            return True
        except ResourceExistsError:
            return False
        except AzureError as e:
            raise ContainerProvisionError(
                f"Could not create container {container}: {e}", container=container, cause=e
            ) from e

    def list_objects(self, container: str) -> Iterator[ObjectDescriptor]:
        try:
            for blob in self._service_client.get_container_client(container).list_blobs():
                yield ObjectDescriptor(name=blob.name, fingerprint=str(blob.etag or ""))
        except AzureError as e:
            raise ContainerListingError(f"Cannot list blobs in {container}: {e}", container=container, cause=e) from e

    def get_object_metadata(self, container: str, object_name: str) -> ObjectDescriptor | None:
        blob_client = self._service_client.get_blob_client(container=container, blob=object_name)
        try:
            properties = blob_client.get_blob_properties()
        except ResourceNotFoundError:
            return None
        except AzureError as e:
            raise ObjectMetadataError(
                f"Cannot read properties of {container}/{object_name}: {e}",
                container=container,
                object_name=object_name,
                cause=e,
            ) from e
        metadata = properties.metadata or {}
        fingerprint = metadata.get(MIRROR_FINGERPRINT_KEY) or str(properties.etag or "")
        return ObjectDescriptor(name=object_name, fingerprint=fingerprint)

    @contextmanager
    def open_read(self, container: str, object_name: str) -> Iterator[BinaryIO]:
        blob_client = self._service_client.get_blob_client(container=container, blob=object_name)
        try:
            downloader = blob_client.download_blob()
        except AzureError as e:
            raise ObjectCopyError(
                f"Cannot open {container}/{object_name} for reading: {e}",
                container=container,
                object_name=object_name,
                cause=e,
            ) from e
        # StorageStreamDownloader fetches lazily in chunks and holds no OS handle
        yield downloader

    def write_from_stream(
        self,
        container: str,
        object_name: str,
        stream: BinaryIO,
        *,
        overwrite: bool = True,
        fingerprint: str | None = None,
    ) -> None:
        blob_client = self._service_client.get_blob_client(container=container, blob=object_name)
        metadata = {MIRROR_FINGERPRINT_KEY: fingerprint} if fingerprint else None
        try:
            blob_client.upload_blob(stream, overwrite=overwrite, metadata=metadata)
        except Exception as e:
            raise ObjectCopyError(
                f"Cannot upload {container}/{object_name}: {e}",
                container=container,
                object_name=object_name,
                cause=e,
            ) from e

    def close(self) -> None:
        """Close the underlying HTTP pipeline."""
        close = getattr(self._service_client, "close", None)
        if close is not None:
            close()
