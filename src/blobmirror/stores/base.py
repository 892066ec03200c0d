"""
Object store base class.

An ObjectStore is bound to one storage account (or root) and exposes the small
set of container/object operations the mirror needs. Every query is a live
round-trip to the backend; stores keep no state about containers or objects.

Different backends map the contract onto their own model:
- Azure Blob: account URL -> containers -> blobs
- S3: endpoint/account -> buckets -> keys
- Local filesystem: root directory -> first-level directories -> files
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from collections.abc import Iterator
from contextlib import AbstractContextManager
from dataclasses import dataclass
from typing import BinaryIO

# Object metadata key used by stores that persist the source fingerprint
MIRROR_FINGERPRINT_KEY = "mirror_fingerprint"


@dataclass(frozen=True)
class ContainerDescriptor:
    """A container as listed by a store. Containers are identified by name alone."""

    name: str


@dataclass(frozen=True)
class ObjectDescriptor:
    """
    An object as listed or probed in a store.

    ``fingerprint`` is an opaque backend-assigned token (entity tag, content hash)
    that changes whenever the content changes. It is only ever compared for
    equality.
    """

    name: str
    fingerprint: str


class ObjectStore(ABC):
    """
    Base class for object stores.

    Subclasses translate backend failures into the blobmirror exception
    hierarchy:
    - ``list_containers`` raises ConnectivityError when the backend is unreachable
    - ``ensure_container`` raises ContainerProvisionError (but never for an
      already existing container)
    - ``list_objects`` raises ContainerListingError
    - ``get_object_metadata`` returns None for a missing object and raises
      ObjectMetadataError for anything else
    - ``open_read`` / ``write_from_stream`` raise ObjectCopyError
    """

    def __init__(self, name: str):
        """
        Initialize store.

        Args:
            name: Stable identity of the store (account URL, endpoint or root path)
        """
        self.name = name

    @abstractmethod
    def list_containers(self) -> Iterator[ContainerDescriptor]:
        """Lazily enumerate every container in the store."""

    @abstractmethod
    def ensure_container(self, container: str) -> bool:
        """
        Create the container unless it already exists.

        Returns:
            True if the container was created, False if it already existed
        """

    @abstractmethod
    def list_objects(self, container: str) -> Iterator[ObjectDescriptor]:
        """Lazily enumerate every object in one container."""

    @abstractmethod
    def get_object_metadata(self, container: str, object_name: str) -> ObjectDescriptor | None:
        """
        Fetch the current descriptor of one object.

        Returns:
            The descriptor, or None when the object (or its container) does not exist
        """

    @abstractmethod
    def open_read(self, container: str, object_name: str) -> AbstractContextManager[BinaryIO]:
        """
        Open a read stream over an object's content.

        The returned context manager releases the underlying handle on exit,
        whether the body completed or raised.
        """

    @abstractmethod
    def write_from_stream(
        self,
        container: str,
        object_name: str,
        stream: BinaryIO,
        *,
        overwrite: bool = True,
        fingerprint: str | None = None,
    ) -> None:
        """
        Write an object from a readable binary stream without buffering it whole.

        Args:
            container: Destination container name
            object_name: Destination object name
            stream: Readable binary stream (``read(n)``)
            overwrite: Replace an existing object unconditionally
            fingerprint: Source fingerprint; stores whose native tags differ per
                account record it so later probes report the same token
        """

    def close(self) -> None:
        """Release client resources. No-op by default."""

    def __enter__(self) -> ObjectStore:
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        self.close()

    def __repr__(self) -> str:
        """String representation."""
        return f"{self.__class__.__name__}(name='{self.name}')"
