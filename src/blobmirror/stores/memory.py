"""
In-memory object store for testing.

Provides a thread-safe, process-local store so sync behaviour can be exercised
without any cloud account.

Example:
    from blobmirror.stores import InMemoryStore

    source = InMemoryStore("source")
    source.put_object("images", "logo.png", b"...", fingerprint="0x1")
"""

from __future__ import annotations

import hashlib
import io
import threading
from collections.abc import Iterator
from contextlib import contextmanager
from dataclasses import dataclass
from typing import BinaryIO

from blobmirror.exceptions import ContainerListingError, ObjectCopyError
from blobmirror.stores.base import ContainerDescriptor, ObjectDescriptor, ObjectStore


@dataclass
class _StoredObject:
    data: bytes
    fingerprint: str


class InMemoryStore(ObjectStore):
    """
    In-memory object store.

    Fingerprints default to the MD5 hex digest of the content, so identical
    bytes always compare equal. Callers may pin an explicit fingerprint when
    writing, which is how mirrored objects inherit their source token.
    """

    def __init__(self, name: str = "memory", containers: dict[str, dict[str, bytes]] | None = None):
        super().__init__(name)
        self._lock = threading.Lock()
        self._containers: dict[str, dict[str, _StoredObject]] = {}
        for container, objects in (containers or {}).items():
            self.create_container(container)
            for object_name, data in objects.items():
                self.put_object(container, object_name, data)

    # --- Test helpers -------------------------------------------------------

    def create_container(self, container: str) -> None:
        with self._lock:
            self._containers.setdefault(container, {})

    def put_object(self, container: str, object_name: str, data: bytes, *, fingerprint: str | None = None) -> None:
        """Store an object directly, creating its container if needed."""
        with self._lock:
            self._containers.setdefault(container, {})[object_name] = _StoredObject(
                data=data, fingerprint=fingerprint or _content_fingerprint(data)
            )

    def get_object(self, container: str, object_name: str) -> bytes:
        with self._lock:
            return self._containers[container][object_name].data

    def container_names(self) -> list[str]:
        with self._lock:
            return sorted(self._containers)

    def object_names(self, container: str) -> list[str]:
        with self._lock:
            return sorted(self._containers.get(container, {}))

    # --- ObjectStore --------------------------------------------------------

    def list_containers(self) -> Iterator[ContainerDescriptor]:
        for name in self.container_names():
            yield ContainerDescriptor(name=name)

    def ensure_container(self, container: str) -> bool:
        with self._lock:
            if container in self._containers:
                return False
            self._containers[container] = {}
            return True

    def list_objects(self, container: str) -> Iterator[ObjectDescriptor]:
        with self._lock:
            if container not in self._containers:
                raise ContainerListingError(f"Container not found: {container}", container=container)
            snapshot = sorted(self._containers[container].items())
        for object_name, stored in snapshot:
            yield ObjectDescriptor(name=object_name, fingerprint=stored.fingerprint)

    def get_object_metadata(self, container: str, object_name: str) -> ObjectDescriptor | None:
        with self._lock:
            stored = self._containers.get(container, {}).get(object_name)
        if stored is None:
            return None
        return ObjectDescriptor(name=object_name, fingerprint=stored.fingerprint)

    @contextmanager
    def open_read(self, container: str, object_name: str) -> Iterator[BinaryIO]:
        with self._lock:
            stored = self._containers.get(container, {}).get(object_name)
        if stored is None:
            raise ObjectCopyError(
                f"Object not found: {container}/{object_name}", container=container, object_name=object_name
            )
        stream = io.BytesIO(stored.data)
        try:
            yield stream
        finally:
            stream.close()

    def write_from_stream(
        self,
        container: str,
        object_name: str,
        stream: BinaryIO,
        *,
        overwrite: bool = True,
        fingerprint: str | None = None,
    ) -> None:
        chunks = []
        for chunk in iter(lambda: stream.read(64 * 1024), b""):
            chunks.append(chunk)
        data = b"".join(chunks)

        with self._lock:
            objects = self._containers.get(container)
            if objects is None:
                raise ObjectCopyError(
                    f"Container not found: {container}", container=container, object_name=object_name
                )
            if not overwrite and object_name in objects:
                raise ObjectCopyError(
                    f"Object already exists: {container}/{object_name}", container=container, object_name=object_name
                )
            objects[object_name] = _StoredObject(data=data, fingerprint=fingerprint or _content_fingerprint(data))


def _content_fingerprint(data: bytes) -> str:
    return hashlib.md5(data).hexdigest()
