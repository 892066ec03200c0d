"""
Shared test helpers: an in-memory store with per-operation failure injection.
"""

import io
import threading
from contextlib import contextmanager

import pytest

from blobmirror.exceptions import (
    ContainerListingError,
    ContainerProvisionError,
    ObjectCopyError,
    ObjectMetadataError,
)
from blobmirror.stores.memory import InMemoryStore


class TrackingStream(io.BytesIO):
    """BytesIO that remembers whether it was closed."""

    def __init__(self, data: bytes, fail_read: bool = False):
        super().__init__(data)
        self.fail_read = fail_read
        self.was_closed = False

    def read(self, *args):
        if self.fail_read:
            raise OSError("connection reset while reading")
        return super().read(*args)

    def close(self):
        self.was_closed = True
        super().close()


class FaultyStore(InMemoryStore):
    """In-memory store with per-operation failure injection and call tracking."""

    def __init__(self, name="faulty", **kwargs):
        super().__init__(name, **kwargs)
        self.fail_metadata: set[str] = set()
        self.fail_read: set[str] = set()
        self.fail_read_midstream: set[str] = set()
        self.fail_write: set[str] = set()
        self.fail_ensure: set[str] = set()
        self.fail_listing: set[str] = set()
        self.reads: list[str] = []
        self.writes: list[str] = []
        self.metadata_calls: list[str] = []
        self.streams: list[TrackingStream] = []
        self._calls_lock = threading.Lock()
        # None: listing works; 0: fails immediately; n: fails after n containers
        self.list_containers_fails_after: int | None = None

    def list_containers(self):
        if self.list_containers_fails_after is None:
            yield from super().list_containers()
            return
        for i, descriptor in enumerate(super().list_containers()):
            if i >= self.list_containers_fails_after:
                break
            yield descriptor
        raise ConnectionError("name resolution failed for account endpoint")

    def ensure_container(self, container):
        if container in self.fail_ensure:
            raise ContainerProvisionError("permission denied", container=container)
        return super().ensure_container(container)

    def list_objects(self, container):
        if container in self.fail_listing:
            raise ContainerListingError("listing timed out", container=container)
        return super().list_objects(container)

    def get_object_metadata(self, container, object_name):
        with self._calls_lock:
            self.metadata_calls.append(f"{container}/{object_name}")
        if object_name in self.fail_metadata:
            raise ObjectMetadataError("403 forbidden", container=container, object_name=object_name)
        return super().get_object_metadata(container, object_name)

    def open_read(self, container, object_name):
        @contextmanager
        def _open():
            with self._calls_lock:
                self.reads.append(f"{container}/{object_name}")
            if object_name in self.fail_read:
                raise ObjectCopyError("read failed", container=container, object_name=object_name)
            stream = TrackingStream(
                self.get_object(container, object_name), fail_read=object_name in self.fail_read_midstream
            )
            with self._calls_lock:
                self.streams.append(stream)
            try:
                yield stream
            finally:
                stream.close()

        return _open()

    def write_from_stream(self, container, object_name, stream, *, overwrite=True, fingerprint=None):
        with self._calls_lock:
            self.writes.append(f"{container}/{object_name}")
        if object_name in self.fail_write:
            raise ObjectCopyError("write failed", container=container, object_name=object_name)
        super().write_from_stream(container, object_name, stream, overwrite=overwrite, fingerprint=fingerprint)


@pytest.fixture
def source():
    return FaultyStore("source")


@pytest.fixture
def destination():
    return FaultyStore("destination")
