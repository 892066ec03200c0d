"""
Local filesystem object store.

Maps the store contract onto a directory tree: first-level directories under
``root_path`` are containers, files below them are objects addressed by their
POSIX path relative to the container.

Each container may hold a hidden ``.blobmirror`` directory with in-flight
writes and recorded source fingerprints. It is never listed, and object names
inside it are rejected.
"""

from __future__ import annotations

import hashlib
import json
import os
import shutil
import tempfile
from collections.abc import Iterator
from contextlib import contextmanager
from pathlib import Path
from typing import Any, BinaryIO

from blobmirror.exceptions import (
    ConnectivityError,
    ContainerListingError,
    ContainerProvisionError,
    ObjectCopyError,
    ObjectMetadataError,
)
from blobmirror.stores.base import ContainerDescriptor, ObjectDescriptor, ObjectStore
from blobmirror.utils.logging import get_logger

logger = get_logger("blobmirror.stores.filesystem")

# Reserved per-container directory; never listed as objects
STATE_DIR = ".blobmirror"
STAGING_DIR = "staging"
FINGERPRINTS_DIR = "fingerprints"


class FilesystemStore(ObjectStore):
    """
    Directory-backed object store.

    Fingerprints are SHA256 hashes of file content unless a write recorded the
    source fingerprint, in which case that value is reported for as long as the
    file keeps the size and modification time it was written with. Every write
    is staged in its own temporary file under ``.blobmirror/staging`` and moved
    into place with ``os.replace``, so a reader never sees a half-written object
    and overlapping writers never share a staging file.
    """

    def __init__(self, root_path: str | Path, *, create: bool = False):
        self.root_path = Path(root_path)
        super().__init__(str(self.root_path))
        if create:
            self.root_path.mkdir(parents=True, exist_ok=True)

    def _container_path(self, container: str) -> Path:
        return self._safe_join(self.root_path, container)

    def _object_path(self, container: str, object_name: str) -> Path:
        if _is_reserved(object_name):
            raise ValueError(f"Object name '{object_name}' is inside the reserved '{STATE_DIR}' directory")
        return self._safe_join(self._container_path(container), object_name)

    @staticmethod
    def _safe_join(base: Path, name: str) -> Path:
        """
        Join a container/object name under base.

        Raises:
            ValueError: If the name escapes base (path traversal)
        """
        candidate = (base / name).resolve()
        try:
            candidate.relative_to(base.resolve())
        except ValueError as e:
            raise ValueError(f"Path traversal detected: '{name}' escapes '{base}'") from e
        return candidate

    def _record_path(self, container: str, object_name: str) -> Path:
        # Hashed so that nested object names cannot collide with each other's records
        digest = hashlib.sha256(object_name.encode("utf-8")).hexdigest()
        return self._container_path(container) / STATE_DIR / FINGERPRINTS_DIR / f"{digest}.json"

    def _read_record(self, container: str, object_name: str) -> dict[str, Any] | None:
        try:
            with open(self._record_path(container, object_name), encoding="utf-8") as f:
                record = json.load(f)
        except FileNotFoundError:
            return None
        except json.JSONDecodeError:
            logger.debug(f"Ignoring unreadable fingerprint record for {container}/{object_name}")
            return None
        if not isinstance(record, dict) or record.get("name") != object_name:
            return None
        return record

    def _fingerprint(self, container: str, object_name: str, path: Path) -> str:
        stat = path.stat()
        record = self._read_record(container, object_name)
        if record and record.get("size") == stat.st_size and record.get("mtime_ns") == stat.st_mtime_ns:
            return str(record["fingerprint"])
        return _file_fingerprint(path)

    def _write_record(self, container: str, object_name: str, target: Path, fingerprint: str | None) -> None:
        record_path = self._record_path(container, object_name)
        if fingerprint is None:
            record_path.unlink(missing_ok=True)
            return
        stat = target.stat()
        record = {"name": object_name, "fingerprint": fingerprint, "size": stat.st_size, "mtime_ns": stat.st_mtime_ns}
        record_path.parent.mkdir(parents=True, exist_ok=True)
        fd, tmp_name = tempfile.mkstemp(dir=self._staging_path(container), suffix=".json")
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as out:
                json.dump(record, out)
            os.replace(tmp_name, record_path)
        except BaseException:
            Path(tmp_name).unlink(missing_ok=True)
            raise

    def _staging_path(self, container: str) -> Path:
        path = self._container_path(container) / STATE_DIR / STAGING_DIR
        path.mkdir(parents=True, exist_ok=True)
        return path

    def list_containers(self) -> Iterator[ContainerDescriptor]:
        if not self.root_path.is_dir():
            raise ConnectivityError(f"Storage root not found: {self.root_path}", store=self.name)
        try:
            entries = sorted(p for p in self.root_path.iterdir() if p.is_dir())
        except OSError as e:
            raise ConnectivityError(f"Cannot list containers in {self.root_path}: {e}", store=self.name, cause=e) from e
        for entry in entries:
            yield ContainerDescriptor(name=entry.name)

    def ensure_container(self, container: str) -> bool:
        try:
            path = self._container_path(container)
            if path.is_dir():
                return False
            path.mkdir(parents=True, exist_ok=True)
            return True
        except (OSError, ValueError) as e:
            raise ContainerProvisionError(
                f"Could not create container {container}: {e}", container=container, cause=e
            ) from e

    def list_objects(self, container: str) -> Iterator[ObjectDescriptor]:
        try:
            base = self._container_path(container)
            if not base.is_dir():
                raise ContainerListingError(f"Container not found: {container}", container=container)
            files = sorted(
                p for p in base.rglob("*") if p.is_file() and not _is_reserved(p.relative_to(base).as_posix())
            )
        except OSError as e:
            raise ContainerListingError(f"Cannot list objects in {container}: {e}", container=container, cause=e) from e

        for path in files:
            object_name = path.relative_to(base).as_posix()
            try:
                yield ObjectDescriptor(name=object_name, fingerprint=self._fingerprint(container, object_name, path))
            except FileNotFoundError:
                # Removed between listing and hashing
                logger.debug(f"Object vanished during listing: {container}/{object_name}")

    def get_object_metadata(self, container: str, object_name: str) -> ObjectDescriptor | None:
        try:
            path = self._object_path(container, object_name)
            if not path.is_file():
                return None
            return ObjectDescriptor(name=object_name, fingerprint=self._fingerprint(container, object_name, path))
        except FileNotFoundError:
            return None
        except (OSError, ValueError) as e:
            raise ObjectMetadataError(
                f"Cannot read metadata of {container}/{object_name}: {e}",
                container=container,
                object_name=object_name,
                cause=e,
            ) from e

    @contextmanager
    def open_read(self, container: str, object_name: str) -> Iterator[BinaryIO]:
        try:
            f = open(self._object_path(container, object_name), "rb")
        except (OSError, ValueError) as e:
            raise ObjectCopyError(
                f"Cannot open {container}/{object_name} for reading: {e}",
                container=container,
                object_name=object_name,
                cause=e,
            ) from e
        with f:
            yield f

    def write_from_stream(
        self,
        container: str,
        object_name: str,
        stream: BinaryIO,
        *,
        overwrite: bool = True,
        fingerprint: str | None = None,
    ) -> None:
        try:
            target = self._object_path(container, object_name)
        except ValueError as e:
            raise ObjectCopyError(str(e), container=container, object_name=object_name, cause=e) from e

        if not overwrite and target.exists():
            raise ObjectCopyError(
                f"Object already exists: {container}/{object_name}", container=container, object_name=object_name
            )

        tmp_path: Path | None = None
        try:
            target.parent.mkdir(parents=True, exist_ok=True)
            fd, tmp_name = tempfile.mkstemp(dir=self._staging_path(container), suffix=".part")
            tmp_path = Path(tmp_name)
            with os.fdopen(fd, "wb") as out:
                shutil.copyfileobj(stream, out)
            os.replace(tmp_path, target)
            tmp_path = None
            self._write_record(container, object_name, target, fingerprint)
        except Exception as e:
            if tmp_path is not None:
                tmp_path.unlink(missing_ok=True)
            raise ObjectCopyError(
                f"Cannot write {container}/{object_name}: {e}",
                container=container,
                object_name=object_name,
                cause=e,
            ) from e

    def __repr__(self) -> str:
        """String representation."""
        return f"{self.__class__.__name__}(root_path='{self.root_path}')"


def _is_reserved(object_name: str) -> bool:
    return object_name.split("/", 1)[0] == STATE_DIR


def _file_fingerprint(path: Path) -> str:
    """SHA256 of file content, read in blocks."""
    sha256_hash = hashlib.sha256()
    with open(path, "rb") as f:
        for byte_block in iter(lambda: f.read(64 * 1024), b""):
            sha256_hash.update(byte_block)
    return sha256_hash.hexdigest()
