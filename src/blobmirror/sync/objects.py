"""
Per-object synchronization: probe the destination, compare fingerprints, and
stream-copy the object when the destination is absent or stale.
"""

from __future__ import annotations

import logging

from blobmirror.exceptions import ObjectCopyError, ObjectMetadataError
from blobmirror.stores.base import ObjectDescriptor, ObjectStore
from blobmirror.sync.fingerprint import is_stale
from blobmirror.sync.types import MetadataProbe, ObjectResult, SyncOutcome
from blobmirror.utils.logging import get_logger

logger = get_logger("blobmirror.sync.objects")


def probe_destination(destination: ObjectStore, container: str, object_name: str) -> MetadataProbe:
    """
    Probe destination metadata, folding "not found" into a normal result.

    Never raises for backend failures; they come back as an error probe.
    """
    try:
        descriptor = destination.get_object_metadata(container, object_name)
    except Exception as e:
        return MetadataProbe.failed(e)
    if descriptor is None:
        return MetadataProbe.absent()
    return MetadataProbe.found(descriptor)


def sync_object(
    source: ObjectStore,
    destination: ObjectStore,
    container: str,
    obj: ObjectDescriptor,
    *,
    log: logging.Logger | None = None,
) -> ObjectResult:
    """
    Synchronize one object from source to destination.

    Every failure is contained here and reported as a FAILED result, so callers
    can move on to the next object.

    Args:
        source: Store the object is read from
        destination: Store the object is written to (same container/object name)
        container: Container name, identical on both sides
        obj: Source descriptor as listed, carrying the source fingerprint
        log: Logger to report progress to (defaults to this module's logger)

    Returns:
        ObjectResult with COPIED, SKIPPED_UNCHANGED or FAILED
    """
    log = log or logger

    probe = probe_destination(destination, container, obj.name)
    if probe.is_error:
        error = probe.error
        reason = f"Cannot read destination metadata: {error}"
        log.error(f"Failed to probe {container}/{obj.name}: {error}")
        return ObjectResult(
            container=container,
            object_name=obj.name,
            outcome=SyncOutcome.FAILED,
            reason=reason,
            kind=ObjectMetadataError.kind,
        )

    if not is_stale(obj.fingerprint, probe.fingerprint):
        log.info(f"Skipping unchanged object: {container}/{obj.name}")
        return ObjectResult(container=container, object_name=obj.name, outcome=SyncOutcome.SKIPPED_UNCHANGED)

    if probe.is_absent:
        log.info(f"Object {container}/{obj.name} does not exist in the destination")

    log.info(f"Copying object: {container}/{obj.name}")
    try:
        with source.open_read(container, obj.name) as stream:
            destination.write_from_stream(container, obj.name, stream, overwrite=True, fingerprint=obj.fingerprint)
    except Exception as e:
        log.error(f"Failed to copy {container}/{obj.name}: {e}")
        return ObjectResult(
            container=container,
            object_name=obj.name,
            outcome=SyncOutcome.FAILED,
            reason=str(e),
            kind=ObjectCopyError.kind,
        )

    return ObjectResult(container=container, object_name=obj.name, outcome=SyncOutcome.COPIED)
