"""
Sync subsystem: incremental, fingerprint-based mirroring of every container
and object from a source store into a destination store.
"""

from blobmirror.sync.containers import sync_container
from blobmirror.sync.fingerprint import is_stale
from blobmirror.sync.objects import probe_destination, sync_object
from blobmirror.sync.orchestrator import SyncOrchestrator, run_sync
from blobmirror.sync.types import (
    ContainerSummary,
    FailureRecord,
    MetadataProbe,
    ObjectResult,
    RunState,
    RunSummary,
    SyncOutcome,
)

__all__ = [
    "SyncOrchestrator",
    "run_sync",
    "sync_container",
    "sync_object",
    "probe_destination",
    "is_stale",
    "SyncOutcome",
    "RunState",
    "RunSummary",
    "ContainerSummary",
    "ObjectResult",
    "FailureRecord",
    "MetadataProbe",
]
