"""
blobmirror - scheduled, incremental replication between blob storage accounts.

Every container of the source store is mirrored into the destination store;
objects are copied only when their fingerprint differs from the destination's.
"""

__version__ = "0.1.0"

# Programmatic API
from blobmirror.api import build_stores, run, run_from_config

# Exceptions
from blobmirror.exceptions import (
    BlobMirrorError,
    ConfigurationError,
    ConnectivityError,
    ContainerListingError,
    ContainerProvisionError,
    ObjectCopyError,
    ObjectMetadataError,
    SchedulerError,
    StoreError,
)

# Stores
from blobmirror.stores import (
    ContainerDescriptor,
    FilesystemStore,
    InMemoryStore,
    ObjectDescriptor,
    ObjectStore,
    create_store,
)

# Sync
from blobmirror.sync import RunState, RunSummary, SyncOrchestrator, SyncOutcome, run_sync

# Logging utilities
from blobmirror.utils.logging import get_logger, setup_logging, setup_logging_from_config

__all__ = [
    # Execution
    "run",
    "run_sync",
    "run_from_config",
    "build_stores",
    "SyncOrchestrator",
    "RunSummary",
    "RunState",
    "SyncOutcome",
    # Stores
    "ObjectStore",
    "ContainerDescriptor",
    "ObjectDescriptor",
    "create_store",
    "FilesystemStore",
    "InMemoryStore",
    # Logging
    "setup_logging",
    "setup_logging_from_config",
    "get_logger",
    # Exceptions
    "BlobMirrorError",
    "ConfigurationError",
    "ConnectivityError",
    "StoreError",
    "ContainerProvisionError",
    "ContainerListingError",
    "ObjectMetadataError",
    "ObjectCopyError",
    "SchedulerError",
]
