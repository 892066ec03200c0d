"""
Blobmirror exception hierarchy.

All domain-specific exceptions inherit from BlobMirrorError, making it easy
to catch any mirror error with a single base class while still allowing
fine-grained handling when needed.

Hierarchy::

    BlobMirrorError
    ├── ConfigurationError        - missing/invalid store references or config
    ├── ConnectivityError         - store unreachable during container enumeration
    ├── StoreError                - per-item store failures (never run-fatal)
    │   ├── ContainerProvisionError - destination container could not be created
    │   ├── ContainerListingError   - objects of one container could not be listed
    │   ├── ObjectMetadataError     - destination metadata probe failed (not "absent")
    │   └── ObjectCopyError         - streamed read or write failed
    └── SchedulerError            - invalid schedule or scheduler misuse
"""

from __future__ import annotations


class BlobMirrorError(Exception):
    """Base exception for all blobmirror errors."""

    def __init__(self, message: str, *, details: dict | None = None) -> None:
        super().__init__(message)
        self.message = message
        self.details = details or {}


# --- Run-fatal ---------------------------------------------------------------


class ConfigurationError(BlobMirrorError):
    """Raised when required store references are missing or config is invalid."""


class ConnectivityError(BlobMirrorError):
    """Raised when a store cannot be reached while enumerating containers."""

    def __init__(self, message: str, *, store: str | None = None, cause: Exception | None = None) -> None:
        super().__init__(message, details={"store": store})
        self.store = store
        if cause is not None:
            self.__cause__ = cause


# --- Per-item ----------------------------------------------------------------


class StoreError(BlobMirrorError):
    """Raised when a single container or object operation fails."""

    kind = "store"

    def __init__(
        self,
        message: str,
        *,
        container: str | None = None,
        object_name: str | None = None,
        cause: Exception | None = None,
    ) -> None:
        super().__init__(message, details={"container": container, "object": object_name})
        self.container = container
        self.object_name = object_name
        if cause is not None:
            self.__cause__ = cause


class ContainerProvisionError(StoreError):
    """Raised when a destination container cannot be created (other than already existing)."""

    kind = "container_provision"


class ContainerListingError(StoreError):
    """Raised when the objects of a single source container cannot be enumerated."""

    kind = "container_listing"


class ObjectMetadataError(StoreError):
    """Raised when destination metadata cannot be fetched for a reason other than not-found."""

    kind = "object_metadata"


class ObjectCopyError(StoreError):
    """Raised when the streamed copy of an object fails on read or write."""

    kind = "object_copy"


# --- Scheduling --------------------------------------------------------------


class SchedulerError(BlobMirrorError):
    """Raised when a schedule cannot be parsed or the scheduler is misused."""
