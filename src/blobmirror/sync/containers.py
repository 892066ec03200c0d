"""
Per-container synchronization.

Ensures the destination container exists, then runs the object synchronizer
for every object the source lists, either inline or fanned out over a thread
pool with a bounded number of in-flight objects.
"""

from __future__ import annotations

import contextvars
import logging
from concurrent.futures import FIRST_COMPLETED, Executor, Future, wait

from blobmirror.exceptions import ContainerListingError, ContainerProvisionError
from blobmirror.stores.base import ObjectStore
from blobmirror.sync.objects import sync_object
from blobmirror.sync.types import ContainerSummary, FailureRecord, ObjectResult
from blobmirror.utils.logging import get_logger

logger = get_logger("blobmirror.sync.containers")


def ensure_destination_container(
    destination: ObjectStore,
    container: str,
    summary: ContainerSummary,
    *,
    log: logging.Logger,
) -> None:
    """
    Create the destination container if needed.

    A failure is recorded on the summary and logged as a warning; it does not
    stop the container's objects from being attempted, since the container
    frequently exists already (e.g. created by a concurrent run).
    """
    try:
        summary.created = destination.ensure_container(container)
        log.info(f"Ensured container exists in destination: {container}")
    except Exception as e:
        log.warning(f"Could not create container {container}: {e}")
        summary.record_container_failure(
            FailureRecord(kind=ContainerProvisionError.kind, container=container, reason=str(e))
        )


def sync_container(
    source: ObjectStore,
    destination: ObjectStore,
    container: str,
    *,
    executor: Executor | None = None,
    max_in_flight: int = 1,
    log: logging.Logger | None = None,
) -> ContainerSummary:
    """
    Synchronize every object of one source container.

    Args:
        source: Store to read from
        destination: Store to write to
        container: Container name, used on both sides
        executor: Pool for concurrent object copies; None runs objects inline
        max_in_flight: Upper bound on submitted-but-unfinished objects
        log: Logger to report progress to (defaults to this module's logger)

    Returns:
        ContainerSummary with per-outcome counts and failures
    """
    log = log or logger
    summary = ContainerSummary(name=container)

    log.info(f"Processing container: {container}")
    ensure_destination_container(destination, container, summary, log=log)

    pending: set[Future[ObjectResult]] = set()
    try:
        for obj in source.list_objects(container):
            if executor is None:
                summary.record(sync_object(source, destination, container, obj, log=log))
                continue

            while len(pending) >= max(1, max_in_flight):
                done, pending = wait(pending, return_when=FIRST_COMPLETED)
                for future in done:
                    summary.record(future.result())
            # Copy the context so worker threads log with the run correlation id
            ctx = contextvars.copy_context()
            pending.add(executor.submit(ctx.run, sync_object, source, destination, container, obj, log=log))
    except Exception as e:
        log.error(f"Could not list objects in container {container}: {e}")
        summary.record_container_failure(FailureRecord(kind=ContainerListingError.kind, container=container, reason=str(e)))
    except BaseException:
        # Cancellation: drop queued copies, let in-flight ones settle
        for future in pending:
            future.cancel()
        raise

    for future in _drain(pending):
        summary.record(future.result())

    log.info(
        f"Container {container} done: {summary.copied} copied, "
        f"{summary.skipped} skipped, {summary.failed} failed"
    )
    return summary


def _drain(pending: set[Future[ObjectResult]]) -> list[Future[ObjectResult]]:
    if not pending:
        return []
    done, _ = wait(pending)
    return list(done)
