"""
Sync orchestrator: the top-level driver of one run.

Enumerates source containers, synchronizes each one, and aggregates the
outcomes into a RunSummary. Only a missing store (configuration) or a failure
to enumerate source containers (connectivity) ends a run early; every other
failure is recorded and the run carries on.
"""

from __future__ import annotations

import logging
import os
import uuid
from concurrent.futures import ThreadPoolExecutor
from datetime import UTC, datetime

from blobmirror.exceptions import ConfigurationError, ConnectivityError
from blobmirror.observability.structured_logging import add_correlation_id
from blobmirror.stores.base import ObjectStore
from blobmirror.sync.containers import sync_container
from blobmirror.sync.types import RunState, RunSummary
from blobmirror.utils.logging import get_logger

logger = get_logger("blobmirror.sync.orchestrator")


def determine_pool_size(max_workers: int | str | None) -> int:
    """
    Determine worker pool size from configuration.

    Copies are network-bound, so "auto" uses more threads than CPUs:
    min(32, (CPU count * 2) + 4).

    Args:
        max_workers: None/"auto" or a positive integer

    Returns:
        Integer pool size (1 means objects are processed inline)
    """
    if max_workers is None or (isinstance(max_workers, str) and max_workers.lower() == "auto"):
        cpu_count = os.cpu_count()
        if cpu_count is None:
            logger.warning("Could not determine CPU count, defaulting to 8 workers")
            return 8
        return min(32, (cpu_count * 2) + 4)
    if isinstance(max_workers, bool):
        raise ConfigurationError(f"max_workers must be an integer or 'auto', got {max_workers!r}")
    if isinstance(max_workers, int):
        if max_workers <= 0:
            raise ConfigurationError(f"max_workers must be positive, got {max_workers}")
        return max_workers
    if isinstance(max_workers, str) and max_workers.strip().isdigit():
        return determine_pool_size(int(max_workers.strip()))
    raise ConfigurationError(
        f"max_workers must be an integer, 'auto', or None, got {type(max_workers).__name__}: {max_workers}"
    )


class SyncOrchestrator:
    """
    Runs incremental syncs from a source store to a destination store.

    The orchestrator holds no state between runs; each call to ``run()``
    starts from IDLE and ends COMPLETED or ABORTED. Overlapping runs against
    the same stores are safe: every write is a name-keyed overwrite, so the
    last writer wins.
    """

    def __init__(
        self,
        source: ObjectStore | None,
        destination: ObjectStore | None,
        *,
        max_workers: int | str | None = 1,
        logger: logging.Logger | None = None,
    ):
        self.source = source
        self.destination = destination
        self.pool_size = determine_pool_size(max_workers)
        self.log = logger if logger is not None else get_logger("blobmirror.sync.orchestrator")
        self.state = RunState.IDLE

    def _check_stores(self) -> tuple[ObjectStore, ObjectStore]:
        missing = [role for role, store in (("source", self.source), ("destination", self.destination)) if store is None]
        if missing:
            raise ConfigurationError(
                f"Storage accounts are not configured: missing {', '.join(missing)}",
                details={"missing": missing},
            )
        return self.source, self.destination  # type: ignore[return-value]

    def run(self) -> RunSummary:
        """
        Execute one run.

        Returns:
            RunSummary in state COMPLETED or ABORTED

        Raises:
            ConfigurationError: If either store is missing; nothing is enumerated
        """
        source, destination = self._check_stores()

        summary = RunSummary(run_id=uuid.uuid4().hex[:12], source=source.name, destination=destination.name)
        with add_correlation_id(summary.run_id):
            self.state = summary.state = RunState.RUNNING
            summary.started_at = datetime.now(UTC)
            self.log.info(f"Sync run {summary.run_id} started: {source.name} -> {destination.name}")

            executor = ThreadPoolExecutor(max_workers=self.pool_size) if self.pool_size > 1 else None
            try:
                self._run_containers(source, destination, summary, executor)
                summary.state = RunState.COMPLETED
            except ConnectivityError as e:
                summary.state = RunState.ABORTED
                summary.error = str(e)
                self.log.error(f"Error during sync: {e}")
            finally:
                if executor is not None:
                    executor.shutdown(wait=True, cancel_futures=True)
                summary.finished_at = datetime.now(UTC)
                self.state = summary.state

            self._log_summary(summary)
        return summary

    def _run_containers(
        self,
        source: ObjectStore,
        destination: ObjectStore,
        summary: RunSummary,
        executor: ThreadPoolExecutor | None,
    ) -> None:
        try:
            containers = iter(source.list_containers())
        except ConnectivityError:
            raise
        except Exception as e:
            raise ConnectivityError(f"Cannot enumerate containers: {e}", store=source.name, cause=e) from e

        while True:
            try:
                container = next(containers)
            except StopIteration:
                break
            except ConnectivityError:
                raise
            except Exception as e:
                raise ConnectivityError(f"Cannot enumerate containers: {e}", store=source.name, cause=e) from e

            summary.add_container(
                sync_container(
                    source,
                    destination,
                    container.name,
                    executor=executor,
                    max_in_flight=self.pool_size * 2,
                    log=self.log,
                )
            )

    def _log_summary(self, summary: RunSummary) -> None:
        details = summary.to_dict()
        if summary.state is RunState.COMPLETED:
            self.log.info(
                f"Sync completed successfully: {summary.containers_processed} containers, "
                f"{summary.copied} copied, {summary.skipped} skipped, {summary.failed} failed",
                extra={"run_summary": details},
            )
        else:
            self.log.error(
                f"Sync aborted after {summary.containers_processed} containers: {summary.error}",
                extra={"run_summary": details},
            )
        for failure in summary.failures:
            where = f"{failure.container}/{failure.object_name}" if failure.object_name else failure.container
            self.log.warning(f"  {failure.kind}: {where}: {failure.reason}")


def run_sync(
    source: ObjectStore | None,
    destination: ObjectStore | None,
    *,
    max_workers: int | str | None = 1,
    logger: logging.Logger | None = None,
) -> RunSummary:
    """
    Run one incremental sync from source to destination.

    Args:
        source: Store to mirror from
        destination: Store to mirror into
        max_workers: Object copy concurrency (int, "auto"; 1 = sequential)
        logger: Logger receiving progress and the final summary

    Returns:
        RunSummary (COMPLETED or ABORTED)

    Raises:
        ConfigurationError: If a store is missing
    """
    return SyncOrchestrator(source, destination, max_workers=max_workers, logger=logger).run()
