"""
Type definitions for sync runs: per-object outcomes, per-container and per-run
summaries, and the run state machine.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any

from blobmirror.stores.base import ObjectDescriptor


class SyncOutcome(str, Enum):
    """Outcome of synchronizing one object."""

    COPIED = "copied"
    SKIPPED_UNCHANGED = "skipped_unchanged"
    FAILED = "failed"


class RunState(str, Enum):
    """Run state machine: IDLE -> RUNNING -> {COMPLETED, ABORTED}."""

    IDLE = "idle"
    RUNNING = "running"
    COMPLETED = "completed"
    ABORTED = "aborted"

    @property
    def is_terminal(self) -> bool:
        return self in (RunState.COMPLETED, RunState.ABORTED)


@dataclass(frozen=True)
class MetadataProbe:
    """
    Result of probing destination metadata for one object.

    Exactly one of the three shapes:
    - found: ``descriptor`` set
    - absent: neither set
    - error: ``error`` set
    """

    descriptor: ObjectDescriptor | None = None
    error: Exception | None = None

    @classmethod
    def found(cls, descriptor: ObjectDescriptor) -> MetadataProbe:
        return cls(descriptor=descriptor)

    @classmethod
    def absent(cls) -> MetadataProbe:
        return cls()

    @classmethod
    def failed(cls, error: Exception) -> MetadataProbe:
        return cls(error=error)

    @property
    def is_found(self) -> bool:
        return self.descriptor is not None

    @property
    def is_absent(self) -> bool:
        return self.descriptor is None and self.error is None

    @property
    def is_error(self) -> bool:
        return self.error is not None

    @property
    def fingerprint(self) -> str | None:
        return self.descriptor.fingerprint if self.descriptor is not None else None


@dataclass(frozen=True)
class FailureRecord:
    """One per-item failure, kept in the run summary."""

    kind: str
    container: str
    reason: str
    object_name: str | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "kind": self.kind,
            "container": self.container,
            "object": self.object_name,
            "reason": self.reason,
        }


@dataclass(frozen=True)
class ObjectResult:
    """Outcome of one object; ``reason`` is set only for FAILED."""

    container: str
    object_name: str
    outcome: SyncOutcome
    reason: str | None = None
    kind: str | None = None

    def to_failure(self) -> FailureRecord:
        return FailureRecord(
            kind=self.kind or "object_copy",
            container=self.container,
            object_name=self.object_name,
            reason=self.reason or "",
        )


@dataclass
class ContainerSummary:
    """Aggregated outcomes for one container."""

    name: str
    created: bool = False
    copied: int = 0
    skipped: int = 0
    failed: int = 0
    failures: list[FailureRecord] = field(default_factory=list)

    def record(self, result: ObjectResult) -> None:
        if result.outcome is SyncOutcome.COPIED:
            self.copied += 1
        elif result.outcome is SyncOutcome.SKIPPED_UNCHANGED:
            self.skipped += 1
        else:
            self.failed += 1
            self.failures.append(result.to_failure())

    def record_container_failure(self, failure: FailureRecord) -> None:
        self.failures.append(failure)

    @property
    def objects(self) -> int:
        return self.copied + self.skipped + self.failed

    def to_dict(self) -> dict[str, Any]:
        return {
            "name": self.name,
            "created": self.created,
            "copied": self.copied,
            "skipped": self.skipped,
            "failed": self.failed,
            "failures": [f.to_dict() for f in self.failures],
        }


@dataclass
class RunSummary:
    """
    Outcome of one run. The only structured artifact a run produces; it is
    logged and returned, never persisted.
    """

    run_id: str
    source: str
    destination: str
    state: RunState = RunState.IDLE
    containers: list[ContainerSummary] = field(default_factory=list)
    error: str | None = None
    started_at: datetime | None = None
    finished_at: datetime | None = None

    def add_container(self, summary: ContainerSummary) -> None:
        self.containers.append(summary)

    @property
    def containers_processed(self) -> int:
        return len(self.containers)

    @property
    def copied(self) -> int:
        return sum(c.copied for c in self.containers)

    @property
    def skipped(self) -> int:
        return sum(c.skipped for c in self.containers)

    @property
    def failed(self) -> int:
        return sum(c.failed for c in self.containers)

    @property
    def failures(self) -> list[FailureRecord]:
        return [f for c in self.containers for f in c.failures]

    @property
    def duration_seconds(self) -> float | None:
        if self.started_at is None or self.finished_at is None:
            return None
        return (self.finished_at - self.started_at).total_seconds()

    def container(self, name: str) -> ContainerSummary | None:
        for summary in self.containers:
            if summary.name == name:
                return summary
        return None

    def to_dict(self) -> dict[str, Any]:
        return {
            "run_id": self.run_id,
            "source": self.source,
            "destination": self.destination,
            "state": self.state.value,
            "containers_processed": self.containers_processed,
            "copied": self.copied,
            "skipped": self.skipped,
            "failed": self.failed,
            "failures": [f.to_dict() for f in self.failures],
            "error": self.error,
            "started_at": self.started_at.isoformat() if self.started_at else None,
            "finished_at": self.finished_at.isoformat() if self.finished_at else None,
            "duration_seconds": self.duration_seconds,
        }
