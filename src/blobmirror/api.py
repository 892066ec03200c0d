"""
Programmatic API for blobmirror.
"""

from __future__ import annotations

from pathlib import Path
from typing import Any

from blobmirror.config.loader import Config, load_config
from blobmirror.stores.base import ObjectStore
from blobmirror.stores.factory import create_store
from blobmirror.sync.orchestrator import run_sync
from blobmirror.sync.types import RunSummary
from blobmirror.utils.logging import get_logger

logger = get_logger("blobmirror.api")


def build_stores(config: Config) -> tuple[ObjectStore, ObjectStore]:
    """
    Build the source and destination stores described by a config.

    Raises:
        ConfigurationError: If either store reference is missing or unusable
    """
    credential = config.credential
    source = create_store(config.source, role="source", credential=credential)
    destination = create_store(config.destination, role="destination", credential=credential)
    return source, destination


def run_from_config(config: Config) -> RunSummary:
    """
    Build both stores from config and run one sync.

    Stores are rebuilt on every call so a long-running scheduler picks up
    refreshed credentials and never shares clients between runs.

    Raises:
        ConfigurationError: Before any enumeration, if the stores are not configured
    """
    source, destination = build_stores(config)
    with source, destination:
        return run_sync(source, destination, max_workers=config.sync.get("max_workers", 1))


def run(
    project_dir: Path | None = None,
    env: str | None = None,
    **overrides: Any,
) -> RunSummary:
    """
    Run one sync programmatically.

    Args:
        project_dir: Directory holding config.yaml (default: current directory)
        env: Environment name for the config.{env}.yaml overlay
        **overrides: Top-level config values to replace (e.g. source=..., destination=...)

    Returns:
        RunSummary of the run

    Examples:
        summary = run(source="/data/primary", destination="/data/mirror")
        print(summary.copied, summary.skipped, summary.failed)
    """
    config = load_config(Path(project_dir) if project_dir else None, env=env)
    for key, value in overrides.items():
        if value is not None:
            config.data[key] = value
    return run_from_config(config)
