"""
Shared CLI helpers.
"""

from pathlib import Path

from blobmirror.config.loader import Config, load_config
from blobmirror.utils.logging import setup_logging_from_config


def load_cli_config(
    project_dir: Path,
    *,
    env: str | None = None,
    verbose: bool = False,
    source: str | None = None,
    destination: str | None = None,
    workers: str | None = None,
) -> Config:
    """
    Load config, apply command-line overrides and set up logging.

    Raises:
        ConfigurationError: If the config is invalid
    """
    config = load_config(project_dir, env=env)

    if source is not None:
        config.data["source"] = source
    if destination is not None:
        config.data["destination"] = destination
    if workers is not None:
        config.data.setdefault("sync", {})["max_workers"] = int(workers) if workers.isdigit() else workers
    if verbose:
        config.data.setdefault("logging", {})["level"] = "DEBUG"

    config.validate()
    setup_logging_from_config(config.data, project_dir=project_dir)
    return config
