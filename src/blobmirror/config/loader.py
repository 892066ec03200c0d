"""
Configuration file loading.

Loads ``config.yaml`` (plus an optional ``config.{env}.yaml`` overlay) from the
project directory. Without a config file the defaults below apply, which read
the store references from the environment.
"""

import copy
from collections.abc import Iterator
from pathlib import Path
from typing import Any

import yaml

from blobmirror.config.resolver import resolve_config
from blobmirror.exceptions import ConfigurationError

DEFAULT_CONFIG: dict[str, Any] = {
    "source": "${SOURCE_ACCOUNT_URL}",
    "destination": "${DEST_ACCOUNT_URL}",
    "credential": {
        "managed_identity_client_id": "${UAMI_CLIENT_ID}",
    },
    "sync": {
        "max_workers": 1,
    },
    "schedule": {
        "cron": "0 12,17 * * *",
        "timezone": "UTC",
        "run_on_start": False,
    },
    "logging": {
        "level": "INFO",
        "format": "text",
    },
}


class Config:
    """Blobmirror configuration container with dict-like access."""

    def __init__(self, data: dict[str, Any]):
        self.data = data

    @property
    def source(self) -> Any:
        return self.data.get("source")

    @property
    def destination(self) -> Any:
        return self.data.get("destination")

    @property
    def credential(self) -> dict[str, Any]:
        return self.data.get("credential") or {}

    @property
    def sync(self) -> dict[str, Any]:
        return self.data.get("sync") or {}

    @property
    def schedule(self) -> dict[str, Any]:
        return self.data.get("schedule") or {}

    def get(self, key: str, default: Any = None) -> Any:
        """Get configuration value using dot notation."""
        keys = key.split(".")
        value = self.data
        for k in keys:
            if isinstance(value, dict):
                value = value.get(k)
                if value is None:
                    return default
            else:
                return default
        return value

    def __getitem__(self, key: str) -> Any:
        """Dict-like access: config['key'] or config['nested.key']."""
        if isinstance(key, str) and "." in key:
            return self.get(key)
        if key in self.data:
            value = self.data[key]
            if isinstance(value, dict):
                return Config(value)
            return value
        raise KeyError(f"Config key '{key}' not found")

    def __contains__(self, key: str) -> bool:
        """Check if key exists in config."""
        keys = key.split(".")
        value = self.data
        for k in keys:
            if not isinstance(value, dict) or k not in value:
                return False
            value = value[k]
        return True

    def __iter__(self) -> Iterator[str]:
        """Iterate over top-level keys."""
        return iter(self.data)

    def validate(self) -> None:
        """
        Validate configuration structure.

        Missing store references are not checked here: they abort a run, not
        the loading of config (a scheduler may start before they are set).

        Raises:
            ConfigurationError: If a section has the wrong shape
        """
        errors = []

        for section in ("credential", "sync", "schedule", "logging"):
            value = self.data.get(section)
            if value is not None and not isinstance(value, dict):
                errors.append(f"Configuration '{section}' must be a mapping, got {type(value).__name__}")

        for role in ("source", "destination"):
            value = self.data.get(role)
            if value is not None and not isinstance(value, (str, dict)):
                errors.append(f"Configuration '{role}' must be a URL string or a mapping, got {type(value).__name__}")

        if not errors:
            from blobmirror.sync.orchestrator import determine_pool_size

            try:
                determine_pool_size(self.sync.get("max_workers", 1))
            except ConfigurationError as e:
                errors.append(f"Configuration 'sync.max_workers': {e}")

            cron = self.schedule.get("cron")
            if cron:
                from blobmirror.service.cron_parser import CronParseError, validate_cron

                try:
                    validate_cron(str(cron), timezone=self.schedule.get("timezone"))
                except CronParseError as e:
                    errors.append(f"Configuration 'schedule.cron': {e}")

        if errors:
            raise ConfigurationError("\n".join(errors), details={"errors": errors})


def load_config(project_path: Path | None = None, env: str | None = None) -> Config:
    """
    Load blobmirror configuration.

    Args:
        project_path: Directory holding config.yaml (default: current directory)
        env: Environment name selecting a config.{env}.yaml overlay

    Returns:
        Validated Config with defaults, file values and environment substituted

    Raises:
        ConfigurationError: If a config file cannot be parsed or is invalid
    """
    if project_path is None:
        project_path = Path.cwd()

    config_data = copy.deepcopy(DEFAULT_CONFIG)

    base_config_path = project_path / "config.yaml"
    if base_config_path.exists():
        _merge_dict(config_data, _read_yaml(base_config_path))

    if env:
        env_config_path = project_path / f"config.{env}.yaml"
        if env_config_path.exists():
            _merge_dict(config_data, _read_yaml(env_config_path))

    config = Config(resolve_config(config_data, env or "dev"))
    config.validate()
    return config


def _read_yaml(path: Path) -> dict[str, Any]:
    if not path.is_file():
        raise ConfigurationError(f"Configuration path is not a file: {path}")
    try:
        with open(path) as f:
            data = yaml.safe_load(f) or {}
    except yaml.YAMLError as e:
        mark = getattr(e, "problem_mark", None)
        if mark is not None:
            raise ConfigurationError(
                f"Error parsing {path.name} at line {mark.line + 1}, column {mark.column + 1}:\n"
                f"  {e}\n"
                f"  File: {path}\n"
                f"  Suggestion: Check YAML syntax, ensure proper indentation and quotes"
            ) from e
        raise ConfigurationError(f"Error parsing {path.name}: {e}\n  File: {path}") from e
    except PermissionError as e:
        raise ConfigurationError(
            f"Permission denied reading {path}\n  Error: {e}\n  Suggestion: Check file permissions"
        ) from e
    if not isinstance(data, dict):
        raise ConfigurationError(f"Configuration must be a dictionary/mapping, got {type(data).__name__}: {path}")
    return data


def _merge_dict(base: dict, override: dict) -> None:
    """Recursively merge override into base."""
    for key, value in override.items():
        if key in base and isinstance(base[key], dict) and isinstance(value, dict):
            _merge_dict(base[key], value)
        else:
            base[key] = value
