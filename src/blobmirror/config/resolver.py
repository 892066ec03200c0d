"""
Placeholder substitution for loaded configuration.

``${VAR}`` is replaced by the environment variable VAR and stays in place when
VAR is unset, so the store factory can report the reference as missing.
``{env}`` is replaced by the active environment name.
"""

import os
import re
from typing import Any

_VAR_PATTERN = re.compile(r"\$\{([^}]+)\}")


def resolve_config(config_data: dict[str, Any], env: str = "dev") -> dict[str, Any]:
    """Return a copy of ``config_data`` with placeholders substituted in every string."""
    return _substitute(config_data, env)


def _substitute(node: Any, env: str) -> Any:
    if isinstance(node, str):
        expanded = _VAR_PATTERN.sub(lambda m: os.environ.get(m.group(1), m.group(0)), node)
        return expanded.replace("{env}", env)
    if isinstance(node, dict):
        return {key: _substitute(value, env) for key, value in node.items()}
    if isinstance(node, list):
        return [_substitute(item, env) for item in node]
    return node
