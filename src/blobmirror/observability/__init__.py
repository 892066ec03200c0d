"""
Observability helpers: JSON log formatting and run correlation ids.
"""

from blobmirror.observability.structured_logging import (
    StructuredFormatter,
    add_correlation_id,
    get_correlation_id,
)

__all__ = [
    "StructuredFormatter",
    "add_correlation_id",
    "get_correlation_id",
]
