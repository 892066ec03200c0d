"""
Fingerprint comparison for change detection.
"""

from __future__ import annotations


def is_stale(source_fingerprint: str, dest_fingerprint: str | None) -> bool:
    """
    Decide whether the destination copy of an object needs to be rewritten.

    Fingerprints are opaque tokens compared by exact equality: no casing,
    quoting or weak-tag normalisation.

    Args:
        source_fingerprint: Fingerprint of the source object
        dest_fingerprint: Fingerprint of the destination object, None if absent

    Returns:
        True if the destination is absent or differs from the source
    """
    if dest_fingerprint is None:
        return True
    return source_fingerprint != dest_fingerprint
