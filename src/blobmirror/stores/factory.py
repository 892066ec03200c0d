"""
Store factory.

Builds an ObjectStore from a store reference: either a URL string or a mapping
with ``type``/``url`` plus backend-specific options.

    source: https://prodaccount.blob.core.windows.net
    destination:
      type: s3
      endpoint_url: https://minio.internal:9000
"""

from __future__ import annotations

from typing import Any
from urllib.parse import urlparse

from blobmirror.exceptions import ConfigurationError
from blobmirror.stores.base import ObjectStore
from blobmirror.utils.logging import get_logger

logger = get_logger("blobmirror.stores.factory")

STORE_TYPES = ("azure", "s3", "filesystem")


def is_missing_reference(ref: Any) -> bool:
    """True for None, blank strings, empty mappings and unresolved ``${VAR}`` placeholders."""
    if ref is None:
        return True
    if isinstance(ref, str):
        return not ref.strip() or "${" in ref
    if isinstance(ref, dict):
        if not ref:
            return True
        url = ref.get("url")
        if url is not None and is_missing_reference(url):
            return True
        return False
    return False


def infer_store_type(url: str) -> str:
    """
    Infer the backend type from a store URL.

    Args:
        url: Store URL or local path

    Returns:
        One of STORE_TYPES
    """
    parsed = urlparse(url)
    scheme = parsed.scheme.lower()
    if scheme in ("http", "https"):
        host = parsed.hostname or ""
        if ".blob." in host or host.endswith("blob.core.windows.net"):
            return "azure"
        # Azurite and other emulators expose blob endpoints on plain hosts
        if parsed.port == 10000:
            return "azure"
        return "s3"
    if scheme == "s3":
        return "s3"
    if scheme in ("", "file") or len(scheme) == 1:
        # Single-letter scheme is a Windows drive letter
        return "filesystem"
    raise ConfigurationError(f"Cannot infer store type from reference: {url}", details={"url": url})


def create_store(ref: Any, *, role: str = "store", credential: dict[str, Any] | None = None) -> ObjectStore:
    """
    Create an ObjectStore from a store reference.

    Args:
        ref: URL string or mapping with ``type``/``url`` and backend options
        role: "source" or "destination", used in error messages
        credential: Shared credential settings (``managed_identity_client_id``,
            ``connection_string``, ``account_key``) applied to Azure stores

    Returns:
        ObjectStore instance

    Raises:
        ConfigurationError: If the reference is missing, empty or unusable
    """
    if is_missing_reference(ref):
        raise ConfigurationError(
            f"The {role} store reference is not configured",
            details={"role": role},
        )

    if not isinstance(ref, (str, dict)):
        raise ConfigurationError(f"The {role} store reference must be a string or mapping, got {type(ref).__name__}")
    options: dict[str, Any] = {"url": ref.strip()} if isinstance(ref, str) else dict(ref)

    url = options.get("url")
    store_type = options.get("type") or (infer_store_type(url) if url else None)
    if store_type is None:
        raise ConfigurationError(f"The {role} store needs either 'type' or 'url'", details={"role": role})
    if store_type not in STORE_TYPES:
        raise ConfigurationError(
            f"Unknown store type '{store_type}' for {role}. Available: {list(STORE_TYPES)}",
            details={"role": role, "type": store_type},
        )

    credential = {k: v for k, v in (credential or {}).items() if not is_missing_reference(v)}

    if store_type == "azure":
        from blobmirror.stores.azure import AzureBlobStore

        connection_string = options.get("connection_string") or credential.get("connection_string")
        if not url and not connection_string:
            raise ConfigurationError(f"The {role} Azure store needs 'url' or 'connection_string'")
        return AzureBlobStore(
            url,
            connection_string=connection_string,
            account_key=options.get("account_key") or credential.get("account_key"),
            managed_identity_client_id=options.get("managed_identity_client_id")
            or credential.get("managed_identity_client_id"),
        )

    if store_type == "s3":
        from blobmirror.stores.s3 import S3Store

        endpoint_url = options.get("endpoint_url")
        if endpoint_url is None and url and urlparse(url).scheme in ("http", "https"):
            endpoint_url = url
        return S3Store(
            name=url or "s3",
            endpoint_url=endpoint_url,
            region=options.get("region"),
            access_key_id=options.get("access_key_id"),
            secret_access_key=options.get("secret_access_key"),
            session_token=options.get("session_token"),
        )

    from blobmirror.stores.filesystem import FilesystemStore

    root = options.get("root_path") or url
    if not root:
        raise ConfigurationError(f"The {role} filesystem store needs 'root_path' or 'url'")
    parsed = urlparse(root)
    if parsed.scheme == "file":
        root = parsed.path
    return FilesystemStore(root, create=bool(options.get("create", False)))
