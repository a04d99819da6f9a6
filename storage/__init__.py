"""Storage driver abstraction for docfiler.

Provides a uniform, ID-keyed interface across backends:
- GDriveDriver: Google Drive (delegated user credential)
- LocalDriver: Local filesystem
- MemoryDriver: In-process tree (tests, demos)

Usage:
    from storage import create_storage

    driver = create_storage("gdrive:folder_id", access_token=token)
    driver = create_storage("local:/path/to/folder")
    driver = create_storage("memory:")
"""

from typing import Optional

from .base import (
    FOLDER_MIME_TYPE,
    ROLES,
    StorageDriver,
    StorageError,
    StorageUnavailable,
    FolderRef,
    FileRef,
    Permission,
    RemoteItem,
    creation_order,
)
from .local import LocalDriver
from .memory import MemoryDriver
from .gdrive import GDriveDriver, authenticate_gdrive, build_query


def parse_storage_uri(uri: str) -> tuple:
    """Parse a storage URI into (type, value) tuple.

    Args:
        uri: Storage URI (e.g., 'gdrive:abc123', 'local:/path', 'memory:')

    Returns:
        Tuple of (storage_type, value)

    Raises:
        ValueError: If URI format is invalid
    """
    for prefix in ("gdrive", "local", "memory"):
        if uri.startswith(f"{prefix}:"):
            return (prefix, uri[len(prefix) + 1:])
    raise ValueError(
        f"Invalid storage URI: {uri}. "
        "Must start with 'gdrive:', 'local:', or 'memory:'"
    )


def create_storage(uri: str, token_file: Optional[str] = None,
                   access_token: Optional[str] = None,
                   timeout: int = 300) -> StorageDriver:
    """Create a storage driver from a URI.

    Google Drive needs the caller's delegated credential: either a raw
    access_token or a saved token_file.

    Raises:
        ValueError: If URI format is invalid
        StorageError: If the backend can't be initialized
    """
    storage_type, value = parse_storage_uri(uri)

    if storage_type == "local":
        return LocalDriver(value)
    if storage_type == "memory":
        return MemoryDriver(value or "Memory")

    if not value:
        raise ValueError("gdrive: URI needs the root folder ID (gdrive:<folder_id>)")
    if access_token:
        return GDriveDriver.from_access_token(value, access_token, timeout=timeout)
    if token_file:
        return GDriveDriver.from_token_file(value, token_file, timeout=timeout)
    raise StorageError("Google Drive needs a delegated credential (access token or token file)")


__all__ = [
    'FOLDER_MIME_TYPE',
    'ROLES',
    'StorageDriver',
    'StorageError',
    'StorageUnavailable',
    'FolderRef',
    'FileRef',
    'Permission',
    'RemoteItem',
    'creation_order',
    'LocalDriver',
    'MemoryDriver',
    'GDriveDriver',
    'authenticate_gdrive',
    'build_query',
    'create_storage',
    'parse_storage_uri',
]
