"""Base classes for storage drivers.

Drivers address every remote object by an opaque ID. Folders are container
nodes, files are leaves. All drivers share the error types and reference
dataclasses defined here.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from datetime import datetime
from typing import List, Optional, Union


FOLDER_MIME_TYPE = "application/vnd.google-apps.folder"

# Roles accepted by share(); anything else is coerced to 'reader' by callers
ROLES = ("reader", "commenter", "writer")


class StorageError(Exception):
    """Base exception for storage operations."""

    kind = "storage_error"

    def __init__(self, detail: str) -> None:
        super().__init__(detail)
        self.detail = detail


class StorageUnavailable(StorageError):
    """A provider call failed or timed out."""

    kind = "storage_unavailable"


@dataclass
class FolderRef:
    """A remote container handle.

    Attributes:
        id: Backend-specific identifier
        name: Folder name only (no parent path)
        created_at: Creation time as reported by the provider
    """
    id: str
    name: str
    created_at: Optional[datetime] = None

    @property
    def is_folder(self) -> bool:
        return True


@dataclass
class FileRef:
    """A remote leaf (stored file).

    Attributes:
        id: Backend-specific identifier
        name: Filename only
        mime_type: Content type reported by the provider
        size: File size in bytes (optional)
        created_at: Creation time as reported by the provider
        modified_at: Last modification time (optional)
    """
    id: str
    name: str
    mime_type: Optional[str] = None
    size: Optional[int] = None
    created_at: Optional[datetime] = None
    modified_at: Optional[datetime] = None

    @property
    def is_folder(self) -> bool:
        return False


RemoteItem = Union[FolderRef, FileRef]


@dataclass
class Permission:
    """An access grant on a remote item."""
    id: str
    role: str
    type: str = "user"
    email_address: Optional[str] = None
    display_name: Optional[str] = None


def creation_order(item: RemoteItem) -> tuple:
    """Sort key: earliest created first, ID as tie-break."""
    created = item.created_at.timestamp() if item.created_at else float("inf")
    return (created, item.id)


class StorageDriver(ABC):
    """Abstract base class for storage backends.

    All storage drivers (Google Drive, local filesystem, in-memory) implement
    this interface. Sharing operations may raise NotImplementedError for
    backends without an access model.
    """

    @property
    @abstractmethod
    def display_name(self) -> str:
        """Human-readable name for this storage (e.g., 'Clients (Google Drive)')."""
        pass

    @property
    @abstractmethod
    def root_id(self) -> str:
        """ID of the container every entity folder lives under."""
        pass

    # =========================================================================
    # Read Operations
    # =========================================================================

    @abstractmethod
    def list_children(self, parent_id: str, kind: Optional[str] = None,
                      name: Optional[str] = None) -> List[RemoteItem]:
        """List non-trashed children of a container.

        Args:
            parent_id: Container ID
            kind: "folder", "file" or None for both
            name: If given, only children whose name equals it exactly

        Returns:
            FolderRef/FileRef objects, earliest created first

        Raises:
            StorageUnavailable: If the provider call fails
        """
        pass

    @abstractmethod
    def get_item(self, item_id: str) -> Optional[RemoteItem]:
        """Return the item with this ID, or None if it does not exist."""
        pass

    def search_files(self, text: str, parent_id: str) -> List[FileRef]:
        """Files under parent_id (any depth) whose name contains text."""
        text_lower = text.lower()
        results: List[FileRef] = []
        pending = [parent_id]
        while pending:
            current = pending.pop()
            for item in self.list_children(current):
                if item.is_folder:
                    pending.append(item.id)
                elif text_lower in item.name.lower():
                    results.append(item)
        return results

    # =========================================================================
    # Write Operations
    # =========================================================================

    @abstractmethod
    def create_folder(self, name: str, parent_id: str) -> FolderRef:
        """Create a folder. Never checks for an existing sibling."""
        pass

    @abstractmethod
    def create_file(self, name: str, parent_id: str, content: bytes,
                    mime_type: Optional[str] = None) -> FileRef:
        """Store content as a new file inside parent_id."""
        pass

    @abstractmethod
    def move(self, item_id: str, new_parent_id: str) -> None:
        """Re-parent a file or folder."""
        pass

    @abstractmethod
    def trash(self, item_id: str) -> None:
        """Move an item to trash; trashed items disappear from listings."""
        pass

    # =========================================================================
    # Sharing (optional)
    # =========================================================================

    def share(self, item_id: str, email: str, role: str,
              notify: bool = True, message: Optional[str] = None) -> Permission:
        """Grant a user access to an item."""
        raise NotImplementedError(f"{self.display_name} does not support sharing")

    def list_permissions(self, item_id: str) -> List[Permission]:
        """List access grants on an item."""
        raise NotImplementedError(f"{self.display_name} does not support sharing")

    def delete_permission(self, item_id: str, permission_id: str) -> None:
        """Remove an access grant."""
        raise NotImplementedError(f"{self.display_name} does not support sharing")

    # =========================================================================
    # Filename Handling
    # =========================================================================

    @abstractmethod
    def sanitize_filename(self, name: str) -> str:
        """Sanitize a filename for this storage backend.

        The result never contains '/', so it is always a single path segment.
        """
        pass
