"""Local filesystem storage driver."""

import os
import re
import shutil
from datetime import datetime, timezone
from typing import List, Optional

from .base import (
    FileRef,
    FolderRef,
    RemoteItem,
    StorageDriver,
    StorageError,
    creation_order,
)

ROOT_ID = "."


class LocalDriver(StorageDriver):
    """Storage driver for a local directory tree.

    Item IDs are POSIX paths relative to root_path ("." is the root). A
    filesystem cannot hold two same-named siblings, so create_folder returns
    the existing directory instead of failing.
    """

    def __init__(self, root_path: str) -> None:
        """Initialize local storage driver.

        Args:
            root_path: Path to the root directory

        Raises:
            StorageError: If root_path doesn't exist
        """
        self.root_path = os.path.abspath(root_path)
        if not os.path.exists(self.root_path):
            raise StorageError(f"Directory does not exist: {self.root_path}")
        if not os.path.isdir(self.root_path):
            raise StorageError(f"Not a directory: {self.root_path}")

    @property
    def display_name(self) -> str:
        return f"{self.root_path} (local)"

    @property
    def root_id(self) -> str:
        return ROOT_ID

    def _full_path(self, item_id: str) -> str:
        """Convert an item ID to an absolute path inside the root."""
        full = os.path.normpath(os.path.join(self.root_path, item_id))
        if full != self.root_path and not full.startswith(self.root_path + os.sep):
            raise StorageError(f"Path escapes storage root: {item_id}")
        return full

    def _item_id(self, full_path: str) -> str:
        rel = os.path.relpath(full_path, self.root_path)
        return rel.replace(os.sep, "/")

    def _ref(self, full_path: str) -> RemoteItem:
        st = os.stat(full_path)
        created = datetime.fromtimestamp(getattr(st, 'st_birthtime', st.st_ctime), tz=timezone.utc)
        name = os.path.basename(full_path)
        if os.path.isdir(full_path):
            return FolderRef(id=self._item_id(full_path), name=name, created_at=created)
        return FileRef(
            id=self._item_id(full_path),
            name=name,
            size=st.st_size,
            created_at=created,
            modified_at=datetime.fromtimestamp(st.st_mtime, tz=timezone.utc),
        )

    def list_children(self, parent_id: str, kind: Optional[str] = None,
                      name: Optional[str] = None) -> List[RemoteItem]:
        full_path = self._full_path(parent_id)

        if not os.path.isdir(full_path):
            raise StorageError(f"Not a directory: {parent_id}")

        results = []
        for entry in os.listdir(full_path):
            if name is not None and entry != name:
                continue
            entry_path = os.path.join(full_path, entry)
            is_dir = os.path.isdir(entry_path)
            if kind == "folder" and not is_dir:
                continue
            if kind == "file" and is_dir:
                continue
            results.append(self._ref(entry_path))

        return sorted(results, key=creation_order)

    def get_item(self, item_id: str) -> Optional[RemoteItem]:
        full_path = self._full_path(item_id)
        if not os.path.exists(full_path):
            return None
        return self._ref(full_path)

    def _child_path(self, name: str, parent_id: str) -> str:
        """Absolute path of a new direct child; name must be one path segment."""
        if name in ("", ".", "..") or "/" in name or os.sep in name:
            raise StorageError(f"Invalid name for an item in {parent_id}: {name!r}")
        return os.path.join(self._full_path(parent_id), name)

    def create_folder(self, name: str, parent_id: str) -> FolderRef:
        full_path = self._child_path(name, parent_id)
        try:
            os.mkdir(full_path)
        except FileExistsError:
            if not os.path.isdir(full_path):
                raise StorageError(f"A file named '{name}' already exists in {parent_id}")
        except OSError as e:
            raise StorageError(f"Failed to create folder {name}: {e}")
        return self._ref(full_path)

    def create_file(self, name: str, parent_id: str, content: bytes,
                    mime_type: Optional[str] = None) -> FileRef:
        full_path = self._child_path(name, parent_id)
        try:
            with open(full_path, 'xb') as f:
                f.write(content)
        except FileExistsError:
            raise StorageError(f"File already exists: {self._item_id(full_path)}")
        except OSError as e:
            raise StorageError(f"Failed to write file {name}: {e}")
        ref = self._ref(full_path)
        ref.mime_type = mime_type
        return ref

    def move(self, item_id: str, new_parent_id: str) -> None:
        full_src = self._full_path(item_id)
        if not os.path.exists(full_src):
            raise StorageError(f"Source does not exist: {item_id}")

        full_dest = os.path.join(self._full_path(new_parent_id), os.path.basename(full_src))
        try:
            shutil.move(full_src, full_dest)
        except Exception as e:
            raise StorageError(f"Failed to move {item_id} to {new_parent_id}: {e}")

    def trash(self, item_id: str) -> None:
        """Delete a file or folder (the filesystem has no trash)."""
        full_path = self._full_path(item_id)

        if not os.path.exists(full_path):
            raise StorageError(f"Path does not exist: {item_id}")
        if full_path == self.root_path:
            raise StorageError("Refusing to delete the storage root")

        try:
            if os.path.isfile(full_path):
                os.remove(full_path)
            else:
                shutil.rmtree(full_path)
        except Exception as e:
            raise StorageError(f"Failed to delete {item_id}: {e}")

    def sanitize_filename(self, name: str) -> str:
        """Sanitize a filename for local filesystem.

        Removes characters that are invalid on most filesystems:
        / \\ : * ? \" < > |
        """
        name = name.replace('/', '-')
        name = name.replace('\\', '-')
        name = name.replace(':', '-')
        name = name.replace('*', '')
        name = name.replace('?', '')
        name = name.replace('"', "'")
        name = name.replace('<', '')
        name = name.replace('>', '')
        name = name.replace('|', '-')

        name = name.strip().strip('.')

        name = re.sub(r'\s+', ' ', name)
        name = re.sub(r'-+', '-', name)

        if len(name) > 100:
            name = name[:100].strip()

        return name
