"""Idempotent folder resolution: reuse a named child folder or create it."""

import threading
from typing import Optional

from docfiler import DocFiler
from rich.markup import escape
from storage import FolderRef, StorageDriver, creation_order
from utils.locks import KeyedLocks


class FolderResolver:
    """Find-or-create for one folder name under one parent.

    The storage provider does not enforce unique names among siblings, so
    two callers that both see "no such folder" would both create one. The
    check-then-create section is therefore held under a lock keyed by
    (parent_id, name). Share one KeyedLocks between every resolver that
    writes to the same storage.

    Nothing is cached between calls: each resolve() asks the provider again.
    """

    def __init__(self, driver: StorageDriver, locks: Optional[KeyedLocks] = None,
                 serialize: bool = True) -> None:
        self.driver = driver
        self.locks = locks if locks is not None else KeyedLocks()
        self.serialize = serialize
        self._stats_lock = threading.Lock()
        self.created = 0
        self.reused = 0

    def resolve(self, name: str, parent_id: str) -> FolderRef:
        """Return the folder called `name` inside `parent_id`, creating it if absent.

        When several same-named folders already exist (left behind by an
        unserialized writer), the earliest created wins, so every caller
        converges on the same one.

        Raises:
            ValueError: If name is empty
            StorageUnavailable: If listing or creating fails. A failed create
                is not retried here; calling resolve() again re-checks first.
        """
        if not name or not name.strip():
            raise ValueError("Folder name must not be empty")

        if not self.serialize:
            return self._find_or_create(name, parent_id)

        with self.locks.hold((parent_id, name)):
            return self._find_or_create(name, parent_id)

    def find(self, name: str, parent_id: str) -> Optional[FolderRef]:
        """The canonical existing folder, or None. Never creates."""
        candidates = [
            item for item in self.driver.list_children(parent_id, kind="folder", name=name)
            if item.is_folder and item.name == name
        ]
        if not candidates:
            return None
        return min(candidates, key=creation_order)

    def _find_or_create(self, name: str, parent_id: str) -> FolderRef:
        existing = self.find(name, parent_id)
        if existing is not None:
            with self._stats_lock:
                self.reused += 1
            return existing

        folder = self.driver.create_folder(name, parent_id)
        with self._stats_lock:
            self.created += 1
        DocFiler.print_right(f"  + Created folder: {escape(name)}")
        return folder
