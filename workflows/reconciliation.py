"""Reconciliation workflow for merging duplicate sibling folders.

Storage does not stop two folders with the same name from sharing a
parent. If a writer ever bypassed the folder locks, the tree can contain
such pairs. This pass keeps the earliest created folder of each name,
moves the contents of the others into it and trashes the emptied copies.
"""

from collections import defaultdict
from typing import Dict, List, Optional

from docfiler import DocFiler
from rich.markup import escape
from storage import FolderRef, StorageDriver, creation_order
from utils.locks import KeyedLocks
from . import activity_log
from .errors import DuplicateFolderDetected
from .metadata_store import MetadataStore


def group_duplicates(folders: List[FolderRef]) -> Dict[str, List[FolderRef]]:
    """Same-named folders, earliest created first; unique names omitted."""
    by_name: Dict[str, List[FolderRef]] = defaultdict(list)
    for folder in folders:
        by_name[folder.name].append(folder)
    return {
        name: sorted(group, key=creation_order)
        for name, group in by_name.items() if len(group) > 1
    }


class Reconciler:
    """Finds and merges duplicate sibling folders below a folder."""

    def __init__(self, driver: StorageDriver, locks: Optional[KeyedLocks] = None,
                 store: Optional[MetadataStore] = None, user: Optional[str] = None,
                 max_depth: int = 5) -> None:
        self.driver = driver
        self.locks = locks if locks is not None else KeyedLocks()
        self.store = store
        self.user = user
        self.max_depth = max_depth

    def reconcile_children(self, parent_id: str, name: Optional[str] = None,
                           entity_name: Optional[str] = None) -> List[DuplicateFolderDetected]:
        """Merge duplicates among the direct subfolders of parent_id.

        Args:
            parent_id: Folder whose children are checked
            name: Only check folders with this name
            entity_name: Recorded in the activity log
        """
        folders = self.driver.list_children(parent_id, kind="folder", name=name)
        detected: List[DuplicateFolderDetected] = []

        for folder_name, group in group_duplicates(folders).items():
            with self.locks.hold((parent_id, folder_name)):
                canonical = group[0]
                for duplicate in group[1:]:
                    event = DuplicateFolderDetected(
                        parent_id, folder_name, canonical.id, duplicate.id
                    )
                    DocFiler.warn(event.detail)
                    self.merge_into(duplicate.id, canonical.id)
                    self.driver.trash(duplicate.id)
                    activity_log.log(
                        self.store, activity_log.FOLDER_MERGED, user=self.user,
                        entity_name=entity_name, parent_id=parent_id, name=folder_name,
                        canonical_id=canonical.id, duplicate_id=duplicate.id,
                    )
                    detected.append(event)
        return detected

    def reconcile_tree(self, folder_id: str, entity_name: Optional[str] = None,
                       level: int = 0) -> List[DuplicateFolderDetected]:
        """Merge duplicates at every level below folder_id (depth-bounded)."""
        if level >= self.max_depth:
            return []

        detected = self.reconcile_children(folder_id, entity_name=entity_name)
        for child in self.driver.list_children(folder_id, kind="folder"):
            detected.extend(self.reconcile_tree(child.id, entity_name, level + 1))
        return detected

    def merge_into(self, source_id: str, dest_id: str) -> None:
        """Move everything in source into dest.

        Subfolders that dest already has by name are merged recursively and
        the emptied source subfolder is trashed. The source folder itself is
        left in place (empty) for the caller to trash.
        """
        existing = {}
        for folder in self.driver.list_children(dest_id, kind="folder"):
            if folder.name not in existing:
                existing[folder.name] = folder

        for item in self.driver.list_children(source_id):
            target = existing.get(item.name) if item.is_folder else None
            if target is not None:
                self.merge_into(item.id, target.id)
                self.driver.trash(item.id)
            else:
                self.driver.move(item.id, dest_id)
                DocFiler.print_right(f"    Moved: {escape(item.name)}")
