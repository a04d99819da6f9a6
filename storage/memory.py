"""In-memory storage driver.

Behaves like Google Drive where it matters for filing: folders are addressed
by ID, names are not unique among siblings, and trashed items vanish from
listings. Used by the test suite and by the ``memory:`` storage URI.
"""

import itertools
import threading
import time
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from typing import Callable, Dict, List, Optional

from .base import (
    FileRef,
    FolderRef,
    Permission,
    RemoteItem,
    StorageDriver,
    StorageError,
    creation_order,
)

ROOT_ID = "root"

# Creation timestamps advance by this much per created item, so creation
# order stays unambiguous even when items are created in the same instant.
_TICK = timedelta(microseconds=1)


@dataclass
class _Node:
    ref: RemoteItem
    parent_id: Optional[str]
    content: bytes = b""
    trashed: bool = False
    permissions: List[Permission] = field(default_factory=list)


class MemoryDriver(StorageDriver):
    """Storage driver keeping the whole tree in a dict.

    Args:
        list_delay: Seconds to sleep inside every list_children call. Widens
            the window between "look for folder" and "create folder" so that
            concurrency tests can provoke interleavings.
        on_list: Optional hook called as ``on_list(parent_id, kind, name)``
            after the listing is computed and before it is returned.
    """

    def __init__(self, name: str = "Memory", list_delay: float = 0.0,
                 on_list: Optional[Callable[[str, Optional[str], Optional[str]], None]] = None) -> None:
        self._name = name
        self.list_delay = list_delay
        self.on_list = on_list
        self._lock = threading.RLock()
        self._ids = itertools.count(1)
        self._clock = datetime(2024, 4, 1, tzinfo=timezone.utc)
        self._nodes: Dict[str, _Node] = {
            ROOT_ID: _Node(FolderRef(id=ROOT_ID, name=name, created_at=self._clock), None)
        }
        self.create_calls = 0
        self.fail_next: Optional[Exception] = None

    @property
    def display_name(self) -> str:
        return f"{self._name} (memory)"

    @property
    def root_id(self) -> str:
        return ROOT_ID

    def _next_id(self, prefix: str) -> str:
        return f"{prefix}-{next(self._ids):06d}"

    def _now(self) -> datetime:
        self._clock += _TICK
        return self._clock

    def _maybe_fail(self) -> None:
        if self.fail_next is not None:
            exc, self.fail_next = self.fail_next, None
            raise exc

    def _live_node(self, item_id: str) -> _Node:
        node = self._nodes.get(item_id)
        if node is None or node.trashed:
            raise StorageError(f"Item not found: {item_id}")
        return node

    def list_children(self, parent_id: str, kind: Optional[str] = None,
                      name: Optional[str] = None) -> List[RemoteItem]:
        with self._lock:
            self._maybe_fail()
            self._live_node(parent_id)
            items = [
                node.ref for node in self._nodes.values()
                if node.parent_id == parent_id and not node.trashed
                and (kind is None or (kind == "folder") == node.ref.is_folder)
                and (name is None or node.ref.name == name)
            ]
        if self.list_delay:
            time.sleep(self.list_delay)
        if self.on_list:
            self.on_list(parent_id, kind, name)
        return sorted(items, key=creation_order)

    def get_item(self, item_id: str) -> Optional[RemoteItem]:
        with self._lock:
            node = self._nodes.get(item_id)
            if node is None or node.trashed:
                return None
            return node.ref

    def parent_of(self, item_id: str) -> Optional[str]:
        """Parent container ID (test helper)."""
        with self._lock:
            return self._live_node(item_id).parent_id

    def read_bytes(self, file_id: str) -> bytes:
        """Stored content of a file (test helper)."""
        with self._lock:
            return self._live_node(file_id).content

    def create_folder(self, name: str, parent_id: str) -> FolderRef:
        with self._lock:
            self._maybe_fail()
            self._live_node(parent_id)
            self.create_calls += 1
            ref = FolderRef(id=self._next_id("folder"), name=name, created_at=self._now())
            self._nodes[ref.id] = _Node(ref, parent_id)
            return ref

    def create_file(self, name: str, parent_id: str, content: bytes,
                    mime_type: Optional[str] = None) -> FileRef:
        with self._lock:
            self._maybe_fail()
            parent = self._live_node(parent_id)
            if not parent.ref.is_folder:
                raise StorageError(f"Not a folder: {parent_id}")
            now = self._now()
            ref = FileRef(id=self._next_id("file"), name=name,
                          mime_type=mime_type or "application/octet-stream",
                          size=len(content), created_at=now, modified_at=now)
            self._nodes[ref.id] = _Node(ref, parent_id, content=content)
            return ref

    def move(self, item_id: str, new_parent_id: str) -> None:
        with self._lock:
            self._maybe_fail()
            node = self._live_node(item_id)
            self._live_node(new_parent_id)
            node.parent_id = new_parent_id

    def trash(self, item_id: str) -> None:
        with self._lock:
            self._maybe_fail()
            self._live_node(item_id).trashed = True

    def share(self, item_id: str, email: str, role: str,
              notify: bool = True, message: Optional[str] = None) -> Permission:
        with self._lock:
            self._maybe_fail()
            node = self._live_node(item_id)
            permission = Permission(id=self._next_id("perm"), role=role,
                                    type="user", email_address=email)
            node.permissions.append(permission)
            return permission

    def list_permissions(self, item_id: str) -> List[Permission]:
        with self._lock:
            self._maybe_fail()
            return list(self._live_node(item_id).permissions)

    def delete_permission(self, item_id: str, permission_id: str) -> None:
        with self._lock:
            self._maybe_fail()
            node = self._live_node(item_id)
            remaining = [p for p in node.permissions if p.id != permission_id]
            if len(remaining) == len(node.permissions):
                raise StorageError(f"Permission not found: {permission_id}")
            node.permissions = remaining

    def sanitize_filename(self, name: str) -> str:
        return name.replace('/', '-').strip()
