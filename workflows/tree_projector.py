"""Folder trees for an entity, built from storage or from metadata records.

Both sources produce the same TreeNode shape, so callers can switch
between them. They can disagree for a while: the live tree shows what is in
storage now, the metadata tree shows what was recorded.
"""

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Dict, Iterable, List, Optional

from storage import StorageDriver
from .document_record import DocumentRecord
from .folder_resolver import FolderResolver

LIVE = "live"
METADATA = "metadata"
MODES = (LIVE, METADATA)

FOLDER = "folder"
FILE = "file"


@dataclass
class TreeNode:
    """A folder or file in a projected tree.

    id is the storage ID. Folders projected from metadata have no ID;
    files always carry their remote file ID.
    """
    type: str
    name: str
    id: Optional[str] = None
    children: List["TreeNode"] = field(default_factory=list)
    file_count: int = 0
    size: Optional[int] = None
    mime_type: Optional[str] = None
    created_at: Optional[datetime] = None
    document_id: Optional[str] = None

    @property
    def is_folder(self) -> bool:
        return self.type == FOLDER

    def folders(self) -> List["TreeNode"]:
        return [child for child in self.children if child.is_folder]

    def files(self) -> List["TreeNode"]:
        return [child for child in self.children if not child.is_folder]

    def find(self, *names: str) -> Optional["TreeNode"]:
        """Descendant reached by following child names, or None."""
        node: Optional[TreeNode] = self
        for name in names:
            node = next((c for c in node.children if c.name == name), None)
            if node is None:
                return None
        return node

    def shape(self) -> tuple:
        """Source-independent summary used to compare trees."""
        return (self.type, self.name, self.file_count,
                tuple(child.shape() for child in self.children))

    def file_counts(self, prefix: str = "") -> Dict[str, int]:
        """Folder path -> file count, for folders holding at least one file.

        Empty folders (e.g. pre-provisioned months) only exist in storage,
        so they are left out.
        """
        path = f"{prefix}/{self.name}" if prefix else self.name
        counts = {path: self.file_count} if self.file_count else {}
        for child in self.folders():
            counts.update(child.file_counts(path))
        return counts

    def to_dict(self) -> Dict[str, Any]:
        result: Dict[str, Any] = {"type": self.type, "name": self.name, "id": self.id}
        if self.is_folder:
            result["fileCount"] = self.file_count
            result["children"] = [child.to_dict() for child in self.children]
        else:
            result["size"] = self.size
            result["mimeType"] = self.mime_type
            result["documentId"] = self.document_id
        return result


def _finish(node: TreeNode) -> TreeNode:
    """Sort children (folders then files, each by name) and count files."""
    node.children.sort(key=lambda child: (not child.is_folder, child.name, child.id or ""))
    node.file_count = sum(
        child.file_count if child.is_folder else 1 for child in node.children
    )
    return node


def project_live(driver: StorageDriver, root_id: str, entity_name: str,
                 max_depth: int = 5) -> Optional[TreeNode]:
    """Tree of what storage holds under the entity folder.

    Listing stops max_depth levels below the entity folder; deeper folders
    appear without children.

    Returns:
        The entity node, or None if the entity has no folder
    """
    entity_folder = FolderResolver(driver).find(entity_name, root_id)
    if entity_folder is None:
        return None

    def build(folder_id: str, name: str, level: int) -> TreeNode:
        node = TreeNode(type=FOLDER, name=name, id=folder_id)
        if level >= max_depth:
            return node
        for item in driver.list_children(folder_id):
            if item.is_folder:
                node.children.append(build(item.id, item.name, level + 1))
            else:
                node.children.append(TreeNode(
                    type=FILE, name=item.name, id=item.id, size=item.size,
                    mime_type=item.mime_type, created_at=item.created_at,
                ))
        return _finish(node)

    return build(entity_folder.id, entity_folder.name, 0)


def project_metadata(records: Iterable[DocumentRecord], entity_name: str,
                     max_depth: int = 5) -> Optional[TreeNode]:
    """The same tree rebuilt from recorded file paths, without storage calls.

    Returns:
        The entity node, or None if the entity has no records
    """
    root = TreeNode(type=FOLDER, name=entity_name)
    seen = False

    for record in records:
        if record.entity_name != entity_name:
            continue
        seen = True
        folders = record.path_segments()[1:]

        node = root
        for level, name in enumerate(folders):
            if level >= max_depth:
                node = None
                break
            child = next((c for c in node.children if c.is_folder and c.name == name), None)
            if child is None:
                child = TreeNode(type=FOLDER, name=name)
                node.children.append(child)
            node = child

        if node is None or len(folders) >= max_depth:
            continue
        node.children.append(TreeNode(
            type=FILE, name=record.file_name, id=record.remote_file_id,
            size=record.file_size, mime_type=record.mime_type,
            created_at=record.created_at, document_id=record.id,
        ))

    if not seen:
        return None

    def finish_all(node: TreeNode) -> TreeNode:
        for child in node.folders():
            finish_all(child)
        return _finish(node)

    return finish_all(root)


def project(entity_name: str, mode: str, driver: Optional[StorageDriver] = None,
            root_id: Optional[str] = None, records: Optional[Iterable[DocumentRecord]] = None,
            max_depth: int = 5) -> Optional[TreeNode]:
    """Dispatch to the live or metadata projection."""
    if mode == LIVE:
        if driver is None:
            raise ValueError("Live projection needs a storage driver")
        return project_live(driver, root_id or driver.root_id, entity_name, max_depth)
    if mode == METADATA:
        return project_metadata(records or [], entity_name, max_depth)
    raise ValueError(f"Unknown projection mode {mode!r}, expected one of {', '.join(MODES)}")
