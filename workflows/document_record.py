"""The persisted metadata for one filed document."""

import json
from dataclasses import dataclass, field, fields
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional, Set


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def parse_tags(value: Any) -> Set[str]:
    """Tags from a comma-separated string or any iterable of strings."""
    if value is None:
        return set()
    if isinstance(value, str):
        value = value.split(",")
    return {tag.strip() for tag in value if tag and tag.strip()}


@dataclass
class DocumentRecord:
    """Metadata for one uploaded file.

    file_path is the '/'-joined folder names plus the file name, exactly as
    the folders were resolved in storage. remote_file_id is the stored
    file's ID (a leaf, never a folder).
    """
    file_name: str
    original_file_name: str
    file_path: str
    remote_file_id: str
    entity_name: str
    category: Optional[str] = None
    financial_year: Optional[str] = None
    month: Optional[int] = None
    mime_type: Optional[str] = None
    file_size: Optional[int] = None
    description: str = ""
    tags: Set[str] = field(default_factory=set)
    extracted_text: str = ""
    uploaded_by: Optional[str] = None
    uploaded_by_name: Optional[str] = None
    created_at: datetime = field(default_factory=utc_now)
    updated_at: datetime = field(default_factory=utc_now)
    id: Optional[str] = None

    def path_segments(self) -> List[str]:
        """Folder names of file_path, without the file name."""
        return self.file_path.split("/")[:-1]

    def to_row(self) -> Dict[str, Any]:
        """Column values for the documents table."""
        row = {f.name: getattr(self, f.name) for f in fields(self)}
        row["tags"] = json.dumps(sorted(self.tags))
        row["created_at"] = self.created_at.isoformat(timespec="microseconds")
        row["updated_at"] = self.updated_at.isoformat(timespec="microseconds")
        return row

    @classmethod
    def from_row(cls, row: Dict[str, Any]) -> "DocumentRecord":
        values = {f.name: row[f.name] for f in fields(cls) if f.name in row}
        values["tags"] = set(json.loads(values.get("tags") or "[]"))
        for name in ("created_at", "updated_at"):
            if isinstance(values.get(name), str):
                values[name] = datetime.fromisoformat(values[name])
        return cls(**values)

    def to_dict(self) -> Dict[str, Any]:
        """JSON-friendly view, tags as a sorted list."""
        result = self.to_row()
        result["tags"] = sorted(self.tags)
        return result


# Columns a metadata edit may change. Name and classification are fixed at
# filing time: they must keep matching file_path and the stored file.
EDITABLE_FIELDS = frozenset({"description", "tags", "extracted_text"})
