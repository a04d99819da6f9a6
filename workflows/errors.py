"""Errors raised by the filing workflows.

Every error carries a machine-readable ``kind`` and a human-readable
``detail`` so that API layers can report failures without parsing messages.
"""

from typing import Dict, Optional


class FilingError(Exception):
    """Base exception for filing workflow errors."""

    kind = "filing_error"

    def __init__(self, detail: str) -> None:
        super().__init__(detail)
        self.detail = detail

    def to_dict(self) -> Dict[str, str]:
        return {"kind": self.kind, "detail": self.detail}


class InvalidClassification(FilingError):
    """The classification key cannot be filed (raised before any remote call)."""

    kind = "invalid_classification"


class InvalidUpload(FilingError):
    """The uploaded file itself is unusable (empty, unnamed)."""

    kind = "invalid_upload"


class MetadataPersistFailure(FilingError):
    """The file is stored but its metadata record could not be written."""

    kind = "metadata_persist_failure"

    def __init__(self, detail: str, remote_file_id: Optional[str] = None) -> None:
        super().__init__(detail)
        self.remote_file_id = remote_file_id


class DuplicateFolderDetected(FilingError):
    """Two same-named sibling folders found under one parent."""

    kind = "duplicate_folder_detected"

    def __init__(self, parent_id: str, name: str, canonical_id: str,
                 duplicate_id: str) -> None:
        super().__init__(
            f"Duplicate folder '{name}' under {parent_id}: "
            f"{duplicate_id} merges into {canonical_id}"
        )
        self.parent_id = parent_id
        self.name = name
        self.canonical_id = canonical_id
        self.duplicate_id = duplicate_id


class PermissionOperationFailure(FilingError):
    """Sharing or revoking access failed at the provider."""

    kind = "permission_operation_failure"


class DocumentNotFound(FilingError):
    """No metadata record with the given ID."""

    kind = "document_not_found"


class EntityNotFound(FilingError):
    """No entity folder with the given name."""

    kind = "entity_not_found"
