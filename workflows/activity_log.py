"""Activity log for uploads, entity creation, sharing and folder merges."""

from typing import Any, Optional

from docfiler import DocFiler
from .metadata_store import MetadataStore, MetadataStoreError

ENTITY_CREATED = "entity_created"
DOCUMENT_UPLOADED = "document_uploaded"
DOCUMENT_UNRECORDED = "document_unrecorded"
ACCESS_GRANTED = "access_granted"
ACCESS_REVOKED = "access_revoked"
FOLDER_MERGED = "folder_merged"


def log(store: Optional[MetadataStore], action: str, user: Optional[str] = None,
        entity_name: Optional[str] = None, **details: Any) -> bool:
    """Record an event. Fails with a warning, never an exception.

    Returns:
        True if the event was written
    """
    if store is None:
        return False
    try:
        store.log_activity(action, user=user, entity_name=entity_name, **details)
    except MetadataStoreError as e:
        DocFiler.warn(f"Failed to write activity log ({action}): {e.detail}")
        return False
    return True
