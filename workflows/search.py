"""Document search across the metadata store and live storage."""

from dataclasses import dataclass
from datetime import datetime
from typing import List, Optional

from docfiler import DocFiler
from storage import FileRef, StorageDriver, StorageError
from .document_record import DocumentRecord
from .folder_resolver import FolderResolver
from .metadata_store import SEARCH_LIMIT, MetadataStore

METADATA = "metadata"
STORAGE = "storage"


@dataclass
class SearchHit:
    """One search result.

    Hits from the metadata store carry the record. Hits from storage are
    files whose name matched but that have no record (yet), so only the
    file reference is known.
    """
    source: str
    name: str
    remote_file_id: str
    record: Optional[DocumentRecord] = None
    file: Optional[FileRef] = None

    @property
    def created_at(self) -> Optional[datetime]:
        if self.record is not None:
            return self.record.created_at
        return self.file.created_at if self.file else None


def search_documents(store: MetadataStore, query: str = "", entity_name: Optional[str] = None,
                     financial_year: Optional[str] = None, month: Optional[int] = None,
                     category: Optional[str] = None, driver: Optional[StorageDriver] = None,
                     root_id: Optional[str] = None, limit: int = SEARCH_LIMIT) -> List[SearchHit]:
    """Search recorded documents, then add unrecorded name matches from storage.

    Storage is only consulted for a non-blank query without year, month or
    category filters, since unrecorded files have no classification to
    filter on. Results are not ranked: recorded hits come first, newest
    first, followed by storage hits, newest first. A storage failure only
    drops the storage hits.
    """
    filters = {
        "entity_name": entity_name,
        "financial_year": financial_year,
        "month": month,
        "category": category,
    }
    records = store.search(query, filters, limit=limit)
    hits = [
        SearchHit(source=METADATA, name=r.file_name, remote_file_id=r.remote_file_id, record=r)
        for r in records
    ]

    query = (query or "").strip()
    if driver is None or not query or financial_year or month or category:
        return hits[:limit]

    try:
        files = _storage_matches(driver, root_id or driver.root_id, query, entity_name)
    except StorageError as e:
        DocFiler.warn(f"Live storage search failed, showing recorded documents only: {e.detail}")
        return hits[:limit]

    seen = {hit.remote_file_id for hit in hits}
    candidates = [f for f in files if f.id not in seen]
    recorded = {r.remote_file_id for r in store.find_by_remote_ids([f.id for f in candidates])}
    extra = [
        SearchHit(source=STORAGE, name=f.name, remote_file_id=f.id, file=f)
        for f in candidates if f.id not in recorded
    ]
    extra.sort(key=lambda hit: hit.created_at.timestamp() if hit.created_at else 0.0,
               reverse=True)
    return (hits + extra)[:limit]


def _storage_matches(driver: StorageDriver, root_id: str, query: str,
                     entity_name: Optional[str]) -> List[FileRef]:
    if not entity_name:
        return driver.search_files(query, root_id)
    entity_folder = FolderResolver(driver).find(entity_name, root_id)
    if entity_folder is None:
        return []
    return driver.search_files(query, entity_folder.id)
