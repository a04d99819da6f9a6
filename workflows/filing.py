"""Filing workflow: entities, uploads, structure views and housekeeping.

FilingService is the entry point the CLI (or any API layer) talks to. It
owns no global state: the storage driver, metadata store and folder lock
registry are passed in.
"""

from dataclasses import dataclass, replace
from datetime import date
from typing import Any, Dict, Iterable, List, Optional, Sequence, Tuple, Union

from docfiler import DocFiler
from rich.markup import escape
from storage import FolderRef, Permission, StorageDriver, StorageError
from utils.locks import KeyedLocks
from . import activity_log, sharing
from .classification import ClassificationKey, categories_for, validate_classification
from .document_record import DocumentRecord, parse_tags
from .errors import (
    DocumentNotFound,
    DuplicateFolderDetected,
    EntityNotFound,
    FilingError,
    InvalidUpload,
    MetadataPersistFailure,
)
from .folder_resolver import FolderResolver
from .materializer import EntityFolderStructure, HierarchyMaterializer
from .metadata_store import MetadataStore, MetadataStoreError
from .path_planner import plan
from .reconciliation import Reconciler
from .recorder import MetadataRecorder, Principal
from .search import SearchHit, search_documents
from .tree_projector import LIVE, TreeNode, project

FILED = "filed"
FILED_UNRECORDED = "filed_unrecorded"
FAILED = "failed"


@dataclass
class UploadedFile:
    """File content as received from the caller."""
    file_name: str
    content: bytes
    mime_type: Optional[str] = None


@dataclass
class UploadExtras:
    """Optional metadata supplied with an upload.

    tags may be a comma-separated string. custom_file_name replaces the
    uploaded name and is only honoured when a single file is uploaded.
    """
    description: str = ""
    tags: Union[str, Iterable[str], None] = None
    extracted_text: str = ""
    custom_file_name: Optional[str] = None


@dataclass
class FilingResult:
    """A file that is in storage, with or without its metadata record."""
    record: DocumentRecord
    persisted: bool
    failure: Optional[MetadataPersistFailure] = None

    @property
    def status(self) -> str:
        return FILED if self.persisted else FILED_UNRECORDED


@dataclass
class UploadOutcome:
    """Per-file result of a multi-file upload."""
    file_name: str
    status: str
    result: Optional[FilingResult] = None
    error: Optional[Dict[str, str]] = None


class FilingService:
    """Files documents into the entity/category/year/month hierarchy.

    Args:
        driver: Storage backend
        store: Metadata store
        locks: Folder lock registry; share one between every service that
            writes to the same storage
        root_id: Folder all entities live under (defaults to the driver's root)
        max_tree_depth: Depth bound for structure views and reconciliation
        provision_workers: Parallel categories when provisioning an entity
    """

    def __init__(self, driver: StorageDriver, store: MetadataStore,
                 locks: Optional[KeyedLocks] = None, root_id: Optional[str] = None,
                 max_tree_depth: int = 5, provision_workers: int = 4) -> None:
        self.driver = driver
        self.store = store
        self.locks = locks if locks is not None else KeyedLocks()
        self.root_id = root_id or driver.root_id
        self.max_tree_depth = max_tree_depth
        self.resolver = FolderResolver(driver, self.locks)
        self.materializer = HierarchyMaterializer(self.resolver, provision_workers)
        self.recorder = MetadataRecorder(store)

    # =========================================================================
    # Entities
    # =========================================================================

    def create_entity(self, entity_name: str, entity_type: str,
                      user: Optional[str] = None,
                      today: Optional[date] = None) -> EntityFolderStructure:
        """Provision the standard folder tree for an entity and register it.

        Safe to call again for an existing entity: folders are reused.
        Registration failures are reported as warnings only.
        """
        categories_for(entity_type)
        structure = self.materializer.provision_entity(
            entity_name, entity_type, self.root_id, today=today
        )
        entity_name = structure.entity_folder.name

        try:
            self.store.save_entity(entity_name, entity_type, structure.entity_folder.id)
        except MetadataStoreError as e:
            DocFiler.warn(f"Entity {entity_name} created in storage but not registered: {e.detail}")

        activity_log.log(self.store, activity_log.ENTITY_CREATED, user=user,
                         entity_name=entity_name, entity_type=entity_type,
                         folders=structure.total_folders)
        return structure

    def get_entity_type(self, entity_name: Optional[str]) -> Optional[str]:
        """Registered type of an entity, or None if unknown."""
        entity_name = (entity_name or "").strip()
        if not entity_name:
            return None
        try:
            entity = self.store.get_entity(entity_name)
        except MetadataStoreError as e:
            DocFiler.warn(f"Could not look up entity {entity_name}: {e.detail}")
            return None
        return entity["entity_type"] if entity else None

    def list_entities(self) -> List[str]:
        """Names of the entity folders in storage, alphabetical."""
        folders = self.driver.list_children(self.root_id, kind="folder")
        return sorted({folder.name for folder in folders})

    def entity_folders(self, entity_name: str) -> Tuple[FolderRef, List[FolderRef]]:
        """The entity folder and its direct subfolders, by name.

        Raises:
            EntityNotFound: The entity has no folder
        """
        entity_folder = self._entity_folder(entity_name)
        subfolders = self.driver.list_children(entity_folder.id, kind="folder")
        return entity_folder, sorted(subfolders, key=lambda f: (f.name, f.id))

    def _entity_folder(self, entity_name: str) -> FolderRef:
        folder = self.resolver.find(entity_name.strip(), self.root_id)
        if folder is None:
            raise EntityNotFound(f"Entity folder '{entity_name}' not found")
        return folder

    # =========================================================================
    # Uploads
    # =========================================================================

    def upload_and_file(self, key: ClassificationKey, upload: UploadedFile,
                        extras: Optional[UploadExtras] = None,
                        uploader: Optional[Principal] = None) -> FilingResult:
        """Store one file in the folder its classification maps to and record it.

        Steps run strictly in order: validate, plan, materialize folders,
        store the file, record metadata.

        Raises:
            InvalidClassification: Bad key (nothing touched storage)
            InvalidUpload: Empty file or no usable file name
            StorageUnavailable: Folder or file creation failed
        """
        extras = extras or UploadExtras()
        if not upload.content:
            raise InvalidUpload(f"File is empty: {upload.file_name or '(unnamed)'}")

        key = key.normalized()
        key = validate_classification(key, self.get_entity_type(key.entity_name))
        segments = plan(key)

        chosen = (extras.custom_file_name or "").strip() or upload.file_name or ""
        file_name = self.driver.sanitize_filename(chosen)
        if not file_name:
            raise InvalidUpload("A file name is required")

        folder = self.materializer.materialize(segments, self.root_id)
        placed = self.driver.create_file(file_name, folder.id, upload.content, upload.mime_type)

        outcome = self.recorder.record(
            placed, key, upload.file_name or file_name, uploader,
            mime_type=upload.mime_type,
            file_size=len(upload.content),
            description=(extras.description or "").strip(),
            tags=parse_tags(extras.tags),
            extracted_text=(extras.extracted_text or "").strip(),
        )
        result = FilingResult(outcome.record, outcome.persisted, outcome.failure)

        if result.persisted:
            activity_log.log(
                self.store, activity_log.DOCUMENT_UPLOADED,
                user=uploader.email if uploader else None,
                entity_name=key.entity_name, document_id=result.record.id,
                file_name=file_name, category=key.category or "Root",
            )
            DocFiler.print_left(
                f"[green]✓ Filed[/green] {escape(upload.file_name or file_name)}",
                f"  → {escape(result.record.file_path)}",
            )
        else:
            DocFiler.print_left(
                f"[yellow]⚠ Filed without metadata[/yellow] {escape(file_name)}",
                f"  → {escape(result.record.file_path)}",
            )
        return result

    def upload_many(self, key: ClassificationKey, files: Sequence[UploadedFile],
                    extras: Optional[UploadExtras] = None,
                    uploader: Optional[Principal] = None) -> List[UploadOutcome]:
        """Upload several files under one classification.

        The key is validated once up front. After that each file gets its
        own outcome; one failed file does not stop the others.

        Raises:
            InvalidClassification: Bad key (no file was uploaded)
        """
        extras = extras or UploadExtras()
        key = key.normalized()
        validate_classification(key, self.get_entity_type(key.entity_name))
        if len(files) != 1 and extras.custom_file_name:
            extras = replace(extras, custom_file_name=None)

        outcomes: List[UploadOutcome] = []
        for index, upload in enumerate(files, 1):
            DocFiler.print_right(
                f"Processing file {index}/{len(files)}: {escape(upload.file_name or '(unnamed)')}"
            )
            try:
                result = self.upload_and_file(key, upload, extras, uploader)
            except (FilingError, StorageError) as e:
                DocFiler.print_right(f"[red]✗ {escape(upload.file_name or '(unnamed)')}: "
                                     f"{escape(e.detail)}[/red]")
                outcomes.append(UploadOutcome(
                    file_name=upload.file_name, status=FAILED,
                    error={"kind": e.kind, "detail": e.detail},
                ))
                continue
            outcomes.append(UploadOutcome(
                file_name=result.record.file_name, status=result.status, result=result,
                error=result.failure.to_dict() if result.failure else None,
            ))
        return outcomes

    # =========================================================================
    # Documents
    # =========================================================================

    def list_documents(self, entity_name: str, limit: Optional[int] = None) -> List[DocumentRecord]:
        return self.store.find_by_entity(entity_name.strip(), limit=limit)

    def get_document(self, doc_id: str) -> DocumentRecord:
        record = self.store.find_by_id(doc_id)
        if record is None:
            raise DocumentNotFound(f"No document with id {doc_id}")
        return record

    def update_document(self, doc_id: str, patch: Dict[str, Any]) -> DocumentRecord:
        """Edit description, tags or extracted text of a document.

        Raises:
            ValueError: The patch touches the name or classification, which
                would no longer match the stored file
            DocumentNotFound: Unknown document ID
        """
        if "tags" in patch:
            patch = dict(patch, tags=parse_tags(patch["tags"]))
        record = self.store.update_by_id(doc_id, patch)
        if record is None:
            raise DocumentNotFound(f"No document with id {doc_id}")
        return record

    def get_structure(self, entity_name: str, mode: str = LIVE) -> Optional[TreeNode]:
        """Folder tree of an entity from storage ("live") or records ("metadata")."""
        entity_name = entity_name.strip()
        records = None if mode == LIVE else self.store.find_by_entity(entity_name)
        return project(entity_name, mode, driver=self.driver, root_id=self.root_id,
                       records=records, max_depth=self.max_tree_depth)

    def search(self, query: str = "", entity_name: Optional[str] = None,
               financial_year: Optional[str] = None, month: Optional[int] = None,
               category: Optional[str] = None, include_storage: bool = True) -> List[SearchHit]:
        return search_documents(
            self.store, query, entity_name=entity_name, financial_year=financial_year,
            month=month, category=category,
            driver=self.driver if include_storage else None, root_id=self.root_id,
        )

    # =========================================================================
    # Sharing
    # =========================================================================

    def share_item(self, item_id: str, email: str, role: str = sharing.DEFAULT_ROLE,
                   user: Optional[str] = None, message: Optional[str] = None) -> Permission:
        return sharing.share_item(self.driver, item_id, email, role,
                                  store=self.store, user=user, message=message)

    def list_document_permissions(self, doc_id: str) -> List[Permission]:
        return sharing.list_document_permissions(self.driver, self.store, doc_id)

    def revoke_access(self, doc_id: str, email: str, user: Optional[str] = None) -> Permission:
        return sharing.revoke_access(self.driver, self.store, doc_id, email, user=user)

    # =========================================================================
    # Housekeeping
    # =========================================================================

    def reconcile(self, entity_name: Optional[str] = None,
                  user: Optional[str] = None) -> List[DuplicateFolderDetected]:
        """Merge duplicate sibling folders for one entity (or all of them).

        Raises:
            EntityNotFound: entity_name given but it has no folder
        """
        if entity_name is None:
            reconciler = Reconciler(self.driver, self.locks, self.store, user,
                                    max_depth=self.max_tree_depth + 1)
            detected = reconciler.reconcile_tree(self.root_id)
        else:
            entity_name = entity_name.strip()
            reconciler = Reconciler(self.driver, self.locks, self.store, user,
                                    max_depth=self.max_tree_depth)
            detected = reconciler.reconcile_children(self.root_id, name=entity_name,
                                                     entity_name=entity_name)
            entity_folder = self._entity_folder(entity_name)
            detected += reconciler.reconcile_tree(entity_folder.id, entity_name)

        if detected:
            DocFiler.warn(f"Merged {len(detected)} duplicate folder(s)")
        else:
            DocFiler.print_right("No duplicate folders found")
        return detected

    def entity_stats(self, entity_name: str) -> Dict[str, Any]:
        return self.store.entity_stats(entity_name.strip())

    def document_stats(self) -> Dict[str, int]:
        return self.store.document_stats()

    def activity(self, limit: int = 50) -> List[Dict[str, Any]]:
        return self.store.get_activity_logs(limit)
