"""Recording metadata for a file that has already been placed in storage."""

from dataclasses import dataclass
from typing import Optional, Set

from docfiler import DocFiler
from rich.markup import escape
from storage import FileRef
from . import activity_log
from .classification import ClassificationKey
from .document_record import DocumentRecord
from .errors import MetadataPersistFailure
from .metadata_store import MetadataStore, MetadataStoreError
from .path_planner import file_path, plan


@dataclass(frozen=True)
class Principal:
    """The authenticated caller an upload is attributed to."""
    email: str
    name: Optional[str] = None


@dataclass
class RecordResult:
    """Outcome of recording one document.

    persisted is False when the file exists in storage but the database
    write failed; failure then says why. The record is returned either way
    (without an ID when unpersisted).
    """
    record: DocumentRecord
    persisted: bool
    failure: Optional[MetadataPersistFailure] = None


class MetadataRecorder:
    """Builds and stores the DocumentRecord for a placed file."""

    def __init__(self, store: MetadataStore) -> None:
        self.store = store

    def build(self, placed: FileRef, key: ClassificationKey, original_file_name: str,
              uploader: Optional[Principal] = None, mime_type: Optional[str] = None,
              file_size: Optional[int] = None, description: str = "",
              tags: Optional[Set[str]] = None, extracted_text: str = "") -> DocumentRecord:
        """Assemble the record without storing it.

        file_path is recomputed from the key with plan(), the same call that
        chose the folders, followed by the stored file's name.
        """
        key = key.normalized()
        segments = plan(key)
        return DocumentRecord(
            file_name=placed.name,
            original_file_name=original_file_name,
            file_path=file_path(segments, placed.name),
            remote_file_id=placed.id,
            entity_name=key.entity_name,
            category=key.category,
            financial_year=key.financial_year,
            month=key.month,
            mime_type=mime_type or placed.mime_type,
            file_size=file_size if file_size is not None else placed.size,
            description=description or "",
            tags=set(tags or ()),
            extracted_text=extracted_text or "",
            uploaded_by=uploader.email if uploader else None,
            uploaded_by_name=uploader.name if uploader else None,
        )

    def record(self, placed: FileRef, key: ClassificationKey, original_file_name: str,
               uploader: Optional[Principal] = None, **extras) -> RecordResult:
        """Build and persist the record for a placed file.

        A database failure does not raise: the file is already stored, so
        the result is flagged as unpersisted, a warning is printed and the
        event goes to the activity log if that still works.
        """
        record = self.build(placed, key, original_file_name, uploader, **extras)
        try:
            self.store.insert(record)
        except MetadataStoreError as e:
            record.id = None
            failure = MetadataPersistFailure(
                f"{record.file_path} was stored (id {placed.id}) but its metadata "
                f"was not saved: {e.detail}",
                remote_file_id=placed.id,
            )
            DocFiler.warn(failure.detail)
            activity_log.log(
                self.store, activity_log.DOCUMENT_UNRECORDED,
                user=record.uploaded_by, entity_name=record.entity_name,
                file_path=record.file_path, remote_file_id=placed.id, error=e.detail,
            )
            return RecordResult(record=record, persisted=False, failure=failure)

        DocFiler.print_right(f"  Recorded [cyan]{escape(record.file_path)}[/cyan]")
        return RecordResult(record=record, persisted=True)
