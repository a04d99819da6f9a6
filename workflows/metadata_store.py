"""Metadata store for filed documents, entities and the activity log.

SQLite-backed. One connection is shared between threads and guarded by a
lock; every query is parameterized.
"""

import json
import os
import re
import sqlite3
import threading
import uuid
from contextlib import contextmanager
from datetime import datetime, timezone
from typing import Any, Dict, Iterator, List, Optional

from .classification import MONTH_NAMES
from .document_record import EDITABLE_FIELDS, DocumentRecord
from .errors import FilingError

SEARCH_LIMIT = 100

# Text columns a free-text search looks at
SEARCH_COLUMNS = (
    "file_name", "original_file_name", "extracted_text", "tags",
    "description", "entity_name", "category",
)

DOCUMENT_COLUMNS = (
    "id", "file_name", "original_file_name", "file_path", "remote_file_id",
    "entity_name", "category", "financial_year", "month", "mime_type",
    "file_size", "description", "tags", "extracted_text", "uploaded_by",
    "uploaded_by_name", "created_at", "updated_at",
)

_YEAR_QUERY = re.compile(r"^\d{4}(-\d{2})?$")


class MetadataStoreError(FilingError):
    """A metadata database operation failed."""

    kind = "metadata_store_error"


def _timestamp() -> str:
    return datetime.now(timezone.utc).isoformat(timespec="microseconds")


def _like_pattern(text: str) -> str:
    """Substring LIKE pattern with the wildcards in text escaped."""
    escaped = text.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")
    return f"%{escaped}%"


def month_from_query(text: str) -> Optional[int]:
    """'March' or 'mar' -> 3; None if text is not a month name."""
    lowered = text.strip().lower()
    if len(lowered) < 3:
        return None
    for index, name in enumerate(MONTH_NAMES, 1):
        if name.lower() == lowered or name.lower()[:3] == lowered:
            return index
    return None


class MetadataStore:
    """SQLite store for document records, entities and activity logs."""

    def __init__(self, db_path: str) -> None:
        if db_path != ":memory:":
            db_dir = os.path.dirname(db_path)
            if db_dir and not os.path.exists(db_dir):
                os.makedirs(db_dir)

        self.db_path = db_path
        self._lock = threading.RLock()
        try:
            self.conn = sqlite3.connect(db_path, check_same_thread=False)
        except sqlite3.Error as e:
            raise MetadataStoreError(f"Cannot open metadata database {db_path}: {e}") from e
        self.conn.row_factory = sqlite3.Row
        self._init_db()

    def _init_db(self) -> None:
        """Create tables and indexes if they don't exist."""
        with self._cursor() as cursor:
            cursor.execute("""
                CREATE TABLE IF NOT EXISTS documents (
                    id TEXT PRIMARY KEY,
                    file_name TEXT NOT NULL,
                    original_file_name TEXT,
                    file_path TEXT NOT NULL,
                    remote_file_id TEXT NOT NULL,
                    entity_name TEXT NOT NULL,
                    category TEXT,
                    financial_year TEXT,
                    month INTEGER,
                    mime_type TEXT,
                    file_size INTEGER,
                    description TEXT,
                    tags TEXT,
                    extracted_text TEXT,
                    uploaded_by TEXT,
                    uploaded_by_name TEXT,
                    created_at TEXT NOT NULL,
                    updated_at TEXT NOT NULL
                )
            """)
            cursor.execute(
                "CREATE INDEX IF NOT EXISTS idx_documents_entity ON documents(entity_name)"
            )
            cursor.execute(
                "CREATE INDEX IF NOT EXISTS idx_documents_remote ON documents(remote_file_id)"
            )
            cursor.execute("""
                CREATE TABLE IF NOT EXISTS entities (
                    entity_name TEXT PRIMARY KEY,
                    entity_type TEXT NOT NULL,
                    folder_id TEXT,
                    created_at TEXT NOT NULL,
                    updated_at TEXT NOT NULL
                )
            """)
            cursor.execute("""
                CREATE TABLE IF NOT EXISTS activity_logs (
                    id INTEGER PRIMARY KEY AUTOINCREMENT,
                    action TEXT NOT NULL,
                    user TEXT,
                    entity_name TEXT,
                    details TEXT,
                    created_at TEXT NOT NULL
                )
            """)

    @contextmanager
    def _cursor(self) -> Iterator[sqlite3.Cursor]:
        """Locked cursor; commits on success, rolls back and wraps sqlite errors."""
        with self._lock:
            try:
                cursor = self.conn.cursor()
            except sqlite3.Error as e:
                raise MetadataStoreError(str(e)) from e
            try:
                yield cursor
                self.conn.commit()
            except sqlite3.Error as e:
                self.conn.rollback()
                raise MetadataStoreError(str(e)) from e
            finally:
                cursor.close()

    # =========================================================================
    # Documents
    # =========================================================================

    def insert(self, record: DocumentRecord) -> str:
        """Persist a new record and return its ID (also set on the record)."""
        if record.id is None:
            record.id = uuid.uuid4().hex
        row = record.to_row()
        placeholders = ", ".join("?" for _ in DOCUMENT_COLUMNS)
        with self._cursor() as cursor:
            cursor.execute(
                f"INSERT INTO documents ({', '.join(DOCUMENT_COLUMNS)}) VALUES ({placeholders})",
                tuple(row[column] for column in DOCUMENT_COLUMNS),
            )
        return record.id

    def find_by_id(self, doc_id: str) -> Optional[DocumentRecord]:
        with self._cursor() as cursor:
            cursor.execute("SELECT * FROM documents WHERE id = ?", (doc_id,))
            row = cursor.fetchone()
        return DocumentRecord.from_row(dict(row)) if row else None

    def find_by_entity(self, entity_name: str,
                       limit: Optional[int] = None) -> List[DocumentRecord]:
        """All records of an entity, newest first."""
        sql = "SELECT * FROM documents WHERE entity_name = ? ORDER BY created_at DESC, rowid DESC"
        params: List[Any] = [entity_name]
        if limit is not None:
            sql += " LIMIT ?"
            params.append(limit)
        return self._select(sql, params)

    def find_by_remote_ids(self, remote_ids: List[str]) -> List[DocumentRecord]:
        if not remote_ids:
            return []
        placeholders = ", ".join("?" for _ in remote_ids)
        return self._select(
            f"SELECT * FROM documents WHERE remote_file_id IN ({placeholders})",
            list(remote_ids),
        )

    def update_by_id(self, doc_id: str, patch: Dict[str, Any]) -> Optional[DocumentRecord]:
        """Apply a metadata edit and refresh updated_at.

        Returns:
            The updated record, or None if no record has this ID

        Raises:
            ValueError: If patch names a field that may not be edited
        """
        unknown = set(patch) - EDITABLE_FIELDS
        if unknown:
            raise ValueError(f"Cannot update field(s): {', '.join(sorted(unknown))}")

        values = dict(patch)
        if "tags" in values:
            values["tags"] = json.dumps(sorted(values["tags"]))
        values["updated_at"] = _timestamp()

        assignments = ", ".join(f"{column} = ?" for column in values)
        with self._cursor() as cursor:
            cursor.execute(
                f"UPDATE documents SET {assignments} WHERE id = ?",
                tuple(values.values()) + (doc_id,),
            )
            if cursor.rowcount == 0:
                return None
        return self.find_by_id(doc_id)

    def search(self, text_query: str = "", filters: Optional[Dict[str, Any]] = None,
               limit: int = SEARCH_LIMIT) -> List[DocumentRecord]:
        """Case-insensitive substring search, newest first.

        The query matches any text column. A year such as '2024' or '2024-25'
        also matches the financial year, and a month name ('March', 'mar')
        also matches the month.

        Args:
            text_query: Free text; blank means filters only
            filters: Exact matches on entity_name, financial_year, month, category
            limit: Maximum number of results
        """
        clauses: List[str] = []
        params: List[Any] = []

        query = (text_query or "").strip()
        if query:
            pattern = _like_pattern(query)
            alternatives = [f"{column} LIKE ? ESCAPE '\\'" for column in SEARCH_COLUMNS]
            params.extend([pattern] * len(SEARCH_COLUMNS))
            if _YEAR_QUERY.match(query):
                alternatives.append("financial_year LIKE ? ESCAPE '\\'")
                params.append(pattern)
            month = month_from_query(query)
            if month is not None:
                alternatives.append("month = ?")
                params.append(month)
            clauses.append("(" + " OR ".join(alternatives) + ")")

        for column in ("entity_name", "financial_year", "month", "category"):
            value = (filters or {}).get(column)
            if value is not None and value != "":
                clauses.append(f"{column} = ?")
                params.append(value)

        sql = "SELECT * FROM documents"
        if clauses:
            sql += " WHERE " + " AND ".join(clauses)
        sql += " ORDER BY created_at DESC, rowid DESC LIMIT ?"
        params.append(limit)
        return self._select(sql, params)

    def _select(self, sql: str, params: List[Any]) -> List[DocumentRecord]:
        with self._cursor() as cursor:
            cursor.execute(sql, params)
            rows = cursor.fetchall()
        return [DocumentRecord.from_row(dict(row)) for row in rows]

    # =========================================================================
    # Entities
    # =========================================================================

    def save_entity(self, entity_name: str, entity_type: str,
                    folder_id: Optional[str] = None) -> None:
        """Insert or update an entity, keeping its original created_at."""
        now = _timestamp()
        with self._cursor() as cursor:
            cursor.execute("""
                INSERT INTO entities (entity_name, entity_type, folder_id, created_at, updated_at)
                VALUES (?, ?, ?, ?, ?)
                ON CONFLICT(entity_name) DO UPDATE SET
                    entity_type = excluded.entity_type,
                    folder_id = excluded.folder_id,
                    updated_at = excluded.updated_at
            """, (entity_name, entity_type, folder_id, now, now))

    def get_entity(self, entity_name: str) -> Optional[Dict[str, Any]]:
        with self._cursor() as cursor:
            cursor.execute("SELECT * FROM entities WHERE entity_name = ?", (entity_name,))
            row = cursor.fetchone()
        return dict(row) if row else None

    def list_entities(self) -> List[Dict[str, Any]]:
        """Registered entities, alphabetical."""
        with self._cursor() as cursor:
            cursor.execute("SELECT * FROM entities ORDER BY entity_name")
            return [dict(row) for row in cursor.fetchall()]

    # =========================================================================
    # Activity log
    # =========================================================================

    def log_activity(self, action: str, user: Optional[str] = None,
                     entity_name: Optional[str] = None, **details: Any) -> None:
        with self._cursor() as cursor:
            cursor.execute("""
                INSERT INTO activity_logs (action, user, entity_name, details, created_at)
                VALUES (?, ?, ?, ?, ?)
            """, (action, user, entity_name, json.dumps(details, default=str), _timestamp()))

    def get_activity_logs(self, limit: int = 50) -> List[Dict[str, Any]]:
        """Most recent activity first."""
        with self._cursor() as cursor:
            cursor.execute(
                "SELECT * FROM activity_logs ORDER BY id DESC LIMIT ?", (limit,)
            )
            rows = cursor.fetchall()
        logs = []
        for row in rows:
            entry = dict(row)
            entry["details"] = json.loads(entry["details"] or "{}")
            logs.append(entry)
        return logs

    # =========================================================================
    # Statistics
    # =========================================================================

    def entity_stats(self, entity_name: str) -> Dict[str, Any]:
        """Per-category document counts and sizes for one entity."""
        with self._cursor() as cursor:
            cursor.execute("""
                SELECT category, COUNT(*) AS count,
                       COALESCE(SUM(file_size), 0) AS total_size,
                       MAX(created_at) AS latest_document
                FROM documents WHERE entity_name = ?
                GROUP BY category ORDER BY count DESC, category
            """, (entity_name,))
            categories = [dict(row) for row in cursor.fetchall()]

        return {
            "entity_name": entity_name,
            "total_documents": sum(c["count"] for c in categories),
            "total_size": sum(c["total_size"] for c in categories),
            "categories": categories,
            "last_activity": max((c["latest_document"] for c in categories), default=None),
        }

    def document_stats(self) -> Dict[str, int]:
        """Totals across all entities."""
        with self._cursor() as cursor:
            cursor.execute("""
                SELECT COUNT(*) AS total_documents,
                       COALESCE(SUM(file_size), 0) AS total_size,
                       COUNT(DISTINCT entity_name) AS active_entities
                FROM documents
            """)
            row = cursor.fetchone()
        return dict(row)

    def close(self) -> None:
        """Close the database connection."""
        with self._lock:
            self.conn.close()
