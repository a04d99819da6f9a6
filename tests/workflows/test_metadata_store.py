"""Tests for the SQLite MetadataStore."""

import os
import tempfile
import shutil
from datetime import datetime, timedelta, timezone

import pytest

from workflows import DocumentRecord, MetadataStore, MetadataStoreError

BASE = datetime(2024, 6, 1, tzinfo=timezone.utc)


def make_record(name="GSTR3B.pdf", entity="Acme Ltd", category="GST", year="2024-25",
                month=3, minutes=0, **kwargs):
    segments = [entity] + [s for s in (category, year) if s]
    return DocumentRecord(
        file_name=name,
        original_file_name=name,
        file_path="/".join(segments + [name]),
        remote_file_id=f"file-{name}",
        entity_name=entity,
        category=category,
        financial_year=year,
        month=month,
        file_size=100,
        created_at=BASE + timedelta(minutes=minutes),
        updated_at=BASE + timedelta(minutes=minutes),
        **kwargs,
    )


@pytest.fixture
def temp_dir():
    dir_path = tempfile.mkdtemp(prefix="docfiler_db_")
    yield dir_path
    shutil.rmtree(dir_path, ignore_errors=True)


class TestDocuments:

    def test_insert_assigns_id(self, store):
        record = make_record()
        doc_id = store.insert(record)
        assert doc_id and record.id == doc_id

    def test_round_trip(self, store):
        record = make_record(tags={"quarterly", "gst"}, description="March return")
        store.insert(record)
        loaded = store.find_by_id(record.id)
        assert loaded == record

    def test_find_missing(self, store):
        assert store.find_by_id("nope") is None

    def test_find_by_entity_newest_first(self, store):
        store.insert(make_record("a.pdf", minutes=1))
        store.insert(make_record("b.pdf", minutes=2))
        store.insert(make_record("c.pdf", entity="Other Co", minutes=3))
        assert [r.file_name for r in store.find_by_entity("Acme Ltd")] == ["b.pdf", "a.pdf"]
        assert len(store.find_by_entity("Acme Ltd", limit=1)) == 1

    def test_duplicate_id_fails(self, store):
        record = make_record()
        store.insert(record)
        with pytest.raises(MetadataStoreError):
            store.insert(record)

    def test_update(self, store):
        record = make_record()
        store.insert(record)
        updated = store.update_by_id(record.id, {"description": "Filed late", "tags": {"late"}})
        assert updated.description == "Filed late"
        assert updated.tags == {"late"}
        assert updated.updated_at > record.updated_at
        assert updated.file_path == record.file_path

    def test_update_rejects_unknown_field(self, store):
        record = make_record()
        store.insert(record)
        with pytest.raises(ValueError):
            store.update_by_id(record.id, {"file_path": "x/y.pdf"})
        with pytest.raises(ValueError):
            store.update_by_id(record.id, {"category": "TDS"})

    def test_update_missing(self, store):
        assert store.update_by_id("nope", {"description": "x"}) is None

    def test_persists_to_file(self, temp_dir):
        path = os.path.join(temp_dir, "sub", "metadata.db")
        store = MetadataStore(path)
        store.insert(make_record())
        store.close()
        reopened = MetadataStore(path)
        assert len(reopened.find_by_entity("Acme Ltd")) == 1
        reopened.close()


class TestSearch:

    @pytest.fixture
    def filled(self, store):
        store.insert(make_record("GSTR3B-March.pdf", month=3, minutes=1))
        store.insert(make_record("ITR-2024.pdf", category="Income Tax", month=None, minutes=2,
                                 extracted_text="Assessment year 2025-26"))
        store.insert(make_record("lease.pdf", category="Agreements", year=None, month=None,
                                 minutes=3, tags={"property", "rent"}))
        store.insert(make_record("gst-old.pdf", entity="Other Co", year="2023-24", month=7,
                                 minutes=4))
        return store

    def names(self, records):
        return [r.file_name for r in records]

    def test_case_insensitive_name(self, filled):
        assert self.names(filled.search("gstr3b")) == ["GSTR3B-March.pdf"]

    def test_matches_extracted_text(self, filled):
        assert self.names(filled.search("assessment")) == ["ITR-2024.pdf"]

    def test_matches_tags(self, filled):
        assert self.names(filled.search("rent")) == ["lease.pdf"]

    def test_matches_entity_and_category_newest_first(self, filled):
        assert self.names(filled.search("gst")) == ["gst-old.pdf", "GSTR3B-March.pdf"]

    def test_financial_year_query(self, filled):
        assert set(self.names(filled.search("2023-24"))) == {"gst-old.pdf"}

    def test_month_name_query(self, filled):
        assert self.names(filled.search("jul")) == ["gst-old.pdf"]

    def test_filters(self, filled):
        results = filled.search("", {"entity_name": "Acme Ltd", "category": "GST"})
        assert self.names(results) == ["GSTR3B-March.pdf"]

    def test_blank_filters_ignored(self, filled):
        assert len(filled.search("", {"entity_name": "", "month": None})) == 4

    def test_wildcards_are_literal(self, filled):
        assert filled.search("%") == []
        assert filled.search("_") == []

    def test_limit(self, filled):
        assert len(filled.search("", limit=2)) == 2


class TestEntitiesAndActivity:

    def test_save_and_get_entity(self, store):
        store.save_entity("Acme Ltd", "business", "folder-1")
        entity = store.get_entity("Acme Ltd")
        assert entity["entity_type"] == "business"
        assert entity["folder_id"] == "folder-1"

    def test_save_entity_upserts(self, store):
        store.save_entity("Acme Ltd", "business", "folder-1")
        created = store.get_entity("Acme Ltd")["created_at"]
        store.save_entity("Acme Ltd", "business", "folder-2")
        entity = store.get_entity("Acme Ltd")
        assert entity["folder_id"] == "folder-2"
        assert entity["created_at"] == created
        assert len(store.list_entities()) == 1

    def test_list_entities_sorted(self, store):
        store.save_entity("Zeta", "personal")
        store.save_entity("Alpha", "business")
        assert [e["entity_name"] for e in store.list_entities()] == ["Alpha", "Zeta"]

    def test_activity_log(self, store):
        store.log_activity("document_uploaded", user="a@example.com",
                           entity_name="Acme Ltd", file_name="x.pdf")
        store.log_activity("access_granted", user="a@example.com", email="b@example.com")
        logs = store.get_activity_logs()
        assert [log["action"] for log in logs] == ["access_granted", "document_uploaded"]
        assert logs[1]["details"] == {"file_name": "x.pdf"}


class TestStats:

    def test_entity_stats(self, store):
        store.insert(make_record("a.pdf", minutes=1))
        store.insert(make_record("b.pdf", minutes=2))
        store.insert(make_record("c.pdf", category="ROC", month=None, minutes=3))
        stats = store.entity_stats("Acme Ltd")
        assert stats["total_documents"] == 3
        assert stats["total_size"] == 300
        assert stats["categories"][0]["category"] == "GST"
        assert stats["categories"][0]["count"] == 2
        assert stats["last_activity"].startswith("2024-06-01T00:03")

    def test_entity_stats_empty(self, store):
        stats = store.entity_stats("Nobody")
        assert stats["total_documents"] == 0
        assert stats["last_activity"] is None

    def test_document_stats(self, store):
        store.insert(make_record("a.pdf"))
        store.insert(make_record("b.pdf", entity="Other Co"))
        assert store.document_stats() == {
            "total_documents": 2, "total_size": 200, "active_entities": 2,
        }
