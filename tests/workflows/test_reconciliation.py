"""Tests for merging duplicate sibling folders."""

from datetime import datetime, timezone

import pytest

from storage import FolderRef
from workflows import DuplicateFolderDetected, EntityNotFound, Reconciler
from workflows.reconciliation import group_duplicates


def names(driver, parent_id, kind=None):
    return sorted(item.name for item in driver.list_children(parent_id, kind=kind))


@pytest.fixture
def split_gst(driver):
    """Acme Ltd with two GST folders, each holding part of the 2024-25 returns."""
    acme = driver.create_folder("Acme Ltd", driver.root_id)
    gst_a = driver.create_folder("GST", acme.id)
    gst_b = driver.create_folder("GST", acme.id)
    year_a = driver.create_folder("2024-25", gst_a.id)
    year_b = driver.create_folder("2024-25", gst_b.id)
    driver.create_file("march.pdf", year_a.id, b"a")
    driver.create_file("april.pdf", year_b.id, b"b")
    driver.create_file("notice.pdf", gst_b.id, b"c")
    return acme, gst_a, gst_b, year_a


class TestGroupDuplicates:

    def test_earliest_first(self):
        late = FolderRef("b", "GST", datetime(2024, 5, 1, tzinfo=timezone.utc))
        early = FolderRef("a", "GST", datetime(2024, 4, 1, tzinfo=timezone.utc))
        unique = FolderRef("c", "TDS", datetime(2024, 4, 1, tzinfo=timezone.utc))
        groups = group_duplicates([late, unique, early])
        assert list(groups) == ["GST"]
        assert [f.id for f in groups["GST"]] == ["a", "b"]

    def test_no_duplicates(self):
        assert group_duplicates([FolderRef("a", "GST"), FolderRef("b", "TDS")]) == {}


class TestReconcileChildren:

    def test_merges_into_earliest(self, driver, store, split_gst):
        acme, gst_a, gst_b, year_a = split_gst
        detected = Reconciler(driver, store=store).reconcile_children(acme.id)

        assert len(detected) == 1
        event = detected[0]
        assert isinstance(event, DuplicateFolderDetected)
        assert (event.canonical_id, event.duplicate_id) == (gst_a.id, gst_b.id)
        assert event.name == "GST"

        assert [f.id for f in driver.list_children(acme.id, kind="folder")] == [gst_a.id]
        assert driver.get_item(gst_b.id) is None

    def test_nested_folders_merged(self, driver, split_gst):
        acme, gst_a, _, year_a = split_gst
        Reconciler(driver).reconcile_children(acme.id)

        assert names(driver, gst_a.id, kind="folder") == ["2024-25"]
        assert names(driver, year_a.id) == ["april.pdf", "march.pdf"]
        assert names(driver, gst_a.id, kind="file") == ["notice.pdf"]

    def test_activity_logged(self, driver, store, split_gst):
        acme, gst_a, gst_b, _ = split_gst
        Reconciler(driver, store=store, user="ops@example.com").reconcile_children(
            acme.id, entity_name="Acme Ltd")

        [entry] = store.get_activity_logs()
        assert entry["action"] == "folder_merged"
        assert entry["user"] == "ops@example.com"
        assert entry["entity_name"] == "Acme Ltd"
        assert entry["details"]["duplicate_id"] == gst_b.id

    def test_name_filter(self, driver, split_gst):
        acme = split_gst[0]
        assert Reconciler(driver).reconcile_children(acme.id, name="TDS") == []
        assert len(driver.list_children(acme.id, kind="folder")) == 2

    def test_clean_tree(self, driver):
        acme = driver.create_folder("Acme Ltd", driver.root_id)
        driver.create_folder("GST", acme.id)
        driver.create_folder("TDS", acme.id)
        assert Reconciler(driver).reconcile_children(acme.id) == []


class TestReconcileTree:

    def test_duplicates_at_several_levels(self, driver, split_gst):
        acme, gst_a, _, year_a = split_gst
        extra_year = driver.create_folder("2024-25", gst_a.id)
        driver.create_file("may.pdf", extra_year.id, b"d")

        detected = Reconciler(driver).reconcile_tree(driver.root_id)

        assert sorted(e.name for e in detected) == ["2024-25", "GST"]
        assert names(driver, year_a.id) == ["april.pdf", "march.pdf", "may.pdf"]
        assert Reconciler(driver).reconcile_tree(driver.root_id) == []

    def test_depth_bound(self, driver, split_gst):
        detected = Reconciler(driver, max_depth=1).reconcile_tree(driver.root_id)
        assert detected == []


class TestServiceReconcile:

    def test_single_entity(self, service, driver, split_gst):
        acme = split_gst[0]
        detected = service.reconcile("Acme Ltd")
        assert [e.name for e in detected] == ["GST"]
        assert names(driver, acme.id, kind="folder") == ["GST"]

    def test_duplicate_entity_folders(self, service, driver):
        first = driver.create_folder("Acme Ltd", driver.root_id)
        second = driver.create_folder("Acme Ltd", driver.root_id)
        driver.create_folder("GST", first.id)
        driver.create_folder("ROC", second.id)

        detected = service.reconcile("Acme Ltd")

        assert [e.duplicate_id for e in detected] == [second.id]
        assert service.list_entities() == ["Acme Ltd"]
        assert names(driver, first.id) == ["GST", "ROC"]

    def test_whole_tree(self, service, driver, split_gst):
        other = driver.create_folder("Other Co", driver.root_id)
        driver.create_folder("ROC", other.id)
        driver.create_folder("ROC", other.id)
        detected = service.reconcile()
        assert sorted(e.name for e in detected) == ["GST", "ROC"]

    def test_unknown_entity(self, service):
        with pytest.raises(EntityNotFound):
            service.reconcile("Nobody")
