"""Tests for MemoryDriver."""

import pytest

from storage import MemoryDriver, StorageError, StorageUnavailable, create_storage


@pytest.fixture
def driver():
    return MemoryDriver()


class TestFolders:
    """Folder creation and listing."""

    def test_same_named_siblings_allowed(self, driver):
        a = driver.create_folder("GST", driver.root_id)
        b = driver.create_folder("GST", driver.root_id)
        assert a.id != b.id
        assert len(driver.list_children(driver.root_id, name="GST")) == 2

    def test_listing_in_creation_order(self, driver):
        for name in ("b", "a", "c"):
            driver.create_folder(name, driver.root_id)
        assert [f.name for f in driver.list_children(driver.root_id)] == ["b", "a", "c"]

    def test_created_at_strictly_increasing(self, driver):
        a = driver.create_folder("x", driver.root_id)
        b = driver.create_folder("x", driver.root_id)
        assert a.created_at < b.created_at

    def test_create_calls_counted(self, driver):
        driver.create_folder("x", driver.root_id)
        driver.create_file("f.txt", driver.root_id, b"1")
        assert driver.create_calls == 1

    def test_unknown_parent_raises(self, driver):
        with pytest.raises(StorageError):
            driver.create_folder("x", "folder-999999")


class TestFiles:
    """File storage."""

    def test_create_and_read(self, driver):
        folder = driver.create_folder("Acme", driver.root_id)
        ref = driver.create_file("a.pdf", folder.id, b"abc", "application/pdf")
        assert ref.size == 3
        assert driver.read_bytes(ref.id) == b"abc"
        assert driver.parent_of(ref.id) == folder.id

    def test_file_is_not_a_container(self, driver):
        ref = driver.create_file("a.pdf", driver.root_id, b"abc")
        with pytest.raises(StorageError):
            driver.create_file("b.pdf", ref.id, b"x")

    def test_kind_filter(self, driver):
        driver.create_folder("dir", driver.root_id)
        driver.create_file("file", driver.root_id, b"x")
        assert [i.name for i in driver.list_children(driver.root_id, kind="file")] == ["file"]
        assert [i.name for i in driver.list_children(driver.root_id, kind="folder")] == ["dir"]


class TestMoveAndTrash:
    """Re-parenting and trashing."""

    def test_move_keeps_id(self, driver):
        a = driver.create_folder("a", driver.root_id)
        b = driver.create_folder("b", driver.root_id)
        f = driver.create_file("f", a.id, b"x")
        driver.move(f.id, b.id)
        assert driver.parent_of(f.id) == b.id
        assert driver.list_children(a.id) == []

    def test_trashed_items_hidden(self, driver):
        a = driver.create_folder("a", driver.root_id)
        driver.trash(a.id)
        assert driver.list_children(driver.root_id) == []
        assert driver.get_item(a.id) is None


class TestPermissions:
    """Sharing support."""

    def test_share_list_delete(self, driver):
        f = driver.create_file("f", driver.root_id, b"x")
        permission = driver.share(f.id, "a@example.com", "writer")
        assert driver.list_permissions(f.id) == [permission]
        driver.delete_permission(f.id, permission.id)
        assert driver.list_permissions(f.id) == []

    def test_delete_unknown_permission(self, driver):
        f = driver.create_file("f", driver.root_id, b"x")
        with pytest.raises(StorageError):
            driver.delete_permission(f.id, "perm-000999")


class TestHooks:
    """Failure injection and listing hooks used by concurrency tests."""

    def test_fail_next_applies_once(self, driver):
        driver.fail_next = StorageUnavailable("provider down")
        with pytest.raises(StorageUnavailable):
            driver.list_children(driver.root_id)
        assert driver.list_children(driver.root_id) == []

    def test_on_list_called(self):
        seen = []
        driver = MemoryDriver(on_list=lambda parent, kind, name: seen.append((parent, kind, name)))
        driver.list_children("root", kind="folder", name="GST")
        assert seen == [("root", "folder", "GST")]


class TestCreateStorage:
    """URI parsing for the in-memory backend."""

    def test_memory_uri(self):
        driver = create_storage("memory:")
        assert isinstance(driver, MemoryDriver)
        assert driver.root_id == "root"

    def test_bad_uri(self):
        with pytest.raises(ValueError):
            create_storage("ftp:somewhere")

    def test_gdrive_needs_credential(self):
        with pytest.raises(StorageError):
            create_storage("gdrive:abc123")
