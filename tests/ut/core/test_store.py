"""PackageStore 单元测试"""

from __future__ import annotations

from pathlib import Path

import pytest

from lpkg.core.exceptions import AlreadyInstalledError, StoreError
from lpkg.core.store import PackageStore


class TestLifecycle:
    def test_open_creates_schema(self, tmp_path: Path) -> None:
        db = tmp_path / "sub" / "lpkg.sqlite"
        with PackageStore(db) as store:
            assert store.count_rows("packages") == 0
        assert db.is_file()

    def test_read_only_requires_existing_db(self, tmp_path: Path) -> None:
        with pytest.raises(StoreError, match="lpkg setup"):
            PackageStore(tmp_path / "missing.sqlite", read_only=True).open()

    def test_read_only_rejects_writes(self, tmp_path: Path) -> None:
        db = tmp_path / "lpkg.sqlite"
        with PackageStore(db) as store:
            store.add_package(name="foo", version="1.0")
        with PackageStore(db, read_only=True) as ro:
            assert ro.installed_versions("foo") == ["1.0"]
            with pytest.raises(StoreError, match="只读"):
                ro.add_package(name="bar", version="1.0")

    def test_closed_store(self, tmp_path: Path) -> None:
        store = PackageStore(tmp_path / "lpkg.sqlite")
        with pytest.raises(StoreError, match="未打开"):
            store.list_packages()


class TestPackages:
    def test_add_and_get(self, store) -> None:
        pid = store.add_package(
            name="foo", version="1.0.0", description="Foo",
            authors=["Alice", "Bob"], archive_path="/tmp/foo.lpkg",
        )
        rec = store.get_package(pid)
        assert rec.name == "foo"
        assert rec.authors == "Alice, Bob"
        assert rec.archive_path == "/tmp/foo.lpkg"
        assert rec.installed_at

    def test_duplicate_rejected(self, store) -> None:
        store.add_package(name="foo", version="1.0.0")
        with pytest.raises(AlreadyInstalledError):
            store.add_package(name="foo", version="1.0.0")
        assert store.count_rows("packages") == 1

    def test_multiple_versions(self, store) -> None:
        store.add_package(name="foo", version="1.0.0")
        store.add_package(name="foo", version="2.0.0")
        assert store.installed_versions("foo") == ["1.0.0", "2.0.0"]
        assert [r.version for r in store.find_by_name("foo", "2.0.0")] == ["2.0.0"]
        assert store.is_installed("foo", "1.0.0")
        assert not store.is_installed("foo", "3.0.0")

    def test_list_sorted(self, store) -> None:
        store.add_package(name="zeta", version="1")
        store.add_package(name="alpha", version="1")
        assert [r.name for r in store.list_packages()] == ["alpha", "zeta"]

    def test_get_missing(self, store) -> None:
        assert store.get_package(999) is None
        assert store.find_by_name("nope") == []


class TestCascade:
    def test_delete_cascades(self, store) -> None:
        pid = store.add_package(name="foo", version="1.0")
        store.add_package_file(pid, "/opt/foo/bin/foo", "abc")
        store.add_dependency(pid, "bar", ">=1.0")
        store.add_conflict(pid, "baz", None)
        store.delete_package(pid)
        for table in ("packages", "package_files", "dependencies", "conflicts"):
            assert store.count_rows(table) == 0

    def test_delete_missing_is_noop(self, store) -> None:
        store.delete_package(12345)

    def test_files_and_dependencies(self, store) -> None:
        pid = store.add_package(name="foo", version="1.0")
        store.add_package_file(pid, "/a", "1")
        store.add_package_file(pid, "/b", None)
        store.add_dependency(pid, "bar", ">=1.0")
        assert [f.path for f in store.get_files(pid)] == ["/a", "/b"]
        deps = store.get_dependencies(pid)
        assert deps[0].dependency_name == "bar"
        assert deps[0].dependency_version_constraint == ">=1.0"

    def test_conflicts(self, store) -> None:
        pid = store.add_package(name="foo", version="1.0")
        store.add_conflict(pid, "baz", None)
        store.add_conflict(pid, "qux", "<2.0")
        assert store.get_conflicts(pid) == [("baz", None), ("qux", "<2.0")]

    def test_duplicate_file_path(self, store) -> None:
        pid = store.add_package(name="foo", version="1.0")
        store.add_package_file(pid, "/a", "1")
        with pytest.raises(StoreError):
            store.add_package_file(pid, "/a", "2")

    def test_unknown_table(self, store) -> None:
        with pytest.raises(StoreError):
            store.count_rows("sqlite_master")
