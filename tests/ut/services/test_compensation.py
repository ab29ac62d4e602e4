"""补偿日志单元测试"""

from __future__ import annotations

import os
from pathlib import Path

from lpkg.core.exceptions import StoreError
from lpkg.services.lifecycle import (
    CompensationLog,
    DeleteFile,
    DeleteStoreRecord,
    RemoveArtifact,
    RemoveSymlink,
    RestoreFile,
    RestoreSymlink,
)


class RecordingStore:
    def __init__(self, fail: bool = False) -> None:
        self.deleted: list[int] = []
        self.fail = fail

    def delete_package(self, package_id: int) -> None:
        if self.fail:
            raise StoreError("database is locked")
        self.deleted.append(package_id)


class TestCompensationLog:
    def test_unwind_in_reverse_order(self, tmp_path: Path) -> None:
        order: list[str] = []
        target = tmp_path / "f"
        target.write_text("x", encoding="utf-8")

        class Spy(RecordingStore):
            def delete_package(self, package_id: int) -> None:
                order.append(f"record:{package_id}")
                order.append(f"file_exists:{target.exists()}")

        log = CompensationLog()
        log.push(DeleteStoreRecord(7))
        log.push(DeleteFile(str(target)))
        failures = log.unwind(Spy())
        assert failures == []
        # 文件先删，记录后删
        assert order == ["record:7", "file_exists:False"]
        assert len(log) == 0

    def test_failure_does_not_stop_unwind(self, tmp_path: Path) -> None:
        target = tmp_path / "f"
        target.write_text("x", encoding="utf-8")
        log = CompensationLog()
        log.push(DeleteFile(str(target)))
        log.push(DeleteStoreRecord(1))
        failures = log.unwind(RecordingStore(fail=True))
        assert len(failures) == 1
        assert isinstance(failures[0][0], DeleteStoreRecord)
        assert not target.exists()

    def test_discard(self) -> None:
        store = RecordingStore()
        log = CompensationLog()
        log.push(DeleteStoreRecord(1))
        log.discard()
        log.unwind(store)
        assert store.deleted == []

    def test_missing_file_is_fine(self, tmp_path: Path) -> None:
        log = CompensationLog()
        log.push(DeleteFile(str(tmp_path / "gone")))
        log.push(RemoveArtifact(str(tmp_path / "gone.desktop")))
        assert log.unwind(RecordingStore()) == []


class TestRemoveSymlink:
    def test_removes_link(self, tmp_path: Path) -> None:
        link = tmp_path / "foo"
        link.symlink_to(tmp_path / "target")
        RemoveSymlink(str(link)).undo(RecordingStore())
        assert not os.path.lexists(link)

    def test_leaves_regular_file(self, tmp_path: Path) -> None:
        p = tmp_path / "foo"
        p.write_text("not a link", encoding="utf-8")
        RemoveSymlink(str(p)).undo(RecordingStore())
        assert p.exists()


class TestRestore:
    def test_restore_file_from_backup(self, tmp_path: Path) -> None:
        dest = tmp_path / "apps" / "foo.desktop"
        dest.parent.mkdir()
        dest.write_text("new", encoding="utf-8")
        backup = tmp_path / "backup"
        backup.write_text("old", encoding="utf-8")
        RestoreFile(str(dest), str(backup)).undo(RecordingStore())
        assert dest.read_text(encoding="utf-8") == "old"

    def test_restore_file_when_dest_missing(self, tmp_path: Path) -> None:
        dest = tmp_path / "apps" / "foo.desktop"
        backup = tmp_path / "backup"
        backup.write_text("old", encoding="utf-8")
        RestoreFile(str(dest), str(backup)).undo(RecordingStore())
        assert dest.read_text(encoding="utf-8") == "old"

    def test_restore_symlink_target(self, tmp_path: Path) -> None:
        link = tmp_path / "foo"
        link.symlink_to(tmp_path / "new-wrapper.sh")
        RestoreSymlink(str(link), str(tmp_path / "old-wrapper.sh")).undo(RecordingStore())
        assert os.readlink(link) == str(tmp_path / "old-wrapper.sh")

    def test_unwind_restores_after_removing(self, tmp_path: Path) -> None:
        link = tmp_path / "foo"
        log = CompensationLog()
        log.push(RestoreSymlink(str(link), "old-target"))
        link.symlink_to("new-target")
        assert log.unwind(RecordingStore()) == []
        assert os.readlink(link) == "old-target"
