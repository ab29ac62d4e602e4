"""archive 编解码单元测试"""

from __future__ import annotations

import io
import os
import tarfile
from pathlib import Path

import pytest

from lpkg.core import archive
from lpkg.core.exceptions import ArchiveError

META = b'[package]\nname = "foo"\nversion = "1.0.0"\n'


@pytest.fixture()
def tree(tmp_path: Path) -> Path:
    root = tmp_path / "files"
    (root / "usr" / "bin").mkdir(parents=True)
    (root / "usr" / "bin" / "foo").write_bytes(b"#!/bin/sh\necho foo\n")
    os.chmod(root / "usr" / "bin" / "foo", 0o755)
    (root / "README").write_text("hello", encoding="utf-8")
    return root


def _tar_gz(members: dict[str, bytes]) -> bytes:
    buf = io.BytesIO()
    with tarfile.open(fileobj=buf, mode="w:gz") as tar:
        for name, data in members.items():
            info = tarfile.TarInfo(name)
            info.size = len(data)
            tar.addfile(info, io.BytesIO(data))
    return buf.getvalue()


class TestPack:
    def test_round_trip(self, tree: Path, tmp_path: Path) -> None:
        data = archive.pack(tree, META)
        dest = tmp_path / "out"
        archive.unpack(data, dest)
        assert (dest / "meta.toml").read_bytes() == META
        assert (dest / "files" / "README").read_text(encoding="utf-8") == "hello"
        assert (dest / "files" / "usr" / "bin" / "foo").read_bytes() == b"#!/bin/sh\necho foo\n"

    def test_deterministic(self, tree: Path) -> None:
        assert archive.pack(tree, META) == archive.pack(tree, META)

    def test_meta_is_first_member(self, tree: Path) -> None:
        with tarfile.open(fileobj=io.BytesIO(archive.pack(tree, META)), mode="r:gz") as tar:
            names = tar.getnames()
        assert names[0] == "meta.toml"
        assert names[1:] == ["files/README", "files/usr/bin/foo"]

    def test_headers_normalized(self, tree: Path) -> None:
        with tarfile.open(fileobj=io.BytesIO(archive.pack(tree, META)), mode="r:gz") as tar:
            for m in tar.getmembers():
                assert m.mtime == 0
                assert m.uid == 0 and m.gid == 0

    def test_executable_bit_preserved(self, tree: Path, tmp_path: Path) -> None:
        dest = tmp_path / "out"
        archive.unpack(archive.pack(tree, META), dest)
        assert os.access(dest / "files" / "usr" / "bin" / "foo", os.X_OK)
        assert not os.access(dest / "files" / "README", os.X_OK)

    def test_scripts_region(self, tree: Path, tmp_path: Path) -> None:
        scripts = tmp_path / "scripts"
        scripts.mkdir()
        (scripts / "post.sh").write_text("exit 0\n", encoding="utf-8")
        dest = tmp_path / "out"
        archive.unpack(archive.pack(tree, META, scripts_root=scripts), dest)
        assert (dest / "scripts" / "post.sh").is_file()

    def test_symlinks_skipped(self, tree: Path) -> None:
        (tree / "link").symlink_to(tree / "README")
        names = [rel for rel, _ in archive.regular_files(tree)]
        assert "link" not in names
        assert names == ["README", "usr/bin/foo"]

    def test_missing_files_dir(self, tmp_path: Path) -> None:
        with pytest.raises(ArchiveError, match="载荷目录不存在"):
            archive.pack(tmp_path / "nope", META)

    def test_pack_to_file(self, tree: Path, tmp_path: Path) -> None:
        out = archive.pack_to_file(tree, META, tmp_path / "dist" / "foo-1.0.0.lpkg")
        assert out.is_file()
        assert archive.read_meta(out) == META


class TestUnpack:
    def test_garbage_input(self, tmp_path: Path) -> None:
        with pytest.raises(ArchiveError):
            archive.unpack(b"not a gzip stream", tmp_path / "out")

    def test_parent_traversal_rejected(self, tmp_path: Path) -> None:
        data = _tar_gz({"../evil": b"x"})
        with pytest.raises(ArchiveError, match="不安全的路径"):
            archive.unpack(data, tmp_path / "out")
        assert not (tmp_path / "evil").exists()

    def test_absolute_path_rejected(self, tmp_path: Path) -> None:
        data = _tar_gz({"/etc/evil": b"x"})
        with pytest.raises(ArchiveError):
            archive.unpack(data, tmp_path / "out")

    def test_missing_file(self, tmp_path: Path) -> None:
        with pytest.raises(ArchiveError, match="无法打开归档文件"):
            archive.unpack_file(tmp_path / "missing.lpkg", tmp_path / "out")

    def test_read_meta_missing(self, tmp_path: Path) -> None:
        p = tmp_path / "x.lpkg"
        p.write_bytes(_tar_gz({"files/a": b"a"}))
        with pytest.raises(ArchiveError, match="meta.toml"):
            archive.read_meta(p)
