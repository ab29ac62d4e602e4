"""内容摘要单元测试"""

from __future__ import annotations

import hashlib
import os
from pathlib import Path

import pytest

from lpkg.core.checksum import digest_bytes, digest_file, digest_tree, verify_tree
from lpkg.core.exceptions import ChecksumMismatchError, EmptyContentError


def _populate(root: Path, order: list[str]) -> None:
    for rel in order:
        p = root / rel
        p.parent.mkdir(parents=True, exist_ok=True)
        p.write_text(f"content of {rel}", encoding="utf-8")


class TestDigest:
    def test_digest_bytes(self) -> None:
        assert digest_bytes(b"abc") == hashlib.sha256(b"abc").hexdigest()

    def test_digest_file_chunked(self, tmp_path: Path) -> None:
        p = tmp_path / "big"
        data = os.urandom(200_000)
        p.write_bytes(data)
        assert digest_file(p, chunk_size=4096) == hashlib.sha256(data).hexdigest()

    def test_tree_is_hex(self, tmp_path: Path) -> None:
        _populate(tmp_path, ["a.txt"])
        d = digest_tree(tmp_path)
        assert len(d) == 64
        int(d, 16)

    def test_independent_of_creation_order(self, tmp_path: Path) -> None:
        a, b = tmp_path / "a", tmp_path / "b"
        _populate(a, ["x/1", "y/2", "z"])
        _populate(b, ["z", "y/2", "x/1"])
        assert digest_tree(a) == digest_tree(b)

    def test_independent_of_mtime_and_mode(self, tmp_path: Path) -> None:
        _populate(tmp_path, ["bin/tool"])
        before = digest_tree(tmp_path)
        os.utime(tmp_path / "bin" / "tool", (1, 1))
        os.chmod(tmp_path / "bin" / "tool", 0o755)
        assert digest_tree(tmp_path) == before

    def test_rename_changes_digest(self, tmp_path: Path) -> None:
        _populate(tmp_path, ["a"])
        before = digest_tree(tmp_path)
        (tmp_path / "a").rename(tmp_path / "b")
        assert digest_tree(tmp_path) != before

    def test_empty_tree(self, tmp_path: Path) -> None:
        (tmp_path / "empty_dir").mkdir()
        with pytest.raises(EmptyContentError):
            digest_tree(tmp_path)


class TestVerifyTree:
    def test_match(self, tmp_path: Path) -> None:
        _populate(tmp_path, ["a", "b"])
        expected = digest_tree(tmp_path)
        assert verify_tree(tmp_path, expected.upper()) == expected

    def test_tamper_detected(self, tmp_path: Path) -> None:
        _populate(tmp_path, ["a", "b"])
        expected = digest_tree(tmp_path)
        (tmp_path / "b").write_text("tampered", encoding="utf-8")
        calculated = digest_tree(tmp_path)
        with pytest.raises(ChecksumMismatchError) as exc_info:
            verify_tree(tmp_path, expected)
        msg = str(exc_info.value)
        assert expected in msg
        assert calculated in msg
