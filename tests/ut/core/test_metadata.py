"""meta.toml 解析与序列化单元测试"""

from __future__ import annotations

from pathlib import Path

import pytest

from lpkg.core import metadata
from lpkg.core.exceptions import (
    MalformedMetadataError,
    MetadataError,
    MissingFieldError,
)
from lpkg.core.metadata import MetaDocument, PackageDescriptor, Scripts

FULL = """
[package]
name = "foo"
version = "1.2.0"
description = "Foo tool"
license = "MIT"
authors = ["Alice", "Bob"]
content_checksum = "abc123"

[package.scripts]
post_install = "post.sh"

[dependencies]
bar = ">=1.0.0"
baz = "^0.2"
"""


class TestParse:
    def test_full_document(self) -> None:
        doc = metadata.parse(FULL.encode())
        assert doc.name == "foo"
        assert doc.version == "1.2.0"
        assert doc.package.authors == ["Alice", "Bob"]
        assert doc.package.scripts == Scripts(post_install="post.sh")
        assert doc.dependency_items() == [("bar", ">=1.0.0"), ("baz", "^0.2")]

    def test_minimal_document(self) -> None:
        doc = metadata.parse('[package]\nname = "foo"\nversion = "1"\n')
        assert doc.dependencies is None
        assert doc.dependency_items() == []
        assert doc.package.content_checksum is None

    def test_missing_name(self) -> None:
        with pytest.raises(MissingFieldError) as exc_info:
            metadata.parse('[package]\nversion = "1.0"\n')
        assert exc_info.value.field == "name"

    def test_empty_version(self) -> None:
        with pytest.raises(MissingFieldError, match="version"):
            metadata.parse('[package]\nname = "foo"\nversion = ""\n')

    def test_missing_package_table(self) -> None:
        with pytest.raises(MalformedMetadataError, match=r"\[package\]"):
            metadata.parse('[dependencies]\nbar = "1"\n')

    def test_syntax_error(self) -> None:
        with pytest.raises(MalformedMetadataError):
            metadata.parse("[package\nname=")

    def test_invalid_utf8(self) -> None:
        with pytest.raises(MalformedMetadataError):
            metadata.parse(b"\xff\xfe[package]")

    def test_wrong_type(self) -> None:
        with pytest.raises(MalformedMetadataError, match="字符串"):
            metadata.parse('[package]\nname = "foo"\nversion = 1\n')

    def test_dependency_must_be_string(self) -> None:
        with pytest.raises(MalformedMetadataError):
            metadata.parse('[package]\nname = "a"\nversion = "1"\n[dependencies]\nbar = 1\n')

    def test_missing_field_is_metadata_error(self) -> None:
        assert issubclass(MissingFieldError, MetadataError)


class TestSerialize:
    def test_reparse_preserves_fields(self) -> None:
        doc = metadata.parse(FULL)
        again = metadata.parse(metadata.serialize(doc))
        assert again == doc

    def test_none_fields_omitted(self) -> None:
        doc = MetaDocument(package=PackageDescriptor(name="foo", version="1.0"))
        text = metadata.serialize(doc).decode()
        assert "description" not in text
        assert "dependencies" not in text

    def test_with_checksum(self) -> None:
        doc = MetaDocument(package=PackageDescriptor(name="foo", version="1.0"))
        updated = doc.with_checksum("deadbeef")
        assert updated.package.content_checksum == "deadbeef"
        assert doc.package.content_checksum is None

    def test_file_round_trip(self, tmp_path: Path) -> None:
        doc = metadata.parse(FULL)
        p = tmp_path / "meta.toml"
        metadata.write_meta_file(p, doc)
        assert metadata.read_meta_file(p) == doc

    def test_read_missing_file(self, tmp_path: Path) -> None:
        with pytest.raises(MetadataError):
            metadata.read_meta_file(tmp_path / "missing.toml")
