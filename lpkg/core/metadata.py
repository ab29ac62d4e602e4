"""元数据模型 — meta.toml 的解析与序列化

文档结构:
    [package]
    name = "foo"
    version = "1.2.0"
    description = "..."
    content_checksum = "<sha256 hex>"

    [package.scripts]
    post_install = "post_install.sh"

    [dependencies]
    bar = ">=1.0.0"
"""

from __future__ import annotations

import logging
import tomllib
from dataclasses import dataclass, replace
from pathlib import Path
from typing import Any

import tomli_w

from lpkg.core.exceptions import (
    MalformedMetadataError,
    MetadataError,
    MissingFieldError,
)
from lpkg.utils.yaml_io import atomic_write

logger = logging.getLogger(__name__)

_OPTIONAL_STR_FIELDS = (
    "description", "license", "homepage", "repository",
    "content_checksum", "application_id",
)
_SCRIPT_FIELDS = ("pre_install", "post_install", "pre_remove", "post_remove")


@dataclass
class Scripts:
    """生命周期脚本，路径相对于归档的 scripts/ 区域"""

    pre_install: str | None = None
    post_install: str | None = None
    pre_remove: str | None = None
    post_remove: str | None = None

    def to_dict(self) -> dict[str, str]:
        return {
            k: getattr(self, k) for k in _SCRIPT_FIELDS
            if getattr(self, k) is not None
        }


@dataclass
class PackageDescriptor:
    name: str
    version: str
    description: str | None = None
    license: str | None = None
    authors: list[str] | None = None
    homepage: str | None = None
    repository: str | None = None
    content_checksum: str | None = None
    application_id: str | None = None
    scripts: Scripts | None = None


@dataclass
class MetaDocument:
    package: PackageDescriptor
    dependencies: dict[str, str] | None = None

    @property
    def name(self) -> str:
        return self.package.name

    @property
    def version(self) -> str:
        return self.package.version

    def dependency_items(self) -> list[tuple[str, str]]:
        """按文档顺序返回 (名称, 约束) 列表"""
        return list((self.dependencies or {}).items())

    def with_checksum(self, value: str) -> MetaDocument:
        """返回嵌入 content_checksum 的新文档"""
        return replace(self, package=replace(self.package, content_checksum=value))


# =========================================================================
# 解析
# =========================================================================


def _expect_str(table: dict[str, Any], key: str, where: str) -> str | None:
    value = table.get(key)
    if value is None:
        return None
    if not isinstance(value, str):
        raise MalformedMetadataError(
            f"字段 {where}.{key} 必须是字符串，实际为 {type(value).__name__}"
        )
    return value


def _parse_scripts(raw: Any) -> Scripts | None:
    if raw is None:
        return None
    if not isinstance(raw, dict):
        raise MalformedMetadataError("package.scripts 必须是表")
    return Scripts(**{k: _expect_str(raw, k, "package.scripts") for k in _SCRIPT_FIELDS})


def _parse_authors(raw: Any) -> list[str] | None:
    if raw is None:
        return None
    if not isinstance(raw, list) or not all(isinstance(a, str) for a in raw):
        raise MalformedMetadataError("package.authors 必须是字符串数组")
    return list(raw)


def _parse_dependencies(raw: Any) -> dict[str, str] | None:
    if raw is None:
        return None
    if not isinstance(raw, dict):
        raise MalformedMetadataError("dependencies 必须是表")
    deps: dict[str, str] = {}
    for name, constraint in raw.items():
        if not isinstance(constraint, str):
            raise MalformedMetadataError(
                f"依赖 {name} 的版本约束必须是字符串"
            )
        deps[name] = constraint
    return deps


def parse(document: bytes | str) -> MetaDocument:
    """解析 meta.toml 文本

    Raises:
        MalformedMetadataError: 编码、语法或字段类型错误，或缺少 [package] 表
        MissingFieldError: name / version 缺失或为空
    """
    if isinstance(document, bytes):
        try:
            document = document.decode("utf-8")
        except UnicodeDecodeError as e:
            raise MalformedMetadataError("meta.toml 不是有效的 UTF-8 文本") from e
    try:
        data = tomllib.loads(document)
    except tomllib.TOMLDecodeError as e:
        raise MalformedMetadataError(f"meta.toml 语法错误: {e}") from e

    pkg = data.get("package")
    if not isinstance(pkg, dict):
        raise MalformedMetadataError("meta.toml 缺少 [package] 表")

    required = {}
    for key in ("name", "version"):
        value = _expect_str(pkg, key, "package")
        if not value or not value.strip():
            raise MissingFieldError(key)
        required[key] = value

    descriptor = PackageDescriptor(
        name=required["name"],
        version=required["version"],
        authors=_parse_authors(pkg.get("authors")),
        scripts=_parse_scripts(pkg.get("scripts")),
        **{k: _expect_str(pkg, k, "package") for k in _OPTIONAL_STR_FIELDS},
    )
    return MetaDocument(
        package=descriptor,
        dependencies=_parse_dependencies(data.get("dependencies")),
    )


# =========================================================================
# 序列化
# =========================================================================


def to_dict(doc: MetaDocument) -> dict[str, Any]:
    """固定键顺序的字典表示，None 字段省略"""
    p = doc.package
    pkg: dict[str, Any] = {"name": p.name, "version": p.version}
    for key in ("description", "license", "authors", "homepage",
                "repository", "content_checksum", "application_id"):
        value = getattr(p, key)
        if value is not None:
            pkg[key] = value
    if p.scripts is not None:
        pkg["scripts"] = p.scripts.to_dict()
    out: dict[str, Any] = {"package": pkg}
    if doc.dependencies is not None:
        out["dependencies"] = dict(doc.dependencies)
    return out


def serialize(doc: MetaDocument) -> bytes:
    return tomli_w.dumps(to_dict(doc)).encode("utf-8")


def read_meta_file(path: str | Path) -> MetaDocument:
    p = Path(path)
    try:
        raw = p.read_bytes()
    except OSError as e:
        raise MetadataError(f"无法读取元数据文件: {p}") from e
    return parse(raw)


def write_meta_file(path: str | Path, doc: MetaDocument) -> None:
    atomic_write(Path(path), serialize(doc))
    logger.debug("元数据已写入: %s", path)
