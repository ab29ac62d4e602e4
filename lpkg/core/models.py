"""核心数据模型

包存储的三类记录与仓库索引条目集中定义。
记录在安装时创建、之后不再修改，由卸载 / 回滚删除。
"""

from __future__ import annotations

from dataclasses import asdict, dataclass, field
from typing import Any

# =========================================================================
# 存储记录
# =========================================================================


@dataclass
class PackageRecord:
    """已安装包：(name, version) 唯一，id 由存储分配"""

    id: int
    name: str
    version: str
    description: str | None = None
    license: str | None = None
    homepage: str | None = None
    repository: str | None = None
    authors: str | None = None  # 逗号分隔
    archive_path: str | None = None
    installed_at: str = ""

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


@dataclass
class PackageFileRecord:
    """包拥有的一个文件，生成的集成产物没有 checksum"""

    package_id: int
    path: str
    checksum: str | None = None

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


@dataclass
class DependencyRecord:
    package_id: int
    dependency_name: str
    dependency_version_constraint: str | None = None

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


# =========================================================================
# 仓库索引
# =========================================================================


def _name_list(raw: Any) -> list[str]:
    """索引里的依赖既可能是名称数组也可能是 {名称: 约束} 表"""
    if not raw:
        return []
    if isinstance(raw, dict):
        return [f"{k} {v}".strip() for k, v in raw.items()]
    return [str(x) for x in raw]


@dataclass
class IndexEntry:
    """仓库索引中的一个包"""

    name: str
    version: str
    download_url: str
    description: str | None = None
    signature_url: str | None = None
    dependencies: list[str] = field(default_factory=list)
    conflicts: list[str] = field(default_factory=list)

    @classmethod
    def from_dict(cls, name: str, data: dict[str, Any]) -> IndexEntry:
        """从索引 JSON 构造，download_url 缺省时取 url 字段"""
        url = data.get("download_url") or data.get("url")
        if not url:
            raise KeyError(f"索引条目 {name} 缺少 download_url")
        return cls(
            name=data.get("name") or name,
            version=str(data["version"]),
            download_url=url,
            description=data.get("description"),
            signature_url=data.get("signature_url"),
            dependencies=_name_list(data.get("dependencies")),
            conflicts=_name_list(data.get("conflicts")),
        )

    def conflict_items(self) -> list[tuple[str, str | None]]:
        """把 "名称 约束" 形式的冲突声明拆成 (名称, 约束)，无约束时为 None"""
        items = []
        for raw in self.conflicts:
            name, _, constraint = raw.strip().partition(" ")
            items.append((name, constraint.strip() or None))
        return items

    def to_dict(self) -> dict[str, Any]:
        out: dict[str, Any] = {
            "name": self.name,
            "version": self.version,
            "download_url": self.download_url,
        }
        if self.description is not None:
            out["description"] = self.description
        if self.signature_url is not None:
            out["signature_url"] = self.signature_url
        if self.dependencies:
            out["dependencies"] = list(self.dependencies)
        if self.conflicts:
            out["conflicts"] = list(self.conflicts)
        return out
