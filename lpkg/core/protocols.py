"""领域协议定义

生命周期编排、依赖门禁只依赖这里的存储协议，
测试时可以替换为内存实现，SQLite 适配器无需继承。
"""

from __future__ import annotations

from typing import Protocol

from lpkg.core.models import DependencyRecord, PackageFileRecord, PackageRecord


class PackageStoreProtocol(Protocol):
    """包存储协议

    抽象已安装包记录的读写；(name, version) 唯一约束由实现保证，
    冲突时抛 AlreadyInstalledError。
    """

    def add_package(
        self, *,
        name: str,
        version: str,
        description: str | None = None,
        license: str | None = None,
        homepage: str | None = None,
        repository: str | None = None,
        authors: list[str] | None = None,
        archive_path: str | None = None,
    ) -> int:
        """登记包记录，返回 package_id"""
        ...

    def add_package_file(
        self, package_id: int, path: str, checksum: str | None = None,
    ) -> None:
        ...

    def add_dependency(
        self, package_id: int, name: str, constraint: str | None = None,
    ) -> None:
        ...

    def add_conflict(
        self, package_id: int, name: str, constraint: str | None = None,
    ) -> None:
        ...

    def delete_package(self, package_id: int) -> None:
        """删除包记录（级联删除文件、依赖与冲突记录）"""
        ...

    def get_package(self, package_id: int) -> PackageRecord | None:
        ...

    def find_by_name(
        self, name: str, version: str | None = None,
    ) -> list[PackageRecord]:
        ...

    def installed_versions(self, name: str) -> list[str]:
        ...

    def list_packages(self) -> list[PackageRecord]:
        ...

    def get_files(self, package_id: int) -> list[PackageFileRecord]:
        ...

    def get_dependencies(self, package_id: int) -> list[DependencyRecord]:
        ...

    def get_conflicts(self, package_id: int) -> list[tuple[str, str | None]]:
        ...

    def is_installed(self, name: str, version: str) -> bool:
        ...
