"""包管理服务 — CLI / Web 共用的门面

每个方法打开一次存储：检查类操作只读，变更类操作读写，结束即关闭。
"""

from __future__ import annotations

import logging
from collections.abc import Sequence
from pathlib import Path
from typing import TYPE_CHECKING, Any

from lpkg.core import repository
from lpkg.core.exceptions import PackageNotFoundError
from lpkg.core.models import PackageRecord
from lpkg.services.lifecycle.models import InstallReport
from lpkg.services.lifecycle.update import UpdateResult, download_verified

if TYPE_CHECKING:
    from lpkg.core.config import Config
    from lpkg.core.protocols import PackageStoreProtocol
    from lpkg.services.container import ServiceContainer

logger = logging.getLogger(__name__)


class PackageService:
    """安装 / 卸载 / 更新 / 查询"""

    def __init__(self, container: ServiceContainer) -> None:
        self.c = container

    @property
    def config(self) -> Config:
        return self.c.config

    # ---- 变更 ----

    def setup(self) -> Path:
        """创建数据库结构与工作目录"""
        cfg = self.config
        for d in (cfg.install_base, cfg.cache_dir, cfg.download_dir):
            Path(d).mkdir(parents=True, exist_ok=True)
        with self.c.open_store() as store:
            store.init_schema()
        logger.info("数据库已初始化: %s", cfg.db_path)
        return Path(cfg.db_path)

    def install(
        self, archive_path: str | Path, *, conflicts: Sequence[tuple[str, str | None]] = (),
    ) -> InstallReport:
        with self.c.open_store() as store:
            return self.c.installer(store).install(archive_path, conflicts=conflicts)

    def remove(self, name: str, version: str | None = None) -> bool:
        with self.c.open_store() as store:
            return self.c.remover(store).remove(name, version)

    def rollback(self, package_id: int) -> list[str]:
        with self.c.open_store() as store:
            return self.c.remover(store).rollback(package_id)

    def update(self, name: str, repo: str | None = None) -> UpdateResult:
        index = self.c.repository.load_index(repo, refresh=True)
        with self.c.open_store() as store:
            return self.c.updater(store).update(name, index)

    def repo_install(self, package: str, repo: str | None = None) -> InstallReport:
        """从仓库下载并安装"""
        index = self.c.repository.load_index(repo)
        entry = repository.require(index, package)
        archive_path = download_verified(entry, self.config)
        return self.install(archive_path, conflicts=entry.conflict_items())

    # ---- 查询 ----

    def list_packages(self) -> list[PackageRecord]:
        with self.c.open_store(read_only=True) as store:
            return store.list_packages()

    def _records(self, store: PackageStoreProtocol, name: str) -> list[PackageRecord]:
        records = store.find_by_name(name)
        if not records:
            raise PackageNotFoundError(f"包未安装: {name}")
        return records

    def info(self, name: str) -> list[dict[str, Any]]:
        """返回每个已安装版本的记录、依赖、冲突声明与文件数"""
        with self.c.open_store(read_only=True) as store:
            out = []
            for rec in self._records(store, name):
                item = rec.to_dict()
                item["dependencies"] = [
                    {"name": d.dependency_name, "constraint": d.dependency_version_constraint}
                    for d in store.get_dependencies(rec.id)
                ]
                item["conflicts"] = [
                    {"name": n, "constraint": c} for n, c in store.get_conflicts(rec.id)
                ]
                item["file_count"] = len(store.get_files(rec.id))
                out.append(item)
            return out

    def files(self, name: str) -> list[dict[str, Any]]:
        with self.c.open_store(read_only=True) as store:
            return [
                f.to_dict()
                for rec in self._records(store, name)
                for f in store.get_files(rec.id)
            ]
