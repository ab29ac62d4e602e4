"""更新 — 下载新版本，安装成功后才删除旧版本

失败时旧版本的记录与文件保持不变，错误原样抛出；
新版本安装过程中已放置的文件由安装状态机的补偿日志负责清理。
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from pathlib import Path

from lpkg.core import repository, signing
from lpkg.core.config import Config, get_config
from lpkg.core.dependency import highest, is_newer
from lpkg.core.exceptions import PackageNotFoundError, SignatureError
from lpkg.core.models import IndexEntry
from lpkg.core.protocols import PackageStoreProtocol
from lpkg.core.repository import RepositoryIndex
from lpkg.services.lifecycle.installer import Installer
from lpkg.services.lifecycle.models import InstallReport
from lpkg.services.lifecycle.steps import prune_empty_dirs

logger = logging.getLogger(__name__)


@dataclass
class UpdateResult:
    name: str
    from_version: str
    to_version: str = ""
    updated: bool = False
    message: str = ""
    report: InstallReport | None = None


def download_verified(entry: IndexEntry, config: Config) -> Path:
    """下载包；仓库提供签名且配置了公钥（或 require_signature）时校验分离签名"""
    archive_path = repository.download(entry, config.download_dir)
    public_key = config.public_key
    must_verify = config.require_signature or (
        bool(entry.signature_url) and bool(public_key)
    )
    if not must_verify:
        return archive_path
    if not entry.signature_url:
        raise SignatureError(f"要求签名校验，但仓库未提供 {entry.name} 的签名")
    if not public_key:
        raise SignatureError("要求签名校验，但未配置 public_key")
    sig_path = repository.download_url(
        entry.signature_url, signing.signature_path(archive_path),
    )
    signing.verify_file(archive_path, public_key, sig_path)
    return archive_path


class Updater:
    """单个包的更新流程"""

    def __init__(
        self,
        store: PackageStoreProtocol,
        config: Config | None = None,
        *,
        installer: Installer | None = None,
    ) -> None:
        self.store = store
        self.config = config or get_config()
        self.installer = installer or Installer(store, self.config)

    def update(self, name: str, index: RepositoryIndex) -> UpdateResult:
        versions = self.store.installed_versions(name)
        if not versions:
            raise PackageNotFoundError(f"包未安装，无法更新: {name}")
        current = highest(versions)
        old = self.store.find_by_name(name, current)[0]
        result = UpdateResult(name=name, from_version=current)
        logger.info("当前已安装版本: %s %s", name, current)

        entry = index.get(name)
        if entry is None:
            result.message = f"仓库中没有 {name}"
            logger.info(result.message)
            return result
        result.to_version = entry.version
        if not is_newer(entry.version, current):
            result.message = f"{name} 已是最新版本 ({current})"
            logger.info(result.message)
            return result

        logger.info("发现新版本: %s %s -> %s", name, current, entry.version)
        archive_path = download_verified(entry, self.config)

        report = self.installer.install(archive_path, conflicts=entry.conflict_items())
        result.report = report

        self._retire(old.id, old.version, report.package_id)
        result.updated = True
        result.message = f"{name} 已从 {current} 更新到 {entry.version}"
        logger.info(result.message)
        return result

    def _retire(self, old_id: int, old_version: str, new_id: int | None) -> None:
        """删除旧版本记录；开启 update_removes_old_files 时同时删除不属于新版本的旧文件"""
        if self.config.update_removes_old_files:
            keep = {f.path for f in self.store.get_files(new_id)} if new_id else set()
            removed = 0
            for rec in self.store.get_files(old_id):
                p = Path(rec.path)
                if rec.path in keep or not (p.is_file() or p.is_symlink()):
                    continue
                try:
                    p.unlink()
                    removed += 1
                except OSError as e:
                    logger.warning("删除旧文件失败: %s (%s)", p, e)
            old = self.store.get_package(old_id)
            if old is not None:
                prune_empty_dirs(self.config.package_root(old.name, old_version))
            logger.info("已删除旧版本文件: %d 个", removed)
        self.store.delete_package(old_id)
        logger.info("已删除旧版本记录: id=%d", old_id)
