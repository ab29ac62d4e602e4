"""回滚与卸载

rollback(package_id): 删除记录中仍存在的普通文件（目录只报告不递归删除），
再删除包记录；对同一 id 重复调用是无操作成功。
有文件删不掉时抛 IntegrationError，记录保留以便重试。

remove(name[, version]): 对每条匹配记录执行回滚，再尽力清理未登记的
集成产物（桌面文件、bin 链接、ld.so.conf.d 配置），清理失败只记日志。
"""

from __future__ import annotations

import logging
import os
from pathlib import Path

from lpkg.core.config import Config, get_config
from lpkg.core.exceptions import ExternalProcessError, IntegrationError
from lpkg.core.protocols import PackageStoreProtocol
from lpkg.services.lifecycle.steps import prune_empty_dirs
from lpkg.utils.shell import CommandExecutor, run_cmd

logger = logging.getLogger(__name__)


class Remover:
    """回滚 / 卸载服务"""

    def __init__(
        self,
        store: PackageStoreProtocol,
        config: Config | None = None,
        *,
        executor: CommandExecutor | None = None,
    ) -> None:
        self.store = store
        self.config = config or get_config()
        self.executor = executor

    def rollback(self, package_id: int) -> list[str]:
        """删除包 id 登记的文件与记录，返回实际删除的路径"""
        deleted: list[str] = []
        failed: list[tuple[Path, OSError]] = []
        for rec in self.store.get_files(package_id):
            p = Path(rec.path)
            if p.is_dir() and not p.is_symlink():
                logger.warning("跳过目录 (不递归删除): %s", p)
                continue
            if p.is_file() or p.is_symlink():
                try:
                    p.unlink()
                except OSError as e:
                    logger.error("删除失败: %s (%s)", p, e)
                    failed.append((p, e))
                    continue
                deleted.append(rec.path)
                logger.debug("已删除: %s", p)
        if failed:
            # 保留记录，修复权限后可再次回滚
            path, first = failed[0]
            raise IntegrationError(
                f"回滚 id={package_id} 时 {len(failed)} 个文件删除失败，记录已保留 (首个: {path})"
            ) from first
        self.store.delete_package(package_id)
        logger.info("回滚完成: id=%d, 删除 %d 个文件", package_id, len(deleted))
        return deleted

    def remove(self, name: str, version: str | None = None) -> bool:
        """卸载包（不指定版本时卸载全部已安装版本），返回是否有记录被删除"""
        records = self.store.find_by_name(name, version)
        if not records:
            logger.info("包未安装: %s%s", name, f" {version}" if version else "")
            return False

        roots = [self.config.package_root(r.name, r.version) for r in records]
        for rec in records:
            self.rollback(rec.id)
            logger.info("已卸载: %s-%s", rec.name, rec.version)

        if not self.store.find_by_name(name):
            self._cleanup_integration(name, roots)
        for root in roots:
            prune_empty_dirs(root)
        return True

    # ---- 尽力清理 ----

    def _cleanup_integration(self, name: str, roots: list[Path]) -> None:
        desktop = Path(self.config.applications_dir) / f"{name}.desktop"
        _try_unlink(desktop, "桌面文件")

        link = Path(self.config.bin_dir) / name
        if link.is_symlink():
            target = Path(os.readlink(link))
            owned = any(target.is_relative_to(r) for r in roots)
            if owned or not link.exists():
                _try_unlink(link, "bin 链接")
            else:
                logger.info("bin 链接指向其他位置，保留: %s -> %s", link, target)

        ld_conf = Path(self.config.ld_conf_dir) / f"lpkg-{name}.conf"
        if _try_unlink(ld_conf, "动态链接器配置"):
            try:
                run_cmd(["ldconfig"], label="ldconfig", executor=self.executor)
            except ExternalProcessError as e:
                logger.warning("ldconfig 执行失败: %s", e)


def _try_unlink(path: Path, what: str) -> bool:
    if not (path.is_symlink() or path.is_file()):
        return False
    try:
        path.unlink()
    except OSError as e:
        logger.warning("删除%s失败: %s (%s)", what, path, e)
        return False
    logger.info("已删除%s: %s", what, path)
    return True

