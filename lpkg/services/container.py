"""服务容器 — 统一依赖注入

CLI 和 Web 层通过 get_container() 获取服务，而非直接 import 构造。
包存储不是单例：open_store() 每次返回新句柄，由调用方负责 open/close。

依赖关系图（→ 表示依赖）:
  packages → repository, pack
  installer / remover / updater → 调用方传入的 store

用法:
    container = ServiceContainer(config=cfg)
    with container.open_store(read_only=True) as store:
        store.list_packages()
"""

from __future__ import annotations

import logging
import threading
from pathlib import Path
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from lpkg.core.config import Config
    from lpkg.core.protocols import PackageStoreProtocol
    from lpkg.core.store import PackageStore
    from lpkg.services.builders import BaseBuilder
    from lpkg.services.lifecycle import Installer, Remover, Updater
    from lpkg.services.pack_service import PackService
    from lpkg.services.package_service import PackageService
    from lpkg.services.repo_service import RepoService
    from lpkg.utils.shell import CommandExecutor

logger = logging.getLogger(__name__)


class ServiceContainer:
    """懒加载服务容器"""

    def __init__(
        self,
        config: Config | None = None,
        executor: CommandExecutor | None = None,
    ) -> None:
        self._instances: dict[str, object] = {}
        if config is None:
            from lpkg.core.config import get_config
            config = get_config()
        self._config = config
        self._executor = executor

    @property
    def config(self) -> Config:
        return self._config

    @property
    def executor(self) -> CommandExecutor | None:
        return self._executor

    # ---- 存储（调用方管理生命周期） ----

    def open_store(self, read_only: bool = False) -> PackageStore:
        from lpkg.core.store import PackageStore
        return PackageStore(self._config.db_path, read_only=read_only)

    # ---- 生命周期（绑定到调用方传入的 store） ----

    def installer(self, store: PackageStoreProtocol) -> Installer:
        from lpkg.services.lifecycle import Installer
        return Installer(store, self._config, executor=self._executor)

    def remover(self, store: PackageStoreProtocol) -> Remover:
        from lpkg.services.lifecycle import Remover
        return Remover(store, self._config, executor=self._executor)

    def updater(self, store: PackageStoreProtocol) -> Updater:
        from lpkg.services.lifecycle import Updater
        return Updater(store, self._config, installer=self.installer(store))

    def builder(self, project_dir: str | Path) -> BaseBuilder:
        from lpkg.services.builders import detect_builder
        return detect_builder(project_dir, self._executor)

    # ---- 服务层 ----

    @property
    def repository(self) -> RepoService:
        if "repository" not in self._instances:
            from lpkg.services.repo_service import RepoService
            self._instances["repository"] = RepoService(
                repos_file=self._config.repos_file,
                cache_dir=self._config.cache_dir,
                default_repo=self._config.default_repo,
            )
        return self._instances["repository"]  # type: ignore[return-value]

    @property
    def pack(self) -> PackService:
        if "pack" not in self._instances:
            from lpkg.services.pack_service import PackService
            self._instances["pack"] = PackService(temp_dir=self._config.temp_dir)
        return self._instances["pack"]  # type: ignore[return-value]

    @property
    def packages(self) -> PackageService:
        if "packages" not in self._instances:
            from lpkg.services.package_service import PackageService
            self._instances["packages"] = PackageService(self)
        return self._instances["packages"]  # type: ignore[return-value]


# ---- 全局单例 ----

_global: ServiceContainer | None = None
_global_lock = threading.Lock()


def get_container() -> ServiceContainer:
    """获取全局 ServiceContainer 单例（线程安全）"""
    global _global  # noqa: PLW0603
    if _global is not None:
        return _global
    with _global_lock:
        if _global is None:
            _global = ServiceContainer()
        return _global


def reset_container() -> None:
    """重置全局容器（仅用于测试或重新加载配置）"""
    global _global  # noqa: PLW0603
    with _global_lock:
        _global = None
