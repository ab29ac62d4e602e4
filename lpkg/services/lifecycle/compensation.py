"""补偿动作日志

安装过程中每完成一个有副作用的操作，立即压入对应的撤销动作；
失败时按相反顺序执行。撤销自身出错只记录日志，继续执行剩余动作，
原始异常照常向上抛出。
"""

from __future__ import annotations

import logging
import os
import shutil
from dataclasses import dataclass
from pathlib import Path
from typing import Union

from lpkg.core.exceptions import LpkgError
from lpkg.core.protocols import PackageStoreProtocol

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class DeleteStoreRecord:
    """删除包记录（级联删除文件与依赖记录）"""

    package_id: int

    def undo(self, store: PackageStoreProtocol) -> None:
        store.delete_package(self.package_id)


@dataclass(frozen=True)
class DeleteFile:
    """删除从 files/ 复制出的文件"""

    path: str

    def undo(self, store: PackageStoreProtocol) -> None:
        Path(self.path).unlink(missing_ok=True)


@dataclass(frozen=True)
class RemoveSymlink:
    """删除 bin 目录中的符号链接（目标已不是链接时不动）"""

    path: str

    def undo(self, store: PackageStoreProtocol) -> None:
        if os.path.islink(self.path):
            os.unlink(self.path)


@dataclass(frozen=True)
class RemoveArtifact:
    """删除生成的集成产物：桌面文件、图标、包装脚本"""

    path: str

    def undo(self, store: PackageStoreProtocol) -> None:
        Path(self.path).unlink(missing_ok=True)


@dataclass(frozen=True)
class RestoreFile:
    """用覆盖前的备份恢复普通文件（旧版本的桌面文件、图标，或用户自己的文件）"""

    path: str
    backup: str

    def undo(self, store: PackageStoreProtocol) -> None:
        dest = Path(self.path)
        if dest.is_symlink() or dest.is_file():
            dest.unlink()
        dest.parent.mkdir(parents=True, exist_ok=True)
        shutil.copy2(self.backup, dest)


@dataclass(frozen=True)
class RestoreSymlink:
    """把被替换的符号链接改回原来的指向"""

    path: str
    previous_target: str

    def undo(self, store: PackageStoreProtocol) -> None:
        if os.path.islink(self.path) or os.path.isfile(self.path):
            os.unlink(self.path)
        os.symlink(self.previous_target, self.path)


CompensatingAction = Union[
    DeleteStoreRecord, DeleteFile, RemoveSymlink, RemoveArtifact, RestoreFile, RestoreSymlink,
]


class CompensationLog:
    """撤销动作栈"""

    def __init__(self) -> None:
        self._actions: list[CompensatingAction] = []

    def push(self, action: CompensatingAction) -> None:
        self._actions.append(action)

    @property
    def actions(self) -> tuple[CompensatingAction, ...]:
        return tuple(self._actions)

    def __len__(self) -> int:
        return len(self._actions)

    def discard(self) -> None:
        """提交后丢弃日志，安装成为永久状态"""
        self._actions.clear()

    def unwind(self, store: PackageStoreProtocol) -> list[tuple[CompensatingAction, Exception]]:
        """逆序执行全部撤销动作，返回执行失败的动作及其异常"""
        failures: list[tuple[CompensatingAction, Exception]] = []
        if self._actions:
            logger.warning("回滚安装: %d 个撤销动作", len(self._actions))
        while self._actions:
            action = self._actions.pop()
            try:
                action.undo(store)
                logger.debug("已撤销: %s", action)
            except (OSError, LpkgError) as e:
                logger.exception("撤销失败: %s", action)
                failures.append((action, e))
        return failures
