"""包生命周期编排

拆分说明：
- models.py: 状态机状态、上下文与报告
- compensation.py: 补偿动作与撤销日志
- steps.py: 安装步骤实现
- installer.py: 安装协调器
- removal.py: 回滚与卸载
- update.py: 更新
"""

from lpkg.services.lifecycle.compensation import (
    CompensationLog,
    DeleteFile,
    DeleteStoreRecord,
    RemoveArtifact,
    RemoveSymlink,
    RestoreFile,
    RestoreSymlink,
)
from lpkg.services.lifecycle.installer import Installer
from lpkg.services.lifecycle.models import InstallReport, InstallState
from lpkg.services.lifecycle.removal import Remover
from lpkg.services.lifecycle.update import Updater, UpdateResult

__all__ = [
    "CompensationLog",
    "DeleteFile",
    "DeleteStoreRecord",
    "Installer",
    "InstallReport",
    "InstallState",
    "RemoveArtifact",
    "RemoveSymlink",
    "Remover",
    "RestoreFile",
    "RestoreSymlink",
    "UpdateResult",
    "Updater",
]
