"""安装编排数据模型

数据类：
- InstallState: 状态机状态
- InstallContext: 单次安装在步骤之间传递的上下文
- InstallReport: 安装报告（到达的状态、包 id、已放置文件、步骤日志）
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Any

from lpkg.core.metadata import MetaDocument


class InstallState(str, Enum):
    """安装状态机；FAILED 可从任意非终态到达"""

    PENDING = "pending"
    EXTRACTED = "extracted"
    METADATA_VALIDATED = "metadata_validated"
    DEPENDENCIES_CHECKED = "dependencies_checked"
    REGISTERED = "registered"
    FILES_PLACED = "files_placed"
    INTEGRATION_COMPLETE = "integration_complete"
    COMMITTED = "committed"
    FAILED = "failed"


@dataclass
class InstallContext:
    """单次安装的运行时上下文"""

    archive_path: Path
    work_dir: Path | None = None
    meta: MetaDocument | None = None
    root: Path | None = None
    package_id: int | None = None
    placed_files: list[str] = field(default_factory=list)
    artifacts: list[str] = field(default_factory=list)
    bin_link: str = ""
    # 仓库索引声明的冲突，只登记不检查
    conflicts: list[tuple[str, str | None]] = field(default_factory=list)

    @property
    def scripts_dir(self) -> Path | None:
        return self.work_dir / "scripts" if self.work_dir else None


@dataclass
class InstallReport:
    """安装报告"""

    archive: str
    state: InstallState = InstallState.PENDING
    failed_at: InstallState | None = None
    name: str = ""
    version: str = ""
    package_id: int | None = None
    install_root: str = ""
    placed_files: list[str] = field(default_factory=list)
    steps: list[dict[str, Any]] = field(default_factory=list)
    error: str = ""

    @property
    def success(self) -> bool:
        return self.state == InstallState.COMMITTED

    def to_dict(self) -> dict[str, Any]:
        return {
            "archive": self.archive,
            "state": self.state.value,
            "failed_at": self.failed_at.value if self.failed_at else None,
            "name": self.name,
            "version": self.version,
            "package_id": self.package_id,
            "install_root": self.install_root,
            "placed_files": list(self.placed_files),
            "steps": list(self.steps),
            "error": self.error,
        }
