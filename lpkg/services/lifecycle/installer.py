"""安装编排器 - 协调安装状态机

职责：
- 按顺序执行安装步骤
- 任一步骤失败时逆序执行补偿日志，再抛出原始异常
- 无论成败都删除临时解包目录
"""

from __future__ import annotations

import logging
from collections.abc import Sequence
from pathlib import Path

from lpkg.core.config import Config, get_config
from lpkg.core.protocols import PackageStoreProtocol
from lpkg.services.lifecycle.compensation import CompensationLog
from lpkg.services.lifecycle.models import InstallContext, InstallReport, InstallState
from lpkg.services.lifecycle.steps import InstallSteps, prune_empty_dirs
from lpkg.utils.logger import package_context
from lpkg.utils.shell import CommandExecutor, ScriptRunner

logger = logging.getLogger(__name__)


class Installer:
    """安装状态机（补偿日志保证失败后不留下记录与孤儿文件）"""

    def __init__(
        self,
        store: PackageStoreProtocol,
        config: Config | None = None,
        *,
        runner: ScriptRunner | None = None,
        executor: CommandExecutor | None = None,
    ) -> None:
        self.store = store
        self.config = config or get_config()
        self.runner = runner or ScriptRunner(executor)
        self.executor = executor

    def install(
        self,
        archive_path: str | Path,
        *,
        conflicts: Sequence[tuple[str, str | None]] = (),
    ) -> InstallReport:
        """安装一个 .lpkg 文件，成功时报告状态为 COMMITTED

        Raises:
            LpkgError 子类: 任一步骤失败（补偿动作已执行完毕）
        """
        ctx = InstallContext(archive_path=Path(archive_path), conflicts=list(conflicts))
        report = InstallReport(archive=str(archive_path))
        log = CompensationLog()
        steps = InstallSteps(self.store, self.config, log, self.runner, self.executor)
        root_existed = False

        try:
            steps.extract(ctx, report)
            steps.validate_metadata(ctx, report)
            root_existed = ctx.root.exists()
            steps.check_duplicate(ctx, report)
            steps.check_dependencies(ctx, report)
            steps.register(ctx, report)
            steps.run_hook("pre_install", ctx, report)
            steps.place_files(ctx, report)
            steps.integrate(ctx, report)
            steps.run_hook("post_install", ctx, report)
            steps.commit(ctx, report)
        except BaseException as e:
            # Ctrl-C 同样在步骤边界回滚
            report.failed_at = report.state
            report.state = InstallState.FAILED
            report.error = str(e)
            logger.error(
                "安装失败 (%s): %s", report.failed_at.value, e,
                extra=package_context(
                    ctx.meta.name if ctx.meta else None,
                    ctx.meta.version if ctx.meta else None,
                    report.failed_at.value, ctx.package_id,
                ),
            )
            log.unwind(self.store)
            if ctx.root is not None and not root_existed:
                prune_empty_dirs(ctx.root)
            raise
        finally:
            steps.cleanup(ctx)

        return report
