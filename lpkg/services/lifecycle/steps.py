"""安装步骤实现

步骤顺序：
1. extract - 解包到进程独占的临时目录
2. validate_metadata - 解析 meta.toml，确定安装根目录
3. check_duplicate - 同名同版本已安装则拒绝
4. check_dependencies - 依赖门禁
5. register - 登记包与依赖记录（第一次持久化变更）
6. run_hook("pre_install") - 安装前脚本
7. place_files - 复制 files/ 并记录每个文件的摘要
8. integrate - 桌面文件、图标、包装脚本与 bin 链接
9. run_hook("post_install") - 安装后脚本
10. commit - 丢弃补偿日志

从 register 开始，每个副作用完成后立即压入补偿动作。
"""

from __future__ import annotations

import itertools
import logging
import os
import shutil
from pathlib import Path
from typing import TYPE_CHECKING

from lpkg.core import archive, dependency, metadata
from lpkg.core.archive import regular_files
from lpkg.core.checksum import digest_file
from lpkg.core.exceptions import (
    AlreadyInstalledError,
    ArchiveError,
    ExternalProcessError,
    IntegrationError,
    MetadataError,
    TargetIsDirectoryError,
)
from lpkg.services.lifecycle.compensation import (
    DeleteFile,
    DeleteStoreRecord,
    RemoveArtifact,
    RemoveSymlink,
    RestoreFile,
    RestoreSymlink,
)
from lpkg.services.lifecycle.models import InstallState
from lpkg.utils.logger import package_context
from lpkg.utils.shell import run_cmd

if TYPE_CHECKING:
    from lpkg.core.config import Config
    from lpkg.core.protocols import PackageStoreProtocol
    from lpkg.services.lifecycle.compensation import CompensatingAction, CompensationLog
    from lpkg.services.lifecycle.models import InstallContext, InstallReport
    from lpkg.utils.shell import CommandExecutor, ScriptRunner

logger = logging.getLogger(__name__)

_extract_seq = itertools.count(1)
_backup_seq = itertools.count(1)

# 被覆盖文件的备份放在解包目录下，随临时目录一起删除
BACKUP_DIR = ".lpkg_backup"

# 图标尺寸优先级：矢量优先，其次 128x128，再按名称排序
_ICON_SIZE_ORDER = ("scalable", "128x128")

WRAPPER_TEMPLATE = """#!/bin/sh
# 由 lpkg 生成: {name} {version}
cd "{root}" || exit 1
exec "./{target}" "$@"
"""


def extraction_dir(temp_dir: str | Path) -> Path:
    """<temp_dir>/lpkg_install_<pid>_<n>，同一进程内递增，跳过已存在的目录"""
    base = Path(temp_dir)
    while True:
        candidate = base / f"lpkg_install_{os.getpid()}_{next(_extract_seq)}"
        if not candidate.exists():
            return candidate


def find_executable(root: Path, name: str) -> Path | None:
    """按 <name>、usr/bin/<name>、bin/<name> 顺序查找可执行文件"""
    for rel in (Path(name), Path("usr/bin") / name, Path("bin") / name):
        candidate = root / rel
        if candidate.is_file() and os.access(candidate, os.X_OK):
            return candidate
    return None


def find_icon(root: Path, name: str) -> tuple[str, Path] | None:
    """查找 usr/share/icons/hicolor/<size>/apps/<name>.png，返回 (size, 路径)"""
    hicolor = root / "usr/share/icons/hicolor"
    if not hicolor.is_dir():
        return None
    found = {
        p.parent.parent.name: p
        for p in hicolor.glob(f"*/apps/{name}.png") if p.is_file()
    }
    for size in _ICON_SIZE_ORDER:
        if size in found:
            return size, found[size]
    if found:
        size = sorted(found)[0]
        return size, found[size]
    return None


def prune_empty_dirs(root: Path) -> None:
    """自底向上删除 root 下（含 root）的空目录"""
    if not root.is_dir():
        return
    for dirpath, _dirnames, _filenames in os.walk(root, topdown=False):
        try:
            os.rmdir(dirpath)
        except OSError:
            continue


def replace_symlink(link: Path, target: Path) -> None:
    """创建或替换符号链接；已有链接/普通文件被替换，已有目录拒绝"""
    if link.is_symlink() or link.is_file():
        link.unlink()
    elif link.is_dir():
        raise TargetIsDirectoryError(str(link))
    link.parent.mkdir(parents=True, exist_ok=True)
    os.symlink(target, link)


class InstallSteps:
    """安装步骤集合"""

    def __init__(
        self,
        store: PackageStoreProtocol,
        config: Config,
        log: CompensationLog,
        runner: ScriptRunner,
        executor: CommandExecutor | None = None,
    ) -> None:
        self.store = store
        self.config = config
        self.log = log
        self.runner = runner
        self.executor = executor

    @staticmethod
    def _advance(
        report: InstallReport, state: InstallState, step: str, **detail: object,
    ) -> None:
        report.state = state
        report.steps.append({"step": step, "status": "done", **detail})

    # ---- 1 ----

    def extract(self, ctx: InstallContext, report: InstallReport) -> None:
        """步骤1: 解包到临时目录"""
        if not ctx.archive_path.is_file():
            raise ArchiveError(f"包文件不存在: {ctx.archive_path}")
        ctx.work_dir = extraction_dir(self.config.temp_dir)
        archive.unpack_file(ctx.archive_path, ctx.work_dir)
        self._advance(report, InstallState.EXTRACTED, "extract", work_dir=str(ctx.work_dir))
        logger.info("[Step 1] 已解包: %s -> %s", ctx.archive_path, ctx.work_dir)

    # ---- 2 ----

    def validate_metadata(self, ctx: InstallContext, report: InstallReport) -> None:
        """步骤2: 解析 meta.toml 并确定安装根目录"""
        meta_path = ctx.work_dir / archive.META_NAME
        if not meta_path.is_file():
            raise MetadataError(f"归档中缺少 {archive.META_NAME}")
        ctx.meta = metadata.read_meta_file(meta_path)
        ctx.root = self.config.package_root(ctx.meta.name, ctx.meta.version)
        report.name = ctx.meta.name
        report.version = ctx.meta.version
        report.install_root = str(ctx.root)
        self._advance(
            report, InstallState.METADATA_VALIDATED, "validate_metadata",
            name=ctx.meta.name, version=ctx.meta.version,
        )
        logger.info("[Step 2] 元数据有效: %s %s", ctx.meta.name, ctx.meta.version)

    # ---- 3, 4 ----

    def check_duplicate(self, ctx: InstallContext, report: InstallReport) -> None:
        """步骤3: 不覆盖已安装的同名同版本包"""
        if self.store.is_installed(ctx.meta.name, ctx.meta.version):
            raise AlreadyInstalledError(ctx.meta.name, ctx.meta.version)
        report.steps.append({"step": "check_duplicate", "status": "done"})

    def check_dependencies(self, ctx: InstallContext, report: InstallReport) -> None:
        """步骤4: 依赖门禁，失败时尚未发生任何变更"""
        deps = ctx.meta.dependency_items()
        dependency.check_all(deps, self.store)
        self._advance(
            report, InstallState.DEPENDENCIES_CHECKED, "check_dependencies",
            count=len(deps),
        )
        logger.info("[Step 4] 依赖检查通过: %d 项", len(deps))

    # ---- 5 ----

    def register(self, ctx: InstallContext, report: InstallReport) -> None:
        """步骤5: 登记包记录与依赖记录"""
        pkg = ctx.meta.package
        ctx.package_id = self.store.add_package(
            name=pkg.name,
            version=pkg.version,
            description=pkg.description,
            license=pkg.license,
            homepage=pkg.homepage,
            repository=pkg.repository,
            authors=pkg.authors,
            archive_path=str(ctx.archive_path.resolve()),
        )
        self.log.push(DeleteStoreRecord(ctx.package_id))
        for name, constraint in ctx.meta.dependency_items():
            self.store.add_dependency(ctx.package_id, name, constraint or None)
        for name, constraint in ctx.conflicts:
            self.store.add_conflict(ctx.package_id, name, constraint)
        report.package_id = ctx.package_id
        self._advance(report, InstallState.REGISTERED, "register", package_id=ctx.package_id)
        logger.info(
            "[Step 5] 已登记: %s-%s (id=%d)", pkg.name, pkg.version, ctx.package_id,
            extra=package_context(pkg.name, pkg.version, report.state.value, ctx.package_id),
        )

    # ---- 6, 9 ----

    def _hook_path(self, ctx: InstallContext, declared: str) -> Path | None:
        scripts_dir = ctx.scripts_dir
        if scripts_dir is None or not scripts_dir.is_dir():
            return None
        script = (scripts_dir / declared).resolve()
        if not script.is_relative_to(scripts_dir.resolve()):
            raise MetadataError(f"脚本路径越出 scripts/ 目录: {declared}")
        return script if script.is_file() else None

    def run_hook(self, which: str, ctx: InstallContext, report: InstallReport) -> None:
        """步骤6/9: 执行 pre_install / post_install 脚本，非零退出即失败"""
        scripts = ctx.meta.package.scripts
        declared = getattr(scripts, which, None) if scripts else None
        script = self._hook_path(ctx, declared) if declared else None
        if script is None:
            report.steps.append({"step": which, "status": "skipped"})
            return
        env = {
            "LPKG_PACKAGE_NAME": ctx.meta.name,
            "LPKG_PACKAGE_VERSION": ctx.meta.version,
            "LPKG_INSTALL_ROOT": str(ctx.root),
        }
        result = self.runner.run(script, cwd=ctx.work_dir, env=env)
        if not result.success:
            raise ExternalProcessError(f"{which} 脚本 {declared} ", result.returncode, result.stderr)
        report.steps.append({"step": which, "status": "done", "script": declared})
        logger.info("%s 脚本执行完成: %s", which, declared)

    # ---- 7 ----

    def place_files(self, ctx: InstallContext, report: InstallReport) -> None:
        """步骤7: 复制 files/ 下的普通文件到安装根目录并记录摘要"""
        files_dir = ctx.work_dir / archive.FILES_DIR
        if not files_dir.is_dir():
            raise ArchiveError(f"归档中缺少 {archive.FILES_DIR}/ 目录")
        for rel, src in regular_files(files_dir):
            dest = ctx.root / rel
            self.log.push(DeleteFile(str(dest)))
            try:
                dest.parent.mkdir(parents=True, exist_ok=True)
                shutil.copy2(src, dest)
                checksum = digest_file(dest)
            except OSError as e:
                raise IntegrationError(f"放置文件失败: {dest}") from e
            self.store.add_package_file(ctx.package_id, str(dest), checksum)
            ctx.placed_files.append(str(dest))
        report.placed_files = list(ctx.placed_files)
        self._advance(
            report, InstallState.FILES_PLACED, "place_files",
            count=len(ctx.placed_files),
        )
        logger.info("[Step 7] 已放置 %d 个文件到 %s", len(ctx.placed_files), ctx.root)

    # ---- 8 ----

    def _preserve(self, ctx: InstallContext, dest: Path) -> CompensatingAction | None:
        """覆盖前记下 dest 的原状：链接记住指向，普通文件复制到备份目录"""
        if dest.is_symlink():
            return RestoreSymlink(str(dest), os.readlink(dest))
        if not dest.is_file():
            return None
        backup_dir = ctx.work_dir / BACKUP_DIR
        backup = backup_dir / f"{next(_backup_seq)}_{dest.name}"
        try:
            backup_dir.mkdir(parents=True, exist_ok=True)
            shutil.copy2(dest, backup)
        except OSError as e:
            raise IntegrationError(f"备份已有文件失败: {dest}") from e
        logger.debug("已备份: %s -> %s", dest, backup)
        return RestoreFile(str(dest), str(backup))

    def _copy_artifact(self, ctx: InstallContext, src: Path, dest: Path) -> None:
        self.log.push(self._preserve(ctx, dest) or RemoveArtifact(str(dest)))
        try:
            dest.parent.mkdir(parents=True, exist_ok=True)
            # 不透过已有链接写到别处
            if dest.is_symlink():
                dest.unlink()
            shutil.copyfile(src, dest)
        except OSError as e:
            raise IntegrationError(f"复制集成文件失败: {dest}") from e
        self.store.add_package_file(ctx.package_id, str(dest), None)
        ctx.artifacts.append(str(dest))

    def _write_wrapper(self, ctx: InstallContext, executable: Path) -> Path:
        name = ctx.meta.name
        wrapper = ctx.root / f"{name}-wrapper.sh"
        content = WRAPPER_TEMPLATE.format(
            name=name,
            version=ctx.meta.version,
            root=ctx.root,
            target=executable.relative_to(ctx.root).as_posix(),
        )
        try:
            wrapper.write_text(content, encoding="utf-8")
            wrapper.chmod(0o755)
        except OSError as e:
            raise IntegrationError(f"写入包装脚本失败: {wrapper}") from e
        self.log.push(RemoveArtifact(str(wrapper)))
        self.store.add_package_file(ctx.package_id, str(wrapper), None)
        ctx.artifacts.append(str(wrapper))
        return wrapper

    def _refresh_icon_cache(self) -> None:
        """刷新图标缓存，失败只告警"""
        theme = Path(self.config.icons_dir) / "hicolor"
        try:
            run_cmd(
                ["gtk-update-icon-cache", "-f", str(theme)],
                label="刷新图标缓存", executor=self.executor,
            )
        except ExternalProcessError as e:
            logger.warning("图标缓存刷新失败: %s", e)

    def integrate(self, ctx: InstallContext, report: InstallReport) -> None:
        """步骤8: 桌面集成与 bin 链接"""
        name = ctx.meta.name

        desktop = ctx.root / "usr/share/applications" / f"{name}.desktop"
        if desktop.is_file():
            self._copy_artifact(
                ctx, desktop, Path(self.config.applications_dir) / f"{name}.desktop",
            )

        icon = find_icon(ctx.root, name)
        if icon is not None:
            size, src = icon
            dest = Path(self.config.icons_dir) / "hicolor" / size / "apps" / f"{name}.png"
            self._copy_artifact(ctx, src, dest)

        executable = find_executable(ctx.root, name)
        if executable is not None:
            wrapper = self._write_wrapper(ctx, executable)
            link = Path(self.config.bin_dir) / name
            self.log.push(self._preserve(ctx, link) or RemoveSymlink(str(link)))
            try:
                replace_symlink(link, wrapper)
            except OSError as e:
                raise IntegrationError(f"创建链接失败: {link}") from e
            ctx.bin_link = str(link)

        if icon is not None and self.config.refresh_icon_cache:
            self._refresh_icon_cache()

        self._advance(
            report, InstallState.INTEGRATION_COMPLETE, "integrate",
            artifacts=list(ctx.artifacts), bin_link=ctx.bin_link,
        )
        logger.info(
            "[Step 8] 集成完成: %d 个产物, bin 链接=%s",
            len(ctx.artifacts), ctx.bin_link or "无",
        )

    # ---- 10 ----

    def commit(self, ctx: InstallContext, report: InstallReport) -> None:
        """步骤10: 丢弃补偿日志，安装成为永久状态"""
        self.log.discard()
        self._advance(report, InstallState.COMMITTED, "commit")
        logger.info(
            "[Step 10] 安装完成: %s-%s", ctx.meta.name, ctx.meta.version,
            extra=package_context(ctx.meta.name, ctx.meta.version, report.state.value, ctx.package_id),
        )

    def cleanup(self, ctx: InstallContext) -> None:
        """删除临时解包目录（成功与失败都执行）"""
        if ctx.work_dir is not None and ctx.work_dir.exists():
            shutil.rmtree(ctx.work_dir, ignore_errors=True)
            logger.debug("已删除临时目录: %s", ctx.work_dir)
