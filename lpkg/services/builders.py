"""项目构建器 - Strategy Pattern

职责:
- 识别项目类型（Cargo.toml / pubspec.yaml）
- 调用对应构建工具
- 把构建产物整理到 files/ 并生成 meta.toml，之后可直接 lpkg pack

构建器类型:
- cargo: 原生二进制，产物放到 files/usr/bin/<name>
- flutter: Linux 桌面应用 bundle，附带 .desktop 与图标
"""

from __future__ import annotations

import logging
import re
import shutil
import tomllib
from abc import ABC, abstractmethod
from dataclasses import dataclass
from pathlib import Path

import yaml

from lpkg.core import metadata
from lpkg.core.exceptions import ValidationError
from lpkg.core.metadata import MetaDocument, PackageDescriptor
from lpkg.utils.shell import CommandExecutor, run_cmd

logger = logging.getLogger(__name__)

DEFAULT_LICENSE = "MIT"


@dataclass
class BuildOutput:
    """构建结果：files/ 目录与生成的元数据"""

    builder: str
    project_dir: Path
    files_dir: Path
    meta_path: Path
    meta: MetaDocument


# =========================================================================
# 构建器抽象基类
# =========================================================================


class BaseBuilder(ABC):
    """项目构建器公共接口"""

    name: str = ""
    marker: str = ""

    def __init__(self, executor: CommandExecutor | None = None) -> None:
        self.executor = executor

    @classmethod
    def detects(cls, project_dir: Path) -> bool:
        return (project_dir / cls.marker).is_file()

    @abstractmethod
    def read_manifest(self, project_dir: Path) -> PackageDescriptor:
        """从项目清单读取包名、版本等信息"""

    @abstractmethod
    def build(self, project_dir: Path) -> None:
        """调用构建工具，失败抛 ExternalProcessError"""

    @abstractmethod
    def stage(self, project_dir: Path, desc: PackageDescriptor, files_dir: Path) -> None:
        """把构建产物整理到 files_dir"""

    def prepare(self, project_dir: str | Path) -> BuildOutput:
        """完整流程：读取清单 -> 构建 -> 整理产物 -> 写 meta.toml"""
        project = Path(project_dir).resolve()
        desc = self.read_manifest(project)
        logger.info("检测到 %s 项目: %s %s", self.name, desc.name, desc.version)
        self.build(project)
        files_dir = project / "files"
        self.stage(project, desc, files_dir)
        doc = MetaDocument(package=desc)
        meta_path = project / "meta.toml"
        metadata.write_meta_file(meta_path, doc)
        logger.info("已生成 %s，可执行 lpkg pack", meta_path)
        return BuildOutput(
            builder=self.name, project_dir=project,
            files_dir=files_dir, meta_path=meta_path, meta=doc,
        )


def _require(table: dict, key: str, source: str) -> str:
    value = table.get(key)
    if not isinstance(value, str) or not value:
        raise ValidationError(f"{source} 缺少 {key}")
    return value


# =========================================================================
# Cargo
# =========================================================================


class CargoBuilder(BaseBuilder):
    """Rust 项目：cargo build --release"""

    name = "cargo"
    marker = "Cargo.toml"

    def read_manifest(self, project_dir: Path) -> PackageDescriptor:
        try:
            data = tomllib.loads((project_dir / self.marker).read_text(encoding="utf-8"))
        except (OSError, tomllib.TOMLDecodeError) as e:
            raise ValidationError(f"无法解析 {self.marker}: {e}") from e
        pkg = data.get("package") or {}
        return PackageDescriptor(
            name=_require(pkg, "name", self.marker),
            version=_require(pkg, "version", self.marker),
            description=pkg.get("description") or "A Rust application packaged with lpkg",
            license=pkg.get("license") or DEFAULT_LICENSE,
            authors=pkg.get("authors") or None,
            homepage=pkg.get("homepage"),
            repository=pkg.get("repository"),
        )

    def build(self, project_dir: Path) -> None:
        run_cmd(
            ["cargo", "build", "--release"], cwd=str(project_dir),
            label="cargo build", executor=self.executor,
        )

    def stage(self, project_dir: Path, desc: PackageDescriptor, files_dir: Path) -> None:
        binary = project_dir / "target" / "release" / desc.name
        if not binary.is_file():
            raise ValidationError(f"构建产物不存在: {binary}")
        bin_dir = files_dir / "usr" / "bin"
        bin_dir.mkdir(parents=True, exist_ok=True)
        dest = bin_dir / desc.name
        shutil.copy2(binary, dest)
        dest.chmod(0o755)
        logger.info("可执行文件已整理: %s", dest)


# =========================================================================
# Flutter
# =========================================================================

_APPLICATION_ID_RE = re.compile(r'set\(APPLICATION_ID\s+"([^"]+)"\)')

DESKTOP_TEMPLATE = """[Desktop Entry]
Version=1.0
Type=Application
Name={name}
Comment={comment}
Exec={name}
Icon={name}
Terminal=false
Categories=Utility;
StartupWMClass={app_id}
"""


class FlutterBuilder(BaseBuilder):
    """Flutter Linux 桌面应用：flutter build linux"""

    name = "flutter"
    marker = "pubspec.yaml"
    bundle_path = Path("build/linux/x64/release/bundle")

    def read_manifest(self, project_dir: Path) -> PackageDescriptor:
        try:
            with open(project_dir / self.marker, encoding="utf-8") as f:
                data = yaml.safe_load(f) or {}
        except (OSError, yaml.YAMLError) as e:
            raise ValidationError(f"无法解析 {self.marker}: {e}") from e
        if not isinstance(data, dict):
            raise ValidationError(f"{self.marker} 内容不是字典")
        name = _require(data, "name", self.marker)
        # version: 1.0 这类写法会被 YAML 解析成数字
        version = data.get("version")
        if version is None or str(version) == "":
            raise ValidationError(f"{self.marker} 缺少 version")
        return PackageDescriptor(
            name=name,
            version=str(version),
            description=data.get("description") or "A Flutter application packaged with lpkg",
            license=DEFAULT_LICENSE,
            application_id=self.application_id(project_dir, name),
        )

    @staticmethod
    def application_id(project_dir: Path, name: str) -> str:
        """从 linux/CMakeLists.txt 提取 APPLICATION_ID，缺省 org.lpkg.<name>"""
        cmake = project_dir / "linux" / "CMakeLists.txt"
        if cmake.is_file():
            m = _APPLICATION_ID_RE.search(cmake.read_text(encoding="utf-8"))
            if m:
                return m.group(1)
        return f"org.lpkg.{name.replace('-', '_')}"

    def build(self, project_dir: Path) -> None:
        run_cmd(
            ["flutter", "build", "linux"], cwd=str(project_dir),
            label="flutter build", executor=self.executor,
        )

    def stage(self, project_dir: Path, desc: PackageDescriptor, files_dir: Path) -> None:
        bundle = project_dir / self.bundle_path
        if not bundle.is_dir():
            raise ValidationError(f"构建产物不存在: {bundle}")
        if files_dir.exists():
            shutil.rmtree(files_dir)
        shutil.copytree(bundle, files_dir)

        apps_dir = files_dir / "usr" / "share" / "applications"
        apps_dir.mkdir(parents=True, exist_ok=True)
        (apps_dir / f"{desc.name}.desktop").write_text(
            DESKTOP_TEMPLATE.format(
                name=desc.name, comment=desc.description or "",
                app_id=desc.application_id,
            ),
            encoding="utf-8",
        )

        logo = project_dir / "assets" / "logo.png"
        if logo.is_file():
            icons_dir = files_dir / "usr" / "share" / "icons" / "hicolor" / "128x128" / "apps"
            icons_dir.mkdir(parents=True, exist_ok=True)
            shutil.copyfile(logo, icons_dir / f"{desc.name}.png")
        logger.info("Flutter bundle 已整理: %s", files_dir)


# =========================================================================
# 构建器工厂
# =========================================================================

_BUILDERS: tuple[type[BaseBuilder], ...] = (FlutterBuilder, CargoBuilder)


def detect_builder(
    project_dir: str | Path, executor: CommandExecutor | None = None,
) -> BaseBuilder:
    """根据项目目录中的清单文件选择构建器"""
    project = Path(project_dir)
    for cls in _BUILDERS:
        if cls.detects(project):
            return cls(executor)
    raise ValidationError(
        f"未识别的项目类型 (需要 pubspec.yaml 或 Cargo.toml): {project}"
    )
