"""集中配置管理

安装根目录、数据库路径、集成目录等统一在此定义默认值。
支持从 YAML 文件加载 + 编程式覆盖，文件路径由 LPKG_CONFIG 或 --config 指定。
"""

from __future__ import annotations

import logging
import os
import tempfile
from dataclasses import asdict, dataclass, field
from pathlib import Path

import yaml

from lpkg.core.exceptions import ConfigError
from lpkg.utils.yaml_io import load_yaml

logger = logging.getLogger(__name__)

DEFAULT_CONFIG_PATH = "/etc/lpkg/config.yml"
CONFIG_ENV = "LPKG_CONFIG"


@dataclass
class Config:
    """lpkg 全局配置"""

    # 存储
    db_path: str = "/var/lib/lpkg/db.sqlite"

    # 安装与集成目录
    install_base: str = "/usr/local/lpkg/packages"
    bin_dir: str = "/usr/local/bin"
    applications_dir: str = "/usr/local/share/applications"
    icons_dir: str = "/usr/local/share/icons"
    ld_conf_dir: str = "/etc/ld.so.conf.d"

    # 临时与缓存
    temp_dir: str = field(default_factory=tempfile.gettempdir)
    cache_dir: str = "/var/cache/lpkg"
    download_dir: str = "/var/cache/lpkg/downloads"

    # 仓库
    repos_file: str = "/etc/lpkg/repos.yml"
    default_repo: str = "default"
    repo_serve_dir: str = ""

    # 签名
    public_key: str = ""
    require_signature: bool = False

    # 行为开关
    refresh_icon_cache: bool = False
    update_removes_old_files: bool = True

    # 自定义扩展 (放不到字段里的配置项)
    extra: dict = field(default_factory=dict)

    @classmethod
    def from_file(cls, path: str | Path = DEFAULT_CONFIG_PATH) -> Config:
        """从 YAML 文件加载配置，不存在则返回默认"""
        try:
            data = load_yaml(path)
        except (OSError, ValueError, yaml.YAMLError) as e:
            raise ConfigError(f"无法读取配置文件 {path}: {e}") from e
        if not data:
            return cls()
        known = {f for f in cls.__dataclass_fields__ if f != "extra"}
        matched = {k: v for k, v in data.items() if k in known}
        extra = {k: v for k, v in data.items() if k not in known}
        try:
            cfg = cls(**matched)
        except TypeError as e:
            raise ConfigError(f"配置文件 {path} 内容无效: {e}") from e
        cfg.extra = extra
        return cfg

    def to_dict(self) -> dict:
        return asdict(self)

    def package_root(self, name: str, version: str) -> Path:
        """包的安装目标根目录 <install_base>/<name>-<version>"""
        return Path(self.install_base) / f"{name}-{version}"


# 全局单例，首次 import 时不加载文件；由 CLI / Web 入口显式初始化
_current: Config | None = None


def get_config() -> Config:
    """获取当前配置（未初始化则返回默认值）"""
    global _current  # noqa: PLW0603
    if _current is None:
        _current = Config()
    return _current


def init_config(path: str | Path | None = None) -> Config:
    """从文件初始化全局配置，path 为空时依次取 LPKG_CONFIG 与默认路径"""
    global _current  # noqa: PLW0603
    resolved = path or os.environ.get(CONFIG_ENV) or DEFAULT_CONFIG_PATH
    _current = Config.from_file(resolved)
    logger.info("配置已加载: %s", resolved)
    return _current


def set_config(cfg: Config | None) -> None:
    """直接替换全局配置（测试或编程式覆盖时使用）"""
    global _current  # noqa: PLW0603
    _current = cfg
