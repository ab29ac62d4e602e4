"""lpkg 命令行接口

CLI 按领域拆分为子模块，每个模块注册自己的命令到 main group。
LpkgError 统一转换为 ClickException：打印完整因果链，退出码 1。
"""

import os
from typing import Any

import click

from lpkg import __version__
from lpkg.core.config import init_config
from lpkg.core.exceptions import LpkgError, format_error_chain
from lpkg.services.container import get_container, reset_container
from lpkg.utils.logger import setup_logging


def _svc() -> Any:
    """获取全局服务容器的快捷方式"""
    return get_container()


class LpkgGroup(click.Group):
    """把领域异常翻译成命令行错误输出"""

    def invoke(self, ctx: click.Context) -> Any:
        try:
            return super().invoke(ctx)
        except LpkgError as e:
            raise click.ClickException(format_error_chain(e)) from e


@click.group(cls=LpkgGroup)
@click.version_option(version=__version__)
@click.option(
    "--config", "config_path", default=None,
    help="配置文件路径（缺省取 LPKG_CONFIG 或 /etc/lpkg/config.yml）",
)
def main(config_path: str | None) -> None:
    """lpkg - Linux 原生包管理器"""
    setup_logging(
        level=os.getenv("LPKG_LOG_LEVEL", "INFO"),
        json_output=os.getenv("LPKG_LOG_JSON", "") == "1",
    )
    init_config(config_path)
    reset_container()


# 注册各领域子命令
from lpkg.cli.cmd_package import register as _reg_package  # noqa: E402
from lpkg.cli.cmd_build import register as _reg_build  # noqa: E402
from lpkg.cli.cmd_sign import register as _reg_sign  # noqa: E402
from lpkg.cli.cmd_repo import register as _reg_repo  # noqa: E402
from lpkg.cli.cmd_misc import register as _reg_misc  # noqa: E402

_reg_package(main)
_reg_build(main)
_reg_sign(main)
_reg_repo(main)
_reg_misc(main)
