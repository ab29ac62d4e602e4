"""CLI：杂项命令（看板）"""

from __future__ import annotations

import click


def register(group: click.Group) -> None:
    group.add_command(dashboard)


@click.command()
@click.option("--port", default=8888, help="监听端口")
def dashboard(port: int) -> None:
    """启动只读 Web 看板与静态仓库服务"""
    from lpkg.web.app import run_server
    run_server(port=port)
