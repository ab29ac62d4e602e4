"""CLI：项目构建与打包"""

from __future__ import annotations

import click

from lpkg.cli import _svc


def register(group: click.Group) -> None:
    group.add_command(pack)
    group.add_command(init)


@click.command()
@click.argument("directory", default=".", type=click.Path(file_okay=False))
@click.option("--output", "-o", default=None, help="输出文件（缺省 <name>-<version>.lpkg）")
def pack(directory: str, output: str | None) -> None:
    """把含 meta.toml 与 files/ 的项目目录打成 .lpkg"""
    result = _svc().pack.pack(directory, output)
    click.echo(f"已打包: {result.output}")
    click.echo(f"  content_checksum: {result.content_checksum}")


@click.command()
@click.argument("directory", default=".", type=click.Path(file_okay=False))
def init(directory: str) -> None:
    """构建 Cargo / Flutter 项目并生成 files/ 与 meta.toml"""
    builder = _svc().builder(directory)
    out = builder.prepare(directory)
    click.echo(f"[{out.builder}] {out.meta.name} {out.meta.version} 已准备就绪")
    click.echo(f"  执行 lpkg pack {directory} 生成包")
