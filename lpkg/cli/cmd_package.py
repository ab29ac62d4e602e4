"""CLI：安装 / 卸载 / 更新 / 查询"""

from __future__ import annotations

import click

from lpkg.cli import _svc


def register(group: click.Group) -> None:
    group.add_command(setup)
    group.add_command(install)
    group.add_command(remove)
    group.add_command(list_packages)
    group.add_command(info)
    group.add_command(rollback)
    group.add_command(update)


@click.command()
def setup() -> None:
    """初始化包数据库与工作目录"""
    db_path = _svc().packages.setup()
    click.echo(f"数据库已就绪: {db_path}")


@click.command()
@click.argument("file", type=click.Path(dir_okay=False))
def install(file: str) -> None:
    """安装本地 .lpkg 包"""
    report = _svc().packages.install(file)
    click.echo(
        f"已安装: {report.name} {report.version} "
        f"(id={report.package_id}, {len(report.placed_files)} 个文件)"
    )
    click.echo(f"  安装目录: {report.install_root}")


@click.command()
@click.argument("name")
@click.option("--version", default=None, help="指定版本（不指定则卸载全部已安装版本）")
def remove(name: str, version: str | None) -> None:
    """卸载已安装的包"""
    if _svc().packages.remove(name, version):
        label = f"{name} {version}" if version else name
        click.echo(f"已卸载: {label}")
    else:
        click.echo(f"包未安装: {name}")


@click.command(name="list")
def list_packages() -> None:
    """列出已安装的包"""
    records = _svc().packages.list_packages()
    if not records:
        click.echo("没有已安装的包。")
        return
    for r in records:
        click.echo(f"  {r.name:24s} {r.version:12s} {r.description or ''}")


@click.command()
@click.argument("name")
def info(name: str) -> None:
    """显示包详情"""
    for item in _svc().packages.info(name):
        click.echo(f"{item['name']} {item['version']} (id={item['id']})")
        for key in ("description", "license", "authors", "homepage", "repository"):
            if item.get(key):
                click.echo(f"  {key}: {item[key]}")
        click.echo(f"  installed_at: {item['installed_at']}")
        click.echo(f"  files: {item['file_count']}")
        deps = item["dependencies"]
        if deps:
            click.echo("  dependencies:")
            for d in deps:
                click.echo(f"    {d['name']} {d['constraint'] or '*'}")
        if item["conflicts"]:
            click.echo("  conflicts:")
            for c in item["conflicts"]:
                click.echo(f"    {c['name']} {c['constraint'] or '*'}")


@click.command()
@click.argument("package_id", type=int)
def rollback(package_id: int) -> None:
    """按包 id 删除已放置文件与数据库记录"""
    removed = _svc().packages.rollback(package_id)
    click.echo(f"已回滚包 {package_id}: 删除 {len(removed)} 个文件")


@click.command()
@click.argument("name")
@click.option("--repo", default=None, help="仓库名（缺省为 default_repo）")
def update(name: str, repo: str | None) -> None:
    """从仓库更新包到最新版本"""
    result = _svc().packages.update(name, repo)
    if result.updated:
        click.echo(f"已更新: {name} {result.from_version} -> {result.to_version}")
    else:
        click.echo(result.message)
