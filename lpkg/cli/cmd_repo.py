"""CLI：远程仓库命令"""

from __future__ import annotations

import click

from lpkg.cli import _svc


def register(group: click.Group) -> None:
    group.add_command(repo_group)


@click.group(name="repo")
def repo_group() -> None:
    """远程仓库管理"""


@repo_group.command(name="add")
@click.argument("url")
@click.argument("name")
def repo_add(url: str, name: str) -> None:
    """登记仓库并缓存其索引"""
    index = _svc().repository.add(url, name)
    click.echo(f"仓库已添加: {name} ({len(index.packages)} 个包)")


@repo_group.command(name="list")
def repo_list() -> None:
    """列出已登记的仓库"""
    repos = _svc().repository.list_repos()
    if not repos:
        click.echo("没有已登记的仓库。")
        return
    for name, url in sorted(repos.items()):
        click.echo(f"  {name:16s} {url}")


@repo_group.command(name="search")
@click.argument("package")
@click.option("--repo", default=None, help="仓库名（缺省为 default_repo）")
def repo_search(package: str, repo: str | None) -> None:
    """在仓库索引中查找包"""
    entry = _svc().repository.search(package, repo)
    if entry is None:
        click.echo(f"未找到: {package}")
        return
    click.echo(f"{entry.name} {entry.version}")
    if entry.description:
        click.echo(f"  {entry.description}")
    if entry.dependencies:
        click.echo(f"  dependencies: {', '.join(entry.dependencies)}")
    click.echo(f"  download_url: {entry.download_url}")


@repo_group.command(name="install")
@click.argument("package")
@click.option("--repo", default=None, help="仓库名（缺省为 default_repo）")
def repo_install(package: str, repo: str | None) -> None:
    """从仓库下载并安装包"""
    report = _svc().packages.repo_install(package, repo)
    click.echo(f"已安装: {report.name} {report.version} (id={report.package_id})")
