"""CLI：签名、校验与密钥生成"""

from __future__ import annotations

import click

from lpkg.cli import _svc
from lpkg.core import signing


def register(group: click.Group) -> None:
    group.add_command(sign)
    group.add_command(verify)
    group.add_command(keygen)


@click.command()
@click.argument("package", type=click.Path(dir_okay=False))
@click.argument("key", type=click.Path(dir_okay=False))
@click.option("--comment", default=None, help="写入 .sig.comment 的附注")
def sign(package: str, key: str, comment: str | None) -> None:
    """用私钥为包生成分离签名"""
    sig_path = signing.sign_file(package, key, comment)
    click.echo(f"签名已写入: {sig_path}")


@click.command()
@click.argument("package", type=click.Path(dir_okay=False))
@click.option("--signature", default=None, help="签名文件（缺省 <package>.sig）")
@click.option("--key", default=None, help="公钥文件；给出时同时校验签名")
def verify(package: str, signature: str | None, key: str | None) -> None:
    """校验包内容校验和，可选校验签名"""
    checksum = _svc().pack.verify_content(package)
    click.echo(f"内容校验通过: {checksum}")
    if key:
        signing.verify_file(package, key, signature)
        click.echo("签名校验通过")


@click.command()
@click.argument("outdir", type=click.Path(file_okay=False))
@click.option("--name", default="lpkg", help="密钥文件名前缀")
def keygen(outdir: str, name: str) -> None:
    """生成 Ed25519 密钥对"""
    secret_path, public_path = signing.write_keypair(outdir, name)
    click.echo(f"私钥: {secret_path}")
    click.echo(f"公钥: {public_path}")
